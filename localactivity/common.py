"""Retry policy and declarative retry defaults shared by activity options."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional, Sequence, TypeVar

import localactivity.exceptions

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_INITIAL_INTERVAL = timedelta(seconds=1)
"""Initial interval used when a policy does not set one."""

DEFAULT_BACKOFF_COEFFICIENT = 2.0
"""Backoff coefficient used when a policy does not set one."""

DEFAULT_MAXIMUM_ATTEMPTS = 0
"""Maximum attempts used when a policy does not set one (unlimited)."""


@dataclass(frozen=True)
class RetryPolicy:
    """Options for retrying activities.

    Every field may be left as ``None`` meaning "not specified". Unspecified
    fields are what :py:meth:`merge` fills from a :py:class:`MethodRetry` and
    what :py:meth:`with_defaults` fills with library defaults.
    """

    initial_interval: Optional[timedelta] = None
    """Backoff interval for the first retry. Default 1s."""

    backoff_coefficient: Optional[float] = None
    """Coefficient to multiply previous backoff interval by to get new
    interval. Default 2.0.
    """

    maximum_interval: Optional[timedelta] = None
    """Maximum backoff interval between retries. Unset means 100x
    :py:attr:`initial_interval`.
    """

    maximum_attempts: Optional[int] = None
    """Maximum number of attempts.

    If 0, the default, there is no maximum. Set to 1 to disable retries.
    """

    non_retryable_error_types: Optional[Sequence[str]] = None
    """List of error types that are not retryable."""

    def __post_init__(self) -> None:
        # Stored as a tuple so the policy stays hashable and can't be mutated
        # through a list the caller still holds
        if self.non_retryable_error_types is not None:
            _check_not_str(self.non_retryable_error_types, "non_retryable_error_types")
            object.__setattr__(
                self, "non_retryable_error_types", tuple(self.non_retryable_error_types)
            )

    @staticmethod
    def merge(
        method_retry: MethodRetry, policy: Optional[RetryPolicy]
    ) -> RetryPolicy:
        """Merge declarative retry defaults into a policy.

        Fields set on ``policy`` take precedence. Fields left unset there are
        taken from ``method_retry`` when it specifies them.

        Args:
            method_retry: Declarative defaults to fill gaps from.
            policy: Explicit policy, or None to build from the defaults alone.

        Returns:
            A new policy. Neither input is modified.
        """
        if policy is None:
            policy = RetryPolicy()
        merged = RetryPolicy(
            initial_interval=_first_set(
                policy.initial_interval, method_retry.initial_interval
            ),
            backoff_coefficient=_first_set(
                policy.backoff_coefficient, method_retry.effective_backoff_coefficient
            ),
            maximum_interval=_first_set(
                policy.maximum_interval, method_retry.maximum_interval
            ),
            maximum_attempts=_first_set(
                policy.maximum_attempts, method_retry.effective_maximum_attempts
            ),
            non_retryable_error_types=_first_set(
                policy.non_retryable_error_types, method_retry.effective_do_not_retry
            ),
        )
        logger.debug("Merged %s into %s, result %s", method_retry, policy, merged)
        return merged

    @staticmethod
    def validate_build_with_defaults(policy: Optional[RetryPolicy]) -> RetryPolicy:
        """Apply library defaults to the given policy (or an empty one) and
        validate the result.
        """
        return (policy or RetryPolicy()).with_defaults()

    def with_defaults(self) -> RetryPolicy:
        """Copy of this policy with library defaults for unset fields.

        ``maximum_interval`` stays unset; whoever executes the policy derives
        it from the initial interval.

        Raises:
            InvalidArgumentError: If the resulting policy is invalid.
        """
        policy = dataclasses.replace(
            self,
            initial_interval=_first_set(
                self.initial_interval, DEFAULT_INITIAL_INTERVAL
            ),
            backoff_coefficient=_first_set(
                self.backoff_coefficient, DEFAULT_BACKOFF_COEFFICIENT
            ),
            maximum_attempts=_first_set(
                self.maximum_attempts, DEFAULT_MAXIMUM_ATTEMPTS
            ),
        )
        policy._validate()
        return policy

    def _validate(self) -> None:
        if self.maximum_attempts == 1:
            # Ignore other validation if disabling retries
            return
        if self.initial_interval is not None and self.initial_interval < timedelta():
            raise localactivity.exceptions.InvalidArgumentError(
                "Initial interval cannot be negative", argument="initial_interval"
            )
        if self.backoff_coefficient is not None and self.backoff_coefficient < 1:
            raise localactivity.exceptions.InvalidArgumentError(
                "Backoff coefficient cannot be less than 1",
                argument="backoff_coefficient",
            )
        if self.maximum_interval is not None:
            if self.maximum_interval < timedelta():
                raise localactivity.exceptions.InvalidArgumentError(
                    "Maximum interval cannot be negative", argument="maximum_interval"
                )
            if (
                self.initial_interval is not None
                and self.maximum_interval < self.initial_interval
            ):
                raise localactivity.exceptions.InvalidArgumentError(
                    "Maximum interval cannot be less than initial interval",
                    argument="maximum_interval",
                )
        if self.maximum_attempts is not None and self.maximum_attempts < 0:
            raise localactivity.exceptions.InvalidArgumentError(
                "Maximum attempts cannot be negative", argument="maximum_attempts"
            )


@dataclass(frozen=True)
class MethodRetry:
    """Declarative retry defaults attached to an activity method.

    Zero (or empty) values mean "not specified", so a descriptor only ever
    fills in what it names. Merge into a builder with
    :py:meth:`localactivity.options.LocalActivityOptionsBuilder.set_method_retry`.
    """

    initial_interval_seconds: float = 0
    """Interval of the first retry in seconds. 0 means unspecified."""

    maximum_interval_seconds: float = 0
    """Maximum interval between retries in seconds. 0 means unspecified."""

    backoff_coefficient: float = 0
    """Coefficient used to calculate the next retry interval. 0 means
    unspecified.
    """

    maximum_attempts: int = 0
    """Maximum number of attempts. 0 means unspecified."""

    do_not_retry: Sequence[str] = ()
    """Error types that must not be retried. Empty means unspecified."""

    def __post_init__(self) -> None:
        _check_not_str(self.do_not_retry, "do_not_retry")
        object.__setattr__(self, "do_not_retry", tuple(self.do_not_retry))
        for name in (
            "initial_interval_seconds",
            "maximum_interval_seconds",
            "backoff_coefficient",
            "maximum_attempts",
        ):
            if getattr(self, name) < 0:
                raise localactivity.exceptions.InvalidArgumentError(
                    f"{name} cannot be negative", argument=name
                )

    @property
    def initial_interval(self) -> Optional[timedelta]:
        """Initial interval as a timedelta, or None if unspecified."""
        if not self.initial_interval_seconds:
            return None
        return timedelta(seconds=self.initial_interval_seconds)

    @property
    def maximum_interval(self) -> Optional[timedelta]:
        """Maximum interval as a timedelta, or None if unspecified."""
        if not self.maximum_interval_seconds:
            return None
        return timedelta(seconds=self.maximum_interval_seconds)

    @property
    def effective_backoff_coefficient(self) -> Optional[float]:
        """Backoff coefficient, or None if unspecified."""
        return self.backoff_coefficient or None

    @property
    def effective_maximum_attempts(self) -> Optional[int]:
        """Maximum attempts, or None if unspecified."""
        return self.maximum_attempts or None

    @property
    def effective_do_not_retry(self) -> Optional[Sequence[str]]:
        """Non-retryable error types, or None if unspecified."""
        return self.do_not_retry or None


def _first_set(value: Optional[T], fallback: T) -> T:
    return value if value is not None else fallback


def _check_not_str(value: Sequence[str], name: str) -> None:
    # A bare string is a Sequence[str] too, but would be split into characters
    if isinstance(value, str):
        raise TypeError(f"{name} must be a sequence of strings, not a single string")
