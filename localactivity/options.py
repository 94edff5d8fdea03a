"""Options used to configure how a local activity is invoked.

Options are immutable and are always produced by a
:py:class:`LocalActivityOptionsBuilder`:

.. code-block:: python

    options = (
        LocalActivityOptions.new_builder()
        .set_start_to_close_timeout(timedelta(seconds=10))
        .set_retry_policy(RetryPolicy(maximum_attempts=3))
        .validate_and_build_with_defaults()
    )

Use :py:meth:`LocalActivityOptionsBuilder.build` instead when only a partial
template is needed, e.g. to layer overrides on top of it later via
:py:meth:`LocalActivityOptions.to_builder`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Mapping, Optional

from typing_extensions import Self, TypedDict

import localactivity.common
import localactivity.exceptions

logger = logging.getLogger(__name__)


class LocalActivityConfig(TypedDict, total=False):
    """TypedDict of config that can be passed as keyword arguments wherever
    local activity options are accepted, and read by
    :py:meth:`LocalActivityOptions.from_config`.
    """

    schedule_to_close_timeout: Optional[timedelta]
    start_to_close_timeout: Optional[timedelta]
    local_retry_threshold: Optional[timedelta]
    retry_policy: Optional[localactivity.common.RetryPolicy]


@dataclass(frozen=True)
class LocalActivityOptions:
    """Options used to configure how a local activity is invoked.

    Equality and hashing deliberately ignore :py:attr:`local_retry_threshold`.
    The threshold only tunes when retry bookkeeping leaves local memory; two
    options that differ only there describe the same activity invocation.
    The threshold is also left out of ``repr`` for the same reason.
    """

    schedule_to_close_timeout: Optional[timedelta] = None
    """Overall time the caller is willing to wait for the activity to
    complete, inclusive of all retries.
    """

    start_to_close_timeout: Optional[timedelta] = None
    """Maximum time of a single activity attempt."""

    local_retry_threshold: Optional[timedelta] = field(
        default=None, compare=False, repr=False
    )
    """Maximum time to retry locally before retries must be tracked
    externally (e.g. through a heartbeat).
    """

    retry_policy: Optional[localactivity.common.RetryPolicy] = None
    """How the activity is retried on failure. None means no retries."""

    @staticmethod
    def new_builder(
        options: Optional[LocalActivityOptions] = None,
    ) -> LocalActivityOptionsBuilder:
        """Create a builder, optionally seeded from existing options.

        Args:
            options: Options to copy every field from. None yields a builder
                with nothing set.
        """
        return LocalActivityOptionsBuilder(options)

    @staticmethod
    def default_instance() -> LocalActivityOptions:
        """Shared options with every field unset."""
        return _DEFAULT_INSTANCE

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> LocalActivityOptions:
        """Build options from a :py:class:`LocalActivityConfig` mapping.

        Values go through the builder setters so they are validated the same
        way. Keys with a None value are left unset. The result is not
        validated as a whole, call
        :py:meth:`LocalActivityOptionsBuilder.validate_and_build_with_defaults`
        on :py:meth:`to_builder` for that.

        Raises:
            InvalidArgumentError: On unknown keys or invalid values.
        """
        unknown = set(config) - LocalActivityConfig.__optional_keys__
        if unknown:
            raise localactivity.exceptions.InvalidArgumentError(
                f"Unknown local activity config keys: {', '.join(sorted(unknown))}"
            )
        builder = cls.new_builder()
        if config.get("schedule_to_close_timeout") is not None:
            builder.set_schedule_to_close_timeout(config["schedule_to_close_timeout"])
        if config.get("start_to_close_timeout") is not None:
            builder.set_start_to_close_timeout(config["start_to_close_timeout"])
        if config.get("local_retry_threshold") is not None:
            builder.set_local_retry_threshold(config["local_retry_threshold"])
        builder.set_retry_policy(config.get("retry_policy"))
        return builder.build()

    def to_config(self) -> LocalActivityConfig:
        """Convert to a :py:class:`LocalActivityConfig` holding only the set
        fields.
        """
        config: LocalActivityConfig = {}
        if self.schedule_to_close_timeout is not None:
            config["schedule_to_close_timeout"] = self.schedule_to_close_timeout
        if self.start_to_close_timeout is not None:
            config["start_to_close_timeout"] = self.start_to_close_timeout
        if self.local_retry_threshold is not None:
            config["local_retry_threshold"] = self.local_retry_threshold
        if self.retry_policy is not None:
            config["retry_policy"] = self.retry_policy
        return config

    def to_builder(self) -> LocalActivityOptionsBuilder:
        """Create a builder seeded with these options."""
        return LocalActivityOptionsBuilder(self)


class LocalActivityOptionsBuilder:
    """Mutable staging object for :py:class:`LocalActivityOptions`.

    Setters validate their argument immediately and return the builder so
    calls can be chained. A builder is meant to be owned by a single caller;
    it is not safe to mutate from multiple threads.
    """

    def __init__(self, options: Optional[LocalActivityOptions] = None) -> None:
        """Create a builder, copying every field from ``options`` if given."""
        self._schedule_to_close_timeout: Optional[timedelta] = None
        self._start_to_close_timeout: Optional[timedelta] = None
        self._local_retry_threshold: Optional[timedelta] = None
        self._retry_policy: Optional[localactivity.common.RetryPolicy] = None
        if options is None:
            return
        logger.debug("Seeding local activity options builder from %s", options)
        self._schedule_to_close_timeout = options.schedule_to_close_timeout
        self._start_to_close_timeout = options.start_to_close_timeout
        self._local_retry_threshold = options.local_retry_threshold
        self._retry_policy = options.retry_policy

    @property
    def schedule_to_close_timeout(self) -> Optional[timedelta]:
        """Currently staged schedule to close timeout."""
        return self._schedule_to_close_timeout

    @property
    def start_to_close_timeout(self) -> Optional[timedelta]:
        """Currently staged start to close timeout."""
        return self._start_to_close_timeout

    @property
    def local_retry_threshold(self) -> Optional[timedelta]:
        """Currently staged local retry threshold."""
        return self._local_retry_threshold

    @property
    def retry_policy(self) -> Optional[localactivity.common.RetryPolicy]:
        """Currently staged retry policy."""
        return self._retry_policy

    def set_schedule_to_close_timeout(self, timeout: timedelta) -> Self:
        """Overall time the caller is willing to wait for the activity to
        complete.

        Raises:
            InvalidArgumentError: If the timeout is zero or negative.
        """
        self._schedule_to_close_timeout = _check_positive(
            timeout, "Illegal timeout", "schedule_to_close_timeout"
        )
        return self

    def set_start_to_close_timeout(self, timeout: timedelta) -> Self:
        """Maximum time of a single attempt.

        Raises:
            InvalidArgumentError: If the timeout is zero or negative.
        """
        self._start_to_close_timeout = _check_positive(
            timeout, "Illegal timeout", "start_to_close_timeout"
        )
        return self

    def set_local_retry_threshold(self, threshold: timedelta) -> Self:
        """Maximum time to retry locally keeping the caller's task open
        through heartbeats.

        Raises:
            InvalidArgumentError: If the threshold is zero or negative.
        """
        self._local_retry_threshold = _check_positive(
            threshold, "Illegal threshold", "local_retry_threshold"
        )
        return self

    def set_retry_policy(
        self, retry_policy: Optional[localactivity.common.RetryPolicy]
    ) -> Self:
        """Policy that defines how the activity is retried on failure.

        None, the default, means no retries. The policy is not validated here;
        that happens in :py:meth:`validate_and_build_with_defaults`.
        """
        self._retry_policy = retry_policy
        return self

    def set_method_retry(
        self, method_retry: Optional[localactivity.common.MethodRetry]
    ) -> Self:
        """Merge declarative retry defaults into the staged retry policy.

        Values already on the staged policy take precedence over the
        descriptor's. Does nothing if ``method_retry`` is None.
        """
        if method_retry is not None:
            self._retry_policy = localactivity.common.RetryPolicy.merge(
                method_retry, self._retry_policy
            )
        return self

    def build(self) -> LocalActivityOptions:
        """Create options from the staged values as-is.

        No defaults are applied and no cross-field validation is done, so both
        timeouts may be unset.
        """
        return LocalActivityOptions(
            schedule_to_close_timeout=self._schedule_to_close_timeout,
            start_to_close_timeout=self._start_to_close_timeout,
            local_retry_threshold=self._local_retry_threshold,
            retry_policy=self._retry_policy,
        )

    def validate_and_build_with_defaults(self) -> LocalActivityOptions:
        """Create options with retry policy defaults applied and validated.

        Raises:
            InvalidArgumentError: If neither the start to close nor the
                schedule to close timeout is set, or if the retry policy is
                invalid.
        """
        retry_policy = localactivity.common.RetryPolicy.validate_build_with_defaults(
            self._retry_policy
        )
        logger.debug("Retry policy with defaults applied: %s", retry_policy)
        if self._start_to_close_timeout is None and self._schedule_to_close_timeout is None:
            raise localactivity.exceptions.InvalidArgumentError(
                "one of the start_to_close_timeout or schedule_to_close_timeout is required"
            )
        return LocalActivityOptions(
            schedule_to_close_timeout=self._schedule_to_close_timeout,
            start_to_close_timeout=self._start_to_close_timeout,
            local_retry_threshold=self._local_retry_threshold,
            retry_policy=retry_policy,
        )


def _check_positive(value: timedelta, message: str, argument: str) -> timedelta:
    if not isinstance(value, timedelta):
        raise TypeError(f"{argument} must be a timedelta, got {type(value).__name__}")
    if value <= timedelta():
        raise localactivity.exceptions.InvalidArgumentError(
            f"{message}: {value}", argument=argument
        )
    return value


_DEFAULT_INSTANCE = LocalActivityOptionsBuilder().build()
