"""Environment and file-based configuration for local activity options.

This module provides utilities to load local activity options from TOML files
and environment variables. A config file holds named profiles:

.. code-block:: toml

    [profile.default]
    start_to_close_timeout = "10s"
    local_retry_threshold = "1m"

    [profile.default.retry_policy]
    initial_interval = "500ms"
    maximum_attempts = 5

Durations are strings such as ``"1h30m"``, ``"1.5s"`` or ``"250ms"``, or plain
numbers of seconds.
"""

from __future__ import annotations

import dataclasses
import logging
import os
import tomllib
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, List, Mapping, Optional, Tuple, Union, cast

from typing_extensions import Self, TypedDict

import localactivity.common
import localactivity.exceptions
import localactivity.options
from localactivity.types import DataSource, format_duration, parse_duration

logger = logging.getLogger(__name__)

ENV_CONFIG_FILE = "TEMPORAL_LOCAL_ACTIVITY_CONFIG_FILE"
ENV_PROFILE = "TEMPORAL_LOCAL_ACTIVITY_PROFILE"
ENV_SCHEDULE_TO_CLOSE_TIMEOUT = "TEMPORAL_LOCAL_ACTIVITY_SCHEDULE_TO_CLOSE_TIMEOUT"
ENV_START_TO_CLOSE_TIMEOUT = "TEMPORAL_LOCAL_ACTIVITY_START_TO_CLOSE_TIMEOUT"
ENV_LOCAL_RETRY_THRESHOLD = "TEMPORAL_LOCAL_ACTIVITY_LOCAL_RETRY_THRESHOLD"
ENV_RETRY_MAXIMUM_ATTEMPTS = "TEMPORAL_LOCAL_ACTIVITY_RETRY_MAXIMUM_ATTEMPTS"

DEFAULT_PROFILE = "default"

_Duration = Union[str, int, float]


# We define typed dictionaries for what these configs look like as TOML.
class RetryPolicyConfigDict(TypedDict, total=False):
    """Dictionary representation of a retry policy for TOML."""

    initial_interval: _Duration
    backoff_coefficient: float
    maximum_interval: _Duration
    maximum_attempts: int
    non_retryable_error_types: List[str]


class LocalActivityConfigProfileDict(TypedDict, total=False):
    """Dictionary representation of a local activity options profile for
    TOML.
    """

    schedule_to_close_timeout: _Duration
    start_to_close_timeout: _Duration
    local_retry_threshold: _Duration
    retry_policy: RetryPolicyConfigDict


def _optional_duration(value: Optional[_Duration], key: str) -> Optional[timedelta]:
    if value is None:
        return None
    try:
        return parse_duration(value)
    except (localactivity.exceptions.InvalidArgumentError, TypeError) as err:
        raise localactivity.exceptions.InvalidArgumentError(
            f"Invalid duration for {key}: {value!r}", argument=key
        ) from err


def _read_source(source: Optional[DataSource]) -> Optional[bytes]:
    if source is None:
        return None
    if isinstance(source, Path):
        with open(source, "rb") as f:
            return f.read()
    if isinstance(source, str):
        return source.encode("utf-8")
    if isinstance(source, bytes):
        return source
    raise TypeError(
        f"Source must be one of pathlib.Path, str, or bytes, but got {type(source).__name__}"
    )


def _parse_toml(data: bytes) -> Mapping[str, Any]:
    try:
        return tomllib.loads(data.decode("utf-8"))
    except (tomllib.TOMLDecodeError, UnicodeDecodeError) as err:
        raise localactivity.exceptions.InvalidArgumentError(
            f"Invalid local activity config: {err}"
        ) from err


def _check_table(value: Any, key: str) -> None:
    if not isinstance(value, Mapping):
        raise localactivity.exceptions.InvalidArgumentError(
            f"Local activity config '{key}' must be a table", argument=key
        )


@dataclass(frozen=True)
class RetryPolicyConfig:
    """Retry policy as specified as part of a local activity options profile."""

    initial_interval: Optional[timedelta] = None
    """Backoff interval for the first retry."""
    backoff_coefficient: Optional[float] = None
    """Coefficient applied to the previous interval to get the next one."""
    maximum_interval: Optional[timedelta] = None
    """Maximum backoff interval between retries."""
    maximum_attempts: Optional[int] = None
    """Maximum number of attempts, 0 for unlimited."""
    non_retryable_error_types: Optional[Tuple[str, ...]] = None
    """Error types that are not retried."""

    @classmethod
    def from_dict(cls, d: Optional[RetryPolicyConfigDict]) -> Optional[Self]:
        """Create a RetryPolicyConfig from a dictionary."""
        if not d:
            return None
        _check_table(d, "retry_policy")
        backoff_coefficient = d.get("backoff_coefficient")
        if backoff_coefficient is not None and (
            isinstance(backoff_coefficient, bool)
            or not isinstance(backoff_coefficient, (int, float))
        ):
            raise localactivity.exceptions.InvalidArgumentError(
                f"Invalid retry_policy.backoff_coefficient: {backoff_coefficient!r}",
                argument="retry_policy.backoff_coefficient",
            )
        maximum_attempts = d.get("maximum_attempts")
        if maximum_attempts is not None and (
            isinstance(maximum_attempts, bool) or not isinstance(maximum_attempts, int)
        ):
            raise localactivity.exceptions.InvalidArgumentError(
                f"Invalid retry_policy.maximum_attempts: {maximum_attempts!r}",
                argument="retry_policy.maximum_attempts",
            )
        error_types = d.get("non_retryable_error_types")
        if error_types is not None and (
            not isinstance(error_types, list)
            or not all(isinstance(t, str) for t in error_types)
        ):
            raise localactivity.exceptions.InvalidArgumentError(
                "Invalid retry_policy.non_retryable_error_types: "
                f"{error_types!r}, expected a list of strings",
                argument="retry_policy.non_retryable_error_types",
            )
        return cls(
            initial_interval=_optional_duration(
                d.get("initial_interval"), "retry_policy.initial_interval"
            ),
            backoff_coefficient=backoff_coefficient,
            maximum_interval=_optional_duration(
                d.get("maximum_interval"), "retry_policy.maximum_interval"
            ),
            maximum_attempts=maximum_attempts,
            non_retryable_error_types=tuple(error_types)
            if error_types is not None
            else None,
        )

    @classmethod
    def from_retry_policy(cls, policy: localactivity.common.RetryPolicy) -> Self:
        """Create a RetryPolicyConfig from a retry policy."""
        return cls(
            initial_interval=policy.initial_interval,
            backoff_coefficient=policy.backoff_coefficient,
            maximum_interval=policy.maximum_interval,
            maximum_attempts=policy.maximum_attempts,
            non_retryable_error_types=tuple(policy.non_retryable_error_types)
            if policy.non_retryable_error_types is not None
            else None,
        )

    def to_dict(self) -> RetryPolicyConfigDict:
        """Convert to a dictionary that can be used for TOML serialization."""
        d: RetryPolicyConfigDict = {}
        if self.initial_interval is not None:
            d["initial_interval"] = format_duration(self.initial_interval)
        if self.backoff_coefficient is not None:
            d["backoff_coefficient"] = self.backoff_coefficient
        if self.maximum_interval is not None:
            d["maximum_interval"] = format_duration(self.maximum_interval)
        if self.maximum_attempts is not None:
            d["maximum_attempts"] = self.maximum_attempts
        if self.non_retryable_error_types is not None:
            d["non_retryable_error_types"] = list(self.non_retryable_error_types)
        return d

    def to_retry_policy(self) -> localactivity.common.RetryPolicy:
        """Create a :py:class:`localactivity.common.RetryPolicy` from this
        config. Unset fields stay unset.
        """
        return localactivity.common.RetryPolicy(
            initial_interval=self.initial_interval,
            backoff_coefficient=self.backoff_coefficient,
            maximum_interval=self.maximum_interval,
            maximum_attempts=self.maximum_attempts,
            non_retryable_error_types=self.non_retryable_error_types,
        )


@dataclass(frozen=True)
class LocalActivityConfigProfile:
    """Represents a local activity options profile.

    This class holds the configuration as loaded from a file or environment.
    See :py:meth:`to_options` to turn the profile into
    :py:class:`localactivity.options.LocalActivityOptions`.
    """

    schedule_to_close_timeout: Optional[timedelta] = None
    """Overall timeout inclusive of retries."""
    start_to_close_timeout: Optional[timedelta] = None
    """Timeout of a single attempt."""
    local_retry_threshold: Optional[timedelta] = None
    """Threshold after which retries are no longer tracked locally."""
    retry_policy: Optional[RetryPolicyConfig] = None
    """Retry policy configuration."""

    @classmethod
    def from_dict(cls, d: LocalActivityConfigProfileDict) -> Self:
        """Create a LocalActivityConfigProfile from a dictionary."""
        return cls(
            schedule_to_close_timeout=_optional_duration(
                d.get("schedule_to_close_timeout"), "schedule_to_close_timeout"
            ),
            start_to_close_timeout=_optional_duration(
                d.get("start_to_close_timeout"), "start_to_close_timeout"
            ),
            local_retry_threshold=_optional_duration(
                d.get("local_retry_threshold"), "local_retry_threshold"
            ),
            retry_policy=RetryPolicyConfig.from_dict(d.get("retry_policy")),
        )

    @classmethod
    def from_options(
        cls, options: localactivity.options.LocalActivityOptions
    ) -> Self:
        """Create a profile holding the values of the given options."""
        return cls(
            schedule_to_close_timeout=options.schedule_to_close_timeout,
            start_to_close_timeout=options.start_to_close_timeout,
            local_retry_threshold=options.local_retry_threshold,
            retry_policy=RetryPolicyConfig.from_retry_policy(options.retry_policy)
            if options.retry_policy
            else None,
        )

    def to_dict(self) -> LocalActivityConfigProfileDict:
        """Convert to a dictionary that can be used for TOML serialization."""
        d: LocalActivityConfigProfileDict = {}
        if self.schedule_to_close_timeout is not None:
            d["schedule_to_close_timeout"] = format_duration(
                self.schedule_to_close_timeout
            )
        if self.start_to_close_timeout is not None:
            d["start_to_close_timeout"] = format_duration(self.start_to_close_timeout)
        if self.local_retry_threshold is not None:
            d["local_retry_threshold"] = format_duration(self.local_retry_threshold)
        if self.retry_policy and (retry_dict := self.retry_policy.to_dict()):
            d["retry_policy"] = retry_dict
        return d

    def to_options(self) -> localactivity.options.LocalActivityOptions:
        """Create options from this profile.

        The values pass through the options builder so invalid timeouts are
        rejected, but no defaults are applied. Use
        ``to_options().to_builder().validate_and_build_with_defaults()`` to
        get fully validated options.

        Raises:
            InvalidArgumentError: If a timeout or threshold is not positive.
        """
        builder = localactivity.options.LocalActivityOptions.new_builder()
        if self.schedule_to_close_timeout is not None:
            builder.set_schedule_to_close_timeout(self.schedule_to_close_timeout)
        if self.start_to_close_timeout is not None:
            builder.set_start_to_close_timeout(self.start_to_close_timeout)
        if self.local_retry_threshold is not None:
            builder.set_local_retry_threshold(self.local_retry_threshold)
        if self.retry_policy is not None:
            builder.set_retry_policy(self.retry_policy.to_retry_policy())
        return builder.build()

    def with_env_overrides(self, env: Mapping[str, str]) -> Self:
        """Copy of this profile with values from environment variables
        applied on top.
        """
        retry_policy = self.retry_policy
        max_attempts = env.get(ENV_RETRY_MAXIMUM_ATTEMPTS)
        if max_attempts is not None:
            try:
                attempts = int(max_attempts)
            except ValueError as err:
                raise localactivity.exceptions.InvalidArgumentError(
                    f"Invalid {ENV_RETRY_MAXIMUM_ATTEMPTS}: {max_attempts!r}",
                    argument="retry_policy.maximum_attempts",
                ) from err
            if retry_policy is None:
                retry_policy = RetryPolicyConfig(maximum_attempts=attempts)
            else:
                retry_policy = dataclasses.replace(
                    retry_policy, maximum_attempts=attempts
                )

        def override(key: str, current: Optional[timedelta]) -> Optional[timedelta]:
            value = _optional_duration(env.get(key), key)
            return current if value is None else value

        profile = dataclasses.replace(
            self,
            schedule_to_close_timeout=override(
                ENV_SCHEDULE_TO_CLOSE_TIMEOUT, self.schedule_to_close_timeout
            ),
            start_to_close_timeout=override(
                ENV_START_TO_CLOSE_TIMEOUT, self.start_to_close_timeout
            ),
            local_retry_threshold=override(
                ENV_LOCAL_RETRY_THRESHOLD, self.local_retry_threshold
            ),
            retry_policy=retry_policy,
        )
        if profile != self:
            logger.debug("Applied environment overrides to local activity profile")
        return profile

    @staticmethod
    def load(
        profile: Optional[str] = None,
        *,
        config_source: Optional[DataSource] = None,
        disable_file: bool = False,
        disable_env: bool = False,
        override_env_vars: Optional[Mapping[str, str]] = None,
    ) -> LocalActivityConfigProfile:
        """Load a single local activity options profile from given sources,
        applying env overrides.

        Args:
            profile: Profile to load from the config. If not provided, the
                ``TEMPORAL_LOCAL_ACTIVITY_PROFILE`` environment variable is
                used, falling back to ``"default"``.
            config_source: If present, this is used as the configuration
                source instead of the file named by
                ``TEMPORAL_LOCAL_ACTIVITY_CONFIG_FILE``. This can be a path to
                the file or the string/byte contents of the file.
            disable_file: If true, file loading is disabled. This is only used
                when ``config_source`` is not present.
            disable_env: If true, environment variable loading and overriding
                is disabled. This takes precedence over the
                ``override_env_vars`` parameter.
            override_env_vars: The environment to use for loading and
                overrides. If not provided, the current process's environment
                is used.

        Returns:
            The local activity options profile.

        Raises:
            InvalidArgumentError: If the config cannot be parsed, or a
                non-default profile was requested and is missing.
        """
        env: Mapping[str, str] = {}
        if not disable_env:
            env = os.environ if override_env_vars is None else override_env_vars
        if profile is None:
            profile = env.get(ENV_PROFILE) or DEFAULT_PROFILE

        if config_source is None and not disable_file and env.get(ENV_CONFIG_FILE):
            config_source = Path(env[ENV_CONFIG_FILE])
        config = LocalActivityOptionsConfig.load(config_source=config_source)

        loaded = config.profiles.get(profile)
        if loaded is None:
            if profile != DEFAULT_PROFILE:
                raise localactivity.exceptions.InvalidArgumentError(
                    f"Local activity config profile {profile!r} not found",
                    argument="profile",
                )
            loaded = LocalActivityConfigProfile()
        logger.debug("Loaded local activity config profile %r", profile)
        if disable_env:
            return loaded
        return loaded.with_env_overrides(env)


@dataclass
class LocalActivityOptionsConfig:
    """Local activity options configuration loaded from TOML.

    This contains a mapping of profile names to profiles. See
    :py:meth:`LocalActivityConfigProfile.load` to load an individual profile
    with environment overrides applied.
    """

    profiles: Mapping[str, LocalActivityConfigProfile] = field(default_factory=dict)
    """Map of profile name to its corresponding profile."""

    def to_dict(self) -> Mapping[str, Mapping[str, LocalActivityConfigProfileDict]]:
        """Convert to a dictionary that can be used for TOML serialization."""
        return {"profile": {k: v.to_dict() for k, v in self.profiles.items()}}

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> Self:
        """Create a LocalActivityOptionsConfig from a TOML shaped dictionary
        with a top-level ``profile`` table.
        """
        profiles = d.get("profile") or {}
        _check_table(profiles, "profile")
        for name, profile in profiles.items():
            _check_table(profile, f"profile.{name}")
        return cls(
            profiles={
                k: LocalActivityConfigProfile.from_dict(
                    cast(LocalActivityConfigProfileDict, v)
                )
                for k, v in profiles.items()
            }
        )

    @staticmethod
    def load(
        *, config_source: Optional[DataSource] = None
    ) -> LocalActivityOptionsConfig:
        """Load all profiles from the given source.

        This does not apply environment variable overrides. An absent source
        yields a config without profiles.
        """
        data = _read_source(config_source)
        if data is None:
            return LocalActivityOptionsConfig()
        return LocalActivityOptionsConfig.from_dict(_parse_toml(data))


def load_local_activity_options(
    profile: Optional[str] = None,
    *,
    config_file: Optional[str] = None,
    disable_file: bool = False,
    disable_env: bool = False,
    validate: bool = True,
    override_env_vars: Optional[Mapping[str, str]] = None,
) -> localactivity.options.LocalActivityOptions:
    """Load a single profile and convert it to local activity options.

    This is a convenience function that combines loading a profile and
    building options from it.

    Args:
        profile: The profile to load from the config.
        config_file: Path to a specific TOML config file. This is ignored if
            ``disable_file`` is true.
        disable_file: If true, file loading is disabled.
        disable_env: If true, environment variable loading and overriding is
            disabled.
        validate: If true, the default, the options are built with
            :py:meth:`localactivity.options.LocalActivityOptionsBuilder.validate_and_build_with_defaults`.
        override_env_vars: Environment variables to use instead of the
            current process's environment.

    Returns:
        The local activity options.
    """
    config_source: Optional[DataSource] = None
    if config_file and not disable_file:
        config_source = Path(config_file)
    prof = LocalActivityConfigProfile.load(
        profile=profile,
        config_source=config_source,
        disable_file=disable_file,
        disable_env=disable_env,
        override_env_vars=override_env_vars,
    )
    options = prof.to_options()
    if validate:
        return options.to_builder().validate_and_build_with_defaults()
    return options
