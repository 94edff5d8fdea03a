from __future__ import annotations

from datetime import timedelta

import pytest

from localactivity.common import MethodRetry, RetryPolicy
from localactivity.exceptions import InvalidArgumentError


def test_retry_policy_validate():
    # Validation ignored for max attempts as 1
    RetryPolicy(initial_interval=timedelta(seconds=-1), maximum_attempts=1)._validate()
    with pytest.raises(ValueError, match="Initial interval cannot be negative"):
        RetryPolicy(initial_interval=timedelta(seconds=-1))._validate()
    with pytest.raises(ValueError, match="Backoff coefficient cannot be less than 1"):
        RetryPolicy(backoff_coefficient=0.5)._validate()
    with pytest.raises(ValueError, match="Maximum interval cannot be negative"):
        RetryPolicy(maximum_interval=timedelta(seconds=-1))._validate()
    with pytest.raises(
        ValueError, match="Maximum interval cannot be less than initial interval"
    ):
        RetryPolicy(
            initial_interval=timedelta(seconds=3), maximum_interval=timedelta(seconds=1)
        )._validate()
    with pytest.raises(ValueError, match="Maximum attempts cannot be negative"):
        RetryPolicy(maximum_attempts=-1)._validate()


def test_retry_policy_with_defaults():
    policy = RetryPolicy(maximum_interval=timedelta(seconds=30)).with_defaults()
    assert policy == RetryPolicy(
        initial_interval=timedelta(seconds=1),
        backoff_coefficient=2.0,
        maximum_interval=timedelta(seconds=30),
        maximum_attempts=0,
    )
    # Set values are kept
    policy = RetryPolicy(
        initial_interval=timedelta(seconds=5), backoff_coefficient=1.5
    ).with_defaults()
    assert policy.initial_interval == timedelta(seconds=5)
    assert policy.backoff_coefficient == 1.5
    # Defaults can make a policy invalid
    with pytest.raises(
        InvalidArgumentError, match="Maximum interval cannot be less than initial"
    ):
        RetryPolicy(maximum_interval=timedelta(milliseconds=100)).with_defaults()


def test_retry_policy_validate_build_with_defaults_none():
    assert RetryPolicy.validate_build_with_defaults(None) == RetryPolicy().with_defaults()


def test_retry_policy_error_types_are_tuple():
    error_types = ["ValueError"]
    policy = RetryPolicy(non_retryable_error_types=error_types)
    error_types.append("KeyError")
    assert policy.non_retryable_error_types == ("ValueError",)
    assert hash(policy) == hash(RetryPolicy(non_retryable_error_types=("ValueError",)))


def test_retry_policy_merge():
    method_retry = MethodRetry(
        initial_interval_seconds=2,
        maximum_interval_seconds=20,
        backoff_coefficient=1.5,
        maximum_attempts=5,
        do_not_retry=["KeyError"],
    )
    explicit = RetryPolicy(maximum_attempts=2)
    merged = RetryPolicy.merge(method_retry, explicit)
    assert merged == RetryPolicy(
        initial_interval=timedelta(seconds=2),
        backoff_coefficient=1.5,
        maximum_interval=timedelta(seconds=20),
        maximum_attempts=2,
        non_retryable_error_types=("KeyError",),
    )
    # Inputs untouched
    assert explicit == RetryPolicy(maximum_attempts=2)
    # Explicit empty error types win over the descriptor
    merged = RetryPolicy.merge(method_retry, RetryPolicy(non_retryable_error_types=[]))
    assert merged.non_retryable_error_types == ()


def test_retry_policy_merge_unset_descriptor():
    explicit = RetryPolicy(maximum_attempts=2)
    assert RetryPolicy.merge(MethodRetry(), explicit) == explicit
    assert RetryPolicy.merge(MethodRetry(), None) == RetryPolicy()


def test_method_retry_rejects_negative():
    with pytest.raises(InvalidArgumentError, match="maximum_attempts cannot be negative"):
        MethodRetry(maximum_attempts=-1)
    with pytest.raises(InvalidArgumentError, match="initial_interval_seconds"):
        MethodRetry(initial_interval_seconds=-0.5)


def test_method_retry_unset_values():
    method_retry = MethodRetry()
    assert method_retry.initial_interval is None
    assert method_retry.maximum_interval is None
    assert method_retry.effective_backoff_coefficient is None
    assert method_retry.effective_maximum_attempts is None
    assert method_retry.effective_do_not_retry is None
    assert MethodRetry(initial_interval_seconds=0.25).initial_interval == timedelta(
        milliseconds=250
    )


def test_error_types_reject_single_string():
    with pytest.raises(TypeError, match="non_retryable_error_types"):
        RetryPolicy(non_retryable_error_types="ValueError")
    with pytest.raises(TypeError, match="do_not_retry"):
        MethodRetry(do_not_retry="KeyError")
