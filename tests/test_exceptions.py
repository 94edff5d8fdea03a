from datetime import timedelta

import pytest

from localactivity.exceptions import InvalidArgumentError, LocalActivityError
from localactivity.options import LocalActivityOptions


def test_invalid_argument_error_hierarchy():
    err = InvalidArgumentError("bad value", argument="start_to_close_timeout")
    assert isinstance(err, LocalActivityError)
    assert isinstance(err, ValueError)
    assert err.message == "bad value"
    assert err.argument == "start_to_close_timeout"
    assert str(err) == "bad value"


def test_cause():
    try:
        try:
            raise KeyError("inner")
        except KeyError as inner:
            raise InvalidArgumentError("outer") from inner
    except InvalidArgumentError as err:
        assert isinstance(err.cause, KeyError)


def test_setter_error_message():
    with pytest.raises(InvalidArgumentError) as err:
        LocalActivityOptions.new_builder().set_local_retry_threshold(
            timedelta(seconds=-2)
        )
    assert err.value.message == "Illegal threshold: -1 day, 23:59:58"
    assert err.value.cause is None
