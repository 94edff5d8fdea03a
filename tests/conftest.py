import os
import sys

import pytest

# If there is an integration test environment variable set, we must remove the
# first path from the sys.path so we can import the wheel instead
if os.getenv("LOCALACTIVITY_INTEGRATION_TEST"):
    assert (
        sys.path[0] == os.getcwd()
    ), "Expected first sys.path to be the current working dir"
    sys.path.pop(0)
    # Import localactivity and confirm it is prefixed with virtual env
    import localactivity

    assert localactivity.__file__.startswith(
        sys.prefix
    ), f"Expected {localactivity.__file__} to be in {sys.prefix}"


@pytest.fixture(autouse=True)
def _clear_local_activity_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # Loading falls back to the process environment, keep the host's settings
    # from leaking into tests
    for key in list(os.environ):
        if key.startswith("TEMPORAL_LOCAL_ACTIVITY_"):
            monkeypatch.delenv(key)
