import pytest


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _clean_plugserve_env(monkeypatch: pytest.MonkeyPatch):
    for key in (
        "PLUGSERVE_SHUTDOWN_MODE",
        "PLUGSERVE_SHUTDOWN_GRACE",
        "PLUGSERVE_MAX_MESSAGE_BYTES",
        "PLUGSERVE_KEEPALIVE_TIME_MS",
    ):
        monkeypatch.delenv(key, raising=False)
