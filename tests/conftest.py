"""Common pytest configuration."""

from collections.abc import Callable, Iterator

import pytest

from backlot_core.settings import get_settings

FIXED_TIMESTAMP = "2026-02-03T12:00:00Z"


@pytest.fixture
def anyio_backend() -> str:
    """Force asyncio backend for anyio-powered tests.

    Returns:
        str: The backend name.
    """
    return "asyncio"


@pytest.fixture
def fixed_clock() -> Callable[[], str]:
    """Return a clock that always reports the same timestamp.

    Returns:
        Callable[[], str]: Timestamp provider.
    """
    return lambda: FIXED_TIMESTAMP


@pytest.fixture(autouse=True)
def _reset_settings_cache(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Isolate tests from ambient BACKLOT_* variables and cached settings.

    Yields:
        None: Control returns to the test.
    """
    for name in ("BACKLOT_CONFIG_PATH", "BACKLOT_MAX_CONCURRENCY", "BACKLOT_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
