"""Pytest configuration shared across the suite."""

import base64

import pyotp
import pytest

try:
    from . import _bootstrap
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def totp() -> pyotp.TOTP:
    """Authenticator app equivalent for the test admin secret."""
    return pyotp.TOTP(_bootstrap.TEST_TWO_FACTOR_SECRET)


@pytest.fixture
def basic_auth():
    def build(user: str = "admin", password: str = "pw") -> dict:
        token = base64.b64encode(f"{user}:{password}".encode()).decode()
        return {"Authorization": f"Basic {token}"}

    return build
