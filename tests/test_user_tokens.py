from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import base64
from datetime import datetime, timedelta, timezone

import pytest

from gateway.core.config import AdminSettings
from gateway.core.errors import InvalidCredentials, TwoFactorCodeMissing, Unauthorized
from gateway.services.admin_auth import AdminAuthenticator, parse_basic_credentials
from gateway.services.credential_store import CredentialStore
from gateway.services.user_refresh_tokens import UserRefreshTokenIssuer, UserTokenVerdict

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
SECRET = _bootstrap.TEST_TWO_FACTOR_SECRET


class FakeClock:
    def __init__(self) -> None:
        self.now = NOW

    def __call__(self) -> datetime:
        return self.now


def _issuer(clock: FakeClock) -> UserRefreshTokenIssuer:
    store = CredentialStore(clock=clock)
    return UserRefreshTokenIssuer(store, validity=timedelta(hours=1), clock=clock)


def test_issue_then_verify_is_valid_until_validity_elapses() -> None:
    clock = FakeClock()
    issuer = _issuer(clock)

    token = issuer.issue("tdsynnex")

    assert issuer.verify("tdsynnex", token) is UserTokenVerdict.VALID
    clock.now = NOW + timedelta(hours=1)
    assert issuer.verify("tdsynnex", token) is UserTokenVerdict.VALID
    clock.now = NOW + timedelta(hours=1, seconds=1)
    assert issuer.verify("tdsynnex", token) is UserTokenVerdict.EXPIRED


def test_verify_reports_mismatch_and_not_issued() -> None:
    issuer = _issuer(FakeClock())

    assert issuer.verify("tdsynnex", "anything") is UserTokenVerdict.NOT_ISSUED

    token = issuer.issue("tdsynnex")
    assert issuer.verify("tdsynnex", token + "x") is UserTokenVerdict.MISMATCH
    assert issuer.verify("tdsynnex", None) is UserTokenVerdict.MISMATCH
    assert not UserTokenVerdict.MISMATCH.is_valid


def test_issue_replaces_previous_token() -> None:
    issuer = _issuer(FakeClock())

    first = issuer.issue("tdsynnex")
    second = issuer.issue("tdsynnex")

    assert first != second
    assert issuer.verify("tdsynnex", first) is UserTokenVerdict.MISMATCH
    assert issuer.verify("tdsynnex", second) is UserTokenVerdict.VALID


def _basic(user: str, password: str) -> str:
    return "Basic " + base64.b64encode(f"{user}:{password}".encode()).decode()


@pytest.fixture()
def authenticator() -> AdminAuthenticator:
    settings = AdminSettings(user="admin", password="pw", two_factor_secret=SECRET)
    return AdminAuthenticator(settings)


def test_parse_basic_credentials() -> None:
    assert parse_basic_credentials(_basic("admin", "p:w")) == ("admin", "p:w")
    with pytest.raises(Unauthorized):
        parse_basic_credentials(None)
    with pytest.raises(Unauthorized):
        parse_basic_credentials("Basic not-base64!")


def test_admin_authenticator_accepts_current_code(authenticator, totp) -> None:
    authenticator.verify(_basic("admin", "pw"), totp.now())


def test_admin_authenticator_rejects_bad_credentials(authenticator, totp) -> None:
    with pytest.raises(InvalidCredentials):
        authenticator.verify(_basic("admin", "wrong"), totp.now())


def test_admin_authenticator_requires_code(authenticator) -> None:
    with pytest.raises(TwoFactorCodeMissing):
        authenticator.verify(_basic("admin", "pw"), None)


def test_admin_authenticator_rejects_wrong_code(authenticator, totp) -> None:
    current = totp.now()
    wrong = f"{(int(current) + 500000) % 1000000:06d}"
    with pytest.raises(Unauthorized) as excinfo:
        authenticator.verify(_basic("admin", "pw"), wrong)
    assert excinfo.value.code == "INVALID_TWO_FACTOR_CODE"
