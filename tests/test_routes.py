try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import datetime

import httpx
import pytest

from gateway.clients.token_endpoint import TokenEndpointClient
from gateway.core.config import AdminSettings
from gateway.main import app
from gateway.models.providers import ProviderConfig
from gateway.models.tokens import EXPIRED_REFRESH_TOKEN
from gateway.services import (
    AdminAuthenticator,
    CredentialStore,
    JobStore,
    OrderJobProcessor,
    OrderPreparationService,
    ProviderRegistry,
    RotationEngine,
    UserRefreshTokenIssuer,
)

SECRET = _bootstrap.TEST_TWO_FACTOR_SECRET

PRODUCTS = [
    {
        "name": "accounts/a/products/prod-365",
        "definition": {
            "skus": [{"id": "0001", "plans": [{"id": "plan-annual", "mpnId": "X:P1Y:Y"}]}]
        },
    }
]

ORDERS = [
    {
        "name": "accounts/a/customers/c-1/orders/o-1",
        "orderItems": [
            {"name": "NCE 365", "productName": "M365", "skuId": "0001", "quantity": 1}
        ],
    },
    {
        "name": "accounts/a/customers/c-2/orders/o-2",
        "orderItems": [{"name": "NCE Unknown", "productName": "M365", "skuId": "9999"}],
    },
    {
        "name": "accounts/a/customers/c-3/orders/o-3",
        "orderItems": [{"name": "Legacy", "productName": "M365", "skuId": "0001"}],
    },
]


class FakeCommerceClient:
    def __init__(self) -> None:
        self.updates: list[tuple[str, str, list]] = []

    async def fetch_orders(self, account_id: str, params: str = "") -> dict:
        return {"orders": [dict(order) for order in ORDERS]}

    async def fetch_products(self, account_id: str, product_names) -> list:
        return list(PRODUCTS)

    async def update_order(self, account_id, customer_id, order_items):
        self.updates.append((account_id, customer_id, order_items))
        return {"status": "accepted"}


class TokenHandler:
    def __init__(self) -> None:
        self.count = 0
        self.fail = False
        self.omit_access_token = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if self.fail:
            return httpx.Response(
                400, json={"error": "invalid_grant", "error_description": "Token revoked"}
            )
        self.count += 1
        if self.omit_access_token:
            return httpx.Response(200, json={"token_type": "bearer"})
        return httpx.Response(
            200,
            json={
                "access_token": f"access-{self.count}",
                "refresh_token": f"refresh-{self.count}",
                "expires_in": 3600,
            },
        )


pytestmark = pytest.mark.anyio("asyncio")


@pytest.fixture()
def overrides():
    from gateway import dependencies

    registry = ProviderRegistry(
        [
            ProviderConfig(
                name="tdsynnex",
                token_url="https://tokens.example/oauth/token",
                initial_refresh_token="initial-refresh",
                rotation_interval_seconds=300,
            )
        ]
    )
    store = CredentialStore.from_providers(registry)
    handler = TokenHandler()
    rotation = RotationEngine(
        registry, store, TokenEndpointClient(transport=httpx.MockTransport(handler))
    )
    commerce = FakeCommerceClient()
    processor = OrderJobProcessor(commerce, JobStore(), concurrency=2)
    authenticator = AdminAuthenticator(
        AdminSettings(user="admin", password="pw", two_factor_secret=SECRET)
    )

    app.dependency_overrides.clear()
    app.dependency_overrides.update(
        {
            dependencies.get_provider_registry: lambda: registry,
            dependencies.get_credential_store: lambda: store,
            dependencies.get_rotation_engine: lambda: rotation,
            dependencies.get_user_token_issuer: lambda: UserRefreshTokenIssuer(store),
            dependencies.get_admin_authenticator: lambda: authenticator,
            dependencies.get_order_processor: lambda: processor,
            dependencies.get_order_preparation_service: lambda: OrderPreparationService(
                commerce, plan_suffix="P1Y:Y"
            ),
        }
    )

    yield {"store": store, "handler": handler, "processor": processor, "commerce": commerce}

    app.dependency_overrides.clear()


@pytest.fixture()
async def client(overrides):
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
    ) as test_client:
        yield test_client


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def _initial_token(client, basic_auth, totp) -> str:
    response = await client.post(
        "/api/token/tdsynnex/initial",
        headers=basic_auth(),
        json={"twoFactorCode": totp.now()},
    )
    assert response.status_code == 200, response.text
    return response.json()["user_refresh_token"]


def _filter_body() -> dict:
    return {
        "accountid": "a",
        "params": "",
        "filterField": "name",
        "filterValue": "NCE",
        "filterFunction": "startsWith",
    }


async def test_healthcheck(client):
    response = await client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


async def test_initial_token_issued_to_admin(client, basic_auth, totp):
    response = await client.post(
        "/api/token/tdsynnex/initial",
        headers=basic_auth(),
        json={"twoFactorCode": totp.now()},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["user_refresh_token"]
    assert datetime.fromisoformat(body["user_refresh_token_expires_at"]).tzinfo is not None
    assert body["message"]


async def test_initial_token_auth_failures(client, basic_auth, totp):
    code = {"twoFactorCode": totp.now()}

    missing = await client.post("/api/token/tdsynnex/initial", json=code)
    assert missing.status_code == 401
    assert missing.json()["code"] == "UNAUTHORIZED"

    wrong = await client.post(
        "/api/token/tdsynnex/initial", headers=basic_auth(password="nope"), json=code
    )
    assert wrong.status_code == 403
    assert wrong.json()["code"] == "INVALID_CREDENTIALS"

    no_code = await client.post("/api/token/tdsynnex/initial", headers=basic_auth())
    assert no_code.status_code == 400
    assert no_code.json()["code"] == "TWO_FACTOR_CODE_MISSING"


async def test_unknown_provider_lists_valid_tokens(client, basic_auth, totp):
    response = await client.post(
        "/api/token/unknown/initial",
        headers=basic_auth(),
        json={"twoFactorCode": totp.now()},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "INVALID_TOKEN_NAME"
    assert body["validTokens"] == ["tdsynnex"]
    assert {"error", "code", "timestamp"} <= set(body)


async def test_unknown_provider_requires_admin_before_listing_tokens(client, totp):
    response = await client.post(
        "/api/token/unknown/initial", json={"twoFactorCode": totp.now()}
    )

    assert response.status_code == 401
    assert "validTokens" not in response.json()

    rotation = await client.get("/api/token/unknown")
    assert rotation.status_code == 401


async def test_rotation_returns_access_token_and_new_user_token(
    client, overrides, basic_auth, totp
):
    user_token = await _initial_token(client, basic_auth, totp)

    response = await client.get("/api/token/tdsynnex", headers=_bearer(user_token))

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["access_token"] == "access-1"
    assert body["expires_in"] == 300
    assert datetime.fromisoformat(body["next_rotation"]).utcoffset() is not None
    assert body["user_refresh_token"] != user_token
    assert overrides["store"].record("tdsynnex").refresh_token == "refresh-1"

    replay = await client.get("/api/token/tdsynnex", headers=_bearer(user_token))
    assert replay.status_code == 401

    again = await client.get(
        "/api/token/tdsynnex", headers=_bearer(body["user_refresh_token"])
    )
    assert again.status_code == 200
    assert again.json()["access_token"] == "access-2"


async def test_rotation_requires_user_token(client):
    missing = await client.get("/api/token/tdsynnex")
    assert missing.status_code == 401

    not_issued = await client.get("/api/token/tdsynnex", headers=_bearer("guess"))
    assert not_issued.status_code == 401
    assert not_issued.json()["code"] == "INVALID_USER_REFRESH_TOKEN"


async def test_rotation_failure_maps_to_bad_gateway(client, overrides, basic_auth, totp):
    user_token = await _initial_token(client, basic_auth, totp)
    overrides["handler"].fail = True

    response = await client.get("/api/token/tdsynnex", headers=_bearer(user_token))

    assert response.status_code == 502
    body = response.json()
    assert body["code"] == "TOKEN_ROTATION_FAILED"
    assert body["upstreamCode"] == "invalid_grant"
    assert body["solution"]


async def test_expired_initial_token_maps_to_unauthorized(
    client, overrides, basic_auth, totp
):
    user_token = await _initial_token(client, basic_auth, totp)
    overrides["store"].update("tdsynnex", refresh_token=EXPIRED_REFRESH_TOKEN)

    response = await client.get("/api/token/tdsynnex", headers=_bearer(user_token))

    assert response.status_code == 401
    body = response.json()
    assert body["code"] == "INITIAL_TOKEN_EXPIRED"
    assert body["solution"] == "Renew initial token in environment variables"
    assert overrides["handler"].count == 0


async def test_token_response_without_access_token_is_server_error(
    client, overrides, basic_auth, totp
):
    user_token = await _initial_token(client, basic_auth, totp)
    overrides["handler"].omit_access_token = True

    response = await client.get("/api/token/tdsynnex", headers=_bearer(user_token))

    assert response.status_code == 500
    assert response.json()["code"] == "INVALID_TOKEN_RESPONSE"


async def test_order_routes_require_current_access_token(client, overrides):
    missing = await client.post("/api/getFilteredOrders", json=_filter_body())
    assert missing.status_code == 401

    # No access token has been rotated in yet, so nothing can match.
    empty = await client.post(
        "/api/getFilteredOrders", json=_filter_body(), headers=_bearer("")
    )
    assert empty.status_code == 401

    overrides["store"].update("tdsynnex", access_token="access-1")
    wrong = await client.post(
        "/api/getFilteredOrders", json=_filter_body(), headers=_bearer("access-0")
    )
    assert wrong.status_code == 401

    jobs = await client.get("/api/jobs/anything", headers=_bearer("access-0"))
    assert jobs.status_code == 401


async def test_get_filtered_orders(client, overrides):
    overrides["store"].update("tdsynnex", access_token="access-1")

    response = await client.post(
        "/api/getFilteredOrders", json=_filter_body(), headers=_bearer("access-1")
    )

    assert response.status_code == 200
    names = [order["name"] for order in response.json()["orders"]]
    assert names == [
        "accounts/a/customers/c-1/orders/o-1",
        "accounts/a/customers/c-2/orders/o-2",
    ]


async def test_invalid_filter_function(client, overrides):
    overrides["store"].update("tdsynnex", access_token="access-1")
    body = dict(_filter_body(), filterFunction="regex")

    response = await client.post(
        "/api/getFilteredOrders", json=body, headers=_bearer("access-1")
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_FILTER"


async def test_update_filtered_orders_creates_job(client, overrides):
    overrides["store"].update("tdsynnex", access_token="access-1")
    headers = _bearer("access-1")

    response = await client.post(
        "/api/updateFilteredOrders", json=_filter_body(), headers=headers
    )

    assert response.status_code == 200, response.text
    accepted = response.json()
    assert accepted["accepted"] == 1
    assert accepted["rejected"] == 1
    assert accepted["monitor"] == f"/api/jobs/{accepted['jobId']}"

    await overrides["processor"].wait_for(accepted["jobId"])
    status = await client.get(accepted["monitor"], headers=headers)

    assert status.status_code == 200
    body = status.json()
    assert body["status"] == "completed"
    assert body["stats"] == {"total": 1, "succeeded": 1, "failed": 0}
    assert body["invalid"][0]["orderId"] == "accounts/a/customers/c-2/orders/o-2"
    assert body["invalid"][0]["orderItems"][0]["error"] == "SKU_NOT_FOUND"
    assert body["results"] == [
        {"orderId": "accounts/a/customers/c-1/orders/o-1", "result": {"status": "accepted"}}
    ]
    assert overrides["commerce"].updates[0][:2] == ("a", "c-1")


async def test_unknown_job_is_not_found(client, overrides):
    overrides["store"].update("tdsynnex", access_token="access-1")

    response = await client.get("/api/jobs/missing", headers=_bearer("access-1"))

    assert response.status_code == 404
    assert response.json()["code"] == "JOB_NOT_FOUND"
