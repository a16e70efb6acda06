"""
FastAPI routes for the token gateway.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from http import HTTPStatus
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, Header

from gateway.api.security import AccessTokenDependency, bearer_token
from gateway.core.errors import JobNotFound, Unauthorized
from gateway.dependencies import (
    get_admin_authenticator,
    get_api_prefix,
    get_credential_store,
    get_display_timezone,
    get_order_preparation_service,
    get_order_processor,
    get_provider_registry,
    get_rotation_engine,
    get_user_token_issuer,
)
from gateway.schemas import (
    InitialTokenRequest,
    JobAccepted,
    OrderQuery,
    TokenRotationResponse,
    UserRefreshTokenResponse,
)
from gateway.services.user_refresh_tokens import UserTokenVerdict

router = APIRouter()
logger = logging.getLogger(__name__)


def _isoformat(instant: Optional[datetime]) -> str:
    return instant.isoformat() if instant else ""


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.post(
    "/token/{provider}/initial",
    status_code=HTTPStatus.OK,
    response_model=UserRefreshTokenResponse,
)
async def issue_user_refresh_token(
    provider: str,
    registry: Annotated[Any, Depends(get_provider_registry)],
    authenticator: Annotated[Any, Depends(get_admin_authenticator)],
    issuer: Annotated[Any, Depends(get_user_token_issuer)],
    credential_store: Annotated[Any, Depends(get_credential_store)],
    payload: Optional[InitialTokenRequest] = None,
    authorization: Annotated[Optional[str], Header()] = None,
) -> UserRefreshTokenResponse:
    """Hand an administrator the token that gates ``GET /token/{provider}``."""
    two_factor_code = payload.two_factor_code if payload else None
    authenticator.verify(authorization, two_factor_code)
    config = registry.get(provider)

    token = issuer.issue(config.name)
    record = credential_store.record(config.name)
    logger.info("Issued user refresh token for %s", config.name)
    return UserRefreshTokenResponse(
        user_refresh_token=token,
        user_refresh_token_expires_at=_isoformat(record.user_refresh_token_expires_at),
    )


@router.get(
    "/token/{provider}",
    status_code=HTTPStatus.OK,
    response_model=TokenRotationResponse,
)
async def rotate_provider_token(
    provider: str,
    registry: Annotated[Any, Depends(get_provider_registry)],
    issuer: Annotated[Any, Depends(get_user_token_issuer)],
    rotation_engine: Annotated[Any, Depends(get_rotation_engine)],
    credential_store: Annotated[Any, Depends(get_credential_store)],
    display_timezone: Annotated[Any, Depends(get_display_timezone)],
    authorization: Annotated[Optional[str], Header()] = None,
) -> TokenRotationResponse:
    """Rotate the provider's access token on demand and return the new one."""
    presented = bearer_token(authorization)
    if presented is None:
        raise Unauthorized("Bearer token missing")
    config = registry.get(provider)

    verdict = issuer.verify(config.name, presented)
    if verdict is UserTokenVerdict.EXPIRED:
        raise Unauthorized("User refresh token expired", code="USER_REFRESH_TOKEN_EXPIRED")
    if not verdict.is_valid:
        raise Unauthorized("Invalid user refresh token", code="INVALID_USER_REFRESH_TOKEN")

    await rotation_engine.rotate(config.name)

    user_token = issuer.issue(config.name)
    record = credential_store.record(config.name)
    interval = timedelta(seconds=config.rotation_interval_seconds)
    rotated_at = record.last_rotated_at or datetime.now(timezone.utc)
    next_rotation = (rotated_at + interval).astimezone(display_timezone)

    return TokenRotationResponse(
        access_token=record.access_token,
        user_refresh_token=user_token,
        user_refresh_token_expires_at=_isoformat(record.user_refresh_token_expires_at),
        expires_in=config.rotation_interval_seconds,
        next_rotation=next_rotation.isoformat(),
    )


@router.post(
    "/getFilteredOrders",
    status_code=HTTPStatus.OK,
    dependencies=[AccessTokenDependency],
)
async def get_filtered_orders(
    query: OrderQuery,
    preparation: Annotated[Any, Depends(get_order_preparation_service)],
) -> dict:
    """Return the account's orders whose items all match the filter."""
    orders = await preparation.fetch_filtered_orders(query)
    return {"orders": orders}


@router.post(
    "/updateFilteredOrders",
    status_code=HTTPStatus.OK,
    dependencies=[AccessTokenDependency],
)
async def update_filtered_orders(
    query: OrderQuery,
    preparation: Annotated[Any, Depends(get_order_preparation_service)],
    processor: Annotated[Any, Depends(get_order_processor)],
    api_prefix: Annotated[str, Depends(get_api_prefix)],
) -> dict:
    """Resolve matching orders to plan updates and dispatch them as a job."""
    mutations = await preparation.prepare_mutations(query)
    job_id = await processor.create_job(mutations)
    job = processor.get_job(job_id)
    accepted = JobAccepted(
        job_id=job_id,
        accepted=job.stats.total if job else 0,
        rejected=len(job.invalid) if job else 0,
        monitor=f"{api_prefix}/jobs/{job_id}",
    )
    return accepted.model_dump(by_alias=True)


@router.get(
    "/jobs/{job_id}",
    status_code=HTTPStatus.OK,
    dependencies=[AccessTokenDependency],
)
async def get_job_status(
    job_id: str,
    processor: Annotated[Any, Depends(get_order_processor)],
) -> dict:
    """Report a job's progress; results and errors appear once it completes."""
    job = processor.get_job(job_id)
    if job is None:
        raise JobNotFound("Job not found", jobId=job_id)
    return job.to_status_payload()


__all__ = ["router"]
