"""
Sanprinon Lite - FastAPI Dependencies

Shared dependencies for settings, shared-secret checks and app-scoped
collaborators.

This module provides dependency injection for:
1. Settings
2. The administrative credential that guards ledger voids
3. The cron credential that guards the scheduler trigger
4. The chained job trigger created in the app lifespan
"""

import hmac
import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.config import Settings, get_settings
from app.services.job_trigger import JobTrigger

logger = logging.getLogger(__name__)


# HTTP Bearer token security
security = HTTPBearer(auto_error=False)


def get_app_settings() -> Settings:
    return get_settings()


def _presented_secret(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials],
    header_name: str,
) -> Optional[str]:
    """
    Secret can be provided via:
    1. Authorization: Bearer <secret> header
    2. the dedicated header (X-API-Key / X-Cron-Secret)
    """
    if credentials:
        return credentials.credentials
    return request.headers.get(header_name)


def _check_secret(
    presented: Optional[str],
    expected: str,
    settings: Settings,
    label: str,
) -> None:
    if not expected:
        if settings.is_production:
            logger.error(f"{label} secret is not configured; refusing request")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"{label} access is not configured",
            )
        logger.warning(f"{label} secret not configured; allowing request outside production")
        return

    if not presented or not hmac.compare_digest(presented.encode(), expected.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def verify_admin_secret(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_app_settings),
) -> None:
    """
    Require the administrative credential (ADMIN_SECRET).

    Raises:
        HTTPException: If the credential is missing or wrong
    """
    _check_secret(
        _presented_secret(request, credentials, "X-API-Key"),
        settings.admin_secret,
        settings,
        "Admin",
    )


async def verify_cron_secret(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_app_settings),
) -> None:
    """
    Require the scheduler credential (CRON_SECRET).

    Raises:
        HTTPException: If the credential is missing or wrong
    """
    _check_secret(
        _presented_secret(request, credentials, "X-Cron-Secret"),
        settings.cron_secret,
        settings,
        "Cron",
    )


def get_job_trigger(request: Request) -> Optional[JobTrigger]:
    return getattr(request.app.state, "job_trigger", None)
