# backend/routes/auth.py
from __future__ import annotations

from typing import Dict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.logging import get_structlog_logger
from backend.db.base import as_utc
from backend.db.session import get_session
from backend.middleware.auth import get_current_user
from backend.routes.deps import get_audit_logger, get_auth_service, get_request_context
from backend.schemas.auth import ChangePasswordRequest, LoginRequest, LoginResponse, UpdateUsernameRequest
from backend.services.audit import AuditLogger
from backend.services.auth import AuthService, RequestContext

logger = get_structlog_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
async def login(
    payload: LoginRequest,
    session: AsyncSession = Depends(get_session),
    auth: AuthService = Depends(get_auth_service),
    context: RequestContext = Depends(get_request_context),
):
    return await auth.login(
        session,
        username=payload.username,
        email=payload.email,
        password=payload.password,
        context=context,
    )


@router.post("/logout")
async def logout(
    user: Dict = Depends(get_current_user),
    audit: AuditLogger = Depends(get_audit_logger),
    context: RequestContext = Depends(get_request_context),
):
    logger.info("auth.logout", user_id=user["id"])
    await audit.log(
        "logout",
        admin_id=int(user["id"]),
        entity_type="admin_user",
        entity_id=user["id"],
        ip_address=context.ip_address,
        user_agent=context.user_agent,
    )
    return {"success": True, "message": "Logged out successfully"}


@router.get("/session")
async def current_session(
    user: Dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    auth: AuthService = Depends(get_auth_service),
):
    admin = await auth.get_active_user(session, user["id"])
    last_login = as_utc(admin.last_login)
    return {
        "success": True,
        "user": {
            "id": admin.id,
            "username": admin.username,
            "email": admin.email,
            "role": admin.role,
            "lastLogin": last_login.isoformat() if last_login else None,
        },
    }


@router.post("/change-password")
async def change_password(
    payload: ChangePasswordRequest,
    user: Dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    auth: AuthService = Depends(get_auth_service),
    context: RequestContext = Depends(get_request_context),
):
    await auth.change_password(
        session,
        user["id"],
        payload.current_password,
        payload.new_password,
        context=context,
    )
    return {"success": True, "message": "Password changed successfully"}


@router.put("/update-username")
async def update_username(
    payload: UpdateUsernameRequest,
    user: Dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    auth: AuthService = Depends(get_auth_service),
    context: RequestContext = Depends(get_request_context),
):
    return await auth.update_username(
        session,
        user["id"],
        payload.current_password,
        payload.new_username,
        context=context,
    )
