"""Auth routes: register, login, logout, password reset. JWT session in cookie or bearer header."""
from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from sorvx.core.config import get_settings
from sorvx.core.errors import Unauthorized
from sorvx.core.security import create_session_token, verify_session_token
from sorvx.db.session import get_db
from sorvx.models.user import User
from sorvx.schemas.auth import (
    CredentialsSchema,
    ForgotPasswordSchema,
    ResetPasswordSchema,
    UserOutSchema,
)
from sorvx.services.password_reset import PasswordResetService, get_password_reset_service
from sorvx.services.users import (
    authenticate_user,
    create_user,
    get_user_by_id,
    validate_email,
    validate_password,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])
settings = get_settings()
logger = logging.getLogger(__name__)


def _session_token(request: Request) -> str | None:
    token = request.cookies.get(settings.auth_cookie_name)
    if token:
        return token
    scheme, _, credentials = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials
    return None


async def get_current_user_optional(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User | None:
    """Return current user if the session token is valid; else None."""
    token = _session_token(request)
    if not token:
        return None

    user_id = verify_session_token(token)
    if user_id is None:
        return None

    return await get_user_by_id(db, user_id)


async def get_current_user(
    current_user: Annotated[User | None, Depends(get_current_user_optional)],
) -> User:
    if current_user is None:
        raise Unauthorized("no session")
    return current_user


def _login_response(user: User, status_code: int = 200) -> JSONResponse:
    token = create_session_token(user.id)
    response = JSONResponse(
        UserOutSchema.model_validate(user).model_dump(),
        status_code=status_code,
    )
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        max_age=settings.auth_cookie_max_age,
        httponly=True,
        samesite="lax",
        path="/",
    )
    return response


@router.post("/register")
async def register(
    body: CredentialsSchema,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Create user and log in."""
    user = await create_user(db, body.email, body.password)
    return _login_response(user, status_code=201)


@router.post("/login")
async def login(
    body: CredentialsSchema,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Authenticate and set auth cookie."""
    user = await authenticate_user(db, body.email, body.password)
    if user is None:
        logger.info("Failed login attempt")
        return JSONResponse({"error": "Invalid credentials"}, status_code=401)
    return _login_response(user)


@router.post("/logout")
async def logout():
    """Clear auth cookie."""
    response = JSONResponse({"success": True})
    # path must match the one used in set_cookie()
    response.delete_cookie(settings.auth_cookie_name, path="/")
    return response


@router.get("/me", response_model=UserOutSchema)
async def me(current_user: Annotated[User, Depends(get_current_user)]):
    return current_user


@router.post("/forgot-password")
async def forgot_password(
    body: ForgotPasswordSchema,
    service: Annotated[PasswordResetService, Depends(get_password_reset_service)],
):
    """Send a reset link if the account exists; the answer is the same either way."""
    email = validate_email(body.email)
    await service.issue(email)
    return {"success": True}


@router.post("/reset-password")
async def reset_password(
    body: ResetPasswordSchema,
    service: Annotated[PasswordResetService, Depends(get_password_reset_service)],
):
    """Consume a reset token and set the new password."""
    password = validate_password(body.password)
    await service.consume(body.token, password)
    return {"success": True}
