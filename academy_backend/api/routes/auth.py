"""Signup, login and session route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from academy_backend.api.routes import limiter
from academy_backend.database.db import get_db_session
from academy_backend.database.models import UserRole
from academy_backend.services import academy_service, auth_service, user_service
from academy_backend.api.auth_dependencies import get_current_user_optional
from academy_backend.models.schemas import AuthResponse, LoginRequest, SignupRequest
from academy_backend.utils.errors import LifecycleError, UnexpectedError, ValidationError

logger = logging.getLogger(__name__)
router = APIRouter()

INVALID_CREDENTIALS_RESPONSE = HTTPException(status_code=401, detail="Invalid credentials")


def _issue_token(user: dict) -> str:
    return auth_service.create_access_token(
        {"user_id": user["id"], "role": user["role"], "academy_id": user.get("academy_id")}
    )


def _public_user(user: dict) -> dict:
    return {k: v for k, v in user.items() if k != "password_hash"}


@router.post("/api/auth/signup", response_model=AuthResponse)
@limiter.limit("10/minute")
async def signup(
    request: Request,
    payload: SignupRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """
    Register a user account, or an academy account linked to an existing academy.

    Academy accounts must name the academy they manage via academyId.
    """
    try:
        academy_id = None
        if payload.role == UserRole.ACADEMY.value:
            if not payload.academy_id:
                raise ValidationError("Academy accounts must be linked to an academy")
            academy = await academy_service.get_academy(session, payload.academy_id)
            if academy is None:
                raise ValidationError("Academy not found")
            academy_id = academy.id

        user = await user_service.create_user(
            session,
            name=payload.name.strip(),
            email=payload.email,
            password_hash=auth_service.hash_password(payload.password),
            role=payload.role,
            phone=payload.phone,
            academy_id=academy_id,
        )
        return {"user": _public_user(user), "token": _issue_token(user)}
    except LifecycleError:
        raise
    except Exception as e:
        logger.error(f"Signup error: {e}", exc_info=True)
        raise UnexpectedError("Registration failed")


@router.post("/api/auth/login", response_model=AuthResponse)
@limiter.limit("20/minute")
async def login(
    request: Request,
    payload: LoginRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """Exchange email and password for an access token."""
    user = await user_service.get_user_by_email(session, payload.email)
    if not user or not auth_service.verify_password(payload.password, user["password_hash"]):
        raise INVALID_CREDENTIALS_RESPONSE
    return {"user": _public_user(user), "token": _issue_token(user)}


@router.get("/api/auth/session")
async def get_session(user: Optional[dict] = Depends(get_current_user_optional)):
    """Current user, or null when not signed in."""
    return {"user": user}
