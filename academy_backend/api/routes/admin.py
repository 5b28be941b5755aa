"""Admin route handlers: academy and academy-account provisioning."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from academy_backend.database.db import get_db_session
from academy_backend.database.models import UserRole
from academy_backend.services import academy_service, auth_service, user_service
from academy_backend.api.auth_dependencies import require_admin
from academy_backend.models.schemas import CreateAcademyAccountRequest, CreateAcademyRequest
from academy_backend.utils.errors import LifecycleError, NotFoundError, UnexpectedError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/admin/academies", status_code=201)
async def create_academy(
    payload: CreateAcademyRequest,
    user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Create an academy."""
    geo = payload.location_geo
    try:
        return await academy_service.create_academy(
            session,
            name=payload.name.strip(),
            name_ar=payload.name_ar,
            phone=payload.phone,
            logo=payload.logo,
            location_description=payload.location_description,
            latitude=geo.lat if geo else None,
            longitude=geo.lng if geo else None,
            verified=payload.verified,
        )
    except Exception as e:
        logger.error(f"Error creating academy: {e}", exc_info=True)
        raise UnexpectedError("Error creating academy")


@router.post("/api/admin/academy-accounts", status_code=201)
async def create_academy_account(
    payload: CreateAcademyAccountRequest,
    user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Create a login with the academy role, linked to an existing academy."""
    academy = await academy_service.get_academy(session, payload.academy_id)
    if academy is None:
        raise NotFoundError("Academy not found")

    try:
        account = await user_service.create_user(
            session,
            name=payload.name or academy.name,
            email=payload.email,
            password_hash=auth_service.hash_password(payload.password),
            role=UserRole.ACADEMY.value,
            phone=payload.phone or academy.phone,
            academy_id=academy.id,
        )
    except LifecycleError:
        raise
    except Exception as e:
        logger.error(f"Error creating academy account: {e}", exc_info=True)
        raise UnexpectedError("Error creating academy account")

    logger.info(f"Admin {user['id']} created academy account {account['id']} for academy {academy.id}")
    return account
