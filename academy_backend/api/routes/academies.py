"""Academy listing and roster route handlers."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from academy_backend.database.db import get_db_session
from academy_backend.services import academy_service
from academy_backend.services.player_request_service import can_manage_academy_requests
from academy_backend.api.auth_dependencies import require_academy_or_admin
from academy_backend.utils.errors import ForbiddenError, NotFoundError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/academies")
async def list_academies(session: AsyncSession = Depends(get_db_session)):
    """All academies with roster sizes."""
    return await academy_service.list_academies(session)


@router.get("/api/academies/{academy_id}")
async def get_academy(academy_id: int, session: AsyncSession = Depends(get_db_session)):
    """A single academy."""
    academy = await academy_service.get_academy(session, academy_id)
    if academy is None:
        raise NotFoundError("Academy not found")
    roster = await academy_service.get_roster(session, academy_id)
    return {**academy_service.academy_to_dict(academy), "player_count": len(roster)}


@router.get("/api/academies/{academy_id}/players")
async def get_academy_players(
    academy_id: int,
    user: dict = Depends(require_academy_or_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Roster of an academy (its own account, or admin)."""
    if not can_manage_academy_requests(user, academy_id):
        raise ForbiddenError("Forbidden")
    if await academy_service.get_academy(session, academy_id) is None:
        raise NotFoundError("Academy not found")
    return await academy_service.get_roster(session, academy_id)
