"""Match lifecycle route handlers."""

import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from academy_backend.database.db import get_db_session
from academy_backend.services import match_service
from academy_backend.api.auth_dependencies import (
    get_current_user,
    require_academy,
    require_admin,
)
from academy_backend.models.schemas import (
    CreateMatchRequest,
    DeleteResponse,
    MatchResponse,
    UpdateMatchStatusRequest,
)
from academy_backend.utils.errors import LifecycleError, UnexpectedError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/matches", response_model=List[MatchResponse])
async def list_matches(session: AsyncSession = Depends(get_db_session)):
    """Public feed of all matches, chronological."""
    try:
        return await match_service.list_matches(session)
    except Exception as e:
        logger.error(f"Error listing matches: {e}", exc_info=True)
        raise UnexpectedError("Error fetching matches")


@router.post("/api/matches", response_model=MatchResponse, status_code=201)
async def create_match(
    payload: CreateMatchRequest,
    user: dict = Depends(require_academy),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Create a match request for the caller's academy.

    Request body:
        {
            "ageGroup": "2011, 2010",
            "dateTime": "2026-11-01T16:00:00Z",
            "homeAway": "home",
            "locationDescription": "Main pitch",   // Optional
            "locationGeo": {"lat": 31.9, "lng": 35.9},  // Optional
            "phone": "+962...",  // Optional
            "duration": "90 minutes",  // Optional
            "description": "Friendly match"  // Optional
        }
    """
    geo = payload.location_geo
    try:
        return await match_service.create_match(
            session,
            user,
            age_group=payload.age_group,
            date_time=payload.date_time,
            home_away=payload.home_away,
            location_description=payload.location_description,
            latitude=geo.lat if geo else None,
            longitude=geo.lng if geo else None,
            phone=payload.phone,
            duration=payload.duration,
            description=payload.description,
        )
    except LifecycleError:
        raise
    except Exception as e:
        logger.error(f"Error creating match: {e}", exc_info=True)
        raise UnexpectedError("Failed to create match")


@router.get("/api/matches/my", response_model=List[MatchResponse])
async def list_my_matches(
    user: dict = Depends(require_academy),
    session: AsyncSession = Depends(get_db_session),
):
    """Matches the caller's academy created or accepted."""
    try:
        return await match_service.list_my_matches(session, user)
    except LifecycleError:
        raise
    except Exception as e:
        logger.error(f"Error listing matches for academy {user.get('academy_id')}: {e}", exc_info=True)
        raise UnexpectedError("Error fetching matches")


@router.get("/api/matches/admin", response_model=List[MatchResponse])
async def list_admin_matches(
    user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Admin: all matches."""
    try:
        return await match_service.list_admin_matches(session)
    except Exception as e:
        logger.error(f"Error listing admin matches: {e}", exc_info=True)
        raise UnexpectedError("Error fetching matches")


@router.get("/api/matches/age-groups", response_model=List[int])
async def list_age_groups():
    """Birth years available for match age groups."""
    return match_service.list_age_groups()


@router.get("/api/matches/{match_id}", response_model=MatchResponse)
async def get_match(match_id: int, session: AsyncSession = Depends(get_db_session)):
    """Get a single match."""
    try:
        return await match_service.get_match(session, match_id)
    except LifecycleError:
        raise
    except Exception as e:
        logger.error(f"Error fetching match {match_id}: {e}", exc_info=True)
        raise UnexpectedError("Error fetching match")


@router.post("/api/matches/{match_id}/accept", response_model=MatchResponse)
async def accept_match(
    match_id: int,
    user: dict = Depends(require_academy),
    session: AsyncSession = Depends(get_db_session),
):
    """Accept an open match request as the opponent."""
    try:
        return await match_service.accept_match(session, match_id, user)
    except LifecycleError:
        raise
    except Exception as e:
        logger.error(f"Error accepting match {match_id}: {e}", exc_info=True)
        raise UnexpectedError("Error accepting match")


@router.post("/api/matches/{match_id}/finish", response_model=MatchResponse)
async def finish_match(
    match_id: int,
    user: dict = Depends(require_academy),
    session: AsyncSession = Depends(get_db_session),
):
    """Mark a confirmed match finished (creator academy only)."""
    try:
        return await match_service.finish_match(session, match_id, user)
    except LifecycleError:
        raise
    except Exception as e:
        logger.error(f"Error finishing match {match_id}: {e}", exc_info=True)
        raise UnexpectedError("Error finishing match")


@router.patch("/api/matches/{match_id}/status", response_model=MatchResponse)
async def update_match_status(
    match_id: int,
    payload: UpdateMatchStatusRequest,
    user: dict = Depends(require_academy),
    session: AsyncSession = Depends(get_db_session),
):
    """Move a match between board columns (creator or opponent academy)."""
    try:
        return await match_service.set_match_status(session, match_id, user, payload.status)
    except LifecycleError:
        raise
    except Exception as e:
        logger.error(f"Error updating match {match_id} status: {e}", exc_info=True)
        raise UnexpectedError("Error updating match status")


@router.delete("/api/matches/{match_id}", response_model=DeleteResponse)
async def delete_match(
    match_id: int,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete a match (its creator, or any admin)."""
    try:
        deleted_by = await match_service.delete_match(session, match_id, user)
        return {"success": True, "message": f"Match deleted by {deleted_by}"}
    except LifecycleError:
        raise
    except Exception as e:
        logger.error(f"Error deleting match {match_id}: {e}", exc_info=True)
        raise UnexpectedError("Error deleting match")
