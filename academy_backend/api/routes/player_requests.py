"""Player join-request route handlers."""

import logging
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from academy_backend.database.db import get_db_session
from academy_backend.services import player_request_service
from academy_backend.api.auth_dependencies import (
    require_academy,
    require_academy_or_admin,
    require_admin,
    require_user_role,
)
from academy_backend.models.schemas import (
    CreatePlayerRequest,
    DeleteResponse,
    PlayerRequestPage,
    PlayerRequestResponse,
    UpdatePlayerRequestStatus,
)
from academy_backend.utils.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from academy_backend.utils.errors import LifecycleError, UnexpectedError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/playerRequests/my", response_model=List[PlayerRequestResponse])
async def list_my_requests(
    user: dict = Depends(require_user_role),
    session: AsyncSession = Depends(get_db_session),
):
    """The caller's own join requests, newest first."""
    try:
        return await player_request_service.list_my_requests(session, user["id"])
    except Exception as e:
        logger.error(f"Error fetching requests for user {user['id']}: {e}", exc_info=True)
        raise UnexpectedError("Error fetching requests")


@router.get("/api/playerRequests/admin", response_model=List[PlayerRequestResponse])
async def list_all_requests(
    user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Admin: every join request."""
    try:
        return await player_request_service.list_all_requests(session)
    except Exception as e:
        logger.error(f"Error fetching all requests: {e}", exc_info=True)
        raise UnexpectedError("Error fetching requests")


@router.get("/api/playerRequests/academy/{academy_id}", response_model=PlayerRequestPage)
async def list_academy_requests(
    academy_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    user: dict = Depends(require_academy_or_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Requests received by an academy (its own account, or admin), paginated."""
    try:
        return await player_request_service.list_academy_requests(
            session, user, academy_id, page=page, limit=limit
        )
    except LifecycleError:
        raise
    except Exception as e:
        logger.error(f"Error fetching requests for academy {academy_id}: {e}", exc_info=True)
        raise UnexpectedError("Error fetching requests")


@router.patch(
    "/api/playerRequests/academy/{academy_id}/{request_id}",
    response_model=PlayerRequestResponse,
)
async def update_academy_request(
    academy_id: int,
    request_id: int,
    payload: UpdatePlayerRequestStatus,
    user: dict = Depends(require_academy_or_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Approve or reject a request sent to the academy."""
    try:
        return await player_request_service.update_request_status(
            session, request_id, user, payload.status, academy_id=academy_id
        )
    except LifecycleError:
        raise
    except Exception as e:
        logger.error(f"Error updating request {request_id}: {e}", exc_info=True)
        raise UnexpectedError("Error updating request")


@router.delete(
    "/api/playerRequests/academy/{academy_id}/{request_id}", response_model=DeleteResponse
)
async def delete_academy_request(
    academy_id: int,
    request_id: int,
    user: dict = Depends(require_academy),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete a request sent to the caller's academy."""
    try:
        await player_request_service.delete_request(
            session, request_id, user, academy_id=academy_id
        )
        return {"success": True, "message": "Player request deleted"}
    except LifecycleError:
        raise
    except Exception as e:
        logger.error(f"Error deleting request {request_id}: {e}", exc_info=True)
        raise UnexpectedError("Error deleting request")


@router.patch("/api/playerRequests/admin/{request_id}", response_model=PlayerRequestResponse)
async def update_request_as_admin(
    request_id: int,
    payload: UpdatePlayerRequestStatus,
    user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Admin: approve or reject any request."""
    try:
        return await player_request_service.update_request_status(
            session, request_id, user, payload.status
        )
    except LifecycleError:
        raise
    except Exception as e:
        logger.error(f"Error updating request {request_id}: {e}", exc_info=True)
        raise UnexpectedError("Error updating request")


@router.delete("/api/playerRequests/admin/{request_id}", response_model=DeleteResponse)
async def delete_request_as_admin(
    request_id: int,
    user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Admin: delete any request."""
    try:
        await player_request_service.delete_request(session, request_id, user)
        return {"success": True, "message": "Player request deleted"}
    except LifecycleError:
        raise
    except Exception as e:
        logger.error(f"Error deleting request {request_id}: {e}", exc_info=True)
        raise UnexpectedError("Error deleting request")


@router.post(
    "/api/playerRequests/{academy_id}", response_model=PlayerRequestResponse, status_code=201
)
async def create_request(
    academy_id: int,
    payload: CreatePlayerRequest,
    user: dict = Depends(require_user_role),
    session: AsyncSession = Depends(get_db_session),
):
    """Ask to join an academy."""
    try:
        return await player_request_service.create_request(
            session,
            user,
            academy_id,
            message=payload.message,
            age=payload.age,
            position=payload.position,
            user_name=payload.user_name,
            user_email=payload.user_email,
        )
    except LifecycleError:
        raise
    except Exception as e:
        logger.error(f"Error creating request to academy {academy_id}: {e}", exc_info=True)
        raise UnexpectedError("Error creating request")
