"""
Player join-request lifecycle service.

Requests move pending -> approved or pending -> rejected. Rejection stamps
`expire_at` once; expired rows are hidden from every listing and physically
removed by the cleanup sweeper's expiry scan. No per-request timers are armed.
"""

import math
from datetime import timedelta
from typing import List, Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from academy_backend.database.models import (
    PlayerRequest,
    PlayerRequestStatus,
    UserRole,
)
from academy_backend.services import academy_service
from academy_backend.services.lifecycle import (
    ensure_player_request_transition,
    parse_player_request_status,
    player_request_source_values,
)
from academy_backend.utils.constants import REJECTED_REQUEST_TTL_MINUTES
from academy_backend.utils.datetime_utils import utcnow, isoformat
from academy_backend.utils.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
import logging

logger = logging.getLogger(__name__)

DUPLICATE_PENDING_MESSAGE = "You already have a pending request"


def _not_expired():
    """Filter hiding requests whose expiry has passed but are not swept yet."""
    return or_(PlayerRequest.expire_at.is_(None), PlayerRequest.expire_at > utcnow())


def can_manage_academy_requests(principal: Dict, academy_id: int) -> bool:
    """Admins manage every academy; academy accounts only their own."""
    role = principal.get("role")
    if role == UserRole.ADMIN.value:
        return True
    return role == UserRole.ACADEMY.value and principal.get("academy_id") == academy_id


async def _get_request(
    session: AsyncSession, request_id: int, academy_id: Optional[int] = None
) -> PlayerRequest:
    conditions = [PlayerRequest.id == request_id, _not_expired()]
    if academy_id is not None:
        conditions.append(PlayerRequest.academy_id == academy_id)
    result = await session.execute(
        select(PlayerRequest)
        .options(selectinload(PlayerRequest.academy))
        .where(*conditions)
        .execution_options(populate_existing=True)
    )
    request = result.scalar_one_or_none()
    if request is None:
        raise NotFoundError("Request not found")
    return request


async def _has_pending_request(session: AsyncSession, user_id: int, academy_id: int) -> bool:
    result = await session.execute(
        select(PlayerRequest.id).where(
            PlayerRequest.user_id == user_id,
            PlayerRequest.academy_id == academy_id,
            PlayerRequest.status == PlayerRequestStatus.PENDING.value,
        )
    )
    return result.scalar_one_or_none() is not None


async def create_request(
    session: AsyncSession,
    principal: Dict,
    academy_id: int,
    message: Optional[str] = None,
    age: Optional[int] = None,
    position: Optional[str] = None,
    user_name: Optional[str] = None,
    user_email: Optional[str] = None,
) -> Dict:
    """
    Create a pending request for the caller to join an academy.

    Args:
        session: Database session
        principal: Authenticated caller (role user)
        academy_id: Academy to join
        message: Optional note to the academy
        age: Optional player age
        position: Optional playing position
        user_name: Overrides the account name shown to the academy
        user_email: Overrides the account email shown to the academy

    Returns:
        Player request dictionary

    Raises:
        NotFoundError: If the academy does not exist
        ConflictError: If a pending request for this (user, academy) already exists
        IntegrityError: If the user or academy is removed before the insert
    """
    user_id = principal["id"]

    if await _has_pending_request(session, user_id, academy_id):
        raise ConflictError(DUPLICATE_PENDING_MESSAGE)

    academy = await academy_service.get_academy(session, academy_id)
    if academy is None:
        raise NotFoundError("Academy not found")

    if age is not None and age < 0:
        raise ValidationError("Age must be a positive number")

    request = PlayerRequest(
        user_id=user_id,
        academy_id=academy_id,
        user_name=user_name or principal.get("name") or "Unknown User",
        user_email=user_email or principal.get("email") or "",
        academy_name=academy.name or "Unknown Academy",
        message=message or "",
        age=age,
        position=position or "",
        status=PlayerRequestStatus.PENDING.value,
    )
    session.add(request)
    try:
        await session.flush()
        request_id = request.id
        await session.commit()
    except IntegrityError:
        await session.rollback()
        # Partial unique index caught a concurrent duplicate; other violations
        # (user or academy removed meanwhile) propagate
        if await _has_pending_request(session, user_id, academy_id):
            raise ConflictError(DUPLICATE_PENDING_MESSAGE)
        raise

    logger.info(f"User {user_id} requested to join academy {academy_id} (request {request_id})")
    return request_to_dict(await _get_request(session, request_id))


async def update_request_status(
    session: AsyncSession,
    request_id: int,
    principal: Dict,
    status: str,
    academy_id: Optional[int] = None,
) -> Dict:
    """
    Approve or reject a pending request.

    Args:
        session: Database session
        request_id: Player request ID
        principal: Authenticated caller (admin, or the academy's own account)
        status: "approved" or "rejected"
        academy_id: Academy from the request path; None for admin routes

    Returns:
        Updated player request dictionary

    Raises:
        ValidationError: If status is not approved/rejected
        ForbiddenError: If the caller may not manage this academy's requests
        NotFoundError: If the request does not exist (in this academy)
        ConflictError: If the request is no longer pending
    """
    target = parse_player_request_status(status)
    if target == PlayerRequestStatus.PENDING:
        raise ValidationError("Invalid status")

    if academy_id is not None:
        if not can_manage_academy_requests(principal, academy_id):
            raise ForbiddenError("Forbidden")
    elif principal.get("role") != UserRole.ADMIN.value:
        raise ForbiddenError("Forbidden")

    request = await _get_request(session, request_id, academy_id)
    if not can_manage_academy_requests(principal, request.academy_id):
        raise ForbiddenError("Forbidden")

    ensure_player_request_transition(request.status, target)
    user_id, request_academy_id = request.user_id, request.academy_id

    now = utcnow()
    values = {"status": target.value, "responded_at": now}
    if target == PlayerRequestStatus.REJECTED:
        values["expire_at"] = now + timedelta(minutes=REJECTED_REQUEST_TTL_MINUTES)

    result = await session.execute(
        update(PlayerRequest)
        .where(
            PlayerRequest.id == request_id,
            PlayerRequest.status.in_(player_request_source_values(target)),
            PlayerRequest.expire_at.is_(None),
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise ConflictError(f"Request must be pending to be {target.value}")
    await session.commit()
    logger.info(f"Player request {request_id} {target.value} by user {principal.get('id')}")

    if target == PlayerRequestStatus.APPROVED:
        # Secondary write; the status change above stays committed if this fails
        try:
            added = await academy_service.add_player_to_roster(session, request_academy_id, user_id)
            if added:
                logger.info(f"Added user {user_id} to academy {request_academy_id} roster")
        except Exception as e:
            await session.rollback()
            logger.warning(
                f"Approved request {request_id} but failed to add user {user_id} "
                f"to academy {request_academy_id} roster: {e}"
            )

    return request_to_dict(await _get_request(session, request_id))


async def delete_request(
    session: AsyncSession,
    request_id: int,
    principal: Dict,
    academy_id: Optional[int] = None,
) -> None:
    """
    Delete a request. Academies delete only their own; admins delete any.

    Args:
        academy_id: Academy from the request path; None for admin routes

    Raises:
        ForbiddenError: If the caller may not delete it
        NotFoundError: If the request does not exist (in this academy)
    """
    role = principal.get("role")
    conditions = [PlayerRequest.id == request_id]
    if academy_id is not None:
        if role != UserRole.ACADEMY.value or principal.get("academy_id") != academy_id:
            raise ForbiddenError("Forbidden")
        conditions.append(PlayerRequest.academy_id == academy_id)
    elif role != UserRole.ADMIN.value:
        raise ForbiddenError("Forbidden")

    result = await session.execute(delete(PlayerRequest).where(*conditions))
    if result.rowcount == 0:
        raise NotFoundError("Request not found")
    await session.commit()
    logger.info(f"Player request {request_id} deleted by user {principal.get('id')}")


async def get_request(session: AsyncSession, request_id: int) -> Dict:
    """Get a single unexpired request."""
    return request_to_dict(await _get_request(session, request_id))


async def list_my_requests(session: AsyncSession, user_id: int) -> List[Dict]:
    """A user's own requests, newest first."""
    result = await session.execute(
        select(PlayerRequest)
        .options(selectinload(PlayerRequest.academy))
        .where(PlayerRequest.user_id == user_id, _not_expired())
        .order_by(PlayerRequest.created_at.desc(), PlayerRequest.id.desc())
    )
    return [request_to_dict(r) for r in result.scalars().all()]


async def list_academy_requests(
    session: AsyncSession,
    principal: Dict,
    academy_id: int,
    page: int = 1,
    limit: int = 10,
) -> Dict:
    """
    Paginated requests received by an academy, newest first.

    Returns:
        Dict with items, page, pages, total

    Raises:
        ForbiddenError: If the caller may not view this academy's requests
    """
    if not can_manage_academy_requests(principal, academy_id):
        raise ForbiddenError("Forbidden")

    conditions = [PlayerRequest.academy_id == academy_id, _not_expired()]
    total_result = await session.execute(
        select(func.count()).select_from(PlayerRequest).where(*conditions)
    )
    total = total_result.scalar() or 0

    result = await session.execute(
        select(PlayerRequest)
        .options(selectinload(PlayerRequest.academy))
        .where(*conditions)
        .order_by(PlayerRequest.created_at.desc(), PlayerRequest.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return {
        "items": [request_to_dict(r) for r in result.scalars().all()],
        "page": page,
        "pages": math.ceil(total / limit) if limit else 0,
        "total": total,
    }


async def list_all_requests(session: AsyncSession) -> List[Dict]:
    """Admin view of every unexpired request, newest first."""
    result = await session.execute(
        select(PlayerRequest)
        .options(selectinload(PlayerRequest.academy))
        .where(_not_expired())
        .order_by(PlayerRequest.created_at.desc(), PlayerRequest.id.desc())
    )
    return [request_to_dict(r) for r in result.scalars().all()]


async def purge_expired_requests(session: AsyncSession) -> int:
    """
    Delete every request whose expiry has passed.

    Returns:
        Number of rows deleted
    """
    result = await session.execute(
        delete(PlayerRequest).where(
            PlayerRequest.expire_at.isnot(None),
            PlayerRequest.expire_at <= utcnow(),
        )
    )
    await session.commit()
    return result.rowcount or 0


def request_to_dict(request: PlayerRequest) -> Dict:
    """Convert a PlayerRequest ORM instance (academy loaded) to a dictionary."""
    academy = academy_service.academy_summary(request.academy)
    return {
        "id": request.id,
        "user_id": request.user_id,
        "academy_id": request.academy_id,
        "academy": academy,
        "user_name": request.user_name,
        "user_email": request.user_email,
        "academy_name": request.academy_name,
        "status": request.status,
        "message": request.message,
        "age": request.age,
        "position": request.position,
        "responded_at": isoformat(request.responded_at),
        "expire_at": isoformat(request.expire_at),
        "created_at": isoformat(request.created_at),
        "updated_at": isoformat(request.updated_at),
    }
