"""
Match lifecycle service.

Matches move requested -> confirmed -> finished, with requested/confirmed ->
rejected; finished and rejected are terminal. Every transition is a single
conditional UPDATE keyed on the allowed source states from
`lifecycle.MATCH_TRANSITIONS`, so concurrent callers cannot both win: the
loser's UPDATE matches no row and is reported as a conflict.
"""

from datetime import datetime
from typing import List, Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, or_
from sqlalchemy.orm import selectinload
from academy_backend.database.models import Match, MatchStatus, HomeAway, UserRole
from academy_backend.services import academy_service
from academy_backend.services.deferred_deletion import (
    DeferredDeletionScheduler,
    get_deferred_deletion_scheduler,
)
from academy_backend.services.lifecycle import (
    ensure_match_transition,
    match_source_values,
    parse_match_status,
)
from academy_backend.utils.constants import (
    DEFAULT_MATCH_DESCRIPTION,
    FIRST_AGE_GROUP_YEAR,
    MIXED_AGES,
)
from academy_backend.utils.datetime_utils import utcnow, ensure_utc, isoformat
from academy_backend.utils.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
import logging

logger = logging.getLogger(__name__)


def normalize_age_group(age_group: str) -> str:
    """
    Deduplicate and sort comma-separated age group tokens.

    "Mixed Ages" is kept literally. Sorting is lexicographic and case-sensitive.

    Examples:
        >>> normalize_age_group("2011, 2010, 2011")
        '2010, 2011'
    """
    if not age_group or age_group == MIXED_AGES:
        return age_group
    tokens = [token.strip() for token in age_group.split(",")]
    unique = list(dict.fromkeys(token for token in tokens if token))
    return ", ".join(sorted(unique))


def list_age_groups(today: Optional[datetime] = None) -> List[int]:
    """Birth years offered for match age groups (2010 up to five years ago)."""
    current_year = (today or utcnow()).year
    return list(range(FIRST_AGE_GROUP_YEAR, current_year - 5 + 1))


def _caller_academy_id(principal: Dict) -> int:
    """
    Return the academy the caller acts for.

    Raises:
        ForbiddenError: If the caller does not hold the academy role
        ValidationError: If the academy account is not linked to an academy
    """
    if principal.get("role") != UserRole.ACADEMY.value:
        raise ForbiddenError("Forbidden")
    academy_id = principal.get("academy_id")
    if not academy_id:
        raise ValidationError("User is not linked to an academy")
    return academy_id


async def _load_match(session: AsyncSession, match_id: int, refresh: bool = False) -> Match:
    """Load a match with its academies populated, or raise NotFoundError."""
    query = (
        select(Match)
        .options(selectinload(Match.academy), selectinload(Match.opponent))
        .where(Match.id == match_id)
    )
    if refresh:
        query = query.execution_options(populate_existing=True)
    result = await session.execute(query)
    match = result.scalar_one_or_none()
    if match is None:
        raise NotFoundError("Match not found")
    return match


async def create_match(
    session: AsyncSession,
    principal: Dict,
    age_group: str,
    date_time: datetime,
    home_away: str,
    location_description: Optional[str] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    phone: Optional[str] = None,
    duration: Optional[str] = None,
    description: Optional[str] = None,
) -> Dict:
    """
    Create a match request on behalf of the caller's academy.

    Args:
        session: Database session
        principal: Authenticated caller (must be an academy account)
        age_group: Comma-separated birth years, or "Mixed Ages"
        date_time: Kick-off time (naive values are taken as UTC)
        home_away: "home" or "away"

    Returns:
        Match dictionary in the requested state

    Raises:
        ValidationError: If the caller is not linked to an existing academy or input is invalid
    """
    academy_id = _caller_academy_id(principal)
    academy = await academy_service.get_academy(session, academy_id)
    if academy is None:
        raise ValidationError("Academy not found for user")

    if not age_group or not age_group.strip():
        raise ValidationError("Age group is required")
    if date_time is None:
        raise ValidationError("Match date and time are required")
    try:
        home_away = HomeAway(home_away).value
    except ValueError:
        raise ValidationError("home_away must be 'home' or 'away'")

    match = Match(
        academy_id=academy.id,
        creator_id=principal["id"],
        age_group=normalize_age_group(age_group.strip()),
        date_time=ensure_utc(date_time),
        home_away=home_away,
        location_description=location_description,
        latitude=latitude,
        longitude=longitude,
        phone=phone,
        duration=duration,
        description=description or DEFAULT_MATCH_DESCRIPTION,
        status=MatchStatus.REQUESTED.value,
    )
    session.add(match)
    await session.flush()
    match_id = match.id
    await session.commit()

    logger.info(f"Academy {academy.id} requested match {match_id}")
    return match_to_dict(await _load_match(session, match_id, refresh=True))


async def accept_match(session: AsyncSession, match_id: int, principal: Dict) -> Dict:
    """
    Accept an open match request as the opponent academy.

    Raises:
        NotFoundError: If the match does not exist
        ConflictError: If the caller created the match, or it is no longer requested
        ValidationError: If the caller's academy does not exist
    """
    academy_id = _caller_academy_id(principal)
    match = await _load_match(session, match_id)

    if match.academy_id == academy_id:
        raise ConflictError("Cannot accept your own match request")

    opponent = await academy_service.get_academy(session, academy_id)
    if opponent is None:
        raise ValidationError("Opponent academy not found")

    ensure_match_transition(match.status, MatchStatus.CONFIRMED, "accepted")

    result = await session.execute(
        update(Match)
        .where(
            Match.id == match_id,
            Match.status.in_(match_source_values(MatchStatus.CONFIRMED)),
            Match.opponent_id.is_(None),
            Match.academy_id != academy_id,
        )
        .values(status=MatchStatus.CONFIRMED.value, opponent_id=academy_id)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise ConflictError("Match must be in requested status to be accepted")
    await session.commit()

    logger.info(f"Academy {academy_id} accepted match {match_id}")
    return match_to_dict(await _load_match(session, match_id, refresh=True))


async def finish_match(
    session: AsyncSession,
    match_id: int,
    principal: Dict,
    scheduler: Optional[DeferredDeletionScheduler] = None,
) -> Dict:
    """
    Mark a confirmed match as finished. Only the creator academy may finish.

    Arms a deferred deletion for the match after the grace window.

    Raises:
        NotFoundError: If the match does not exist
        ForbiddenError: If the caller is not the creator academy
        ConflictError: If the match is not confirmed
    """
    academy_id = _caller_academy_id(principal)
    match = await _load_match(session, match_id)

    if match.academy_id != academy_id:
        raise ForbiddenError("Only the creator academy can finish this match")

    ensure_match_transition(match.status, MatchStatus.FINISHED, "finished")

    result = await session.execute(
        update(Match)
        .where(
            Match.id == match_id,
            Match.academy_id == academy_id,
            Match.status.in_(match_source_values(MatchStatus.FINISHED)),
        )
        .values(status=MatchStatus.FINISHED.value, finished_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise ConflictError("Match must be in confirmed status to be finished")
    await session.commit()

    (scheduler or get_deferred_deletion_scheduler()).arm(match_id)
    logger.info(f"Academy {academy_id} finished match {match_id}")
    return match_to_dict(await _load_match(session, match_id, refresh=True))


async def set_match_status(
    session: AsyncSession,
    match_id: int,
    principal: Dict,
    status: str,
    scheduler: Optional[DeferredDeletionScheduler] = None,
) -> Dict:
    """
    Move a match to `status` (board drag-and-drop).

    Either the creator or the opponent academy may call this. The transition
    table applies here exactly as for accept/finish.

    Raises:
        ValidationError: If `status` is not a match status
        NotFoundError: If the match does not exist
        ForbiddenError: If the caller is neither creator nor opponent
        ConflictError: If the transition is not allowed
    """
    target = parse_match_status(status)
    academy_id = _caller_academy_id(principal)
    match = await _load_match(session, match_id)

    if academy_id not in (match.academy_id, match.opponent_id):
        raise ForbiddenError("Not authorized")

    ensure_match_transition(match.status, target)
    if target == MatchStatus.CONFIRMED and match.opponent_id is None:
        raise ConflictError(
            "Match must be accepted by an opponent academy before it can be confirmed"
        )

    values = {"status": target.value}
    if target == MatchStatus.FINISHED:
        values["finished_at"] = utcnow()

    conditions = [
        Match.id == match_id,
        Match.status.in_(match_source_values(target)),
        or_(Match.academy_id == academy_id, Match.opponent_id == academy_id),
    ]
    if target == MatchStatus.CONFIRMED:
        conditions.append(Match.opponent_id.isnot(None))

    result = await session.execute(
        update(Match)
        .where(*conditions)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise ConflictError(f"Match status changed concurrently; cannot move to {target.value}")
    await session.commit()

    if target == MatchStatus.FINISHED:
        (scheduler or get_deferred_deletion_scheduler()).arm(match_id)
    logger.info(f"Academy {academy_id} moved match {match_id} to {target.value}")
    return match_to_dict(await _load_match(session, match_id, refresh=True))


async def delete_match(session: AsyncSession, match_id: int, principal: Dict) -> str:
    """
    Hard-delete a match. Admins may delete any match; others only matches they created.

    Returns:
        "admin" or "creator", whichever entitlement allowed the delete

    Raises:
        NotFoundError: If the match does not exist
        ForbiddenError: If the caller is neither admin nor creator
    """
    result = await session.execute(select(Match.creator_id).where(Match.id == match_id))
    row = result.first()
    if row is None:
        raise NotFoundError("Match not found")

    if principal.get("role") == UserRole.ADMIN.value:
        deleted_by = "admin"
    elif row.creator_id == principal.get("id"):
        deleted_by = "creator"
    else:
        raise ForbiddenError("Not authorized to delete this match")

    await session.execute(delete(Match).where(Match.id == match_id))
    await session.commit()
    logger.info(f"Match {match_id} deleted by {deleted_by} (user {principal.get('id')})")
    return deleted_by


async def get_match(session: AsyncSession, match_id: int) -> Dict:
    """Get a single match with academy display fields populated."""
    return match_to_dict(await _load_match(session, match_id))


async def _list(session: AsyncSession, *conditions) -> List[Dict]:
    query = (
        select(Match)
        .options(selectinload(Match.academy), selectinload(Match.opponent))
        .order_by(Match.date_time.asc(), Match.id.asc())
    )
    if conditions:
        query = query.where(*conditions)
    result = await session.execute(query)
    return [match_to_dict(m) for m in result.scalars().all()]


async def list_matches(session: AsyncSession) -> List[Dict]:
    """Public feed: all matches, chronological."""
    return await _list(session)


async def list_my_matches(session: AsyncSession, principal: Dict) -> List[Dict]:
    """Matches the caller's academy created or accepted, chronological."""
    academy_id = principal.get("academy_id")
    if not academy_id:
        raise ValidationError("Academy ID not found in user session")
    return await _list(
        session, or_(Match.academy_id == academy_id, Match.opponent_id == academy_id)
    )


async def list_admin_matches(session: AsyncSession) -> List[Dict]:
    """Admin view of all matches."""
    return await _list(session)


def _public_status(status: str) -> str:
    try:
        return parse_match_status(status).value
    except ValidationError:
        return status


def match_to_dict(match: Match) -> Dict:
    """
    Convert a Match ORM instance (with academies loaded) to a dictionary.

    Legacy status aliases are reported under their canonical name.
    """
    location_geo = None
    if match.latitude is not None and match.longitude is not None:
        location_geo = {"lat": match.latitude, "lng": match.longitude}
    return {
        "id": match.id,
        "academy": academy_service.academy_summary(match.academy),
        "opponent": academy_service.academy_summary(match.opponent),
        "creator_id": match.creator_id,
        "age_group": match.age_group,
        "date_time": isoformat(match.date_time),
        "home_away": match.home_away,
        "location_description": match.location_description,
        "location_geo": location_geo,
        "phone": match.phone,
        "duration": match.duration,
        "description": match.description,
        "status": _public_status(match.status),
        "finished_at": isoformat(match.finished_at),
        "created_at": isoformat(match.created_at),
        "updated_at": isoformat(match.updated_at),
    }
