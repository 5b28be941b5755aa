"""
Academy data access: lookup, listing and roster management.
"""

from typing import List, Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, insert
from sqlalchemy.exc import IntegrityError
from academy_backend.database.models import Academy, User, academy_players
from academy_backend.utils.datetime_utils import isoformat
import logging

logger = logging.getLogger(__name__)


async def create_academy(
    session: AsyncSession,
    name: str,
    name_ar: Optional[str] = None,
    phone: Optional[str] = None,
    logo: Optional[str] = None,
    location_description: Optional[str] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    verified: bool = False,
) -> Dict:
    """
    Create an academy.

    Returns:
        Academy dictionary
    """
    academy = Academy(
        name=name,
        name_ar=name_ar,
        phone=phone,
        logo=logo,
        location_description=location_description or "",
        latitude=latitude,
        longitude=longitude,
        verified=verified,
    )
    session.add(academy)
    await session.flush()
    await session.commit()
    await session.refresh(academy)
    logger.info(f"Created academy {academy.id} ({name!r})")
    return academy_to_dict(academy)


async def get_academy(session: AsyncSession, academy_id: int) -> Optional[Academy]:
    """Get an academy ORM instance by ID, or None."""
    result = await session.execute(select(Academy).where(Academy.id == academy_id))
    return result.scalar_one_or_none()


async def list_academies(session: AsyncSession) -> List[Dict]:
    """List all academies with their roster size, alphabetically."""
    roster_size = (
        select(func.count())
        .select_from(academy_players)
        .where(academy_players.c.academy_id == Academy.id)
        .correlate(Academy)
        .scalar_subquery()
    )
    result = await session.execute(
        select(Academy, roster_size.label("player_count")).order_by(Academy.name)
    )
    return [
        {**academy_to_dict(academy), "player_count": player_count}
        for academy, player_count in result.all()
    ]


async def get_roster(session: AsyncSession, academy_id: int) -> List[Dict]:
    """Get the users on an academy's roster."""
    result = await session.execute(
        select(User)
        .join(academy_players, academy_players.c.user_id == User.id)
        .where(academy_players.c.academy_id == academy_id)
        .order_by(User.name)
    )
    return [
        {"id": u.id, "name": u.name, "email": u.email, "phone": u.phone}
        for u in result.scalars().all()
    ]


async def is_on_roster(session: AsyncSession, academy_id: int, user_id: int) -> bool:
    """Whether a user is already on an academy's roster."""
    result = await session.execute(
        select(academy_players.c.user_id).where(
            academy_players.c.academy_id == academy_id,
            academy_players.c.user_id == user_id,
        )
    )
    return result.scalar_one_or_none() is not None


async def add_player_to_roster(session: AsyncSession, academy_id: int, user_id: int) -> bool:
    """
    Add a user to an academy's roster (set semantics).

    Args:
        session: Database session
        academy_id: Academy ID
        user_id: User ID

    Returns:
        True if the user was added, False if already present

    Raises:
        IntegrityError: If the user or academy no longer exists
    """
    if await is_on_roster(session, academy_id, user_id):
        return False

    try:
        await session.execute(
            insert(academy_players).values(academy_id=academy_id, user_id=user_id)
        )
        await session.commit()
    except IntegrityError:
        await session.rollback()
        # A concurrent approval added the same player first; anything else
        # (user or academy gone) is a real failure
        if await is_on_roster(session, academy_id, user_id):
            return False
        raise
    return True


def academy_summary(academy: Optional[Academy]) -> Optional[Dict]:
    """Display fields embedded into match and request payloads."""
    if academy is None:
        return None
    return {
        "id": academy.id,
        "name": academy.name,
        "name_ar": academy.name_ar,
        "phone": academy.phone,
        "logo": academy.logo,
    }


def academy_to_dict(academy: Academy) -> Dict:
    """Convert an Academy ORM instance to a dictionary."""
    return {
        "id": academy.id,
        "name": academy.name,
        "name_ar": academy.name_ar,
        "phone": academy.phone,
        "logo": academy.logo,
        "location_description": academy.location_description,
        "latitude": academy.latitude,
        "longitude": academy.longitude,
        "verified": academy.verified,
        "created_at": isoformat(academy.created_at),
    }
