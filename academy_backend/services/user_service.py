"""
User service layer for account database operations.
"""

from typing import Optional, Dict
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from academy_backend.database.models import User, UserRole
from academy_backend.utils.datetime_utils import isoformat
from academy_backend.utils.errors import ConflictError
import logging

logger = logging.getLogger(__name__)


async def create_user(
    session: AsyncSession,
    name: str,
    email: str,
    password_hash: str,
    role: str = UserRole.USER.value,
    phone: Optional[str] = None,
    academy_id: Optional[int] = None,
) -> Dict:
    """
    Create a new user account.

    Args:
        session: Database session
        name: Display name
        email: Email address (stored lowercase)
        password_hash: Hashed password
        role: One of user, academy, admin
        phone: Optional phone number
        academy_id: Academy the account is linked to (academy accounts)

    Returns:
        User dictionary

    Raises:
        ConflictError: If the email is already registered
    """
    email = email.strip().lower()
    result = await session.execute(select(User.id).where(User.email == email))
    if result.scalar_one_or_none():
        raise ConflictError("Email already exists")

    user = User(
        name=name,
        email=email,
        password_hash=password_hash,
        role=role,
        phone=phone,
        academy_id=academy_id,
    )
    session.add(user)
    await session.flush()
    await session.commit()
    await session.refresh(user)
    logger.info(f"Created {role} account {user.id}")
    return _user_to_dict(user)


async def get_user_by_id(session: AsyncSession, user_id: int) -> Optional[Dict]:
    """
    Get user by ID.

    Args:
        session: Database session
        user_id: User ID

    Returns:
        User dictionary or None if not found
    """
    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    return _user_to_dict(user) if user else None


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[Dict]:
    """Get user by (case-insensitive) email, including the password hash."""
    result = await session.execute(
        select(User).where(User.email == email.strip().lower()).limit(1)
    )
    user = result.scalar_one_or_none()
    return _user_to_dict(user, include_password=True) if user else None


def _user_to_dict(user: User, include_password: bool = False) -> Dict:
    """
    Convert a User ORM instance to a dictionary.

    Args:
        user: User ORM instance
        include_password: Whether to include the password hash (login only)

    Returns:
        User dictionary
    """
    data = {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "phone": user.phone,
        "role": user.role,
        "academy_id": user.academy_id,
        "created_at": isoformat(user.created_at),
        "updated_at": isoformat(user.updated_at),
    }
    if include_password:
        data["password_hash"] = user.password_hash
    return data
