"""
SQLAlchemy ORM models for the academy marketplace.
"""

import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    Float,
    DateTime,
    ForeignKey,
    Table,
    CheckConstraint,
    Index,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from academy_backend.database.db import Base
from academy_backend.utils.datetime_utils import utcnow


class UserRole(str, enum.Enum):
    """Account role enum."""

    USER = "user"
    ACADEMY = "academy"
    ADMIN = "admin"


class MatchStatus(str, enum.Enum):
    """Match status enum."""

    REQUESTED = "requested"
    CONFIRMED = "confirmed"
    FINISHED = "finished"
    REJECTED = "rejected"


class HomeAway(str, enum.Enum):
    """Which side hosts the match."""

    HOME = "home"
    AWAY = "away"


class PlayerRequestStatus(str, enum.Enum):
    """Player join request status enum."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# Academy roster: composite primary key gives set semantics
academy_players = Table(
    "academy_players",
    Base.metadata,
    Column("academy_id", Integer, ForeignKey("academies.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
)


class Academy(Base):
    """Academy that owns matches and a player roster."""

    __tablename__ = "academies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    name_ar = Column(String, nullable=True)
    location_description = Column(String, nullable=True, default="")
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    phone = Column(String(30), nullable=True)
    logo = Column(String(500), nullable=True)  # Hosted image URL
    verified = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), default=utcnow)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), default=utcnow, onupdate=utcnow
    )

    # Relationships
    players = relationship("User", secondary=academy_players, backref="academies_joined")
    accounts = relationship("User", back_populates="academy", foreign_keys="User.academy_id")

    __table_args__ = (Index("idx_academies_name", "name"),)


class User(Base):
    """User account. Academy accounts are linked to an academy via academy_id."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True)
    phone = Column(String(30), nullable=True)
    password_hash = Column(String, nullable=False)
    role = Column(String(20), default=UserRole.USER.value, nullable=False)
    academy_id = Column(Integer, ForeignKey("academies.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), default=utcnow)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), default=utcnow, onupdate=utcnow
    )

    # Relationships
    academy = relationship("Academy", back_populates="accounts", foreign_keys=[academy_id])

    __table_args__ = (
        CheckConstraint("role IN ('user', 'academy', 'admin')", name="ck_users_role"),
    )


class Match(Base):
    """A friendly match requested by one academy and accepted by another."""

    __tablename__ = "matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    academy_id = Column(Integer, ForeignKey("academies.id"), nullable=False)  # Creator academy
    opponent_id = Column(Integer, ForeignKey("academies.id"), nullable=True)  # Set on accept
    creator_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    age_group = Column(String, nullable=False)
    date_time = Column(DateTime(timezone=True), nullable=False)
    home_away = Column(String(10), nullable=False)
    location_description = Column(String, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    phone = Column(String(30), nullable=True)
    duration = Column(String(50), nullable=True)
    description = Column(Text, nullable=True, default="Friendly match")
    # Plain string so rows written with the legacy "accepted" value still load
    status = Column(String(20), default=MatchStatus.REQUESTED.value, nullable=False)
    finished_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), default=utcnow)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), default=utcnow, onupdate=utcnow
    )

    # Relationships
    academy = relationship("Academy", foreign_keys=[academy_id])
    opponent = relationship("Academy", foreign_keys=[opponent_id])
    creator = relationship("User", foreign_keys=[creator_id])

    __table_args__ = (
        CheckConstraint("home_away IN ('home', 'away')", name="ck_matches_home_away"),
        CheckConstraint(
            "opponent_id IS NULL OR opponent_id <> academy_id", name="ck_matches_not_self"
        ),
        Index("idx_matches_date_time", "date_time"),
        Index("idx_matches_academy", "academy_id"),
        Index("idx_matches_opponent", "opponent_id"),
        Index("idx_matches_status_updated", "status", "updated_at"),
    )


class PlayerRequest(Base):
    """A user's request to join an academy roster."""

    __tablename__ = "player_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    academy_id = Column(Integer, ForeignKey("academies.id", ondelete="CASCADE"), nullable=False)
    user_name = Column(String, nullable=False)
    user_email = Column(String, nullable=False)
    academy_name = Column(String, nullable=False)
    status = Column(String(20), default=PlayerRequestStatus.PENDING.value, nullable=False)
    message = Column(Text, nullable=True, default="")
    age = Column(Integer, nullable=True)
    position = Column(String(50), nullable=True)
    responded_at = Column(DateTime(timezone=True), nullable=True)
    expire_at = Column(DateTime(timezone=True), nullable=True)  # Set once, on rejection
    created_at = Column(DateTime(timezone=True), server_default=func.now(), default=utcnow)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), default=utcnow, onupdate=utcnow
    )

    # Relationships
    user = relationship("User", foreign_keys=[user_id])
    academy = relationship("Academy", foreign_keys=[academy_id])

    __table_args__ = (
        # At most one pending request per (user, academy)
        Index(
            "uq_player_requests_pending",
            "user_id",
            "academy_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index("idx_player_requests_expire_at", "expire_at"),
        Index("idx_player_requests_academy_created", "academy_id", "created_at"),
    )
