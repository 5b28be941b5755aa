"""
Tests for the player join-request lifecycle service.
"""

import logging
import pytest
from datetime import datetime, timedelta
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from academy_backend.database.models import PlayerRequest
from academy_backend.services import academy_service, player_request_service
from academy_backend.utils.datetime_utils import utcnow
from academy_backend.utils.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from academy_backend.tests.conftest import make_user


async def _request(db_session, principals, academy, **kwargs):
    return await player_request_service.create_request(
        db_session, principals["user"], academy.id, **kwargs
    )


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_request_is_pending(db_session, principals, academies):
    academy_a, _ = academies

    request = await _request(db_session, principals, academy_a, message="Striker", age=14)

    assert request["status"] == "pending"
    assert request["user_name"] == "Player One"
    assert request["user_email"] == "player.one@example.com"
    assert request["academy_name"] == "Academy A"
    assert request["academy"]["id"] == academy_a.id
    assert request["expire_at"] is None
    assert request["responded_at"] is None


@pytest.mark.asyncio
async def test_duplicate_pending_request_conflicts(db_session, principals, academies):
    academy_a, academy_b = academies
    await _request(db_session, principals, academy_a)

    with pytest.raises(ConflictError, match="You already have a pending request"):
        await _request(db_session, principals, academy_a)

    # A different academy is fine
    other = await _request(db_session, principals, academy_b)
    assert other["status"] == "pending"


@pytest.mark.asyncio
async def test_create_request_unknown_academy(db_session, principals):
    with pytest.raises(NotFoundError, match="Academy not found"):
        await player_request_service.create_request(db_session, principals["user"], 9999)


# ---------------------------------------------------------------------------
# Reject / approve
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_reject_sets_expiry_once(db_session, principals, academies):
    academy_a, _ = academies
    request = await _request(db_session, principals, academy_a)
    before = utcnow()

    rejected = await player_request_service.update_request_status(
        db_session, request["id"], principals["a"], "rejected", academy_id=academy_a.id
    )

    assert rejected["status"] == "rejected"
    assert rejected["responded_at"] is not None
    expire_at = datetime.fromisoformat(rejected["expire_at"])
    expected = before + timedelta(minutes=15)
    assert abs((expire_at - expected).total_seconds()) < 60

    with pytest.raises(ConflictError, match="must be pending"):
        await player_request_service.update_request_status(
            db_session, request["id"], principals["a"], "approved", academy_id=academy_a.id
        )
    with pytest.raises(ConflictError):
        await player_request_service.update_request_status(
            db_session, request["id"], principals["admin"], "rejected"
        )

    again = await player_request_service.get_request(db_session, request["id"])
    assert again["status"] == "rejected"
    assert again["expire_at"] == rejected["expire_at"]


@pytest.mark.asyncio
async def test_approve_adds_player_to_roster_once(db_session, principals, academies):
    academy_a, _ = academies
    user_id = principals["user"]["id"]

    first = await _request(db_session, principals, academy_a)
    approved = await player_request_service.update_request_status(
        db_session, first["id"], principals["a"], "approved", academy_id=academy_a.id
    )
    assert approved["status"] == "approved"
    assert approved["expire_at"] is None
    assert await academy_service.is_on_roster(db_session, academy_a.id, user_id)

    # Approved requests are terminal
    with pytest.raises(ConflictError):
        await player_request_service.update_request_status(
            db_session, first["id"], principals["a"], "rejected", academy_id=academy_a.id
        )

    # A new pending request may follow; approving it again keeps one roster entry
    second = await _request(db_session, principals, academy_a)
    await player_request_service.update_request_status(
        db_session, second["id"], principals["admin"], "approved"
    )
    roster = await academy_service.get_roster(db_session, academy_a.id)
    assert [p["id"] for p in roster] == [user_id]


@pytest.mark.asyncio
async def test_roster_failure_keeps_approval(
    db_session, principals, academies, monkeypatch, caplog
):
    academy_a, _ = academies
    academy_id = academy_a.id
    request = await _request(db_session, principals, academy_a)

    async def failing_add_player_to_roster(*args, **kwargs):
        raise RuntimeError("roster unavailable")

    monkeypatch.setattr(
        academy_service, "add_player_to_roster", failing_add_player_to_roster, raising=True
    )

    with caplog.at_level(logging.WARNING, logger=player_request_service.__name__):
        approved = await player_request_service.update_request_status(
            db_session, request["id"], principals["a"], "approved", academy_id=academy_id
        )

    assert approved["status"] == "approved"
    current = await player_request_service.get_request(db_session, request["id"])
    assert current["status"] == "approved"
    assert not await academy_service.is_on_roster(
        db_session, academy_id, principals["user"]["id"]
    )

    warnings = [
        r
        for r in caplog.records
        if r.name == player_request_service.__name__ and r.levelno == logging.WARNING
    ]
    assert len(warnings) == 1
    assert "roster unavailable" in warnings[0].getMessage()


@pytest.mark.asyncio
async def test_add_player_to_roster_missing_user_raises(db_session, principals, academies):
    academy_a, _ = academies
    user_id = principals["user"]["id"]
    # Ids are read up front; the failed insert rolls back and expires loaded objects
    academy_id = academy_a.id

    assert await academy_service.add_player_to_roster(db_session, academy_id, user_id) is True
    assert await academy_service.add_player_to_roster(db_session, academy_id, user_id) is False

    with pytest.raises(IntegrityError):
        await academy_service.add_player_to_roster(db_session, academy_id, 999999)

    roster = await academy_service.get_roster(db_session, academy_id)
    assert [p["id"] for p in roster] == [user_id]


@pytest.mark.asyncio
async def test_create_request_for_missing_user_is_not_a_conflict(
    db_session, principals, academies
):
    academy_a, _ = academies
    academy_id = academy_a.id
    ghost = dict(principals["user"], id=999999)

    with pytest.raises(IntegrityError):
        await player_request_service.create_request(db_session, ghost, academy_id)

    # The real user's request is unaffected
    request = await player_request_service.create_request(
        db_session, principals["user"], academy_id
    )
    assert request["status"] == "pending"


@pytest.mark.asyncio
async def test_update_status_rejects_unknown_value(db_session, principals, academies):
    academy_a, _ = academies
    request = await _request(db_session, principals, academy_a)

    for status in ("pending", "accepted"):
        with pytest.raises(ValidationError):
            await player_request_service.update_request_status(
                db_session, request["id"], principals["a"], status, academy_id=academy_a.id
            )


@pytest.mark.asyncio
async def test_other_academy_cannot_manage_request(db_session, principals, academies):
    academy_a, academy_b = academies
    request = await _request(db_session, principals, academy_a)

    # Path names academy A but caller is academy B
    with pytest.raises(ForbiddenError):
        await player_request_service.update_request_status(
            db_session, request["id"], principals["b"], "approved", academy_id=academy_a.id
        )
    # Path names B's own academy; the request is not in it
    with pytest.raises(NotFoundError):
        await player_request_service.update_request_status(
            db_session, request["id"], principals["b"], "approved", academy_id=academy_b.id
        )
    # Plain users and non-admins on the admin route
    with pytest.raises(ForbiddenError):
        await player_request_service.update_request_status(
            db_session, request["id"], principals["user"], "approved", academy_id=academy_a.id
        )
    with pytest.raises(ForbiddenError):
        await player_request_service.update_request_status(
            db_session, request["id"], principals["a"], "approved"
        )

    current = await player_request_service.get_request(db_session, request["id"])
    assert current["status"] == "pending"


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_delete_request_permissions(db_session, principals, academies):
    academy_a, academy_b = academies
    request = await _request(db_session, principals, academy_a)

    with pytest.raises(ForbiddenError):
        await player_request_service.delete_request(
            db_session, request["id"], principals["b"], academy_id=academy_a.id
        )
    with pytest.raises(NotFoundError):
        await player_request_service.delete_request(
            db_session, request["id"], principals["b"], academy_id=academy_b.id
        )
    with pytest.raises(ForbiddenError):
        await player_request_service.delete_request(db_session, request["id"], principals["user"])

    await player_request_service.delete_request(
        db_session, request["id"], principals["a"], academy_id=academy_a.id
    )
    with pytest.raises(NotFoundError):
        await player_request_service.get_request(db_session, request["id"])


@pytest.mark.asyncio
async def test_admin_deletes_any_request(db_session, principals, academies):
    academy_a, _ = academies
    request = await _request(db_session, principals, academy_a)

    await player_request_service.delete_request(db_session, request["id"], principals["admin"])

    with pytest.raises(NotFoundError):
        await player_request_service.delete_request(
            db_session, request["id"], principals["admin"]
        )


@pytest.mark.asyncio
async def test_session_usable_after_failed_delete_and_update(db_session, principals, academies):
    academy_a, academy_b = academies
    request = await _request(db_session, principals, academy_a)
    await player_request_service.update_request_status(
        db_session, request["id"], principals["a"], "rejected", academy_id=academy_a.id
    )

    with pytest.raises(NotFoundError):
        await player_request_service.delete_request(db_session, 424242, principals["admin"])
    with pytest.raises(ConflictError):
        await player_request_service.update_request_status(
            db_session, request["id"], principals["admin"], "approved"
        )

    # Objects loaded before the failures are still readable on the same session
    assert academy_a.name == "Academy A"
    assert academy_b.id != academy_a.id
    follow_up = await _request(db_session, principals, academy_b)
    assert follow_up["status"] == "pending"
    mine = await player_request_service.list_my_requests(db_session, principals["user"]["id"])
    assert {r["id"] for r in mine} == {request["id"], follow_up["id"]}


# ---------------------------------------------------------------------------
# Listings and expiry
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_expired_requests_hidden_and_purged(db_session, principals, academies):
    academy_a, academy_b = academies
    rejected = await _request(db_session, principals, academy_a)
    await player_request_service.update_request_status(
        db_session, rejected["id"], principals["a"], "rejected", academy_id=academy_a.id
    )
    kept = await _request(db_session, principals, academy_b)

    await db_session.execute(
        update(PlayerRequest)
        .where(PlayerRequest.id == rejected["id"])
        .values(expire_at=utcnow() - timedelta(minutes=1))
    )
    await db_session.commit()

    mine = await player_request_service.list_my_requests(db_session, principals["user"]["id"])
    assert [r["id"] for r in mine] == [kept["id"]]
    page = await player_request_service.list_academy_requests(
        db_session, principals["a"], academy_a.id
    )
    assert page["total"] == 0
    with pytest.raises(NotFoundError):
        await player_request_service.get_request(db_session, rejected["id"])

    assert await player_request_service.purge_expired_requests(db_session) == 1
    assert await player_request_service.purge_expired_requests(db_session) == 0

    db_session.expire_all()
    result = await db_session.execute(select(PlayerRequest.id))
    assert list(result.scalars().all()) == [kept["id"]]


@pytest.mark.asyncio
async def test_academy_listing_is_paginated(db_session, principals, academies):
    academy_a, _ = academies
    players = [await make_user(db_session, f"Player {i}") for i in range(3)]
    await db_session.commit()
    created = [
        await player_request_service.create_request(db_session, p, academy_a.id) for p in players
    ]

    first = await player_request_service.list_academy_requests(
        db_session, principals["a"], academy_a.id, page=1, limit=2
    )
    second = await player_request_service.list_academy_requests(
        db_session, principals["admin"], academy_a.id, page=2, limit=2
    )

    assert first["total"] == 3
    assert first["pages"] == 2
    assert len(first["items"]) == 2
    assert len(second["items"]) == 1
    listed = {r["id"] for r in first["items"] + second["items"]}
    assert listed == {r["id"] for r in created}


@pytest.mark.asyncio
async def test_academy_listing_forbidden_for_other_academy(db_session, principals, academies):
    academy_a, _ = academies
    with pytest.raises(ForbiddenError):
        await player_request_service.list_academy_requests(
            db_session, principals["b"], academy_a.id
        )
