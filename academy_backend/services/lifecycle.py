"""
Transition tables for match and player-request lifecycles.

Every mutating operation consults these tables; the conditional updates in
match_service and player_request_service are keyed on the source states
returned here.
"""

from typing import Dict, FrozenSet, Optional

from academy_backend.database.models import MatchStatus, PlayerRequestStatus
from academy_backend.utils.errors import ConflictError, ValidationError


MATCH_TRANSITIONS: Dict[MatchStatus, FrozenSet[MatchStatus]] = {
    MatchStatus.REQUESTED: frozenset({MatchStatus.CONFIRMED, MatchStatus.REJECTED}),
    MatchStatus.CONFIRMED: frozenset({MatchStatus.FINISHED, MatchStatus.REJECTED}),
    MatchStatus.FINISHED: frozenset(),
    MatchStatus.REJECTED: frozenset(),
}

PLAYER_REQUEST_TRANSITIONS: Dict[PlayerRequestStatus, FrozenSet[PlayerRequestStatus]] = {
    PlayerRequestStatus.PENDING: frozenset(
        {PlayerRequestStatus.APPROVED, PlayerRequestStatus.REJECTED}
    ),
    PlayerRequestStatus.APPROVED: frozenset(),
    PlayerRequestStatus.REJECTED: frozenset(),
}

# Older clients and rows use "accepted" for a confirmed match
LEGACY_MATCH_STATUS_ALIASES: Dict[str, MatchStatus] = {
    "accepted": MatchStatus.CONFIRMED,
}


def parse_match_status(value: str) -> MatchStatus:
    """
    Map a raw status string (including legacy aliases) to a MatchStatus.

    Raises:
        ValidationError: If the value is not a known status
    """
    if value in LEGACY_MATCH_STATUS_ALIASES:
        return LEGACY_MATCH_STATUS_ALIASES[value]
    try:
        return MatchStatus(value)
    except ValueError:
        raise ValidationError("Invalid status")


def parse_player_request_status(value: str) -> PlayerRequestStatus:
    """Map a raw status string to a PlayerRequestStatus or raise ValidationError."""
    try:
        return PlayerRequestStatus(value)
    except ValueError:
        raise ValidationError("Invalid status")


def match_source_states(target: MatchStatus) -> FrozenSet[MatchStatus]:
    """Canonical states from which `target` may be entered."""
    return frozenset(
        source for source, targets in MATCH_TRANSITIONS.items() if target in targets
    )


def match_source_values(target: MatchStatus) -> FrozenSet[str]:
    """
    Stored status values a conditional update may match for `target`.

    Includes legacy aliases of the canonical source states so rows written
    as "accepted" can still be finished or rejected.
    """
    sources = match_source_states(target)
    values = {source.value for source in sources}
    values.update(
        alias for alias, canonical in LEGACY_MATCH_STATUS_ALIASES.items() if canonical in sources
    )
    return frozenset(values)


def player_request_source_values(target: PlayerRequestStatus) -> FrozenSet[str]:
    """Stored status values from which a player request may move to `target`."""
    return frozenset(
        source.value
        for source, targets in PLAYER_REQUEST_TRANSITIONS.items()
        if target in targets
    )


def can_transition_match(current: str, target: MatchStatus) -> bool:
    """Whether a match stored with status `current` may move to `target`."""
    try:
        source = parse_match_status(current)
    except ValidationError:
        return False
    return target in MATCH_TRANSITIONS[source]


def ensure_match_transition(current: str, target: MatchStatus, action: Optional[str] = None) -> None:
    """
    Raise ConflictError unless `current` -> `target` is an allowed edge.

    The message names the required source state(s).
    """
    if can_transition_match(current, target):
        return
    required = " or ".join(sorted(s.value for s in match_source_states(target)))
    verb = action or f"moved to {target.value}"
    if not required:
        raise ConflictError(f"Match cannot be {verb}")
    raise ConflictError(
        f"Match must be in {required} status to be {verb} (current status: {current})"
    )


def ensure_player_request_transition(current: str, target: PlayerRequestStatus) -> None:
    """Raise ConflictError unless a player request may move from `current` to `target`."""
    try:
        source = PlayerRequestStatus(current)
    except ValueError:
        source = None
    if source is not None and target in PLAYER_REQUEST_TRANSITIONS[source]:
        return
    raise ConflictError(
        f"Request must be pending to be {target.value} (current status: {current})"
    )
