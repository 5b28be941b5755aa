"""
Match cleanup service — deletes finished matches and expired join requests.

Background worker that polls every minute. Finished matches whose last
update is older than the 15-minute grace window are deleted in bulk, and
player requests whose expire_at has passed are purged. This sweep is the
source of truth for cleanup; the per-match deferred deletion timers only
make it happen sooner.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from academy_backend.database import db
from academy_backend.database.models import Match, MatchStatus
from academy_backend.services import player_request_service
from academy_backend.utils.constants import FINISHED_MATCH_GRACE_MINUTES, SWEEP_INTERVAL_SECONDS
from academy_backend.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    """What a single sweep removed."""

    deleted_match_ids: List[int] = field(default_factory=list)
    expired_requests_deleted: int = 0


async def sweep_finished_matches(session: AsyncSession) -> List[int]:
    """
    Delete finished matches not updated within the grace window.

    Args:
        session: Database session

    Returns:
        IDs of the deleted matches (empty when nothing was eligible)
    """
    cutoff = utcnow() - timedelta(minutes=FINISHED_MATCH_GRACE_MINUTES)
    eligible = (
        Match.status == MatchStatus.FINISHED.value,
        Match.updated_at < cutoff,
    )

    result = await session.execute(select(Match.id).where(*eligible))
    match_ids = list(result.scalars().all())
    if not match_ids:
        return []

    # Re-check eligibility in the DELETE so a concurrently changed row survives
    delete_result = await session.execute(
        delete(Match).where(Match.id.in_(match_ids), *eligible)
    )
    await session.commit()

    if delete_result.rowcount != len(match_ids):
        remaining = await session.execute(select(Match.id).where(Match.id.in_(match_ids)))
        survivors = set(remaining.scalars().all())
        match_ids = [match_id for match_id in match_ids if match_id not in survivors]
    return match_ids


class MatchCleanupService:
    """Background service that removes finished matches and expired requests."""

    def __init__(self, poll_interval_seconds: float = SWEEP_INTERVAL_SECONDS):
        self.poll_interval_seconds = poll_interval_seconds
        self._worker_task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    def start(self) -> None:
        """Start the background cleanup worker."""
        if self._worker_task is None or self._worker_task.done():
            self._stop_event.clear()
            self._worker_task = asyncio.create_task(self._poll_loop())
            logger.info("Match cleanup worker started")

    def stop(self) -> None:
        """Stop the background cleanup worker."""
        self._stop_event.set()
        if self._worker_task and not self._worker_task.done():
            self._worker_task.cancel()
            logger.info("Match cleanup worker stopped")

    @property
    def is_running(self) -> bool:
        return self._worker_task is not None and not self._worker_task.done()

    async def _poll_loop(self) -> None:
        """Main loop: sweep, then sleep. Repeats until stopped."""
        while not self._stop_event.is_set():
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Error in match cleanup worker: {e}", exc_info=True)

            # Wait for poll interval or until stop is signalled
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self.poll_interval_seconds
                )
                # If wait_for returns normally, stop_event was set → exit
                break
            except asyncio.TimeoutError:
                # Timeout means interval elapsed, loop again
                pass

    async def run_once(self) -> SweepResult:
        """Run a single sweep over matches and player requests."""
        sweep = SweepResult()
        async with db.AsyncSessionLocal() as session:
            sweep.deleted_match_ids = await sweep_finished_matches(session)
            if sweep.deleted_match_ids:
                logger.info(
                    f"Cleaned up {len(sweep.deleted_match_ids)} finished match(es) older than "
                    f"{FINISHED_MATCH_GRACE_MINUTES} minutes"
                )

            sweep.expired_requests_deleted = await player_request_service.purge_expired_requests(
                session
            )
            if sweep.expired_requests_deleted:
                logger.info(
                    f"Purged {sweep.expired_requests_deleted} expired player request(s)"
                )
        return sweep


# Global singleton
_cleanup_service = MatchCleanupService()


def get_match_cleanup_service() -> MatchCleanupService:
    """Get the global match cleanup service instance."""
    return _cleanup_service
