"""
Best-effort, process-local deferred deletion of finished matches.

When a match finishes, a one-shot asyncio task is armed that waits out the
grace window and then deletes the match only if it is still finished. Tasks
are lost on restart; the cleanup sweeper re-derives the same outcome from
persisted timestamps, so these timers only shorten the time a finished match
stays visible.
"""

import asyncio
import logging
from typing import Optional, Set

from sqlalchemy import delete

from academy_backend.database import db
from academy_backend.database.models import Match, MatchStatus
from academy_backend.utils.constants import FINISHED_MATCH_GRACE_MINUTES

logger = logging.getLogger(__name__)


class DeferredDeletionScheduler:
    """Arms fire-and-forget deletion timers for finished matches."""

    def __init__(self, delay_seconds: Optional[float] = None):
        self.delay_seconds = (
            delay_seconds if delay_seconds is not None else FINISHED_MATCH_GRACE_MINUTES * 60
        )
        # Strong references so pending tasks are not garbage collected
        self._tasks: Set[asyncio.Task] = set()

    def arm(self, match_id: int) -> None:
        """Schedule deletion of `match_id` after the grace window."""
        try:
            task = asyncio.get_running_loop().create_task(self._fire_after(match_id))
        except RuntimeError:
            logger.warning(f"No running event loop; deferred deletion of match {match_id} skipped")
            return
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug(f"Armed deferred deletion for match {match_id} in {self.delay_seconds}s")

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    def shutdown(self) -> None:
        """Cancel every outstanding timer (application shutdown)."""
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    async def _fire_after(self, match_id: int) -> None:
        try:
            await asyncio.sleep(self.delay_seconds)
            await self.delete_if_finished(match_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # No caller to report to; the sweeper will retry from the store
            logger.error(f"Failed to auto-delete match {match_id}: {e}", exc_info=True)

    async def delete_if_finished(self, match_id: int) -> bool:
        """
        Delete the match if it is still finished.

        Returns:
            True if a row was deleted
        """
        async with db.AsyncSessionLocal() as session:
            result = await session.execute(
                delete(Match).where(
                    Match.id == match_id,
                    Match.status == MatchStatus.FINISHED.value,
                )
            )
            await session.commit()

        if result.rowcount:
            logger.info(f"Auto-deleted finished match {match_id}")
            return True
        return False


# Global singleton
_scheduler = DeferredDeletionScheduler()


def get_deferred_deletion_scheduler() -> DeferredDeletionScheduler:
    """Get the global deferred deletion scheduler."""
    return _scheduler
