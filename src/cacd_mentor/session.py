"""Commit or dismiss finished work intervals, once, on user decision."""
import logging
from typing import Optional

from cacd_mentor.models import PendingCommit, TopicProgress
from cacd_mentor.store import ProgressStore

logger = logging.getLogger(__name__)


class SessionCommitProtocol:
    """Holds at most one PendingCommit between the timer and the store."""

    def __init__(self, store: ProgressStore):
        self.store = store
        self._pending: Optional[PendingCommit] = None

    @property
    def pending(self) -> Optional[PendingCommit]:
        return self._pending

    def offer(self, pending: Optional[PendingCommit]) -> None:
        if pending is None:
            return
        if self._pending is not None:
            logger.warning(
                "Dropping unconfirmed session of %d min on %s",
                self._pending.minutes_completed, self._pending.topic_id,
            )
        self._pending = pending

    def commit(self, pending: PendingCommit) -> Optional[TopicProgress]:
        """Log the session's minutes on its topic; no-op if already resolved."""
        if pending is not self._pending:
            return None
        # Cleared first so a failed snapshot write can't lead to a double commit
        self._pending = None
        return self.store.add_study_minutes(pending.topic_id, pending.minutes_completed)

    def dismiss(self, pending: PendingCommit) -> bool:
        if pending is not self._pending:
            return False
        self._pending = None
        logger.info("Session of %d min on %s dismissed", pending.minutes_completed, pending.topic_id)
        return True
