"""Queue table operations for pending PDF conversions."""
from typing import List

from editpdf_worker.db import Database
from editpdf_worker.logging_conf import logger
from editpdf_worker.queue.models import QueueEntry

QUEUE_TABLE = "assignfeedback_editpdf_queue"


class QueueStore:
    """Reads, bumps and removes rows of the conversion queue table."""

    def __init__(self, db: Database):
        self.db = db

    @property
    def _table(self) -> str:
        return self.db.table(QUEUE_TABLE)

    def fetch_batch(self, limit: int) -> List[QueueEntry]:
        """Fetch up to ``limit`` queued conversion requests."""
        with self.db.cursor() as cur:
            cur.execute(f"""
                SELECT id, submissionid, submissionattempt, attemptedconversions
                FROM {self._table}
                ORDER BY id ASC
                LIMIT %s
            """, (limit,))
            return [QueueEntry.from_row(row) for row in cur.fetchall()]

    def increment_attempt(self, entry_id: int) -> None:
        """Record a conversion attempt (single-row atomic update, committed immediately)."""
        with self.db.cursor() as cur:
            cur.execute(f"""
                UPDATE {self._table}
                SET attemptedconversions = attemptedconversions + 1
                WHERE id = %s
            """, (entry_id,))

    def delete(self, entry_id: int) -> None:
        """Remove an entry. Deleting an id that is already gone is a no-op."""
        with self.db.cursor() as cur:
            cur.execute(f"DELETE FROM {self._table} WHERE id = %s", (entry_id,))
            if cur.rowcount:
                logger.debug(f"Removed queue entry {entry_id}")
