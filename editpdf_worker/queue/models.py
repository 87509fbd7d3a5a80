"""Queue data models."""
from dataclasses import dataclass
from typing import Dict, Any


@dataclass
class QueueEntry:
    """A pending conversion request for one submission attempt."""

    id: int
    submission_id: int
    submission_attempt: int
    attempted_conversions: int = 0

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "QueueEntry":
        """Build an entry from an ``assignfeedback_editpdf_queue`` row."""
        return cls(
            id=int(row["id"]),
            submission_id=int(row["submissionid"]),
            submission_attempt=int(row["submissionattempt"]),
            attempted_conversions=int(row.get("attemptedconversions") or 0),
        )
