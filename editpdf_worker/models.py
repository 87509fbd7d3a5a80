"""Read-only views of the assignment records a conversion needs."""
from dataclasses import dataclass
from typing import Dict, Any, Optional


@dataclass(frozen=True)
class Submission:
    """A row of ``assign_submission``."""

    id: int
    assignment_id: int
    user_id: Optional[int]  # 0/None for group submissions
    group_id: int

    @property
    def is_group_submission(self) -> bool:
        return not self.user_id

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Submission":
        return cls(
            id=int(row["id"]),
            assignment_id=int(row["assignment"]),
            user_id=row.get("userid") or None,
            group_id=int(row.get("groupid") or 0),
        )


@dataclass(frozen=True)
class Assignment:
    """An assignment instance together with its course module and module context."""

    id: int
    course_id: int
    course_module_id: int
    context_id: int

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Assignment":
        return cls(
            id=int(row["instance"]),
            course_id=int(row["course"]),
            course_module_id=int(row["cmid"]),
            context_id=int(row["contextid"]),
        )
