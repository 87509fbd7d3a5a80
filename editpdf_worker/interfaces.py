"""Collaborator contracts the queue drainer depends on."""
from typing import List, Optional, Protocol

from editpdf_worker.converter import CombinedStatus
from editpdf_worker.models import Assignment, Submission
from editpdf_worker.queue.models import QueueEntry


class QueueStoreGateway(Protocol):
    def fetch_batch(self, limit: int) -> List[QueueEntry]:
        ...

    def increment_attempt(self, entry_id: int) -> None:
        """Persist one more conversion attempt for the entry, immediately."""

    def delete(self, entry_id: int) -> None:
        """Remove the entry. Must be safe when it is already gone."""


class SubmissionGateway(Protocol):
    def get_by_id(self, submission_id: int) -> Optional[Submission]:
        ...


class AssignmentGateway(Protocol):
    def get_assignment(self, assignment_id: int) -> Assignment:
        ...


class GroupMembershipGateway(Protocol):
    def get_active_members(self, group_id: int) -> List[int]:
        ...


class ConverterGateway(Protocol):
    def get_combined_status(self, assignment: Assignment, user_id: int, attempt_number: int) -> CombinedStatus:
        """Raises ConversionError on failure."""

    def generate_page_images(self, assignment: Assignment, user_id: int, attempt_number: int,
                             readonly: bool) -> None:
        """Blocking call; raises ConversionError on failure."""
