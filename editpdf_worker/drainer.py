"""Drains the PDF conversion queue, one bounded batch per run."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from editpdf_worker.converter import ConversionError, IN_PROGRESS_STATUSES
from editpdf_worker.interfaces import (
    AssignmentGateway,
    ConverterGateway,
    GroupMembershipGateway,
    QueueStoreGateway,
    SubmissionGateway,
)
from editpdf_worker.logging_conf import logger
from editpdf_worker.models import Assignment, Submission
from editpdf_worker.queue.models import QueueEntry

# Conversion time depends on document content, so a single run only takes this
# many entries to keep its runtime bounded regardless of queue depth.
MAX_BATCH_SIZE = 100


class ConversionOutcome(Enum):
    CONVERTED = "converted"
    POLLING = "polling"
    FAILED = "failed"


@dataclass(frozen=True)
class UserConversionResult:
    user_id: int
    outcome: ConversionOutcome
    error_code: Optional[str] = None


@dataclass
class DrainReport:
    """Counts for one drain run."""

    fetched: int = 0
    abandoned: int = 0
    exhausted: int = 0
    completed: int = 0
    retained: int = 0
    failed_users: int = 0
    results: Dict[int, List[UserConversionResult]] = field(default_factory=dict)

    def summary(self) -> str:
        return (
            f"fetched={self.fetched} completed={self.completed} retained={self.retained} "
            f"abandoned={self.abandoned} exhausted={self.exhausted} failed_users={self.failed_users}"
        )


class QueueDrainer:
    """Converts queued submission attempts to PDF for annotation.

    Every entry selected by a run has its attempt counter bumped before any
    conversion work starts, so an entry that keeps crashing the converter is
    still dropped once it reaches ``attempt_limit``.
    """

    def __init__(
        self,
        queue: QueueStoreGateway,
        submissions: SubmissionGateway,
        assignments: AssignmentGateway,
        groups: GroupMembershipGateway,
        converter: ConverterGateway,
        *,
        attempt_limit: int = 3,
        batch_size: int = MAX_BATCH_SIZE,
    ):
        self.queue = queue
        self.submissions = submissions
        self.assignments = assignments
        self.groups = groups
        self.converter = converter
        self.attempt_limit = attempt_limit
        self.batch_size = max(0, min(batch_size, MAX_BATCH_SIZE))

    def drain(self) -> DrainReport:
        """Process one batch of queued conversions and return what happened."""
        report = DrainReport()
        assignment_cache: Dict[int, Assignment] = {}

        entries = self.queue.fetch_batch(self.batch_size)[:self.batch_size]
        report.fetched = len(entries)

        for entry in entries:
            submission = self.submissions.get_by_id(entry.submission_id)
            if submission is None:
                logger.info(f"Submission {entry.submission_id} no longer exists, dropping queue entry {entry.id}")
                self.queue.delete(entry.id)
                report.abandoned += 1
                continue
            if entry.attempted_conversions >= self.attempt_limit:
                logger.warning(
                    f"Giving up on submission {entry.submission_id} attempt {entry.submission_attempt} "
                    f"after {entry.attempted_conversions} conversion attempts"
                )
                self.queue.delete(entry.id)
                report.exhausted += 1
                continue

            # Recorded up front: the conversion itself may take the process down.
            self.queue.increment_attempt(entry.id)
            entry.attempted_conversions += 1

            assignment = assignment_cache.get(submission.assignment_id)
            if assignment is None:
                assignment = self.assignments.get_assignment(submission.assignment_id)
                assignment_cache[submission.assignment_id] = assignment

            results = self._process_entry(entry, submission, assignment)
            report.results[entry.id] = results
            report.failed_users += sum(1 for r in results if r.outcome is ConversionOutcome.FAILED)

            requires_polling = any(r.outcome is ConversionOutcome.POLLING for r in results)
            if requires_polling:
                report.retained += 1
            else:
                self.queue.delete(entry.id)
                report.completed += 1

        return report

    def _process_entry(self, entry: QueueEntry, submission: Submission,
                       assignment: Assignment) -> List[UserConversionResult]:
        users = self._affected_users(submission)
        logger.info(f"Convert {len(users)} submission attempt(s) for assignment {assignment.id}")
        return [self._convert_for_user(assignment, user_id, entry.submission_attempt) for user_id in users]

    def _affected_users(self, submission: Submission) -> List[int]:
        if not submission.is_group_submission:
            return [submission.user_id]
        return list(self.groups.get_active_members(submission.group_id))

    def _convert_for_user(self, assignment: Assignment, user_id: int, attempt_number: int) -> UserConversionResult:
        try:
            status = self.converter.get_combined_status(assignment, user_id, attempt_number)
            if status in IN_PROGRESS_STATUSES:
                # Not converted yet; check again next run.
                return UserConversionResult(user_id, ConversionOutcome.POLLING)

            self.converter.generate_page_images(assignment, user_id, attempt_number, False)
            self.converter.generate_page_images(assignment, user_id, attempt_number, True)
        except ConversionError as e:
            logger.error(f"Conversion failed with error: {e.error_code} (assignment {assignment.id}, user {user_id})")
            return UserConversionResult(user_id, ConversionOutcome.FAILED, e.error_code)

        return UserConversionResult(user_id, ConversionOutcome.CONVERTED)
