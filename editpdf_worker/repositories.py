"""Database lookups for submissions, assignments and group membership."""
from typing import List, Optional

from editpdf_worker.db import Database
from editpdf_worker.models import Assignment, Submission

# Context level of a course module context.
CONTEXT_MODULE = 70


class AssignmentNotFoundError(LookupError):
    """The assignment has no course module (or module context)."""

    def __init__(self, assignment_id: int):
        super().__init__(f"No course module for assignment {assignment_id}")
        self.assignment_id = assignment_id


class SubmissionStore:
    """Loads submissions by id."""

    def __init__(self, db: Database):
        self.db = db

    def get_by_id(self, submission_id: int) -> Optional[Submission]:
        """Return the submission, or None if it has been deleted."""
        with self.db.cursor() as cur:
            cur.execute(f"""
                SELECT id, assignment, userid, groupid
                FROM {self.db.table('assign_submission')}
                WHERE id = %s
            """, (submission_id,))
            row = cur.fetchone()
        return Submission.from_row(row) if row else None


class AssignmentResolver:
    """Resolves an assignment instance to its course module and context."""

    def __init__(self, db: Database):
        self.db = db

    def get_assignment(self, assignment_id: int) -> Assignment:
        with self.db.cursor() as cur:
            cur.execute(f"""
                SELECT cm.id AS cmid, cm.course, cm.instance, ctx.id AS contextid
                FROM {self.db.table('course_modules')} cm
                JOIN {self.db.table('modules')} md
                  ON md.id = cm.module AND md.name = 'assign'
                JOIN {self.db.table('context')} ctx
                  ON ctx.instanceid = cm.id AND ctx.contextlevel = %s
                WHERE cm.instance = %s
            """, (CONTEXT_MODULE, assignment_id))
            row = cur.fetchone()
        if not row:
            raise AssignmentNotFoundError(assignment_id)
        return Assignment.from_row(row)


class GroupMembership:
    """Resolves the active members of a submission group."""

    def __init__(self, db: Database):
        self.db = db

    def get_active_members(self, group_id: int) -> List[int]:
        """User ids of non-deleted, non-suspended members of the group."""
        with self.db.cursor() as cur:
            cur.execute(f"""
                SELECT gm.userid
                FROM {self.db.table('groups_members')} gm
                JOIN {self.db.table('user')} u ON u.id = gm.userid
                WHERE gm.groupid = %s
                  AND u.deleted = 0
                  AND u.suspended = 0
                ORDER BY gm.userid ASC
            """, (group_id,))
            return [int(row["userid"]) for row in cur.fetchall()]
