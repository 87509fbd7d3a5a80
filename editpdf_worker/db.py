"""Database connection handling for the Moodle tables the worker reads."""
import psycopg2
from psycopg2.extras import RealDictCursor
from contextlib import contextmanager


class Database:
    """Lazy psycopg2 connection with a transactional cursor."""

    def __init__(self, dsn: str, table_prefix: str = "mdl_"):
        self.dsn = dsn
        self.table_prefix = table_prefix
        self._conn = None

    @property
    def conn(self):
        """Get or create database connection."""
        if self._conn is None or self._conn.closed:
            self._conn = psycopg2.connect(self.dsn)
        return self._conn

    def close(self):
        """Close database connection."""
        if self._conn and not self._conn.closed:
            self._conn.close()
            self._conn = None

    def table(self, name: str) -> str:
        """Prefixed table name, e.g. ``assign_submission`` -> ``mdl_assign_submission``."""
        return f"{self.table_prefix}{name}"

    @contextmanager
    def cursor(self):
        """Context manager for cursor with auto-commit/rollback."""
        cur = self.conn.cursor(cursor_factory=RealDictCursor)
        try:
            yield cur
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise
        finally:
            cur.close()
