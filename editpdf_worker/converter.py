"""HTTP client for the document service that builds combined PDFs and page images."""
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import IntEnum
from typing import Optional, Dict, Any
import requests

from editpdf_worker.logging_conf import logger
from editpdf_worker.models import Assignment

MAX_RETRIES = 3
MAX_RATE_LIMIT_WAITS = 5


class CombinedStatus(IntEnum):
    """State of the combined PDF for one submission attempt."""

    FAILED = -1
    PENDING_INPUT = 0
    READY = 1
    COMPLETE = 2
    READY_PARTIAL = 3
    EMPTY = 4


# Statuses meaning the combined document is still being produced.
IN_PROGRESS_STATUSES = frozenset({
    CombinedStatus.READY,
    CombinedStatus.READY_PARTIAL,
    CombinedStatus.PENDING_INPUT,
})


class ConversionError(Exception):
    """A document service failure, identified by an error code."""

    def __init__(self, error_code: str, message: Optional[str] = None):
        super().__init__(message or error_code)
        self.error_code = error_code


class DocumentServiceClient:
    """Requests combined documents and page images from the document service."""

    def __init__(self, base_url: str, token: Optional[str] = None, timeout: int = 120):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def get_combined_status(self, assignment: Assignment, user_id: int, attempt_number: int) -> CombinedStatus:
        """Fetch (and trigger, if needed) the combined PDF and return its status."""
        data = self._request("GET", self._attempt_path(assignment, user_id, attempt_number, "combined"))
        try:
            return CombinedStatus(int(data["status"]))
        except (KeyError, TypeError, ValueError):
            raise ConversionError("invalidstatus", f"Unexpected combined document response: {data!r}")

    def generate_page_images(self, assignment: Assignment, user_id: int, attempt_number: int,
                             readonly: bool) -> None:
        """Render the page images, either the standard set or the readonly copy."""
        self._request(
            "POST",
            self._attempt_path(assignment, user_id, attempt_number, "page-images"),
            json={"readonly": readonly},
        )

    def _attempt_path(self, assignment: Assignment, user_id: int, attempt_number: int, resource: str) -> str:
        return f"/assignments/{assignment.id}/users/{user_id}/attempts/{attempt_number}/{resource}"

    def _request(self, method: str, endpoint: str, json: Optional[Dict[str, Any]] = None,
                 retry_count: int = 0, rate_limit_waits: int = 0) -> Dict[str, Any]:
        """Make API request with retry logic. Failures raise ConversionError."""
        url = f"{self.base_url}{endpoint}"

        try:
            response = self.session.request(method=method, url=url, json=json, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            if retry_count < MAX_RETRIES and isinstance(e, (requests.exceptions.ConnectionError, requests.exceptions.Timeout)):
                wait_time = 2 ** retry_count
                logger.warning(f"Document service unreachable ({e}). Retrying in {wait_time}s...")
                time.sleep(wait_time)
                return self._request(method, endpoint, json, retry_count + 1, rate_limit_waits)
            raise ConversionError("requestfailed", f"Document service request failed: {e}") from e

        if response.status_code == 429 and rate_limit_waits < MAX_RATE_LIMIT_WAITS:
            retry_after = self._retry_after(response.headers.get("Retry-After"))
            logger.warning(f"Rate limited. Waiting {retry_after}s...")
            time.sleep(retry_after)
            return self._request(method, endpoint, json, retry_count, rate_limit_waits + 1)

        if response.status_code >= 500 and retry_count < MAX_RETRIES:
            wait_time = 2 ** retry_count
            logger.warning(f"Server error {response.status_code}. Retrying in {wait_time}s...")
            time.sleep(wait_time)
            return self._request(method, endpoint, json, retry_count + 1, rate_limit_waits)

        if response.status_code >= 400:
            raise ConversionError(self._error_code(response), f"{method} {endpoint} -> HTTP {response.status_code}")

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise ConversionError("invalidresponse", f"Non-JSON response from {endpoint}") from e

    @staticmethod
    def _retry_after(value, default: int = 60) -> int:
        """Seconds to wait from a Retry-After header (delta-seconds or HTTP-date)."""
        if value is None:
            return default
        try:
            return max(0, int(value))
        except (TypeError, ValueError):
            pass
        try:
            retry_at = parsedate_to_datetime(str(value))
        except (TypeError, ValueError, IndexError):
            return default
        if retry_at is None:
            return default
        if retry_at.tzinfo is None:
            retry_at = retry_at.replace(tzinfo=timezone.utc)
        return max(0, int((retry_at - datetime.now(timezone.utc)).total_seconds()))

    @staticmethod
    def _error_code(response) -> str:
        """Error code from a ``{"errorcode": ...}`` body, else derived from the HTTP status."""
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("errorcode"):
            return str(body["errorcode"])
        return f"http{response.status_code}"
