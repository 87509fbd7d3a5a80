"""
Tests for DocumentServiceClient.

requests.Session.request is patched per test; time.sleep is patched so
retries do not wait.
"""
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from unittest.mock import MagicMock, patch

import pytest
import requests

from editpdf_worker.converter import CombinedStatus, ConversionError, DocumentServiceClient
from editpdf_worker.drainer import QueueDrainer
from editpdf_worker.queue.models import QueueEntry
from editpdf_worker.models import Assignment
from tests.fixtures.fakes import (
    FakeAssignmentResolver,
    FakeGroupMembership,
    FakeQueueStore,
    FakeSubmissionStore,
    make_submission,
)

ASSIGNMENT = Assignment(id=7, course_id=2, course_module_id=55, context_id=300)


def make_response(status_code=200, body=None, headers=None):
    response = MagicMock()
    response.status_code = status_code
    response.headers = headers or {}
    response.content = b"{}" if body is not None else b""
    if body is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def client():
    return DocumentServiceClient("http://docs.example/", token="secret", timeout=5)


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("editpdf_worker.converter.time.sleep") as mock_sleep:
        yield mock_sleep


class TestCombinedStatus:
    def test_status_parsed(self, client):
        with patch.object(client.session, "request", return_value=make_response(body={"status": 2})) as req:
            status = client.get_combined_status(ASSIGNMENT, 42, 1)

        assert status is CombinedStatus.COMPLETE
        req.assert_called_once_with(
            method="GET",
            url="http://docs.example/assignments/7/users/42/attempts/1/combined",
            json=None,
            timeout=5,
        )

    def test_bearer_token_set(self, client):
        assert client.session.headers["Authorization"] == "Bearer secret"

    @pytest.mark.parametrize("body", [{}, {"status": "nope"}, {"status": 99}])
    def test_invalid_status(self, client, body):
        with patch.object(client.session, "request", return_value=make_response(body=body)):
            with pytest.raises(ConversionError) as exc:
                client.get_combined_status(ASSIGNMENT, 42, 1)
        assert exc.value.error_code == "invalidstatus"


class TestPageImages:
    def test_readonly_flag_sent(self, client):
        with patch.object(client.session, "request", return_value=make_response(body=None)) as req:
            client.generate_page_images(ASSIGNMENT, 42, 1, True)

        assert req.call_args.kwargs["method"] == "POST"
        assert req.call_args.kwargs["url"].endswith("/attempts/1/page-images")
        assert req.call_args.kwargs["json"] == {"readonly": True}


class TestErrors:
    def test_error_code_from_body(self, client):
        response = make_response(status_code=422, body={"errorcode": "nopdf"})
        with patch.object(client.session, "request", return_value=response):
            with pytest.raises(ConversionError) as exc:
                client.generate_page_images(ASSIGNMENT, 42, 1, False)
        assert exc.value.error_code == "nopdf"

    def test_error_code_from_status(self, client):
        with patch.object(client.session, "request", return_value=make_response(status_code=404)):
            with pytest.raises(ConversionError) as exc:
                client.get_combined_status(ASSIGNMENT, 42, 1)
        assert exc.value.error_code == "http404"

    def test_server_error_is_retried(self, client, no_sleep):
        responses = [make_response(status_code=503), make_response(body={"status": 1})]
        with patch.object(client.session, "request", side_effect=responses) as req:
            status = client.get_combined_status(ASSIGNMENT, 42, 1)

        assert status is CombinedStatus.READY
        assert req.call_count == 2
        no_sleep.assert_called_once_with(1)

    def test_server_error_gives_up_after_retries(self, client):
        with patch.object(client.session, "request", return_value=make_response(status_code=500)) as req:
            with pytest.raises(ConversionError) as exc:
                client.get_combined_status(ASSIGNMENT, 42, 1)

        assert req.call_count == 4
        assert exc.value.error_code == "http500"

    def test_rate_limit_waits_for_retry_after(self, client, no_sleep):
        responses = [
            make_response(status_code=429, headers={"Retry-After": "3"}),
            make_response(body={"status": 2}),
        ]
        with patch.object(client.session, "request", side_effect=responses):
            client.get_combined_status(ASSIGNMENT, 42, 1)

        no_sleep.assert_called_once_with(3)

    @pytest.mark.parametrize("header,expected_wait", [
        ("Wed, 21 Oct 2015 07:28:00 GMT", 0),
        ("soon", 60),
        ("-5", 0),
    ])
    def test_rate_limit_with_non_numeric_retry_after(self, client, no_sleep, header, expected_wait):
        responses = [
            make_response(status_code=429, headers={"Retry-After": header}),
            make_response(body={"status": 2}),
        ]
        with patch.object(client.session, "request", side_effect=responses):
            status = client.get_combined_status(ASSIGNMENT, 42, 1)

        assert status is CombinedStatus.COMPLETE
        no_sleep.assert_called_once_with(expected_wait)

    def test_rate_limit_with_future_http_date(self, client, no_sleep):
        retry_at = datetime.now(timezone.utc) + timedelta(seconds=120)
        responses = [
            make_response(status_code=429, headers={"Retry-After": format_datetime(retry_at, usegmt=True)}),
            make_response(body={"status": 2}),
        ]
        with patch.object(client.session, "request", side_effect=responses):
            client.get_combined_status(ASSIGNMENT, 42, 1)

        waited = no_sleep.call_args[0][0]
        assert 100 <= waited <= 120

    def test_connection_error_becomes_conversion_error(self, client):
        with patch.object(client.session, "request",
                          side_effect=requests.exceptions.ConnectionError("refused")) as req:
            with pytest.raises(ConversionError) as exc:
                client.get_combined_status(ASSIGNMENT, 42, 1)

        assert req.call_count == 4
        assert exc.value.error_code == "requestfailed"


class TestDrainWithClient:
    def test_rate_limited_group_still_drains_whole_batch(self, client):
        queue = FakeQueueStore([QueueEntry(1, 100, 1, 0), QueueEntry(2, 101, 1, 0)])
        submissions = FakeSubmissionStore([
            make_submission(100, user_id=None, group_id=9),
            make_submission(101, user_id=42),
        ])
        groups = FakeGroupMembership({9: [11, 12]})
        rate_limited = make_response(status_code=429, headers={"Retry-After": "Wed, 21 Oct 2026 07:28:00 GMT"})

        def respond(method, url, json=None, timeout=None):
            if method == "GET":
                return make_response(body={"status": 2})
            return make_response(body=None)

        responses = [rate_limited]
        with patch.object(client.session, "request",
                          side_effect=lambda **kw: responses.pop() if responses else respond(**kw)):
            drainer = QueueDrainer(queue, submissions, FakeAssignmentResolver(), groups, client)
            report = drainer.drain()

        assert report.fetched == 2
        assert report.completed == 2
        assert report.failed_users == 0
        assert queue.rows == {}
