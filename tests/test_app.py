"""
Tests for the scheduled task runner.
"""
from unittest.mock import MagicMock, patch

import pytest

from editpdf_worker import app as app_module
from editpdf_worker import settings
from editpdf_worker.drainer import DrainReport


@pytest.fixture
def application(monkeypatch):
    monkeypatch.setattr(settings, "RUN_ONCE", True)
    monkeypatch.setattr(settings, "validate_config", lambda: None)
    application = app_module.Application()
    application.drainer = MagicMock()
    application.drainer.drain.return_value = DrainReport(fetched=2, completed=2)
    application.db = MagicMock()
    return application


class TestApplication:
    def test_wires_attempt_limit_from_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "CONVERSION_ATTEMPT_LIMIT", 5)

        application = app_module.Application()

        assert application.drainer.attempt_limit == 5
        assert application.drainer.batch_size == 100

    def test_run_once_returns_report(self, application):
        report = application.run_once()

        assert report.completed == 2
        application.drainer.drain.assert_called_once_with()

    def test_single_run_mode(self, application):
        application.run()

        application.drainer.drain.assert_called_once_with()
        application.db.close.assert_called_once()
        assert application.last_run_failed is False
        assert application.running is False

    def test_failed_run_is_logged_not_raised(self, application):
        application.drainer.drain.side_effect = RuntimeError("database went away")

        application.run()

        assert application.last_run_failed is True

    @patch("editpdf_worker.app.time.sleep")
    def test_loop_runs_until_stopped(self, mock_sleep, application, monkeypatch):
        monkeypatch.setattr(settings, "RUN_ONCE", False)
        monkeypatch.setattr(settings, "SCHEDULE_INTERVAL", 2)
        runs = []

        def drain():
            runs.append(1)
            if len(runs) == 3:
                application.running = False
            return DrainReport()

        application.drainer.drain.side_effect = drain

        application.run()

        assert len(runs) == 3
        assert mock_sleep.call_count == 4


class TestMain:
    @patch("editpdf_worker.app.signal.signal")
    @patch("editpdf_worker.app.Application")
    def test_configuration_error_exits_with_status_one(self, MockApp, _signal):
        MockApp.return_value.run.side_effect = ValueError("Config errors")

        with pytest.raises(SystemExit) as exc:
            app_module.main()

        assert exc.value.code == 1

    @patch("editpdf_worker.app.signal.signal")
    @patch("editpdf_worker.app.Application")
    def test_failed_run_exits_with_status_one(self, MockApp, _signal):
        MockApp.return_value.last_run_failed = True

        with pytest.raises(SystemExit) as exc:
            app_module.main()

        assert exc.value.code == 1

    @patch("editpdf_worker.app.signal.signal")
    @patch("editpdf_worker.app.Application")
    def test_successful_run_returns(self, MockApp, _signal):
        MockApp.return_value.last_run_failed = False

        app_module.main()

        MockApp.return_value.run.assert_called_once_with()
