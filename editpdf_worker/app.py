"""Scheduled task - prepares queued submissions for PDF annotation."""
import signal
import sys
import time

from editpdf_worker.logging_conf import logger
from editpdf_worker import settings
from editpdf_worker.converter import DocumentServiceClient
from editpdf_worker.db import Database
from editpdf_worker.drainer import DrainReport, QueueDrainer
from editpdf_worker.queue.store import QueueStore
from editpdf_worker.repositories import AssignmentResolver, GroupMembership, SubmissionStore

TASK_NAME = "Prepare submissions for annotation"


class Application:
    """Wires the queue drainer to Postgres and the document service and runs it."""

    def __init__(self):
        self.db = Database(settings.DATABASE_URL, settings.DB_TABLE_PREFIX)
        self.converter = DocumentServiceClient(
            settings.DOCUMENT_SERVICE_URL or "",
            token=settings.DOCUMENT_SERVICE_TOKEN,
            timeout=settings.DOCUMENT_SERVICE_TIMEOUT,
        )
        self.drainer = QueueDrainer(
            QueueStore(self.db),
            SubmissionStore(self.db),
            AssignmentResolver(self.db),
            GroupMembership(self.db),
            self.converter,
            attempt_limit=settings.CONVERSION_ATTEMPT_LIMIT,
        )
        self.running = False
        self.last_run_failed = False

    def start(self):
        """Start the application."""
        logger.info("=" * 50)
        logger.info(TASK_NAME)
        logger.info("=" * 50)
        logger.info(f"Document service: {settings.DOCUMENT_SERVICE_URL}")
        logger.info(f"Conversion attempt limit: {settings.CONVERSION_ATTEMPT_LIMIT}")
        logger.info(f"Schedule interval: {settings.SCHEDULE_INTERVAL}s")
        logger.info("=" * 50)

        settings.validate_config()
        self.running = True

    def stop(self):
        """Stop the application."""
        if not self.running:
            return
        self.running = False
        self.db.close()
        logger.info("Stopped")

    def run_once(self) -> DrainReport:
        """Execute the task once."""
        report = self.drainer.drain()
        logger.info(f"Conversion run finished: {report.summary()}")
        return report

    def run(self):
        """Main loop. Runs never overlap: the next one starts after the previous returns."""
        self.start()

        while self.running:
            try:
                self.run_once()
                self.last_run_failed = False
            except KeyboardInterrupt:
                break
            except Exception as e:
                # Retried on the next run; the attempt counters are already stored.
                logger.error(f"Conversion run failed: {e}", exc_info=True)
                self.last_run_failed = True

            if settings.RUN_ONCE:
                break

            for _ in range(settings.SCHEDULE_INTERVAL):
                if not self.running:
                    break
                time.sleep(1)

        self.stop()


def main():
    """Entry point."""
    app = Application()

    def signal_handler(sig, frame):
        logger.info(f"Received signal {sig}")
        app.stop()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        app.run()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    if app.last_run_failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
