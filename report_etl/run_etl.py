"""
Daily Report Job Orchestrator

Coordinates one scheduled tick:
- Check whether today is a working day
- Extract metrics from the CRM
- Transform them into the report grid
- Load the grid into Google Sheets
- Notify the operator of the outcome
"""

import argparse
import logging
import os
import signal
import sys
import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Callable, List, Optional

from config.settings import Settings
from report_etl.errors import ConfigurationError, ReportETLError
from report_etl.extract import MetricsFetcher, parse_payload
from report_etl.load import GoogleSheetsWriter
from report_etl.notify import FailureDetails, Notifier, build_notifier, describe_exception
from report_etl.scheduler import DailyScheduler
from report_etl.transform import map_payload
from report_etl.workdays import HolidaySource, WorkingDayGate

logger = logging.getLogger(__name__)

JOB_NAME = "DailyReportJob"


class JobState(str, Enum):
    CHECK_DAY = "check_day"
    SKIPPED = "skipped"
    FETCH = "fetch"
    MAP = "map"
    WRITE = "write"
    NOTIFY_SUCCESS = "notify_success"
    NOTIFY_FAILURE = "notify_failure"


class Outcome(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


TERMINAL_STATES = {JobState.SKIPPED, JobState.NOTIFY_SUCCESS, JobState.NOTIFY_FAILURE}


@dataclass
class JobRun:
    """Record of one tick, kept for logging only."""
    timestamp: datetime
    day: date
    outcome: Optional[Outcome] = None
    error: Optional[str] = None
    trail: List[JobState] = field(default_factory=list)

    @property
    def state(self) -> Optional[JobState]:
        return self.trail[-1] if self.trail else None


class JobOrchestrator:
    """
    Runs the gate -> fetch -> map -> write -> notify pipeline for one tick.

    Every stage runs once; there are no retries. Any stage failure becomes a
    single failure notification and the tick ends. Notification problems
    never change the outcome.
    """

    def __init__(
        self,
        gate: WorkingDayGate,
        fetcher: MetricsFetcher,
        writer: GoogleSheetsWriter,
        notifier: Notifier,
        clock: Optional[Callable[[], date]] = None,
        job_name: str = JOB_NAME,
    ):
        """
        Initialize job orchestrator.

        Args:
            gate: Working-day gate
            fetcher: Object with ``fetch() -> str``
            writer: Object with ``write(grid)``
            notifier: Operator notification channel
            clock: Returns today's date (defaults to the gate's clock)
            job_name: Name used in the success message
        """
        self.gate = gate
        self.fetcher = fetcher
        self.writer = writer
        self.notifier = notifier
        self.clock = clock or gate.clock
        self.job_name = job_name

    def __call__(self) -> JobRun:
        return self.run()

    def run(self, today: Optional[date] = None) -> JobRun:
        """
        Execute one tick.

        Args:
            today: Report date (defaults to the clock)

        Returns:
            JobRun describing the outcome
        """
        today = today or self.clock()
        job_run = JobRun(timestamp=datetime.now(timezone.utc), day=today)

        logger.info("=" * 60)
        logger.info(f"Executing {self.job_name} for {today.isoformat()}")
        logger.info("=" * 60)

        self._transition(job_run, JobState.CHECK_DAY)
        try:
            working_day = self.gate.is_working_day(today)
        except Exception as e:
            logger.error(f"Working-day check failed: {e}", exc_info=True)
            return self._fail(job_run, "WorkingDayGate", "is_working_day",
                              "Error checking working day", e)

        if not working_day:
            logger.info("Today is not a working day. Skipping job execution.")
            self._transition(job_run, JobState.SKIPPED)
            job_run.outcome = Outcome.SKIPPED
            return job_run

        try:
            self._transition(job_run, JobState.FETCH)
            payload = parse_payload(self.fetcher.fetch())

            self._transition(job_run, JobState.MAP)
            grid = map_payload(payload, today)

            self._transition(job_run, JobState.WRITE)
            self.writer.write(grid)
        except ReportETLError as e:
            logger.error(f"{self.job_name} failed: {e}", exc_info=True)
            return self._fail(job_run, e.component, e.operation, e.message, e.cause or e.__cause__)
        except Exception as e:
            logger.error(f"{self.job_name} failed unexpectedly: {e}", exc_info=True)
            return self._fail(job_run, "JobOrchestrator", job_run.state.value,
                              f"Error executing {self.job_name}", e)

        self._transition(job_run, JobState.NOTIFY_SUCCESS)
        job_run.outcome = Outcome.SUCCESS
        self._notify(lambda: self.notifier.success(self.job_name))
        self._log_summary(job_run)
        return job_run

    def _fail(
        self,
        job_run: JobRun,
        component: str,
        operation: str,
        message: str,
        cause: Optional[BaseException],
    ) -> JobRun:
        self._transition(job_run, JobState.NOTIFY_FAILURE)
        job_run.outcome = Outcome.FAILED
        job_run.error = message if cause is None else f"{message} ({describe_exception(cause)})"
        details = FailureDetails(
            component=component,
            operation=operation,
            message=message,
            cause=cause,
        )
        self._notify(lambda: self.notifier.failure(details))
        self._log_summary(job_run)
        return job_run

    @staticmethod
    def _notify(send: Callable[[], None]) -> None:
        try:
            send()
        except Exception as e:
            logger.error(f"Notification failed: {e}", exc_info=True)

    @staticmethod
    def _transition(job_run: JobRun, state: JobState) -> None:
        logger.debug(f"{job_run.state.value if job_run.state else 'start'} -> {state.value}")
        job_run.trail.append(state)

    def _log_summary(self, job_run: JobRun) -> None:
        duration = (datetime.now(timezone.utc) - job_run.timestamp).total_seconds()
        logger.info(f"{self.job_name} finished with outcome: {job_run.outcome.value}")
        logger.info(f"Duration: {duration:.2f} seconds")
        if job_run.error:
            logger.info(f"Error: {job_run.error}")


def setup_logging(log_file: str = "logs/report_etl.log", level: str = "INFO") -> None:
    """
    Configure logging for the report job.

    Args:
        log_file: Path to log file
        level: Console log level name
    """
    log_dir = os.path.dirname(log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # File handler
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
    console_handler.setFormatter(formatter)

    # Root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    # Third-party clients are chatty at DEBUG
    for noisy in ("urllib3", "apscheduler", "google"):
        logging.getLogger(noisy).setLevel(logging.INFO)


def build_orchestrator(settings: Settings) -> JobOrchestrator:
    """
    Wire collaborators from settings.

    Raises:
        ConfigurationError: If a collaborator cannot be configured
    """
    tz = settings.tzinfo

    def today() -> date:
        return datetime.now(tz).date()

    notifier = build_notifier(settings)
    holidays = HolidaySource(settings.HOLIDAY_API_URL, timeout=settings.http_timeout)
    gate = WorkingDayGate(holidays.fetch, notifier=notifier, clock=today)
    fetcher = MetricsFetcher(settings.METRICS_API_URL, timeout=settings.http_timeout)
    writer = GoogleSheetsWriter(
        credentials_path=settings.GOOGLE_CREDENTIALS_PATH,
        spreadsheet_id=settings.GOOGLE_SHEET_ID,
        sheet_name=settings.SHEET_NAME,
        cell_range=settings.SHEET_RANGE,
    )
    return JobOrchestrator(gate, fetcher, writer, notifier, clock=today)


def wait_for_shutdown(stop: threading.Event) -> None:
    """Block until SIGINT or SIGTERM sets ``stop``."""

    def _handle(signum, _frame):
        logger.info(f"Received signal {signal.Signals(signum).name}")
        stop.set()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)
    while not stop.wait(timeout=1.0):
        pass


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Daily CRM -> Google Sheets report")
    parser.add_argument("--once", action="store_true",
                        help="run a single tick now and exit")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the report job."""
    args = parse_args(argv)

    try:
        settings = Settings()
    except ConfigurationError as e:
        logging.basicConfig(level=logging.INFO)
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    setup_logging(settings.LOG_FILE, settings.LOG_LEVEL)
    logger.info(f"Starting {settings.APP_NAME} version {settings.APP_VERSION}")
    logger.debug(repr(settings))

    try:
        orchestrator = build_orchestrator(settings)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    if args.once:
        job_run = orchestrator.run()
        sys.exit(1 if job_run.outcome == Outcome.FAILED else 0)

    scheduler = DailyScheduler(settings.schedule_time, settings.TIMEZONE)
    scheduler.register(orchestrator)
    try:
        scheduler.start()
        logger.info(
            "Application started successfully. The job will run according to the schedule. "
            "Press Ctrl+C to exit."
        )
        wait_for_shutdown(threading.Event())
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        scheduler.shutdown(wait=True)
        logger.info("Application shutting down")


if __name__ == "__main__":
    main()
