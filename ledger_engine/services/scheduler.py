"""
BankingScheduler: in-process polling scheduler for the banking jobs.

One ScheduledJob per cadence, each with its own trigger:
    - scheduled transactions   every SCHEDULED_SWEEP_MINUTES
    - daily interest           daily at INTEREST_HOUR
    - balance reconciliation   daily at RECONCILIATION_HOUR
    - weekly volume report     WEEKLY_REPORT_WEEKDAY at WEEKLY_REPORT_HOUR
    - monthly volume report    MONTHLY_REPORT_DAY at MONTHLY_REPORT_HOUR

tick(now) fires every job whose next run has passed. start() / stop()
run tick() on a daemon thread. A job still running when its next run
comes round is skipped, and a job that raises is logged and marked
FAILED without stopping the others.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable

from sqlalchemy.orm import Session

from ledger_engine.clock import Clock
from ledger_engine.config import Settings, get_settings
from ledger_engine.logging_config import get_logger
from ledger_engine.services import jobs as banking_jobs

logger = get_logger("scheduler")

JobFunc = Callable[[Session, datetime], Any]


class IntervalTrigger:
    """Fires every fixed number of minutes."""

    def __init__(self, minutes: int):
        if minutes <= 0:
            raise ValueError(f"Interval must be positive: {minutes}")
        self.interval = timedelta(minutes=minutes)

    def next_after(self, moment: datetime) -> datetime:
        return moment + self.interval

    def describe(self) -> str:
        return f"every {int(self.interval.total_seconds() // 60)} minutes"


class CalendarTrigger:
    """
    Fires at hour:minute on matching days.

    weekday uses Python's convention (0 = Monday). day is a day of
    the month; months without that day are skipped.
    """

    def __init__(
        self,
        hour: int,
        minute: int = 0,
        weekday: int | None = None,
        day: int | None = None,
    ):
        if not 0 <= hour <= 23 or not 0 <= minute <= 59:
            raise ValueError(f"Invalid time of day: {hour:02d}:{minute:02d}")
        if weekday is not None and not 0 <= weekday <= 6:
            raise ValueError(f"Invalid weekday: {weekday}")
        if day is not None and not 1 <= day <= 31:
            raise ValueError(f"Invalid day of month: {day}")
        self.hour = hour
        self.minute = minute
        self.weekday = weekday
        self.day = day

    def matches_day(self, moment: datetime) -> bool:
        if self.weekday is not None and moment.weekday() != self.weekday:
            return False
        if self.day is not None and moment.day != self.day:
            return False
        return True

    def next_after(self, moment: datetime) -> datetime:
        candidate = moment.replace(hour=self.hour, minute=self.minute, second=0, microsecond=0)
        if candidate <= moment:
            candidate += timedelta(days=1)
        while not self.matches_day(candidate):
            candidate += timedelta(days=1)
        return candidate

    def describe(self) -> str:
        when = f"{self.hour:02d}:{self.minute:02d}"
        if self.day is not None:
            return f"day {self.day} of each month at {when}"
        if self.weekday is not None:
            names = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
            return f"every {names[self.weekday]} at {when}"
        return f"daily at {when}"


@dataclass
class ScheduledJob:
    name: str
    trigger: IntervalTrigger | CalendarTrigger
    func: JobFunc
    description: str = ""
    next_run: datetime | None = None
    last_run: datetime | None = None
    last_status: str | None = None
    last_result: Any = None
    _running: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def is_running(self) -> bool:
        return self._running.locked()


@dataclass(frozen=True)
class JobStatus:
    name: str
    description: str
    schedule: str
    next_run: datetime | None
    last_run: datetime | None
    last_status: str | None
    running: bool


def default_jobs(config: Settings | None = None) -> list[ScheduledJob]:
    """The five banking jobs at their configured cadences."""
    config = config or get_settings()
    return [
        ScheduledJob(
            name="scheduled_transactions",
            trigger=IntervalTrigger(minutes=config.SCHEDULED_SWEEP_MINUTES),
            func=banking_jobs.process_scheduled_transactions,
            description="Executes SCHEDULED transactions that have fallen due",
        ),
        ScheduledJob(
            name="daily_interest",
            trigger=CalendarTrigger(hour=config.INTEREST_HOUR),
            func=banking_jobs.accrue_daily_interest,
            description="Credits daily interest to eligible savings accounts",
        ),
        ScheduledJob(
            name="balance_reconciliation",
            trigger=CalendarTrigger(hour=config.RECONCILIATION_HOUR),
            func=banking_jobs.reconcile_balances,
            description="Charges maintenance fees and recomputes available balances",
        ),
        ScheduledJob(
            name="weekly_report",
            trigger=CalendarTrigger(
                hour=config.WEEKLY_REPORT_HOUR, weekday=config.WEEKLY_REPORT_WEEKDAY
            ),
            func=banking_jobs.weekly_report,
            description="Transaction volume over the trailing 7 days",
        ),
        ScheduledJob(
            name="monthly_report",
            trigger=CalendarTrigger(
                hour=config.MONTHLY_REPORT_HOUR, day=config.MONTHLY_REPORT_DAY
            ),
            func=banking_jobs.monthly_report,
            description="Transaction volume over the trailing 30 days",
        ),
    ]


class BankingScheduler:
    """In-process polling scheduler.

    Each job run gets its own session from session_factory and is
    closed afterwards; the jobs commit their own units of work.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        jobs: list[ScheduledJob] | None = None,
        tick_interval_seconds: int | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or Clock()
        self._jobs: dict[str, ScheduledJob] = {}
        self._tick_interval = (
            tick_interval_seconds
            if tick_interval_seconds is not None
            else get_settings().SCHEDULER_TICK_SECONDS
        )
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

        started_at = self._clock.now()
        for job in jobs if jobs is not None else default_jobs():
            job.next_run = job.trigger.next_after(started_at)
            self._jobs[job.name] = job

    # --- Public API ---

    def tick(self, now: datetime | None = None) -> dict[str, Any]:
        """
        Fire every job whose next run is at or before now.

        Returns {job name: job result} for the jobs that completed.
        """
        now = now or self._clock.now()
        results: dict[str, Any] = {}
        for job in list(self._jobs.values()):
            if self._stop_event.is_set():
                break
            if job.next_run is not None and job.next_run > now:
                continue
            if self._fire(job, now):
                results[job.name] = job.last_result
        return results

    def run_job(self, name: str, now: datetime | None = None) -> Any:
        """Run one job immediately, outside its cadence. Raises KeyError for unknown names."""
        job = self._jobs[name]
        self._fire(job, now or self._clock.now(), reschedule=False)
        return job.last_result

    def status(self) -> list[JobStatus]:
        return [
            JobStatus(
                name=job.name,
                description=job.description,
                schedule=job.trigger.describe(),
                next_run=job.next_run,
                last_run=job.last_run,
                last_status=job.last_status,
                running=job.is_running,
            )
            for job in self._jobs.values()
        ]

    def start(self) -> None:
        """Start polling on a background daemon thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="banking-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info("scheduler_started", extra={"tick_interval": self._tick_interval})

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the current tick to finish."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("scheduler_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # --- Internal ---

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            self.tick()
            self._stop_event.wait(timeout=self._tick_interval)

    def _fire(self, job: ScheduledJob, now: datetime, reschedule: bool = True) -> bool:
        """Run a job once. Returns False when it was skipped or failed."""
        if not job._running.acquire(blocking=False):
            logger.warning("job_skipped_still_running", extra={"job": job.name})
            return False

        session = self._session_factory()
        try:
            job.last_result = job.func(session, now)
            job.last_status = "COMPLETED"
            logger.info("job_completed", extra={"job": job.name, "run_at": now.isoformat()})
            return True
        except Exception:
            session.rollback()
            job.last_status = "FAILED"
            job.last_result = None
            logger.exception("job_failed", extra={"job": job.name, "run_at": now.isoformat()})
            return False
        finally:
            session.close()
            job.last_run = now
            if reschedule:
                job.next_run = job.trigger.next_after(now)
            job._running.release()
