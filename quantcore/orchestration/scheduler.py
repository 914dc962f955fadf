"""Trading Scheduler - APScheduler integration for the engine's periodic drivers.

The engine runs two interval tasks (strategy evaluation and queue drain) and
one date task per dispatched order (its settlement). All of them execute on a
single worker thread, which therefore is the only thread that mutates the
ledger and the order queue; timers merely post jobs to it.
"""

from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

import pytz
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, EVENT_JOB_MISSED
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from quantcore.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEZONE = "Asia/Seoul"


class TradingScheduler:
    """APScheduler wrapper with a single owner thread.

    Example:
        >>> scheduler = TradingScheduler({"timezone": "Asia/Seoul"})
        >>> scheduler.register_task(
        ...     name="drain",
        ...     func=engine.run_drain_cycle,
        ...     trigger="interval",
        ...     trigger_args={"seconds": 1.0},
        ... )
        >>> scheduler.start()
    """

    def __init__(self, config: Optional[dict] = None):
        """Initialize trading scheduler.

        Args:
            config: Configuration dictionary with scheduler settings
                - timezone: Timezone for scheduling (default: Asia/Seoul)
                - coalesce: Combine missed runs of a task (default: True)
                - misfire_grace_time: Seconds a periodic run may be late (default: 1)
        """
        self.config = config or {}
        self.timezone = pytz.timezone(self.config.get("timezone", DEFAULT_TIMEZONE))

        # One worker thread: every job runs on the same owner thread
        self.scheduler = BackgroundScheduler(
            timezone=self.timezone,
            executors={"default": ThreadPoolExecutor(max_workers=1)},
            job_defaults={
                "coalesce": self.config.get("coalesce", True),
                "max_instances": 1,
                "misfire_grace_time": self.config.get("misfire_grace_time", 1),
            },
        )

        self.tasks: Dict[str, dict] = {}

        self.scheduler.add_listener(
            self._on_job_event,
            EVENT_JOB_EXECUTED | EVENT_JOB_ERROR | EVENT_JOB_MISSED,
        )

        logger.info("TradingScheduler initialized (timezone: %s)", self.timezone)

    def register_task(
        self,
        name: str,
        func: Callable,
        trigger: str,
        trigger_args: dict,
    ) -> None:
        """Register a recurring or one-shot named task.

        Args:
            name: Unique task identifier
            func: Function to execute
            trigger: Trigger type ('interval' or 'date')
            trigger_args: Arguments for the trigger

        Example:
            >>> scheduler.register_task(
            ...     name="evaluate",
            ...     func=engine.run_evaluation_cycle,
            ...     trigger="interval",
            ...     trigger_args={"seconds": 2.0},
            ... )
        """
        if name in self.tasks:
            logger.warning("Task '%s' already registered, replacing", name)

        self.tasks[name] = {
            "func": func,
            "trigger": trigger,
            "trigger_args": trigger_args,
        }

        self.scheduler.add_job(
            func=self._wrap_task(name, func),
            trigger=self._create_trigger(trigger, trigger_args),
            id=name,
            name=name,
            replace_existing=True,
        )

        logger.info("Registered task '%s' with trigger %s %s", name, trigger, trigger_args)

    def schedule_once(
        self,
        job_id: str,
        func: Callable,
        delay: float,
        args: tuple = (),
    ) -> None:
        """Run ``func(*args)`` once on the owner thread after ``delay`` seconds.

        One-shot jobs are not tracked in ``tasks`` and always run, however
        late the owner thread picks them up.

        Args:
            job_id: Unique job identifier
            func: Function to execute
            delay: Seconds from now
            args: Positional arguments for ``func``
        """
        run_date = datetime.now(self.timezone) + timedelta(seconds=max(0.0, delay))
        self.scheduler.add_job(
            func=func,
            trigger=DateTrigger(run_date=run_date, timezone=self.timezone),
            args=args,
            id=job_id,
            name=job_id,
            misfire_grace_time=None,
            replace_existing=True,
        )

    def _create_trigger(self, trigger_type: str, args: dict):
        """Create APScheduler trigger from type and arguments."""
        if trigger_type == "interval":
            return IntervalTrigger(timezone=self.timezone, **args)
        elif trigger_type == "date":
            return DateTrigger(timezone=self.timezone, **args)
        else:
            raise ValueError(f"Unknown trigger type: {trigger_type}")

    def _wrap_task(self, task_name: str, func: Callable) -> Callable:
        """Wrap a task so failures are logged with the task name."""

        def wrapped() -> Any:
            try:
                return func()
            except Exception as e:
                logger.error("Task '%s' failed: %s", task_name, e, exc_info=True)
                raise

        return wrapped

    def _on_job_event(self, event) -> None:
        """Event listener for job execution, errors and misfires."""
        if getattr(event, "exception", None):
            logger.error("Job '%s' raised exception: %s", event.job_id, event.exception)
        elif event.code == EVENT_JOB_MISSED:
            logger.warning("Job '%s' missed its run time", event.job_id)
        else:
            logger.debug("Job '%s' executed successfully", event.job_id)

    def start(self) -> None:
        """Start the scheduler (non-blocking)."""
        if self.scheduler.running:
            logger.warning("Scheduler already running")
            return

        self.scheduler.start()
        logger.info("Scheduler started with %d job(s)", len(self.scheduler.get_jobs()))

    def stop(self, wait: bool = True) -> None:
        """Stop the scheduler.

        Args:
            wait: Wait for the job in progress to finish. Jobs not yet
                started (including pending settlements) are discarded.
        """
        if not self.scheduler.running:
            logger.warning("Scheduler not running")
            return

        logger.info("Shutting down scheduler...")
        self.scheduler.shutdown(wait=wait)
        logger.info("Scheduler stopped")

    def is_running(self) -> bool:
        return self.scheduler.running

    def get_jobs(self) -> list:
        return self.scheduler.get_jobs()

    def remove_job(self, job_id: str) -> None:
        self.scheduler.remove_job(job_id)
        self.tasks.pop(job_id, None)
        logger.info("Removed job '%s'", job_id)
