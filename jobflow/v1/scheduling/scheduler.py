"""
Recurring trigger scheduler built on APScheduler.

Each trigger is a ``(cron, timezone, action)`` tuple fixed at registration.
Every fire runs under its own failure isolation: an action that raises is
logged and recorded, and never stops the scheduler or another trigger.
"""

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from pydantic import BaseModel

from jobflow.config.logging import get_logger
from jobflow.v1.core.exceptions import NotFoundError
from jobflow.v1.infra.jobs.models import utcnow
from jobflow.v1.scheduling.ledger import TriggerLedger

logger = get_logger(__name__)

TriggerAction = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class ScheduledTrigger:
    name: str
    cron: str
    timezone: str
    action: TriggerAction
    description: str = ""

    def cron_trigger(self) -> CronTrigger:
        return CronTrigger.from_crontab(self.cron, timezone=ZoneInfo(self.timezone))


class TriggerFireResult(BaseModel):
    trigger: str
    succeeded: bool
    skipped: bool = False
    manual: bool = False
    tick_at: datetime | None = None
    duration_ms: int = 0
    error: str | None = None
    result: Any | None = None


class TriggerInfo(BaseModel):
    name: str
    cron: str
    timezone: str
    description: str
    next_run_at: datetime | None = None


def _summarize(value: Any) -> Any:
    """Reduce an action's return value to something JSON friendly."""
    if value is None or isinstance(value, (str, int, float, bool, dict, list)):
        return value
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    summary = getattr(value, "summary", None)
    if callable(summary):
        return summary()
    return str(value)


class Scheduler:
    def __init__(
        self,
        ledger: TriggerLedger | None = None,
        misfire_grace_s: int = 60,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.ledger = ledger
        self.misfire_grace_s = misfire_grace_s
        self._clock = clock
        self._triggers: dict[str, ScheduledTrigger] = {}
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def register(self, trigger: ScheduledTrigger) -> None:
        """Add a trigger. Cadence and timezone cannot change once started."""
        if self.running:
            raise RuntimeError(
                f"Cannot register trigger '{trigger.name}': scheduler already started"
            )
        # Fail fast on a bad expression or timezone
        trigger.cron_trigger()
        self._triggers[trigger.name] = trigger

    def trigger(self, name: str) -> ScheduledTrigger:
        try:
            return self._triggers[name]
        except KeyError:
            raise NotFoundError(
                f"Trigger '{name}' not found", details={"trigger": name}
            ) from None

    def names(self) -> list[str]:
        return list(self._triggers)

    def start(self) -> None:
        if self.running:
            return

        self._scheduler = AsyncIOScheduler(
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": self.misfire_grace_s,
            },
            timezone=timezone.utc,
        )
        for trigger in self._triggers.values():
            self._scheduler.add_job(
                self.run_scheduled,
                trigger.cron_trigger(),
                args=[trigger.name],
                id=trigger.name,
                name=trigger.description or trigger.name,
                replace_existing=True,
            )
        self._scheduler.start()

        for info in self.describe():
            logger.info(
                "Scheduled trigger",
                trigger=info.name,
                cron=info.cron,
                timezone=info.timezone,
                next_run_at=info.next_run_at.isoformat() if info.next_run_at else None,
            )

    def shutdown(self) -> None:
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
        self._scheduler = None

    def describe(self) -> list[TriggerInfo]:
        now = self._clock()
        infos = []
        for trigger in self._triggers.values():
            next_run = None
            job = self._scheduler.get_job(trigger.name) if self.running else None
            if job is not None:
                next_run = job.next_run_time
            else:
                next_run = trigger.cron_trigger().get_next_fire_time(None, now)
            infos.append(
                TriggerInfo(
                    name=trigger.name,
                    cron=trigger.cron,
                    timezone=trigger.timezone,
                    description=trigger.description,
                    next_run_at=next_run.astimezone(timezone.utc) if next_run else None,
                )
            )
        return infos

    def current_tick(self, trigger: ScheduledTrigger) -> datetime:
        """
        The scheduled time this fire belongs to.

        APScheduler does not hand the scheduled time to the job, so it is
        recovered as the first cron time inside the misfire window.
        """
        now = self._clock()
        earliest = now - timedelta(seconds=self.misfire_grace_s)
        tick = trigger.cron_trigger().get_next_fire_time(None, earliest)
        if tick is None or tick > now:
            tick = now.replace(second=0, microsecond=0)
        return tick.astimezone(timezone.utc)

    async def run_scheduled(self, name: str) -> TriggerFireResult:
        """Timer entry point: claim the tick in the ledger, then run."""
        trigger = self.trigger(name)
        tick = self.current_tick(trigger)

        run_id = None
        if self.ledger is not None:
            try:
                run_id = await self.ledger.claim(name, tick)
            except Exception as e:
                logger.exception("Trigger ledger unavailable", trigger=name)
                return TriggerFireResult(
                    trigger=name, succeeded=False, tick_at=tick, error=str(e)
                )
            if run_id is None:
                return TriggerFireResult(
                    trigger=name, succeeded=True, skipped=True, tick_at=tick
                )

        result = await self._execute(trigger, tick_at=tick, manual=False)

        if run_id is not None:
            try:
                await self.ledger.finish(run_id, result.succeeded, result.error)
            except Exception:
                logger.exception("Failed to record trigger outcome", trigger=name)
        return result

    async def fire(self, name: str) -> TriggerFireResult:
        """
        Run one trigger now, outside its cadence.

        Raises:
            NotFoundError: no trigger is registered under ``name``
        """
        trigger = self.trigger(name)
        return await self._execute(trigger, tick_at=None, manual=True)

    async def _execute(
        self, trigger: ScheduledTrigger, tick_at: datetime | None, manual: bool
    ) -> TriggerFireResult:
        started = time.monotonic()
        logger.info("Trigger fired", trigger=trigger.name, manual=manual)

        try:
            value = await trigger.action()
        except Exception as e:
            duration_ms = int((time.monotonic() - started) * 1000)
            logger.exception(
                "Trigger failed", trigger=trigger.name, duration_ms=duration_ms
            )
            return TriggerFireResult(
                trigger=trigger.name,
                succeeded=False,
                manual=manual,
                tick_at=tick_at,
                duration_ms=duration_ms,
                error=str(e) or e.__class__.__name__,
            )

        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info("Trigger finished", trigger=trigger.name, duration_ms=duration_ms)
        return TriggerFireResult(
            trigger=trigger.name,
            succeeded=True,
            manual=manual,
            tick_at=tick_at,
            duration_ms=duration_ms,
            result=_summarize(value),
        )
