# file: pipeline/reporting.py
from __future__ import annotations
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

from app.schema import (
    CronStats, CronStatus, DispatchStats, MailStatus, MailStatusCounts, RunLog, to_iso, utc_now,
)
from clients.store import DESCENDING
from pipeline.dispatch import HAS_EMAIL

SCHEDULE_HOURS = (8, 12, 14, 18)


def next_scheduled_time(now: datetime, hours: Sequence[int] = SCHEDULE_HOURS) -> datetime:
    """First trigger hour strictly after `now` (UTC), wrapping to tomorrow's first hour."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    hours = sorted(hours)
    for hour in hours:
        candidate = now.replace(hour=hour, minute=0, second=0, microsecond=0)
        if candidate > now:
            return candidate
    tomorrow = now + timedelta(days=1)
    return tomorrow.replace(hour=hours[0], minute=0, second=0, microsecond=0)


def schedule_labels(hours: Sequence[int] = SCHEDULE_HOURS) -> List[str]:
    labels = []
    for hour in sorted(hours):
        suffix = "AM" if hour < 12 else "PM"
        labels.append(f"{hour % 12 or 12}:00 {suffix} UTC")
    return labels


class Reporter:
    """Read-only aggregations over the record store"""

    def __init__(self, registry):
        self.settings = registry.settings
        self.store = registry.get_store()

    async def dispatch_stats(self) -> DispatchStats:
        companies = self.store.companies
        return DispatchStats(
            total_with_email=await companies.count(HAS_EMAIL),
            sent_emails=await companies.count({**HAS_EMAIL, "mail_status": MailStatus.SENT.value}),
            pending_emails=await companies.count({**HAS_EMAIL, "mail_status": {"$ne": MailStatus.SENT.value}}),
        )

    async def mail_status_counts(self) -> MailStatusCounts:
        companies = self.store.companies
        return MailStatusCounts(
            sent_count=await companies.count({"mail_status": MailStatus.SENT.value}),
            not_sent_count=await companies.count({"$or": [
                {"mail_status": MailStatus.NOT_SENT.value},
                {"mail_status": {"$exists": False}},
            ]}),
            total_count=await companies.count(HAS_EMAIL),
        )

    async def last_execution(self) -> Optional[RunLog]:
        docs = await self.store.run_logs.find(sort=[("executed_at", DESCENDING)], limit=1)
        return RunLog.model_validate(docs[0]) if docs else None

    async def cron_status(self, now: Optional[datetime] = None) -> CronStatus:
        now = now or utc_now()
        start_of_day = now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
        companies = self.store.companies
        hours = self.settings.schedule_hours

        stats = CronStats(
            total_with_email=await companies.count(HAS_EMAIL),
            today_sent=await companies.count({
                "mail_status": MailStatus.SENT.value,
                "mail_sent_at": {"$gte": to_iso(start_of_day)},
            }),
            pending_emails=await companies.count({**HAS_EMAIL, "mail_status": {"$ne": MailStatus.SENT.value}}),
            schedules=schedule_labels(hours),
        )
        return CronStatus(
            next_scheduled_time=next_scheduled_time(now, hours),
            last_execution=await self.last_execution(),
            stats=stats,
        )
