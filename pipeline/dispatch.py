# file: pipeline/dispatch.py
from __future__ import annotations
import logging
from typing import List, Literal, Optional

from app import cover_letter
from app.schema import (
    CompanyRecord, DispatchSummary, MailStatus, RunLog, SendResult, to_iso, utc_now,
)
from app.throttle import TokenBucket
from clients.mailer import OutboundEmail
from clients.store import ASCENDING, StoreError

log = logging.getLogger("dispatch")

HAS_EMAIL = {"contact_email": {"$exists": True, "$nin": ["", None]}}


class Dispatcher:
    """Sends the cover letter to companies with a contact address and records the outcome"""

    def __init__(self, registry, throttle: Optional[TokenBucket] = None):
        self.settings = registry.settings
        self.store = registry.get_store()
        self.mailer = registry.get_mailer()
        self.throttle = throttle or TokenBucket(self.settings.send_delay)

    def candidate_filter(self, include_sent: bool) -> dict:
        flt = dict(HAS_EMAIL)
        if not include_sent:
            flt["mail_status"] = {"$ne": MailStatus.SENT.value}
        return flt

    async def select(self, include_sent: bool) -> List[CompanyRecord]:
        docs = await self.store.companies.find(
            self.candidate_filter(include_sent),
            sort=[("sequence_number", ASCENDING)],
            limit=self.settings.dispatch_cap,
        )
        return [CompanyRecord.model_validate(d) for d in docs]

    def compose(self, record: CompanyRecord) -> OutboundEmail:
        s = self.settings
        body = cover_letter.render(record.company_name, record.role_title, s.applicant_name, s.email_user)
        return OutboundEmail(
            to=record.contact_email,
            subject=cover_letter.subject_line(record.role_title, s.applicant_name, s.applicant_headline),
            text=body["text"],
            html=body["html"],
            attachment=s.resume_path,
            attachment_name=cover_letter.resume_filename(s.applicant_name) if s.resume_path else None,
        )

    async def send_one(self, record: CompanyRecord) -> SendResult:
        try:
            await self.mailer.send(self.compose(record))
            now = to_iso(utc_now())
            modified = await self.store.companies.update_one(
                {"id": record.id},
                {"mail_status": MailStatus.SENT.value, "mail_sent_at": now, "updated_at": now},
            )
            if not modified:
                raise StoreError(f"record {record.id} not found; mail status not updated")
        except Exception as e:
            # One bad address or transport hiccup must not stop the batch
            log.error("failed to send email to %s: %s", record.contact_email, e)
            return SendResult(company=record.company_name, email=record.contact_email,
                              status="failed", error=str(e) or type(e).__name__)
        log.info("email sent to %s (%s)", record.company_name, record.contact_email)
        return SendResult(company=record.company_name, email=record.contact_email, status="sent")

    async def run(self, include_sent: Optional[bool] = None,
                  trigger: Literal["scheduled", "manual"] = "manual") -> DispatchSummary:
        if include_sent is None:
            include_sent = self.settings.dispatch_include_sent
        label = "Cron" if trigger == "scheduled" else "Manual send"

        records = await self.select(include_sent)
        if not records:
            log.info("no companies with email addresses to send to")
            return DispatchSummary(message="No companies with email addresses found")

        if include_sent:
            log.warning("sending to %d companies including already sent; duplicates will be sent", len(records))
        else:
            log.info("sending to %d companies", len(records))

        results: List[SendResult] = []
        for record in records:
            await self.throttle.acquire()
            results.append(await self.send_one(record))

        sent = sum(1 for r in results if r.status == "sent")
        failed = len(results) - sent
        summary = DispatchSummary(
            message=f"{label} completed: {sent} sent, {failed} failed",
            sent=sent,
            failed=failed,
            results=results,
        )
        await self._log_run(summary, trigger)
        log.info("%s: %d sent, %d failed (throttled %.1fs)", label, sent, failed, self.throttle.waited_total)
        return summary

    async def _log_run(self, summary: DispatchSummary, trigger: str) -> None:
        entry = RunLog(executed_at=summary.timestamp, trigger=trigger, sent=summary.sent, failed=summary.failed)
        try:
            await self.store.run_logs.insert_one(entry.model_dump(mode="json"))
        except StoreError as e:
            log.warning("could not record dispatch run: %s", e)

    async def reset(self) -> int:
        """Mark every Sent record as Not Sent again so the next run re-sends it."""
        modified = await self.store.companies.update_many(
            {"mail_status": MailStatus.SENT.value},
            {"mail_status": MailStatus.NOT_SENT.value, "updated_at": to_iso(utc_now())},
            unset=("mail_sent_at",),
        )
        log.info("reset %d sent emails", modified)
        return modified
