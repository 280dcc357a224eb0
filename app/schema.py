# file: app/schema.py
from __future__ import annotations
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, PlainSerializer, model_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    """Single string form for stored timestamps so range filters compare lexically."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="seconds")


Timestamp = Annotated[datetime, PlainSerializer(to_iso, return_type=str, when_used="json")]


class MailStatus(str, Enum):
    NOT_SENT = "Not Sent"
    SENT = "Sent"


class JobPosting(BaseModel):
    """One item of the JSearch `data` array."""
    model_config = ConfigDict(extra="ignore")

    job_id: str
    job_title: str
    employer_name: str
    employer_logo: Optional[str] = None
    job_city: Optional[str] = None
    job_country: Optional[str] = None
    job_employment_type: Optional[str] = None
    job_is_remote: bool = False
    job_min_salary: Optional[float] = None
    job_max_salary: Optional[float] = None
    job_salary_currency: Optional[str] = None
    job_posted_at_timestamp: Optional[int] = None
    job_publisher: Optional[str] = None
    job_description: Optional[str] = None
    job_apply_link: str = ""

    def location(self, fallback: str) -> str:
        if self.job_city and self.job_country:
            return f"{self.job_city}, {self.job_country}"
        return self.job_country or fallback


class CompanyRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    external_job_id: str = ""
    company_name: str = ""
    role_title: str = ""
    website: str = ""
    contact_phone: str = ""
    contact_email: str = ""
    location: str = ""
    mail_status: MailStatus = MailStatus.NOT_SENT
    mail_sent_at: Optional[Timestamp] = None
    interview_status: str = "No Idea"
    visited_office: str = "No"
    is_favorite: bool = False
    sequence_number: int = 0
    created_at: Timestamp = Field(default_factory=utc_now)
    updated_at: Timestamp = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def _mail_state_consistent(self) -> "CompanyRecord":
        if (self.mail_status == MailStatus.SENT) != (self.mail_sent_at is not None):
            raise ValueError("mail_sent_at must be set exactly when mail_status is Sent")
        return self

    @classmethod
    def from_posting(cls, posting: JobPosting, sequence_number: int, region: str) -> "CompanyRecord":
        return cls(
            external_job_id=posting.job_id,
            company_name=posting.employer_name,
            role_title=posting.job_title,
            website=posting.job_apply_link,
            location=posting.location(region),
            sequence_number=sequence_number,
        )

    def to_document(self) -> dict:
        doc = self.model_dump(mode="json")
        if not doc["id"]:
            doc.pop("id")
        return doc


class SaveRecordRequest(BaseModel):
    """Body of POST /api/save-job. New records always start as Not Sent."""
    external_job_id: str = ""
    company_name: str = ""
    role_title: str = ""
    website: str = ""
    contact_phone: str = ""
    contact_email: Union[EmailStr, Literal[""]] = ""
    location: str = ""
    interview_status: str = "No Idea"
    visited_office: str = "No"
    is_favorite: bool = False


class SearchRequest(BaseModel):
    query: str
    num_pages: int = Field(default=1, ge=1, le=10)


class DispatchRequest(BaseModel):
    include_sent: Optional[bool] = None


class IngestionStats(BaseModel):
    total: int = 0
    saved: int = 0
    skipped: int = 0
    failed: int = 0
    timestamp: Timestamp = Field(default_factory=utc_now)


class SendResult(BaseModel):
    company: str
    email: str
    status: Literal["sent", "failed"]
    error: Optional[str] = None


class DispatchSummary(BaseModel):
    success: bool = True
    message: str
    sent: int = 0
    failed: int = 0
    timestamp: Timestamp = Field(default_factory=utc_now)
    results: List[SendResult] = []


class RunLog(BaseModel):
    executed_at: Timestamp
    trigger: Literal["scheduled", "manual"]
    sent: int = 0
    failed: int = 0


class DispatchStats(BaseModel):
    total_with_email: int
    sent_emails: int
    pending_emails: int


class MailStatusCounts(BaseModel):
    sent_count: int
    not_sent_count: int
    total_count: int


class CronStats(BaseModel):
    total_with_email: int
    today_sent: int
    pending_emails: int
    schedules: List[str]


class CronStatus(BaseModel):
    cron_active: bool = True
    next_scheduled_time: Timestamp
    last_execution: Optional[RunLog] = None
    stats: CronStats
