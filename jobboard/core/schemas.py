"""Core data models for jobs and daily analytics."""

import datetime as dt
from enum import Enum
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

EmploymentType = Literal["Full-Time", "Part-Time", "Contract", "Internship", "Freelance"]


class JobStatus(str, Enum):
    ACTIVE = "active"
    DUMP = "dump"
    INACTIVE = "inactive"


class JobSkills(BaseModel):
    """Skills taxonomy attached to a posting. Opaque to the lifecycle."""

    languages: list[str] = Field(default_factory=list)
    technologies: list[str] = Field(default_factory=list)
    frameworks: list[str] = Field(default_factory=list)
    databases: list[str] = Field(default_factory=list)
    tools: list[str] = Field(default_factory=list)
    others: list[str] = Field(default_factory=list)


class NewJob(BaseModel):
    """Input for creating a posting. Lifecycle fields are set on insert, never by the caller."""

    job_id: str = Field(default_factory=lambda: str(uuid4()))
    company_name: str
    role: str
    location: str
    experience: str
    description: str
    required_degree: str
    employment_type: EmploymentType = "Full-Time"
    hiring_link: str
    company_logo: str = ""
    est_package: str = ""
    skills: JobSkills = Field(default_factory=JobSkills)
    keywords: list[str] = Field(default_factory=list)

    @field_validator("company_name", "role", "location")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            msg = "must not be empty"
            raise ValueError(msg)
        return v.strip()

    @field_validator("hiring_link")
    @classmethod
    def hiring_link_is_http(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            msg = "hiring_link must be an http(s) URL"
            raise ValueError(msg)
        return v


class Job(NewJob):
    """A stored posting as read back from the database.

    Frozen: every operation re-reads the row, nothing is mutated in memory.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    status: JobStatus = JobStatus.ACTIVE
    date_posted: dt.datetime
    moved_to_dump_at: dt.datetime | None = None
    last_status_change: dt.datetime
    is_active: bool = True
    views: int = 0
    clicks: int = 0
    last_viewed_at: dt.datetime | None = None
    last_clicked_at: dt.datetime | None = None
    created_at: dt.datetime


class JobPage(BaseModel):
    """One page of jobs plus pagination metadata."""

    jobs: list[Job]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.limit) if self.total else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1


class JobFilters(BaseModel):
    """Public listing filters. Unset fields match every job."""

    role: str | None = None
    location: str | None = None
    experience: str | None = None
    keywords: list[str] = Field(default_factory=list)
    skills: list[str] = Field(default_factory=list)


class TransitionResult(BaseModel):
    """Counts from one automatic transition pass."""

    model_config = ConfigDict(frozen=True)

    moved_to_dump: int = 0
    moved_to_inactive: int = 0


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


class JobRef(BaseModel):
    """The slice of job metadata reports resolve per-job counters against."""

    model_config = ConfigDict(frozen=True)

    id: int
    job_id: str
    company_name: str
    role: str
    location: str
    date_posted: dt.datetime
    status: JobStatus

    @classmethod
    def from_job(cls, job: Job) -> "JobRef":
        return cls(
            id=job.id,
            job_id=job.job_id,
            company_name=job.company_name,
            role=job.role,
            location=job.location,
            date_posted=job.date_posted,
            status=job.status,
        )


class JobCount(BaseModel):
    job: JobRef
    count: int


class VisitorRecord(BaseModel):
    client_id: str
    user_agent: str
    first_seen_at: dt.datetime


class DeviceBreakdown(BaseModel):
    desktop: int = 0
    mobile: int = 0
    tablet: int = 0


class BrowserBreakdown(BaseModel):
    chrome: int = 0
    firefox: int = 0
    safari: int = 0
    edge: int = 0
    other: int = 0


class AnalyticsBucket(BaseModel):
    """One UTC calendar day of analytics, with job entries resolved to current jobs.

    ``recorded_job_views`` and ``recorded_job_clicks`` hold the day totals as
    stored, including jobs deleted since. When unset, totals are summed from
    the per-job entries.
    """

    date: dt.date
    website_visits: int = 0
    unique_visitors: list[VisitorRecord] = Field(default_factory=list)
    job_views: list[JobCount] = Field(default_factory=list)
    job_clicks: list[JobCount] = Field(default_factory=list)
    device_info: DeviceBreakdown = Field(default_factory=DeviceBreakdown)
    browser_info: BrowserBreakdown = Field(default_factory=BrowserBreakdown)
    recorded_job_views: int | None = None
    recorded_job_clicks: int | None = None

    @property
    def unique_visitor_count(self) -> int:
        return len(self.unique_visitors)

    @property
    def total_job_views(self) -> int:
        if self.recorded_job_views is not None:
            return self.recorded_job_views
        return sum(e.count for e in self.job_views)

    @property
    def total_job_clicks(self) -> int:
        if self.recorded_job_clicks is not None:
            return self.recorded_job_clicks
        return sum(e.count for e in self.job_clicks)


class DashboardSummary(BaseModel):
    total_visits: int
    total_unique_visitors: int
    total_job_views: int
    total_job_clicks: int
    daily_buckets: list[AnalyticsBucket]
    conversion_rate: float


class JobStats(BaseModel):
    job: JobRef
    views: int = 0
    clicks: int = 0
    conversion_rate: float = 0.0


class CompanyStats(BaseModel):
    company: str
    views: int = 0
    clicks: int = 0
    conversion_rate: float = 0.0


class DailyJobStat(BaseModel):
    date: dt.date
    views: int = 0
    clicks: int = 0


class JobReport(BaseModel):
    job: JobRef
    total_views: int
    total_clicks: int
    conversion_rate: float
    daily_stats: list[DailyJobStat]


class TrendPoint(BaseModel):
    date: dt.date
    website_visits: int
    unique_visitors: int
    total_job_views: int
    total_job_clicks: int
    device_info: DeviceBreakdown
    browser_info: BrowserBreakdown


class TrendSummary(BaseModel):
    total_visits: int
    total_unique_visitors: int
    total_job_views: int
    total_job_clicks: int
    avg_daily_visits: int
    avg_daily_unique_visitors: int
    avg_daily_job_views: int
    avg_daily_job_clicks: int
    conversion_rate: float


class TrendsReport(BaseModel):
    trends: list[TrendPoint]
    summary: TrendSummary
