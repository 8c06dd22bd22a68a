"""Daily analytics aggregator: visits, job views and job clicks per UTC day.

Recording is best-effort. Any failure is logged and swallowed so that the
page view or click that triggered it still succeeds.

Counters are incremented inside SQL (``ON CONFLICT DO UPDATE SET n = n + 1``)
under the shared connection's lock, so concurrent writers never lose an update.
"""

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta

from jobboard.analytics import reports
from jobboard.analytics.useragent import classify
from jobboard.core import db
from jobboard.core.clock import Clock, SystemClock, as_utc
from jobboard.core.errors import NotFoundError
from jobboard.core.schemas import (
    AnalyticsBucket,
    BrowserBreakdown,
    CompanyStats,
    DashboardSummary,
    DeviceBreakdown,
    JobCount,
    JobRef,
    JobReport,
    JobStats,
    TrendsReport,
    VisitorRecord,
)

logger = logging.getLogger(__name__)


def bucket_day(moment: datetime) -> date:
    """The UTC calendar day a moment belongs to."""
    return as_utc(moment).date()


class AnalyticsAggregator:
    """Records public interactions into per-day buckets and answers reporting queries.

    Usage::

        analytics = AnalyticsAggregator(conn)
        analytics.record_visit(ip, user_agent)
        analytics.record_job_view(job.id)
        summary = analytics.dashboard(days=7)
    """

    def __init__(self, conn: db.Connection, clock: Clock | None = None) -> None:
        self._conn = conn
        self._clock = clock or SystemClock()

    # -- recording (best-effort) ---------------------------------------------

    def record_visit(self, client_id: str, user_agent: str, now: datetime | None = None) -> None:
        """Count a site visit and remember the (client, user agent) pair for the day."""
        try:
            now = as_utc(now or self._clock.now())
            day = bucket_day(now)
            device, browser = classify(user_agent or "")
            is_new = db.record_visit(
                self._conn, day, client_id, user_agent or "", device, browser, now,
            )
        except Exception:
            logger.exception("Failed to record visit from %r", client_id)
            return
        logger.debug("Visit on %s (%s/%s, new visitor: %s)", day, device, browser, is_new)

    def record_job_view(self, job_id: int, now: datetime | None = None) -> None:
        self._record_job_event(job_id, "view", now)

    def record_job_click(self, job_id: int, now: datetime | None = None) -> None:
        self._record_job_event(job_id, "click", now)

    def _record_job_event(self, job_id: int, kind: str, now: datetime | None) -> None:
        try:
            day = bucket_day(now or self._clock.now())
            db.increment_job_event(self._conn, day, job_id, kind)
        except Exception:
            logger.exception("Failed to record job %s for job %s", kind, job_id)

    # -- queries ---------------------------------------------------------------

    def range_query(self, start: date, end: date) -> list[AnalyticsBucket]:
        """Buckets for every recorded day in [start, end], oldest first.

        Per-job entries are resolved against the jobs that exist now; entries
        for deleted jobs are left out of the lists but still count towards the
        day totals, and stay in storage.
        """
        start, end = _as_date(start), _as_date(end)
        if start > end:
            return []

        with db.storage_errors("Loading analytics range"):
            days = db.fetch_days(self._conn, start, end)
            visitors = db.fetch_visitors(self._conn, start, end)
            events = db.fetch_job_events(self._conn, start, end)
            jobs = db.get_jobs(self._conn, {row["job_id"] for row in events})

        refs = {job_id: JobRef.from_job(job) for job_id, job in jobs.items()}
        visitors_by_day: dict[str, list[VisitorRecord]] = defaultdict(list)
        for row in visitors:
            visitors_by_day[row["date"]].append(VisitorRecord(
                client_id=row["client_id"],
                user_agent=row["user_agent"],
                first_seen_at=db.from_db_time(row["first_seen_at"]),
            ))
        totals: dict[tuple[str, str], int] = defaultdict(int)
        events_by_day: dict[tuple[str, str], list[JobCount]] = defaultdict(list)
        for row in events:
            totals[(row["date"], row["kind"])] += row["count"]
            ref = refs.get(row["job_id"])
            if ref is None:
                continue
            events_by_day[(row["date"], row["kind"])].append(JobCount(job=ref, count=row["count"]))

        buckets = []
        for row in days:
            key = row["date"]
            buckets.append(AnalyticsBucket(
                date=date.fromisoformat(key),
                website_visits=row["website_visits"],
                unique_visitors=visitors_by_day.get(key, []),
                job_views=events_by_day.get((key, "view"), []),
                job_clicks=events_by_day.get((key, "click"), []),
                device_info=DeviceBreakdown(**{c: row[c] for c in db.DEVICE_COLUMNS}),
                browser_info=BrowserBreakdown(**{c: row[c] for c in db.BROWSER_COLUMNS}),
                recorded_job_views=totals[(key, "view")],
                recorded_job_clicks=totals[(key, "click")],
            ))
        return buckets

    def window(self, days: int) -> tuple[date, date]:
        """The last ``days`` UTC calendar days, today included."""
        if days < 1:
            msg = "days must be >= 1"
            raise ValueError(msg)
        today = bucket_day(self._clock.now())
        return today - timedelta(days=days - 1), today

    def dashboard(self, days: int = 7) -> DashboardSummary:
        return reports.summarize(self.range_query(*self.window(days)))

    def top_jobs(self, days: int = 7, limit: int = 10) -> list[JobStats]:
        return reports.top_jobs(self.range_query(*self.window(days)), limit)

    def top_companies(self, days: int = 7, limit: int = 10) -> list[CompanyStats]:
        return reports.top_companies(self.range_query(*self.window(days)), limit)

    def job_report(self, job_id: int, days: int = 30) -> JobReport:
        """Daily views and clicks of one job. Raises NotFoundError if the job is gone."""
        with db.storage_errors(f"Loading job {job_id}"):
            job = db.get_job(self._conn, job_id)
        if job is None:
            raise NotFoundError(job_id)
        return reports.job_report(self.range_query(*self.window(days)), JobRef.from_job(job))

    def trends(self, days: int = 30) -> TrendsReport:
        return reports.trends(self.range_query(*self.window(days)))

    def export_json(self, days: int = 30) -> str:
        start, end = self.window(days)
        return reports.export_json(self.range_query(start, end), start, end)

    def export_csv(self, days: int = 30) -> str:
        return reports.export_csv(self.range_query(*self.window(days)))


def _as_date(value: date) -> date:
    if isinstance(value, datetime):
        return bucket_day(value)
    return value
