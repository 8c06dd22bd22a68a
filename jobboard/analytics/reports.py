"""Rollups over analytics buckets: per-job, per-company, trends, and export."""

import csv
import io
import json
from datetime import date

from jobboard.core.schemas import (
    AnalyticsBucket,
    CompanyStats,
    DailyJobStat,
    DashboardSummary,
    JobRef,
    JobReport,
    JobStats,
    TrendPoint,
    TrendsReport,
    TrendSummary,
)

CSV_COLUMNS = (
    "date",
    "website_visits",
    "unique_visitors",
    "total_job_views",
    "total_job_clicks",
    "desktop_users",
    "mobile_users",
    "tablet_users",
)


def conversion_rate(clicks: int, views: int) -> float:
    """Clicks per hundred views, rounded to 2 decimals; 0 when there are no views."""
    if views <= 0:
        return 0.0
    return round(clicks / views * 100, 2)


def summarize(buckets: list[AnalyticsBucket]) -> DashboardSummary:
    total_views = sum(b.total_job_views for b in buckets)
    total_clicks = sum(b.total_job_clicks for b in buckets)
    return DashboardSummary(
        total_visits=sum(b.website_visits for b in buckets),
        total_unique_visitors=sum(b.unique_visitor_count for b in buckets),
        total_job_views=total_views,
        total_job_clicks=total_clicks,
        daily_buckets=buckets,
        conversion_rate=conversion_rate(total_clicks, total_views),
    )


def top_jobs(buckets: list[AnalyticsBucket], limit: int = 10) -> list[JobStats]:
    """Jobs ranked by views over the buckets, most viewed first."""
    stats: dict[int, JobStats] = {}
    for bucket in buckets:
        for entry in bucket.job_views:
            stats.setdefault(entry.job.id, JobStats(job=entry.job)).views += entry.count
        for entry in bucket.job_clicks:
            stats.setdefault(entry.job.id, JobStats(job=entry.job)).clicks += entry.count

    ranked = sorted(stats.values(), key=lambda s: (-s.views, -s.clicks, s.job.id))
    for s in ranked:
        s.conversion_rate = conversion_rate(s.clicks, s.views)
    return ranked[:limit]


def top_companies(buckets: list[AnalyticsBucket], limit: int = 10) -> list[CompanyStats]:
    """Companies ranked by views summed across their jobs."""
    stats: dict[str, CompanyStats] = {}
    for bucket in buckets:
        for entry in bucket.job_views:
            name = entry.job.company_name
            stats.setdefault(name, CompanyStats(company=name)).views += entry.count
        for entry in bucket.job_clicks:
            name = entry.job.company_name
            stats.setdefault(name, CompanyStats(company=name)).clicks += entry.count

    ranked = sorted(stats.values(), key=lambda s: (-s.views, -s.clicks, s.company))
    for s in ranked:
        s.conversion_rate = conversion_rate(s.clicks, s.views)
    return ranked[:limit]


def job_report(buckets: list[AnalyticsBucket], job: JobRef) -> JobReport:
    """Day-by-day views and clicks of one job. Days without events report zero."""
    daily: list[DailyJobStat] = []
    for bucket in buckets:
        views = sum(e.count for e in bucket.job_views if e.job.id == job.id)
        clicks = sum(e.count for e in bucket.job_clicks if e.job.id == job.id)
        daily.append(DailyJobStat(date=bucket.date, views=views, clicks=clicks))

    total_views = sum(d.views for d in daily)
    total_clicks = sum(d.clicks for d in daily)
    return JobReport(
        job=job,
        total_views=total_views,
        total_clicks=total_clicks,
        conversion_rate=conversion_rate(total_clicks, total_views),
        daily_stats=daily,
    )


def trends(buckets: list[AnalyticsBucket]) -> TrendsReport:
    points = [
        TrendPoint(
            date=b.date,
            website_visits=b.website_visits,
            unique_visitors=b.unique_visitor_count,
            total_job_views=b.total_job_views,
            total_job_clicks=b.total_job_clicks,
            device_info=b.device_info,
            browser_info=b.browser_info,
        )
        for b in buckets
    ]
    totals = summarize(buckets)
    n = len(points)

    def avg(total: int) -> int:
        return round(total / n) if n else 0

    return TrendsReport(
        trends=points,
        summary=TrendSummary(
            total_visits=totals.total_visits,
            total_unique_visitors=totals.total_unique_visitors,
            total_job_views=totals.total_job_views,
            total_job_clicks=totals.total_job_clicks,
            avg_daily_visits=avg(totals.total_visits),
            avg_daily_unique_visitors=avg(totals.total_unique_visitors),
            avg_daily_job_views=avg(totals.total_job_views),
            avg_daily_job_clicks=avg(totals.total_job_clicks),
            conversion_rate=totals.conversion_rate,
        ),
    )


def export_json(buckets: list[AnalyticsBucket], start: date, end: date) -> str:
    """Export buckets as a JSON document with per-job detail."""
    data = {
        "date_range": {"start": start.isoformat(), "end": end.isoformat()},
        "analytics": [
            {
                "date": b.date.isoformat(),
                "website_visits": b.website_visits,
                "unique_visitors": b.unique_visitor_count,
                "job_views": [
                    {
                        "job_id": e.job.job_id,
                        "company_name": e.job.company_name,
                        "role": e.job.role,
                        "views": e.count,
                    }
                    for e in b.job_views
                ],
                "job_clicks": [
                    {
                        "job_id": e.job.job_id,
                        "company_name": e.job.company_name,
                        "role": e.job.role,
                        "clicks": e.count,
                    }
                    for e in b.job_clicks
                ],
                "device_info": b.device_info.model_dump(),
                "browser_info": b.browser_info.model_dump(),
            }
            for b in buckets
        ],
    }
    return json.dumps(data, indent=2)


def export_csv(buckets: list[AnalyticsBucket]) -> str:
    """Export one CSV row per day. An empty range yields just the header."""
    out = io.StringIO()
    writer = csv.writer(out, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for b in buckets:
        writer.writerow((
            b.date.isoformat(),
            b.website_visits,
            b.unique_visitor_count,
            b.total_job_views,
            b.total_job_clicks,
            b.device_info.desktop,
            b.device_info.mobile,
            b.device_info.tablet,
        ))
    return out.getvalue()
