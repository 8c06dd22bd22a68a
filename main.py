"""CLI entry point for the job board lifecycle scheduler and analytics reports."""

import argparse
import asyncio
import logging
import signal
import sys

from jobboard.analytics.aggregator import AnalyticsAggregator
from jobboard.core.config import Settings
from jobboard.core.db import init_db
from jobboard.core.errors import JobBoardError
from jobboard.core.schemas import JobStatus
from jobboard.lifecycle.engine import LifecycleEngine
from jobboard.lifecycle.scheduler import LifecycleScheduler


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Job board core - lifecycle scheduler and analytics reports",
    )
    parser.add_argument(
        "--config",
        default="config/settings.yaml",
        help="Path to settings YAML file (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    subparsers = parser.add_subparsers(dest="command")

    # --- scheduler subcommand (default) ---
    subparsers.add_parser(
        "scheduler",
        help="Run the daily lifecycle scheduler until interrupted",
    )

    # --- process subcommand ---
    subparsers.add_parser(
        "process",
        help="Run one lifecycle transition pass now and exit",
    )

    # --- set-status subcommand ---
    status_parser = subparsers.add_parser(
        "set-status",
        help="Manually move a job to active, dump or inactive",
    )
    status_parser.add_argument("job_id", type=int, help="Internal job ID")
    status_parser.add_argument(
        "status",
        choices=[s.value for s in JobStatus],
        help="Target status",
    )

    # --- dashboard subcommand ---
    dashboard_parser = subparsers.add_parser(
        "dashboard",
        help="Print visit, view and click totals for recent days",
    )
    dashboard_parser.add_argument(
        "--days",
        type=int,
        default=None,
        help="Number of days including today (default: analytics.dashboard_days)",
    )

    # --- export subcommand ---
    export_parser = subparsers.add_parser(
        "export",
        help="Export daily analytics as JSON or CSV",
    )
    export_parser.add_argument("--days", type=int, default=30, help="Number of days (default: 30)")
    export_parser.add_argument(
        "--format",
        choices=["json", "csv"],
        default="json",
        help="Export format (default: json)",
    )

    args = parser.parse_args(argv)

    # Default to the scheduler when no subcommand given
    if args.command is None:
        args.command = "scheduler"

    return args


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


async def run_scheduler(settings: Settings) -> None:
    """Run the lifecycle scheduler until SIGINT/SIGTERM."""
    conn = init_db(settings.database.path)
    engine = LifecycleEngine(conn, config=settings.lifecycle)
    scheduler = LifecycleScheduler(engine, settings.scheduler)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:  # pragma: no cover - Windows
            pass

    try:
        await scheduler.run_forever(stop)
    finally:
        conn.close()


def cmd_process(settings: Settings) -> None:
    conn = init_db(settings.database.path)
    try:
        result = LifecycleEngine(conn, config=settings.lifecycle).process_transitions()
    finally:
        conn.close()
    print(f"Moved to dump: {result.moved_to_dump} jobs")
    print(f"Moved to inactive: {result.moved_to_inactive} jobs")


def cmd_set_status(settings: Settings, args: argparse.Namespace) -> None:
    conn = init_db(settings.database.path)
    try:
        job = LifecycleEngine(conn, config=settings.lifecycle).set_status(args.job_id, args.status)
    finally:
        conn.close()
    print(f"Job {job.id} ({job.role} at {job.company_name}) is now {job.status.value}")


def cmd_dashboard(settings: Settings, args: argparse.Namespace) -> None:
    days = args.days or settings.analytics.dashboard_days
    conn = init_db(settings.database.path)
    try:
        aggregator = AnalyticsAggregator(conn)
        summary = aggregator.dashboard(days)
        top = aggregator.top_jobs(days, settings.analytics.report_limit)
    finally:
        conn.close()

    print(f"Last {days} day(s):")
    print(f"  Visits: {summary.total_visits} ({summary.total_unique_visitors} unique)")
    print(f"  Job views: {summary.total_job_views}")
    print(f"  Job clicks: {summary.total_job_clicks}")
    print(f"  Conversion rate: {summary.conversion_rate:.2f}%")
    for bucket in summary.daily_buckets:
        print(f"  {bucket.date}: {bucket.website_visits} visits, "
              f"{bucket.total_job_views} views, {bucket.total_job_clicks} clicks")
    if top:
        print("Top jobs:")
        for stats in top:
            print(f"  #{stats.job.id} {stats.job.role} at {stats.job.company_name}: "
                  f"{stats.views} views, {stats.clicks} clicks ({stats.conversion_rate:.2f}%)")


def cmd_export(settings: Settings, args: argparse.Namespace) -> None:
    conn = init_db(settings.database.path)
    try:
        aggregator = AnalyticsAggregator(conn)
        if args.format == "csv":
            output = aggregator.export_csv(args.days)
        else:
            output = aggregator.export_json(args.days)
    finally:
        conn.close()
    print(output)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = Settings.from_yaml(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        if args.command == "process":
            cmd_process(settings)
        elif args.command == "set-status":
            cmd_set_status(settings, args)
        elif args.command == "dashboard":
            cmd_dashboard(settings, args)
        elif args.command == "export":
            cmd_export(settings, args)
        else:
            asyncio.run(run_scheduler(settings))
    except (JobBoardError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
