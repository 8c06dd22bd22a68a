"""Tests for the command-line entry point."""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from jobboard.analytics.aggregator import AnalyticsAggregator
from jobboard.core.clock import FrozenClock
from jobboard.core.db import init_db
from jobboard.core.schemas import NewJob
from jobboard.lifecycle.engine import LifecycleEngine
from main import main, parse_args


def _new() -> NewJob:
    return NewJob(
        company_name="Acme",
        role="Engineer",
        location="Remote",
        experience="1-2",
        description="Build things.",
        required_degree="Any",
        hiring_link="https://acme.example/apply",
    )


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    db_path = tmp_path / "data" / "jobboard.db"
    path = tmp_path / "settings.yaml"
    path.write_text(f"database:\n  path: {db_path}\n")
    return path


@pytest.fixture
def stale_job_id(config_path: Path, tmp_path: Path) -> int:
    """A job posted ten days ago, still active."""
    conn = init_db(tmp_path / "data" / "jobboard.db")
    try:
        clock = FrozenClock(datetime.now(timezone.utc) - timedelta(days=10))
        job = LifecycleEngine(conn, clock=clock).create_job(_new())
    finally:
        conn.close()
    return job.id


class TestParseArgs:
    def test_defaults_to_scheduler(self) -> None:
        args = parse_args([])
        assert args.command == "scheduler"
        assert args.config == "config/settings.yaml"
        assert not args.verbose

    def test_set_status(self) -> None:
        args = parse_args(["set-status", "42", "dump"])
        assert args.command == "set-status"
        assert args.job_id == 42
        assert args.status == "dump"

    def test_set_status_rejects_unknown_status(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["set-status", "42", "archived"])

    def test_export_defaults(self) -> None:
        args = parse_args(["export"])
        assert args.days == 30
        assert args.format == "json"

    def test_dashboard_days_optional(self) -> None:
        assert parse_args(["dashboard"]).days is None
        assert parse_args(["dashboard", "--days", "3"]).days == 3


class TestMain:
    def test_missing_config_exits(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc:
            main(["--config", str(tmp_path / "nope.yaml"), "process"])
        assert exc.value.code == 1
        assert "Error loading config" in capsys.readouterr().err

    def test_process_moves_stale_job(
        self, config_path: Path, stale_job_id: int, capsys: pytest.CaptureFixture[str],
    ) -> None:
        main(["--config", str(config_path), "process"])
        out = capsys.readouterr().out
        assert "Moved to dump: 1 jobs" in out
        assert "Moved to inactive: 0 jobs" in out

    def test_set_status(
        self, config_path: Path, stale_job_id: int, capsys: pytest.CaptureFixture[str],
    ) -> None:
        main(["--config", str(config_path), "set-status", str(stale_job_id), "inactive"])
        assert "is now inactive" in capsys.readouterr().out

    def test_set_status_unknown_job_exits(
        self, config_path: Path, capsys: pytest.CaptureFixture[str],
    ) -> None:
        with pytest.raises(SystemExit) as exc:
            main(["--config", str(config_path), "set-status", "999", "dump"])
        assert exc.value.code == 1
        assert "Job not found: 999" in capsys.readouterr().err

    def test_dashboard(
        self, config_path: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str],
    ) -> None:
        conn = init_db(tmp_path / "data" / "jobboard.db")
        try:
            AnalyticsAggregator(conn).record_visit("client-1", "Mozilla/5.0 Firefox/120.0")
        finally:
            conn.close()

        main(["--config", str(config_path), "dashboard", "--days", "1"])
        out = capsys.readouterr().out
        assert "Last 1 day(s):" in out
        assert "Visits: 1 (1 unique)" in out
        assert "Conversion rate: 0.00%" in out
        assert "Top jobs:" not in out

    def test_dashboard_lists_top_jobs(
        self,
        config_path: Path,
        tmp_path: Path,
        stale_job_id: int,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        conn = init_db(tmp_path / "data" / "jobboard.db")
        try:
            aggregator = AnalyticsAggregator(conn)
            aggregator.record_job_view(stale_job_id)
            aggregator.record_job_view(stale_job_id)
            aggregator.record_job_click(stale_job_id)
        finally:
            conn.close()

        main(["--config", str(config_path), "dashboard", "--days", "1"])
        out = capsys.readouterr().out
        assert "Top jobs:" in out
        assert f"#{stale_job_id} Engineer at Acme: 2 views, 1 clicks (50.00%)" in out

    def test_export_json(self, config_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        main(["--config", str(config_path), "export", "--days", "2"])
        data = json.loads(capsys.readouterr().out)
        assert set(data) == {"date_range", "analytics"}
        assert data["analytics"] == []

    def test_export_csv_header(self, config_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        main(["--config", str(config_path), "export", "--format", "csv"])
        first_line = capsys.readouterr().out.splitlines()[0]
        assert first_line.startswith("date,")
