"""SQLite database layer for jobs and daily analytics buckets.

Timestamps are stored as UTC ISO-8601 strings with fixed microsecond
precision so that string comparison in SQL orders them correctly.

One connection is shared by request handlers and the scheduler's worker
thread. Every statement runs under the connection's lock, and every write
is its own transaction, so one thread never commits another's half-done work.
"""

import json
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any

from jobboard.core.clock import as_utc
from jobboard.core.errors import StorageError
from jobboard.core.schemas import Job, JobSkills, JobStatus, NewJob

_JOBS_TABLE = """
CREATE TABLE IF NOT EXISTS jobs (
    id                 INTEGER PRIMARY KEY AUTOINCREMENT,
    job_id             TEXT    NOT NULL UNIQUE,
    company_name       TEXT    NOT NULL,
    company_logo       TEXT    NOT NULL DEFAULT '',
    role               TEXT    NOT NULL,
    location           TEXT    NOT NULL,
    experience         TEXT    NOT NULL,
    description        TEXT    NOT NULL,
    required_degree    TEXT    NOT NULL,
    employment_type    TEXT    NOT NULL DEFAULT 'Full-Time',
    hiring_link        TEXT    NOT NULL,
    est_package        TEXT    NOT NULL DEFAULT '',
    skills_json        TEXT    NOT NULL DEFAULT '{}',
    keywords_json      TEXT    NOT NULL DEFAULT '[]',
    status             TEXT    NOT NULL DEFAULT 'active',
    date_posted        TEXT    NOT NULL,
    moved_to_dump_at   TEXT,
    last_status_change TEXT    NOT NULL,
    is_active          INTEGER NOT NULL DEFAULT 1,
    views              INTEGER NOT NULL DEFAULT 0,
    clicks             INTEGER NOT NULL DEFAULT 0,
    last_viewed_at     TEXT,
    last_clicked_at    TEXT,
    created_at         TEXT    NOT NULL
);
"""

_JOBS_INDEXES = (
    "CREATE INDEX IF NOT EXISTS idx_jobs_status_posted ON jobs (status, date_posted)",
    "CREATE INDEX IF NOT EXISTS idx_jobs_status_dumped ON jobs (status, moved_to_dump_at)",
)

_ANALYTICS_DAYS_TABLE = """
CREATE TABLE IF NOT EXISTS analytics_days (
    date            TEXT PRIMARY KEY,
    website_visits  INTEGER NOT NULL DEFAULT 0,
    desktop         INTEGER NOT NULL DEFAULT 0,
    mobile          INTEGER NOT NULL DEFAULT 0,
    tablet          INTEGER NOT NULL DEFAULT 0,
    chrome          INTEGER NOT NULL DEFAULT 0,
    firefox         INTEGER NOT NULL DEFAULT 0,
    safari          INTEGER NOT NULL DEFAULT 0,
    edge            INTEGER NOT NULL DEFAULT 0,
    other           INTEGER NOT NULL DEFAULT 0
);
"""

_ANALYTICS_VISITORS_TABLE = """
CREATE TABLE IF NOT EXISTS analytics_visitors (
    date          TEXT NOT NULL,
    client_id     TEXT NOT NULL,
    user_agent    TEXT NOT NULL,
    first_seen_at TEXT NOT NULL,
    PRIMARY KEY (date, client_id, user_agent)
);
"""

# No foreign key to jobs: counts outlive deleted postings.
_ANALYTICS_JOB_EVENTS_TABLE = """
CREATE TABLE IF NOT EXISTS analytics_job_events (
    date    TEXT    NOT NULL,
    job_id  INTEGER NOT NULL,
    kind    TEXT    NOT NULL CHECK (kind IN ('view', 'click')),
    count   INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (date, job_id, kind)
);
"""

DEVICE_COLUMNS = ("desktop", "mobile", "tablet")
BROWSER_COLUMNS = ("chrome", "firefox", "safari", "edge", "other")

# SET clauses per manual target status. Every one stamps last_status_change.
_STATUS_UPDATES: dict[JobStatus, str] = {
    JobStatus.ACTIVE: (
        "status = 'active', is_active = 1, moved_to_dump_at = NULL, "
        "date_posted = :now, last_status_change = :now"
    ),
    JobStatus.DUMP: (
        "status = 'dump', is_active = 1, moved_to_dump_at = :now, last_status_change = :now"
    ),
    JobStatus.INACTIVE: (
        "status = 'inactive', is_active = 0, "
        "moved_to_dump_at = COALESCE(moved_to_dump_at, :now), last_status_change = :now"
    ),
}

_COUNTER_UPDATES = {
    "view": "views = views + 1, last_viewed_at = :now",
    "click": "clicks = clicks + 1, last_clicked_at = :now",
}


class Connection(sqlite3.Connection):
    """A sqlite3 connection that carries the lock serializing its use across threads."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.lock = threading.RLock()


@contextmanager
def transaction(conn: Connection) -> Iterator[Connection]:
    """Hold the connection lock for one transaction: commit on success, roll back on error."""
    with conn.lock, conn:
        yield conn


def _fetchall(conn: Connection, sql: str, params: Any = ()) -> list[sqlite3.Row]:
    with conn.lock:
        return conn.execute(sql, params).fetchall()


def _fetchone(conn: Connection, sql: str, params: Any = ()) -> sqlite3.Row | None:
    with conn.lock:
        return conn.execute(sql, params).fetchone()


def to_db_time(value: datetime) -> str:
    return as_utc(value).isoformat(timespec="microseconds")


def from_db_time(value: str | None) -> datetime | None:
    if value is None:
        return None
    return as_utc(datetime.fromisoformat(value))


@contextmanager
def storage_errors(action: str) -> Iterator[None]:
    """Translate sqlite3 errors raised inside the block into StorageError."""
    try:
        yield
    except sqlite3.Error as e:
        msg = f"{action} failed: {e}"
        raise StorageError(msg) from e


def init_db(path: str | Path) -> Connection:
    """Create the database and tables, returning a connection.

    The connection may be shared with worker threads (the scheduler runs
    transition passes off the event loop).
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), check_same_thread=False, factory=Connection)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(_JOBS_TABLE)
    for statement in _JOBS_INDEXES:
        conn.execute(statement)
    conn.execute(_ANALYTICS_DAYS_TABLE)
    conn.execute(_ANALYTICS_VISITORS_TABLE)
    conn.execute(_ANALYTICS_JOB_EVENTS_TABLE)
    conn.commit()
    return conn


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


def insert_job(conn: Connection, job: NewJob, now: datetime) -> int:
    """Insert a new posting as active, posted now. Returns the row ID."""
    ts = to_db_time(now)
    with transaction(conn):
        cursor = conn.execute(
            """
            INSERT INTO jobs
                (job_id, company_name, company_logo, role, location, experience,
                 description, required_degree, employment_type, hiring_link,
                 est_package, skills_json, keywords_json, status, date_posted,
                 moved_to_dump_at, last_status_change, is_active, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'active', ?, NULL, ?, 1, ?)
            """,
            (
                job.job_id,
                job.company_name,
                job.company_logo,
                job.role,
                job.location,
                job.experience,
                job.description,
                job.required_degree,
                job.employment_type,
                job.hiring_link,
                job.est_package,
                job.skills.model_dump_json(),
                json.dumps(job.keywords),
                ts,
                ts,
                ts,
            ),
        )
    return cursor.lastrowid or 0


def get_job(conn: Connection, job_id: int) -> Job | None:
    row = _fetchone(conn, "SELECT * FROM jobs WHERE id = ?", (job_id,))
    return _row_to_job(row) if row is not None else None


def get_job_by_external_id(conn: Connection, external_id: str) -> Job | None:
    row = _fetchone(conn, "SELECT * FROM jobs WHERE job_id = ?", (external_id,))
    return _row_to_job(row) if row is not None else None


def get_jobs(conn: Connection, job_ids: set[int]) -> dict[int, Job]:
    """Point-lookup several jobs at once. Missing IDs are simply absent from the result."""
    if not job_ids:
        return {}
    ids = sorted(job_ids)
    placeholders = ", ".join("?" for _ in ids)
    rows = _fetchall(
        conn,
        f"SELECT * FROM jobs WHERE id IN ({placeholders})",  # noqa: S608
        ids,
    )
    return {row["id"]: _row_to_job(row) for row in rows}


def find_active_by_hiring_link(
    conn: Connection,
    hiring_link: str,
    exclude_id: int | None = None,
) -> Job | None:
    """Return an active job already using ``hiring_link``, other than ``exclude_id``."""
    row = _fetchone(
        conn,
        """
        SELECT * FROM jobs
        WHERE status = 'active' AND hiring_link = ? AND id IS NOT ?
        ORDER BY id
        LIMIT 1
        """,
        (hiring_link, exclude_id),
    )
    return _row_to_job(row) if row is not None else None


def list_jobs(
    conn: Connection,
    status: JobStatus | None = None,
    limit: int = 10,
    offset: int = 0,
) -> list[Job]:
    """Jobs ordered by most recent status change, then most recent posting."""
    where, params = _status_filter(status)
    rows = _fetchall(
        conn,
        f"""
        SELECT * FROM jobs {where}
        ORDER BY last_status_change DESC, date_posted DESC, id DESC
        LIMIT ? OFFSET ?
        """,  # noqa: S608
        (*params, limit, offset),
    )
    return [_row_to_job(row) for row in rows]


def list_public_jobs(conn: Connection) -> list[Job]:
    """Every active, visible job, newest posting first."""
    rows = _fetchall(
        conn,
        """
        SELECT * FROM jobs
        WHERE status = 'active' AND is_active = 1
        ORDER BY date_posted DESC, id DESC
        """,
    )
    return [_row_to_job(row) for row in rows]


def count_jobs(conn: Connection, status: JobStatus | None = None) -> int:
    where, params = _status_filter(status)
    row = _fetchone(conn, f"SELECT COUNT(*) FROM jobs {where}", params)  # noqa: S608
    return int(row[0]) if row is not None else 0


def count_jobs_by_status(conn: Connection) -> dict[JobStatus, int]:
    counts = {status: 0 for status in JobStatus}
    for row in _fetchall(conn, "SELECT status, COUNT(*) AS n FROM jobs GROUP BY status"):
        counts[JobStatus(row["status"])] = row["n"]
    return counts


def delete_job(conn: Connection, job_id: int) -> bool:
    with transaction(conn):
        cursor = conn.execute("DELETE FROM jobs WHERE id = ?", (job_id,))
    return cursor.rowcount > 0


def bulk_move_to_dump(conn: Connection, cutoff: datetime, now: datetime) -> int:
    """Move every active job posted at or before ``cutoff`` to dump. Returns rows changed."""
    with transaction(conn):
        cursor = conn.execute(
            """
            UPDATE jobs
            SET status = 'dump', moved_to_dump_at = :now, last_status_change = :now
            WHERE status = 'active' AND date_posted <= :cutoff
            """,
            {"now": to_db_time(now), "cutoff": to_db_time(cutoff)},
        )
    return cursor.rowcount


def bulk_move_to_inactive(conn: Connection, cutoff: datetime, now: datetime) -> int:
    """Move every dump job dumped at or before ``cutoff`` to inactive. Returns rows changed."""
    with transaction(conn):
        cursor = conn.execute(
            """
            UPDATE jobs
            SET status = 'inactive', is_active = 0, last_status_change = :now
            WHERE status = 'dump'
              AND moved_to_dump_at IS NOT NULL
              AND moved_to_dump_at <= :cutoff
            """,
            {"now": to_db_time(now), "cutoff": to_db_time(cutoff)},
        )
    return cursor.rowcount


def update_job_status(
    conn: Connection,
    job_id: int,
    status: JobStatus,
    now: datetime,
) -> bool:
    """Unconditionally move one job to ``status``. Returns False if the job doesn't exist."""
    with transaction(conn):
        cursor = conn.execute(
            f"UPDATE jobs SET {_STATUS_UPDATES[status]} WHERE id = :id",  # noqa: S608
            {"id": job_id, "now": to_db_time(now)},
        )
    return cursor.rowcount > 0


def increment_job_counter(
    conn: Connection,
    job_id: int,
    kind: str,
    now: datetime,
) -> bool:
    """Bump the view or click counter of one job. Returns False if the job doesn't exist."""
    with transaction(conn):
        cursor = conn.execute(
            f"UPDATE jobs SET {_COUNTER_UPDATES[kind]} WHERE id = :id",  # noqa: S608
            {"id": job_id, "now": to_db_time(now)},
        )
    return cursor.rowcount > 0


def _status_filter(status: JobStatus | None) -> tuple[str, tuple[str, ...]]:
    if status is None:
        return "", ()
    return "WHERE status = ?", (JobStatus(status).value,)


def _row_to_job(row: sqlite3.Row) -> Job:
    return Job(
        id=row["id"],
        job_id=row["job_id"],
        company_name=row["company_name"],
        company_logo=row["company_logo"],
        role=row["role"],
        location=row["location"],
        experience=row["experience"],
        description=row["description"],
        required_degree=row["required_degree"],
        employment_type=row["employment_type"],
        hiring_link=row["hiring_link"],
        est_package=row["est_package"],
        skills=JobSkills.model_validate_json(row["skills_json"]),
        keywords=json.loads(row["keywords_json"]),
        status=JobStatus(row["status"]),
        date_posted=from_db_time(row["date_posted"]),
        moved_to_dump_at=from_db_time(row["moved_to_dump_at"]),
        last_status_change=from_db_time(row["last_status_change"]),
        is_active=bool(row["is_active"]),
        views=row["views"],
        clicks=row["clicks"],
        last_viewed_at=from_db_time(row["last_viewed_at"]),
        last_clicked_at=from_db_time(row["last_clicked_at"]),
        created_at=from_db_time(row["created_at"]),
    )


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


def record_visit(
    conn: Connection,
    day: date,
    client_id: str,
    user_agent: str,
    device: str,
    browser: str,
    now: datetime,
) -> bool:
    """Count one visit against ``day``. Returns True if the visitor pair was new that day.

    Counter columns are incremented in SQL and both statements share one
    transaction; the visitor pair is deduplicated by its primary key.
    """
    if device not in DEVICE_COLUMNS or browser not in BROWSER_COLUMNS:
        msg = f"Unknown device/browser category: {device!r}/{browser!r}"
        raise ValueError(msg)
    key = day.isoformat()
    with transaction(conn):
        conn.execute(
            f"""
            INSERT INTO analytics_days (date, website_visits, {device}, {browser})
            VALUES (?, 1, 1, 1)
            ON CONFLICT(date) DO UPDATE SET
                website_visits = website_visits + 1,
                {device} = {device} + 1,
                {browser} = {browser} + 1
            """,  # noqa: S608
            (key,),
        )
        cursor = conn.execute(
            """
            INSERT OR IGNORE INTO analytics_visitors (date, client_id, user_agent, first_seen_at)
            VALUES (?, ?, ?, ?)
            """,
            (key, client_id, user_agent, to_db_time(now)),
        )
    return cursor.rowcount > 0


def increment_job_event(conn: Connection, day: date, job_id: int, kind: str) -> None:
    """Add one view or click for ``job_id`` to ``day``, creating the rows if needed."""
    key = day.isoformat()
    with transaction(conn):
        conn.execute("INSERT OR IGNORE INTO analytics_days (date) VALUES (?)", (key,))
        conn.execute(
            """
            INSERT INTO analytics_job_events (date, job_id, kind, count)
            VALUES (?, ?, ?, 1)
            ON CONFLICT(date, job_id, kind) DO UPDATE SET count = count + 1
            """,
            (key, job_id, kind),
        )


def fetch_days(conn: Connection, start: date, end: date) -> list[sqlite3.Row]:
    return _fetchall(
        conn,
        "SELECT * FROM analytics_days WHERE date BETWEEN ? AND ? ORDER BY date",
        (start.isoformat(), end.isoformat()),
    )


def fetch_visitors(conn: Connection, start: date, end: date) -> list[sqlite3.Row]:
    return _fetchall(
        conn,
        """
        SELECT * FROM analytics_visitors
        WHERE date BETWEEN ? AND ?
        ORDER BY date, first_seen_at
        """,
        (start.isoformat(), end.isoformat()),
    )


def fetch_job_events(conn: Connection, start: date, end: date) -> list[sqlite3.Row]:
    return _fetchall(
        conn,
        """
        SELECT * FROM analytics_job_events
        WHERE date BETWEEN ? AND ?
        ORDER BY date, count DESC, job_id
        """,
        (start.isoformat(), end.isoformat()),
    )

