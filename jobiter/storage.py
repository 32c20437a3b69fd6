import sqlite3, os, threading
from functools import wraps
from pathlib import Path
from typing import Optional, List, Tuple
from datetime import datetime
from .utils import utcnow
from .models import DEFAULTS, JobPayload
from .continuation import payload_to_json

_local = threading.local()


def db_path() -> Path:
    db_dir = Path(os.environ.get("JOBITER_HOME", Path.home() / ".jobiter"))
    db_dir.mkdir(parents=True, exist_ok=True)
    return db_dir / "queue.db"


def get_conn() -> sqlite3.Connection:
    conn = getattr(_local, "conn", None)
    if conn is None:
        conn = sqlite3.connect(db_path(), isolation_level=None)
        conn.row_factory = sqlite3.Row
        _local.conn = conn
        init_db(conn)
    return conn


def close_conn() -> None:
    conn = getattr(_local, "conn", None)
    if conn is not None:
        conn.close()
        _local.conn = None


def with_conn(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        conn = get_conn()
        return fn(conn, *args, **kwargs)
    return wrapper


def init_db(conn: sqlite3.Connection):
    conn.executescript(
        """
        PRAGMA journal_mode=WAL;
        CREATE TABLE IF NOT EXISTS jobs(
          id TEXT PRIMARY KEY,
          job_class TEXT NOT NULL,
          payload TEXT NOT NULL,
          state TEXT NOT NULL,
          executions INTEGER NOT NULL DEFAULT 0,
          max_retries INTEGER NOT NULL,
          created_at TEXT NOT NULL,
          updated_at TEXT NOT NULL,
          next_run_at TEXT NOT NULL,
          last_error TEXT,
          priority INTEGER NOT NULL DEFAULT 0,
          worker_id TEXT
        );
        CREATE INDEX IF NOT EXISTS idx_jobs_state_next ON jobs(state,next_run_at);
        CREATE TABLE IF NOT EXISTS config(
          key TEXT PRIMARY KEY,
          value TEXT NOT NULL
        );
        CREATE TABLE IF NOT EXISTS workers(
          id TEXT PRIMARY KEY,
          pid INTEGER NOT NULL,
          started_at TEXT NOT NULL,
          stopped_at TEXT
        );
        """
    )
    # defaults
    for k, v in DEFAULTS.items():
        conn.execute(
            "INSERT INTO config(key,value) VALUES(?,?) ON CONFLICT(key) DO NOTHING",
            (k, str(v)),
        )
    conn.execute("INSERT INTO config(key,value) VALUES('shutdown','false') ON CONFLICT(key) DO NOTHING")


@with_conn
def upsert_job(conn, payload: JobPayload, max_retries: int, priority: Optional[int] = None,
               next_run_at: Optional[datetime] = None):
    """Insert a job, or put an existing one back to pending with a new payload."""
    now = utcnow().isoformat()
    conn.execute(
        """INSERT INTO jobs(id,job_class,payload,state,executions,max_retries,created_at,updated_at,next_run_at,last_error,priority,worker_id)
           VALUES(:id,:job_class,:payload,'pending',:executions,:max_retries,:now,:now,:next_run_at,NULL,:priority,NULL)
           ON CONFLICT(id) DO UPDATE SET
             payload=excluded.payload,
             state='pending',
             executions=excluded.executions,
             updated_at=excluded.updated_at,
             next_run_at=excluded.next_run_at,
             last_error=NULL,
             priority=COALESCE(:priority_override, jobs.priority),
             worker_id=NULL
        """,
        {
            "id": payload.job_id,
            "job_class": payload.job_class,
            "payload": payload_to_json(payload),
            "executions": payload.executions,
            "max_retries": max_retries,
            "now": now,
            "next_run_at": (next_run_at.isoformat() if next_run_at else now),
            "priority": priority or 0,
            "priority_override": priority,
        },
    )


@with_conn
def get_job(conn, job_id: str) -> Optional[sqlite3.Row]:
    cur = conn.execute("SELECT * FROM jobs WHERE id=?", (job_id,))
    return cur.fetchone()


@with_conn
def list_jobs(conn, state: Optional[str] = None) -> List[sqlite3.Row]:
    if state:
        cur = conn.execute("SELECT * FROM jobs WHERE state=? ORDER BY created_at", (state,))
    else:
        cur = conn.execute("SELECT * FROM jobs ORDER BY created_at")
    return cur.fetchall()


@with_conn
def counts_by_state(conn) -> List[Tuple[str, int]]:
    cur = conn.execute("SELECT state, COUNT(*) FROM jobs GROUP BY state")
    return cur.fetchall()


@with_conn
def config_get(conn, key: str, default: Optional[str] = None) -> str:
    cur = conn.execute("SELECT value FROM config WHERE key=?", (key,))
    row = cur.fetchone()
    return row[0] if row else default


@with_conn
def config_set(conn, key: str, value: str):
    conn.execute("INSERT INTO config(key,value) VALUES(?,?) ON CONFLICT(key) DO UPDATE SET value=excluded.value", (key, value))


def pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


@with_conn
def reap_dead_workers(conn) -> List[str]:
    """Mark registered workers whose process is gone as stopped."""
    rows = conn.execute("SELECT id, pid FROM workers WHERE stopped_at IS NULL").fetchall()
    dead = [r["id"] for r in rows if not pid_alive(r["pid"])]
    now = utcnow().isoformat()
    for wid in dead:
        conn.execute("UPDATE workers SET stopped_at=? WHERE id=?", (now, wid))
    return dead


@with_conn
def recover_processing(conn) -> int:
    """
    Slices a dead worker left in 'processing' become retryable again from their stored payload.
    Slices held by a live registered worker are left alone.
    """
    reap_dead_workers()
    now = utcnow().isoformat()
    cur = conn.execute("""
      UPDATE jobs
         SET state='failed', next_run_at=?, worker_id=NULL, updated_at=?
       WHERE state='processing'
         AND (worker_id IS NULL
              OR worker_id NOT IN (SELECT id FROM workers WHERE stopped_at IS NULL))
    """, (now, now))
    return cur.rowcount


@with_conn
def fetch_and_lock_next_job(conn, worker_id: str) -> Optional[sqlite3.Row]:
    """BEGIN IMMEDIATE ensures only one writer wins; we move a job to processing atomically."""
    now = utcnow().isoformat()
    conn.execute("BEGIN IMMEDIATE")
    try:
        row = conn.execute(
            """
            SELECT id FROM jobs
             WHERE state IN ('pending','failed') AND next_run_at <= ?
             ORDER BY priority DESC, next_run_at ASC, created_at ASC
             LIMIT 1
            """, (now,)
        ).fetchone()
        if not row:
            conn.execute("COMMIT")
            return None
        job_id = row["id"]
        conn.execute(
            "UPDATE jobs SET state='processing', worker_id=?, updated_at=? WHERE id=?",
            (worker_id, now, job_id),
        )
        job = conn.execute("SELECT * FROM jobs WHERE id=?", (job_id,)).fetchone()
        conn.execute("COMMIT")
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    return job


@with_conn
def mark_completed(conn, job_id: str, payload: Optional[JobPayload] = None):
    now = utcnow().isoformat()
    if payload is None:
        conn.execute("UPDATE jobs SET state='completed', updated_at=?, worker_id=NULL WHERE id=?", (now, job_id))
    else:
        conn.execute(
            "UPDATE jobs SET state='completed', payload=?, executions=?, updated_at=?, worker_id=NULL WHERE id=?",
            (payload_to_json(payload), payload.executions, now, job_id),
        )


@with_conn
def mark_failed_or_dead(conn, payload: JobPayload, last_error: str, next_run_at: Optional[datetime]):
    """next_run_at=None sends the job to the dead letter queue."""
    now = utcnow().isoformat()
    if next_run_at is None:
        conn.execute(
            "UPDATE jobs SET state='dead', payload=?, executions=?, last_error=?, updated_at=?, worker_id=NULL WHERE id=?",
            (payload_to_json(payload), payload.executions, last_error, now, payload.job_id),
        )
    else:
        conn.execute(
            "UPDATE jobs SET state='failed', payload=?, executions=?, last_error=?, next_run_at=?, updated_at=?, worker_id=NULL WHERE id=?",
            (payload_to_json(payload), payload.executions, last_error, next_run_at.isoformat(), now, payload.job_id),
        )


@with_conn
def register_worker(conn, wid: str, pid: int):
    conn.execute("INSERT INTO workers(id,pid,started_at) VALUES(?,?,?)", (wid, pid, utcnow().isoformat()))


@with_conn
def stop_worker_record(conn, wid: str):
    conn.execute("UPDATE workers SET stopped_at=? WHERE id=?", (utcnow().isoformat(), wid))


@with_conn
def list_workers(conn):
    return conn.execute("SELECT * FROM workers WHERE stopped_at IS NULL").fetchall()
