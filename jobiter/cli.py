import json
from typing import Optional

import typer
from rich import print
from rich.table import Table
from rich.console import Console

from . import config
from .continuation import payload_from_json
from .errors import JobIterError
from .iteration import IterationJob
from .log import configure_logging
from .queue import SqliteQueue
from .registry import resolve
from .storage import list_jobs, counts_by_state, list_workers
from .worker import start_workers

app = typer.Typer(help="jobiter - resumable iteration jobs on a SQLite queue with workers, retries and DLQ.")

# Sub-apps so CLI supports commands like:
#   jobiter worker start --count 3
#   jobiter config set max-retries 3
worker_app = typer.Typer(help="Start and stop workers.")
config_app = typer.Typer(help="Read and write queue settings.")
dlq_app = typer.Typer(help="Inspect and retry dead jobs.")

app.add_typer(worker_app, name="worker")
app.add_typer(config_app, name="config")
app.add_typer(dlq_app, name="dlq")


@app.callback()
def main(log_level: str = typer.Option("INFO", "--log-level", help="Logging level")):
    configure_logging(log_level)


# -----------------------------
# Enqueue
# -----------------------------
@app.command()
def enqueue(
    job_class: str = typer.Argument(..., help="Dotted path of an IterationJob subclass, e.g. 'myapp.jobs.BackfillJob'"),
    params: Optional[str] = typer.Argument(None, help="Params JSON object e.g. '{\"shop_id\": 42}'"),
    json_file: Optional[str] = typer.Option(None, "--json-file", help="Read params JSON from a file"),
    job_id: Optional[str] = typer.Option(None, "--id", help="Job ID (generated if omitted)"),
    priority: int = typer.Option(0, help="Optional priority (higher first)"),
):
    """Start a new logical job."""
    # Load params from file if provided
    if json_file:
        from pathlib import Path
        params = Path(json_file).read_text(encoding="utf-8").strip()

    data = {}
    if params:
        try:
            data = json.loads(params)
        except json.JSONDecodeError as e:
            raise typer.BadParameter(f"Invalid JSON: {e.msg}")
        if not isinstance(data, dict):
            raise typer.BadParameter("Params must be a JSON object.")

    try:
        cls = resolve(job_class)
    except JobIterError as e:
        raise typer.BadParameter(str(e))
    if not (isinstance(cls, type) and issubclass(cls, IterationJob)):
        raise typer.BadParameter(f"{job_class} is not an IterationJob")

    payload = cls.enqueue(SqliteQueue(), data, job_id=job_id, priority=priority)
    print(f"[green]Enqueued[/green] job [bold]{payload.job_id}[/bold] ({payload.job_class})")


# -----------------------------
# Worker controls
# -----------------------------
@worker_app.command("start")
def worker_start(
    count: int = typer.Option(1, "--count", "-c", help="Number of worker processes"),
    reset_shutdown: bool = typer.Option(True, help="Set shutdown=false before start"),
):
    """Start worker processes."""
    if reset_shutdown:
        config.set_config("shutdown", "false")
    print(f"Starting {count} worker(s). Ctrl+C to stop.")
    start_workers(count)


@worker_app.command("stop")
def worker_stop():
    """Signal workers to stop gracefully (running jobs re-enqueue at their next item)."""
    config.set_config("shutdown", "true")
    print("[yellow]Set shutdown=true. Running jobs will be interrupted and re-enqueued.[/yellow]")


# -----------------------------
# Status & listing
# -----------------------------
@app.command()
def status():
    """Show job state counts and active workers."""
    console = Console()
    tbl = Table(title="Jobs")
    tbl.add_column("State")
    tbl.add_column("Count")
    for row in counts_by_state():
        tbl.add_row(str(row[0]), str(row[1]))
    console.print(tbl)

    wt = Table(title="Active Workers")
    wt.add_column("worker_id")
    wt.add_column("pid")
    wt.add_column("started_at")
    for w in list_workers():
        wt.add_row(w["id"], str(w["pid"]), w["started_at"])
    console.print(wt)


@app.command("list")
def list_cmd(state: Optional[str] = typer.Option(None, "--state", help="Filter by state")):
    """List jobs, optionally by state."""
    rows = list_jobs(state)
    t = Table(title=f"Jobs{'' if not state else f' ({state})'}")
    for c in ["id", "job_class", "state", "executions", "interrupted", "cursor", "next_run_at", "updated_at"]:
        t.add_column(c)
    for r in rows:
        payload = payload_from_json(r["payload"])
        t.add_row(
            r["id"],
            r["job_class"],
            r["state"],
            str(r["executions"]),
            str(payload.times_interrupted),
            json.dumps(payload.cursor_position),
            r["next_run_at"],
            r["updated_at"],
        )
    Console().print(t)


@app.command()
def show(job_id: str):
    """Show the stored payload of one job."""
    job = SqliteQueue().record(job_id)
    if not job:
        print(f"[red]No such job:[/red] {job_id}")
        raise typer.Exit(1)
    payload = job.payload
    t = Table(title=f"Job {job_id}", show_header=False)
    t.add_row("job_class", job.job_class)
    t.add_row("state", job.state)
    t.add_row("next_run_at", job.next_run_at.isoformat())
    t.add_row("cursor_position", json.dumps(payload.cursor_position))
    t.add_row("times_interrupted", str(payload.times_interrupted))
    t.add_row("executions", str(payload.executions))
    t.add_row("total_time", f"{payload.total_time:.3f}s")
    t.add_row("params", json.dumps(payload.params))
    t.add_row("last_error", job.last_error or "")
    Console().print(t)


# -----------------------------
# DLQ (list + retry)
# -----------------------------
@dlq_app.command("list")
def dlq_list():
    """List Dead Letter Queue jobs."""
    rows = list_jobs("dead")
    t = Table(title="DLQ (dead jobs)")
    t.add_column("id")
    t.add_column("job_class")
    t.add_column("executions")
    t.add_column("cursor")
    t.add_column("last_error")
    for r in rows:
        payload = payload_from_json(r["payload"])
        t.add_row(r["id"], r["job_class"], str(r["executions"]),
                  json.dumps(payload.cursor_position), (r["last_error"] or "")[:80])
    Console().print(t)


@dlq_app.command("retry")
def dlq_retry(job_id: str):
    """Re-queue a dead job. It resumes from its last committed cursor."""
    if not SqliteQueue().requeue_dead(job_id):
        print(f"[red]Not found in DLQ:[/red] {job_id}")
        raise typer.Exit(1)
    print(f"[green]DLQ job re-queued:[/green] {job_id}")


# -----------------------------
# Config
# -----------------------------
@config_app.command("set")
def config_set_cmd(key: str = typer.Argument(..., help="Config key"), value: str = typer.Argument(..., help="Value")):
    config.set_config(key, value)
    print(f"set {key}={value}")


@config_app.command("get")
def config_get_cmd(key: str = typer.Argument(..., help="Config key")):
    print(config.get_config(key) or "")
