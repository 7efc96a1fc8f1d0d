"""
Typer CLI for the neurotrack telemetry pipeline.

Commands:
    neurotrack replay EVENTS.jsonl --user U --activity A   - Run an event log through the pipeline
    neurotrack history USER                                - List stored sessions of a user
    neurotrack stats USER                                  - Overall statistics of a user
    neurotrack insights USER                               - Cognitive profile and top recommendations

Usage:
    neurotrack replay session.jsonl --user kid-1 --activity memory-game --difficulty medium
    neurotrack replay session.jsonl -u kid-1 -a memory-game --json
    neurotrack history kid-1 --activity memory-game --limit 10
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Optional

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from config import get_settings
from neurotrack.core.errors import NeurotrackError
from neurotrack.core.models import AnalysisReport, now_ms
from neurotrack.core.serialization import dumps
from neurotrack.persistence.gateway import InMemoryPersistenceGateway
from neurotrack.service import MetricsService

app = typer.Typer(
    help="neurotrack: session telemetry -> cognitive domain scores -> recommendations",
    no_args_is_help=True,
)

console = Console()


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )


@app.callback()
def main_callback(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override NEUROTRACK_LOG_LEVEL"),
):
    """Behavioral telemetry pipeline tools."""
    configure_logging(log_level or get_settings().log_level)


class ReplayClock:
    """Clock that follows the timestamps of the replayed events."""

    def __init__(self, start: int):
        self.now = start

    def advance(self, timestamp: int) -> None:
        self.now = max(self.now, timestamp)

    def __call__(self) -> int:
        return self.now


def _read_events(path: Path) -> list[dict[str, Any]]:
    events = []
    with open(path, encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError as e:
                logger.warning(f"{path.name}:{line_no}: invalid JSON skipped ({e})")
                continue
            if not isinstance(data, dict):
                logger.warning(f"{path.name}:{line_no}: not an object, skipped")
                continue
            events.append(data)
    return events


def _print_report(report: AnalysisReport) -> None:
    table = Table(title=f"Session {report.session_id}", show_header=True)
    table.add_column("Domain", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Level")
    for domain, score in report.domain_scores.items():
        table.add_row(domain.value, f"{score.score:.1f}", f"[{score.level.color}]{score.level.value}[/]")
    console.print(table)

    rprint(
        f"Overall: [bold]{report.overall_score:.1f}[/bold]  "
        f"Style: [cyan]{report.learning_style.value}[/cyan]  "
        f"Trend: [cyan]{report.progression_trend.value}[/cyan]  "
        f"Difficulty: [yellow]{report.difficulty_adjustment.value}[/yellow]"
    )

    if report.recommendations:
        recs = Table(title="Recommendations", show_header=True)
        recs.add_column("Priority", style="magenta")
        recs.add_column("Type")
        recs.add_column("Description")
        recs.add_column("Freq", justify="right")
        for rec in report.recommendations:
            recs.add_row(rec.priority.value, rec.type.value, rec.description, str(rec.frequency))
        console.print(recs)

    for note in report.therapist_notes:
        rprint(f"[dim]•[/dim] {note}")


@app.command("replay")
def replay(
    events_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON Lines event log"),
    user: str = typer.Option(..., "--user", "-u", help="User ID"),
    activity: str = typer.Option(..., "--activity", "-a", help="Activity ID"),
    difficulty: str = typer.Option("easy", "--difficulty", "-d", help="easy, medium or hard"),
    age: Optional[int] = typer.Option(None, "--age", help="User age for speed targets"),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON"),
    persist: bool = typer.Option(True, "--persist/--no-persist", help="Store the session in the configured backend"),
) -> None:
    """Replay a recorded event log as one session and print its analysis."""
    raw_events = _read_events(events_file)
    timestamps = [e["timestamp"] for e in raw_events if isinstance(e.get("timestamp"), int)]
    clock = ReplayClock(min(timestamps) if timestamps else now_ms())

    gateway = None if persist else InMemoryPersistenceGateway()
    service = MetricsService(gateway=gateway, clock=clock)

    try:
        session_id = service.start_session(user, activity, difficulty, user_age=age)
    except NeurotrackError as e:
        rprint(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)

    rejected = 0
    for data in raw_events:
        event_type = str(data.pop("type", "") or "")
        if isinstance(data.get("timestamp"), int):
            clock.advance(data["timestamp"])
        result = service.record_interaction(session_id, event_type, data)
        if not result:
            rejected += 1

    report = service.end_session(session_id, {"source": str(events_file)})
    service.flush()

    if as_json:
        typer.echo(dumps(report, indent=2))
    else:
        _print_report(report)
        rprint(f"[green]✓[/green] {len(raw_events) - rejected} events recorded, {rejected} rejected")


@app.command("history")
def history(
    user: str = typer.Argument(..., help="User ID"),
    activity: Optional[str] = typer.Option(None, "--activity", "-a", help="Only this activity"),
    limit: int = typer.Option(20, "--limit", "-l", help="Max sessions"),
) -> None:
    """List stored sessions of a user, most recent first."""
    service = MetricsService()
    summaries = service.get_user_history(user, activity, limit)
    if not summaries:
        rprint(f"[yellow]No sessions stored for {user}[/yellow]")
        return

    table = Table(title=f"Sessions of {user}", show_header=True)
    table.add_column("Session", style="cyan")
    table.add_column("Activity")
    table.add_column("Difficulty")
    table.add_column("Status")
    table.add_column("Attempts", justify="right")
    table.add_column("Accuracy", justify="right", style="green")
    table.add_column("Overall", justify="right")
    for s in summaries:
        table.add_row(
            s.session_id,
            s.activity_id,
            s.difficulty,
            s.status,
            str(s.attempts),
            f"{s.accuracy}%",
            f"{s.overall_score:.1f}",
        )
    console.print(table)


@app.command("stats")
def stats(
    user: str = typer.Argument(..., help="User ID"),
    activity: Optional[str] = typer.Option(None, "--activity", "-a", help="Only this activity"),
) -> None:
    """Overall statistics of a user."""
    result = MetricsService().get_overall_stats(user, activity)

    table = Table(title=f"Overall stats of {user}", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")
    for key, value in result.to_dict().items():
        if isinstance(value, dict):
            value = ", ".join(f"{k}: {v}" for k, v in value.items())
        table.add_row(key.replace("_", " "), str(value))
    console.print(table)


@app.command("insights")
def insights(user: str = typer.Argument(..., help="User ID")) -> None:
    """Cognitive profile and prioritized recommendations over recent sessions."""
    result = MetricsService().get_dashboard_insights(user)
    rprint(result.summary)

    if result.cognitive_profile:
        table = Table(title="Cognitive profile", show_header=True)
        table.add_column("Domain", style="cyan")
        table.add_column("Average", justify="right")
        table.add_column("Trend %", justify="right")
        table.add_column("Level")
        for domain, profile in result.cognitive_profile.items():
            table.add_row(
                domain.value,
                f"{profile.average_score:.1f}",
                f"{profile.trend:+.1f}",
                f"[{profile.level.color}]{profile.level.value}[/]",
            )
        console.print(table)

    for rec in result.recommendations:
        rprint(f"[magenta]{rec.priority.value}[/magenta] {rec.description} (x{rec.frequency})")


def run() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    run()
