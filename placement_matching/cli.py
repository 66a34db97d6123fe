"""
Placement Matching Command Line Interface

Operator commands for the matching engine: database setup, queueing
recomputations, draining the queue, and inspecting scores and runs.
"""

from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(
    name="placement-matching",
    help="Candidate/opportunity matching engine CLI",
    add_completion=False,
)
console = Console()


def _get_service():
    """Build the matching service, failing fast when MongoDB is unreachable."""
    from placement_matching.core.service import build_matching_service
    from placement_matching.utils.config import get_settings

    settings = get_settings()
    if settings.queue.backend == "mongodb":
        from placement_matching.data.database import get_database_manager

        if not get_database_manager().check_connection():
            console.print("[red]Error: Could not connect to MongoDB. Run 'init-db' first.[/red]")
            raise typer.Exit(1)
    return build_matching_service(settings)


def _score_style(score: float) -> str:
    from placement_matching.utils.constants import MatchScoreLevel

    return {
        MatchScoreLevel.EXCELLENT: "bold green",
        MatchScoreLevel.GOOD: "green",
        MatchScoreLevel.FAIR: "yellow",
        MatchScoreLevel.POOR: "red",
    }[MatchScoreLevel.from_score(score)]


def _ranked_table(title: str, matches: list) -> Table:
    table = Table(title=title)
    table.add_column("Rank", justify="right", style="cyan")
    table.add_column("Candidate")
    table.add_column("Opportunity")
    table.add_column("Total", justify="right")
    table.add_column("Skill", justify="right")
    table.add_column("Academic", justify="right")
    table.add_column("Experience", justify="right")
    table.add_column("Preference", justify="right")

    for match in matches:
        record = match.record
        table.add_row(
            str(match.rank),
            record.candidate_id,
            record.opportunity_id,
            f"[{_score_style(record.total_score)}]{record.total_score:.2f}[/]",
            f"{record.skill_score:.2f}",
            f"{record.academic_score:.2f}",
            f"{record.experience_score:.2f}",
            f"{record.preference_score:.2f}",
        )
    return table


@app.command()
def version():
    """Show application version."""
    from placement_matching import __app_name__, __version__

    console.print(f"[bold blue]{__app_name__}[/bold blue] version [green]{__version__}[/green]")


@app.command()
def info():
    """Show configuration."""
    from placement_matching.utils.config import get_settings

    settings = get_settings()
    matching = settings.matching
    queue = settings.queue

    table = Table(title="Placement Matching Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Environment", settings.environment)
    table.add_row("Database", f"{settings.database.host}:{settings.database.port}/{settings.database.name}")
    table.add_row("Queue Backend", queue.backend)
    table.add_row(
        "Weights (skill/academic/experience/preference)",
        f"{matching.skill_weight:.2f} / {matching.academic_weight:.2f} / "
        f"{matching.experience_weight:.2f} / {matching.preference_weight:.2f}",
    )
    table.add_row("Interval", f"{queue.interval_seconds:g}s")
    table.add_row("Batch Size", str(queue.batch_size))
    table.add_row("Max Attempts", str(queue.max_attempts))
    table.add_row("Task Timeout", f"{queue.task_timeout_seconds:g}s")
    table.add_row("Retention", f"{queue.retention_days} days")
    table.add_row("Log Level", settings.logging.level)

    console.print(table)


@app.command()
def init_db():
    """Create the indexes the matching engine relies on."""
    from placement_matching.data.database import get_database_manager

    console.print("[yellow]Initializing database...[/yellow]")

    try:
        db_manager = get_database_manager()

        console.print("  Checking database connection...")
        if not db_manager.check_connection():
            console.print("[red]Error: Could not connect to MongoDB.[/red]")
            console.print("[dim]Make sure MongoDB is running and connection settings are correct.[/dim]")
            raise typer.Exit(1)

        console.print("  [green]✓[/green] Connected to MongoDB")

        console.print("  Creating indexes...")
        db_manager.ensure_indexes()
        console.print("  [green]✓[/green] Indexes created")

        console.print("\n[green]Database initialized successfully![/green]")

    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[red]Error initializing database: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def enqueue(
    candidate: Optional[str] = typer.Option(None, "--candidate", "-c", help="Candidate ID"),
    opportunity: Optional[str] = typer.Option(None, "--opportunity", "-o", help="Opportunity ID"),
    reason: str = typer.Option("Queued from CLI", "--reason", "-r", help="Trigger reason"),
    priority: int = typer.Option(0, "--priority", "-p", help="Higher runs first"),
):
    """Queue a recomputation for a pair, a candidate or an opportunity."""
    from placement_matching.utils.exceptions import InvalidTaskScopeError

    service = _get_service()
    try:
        task = service.enqueue(candidate, opportunity, reason, priority)
    except InvalidTaskScopeError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    console.print(
        f"[green]✓[/green] Queued task [cyan]{task.id_str}[/cyan] "
        f"({task.scope.describe()}, priority {task.priority})"
    )


@app.command()
def recompute(
    candidate: Optional[str] = typer.Option(None, "--candidate", "-c", help="Candidate ID"),
    opportunity: Optional[str] = typer.Option(None, "--opportunity", "-o", help="Opportunity ID"),
    priority: int = typer.Option(5, "--priority", "-p", help="Higher runs first"),
    actor: str = typer.Option("cli", "--actor", "-a", help="Who is asking"),
    now: bool = typer.Option(False, "--now", help="Drain the queue once after queueing"),
):
    """Queue a manual recomputation, recorded with the requesting actor."""
    from placement_matching.data.models import scope_from_ids
    from placement_matching.utils.exceptions import InvalidTaskScopeError

    try:
        scope = scope_from_ids(candidate, opportunity)
    except InvalidTaskScopeError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    service = _get_service()
    task = service.trigger_manual_recompute(scope, priority, actor)
    console.print(f"[green]✓[/green] {task.trigger_reason}: task [cyan]{task.id_str}[/cyan]")

    if now:
        _print_batch(service.process_batch_now(actor=actor))


@app.command()
def sweep():
    """Queue a low-priority recomputation for every active candidate."""
    service = _get_service()
    tasks = service.triggers.schedule_full_sweep()
    console.print(f"[green]✓[/green] Queued [cyan]{len(tasks)}[/cyan] candidate sweep task(s)")


def _print_batch(result) -> None:
    style = "green" if result.success else "yellow"
    console.print(
        f"[{style}]Processed {result.claimed} task(s):[/] "
        f"{result.completed} completed, {result.failed} failed in {result.runtime_ms}ms"
    )
    for task_id in result.failed_task_ids:
        console.print(f"  [red]✗[/red] {task_id}")


@app.command()
def process(
    batch_size: Optional[int] = typer.Option(None, "--batch-size", "-b", min=0, help="Tasks to claim"),
    actor: str = typer.Option("cli", "--actor", "-a", help="Recorded as the run trigger"),
):
    """Drain one batch from the queue synchronously."""
    service = _get_service()
    try:
        result = service.process_batch_now(batch_size, actor)
    except Exception as e:
        console.print(f"[red]Error processing queue: {e}[/red]")
        raise typer.Exit(1)
    _print_batch(result)


@app.command()
def run():
    """Run the queue processor in the foreground until interrupted."""
    from placement_matching.main import main

    raise typer.Exit(main())


@app.command()
def status():
    """Show queue status."""
    service = _get_service()
    queue_status = service.get_queue_status()

    table = Table(title="Recomputation Queue")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")

    table.add_row("Pending", str(queue_status.pending))
    table.add_row("Processing", str(queue_status.processing))
    table.add_row("Completed (24h)", str(queue_status.completed_today))
    table.add_row("Failed (24h)", str(queue_status.failed_today))
    age = queue_status.oldest_pending_age_ms
    table.add_row("Oldest Pending", "-" if age is None else f"{age / 1000:.1f}s")

    console.print(table)


@app.command()
def history(
    limit: int = typer.Option(20, "--limit", "-n", min=1, help="Entries to show"),
):
    """Show recent processor runs."""
    service = _get_service()
    runs = service.get_run_history(limit)

    if not runs:
        console.print("[yellow]No runs recorded yet.[/yellow]")
        return

    table = Table(title="Processor Runs")
    table.add_column("When", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("In", justify="right")
    table.add_column("Out", justify="right")
    table.add_column("Runtime", justify="right")
    table.add_column("OK")
    table.add_column("Triggered By")
    table.add_column("Error", style="red")

    for entry in runs:
        table.add_row(
            entry.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            str(entry.run_type),
            str(entry.input_count),
            str(entry.output_count),
            f"{entry.runtime_ms}ms",
            "[green]✓[/green]" if entry.success else "[red]✗[/red]",
            entry.triggered_by or "-",
            entry.error or "",
        )

    console.print(table)


@app.command()
def top(
    opportunity: Optional[str] = typer.Option(None, "--opportunity", "-o", help="Opportunity ID"),
    candidate: Optional[str] = typer.Option(None, "--candidate", "-c", help="Candidate ID"),
    limit: int = typer.Option(10, "--limit", "-n", min=1, help="Matches to show"),
):
    """Show the best matches for an opportunity or a candidate."""
    if bool(opportunity) == bool(candidate):
        console.print("[red]Error: Give exactly one of --opportunity or --candidate.[/red]")
        raise typer.Exit(1)

    service = _get_service()
    if opportunity:
        matches = service.get_top_matches_for_opportunity(opportunity, limit)
        title = f"Top Candidates for {opportunity}"
    else:
        matches = service.get_top_matches_for_candidate(candidate, limit)
        title = f"Top Opportunities for {candidate}"

    if not matches:
        console.print("[yellow]No scores stored yet.[/yellow]")
        return

    console.print(_ranked_table(title, matches))


@app.command()
def insights(
    candidate: str = typer.Argument(..., help="Candidate ID"),
    opportunity: str = typer.Argument(..., help="Opportunity ID"),
):
    """Explain the stored score of one pair."""
    service = _get_service()
    result = service.get_match_insights(candidate, opportunity)

    if result is None:
        console.print("[yellow]This pair has not been scored yet.[/yellow]")
        raise typer.Exit(1)

    breakdown = result.breakdown
    fit = result.fit_analysis
    console.print(
        f"[bold]{candidate}[/bold] x [bold]{opportunity}[/bold]: "
        f"[{_score_style(breakdown.total_score)}]{breakdown.total_score:.2f}[/] "
        f"({fit.overall})"
    )
    console.print(
        f"  Skills {breakdown.skill_score:.2f} ({fit.skill_fit}) | "
        f"Academics {breakdown.academic_score:.2f} ({fit.academic_fit}) | "
        f"Experience {breakdown.experience_score:.2f} ({fit.experience_fit}) | "
        f"Preferences {breakdown.preference_score:.2f}"
    )

    sections = [
        ("Strengths", result.strengths, "green"),
        ("Improvements", result.improvements, "yellow"),
        ("Recommendations", result.recommendations, "cyan"),
        ("Skill Gaps", result.skill_gaps, "red"),
        ("For the Candidate", result.candidate_recommendations, "blue"),
    ]
    for heading, items, style in sections:
        if items:
            console.print(f"\n[bold {style}]{heading}:[/bold {style}]")
            for item in items:
                console.print(f"  • {item}")


@app.command()
def stats():
    """Show aggregate matching statistics."""
    service = _get_service()
    summary = service.get_matching_stats()

    console.print(f"Total matches:   [cyan]{summary.total_matches}[/cyan]")
    console.print(f"Scored (24h):    [cyan]{summary.recent_matches}[/cyan]")
    console.print(f"Queue size:      [cyan]{summary.queue_size}[/cyan]")
    console.print(f"Average score:   [cyan]{summary.average_score:.2f}[/cyan]")

    if summary.top_matches:
        console.print(_ranked_table("Top Matches", summary.top_matches))


@app.command()
def cleanup(
    days: Optional[int] = typer.Option(None, "--days", "-d", min=0, help="Retention in days"),
):
    """Purge completed and failed tasks older than the retention window."""
    service = _get_service()
    removed = service.cleanup(days)
    console.print(f"[green]✓[/green] Removed [cyan]{removed}[/cyan] finished task(s)")


if __name__ == "__main__":
    app()
