"""
Personalization CLI.

Commands:
    personalize recommend --catalog data/sample_catalog.json --telemetry data/sample_telemetry.json -l learner-ana
    personalize needs --telemetry data/sample_telemetry.json -l learner-ana
    personalize simulate responses.json --subject math -l learner-ana
    personalize serve --port 8100

Catalogs use the in-memory content store format
({"items": [...], "mastery": {...}}); telemetry files hold
{"samples": [...]} (or a bare list) of interaction samples.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from personalization import __version__
from personalization.core.errors import PersonalizationError
from personalization.core.logging import configure_logging

app = typer.Typer(
    name="personalize",
    help="Adaptive personalization engine: needs, recommendations and adaptive assessments",
    no_args_is_help=True,
)

console = Console()

CatalogOption = Annotated[
    Optional[Path], typer.Option("--catalog", "-c", help="JSON content catalog (default: settings)")
]
TelemetryOption = Annotated[
    Optional[Path], typer.Option("--telemetry", "-t", help="JSON file of interaction samples")
]
LearnerOption = Annotated[str, typer.Option("--learner", "-l", help="Learner identifier")]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logs")] = False,
) -> None:
    configure_logging("DEBUG" if verbose else "WARNING")


# =============================================================================
# Helpers
# =============================================================================


def _read_json(path: Path) -> Any:
    if not path.exists():
        console.print(f"[red]Error: File not found: {path}[/red]")
        raise typer.Exit(1)
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        console.print(f"[red]Error: {path} is not valid JSON: {e}[/red]")
        raise typer.Exit(1)


def _load_samples(path: Path | None) -> list:
    from personalization.models import InteractionSample

    if path is None:
        return []
    data = _read_json(path)
    rows = data.get("samples", []) if isinstance(data, dict) else data
    try:
        return [InteractionSample.from_dict(row) for row in rows]
    except (KeyError, TypeError, ValueError) as e:
        console.print(f"[red]Error: malformed sample in {path}: {e}[/red]")
        raise typer.Exit(1)


async def _build_engine(catalog: Path | None, telemetry: Path | None):
    """Engine over an in-memory telemetry log preloaded from ``telemetry``."""
    from config import get_settings
    from personalization.content.store import InMemoryContentStore
    from personalization.engine import build_engine
    from personalization.signals import InMemoryTelemetryStore

    content_store = None
    if catalog is not None:
        if not catalog.exists():
            console.print(f"[red]Error: Catalog not found: {catalog}[/red]")
            raise typer.Exit(1)
        content_store = InMemoryContentStore.from_json(catalog)

    engine = build_engine(
        get_settings(),
        content_store=content_store,
        telemetry_store=InMemoryTelemetryStore(),
    )
    for sample in _load_samples(telemetry):
        await engine.submit_interaction(sample.learner_id, sample)
    return engine


def _run(coro) -> Any:
    try:
        return asyncio.run(coro)
    except PersonalizationError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


# =============================================================================
# Commands
# =============================================================================


@app.command("recommend")
def recommend(
    learner: LearnerOption,
    catalog: CatalogOption = None,
    telemetry: TelemetryOption = None,
    subject: Annotated[str, typer.Option("--subject", "-s", help="Subject to recommend for")] = "general",
    max_minutes: Annotated[
        Optional[float], typer.Option("--max-minutes", help="Longest acceptable item")
    ] = None,
    content_types: Annotated[
        Optional[list[str]], typer.Option("--type", help="Allowed content type (repeatable)")
    ] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Rows to show")] = 10,
    as_json: Annotated[bool, typer.Option("--json", help="Print JSON instead of a table")] = False,
):
    """
    Rank content for a learner.

    Examples:
        personalize recommend -c data/sample_catalog.json -t data/sample_telemetry.json -l learner-ana -s reading
    """
    from personalization.models import CandidateConstraints, RecommendationContext

    async def go():
        engine = await _build_engine(catalog, telemetry)
        try:
            return await engine.get_recommendations(
                learner,
                RecommendationContext(subject=subject),
                CandidateConstraints(max_minutes=max_minutes, content_types=tuple(content_types or ())),
            )
        finally:
            await engine.close()

    recs = _run(go())

    if as_json:
        console.print_json(json.dumps([r.to_dict() for r in recs[:limit]]))
        return

    if not recs:
        console.print(f"[yellow]No recommendation available for {learner} in {subject}.[/yellow]")
        return

    table = Table(title=f"Recommendations for {learner} ({subject})")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Content", style="cyan")
    table.add_column("Type")
    table.add_column("Difficulty")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Why")
    for i, rec in enumerate(recs[:limit], 1):
        table.add_row(
            str(i),
            rec.title or rec.content_id,
            rec.content_type,
            rec.difficulty,
            f"{rec.fused_score:.3f}",
            rec.rationale[0] if rec.rationale else "",
        )
    console.print(table)


@app.command("needs")
def needs(
    learner: LearnerOption,
    telemetry: TelemetryOption = None,
    catalog: CatalogOption = None,
):
    """Show detected learning needs and the learning profile."""

    async def go():
        engine = await _build_engine(catalog, telemetry)
        try:
            return await engine.get_need_profile(learner)
        finally:
            await engine.close()

    profile = _run(go())
    lp = profile.learning_profile

    console.print(
        Panel(
            f"Learning style: [cyan]{lp.learning_style}[/cyan]\n"
            f"Pace: [cyan]{lp.pace}[/cyan]\n"
            f"Strengths: {', '.join(lp.strengths) or '-'}\n"
            f"Challenges: {', '.join(lp.challenges) or '-'}",
            title=f"Learner {learner}",
        )
    )

    if not profile.needs:
        console.print("[green]No learning needs detected.[/green]")
        return

    table = Table(title="Detected needs")
    table.add_column("Need", style="cyan")
    table.add_column("Severity")
    table.add_column("Confidence", justify="right")
    table.add_column("Evidence")
    table.add_column("Accommodations")
    for need in profile.needs:
        table.add_row(
            need.need_type.value,
            need.severity.value,
            f"{need.confidence:.2f}",
            "; ".join(need.evidence),
            ", ".join(need.accommodations),
        )
    console.print(table)


@app.command("simulate")
def simulate(
    responses: Annotated[Path, typer.Argument(help="JSON list of responses to replay")],
    learner: LearnerOption = "simulated-learner",
    subject: Annotated[str, typer.Option("--subject", "-s", help="Assessed subject")] = "math",
    telemetry: TelemetryOption = None,
    catalog: CatalogOption = None,
    start: Annotated[
        Optional[str], typer.Option("--start", help="Starting difficulty (default: medium)")
    ] = None,
):
    """
    Replay responses through an adaptive assessment session.

    Each response is an object with question_id, correct, latency_seconds,
    confidence and optionally hints_used and attempts.
    """
    from personalization.assessment import SessionConfig
    from personalization.models import Response

    data = _read_json(responses)
    rows = data.get("responses", []) if isinstance(data, dict) else data
    try:
        replay = [Response.from_dict(row) for row in rows]
    except TypeError as e:
        console.print(f"[red]Error: malformed response in {responses}: {e}[/red]")
        raise typer.Exit(1)

    async def go():
        engine = await _build_engine(catalog, telemetry)
        try:
            session = await engine.start_session(
                learner, subject, SessionConfig(starting_difficulty=start, max_questions=max(1, len(replay)))
            )
            outcomes = [await engine.submit_response(session.session_id, r) for r in replay]
            results = await engine.complete_session(session.session_id)
            return session, outcomes, results
        finally:
            await engine.close()

    session, outcomes, results = _run(go())

    table = Table(title=f"Session {session.session_id[:8]} ({subject}, starts at {session.starting_difficulty})")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Question", style="cyan")
    table.add_column("Correct")
    table.add_column("Move")
    table.add_column("Next level")
    table.add_column("Reason", style="dim")
    for i, (response, outcome) in enumerate(zip(replay, outcomes), 1):
        state = outcome.difficulty_state
        table.add_row(
            str(i),
            response.question_id,
            "[green]yes[/green]" if response.correct else "[red]no[/red]",
            state.direction.value,
            outcome.next_difficulty,
            state.reason,
        )
    console.print(table)

    console.print(
        Panel(
            f"Score: [bold]{results.score}[/bold] ({results.correct_answers}/{results.total_questions})\n"
            f"Mastery: [cyan]{results.mastery_level}[/cyan]   Final difficulty: {results.final_difficulty}\n"
            f"Strengths: {', '.join(results.strengths) or '-'}\n"
            f"Weaknesses: {', '.join(results.weaknesses) or '-'}\n"
            f"Next steps: {'; '.join(results.next_steps)}",
            title="Results",
        )
    )


@app.command("serve")
def serve(
    host: Annotated[Optional[str], typer.Option("--host", help="Bind address")] = None,
    port: Annotated[Optional[int], typer.Option("--port", "-p", help="Port")] = None,
    reload: Annotated[bool, typer.Option("--reload", help="Auto-reload on code changes")] = False,
):
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from config import get_settings

    settings = get_settings()
    uvicorn.run(
        "personalization.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@app.command("version")
def version():
    """Print the engine version."""
    console.print(f"adaptive-personalization-engine {__version__}")


def run() -> None:
    app()


if __name__ == "__main__":
    run()
