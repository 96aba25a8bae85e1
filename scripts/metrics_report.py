# ABOUTME: CLI that computes cohort engagement metrics from a file of raw event records.
# ABOUTME: Renders the reports as Rich tables and can write them out as JSON.

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from src.cohort_metrics.dashboard import DashboardMetrics, compute_dashboard_metrics
from src.cohort_metrics.synthetic import generate_cohort
from src.event_stream.normalization import to_utc
from src.event_stream.settings import load_thresholds

console = Console()
app = typer.Typer(help="Compute engagement consistency, breakthroughs, pathways, and commitment metrics.")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def load_raw_records(path: Path) -> List[Dict]:
    """Read raw records from .json, .jsonl, .csv, or .parquet."""

    suffix = path.suffix.lower()
    if suffix == ".json":
        payload = json.loads(path.read_text(encoding="utf-8"))
        if isinstance(payload, dict):
            payload = payload.get("events", [])
        if not isinstance(payload, list):
            raise ValueError(f"Expected a list of events in {path}")
        return payload
    if suffix == ".jsonl":
        with open(path, encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]
    if suffix == ".csv":
        df = pd.read_csv(path, dtype=str)
    elif suffix == ".parquet":
        df = pd.read_parquet(path)
    else:
        raise ValueError(f"Unsupported events file '{path.name}'. Expected .json, .jsonl, .csv, or .parquet.")
    df = df.astype(object).where(df.notna(), None)
    return df.to_dict(orient="records")


def _parse_now(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return to_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid ISO timestamp '{value}'", param_hint="--now") from exc


@app.command()
def report(
    events_path: Path = typer.Option(..., "--events-path", exists=True, dir_okay=False, help="Raw event records file."),
    config: Optional[Path] = typer.Option(None, "--config", exists=True, dir_okay=False, help="Thresholds YAML."),
    now: Optional[str] = typer.Option(None, "--now", help="Reference time (ISO8601); defaults to the latest event."),
    output: Optional[Path] = typer.Option(None, "--output", help="Write the full report as JSON."),
) -> None:
    """
    Compute every metric for one tenant's events and print a summary.
    """
    try:
        records = load_raw_records(events_path)
        thresholds = load_thresholds(config)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    metrics = compute_dashboard_metrics(records, now=_parse_now(now), thresholds=thresholds)
    if metrics.is_empty:
        console.print("[yellow]Not enough data yet: no parseable events.[/yellow]")
    else:
        _render(metrics)

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json.dumps(metrics.to_dict(), indent=2), encoding="utf-8")
        console.print(f"[bold]Report written to {output}[/bold]")


@app.command()
def generate(
    output: Path = typer.Option(..., "--output", help="Output JSON path for raw records."),
    students: int = typer.Option(50, "--students", min=1, help="Number of students."),
    weeks: int = typer.Option(8, "--weeks", min=1, help="Weeks of activity to simulate."),
    seed: int = typer.Option(42, "--seed", help="Random seed."),
) -> None:
    """Write synthetic raw records with high/medium/low engagement tiers."""
    cohort = generate_cohort(students=students, weeks=weeks, seed=seed)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps({"events": cohort.records}, indent=2), encoding="utf-8")
    console.print(f"[bold]Wrote {len(cohort.records):,} events for {students} students to {output}[/bold]")


def _render(metrics: DashboardMetrics) -> None:
    console.rule("[bold blue]Cohort Engagement Metrics[/bold blue]")
    console.print(f"[bold]Events:[/] {metrics.total_events:,}  [bold]Students:[/] {metrics.total_students:,}")
    if metrics.dropped_records:
        console.print(f"[yellow]Dropped {metrics.dropped_records} unparseable records[/yellow]")
    console.print()

    consistency = metrics.consistency
    commitment = metrics.commitment
    summary = Table(show_header=True, header_style="bold magenta", title="Scores")
    summary.add_column("Metric")
    summary.add_column("Average")
    summary.add_column("High")
    summary.add_column("Medium")
    summary.add_column("Low / At risk")
    summary.add_row(
        "Consistency",
        f"{consistency.average_score:.1f}",
        str(consistency.distribution["high"]),
        str(consistency.distribution["medium"]),
        str(consistency.distribution["low"]),
    )
    summary.add_row(
        "Commitment",
        f"{commitment.average_score:.1f}",
        str(commitment.distribution["high"]),
        str(commitment.distribution["medium"]),
        str(commitment.distribution["at_risk"]),
    )
    console.print(summary)

    breakthroughs = metrics.breakthroughs
    console.print(
        f"[bold green]Breakthroughs:[/] {breakthroughs.breakthrough_students}/{breakthroughs.eligible_students} "
        f"({breakthroughs.breakthrough_rate:.1f}%), avg time {breakthroughs.average_time_to_breakthrough}, "
        f"{breakthroughs.stagnant_students} stagnant"
    )

    pathways = Table(show_header=True, header_style="bold magenta", title="Top Pathways")
    pathways.add_column("Sequence")
    pathways.add_column("Completion %")
    pathways.add_column("Students")
    pathways.add_column("Avg time")
    for pathway in metrics.pathways.top_pathways:
        pathways.add_row(
            " → ".join(pathway.sequence_names),
            f"{pathway.completion_rate:.1f}",
            str(pathway.student_count),
            pathway.avg_time_to_continue,
        )
    console.print(pathways)

    dead_ends = Table(show_header=True, header_style="bold magenta", title="Dead Ends")
    dead_ends.add_column("Content")
    dead_ends.add_column("Drop-off %")
    dead_ends.add_column("Students")
    for dead_end in metrics.pathways.dead_ends:
        dead_ends.add_row(dead_end.content_name, f"{dead_end.drop_off_rate:.1f}", str(dead_end.student_count))
    console.print(dead_ends)

    combinations = Table(show_header=True, header_style="bold magenta", title="Power Combinations")
    combinations.add_column("Sequence")
    combinations.add_column("Success %")
    combinations.add_column("Attempts")
    combinations.add_column("Students")
    for combination in metrics.pathways.power_combinations:
        combinations.add_row(
            " → ".join(combination.combination_names),
            f"{combination.success_rate:.1f}",
            str(combination.frequency),
            str(combination.student_count),
        )
    console.print(combinations)


if __name__ == "__main__":
    app()
