#!/usr/bin/env python
"""
Run and read course chapters from the command line.

Usage:
    python scripts/run_chapter.py list                        # All chapters
    python scripts/run_chapter.py show 1                      # Prose and exercises
    python scripts/run_chapter.py run 1                       # Fit and summarise
    python scripts/run_chapter.py run priors --draws 500 --chains 2
    python scripts/run_chapter.py run 4 --quick --save-figures
    python scripts/run_chapter.py solve 1 1.2 --quick         # Worked solution
    python scripts/run_chapter.py --json-logs --log-file logs/run.jsonl run 7
"""

import argparse
import json
import sys
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from bayesreg.bayesian.priors import SamplerConfig
from bayesreg.config import settings
from bayesreg.course import get_chapter, list_chapters, run_chapter, solve_exercise
from bayesreg.course.models import jsonable
from bayesreg.utils import setup_logging

console = Console()


def display_chapter_list() -> None:
    """Table of all chapters."""
    table = Table(title="Chapters")
    table.add_column("#", justify="right")
    table.add_column("Id", style="cyan")
    table.add_column("Title")
    table.add_column("Exercises", justify="right")

    for chapter in list_chapters():
        table.add_row(str(chapter.number), chapter.id, chapter.title, str(len(chapter.exercises)))

    console.print(table)


def display_prose(chapter) -> None:
    """Chapter sections and exercise prompts as markdown."""
    console.print(Panel(chapter.summary, title=f"Chapter {chapter.number}: {chapter.title}"))
    for section in chapter.sections:
        console.print(Markdown(f"## {section.title}\n\n{section.body}"))
    for exercise in chapter.exercises:
        console.print(Markdown(f"**Exercise {exercise.id}.** {exercise.prompt}"))


def display_summary(name: str, summary) -> None:
    """Summary table of one fit."""
    table = Table(title=f"Summary: {name}")
    table.add_column("Parameter", style="cyan")
    for column in summary.columns:
        table.add_column(str(column), justify="right")

    for parameter, row in summary.iterrows():
        cells = []
        for value in row:
            if isinstance(value, float):
                cells.append(f"{value:.3f}")
            else:
                cells.append(str(value))
        table.add_row(str(parameter), *cells)

    console.print(table)


def display_diagnostics(result) -> None:
    """Diagnostics per fit with a health banner."""
    table = Table(title="MCMC Diagnostics")
    table.add_column("Model", style="cyan")
    table.add_column("Divergences", justify="right")
    table.add_column("Max R-hat", justify="right")
    table.add_column("Min ESS", justify="right")
    table.add_column("Healthy", justify="center")

    for name, diag in result.diagnostics.items():
        style = "green" if diag.is_healthy else "red"
        rhat = diag.to_dict()["max_rhat"]
        table.add_row(
            name,
            str(diag.n_divergences),
            "-" if rhat is None else f"{rhat:.3f}",
            f"{diag.min_ess_bulk:.0f}",
            f"[{style}]{'✓' if diag.is_healthy else '✗'}[/{style}]",
        )

    console.print(table)

    banner = result.health_banner()
    if banner["is_healthy"]:
        console.print(Panel("[green]All fits pass the diagnostic checks[/green]", title="Health"))
    else:
        lines = [f"{model}: {'; '.join(msgs)}" for model, msgs in banner["problems"].items()]
        console.print(Panel("[red]" + "\n".join(lines) + "[/red]", title="Health"))


def build_sampler(args) -> SamplerConfig:
    overrides = {
        key: getattr(args, key)
        for key in ("draws", "tune", "chains")
        if getattr(args, key) is not None
    }
    if args.quick:
        return SamplerConfig.quick(**overrides)
    return SamplerConfig(**overrides)


def main():
    parser = argparse.ArgumentParser(description="Run and read course chapters")
    parser.add_argument("--log-level", default=settings.log_level, help="Logging level")
    parser.add_argument("--json-logs", action="store_true", help="Use JSON log format")
    parser.add_argument("--log-file", type=Path, default=None, help="Also write logs to this file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="List chapters")

    show = subparsers.add_parser("show", help="Print chapter prose and exercises")
    show.add_argument("chapter", help="Chapter id or number")

    for name, help_text in (("run", "Fit a chapter's models"), ("solve", "Compute a worked solution")):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("chapter", help="Chapter id or number")
        if name == "solve":
            sub.add_argument("exercise", help="Exercise id, e.g. 1.2")
        sub.add_argument("--draws", type=int, default=None, help="Posterior draws per chain")
        sub.add_argument("--tune", type=int, default=None, help="Warm-up steps per chain")
        sub.add_argument("--chains", type=int, default=None, help="Number of chains")
        sub.add_argument("--quick", action="store_true", help="Single short chain")
        sub.add_argument("--save-figures", action="store_true",
                         help=f"Write figures as HTML to {settings.figures_dir}")

    args = parser.parse_args()
    setup_logging(
        level=args.log_level,
        log_file=args.log_file,
        json_format=args.json_logs,
    )

    if args.command == "list":
        display_chapter_list()
        return

    try:
        chapter = get_chapter(args.chapter)
    except KeyError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    if args.command == "show":
        display_prose(chapter)
        return

    sampler = build_sampler(args)
    console.print(Panel(
        f"Chapter: {chapter.number}. {chapter.title}\n"
        f"Sampler: {sampler.chains} chains x {sampler.draws} draws ({sampler.tune} tuning)",
        title="Run",
    ))

    result = run_chapter(chapter.id, sampler=sampler, save_figures=args.save_figures)

    if args.command == "solve":
        try:
            value = solve_exercise(chapter.id, args.exercise, result)
        except KeyError as e:
            console.print(f"[red]Error: {e}[/red]")
            sys.exit(1)
        exercise = chapter.get_exercise(args.exercise)
        console.print(Markdown(f"**Exercise {exercise.id}.** {exercise.prompt}"))
        console.print(Markdown(exercise.solution_text))
        console.print_json(json.dumps(jsonable(value)))
        return

    for name, summary in result.summaries.items():
        display_summary(name, summary)
    display_diagnostics(result)

    if result.values:
        console.print(Panel.fit(json.dumps(jsonable(result.values), indent=2), title="Key quantities"))

    if args.save_figures:
        console.print(f"[blue]Figures written to {settings.figures_dir}[/blue]")

    console.print("[green]Done![/green]")


if __name__ == "__main__":
    main()
