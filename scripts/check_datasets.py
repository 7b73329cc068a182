#!/usr/bin/env python
"""
Quality checks for the course datasets.

Runs the observation-table checks every model runs before fitting, for
each dataset with the response and family its chapter uses.

Usage:
    python scripts/check_datasets.py
"""

import sys
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from bayesreg.constants import Family, Severity
from bayesreg.data import check_observation_table, load_dataset

console = Console()

# dataset -> (response, predictors, family)
CHECKS = {
    "murder": ("murder_rate", ["low_income", "unemployment"], Family.GAUSSIAN),
    "politeness": ("pitch", ["gender", "context", "subject", "sentence"], Family.GAUSSIAN),
    "linear": ("y", ["x"], Family.GAUSSIAN),
    "logistic": ("y", ["x"], Family.BERNOULLI),
    "poisson": ("y", ["x"], Family.POISSON),
    "grouped": ("y", ["x", "group"], Family.GAUSSIAN),
    "confounded": ("Y", ["X", "Z"], Family.BERNOULLI),
    "wiggly": ("y", ["x"], Family.GAUSSIAN),
}


def main():
    summary = Table(title="Dataset Quality")
    summary.add_column("Dataset", style="cyan")
    summary.add_column("Rows", justify="right")
    summary.add_column("Errors", justify="right")
    summary.add_column("Warnings", justify="right")
    summary.add_column("Status", justify="center")

    issues = []
    for name, (response, predictors, family) in CHECKS.items():
        data = load_dataset(name)
        report = check_observation_table(
            data, response=response, predictors=predictors, family=family,
            n_coefficients=len(predictors) + 1,
        )
        style = "green" if report.is_healthy else "red"
        summary.add_row(
            name,
            str(report.n_rows),
            str(report.error_count),
            str(report.warning_count),
            f"[{style}]{'HEALTHY' if report.is_healthy else 'ISSUES'}[/{style}]",
        )
        issues.extend((name, issue) for issue in report.issues)

    console.print(summary)

    if issues:
        table = Table(title="Issues")
        table.add_column("Dataset", style="cyan")
        table.add_column("Severity")
        table.add_column("Description")
        for name, issue in issues:
            sev_style = "red" if issue.severity == Severity.ERROR else "yellow"
            table.add_row(name, f"[{sev_style}]{issue.severity.value}[/{sev_style}]", issue.description)
        console.print(table)
    else:
        console.print(Panel("[green]No issues found[/green]", title="Quality"))


if __name__ == "__main__":
    main()
