"""
Model comparison by approximate leave-one-out cross-validation.

Provides:
- Ranking of fitted models by expected log predictive density (PSIS-LOO)
- Human-readable comparison report
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Sequence, Union

import arviz as az
import pandas as pd

from bayesreg.utils import get_logger

logger = get_logger("evaluation.comparison")


@dataclass
class ComparisonResult:
    """Result of comparing multiple models."""

    table: pd.DataFrame     # az.compare output, best model first
    best_model: str

    @property
    def ranking(self) -> list:
        return list(self.table.index)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "best_model": self.best_model,
            "models": {
                name: {
                    "rank": int(row["rank"]),
                    "elpd_loo": float(row["elpd_loo"]),
                    "p_loo": float(row["p_loo"]),
                    "elpd_diff": float(row["elpd_diff"]),
                    "dse": float(row["dse"]),
                    "weight": float(row["weight"]),
                }
                for name, row in self.table.iterrows()
            },
        }

    def summary(self) -> str:
        """Generate human-readable summary."""
        lines = ["=" * 60, "MODEL COMPARISON (PSIS-LOO)", "=" * 60, ""]
        lines.append(f"{'Model':<30} {'elpd_loo':>10} {'elpd_diff':>10} {'dse':>8} {'weight':>8}")
        lines.append("-" * 70)

        for name, row in self.table.iterrows():
            lines.append(
                f"{str(name):<30} "
                f"{row['elpd_loo']:>10.2f} "
                f"{row['elpd_diff']:>10.2f} "
                f"{row['dse']:>8.2f} "
                f"{row['weight']:>8.2f}"
            )

        lines.append("")
        lines.append(f"Best model: {self.best_model}")
        return "\n".join(lines)


def compare_models(models: Union[Mapping[str, Any], Sequence[Any]]) -> ComparisonResult:
    """
    Rank fitted models by PSIS-LOO.

    Args:
        models: Fitted RegressionModels, either a name -> model mapping or a
            sequence (then each model's `name` is used)

    Returns:
        ComparisonResult

    Raises:
        ValueError: fewer than two models, duplicate names or an unfitted model
    """
    if not isinstance(models, Mapping):
        names = [m.name for m in models]
        if len(set(names)) != len(names):
            raise ValueError(f"Model names must be unique, got {names}")
        models = dict(zip(names, models))

    if len(models) < 2:
        raise ValueError("Need at least two models to compare")

    traces = {}
    for name, model in models.items():
        if model.trace is None:
            raise ValueError(f"Model {name!r} not fitted")
        traces[name] = model.trace

    logger.info(f"Comparing {len(traces)} models by LOO")
    table = az.compare(traces, ic="loo")
    best = str(table.index[0])
    logger.info(f"Best model by LOO: {best}")

    return ComparisonResult(table=table, best_model=best)
