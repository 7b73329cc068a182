"""
Working with posterior draws.

Converts model posteriors into the quantities the chapters talk about:
- Draw tables (one row per draw)
- Means and credible intervals
- Posterior probabilities of hypotheses ("b_x > 0")
- Comparisons of design cells (e.g. polite vs informal speech)
"""

import itertools
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

import arviz as az
import numpy as np
import pandas as pd

from bayesreg.config import settings
from bayesreg.constants import PredictionKind
from bayesreg.utils import get_logger

logger = get_logger("bayesian.posterior")

DRAW_INDEX_COLUMNS = ("chain", "draw")

_COMPARATOR = re.compile(r"(>=|<=|>|<)")


def _default_name(var: str, coord: Optional[str]) -> str:
    return var if coord is None else f"{var}[{coord}]"


def as_draws_df(
    idata: az.InferenceData,
    var_names: Optional[Sequence[str]] = None,
    rename: Optional[Callable[[str, Optional[str]], str]] = None,
    group: str = "posterior",
) -> pd.DataFrame:
    """
    Flatten an InferenceData group into one row per draw.

    Args:
        idata: InferenceData
        var_names: Variables to include (default: all in the group)
        rename: Maps (variable, coordinate label or None) to a column name
        group: InferenceData group ('posterior' or 'prior')

    Returns:
        DataFrame with `chain`, `draw` and one column per scalar component
    """
    rename = rename or _default_name
    dataset = getattr(idata, group)
    var_names = list(var_names) if var_names else list(dataset.data_vars)

    n_chain = dataset.sizes["chain"]
    n_draw = dataset.sizes["draw"]
    columns: Dict[str, np.ndarray] = {
        "chain": np.repeat(np.arange(n_chain), n_draw),
        "draw": np.tile(np.arange(n_draw), n_chain),
    }

    for var in var_names:
        if var not in dataset:
            raise KeyError(f"Variable {var!r} not in {group}")
        array = dataset[var]
        extra_dims = [d for d in array.dims if d not in DRAW_INDEX_COLUMNS]
        values = array.transpose("chain", "draw", *extra_dims).values.reshape(n_chain * n_draw, -1)

        if not extra_dims:
            columns[rename(var, None)] = values[:, 0]
            continue

        labels = itertools.product(*[array.coords[d].values for d in extra_dims])
        for j, combo in enumerate(labels):
            columns[rename(var, ",".join(str(c) for c in combo))] = values[:, j]

    return pd.DataFrame(columns)


def _check_interval(credible_interval: float) -> float:
    if not 0 < credible_interval < 1:
        raise ValueError(f"Credible interval must be in (0, 1), got {credible_interval}")
    return credible_interval


def hdi(samples: np.ndarray, credible_interval: Optional[float] = None) -> Tuple[float, float]:
    """Highest density interval of a 1-d sample."""
    ci = _check_interval(credible_interval or settings.credible_interval)
    lower, upper = az.hdi(np.asarray(samples, dtype=float), hdi_prob=ci)
    return float(lower), float(upper)


def quantile_interval(
    samples: np.ndarray,
    credible_interval: Optional[float] = None,
) -> Tuple[float, float]:
    """Equal-tailed credible interval of a 1-d sample."""
    ci = _check_interval(credible_interval or settings.credible_interval)
    tail = (1 - ci) / 2
    lower, upper = np.quantile(np.asarray(samples, dtype=float), [tail, 1 - tail])
    return float(lower), float(upper)


def summarize_draws(
    draws: pd.DataFrame,
    credible_interval: Optional[float] = None,
    method: str = "hdi",
) -> pd.DataFrame:
    """
    Summary per parameter column: mean, median, sd and a credible interval.

    Args:
        draws: Draw table (chain/draw columns are ignored)
        credible_interval: Interval mass (default from settings)
        method: 'hdi' or 'quantile'
    """
    if method not in {"hdi", "quantile"}:
        raise ValueError(f"Unknown interval method {method!r}")
    interval = hdi if method == "hdi" else quantile_interval

    rows = {}
    for column in draws.columns:
        if column in DRAW_INDEX_COLUMNS:
            continue
        values = draws[column].to_numpy(dtype=float)
        lower, upper = interval(values, credible_interval)
        rows[column] = {
            "mean": float(values.mean()),
            "median": float(np.median(values)),
            "sd": float(values.std(ddof=1)) if values.size > 1 else 0.0,
            "lower": lower,
            "upper": upper,
        }

    return pd.DataFrame.from_dict(rows, orient="index")


# =============================================================================
# Hypotheses
# =============================================================================

@dataclass
class Hypothesis:
    """Posterior evaluation of a directional hypothesis."""

    expression: str
    estimate: float
    sd: float
    lower: float
    upper: float
    probability: float

    @property
    def evidence_ratio(self) -> float:
        """Posterior odds of the hypothesis."""
        if self.probability >= 1.0:
            return float("inf")
        return self.probability / (1.0 - self.probability)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "expression": self.expression,
            "estimate": self.estimate,
            "sd": self.sd,
            "lower": self.lower,
            "upper": self.upper,
            "probability": self.probability,
            "evidence_ratio": self.evidence_ratio,
        }


def posterior_probability(
    draws: pd.DataFrame,
    expression: str,
    credible_interval: Optional[float] = None,
) -> Hypothesis:
    """
    Posterior probability of an inequality between draw columns.

    `"b_low_income > 0"` or `"b_x - b_z > 1"`: the left side minus the right
    side is summarised, and the share of draws satisfying the inequality is
    the posterior probability.

    Raises:
        ValueError: no comparison operator
        KeyError: expression uses an unknown column
    """
    parts = _COMPARATOR.split(expression, maxsplit=1)
    if len(parts) != 3:
        raise ValueError(f"Hypothesis needs one of >, <, >=, <=: {expression!r}")
    lhs, comparator, rhs = (p.strip() for p in parts)

    try:
        difference = np.asarray(draws.eval(lhs), dtype=float) - np.asarray(draws.eval(rhs), dtype=float)
    except NameError as e:  # pandas raises UndefinedVariableError (a NameError)
        raise KeyError(f"Unknown parameter in {expression!r}: {e}") from e
    difference = np.broadcast_to(difference, (len(draws),))

    if comparator in (">", ">="):
        holds = difference > 0 if comparator == ">" else difference >= 0
    else:
        holds = difference < 0 if comparator == "<" else difference <= 0

    lower, upper = hdi(difference, credible_interval)
    return Hypothesis(
        expression=expression,
        estimate=float(difference.mean()),
        sd=float(difference.std(ddof=1)),
        lower=lower,
        upper=upper,
        probability=float(np.mean(holds)),
    )


# =============================================================================
# Cell comparisons
# =============================================================================

@dataclass
class GroupComparison:
    """Posterior of the difference between two design cells."""

    higher: Dict[str, Any]
    lower: Dict[str, Any]
    difference: np.ndarray
    mean_difference: float
    ci_lower: float
    ci_upper: float
    probability: float      # P(higher > lower)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "higher": self.higher,
            "lower": self.lower,
            "mean_difference": self.mean_difference,
            "ci_lower": self.ci_lower,
            "ci_upper": self.ci_upper,
            "probability": self.probability,
        }


def extract_cell_draws(
    model,
    cells: Dict[str, Dict[str, Any]],
    kind: PredictionKind | str = PredictionKind.LINPRED,
) -> pd.DataFrame:
    """
    Draws of the predictor for named design cells.

    Args:
        model: Fitted RegressionModel
        cells: Cell label -> column values, e.g.
            {"F:pol": {"gender": "F", "context": "pol"}}
            Factors a cell leaves unspecified are averaged over (equal
            weight per level); numeric predictors are held at their mean.
        kind: 'linpred' (default) or 'epred'

    Returns:
        DataFrame with one column per cell, one row per draw
    """
    reference = model.reference_values()
    factors = model.factor_levels()

    rows, owners = [], []
    for label, values in cells.items():
        unknown = set(values) - set(model.data.columns)
        if unknown:
            raise KeyError(f"Cell {label!r} uses unknown columns {sorted(unknown)}")

        free = [name for name in factors if name not in values]
        for combo in itertools.product(*[factors[name] for name in free]):
            rows.append({**reference, **dict(zip(free, combo)), **values})
            owners.append(label)

    newdata = pd.DataFrame(rows)
    predictions = model.predict(newdata, kind=kind, allow_new_levels=True)

    owners = np.array(owners)
    return pd.DataFrame({
        label: predictions[:, owners == label].mean(axis=1) for label in cells
    })


def compare_groups(
    model,
    higher: Dict[str, Any],
    lower: Dict[str, Any],
    credible_interval: Optional[float] = None,
    kind: PredictionKind | str = PredictionKind.LINPRED,
) -> GroupComparison:
    """
    Is the cell `higher` credibly above the cell `lower`?

    Example:
        compare_groups(model,
                       higher={"context": "inf"},
                       lower={"context": "pol"})
    """
    cells = extract_cell_draws(model, {"higher": higher, "lower": lower}, kind=kind)
    difference = (cells["higher"] - cells["lower"]).to_numpy()
    ci_lower, ci_upper = hdi(difference, credible_interval)

    comparison = GroupComparison(
        higher=higher,
        lower=lower,
        difference=difference,
        mean_difference=float(difference.mean()),
        ci_lower=ci_lower,
        ci_upper=ci_upper,
        probability=float(np.mean(difference > 0)),
    )
    logger.debug(
        f"Comparison {higher} vs {lower}: mean={comparison.mean_difference:.3f}, "
        f"P(higher > lower)={comparison.probability:.3f}"
    )
    return comparison
