"""
Causal effects from fitted regression models.

The total causal effect (TCE) of setting X to x1 rather than x0 is

    TCE = E[Y | do(X = x1)] - E[Y | do(X = x0)]

With a valid adjustment set Z in the model, each expectation is obtained by
standardisation: set X for every observed row, keep the observed Z, predict
the expected outcome and average over rows. Doing this per posterior draw
gives the posterior of the TCE.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

import numpy as np
import pandas as pd

from bayesreg.bayesian.posterior import hdi
from bayesreg.constants import PredictionKind
from bayesreg.utils import get_logger

logger = get_logger("bayesian.causal")


@dataclass
class CausalEffect:
    """Posterior of a causal contrast."""

    treatment: str
    treated: Any
    control: Any
    draws: np.ndarray
    mean: float
    lower: float
    upper: float
    probability_positive: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "treatment": self.treatment,
            "treated": self.treated,
            "control": self.control,
            "mean": self.mean,
            "lower": self.lower,
            "upper": self.upper,
            "probability_positive": self.probability_positive,
        }


def intervene(data: pd.DataFrame, **assignments: Any) -> pd.DataFrame:
    """Copy of `data` with columns set to fixed values (the do-operator)."""
    result = data.copy()
    for column, value in assignments.items():
        result[column] = value
    return result


def effect_from_draws(
    treated_draws: np.ndarray,
    control_draws: np.ndarray,
    treatment: str = "X",
    treated: Any = 1,
    control: Any = 0,
    credible_interval: Optional[float] = None,
) -> CausalEffect:
    """Summarise the draw-wise difference of two predicted outcome means."""
    draws = np.asarray(treated_draws, dtype=float) - np.asarray(control_draws, dtype=float)
    lower, upper = hdi(draws, credible_interval)
    return CausalEffect(
        treatment=treatment,
        treated=treated,
        control=control,
        draws=draws,
        mean=float(draws.mean()),
        lower=lower,
        upper=upper,
        probability_positive=float(np.mean(draws > 0)),
    )


def total_causal_effect(
    model,
    treatment: str,
    treated: Any = 1,
    control: Any = 0,
    data: Optional[pd.DataFrame] = None,
    adjust_for: Optional[Sequence[str]] = None,
    kind: PredictionKind | str = PredictionKind.EPRED,
    credible_interval: Optional[float] = None,
) -> CausalEffect:
    """
    Posterior of the total causal effect of `treatment`.

    Args:
        model: Fitted RegressionModel whose predictors form a valid adjustment set
        treatment: Treatment column
        treated / control: The two interventions compared
        data: Rows to standardise over (default: the model's data)
        adjust_for: Covariates the adjustment relies on; each must be a
            predictor of the model
        kind: Outcome scale ('epred' for rates/probabilities, 'linpred')

    Raises:
        ValueError: treatment or an adjustment variable is not in the model
    """
    predictors = set(model.formula.variables[1:])
    if treatment not in predictors:
        raise ValueError(f"Treatment {treatment!r} is not a predictor of the model")

    missing = [z for z in (adjust_for or []) if z not in predictors]
    if missing:
        raise ValueError(f"Adjustment variables {missing} are not in the model")

    data = model.data if data is None else data

    treated_rows = intervene(data, **{treatment: treated})
    control_rows = intervene(data, **{treatment: control})

    treated_mean = model.predict(treated_rows, kind=kind, allow_new_levels=True).mean(axis=1)
    control_mean = model.predict(control_rows, kind=kind, allow_new_levels=True).mean(axis=1)

    effect = effect_from_draws(
        treated_mean,
        control_mean,
        treatment=treatment,
        treated=treated,
        control=control,
        credible_interval=credible_interval,
    )
    logger.info(
        f"TCE of {treatment}={treated} vs {control}: {effect.mean:.3f} "
        f"[{effect.lower:.3f}, {effect.upper:.3f}]"
    )
    return effect
