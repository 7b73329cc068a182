"""
Posterior-based model checks.

Provides:
- Bayesian R-squared
- Posterior predictive p-values
- Savage-Dickey Bayes factors for point hypotheses
- Interval-vs-ROPE decisions
"""

from typing import Callable, Optional, Tuple, Union

import numpy as np
from scipy import stats

from bayesreg.bayesian.posterior import hdi
from bayesreg.bayesian.priors import PriorSpec
from bayesreg.constants import PredictionKind, RopeDecision
from bayesreg.utils import get_logger

logger = get_logger("evaluation.metrics")

Statistic = Union[str, Callable[[np.ndarray], float]]

STATISTICS = {
    "mean": np.mean,
    "sd": lambda y: np.std(y, ddof=1),
    "min": np.min,
    "max": np.max,
    "median": np.median,
}


# =============================================================================
# Bayesian R-squared
# =============================================================================

def r2_from_draws(y: np.ndarray, epred: np.ndarray) -> np.ndarray:
    """
    R-squared per draw (Gelman, Goodrich, Gabry & Vehtari 2019).

    R2_s = var(epred_s) / (var(epred_s) + var(y - epred_s))

    Args:
        y: Observed response, shape (n,)
        epred: Expected response draws, shape (S, n)

    Returns:
        Array of shape (S,), values in [0, 1]
    """
    y = np.asarray(y, dtype=float)
    epred = np.asarray(epred, dtype=float)
    var_fit = epred.var(axis=1, ddof=1)
    var_res = (y[None, :] - epred).var(axis=1, ddof=1)
    return var_fit / (var_fit + var_res)


def bayesian_r2(model) -> np.ndarray:
    """Posterior draws of R-squared for a fitted model."""
    epred = model.predict(kind=PredictionKind.EPRED)
    r2 = r2_from_draws(model.design.response, epred)
    logger.debug(f"Bayesian R2 for '{model.name}': {r2.mean():.3f}")
    return r2


# =============================================================================
# Posterior predictive checks
# =============================================================================

def _statistic(statistic: Statistic) -> Callable[[np.ndarray], float]:
    if callable(statistic):
        return statistic
    if statistic not in STATISTICS:
        raise ValueError(
            f"Unknown statistic {statistic!r} (known: {', '.join(STATISTICS)})"
        )
    return STATISTICS[statistic]


def ppc_pvalue_from_draws(y: np.ndarray, y_rep: np.ndarray, statistic: Statistic = "mean") -> float:
    """
    P(T(y_rep) >= T(y)) over replicated datasets.

    Values near 0 or 1 mean the model does not reproduce the statistic.
    """
    func = _statistic(statistic)
    observed = func(np.asarray(y, dtype=float))
    replicated = np.array([func(row) for row in np.asarray(y_rep, dtype=float)])
    return float(np.mean(replicated >= observed))


def posterior_predictive_pvalue(model, statistic: Statistic = "mean") -> float:
    """Posterior predictive p-value of a test statistic for a fitted model."""
    y_rep = model.predict(kind=PredictionKind.PREDICT)
    pvalue = ppc_pvalue_from_draws(model.design.response, y_rep, statistic)
    logger.debug(f"PPC p-value ({statistic}) for '{model.name}': {pvalue:.3f}")
    return pvalue


# =============================================================================
# Savage-Dickey
# =============================================================================

def savage_dickey_ratio(
    posterior_draws: np.ndarray,
    value: float = 0.0,
    prior: Optional[PriorSpec] = None,
    prior_draws: Optional[np.ndarray] = None,
) -> float:
    """
    BF01 for the point hypothesis `parameter == value`.

    BF01 = p(value | data) / p(value), the posterior density over the prior
    density at the point. The posterior density is a KDE of the draws; the
    prior density is exact when `prior` is given, otherwise a KDE of
    `prior_draws`.

    Raises:
        ValueError: neither prior nor prior draws given, or zero prior density
    """
    posterior_density = float(stats.gaussian_kde(np.asarray(posterior_draws, dtype=float))(value)[0])

    if prior is not None:
        prior_density = float(prior.to_scipy().pdf(value))
    elif prior_draws is not None:
        prior_density = float(stats.gaussian_kde(np.asarray(prior_draws, dtype=float))(value)[0])
    else:
        raise ValueError("Need a prior or prior draws for the Savage-Dickey ratio")

    if prior_density <= 0:
        raise ValueError(f"Prior density at {value} is zero; the point hypothesis is excluded a priori")

    return posterior_density / prior_density


def _exact_prior(model, parameter: str) -> Optional[PriorSpec]:
    """Prior of a population-level coefficient, if it has a scipy density."""
    if parameter == "b_Intercept" or not parameter.startswith("b_"):
        return None
    prior = model.priors.prior_for_coefficient(parameter[2:])
    if prior is None:
        return None
    try:
        prior.to_scipy()
    except ValueError:
        return None
    return prior


def savage_dickey_bayes_factor(model, parameter: str, value: float = 0.0) -> float:
    """
    Savage-Dickey BF01 for a parameter of a fitted model.

    Args:
        model: Fitted RegressionModel
        parameter: Column of `model.draws()`, e.g. "b_low_income"
        value: Point value of the null hypothesis

    Returns:
        BF01 (> 1 favours the point null, < 1 the alternative)

    Raises:
        KeyError: unknown parameter
    """
    posterior = model.draws(include_group_effects=False)
    if parameter not in posterior.columns:
        raise KeyError(f"Unknown parameter {parameter!r}")

    prior = _exact_prior(model, parameter)
    prior_draws = None
    if prior is None:
        prior_draws = model.prior_draws()[parameter].to_numpy()

    bf01 = savage_dickey_ratio(
        posterior[parameter].to_numpy(), value=value, prior=prior, prior_draws=prior_draws
    )
    logger.info(f"Savage-Dickey BF01 for {parameter} = {value}: {bf01:.3f}")
    return bf01


# =============================================================================
# ROPE
# =============================================================================

def point_null_interval_test(
    draws: np.ndarray,
    rope: Tuple[float, float],
    credible_interval: Optional[float] = None,
) -> RopeDecision:
    """
    Compare a credible interval to a region of practical equivalence.

    HDI entirely outside the ROPE: reject the null value. HDI entirely
    inside: accept it. Otherwise undecided.
    """
    rope_low, rope_high = rope
    if rope_low >= rope_high:
        raise ValueError(f"ROPE must be an increasing interval, got {rope}")

    lower, upper = hdi(draws, credible_interval)
    if upper < rope_low or lower > rope_high:
        return RopeDecision.REJECT
    if rope_low <= lower and upper <= rope_high:
        return RopeDecision.ACCEPT
    return RopeDecision.UNDECIDED
