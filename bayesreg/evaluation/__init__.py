"""
Evaluation module.

Provides:
- Bayesian R-squared and posterior predictive p-values
- Savage-Dickey Bayes factors and ROPE decisions
- LOO model comparison
"""

from bayesreg.evaluation.metrics import (
    STATISTICS,
    r2_from_draws,
    bayesian_r2,
    ppc_pvalue_from_draws,
    posterior_predictive_pvalue,
    savage_dickey_ratio,
    savage_dickey_bayes_factor,
    point_null_interval_test,
)
from bayesreg.evaluation.comparison import (
    ComparisonResult,
    compare_models,
)

__all__ = [
    # Metrics
    "STATISTICS",
    "r2_from_draws",
    "bayesian_r2",
    "ppc_pvalue_from_draws",
    "posterior_predictive_pvalue",
    "savage_dickey_ratio",
    "savage_dickey_bayes_factor",
    "point_null_interval_test",
    # Comparison
    "ComparisonResult",
    "compare_models",
]
