"""
Bayesian models module.

Provides:
- Formula parsing and design matrices
- Likelihood families and prior specifications
- RegressionModel (PyMC + NUTS)
- Diagnostics, posterior summaries and causal effects
"""

from bayesreg.bayesian.formula import (
    GroupTerm,
    SmoothTerm,
    ParsedFormula,
    DesignMatrices,
    parse_formula,
)
from bayesreg.bayesian.families import (
    AUXILIARY_PARAMETERS,
    as_family,
    inverse_link,
)
from bayesreg.bayesian.priors import (
    PriorSpec,
    RegressionPriors,
    SamplerConfig,
    default_priors,
)
from bayesreg.bayesian.diagnostics import (
    Diagnostics,
    check_diagnostics,
)
from bayesreg.bayesian.posterior import (
    Hypothesis,
    GroupComparison,
    as_draws_df,
    hdi,
    summarize_draws,
    posterior_probability,
    extract_cell_draws,
    compare_groups,
)
from bayesreg.bayesian.model import (
    RegressionModel,
    fit_regression,
)
from bayesreg.bayesian.causal import (
    CausalEffect,
    intervene,
    total_causal_effect,
)

__all__ = [
    # Formula
    "GroupTerm",
    "SmoothTerm",
    "ParsedFormula",
    "DesignMatrices",
    "parse_formula",
    # Families
    "AUXILIARY_PARAMETERS",
    "as_family",
    "inverse_link",
    # Priors
    "PriorSpec",
    "RegressionPriors",
    "SamplerConfig",
    "default_priors",
    # Diagnostics
    "Diagnostics",
    "check_diagnostics",
    # Posterior
    "Hypothesis",
    "GroupComparison",
    "as_draws_df",
    "hdi",
    "summarize_draws",
    "posterior_probability",
    "extract_cell_draws",
    "compare_groups",
    # Model
    "RegressionModel",
    "fit_regression",
    # Causal
    "CausalEffect",
    "intervene",
    "total_causal_effect",
]
