"""
MCMC diagnostics.

Wraps ArviZ's R-hat, effective sample size and the sampler's divergence
flags into one `Diagnostics` record. Problems are logged and reported;
interpreting them is left to the reader of the chapter.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import arviz as az
import numpy as np
import pandas as pd

from bayesreg.config import settings
from bayesreg.utils import get_logger

logger = get_logger("bayesian.diagnostics")


@dataclass
class Diagnostics:
    """Convergence summary of one fit."""

    n_divergences: int
    max_rhat: float
    min_ess_bulk: float
    min_ess_tail: float
    n_rhat_issues: int
    n_ess_issues: int
    n_draws: int
    n_chains: int
    rhat_threshold: float = 1.01
    ess_threshold: float = 400
    table: pd.DataFrame = field(default_factory=pd.DataFrame, repr=False)

    @property
    def rhat_ok(self) -> bool:
        # R-hat is undefined for a single chain
        return bool(np.isnan(self.max_rhat) or self.max_rhat < self.rhat_threshold)

    @property
    def is_healthy(self) -> bool:
        return (
            self.n_divergences == 0
            and self.rhat_ok
            and self.min_ess_bulk >= self.ess_threshold
        )

    def messages(self) -> List[str]:
        """Human-readable list of problems (empty if healthy)."""
        problems = []
        if not self.rhat_ok:
            problems.append(f"R-hat={self.max_rhat:.3f} >= {self.rhat_threshold}")
        if self.min_ess_bulk < self.ess_threshold:
            problems.append(f"ESS={self.min_ess_bulk:.0f} < {self.ess_threshold:.0f}")
        if self.n_divergences > 0:
            problems.append(f"{self.n_divergences} divergent transitions")
        return problems

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "n_divergences": self.n_divergences,
            "max_rhat": None if np.isnan(self.max_rhat) else self.max_rhat,
            "min_ess_bulk": self.min_ess_bulk,
            "min_ess_tail": self.min_ess_tail,
            "n_rhat_issues": self.n_rhat_issues,
            "n_ess_issues": self.n_ess_issues,
            "n_draws": self.n_draws,
            "n_chains": self.n_chains,
            "is_healthy": self.is_healthy,
            "messages": self.messages(),
        }


def rhat_table(idata: az.InferenceData, var_names: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """Per-parameter R-hat, bulk/tail ESS and MCSE."""
    return az.summary(idata, var_names=list(var_names) if var_names else None, kind="diagnostics")


def count_divergences(idata: az.InferenceData) -> int:
    """Number of divergent transitions after warm-up."""
    if not hasattr(idata, "sample_stats"):
        return 0
    diverging = idata.sample_stats.get("diverging", None)
    if diverging is None:
        return 0
    return int(np.sum(diverging.values))


def check_diagnostics(
    idata: az.InferenceData,
    var_names: Optional[Sequence[str]] = None,
    rhat_threshold: Optional[float] = None,
    ess_threshold: Optional[float] = None,
) -> Diagnostics:
    """
    Check MCMC diagnostics and log warnings.

    Args:
        idata: Fitted InferenceData (needs a posterior group)
        var_names: Parameters to check (default: all posterior variables)
        rhat_threshold: Flag parameters with R-hat at or above this
        ess_threshold: Flag parameters with bulk ESS below this

    Returns:
        Diagnostics
    """
    rhat_threshold = rhat_threshold or settings.rhat_threshold
    ess_threshold = ess_threshold or settings.ess_threshold

    table = rhat_table(idata, var_names)

    rhat = table["r_hat"]
    max_rhat = float(rhat.max()) if rhat.notna().any() else float("nan")
    min_ess_bulk = float(table["ess_bulk"].min())
    min_ess_tail = float(table["ess_tail"].min()) if "ess_tail" in table else min_ess_bulk

    rhat_issues = table[rhat >= rhat_threshold]
    if len(rhat_issues) > 0:
        logger.warning(
            f"R-hat >= {rhat_threshold} for {len(rhat_issues)} parameters (max={max_rhat:.3f})"
        )

    ess_issues = table[table["ess_bulk"] < ess_threshold]
    if len(ess_issues) > 0:
        logger.warning(
            f"ESS < {ess_threshold} for {len(ess_issues)} parameters (min={min_ess_bulk:.0f})"
        )

    n_divergences = count_divergences(idata)
    if n_divergences > 0:
        logger.warning(f"Found {n_divergences} divergent transitions")

    posterior = idata.posterior
    return Diagnostics(
        n_divergences=n_divergences,
        max_rhat=max_rhat,
        min_ess_bulk=min_ess_bulk,
        min_ess_tail=min_ess_tail,
        n_rhat_issues=len(rhat_issues),
        n_ess_issues=len(ess_issues),
        n_draws=int(posterior.sizes["draw"]),
        n_chains=int(posterior.sizes["chain"]),
        rhat_threshold=rhat_threshold,
        ess_threshold=ess_threshold,
        table=table,
    )
