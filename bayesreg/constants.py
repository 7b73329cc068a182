"""
Constants and enums for the course toolkit.

Centralizes family names, prediction kinds and diagnostic thresholds so
chapters, the API and the CLI agree on spelling.
"""

from enum import Enum
from typing import Dict


# =============================================================================
# Likelihood families
# =============================================================================

class Family(str, Enum):
    """Likelihood family of a regression model."""
    GAUSSIAN = "gaussian"
    STUDENT = "student"
    BERNOULLI = "bernoulli"
    POISSON = "poisson"
    NEGBINOMIAL = "negbinomial"

    @property
    def link(self) -> str:
        """Canonical link function used for this family."""
        return FAMILY_LINKS[self]

    @property
    def is_discrete(self) -> bool:
        return self in {Family.BERNOULLI, Family.POISSON, Family.NEGBINOMIAL}


FAMILY_LINKS: Dict[Family, str] = {
    Family.GAUSSIAN: "identity",
    Family.STUDENT: "identity",
    Family.BERNOULLI: "logit",
    Family.POISSON: "log",
    Family.NEGBINOMIAL: "log",
}


# =============================================================================
# Predictions
# =============================================================================

class PredictionKind(str, Enum):
    """What `RegressionModel.predict` returns per draw and row."""
    LINPRED = "linpred"  # Linear predictor (link scale)
    EPRED = "epred"      # Expected value of the response
    PREDICT = "predict"  # Draws from the posterior predictive


# =============================================================================
# Data quality
# =============================================================================

class Severity(str, Enum):
    """Severity of an observation-table issue."""
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


MIN_ROWS_WARNING = 10


# =============================================================================
# Smooth terms
# =============================================================================

DEFAULT_SMOOTH_BASIS_SIZE = 10  # mgcv's default k for s()


# =============================================================================
# Causal / hypothesis testing
# =============================================================================

class RopeDecision(str, Enum):
    """Outcome of an interval-vs-ROPE test."""
    REJECT = "reject"
    ACCEPT = "accept"
    UNDECIDED = "undecided"
