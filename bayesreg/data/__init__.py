"""
Observation tables used throughout the course.

Provides:
- Hand-entered and simulated datasets
- Quality checks run before every fit
"""

from bayesreg.data.datasets import (
    load_murder_data,
    load_politeness_data,
    simulate_linear,
    simulate_logistic,
    simulate_poisson,
    simulate_grouped,
    simulate_confounded,
    simulate_wiggly,
    true_total_causal_effect,
    list_datasets,
    load_dataset,
)
from bayesreg.data.quality import (
    QualityIssue,
    QualityReport,
    ObservationTableChecker,
    check_observation_table,
)

__all__ = [
    # Datasets
    "load_murder_data",
    "load_politeness_data",
    "simulate_linear",
    "simulate_logistic",
    "simulate_poisson",
    "simulate_grouped",
    "simulate_confounded",
    "simulate_wiggly",
    "true_total_causal_effect",
    "list_datasets",
    "load_dataset",
    # Quality
    "QualityIssue",
    "QualityReport",
    "ObservationTableChecker",
    "check_observation_table",
]
