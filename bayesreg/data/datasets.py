"""
Course datasets.

Every chapter works on a small observation table. A few tables are
hand-entered classic textbook examples; the rest are simulated from known
generating parameters with a fixed seed, so fitted posteriors can be checked
against the truth.

Provides:
- load_murder_data: city statistics (murder rate, low income, unemployment)
- load_politeness_data: 2x2 factorial voice-pitch data with subjects/items
- simulate_*: linear, logistic, Poisson, grouped, confounded and wiggly data
- list_datasets / load_dataset: name-based registry
"""

from io import StringIO
from typing import Callable, Dict, List

import numpy as np
import pandas as pd

from bayesreg.config import settings
from bayesreg.utils import get_logger, logistic

logger = get_logger("data.datasets")


# =============================================================================
# Hand-entered data
# =============================================================================

_MURDER_DATA = """murder_rate,low_income,unemployment,population
11.2,16.5,6.2,587000
13.4,20.5,6.4,643000
40.7,26.3,9.3,635000
5.3,16.5,5.3,692000
24.8,19.2,7.3,1248000
12.7,16.5,5.9,643000
20.9,20.2,6.4,1964000
35.7,21.3,7.6,1531000
8.7,17.2,4.9,713000
9.6,14.3,6.4,749000
14.5,18.1,6.0,7895000
26.9,23.1,7.4,762000
15.7,19.1,5.8,2793000
36.2,24.7,8.6,741000
18.1,18.6,6.5,625000
28.9,24.9,8.3,854000
14.9,17.9,6.7,716000
25.8,22.4,8.6,921000
21.7,20.2,8.4,595000
25.7,16.9,6.7,3353000
"""


def load_murder_data() -> pd.DataFrame:
    """
    Murder rates of 20 cities.

    Columns:
        murder_rate: annual murders per 1,000,000 inhabitants
        low_income: percentage of inhabitants with low income
        unemployment: unemployment rate in percent
        population: number of inhabitants
    """
    return pd.read_csv(StringIO(_MURDER_DATA))


# =============================================================================
# Simulated data
# =============================================================================

def _rng(seed: int | None) -> np.random.Generator:
    return np.random.default_rng(settings.random_seed if seed is None else seed)


def load_politeness_data(seed: int | None = None) -> pd.DataFrame:
    """
    Voice pitch in informal vs polite speech (simulated 2x2 factorial).

    Six speakers (three female, three male) each utter seven scenarios in an
    informal and a polite context. Cell means follow the classic finding:
    polite speech is lower in pitch, more so for female speakers.

    Columns: subject, gender (F/M), sentence, context (inf/pol), pitch
    """
    rng = _rng(seed)
    cell_means = {
        ("F", "inf"): 261.0,
        ("F", "pol"): 233.0,
        ("M", "inf"): 144.0,
        ("M", "pol"): 133.0,
    }
    subjects = {"F1": "F", "F2": "F", "F3": "F", "M1": "M", "M2": "M", "M3": "M"}
    sentences = [f"S{i}" for i in range(1, 8)]

    subject_offset = {s: rng.normal(0, 20) for s in subjects}
    sentence_offset = {s: rng.normal(0, 10) for s in sentences}

    rows = []
    for subject, gender in subjects.items():
        for sentence in sentences:
            for context in ("inf", "pol"):
                pitch = (
                    cell_means[(gender, context)]
                    + subject_offset[subject]
                    + sentence_offset[sentence]
                    + rng.normal(0, 15)
                )
                rows.append({
                    "subject": subject,
                    "gender": gender,
                    "sentence": sentence,
                    "context": context,
                    "pitch": round(float(pitch), 1),
                })

    return pd.DataFrame(rows)


def simulate_linear(
    n: int = 100,
    intercept: float = 2.0,
    slope: float = 0.5,
    sigma: float = 1.0,
    seed: int | None = None,
) -> pd.DataFrame:
    """Gaussian simple regression: y = intercept + slope * x + N(0, sigma)."""
    rng = _rng(seed)
    x = rng.normal(0, 1, size=n)
    y = intercept + slope * x + rng.normal(0, sigma, size=n)
    return pd.DataFrame({"x": x, "y": y})


def simulate_logistic(
    n: int = 200,
    intercept: float = -0.5,
    slope: float = 1.5,
    seed: int | None = None,
) -> pd.DataFrame:
    """Binary outcomes with P(y = 1) = logistic(intercept + slope * x)."""
    rng = _rng(seed)
    x = rng.normal(0, 1, size=n)
    y = rng.binomial(1, logistic(intercept + slope * x))
    return pd.DataFrame({"x": x, "y": y.astype(int)})


def simulate_poisson(
    n: int = 150,
    intercept: float = 1.0,
    slope: float = 0.4,
    seed: int | None = None,
) -> pd.DataFrame:
    """Counts with rate exp(intercept + slope * x)."""
    rng = _rng(seed)
    x = rng.uniform(-2, 2, size=n)
    y = rng.poisson(np.exp(intercept + slope * x))
    return pd.DataFrame({"x": x, "y": y.astype(int)})


def simulate_grouped(
    n_groups: int = 8,
    n_per_group: int = 15,
    intercept: float = 1.0,
    slope: float = 0.8,
    sd_intercept: float = 1.0,
    sd_slope: float = 0.3,
    sigma: float = 0.5,
    seed: int | None = None,
) -> pd.DataFrame:
    """
    Repeated measures with group-varying intercepts and slopes.

    y_ij = (intercept + u_j) + (slope + v_j) * x_ij + N(0, sigma)
    """
    rng = _rng(seed)
    u = rng.normal(0, sd_intercept, size=n_groups)
    v = rng.normal(0, sd_slope, size=n_groups)

    group = np.repeat(np.arange(n_groups), n_per_group)
    x = rng.normal(0, 1, size=n_groups * n_per_group)
    y = (intercept + u[group]) + (slope + v[group]) * x + rng.normal(0, sigma, size=x.size)

    return pd.DataFrame({
        "group": pd.Categorical([f"g{g + 1}" for g in group]),
        "x": x,
        "y": y,
    })


def simulate_confounded(
    n: int = 500,
    p_z: float = 0.5,
    seed: int | None = None,
) -> pd.DataFrame:
    """
    Binary confounding structure Z -> X, Z -> Y, X -> Y.

    Z ~ Bernoulli(p_z)
    X ~ Bernoulli(logistic(-1 + 2 Z))
    Y ~ Bernoulli(logistic(-1 + 1 X + 1.5 Z))

    The naive X-Y association overstates the causal effect of X because Z
    raises both.
    """
    rng = _rng(seed)
    z = rng.binomial(1, p_z, size=n)
    x = rng.binomial(1, logistic(-1.0 + 2.0 * z))
    y = rng.binomial(1, logistic(-1.0 + 1.0 * x + 1.5 * z))
    return pd.DataFrame({"Z": z, "X": x, "Y": y})


def true_total_causal_effect(p_z: float = 0.5) -> float:
    """Analytic TCE of X on Y for `simulate_confounded`."""
    treated = p_z * logistic(0.0 + 1.5) + (1 - p_z) * logistic(0.0)
    control = p_z * logistic(-1.0 + 1.5) + (1 - p_z) * logistic(-1.0)
    return float(treated - control)


def simulate_wiggly(
    n: int = 120,
    sigma: float = 0.3,
    seed: int | None = None,
) -> pd.DataFrame:
    """Non-linear relationship y = sin(x) + N(0, sigma) on x in [0, 2 pi]."""
    rng = _rng(seed)
    x = np.sort(rng.uniform(0, 2 * np.pi, size=n))
    y = np.sin(x) + rng.normal(0, sigma, size=n)
    return pd.DataFrame({"x": x, "y": y})


# =============================================================================
# Registry
# =============================================================================

DATASETS: Dict[str, Callable[..., pd.DataFrame]] = {
    "murder": load_murder_data,
    "politeness": load_politeness_data,
    "linear": simulate_linear,
    "logistic": simulate_logistic,
    "poisson": simulate_poisson,
    "grouped": simulate_grouped,
    "confounded": simulate_confounded,
    "wiggly": simulate_wiggly,
}


def list_datasets() -> List[str]:
    """Names accepted by `load_dataset`."""
    return sorted(DATASETS)


def load_dataset(name: str, **kwargs) -> pd.DataFrame:
    """
    Load a course dataset by name.

    Raises:
        KeyError: unknown dataset name
    """
    if name not in DATASETS:
        raise KeyError(f"Unknown dataset: {name!r} (available: {', '.join(list_datasets())})")

    data = DATASETS[name](**kwargs)
    logger.debug(f"Loaded dataset {name} with {len(data)} rows")
    return data
