"""
Shared fixtures.

`attach_draws` gives a RegressionModel hand-made posterior draws, so
everything downstream of sampling (predictions, summaries, causal effects,
comparisons) can be tested without running MCMC.
"""

from typing import Dict, Optional

import arviz as az
import numpy as np
import pandas as pd
import pytest

from bayesreg.bayesian import RegressionModel


def attach_draws(
    model: RegressionModel,
    posterior: Dict[str, np.ndarray],
    log_likelihood: Optional[Dict[str, np.ndarray]] = None,
) -> RegressionModel:
    """
    Set `model.trace` from arrays shaped (chain, draw, ...).

    Vector coefficients `b` use the model's coefficient names as coords,
    group-level variables `sd_<g>` and `r_<g>` the levels and terms of `g`.
    """
    coords = {"coef": model.design.coefficient_names, "obs": np.arange(model.design.n_obs)}
    dims = {"b": ["coef"]}
    for group, gd in model.design.groups.items():
        coords[f"{group}_level"] = gd.levels
        coords[f"{group}_term"] = gd.terms
        dims[f"sd_{group}"] = [f"{group}_term"]
        dims[f"r_{group}"] = [f"{group}_level", f"{group}_term"]
    if log_likelihood:
        dims.update({name: ["obs"] for name in log_likelihood})
    model.trace = az.from_dict(
        posterior=posterior,
        log_likelihood=log_likelihood,
        coords=coords,
        dims=dims,
    )
    return model


def constant_draws(value, n_chains: int = 2, n_draws: int = 50, size: Optional[int] = None) -> np.ndarray:
    """Draws that all equal `value` (scalar or vector of length `size`)."""
    if size is None:
        return np.full((n_chains, n_draws), float(value))
    return np.broadcast_to(np.asarray(value, dtype=float), (n_chains, n_draws, size)).copy()


@pytest.fixture
def linear_data():
    """Small exact linear table: y = 1 + 2x."""
    x = np.linspace(-2, 2, 20)
    return pd.DataFrame({"x": x, "y": 1.0 + 2.0 * x})


@pytest.fixture
def linear_model(linear_data):
    """`y ~ x` with draws Intercept = 1, b_x = 2, sigma = 0.5."""
    model = RegressionModel("y ~ x", linear_data, name="linear")
    return attach_draws(model, {
        "Intercept": constant_draws(1.0),
        "b": constant_draws([2.0], size=1),
        "sigma": constant_draws(0.5),
    })


@pytest.fixture
def noisy_linear_model(linear_data):
    """`y ~ x` with draws scattered around Intercept = 1, b_x = 2."""
    rng = np.random.default_rng(0)
    model = RegressionModel("y ~ x", linear_data, name="noisy_linear")
    return attach_draws(model, {
        "Intercept": rng.normal(1.0, 0.1, size=(2, 200)),
        "b": rng.normal(2.0, 0.1, size=(2, 200, 1)),
        "sigma": np.abs(rng.normal(0.5, 0.05, size=(2, 200))),
    })


@pytest.fixture
def confounded_data():
    """Every (X, Z) combination, Z = 1 twice as often."""
    rows = [(0, 0, 0), (1, 0, 1), (0, 1, 1), (1, 1, 1), (0, 1, 0), (1, 1, 0)]
    return pd.DataFrame(rows * 5, columns=["X", "Z", "Y"])
