"""
Likelihood families.

Each family fixes a link function, the auxiliary parameters it needs and
how to draw replicated responses from posterior draws.
"""

from typing import Dict, Optional

import numpy as np

from bayesreg.bayesian.priors import RegressionPriors
from bayesreg.constants import Family

# Auxiliary (non-regression) parameters per family
AUXILIARY_PARAMETERS: Dict[Family, tuple] = {
    Family.GAUSSIAN: ("sigma",),
    Family.STUDENT: ("sigma", "nu"),
    Family.BERNOULLI: (),
    Family.POISSON: (),
    Family.NEGBINOMIAL: ("phi",),
}


def as_family(family: Family | str) -> Family:
    """Coerce to Family, with a readable error."""
    try:
        return Family(family)
    except ValueError as e:
        known = ", ".join(f.value for f in Family)
        raise ValueError(f"Unknown family {family!r} (known: {known})") from e


def inverse_link(family: Family | str, eta: np.ndarray) -> np.ndarray:
    """Map the linear predictor to the expected response (numpy)."""
    link = as_family(family).link
    eta = np.asarray(eta, dtype=float)
    if link == "identity":
        return eta
    if link == "logit":
        return 1.0 / (1.0 + np.exp(-eta))
    if link == "log":
        return np.exp(eta)
    raise ValueError(f"Unknown link {link}")


def inverse_link_tensor(family: Family | str, eta):
    """Same as `inverse_link` for PyMC tensors."""
    import pymc as pm

    link = as_family(family).link
    if link == "identity":
        return eta
    if link == "logit":
        return pm.math.invlogit(eta)
    return pm.math.exp(eta)


def build_likelihood(
    family: Family | str,
    name: str,
    mu,
    observed: Optional[np.ndarray],
    priors: RegressionPriors,
    **kwargs,
):
    """
    Create the observed variable inside the current PyMC model.

    Args:
        family: Likelihood family
        name: Name of the observed variable (the response column)
        mu: Expected response tensor
        observed: Observed values (None for prior predictive only models)
        priors: Filled priors (auxiliary parameters are taken from here)
        kwargs: Extra arguments for the PyMC distribution (e.g. dims)
    """
    import pymc as pm

    family = as_family(family)

    if family == Family.GAUSSIAN:
        sigma = priors.sigma.to_pymc("sigma")
        return pm.Normal(name, mu=mu, sigma=sigma, observed=observed, **kwargs)

    if family == Family.STUDENT:
        sigma = priors.sigma.to_pymc("sigma")
        nu = priors.nu.to_pymc("nu")
        return pm.StudentT(name, nu=nu, mu=mu, sigma=sigma, observed=observed, **kwargs)

    if family == Family.BERNOULLI:
        return pm.Bernoulli(name, p=mu, observed=observed, **kwargs)

    if family == Family.POISSON:
        return pm.Poisson(name, mu=mu, observed=observed, **kwargs)

    if family == Family.NEGBINOMIAL:
        phi = priors.phi.to_pymc("phi")
        return pm.NegativeBinomial(name, mu=mu, alpha=phi, observed=observed, **kwargs)

    raise ValueError(f"Unknown family: {family}")


def sample_response(
    family: Family | str,
    mu: np.ndarray,
    auxiliary: Dict[str, np.ndarray],
    rng: np.random.Generator,
) -> np.ndarray:
    """
    Draw replicated responses given expected values.

    Args:
        family: Likelihood family
        mu: Expected response, shape (n_draws, n_rows)
        auxiliary: Auxiliary parameter draws, each shape (n_draws,)
        rng: Random generator

    Returns:
        Array of shape (n_draws, n_rows)
    """
    family = as_family(family)
    mu = np.asarray(mu, dtype=float)

    if family == Family.GAUSSIAN:
        sigma = auxiliary["sigma"][:, None]
        return rng.normal(mu, sigma)

    if family == Family.STUDENT:
        sigma = auxiliary["sigma"][:, None]
        nu = auxiliary["nu"][:, None]
        return mu + sigma * rng.standard_t(np.broadcast_to(nu, mu.shape))

    if family == Family.BERNOULLI:
        return rng.binomial(1, np.clip(mu, 0.0, 1.0))

    if family == Family.POISSON:
        return rng.poisson(mu)

    if family == Family.NEGBINOMIAL:
        phi = np.broadcast_to(auxiliary["phi"][:, None], mu.shape)
        return rng.negative_binomial(phi, phi / (phi + mu))

    raise ValueError(f"Unknown family: {family}")
