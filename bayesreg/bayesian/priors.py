"""
Prior specifications for regression models.

Priors are written the way they are written on the blackboard:

    PriorSpec.parse("normal(0, 10)")
    PriorSpec.parse("student_t(3, 0, 2.5)")

Missing priors are filled with weakly informative defaults scaled to the
data (see `default_priors`). These defaults keep the sampler out of trouble
without claiming knowledge nobody has.
"""

import re
from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Tuple, Union

import numpy as np
from scipy import stats

from bayesreg.config import settings
from bayesreg.constants import Family
from bayesreg.utils import median_absolute_deviation


# name -> (PyMC distribution, parameter names)
DISTRIBUTIONS: Dict[str, Tuple[str, Tuple[str, ...]]] = {
    "normal": ("Normal", ("mu", "sigma")),
    "student_t": ("StudentT", ("nu", "mu", "sigma")),
    "cauchy": ("Cauchy", ("alpha", "beta")),
    "exponential": ("Exponential", ("lam",)),
    "gamma": ("Gamma", ("alpha", "beta")),
    "uniform": ("Uniform", ("lower", "upper")),
    "half_normal": ("HalfNormal", ("sigma",)),
    "half_student_t": ("HalfStudentT", ("nu", "sigma")),
    "half_cauchy": ("HalfCauchy", ("beta",)),
    "lognormal": ("LogNormal", ("mu", "sigma")),
    "beta": ("Beta", ("alpha", "beta")),
}

_PRIOR_TEXT = re.compile(r"^\s*([a-z_]+)\s*\((.*)\)\s*$")


@dataclass(frozen=True)
class PriorSpec:
    """A named distribution with fixed parameters."""

    distribution: str
    params: Tuple[float, ...]

    def __post_init__(self):
        if self.distribution not in DISTRIBUTIONS:
            raise ValueError(
                f"Unknown prior distribution {self.distribution!r} "
                f"(known: {', '.join(sorted(DISTRIBUTIONS))})"
            )
        expected = DISTRIBUTIONS[self.distribution][1]
        if len(self.params) != len(expected):
            raise ValueError(
                f"{self.distribution} takes {len(expected)} parameters "
                f"({', '.join(expected)}), got {len(self.params)}"
            )
        object.__setattr__(self, "params", tuple(float(p) for p in self.params))

    @classmethod
    def parse(cls, text: str) -> "PriorSpec":
        """Parse `"normal(0, 10)"`-style text."""
        match = _PRIOR_TEXT.match(text)
        if match is None:
            raise ValueError(f"Cannot parse prior {text!r}")
        name, args = match.groups()
        try:
            params = tuple(float(a) for a in args.split(",")) if args.strip() else ()
        except ValueError as e:
            raise ValueError(f"Prior parameters must be numbers: {text!r}") from e
        return cls(name, params)

    @property
    def kwargs(self) -> Dict[str, float]:
        return dict(zip(DISTRIBUTIONS[self.distribution][1], self.params))

    @property
    def is_positive(self) -> bool:
        """True if the support is the positive half-line (or a subset)."""
        return self.distribution in {
            "exponential", "gamma", "half_normal", "half_student_t",
            "half_cauchy", "lognormal", "beta",
        }

    def to_pymc(self, name: str, **kwargs):
        """Create the PyMC random variable inside the current model context."""
        import pymc as pm

        dist_cls = getattr(pm, DISTRIBUTIONS[self.distribution][0])
        return dist_cls(name, **self.kwargs, **kwargs)

    def to_scipy(self):
        """Frozen scipy distribution with the same density."""
        p = self.kwargs
        d = self.distribution
        if d == "normal":
            return stats.norm(p["mu"], p["sigma"])
        if d == "student_t":
            return stats.t(p["nu"], p["mu"], p["sigma"])
        if d == "cauchy":
            return stats.cauchy(p["alpha"], p["beta"])
        if d == "exponential":
            return stats.expon(scale=1.0 / p["lam"])
        if d == "gamma":
            return stats.gamma(p["alpha"], scale=1.0 / p["beta"])
        if d == "uniform":
            return stats.uniform(p["lower"], p["upper"] - p["lower"])
        if d == "half_normal":
            return stats.halfnorm(scale=p["sigma"])
        if d == "half_cauchy":
            return stats.halfcauchy(scale=p["beta"])
        if d == "lognormal":
            return stats.lognorm(s=p["sigma"], scale=np.exp(p["mu"]))
        if d == "beta":
            return stats.beta(p["alpha"], p["beta"])
        raise ValueError(f"No scipy counterpart for {d}")

    def __str__(self) -> str:
        return f"{self.distribution}({', '.join(f'{p:g}' for p in self.params)})"


PriorLike = Union[PriorSpec, str]


def as_prior(value: Optional[PriorLike]) -> Optional[PriorSpec]:
    """Accept a PriorSpec, prior text or None."""
    if value is None or isinstance(value, PriorSpec):
        return value
    return PriorSpec.parse(value)


@dataclass
class RegressionPriors:
    """
    Priors for every parameter class of a regression model.

    `b` is either one prior for all population-level coefficients or a
    dict mapping coefficient names to priors (unlisted coefficients get the
    default). `None` means "use the default".
    """

    intercept: Optional[PriorLike] = None
    b: Optional[Union[PriorLike, Dict[str, PriorLike]]] = None
    sigma: Optional[PriorLike] = None    # residual SD (gaussian, student)
    sd: Optional[PriorLike] = None       # group-level SDs
    sds: Optional[PriorLike] = None      # smooth-term SDs
    nu: Optional[PriorLike] = None       # student-t degrees of freedom
    phi: Optional[PriorLike] = None      # negative-binomial shape

    def __post_init__(self):
        self.intercept = as_prior(self.intercept)
        if isinstance(self.b, dict):
            self.b = {k: as_prior(v) for k, v in self.b.items()}
        else:
            self.b = as_prior(self.b)
        for name in ("sigma", "sd", "sds", "nu", "phi"):
            setattr(self, name, as_prior(getattr(self, name)))

    def prior_for_coefficient(self, name: str) -> Optional[PriorSpec]:
        if isinstance(self.b, dict):
            return self.b.get(name)
        return self.b

    def with_defaults(self, defaults: "RegressionPriors") -> "RegressionPriors":
        """Fill unset fields from `defaults`."""
        if isinstance(self.b, dict):
            default_b = defaults.b if isinstance(defaults.b, dict) else {}
            b = {**default_b, **self.b}
        else:
            b = self.b if self.b is not None else defaults.b

        return replace(
            self,
            intercept=self.intercept or defaults.intercept,
            b=b,
            sigma=self.sigma or defaults.sigma,
            sd=self.sd or defaults.sd,
            sds=self.sds or defaults.sds,
            nu=self.nu or defaults.nu,
            phi=self.phi or defaults.phi,
        )

    def describe(self) -> Dict[str, str]:
        """Readable prior table (parameter class -> prior text)."""
        table = {}
        if self.intercept is not None:
            table["Intercept"] = str(self.intercept)
        if isinstance(self.b, dict):
            for name, prior in self.b.items():
                table[f"b_{name}"] = str(prior)
        elif self.b is not None:
            table["b"] = str(self.b)
        for name in ("sigma", "sd", "sds", "nu", "phi"):
            value = getattr(self, name)
            if value is not None:
                table[name] = str(value)
        return table


def default_priors(
    y: np.ndarray,
    family: Family | str = Family.GAUSSIAN,
    predictors: Optional[Dict[str, np.ndarray]] = None,
) -> RegressionPriors:
    """
    Weakly informative defaults.

    Identity link:
        Intercept ~ student_t(3, median(y), max(2.5, mad(y)))
        sigma, sd, sds ~ half_student_t(3, max(2.5, mad(y)))
    Other links:
        Intercept ~ student_t(3, 0, 2.5)
        sigma, sd, sds ~ half_student_t(3, 2.5)
    Coefficients:
        b_j ~ normal(0, 2.5 * s_y / sd(x_j)), s_y = sd(y) for identity link, else 1
    """
    family = Family(family)
    y = np.asarray(y, dtype=float)

    if family.link == "identity":
        scale = max(2.5, median_absolute_deviation(y))
        intercept = PriorSpec("student_t", (3, float(np.median(y)), scale))
        response_sd = float(np.std(y)) or 1.0
    else:
        scale = 2.5
        intercept = PriorSpec("student_t", (3, 0, 2.5))
        response_sd = 1.0

    b = {}
    for name, x in (predictors or {}).items():
        x_sd = float(np.std(np.asarray(x, dtype=float)))
        b[name] = PriorSpec("normal", (0, 2.5 * response_sd / (x_sd if x_sd > 0 else 1.0)))

    spread = PriorSpec("half_student_t", (3, scale))

    return RegressionPriors(
        intercept=intercept,
        b=b,
        sigma=spread,
        sd=spread,
        sds=spread,
        nu=PriorSpec("gamma", (2, 0.1)),
        phi=PriorSpec("exponential", (0.1,)),
    )


@dataclass
class SamplerConfig:
    """
    Configuration for NUTS sampling.

    Unset values fall back to application settings.
    """

    draws: Optional[int] = None
    tune: Optional[int] = None
    chains: Optional[int] = None
    cores: Optional[int] = None
    target_accept: Optional[float] = None
    random_seed: Optional[int] = None
    extra: Dict[str, object] = field(default_factory=dict)

    def __post_init__(self):
        self.draws = self.draws if self.draws is not None else settings.draws
        self.tune = self.tune if self.tune is not None else settings.tune
        self.chains = self.chains if self.chains is not None else settings.chains
        self.cores = self.cores if self.cores is not None else settings.cores
        self.target_accept = (
            self.target_accept if self.target_accept is not None else settings.target_accept
        )
        self.random_seed = (
            self.random_seed if self.random_seed is not None else settings.random_seed
        )

    @classmethod
    def quick(cls, **overrides) -> "SamplerConfig":
        """Small run for demonstrations and tests (single chain, few draws)."""
        values = {"draws": 300, "tune": 300, "chains": 1}
        values.update(overrides)
        return cls(**values)

    def to_dict(self) -> Dict[str, object]:
        return {
            "draws": self.draws,
            "tune": self.tune,
            "chains": self.chains,
            "cores": self.cores,
            "target_accept": self.target_accept,
            "random_seed": self.random_seed,
            **self.extra,
        }
