"""
Bayesian regression models.

One class covers every model used in the course:

    eta = Intercept + X b + sum_g Z_g r_g + sum_s B_s w_s
    E[y] = inverse_link(eta)
    y ~ family(E[y], auxiliary parameters)

Where:
    X   = population-level design (patsy), centred for sampling
    r_g = group-level effects per level of grouping factor g (non-centred)
    B_s = penalised spline basis of smooth term s

The PyMC model is built from a formula, a family and priors; NUTS does the
rest. Everything the chapters need afterwards (summaries, predictions,
diagnostics, LOO) is read off the ArviZ InferenceData.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

import arviz as az
import numpy as np
import pandas as pd
from patsy import PatsyError

from bayesreg.bayesian.diagnostics import Diagnostics, check_diagnostics
from bayesreg.bayesian.families import (
    AUXILIARY_PARAMETERS,
    as_family,
    build_likelihood,
    inverse_link,
    inverse_link_tensor,
    sample_response,
)
from bayesreg.bayesian.formula import DesignMatrices, ParsedFormula, parse_formula
from bayesreg.bayesian.posterior import as_draws_df, summarize_draws
from bayesreg.bayesian.priors import (
    DISTRIBUTIONS,
    RegressionPriors,
    SamplerConfig,
    default_priors,
)
from bayesreg.config import settings
from bayesreg.constants import Family, PredictionKind, Severity
from bayesreg.data.quality import ObservationTableChecker, check_observation_table
from bayesreg.utils import cache_key, frame_fingerprint, get_logger

logger = get_logger("bayesian.model")

NEW_LEVEL = "__new__"


class RegressionModel:
    """
    Bayesian (generalized, multilevel, additive) regression model.

    Usage:
        model = RegressionModel("murder_rate ~ low_income", data)
        model.fit()
        model.summary()
    """

    def __init__(
        self,
        formula: str | ParsedFormula,
        data: pd.DataFrame,
        family: Family | str = Family.GAUSSIAN,
        priors: Optional[RegressionPriors] = None,
        sampler: Optional[SamplerConfig] = None,
        name: Optional[str] = None,
    ):
        """
        Initialize model.

        Args:
            formula: Model formula (see bayesreg.bayesian.formula)
            data: Observation table
            family: Likelihood family
            priors: Priors; unset fields get data-scaled defaults
            sampler: NUTS configuration
            name: Label used in logs and comparisons

        Raises:
            ValueError: malformed formula, unknown family or data failing
                quality checks
        """
        self.formula = parse_formula(formula) if isinstance(formula, str) else formula
        self.family = as_family(family)
        self.data = data.reset_index(drop=True)
        self.sampler = sampler or SamplerConfig()
        self.name = name or str(self.formula)

        self._check_columns()
        self.design = self._build_design()
        self._check_data()

        defaults = default_priors(
            self.design.response,
            self.family,
            predictors={c: self.design.fixed[c].to_numpy() for c in self.design.coefficient_names},
        )
        self.priors = (priors or RegressionPriors()).with_defaults(defaults)
        self._check_priors()

        self.model = None
        self.trace: Optional[az.InferenceData] = None
        self.prior_trace: Optional[az.InferenceData] = None
        self.diagnostics: Optional[Diagnostics] = None

    # =========================================================================
    # Setup
    # =========================================================================

    def _build_design(self) -> DesignMatrices:
        try:
            return DesignMatrices.from_formula(self.formula, self.data)
        except PatsyError as e:
            raise ValueError(f"Cannot build design for '{self.formula}': {e}") from e

    def _check_columns(self) -> None:
        issues = ObservationTableChecker(self.data).check_required_columns(self.formula.variables)
        if issues:
            problems = "; ".join(i.description for i in issues)
            raise ValueError(f"Data not suitable for {self.family.value} model: {problems}")

    def _check_data(self) -> None:
        report = check_observation_table(
            self.data,
            response=self.formula.response,
            predictors=self.formula.variables[1:],
            family=self.family,
            n_coefficients=self.design.n_coefficients,
        )
        for issue in report.issues:
            if issue.severity == Severity.WARNING:
                logger.warning(f"{self.name}: {issue.description}")
            elif issue.severity == Severity.INFO:
                logger.info(f"{self.name}: {issue.description}")
        if not report.is_healthy:
            problems = "; ".join(i.description for i in report.errors())
            raise ValueError(f"Data not suitable for {self.family.value} model: {problems}")

    def _check_priors(self) -> None:
        if isinstance(self.priors.b, dict):
            unknown = set(self.priors.b) - set(self.design.coefficient_names)
            if unknown:
                raise ValueError(
                    f"Priors given for unknown coefficients {sorted(unknown)}; "
                    f"model has {self.design.coefficient_names}"
                )
        for name in ("sigma", "sd", "sds", "nu", "phi"):
            prior = getattr(self.priors, name)
            if prior is not None and not prior.is_positive:
                raise ValueError(f"Prior for {name} must have positive support, got {prior}")

    @property
    def parameter_names(self) -> List[str]:
        """Posterior variables that are parameters (not latent offsets or mu)."""
        names = []
        if self.design.has_intercept:
            names.append("Intercept")
        if self.design.coefficient_names:
            names.append("b")
        for group in self.design.groups:
            names.extend([f"sd_{group}", f"r_{group}"])
        for smooth in self.design.smooths:
            names.extend([f"sds_{smooth}", f"s_{smooth}"])
        names.extend(AUXILIARY_PARAMETERS[self.family])
        return names

    @property
    def population_parameter_names(self) -> List[str]:
        """Parameters shown in the summary table."""
        skip = {f"r_{g}" for g in self.design.groups} | {f"s_{s}" for s in self.design.smooths}
        return [n for n in self.parameter_names if n not in skip]

    # =========================================================================
    # Model building
    # =========================================================================

    def _coefficients(self, names: List[str]):
        """Population-level coefficient vector `b` with its priors."""
        import pymc as pm

        specs = [self.priors.prior_for_coefficient(n) for n in names]
        if all(spec == specs[0] for spec in specs):
            return specs[0].to_pymc("b", dims="coef")

        if len({spec.distribution for spec in specs}) == 1:
            # Same family, different parameters: one vector with element-wise parameters
            params = {key: np.array([s.kwargs[key] for s in specs]) for key in specs[0].kwargs}
            return _vector_rv(specs[0].distribution, "b", params)

        parts = [spec.to_pymc(f"b_{name}") for name, spec in zip(names, specs)]
        return pm.Deterministic("b", pm.math.stack(parts), dims="coef")

    def build_model(self):
        """
        Build PyMC model.

        Returns:
            pm.Model
        """
        import pymc as pm

        design = self.design
        priors = self.priors

        coords: Dict[str, Any] = {"obs": np.arange(design.n_obs)}
        if design.coefficient_names:
            coords["coef"] = design.coefficient_names
        for group, gd in design.groups.items():
            coords[f"{group}_level"] = gd.levels
            coords[f"{group}_term"] = gd.terms
        for smooth, sd in design.smooths.items():
            coords[f"{smooth}_basis"] = np.arange(sd.basis.shape[1])

        logger.info(
            f"Building {self.family.value} model '{self.name}' with {design.n_obs} observations"
        )

        with pm.Model(coords=coords) as model:
            eta = 0.0

            # =========================================================
            # Population-level effects
            # =========================================================
            X = design.fixed.to_numpy()
            b = self._coefficients(design.coefficient_names) if design.coefficient_names else None

            if design.has_intercept:
                # Sample the intercept for centred predictors, report the usual one
                intercept_c = priors.intercept.to_pymc("Intercept_centered")
                if b is not None:
                    eta = intercept_c + pm.math.dot(X - design.fixed_means, b)
                    pm.Deterministic(
                        "Intercept", intercept_c - pm.math.dot(design.fixed_means, b)
                    )
                else:
                    eta = intercept_c + np.zeros(design.n_obs)
                    pm.Deterministic("Intercept", intercept_c)
            elif b is not None:
                eta = pm.math.dot(X, b)

            # =========================================================
            # Group-level effects (non-centred)
            # =========================================================
            for group, gd in design.groups.items():
                sd = priors.sd.to_pymc(f"sd_{group}", dims=f"{group}_term")
                z = pm.Normal(f"z_{group}", 0.0, 1.0, dims=(f"{group}_level", f"{group}_term"))
                r = pm.Deterministic(f"r_{group}", z * sd, dims=(f"{group}_level", f"{group}_term"))
                eta = eta + (r[gd.index] * gd.matrix).sum(axis=1)

            # =========================================================
            # Smooth terms
            # =========================================================
            for smooth, sd_design in design.smooths.items():
                sds = priors.sds.to_pymc(f"sds_{smooth}")
                zs = pm.Normal(f"zs_{smooth}", 0.0, 1.0, dims=f"{smooth}_basis")
                weights = pm.Deterministic(f"s_{smooth}", zs * sds, dims=f"{smooth}_basis")
                eta = eta + pm.math.dot(sd_design.basis, weights)

            # =========================================================
            # Likelihood
            # =========================================================
            mu = pm.Deterministic("mu", inverse_link_tensor(self.family, eta), dims="obs")
            build_likelihood(
                self.family,
                self.formula.response,
                mu,
                observed=design.response,
                priors=priors,
                dims="obs",
            )

        self.model = model
        logger.info("Model built successfully")
        return model

    # =========================================================================
    # Sampling
    # =========================================================================

    def _cache_path(self) -> Path:
        key = cache_key(
            str(self.formula),
            self.family.value,
            frame_fingerprint(self.data),
            self.priors.describe(),
            self.sampler.to_dict(),
        )
        return settings.cache_dir / f"fit_{key}.nc"

    def fit(self) -> az.InferenceData:
        """
        Fit model using NUTS.

        Returns:
            ArviZ InferenceData with posterior samples and log-likelihood
        """
        import pymc as pm

        cache_path = self._cache_path()
        if settings.use_cache and cache_path.exists():
            logger.info(f"Loading cached fit for '{self.name}' from {cache_path}")
            if self.model is None:
                self.build_model()
            self.trace = az.from_netcdf(cache_path)
            self.diagnostics = check_diagnostics(self.trace, var_names=self.parameter_names)
            return self.trace

        if self.model is None:
            self.build_model()

        config = self.sampler
        logger.info(
            f"Sampling '{self.name}' with {config.chains} chains, "
            f"{config.draws} draws, {config.tune} tuning steps, "
            f"target_accept={config.target_accept}"
        )

        with self.model:
            self.trace = pm.sample(
                draws=config.draws,
                tune=config.tune,
                chains=config.chains,
                cores=config.cores,
                target_accept=config.target_accept,
                random_seed=config.random_seed,
                return_inferencedata=True,
                idata_kwargs={"log_likelihood": True},
                progressbar=False,
                **config.extra,
            )

        self.diagnostics = check_diagnostics(self.trace, var_names=self.parameter_names)

        if settings.use_cache:
            self.trace.to_netcdf(cache_path)
            logger.debug(f"Cached fit at {cache_path}")

        return self.trace

    def sample_prior(self, draws: int = 500) -> az.InferenceData:
        """
        Sample from the prior and the prior predictive distribution.

        The data enter only through the design; the likelihood is ignored.
        """
        import pymc as pm

        if self.model is None:
            self.build_model()

        logger.info(f"Sampling {draws} prior draws for '{self.name}'")
        with self.model:
            self.prior_trace = pm.sample_prior_predictive(
                draws=draws,
                random_seed=self.sampler.random_seed,
            )
        return self.prior_trace

    def prior_draws(self, draws: int = 500) -> pd.DataFrame:
        """Prior draw collection of the population-level parameters."""
        if self.prior_trace is None:
            self.sample_prior(draws=draws)
        return as_draws_df(
            self.prior_trace,
            var_names=self.population_parameter_names,
            rename=_brms_name,
            group="prior",
        )

    def posterior_predictive(self) -> az.InferenceData:
        """Add replicated responses for the observed rows to the trace."""
        import pymc as pm

        self._require_fit()
        if self.model is None:
            self.build_model()
        with self.model:
            pm.sample_posterior_predictive(
                self.trace,
                extend_inferencedata=True,
                random_seed=self.sampler.random_seed,
                progressbar=False,
            )
        return self.trace

    # =========================================================================
    # Reading the posterior
    # =========================================================================

    def _require_fit(self) -> None:
        if self.trace is None:
            raise ValueError("Model not fitted")

    def _flat(self, name: str) -> np.ndarray:
        """Posterior draws of a variable with chain and draw merged into the first axis."""
        values = self.trace.posterior[name].values
        return values.reshape(-1, *values.shape[2:])

    def predict(
        self,
        newdata: Optional[pd.DataFrame] = None,
        kind: PredictionKind | str = PredictionKind.EPRED,
        allow_new_levels: bool = False,
        random_seed: Optional[int] = None,
    ) -> np.ndarray:
        """
        Posterior predictions for observed or new rows.

        Args:
            newdata: Rows to predict for (default: the fitted data)
            kind: 'linpred' (linear predictor), 'epred' (expected response)
                or 'predict' (draws of new observations)
            allow_new_levels: Treat unseen group levels as new (group effect 0)
            random_seed: Seed for kind='predict'

        Returns:
            Array of shape (n_draws, n_rows)
        """
        self._require_fit()
        kind = PredictionKind(kind)

        design = self.design if newdata is None else self.design.transform(
            newdata.reset_index(drop=True), allow_new_levels=allow_new_levels
        )
        posterior = self.trace.posterior
        n_draws = posterior.sizes["chain"] * posterior.sizes["draw"]

        eta = np.zeros((n_draws, design.n_obs))
        if design.has_intercept:
            eta += self._flat("Intercept")[:, None]
        if design.coefficient_names:
            eta += self._flat("b") @ design.fixed.to_numpy().T

        for group, gd in design.groups.items():
            r = self._flat(f"r_{group}")                    # (S, levels, terms)
            known = gd.index >= 0
            safe_index = np.where(known, gd.index, 0)
            contribution = np.einsum("snt,nt->sn", r[:, safe_index, :], gd.matrix)
            eta += contribution * known[None, :]

        for smooth, sd in design.smooths.items():
            eta += self._flat(f"s_{smooth}") @ sd.basis.T

        if kind == PredictionKind.LINPRED:
            return eta

        mu = inverse_link(self.family, eta)
        if kind == PredictionKind.EPRED:
            return mu

        auxiliary = {name: self._flat(name) for name in AUXILIARY_PARAMETERS[self.family]}
        rng = np.random.default_rng(
            self.sampler.random_seed if random_seed is None else random_seed
        )
        return sample_response(self.family, mu, auxiliary, rng)

    def draws(self, include_group_effects: bool = True) -> pd.DataFrame:
        """
        Posterior draw collection: one row per draw.

        Columns follow the usual naming: b_Intercept, b_<coef>, sigma,
        sd_<group>__<term>, r_<group>[<level>,<term>], sds_<smooth>, ...
        """
        self._require_fit()
        var_names = self.parameter_names if include_group_effects else self.population_parameter_names
        return as_draws_df(self.trace, var_names=var_names, rename=_brms_name)

    def summary(self, credible_interval: Optional[float] = None) -> pd.DataFrame:
        """
        Population-level summary table.

        Columns: mean, sd, lower, upper (HDI), r_hat, ess_bulk, ess_tail
        """
        self._require_fit()
        ci = credible_interval or settings.credible_interval

        draws = as_draws_df(self.trace, var_names=self.population_parameter_names, rename=_brms_name)
        table = summarize_draws(draws, credible_interval=ci)

        diag = az.summary(
            self.trace, var_names=self.population_parameter_names, kind="diagnostics"
        )
        diag.index = [_brms_name(str(i).split("[")[0], _index_coord(str(i))) for i in diag.index]
        table = table.join(diag[["r_hat", "ess_bulk", "ess_tail"]], how="left")

        return table[["mean", "sd", "lower", "upper", "r_hat", "ess_bulk", "ess_tail"]]

    def get_diagnostics(self) -> Diagnostics:
        """
        Get MCMC diagnostics.

        Returns:
            Diagnostics with divergences, R-hat, ESS and a health flag
        """
        self._require_fit()
        if self.diagnostics is None:
            self.diagnostics = check_diagnostics(self.trace, var_names=self.parameter_names)
        return self.diagnostics

    def prior_summary(self) -> Dict[str, str]:
        """Priors actually used, as text."""
        return self.priors.describe()

    def reference_values(self) -> Dict[str, Any]:
        """
        Typical value of every predictor column.

        Numeric predictors: mean. Categorical (or binary) predictors: first
        level. Grouping factors: a level not seen in the data, so that
        predictions are population-level.
        """
        factors = self.factor_levels()
        reference = {}
        for name in self._predictor_columns():
            if name in self.design.groups:
                reference[name] = NEW_LEVEL
            elif name in factors:
                reference[name] = factors[name][0]
            else:
                reference[name] = float(self.data[name].mean())
        return reference

    def _predictor_columns(self) -> List[str]:
        return [v for v in self.formula.variables[1:] if v in self.data.columns]

    def factor_levels(self) -> Dict[str, list]:
        """Levels of categorical (or two-valued) predictors, grouping factors excluded."""
        levels = {}
        for name in self._predictor_columns():
            if name in self.design.groups:
                continue
            column = self.data[name]
            if not (pd.api.types.is_numeric_dtype(column) and column.nunique() > 2):
                levels[name] = sorted(column.unique().tolist())
        return levels

    def conditional_effects(
        self,
        variable: str,
        n_points: int = 50,
        at: Optional[Dict[str, Any]] = None,
        credible_interval: Optional[float] = None,
    ) -> pd.DataFrame:
        """
        Expected response along one predictor, others held fixed.

        Numeric predictors are held at their mean, categorical ones at their
        first level; group effects are left out (population-level curve).

        Returns:
            DataFrame with the grid of `variable` and columns estimate, lower, upper
        """
        self._require_fit()
        ci = credible_interval or settings.credible_interval
        at = at or {}

        column = self.data[variable]
        if pd.api.types.is_numeric_dtype(column) and column.nunique() > 2:
            grid = np.linspace(column.min(), column.max(), n_points)
        else:
            grid = np.array(sorted(column.unique()))

        reference = self.reference_values()
        reference.pop(variable, None)
        reference.update(at)

        newdata = pd.DataFrame({variable: grid})
        for name, value in reference.items():
            newdata[name] = value

        epred = self.predict(newdata, kind=PredictionKind.EPRED, allow_new_levels=True)
        intervals = np.array([az.hdi(epred[:, i], hdi_prob=ci) for i in range(epred.shape[1])])

        result = newdata[[variable]].copy()
        result["estimate"] = epred.mean(axis=0)
        result["lower"] = intervals[:, 0]
        result["upper"] = intervals[:, 1]
        return result

    def compute_loo(self) -> az.ELPDData:
        """
        Compute PSIS-LOO for model comparison.

        Returns:
            ArviZ ELPD data
        """
        self._require_fit()
        return az.loo(self.trace, pointwise=True)

    # =========================================================================
    # Persistence
    # =========================================================================

    def save(self, path: str | Path) -> None:
        """Save fitted draws to netCDF."""
        self._require_fit()
        self.trace.to_netcdf(str(path))
        logger.info(f"Model saved to {path}")

    @classmethod
    def load(
        cls,
        path: str | Path,
        formula: str,
        data: pd.DataFrame,
        family: Family | str = Family.GAUSSIAN,
        priors: Optional[RegressionPriors] = None,
    ) -> "RegressionModel":
        """Rebuild a model and attach draws saved with `save`."""
        model = cls(formula, data, family=family, priors=priors)
        model.trace = az.from_netcdf(str(path))
        logger.info(f"Model loaded from {path}")
        return model

    def __repr__(self) -> str:
        status = "fitted" if self.trace is not None else "not fitted"
        return f"RegressionModel('{self.formula}', family={self.family.value}, {status})"


# =============================================================================
# Helpers
# =============================================================================

def _vector_rv(distribution: str, name: str, params: Dict[str, np.ndarray]):
    """Vector random variable with element-wise parameters."""
    import pymc as pm

    dist_cls = getattr(pm, DISTRIBUTIONS[distribution][0])
    return dist_cls(name, **params, dims="coef")


def _index_coord(label: str) -> Optional[str]:
    """`b[low_income]` -> `low_income`; `sigma` -> None."""
    if "[" not in label:
        return None
    return label[label.index("[") + 1:label.rindex("]")].replace(", ", ",")


def _brms_name(var: str, coord: Optional[str]) -> str:
    """Column name for one scalar component of a posterior variable."""
    if var == "Intercept":
        return "b_Intercept"
    if var == "b":
        return f"b_{coord}"
    if var.startswith("sd_") and coord is not None:
        return f"{var}__{coord}"
    if coord is None:
        return var
    return f"{var}[{coord}]"


def fit_regression(
    formula: str,
    data: pd.DataFrame,
    family: Family | str = Family.GAUSSIAN,
    priors: Optional[RegressionPriors] = None,
    sampler: Optional[SamplerConfig] = None,
    name: Optional[str] = None,
) -> RegressionModel:
    """Build and fit in one call."""
    model = RegressionModel(formula, data, family=family, priors=priors, sampler=sampler, name=name)
    model.fit()
    return model
