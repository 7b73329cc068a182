"""
Tests for evaluation modules.

Critical tests for:
- Bayesian R-squared and posterior predictive p-values
- Savage-Dickey Bayes factors
- ROPE decisions
- LOO model comparison
"""

from types import SimpleNamespace

import numpy as np
import pytest

from bayesreg.bayesian import PriorSpec, RegressionModel
from bayesreg.constants import RopeDecision
from bayesreg.evaluation import (
    ComparisonResult,
    bayesian_r2,
    compare_models,
    point_null_interval_test,
    posterior_predictive_pvalue,
    ppc_pvalue_from_draws,
    r2_from_draws,
    savage_dickey_bayes_factor,
    savage_dickey_ratio,
)

from tests.conftest import attach_draws


class TestBayesianR2:
    """Test R-squared per draw."""

    def test_perfect_fit(self):
        y = np.arange(10, dtype=float)
        epred = np.tile(y, (5, 1))

        np.testing.assert_allclose(r2_from_draws(y, epred), 1.0)

    def test_constant_prediction(self):
        y = np.arange(10, dtype=float)
        epred = np.full((5, 10), y.mean())

        np.testing.assert_allclose(r2_from_draws(y, epred), 0.0)

    def test_bounded(self):
        rng = np.random.default_rng(0)
        y = rng.normal(size=30)
        r2 = r2_from_draws(y, y + rng.normal(size=(100, 30)))

        assert r2.shape == (100,)
        assert ((r2 >= 0) & (r2 <= 1)).all()

    def test_model(self, linear_model):
        np.testing.assert_allclose(bayesian_r2(linear_model), 1.0)


class TestPosteriorPredictivePValue:
    """Test PPC p-values."""

    def test_replicates_above(self):
        y = np.zeros(5)
        y_rep = np.ones((20, 5))

        assert ppc_pvalue_from_draws(y, y_rep, "mean") == 1.0
        assert ppc_pvalue_from_draws(y, -y_rep, "max") == 0.0

    def test_callable_statistic(self):
        y = np.array([1.0, 2.0, 3.0])
        y_rep = np.array([[1.0, 2.0, 3.0], [0.0, 0.0, 0.0]])

        assert ppc_pvalue_from_draws(y, y_rep, lambda v: v.sum()) == 0.5

    def test_unknown_statistic(self):
        with pytest.raises(ValueError, match="Unknown statistic"):
            ppc_pvalue_from_draws(np.zeros(3), np.zeros((2, 3)), "kurtosis")

    def test_model(self, linear_model):
        pvalue = posterior_predictive_pvalue(linear_model, "sd")
        assert 0.0 <= pvalue <= 1.0


class TestSavageDickey:
    """Test Bayes factors for point hypotheses."""

    @pytest.fixture
    def posterior(self):
        return np.random.default_rng(0).normal(0.0, 1.0, 20000)

    def test_exact_prior(self, posterior):
        # N(0, 1) posterior vs N(0, 10) prior: density ratio at 0 is 10
        bf01 = savage_dickey_ratio(posterior, 0.0, prior=PriorSpec.parse("normal(0, 10)"))
        assert bf01 == pytest.approx(10.0, rel=0.1)

    def test_prior_draws(self, posterior):
        prior_draws = np.random.default_rng(1).normal(0.0, 10.0, 20000)
        bf01 = savage_dickey_ratio(posterior, 0.0, prior_draws=prior_draws)
        assert bf01 == pytest.approx(10.0, rel=0.15)

    def test_needs_prior(self, posterior):
        with pytest.raises(ValueError):
            savage_dickey_ratio(posterior, 0.0)

    def test_excluded_by_prior(self, posterior):
        with pytest.raises(ValueError, match="zero"):
            savage_dickey_ratio(posterior, -1.0, prior=PriorSpec.parse("exponential(1)"))

    def test_model_coefficient(self, noisy_linear_model):
        # Posterior of b_x sits near 2, far from 0
        assert savage_dickey_bayes_factor(noisy_linear_model, "b_x") < 0.01

    def test_unknown_parameter(self, noisy_linear_model):
        with pytest.raises(KeyError):
            savage_dickey_bayes_factor(noisy_linear_model, "b_w")


class TestRope:
    """Test interval-vs-ROPE decisions."""

    @pytest.mark.parametrize("centre,spread,expected", [
        (5.0, 0.1, RopeDecision.REJECT),
        (0.0, 0.1, RopeDecision.ACCEPT),
        (1.0, 0.5, RopeDecision.UNDECIDED),
    ])
    def test_decisions(self, centre, spread, expected):
        draws = np.random.default_rng(0).normal(centre, spread, 4000)
        assert point_null_interval_test(draws, (-1.0, 1.0)) == expected

    def test_invalid_rope(self):
        with pytest.raises(ValueError):
            point_null_interval_test(np.zeros(10), (1.0, -1.0))


class TestCompareModels:
    """Test LOO comparison."""

    @pytest.fixture
    def fitted(self, linear_data):
        rng = np.random.default_rng(0)

        def make(name, pointwise_loglik):
            model = RegressionModel("y ~ x", linear_data, name=name)
            return attach_draws(
                model,
                posterior={
                    "Intercept": rng.normal(1.0, 0.1, size=(2, 200)),
                    "b": rng.normal(2.0, 0.1, size=(2, 200, 1)),
                    "sigma": np.abs(rng.normal(0.5, 0.05, size=(2, 200))),
                },
                log_likelihood={"y": rng.normal(pointwise_loglik, 0.05, size=(2, 200, 20))},
            )

        return make("good", -1.0), make("poor", -3.0)

    def test_best_model(self, fitted):
        result = compare_models(list(fitted))

        assert isinstance(result, ComparisonResult)
        assert result.best_model == "good"
        assert result.ranking == ["good", "poor"]

    def test_mapping_and_report(self, fitted):
        good, poor = fitted
        result = compare_models({"A": good, "B": poor})
        as_dict = result.to_dict()

        assert as_dict["best_model"] == "A"
        assert as_dict["models"]["A"]["rank"] == 0
        assert as_dict["models"]["B"]["elpd_diff"] > 0
        assert "Best model: A" in result.summary()

    def test_compute_loo(self, fitted):
        loo = fitted[0].compute_loo()
        assert loo["elpd_loo"] == pytest.approx(-20.0, abs=1.0)

    def test_needs_two_models(self, fitted):
        with pytest.raises(ValueError, match="at least two"):
            compare_models(fitted[:1])

    def test_duplicate_names(self):
        models = [SimpleNamespace(name="m", trace=object()), SimpleNamespace(name="m", trace=object())]
        with pytest.raises(ValueError, match="unique"):
            compare_models(models)

    def test_unfitted_model(self, fitted):
        with pytest.raises(ValueError, match="not fitted"):
            compare_models({"a": fitted[0], "b": SimpleNamespace(name="b", trace=None)})
