"""
Tests for prior specifications and sampler configuration.
"""

import numpy as np
import pytest

from bayesreg.bayesian.priors import (
    PriorSpec,
    RegressionPriors,
    SamplerConfig,
    as_prior,
    default_priors,
)
from bayesreg.config import settings
from bayesreg.constants import Family


class TestPriorSpec:
    """Test parsing and conversion."""

    def test_parse(self):
        prior = PriorSpec.parse("normal(0, 10)")

        assert prior.distribution == "normal"
        assert prior.params == (0.0, 10.0)
        assert prior.kwargs == {"mu": 0.0, "sigma": 10.0}

    def test_parse_whitespace(self):
        assert PriorSpec.parse("  student_t( 3 , 0,2.5 ) ") == PriorSpec("student_t", (3, 0, 2.5))

    @pytest.mark.parametrize("text", ["normal 0 10", "normal(0, ten)", "wishart(3)", "normal(0)"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            PriorSpec.parse(text)

    def test_str(self):
        assert str(PriorSpec("normal", (0, 2.5))) == "normal(0, 2.5)"
        assert str(PriorSpec.parse("exponential(1)")) == "exponential(1)"

    def test_positive_support(self):
        assert PriorSpec.parse("half_normal(1)").is_positive
        assert not PriorSpec.parse("normal(0, 1)").is_positive

    def test_to_scipy_density(self):
        dist = PriorSpec.parse("normal(0, 2)").to_scipy()
        assert dist.pdf(0.0) == pytest.approx(1 / (2 * np.sqrt(2 * np.pi)))

        expo = PriorSpec.parse("exponential(0.5)").to_scipy()
        assert expo.mean() == pytest.approx(2.0)

        gamma = PriorSpec.parse("gamma(2, 0.1)").to_scipy()
        assert gamma.mean() == pytest.approx(20.0)

    def test_to_scipy_without_counterpart(self):
        with pytest.raises(ValueError):
            PriorSpec.parse("half_student_t(3, 2.5)").to_scipy()

    def test_as_prior(self):
        prior = PriorSpec("normal", (0, 1))

        assert as_prior(None) is None
        assert as_prior(prior) is prior
        assert as_prior("normal(0, 1)") == prior


class TestRegressionPriors:
    """Test prior sets."""

    def test_text_is_parsed(self):
        priors = RegressionPriors(b={"x": "normal(0, 1)"}, sigma="exponential(1)")

        assert priors.prior_for_coefficient("x") == PriorSpec("normal", (0, 1))
        assert priors.prior_for_coefficient("z") is None
        assert priors.sigma == PriorSpec("exponential", (1,))

    def test_single_b_prior(self):
        priors = RegressionPriors(b="normal(0, 5)")
        assert priors.prior_for_coefficient("anything") == PriorSpec("normal", (0, 5))

    def test_with_defaults(self):
        defaults = RegressionPriors(
            intercept="normal(0, 10)",
            b={"x": "normal(0, 2)", "z": "normal(0, 3)"},
            sigma="exponential(1)",
        )
        priors = RegressionPriors(b={"x": "normal(0, 0.1)"}).with_defaults(defaults)

        assert priors.intercept == PriorSpec("normal", (0, 10))
        assert priors.prior_for_coefficient("x") == PriorSpec("normal", (0, 0.1))
        assert priors.prior_for_coefficient("z") == PriorSpec("normal", (0, 3))
        assert priors.sigma == PriorSpec("exponential", (1,))

    def test_describe(self):
        table = RegressionPriors(
            intercept="normal(0, 10)", b={"x": "normal(0, 1)"}, sigma="exponential(1)"
        ).describe()

        assert table == {
            "Intercept": "normal(0, 10)",
            "b_x": "normal(0, 1)",
            "sigma": "exponential(1)",
        }


class TestDefaultPriors:
    """Test data-scaled defaults."""

    def test_gaussian_centres_on_response(self):
        y = np.array([10.0, 12.0, 14.0, 16.0, 18.0])
        priors = default_priors(y, Family.GAUSSIAN)

        assert priors.intercept.distribution == "student_t"
        assert priors.intercept.kwargs["mu"] == pytest.approx(14.0)
        assert priors.sigma.distribution == "half_student_t"

    def test_scale_floor(self):
        y = np.array([0.0, 0.1, 0.2])
        priors = default_priors(y, Family.GAUSSIAN)
        assert priors.sigma.kwargs["sigma"] == pytest.approx(2.5)

    def test_logit_defaults(self):
        y = np.array([0, 1, 1, 0])
        priors = default_priors(y, Family.BERNOULLI)

        assert priors.intercept == PriorSpec("student_t", (3, 0, 2.5))

    def test_coefficients_scaled_by_predictor(self):
        rng = np.random.default_rng(0)
        y = rng.normal(size=100)
        wide = rng.normal(scale=10, size=100)
        narrow = rng.normal(scale=0.1, size=100)

        priors = default_priors(y, Family.GAUSSIAN, predictors={"wide": wide, "narrow": narrow})

        assert priors.b["narrow"].kwargs["sigma"] > priors.b["wide"].kwargs["sigma"]

    def test_constant_predictor(self):
        priors = default_priors(np.array([0, 1, 2]), "poisson", predictors={"c": np.ones(3)})
        assert priors.b["c"] == PriorSpec("normal", (0, 2.5))

    def test_auxiliary_defaults(self):
        priors = default_priors(np.array([1.0, 2.0]))

        assert priors.nu == PriorSpec("gamma", (2, 0.1))
        assert priors.phi == PriorSpec("exponential", (0.1,))


class TestSamplerConfig:
    """Test sampler configuration."""

    def test_defaults_from_settings(self):
        config = SamplerConfig()

        assert config.draws == settings.draws
        assert config.chains == settings.chains
        assert config.random_seed == settings.random_seed

    def test_quick(self):
        config = SamplerConfig.quick(random_seed=7)

        assert config.chains == 1
        assert config.draws == 300
        assert config.random_seed == 7

    def test_to_dict_includes_extra(self):
        config = SamplerConfig(draws=100, extra={"progressbar": False})
        as_dict = config.to_dict()

        assert as_dict["draws"] == 100
        assert as_dict["progressbar"] is False
