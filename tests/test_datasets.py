"""
Tests for course datasets.
"""

import numpy as np
import pytest

from bayesreg.data import (
    list_datasets,
    load_dataset,
    load_murder_data,
    load_politeness_data,
    simulate_confounded,
    simulate_grouped,
    simulate_linear,
    simulate_logistic,
    simulate_poisson,
    simulate_wiggly,
    true_total_causal_effect,
)


class TestHandEnteredData:
    """Test hand-entered tables."""

    def test_murder_data_shape(self):
        data = load_murder_data()

        assert len(data) == 20
        assert list(data.columns) == ["murder_rate", "low_income", "unemployment", "population"]
        assert data.notna().all().all()

    def test_murder_rate_rises_with_low_income(self):
        data = load_murder_data()
        assert data["murder_rate"].corr(data["low_income"]) > 0.5


class TestPolitenessData:
    """Test the simulated 2x2 factorial."""

    def test_design(self):
        data = load_politeness_data(seed=1)

        # 6 subjects x 7 sentences x 2 contexts
        assert len(data) == 84
        assert set(data["gender"]) == {"F", "M"}
        assert set(data["context"]) == {"inf", "pol"}
        assert data.groupby(["gender", "context"]).size().eq(21).all()

    def test_polite_speech_lower(self):
        data = load_politeness_data(seed=1)
        means = data.groupby("context")["pitch"].mean()
        assert means["pol"] < means["inf"]

    def test_deterministic_given_seed(self):
        assert load_politeness_data(seed=3).equals(load_politeness_data(seed=3))
        assert not load_politeness_data(seed=3).equals(load_politeness_data(seed=4))


class TestSimulatedData:
    """Test simulated datasets."""

    def test_linear(self):
        data = simulate_linear(n=500, intercept=2.0, slope=0.5, sigma=0.1, seed=0)
        slope, intercept = np.polyfit(data["x"], data["y"], 1)

        assert slope == pytest.approx(0.5, abs=0.05)
        assert intercept == pytest.approx(2.0, abs=0.05)

    def test_logistic_is_binary(self):
        data = simulate_logistic(n=100, seed=0)
        assert set(data["y"].unique()) <= {0, 1}

    def test_poisson_counts(self):
        data = simulate_poisson(n=100, seed=0)
        assert (data["y"] >= 0).all()
        assert data["y"].dtype.kind == "i"
        assert data["x"].between(-2, 2).all()

    def test_grouped(self):
        data = simulate_grouped(n_groups=5, n_per_group=4, seed=0)

        assert len(data) == 20
        assert sorted(data["group"].astype(str).unique()) == ["g1", "g2", "g3", "g4", "g5"]

    def test_confounded(self):
        data = simulate_confounded(n=2000, seed=0)

        assert list(data.columns) == ["Z", "X", "Y"]
        # Z raises the chance of treatment
        assert data.loc[data["Z"] == 1, "X"].mean() > data.loc[data["Z"] == 0, "X"].mean()

    def test_true_tce(self):
        tce = true_total_causal_effect(0.5)
        assert 0 < tce < 1
        # Without confounder (p_z = 0) the TCE is logistic(0) - logistic(-1)
        assert true_total_causal_effect(0.0) == pytest.approx(0.5 - 1 / (1 + np.exp(1)))

    def test_wiggly_sorted(self):
        data = simulate_wiggly(n=50, seed=0)
        assert data["x"].is_monotonic_increasing
        assert data["x"].between(0, 2 * np.pi).all()


class TestRegistry:
    """Test name-based loading."""

    def test_list(self):
        names = list_datasets()
        assert "murder" in names
        assert names == sorted(names)

    def test_load_with_kwargs(self):
        data = load_dataset("linear", n=10, seed=0)
        assert len(data) == 10

    def test_unknown_dataset(self):
        with pytest.raises(KeyError):
            load_dataset("titanic")
