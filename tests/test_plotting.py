"""
Tests for chapter figures.
"""

import numpy as np
import pandas as pd
import plotly.graph_objects as go
import pytest

from bayesreg.plotting import (
    plot_conditional_effect,
    plot_posterior_density,
    plot_ppc,
    plot_prior_posterior,
    plot_rank,
    plot_trace,
    save_figure,
)


@pytest.fixture
def draws():
    rng = np.random.default_rng(0)
    return pd.DataFrame({
        "chain": np.repeat([0, 1], 100),
        "draw": np.tile(np.arange(100), 2),
        "b_x": rng.normal(2.0, 0.1, 200),
        "sigma": rng.gamma(5.0, 0.1, 200),
    })


class TestDrawFigures:
    """Test figures built from draw tables."""

    def test_trace(self, draws):
        fig = plot_trace(draws, ["b_x", "sigma"])

        assert isinstance(fig, go.Figure)
        # density and trace per chain per parameter
        assert len(fig.data) == 2 * 2 * 2

    def test_trace_unknown_parameter(self, draws):
        with pytest.raises(KeyError):
            plot_trace(draws, ["b_z"])

    def test_rank(self, draws):
        fig = plot_rank(draws, "b_x", n_bins=10)

        assert len(fig.data) == 2
        assert sum(sum(bar.y) for bar in fig.data) == 200

    def test_posterior_density(self, draws):
        fig = plot_posterior_density(draws["b_x"].to_numpy(), "b_x", reference=0.0)

        assert fig.layout.title.text == "Posterior of b_x"
        assert fig.data[0].name == "95% HDI"

    def test_prior_posterior(self, draws):
        prior = np.random.default_rng(1).normal(0, 5, 500)
        fig = plot_prior_posterior(prior, draws["b_x"].to_numpy(), "b_x")

        assert [trace.name for trace in fig.data] == ["prior", "posterior"]


class TestPredictionFigures:
    """Test PPC and conditional-effect figures."""

    def test_ppc(self):
        rng = np.random.default_rng(0)
        y = rng.normal(size=30)
        y_rep = rng.normal(size=(100, 30))

        fig = plot_ppc(y, y_rep, n_draws=10, seed=0)

        assert len(fig.data) == 11
        assert fig.data[-1].name == "y"

    def test_conditional_numeric(self):
        effects = pd.DataFrame({
            "x": np.linspace(0, 1, 5),
            "estimate": np.linspace(1, 2, 5),
            "lower": np.linspace(0.5, 1.5, 5),
            "upper": np.linspace(1.5, 2.5, 5),
        })
        data = pd.DataFrame({"x": [0.2, 0.8], "y": [1.1, 1.9]})

        fig = plot_conditional_effect(effects, "x", data=data, response="y")

        assert [trace.name for trace in fig.data] == ["credible band", "estimate", "observed"]

    def test_conditional_categorical(self):
        effects = pd.DataFrame({
            "context": ["inf", "pol"],
            "estimate": [200.0, 180.0],
            "lower": [190.0, 170.0],
            "upper": [210.0, 190.0],
        })

        fig = plot_conditional_effect(effects, "context")

        assert len(fig.data) == 1
        assert list(fig.data[0].x) == ["inf", "pol"]


class TestSaveFigure:
    """Test writing figures."""

    def test_writes_html(self, draws, tmp_path):
        fig = plot_rank(draws, "b_x")
        path = save_figure(fig, "01_rank", directory=tmp_path / "figs")

        assert path == tmp_path / "figs" / "01_rank.html"
        assert path.exists()
        assert "plotly" in path.read_text()
