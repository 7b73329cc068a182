"""
Figures for the chapters.

All figures are plotly; they take plain draw tables and arrays so they can
be drawn for any fit (or for hand-made draws in tests).
"""

from pathlib import Path
from typing import Optional, Sequence

import numpy as np
import pandas as pd
import plotly.graph_objects as go
from plotly.subplots import make_subplots
from scipy import stats

from bayesreg.bayesian.posterior import hdi
from bayesreg.config import settings
from bayesreg.utils import get_logger

logger = get_logger("plotting")

CHAIN_COLORS = ["#1f77b4", "#ff7f0e", "#2ca02c", "#d62728", "#9467bd", "#8c564b"]


def _density(samples: np.ndarray, n_points: int = 200):
    samples = np.asarray(samples, dtype=float)
    low, high = samples.min(), samples.max()
    pad = 0.1 * (high - low or 1.0)
    grid = np.linspace(low - pad, high + pad, n_points)
    return grid, stats.gaussian_kde(samples)(grid)


def plot_trace(draws: pd.DataFrame, parameters: Sequence[str]) -> go.Figure:
    """
    Trace plot: per-chain density (left) and draws by iteration (right).

    Well-mixed chains overlap in both panels.
    """
    fig = make_subplots(
        rows=len(parameters), cols=2,
        subplot_titles=[t for p in parameters for t in (p, f"{p} trace")],
    )
    for row, parameter in enumerate(parameters, start=1):
        if parameter not in draws.columns:
            raise KeyError(f"Unknown parameter {parameter!r}")
        for chain, chain_draws in draws.groupby("chain"):
            color = CHAIN_COLORS[int(chain) % len(CHAIN_COLORS)]
            values = chain_draws[parameter].to_numpy()
            grid, density = _density(values)
            fig.add_trace(
                go.Scatter(x=grid, y=density, mode="lines", line=dict(color=color),
                           name=f"chain {chain}", legendgroup=f"chain {chain}",
                           showlegend=row == 1),
                row=row, col=1,
            )
            fig.add_trace(
                go.Scatter(x=chain_draws["draw"], y=values, mode="lines",
                           line=dict(color=color, width=1), opacity=0.7,
                           legendgroup=f"chain {chain}", showlegend=False),
                row=row, col=2,
            )
    fig.update_layout(height=250 * len(parameters), title="Trace plot")
    return fig


def plot_rank(draws: pd.DataFrame, parameter: str, n_bins: int = 20) -> go.Figure:
    """Rank histogram per chain; uniform bars indicate good mixing."""
    if parameter not in draws.columns:
        raise KeyError(f"Unknown parameter {parameter!r}")

    ranks = stats.rankdata(draws[parameter].to_numpy())
    edges = np.linspace(0, len(ranks), n_bins + 1)

    fig = go.Figure()
    for chain in sorted(draws["chain"].unique()):
        counts, _ = np.histogram(ranks[(draws["chain"] == chain).to_numpy()], bins=edges)
        fig.add_trace(go.Bar(x=edges[:-1], y=counts, name=f"chain {chain}", opacity=0.6))

    expected = len(ranks) / n_bins / draws["chain"].nunique()
    fig.add_hline(y=expected, line_dash="dash", line_color="gray")
    fig.update_layout(barmode="overlay", title=f"Rank plot: {parameter}",
                      xaxis_title="Rank", yaxis_title="Count")
    return fig


def plot_posterior_density(
    samples: np.ndarray,
    name: str,
    credible_interval: Optional[float] = None,
    reference: Optional[float] = None,
) -> go.Figure:
    """Posterior density with its highest density interval shaded."""
    ci = credible_interval or settings.credible_interval
    grid, density = _density(samples)
    lower, upper = hdi(samples, ci)
    inside = (grid >= lower) & (grid <= upper)

    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=grid[inside], y=density[inside], fill="tozeroy", mode="none",
        name=f"{ci:.0%} HDI", fillcolor="rgba(31, 119, 180, 0.3)",
    ))
    fig.add_trace(go.Scatter(x=grid, y=density, mode="lines", name=name,
                             line=dict(color="#1f77b4")))
    if reference is not None:
        fig.add_vline(x=reference, line_dash="dash", line_color="gray")
    fig.update_layout(title=f"Posterior of {name}", xaxis_title=name, yaxis_title="Density")
    return fig


def plot_prior_posterior(prior_samples: np.ndarray, posterior_samples: np.ndarray, name: str) -> go.Figure:
    """Prior and posterior densities of one parameter on the same axes."""
    fig = go.Figure()
    for label, samples, color in (
        ("prior", prior_samples, "#7f7f7f"),
        ("posterior", posterior_samples, "#1f77b4"),
    ):
        grid, density = _density(samples)
        fig.add_trace(go.Scatter(x=grid, y=density, mode="lines", name=label,
                                 line=dict(color=color)))
    fig.update_layout(title=f"Prior vs posterior: {name}", xaxis_title=name,
                      yaxis_title="Density")
    return fig


def plot_ppc(y: np.ndarray, y_rep: np.ndarray, n_draws: int = 50, seed: Optional[int] = None) -> go.Figure:
    """Density of the observed response over densities of replicated datasets."""
    y_rep = np.asarray(y_rep, dtype=float)
    rng = np.random.default_rng(settings.random_seed if seed is None else seed)
    rows = rng.choice(len(y_rep), size=min(n_draws, len(y_rep)), replace=False)

    fig = go.Figure()
    for i, row in enumerate(rows):
        grid, density = _density(y_rep[row])
        fig.add_trace(go.Scatter(
            x=grid, y=density, mode="lines", line=dict(color="#aec7e8", width=1),
            name="y_rep", legendgroup="y_rep", showlegend=i == 0,
        ))
    grid, density = _density(y)
    fig.add_trace(go.Scatter(x=grid, y=density, mode="lines", name="y",
                             line=dict(color="#08306b", width=3)))
    fig.update_layout(title="Posterior predictive check", yaxis_title="Density")
    return fig


def plot_conditional_effect(
    effects: pd.DataFrame,
    variable: str,
    data: Optional[pd.DataFrame] = None,
    response: Optional[str] = None,
) -> go.Figure:
    """
    Expected response along a predictor with its credible band.

    Args:
        effects: Output of RegressionModel.conditional_effects
        variable: Predictor on the x axis
        data / response: Observed points to overlay
    """
    fig = go.Figure()
    if pd.api.types.is_numeric_dtype(effects[variable]) and len(effects) > 2:
        fig.add_trace(go.Scatter(
            x=np.concatenate([effects[variable], effects[variable][::-1]]),
            y=np.concatenate([effects["upper"], effects["lower"][::-1]]),
            fill="toself", fillcolor="rgba(31, 119, 180, 0.2)",
            line=dict(color="rgba(0,0,0,0)"), name="credible band",
        ))
        fig.add_trace(go.Scatter(x=effects[variable], y=effects["estimate"],
                                 mode="lines", name="estimate",
                                 line=dict(color="#1f77b4")))
    else:
        fig.add_trace(go.Scatter(
            x=effects[variable].astype(str), y=effects["estimate"], mode="markers",
            name="estimate",
            error_y=dict(
                type="data", symmetric=False,
                array=effects["upper"] - effects["estimate"],
                arrayminus=effects["estimate"] - effects["lower"],
            ),
        ))
    if data is not None and response is not None:
        fig.add_trace(go.Scatter(x=data[variable], y=data[response], mode="markers",
                                 marker=dict(color="gray", size=5), name="observed"))
    fig.update_layout(title=f"Conditional effect of {variable}", xaxis_title=variable,
                      yaxis_title=response or "expected response")
    return fig


def save_figure(fig: go.Figure, name: str, directory: Optional[Path] = None) -> Path:
    """Write a figure as standalone HTML into the figures directory."""
    directory = Path(directory or settings.figures_dir)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{name}.html"
    fig.write_html(str(path), include_plotlyjs="cdn")
    logger.info(f"Saved figure {path}")
    return path
