"""Bayesian regression course: chapters, models and the glue to run them."""

__version__ = "1.0.0"
