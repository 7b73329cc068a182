"""
Shared utility functions.

Includes:
- Logging setup
- Cache keys for fitted models
- Small numeric helpers
"""

# Re-export logging utilities for convenience
from bayesreg.utils.logging import setup_logging, get_logger, LogContext

import hashlib
import json
from typing import Any

import numpy as np
import pandas as pd


# =============================================================================
# Caching Helpers
# =============================================================================

def cache_key(*args: Any, **kwargs: Any) -> str:
    """Generate a cache key from JSON-serialisable arguments."""
    key_data = json.dumps({"args": args, "kwargs": kwargs}, sort_keys=True, default=str)
    return hashlib.md5(key_data.encode()).hexdigest()


def frame_fingerprint(data: pd.DataFrame) -> str:
    """Stable hash of a DataFrame's contents, column names and dtypes."""
    hashed = pd.util.hash_pandas_object(data, index=True).values
    header = json.dumps([[str(c), str(t)] for c, t in data.dtypes.items()])
    return hashlib.md5(header.encode() + hashed.tobytes()).hexdigest()


# =============================================================================
# Math Helpers
# =============================================================================

def median_absolute_deviation(values: np.ndarray) -> float:
    """MAD scaled to be consistent with the SD under normality (as R's mad())."""
    values = np.asarray(values, dtype=float)
    return float(1.4826 * np.median(np.abs(values - np.median(values))))


def logistic(x):
    """Inverse logit."""
    return 1.0 / (1.0 + np.exp(-np.asarray(x, dtype=float)))


__all__ = [
    "setup_logging",
    "get_logger",
    "LogContext",
    "cache_key",
    "frame_fingerprint",
    "median_absolute_deviation",
    "logistic",
]
