# src/npsmle/data/sentiment.py
from __future__ import annotations

from typing import Sequence

import numpy as np
import pandas as pd


def interpolate_sentiment(
    sentiment: Sequence[float] | np.ndarray | pd.Series, m_sim: int
) -> np.ndarray:
    """
    Linear interpolation of an observation-grid sentiment series onto the
    simulation sub-step grid.

    Sub-step k of interval i (between observations i and i+1) sits at
    time i + k / m_sim, so the output has (N - 1) * m_sim entries and
    out[i * m_sim] == sentiment[i].
    """
    s = np.asarray(sentiment, dtype=float)
    if s.ndim != 1:
        raise ValueError("sentiment must be a 1D series.")
    if s.size < 2:
        raise ValueError("At least 2 sentiment observations are required.")
    if m_sim < 1:
        raise ValueError("m_sim must be at least 1.")
    if not np.isfinite(s).all():
        raise ValueError("sentiment contains non-finite values.")

    n_intervals = s.size - 1
    grid = np.arange(n_intervals * m_sim, dtype=float) / m_sim
    return np.interp(grid, np.arange(s.size, dtype=float), s)


def synthetic_sentiment(
    n: int, level: float = 0.0, amplitude: float = 1.0, period: float = 50.0
) -> np.ndarray:
    """Deterministic sine-wave sentiment signal of length n."""
    if n < 1:
        raise ValueError("n must be positive.")
    if period <= 0.0:
        raise ValueError("period must be positive.")
    t = np.arange(n, dtype=float)
    return level + amplitude * np.sin(2.0 * np.pi * t / period)


__all__ = ["interpolate_sentiment", "synthetic_sentiment"]
