# src/npsmle/sde/estimators/kernel.py
from __future__ import annotations

import math

import numpy as np

SQRT_2PI = math.sqrt(2.0 * math.pi)

# Undersmoothing applied on top of the rule-of-thumb rate to offset the
# simulation noise in the ensemble.
UNDERSMOOTH = 0.5


def bandwidth_fraction(n_sim: int, dim: int = 1, undersmooth: float = UNDERSMOOTH) -> float:
    """
    Rule-of-thumb bandwidth factor, to be multiplied by the sample std:

        h_frac = (4 / (d + 2))^(1 / (d + 4)) * N^(-(1 + u) / (d + 4))
    """
    if n_sim < 1:
        raise ValueError("n_sim must be positive.")
    if dim < 1:
        raise ValueError("dim must be positive.")
    return (4.0 / (dim + 2.0)) ** (1.0 / (dim + 4.0)) * float(n_sim) ** (
        -(1.0 + undersmooth) / (dim + 4.0)
    )


def ensemble_bandwidth(samples: np.ndarray, h_frac: float, ddof: int = 1) -> float:
    """Marginal bandwidth h = h_frac * std(samples)."""
    return float(h_frac * np.std(samples, ddof=ddof))


def gaussian_kernel(x: float, centers, h: float):
    """phi((x - centers) / h) / h for scalar or array centers."""
    d = centers - x
    return np.exp(-d * d / (2.0 * h * h)) / (h * SQRT_2PI)


def product_kernel_density(
    x: float,
    y: float,
    xs: np.ndarray,
    ys: np.ndarray,
    hx: float,
    hy: float,
) -> float:
    """
    Product-Gaussian kernel density estimate at (x, y):

        f(x, y) = 1/N * sum_j K_hx(x - xs_j) * K_hy(y - ys_j)

    The two coordinates are smoothed independently; no cross-covariance.
    """
    if xs.shape != ys.shape:
        raise ValueError("xs and ys must have the same shape.")
    return float(np.mean(gaussian_kernel(y, ys, hy) * gaussian_kernel(x, xs, hx)))


__all__ = [
    "SQRT_2PI",
    "UNDERSMOOTH",
    "bandwidth_fraction",
    "ensemble_bandwidth",
    "gaussian_kernel",
    "product_kernel_density",
]
