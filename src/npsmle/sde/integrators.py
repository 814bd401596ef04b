# src/npsmle/sde/integrators.py
from __future__ import annotations

import math
from typing import Iterable, Protocol, runtime_checkable

import numpy as np


def rng_with_seed(seed: int | None) -> np.random.Generator:
    """Create a numpy Generator deterministically from seed if provided."""
    return np.random.default_rng(seed)


def euler_maruyama_step(x, drift, diffusion, dt: float, z, sqrt_dt: float):
    """
    Single Euler-Maruyama step driven by a standard normal z:
    X_{t+dt} = X_t + a(X_t)*dt + z*b(X_t)*sqrt(dt)
    Here we pass precomputed drift and diffusion values (scalars or arrays).
    """
    return x + (drift * dt + z * diffusion * sqrt_dt)


def correlate_shocks(z_price, w_volatility, rho: float):
    """
    Cholesky mix of two independent standard normals:

        W_p = sqrt(1 - rho^2) * Z_p + rho * W_v

    Works on scalars and on numpy arrays alike.
    """
    return math.sqrt(1.0 - rho * rho) * z_price + rho * w_volatility


def standard_normal_buffers(
    rng: np.random.Generator, n_sim: int, m_sim: int
) -> tuple[np.ndarray, np.ndarray]:
    """
    Draw the (price, volatility) raw innovation buffers of length n_sim * m_sim.

    Entry ``j * m_sim + k`` drives sub-step k of ensemble member j.
    """
    if n_sim < 1 or m_sim < 1:
        raise ValueError("n_sim and m_sim must be positive.")
    size = n_sim * m_sim
    return rng.standard_normal(size), rng.standard_normal(size)


# ---------------------------------------------------------------------------
# Pluggable standard-normal sources for the single-path simulator
# ---------------------------------------------------------------------------


@runtime_checkable
class NormalSource(Protocol):
    def standard_normal(self) -> float:
        ...


class GeneratorNormalSource:
    """Draws from a numpy Generator; seed=None seeds from OS entropy."""

    def __init__(
        self, seed: int | None = None, rng: np.random.Generator | None = None
    ):
        self.rng = rng if rng is not None else rng_with_seed(seed)

    def standard_normal(self) -> float:
        return float(self.rng.standard_normal())


class ConstantNormalSource:
    """Always returns the same value. Useful for zero-noise checks."""

    def __init__(self, value: float = 0.0):
        self.value = float(value)

    def standard_normal(self) -> float:
        return self.value


class SequenceNormalSource:
    """Replays a fixed sequence of draws and fails once it runs out."""

    def __init__(self, draws: Iterable[float]):
        self._draws = [float(d) for d in draws]
        self._pos = 0

    @property
    def consumed(self) -> int:
        return self._pos

    def standard_normal(self) -> float:
        if self._pos >= len(self._draws):
            raise IndexError(
                f"SequenceNormalSource exhausted after {len(self._draws)} draws."
            )
        value = self._draws[self._pos]
        self._pos += 1
        return value


__all__ = [
    "rng_with_seed",
    "euler_maruyama_step",
    "correlate_shocks",
    "standard_normal_buffers",
    "NormalSource",
    "GeneratorNormalSource",
    "ConstantNormalSource",
    "SequenceNormalSource",
]
