# src/npsmle/sde/processes/joint.py
from __future__ import annotations

import math
from typing import Literal, Sequence

import numpy as np
import pandas as pd

from npsmle.sde.integrators import (
    GeneratorNormalSource,
    NormalSource,
    correlate_shocks,
    euler_maruyama_step,
)
from npsmle.sde.schemas import ModelParameters

SentimentGrid = Literal["coarse", "fine"]


def _output_buffer(buf: np.ndarray | None, n_obs: int, name: str) -> np.ndarray:
    if buf is None:
        return np.empty(n_obs, dtype=float)
    if not isinstance(buf, np.ndarray) or buf.shape != (n_obs,):
        raise ValueError(f"{name} buffer must be a numpy array of shape ({n_obs},).")
    return buf


def _sentiment_index(i: int, j: int, m_obs: int, grid: SentimentGrid) -> int:
    # coarse: one value per observation; fine: one value per sub-step
    if grid == "coarse":
        return i
    return (i - 1) * m_obs + j


def simulate_joint(
    params: ModelParameters,
    dt: float,
    n_obs: int,
    m_obs: int,
    p0: float,
    v0: float,
    sentiment: Sequence[float] | np.ndarray | pd.Series,
    source: NormalSource | None = None,
    price: np.ndarray | None = None,
    volatility: np.ndarray | None = None,
    sentiment_grid: SentimentGrid = "coarse",
) -> tuple[np.ndarray, np.ndarray]:
    """
    Euler-Maruyama path of the joint price / volatility system.

    Each observation interval dt is split into m_obs sub-steps of size
    delta = dt / m_obs. Per sub-step the volatility shock is drawn first,
    then the independent price shock, which is mixed with rho_pv:

        W_v = z_1
        W_p = sqrt(1 - rho^2) * z_2 + rho * W_v
        P  += gamma_p (mu_p - P) delta + W_p P sqrt(|V|) sqrt(delta)
        V  += gamma_v (mu_v + beta_v |s| - V) delta + W_v sigma_v sqrt(|V|) sqrt(delta)

    |V| is used under the square roots; V itself is neither truncated nor
    reflected and may go negative.

    Parameters
    ----------
    params : ModelParameters
        Model parameters.
    dt : float
        Time between observations.
    n_obs, m_obs : int
        Number of observations and sub-steps per observation interval.
    p0, v0 : float
        Initial price and volatility.
    sentiment : array-like
        Sentiment signal. With ``sentiment_grid="coarse"`` entry ``i`` drives
        every sub-step of the interval ending at observation i (needs n_obs
        entries). With ``"fine"`` entry ``(i-1)*m_obs + j`` drives sub-step j
        (needs (n_obs-1)*m_obs entries), the grid the likelihood evaluator uses.
    source : NormalSource, optional
        Standard-normal draws; defaults to an entropy-seeded numpy Generator.
    price, volatility : np.ndarray, optional
        Caller-owned output arrays of shape (n_obs,), filled in place.

    Returns
    -------
    (price, volatility) : tuple[np.ndarray, np.ndarray]
    """
    if dt <= 0.0:
        raise ValueError("dt must be positive.")
    if n_obs < 1 or m_obs < 1:
        raise ValueError("n_obs and m_obs must be at least 1.")
    if sentiment_grid not in ("coarse", "fine"):
        raise ValueError(f"Unknown sentiment_grid: {sentiment_grid!r}")

    s = np.asarray(sentiment, dtype=float)
    if s.ndim != 1:
        raise ValueError("sentiment must be a 1D series.")
    needed = n_obs if sentiment_grid == "coarse" else (n_obs - 1) * m_obs
    if s.size < needed:
        raise ValueError(
            f"sentiment has {s.size} entries; {sentiment_grid} grid needs {needed}."
        )

    price = _output_buffer(price, n_obs, "price")
    volatility = _output_buffer(volatility, n_obs, "volatility")
    if source is None:
        source = GeneratorNormalSource()

    gamma_p, mu_p = params.gamma_p, params.mu_p
    gamma_v, mu_v = params.gamma_v, params.mu_v
    beta_v, sigma_v, rho = params.beta_v, params.sigma_v, params.rho_pv

    delta = dt / m_obs
    sqrt_delta = math.sqrt(delta)

    price[0] = p0
    volatility[0] = v0

    for i in range(1, n_obs):
        p = float(price[i - 1])
        v = float(volatility[i - 1])

        for j in range(m_obs):
            w_v = source.standard_normal()
            w_p = correlate_shocks(source.standard_normal(), w_v, rho)

            sqrt_abs_v = math.sqrt(abs(v))
            s_ij = abs(s[_sentiment_index(i, j, m_obs, sentiment_grid)])

            mp = gamma_p * (mu_p - p)
            sp = p * sqrt_abs_v
            mv = gamma_v * (mu_v + beta_v * s_ij - v)
            sv = sigma_v * sqrt_abs_v

            p = euler_maruyama_step(p, mp, sp, delta, w_p, sqrt_delta)
            v = euler_maruyama_step(v, mv, sv, delta, w_v, sqrt_delta)

        price[i] = p
        volatility[i] = v

    return price, volatility


def joint_path_frame(price: np.ndarray, volatility: np.ndarray, dt: float) -> pd.DataFrame:
    """Tabulate a simulated path indexed by observation time."""
    if price.shape != volatility.shape:
        raise ValueError("price and volatility must have the same shape.")
    t = np.arange(price.size, dtype=float) * dt
    return pd.DataFrame(
        {"price": price, "volatility": volatility}, index=pd.Index(t, name="t")
    )


__all__ = ["SentimentGrid", "simulate_joint", "joint_path_frame"]
