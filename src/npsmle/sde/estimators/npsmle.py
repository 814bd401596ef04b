# src/npsmle/sde/estimators/npsmle.py

from __future__ import annotations

import logging
import math
import sys
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np
import pandas as pd

from npsmle.sde.estimators.kernel import (
    SQRT_2PI,
    bandwidth_fraction,
    ensemble_bandwidth,
    product_kernel_density,
)
from npsmle.sde.integrators import (
    correlate_shocks,
    euler_maruyama_step,
    rng_with_seed,
    standard_normal_buffers,
)
from npsmle.sde.schemas import ModelParameters

LOGGER = logging.getLogger(__name__)

# Returned instead of -ll when a trial is abandoned early.
PENALTY = float(np.finfo(float).max)


class DegenerateBandwidthError(ValueError):
    """Raised when the simulated ensemble has zero spread at some step."""


def _as_float_array(x: Sequence[float] | np.ndarray | pd.Series, name: str) -> np.ndarray:
    arr = np.asarray(x, dtype=float)
    if arr.ndim != 1:
        raise ValueError(f"{name} must be a 1D series.")
    if not np.isfinite(arr).all():
        raise ValueError(f"{name} contains non-finite values.")
    return arr


def _is_normal(x: float) -> bool:
    # Mirrors C isnormal: zero, subnormals, inf and nan are all rejected.
    return math.isfinite(x) and abs(x) >= sys.float_info.min


@dataclass
class ObservedSeries:
    """
    Observed price / volatility pairs plus the sentiment signal on the
    sub-step grid. Read-only during likelihood evaluation.
    """

    price: np.ndarray
    volatility: np.ndarray
    sentiment: np.ndarray

    def __post_init__(self) -> None:
        self.price = _as_float_array(self.price, "price")
        self.volatility = _as_float_array(self.volatility, "volatility")
        self.sentiment = _as_float_array(self.sentiment, "sentiment")
        if self.price.size != self.volatility.size:
            raise ValueError(
                f"price ({self.price.size}) and volatility ({self.volatility.size}) "
                "must have the same length."
            )
        if self.price.size < 2:
            raise ValueError("At least 2 observations are required.")

    @property
    def n_obs(self) -> int:
        return int(self.price.size)


@dataclass
class LikelihoodContext:
    """
    Everything the evaluator borrows for one call: the observed data, the
    raw innovations (common random numbers across calls), and the work
    buffers. Allocated once and reused for every parameter trial.
    """

    observed: ObservedSeries
    raw_price: np.ndarray
    raw_volatility: np.ndarray
    n_sim: int
    m_sim: int
    dt: float
    short_circuit_on_non_finite: bool = False
    vectorized: bool = True
    bandwidth_ddof: int = 1
    simulated_price: np.ndarray = field(init=False, repr=False)
    simulated_volatility: np.ndarray = field(init=False, repr=False)
    wiener_price: np.ndarray = field(init=False, repr=False)
    wiener_volatility: np.ndarray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.n_sim <= 1:
            raise ValueError("n_sim must be greater than 1 to estimate a bandwidth.")
        if self.m_sim < 1:
            raise ValueError("m_sim must be at least 1.")
        if self.dt <= 0.0:
            raise ValueError("dt must be positive.")
        if self.bandwidth_ddof not in (0, 1):
            raise ValueError("bandwidth_ddof must be 0 (population) or 1 (sample).")

        size = self.n_sim * self.m_sim
        self.raw_price = np.asarray(self.raw_price, dtype=float)
        self.raw_volatility = np.asarray(self.raw_volatility, dtype=float)
        for name, buf in (("raw_price", self.raw_price), ("raw_volatility", self.raw_volatility)):
            if buf.shape != (size,):
                raise ValueError(
                    f"{name} must have shape ({size},) = n_sim * m_sim, got {buf.shape}."
                )

        needed = (self.observed.n_obs - 1) * self.m_sim
        if self.observed.sentiment.size < needed:
            raise ValueError(
                f"sentiment has {self.observed.sentiment.size} entries; "
                f"(n_obs - 1) * m_sim = {needed} are required."
            )

        self.simulated_price = np.empty(self.n_sim, dtype=float)
        self.simulated_volatility = np.empty(self.n_sim, dtype=float)
        self.wiener_price = np.empty(size, dtype=float)
        self.wiener_volatility = np.empty(size, dtype=float)

    @classmethod
    def build(
        cls,
        price: Sequence[float] | np.ndarray | pd.Series,
        volatility: Sequence[float] | np.ndarray | pd.Series,
        sentiment: Sequence[float] | np.ndarray | pd.Series,
        n_sim: int,
        m_sim: int,
        dt: float,
        seed: int | None = None,
        **settings,
    ) -> "LikelihoodContext":
        """Draw the raw innovations once from a seeded Generator and wrap the data."""
        observed = ObservedSeries(price=price, volatility=volatility, sentiment=sentiment)
        raw_price, raw_volatility = standard_normal_buffers(
            rng_with_seed(seed), n_sim, m_sim
        )
        return cls(
            observed=observed,
            raw_price=raw_price,
            raw_volatility=raw_volatility,
            n_sim=n_sim,
            m_sim=m_sim,
            dt=dt,
            **settings,
        )


def _fill_wiener(ctx: LikelihoodContext, rho: float) -> None:
    np.copyto(ctx.wiener_volatility, ctx.raw_volatility)
    ctx.wiener_price[:] = correlate_shocks(ctx.raw_price, ctx.wiener_volatility, rho)


def _propagate_vectorized(
    ctx: LikelihoodContext, params: ModelParameters, i: int, delta: float, sqrt_delta: float
) -> None:
    sim_p = ctx.simulated_price
    sim_v = ctx.simulated_volatility
    w_p = ctx.wiener_price.reshape(ctx.n_sim, ctx.m_sim)
    w_v = ctx.wiener_volatility.reshape(ctx.n_sim, ctx.m_sim)
    sentiment = ctx.observed.sentiment
    base = (i - 1) * ctx.m_sim

    for k in range(ctx.m_sim):
        mp = params.gamma_p * (params.mu_p - sim_p)
        sqrt_vol = sim_p * np.sqrt(np.abs(sim_v))
        mv = params.gamma_v * (
            params.mu_v + params.beta_v * abs(sentiment[base + k]) - sim_v
        )
        sim_p[:] = euler_maruyama_step(sim_p, mp, sqrt_vol, delta, w_p[:, k], sqrt_delta)
        sim_v[:] = euler_maruyama_step(
            sim_v, mv, sqrt_vol * params.sigma_v, delta, w_v[:, k], sqrt_delta
        )


def _propagate_loop(
    ctx: LikelihoodContext, params: ModelParameters, i: int, delta: float, sqrt_delta: float
) -> None:
    m_sim = ctx.m_sim
    sentiment = ctx.observed.sentiment
    w_p = ctx.wiener_price
    w_v = ctx.wiener_volatility
    base = (i - 1) * m_sim

    for j in range(ctx.n_sim):
        p = float(ctx.simulated_price[j])
        v = float(ctx.simulated_volatility[j])
        for k in range(m_sim):
            mp = params.gamma_p * (params.mu_p - p)
            sqrt_vol = p * math.sqrt(abs(v))
            mv = params.gamma_v * (
                params.mu_v + params.beta_v * abs(float(sentiment[base + k])) - v
            )
            idx = j * m_sim + k
            p = euler_maruyama_step(p, mp, sqrt_vol, delta, float(w_p[idx]), sqrt_delta)
            v = euler_maruyama_step(
                v, mv, sqrt_vol * params.sigma_v, delta, float(w_v[idx]), sqrt_delta
            )
        ctx.simulated_price[j] = p
        ctx.simulated_volatility[j] = v


def _bandwidth(ensemble: np.ndarray, h_frac: float, ddof: int, name: str, step: int) -> float:
    # NaN spreads pass through to the accumulator; only a collapsed ensemble raises.
    h = ensemble_bandwidth(ensemble, h_frac, ddof)
    if np.ptp(ensemble) == 0.0 or h * h <= 0.0:
        raise DegenerateBandwidthError(
            f"Simulated {name} ensemble has no spread at step {step} (h={h!r})."
        )
    return h


def _kernel_density_loop(
    ctx: LikelihoodContext, price: float, volatility: float, h_p: float, h_v: float
) -> float:
    total = 0.0
    for j in range(ctx.n_sim):
        dp = float(ctx.simulated_price[j]) - price
        dv = float(ctx.simulated_volatility[j]) - volatility
        k_p = math.exp(-dp * dp / (2.0 * h_p * h_p)) / (h_p * SQRT_2PI)
        k_v = math.exp(-dv * dv / (2.0 * h_v * h_v)) / (h_v * SQRT_2PI)
        total += k_v * k_p
    return total / ctx.n_sim


def _kernel_density_vectorized(
    ctx: LikelihoodContext, price: float, volatility: float, h_p: float, h_v: float
) -> float:
    return product_kernel_density(
        price, volatility, ctx.simulated_price, ctx.simulated_volatility, h_p, h_v
    )


def negative_log_likelihood(
    x: Sequence[float] | np.ndarray | ModelParameters, context: LikelihoodContext
) -> float:
    """
    Filtered NPSMLE objective.

    For every observed transition (P_{i-1}, V_{i-1}) -> (P_i, V_i):

    1. reset the ensemble of n_sim members to the observed state (P_{i-1}, V_{i-1});
    2. push each member through m_sim Euler sub-steps using the pre-drawn,
       correlated innovations and the sub-step sentiment s_{(i-1) m_sim + k};
    3. set marginal bandwidths h = h_frac * std(ensemble);
    4. evaluate the product-Gaussian kernel density at (P_i, V_i) and add
       its log to the running log-likelihood.

    In the ensemble the volatility diffusion is sigma_v * P sqrt(|V|), i.e.
    the price diffusion scale with sigma_v folded in.

    Parameters
    ----------
    x : array-like of length 7 or ModelParameters
        [gamma_p, mu_p, gamma_v, mu_v, beta_v, sigma_v, rho_pv].
    context : LikelihoodContext
        Observed data, innovations and work buffers.

    Returns
    -------
    float
        -log L. With ``short_circuit_on_non_finite`` the evaluation stops and
        returns ``PENALTY`` as soon as the running log-likelihood is -inf or
        not a normal float.

    Raises
    ------
    ValueError
        If rho_pv is outside [-1, 1] or the vector has the wrong length.
    DegenerateBandwidthError
        If an ensemble collapses to a single point (zero bandwidth).
    """
    params = x if isinstance(x, ModelParameters) else ModelParameters.from_vector(x)
    ctx = context
    obs = ctx.observed

    h_frac = bandwidth_fraction(ctx.n_sim)
    delta = ctx.dt / ctx.m_sim
    sqrt_delta = math.sqrt(delta)

    if ctx.vectorized:
        propagate, density_at = _propagate_vectorized, _kernel_density_vectorized
    else:
        propagate, density_at = _propagate_loop, _kernel_density_loop

    ll = 0.0
    with np.errstate(over="ignore", invalid="ignore", divide="ignore"):
        _fill_wiener(ctx, params.rho_pv)

        for i in range(1, obs.n_obs):
            ctx.simulated_price.fill(obs.price[i - 1])
            ctx.simulated_volatility.fill(obs.volatility[i - 1])

            propagate(ctx, params, i, delta, sqrt_delta)

            h_p = _bandwidth(ctx.simulated_price, h_frac, ctx.bandwidth_ddof, "price", i)
            h_v = _bandwidth(
                ctx.simulated_volatility, h_frac, ctx.bandwidth_ddof, "volatility", i
            )

            density = density_at(ctx, float(obs.price[i]), float(obs.volatility[i]), h_p, h_v)
            ll += float(np.log(density))

            if ctx.short_circuit_on_non_finite and not _is_normal(ll):
                LOGGER.debug("Non-finite log-likelihood at step %d; returning penalty.", i)
                return PENALTY

    return -ll


class JointLikelihood:
    """
    Optimizer-facing objective f(x, grad) -> -log L bound to one context.

    ``grad`` is accepted for nlopt-style callers and left untouched.
    """

    def __init__(self, context: LikelihoodContext):
        self.context = context
        self.n_evaluations = 0

    def __call__(self, x, grad=None) -> float:
        self.n_evaluations += 1
        value = negative_log_likelihood(x, self.context)
        LOGGER.debug("eval %d -> %.6g", self.n_evaluations, value)
        return value


__all__ = [
    "PENALTY",
    "DegenerateBandwidthError",
    "ObservedSeries",
    "LikelihoodContext",
    "negative_log_likelihood",
    "JointLikelihood",
]
