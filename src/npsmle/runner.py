from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from npsmle.config.loader import load_config, resolve_seeds
from npsmle.config.models import EstimationConfig
from npsmle.data.sentiment import interpolate_sentiment, synthetic_sentiment
from npsmle.sde.estimators.fit import NPSMLEResult, fit_joint_npsmle
from npsmle.sde.estimators.npsmle import LikelihoodContext
from npsmle.sde.integrators import GeneratorNormalSource
from npsmle.sde.processes.joint import simulate_joint

LOGGER = logging.getLogger(__name__)


@dataclass
class SyntheticData:
    """Simulated observations; fine_sentiment is on the simulator's sub-step grid."""

    price: np.ndarray
    volatility: np.ndarray
    sentiment: np.ndarray
    fine_sentiment: np.ndarray


# ======================================================================
# Synthetic data
# ======================================================================


def simulate_from_config(cfg: EstimationConfig) -> SyntheticData:
    """Simulate one (price, volatility) path from the configured true parameters."""
    sim = cfg.simulation
    if sim.n_obs < 2:
        raise ValueError("Synthetic runs need at least 2 observations.")

    sentiment = synthetic_sentiment(
        sim.n_obs,
        level=cfg.sentiment.level,
        amplitude=cfg.sentiment.amplitude,
        period=cfg.sentiment.period,
    )
    # sub-step grid of the simulator; re-gridded for the likelihood if needed
    fine = interpolate_sentiment(sentiment, sim.m_obs)

    LOGGER.info("Simulating %d observations (m_obs=%d)…", sim.n_obs, sim.m_obs)
    price, volatility = simulate_joint(
        cfg.params,
        sim.dt,
        sim.n_obs,
        sim.m_obs,
        sim.p0,
        sim.v0,
        sentiment if sim.sentiment_grid == "coarse" else fine,
        source=GeneratorNormalSource(seed=resolve_seeds(cfg)[0]),
        sentiment_grid=sim.sentiment_grid,
    )
    return SyntheticData(
        price=price, volatility=volatility, sentiment=sentiment, fine_sentiment=fine
    )


# ======================================================================
# Estimation
# ======================================================================


def build_context(cfg: EstimationConfig, data: SyntheticData) -> LikelihoodContext:
    lik = cfg.likelihood
    fine = data.fine_sentiment
    if fine.size != (data.price.size - 1) * lik.m_sim:
        fine = interpolate_sentiment(data.sentiment, lik.m_sim)
    return LikelihoodContext.build(
        data.price,
        data.volatility,
        fine,
        n_sim=lik.n_sim,
        m_sim=lik.m_sim,
        dt=cfg.simulation.dt,
        seed=resolve_seeds(cfg)[1],
        short_circuit_on_non_finite=lik.short_circuit_on_non_finite,
        vectorized=lik.vectorized,
        bandwidth_ddof=lik.bandwidth_ddof,
    )


def fit_from_config(path: str | Path) -> tuple[EstimationConfig, NPSMLEResult]:
    LOGGER.info("Loading config: %s", path)
    cfg = load_config(path)

    data = simulate_from_config(cfg)
    context = build_context(cfg, data)

    opt = cfg.optimizer
    initial = opt.initial if opt.initial is not None else cfg.params
    result = fit_joint_npsmle(
        context,
        initial,
        method=opt.method,
        options={"maxiter": opt.maxiter},
    )
    return cfg, result
