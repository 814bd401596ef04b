from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from npsmle.sde.schemas import ModelParameters


# ============================================================
# Random seeds
# ============================================================


class RandomSeedConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    global_seed: Optional[int] = Field(
        default=None,
        description="Root seed for sections that leave their own seed unset.",
    )


# ============================================================
# Synthetic path settings
# ============================================================


class SimulationSettings(BaseModel):
    """
    Single-path simulation grid and initial state.

    dt: time between observations
    n_obs: number of observations (including t=0)
    m_obs: Euler sub-steps per observation interval
    """

    model_config = ConfigDict(extra="forbid")

    dt: float = Field(..., gt=0.0)
    n_obs: int = Field(..., ge=1)
    m_obs: int = Field(1, ge=1)
    p0: float
    v0: float
    seed: Optional[int] = None
    sentiment_grid: Literal["coarse", "fine"] = "coarse"


class SentimentSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: float = 0.0
    amplitude: float = 1.0
    period: float = Field(50.0, gt=0.0)


# ============================================================
# Likelihood settings
# ============================================================


class LikelihoodSettings(BaseModel):
    """
    Ensemble size and evaluation switches for the simulated likelihood.
    """

    model_config = ConfigDict(extra="forbid")

    n_sim: int = Field(..., gt=1)
    m_sim: int = Field(1, ge=1)
    seed: Optional[int] = Field(
        default=None, description="Seed for the common random numbers."
    )
    short_circuit_on_non_finite: bool = False
    vectorized: bool = True
    bandwidth_ddof: Literal[0, 1] = 1


class OptimizerSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    method: str = "Nelder-Mead"
    maxiter: int = Field(2000, ge=1)
    initial: Optional[ModelParameters] = Field(
        default=None, description="Starting point; defaults to the true parameters."
    )


# ============================================================
# Top-level EstimationConfig
# ============================================================


class EstimationConfig(BaseModel):
    """
    Global configuration for a simulate-then-estimate run.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = "default_run"

    params: ModelParameters
    simulation: SimulationSettings
    likelihood: LikelihoodSettings
    sentiment: SentimentSettings = Field(default_factory=SentimentSettings)
    optimizer: OptimizerSettings = Field(default_factory=OptimizerSettings)
    seeds: RandomSeedConfig = Field(default_factory=RandomSeedConfig)
