# src/npsmle/sde/schemas.py
from __future__ import annotations

from typing import Sequence

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

# Positional ordering of the optimizer's parameter vector.
PARAMETER_ORDER: tuple[str, ...] = (
    "gamma_p",
    "mu_p",
    "gamma_v",
    "mu_v",
    "beta_v",
    "sigma_v",
    "rho_pv",
)


class ModelParameters(BaseModel):
    """
    Joint price / volatility diffusion driven by a sentiment signal s_t:

        dP_t = gamma_p (mu_p - P_t) dt + P_t sqrt(|V_t|) dW^p_t
        dV_t = gamma_v (mu_v + beta_v |s_t| - V_t) dt + sigma_v sqrt(|V_t|) dW^v_t

    with corr(dW^p, dW^v) = rho_pv.
    """

    model_config = ConfigDict(frozen=True)

    mu_p: float = Field(..., description="Price long-run mean.")
    gamma_p: float = Field(..., description="Price mean-reversion speed.")
    mu_v: float = Field(..., description="Volatility long-run mean.")
    gamma_v: float = Field(..., description="Volatility mean-reversion speed.")
    beta_v: float = Field(..., description="Volatility sensitivity to |sentiment|.")
    sigma_v: float = Field(..., description="Volatility diffusion scale.")
    rho_pv: float = Field(
        ..., ge=-1.0, le=1.0, description="Correlation of price and volatility shocks."
    )

    @classmethod
    def from_vector(cls, x: Sequence[float] | np.ndarray) -> "ModelParameters":
        """Build parameters from [gamma_p, mu_p, gamma_v, mu_v, beta_v, sigma_v, rho_pv]."""
        values = np.asarray(x, dtype=float)
        if values.shape != (len(PARAMETER_ORDER),):
            raise ValueError(
                f"Parameter vector must have {len(PARAMETER_ORDER)} entries "
                f"{PARAMETER_ORDER}, got shape {values.shape}."
            )
        return cls(**{name: float(v) for name, v in zip(PARAMETER_ORDER, values)})

    def to_vector(self) -> np.ndarray:
        return np.array([getattr(self, name) for name in PARAMETER_ORDER], dtype=float)


__all__ = ["PARAMETER_ORDER", "ModelParameters"]
