# src/npsmle/sde/estimators/fit.py
from __future__ import annotations

import logging
import math
from typing import Any, Sequence

import numpy as np
from pydantic import BaseModel, Field
from scipy.optimize import minimize

from npsmle.sde.estimators.npsmle import (
    PENALTY,
    DegenerateBandwidthError,
    JointLikelihood,
    LikelihoodContext,
)
from npsmle.sde.schemas import PARAMETER_ORDER, ModelParameters

LOGGER = logging.getLogger(__name__)

# gamma_p, mu_p, gamma_v, mu_v, beta_v, sigma_v, rho_pv
DEFAULT_BOUNDS: list[tuple[float | None, float | None]] = [
    (0.0, None),
    (None, None),
    (0.0, None),
    (None, None),
    (None, None),
    (1e-8, None),
    (-1.0, 1.0),
]


def _default_options(method: str) -> dict[str, Any]:
    if method == "Nelder-Mead":
        return {"maxiter": 2000, "xatol": 1e-6, "fatol": 1e-6}
    return {"maxiter": 2000}


def penalized_objective(objective: JointLikelihood, x: np.ndarray) -> float:
    """Objective value with collapsed ensembles and non-finite values mapped to PENALTY."""
    try:
        value = objective(x)
    except DegenerateBandwidthError as e:
        LOGGER.debug("Degenerate ensemble at x=%s: %s", x, e)
        return PENALTY
    if not math.isfinite(value):
        return PENALTY
    return value


class NPSMLEResult(BaseModel):
    """Outcome of one NPSMLE fit."""

    params: ModelParameters
    neg_log_likelihood: float
    n_evaluations: int = Field(..., ge=0)
    success: bool
    message: str = ""


def fit_joint_npsmle(
    context: LikelihoodContext,
    initial: ModelParameters | Sequence[float] | np.ndarray,
    method: str = "Nelder-Mead",
    bounds: Sequence[tuple[float | None, float | None]] | None = None,
    options: dict[str, Any] | None = None,
) -> NPSMLEResult:
    """
    Minimise the simulated negative log-likelihood with scipy.

    The context's innovations are reused on every trial, so the objective
    is a deterministic function of the parameters. Trials whose ensemble
    collapses (zero bandwidth) or whose value is not finite are scored
    with ``PENALTY``.
    """
    x0 = initial.to_vector() if isinstance(initial, ModelParameters) else np.asarray(
        initial, dtype=float
    )
    if x0.shape != (len(PARAMETER_ORDER),):
        raise ValueError(f"initial must have {len(PARAMETER_ORDER)} entries.")

    bounds = list(bounds) if bounds is not None else DEFAULT_BOUNDS
    objective = JointLikelihood(context)

    LOGGER.info(
        "Fitting NPSMLE: n_obs=%d n_sim=%d m_sim=%d method=%s",
        context.observed.n_obs,
        context.n_sim,
        context.m_sim,
        method,
    )
    res = minimize(
        lambda x: penalized_objective(objective, x),
        x0,
        method=method,
        bounds=bounds,
        options=options if options is not None else _default_options(method),
    )

    params = ModelParameters.from_vector(res.x)
    LOGGER.info(
        "NPSMLE finished: success=%s nll=%.6f evaluations=%d",
        res.success,
        res.fun,
        objective.n_evaluations,
    )
    return NPSMLEResult(
        params=params,
        neg_log_likelihood=float(res.fun),
        n_evaluations=objective.n_evaluations,
        success=bool(res.success),
        message=str(res.message),
    )


__all__ = ["DEFAULT_BOUNDS", "NPSMLEResult", "penalized_objective", "fit_joint_npsmle"]
