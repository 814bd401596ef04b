from __future__ import annotations

import json
import yaml
from pathlib import Path

import numpy as np
from pydantic import ValidationError

from npsmle.config.models import EstimationConfig


def load_config(path: str | Path) -> EstimationConfig:
    """
    Load an EstimationConfig from YAML or JSON.

    Automatically validates using Pydantic v2.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file does not exist: {path}")

    text = path.read_text()

    try:
        if path.suffix.lower() in {".yaml", ".yml"}:
            raw = yaml.safe_load(text)
        elif path.suffix.lower() == ".json":
            raw = json.loads(text)
        else:
            raise ValueError("Config path must be YAML or JSON.")
    except Exception as e:
        raise ValueError(f"Failed to parse config: {e}") from e

    try:
        return EstimationConfig.model_validate(raw)
    except ValidationError as e:
        raise ValueError(f"Invalid EstimationConfig: {e}") from e


def resolve_seeds(cfg: EstimationConfig) -> tuple[int | None, int | None]:
    """
    Seeds for (simulation, likelihood).

    A section's own seed wins; otherwise it is derived from
    seeds.global_seed through independent SeedSequence children, so a
    single global seed fixes both the synthetic path and the common
    random numbers.
    """
    sim_seed = cfg.simulation.seed
    lik_seed = cfg.likelihood.seed
    if cfg.seeds.global_seed is None:
        return sim_seed, lik_seed

    sim_child, lik_child = np.random.SeedSequence(cfg.seeds.global_seed).spawn(2)
    if sim_seed is None:
        sim_seed = int(sim_child.generate_state(1)[0])
    if lik_seed is None:
        lik_seed = int(lik_child.generate_state(1)[0])
    return sim_seed, lik_seed
