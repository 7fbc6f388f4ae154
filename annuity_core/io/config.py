from __future__ import annotations

import dataclasses
import json
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from annuity_core.domain.models import MonteCarloConfig


@dataclasses.dataclass(frozen=True)
class WorkerSettings:
    broker_url: str = "memory://"
    result_backend: str = "cache+memory://"
    always_eager: bool = False
    result_timeout: Optional[float] = None


def load_monte_carlo_config(path: str | Path) -> MonteCarloConfig:
    data = _read_json(path)
    history_years = data.get("history_years", 13)
    return MonteCarloConfig(
        paths=int(data.get("paths", 100)),
        projection_days=int(data.get("projection_days", 365)),
        history_years=int(history_years) if history_years is not None else None,
        seed=data.get("seed"),
    )


def load_worker_settings(environ: Optional[Mapping[str, str]] = None) -> WorkerSettings:
    env = os.environ if environ is None else environ
    timeout = env.get("ANNUITY_RESULT_TIMEOUT")
    return WorkerSettings(
        broker_url=env.get("ANNUITY_BROKER_URL", "memory://"),
        result_backend=env.get("ANNUITY_RESULT_BACKEND", "cache+memory://"),
        always_eager=env.get("ANNUITY_TASK_ALWAYS_EAGER", "").strip().lower() in {"1", "true", "yes"},
        result_timeout=float(timeout) if timeout else None,
    )


def _read_json(path: str | Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)
