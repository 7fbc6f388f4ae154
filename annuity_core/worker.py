from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from celery import Celery

from annuity_core.io.annuities import annuity_from_dict
from annuity_core.io.config import load_worker_settings
from annuity_core.io.prices import price_points_from_records
from annuity_core.io.results import monte_carlo_from_dict, results_to_dict
from annuity_core.services.simulator import simulate

logger = logging.getLogger(__name__)

settings = load_worker_settings()

app = Celery("annuity_core", broker=settings.broker_url, backend=settings.result_backend)
app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    task_always_eager=settings.always_eager,
    task_track_started=True,
)


@app.task(name="annuity_core.calculate_scenarios")
def calculate_scenarios(
    price_data: List[Dict[str, Any]],
    annuities: List[Dict[str, Any]],
    monte_carlo: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    logger.info(
        "Worker starting calculation: %d price points, %d annuities, monte carlo=%s",
        len(price_data), len(annuities), monte_carlo is not None,
    )
    results = simulate(
        price_points_from_records(price_data),
        [annuity_from_dict(a) for a in annuities],
        monte_carlo_from_dict(monte_carlo) if monte_carlo else None,
    )
    payload = results_to_dict(results)
    logger.info(
        "Worker calculation complete: %d cash flows, %d valuations",
        len(payload.get("average", {}).get("cashFlows", [])),
        len(payload.get("average", {}).get("valuations", [])),
    )
    return payload
