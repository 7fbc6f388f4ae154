from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from typing import Any, Callable, Dict, Optional, Protocol, Sequence, Union

from annuity_core.domain.models import (
    Annuity,
    CalculationComplete,
    MonteCarloResult,
    PortfolioState,
    PricePoint,
    ScenarioResults,
    StartCalculation,
)
from annuity_core.io.annuities import annuity_to_dict
from annuity_core.io.results import monte_carlo_to_dict, price_points_to_records, results_from_dict
from annuity_core.services.simulator import simulate

logger = logging.getLogger(__name__)

Action = Union[StartCalculation, CalculationComplete]
Dispatch = Callable[[Action], None]


def calculate_input_hash(price_data: Sequence[PricePoint], annuities: Sequence[Annuity]) -> str:
    """Content fingerprint of the inputs; only date/price and annuity fields take part."""
    payload = {
        "priceData": price_points_to_records(price_data),
        "annuities": [annuity_to_dict(a) for a in annuities],
    }
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


class ResultCache:
    """Append-only hash -> scenario results store; lives as long as its owner."""

    def __init__(self) -> None:
        self._entries: Dict[str, ScenarioResults] = {}

    def get(self, input_hash: str) -> Optional[ScenarioResults]:
        return self._entries.get(input_hash)

    def put(self, input_hash: str, results: ScenarioResults) -> None:
        self._entries.setdefault(input_hash, results)

    def __contains__(self, input_hash: object) -> bool:
        return input_hash in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class Submission(Protocol):
    cancelled: bool

    def cancel(self) -> None:
        ...

    async def wait(self) -> ScenarioResults:
        ...


class Dispatcher(Protocol):
    def submit(
        self,
        price_data: Sequence[PricePoint],
        annuities: Sequence[Annuity],
        monte_carlo: Optional[MonteCarloResult] = None,
    ) -> Submission:
        ...


class CelerySubmission:
    def __init__(self, async_result: Any, timeout: Optional[float] = None) -> None:
        self._result = async_result
        self._timeout = timeout
        self.cancelled = False

    @property
    def task_id(self) -> str:
        return self._result.id

    def cancel(self) -> None:
        self.cancelled = True
        if not self._result.ready():
            self._result.revoke(terminate=True)

    async def wait(self) -> ScenarioResults:
        payload = await asyncio.to_thread(self._result.get, timeout=self._timeout)
        return results_from_dict(payload)


class CeleryDispatcher:
    """Offloads each calculation to a Celery worker as JSON-safe payloads."""

    def __init__(self, task: Any = None, timeout: Optional[float] = None) -> None:
        if task is None:
            from annuity_core.worker import calculate_scenarios, settings

            task = calculate_scenarios
            timeout = timeout if timeout is not None else settings.result_timeout
        self.task = task
        self.timeout = timeout

    def submit(
        self,
        price_data: Sequence[PricePoint],
        annuities: Sequence[Annuity],
        monte_carlo: Optional[MonteCarloResult] = None,
    ) -> CelerySubmission:
        async_result = self.task.apply_async(
            args=[
                price_points_to_records(price_data),
                [annuity_to_dict(a) for a in annuities],
                monte_carlo_to_dict(monte_carlo) if monte_carlo else None,
            ]
        )
        return CelerySubmission(async_result, timeout=self.timeout)


class RecalculationController:
    """
    Memoizing recalculation of scenario results.

    Publishes ``StartCalculation`` then ``CalculationComplete`` through the dispatch
    callback. Only the most recently requested input hash may publish a result;
    superseded submissions are cancelled and anything they return is dropped.
    Failures are logged and never raised to the caller.
    """

    def __init__(self, cache: Optional[ResultCache] = None, dispatcher: Optional[Dispatcher] = None) -> None:
        self.cache = cache if cache is not None else ResultCache()
        self.dispatcher = dispatcher
        self.latest_hash: Optional[str] = None
        self._in_flight: Optional[Submission] = None

    async def recalculate(
        self,
        state: PortfolioState,
        dispatch: Dispatch,
        monte_carlo: Optional[MonteCarloResult] = None,
    ) -> None:
        input_hash = calculate_input_hash(state.price_data, state.annuities)
        if input_hash == state.last_calculation_input_hash:
            logger.debug("Inputs unchanged (%s); skipping recalculation", input_hash[:12])
            return

        self.latest_hash = input_hash
        dispatch(StartCalculation(input_hash=input_hash))

        cached = self.cache.get(input_hash)
        if cached is not None:
            logger.debug("Serving cached results for %s", input_hash[:12])
            dispatch(CalculationComplete(scenarios=cached, input_hash=input_hash))
            return

        if self._in_flight is not None:
            logger.info("Cancelling superseded calculation")
            self._in_flight.cancel()
            self._in_flight = None

        logger.info(
            "Recalculating %s: %d price points, %d annuities",
            input_hash[:12], len(state.price_data), len(state.annuities),
        )
        submission: Optional[Submission] = None
        try:
            if self.dispatcher is None:
                results = simulate(state.price_data, state.annuities, monte_carlo)
            else:
                submission = self.dispatcher.submit(state.price_data, state.annuities, monte_carlo)
                self._in_flight = submission
                results = await submission.wait()
        except Exception:
            if submission is not None and submission.cancelled:
                logger.debug("Cancelled calculation %s ended without a result", input_hash[:12])
            else:
                logger.exception("Calculation failed for %s", input_hash[:12])
            return
        finally:
            if submission is not None and self._in_flight is submission:
                self._in_flight = None

        if submission is not None and submission.cancelled:
            logger.debug("Discarding result of cancelled calculation %s", input_hash[:12])
            return

        self.cache.put(input_hash, results)
        if input_hash != self.latest_hash:
            logger.debug("Discarding stale result %s", input_hash[:12])
            return
        dispatch(CalculationComplete(scenarios=results, input_hash=input_hash))
