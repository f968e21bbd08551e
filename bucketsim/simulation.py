"""Simulation orchestration."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import logging
from typing import Sequence

from .engine import SimulationResult, run_projection
from .schema import SimulationConfig

logger = logging.getLogger(__name__)


def run_simulation(
    config: SimulationConfig,
    market_returns: Sequence[float] = (),
    inflation_rates: Sequence[float] = (),
) -> SimulationResult:
    return run_projection(config, market_returns=tuple(market_returns), inflation_rates=tuple(inflation_rates))


def run_batch(
    configs: Sequence[SimulationConfig],
    market_returns: Sequence[float] = (),
    inflation_rates: Sequence[float] = (),
    max_workers: int | None = None,
) -> list[SimulationResult]:
    """Run independent what-if configs concurrently; results keep input order.

    Every run owns its own portfolio, so workers share nothing.
    """
    if not configs:
        return []
    returns = tuple(market_returns)
    inflation = tuple(inflation_rates)
    logger.debug("dispatching %d runs", len(configs))
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = [pool.submit(run_projection, config, returns, inflation) for config in configs]
        return [future.result() for future in futures]
