import logging
from collections import deque
from datetime import date
from typing import Callable, List, Mapping, Optional

import numpy as np
import pandas as pd

from ..analytics.metrics import compute_metrics, sharpe_ratio
from ..config import ANNUAL_INFLATION, MarketConfig, PlanParameters, ROLLING_WINDOW_MONTHS
from ..data.catalog import AssetReference, resolve_allocations
from ..errors import PacSimulatorError
from ..results import SimulationResult, SimulationStep
from ..sampling.market import MarketModel
from .contributions import ContributionContext, contribution_for_month

logger = logging.getLogger(__name__)

# (month, total_invested, total_value, monthly_return) -> contribution
ContributionFn = Callable[[int, float, float, float], float]


def simulate_path(horizon_m: int, initial_amount: float, next_return: Callable[[], float],
                  next_contribution: ContributionFn, cost_pct: float = 0.0,
                  start_date: Optional[date] = None) -> List[SimulationStep]:
    """Compound a recurring-contribution plan month by month.

    Month 0 seeds value and invested total with the initial amount and applies no
    market return. For month m > 0 the return is drawn first, the contribution is
    sized from the prior state and that return, then
    ``value = value * (1 + r) + contribution * (1 - cost_pct / 100)``.
    """
    steps: List[SimulationStep] = []
    window = deque(maxlen=ROLLING_WINDOW_MONTHS)
    value = invested = 0.0
    monthly_infl = ANNUAL_INFLATION / 12.0

    for month in range(horizon_m + 1):
        if month == 0:
            r = 0.0
            contribution = next_contribution(0, 0.0, 0.0, 0.0)
            invested = contribution
            value = contribution
        else:
            r = next_return()
            contribution = next_contribution(month, invested, value, r)
            invested += contribution
            value = value * (1.0 + r) + contribution * (1.0 - cost_pct / 100.0)
            window.append(r * 100.0)

        rolling = 0.0
        if month >= ROLLING_WINDOW_MONTHS:
            rolling = sharpe_ratio(np.array(window, dtype=float))

        steps.append(SimulationStep(
            month=month,
            total_value=value,
            total_invested=invested,
            contribution=contribution,
            monthly_return=r * 100.0,
            cumulative_return=(value - invested) / invested * 100.0 if invested > 0 else 0.0,
            inflation_adjusted_value=value / (1.0 + monthly_infl) ** month,
            rolling_sharpe=rolling,
            date=(pd.Timestamp(start_date) + pd.DateOffset(months=month)).date() if start_date else None,
        ))
    return steps


class PlanSimulator:
    """Runs one plan against one resolved allocation with its own RNG stream."""

    def __init__(self, params: PlanParameters, allocations, seed: Optional[int] = None,
                 market_config: Optional[MarketConfig] = None):
        self.params = params
        self.allocations = list(allocations)
        self.rng = np.random.default_rng(seed)
        self.market = MarketModel(self.allocations, self.rng, market_config)

    def contribution(self, month: int, invested: float, value: float, r: float) -> float:
        ctx = ContributionContext(
            month=month,
            monthly_amount=self.params.monthly_amount,
            total_invested=invested,
            total_value=value,
            monthly_return=r,
        )
        return contribution_for_month(self.params.strategy, ctx, self.params.initial_amount, self.rng)

    def portfolio_return(self) -> float:
        _, r = self.market.sample_month()
        return r

    def run(self) -> List[SimulationStep]:
        return simulate_path(
            self.params.horizon_months,
            self.params.initial_amount,
            self.portfolio_return,
            self.contribution,
        )


def run_simulation(params: PlanParameters, weights: Mapping[str, float], catalog: AssetReference,
                   seed: Optional[int] = None, market_config: Optional[MarketConfig] = None) -> SimulationResult:
    """Simulate a plan and summarize it.

    Raises ValidationError for bad weights and NotFoundError for unknown assets,
    both before any month is simulated.
    """
    try:
        allocations = resolve_allocations(weights, catalog)
    except PacSimulatorError as e:
        logger.warning("Simulation %r rejected: %s", params.name, e)
        raise

    logger.info("Running simulation %r: %s over %d months, %d assets",
                params.name, params.strategy.value, params.horizon_months, len(allocations))
    steps = PlanSimulator(params, allocations, seed=seed, market_config=market_config).run()
    summary = compute_metrics(steps, stop_loss=params.stop_loss, take_profit=params.take_profit)
    logger.info("Simulation %r finished: final value %.2f, return %.2f%%",
                params.name, summary.final_value, summary.cumulative_return)
    return SimulationResult(steps, summary)
