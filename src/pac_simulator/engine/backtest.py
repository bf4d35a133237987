import logging
from datetime import date
from typing import List, Mapping, Optional

import numpy as np
import pandas as pd

from ..analytics.metrics import compare_with_benchmark, compute_backtest_summary
from ..config import (BacktestRequest, BENCHMARK_MARKET, CANDIDATE_MARKET,
                      DEFAULT_BACKTEST_SEED, DEFAULT_BENCHMARK_SEED, HistoricalMarketConfig)
from ..data.catalog import AssetReference, check_weights
from ..errors import PacSimulatorError, ReferenceUnavailableError, ValidationError
from ..results import BacktestResult, SimulationResult
from ..sampling.market import HistoricalReturnGenerator
from .contributions import ContributionContext, contribution_for_month
from .simulator import simulate_path

logger = logging.getLogger(__name__)


def months_between(start: date, end: date) -> int:
    """Whole calendar months from start to end (a partial last month is dropped)."""
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day < start.day:
        months -= 1
    return max(months, 0)


def validate_backtest_request(request: BacktestRequest, weights: Mapping[str, float],
                              catalog: AssetReference, today: Optional[date] = None) -> List[str]:
    """Check dates, weights and asset ids; return the ids that could be verified.

    Unknown ids raise NotFoundError. If the reference cannot be consulted at all
    the check is skipped with a warning.
    """
    today = today or date.today()
    latest_start = (pd.Timestamp(today) - pd.DateOffset(months=1)).date()
    if request.start_date > latest_start:
        raise ValidationError(
            f"start_date must be at least one month in the past (on or before {latest_start})"
        )
    if months_between(request.start_date, request.end_date) < 1:
        raise ValidationError("Backtest window must span at least one full month")
    check_weights(weights)

    verified = []
    for asset_id in weights:
        try:
            catalog.get(asset_id)
        except ReferenceUnavailableError as e:
            logger.warning("Asset reference unavailable, skipping existence check for %s: %s", asset_id, e)
            continue
        verified.append(asset_id)
    return verified


class BacktestRunner:
    """Replays the plan mechanics over a calendar window against a benchmark index."""

    def __init__(self, request: BacktestRequest, seed: Optional[int] = DEFAULT_BACKTEST_SEED,
                 benchmark_seed: Optional[int] = DEFAULT_BENCHMARK_SEED,
                 market: HistoricalMarketConfig = CANDIDATE_MARKET,
                 benchmark_market: HistoricalMarketConfig = BENCHMARK_MARKET):
        self.request = request
        self.horizon_m = months_between(request.start_date, request.end_date)
        self.rng = np.random.default_rng(seed)
        self.market = HistoricalReturnGenerator(market, self.rng)
        self.benchmark = HistoricalReturnGenerator(benchmark_market, np.random.default_rng(benchmark_seed))

    def contribution(self, month: int, invested: float, value: float, r: float) -> float:
        req = self.request
        ctx = ContributionContext(
            month=month,
            monthly_amount=req.monthly_amount,
            total_invested=invested,
            total_value=value,
            monthly_return=r,
        )
        return contribution_for_month(req.strategy, ctx, req.initial_amount, self.rng)

    def _initial_only(self, month: int, invested: float, value: float, r: float) -> float:
        return self.request.initial_amount if month == 0 else 0.0

    def run_candidate(self) -> SimulationResult:
        req = self.request
        steps = simulate_path(
            self.horizon_m,
            req.initial_amount,
            self.market.next_return,
            self.contribution,
            cost_pct=req.transaction_cost_pct if req.include_transaction_costs else 0.0,
            start_date=req.start_date,
        )
        return SimulationResult(steps, compute_backtest_summary(steps, req.stop_loss, req.take_profit))

    def run_benchmark(self) -> SimulationResult:
        req = self.request
        steps = simulate_path(
            self.horizon_m,
            req.initial_amount,
            self.benchmark.next_return,
            self._initial_only,
            start_date=req.start_date,
        )
        return SimulationResult(steps, compute_backtest_summary(steps))

    def run(self) -> BacktestResult:
        candidate = self.run_candidate()
        benchmark = self.run_benchmark()
        comparison = compare_with_benchmark(candidate.summary, benchmark.summary)
        return BacktestResult(candidate, benchmark, comparison)


def run_backtest(request: BacktestRequest, weights: Mapping[str, float], catalog: AssetReference,
                 seed: Optional[int] = DEFAULT_BACKTEST_SEED,
                 benchmark_seed: Optional[int] = DEFAULT_BENCHMARK_SEED,
                 today: Optional[date] = None) -> BacktestResult:
    try:
        validate_backtest_request(request, weights, catalog, today=today)
    except PacSimulatorError as e:
        logger.warning("Backtest %r rejected: %s", request.name, e)
        raise

    logger.info("Running backtest %r: %s from %s to %s against %s",
                request.name, request.strategy.value, request.start_date, request.end_date,
                request.benchmark_index.value)
    result = BacktestRunner(request, seed=seed, benchmark_seed=benchmark_seed).run()
    logger.info("Backtest %r finished: return %.2f%% vs benchmark %.2f%%, Sharpe %.2f",
                request.name, result.candidate.summary.cumulative_return,
                result.benchmark.summary.cumulative_return, result.candidate.summary.sharpe_ratio)
    return result
