import datetime as dt
from dataclasses import asdict, dataclass
from typing import List, NamedTuple, Optional

import pandas as pd


@dataclass(frozen=True)
class SimulationStep:
    month: int
    total_value: float
    total_invested: float
    contribution: float
    monthly_return: float           # percent
    cumulative_return: float        # percent, (value - invested) / invested
    inflation_adjusted_value: float
    rolling_sharpe: float           # 0 before ROLLING_WINDOW_MONTHS
    date: Optional[dt.date] = None  # calendar month, backtests only


@dataclass(frozen=True)
class SimulationSummary:
    final_value: float
    total_invested: float
    cumulative_return: float
    volatility: float               # annualized, percent
    max_drawdown: float             # signed percent, <= 0
    sharpe_ratio: float             # annualized
    win_rate: float                 # percent of months with a positive return
    value_at_risk_95: float
    expected_shortfall: float
    skewness: float
    kurtosis: float                 # excess
    calmar_ratio: float
    sortino_ratio: float
    downside_deviation: float
    max_consecutive_losses: int
    money_weighted_return: float    # annualized IRR, percent; NaN when undefined
    stop_loss_month: Optional[int] = None
    take_profit_month: Optional[int] = None


@dataclass(frozen=True)
class BacktestSummary(SimulationSummary):
    annualized_return: float = 0.0
    best_month: float = 0.0
    worst_month: float = 0.0
    max_drawdown_magnitude: float = 0.0   # positive percent, backtest convention


@dataclass(frozen=True)
class BacktestComparison:
    excess_return: float
    alpha: float
    beta: float                     # volatility ratio, not a regression beta
    information_ratio: float
    outperformance: bool


def steps_to_frame(steps: List[SimulationStep]) -> pd.DataFrame:
    """One row per month, indexed by month number."""
    df = pd.DataFrame([asdict(s) for s in steps])
    if df.empty:
        return df
    if df["date"].isna().all():
        df = df.drop(columns="date")
    else:
        df["date"] = pd.to_datetime(df["date"])
    return df.set_index("month")


class SimulationResult(NamedTuple):
    steps: List[SimulationStep]
    summary: SimulationSummary

    def to_frame(self) -> pd.DataFrame:
        return steps_to_frame(self.steps)


class BacktestResult(NamedTuple):
    candidate: SimulationResult
    benchmark: SimulationResult
    comparison: BacktestComparison
