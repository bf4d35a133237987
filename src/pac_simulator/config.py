import math
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Dict, Optional

from .errors import ValidationError


class RiskClass(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    VERY_HIGH = "VERY_HIGH"


class Strategy(str, Enum):
    DCA = "DCA"
    VALUE_AVERAGING = "VALUE_AVERAGING"
    MOMENTUM = "MOMENTUM"
    CONTRARIAN = "CONTRARIAN"
    SMART_BETA = "SMART_BETA"
    TACTICAL = "TACTICAL"


class RiskTolerance(str, Enum):
    CONSERVATIVE = "CONSERVATIVE"
    MODERATE = "MODERATE"
    AGGRESSIVE = "AGGRESSIVE"


class RebalanceFrequency(str, Enum):
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    SEMIANNUAL = "SEMIANNUAL"
    ANNUAL = "ANNUAL"


class BenchmarkIndex(str, Enum):
    SP500 = "SP500"
    FTSE_MIB = "FTSE_MIB"
    EURO_STOXX_50 = "EURO_STOXX_50"
    MSCI_WORLD = "MSCI_WORLD"


# Uniform noise width per month inside the simulation step loop.
MONTHLY_RANDOMNESS_SCALE: Dict[RiskClass, float] = {
    RiskClass.LOW: 0.02,
    RiskClass.MEDIUM: 0.04,
    RiskClass.HIGH: 0.06,
    RiskClass.VERY_HIGH: 0.08,
}

# Annualized volatility used only by the allocation risk profile.
# Not the same scale as MONTHLY_RANDOMNESS_SCALE, which is a per-month noise width.
RISK_CLASS_VOLATILITY: Dict[RiskClass, float] = {
    RiskClass.LOW: 0.08,
    RiskClass.MEDIUM: 0.15,
    RiskClass.HIGH: 0.20,
    RiskClass.VERY_HIGH: 0.25,
}

ANNUAL_INFLATION = 0.02
RISK_FREE_MONTHLY_PCT = 0.2      # percent per month, simulations and backtests alike
WEIGHT_TOLERANCE = 0.01          # weights must sum to 100 +/- this
ROLLING_WINDOW_MONTHS = 12

DEFAULT_BACKTEST_SEED = 42
DEFAULT_BENCHMARK_SEED = 123


@dataclass(frozen=True)
class AssetProfile:
    asset_id: str
    expected_annual_return: float   # percent, e.g. 7.5
    risk_class: RiskClass
    name: str = ""
    beta: float = 1.0


@dataclass(frozen=True)
class AssetAllocation:
    asset_id: str
    weight: float                   # 0..100
    risk_class: RiskClass
    expected_annual_return: float   # percent


@dataclass(frozen=True)
class PlanParameters:
    initial_amount: float
    monthly_amount: float
    horizon_months: int
    strategy: Strategy = Strategy.DCA
    risk_tolerance: RiskTolerance = RiskTolerance.MODERATE
    rebalance_frequency: RebalanceFrequency = RebalanceFrequency.QUARTERLY
    automatic_rebalance: bool = True
    stop_loss: Optional[float] = None      # percent loss, 0..50
    take_profit: Optional[float] = None    # percent gain, 0..100
    name: str = ""

    def __post_init__(self):
        _check_amounts(self.initial_amount, self.monthly_amount)
        if self.horizon_months < 1:
            raise ValidationError(f"horizon_months must be at least 1, got {self.horizon_months}")
        _check_thresholds(self.stop_loss, self.take_profit)


@dataclass(frozen=True)
class BacktestRequest:
    start_date: date
    end_date: date
    initial_amount: float
    monthly_amount: float
    strategy: Strategy = Strategy.DCA
    risk_tolerance: RiskTolerance = RiskTolerance.MODERATE
    rebalance_frequency: RebalanceFrequency = RebalanceFrequency.QUARTERLY
    automatic_rebalance: bool = True
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    benchmark_index: BenchmarkIndex = BenchmarkIndex.SP500
    include_transaction_costs: bool = False
    transaction_cost_pct: float = 0.1      # percent of each contribution, 0..5
    name: str = ""

    def __post_init__(self):
        _check_amounts(self.initial_amount, self.monthly_amount)
        if self.start_date >= self.end_date:
            raise ValidationError(
                f"start_date ({self.start_date}) must precede end_date ({self.end_date})"
            )
        if not 0.0 <= self.transaction_cost_pct <= 5.0:
            raise ValidationError(f"transaction_cost_pct must be within 0..5, got {self.transaction_cost_pct}")
        _check_thresholds(self.stop_loss, self.take_profit)


@dataclass(frozen=True)
class MarketConfig:
    shock_probability: float = 0.05
    shock_range: float = 0.3        # shock = (u - 0.5) * shock_range
    randomness: float = 1.0         # multiplier on MONTHLY_RANDOMNESS_SCALE; 0 disables noise


@dataclass(frozen=True)
class HistoricalMarketConfig:
    base_return: float              # monthly, decimal
    volatility: float               # monthly, decimal
    shock_probability: float = 0.0
    shock_floor: float = 0.10       # crash = -(shock_floor + u * shock_span)
    shock_span: float = 0.20


CANDIDATE_MARKET = HistoricalMarketConfig(base_return=0.008, volatility=0.04, shock_probability=0.05)
BENCHMARK_MARKET = HistoricalMarketConfig(base_return=0.007, volatility=0.035)


def _check_amounts(initial_amount: float, monthly_amount: float):
    if not math.isfinite(initial_amount) or initial_amount < 0:
        raise ValidationError(f"initial_amount must be non-negative, got {initial_amount}")
    if not math.isfinite(monthly_amount) or monthly_amount < 0:
        raise ValidationError(f"monthly_amount must be non-negative, got {monthly_amount}")


def _check_thresholds(stop_loss: Optional[float], take_profit: Optional[float]):
    if stop_loss is not None and not 0.0 <= stop_loss <= 50.0:
        raise ValidationError(f"stop_loss must be within 0..50, got {stop_loss}")
    if take_profit is not None and not 0.0 <= take_profit <= 100.0:
        raise ValidationError(f"take_profit must be within 0..100, got {take_profit}")
