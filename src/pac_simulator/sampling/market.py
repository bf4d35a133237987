from typing import List, Optional, Tuple

import numpy as np

from ..config import AssetAllocation, HistoricalMarketConfig, MarketConfig, MONTHLY_RANDOMNESS_SCALE


class MarketModel:
    """Monthly asset returns from expected return, risk class and a shared shock.

    All draws come from the generator handed in, so a run is reproducible from
    its seed. Assets with zero weight take no part and consume no draws.
    """

    def __init__(self, allocations: List[AssetAllocation], rng: np.random.Generator,
                 config: Optional[MarketConfig] = None):
        self.rng = rng
        self.config = config or MarketConfig()
        active = [a for a in allocations if a.weight > 0]
        self.asset_ids = [a.asset_id for a in active]
        self.w = np.array([a.weight / 100.0 for a in active], dtype=float)
        self.base = np.array([a.expected_annual_return / 100.0 / 12.0 for a in active], dtype=float)
        self.scale = np.array([MONTHLY_RANDOMNESS_SCALE[a.risk_class] for a in active], dtype=float)

    def draw_shock(self) -> float:
        # correlated crash/rally shared by every asset this month
        if self.rng.random() < self.config.shock_probability:
            return (self.rng.random() - 0.5) * self.config.shock_range
        return 0.0

    def sample_month(self) -> Tuple[np.ndarray, float]:
        """Return (per-asset returns, portfolio return) for one month, as decimals."""
        shock = self.draw_shock()
        noise = (self.rng.random(len(self.base)) - 0.5) * self.scale * self.config.randomness
        asset_returns = self.base + noise + shock
        return asset_returns, float(asset_returns @ self.w)


class HistoricalReturnGenerator:
    """Synthetic monthly index returns for backtests: Gaussian plus rare crashes."""

    def __init__(self, config: HistoricalMarketConfig, rng: np.random.Generator):
        self.config = config
        self.rng = rng

    def next_return(self) -> float:
        cfg = self.config
        r = cfg.base_return + self.rng.standard_normal() * cfg.volatility
        if cfg.shock_probability > 0 and self.rng.random() < cfg.shock_probability:
            r -= cfg.shock_floor + self.rng.random() * cfg.shock_span
        return float(r)

    def sample(self, months: int) -> np.ndarray:
        return np.array([self.next_return() for _ in range(months)], dtype=float)
