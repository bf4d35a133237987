from dataclasses import dataclass
from typing import Dict, Mapping

import numpy as np

from ..config import RISK_CLASS_VOLATILITY, RiskClass, RiskTolerance
from ..data.catalog import AssetReference, check_weights

DIVERSIFICATION_BENEFIT = 0.85
MIN_TRADE_AMOUNT = 100.0

# Highest acceptable portfolio volatility per tolerance; None means unbounded.
TOLERANCE_VOLATILITY_CAP = {
    RiskTolerance.CONSERVATIVE: 0.12,
    RiskTolerance.MODERATE: 0.20,
    RiskTolerance.AGGRESSIVE: None,
}


@dataclass(frozen=True)
class AllocationRiskProfile:
    expected_return: float      # annual, percent
    volatility: float           # annual, decimal
    beta: float
    risk_level: RiskClass       # LOW, MEDIUM or HIGH
    diversification_score: float  # 0..100


def classify_risk(volatility: float, beta: float) -> RiskClass:
    if volatility < 0.10 and beta < 0.7:
        return RiskClass.LOW
    if volatility < 0.18 and beta < 1.2:
        return RiskClass.MEDIUM
    return RiskClass.HIGH


def diversification_score(weights: Mapping[str, float]) -> float:
    held = [w for w in weights.values() if w > 0]
    if not held:
        return 0.0
    base = min(len(held) * 20, 80)
    concentration_penalty = max(0.0, (max(held) - 50) * 2)
    return float(np.clip(base - concentration_penalty, 0, 100))


def is_risk_compatible(volatility: float, tolerance: RiskTolerance) -> bool:
    cap = TOLERANCE_VOLATILITY_CAP[RiskTolerance(tolerance)]
    return cap is None or volatility <= cap


def allocation_risk_profile(weights: Mapping[str, float], catalog: AssetReference) -> AllocationRiskProfile:
    """Static risk estimate of an allocation from its reference attributes.

    Uses RISK_CLASS_VOLATILITY, not the monthly randomness scale of the
    simulation step loop.
    """
    check_weights(weights)
    ids = [k for k, w in weights.items() if w > 0]
    profiles = [catalog.get(k) for k in ids]
    w = np.array([weights[k] / 100.0 for k in ids], dtype=float)
    vol = float(w @ np.array([RISK_CLASS_VOLATILITY[p.risk_class] for p in profiles])) * DIVERSIFICATION_BENEFIT
    beta = float(w @ np.array([p.beta for p in profiles]))
    return AllocationRiskProfile(
        expected_return=float(w @ np.array([p.expected_annual_return for p in profiles])),
        volatility=vol,
        beta=beta,
        risk_level=classify_risk(vol, beta),
        diversification_score=diversification_score(weights),
    )


@dataclass(frozen=True)
class RebalancingPlan:
    trades: Dict[str, float]    # positive buys, negative sells
    rebalancing_needed: bool


def rebalancing_trades(weights: Mapping[str, float], current_values: Mapping[str, float],
                       threshold: float = MIN_TRADE_AMOUNT) -> RebalancingPlan:
    """Trades that bring current holdings back to the target weights.

    The target value of each asset is its weight times the total current value;
    assets missing from ``current_values`` count as 0. Trades no larger than
    ``threshold`` in absolute value are dropped.
    """
    check_weights(weights)
    total = float(sum(current_values.values()))
    trades = {}
    for asset_id, weight in weights.items():
        trade = weight / 100.0 * total - float(current_values.get(asset_id, 0.0))
        if abs(trade) > threshold:
            trades[asset_id] = trade
    return RebalancingPlan(trades=trades, rebalancing_needed=bool(trades))
