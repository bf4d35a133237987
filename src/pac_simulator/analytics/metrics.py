import math
from dataclasses import asdict
from typing import Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..config import RISK_FREE_MONTHLY_PCT
from ..errors import ComputationError
from ..results import BacktestComparison, BacktestSummary, SimulationStep, SimulationSummary

_EPS = 1e-12


def monthly_returns(steps: Sequence[SimulationStep]) -> np.ndarray:
    """Percent returns of months 1..N; month 0 carries no market return."""
    return np.array([s.monthly_return for s in steps[1:]], dtype=float)


def _pstd(x: np.ndarray) -> float:
    if x.size == 0:
        return 0.0
    sd = float(np.std(x))
    return 0.0 if sd < _EPS else sd


def volatility(returns: np.ndarray) -> float:
    """Annualized population standard deviation."""
    return _pstd(returns) * math.sqrt(12)


def sharpe_ratio(returns: np.ndarray, rf_m: float = RISK_FREE_MONTHLY_PCT) -> float:
    sd = _pstd(returns)
    if sd == 0.0:
        return 0.0
    return (float(returns.mean()) - rf_m) / sd * math.sqrt(12)


def downside_deviation(returns: np.ndarray) -> float:
    neg = returns[returns < 0]
    if neg.size < 2:
        return 0.0
    return _pstd(neg)


def sortino_ratio(returns: np.ndarray, rf_m: float = RISK_FREE_MONTHLY_PCT) -> float:
    dd = downside_deviation(returns)
    if dd == 0.0:
        return 0.0
    return (float(returns.mean()) - rf_m) / dd * math.sqrt(12)


def max_drawdown(values: Sequence[float]) -> float:
    """Worst peak-to-trough decline, signed percent (0 or negative)."""
    x = np.asarray(values, dtype=float)
    if x.size == 0:
        return 0.0
    peak = np.maximum.accumulate(x)
    with np.errstate(divide="ignore", invalid="ignore"):
        dd = np.where(peak > 0, (x - peak) / peak * 100.0, 0.0)
    worst = float(dd.min())
    return worst if worst < 0 else 0.0


def value_at_risk(returns: np.ndarray, confidence: float = 0.95) -> float:
    if returns.size == 0:
        return 0.0
    ordered = np.sort(returns)
    idx = int((1 - confidence) * ordered.size)
    return float(ordered[max(0, idx)])


def expected_shortfall(returns: np.ndarray, confidence: float = 0.95) -> float:
    """Mean of the sorted returns up to and including the VaR index."""
    if returns.size == 0:
        return 0.0
    ordered = np.sort(returns)
    cutoff = int((1 - confidence) * ordered.size)
    return float(ordered[:cutoff + 1].mean())


def _standardized_moment(returns: np.ndarray, order: int) -> float:
    sd = _pstd(returns)
    if sd == 0.0:
        return 0.0
    z = (returns - returns.mean()) / sd
    return float(np.mean(z ** order))


def skewness(returns: np.ndarray) -> float:
    if returns.size < 3:
        return 0.0
    return _standardized_moment(returns, 3)


def kurtosis(returns: np.ndarray) -> float:
    """Excess kurtosis (normal = 0)."""
    if returns.size < 4 or _pstd(returns) == 0.0:
        return 0.0
    return _standardized_moment(returns, 4) - 3.0


def win_rate(returns: np.ndarray) -> float:
    if returns.size == 0:
        return 0.0
    return float((returns > 0).sum()) / returns.size * 100.0


def max_consecutive_losses(returns: np.ndarray) -> int:
    longest = current = 0
    for r in returns:
        current = current + 1 if r < 0 else 0
        longest = max(longest, current)
    return longest


def annualized_return(returns: np.ndarray) -> float:
    """Compound the mean monthly return over a year, percent."""
    if returns.size == 0:
        return 0.0
    return ((1.0 + float(returns.mean()) / 100.0) ** 12 - 1.0) * 100.0


def calmar_ratio(returns: np.ndarray, drawdown: float) -> float:
    return annualized_return(returns) / max(abs(drawdown), 0.01)


def money_weighted_return(steps: Sequence[SimulationStep]) -> float:
    """Annualized IRR of contributions against the final value, percent."""
    import numpy_financial as npf
    if len(steps) < 2:
        return float("nan")
    flows = [-s.contribution for s in steps]
    flows[-1] += steps[-1].total_value
    try:
        irr = npf.irr(flows)
    except (ValueError, np.linalg.LinAlgError):
        return float("nan")
    if irr is None or not np.isfinite(irr):
        return float("nan")
    return float(irr) * 12.0 * 100.0


def threshold_events(steps: Sequence[SimulationStep], stop_loss: Optional[float] = None,
                     take_profit: Optional[float] = None) -> Tuple[Optional[int], Optional[int]]:
    """First month the cumulative return hits -stop_loss / +take_profit (percent)."""
    stop_month = take_month = None
    for s in steps[1:]:
        if stop_loss is not None and stop_month is None and s.cumulative_return <= -stop_loss:
            stop_month = s.month
        if take_profit is not None and take_month is None and s.cumulative_return >= take_profit:
            take_month = s.month
    return stop_month, take_month


def monthly_breakdown(steps: Sequence[SimulationStep]) -> pd.DataFrame:
    """Average return, volatility and win rate per month of the year (1..12).

    Uses calendar months when steps are dated, otherwise month index modulo 12.
    """
    rows = steps[1:]
    if not rows:
        return pd.DataFrame(columns=["avg_return", "volatility", "win_rate", "observations"])
    df = pd.DataFrame({
        "moy": [s.date.month if s.date is not None else (s.month - 1) % 12 + 1 for s in rows],
        "r": [s.monthly_return for s in rows],
    })
    g = df.groupby("moy")["r"]
    out = pd.DataFrame({
        "avg_return": g.mean(),
        "volatility": g.std(ddof=0),
        "win_rate": g.apply(lambda x: (x > 0).mean() * 100.0),
        "observations": g.size(),
    })
    out.index.name = "month_of_year"
    return out


def compute_metrics(steps: Sequence[SimulationStep], stop_loss: Optional[float] = None,
                    take_profit: Optional[float] = None) -> SimulationSummary:
    """Reduce a finished time series to its summary record.

    Final value, invested total and cumulative return are read from the last
    step, never recomputed.
    """
    if not steps:
        raise ComputationError("Cannot compute metrics of an empty simulation")
    last = steps[-1]
    r = monthly_returns(steps)
    mdd = max_drawdown([s.total_value for s in steps])
    stop_month, take_month = threshold_events(steps, stop_loss, take_profit)
    return SimulationSummary(
        final_value=last.total_value,
        total_invested=last.total_invested,
        cumulative_return=last.cumulative_return,
        volatility=volatility(r),
        max_drawdown=mdd,
        sharpe_ratio=sharpe_ratio(r),
        win_rate=win_rate(r),
        value_at_risk_95=value_at_risk(r),
        expected_shortfall=expected_shortfall(r),
        skewness=skewness(r),
        kurtosis=kurtosis(r),
        calmar_ratio=calmar_ratio(r, mdd),
        sortino_ratio=sortino_ratio(r),
        downside_deviation=downside_deviation(r),
        max_consecutive_losses=max_consecutive_losses(r),
        money_weighted_return=money_weighted_return(steps),
        stop_loss_month=stop_month,
        take_profit_month=take_month,
    )


def compute_backtest_summary(steps: Sequence[SimulationStep], stop_loss: Optional[float] = None,
                             take_profit: Optional[float] = None) -> BacktestSummary:
    base = compute_metrics(steps, stop_loss, take_profit)
    r = monthly_returns(steps)
    return BacktestSummary(
        **asdict(base),
        annualized_return=annualized_return(r),
        best_month=float(r.max()) if r.size else 0.0,
        worst_month=float(r.min()) if r.size else 0.0,
        max_drawdown_magnitude=-base.max_drawdown if base.max_drawdown < 0 else 0.0,
    )


def compare_with_benchmark(candidate: BacktestSummary, benchmark: BacktestSummary) -> BacktestComparison:
    alpha = candidate.annualized_return - benchmark.annualized_return
    vol_gap = abs(candidate.volatility - benchmark.volatility)
    return BacktestComparison(
        excess_return=candidate.cumulative_return - benchmark.cumulative_return,
        alpha=alpha,
        beta=candidate.volatility / benchmark.volatility if benchmark.volatility > 0 else 0.0,
        information_ratio=alpha / vol_gap if vol_gap > _EPS else 0.0,
        outperformance=candidate.cumulative_return > benchmark.cumulative_return,
    )
