from dataclasses import dataclass
from typing import Callable, Dict

import numpy as np

from ..config import Strategy


@dataclass(frozen=True)
class ContributionContext:
    month: int
    monthly_amount: float
    total_invested: float      # before this month's contribution
    total_value: float         # before this month's return and contribution
    monthly_return: float      # this month's portfolio return, decimal


def dca(ctx: ContributionContext, rng: np.random.Generator) -> float:
    return ctx.monthly_amount


def value_averaging(ctx: ContributionContext, rng: np.random.Generator) -> float:
    target = ctx.total_invested + ctx.monthly_amount * ctx.month
    return max(0.0, target - ctx.total_value)


def momentum(ctx: ContributionContext, rng: np.random.Generator) -> float:
    factor = ctx.monthly_return * 5 if ctx.month > 3 else 0.0
    return ctx.monthly_amount * (1 + factor)


def contrarian(ctx: ContributionContext, rng: np.random.Generator) -> float:
    if ctx.month <= 1:
        return ctx.monthly_amount
    return ctx.monthly_amount * (1 + max(-0.5, -ctx.monthly_return * 3))


def smart_beta(ctx: ContributionContext, rng: np.random.Generator) -> float:
    factor = ctx.monthly_return * 2 + (rng.random() - 0.5) * 0.1
    return ctx.monthly_amount * (1 + 0.5 * factor)


def tactical(ctx: ContributionContext, rng: np.random.Generator) -> float:
    return ctx.monthly_amount * (1.2 if rng.random() > 0.5 else 0.8)


STRATEGIES: Dict[Strategy, Callable[[ContributionContext, np.random.Generator], float]] = {
    Strategy.DCA: dca,
    Strategy.VALUE_AVERAGING: value_averaging,
    Strategy.MOMENTUM: momentum,
    Strategy.CONTRARIAN: contrarian,
    Strategy.SMART_BETA: smart_beta,
    Strategy.TACTICAL: tactical,
}


def contribution_for_month(strategy: Strategy, ctx: ContributionContext, initial_amount: float,
                           rng: np.random.Generator) -> float:
    """Amount paid in at the end of ``ctx.month``.

    Month 0 is always the initial amount. Later months never go below zero so the
    invested total cannot decrease.
    """
    if ctx.month == 0:
        return float(initial_amount)
    return max(0.0, float(STRATEGIES[Strategy(strategy)](ctx, rng)))
