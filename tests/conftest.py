from datetime import date

import pytest

from pac_simulator.config import AssetProfile, MarketConfig, PlanParameters, RiskClass
from pac_simulator.data.catalog import AssetCatalog
from pac_simulator.results import SimulationStep


def make_steps(returns_pct, initial=1000.0, values=None):
    """Month 0 plus one step per return, compounding ``initial`` with no contributions."""
    steps = [SimulationStep(0, initial, initial, initial, 0.0, 0.0, initial, 0.0)]
    value = initial
    for i, r in enumerate(returns_pct, start=1):
        value = values[i] if values is not None else value * (1 + r / 100.0)
        steps.append(SimulationStep(
            month=i,
            total_value=value,
            total_invested=initial,
            contribution=0.0,
            monthly_return=r,
            cumulative_return=(value - initial) / initial * 100.0,
            inflation_adjusted_value=value,
            rolling_sharpe=0.0,
        ))
    return steps


@pytest.fixture
def step_factory():
    return make_steps


@pytest.fixture
def catalog():
    return AssetCatalog([
        AssetProfile("WORLD", 7.0, RiskClass.MEDIUM, name="World Equity", beta=1.0),
        AssetProfile("BOND", 3.0, RiskClass.LOW, name="Aggregate Bond", beta=0.2),
        AssetProfile("EM", 9.0, RiskClass.HIGH, name="Emerging Markets", beta=1.3),
        AssetProfile("TECH", 14.0, RiskClass.VERY_HIGH, name="Nasdaq 100", beta=1.4),
        AssetProfile("STEADY", 12.0, RiskClass.LOW, name="Steady Growth"),
    ])


@pytest.fixture
def plan():
    return PlanParameters(initial_amount=10_000.0, monthly_amount=500.0, horizon_months=120)


@pytest.fixture
def quiet_market():
    """No shocks and no noise: every asset earns exactly its expected monthly return."""
    return MarketConfig(shock_probability=0.0, randomness=0.0)


@pytest.fixture
def today():
    return date(2025, 6, 15)
