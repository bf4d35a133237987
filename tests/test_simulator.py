import numpy as np
import pytest

from pac_simulator.analytics.metrics import sharpe_ratio
from pac_simulator.config import MarketConfig, PlanParameters, Strategy
from pac_simulator.engine.simulator import PlanSimulator, run_simulation, simulate_path
from pac_simulator.errors import NotFoundError, ValidationError

MIXED = {"WORLD": 40.0, "BOND": 20.0, "EM": 25.0, "TECH": 15.0}


class TestSimulatePath:

    def test_month_zero_is_seeded_with_initial_amount(self):
        steps = simulate_path(3, 1000.0, lambda: 0.05, lambda m, i, v, r: 1000.0 if m == 0 else 100.0)
        first = steps[0]
        assert first.month == 0
        assert first.total_value == 1000.0
        assert first.total_invested == 1000.0
        assert first.contribution == 1000.0
        assert first.monthly_return == 0.0
        assert first.cumulative_return == 0.0
        assert len(steps) == 4

    def test_value_recurrence(self):
        steps = simulate_path(2, 1000.0, lambda: 0.1, lambda m, i, v, r: 1000.0 if m == 0 else 100.0)
        assert steps[1].total_value == pytest.approx(1000 * 1.1 + 100)
        assert steps[2].total_value == pytest.approx((1000 * 1.1 + 100) * 1.1 + 100)
        assert steps[2].total_invested == 1200.0

    def test_cost_reduces_value_not_invested(self):
        contrib = lambda m, i, v, r: 1000.0 if m == 0 else 100.0
        plain = simulate_path(1, 1000.0, lambda: 0.0, contrib)
        costly = simulate_path(1, 1000.0, lambda: 0.0, contrib, cost_pct=1.0)
        assert costly[1].total_invested == plain[1].total_invested
        assert costly[1].total_value == pytest.approx(plain[1].total_value - 1.0)

    def test_zero_invested_guard(self):
        steps = simulate_path(6, 0.0, lambda: 0.02, lambda m, i, v, r: 0.0)
        assert all(s.cumulative_return == 0.0 for s in steps)
        assert all(s.total_value == 0.0 for s in steps)

    def test_rolling_sharpe_starts_at_window(self):
        seq = [0.01, -0.02, 0.03, 0.005, -0.01, 0.02, 0.04, -0.03, 0.0, 0.015, -0.005, 0.025, -0.06, 0.01] + [0.01] * 10
        returns = iter(seq)
        steps = simulate_path(24, 1000.0, lambda: next(returns), lambda m, i, v, r: 1000.0 if m == 0 else 0.0)
        assert all(s.rolling_sharpe == 0.0 for s in steps[:12])
        trailing = np.array(seq[:12]) * 100.0
        assert steps[12].rolling_sharpe == pytest.approx(sharpe_ratio(trailing))
        # month 13 drops month 1 and adds the -6% month
        shifted = np.array(seq[1:13]) * 100.0
        assert sharpe_ratio(shifted) != pytest.approx(sharpe_ratio(trailing))
        assert steps[13].rolling_sharpe == pytest.approx(sharpe_ratio(shifted))

    def test_undated_without_start(self):
        steps = simulate_path(2, 10.0, lambda: 0.0, lambda m, i, v, r: 10.0 if m == 0 else 0.0)
        assert all(s.date is None for s in steps)


class TestRunSimulation:

    def test_deterministic_market_end_to_end(self, catalog, quiet_market):
        params = PlanParameters(initial_amount=1000.0, monthly_amount=0.0, horizon_months=12)
        result = run_simulation(params, {"STEADY": 100.0}, catalog, seed=1, market_config=quiet_market)

        expected = 1000.0 * 1.01 ** 12
        assert result.summary.final_value == pytest.approx(expected)
        assert result.summary.total_invested == 1000.0
        assert result.summary.cumulative_return == pytest.approx((expected / 1000.0 - 1) * 100)
        assert result.summary.sharpe_ratio == 0.0
        assert result.summary.max_drawdown == 0.0
        assert result.steps[12].inflation_adjusted_value == pytest.approx(expected / (1 + 0.02 / 12) ** 12)

    def test_same_seed_same_path(self, catalog, plan):
        a = run_simulation(plan, MIXED, catalog, seed=2024)
        b = run_simulation(plan, MIXED, catalog, seed=2024)
        assert a.steps == b.steps
        assert a.summary.final_value == b.summary.final_value
        assert a.summary.sharpe_ratio == b.summary.sharpe_ratio

    def test_different_seed_different_path(self, catalog, plan):
        a = run_simulation(plan, MIXED, catalog, seed=1)
        b = run_simulation(plan, MIXED, catalog, seed=2)
        assert a.summary.final_value != b.summary.final_value

    @pytest.mark.parametrize("strategy", list(Strategy))
    def test_invested_never_decreases(self, catalog, strategy):
        params = PlanParameters(initial_amount=5000.0, monthly_amount=200.0, horizon_months=60,
                                strategy=strategy)
        result = run_simulation(params, MIXED, catalog, seed=99,
                                market_config=MarketConfig(shock_probability=0.3))
        invested = [s.total_invested for s in result.steps]
        assert all(b >= a for a, b in zip(invested, invested[1:]))
        assert [s.month for s in result.steps] == list(range(61))
        assert result.steps[0].contribution == 5000.0

    def test_dca_invested_total(self, catalog, plan):
        result = run_simulation(plan, MIXED, catalog, seed=5)
        assert result.summary.total_invested == pytest.approx(10_000 + 500 * 120)
        assert len(result.steps) == 121

    @pytest.mark.parametrize("total", [99.98, 100.02, 0.0])
    def test_rejects_weights_off_by_more_than_tolerance(self, catalog, plan, total):
        with pytest.raises(ValidationError):
            run_simulation(plan, {"WORLD": total}, catalog, seed=1)

    def test_accepts_weights_within_tolerance(self, catalog, plan):
        result = run_simulation(plan, {"WORLD": 60.0, "BOND": 39.995}, catalog, seed=1)
        assert len(result.steps) == plan.horizon_months + 1

    def test_rejects_nan_weight(self, catalog, plan):
        with pytest.raises(ValidationError):
            run_simulation(plan, {"WORLD": float("nan")}, catalog, seed=1)

    def test_rejects_negative_weight(self, catalog, plan):
        with pytest.raises(ValidationError):
            run_simulation(plan, {"WORLD": 110.0, "BOND": -10.0}, catalog, seed=1)

    def test_unknown_asset(self, catalog, plan):
        with pytest.raises(NotFoundError) as e:
            run_simulation(plan, {"WORLD": 50.0, "NOPE": 50.0}, catalog, seed=1)
        assert e.value.asset_id == "NOPE"

    def test_zero_weight_asset_is_ignored(self, catalog, plan, quiet_market):
        a = run_simulation(plan, {"STEADY": 100.0}, catalog, seed=3, market_config=quiet_market)
        b = run_simulation(plan, {"STEADY": 100.0, "TECH": 0.0}, catalog, seed=3, market_config=quiet_market)
        assert a.steps == b.steps

    def test_threshold_months_reported(self, catalog, quiet_market):
        params = PlanParameters(initial_amount=1000.0, monthly_amount=0.0, horizon_months=24,
                                take_profit=10.0)
        result = run_simulation(params, {"STEADY": 100.0}, catalog, market_config=quiet_market)
        # 1.01 ** 10 = 1.1046
        assert result.summary.take_profit_month == 10
        assert result.summary.stop_loss_month is None

    def test_to_frame(self, catalog, plan):
        df = run_simulation(plan, MIXED, catalog, seed=8).to_frame()
        assert df.index.name == "month"
        assert len(df) == 121
        assert "date" not in df.columns
        assert df["total_invested"].is_monotonic_increasing


class TestPlanParameters:

    @pytest.mark.parametrize("kwargs", [
        dict(initial_amount=-1.0, monthly_amount=100.0, horizon_months=12),
        dict(initial_amount=100.0, monthly_amount=-5.0, horizon_months=12),
        dict(initial_amount=100.0, monthly_amount=10.0, horizon_months=0),
        dict(initial_amount=100.0, monthly_amount=10.0, horizon_months=12, stop_loss=60.0),
        dict(initial_amount=100.0, monthly_amount=10.0, horizon_months=12, take_profit=150.0),
        dict(initial_amount=float("nan"), monthly_amount=10.0, horizon_months=12),
        dict(initial_amount=100.0, monthly_amount=float("inf"), horizon_months=12),
        dict(initial_amount=100.0, monthly_amount=10.0, horizon_months=12, stop_loss=float("nan")),
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValidationError):
            PlanParameters(**kwargs)

    def test_simulator_owns_its_generator(self, catalog, plan):
        from pac_simulator.data.catalog import resolve_allocations
        allocations = resolve_allocations(MIXED, catalog)
        a = PlanSimulator(plan, allocations, seed=11)
        b = PlanSimulator(plan, allocations, seed=11)
        assert a.rng is not b.rng
        assert a.run() == b.run()
