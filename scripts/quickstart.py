from datetime import date
import logging

from pac_simulator.config import AssetProfile, BacktestRequest, PlanParameters, RiskClass, Strategy
from pac_simulator.data.catalog import AssetCatalog
from pac_simulator.engine.simulator import run_simulation
from pac_simulator.engine.backtest import run_backtest
from pac_simulator.analytics.allocation import allocation_risk_profile, is_risk_compatible, rebalancing_trades
from pac_simulator.analytics.metrics import monthly_breakdown

def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    # 1) Asset reference
    catalog = AssetCatalog([
        AssetProfile("VWCE",7.5,RiskClass.MEDIUM,name="Vanguard FTSE All-World",beta=1.0),
        AssetProfile("AGGH",2.5,RiskClass.LOW,name="iShares Core Global Aggregate Bond",beta=0.2),
        AssetProfile("EIMI",8.0,RiskClass.HIGH,name="iShares Core MSCI EM IMI",beta=1.2),
        AssetProfile("CNDX",12.0,RiskClass.VERY_HIGH,name="iShares Nasdaq 100",beta=1.3),
    ])
    weights = {"VWCE": 60.0, "AGGH": 25.0, "EIMI": 10.0, "CNDX": 5.0}

    # 2) Static risk profile
    profile = allocation_risk_profile(weights, catalog)
    print("=== Allocation ===")
    print(f"Expected return: {profile.expected_return:.2f}%  Volatility: {profile.volatility:.1%}  "
          f"Beta: {profile.beta:.2f}  Risk: {profile.risk_level.value}  "
          f"Diversification: {profile.diversification_score:.0f}/100")
    drifted = {"VWCE": 7_200, "AGGH": 1_900, "EIMI": 700, "CNDX": 200}
    rb = rebalancing_trades(weights, drifted)
    print(f"Rebalancing needed: {rb.rebalancing_needed}  Trades: " +
          ", ".join(f"{k} {v:+,.0f}" for k, v in rb.trades.items()))

    # 3) Forward simulation, 20 years of monthly contributions
    plan = PlanParameters(initial_amount=10_000, monthly_amount=500, horizon_months=20*12,
                          strategy=Strategy.VALUE_AVERAGING, take_profit=80.0, name="pac-20y")
    print(f"Compatible with {plan.risk_tolerance.value}: {is_risk_compatible(profile.volatility, plan.risk_tolerance)}")
    sim = run_simulation(plan, weights, catalog, seed=42)
    s = sim.summary

    def money(x): return f"${x:,.0f}"
    print("=== Simulation ===")
    print(f"Invested: {money(s.total_invested)}  Final: {money(s.final_value)}  Return: {s.cumulative_return:.1f}%")
    print(f"Volatility: {s.volatility:.1f}%  Sharpe: {s.sharpe_ratio:.2f}  Max Drawdown: {s.max_drawdown:.1f}%")
    print(f"VaR 95: {s.value_at_risk_95:.2f}%  ES: {s.expected_shortfall:.2f}%  Money-weighted: {s.money_weighted_return:.2f}%")
    print(f"Take profit reached in month: {s.take_profit_month}")
    print(monthly_breakdown(sim.steps).round(2))

    # 4) Backtest over five calendar years against the benchmark
    req = BacktestRequest(start_date=date(2019,1,1), end_date=date(2024,1,1),
                          initial_amount=10_000, monthly_amount=500,
                          include_transaction_costs=True, name="pac-2019")
    bt = run_backtest(req, weights, catalog)
    c, b, cmp = bt.candidate.summary, bt.benchmark.summary, bt.comparison
    print("=== Backtest 2019-2024 ===")
    print(f"Portfolio: {c.cumulative_return:.1f}% ({c.annualized_return:.1f}%/yr)  "
          f"Benchmark {req.benchmark_index.value}: {b.cumulative_return:.1f}%")
    print(f"Alpha: {cmp.alpha:.2f}  Beta: {cmp.beta:.2f}  IR: {cmp.information_ratio:.2f}  "
          f"Outperformed: {cmp.outperformance}")
    print(bt.candidate.to_frame()[["date","total_value","total_invested"]].tail())


if __name__ == "__main__":
    main()
