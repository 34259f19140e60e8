import pytest
import sys
import os

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from matrix_optimizer.config.settings import get_settings
from matrix_optimizer.engine.aggregator import aggregate_tiers
from matrix_optimizer.engine.ingest import ingest_csv
from matrix_optimizer.engine.models import (
    TierAnalysis,
    TargetSpec,
    gross_profit_from_multiplier,
    multiplier_from_gross_profit,
)
from matrix_optimizer.engine.solver import AllocationSolver, project_profit
from matrix_optimizer.engine.targets import resolve_target_profit
from matrix_optimizer.services.matrix_service import default_matrix

DATA_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'data')


def make_tier(tier_id, multiplier, total_cost, total_retail, revenue_share, min_cost=0.0, max_cost=999999):
    return TierAnalysis(
        id=tier_id,
        min_cost=min_cost,
        max_cost=max_cost,
        multiplier=multiplier,
        gross_profit_pct=gross_profit_from_multiplier(multiplier),
        part_count=1 if total_cost else 0,
        total_qty=1 if total_cost else 0,
        total_cost=total_cost,
        total_retail=total_retail,
        current_margin=(total_retail - total_cost) / total_retail * 100 if total_retail else 0.0,
        current_profit=total_retail - total_cost,
        revenue_share=revenue_share,
    )


@pytest.fixture(scope="module")
def solver():
    return AllocationSolver()


@pytest.fixture(scope="module")
def analysis():
    with open(os.path.join(DATA_DIR, 'auto_parts_sales.csv'), 'r', encoding='utf-8') as f:
        records = ingest_csv(f.read()).records
    return aggregate_tiers(default_matrix(), records)


@pytest.mark.parametrize("multiplier", [1.01, 1.25, 2.13, 3.7, 4.76, 5.0, 20.0])
def test_multiplier_gross_profit_round_trip(multiplier):
    assert multiplier_from_gross_profit(gross_profit_from_multiplier(multiplier)) == pytest.approx(multiplier)


def test_convergence_scenario(solver):
    """$10k cost, $25k revenue, 10% target -> $16,500 within 0.5%."""
    tier = make_tier(1, 2.5, 10000.0, 25000.0, 100.0)
    target = resolve_target_profit(TargetSpec("percent", 10), tier.current_profit, tier.total_cost)
    assert target == pytest.approx(16500.0)

    result = solver.solve([tier], target)

    within = abs(result.projected_profit - 16500.0) <= 0.005 * 16500.0
    assert within or result.iterations == 50
    assert result.converged
    assert result.tiers[0].new_multiplier >= 2.5


def test_fixture_converges_on_ten_percent(solver, analysis):
    target = analysis.total_profit * 1.10
    result = solver.solve(analysis, target)

    assert result.current_profit == pytest.approx(analysis.total_profit)
    assert result.current_revenue == pytest.approx(analysis.total_revenue)
    assert result.current_cost == pytest.approx(analysis.total_cost)
    assert abs(result.projected_profit - target) <= 0.005 * target or result.iterations == 50
    assert result.profit_increase > 0
    assert result.percent_increase > 0


@pytest.mark.parametrize("kind, value", [
    ("percent", 5),
    ("percent", 10),
    ("percent", 50),
    ("margin", 75),
    ("dollar", 20000),
])
def test_never_decrease_and_caps(solver, analysis, kind, value):
    """Unlocked tiers stay within [original, 1.5x original] and at most 95% GP."""
    target = resolve_target_profit(TargetSpec(kind, value), analysis.total_profit, analysis.total_cost)
    result = solver.solve(analysis, target)

    for tier in result.tiers:
        assert tier.new_multiplier >= tier.multiplier, f"Tier {tier.id} dropped below its original multiplier"
        assert tier.new_multiplier <= round(tier.multiplier * 1.5, 2), f"Tier {tier.id} exceeded 1.5x"
        assert tier.new_gross_profit_pct <= 95.0
        assert not tier.is_locked


def test_margin_cap(solver):
    assert solver.cap_multiplier(22.0, 15.0) == (20.0, 95.0)
    multiplier, gross_profit = solver.cap_multiplier(3.0, 2.5)
    assert multiplier == 3.0
    assert gross_profit == pytest.approx(gross_profit_from_multiplier(3.0))


def test_margin_cap_never_lowers_original(solver):
    multiplier, _ = solver.cap_multiplier(30.0, 25.0)
    assert multiplier == 25.0


def test_target_below_current_changes_nothing(solver, analysis):
    """A lower target cannot pull multipliers under their originals."""
    result = solver.solve(analysis, analysis.total_profit * 0.8)

    assert all(t.new_multiplier == t.multiplier for t in result.tiers)
    assert all(t.multiplier_change == 0 for t in result.tiers)
    assert not result.converged
    assert result.projected_profit == pytest.approx(analysis.total_profit, abs=0.05)


def test_unreachable_target_is_best_effort(solver, analysis):
    """Out-of-reach targets stop at the caps and report the remaining gap."""
    result = solver.solve(analysis, analysis.total_profit * 10)

    assert not result.converged
    assert result.residual_gap > 0
    for tier in result.tiers:
        assert tier.new_multiplier == round(tier.multiplier * 1.5, 2)


def test_empty_tiers_pass_through(solver):
    tiers = [
        make_tier(1, 3.0, 1000.0, 2500.0, 100.0),
        make_tier(2, 2.0, 0.0, 0.0, 0.0),
    ]
    result = solver.solve(tiers, 1800.0)
    empty = result.get_tier(2)

    assert empty.new_multiplier == 2.0
    assert empty.multiplier_change == 0
    assert empty.margin_change == 0
    assert empty.projected_profit == 0
    assert empty.impact_score == 0


def test_locked_tier_is_pinned(solver, analysis):
    target = analysis.total_profit * 1.10
    result = solver.solve(analysis, target, locks={3: 4.0, 1: 4.5})

    assert result.get_tier(3).new_multiplier == 4.0
    assert result.get_tier(3).is_locked
    # A pin below the original is still honored
    assert result.get_tier(1).new_multiplier == 4.5
    assert result.locked_tier_ids == [1, 3]


def test_projection_uses_realized_multiplier():
    """Projected profit scales realized revenue, not matrix x cost."""
    tier = make_tier(1, 3.0, 100.0, 200.0, 100.0)
    assert project_profit(tier, 3.3) == pytest.approx(200.0 * 1.1 - 100.0)


def test_finalization_rounding_and_impact(solver, analysis):
    result = solver.solve(analysis, analysis.total_profit * 1.05)
    for tier in result.tiers:
        assert tier.new_multiplier == round(tier.new_multiplier, 2)
        assert tier.new_gross_profit_pct == round(tier.new_gross_profit_pct, 1)
        assert tier.projected_profit == round(tier.projected_profit, 2)
        assert tier.multiplier_change == pytest.approx(tier.new_multiplier - tier.multiplier, abs=0.006)
        assert tier.impact_score == pytest.approx(abs(tier.margin_change) * tier.revenue_share / 100)
    assert result.projected_profit == pytest.approx(sum(t.projected_profit for t in result.tiers))


def test_iteration_budget_respected(analysis):
    settings = get_settings()
    assert AllocationSolver(settings).solve(analysis, analysis.total_profit * 1.2).iterations <= settings.max_iterations
