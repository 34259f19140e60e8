import math
import pytest
import sys
import os

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from matrix_optimizer.engine import MatrixOptimizer, OverrideLedger, TargetSpec, InvalidPinError

DATA_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'data')
TEN_PERCENT = TargetSpec("percent", 10)


@pytest.fixture(scope="module")
def optimizer():
    return MatrixOptimizer()


@pytest.fixture(scope="module")
def analysis(optimizer):
    with open(os.path.join(DATA_DIR, 'auto_parts_sales.csv'), 'r', encoding='utf-8') as f:
        return optimizer.analyze(optimizer.ingest(f.read()))


def test_first_solve_stores_target(optimizer, analysis):
    result, ledger = optimizer.recommend(analysis, TEN_PERCENT)
    assert ledger.stored_target_profit == pytest.approx(analysis.total_profit * 1.10)
    assert result.target_profit == ledger.stored_target_profit
    assert not ledger.has_locks


def test_unlocked_solve_recomputes_target(optimizer, analysis):
    """Without pins, a new TargetSpec replaces the stored target."""
    _, ledger = optimizer.recommend(analysis, TEN_PERCENT)
    result, ledger = optimizer.recommend(analysis, TargetSpec("percent", 20), ledger)
    assert result.target_profit == pytest.approx(analysis.total_profit * 1.20)
    assert ledger.stored_target_profit == result.target_profit


def test_pin_without_prior_solve_resolves_target(optimizer, analysis):
    result, ledger = optimizer.pin(analysis, TEN_PERCENT, None, 3, 4.0)
    assert ledger.locks == {3: 4.0}
    assert ledger.stored_target_profit == pytest.approx(analysis.total_profit * 1.10)
    assert result.get_tier(3).new_multiplier == 4.0
    assert result.get_tier(3).is_locked


def test_successive_pins_share_one_target(optimizer, analysis):
    """Pinning tier A then tier B solves against the original goal both times."""
    first, ledger = optimizer.recommend(analysis, TEN_PERCENT)
    _, ledger = optimizer.pin(analysis, TEN_PERCENT, ledger, 2, 5.5)
    # A changed TargetSpec must not move the goal while pins are active
    second, ledger = optimizer.pin(analysis, TargetSpec("percent", 40), ledger, 4, 3.5)

    assert second.target_profit == first.target_profit
    assert ledger.locks == {2: 5.5, 4: 3.5}
    assert second.locked_tier_ids == [2, 4]


def test_locked_tier_is_stable_across_solves(optimizer, analysis):
    _, ledger = optimizer.pin(analysis, TEN_PERCENT, None, 5, 3.25)
    for _ in range(3):
        result, ledger = optimizer.recommend(analysis, TEN_PERCENT, ledger)
        assert result.get_tier(5).new_multiplier == 3.25
    assert ledger.locks == {5: 3.25}


def test_pin_below_original_is_honored(optimizer, analysis):
    result, _ = optimizer.pin(analysis, TEN_PERCENT, None, 1, 4.0)
    tier = result.get_tier(1)
    assert tier.new_multiplier == 4.0
    assert tier.multiplier_change == pytest.approx(-1.0)


@pytest.mark.parametrize("multiplier", [1.0, 0.5, 20.01, -3, math.nan, math.inf, "abc"])
def test_invalid_pin_rejected(optimizer, analysis, multiplier):
    ledger = OverrideLedger(locks={2: 5.5}, stored_target_profit=1234.0)
    with pytest.raises(InvalidPinError):
        optimizer.pin(analysis, TEN_PERCENT, ledger, 3, multiplier)
    # Prior state preserved
    assert ledger.locks == {2: 5.5}
    assert ledger.stored_target_profit == 1234.0


@pytest.mark.parametrize("multiplier", [1.01, 20.0])
def test_pin_bounds_inclusive(optimizer, analysis, multiplier):
    result, ledger = optimizer.pin(analysis, TEN_PERCENT, None, 8, multiplier)
    assert ledger.locks[8] == multiplier


def test_pin_unknown_tier_rejected(optimizer, analysis):
    with pytest.raises(InvalidPinError):
        optimizer.pin(analysis, TEN_PERCENT, None, 42, 3.0)


def test_reset_clears_locks_and_target(optimizer, analysis):
    _, ledger = optimizer.pin(analysis, TEN_PERCENT, None, 3, 4.0)
    ledger = optimizer.reset(ledger)
    assert ledger == OverrideLedger()

    result, ledger = optimizer.recommend(analysis, TargetSpec("percent", 20), ledger)
    assert result.target_profit == pytest.approx(analysis.total_profit * 1.20)
    assert result.locked_tier_ids == []


def test_unpin_last_lock_clears_stored_target(optimizer, analysis):
    _, ledger = optimizer.pin(analysis, TEN_PERCENT, None, 3, 4.0)
    _, ledger = optimizer.pin(analysis, TEN_PERCENT, ledger, 6, 3.0)

    result, ledger = optimizer.unpin(analysis, TEN_PERCENT, ledger, 3)
    assert ledger.locks == {6: 3.0}
    assert not result.get_tier(3).is_locked

    _, ledger = optimizer.unpin(analysis, TEN_PERCENT, ledger, 6)
    assert not ledger.has_locks


def test_ledger_dict_round_trip():
    ledger = OverrideLedger(locks={1: 4.5, 7: 2.75}, stored_target_profit=41234.5)
    assert OverrideLedger.from_dict(ledger.to_dict()) == ledger
    assert OverrideLedger.from_dict(None) == OverrideLedger()


@pytest.mark.parametrize("locks", [{1: 0}, {1: 0.5}, {1: 20.5}, {1: math.nan}, {99: 3.0}])
def test_recommend_rejects_invalid_locks(optimizer, analysis, locks):
    ledger = OverrideLedger(locks=locks, stored_target_profit=40000.0)
    with pytest.raises(InvalidPinError):
        optimizer.recommend(analysis, TEN_PERCENT, ledger)


def test_recommend_accepts_valid_locks_from_outside(optimizer, analysis):
    ledger = OverrideLedger.from_dict({"locks": {"2": "5.5"}, "stored_target_profit": 40000})
    result, ledger = optimizer.recommend(analysis, TEN_PERCENT, ledger)
    assert ledger.locks == {2: 5.5}
    assert result.get_tier(2).new_multiplier == 5.5
    assert result.target_profit == 40000


def test_ledger_does_not_share_callers_dict():
    locks = {3: 4.0}
    ledger = OverrideLedger(locks=locks)
    locks[5] = 2.5
    locks[3] = 9.0
    assert ledger.locks == {3: 4.0}
