"""
Matrix Service - edit operations on the pricing tier matrix.

Every function takes a matrix and returns a new list; tiers are immutable.
"""
import logging
from dataclasses import dataclass, replace
from typing import Optional

from ..config.settings import get_settings, Settings
from ..engine.errors import MatrixError
from ..engine.models import PricingTier, UNBOUNDED_COST

logger = logging.getLogger(__name__)


# (min_cost, max_cost, multiplier)
DEFAULT_TIERS = [
    (0.00, 1.50, 5.00),
    (1.51, 6.00, 4.76),
    (6.01, 10.00, 3.70),
    (10.01, 30.00, 3.33),
    (30.01, 50.00, 2.86),
    (50.01, 150.00, 2.70),
    (150.01, 250.00, 2.50),
    (250.01, UNBOUNDED_COST, 2.13),
]

EDITABLE_FIELDS = ('min_cost', 'max_cost', 'multiplier', 'gross_profit_pct')

MAX_GROSS_PROFIT_EDIT = 99.9
COST_STEP = 0.01


@dataclass(frozen=True)
class RangeIssue:
    """A gap or overlap between neighbouring tiers."""
    kind: str  # "gap", "overlap" or "inverted"
    tier_id: int
    message: str


def default_matrix() -> list[PricingTier]:
    """The seed matrix new shops start from."""
    return [
        PricingTier.from_multiplier(id=i, min_cost=lo, max_cost=hi, multiplier=mult)
        for i, (lo, hi, mult) in enumerate(DEFAULT_TIERS, start=1)
    ]


def renumber(matrix: list[PricingTier]) -> list[PricingTier]:
    """Reassign ids contiguously from 1 in list order."""
    return [replace(tier, id=i) for i, tier in enumerate(matrix, start=1)]


def get_tier(matrix: list[PricingTier], tier_id: int) -> PricingTier:
    for tier in matrix:
        if tier.id == tier_id:
            return tier
    raise MatrixError(f"Tier {tier_id} not found")


def add_tier(matrix: list[PricingTier], settings: Optional[Settings] = None) -> list[PricingTier]:
    """
    Append a tier above the current top tier.

    The new tier is open-ended at 2.0x; the old top tier is closed off
    one cent below where the new one starts.
    """
    settings = settings or get_settings()
    if len(matrix) >= settings.max_tiers:
        raise MatrixError(f"A matrix can hold at most {settings.max_tiers} tiers")
    if not matrix:
        return default_matrix()

    last = matrix[-1]
    if last.is_unbounded:
        new_min = round(last.min_cost + 100, 2)
    else:
        new_min = round(last.max_cost + COST_STEP, 2)

    new_tier = PricingTier.from_multiplier(
        id=len(matrix) + 1, min_cost=new_min, max_cost=UNBOUNDED_COST, multiplier=2.0
    )
    updated = list(matrix[:-1]) + [replace(last, max_cost=round(new_min - COST_STEP, 2))]
    return updated + [new_tier]


def remove_tier(matrix: list[PricingTier], tier_id: int, settings: Optional[Settings] = None) -> list[PricingTier]:
    """Drop exactly one tier and renumber the rest from 1."""
    settings = settings or get_settings()
    if len(matrix) <= settings.min_tiers:
        raise MatrixError(f"A matrix needs at least {settings.min_tiers} tiers")

    get_tier(matrix, tier_id)
    return renumber([t for t in matrix if t.id != tier_id])


def _to_float(value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def update_tier(
    matrix: list[PricingTier],
    tier_id: int,
    field: str,
    value,
    settings: Optional[Settings] = None,
) -> list[PricingTier]:
    """
    Edit one field of one tier.

    Multiplier and gross profit always move together; whichever was
    edited recomputes the other. Changing a tier's max cost pulls the next
    tier's min cost to one cent above it.
    """
    settings = settings or get_settings()
    if field not in EDITABLE_FIELDS:
        raise MatrixError(f"Unknown tier field '{field}'")

    tier = get_tier(matrix, tier_id)
    position = matrix.index(tier)
    updated = list(matrix)

    if field == 'multiplier':
        multiplier = max(_to_float(value), settings.min_pin_multiplier)
        updated[position] = PricingTier.from_multiplier(tier.id, tier.min_cost, tier.max_cost, multiplier)

    elif field == 'gross_profit_pct':
        gross_profit = min(max(_to_float(value), 0.0), MAX_GROSS_PROFIT_EDIT)
        updated[position] = PricingTier.from_gross_profit(tier.id, tier.min_cost, tier.max_cost, gross_profit)

    elif field == 'min_cost':
        updated[position] = replace(tier, min_cost=_to_float(value))

    else:
        max_cost = UNBOUNDED_COST if value in (None, '') else _to_float(value)
        updated[position] = replace(tier, max_cost=max_cost)

        if position + 1 < len(updated) and max_cost < UNBOUNDED_COST:
            nxt = updated[position + 1]
            updated[position + 1] = replace(nxt, min_cost=round(max_cost + COST_STEP, 2))

    return updated


def find_range_issues(matrix: list[PricingTier]) -> list[RangeIssue]:
    """
    Report gaps and overlaps between consecutive tiers.

    Parts whose cost falls into a gap are not counted in any tier, so the
    analysis silently under-reports them.
    """
    issues = []
    ordered = sorted(matrix, key=lambda t: t.min_cost)

    for tier in ordered:
        if tier.min_cost > tier.max_cost:
            issues.append(RangeIssue(
                kind='inverted',
                tier_id=tier.id,
                message=f"Tier {tier.id} starts at ${tier.min_cost:.2f} but ends at ${tier.max_cost:.2f}",
            ))

    for current, nxt in zip(ordered, ordered[1:]):
        spacing = round(nxt.min_cost - current.max_cost, 2)
        if spacing > COST_STEP:
            issues.append(RangeIssue(
                kind='gap',
                tier_id=current.id,
                message=(
                    f"Gap between tier {current.id} (ends ${current.max_cost:.2f}) and "
                    f"tier {nxt.id} (starts ${nxt.min_cost:.2f}); parts in between are not analyzed"
                ),
            ))
        elif spacing <= 0:
            issues.append(RangeIssue(
                kind='overlap',
                tier_id=current.id,
                message=f"Tier {current.id} overlaps tier {nxt.id}; parts in the overlap count in both",
            ))

    return issues


def _pick(entry: dict, *keys):
    for key in keys:
        if key in entry and entry[key] is not None:
            return entry[key]
    return None


def restore_matrix(data, settings: Optional[Settings] = None) -> list[PricingTier]:
    """
    Rebuild a matrix from a saved snapshot.

    Accepts snake_case keys or the camelCase keys older saves used. Falls
    back to the default matrix when the snapshot is unusable.
    """
    settings = settings or get_settings()
    if not isinstance(data, list) or not data:
        return default_matrix()

    tiers = []
    try:
        for entry in data:
            min_cost = _pick(entry, 'min_cost', 'minCost')
            max_cost = _pick(entry, 'max_cost', 'maxCost')
            multiplier = _pick(entry, 'multiplier')
            gross_profit = _pick(entry, 'gross_profit_pct', 'grossProfit')
            if min_cost is None:
                raise ValueError("tier without min cost")

            max_cost = float(max_cost) if max_cost is not None else UNBOUNDED_COST
            if multiplier is not None and float(multiplier) > 1:
                tier = PricingTier.from_multiplier(0, float(min_cost), max_cost, float(multiplier))
            elif gross_profit is not None and float(gross_profit) < 100:
                tier = PricingTier.from_gross_profit(0, float(min_cost), max_cost, float(gross_profit))
            else:
                raise ValueError("tier without a usable multiplier")
            tiers.append(tier)
    except (TypeError, ValueError, AttributeError) as e:
        logger.warning("Could not restore saved matrix (%s); using defaults", e)
        return default_matrix()

    if not settings.min_tiers <= len(tiers) <= settings.max_tiers:
        logger.warning("Saved matrix has %d tiers; using defaults", len(tiers))
        return default_matrix()

    return renumber(sorted(tiers, key=lambda t: t.min_cost))
