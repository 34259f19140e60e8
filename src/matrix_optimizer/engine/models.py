"""
Data models for the matrix optimizer.

Uses frozen dataclasses so tiers, records and results can be shared
between calls without copying.
"""
from dataclasses import dataclass, field
from typing import Optional

import pandas as pd


# Sentinel for the open-ended top tier (kept for compatibility with saved matrices)
UNBOUNDED_COST = 999999.0


def gross_profit_from_multiplier(multiplier: float) -> float:
    """Gross profit % implied by a markup multiplier."""
    return 100.0 * (1.0 - 1.0 / multiplier)


def multiplier_from_gross_profit(gross_profit_pct: float) -> float:
    """Markup multiplier implied by a gross profit %."""
    return 100.0 / (100.0 - gross_profit_pct)


@dataclass(frozen=True)
class PricingTier:
    """A cost range with its markup multiplier and equivalent gross profit %."""
    id: int
    min_cost: float
    max_cost: float
    multiplier: float
    gross_profit_pct: float

    @classmethod
    def from_multiplier(cls, id: int, min_cost: float, max_cost: float, multiplier: float) -> 'PricingTier':
        return cls(
            id=id,
            min_cost=min_cost,
            max_cost=max_cost,
            multiplier=multiplier,
            gross_profit_pct=gross_profit_from_multiplier(multiplier),
        )

    @classmethod
    def from_gross_profit(cls, id: int, min_cost: float, max_cost: float, gross_profit_pct: float) -> 'PricingTier':
        return cls(
            id=id,
            min_cost=min_cost,
            max_cost=max_cost,
            multiplier=multiplier_from_gross_profit(gross_profit_pct),
            gross_profit_pct=gross_profit_pct,
        )

    @property
    def is_unbounded(self) -> bool:
        return self.max_cost >= UNBOUNDED_COST

    @property
    def markup_pct(self) -> float:
        return (self.multiplier - 1.0) * 100.0

    def range_label(self) -> str:
        upper = "Max" if self.is_unbounded else f"${self.max_cost:.2f}"
        return f"${self.min_cost:.2f} - {upper}"


@dataclass(frozen=True)
class PartRecord:
    """One ingested sales line."""
    unit_cost: float
    unit_retail: float
    qty: float
    total_cost: float
    total_retail: float


@dataclass
class IngestResult:
    """Records that survived ingestion plus the row-level skip tally."""
    records: list[PartRecord]
    skipped_count: int = 0
    header_row: int = 0
    columns: dict[str, int] = field(default_factory=dict)

    @property
    def record_count(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class TierAnalysis(PricingTier):
    """A pricing tier enriched with the aggregates of the records it holds."""
    part_count: int = 0
    total_qty: float = 0.0
    total_cost: float = 0.0
    total_retail: float = 0.0
    current_margin: float = 0.0
    current_profit: float = 0.0
    # Only meaningful relative to the full set of tiers
    revenue_share: float = 0.0

    @property
    def actual_multiplier(self) -> Optional[float]:
        """Realized sell-through multiplier, or None when the tier has no sales."""
        if self.total_cost <= 0 or self.total_retail <= 0:
            return None
        return self.total_retail / self.total_cost


@dataclass
class MatrixAnalysis:
    """Per-tier aggregates for one ingest against one matrix."""
    tiers: list[TierAnalysis]
    unclassified_count: int = 0
    unclassified_cost: float = 0.0
    unclassified_retail: float = 0.0

    @property
    def total_cost(self) -> float:
        return sum(t.total_cost for t in self.tiers)

    @property
    def total_revenue(self) -> float:
        return sum(t.total_retail for t in self.tiers)

    @property
    def total_profit(self) -> float:
        return sum(t.current_profit for t in self.tiers)

    @property
    def part_count(self) -> int:
        return sum(t.part_count for t in self.tiers)

    @property
    def current_margin(self) -> float:
        revenue = self.total_revenue
        if revenue <= 0:
            return 0.0
        return (revenue - self.total_cost) / revenue * 100.0


@dataclass(frozen=True)
class TargetSpec:
    """How the caller expresses the profit goal."""
    kind: str  # "percent", "margin" or "dollar"
    value: float

    KINDS = ('percent', 'margin', 'dollar')

    def __post_init__(self):
        if self.kind not in self.KINDS:
            raise ValueError(f"Unknown target kind '{self.kind}' (expected one of {', '.join(self.KINDS)})")


@dataclass(frozen=True)
class RecommendationTier(TierAnalysis):
    """Solver output for a single tier."""
    new_multiplier: float = 0.0
    new_gross_profit_pct: float = 0.0
    multiplier_change: float = 0.0
    margin_change: float = 0.0
    projected_profit: float = 0.0
    is_locked: bool = False
    impact_score: float = 0.0


@dataclass
class RecommendationSet:
    """Complete result of one solve."""
    current_profit: float
    target_profit: float
    projected_profit: float
    profit_increase: float
    percent_increase: float
    tiers: list[RecommendationTier]
    current_revenue: float
    current_cost: float

    # Solver diagnostics
    iterations: int = 0
    converged: bool = False
    residual_gap: float = 0.0
    locked_tier_ids: list[int] = field(default_factory=list)

    def get_tier(self, tier_id: int) -> Optional[RecommendationTier]:
        for tier in self.tiers:
            if tier.id == tier_id:
                return tier
        return None

    def to_frame(self) -> pd.DataFrame:
        """Recommended matrix as a DataFrame, one row per tier."""
        return pd.DataFrame([
            {
                'Tier': t.id,
                'Cost Range': t.range_label(),
                'Current Multiplier': t.multiplier,
                'New Multiplier': t.new_multiplier,
                'Current GP%': round(t.gross_profit_pct, 1),
                'New GP%': t.new_gross_profit_pct,
                'Revenue Share%': round(t.revenue_share, 1),
                'Projected Profit': t.projected_profit,
                'Locked': t.is_locked,
            }
            for t in self.tiers
        ])
