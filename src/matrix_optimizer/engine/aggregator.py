"""
Tier Aggregator - buckets PartRecords into the matrix's cost tiers.
"""
import logging
from typing import Iterable

import pandas as pd

from .models import PartRecord, PricingTier, TierAnalysis, MatrixAnalysis

logger = logging.getLogger(__name__)


RECORD_COLUMNS = ['unit_cost', 'unit_retail', 'qty', 'total_cost', 'total_retail']


def records_frame(records: Iterable[PartRecord]) -> pd.DataFrame:
    """Build the working DataFrame, one row per record."""
    return pd.DataFrame(
        [(r.unit_cost, r.unit_retail, r.qty, r.total_cost, r.total_retail) for r in records],
        columns=RECORD_COLUMNS,
    )


def aggregate_tiers(matrix: list[PricingTier], records: Iterable[PartRecord]) -> MatrixAnalysis:
    """
    Aggregate records into tiers by unit cost.

    A record is counted in every tier whose [min_cost, max_cost] range holds
    its unit cost. Records that land in no tier (gaps in the matrix) are
    left out of all tier totals and reported as unclassified.
    """
    df = records_frame(records)
    claimed = pd.Series(False, index=df.index)

    partial = []
    for tier in matrix:
        mask = df['unit_cost'].between(tier.min_cost, tier.max_cost, inclusive='both')
        claimed |= mask
        tier_parts = df[mask]

        total_cost = float(tier_parts['total_cost'].sum())
        total_retail = float(tier_parts['total_retail'].sum())
        current_margin = (total_retail - total_cost) / total_retail * 100 if total_retail > 0 else 0.0

        partial.append(dict(
            id=tier.id,
            min_cost=tier.min_cost,
            max_cost=tier.max_cost,
            multiplier=tier.multiplier,
            gross_profit_pct=tier.gross_profit_pct,
            part_count=int(mask.sum()),
            total_qty=float(tier_parts['qty'].sum()),
            total_cost=total_cost,
            total_retail=total_retail,
            current_margin=current_margin,
            current_profit=total_retail - total_cost,
        ))

    # Revenue share needs the total across all tiers first
    total_revenue = sum(t['total_retail'] for t in partial)
    tiers = [
        TierAnalysis(
            **t,
            revenue_share=(t['total_retail'] / total_revenue * 100) if total_revenue > 0 else 0.0,
        )
        for t in partial
    ]

    unclassified = df[~claimed]
    if len(unclassified):
        logger.warning(
            "%d records fall outside every tier range and were excluded from the analysis",
            len(unclassified),
        )

    return MatrixAnalysis(
        tiers=tiers,
        unclassified_count=int(len(unclassified)),
        unclassified_cost=float(unclassified['total_cost'].sum()),
        unclassified_retail=float(unclassified['total_retail'].sum()),
    )
