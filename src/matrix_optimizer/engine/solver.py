"""
Allocation Solver - recommends new tier multipliers that reach a target profit.

Two phases:
1. A single weighted pass that spreads the required overall increase
   across tiers by revenue share and margin headroom.
2. A bounded correction loop that nudges unlocked tiers up or down until
   projected profit is within tolerance of the target.

Multipliers never drop below the tier's current matrix value, never rise
past max_multiplier_ratio x that value, and never imply more than
max_gross_profit_pct gross profit. Locked tiers keep their pinned value.
"""
import logging
import math
from dataclasses import dataclass, asdict
from typing import Optional, Union

from ..config.settings import get_settings, Settings
from .models import (
    TierAnalysis,
    MatrixAnalysis,
    RecommendationTier,
    RecommendationSet,
    gross_profit_from_multiplier,
    multiplier_from_gross_profit,
)

logger = logging.getLogger(__name__)


# Float slack when checking whether a tier already sits on a bound
EPSILON = 1e-9


@dataclass
class _WorkingTier:
    """Mutable per-tier state while solving."""
    analysis: TierAnalysis
    new_multiplier: float
    new_gross_profit_pct: float
    projected_profit: float
    locked: bool = False

    @property
    def movable(self) -> bool:
        return not self.locked and self.analysis.actual_multiplier is not None


def project_profit(tier: TierAnalysis, new_multiplier: float) -> float:
    """
    Profit the tier would earn at a new matrix multiplier.

    Scales the tier's realized revenue by new/old matrix multiplier rather
    than applying the matrix multiplier to cost, because observed
    sell-through rarely matches the nominal matrix value. Tiers without
    sales keep their current profit.
    """
    if tier.actual_multiplier is None:
        return tier.current_profit
    return tier.total_retail * (new_multiplier / tier.multiplier) - tier.total_cost


class AllocationSolver:
    """Heuristic multi-tier solver. Stateless apart from its settings."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.margin_cap_multiplier = multiplier_from_gross_profit(self.settings.max_gross_profit_pct)

    def cap_multiplier(self, multiplier: float, original: float) -> tuple[float, float]:
        """
        Clamp a candidate multiplier to the tier's bounds.

        Returns (multiplier, gross_profit_pct).
        """
        upper = original * self.settings.max_multiplier_ratio
        multiplier = min(max(multiplier, original), upper)
        gross_profit = gross_profit_from_multiplier(multiplier)

        if gross_profit > self.settings.max_gross_profit_pct:
            if original <= self.margin_cap_multiplier:
                multiplier = self.margin_cap_multiplier
                gross_profit = self.settings.max_gross_profit_pct
            else:
                # Already past the margin cap; never-decrease wins
                multiplier = original
                gross_profit = gross_profit_from_multiplier(original)

        return multiplier, gross_profit

    def solve(
        self,
        analysis: Union[MatrixAnalysis, list[TierAnalysis]],
        target_profit: float,
        locks: Optional[dict[int, float]] = None,
    ) -> RecommendationSet:
        """
        Solve for new tier multipliers.

        Args:
            analysis: Tier aggregates (MatrixAnalysis or list of TierAnalysis)
            target_profit: Profit goal from the Target Resolver
            locks: tier id -> pinned multiplier

        Returns:
            RecommendationSet. Running out of iterations is not an error;
            the closest state found is returned with converged=False.
        """
        tiers = analysis.tiers if isinstance(analysis, MatrixAnalysis) else list(analysis)
        locks = dict(locks or {})

        current_cost = sum(t.total_cost for t in tiers)
        current_revenue = sum(t.total_retail for t in tiers)
        current_profit = sum(t.current_profit for t in tiers)

        working = self._initial_distribution(tiers, target_profit, locks, current_cost, current_revenue)
        iterations = self._enforce_target(working, target_profit)

        return self._finalize(
            working, target_profit, iterations, locks,
            current_profit, current_revenue, current_cost,
        )

    def _initial_distribution(self, tiers, target_profit, locks, current_cost, current_revenue) -> list[_WorkingTier]:
        """Phase A: one weighted pass toward the overall target multiplier."""
        s = self.settings

        overall_now = current_revenue / current_cost if current_cost > 0 else 1.0
        overall_target = 1 + target_profit / current_cost if current_cost > 0 else 1.0
        ratio = overall_target / overall_now if overall_now else 1.0

        logger.debug(
            "Algorithm: target_profit=%.2f overall_now=%.4f overall_target=%.4f ratio=%.4f",
            target_profit, overall_now, overall_target, ratio,
        )

        working = []
        for tier in tiers:
            if tier.id in locks:
                pinned = locks[tier.id]
                working.append(_WorkingTier(
                    analysis=tier,
                    new_multiplier=pinned,
                    new_gross_profit_pct=gross_profit_from_multiplier(pinned),
                    projected_profit=project_profit(tier, pinned),
                    locked=True,
                ))
                continue

            if tier.actual_multiplier is None:
                working.append(_WorkingTier(
                    analysis=tier,
                    new_multiplier=tier.multiplier,
                    new_gross_profit_pct=tier.gross_profit_pct,
                    projected_profit=project_profit(tier, tier.multiplier),
                ))
                continue

            actual_margin = (tier.total_retail - tier.total_cost) / tier.total_retail * 100
            volume_weight = tier.revenue_share / 100
            # Lower realized margin means more room to raise
            headroom_weight = 1 - actual_margin / 100
            combined_weight = s.volume_weight * volume_weight + s.headroom_weight * headroom_weight

            weighted_increase = (ratio - 1) * (s.base_increase_weight + combined_weight)
            new_multiplier, new_gp = self.cap_multiplier(
                tier.multiplier * (1 + weighted_increase), tier.multiplier
            )

            working.append(_WorkingTier(
                analysis=tier,
                new_multiplier=new_multiplier,
                new_gross_profit_pct=new_gp,
                projected_profit=project_profit(tier, new_multiplier),
            ))

        return working

    def _enforce_target(self, working: list[_WorkingTier], target_profit: float) -> int:
        """
        Phase B: nudge unlocked tiers until projected profit is within tolerance.

        Leaves `working` at the closest state seen and returns the number of
        iterations that moved at least one tier.
        """
        s = self.settings
        tolerance = s.convergence_tolerance * abs(target_profit)

        projected = sum(w.projected_profit for w in working)
        best_gap = abs(projected - target_profit)
        best_state = self._snapshot(working)
        iterations = 0

        while abs(projected - target_profit) > tolerance and iterations < s.max_iterations:
            gap = target_profit - projected
            is_under = gap > 0
            relative_gap = abs(gap) / abs(target_profit) if target_profit else math.inf
            step = s.coarse_step if relative_gap > s.coarse_gap_threshold else s.fine_step

            moved = False
            for w in working:
                if not w.movable:
                    continue
                original = w.analysis.multiplier

                if is_under:
                    at_margin_cap = w.new_gross_profit_pct >= s.max_gross_profit_pct - EPSILON
                    at_ratio_cap = w.new_multiplier >= original * s.max_multiplier_ratio - EPSILON
                    if at_margin_cap or at_ratio_cap:
                        continue
                    candidate = w.new_multiplier * (1 + step)
                else:
                    if w.new_multiplier <= original + EPSILON:
                        continue
                    candidate = w.new_multiplier * (1 - step)

                w.new_multiplier, w.new_gross_profit_pct = self.cap_multiplier(candidate, original)
                w.projected_profit = project_profit(w.analysis, w.new_multiplier)
                moved = True

            if not moved:
                logger.debug("No tier can move further toward the target; stopping")
                break

            iterations += 1
            projected = sum(w.projected_profit for w in working)
            if abs(projected - target_profit) < best_gap:
                best_gap = abs(projected - target_profit)
                best_state = self._snapshot(working)

        self._restore(working, best_state)

        if best_gap > tolerance and iterations >= s.max_iterations:
            logger.warning("Iteration budget (%d) exhausted; closest gap %.2f", s.max_iterations, best_gap)
        logger.info("Target enforcement finished after %d iterations, gap %.2f", iterations, best_gap)
        return iterations

    @staticmethod
    def _snapshot(working: list[_WorkingTier]) -> list[tuple[float, float, float]]:
        return [(w.new_multiplier, w.new_gross_profit_pct, w.projected_profit) for w in working]

    @staticmethod
    def _restore(working: list[_WorkingTier], state: list[tuple[float, float, float]]):
        for w, (multiplier, gross_profit, projected) in zip(working, state):
            w.new_multiplier = multiplier
            w.new_gross_profit_pct = gross_profit
            w.projected_profit = projected

    def _finalize(self, working, target_profit, iterations, locks,
                  current_profit, current_revenue, current_cost) -> RecommendationSet:
        """Phase C: round, compute deltas and impact, assemble the result."""
        unrounded_projected = sum(w.projected_profit for w in working)
        converged = abs(unrounded_projected - target_profit) <= self.settings.convergence_tolerance * abs(target_profit)

        tiers = []
        for w in working:
            tier = w.analysis
            new_multiplier = round(w.new_multiplier, 2)
            new_gp = round(w.new_gross_profit_pct, 1)
            margin_change = round(new_gp - tier.gross_profit_pct, 1)

            tiers.append(RecommendationTier(
                **asdict(tier),
                new_multiplier=new_multiplier,
                new_gross_profit_pct=new_gp,
                multiplier_change=round(new_multiplier - tier.multiplier, 2),
                margin_change=margin_change,
                projected_profit=round(w.projected_profit, 2),
                is_locked=w.locked,
                impact_score=abs(margin_change) * tier.revenue_share / 100,
            ))

        projected_profit = sum(t.projected_profit for t in tiers)
        profit_increase = projected_profit - current_profit
        percent_increase = profit_increase / current_profit * 100 if current_profit else 0.0

        return RecommendationSet(
            current_profit=current_profit,
            target_profit=target_profit,
            projected_profit=projected_profit,
            profit_increase=profit_increase,
            percent_increase=percent_increase,
            tiers=tiers,
            current_revenue=current_revenue,
            current_cost=current_cost,
            iterations=iterations,
            converged=converged,
            residual_gap=target_profit - projected_profit,
            locked_tier_ids=sorted(t.id for t in tiers if t.is_locked),
        )
