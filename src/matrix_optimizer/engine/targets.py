"""
Target Resolver - turns a TargetSpec into a single target-profit figure.
"""
from typing import Optional

from ..config.settings import get_settings, Settings
from .models import TargetSpec


def resolve_target_profit(
    target: TargetSpec,
    current_profit: float,
    current_cost: float,
    settings: Optional[Settings] = None,
) -> float:
    """
    Compute the profit goal for a target.

    - percent: grow current profit by `value` percent
    - margin:  reach `value` percent gross margin on the current cost base
    - dollar:  add `value` dollars to current profit

    A margin target below the current margin yields a target under the
    current profit. That is allowed; the solver never lowers prices, so
    the result simply shows no change.
    """
    settings = settings or get_settings()

    if target.kind == 'percent':
        return current_profit * (1 + target.value / 100)

    if target.kind == 'margin':
        margin = min(target.value / 100, settings.max_target_margin)
        target_revenue = current_cost / (1 - margin)
        return target_revenue - current_cost

    return current_profit + target.value
