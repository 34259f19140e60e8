"""
Override Ledger - manual tier pins plus the target they are solved against.

The ledger is an immutable value owned by the caller and passed into every
solve. The first solve of a session stores its target profit; while any
pin is active that stored figure is reused, so pinning tier A and then
tier B both resolve against the same goal instead of a target re-derived
from whatever profit the previous pin produced.
"""
import logging
import math
from dataclasses import dataclass, field, replace
from typing import Iterable, Optional

from ..config.settings import get_settings, Settings
from .errors import InvalidPinError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OverrideLedger:
    """tier id -> pinned multiplier, and the stored target profit."""
    locks: dict[int, float] = field(default_factory=dict)
    stored_target_profit: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(self, 'locks', dict(self.locks))

    @property
    def has_locks(self) -> bool:
        return bool(self.locks)

    def with_lock(self, tier_id: int, multiplier: float) -> 'OverrideLedger':
        locks = dict(self.locks)
        locks[tier_id] = multiplier
        return replace(self, locks=locks)

    def without_lock(self, tier_id: int) -> 'OverrideLedger':
        locks = {k: v for k, v in self.locks.items() if k != tier_id}
        return replace(self, locks=locks)

    def with_target(self, target_profit: float) -> 'OverrideLedger':
        return replace(self, stored_target_profit=target_profit)

    def cleared(self) -> 'OverrideLedger':
        """Drop every pin and the stored target together."""
        logger.debug("Ledger reset: %d locks cleared", len(self.locks))
        return OverrideLedger()

    def to_dict(self) -> dict:
        return {
            "locks": {str(k): v for k, v in self.locks.items()},
            "stored_target_profit": self.stored_target_profit,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'OverrideLedger':
        if not data:
            return cls()
        locks = {int(k): float(v) for k, v in (data.get('locks') or {}).items()}
        stored = data.get('stored_target_profit')
        return cls(locks=locks, stored_target_profit=float(stored) if stored is not None else None)


def validate_pin(multiplier: float, settings: Optional[Settings] = None) -> float:
    """Check a manual multiplier against the allowed pin range."""
    settings = settings or get_settings()
    try:
        value = float(multiplier)
    except (TypeError, ValueError):
        raise InvalidPinError(f"Multiplier must be a number, got {multiplier!r}")

    if not math.isfinite(value):
        raise InvalidPinError(f"Multiplier must be a finite number, got {multiplier!r}")

    low, high = settings.min_pin_multiplier, settings.max_pin_multiplier
    if not low <= value <= high:
        raise InvalidPinError(f"Multiplier {value:g} is outside the allowed range {low:g} - {high:g}")
    return value


def validate_ledger(
    ledger: OverrideLedger,
    tier_ids: Iterable[int],
    settings: Optional[Settings] = None,
) -> OverrideLedger:
    """
    Check every pin in a ledger that came from outside the engine.

    Each lock must name a tier in `tier_ids` and hold a multiplier in the
    pin range. Returns the ledger with its multipliers as floats.
    """
    known = set(tier_ids)
    locks = {}
    for tier_id, multiplier in ledger.locks.items():
        if tier_id not in known:
            raise InvalidPinError(f"Tier {tier_id} does not exist in the current matrix")
        locks[tier_id] = validate_pin(multiplier, settings)
    return replace(ledger, locks=locks)
