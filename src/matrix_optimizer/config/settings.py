"""
Centralized settings for the matrix optimizer.

Every engine component accepts an optional Settings instance and falls
back to the shared one returned by get_settings().
"""
import os
from pathlib import Path
from dataclasses import dataclass, fields, replace
from typing import Optional


ENV_PREFIX = "MATRIX_OPTIMIZER_"


def get_project_root() -> Path:
    """Get the project root directory (where pyproject.toml lives)."""
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / 'pyproject.toml').exists():
            return parent
    # Fallback to 4 levels up from this file
    return Path(__file__).resolve().parent.parent.parent.parent


@dataclass(frozen=True)
class Settings:
    """Engine tunables with the defaults the optimizer ships with."""

    project_root: Path
    sample_data: Path

    # Ingestion
    header_scan_lines: int = 10
    reconcile_tolerance: float = 0.5
    min_file_total: float = 0.01

    # Phase A weighting
    volume_weight: float = 0.6
    headroom_weight: float = 0.4
    base_increase_weight: float = 0.5

    # Caps
    max_multiplier_ratio: float = 1.5
    max_gross_profit_pct: float = 95.0
    max_target_margin: float = 0.95

    # Phase B iteration
    convergence_tolerance: float = 0.005
    max_iterations: int = 50
    coarse_step: float = 0.015
    fine_step: float = 0.005
    coarse_gap_threshold: float = 0.05

    # Manual pins
    min_pin_multiplier: float = 1.01
    max_pin_multiplier: float = 20.0

    # Matrix size
    min_tiers: int = 2
    max_tiers: int = 10

    @classmethod
    def load(cls, project_root: Optional[Path] = None) -> 'Settings':
        """Load settings, applying MATRIX_OPTIMIZER_* environment overrides."""
        root = project_root or get_project_root()
        settings = cls(
            project_root=root,
            sample_data=root / 'tests' / 'data' / 'auto_parts_sales.csv',
        )

        overrides = {}
        for f in fields(cls):
            if f.name in ('project_root', 'sample_data'):
                continue
            raw = os.environ.get(ENV_PREFIX + f.name.upper())
            if raw is None or not raw.strip():
                continue
            caster = int if f.type in (int, 'int') else float
            try:
                overrides[f.name] = caster(raw)
            except ValueError:
                raise ValueError(f"Invalid value for {ENV_PREFIX}{f.name.upper()}: {raw!r}")

        return replace(settings, **overrides) if overrides else settings

    def as_dict(self) -> dict:
        """Tunables only, for status endpoints and reports."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name not in ('project_root', 'sample_data')
        }


# Default settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def reset_settings():
    """Drop the cached instance so the next get_settings() reloads."""
    global _settings
    _settings = None
