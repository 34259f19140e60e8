import pytest
import sys
import os

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from matrix_optimizer.config.settings import Settings, get_settings, reset_settings


def test_defaults():
    settings = Settings.load()
    assert settings.max_iterations == 50
    assert settings.max_multiplier_ratio == 1.5
    assert settings.max_gross_profit_pct == 95.0
    assert settings.min_pin_multiplier == 1.01
    assert settings.max_pin_multiplier == 20.0
    assert settings.sample_data.name == 'auto_parts_sales.csv'


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("MATRIX_OPTIMIZER_MAX_ITERATIONS", "10")
    monkeypatch.setenv("MATRIX_OPTIMIZER_COARSE_STEP", "0.02")
    settings = Settings.load()
    assert settings.max_iterations == 10
    assert settings.coarse_step == 0.02


def test_invalid_override(monkeypatch):
    monkeypatch.setenv("MATRIX_OPTIMIZER_MAX_ITERATIONS", "lots")
    with pytest.raises(ValueError):
        Settings.load()


def test_shared_instance():
    assert get_settings() is get_settings()
    assert 'project_root' not in get_settings().as_dict()


def test_reset_reloads_from_environment(monkeypatch):
    monkeypatch.setenv("MATRIX_OPTIMIZER_MAX_ITERATIONS", "12")
    reset_settings()
    try:
        assert get_settings().max_iterations == 12
    finally:
        monkeypatch.delenv("MATRIX_OPTIMIZER_MAX_ITERATIONS")
        reset_settings()
    assert get_settings().max_iterations == 50
