"""
Configuration loader for solver parameters.

Provides centralized access to solver defaults and ensures
consistency across the library, scripts and UI components.
"""

import yaml
from pathlib import Path
from typing import Dict, Any

from .models.config import SolverConfig, TubingMaterial

_CONFIG_DIR = Path(__file__).parent / "configs"
_DEFAULTS_FILE = _CONFIG_DIR / "solver_defaults.yaml"

# Designs shipped with the repository (not part of the installed package)
DESIGNS_DIR = Path(__file__).parent.parent.parent / "configs" / "designs"

# Cache the config to avoid repeated file reads
_cached_config: Dict[str, Any] = None


def load_defaults() -> Dict[str, Any]:
    """
    Load solver defaults from YAML config.

    Returns:
        Dict with all default parameters
    """
    global _cached_config

    if _cached_config is None:
        with open(_DEFAULTS_FILE) as f:
            _cached_config = yaml.safe_load(f)

    return _cached_config


def get_solver_config(overrides: Dict[str, Any] = None) -> SolverConfig:
    """
    Build a validated SolverConfig from the packaged defaults.

    Args:
        overrides: Optional top-level sections replacing the defaults
                   (e.g. {"fluid": {"viscosity_pa_s": 0.002}})

    Returns:
        SolverConfig instance
    """
    data = {k: v for k, v in load_defaults().items() if k != "ui_text"}
    if overrides:
        for section, values in overrides.items():
            if isinstance(values, dict) and isinstance(data.get(section), dict):
                data[section] = {**data[section], **values}
            else:
                data[section] = values
    return SolverConfig(**data)


def get_tubing_materials() -> Dict[str, TubingMaterial]:
    """
    Get available tubing materials.

    Returns:
        Dict mapping material name → TubingMaterial
    """
    return get_solver_config().tubing_materials


def get_display_config() -> Dict[str, Any]:
    """
    Get display colour configuration.

    Returns:
        Dict with display parameters
    """
    config = load_defaults()
    return config["display"]


def get_ui_text(n_components: int = 0, n_connections: int = 0) -> Dict[str, str]:
    """
    Get formatted UI title and subtitle.

    Args:
        n_components: Number of placed components
        n_connections: Number of tubing connections

    Returns:
        Dict with 'title' and 'subtitle'
    """
    config = load_defaults()
    text = config["ui_text"]
    return {
        "title": text["title"],
        "subtitle": text["subtitle"].format(
            n_components=n_components,
            n_connections=n_connections
        ),
    }


def list_example_designs() -> Dict[str, Path]:
    """
    List example design files.

    Returns:
        Dict mapping design stem → path (empty if the designs folder is absent)
    """
    if not DESIGNS_DIR.is_dir():
        return {}
    return {p.stem: p for p in sorted(DESIGNS_DIR.glob("*.yaml"))}


if __name__ == "__main__":
    # Test config loading
    print("=== Solver Configuration ===")
    cfg = get_solver_config()
    print(f"Fluid: {cfg.fluid.name}, μ={cfg.viscosity_pa_s:.2e} Pa·s")
    print(f"Tubing materials: {sorted(cfg.tubing_materials)}")
    print(f"Display: {get_display_config()}")
    print(f"Example designs: {list(list_example_designs())}")
