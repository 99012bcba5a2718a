"""
Solver configuration models using Pydantic.

These models validate and load YAML configuration for the fluidic network
solver: fluid properties, tubing materials, junction constants, pump
defaults, numerics, diagnostics thresholds and display colours.
"""

from typing import Dict, Optional
from pydantic import BaseModel, Field, field_validator, model_validator


# =============================================================================
# Fluid Properties
# =============================================================================

class FluidProperties(BaseModel):
    """Working fluid properties (incompressible, Newtonian)."""

    name: str = Field(default="water", description="Fluid name")
    density_kg_per_m3: float = Field(default=1000.0, gt=0, description="Density (kg/m³)")
    viscosity_pa_s: float = Field(default=0.001, gt=0, description="Dynamic viscosity (Pa·s)")

    @property
    def kinematic_viscosity(self) -> float:
        """Kinematic viscosity ν = μ/ρ in m²/s."""
        return self.viscosity_pa_s / self.density_kg_per_m3


# =============================================================================
# Tubing
# =============================================================================

class TubingMaterial(BaseModel):
    """Tubing type for one material."""

    name: str = Field(..., description="Material name (e.g., 'silicone')")
    inner_diameter_mm: float = Field(..., gt=0, description="Inner diameter (mm)")
    display_name: Optional[str] = None

    @property
    def inner_radius_m(self) -> float:
        """Inner radius in meters."""
        return self.inner_diameter_mm * 1e-3 / 2.0


# =============================================================================
# Component Constants
# =============================================================================

class JunctionConfig(BaseModel):
    """
    Internal resistance of junction chips (Pa·s/m³).

    Zero means the internally connected ports share one pressure node.
    A positive value models the junction as a hub joined to each port
    through that resistance.
    """

    t_junction_resistance_pa_s_per_m3: float = Field(default=0.0, ge=0)
    x_junction_resistance_pa_s_per_m3: float = Field(default=0.0, ge=0)


class PumpDefaults(BaseModel):
    """Fallbacks for pressure-driven pumps."""

    default_port_pressure_pa: float = Field(
        default=20000.0,
        description="Pressure applied to a pump port with no configured value (Pa)"
    )


# =============================================================================
# Numerics and Diagnostics
# =============================================================================

class NumericsConfig(BaseModel):
    """Linear-solve settings."""

    rectangular_series_terms: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Odd terms summed in the rectangular-duct series"
    )
    residual_tolerance: float = Field(
        default=1e-9,
        gt=0,
        description="Max relative residual accepted from the linear solve"
    )
    scale_system: bool = Field(
        default=True,
        description="Normalize conductances and pressures before factorization"
    )
    refinement_steps: int = Field(default=1, ge=0, le=5)


class DiagnosticsConfig(BaseModel):
    """Thresholds for result warnings."""

    min_resistance_pa_s_per_m3: float = Field(default=1e6, gt=0)
    max_resistance_pa_s_per_m3: float = Field(default=1e16, gt=0)
    near_zero_flow_m3_s: float = Field(default=1e-15, ge=0)

    @model_validator(mode='after')
    def validate_range(self):
        """Ensure the sane resistance range is not empty."""
        if self.min_resistance_pa_s_per_m3 >= self.max_resistance_pa_s_per_m3:
            raise ValueError(
                "min_resistance_pa_s_per_m3 must be less than max_resistance_pa_s_per_m3"
            )
        return self


class DisplayConfig(BaseModel):
    """Colours used by the presentation layer."""

    flow_color_low: str = "#64b5f6"
    flow_color_high: str = "#d32f2f"
    flow_color_zero: str = "#a0a0a0"
    color_no_data: str = "#d0d0d0"
    pressure_color_low: str = "#003c7e"
    pressure_color_high: str = "#b91c1c"
    zero_flow_threshold_m3_s: float = Field(default=1e-13, ge=0)
    relative_epsilon: float = Field(default=1e-9, gt=0)

    @field_validator(
        'flow_color_low', 'flow_color_high', 'flow_color_zero',
        'color_no_data', 'pressure_color_low', 'pressure_color_high'
    )
    @classmethod
    def check_hex_color(cls, v):
        """Colours are '#rgb' or '#rrggbb'."""
        digits = v.lstrip('#')
        if len(digits) not in (3, 6) or any(c not in '0123456789abcdefABCDEF' for c in digits):
            raise ValueError(f"Not a hex colour: {v!r}")
        return v


# =============================================================================
# Preset Values
# =============================================================================

FLUID_PRESETS = {
    "water": FluidProperties(
        name="water",
        density_kg_per_m3=1000.0,
        viscosity_pa_s=0.001
    ),
}

TUBING_PRESETS = {
    "silicone": TubingMaterial(name="silicone", inner_diameter_mm=1.0,
                               display_name="Silicone tubing (1.0 mm ID)"),
    "ptfe": TubingMaterial(name="ptfe", inner_diameter_mm=0.8,
                           display_name="PTFE tubing (0.8 mm ID)"),
    "peek": TubingMaterial(name="peek", inner_diameter_mm=0.6,
                           display_name="PEEK tubing (0.6 mm ID)"),
}


# =============================================================================
# Root Configuration
# =============================================================================

class SolverConfig(BaseModel):
    """Complete solver configuration."""

    fluid: FluidProperties = Field(default_factory=lambda: FLUID_PRESETS["water"].model_copy())
    tubing_materials: Dict[str, TubingMaterial] = Field(
        default_factory=lambda: {k: v.model_copy() for k, v in TUBING_PRESETS.items()}
    )
    junctions: JunctionConfig = Field(default_factory=JunctionConfig)
    pumps: PumpDefaults = Field(default_factory=PumpDefaults)
    numerics: NumericsConfig = Field(default_factory=NumericsConfig)
    diagnostics: DiagnosticsConfig = Field(default_factory=DiagnosticsConfig)
    display: DisplayConfig = Field(default_factory=DisplayConfig)

    @field_validator('tubing_materials')
    @classmethod
    def normalize_material_keys(cls, v):
        """Material lookup is case-insensitive; store lower-case keys."""
        if not v:
            raise ValueError("At least one tubing material is required")
        return {k.strip().lower(): m for k, m in v.items()}

    # Convenience properties for easier access
    @property
    def viscosity_pa_s(self) -> float:
        """Fluid dynamic viscosity (Pa·s)."""
        return self.fluid.viscosity_pa_s


# =============================================================================
# Utility Functions
# =============================================================================

def load_solver_config(filepath: str) -> SolverConfig:
    """Load and validate solver configuration from YAML file."""
    import yaml

    with open(filepath, 'r') as f:
        data = yaml.safe_load(f) or {}

    return SolverConfig(**data)
