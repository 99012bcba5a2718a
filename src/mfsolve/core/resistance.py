"""
Hydraulic resistance of microchannels and tubing.

Laminar, incompressible (Hagen-Poiseuille) flow: ΔP = R_h · Q.
All functions are pure. Non-positive dimensions yield NaN rather than
an exception so that callers can report them as data.
"""

import math
from typing import Mapping, Optional

from ..models.config import TubingMaterial, TUBING_PRESETS

# Water at 20°C (Pa·s)
DEFAULT_VISCOSITY_PA_S = 0.001

# Beyond this aspect ratio the series correction is below double precision
_WIDE_DUCT_ASPECT = 1e3


class UnknownMaterialError(KeyError):
    """Tubing material is not in the material lookup."""

    def __init__(self, material: str, available):
        self.material = material
        self.available = sorted(available)
        super().__init__(material)

    def __str__(self) -> str:
        return (
            f"Unknown tubing material {self.material!r} "
            f"(available: {', '.join(self.available)})"
        )


def rectangular_channel_resistance(length_m: float, width_m: float, depth_m: float,
                                   viscosity_pa_s: float = DEFAULT_VISCOSITY_PA_S,
                                   n_terms: int = 50) -> float:
    """
    Hydraulic resistance of a rectangular channel.

    Exact series solution for fully developed laminar flow:

        R_h = 12 μ L / (W H³ (1 - (192 H / (π⁵ W)) Σ tanh(n π W / (2H)) / n⁵))

    summed over odd n, where W >= H (the formula is symmetric, so width
    and depth may be given in either order). For α = H/W → 0 the
    correction tends to 1 (parallel plates); for α = 1 it is ≈ 0.422.

    Reference: Bruus, "Theoretical Microfluidics" (2008), Section 4.4.4

    Args:
        length_m: Channel length (m)
        width_m: Channel width (m)
        depth_m: Channel depth (m)
        viscosity_pa_s: Dynamic viscosity (Pa·s)
        n_terms: Number of odd terms in the series

    Returns:
        Hydraulic resistance (Pa·s/m³), NaN if any input is not positive
    """
    if not (length_m > 0 and width_m > 0 and depth_m > 0 and viscosity_pa_s > 0):
        return math.nan

    W = max(width_m, depth_m)
    H = min(width_m, depth_m)
    alpha = H / W

    base = 12.0 * viscosity_pa_s * length_m / (W * H ** 3)

    if alpha * _WIDE_DUCT_ASPECT < 1.0:
        # Wide duct: tanh(...) = 1 for every term, Σ 1/n⁵ over odd n
        series = sum(1.0 / n ** 5 for n in range(1, 2 * n_terms, 2))
    else:
        series = sum(
            math.tanh(n * math.pi / (2.0 * alpha)) / n ** 5
            for n in range(1, 2 * n_terms, 2)
        )

    correction = 1.0 - (192.0 / math.pi ** 5) * alpha * series
    return base / correction


def circular_tube_resistance(length_m: float, radius_m: float,
                             viscosity_pa_s: float = DEFAULT_VISCOSITY_PA_S) -> float:
    """
    Hydraulic resistance of a circular tube (Hagen-Poiseuille).

    R = 8 μ L / (π r⁴)

    Args:
        length_m: Tube length (m)
        radius_m: Inner radius (m)
        viscosity_pa_s: Dynamic viscosity (Pa·s)

    Returns:
        Hydraulic resistance (Pa·s/m³), NaN if any input is not positive
    """
    if not (length_m > 0 and radius_m > 0 and viscosity_pa_s > 0):
        return math.nan
    return 8.0 * viscosity_pa_s * length_m / (math.pi * radius_m ** 4)


def lookup_tubing_material(material: str,
                           materials: Optional[Mapping[str, TubingMaterial]] = None) -> TubingMaterial:
    """
    Find the tubing type for a material name (case-insensitive).

    Raises:
        UnknownMaterialError: If the material is not in the lookup
    """
    table = TUBING_PRESETS if materials is None else materials
    key = str(material).strip().lower()
    if key not in table:
        raise UnknownMaterialError(material, table.keys())
    return table[key]


def tubing_inner_diameter_mm(material: str,
                             materials: Optional[Mapping[str, TubingMaterial]] = None) -> float:
    """Inner diameter (mm) of the tubing type for a material."""
    return lookup_tubing_material(material, materials).inner_diameter_mm


def tubing_resistance(length_m: float, material: str,
                      viscosity_pa_s: float = DEFAULT_VISCOSITY_PA_S,
                      materials: Optional[Mapping[str, TubingMaterial]] = None) -> float:
    """
    Hydraulic resistance of a length of tubing.

    The inner diameter comes from the material lookup; resistance is
    linear in length.

    Args:
        length_m: Tubing length (m)
        material: Material name ('silicone', 'ptfe', 'peek', ...)
        viscosity_pa_s: Dynamic viscosity (Pa·s)
        materials: Optional material table (defaults to TUBING_PRESETS)

    Returns:
        Hydraulic resistance (Pa·s/m³), NaN for non-positive length

    Raises:
        UnknownMaterialError: If the material is not in the lookup
    """
    tubing = lookup_tubing_material(material, materials)
    return circular_tube_resistance(length_m, tubing.inner_radius_m, viscosity_pa_s)
