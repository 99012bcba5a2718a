"""
Display units and colour mapping for solver results.

Pure formatting helpers for the UI: they read pressures and flows from
a result and never recompute them.
"""

import math
from typing import Iterable, Optional, Tuple

from ..models.config import DisplayConfig

PASCAL_TO_MBAR = 0.01
MBAR_TO_PASCAL = 100.0
MBAR_TO_BAR = 0.001

# m³/s → µL/min and nL/min
M3S_TO_ULMIN = 6e10
M3S_TO_NLMIN = 6e13

_DEFAULT_DISPLAY = DisplayConfig()


# =============================================================================
# Formatting
# =============================================================================

def format_pressure(pressure_pa: float) -> str:
    """
    Format a pressure for display (mbar, or bar from 1000 mbar up).

    Args:
        pressure_pa: Pressure (Pa)

    Returns:
        e.g. '12.50 mbar', '1.20 bar', 'n/a' for NaN
    """
    if pressure_pa is None or not math.isfinite(pressure_pa):
        return "n/a"

    pressure_mbar = pressure_pa * PASCAL_TO_MBAR
    if abs(pressure_mbar) >= 1000:
        pressure_bar = pressure_mbar * MBAR_TO_BAR
        return f"{pressure_bar:.2f} bar"
    if abs(pressure_mbar) < 0.001 and pressure_mbar != 0:
        return f"{pressure_mbar:.1e} mbar"
    return f"{pressure_mbar:.2f} mbar"


def format_flow_rate(flow_m3_s: float) -> str:
    """
    Format a flow-rate magnitude with an adaptive unit.

    Uses pL/min below 1 nL/min, then nL, µL, mL and L per minute,
    switching unit at 1000 of the smaller one.

    Args:
        flow_m3_s: Flow rate (m³/s); the sign is ignored

    Returns:
        e.g. '3.60 µL/min', 'n/a' for NaN
    """
    if flow_m3_s is None or not math.isfinite(flow_m3_s):
        return "n/a"

    abs_flow = abs(flow_m3_s)
    pl_per_min = abs_flow * M3S_TO_NLMIN * 1000
    nl_per_min = abs_flow * M3S_TO_NLMIN
    ul_per_min = abs_flow * M3S_TO_ULMIN
    ml_per_min = ul_per_min / 1000
    l_per_min = ml_per_min / 1000

    if pl_per_min < 1:
        return f"{pl_per_min:.2e} pL/min"
    elif pl_per_min < 1000:
        return f"{pl_per_min:.2f} pL/min"
    elif nl_per_min < 1000:
        return f"{nl_per_min:.2f} nL/min"
    elif ul_per_min < 1000:
        return f"{ul_per_min:.2f} µL/min"
    elif ml_per_min < 1000:
        return f"{ml_per_min:.2f} mL/min"
    else:
        return f"{l_per_min:.2f} L/min"


def format_flow_velocity(velocity_m_s: float) -> str:
    """Format a mean flow velocity with an adaptive unit (nm/s up to m/s)."""
    if velocity_m_s is None or not math.isfinite(velocity_m_s):
        return "n/a"

    m_per_s = abs(velocity_m_s)
    cm_per_s = m_per_s * 100
    mm_per_s = m_per_s * 1000
    um_per_s = mm_per_s * 1000
    nm_per_s = um_per_s * 1000

    if nm_per_s < 1:
        return f"{nm_per_s:.2e} nm/s"
    elif nm_per_s < 1000:
        return f"{nm_per_s:.2f} nm/s"
    elif um_per_s < 1000:
        return f"{um_per_s:.2f} µm/s"
    elif mm_per_s < 1000:
        return f"{mm_per_s:.2f} mm/s"
    elif cm_per_s < 1000:
        return f"{cm_per_s:.2f} cm/s"
    else:
        return f"{m_per_s:.2f} m/s"


def mean_velocity_m_s(flow_m3_s: float, width_um: float, depth_um: float) -> float:
    """Mean velocity Q/A in a rectangular channel (m/s), NaN if undefined."""
    area_m2 = width_um * 1e-6 * depth_um * 1e-6
    if not (area_m2 > 0) or not math.isfinite(flow_m3_s):
        return math.nan
    return flow_m3_s / area_m2


# =============================================================================
# Colours
# =============================================================================

def hex_to_rgb(hex_color: str) -> Optional[Tuple[int, int, int]]:
    """
    Parse '#rrggbb' or '#rgb'.

    Returns:
        (r, g, b) tuple, or None if the string is not a hex colour
    """
    digits = hex_color.replace('#', '')
    if len(digits) == 3:
        digits = ''.join(c + c for c in digits)
    if len(digits) != 6:
        return None
    try:
        return (int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16))
    except ValueError:
        return None


def interpolate_color(hex1: str, hex2: str, t: float) -> str:
    """
    Linearly interpolate between two hex colours.

    Args:
        hex1: Colour at t=0
        hex2: Colour at t=1
        t: Position, clamped to [0, 1]

    Returns:
        'rgb(r,g,b)' string (hex1 unchanged if either colour is invalid)
    """
    t = max(0.0, min(1.0, t))
    rgb1 = hex_to_rgb(hex1)
    rgb2 = hex_to_rgb(hex2)
    if rgb1 is None or rgb2 is None:
        return hex1
    r, g, b = (round(c1 + (c2 - c1) * t) for c1, c2 in zip(rgb1, rgb2))
    return f"rgb({r},{g},{b})"


def finite_range(values: Iterable[float]) -> Tuple[float, float]:
    """
    (min, max) of the finite values.

    Returns:
        (nan, nan) if there are none
    """
    finite = [v for v in values if v is not None and math.isfinite(v)]
    if not finite:
        return (math.nan, math.nan)
    return (min(finite), max(finite))


def flow_color(flow_m3_s: Optional[float], min_value: float, max_value: float,
               display: Optional[DisplayConfig] = None) -> str:
    """
    Colour for a flow magnitude within a [min, max] magnitude range.

    Args:
        flow_m3_s: Segment flow (sign ignored), None/NaN for no data
        min_value: Smallest magnitude in the displayed set
        max_value: Largest magnitude in the displayed set
        display: Colour settings

    Returns:
        Colour string
    """
    display = display or _DEFAULT_DISPLAY
    if flow_m3_s is None or not math.isfinite(flow_m3_s):
        return display.color_no_data

    abs_value = abs(flow_m3_s)
    zero_threshold = display.zero_flow_threshold_m3_s
    if abs_value < zero_threshold:
        return display.flow_color_zero

    if not (math.isfinite(min_value) and math.isfinite(max_value)) or min_value > max_value:
        return display.color_no_data
    if max_value < zero_threshold:
        return display.flow_color_zero

    value_range = max_value - min_value
    if max_value > 0 and value_range / max_value < display.relative_epsilon:
        # Uniform flow
        return display.flow_color_low

    t = (abs_value - min_value) / value_range if value_range > 0 else 0.0
    return interpolate_color(display.flow_color_low, display.flow_color_high, t)


def pressure_color(pressure_pa: Optional[float], min_pa: float, max_pa: float,
                   display: Optional[DisplayConfig] = None) -> str:
    """
    Colour for a pressure within a [min, max] range.

    Returns the no-data colour for NaN and the low colour when the
    range is empty or invalid.
    """
    display = display or _DEFAULT_DISPLAY
    if pressure_pa is None or not math.isfinite(pressure_pa):
        return display.color_no_data

    if not (math.isfinite(min_pa) and math.isfinite(max_pa)) or max_pa <= min_pa:
        return display.pressure_color_low

    t = (pressure_pa - min_pa) / (max_pa - min_pa)
    return interpolate_color(display.pressure_color_low, display.pressure_color_high, t)
