"""
Diagnostics for fluidic network solves.

Every problem found while building or solving a network becomes a
``Diagnostic`` record. Errors stop the affected part of the solve;
warnings are reported alongside valid results. Nothing here raises.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from .core.network import FluidicNetwork
from .models.config import DiagnosticsConfig
from .models.design import CircuitDesign, port_key

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    """Diagnostic severity."""
    ERROR = "error"
    WARNING = "warning"


class DiagnosticCode(str, Enum):
    """Diagnostic codes."""
    # Errors
    INVALID_GEOMETRY = "InvalidGeometry"
    UNKNOWN_MATERIAL = "UnknownMaterial"
    TOPOLOGY_ERROR = "TopologyError"
    NO_GROUND_REFERENCE = "NoGroundReference"  # warning when only one sub-network floats
    SINGULAR_SYSTEM = "SingularSystem"

    # Warnings
    RESISTANCE_OUT_OF_RANGE = "ResistanceOutOfRange"
    ISOLATED_COMPONENT = "IsolatedComponent"
    UNCONNECTED_COMPONENT = "UnconnectedComponent"
    NEAR_ZERO_FLOW = "NearZeroFlow"
    NO_OUTLET = "NoOutlet"
    NO_FLOW_PATH = "NoFlowPath"
    DEFAULT_PUMP_PRESSURE = "DefaultPumpPressure"


@dataclass(frozen=True)
class Diagnostic:
    """
    One warning or error.

    Attributes:
        code: Diagnostic code
        severity: ERROR or WARNING
        message: Human-readable description
        subjects: Ids of the components, ports, nodes or segments involved
    """
    code: DiagnosticCode
    severity: Severity
    message: str
    subjects: Tuple[str, ...] = ()

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    def to_dict(self) -> Dict[str, object]:
        """Plain dictionary for tables and JSON."""
        return {
            'code': self.code.value,
            'severity': self.severity.value,
            'message': self.message,
            'subjects': list(self.subjects),
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"


def make_error(code: DiagnosticCode, message: str, *subjects: str) -> Diagnostic:
    return Diagnostic(code, Severity.ERROR, message, tuple(subjects))


def make_warning(code: DiagnosticCode, message: str, *subjects: str) -> Diagnostic:
    return Diagnostic(code, Severity.WARNING, message, tuple(subjects))


class DiagnosticLog:
    """
    Ordered collection of diagnostics for one solve.

    Each record is logged at WARNING level when added.
    """

    def __init__(self):
        self.errors: List[Diagnostic] = []
        self.warnings: List[Diagnostic] = []

    def add(self, diagnostic: Optional[Diagnostic]) -> None:
        """Record a diagnostic (None is ignored)."""
        if diagnostic is None:
            return
        logger.warning("%s", diagnostic)
        if diagnostic.is_error:
            self.errors.append(diagnostic)
        else:
            self.warnings.append(diagnostic)

    def extend(self, diagnostics: Iterable[Optional[Diagnostic]]) -> None:
        for diagnostic in diagnostics:
            self.add(diagnostic)

    def error(self, code: DiagnosticCode, message: str, *subjects: str) -> None:
        self.add(make_error(code, message, *subjects))

    def warn(self, code: DiagnosticCode, message: str, *subjects: str) -> None:
        self.add(make_warning(code, message, *subjects))

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def __len__(self) -> int:
        return len(self.errors) + len(self.warnings)


# =============================================================================
# Checks
# =============================================================================

def check_resistance(resistance: float, subject: str, what: str,
                     limits: DiagnosticsConfig) -> Optional[Diagnostic]:
    """
    Validate one computed resistance.

    Args:
        resistance: Computed resistance (Pa·s/m³)
        subject: Id of the component or connection
        what: Description used in the message (e.g. "channel 'ch1'")
        limits: Sane physical range

    Returns:
        InvalidGeometry error if not finite and positive, a
        ResistanceOutOfRange warning if outside the sane range,
        otherwise None
    """
    if not (math.isfinite(resistance) and resistance > 0):
        return make_error(
            DiagnosticCode.INVALID_GEOMETRY,
            f"{what} has invalid resistance ({resistance}); "
            f"check that all dimensions are positive",
            subject,
        )
    if not (limits.min_resistance_pa_s_per_m3 <= resistance <= limits.max_resistance_pa_s_per_m3):
        return make_warning(
            DiagnosticCode.RESISTANCE_OUT_OF_RANGE,
            f"{what} resistance {resistance:.3e} Pa·s/m³ is outside "
            f"[{limits.min_resistance_pa_s_per_m3:.0e}, {limits.max_resistance_pa_s_per_m3:.0e}]",
            subject,
        )
    return None


def check_ground_reference(network: FluidicNetwork) -> Optional[Diagnostic]:
    """NoGroundReference error if no node has a fixed pressure."""
    if network.nodes and not network.get_fixed_nodes():
        return make_error(
            DiagnosticCode.NO_GROUND_REFERENCE,
            "Network has no outlet or pump: pressures are indeterminate",
        )
    return None


def check_outlet_present(network: FluidicNetwork) -> Optional[Diagnostic]:
    """NoOutlet warning if pumps are present but no outlet."""
    if network.get_source_nodes() and not network.get_ground_nodes():
        return make_warning(
            DiagnosticCode.NO_OUTLET,
            "Network has pumps but no outlet; flow can only pass between pump ports",
        )
    return None


def check_flow_path(network: FluidicNetwork) -> Optional[Diagnostic]:
    """NoFlowPath warning if no sub-network joins a pump to an outlet."""
    sources = set(network.get_source_nodes())
    grounds = set(network.get_ground_nodes())
    if not sources or not grounds:
        return None

    for group in network.connected_components():
        members = set(group)
        if members & sources and members & grounds:
            return None

    return make_warning(
        DiagnosticCode.NO_FLOW_PATH,
        "No pump is connected to an outlet",
    )


def check_isolated_components(design: CircuitDesign,
                              port_pressures: Mapping[str, float]) -> List[Diagnostic]:
    """IsolatedComponent warning for each component with no defined port pressure."""
    found = []
    for comp in design.components:
        values = [port_pressures.get(port_key(comp.id, pid), math.nan) for pid in comp.port_ids]
        if values and all(math.isnan(v) for v in values):
            found.append(make_warning(
                DiagnosticCode.ISOLATED_COMPONENT,
                f"Component '{comp.id}' is not connected to any pump or outlet; "
                f"no flow computed",
                comp.id,
            ))
    return found


def check_unconnected_components(design: CircuitDesign) -> List[Diagnostic]:
    """UnconnectedComponent warning for each pump or outlet with no tubing attached."""
    connected: Set[str] = set()
    for conn in design.connections:
        connected.add(conn.from_component)
        connected.add(conn.to_component)

    found = []
    for comp in design.components:
        if (comp.is_pressure_source or comp.is_ground) and comp.id not in connected:
            found.append(make_warning(
                DiagnosticCode.UNCONNECTED_COMPONENT,
                f"{comp.kind.replace('_', ' ').capitalize()} '{comp.id}' has no tubing attached",
                comp.id,
            ))
    return found


def check_near_zero_flow(total_flow_m3_s: float,
                         limits: DiagnosticsConfig) -> Optional[Diagnostic]:
    """NearZeroFlow warning if total throughput is below the threshold."""
    if math.isfinite(total_flow_m3_s) and abs(total_flow_m3_s) <= limits.near_zero_flow_m3_s:
        return make_warning(
            DiagnosticCode.NEAR_ZERO_FLOW,
            f"Total network flow is near zero ({total_flow_m3_s:.3e} m³/s)",
        )
    return None
