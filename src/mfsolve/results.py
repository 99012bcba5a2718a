"""
Result objects returned by a solve.

A ``SimulationResult`` is created once per solve and never modified:
all mappings are read-only views. It is the single channel for both
numbers and problems. Failures are reported as error diagnostics, not
raised.
"""

import math
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import numpy as np

from .diagnostics import Diagnostic
from .models.design import port_key


class ResultStatus(str, Enum):
    """Overall outcome of a solve."""
    SUCCESS = "success"   # no errors, every pressure defined
    PARTIAL = "partial"   # some pressures undefined or some sub-network failed
    FAILED = "failed"     # errors and no usable pressures


class FlowDirection(str, Enum):
    """Direction of flow relative to a segment's stored orientation."""
    FORWARD = "forward"       # from port_a to port_b
    REVERSE = "reverse"       # from port_b to port_a
    NONE = "none"             # magnitude below threshold
    UNDEFINED = "undefined"   # an endpoint pressure is undefined

    @classmethod
    def from_flow(cls, flow_m3_s: float, threshold_m3_s: float = 0.0) -> "FlowDirection":
        """Classify a signed flow value."""
        if math.isnan(flow_m3_s):
            return cls.UNDEFINED
        if abs(flow_m3_s) <= threshold_m3_s:
            return cls.NONE
        return cls.FORWARD if flow_m3_s > 0 else cls.REVERSE


@dataclass(frozen=True)
class SegmentFlow:
    """
    Flow through one resistive segment.

    Attributes:
        id: Segment id ('<keyA>--<keyB>', sorted port keys)
        flow_m3_s: Signed flow, positive from port_a to port_b (NaN if undefined)
        direction: Direction classification
        node_a: Start node id
        node_b: End node id
        port_a: Port key at the start
        port_b: Port key (or hub id) at the end
        resistance: Hydraulic resistance (Pa·s/m³)
        kind: 'tubing', 'channel' or 'junction'
        component_id: Owning component for channel/junction segments
        connection_id: Tubing connection id for tubing segments
    """
    id: str
    flow_m3_s: float
    direction: FlowDirection
    node_a: str
    node_b: str
    port_a: Optional[str]
    port_b: Optional[str]
    resistance: float
    kind: str
    component_id: Optional[str] = None
    connection_id: Optional[str] = None

    @property
    def pressure_drop_pa(self) -> float:
        """Pressure drop along the segment, ΔP = R·Q (Pa)."""
        return self.flow_m3_s * self.resistance

    @property
    def abs_flow_m3_s(self) -> float:
        return abs(self.flow_m3_s)


@dataclass(frozen=True)
class SimulationResult:
    """
    Outcome of one solve.

    Attributes:
        status: SUCCESS, PARTIAL or FAILED
        node_pressures: Node id → pressure (Pa), NaN where undefined
        port_pressures: Port key → pressure of its node (Pa)
        port_to_node: Port key → node id
        segment_flows: Segment id → SegmentFlow
        warnings: Warning diagnostics
        errors: Error diagnostics
        total_flow_m3_s: Total throughput (m³/s)
        design_name: Name of the solved design
    """
    status: ResultStatus
    node_pressures: Mapping[str, float]
    port_pressures: Mapping[str, float]
    port_to_node: Mapping[str, str]
    segment_flows: Mapping[str, SegmentFlow]
    warnings: Tuple[Diagnostic, ...] = ()
    errors: Tuple[Diagnostic, ...] = ()
    total_flow_m3_s: float = math.nan
    design_name: str = ""

    @classmethod
    def build(cls, node_pressures: Dict[str, float],
              port_to_node: Dict[str, str],
              segment_flows: Iterable[SegmentFlow] = (),
              total_flow_m3_s: float = math.nan,
              errors: Iterable[Diagnostic] = (),
              warnings: Iterable[Diagnostic] = (),
              design_name: str = "") -> "SimulationResult":
        """
        Assemble a result, deriving port pressures and status.

        Args:
            node_pressures: Node id → pressure (Pa)
            port_to_node: Port key → node id
            segment_flows: Per-segment flows
            total_flow_m3_s: Total throughput
            errors: Error diagnostics
            warnings: Warning diagnostics
            design_name: Name of the solved design

        Returns:
            Immutable SimulationResult
        """
        errors = tuple(errors)
        warnings = tuple(warnings)
        node_pressures = dict(node_pressures)
        port_pressures = {
            key: node_pressures.get(nid, math.nan) for key, nid in port_to_node.items()
        }
        return cls(
            status=cls._derive_status(node_pressures, errors),
            node_pressures=MappingProxyType(node_pressures),
            port_pressures=MappingProxyType(port_pressures),
            port_to_node=MappingProxyType(dict(port_to_node)),
            segment_flows=MappingProxyType({s.id: s for s in segment_flows}),
            warnings=warnings,
            errors=errors,
            total_flow_m3_s=total_flow_m3_s,
            design_name=design_name,
        )

    @classmethod
    def failed(cls, errors: Iterable[Diagnostic], warnings: Iterable[Diagnostic] = (),
               design_name: str = "") -> "SimulationResult":
        """Result carrying only diagnostics (no network was solved)."""
        return cls.build({}, {}, errors=errors, warnings=warnings, design_name=design_name)

    @staticmethod
    def _derive_status(node_pressures: Mapping[str, float],
                       errors: Tuple[Diagnostic, ...]) -> ResultStatus:
        values = list(node_pressures.values())
        any_defined = any(not math.isnan(p) for p in values)
        all_defined = bool(values) and all(not math.isnan(p) for p in values)
        if errors and not any_defined:
            return ResultStatus.FAILED
        if errors or not all_defined:
            return ResultStatus.PARTIAL
        return ResultStatus.SUCCESS

    def with_diagnostics(self, errors: Iterable[Diagnostic] = (),
                         warnings: Iterable[Diagnostic] = (),
                         prepend: bool = False) -> "SimulationResult":
        """
        Copy with extra diagnostics and re-derived status.

        Args:
            errors: Errors to add
            warnings: Warnings to add
            prepend: Put the new diagnostics before the existing ones
        """
        errors, warnings = tuple(errors), tuple(warnings)
        if prepend:
            all_errors = errors + self.errors
            all_warnings = warnings + self.warnings
        else:
            all_errors = self.errors + errors
            all_warnings = self.warnings + warnings
        return SimulationResult(
            status=self._derive_status(self.node_pressures, all_errors),
            node_pressures=self.node_pressures,
            port_pressures=self.port_pressures,
            port_to_node=self.port_to_node,
            segment_flows=self.segment_flows,
            warnings=all_warnings,
            errors=all_errors,
            total_flow_m3_s=self.total_flow_m3_s,
            design_name=self.design_name,
        )

    # Convenience accessors
    @property
    def ok(self) -> bool:
        """True if the solve produced no errors."""
        return not self.errors

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def error_codes(self) -> List[str]:
        """Codes of all errors, in order."""
        return [d.code.value for d in self.errors]

    def warning_codes(self) -> List[str]:
        """Codes of all warnings, in order."""
        return [d.code.value for d in self.warnings]

    def flow(self, segment_id: str) -> float:
        """
        Signed flow through a segment (m³/s).

        Raises:
            KeyError: If the segment does not exist
        """
        return self.segment_flows[segment_id].flow_m3_s

    def pressure_at(self, component_id: str, port_id: str) -> float:
        """
        Pressure at a component port (Pa), NaN if undefined.

        Raises:
            KeyError: If the port is not part of the solved design
        """
        return self.port_pressures[port_key(component_id, port_id)]

    def segments_for_component(self, component_id: str) -> List[SegmentFlow]:
        """Channel or junction segments owned by a component."""
        return [s for s in self.segment_flows.values() if s.component_id == component_id]

    def get_statistics(self) -> Dict[str, any]:
        """
        Get result statistics.

        Returns:
            Dictionary with statistics
        """
        pressures = [p for p in self.node_pressures.values() if not math.isnan(p)]
        flows = [abs(s.flow_m3_s) for s in self.segment_flows.values()
                 if not math.isnan(s.flow_m3_s)]
        return {
            'status': self.status.value,
            'n_nodes': len(self.node_pressures),
            'n_segments': len(self.segment_flows),
            'n_undefined_nodes': len(self.node_pressures) - len(pressures),
            'n_errors': len(self.errors),
            'n_warnings': len(self.warnings),
            'total_flow_m3_s': self.total_flow_m3_s,
            'min_pressure_pa': float(np.min(pressures)) if pressures else math.nan,
            'max_pressure_pa': float(np.max(pressures)) if pressures else math.nan,
            'max_segment_flow_m3_s': float(np.max(flows)) if flows else math.nan,
        }

    def to_dict(self) -> Dict[str, object]:
        """Plain-data form for JSON output."""
        return {
            'design_name': self.design_name,
            'status': self.status.value,
            'total_flow_m3_s': self.total_flow_m3_s,
            'node_pressures_pa': dict(self.node_pressures),
            'port_pressures_pa': dict(self.port_pressures),
            'segments': [
                {
                    'id': s.id,
                    'kind': s.kind,
                    'flow_m3_s': s.flow_m3_s,
                    'direction': s.direction.value,
                    'resistance': s.resistance,
                    'port_a': s.port_a,
                    'port_b': s.port_b,
                }
                for s in self.segment_flows.values()
            ],
            'warnings': [d.to_dict() for d in self.warnings],
            'errors': [d.to_dict() for d in self.errors],
        }

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"SimulationResult(status={self.status.value}, "
            f"nodes={len(self.node_pressures)}, segments={len(self.segment_flows)}, "
            f"errors={len(self.errors)}, warnings={len(self.warnings)})"
        )
