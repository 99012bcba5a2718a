"""
Topology builder: circuit design → fluidic network.

Ports joined by zero-resistance internal links (junction chips) are
merged into one node with a union-find over port keys. Every tubing
connection and every channel becomes a resistive edge between the
resolved nodes; pumps and outlets fix the pressure of their nodes.

All problems in a design are collected before returning. If any of
them is an error, no network is produced.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .network import FluidicNetwork
from .resistance import UnknownMaterialError
from ..diagnostics import (
    Diagnostic,
    DiagnosticCode,
    DiagnosticLog,
    check_resistance,
)
from ..models.config import SolverConfig
from ..models.design import CircuitDesign, hub_key, port_key

logger = logging.getLogger(__name__)


def segment_id(key_a: str, key_b: str) -> str:
    """Stable segment id: the two endpoint keys, sorted, joined by '--'."""
    first, second = sorted((key_a, key_b))
    return f"{first}--{second}"


class PortUnionFind:
    """
    Disjoint sets over port keys.

    The representative of a set is always its earliest-added key, so
    node ids do not depend on the order in which unions happen.
    """

    def __init__(self):
        self.parent: Dict[str, str] = {}
        self._order: Dict[str, int] = {}

    def add(self, key: str) -> None:
        if key not in self.parent:
            self.parent[key] = key
            self._order[key] = len(self._order)

    def find(self, key: str) -> str:
        """
        Representative of the set containing key.

        Raises:
            KeyError: If key was never added
        """
        root = key
        while self.parent[root] != root:
            root = self.parent[root]
        # Path compression
        while self.parent[key] != root:
            self.parent[key], key = root, self.parent[key]
        return root

    def union(self, a: str, b: str) -> str:
        """Merge the sets of a and b; returns the new representative."""
        ra, rb = self.find(a), self.find(b)
        if ra == rb:
            return ra
        if self._order[rb] < self._order[ra]:
            ra, rb = rb, ra
        self.parent[rb] = ra
        return ra

    def groups(self) -> Dict[str, List[str]]:
        """Representative → member keys, both in insertion order."""
        result: Dict[str, List[str]] = {}
        for key in self.parent:
            result.setdefault(self.find(key), []).append(key)
        return result

    def __contains__(self, key: str) -> bool:
        return key in self.parent

    def __len__(self) -> int:
        return len(self.parent)


@dataclass
class TopologyBuildResult:
    """
    Output of TopologyBuilder.build().

    Attributes:
        network: Built network, None if any error was found
        port_to_node: Port key → node id (empty on error)
        errors: Error diagnostics
        warnings: Warning diagnostics
    """
    network: Optional[FluidicNetwork]
    port_to_node: Dict[str, str] = field(default_factory=dict)
    errors: List[Diagnostic] = field(default_factory=list)
    warnings: List[Diagnostic] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.network is not None and not self.errors


@dataclass
class _PendingEdge:
    key_a: str
    key_b: str
    resistance: float
    edge_type: str
    component_id: Optional[str] = None
    connection_id: Optional[str] = None


class TopologyBuilder:
    """
    Converts a CircuitDesign into a FluidicNetwork.

    Edge orientation (positive flow direction):
      - tubing: from_port → to_port
      - channel: first declared port → second declared port
      - junction hub arm: port → hub

    Node ids are the key of the first port in each merged set; junction
    hubs are '<component_id>::hub'.
    """

    def __init__(self, config: Optional[SolverConfig] = None):
        """
        Initialize builder.

        Args:
            config: Solver configuration (defaults if None)
        """
        self.config = config if config is not None else SolverConfig()

    def build(self, design: CircuitDesign) -> TopologyBuildResult:
        """
        Build the network for a design.

        Args:
            design: Circuit design snapshot (not modified)

        Returns:
            TopologyBuildResult with the network, or the errors found
        """
        log = DiagnosticLog()

        uf = PortUnionFind()
        owners = {}
        key_owner: Dict[str, str] = {}
        for comp in design.components:
            owners[comp.id] = comp
            for pid in comp.port_ids:
                key = port_key(comp.id, pid)
                uf.add(key)
                key_owner[key] = comp.id

        pending: List[_PendingEdge] = []
        hub_nodes: List[Tuple[str, str]] = []  # (hub id, component id)
        fixed: Dict[str, Tuple[float, str]] = {}  # port key -> (pressure, 'pump'|'outlet')

        for comp in design.components:
            if comp.has_internal_topology:
                self._add_junction(comp, uf, pending, hub_nodes, log)
            if comp.has_resistance:
                self._add_channel(comp, pending, log)
            if comp.is_pressure_source:
                self._add_pump(comp, fixed, log)
            if comp.is_ground:
                for pid in comp.port_ids:
                    fixed[port_key(comp.id, pid)] = (comp.pressure_pa, 'outlet')

        for index, conn in enumerate(design.connections):
            self._add_connection(index, conn, owners, pending, log)

        # Resolve merged nodes and their boundary conditions
        groups = uf.groups()
        node_specs = []
        for root, members in groups.items():
            pressures = {fixed[k][0] for k in members if k in fixed}
            if len(pressures) > 1:
                log.error(
                    DiagnosticCode.TOPOLOGY_ERROR,
                    f"Ports {', '.join(k for k in members if k in fixed)} are joined "
                    f"but held at different pressures "
                    f"({', '.join(f'{p:g}' for p in sorted(pressures))} Pa)",
                    *members,
                )
                continue
            kinds = {fixed[k][1] for k in members if k in fixed}
            if 'outlet' in kinds:
                node_type = 'outlet'
            elif 'pump' in kinds:
                node_type = 'pump'
            elif len(members) > 1:
                node_type = 'junction'
            else:
                node_type = 'port'
            pressure = pressures.pop() if pressures else None
            node_specs.append((root, members, node_type, pressure))
            if len(members) > 1:
                logger.debug("Merged ports %s into node %s", members, root)

        if log.has_errors:
            logger.info(
                "Topology build failed for '%s' with %d error(s)",
                design.name, len(log.errors)
            )
            return TopologyBuildResult(
                network=None, errors=log.errors, warnings=log.warnings
            )

        network = FluidicNetwork()
        for root, members, node_type, pressure in node_specs:
            network.add_node(
                root,
                port_keys=tuple(members),
                node_type=node_type,
                fixed_pressure_pa=pressure,
                component_ids=tuple(dict.fromkeys(key_owner[k] for k in members)),
            )
        for hub_id, component_id in hub_nodes:
            network.add_node(hub_id, node_type='hub', component_ids=(component_id,))

        seen_ids: Dict[str, int] = {}
        for edge in pending:
            base = segment_id(edge.key_a, edge.key_b)
            count = seen_ids.get(base, 0) + 1
            seen_ids[base] = count
            sid = base if count == 1 else f"{base}#{count}"

            node_a = network.port_to_node.get(edge.key_a, edge.key_a)
            node_b = network.port_to_node.get(edge.key_b, edge.key_b)
            network.add_edge(
                sid, node_a, node_b, edge.resistance,
                edge_type=edge.edge_type,
                port_a=edge.key_a,
                port_b=edge.key_b,
                component_id=edge.component_id,
                connection_id=edge.connection_id,
            )
            logger.debug("Segment %s: %s → %s, R=%.3e", sid, node_a, node_b, edge.resistance)

        logger.debug("Built %r", network)
        return TopologyBuildResult(
            network=network,
            port_to_node=dict(network.port_to_node),
            errors=log.errors,
            warnings=log.warnings,
        )

    def _add_junction(self, comp, uf: PortUnionFind, pending: List[_PendingEdge],
                      hub_nodes: List[Tuple[str, str]], log: DiagnosticLog) -> None:
        """Union zero-resistance junction pairs, or wire them to a hub."""
        valid_pairs = []
        for pair in comp.internal_pairs():
            a, b = pair
            missing = [p for p in (a, b) if not comp.has_port(p)]
            if missing:
                log.error(
                    DiagnosticCode.TOPOLOGY_ERROR,
                    f"Junction '{comp.id}' declares an internal connection to "
                    f"unknown port(s) {', '.join(missing)}",
                    comp.id,
                )
            elif a == b:
                log.error(
                    DiagnosticCode.TOPOLOGY_ERROR,
                    f"Junction '{comp.id}' declares a self-referential internal "
                    f"connection on port '{a}'",
                    comp.id,
                )
            else:
                valid_pairs.append((a, b))

        resistance = comp.junction_resistance(self.config)
        if resistance == 0.0:
            for a, b in valid_pairs:
                uf.union(port_key(comp.id, a), port_key(comp.id, b))
            return

        diag = check_resistance(
            resistance, comp.id, f"Junction '{comp.id}'", self.config.diagnostics
        )
        log.add(diag)
        if diag is not None and diag.is_error:
            return

        # Hub model: one hub per group of internally joined ports
        local = PortUnionFind()
        for pid in comp.port_ids:
            local.add(pid)
        for a, b in valid_pairs:
            local.union(a, b)
        joined = {p for pair in valid_pairs for p in pair}

        n_hubs = 0
        for members in local.groups().values():
            members = [p for p in members if p in joined]
            if len(members) < 2:
                continue
            n_hubs += 1
            hub_id = hub_key(comp.id, n_hubs)
            hub_nodes.append((hub_id, comp.id))
            for pid in members:
                pending.append(_PendingEdge(
                    port_key(comp.id, pid), hub_id, resistance, 'junction',
                    component_id=comp.id,
                ))

    def _add_channel(self, comp, pending: List[_PendingEdge], log: DiagnosticLog) -> None:
        resistance = comp.resistance(self.config)
        diag = check_resistance(
            resistance, comp.id, f"Channel '{comp.id}'", self.config.diagnostics
        )
        log.add(diag)
        if diag is not None and diag.is_error:
            return
        first, second = comp.endpoints
        pending.append(_PendingEdge(
            port_key(comp.id, first), port_key(comp.id, second),
            resistance, 'channel', component_id=comp.id,
        ))

    def _add_pump(self, comp, fixed: Dict[str, Tuple[float, str]], log: DiagnosticLog) -> None:
        for pid in comp.port_pressures_pa:
            if not comp.has_port(pid):
                log.error(
                    DiagnosticCode.TOPOLOGY_ERROR,
                    f"Pump '{comp.id}' sets a pressure for unknown port '{pid}'",
                    comp.id,
                )

        default = self.config.pumps.default_port_pressure_pa
        for pid in comp.port_ids:
            pressure = comp.pressure_for(pid)
            if pressure is None:
                pressure = default
                log.warn(
                    DiagnosticCode.DEFAULT_PUMP_PRESSURE,
                    f"Pump '{comp.id}' port '{pid}' has no pressure; using {default:g} Pa",
                    port_key(comp.id, pid),
                )
            fixed[port_key(comp.id, pid)] = (float(pressure), 'pump')

    def _add_connection(self, index: int, conn, owners: Dict[str, object],
                        pending: List[_PendingEdge], log: DiagnosticLog) -> None:
        label = f"Connection '{conn.id}'" if conn.id else f"Connection #{index + 1}"
        subject = conn.id or f"#{index + 1}"

        bad = False
        for comp_id, pid in ((conn.from_component, conn.from_port),
                             (conn.to_component, conn.to_port)):
            comp = owners.get(comp_id)
            if comp is None:
                log.error(
                    DiagnosticCode.TOPOLOGY_ERROR,
                    f"{label} refers to unknown component '{comp_id}'",
                    subject,
                )
                bad = True
            elif not comp.has_port(pid):
                log.error(
                    DiagnosticCode.TOPOLOGY_ERROR,
                    f"{label} refers to unknown port '{pid}' on '{comp_id}'",
                    subject,
                )
                bad = True
        if bad:
            return

        if conn.from_component == conn.to_component:
            log.error(
                DiagnosticCode.TOPOLOGY_ERROR,
                f"{label} joins two ports of the same component '{conn.from_component}'",
                subject,
            )
            return

        if not (math.isfinite(conn.length_m) and conn.length_m > 0):
            log.error(
                DiagnosticCode.INVALID_GEOMETRY,
                f"{label} has non-positive tubing length ({conn.length_m} m)",
                subject,
            )
            return

        try:
            resistance = conn.resistance(self.config)
        except UnknownMaterialError as e:
            log.error(DiagnosticCode.UNKNOWN_MATERIAL, f"{label}: {e}", subject)
            return

        diag = check_resistance(resistance, subject, label, self.config.diagnostics)
        log.add(diag)
        if diag is not None and diag.is_error:
            return

        pending.append(_PendingEdge(
            conn.from_key, conn.to_key, resistance, 'tubing',
            connection_id=conn.id,
        ))
