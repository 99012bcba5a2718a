"""
Fluidic network flow solver using nodal analysis.

Implements steady-state network flow using the circuit analogy
(Hagen-Poiseuille). Each connected sub-network is solved on its own,
so a floating or singular part of a design does not prevent results
for the rest.
"""

import logging
import math
import time
from typing import Dict, List, Optional

import numpy as np
from scipy.sparse import lil_matrix
from scipy.sparse.linalg import splu, norm as sparse_norm

from ..core.network import FluidicNetwork, NetworkEdge
from ..diagnostics import (
    DiagnosticCode,
    DiagnosticLog,
    check_flow_path,
    check_ground_reference,
    check_outlet_present,
)
from ..models.config import SolverConfig
from ..results import FlowDirection, SegmentFlow, SimulationResult

logger = logging.getLogger(__name__)


class SingularSystemError(RuntimeError):
    """Linear system of a sub-network could not be solved reliably."""


class NetworkFlowSolver:
    """
    Nodal-analysis solver for fluidic networks.

    Uses electrical circuit analogy:
    - Pressure P analogous to voltage V
    - Flow rate Q analogous to current I
    - Hydraulic resistance R_h analogous to electrical resistance R

    For each free node, conservation of flow gives one row of

        Σ_j G_ij (P_i - P_j) = 0

    with G = 1/R. Terms involving fixed-pressure nodes move to the
    right-hand side. Flow through an edge (a, b) is Q = (P_a - P_b) / R,
    positive from a to b.
    """

    def __init__(self, network: FluidicNetwork, config: Optional[SolverConfig] = None):
        """
        Initialize network flow solver.

        Args:
            network: FluidicNetwork instance (not modified)
            config: SolverConfig with numerics and diagnostics thresholds
        """
        self.network = network
        self.config = config if config is not None else SolverConfig()
        self.numerics = self.config.numerics

        # Solver statistics
        self.solve_time = 0.0
        self.n_subnetworks_solved = 0
        self.max_residual = 0.0

    def solve(self, design_name: str = "") -> SimulationResult:
        """
        Solve for node pressures and segment flows.

        Never raises for a bad network: problems are returned as
        diagnostics on the result.

        Args:
            design_name: Name stored on the result

        Returns:
            SimulationResult
        """
        log = DiagnosticLog()
        network = self.network

        if not network.nodes:
            log.error(DiagnosticCode.TOPOLOGY_ERROR, "Design is empty: nothing to solve")
            return SimulationResult.failed(log.errors, design_name=design_name)

        logger.info(
            "Solving fluidic network: %d nodes, %d edges, %d fixed",
            len(network.nodes), len(network.edges), len(network.get_fixed_nodes())
        )

        log.add(check_ground_reference(network))
        if log.has_errors:
            pressures = {nid: math.nan for nid in network.nodes}
            return self._package(pressures, log, design_name)

        log.add(check_outlet_present(network))
        log.add(check_flow_path(network))

        start = time.time()
        self.n_subnetworks_solved = 0
        self.max_residual = 0.0

        pressures: Dict[str, float] = {nid: math.nan for nid in network.nodes}
        edges_by_group = self._group_edges()

        for group_index, group in enumerate(network.connected_components()):
            fixed = [nid for nid in group if network.nodes[nid].is_fixed]
            free = [nid for nid in group if not network.nodes[nid].is_fixed]

            if not fixed:
                log.warn(
                    DiagnosticCode.NO_GROUND_REFERENCE,
                    f"{len(group)} node(s) are not connected to any pump or outlet; "
                    f"their pressures are undefined",
                    *group,
                )
                continue

            for nid in fixed:
                pressures[nid] = network.nodes[nid].fixed_pressure_pa

            if not free:
                continue

            try:
                values = self._solve_subnetwork(
                    free, edges_by_group.get(group_index, []), pressures
                )
            except SingularSystemError as e:
                log.error(DiagnosticCode.SINGULAR_SYSTEM, str(e), *free)
                continue

            for nid, value in zip(free, values):
                pressures[nid] = float(value)
            self.n_subnetworks_solved += 1
            logger.debug("Sub-network %d: solved %d free node(s)", group_index, len(free))

        self.solve_time = time.time() - start
        logger.info("Solved in %.4fs", self.solve_time)

        return self._package(pressures, log, design_name)

    def _group_edges(self) -> Dict[int, List[NetworkEdge]]:
        """Edges of each connected sub-network, keyed by sub-network index."""
        group_of = {}
        for index, group in enumerate(self.network.connected_components()):
            for nid in group:
                group_of[nid] = index

        edges: Dict[int, List[NetworkEdge]] = {}
        for edge in self.network.edges.values():
            if edge.is_self_loop:
                continue
            edges.setdefault(group_of[edge.node_a], []).append(edge)
        return edges

    def _solve_subnetwork(self, free: List[str], edges: List[NetworkEdge],
                          pressures: Dict[str, float]) -> np.ndarray:
        """
        Solve one connected sub-network for its free-node pressures.

        Conductances are divided by the largest conductance and
        pressures by the largest absolute fixed pressure, so matrix
        entries are O(1) whatever the resistance scale.

        Args:
            free: Free node ids (matrix order)
            edges: Edges of the sub-network
            pressures: Known pressures (fixed nodes filled in)

        Returns:
            Free-node pressures (Pa)

        Raises:
            SingularSystemError: If factorization fails or the solution
                is not accurate
        """
        node_to_idx = {nid: i for i, nid in enumerate(free)}
        n = len(free)

        if self.numerics.scale_system and edges:
            g_scale = max(e.conductance for e in edges)
            fixed_values = [
                abs(pressures[nid]) for e in edges for nid in (e.node_a, e.node_b)
                if nid not in node_to_idx
            ]
            p_scale = max(fixed_values) if fixed_values else 0.0
            if p_scale == 0.0:
                p_scale = 1.0
        else:
            g_scale, p_scale = 1.0, 1.0

        A = lil_matrix((n, n))
        b = np.zeros(n)

        for edge in edges:
            G = edge.conductance / g_scale
            i_a = node_to_idx.get(edge.node_a)
            i_b = node_to_idx.get(edge.node_b)

            if i_a is not None:
                A[i_a, i_a] += G
            if i_b is not None:
                A[i_b, i_b] += G

            if i_a is not None and i_b is not None:
                A[i_a, i_b] -= G
                A[i_b, i_a] -= G
            elif i_a is not None:
                b[i_a] += G * pressures[edge.node_b] / p_scale
            elif i_b is not None:
                b[i_b] += G * pressures[edge.node_a] / p_scale

        # Convert to CSC for factorization
        A_csc = A.tocsc()

        try:
            lu = splu(A_csc)
        except RuntimeError as e:
            raise SingularSystemError(
                f"Sub-network with {n} free node(s) is singular: {e}"
            ) from e

        x = np.atleast_1d(lu.solve(b))

        # Iterative refinement reusing the factorization
        for _ in range(self.numerics.refinement_steps):
            r = b - A_csc @ x
            x = x + np.atleast_1d(lu.solve(r))

        if not np.all(np.isfinite(x)):
            raise SingularSystemError(
                f"Sub-network with {n} free node(s) produced a non-finite solution"
            )

        # Normwise backward error ||r|| / (||A|| ||x|| + ||b||)
        r = b - A_csc @ x
        denom = sparse_norm(A_csc, np.inf) * np.max(np.abs(x)) + np.max(np.abs(b))
        residual = float(np.max(np.abs(r)) / denom) if denom > 0 else 0.0
        self.max_residual = max(self.max_residual, residual)

        if residual > self.numerics.residual_tolerance:
            raise SingularSystemError(
                f"Sub-network with {n} free node(s) is ill-conditioned "
                f"(relative residual {residual:.2e})"
            )

        return x * p_scale

    def _package(self, pressures: Dict[str, float], log: DiagnosticLog,
                 design_name: str) -> SimulationResult:
        """Derive segment flows and throughput, then build the result."""
        network = self.network
        threshold = self.config.diagnostics.near_zero_flow_m3_s

        segments = []
        net_outflow: Dict[str, float] = {nid: 0.0 for nid in network.nodes}

        for edge in network.edges.values():
            p_a = pressures[edge.node_a]
            p_b = pressures[edge.node_b]
            if edge.is_self_loop:
                Q = 0.0
            elif math.isnan(p_a) or math.isnan(p_b):
                Q = math.nan
            else:
                # Flow rate (m³/s), positive from a to b
                Q = (p_a - p_b) / edge.resistance

            if not math.isnan(Q):
                net_outflow[edge.node_a] += Q
                net_outflow[edge.node_b] -= Q

            segments.append(SegmentFlow(
                id=edge.id,
                flow_m3_s=Q,
                direction=FlowDirection.from_flow(Q, threshold),
                node_a=edge.node_a,
                node_b=edge.node_b,
                port_a=edge.port_a,
                port_b=edge.port_b,
                resistance=edge.resistance,
                kind=edge.edge_type,
                component_id=edge.component_id,
                connection_id=edge.connection_id,
            ))

        # Throughput: total flow leaving fixed-pressure nodes
        fixed_nodes = network.get_fixed_nodes()
        if fixed_nodes:
            total_flow = sum(max(net_outflow[nid], 0.0) for nid in fixed_nodes)
        else:
            total_flow = math.nan

        if not log.has_errors:
            logger.info("Total flow: %.3e m³/s", total_flow)

        return SimulationResult.build(
            pressures,
            network.port_to_node,
            segments,
            total_flow_m3_s=total_flow,
            errors=log.errors,
            warnings=log.warnings,
            design_name=design_name,
        )

    def get_statistics(self) -> Dict[str, any]:
        """
        Get solver statistics.

        Returns:
            Dictionary with statistics
        """
        stats = self.network.get_statistics()
        stats.update({
            'solve_time_s': self.solve_time,
            'n_subnetworks_solved': self.n_subnetworks_solved,
            'max_relative_residual': self.max_residual,
        })
        return stats

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"NetworkFlowSolver(nodes={len(self.network.nodes)}, "
            f"edges={len(self.network.edges)}, μ={self.config.viscosity_pa_s:.2e} Pa·s)"
        )
