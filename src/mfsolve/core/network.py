"""
Fluidic network representation using graph structure.

Electrical-analog view of a circuit: nodes are points of uniform
pressure (merged ports), edges are resistive segments (tubing,
channels, junction hub arms).
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple
import numpy as np
from scipy.sparse import coo_matrix
from scipy.sparse.csgraph import connected_components


@dataclass
class NetworkNode:
    """
    Node in the fluidic network (one pressure unknown or boundary value).

    Attributes:
        id: Unique node identifier
        port_keys: Global keys of the ports merged into this node
        node_type: Type of node ('port', 'junction', 'hub', 'pump', 'outlet')
        fixed_pressure_pa: Boundary pressure (Pa), None for free nodes
        component_ids: Components owning a port of this node
    """
    id: str
    port_keys: Tuple[str, ...] = ()
    node_type: str = 'port'  # port, junction, hub, pump, outlet
    fixed_pressure_pa: Optional[float] = None
    component_ids: Tuple[str, ...] = ()

    @property
    def is_fixed(self) -> bool:
        """True if the pressure is a boundary condition."""
        return self.fixed_pressure_pa is not None

    @property
    def is_ground(self) -> bool:
        """True if this is an outlet node at reference pressure."""
        return self.node_type == 'outlet'

    def __hash__(self):
        """Make hashable for use in sets."""
        return hash(self.id)


@dataclass
class NetworkEdge:
    """
    Resistive edge in the fluidic network.

    Flow is positive from node_a to node_b.

    Attributes:
        id: Unique segment id (derived from endpoint ports)
        node_a: Start node ID
        node_b: End node ID
        resistance: Hydraulic resistance (Pa·s/m³), finite and > 0
        edge_type: 'tubing', 'channel' or 'junction'
        port_a: Port key at the start of the segment
        port_b: Port key at the end of the segment (hub id for junction arms)
        component_id: Owning component for channel/junction edges
        connection_id: Tubing connection id for tubing edges
    """
    id: str
    node_a: str
    node_b: str
    resistance: float
    edge_type: str = 'tubing'  # tubing, channel, junction
    port_a: Optional[str] = None
    port_b: Optional[str] = None
    component_id: Optional[str] = None
    connection_id: Optional[str] = None

    @property
    def conductance(self) -> float:
        """Hydraulic conductance G = 1/R (m³/(Pa·s))."""
        return 1.0 / self.resistance

    @property
    def is_self_loop(self) -> bool:
        """Both ends resolve to the same node (carries no flow)."""
        return self.node_a == self.node_b

    def __hash__(self):
        """Make hashable for use in sets."""
        return hash(self.id)


class FluidicNetwork:
    """
    Graph-based representation of a fluidic circuit.

    Undirected multigraph: parallel edges between the same nodes are
    allowed (e.g. two tubes joining the same ports). Node and edge
    dictionaries keep insertion order, which fixes the matrix ordering
    used by the solver.
    """

    def __init__(self):
        """Initialize empty network."""
        self.nodes: Dict[str, NetworkNode] = {}
        self.edges: Dict[str, NetworkEdge] = {}

        # Port key -> node id
        self.port_to_node: Dict[str, str] = {}

        # Cached adjacency information
        self._adjacency: Optional[Dict[str, Set[str]]] = None

    def add_node(self, node_id: str, port_keys: Tuple[str, ...] = (),
                 node_type: str = 'port', fixed_pressure_pa: Optional[float] = None,
                 component_ids: Tuple[str, ...] = ()) -> str:
        """
        Add a node to the network.

        Args:
            node_id: Unique node ID
            port_keys: Ports merged into this node
            node_type: Type ('port', 'junction', 'hub', 'pump', 'outlet')
            fixed_pressure_pa: Boundary pressure, None for a free node
            component_ids: Components owning the node's ports

        Returns:
            Node ID

        Raises:
            ValueError: If node_id exists, a port is already mapped, or
                the fixed pressure is not finite
        """
        if node_id in self.nodes:
            raise ValueError(f"Node ID {node_id} already exists")

        if fixed_pressure_pa is not None and not math.isfinite(fixed_pressure_pa):
            raise ValueError(f"Fixed pressure of node {node_id} is not finite")

        for key in port_keys:
            if key in self.port_to_node:
                raise ValueError(
                    f"Port {key} already belongs to node {self.port_to_node[key]}"
                )

        self.nodes[node_id] = NetworkNode(
            id=node_id,
            port_keys=tuple(port_keys),
            node_type=node_type,
            fixed_pressure_pa=fixed_pressure_pa,
            component_ids=tuple(component_ids),
        )
        for key in port_keys:
            self.port_to_node[key] = node_id

        # Invalidate cached adjacency
        self._adjacency = None

        return node_id

    def add_edge(self, edge_id: str, node_a: str, node_b: str, resistance: float,
                 edge_type: str = 'tubing', port_a: Optional[str] = None,
                 port_b: Optional[str] = None, component_id: Optional[str] = None,
                 connection_id: Optional[str] = None) -> str:
        """
        Add a resistive edge between two nodes.

        Args:
            edge_id: Unique segment ID
            node_a: Start node ID
            node_b: End node ID
            resistance: Hydraulic resistance (Pa·s/m³)
            edge_type: 'tubing', 'channel' or 'junction'
            port_a: Port key at the start
            port_b: Port key at the end
            component_id: Owning component (channel/junction edges)
            connection_id: Tubing connection id (tubing edges)

        Returns:
            Edge ID

        Raises:
            ValueError: If nodes don't exist, edge_id exists, or the
                resistance is not finite and positive
        """
        if node_a not in self.nodes or node_b not in self.nodes:
            raise ValueError("Both nodes must exist before adding edge")

        if edge_id in self.edges:
            raise ValueError(f"Edge ID {edge_id} already exists")

        if not (math.isfinite(resistance) and resistance > 0):
            raise ValueError(
                f"Edge {edge_id} resistance must be finite and positive, got {resistance}"
            )

        self.edges[edge_id] = NetworkEdge(
            id=edge_id,
            node_a=node_a,
            node_b=node_b,
            resistance=float(resistance),
            edge_type=edge_type,
            port_a=port_a,
            port_b=port_b,
            component_id=component_id,
            connection_id=connection_id,
        )

        # Invalidate cached adjacency
        self._adjacency = None

        return edge_id

    def get_adjacency(self) -> Dict[str, Set[str]]:
        """
        Get adjacency list representation (undirected).

        Returns:
            Dictionary mapping node_id → set of connected node_ids
        """
        if self._adjacency is not None:
            return self._adjacency

        adjacency: Dict[str, Set[str]] = {nid: set() for nid in self.nodes}

        for edge in self.edges.values():
            adjacency[edge.node_a].add(edge.node_b)
            adjacency[edge.node_b].add(edge.node_a)

        self._adjacency = adjacency
        return adjacency

    def get_fixed_nodes(self) -> List[str]:
        """Get list of fixed-pressure node IDs."""
        return [nid for nid, node in self.nodes.items() if node.is_fixed]

    def get_free_nodes(self) -> List[str]:
        """Get list of free (unknown-pressure) node IDs."""
        return [nid for nid, node in self.nodes.items() if not node.is_fixed]

    def get_ground_nodes(self) -> List[str]:
        """Get list of outlet node IDs."""
        return [nid for nid, node in self.nodes.items() if node.is_ground]

    def get_source_nodes(self) -> List[str]:
        """Get list of pump node IDs."""
        return [nid for nid, node in self.nodes.items() if node.node_type == 'pump']

    def get_edges_at_node(self, node_id: str) -> List[str]:
        """
        Get all edge IDs touching a node.

        Args:
            node_id: Node ID

        Returns:
            List of edge IDs
        """
        return [eid for eid, edge in self.edges.items()
                if edge.node_a == node_id or edge.node_b == node_id]

    def connected_components(self) -> List[List[str]]:
        """
        Split the network into connected sub-networks.

        Returns:
            List of node-id lists, each in network insertion order,
            ordered by their first node
        """
        n = len(self.nodes)
        if n == 0:
            return []

        node_to_idx = {nid: i for i, nid in enumerate(self.nodes)}
        rows = [node_to_idx[e.node_a] for e in self.edges.values()]
        cols = [node_to_idx[e.node_b] for e in self.edges.values()]
        graph = coo_matrix(
            (np.ones(len(rows)), (rows, cols)), shape=(n, n)
        )

        _, labels = connected_components(graph, directed=False)

        groups: Dict[int, List[str]] = {}
        for nid, i in node_to_idx.items():
            groups.setdefault(int(labels[i]), []).append(nid)

        return sorted(groups.values(), key=lambda g: node_to_idx[g[0]])

    def get_statistics(self) -> Dict[str, any]:
        """
        Get network statistics.

        Returns:
            Dictionary with statistics
        """
        resistances = [e.resistance for e in self.edges.values()]
        return {
            'n_nodes': len(self.nodes),
            'n_edges': len(self.edges),
            'n_fixed': len(self.get_fixed_nodes()),
            'n_free': len(self.get_free_nodes()),
            'n_outlets': len(self.get_ground_nodes()),
            'n_sources': len(self.get_source_nodes()),
            'n_subnetworks': len(self.connected_components()),
            'min_resistance': float(np.min(resistances)) if resistances else None,
            'max_resistance': float(np.max(resistances)) if resistances else None,
        }

    def __len__(self) -> int:
        """Number of nodes in network."""
        return len(self.nodes)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"FluidicNetwork(nodes={len(self.nodes)}, edges={len(self.edges)}, "
            f"fixed={len(self.get_fixed_nodes())})"
        )
