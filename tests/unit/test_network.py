"""Unit tests for the fluidic network graph."""

import math

import pytest
from mfsolve.core.network import FluidicNetwork


def test_network_creation():
    network = FluidicNetwork()
    assert len(network) == 0
    assert len(network.edges) == 0


def test_add_node_maps_ports():
    network = FluidicNetwork()
    network.add_node("x:port_left", port_keys=("x:port_left", "x:port_top"), node_type="junction")
    assert network.port_to_node["x:port_top"] == "x:port_left"


def test_duplicate_node_rejected():
    network = FluidicNetwork()
    network.add_node("a")
    with pytest.raises(ValueError, match="already exists"):
        network.add_node("a")


def test_port_in_two_nodes_rejected():
    network = FluidicNetwork()
    network.add_node("a", port_keys=("c:p",))
    with pytest.raises(ValueError, match="already belongs"):
        network.add_node("b", port_keys=("c:p",))


def test_non_finite_fixed_pressure_rejected():
    network = FluidicNetwork()
    with pytest.raises(ValueError):
        network.add_node("a", fixed_pressure_pa=math.nan)


def test_edge_requires_nodes():
    network = FluidicNetwork()
    network.add_node("a")
    with pytest.raises(ValueError, match="must exist"):
        network.add_edge("e", "a", "b", 1e9)


@pytest.mark.parametrize("resistance", [0.0, -1e9, math.nan, math.inf])
def test_edge_resistance_must_be_positive_and_finite(resistance):
    network = FluidicNetwork()
    network.add_node("a")
    network.add_node("b")
    with pytest.raises(ValueError, match="finite and positive"):
        network.add_edge("e", "a", "b", resistance)


def test_duplicate_edge_rejected():
    network = FluidicNetwork()
    network.add_node("a")
    network.add_node("b")
    network.add_edge("e", "a", "b", 1e9)
    with pytest.raises(ValueError):
        network.add_edge("e", "b", "a", 1e9)


def test_adjacency_is_undirected():
    network = FluidicNetwork()
    for nid in "abc":
        network.add_node(nid)
    network.add_edge("ab", "a", "b", 1e9)
    adjacency = network.get_adjacency()
    assert adjacency["a"] == {"b"}
    assert adjacency["b"] == {"a"}
    assert adjacency["c"] == set()


def test_adjacency_cache_invalidated():
    network = FluidicNetwork()
    network.add_node("a")
    network.add_node("b")
    assert network.get_adjacency()["a"] == set()
    network.add_edge("ab", "a", "b", 1e9)
    assert network.get_adjacency()["a"] == {"b"}


def test_connected_components_in_insertion_order():
    network = FluidicNetwork()
    for nid in ["a", "b", "c", "d", "e"]:
        network.add_node(nid)
    network.add_edge("ad", "a", "d", 1e9)
    network.add_edge("bc", "c", "b", 1e9)
    assert network.connected_components() == [["a", "d"], ["b", "c"], ["e"]]


def test_node_queries(two_node_network):
    assert two_node_network.get_fixed_nodes() == ["pump", "outlet"]
    assert two_node_network.get_free_nodes() == []
    assert two_node_network.get_ground_nodes() == ["outlet"]
    assert two_node_network.get_source_nodes() == ["pump"]
    assert two_node_network.get_edges_at_node("pump") == ["p:out1--o:in1"]


def test_edge_conductance(two_node_network):
    edge = two_node_network.edges["p:out1--o:in1"]
    assert edge.conductance == pytest.approx(1e-9)
    assert not edge.is_self_loop


def test_statistics(two_node_network):
    stats = two_node_network.get_statistics()
    assert stats["n_nodes"] == 2
    assert stats["n_edges"] == 1
    assert stats["n_subnetworks"] == 1
    assert stats["min_resistance"] == 1e9
