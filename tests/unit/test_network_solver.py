"""Unit tests for the nodal-analysis solver."""

import math

import pytest
from mfsolve.core.network import FluidicNetwork
from mfsolve.results import FlowDirection, ResultStatus
from mfsolve.solvers import network_solver
from mfsolve.solvers.network_solver import NetworkFlowSolver


def _chain(pressures, resistances):
    """Fixed ends with free nodes in between: p0 - n1 - ... - p1."""
    network = FluidicNetwork()
    network.add_node("in", fixed_pressure_pa=pressures[0], node_type="pump")
    for i in range(1, len(resistances)):
        network.add_node(f"n{i}")
    network.add_node("out", fixed_pressure_pa=pressures[1], node_type="outlet")
    names = ["in"] + [f"n{i}" for i in range(1, len(resistances))] + ["out"]
    for i, R in enumerate(resistances):
        network.add_edge(f"e{i}", names[i], names[i + 1], R)
    return network


def test_two_fixed_nodes(two_node_network):
    result = NetworkFlowSolver(two_node_network).solve()
    assert result.status == ResultStatus.SUCCESS
    assert result.node_pressures["pump"] == 1000.0
    assert result.node_pressures["outlet"] == 0.0
    assert result.flow("p:out1--o:in1") == pytest.approx(1e-6, rel=1e-12)
    assert result.total_flow_m3_s == pytest.approx(1e-6, rel=1e-12)


def test_series_chain_pressures():
    network = _chain((3000.0, 0.0), [1e9, 1e9, 1e9])
    result = NetworkFlowSolver(network).solve()
    assert result.ok
    assert result.node_pressures["n1"] == pytest.approx(2000.0, rel=1e-9)
    assert result.node_pressures["n2"] == pytest.approx(1000.0, rel=1e-9)
    for eid in ("e0", "e1", "e2"):
        assert result.flow(eid) == pytest.approx(1e-6, rel=1e-9)


def test_parallel_edges_each_carry_their_share():
    network = FluidicNetwork()
    network.add_node("a", fixed_pressure_pa=1000.0)
    network.add_node("b", fixed_pressure_pa=0.0)
    network.add_edge("r1", "a", "b", 1e9)
    network.add_edge("r2", "a", "b", 1e9)
    result = NetworkFlowSolver(network).solve()
    assert result.flow("r1") == pytest.approx(1e-6)
    assert result.flow("r2") == pytest.approx(1e-6)
    assert result.total_flow_m3_s == pytest.approx(2e-6)


def test_widely_separated_resistances():
    network = _chain((10000.0, 0.0), [1e6, 1e14])
    result = NetworkFlowSolver(network).solve()
    assert result.ok
    expected = 10000.0 * 1e14 / (1e6 + 1e14)
    assert result.node_pressures["n1"] == pytest.approx(expected, rel=1e-9)


def test_reverse_flow_direction():
    network = _chain((0.0, 500.0), [1e9, 1e9])
    result = NetworkFlowSolver(network).solve()
    segment = result.segment_flows["e0"]
    assert segment.flow_m3_s < 0
    assert segment.direction == FlowDirection.REVERSE


def test_equal_pressures_give_no_flow():
    network = _chain((500.0, 500.0), [1e9, 1e9])
    result = NetworkFlowSolver(network).solve()
    assert result.node_pressures["n1"] == pytest.approx(500.0)
    assert result.segment_flows["e0"].direction == FlowDirection.NONE


def test_flow_conserved_at_free_node():
    network = FluidicNetwork()
    network.add_node("p1", fixed_pressure_pa=4000.0)
    network.add_node("p2", fixed_pressure_pa=1000.0)
    network.add_node("o", fixed_pressure_pa=0.0)
    network.add_node("j")
    network.add_edge("a", "p1", "j", 2e9)
    network.add_edge("b", "p2", "j", 1e9)
    network.add_edge("c", "j", "o", 3e9)
    result = NetworkFlowSolver(network).solve()
    assert result.flow("a") + result.flow("b") == pytest.approx(result.flow("c"), rel=1e-9)


def test_no_fixed_node_is_no_ground_reference():
    network = FluidicNetwork()
    network.add_node("a")
    network.add_node("b")
    network.add_edge("ab", "a", "b", 1e9)
    result = NetworkFlowSolver(network).solve()
    assert result.status == ResultStatus.FAILED
    assert result.error_codes() == ["NoGroundReference"]
    assert math.isnan(result.node_pressures["a"])
    assert result.segment_flows["ab"].direction == FlowDirection.UNDEFINED


def test_floating_subnetwork_is_partial(two_node_network):
    two_node_network.add_node("f1")
    two_node_network.add_node("f2")
    two_node_network.add_edge("f", "f1", "f2", 1e9)
    result = NetworkFlowSolver(two_node_network).solve()
    assert result.status == ResultStatus.PARTIAL
    assert result.errors == ()
    assert result.warning_codes() == ["NoGroundReference"]
    assert math.isnan(result.node_pressures["f1"])
    assert math.isnan(result.flow("f"))
    assert result.flow("p:out1--o:in1") == pytest.approx(1e-6)


def test_empty_network_fails():
    result = NetworkFlowSolver(FluidicNetwork()).solve()
    assert result.status == ResultStatus.FAILED
    assert result.error_codes() == ["TopologyError"]


def test_pumps_without_outlet_warns():
    network = FluidicNetwork()
    network.add_node("p1", fixed_pressure_pa=2000.0, node_type="pump")
    network.add_node("p2", fixed_pressure_pa=1000.0, node_type="pump")
    network.add_edge("e", "p1", "p2", 1e9)
    result = NetworkFlowSolver(network).solve()
    assert result.ok
    assert "NoOutlet" in result.warning_codes()


def test_pump_not_reaching_outlet_warns():
    network = FluidicNetwork()
    network.add_node("p", fixed_pressure_pa=2000.0, node_type="pump")
    network.add_node("o", fixed_pressure_pa=0.0, node_type="outlet")
    network.add_node("n")
    network.add_edge("e", "p", "n", 1e9)
    result = NetworkFlowSolver(network).solve()
    assert "NoFlowPath" in result.warning_codes()
    assert result.node_pressures["n"] == pytest.approx(2000.0)


def test_self_loop_carries_no_flow():
    network = _chain((1000.0, 0.0), [1e9, 1e9])
    network.add_edge("loop", "n1", "n1", 1e9)
    result = NetworkFlowSolver(network).solve()
    assert result.flow("loop") == 0.0
    assert result.node_pressures["n1"] == pytest.approx(500.0)


def test_solve_is_repeatable(two_node_network):
    solver = NetworkFlowSolver(two_node_network)
    first = solver.solve()
    second = solver.solve()
    assert dict(first.node_pressures) == dict(second.node_pressures)
    assert first.flow("p:out1--o:in1") == second.flow("p:out1--o:in1")


def test_statistics_after_solve():
    solver = NetworkFlowSolver(_chain((1000.0, 0.0), [1e9, 1e9]))
    solver.solve()
    stats = solver.get_statistics()
    assert stats["n_subnetworks_solved"] == 1
    assert stats["max_relative_residual"] < 1e-9


def test_singular_subnetwork_does_not_block_others(monkeypatch):
    """A sub-network whose factorisation fails is reported; the rest is solved."""
    network = _chain((3000.0, 0.0), [1e9, 1e9, 1e9])
    network.add_node("p2", fixed_pressure_pa=1000.0, node_type="pump")
    network.add_node("j")
    network.add_node("o2", fixed_pressure_pa=0.0, node_type="outlet")
    network.add_edge("f1", "p2", "j", 1e9)
    network.add_edge("f2", "j", "o2", 1e9)

    real_splu = network_solver.splu

    def failing_splu(A):
        if A.shape[0] == 2:
            raise RuntimeError("Factor is exactly singular")
        return real_splu(A)

    monkeypatch.setattr(network_solver, "splu", failing_splu)
    result = NetworkFlowSolver(network).solve()

    assert result.status == ResultStatus.PARTIAL
    assert result.error_codes() == ["SingularSystem"]
    assert set(result.errors[0].subjects) == {"n1", "n2"}
    assert math.isnan(result.node_pressures["n1"])
    assert math.isnan(result.flow("e1"))
    assert result.node_pressures["j"] == pytest.approx(500.0)
    assert result.flow("f2") == pytest.approx(5e-7)
