"""End-to-end tests: design snapshot → SimulationResult."""

import math

import pytest
from mfsolve.core.resistance import rectangular_channel_resistance, tubing_resistance
from mfsolve.models.design import CircuitDesign, Outlet, StraightChannel
from mfsolve.results import FlowDirection, ResultStatus
from mfsolve.simulation import solve_design, solve_file, solve_snapshot


def _pump(pid, out1, **extra):
    return dict(id=pid, kind="pump",
                port_pressures_pa={"out1": out1, "out2": 0.0, "out3": 0.0, "out4": 0.0},
                **extra)


def test_series_flow_matches_hand_calculation(simple_design, config):
    result = solve_design(simple_design, config)
    assert result.status == ResultStatus.SUCCESS
    assert result.errors == ()
    assert result.warnings == ()

    R_ch = rectangular_channel_resistance(5e-3, 100e-6, 100e-6)
    R_t = tubing_resistance(0.05, "silicone")
    Q = 10000.0 / (R_ch + 2 * R_t)

    assert result.flow("ch1:port_left--ch1:port_right") == pytest.approx(Q, rel=1e-9)
    assert result.total_flow_m3_s == pytest.approx(Q, rel=1e-9)
    assert result.pressure_at("pump1", "out1") == 10000.0
    assert result.pressure_at("outlet1", "in1") == 0.0
    assert result.pressure_at("ch1", "port_left") == pytest.approx(10000.0 - Q * R_t, rel=1e-9)
    assert result.pressure_at("ch1", "port_right") == pytest.approx(Q * R_t, rel=1e-9)


def test_pressure_monotonic_along_series_path(simple_design, config):
    result = solve_design(simple_design, config)
    path = [("pump1", "out1"), ("ch1", "port_left"), ("ch1", "port_right"), ("outlet1", "in1")]
    pressures = [result.pressure_at(c, p) for c, p in path]
    assert pressures == sorted(pressures, reverse=True)
    for seg in result.segment_flows.values():
        assert seg.direction == FlowDirection.FORWARD


def test_cross_junction_with_four_pumps(config):
    components = [_pump(f"p{i}", 1000.0 * i, x_mm=10.0 * i) for i in range(1, 5)]
    components.append({"id": "x", "kind": "x_junction"})
    ports = ["port_left", "port_right", "port_top", "port_bottom"]
    connections = [
        {"from_component": f"p{i}", "from_port": "out1", "to_component": "x", "to_port": port}
        for i, port in zip(range(1, 5), ports)
    ]
    design = CircuitDesign(components=components, connections=connections)
    result = solve_design(design, config)

    assert result.ok
    assert "NoOutlet" in result.warning_codes()
    for port in ports:
        assert result.pressure_at("x", port) == pytest.approx(2500.0, rel=1e-9)
    # Pumps above the junction pressure feed it, the others drain it
    assert result.flow("p4:out1--x:port_bottom") > 0
    assert result.flow("p1:out1--x:port_left") < 0


def test_parallel_branches_conserve_flow(designs_dir, config):
    result = solve_file(str(designs_dir / "parallel_meanders.yaml"), config)
    assert result.status == ResultStatus.SUCCESS
    q1 = result.flow("m1:port_left--m1:port_right")
    q2 = result.flow("m2:port_left--m2:port_right")
    q_in = result.flow("pump1:out1--split:port_right")
    assert q1 + q2 == pytest.approx(q_in, rel=1e-9)
    assert q2 > q1 > 0
    assert result.total_flow_m3_s == pytest.approx(q_in, rel=1e-9)


def test_no_pump_or_outlet_fails(config):
    design = CircuitDesign(
        components=[{"id": "c", "kind": "straight"}, {"id": "t", "kind": "t_junction"}],
        connections=[{"from_component": "c", "from_port": "port_right",
                      "to_component": "t", "to_port": "port_top"}],
    )
    result = solve_design(design, config)
    assert result.status == ResultStatus.FAILED
    assert result.error_codes() == ["NoGroundReference"]
    assert all(math.isnan(p) for p in result.port_pressures.values())


def test_solving_twice_gives_identical_results(simple_design, config):
    first = solve_design(simple_design, config)
    second = solve_design(simple_design, config)
    assert first.to_dict() == second.to_dict()


def test_width_change_and_revert(simple_design, config):
    base = solve_design(simple_design, config).total_flow_m3_s
    wider_design = simple_design.with_component("ch1", width_um=200.0)
    assert solve_design(wider_design, config).total_flow_m3_s > base
    reverted = wider_design.with_component("ch1", width_um=100.0)
    assert solve_design(reverted, config).total_flow_m3_s == base


def test_invalid_snapshot_fails_with_topology_errors(config):
    result = solve_snapshot({"name": "bad", "components": [{"id": "a", "kind": "valve"}]}, config)
    assert result.status == ResultStatus.FAILED
    assert result.design_name == "bad"
    assert result.errors
    assert set(result.error_codes()) == {"TopologyError"}


def test_build_errors_fail_the_solve(simple_design, config):
    design = simple_design.with_component("ch1", depth_um=0.0)
    result = solve_design(design, config)
    assert result.status == ResultStatus.FAILED
    assert result.error_codes() == ["InvalidGeometry"]
    assert result.errors[0].subjects == ("ch1",)


def test_dangling_channel_port(config):
    design = CircuitDesign(
        components=[_pump("pump1", 10000.0), {"id": "ch1", "kind": "straight"},
                    {"id": "outlet1", "kind": "outlet"}],
        connections=[{"from_component": "pump1", "from_port": "out1",
                      "to_component": "ch1", "to_port": "port_left"}],
    )
    result = solve_design(design, config)
    assert result.pressure_at("ch1", "port_right") == pytest.approx(10000.0, rel=1e-9)
    assert abs(result.flow("ch1:port_left--ch1:port_right")) < 1e-20
    assert "UnconnectedComponent" in result.warning_codes()
    assert "NoFlowPath" in result.warning_codes()


def test_isolated_component_gives_partial_result(simple_design, config):
    components = list(simple_design.components)
    components.append(StraightChannel(id="ch2", y_mm=-20.0))
    design = simple_design.model_copy(update={"components": components})
    result = solve_design(design, config)
    assert result.status == ResultStatus.PARTIAL
    assert result.errors == ()
    assert "NoGroundReference" in result.warning_codes()
    assert "IsolatedComponent" in result.warning_codes()
    assert math.isnan(result.pressure_at("ch2", "port_left"))
    assert math.isnan(result.flow("ch2:port_left--ch2:port_right"))
    # The connected part is still solved
    assert result.total_flow_m3_s > 0


def test_unconnected_outlet_warns(simple_design, config):
    components = list(simple_design.components)
    components.append(Outlet(id="outlet2", y_mm=20.0))
    design = simple_design.model_copy(update={"components": components})
    result = solve_design(design, config)
    assert result.status == ResultStatus.SUCCESS
    assert result.warning_codes() == ["UnconnectedComponent"]
    assert result.warnings[0].subjects == ("outlet2",)


def test_zero_pump_pressure_warns_near_zero_flow(config):
    design = CircuitDesign(
        components=[_pump("pump1", 0.0), {"id": "ch1", "kind": "straight"},
                    {"id": "outlet1", "kind": "outlet"}],
        connections=[
            {"from_component": "pump1", "from_port": "out1",
             "to_component": "ch1", "to_port": "port_left"},
            {"from_component": "ch1", "from_port": "port_right",
             "to_component": "outlet1", "to_port": "in1"},
        ],
    )
    result = solve_design(design, config)
    assert result.warning_codes() == ["NearZeroFlow"]
    assert result.total_flow_m3_s == 0.0
    for seg in result.segment_flows.values():
        assert seg.direction == FlowDirection.NONE


def test_junction_resistance_reduces_flow(designs_dir, config):
    path = str(designs_dir / "cross_mixer.yaml")
    ideal = solve_file(path, config)
    config.junctions.x_junction_resistance_pa_s_per_m3 = 1e11
    lossy = solve_file(path, config)
    assert lossy.status == ResultStatus.SUCCESS
    assert "mixer::hub" in lossy.node_pressures
    assert lossy.total_flow_m3_s < ideal.total_flow_m3_s


@pytest.mark.parametrize("name", ["pump_straight_outlet", "parallel_meanders", "cross_mixer"])
def test_example_designs_solve(designs_dir, config, name):
    result = solve_file(str(designs_dir / f"{name}.yaml"), config)
    assert result.status == ResultStatus.SUCCESS
    assert result.errors == ()
    assert result.design_name == name
    assert result.total_flow_m3_s > 0


def test_junction_port_named_hub_keeps_its_own_node(config):
    config.junctions.x_junction_resistance_pa_s_per_m3 = 1e9
    design = CircuitDesign(
        components=[
            _pump("pump1", 1000.0),
            {"id": "x", "kind": "x_junction",
             "ports": [{"id": "hub"}, {"id": "a"}, {"id": "b"}, {"id": "c"}]},
            {"id": "outlet1", "kind": "outlet"},
        ],
        connections=[
            {"from_component": "pump1", "from_port": "out1", "to_component": "x", "to_port": "hub"},
            {"from_component": "x", "from_port": "a", "to_component": "outlet1", "to_port": "in1"},
        ],
    )
    result = solve_design(design, config)
    assert result.status == ResultStatus.SUCCESS
    assert result.port_to_node["x:hub"] == "x:hub"
    assert "x::hub" in result.node_pressures
    assert result.pressure_at("x", "hub") > result.node_pressures["x::hub"] > 0


def test_ids_with_separator_are_rejected_not_merged(config):
    """'a' + 'b:c' and 'a:b' + 'c' would share the key 'a:b:c'."""
    snapshot = {
        "components": [
            {"id": "a", "kind": "straight", "ports": [{"id": "b:c"}, {"id": "d"}]},
            {"id": "a:b", "kind": "straight", "ports": [{"id": "c"}, {"id": "d"}]},
        ],
    }
    result = solve_snapshot(snapshot, config)
    assert result.status == ResultStatus.FAILED
    assert len(result.errors) == 2
    assert set(result.error_codes()) == {"TopologyError"}
