"""Unit tests for design snapshot models."""

import math

import pytest
from pydantic import ValidationError

from mfsolve.models.design import (
    CircuitDesign,
    MeanderChannel,
    Outlet,
    Pump,
    StraightChannel,
    TJunction,
    TubingConnection,
    XJunction,
    hub_key,
    load_design,
    port_key,
)


def test_port_key():
    assert port_key("ch1", "port_left") == "ch1:port_left"


def test_default_ports():
    assert StraightChannel(id="s").port_ids == ["port_left", "port_right"]
    assert MeanderChannel(id="m").port_ids == ["port_left", "port_right"]
    assert TJunction(id="t").port_ids == ["port_top", "port_right", "port_bottom"]
    assert XJunction(id="x").port_ids == ["port_left", "port_right", "port_top", "port_bottom"]
    assert Pump(id="p").port_ids == ["out1", "out2", "out3", "out4"]
    assert Outlet(id="o").port_ids == ["in1"]


def test_default_geometry_and_pressures():
    assert StraightChannel(id="s").length_mm == 5.0
    assert MeanderChannel(id="m").length_mm == 150.0
    assert Pump(id="p").port_pressures_pa == {
        "out1": 10000.0, "out2": 10000.0, "out3": 0.0, "out4": 0.0
    }


def test_capabilities():
    assert StraightChannel(id="s").has_resistance
    assert XJunction(id="x").has_internal_topology
    assert Pump(id="p").is_pressure_source
    assert Outlet(id="o").is_ground
    assert not Pump(id="p").has_resistance


def test_kind_discriminates_components():
    design = CircuitDesign(components=[
        {"id": "a", "kind": "straight"},
        {"id": "b", "kind": "meander"},
        {"id": "c", "kind": "x_junction"},
        {"id": "d", "kind": "outlet"},
    ])
    kinds = [type(c) for c in design.components]
    assert kinds == [StraightChannel, MeanderChannel, XJunction, Outlet]


def test_unknown_kind_rejected():
    with pytest.raises(ValidationError):
        CircuitDesign(components=[{"id": "a", "kind": "valve"}])


def test_duplicate_component_ids_rejected():
    with pytest.raises(ValidationError, match="Duplicate component id"):
        CircuitDesign(components=[
            {"id": "a", "kind": "straight"},
            {"id": "a", "kind": "outlet"},
        ])


def test_duplicate_port_ids_rejected():
    with pytest.raises(ValidationError, match="duplicate port id"):
        TJunction(id="t", ports=[{"id": "p"}, {"id": "p"}, {"id": "q"}])


def test_outlet_needs_one_port():
    with pytest.raises(ValidationError):
        Outlet(id="o", ports=[{"id": "in1"}, {"id": "in2"}])


def test_channel_needs_two_ports():
    with pytest.raises(ValidationError):
        StraightChannel(id="s", ports=[{"id": "a"}])


def test_pump_pressure_must_be_finite():
    with pytest.raises(ValidationError):
        Pump(id="p", port_pressures_pa={"out1": float("inf")})


def test_channel_resistance_recomputed_from_geometry():
    ch = StraightChannel(id="s", width_um=100.0)
    original = ch.resistance()
    ch.width_um = 200.0
    assert ch.resistance() < original
    ch.width_um = 100.0
    assert ch.resistance() == original


def test_channel_zero_width_resistance_is_nan():
    assert math.isnan(StraightChannel(id="s", width_um=0.0).resistance())


def test_channel_resistance_uses_config_viscosity(config):
    ch = StraightChannel(id="s")
    thick = config.model_copy(update={
        "fluid": config.fluid.model_copy(update={"viscosity_pa_s": 0.002})
    })
    assert ch.resistance(thick) == pytest.approx(2 * ch.resistance(config), rel=1e-12)


def test_junction_pairs_default_to_all_pairs():
    assert len(XJunction(id="x").internal_pairs()) == 6
    assert len(TJunction(id="t").internal_pairs()) == 3


def test_junction_declared_pairs():
    x = XJunction(id="x", internal_connections=[["port_left", "port_right"]])
    assert x.internal_pairs() == [("port_left", "port_right")]


def test_junction_resistance_from_config(config):
    assert XJunction(id="x").junction_resistance(config) == 0.0
    config.junctions.t_junction_resistance_pa_s_per_m3 = 1e9
    assert TJunction(id="t").junction_resistance(config) == 1e9


def test_port_position():
    ch = StraightChannel(id="s", x_mm=10.0, y_mm=2.0)
    assert ch.port_position_mm("port_right") == (15.0, 2.0)
    with pytest.raises(KeyError):
        ch.get_port("port_top")


def test_tubing_connection_defaults():
    conn = TubingConnection(from_component="a", from_port="x", to_component="b", to_port="y")
    assert conn.material == "silicone"
    assert conn.length_m == 0.05
    assert conn.from_key == "a:x"
    assert conn.inner_diameter_mm() == 1.0


def test_with_component_returns_modified_copy(simple_design):
    wider = simple_design.with_component("ch1", width_um=250.0)
    assert wider.get_component("ch1").width_um == 250.0
    assert simple_design.get_component("ch1").width_um == 100.0


def test_with_component_unknown_id(simple_design):
    with pytest.raises(KeyError):
        simple_design.with_component("nope", width_um=1.0)


def test_load_shipped_designs(designs_dir):
    paths = sorted(designs_dir.glob("*.yaml"))
    assert paths
    for path in paths:
        design = load_design(str(path))
        assert design.n_components > 0
        assert design.n_connections > 0


def test_ids_may_not_contain_key_separator():
    with pytest.raises(ValidationError, match="must not contain"):
        StraightChannel(id="a:b")
    with pytest.raises(ValidationError, match="must not contain"):
        StraightChannel(id="a", ports=[{"id": "b:c"}, {"id": "d"}])


def test_hub_key_cannot_equal_a_port_key():
    assert hub_key("x") == "x::hub"
    assert hub_key("x", 2) == "x::hub#2"
    assert hub_key("x") != port_key("x", "hub")
