"""Shared fixtures for solver tests."""

from pathlib import Path

import pytest

from mfsolve.core.network import FluidicNetwork
from mfsolve.models.config import SolverConfig
from mfsolve.models.design import CircuitDesign

DESIGNS_DIR = Path(__file__).parent.parent / "configs" / "designs"


@pytest.fixture
def config():
    return SolverConfig()


@pytest.fixture
def designs_dir():
    return DESIGNS_DIR


@pytest.fixture
def simple_design():
    """Pump out1 at 10 kPa → straight channel → outlet, silicone tubing."""
    return CircuitDesign(
        name="simple",
        components=[
            {"id": "pump1", "kind": "pump",
             "port_pressures_pa": {"out1": 10000.0, "out2": 0.0, "out3": 0.0, "out4": 0.0}},
            {"id": "ch1", "kind": "straight", "x_mm": 40.0},
            {"id": "outlet1", "kind": "outlet", "x_mm": 80.0},
        ],
        connections=[
            {"id": "t1", "from_component": "pump1", "from_port": "out1",
             "to_component": "ch1", "to_port": "port_left"},
            {"id": "t2", "from_component": "ch1", "from_port": "port_right",
             "to_component": "outlet1", "to_port": "in1"},
        ],
    )


@pytest.fixture
def two_node_network():
    """Pump node at 1000 Pa joined to a grounded outlet by R = 1e9."""
    network = FluidicNetwork()
    network.add_node("pump", port_keys=("p:out1",), node_type="pump", fixed_pressure_pa=1000.0)
    network.add_node("outlet", port_keys=("o:in1",), node_type="outlet", fixed_pressure_pa=0.0)
    network.add_edge("p:out1--o:in1", "pump", "outlet", 1e9, port_a="p:out1", port_b="o:in1")
    return network
