"""
Circuit design snapshot models using Pydantic.

A design is a list of placed components plus the tubing connections
between their ports. It is the only input to a solve: the UI (or a YAML
file) builds one, the solver reads it and never modifies it.

Components form a closed set discriminated by ``kind``:

    straight, meander   - rectangular channel between two ports
    t_junction          - three ports joined internally
    x_junction          - four ports joined internally
    pump                - fixed pressure at each port
    outlet              - single port at reference (zero) pressure
"""

import math
from itertools import combinations
from typing import Annotated, ClassVar, Dict, List, Literal, Optional, Tuple, Union
from pydantic import BaseModel, Field, field_validator, model_validator

from .config import SolverConfig
from ..core.resistance import (
    DEFAULT_VISCOSITY_PA_S,
    rectangular_channel_resistance,
    tubing_inner_diameter_mm,
    tubing_resistance,
)


KEY_SEPARATOR = ":"


def port_key(component_id: str, port_id: str) -> str:
    """Global key of a port: '<component_id>:<port_id>'."""
    return f"{component_id}{KEY_SEPARATOR}{port_id}"


def hub_key(component_id: str, index: int = 1) -> str:
    """
    Id of a junction hub node: '<component_id>::hub', then '::hub#2', ...

    Ids may not contain the separator, so no port key can take this form.
    """
    suffix = "hub" if index == 1 else f"hub#{index}"
    return f"{component_id}{KEY_SEPARATOR * 2}{suffix}"


def _check_key_part(value: str, what: str) -> str:
    if KEY_SEPARATOR in value:
        raise ValueError(f"{what} '{value}' must not contain '{KEY_SEPARATOR}'")
    return value


# =============================================================================
# Ports
# =============================================================================

class Port(BaseModel):
    """Named connection point on a component."""

    id: str = Field(..., min_length=1, description="Port id, unique within its component")
    name: Optional[str] = None
    x_mm: float = Field(default=0.0, description="Offset from component origin (mm)")
    y_mm: float = Field(default=0.0, description="Offset from component origin (mm)")
    orientation: Optional[Literal["left", "right", "top", "bottom"]] = None

    @field_validator('id')
    @classmethod
    def check_id(cls, v):
        return _check_key_part(v, "Port id")


def _ports(*specs: Tuple[str, float, float, str]) -> List[Port]:
    return [Port(id=pid, x_mm=x, y_mm=y, orientation=o) for pid, x, y, o in specs]


def _channel_ports() -> List[Port]:
    return _ports(("port_left", -5.0, 0.0, "left"), ("port_right", 5.0, 0.0, "right"))


def _t_junction_ports() -> List[Port]:
    return _ports(
        ("port_top", 0.0, 5.0, "top"),
        ("port_right", 5.0, 0.0, "right"),
        ("port_bottom", 0.0, -5.0, "bottom"),
    )


def _x_junction_ports() -> List[Port]:
    return _ports(
        ("port_left", -5.0, 0.0, "left"),
        ("port_right", 5.0, 0.0, "right"),
        ("port_top", 0.0, 5.0, "top"),
        ("port_bottom", 0.0, -5.0, "bottom"),
    )


def _pump_ports() -> List[Port]:
    return _ports(
        ("out1", 10.0, 7.5, "right"),
        ("out2", 10.0, 2.5, "right"),
        ("out3", 10.0, -2.5, "right"),
        ("out4", 10.0, -7.5, "right"),
    )


def _outlet_ports() -> List[Port]:
    return _ports(("in1", -5.0, 0.0, "left"))


# =============================================================================
# Components
# =============================================================================

class ComponentBase(BaseModel):
    """Fields and capabilities shared by all component kinds."""

    id: str = Field(..., min_length=1, description="Unique component id")
    name: Optional[str] = None
    x_mm: float = Field(default=0.0, description="Placement position (mm)")
    y_mm: float = Field(default=0.0, description="Placement position (mm)")
    ports: List[Port]

    # Capabilities
    has_resistance: ClassVar[bool] = False
    has_internal_topology: ClassVar[bool] = False
    is_pressure_source: ClassVar[bool] = False
    is_ground: ClassVar[bool] = False

    @field_validator('id')
    @classmethod
    def check_id(cls, v):
        return _check_key_part(v, "Component id")

    @model_validator(mode='after')
    def validate_unique_ports(self):
        """Port ids are unique within a component."""
        seen = set()
        for port in self.ports:
            if port.id in seen:
                raise ValueError(f"Component '{self.id}' has duplicate port id '{port.id}'")
            seen.add(port.id)
        return self

    @property
    def port_ids(self) -> List[str]:
        """Port ids in declaration order."""
        return [p.id for p in self.ports]

    def has_port(self, port_id: str) -> bool:
        return any(p.id == port_id for p in self.ports)

    def get_port(self, port_id: str) -> Port:
        """
        Look up a port by id.

        Raises:
            KeyError: If the component has no such port
        """
        for port in self.ports:
            if port.id == port_id:
                return port
        raise KeyError(f"Component '{self.id}' has no port '{port_id}'")

    def port_position_mm(self, port_id: str) -> Tuple[float, float]:
        """Absolute (x, y) of a port in mm."""
        port = self.get_port(port_id)
        return (self.x_mm + port.x_mm, self.y_mm + port.y_mm)


class ChannelBase(ComponentBase):
    """Rectangular microchannel between exactly two ports."""

    length_mm: float = Field(default=5.0, description="Channel length (mm)")
    width_um: float = Field(default=100.0, description="Channel width (μm)")
    depth_um: float = Field(default=100.0, description="Channel depth (μm)")
    ports: List[Port] = Field(default_factory=_channel_ports)

    has_resistance: ClassVar[bool] = True

    @model_validator(mode='after')
    def validate_two_ports(self):
        """A channel connects exactly two ports."""
        if len(self.ports) != 2:
            raise ValueError(
                f"Channel '{self.id}' must have exactly 2 ports, got {len(self.ports)}"
            )
        return self

    def resistance(self, config: Optional[SolverConfig] = None) -> float:
        """
        Hydraulic resistance from the current geometry (Pa·s/m³).

        Always recomputed; NaN when any dimension is not positive.
        """
        if config is None:
            viscosity, n_terms = DEFAULT_VISCOSITY_PA_S, 50
        else:
            viscosity = config.viscosity_pa_s
            n_terms = config.numerics.rectangular_series_terms
        return rectangular_channel_resistance(
            self.length_mm * 1e-3,
            self.width_um * 1e-6,
            self.depth_um * 1e-6,
            viscosity,
            n_terms,
        )

    @property
    def endpoints(self) -> Tuple[str, str]:
        """Port ids joined by the channel, in flow-sign order."""
        return (self.ports[0].id, self.ports[1].id)


class StraightChannel(ChannelBase):
    """Straight channel chip."""

    kind: Literal["straight"] = "straight"


class MeanderChannel(ChannelBase):
    """Meander (serpentine) channel chip."""

    kind: Literal["meander"] = "meander"
    length_mm: float = Field(default=150.0, description="Unfolded channel length (mm)")


class JunctionBase(ComponentBase):
    """
    Junction chip whose ports are joined internally.

    ``internal_connections`` lists the joined port pairs; when omitted
    every pair of ports is joined.
    """

    internal_connections: Optional[List[Tuple[str, str]]] = None

    has_internal_topology: ClassVar[bool] = True

    def internal_pairs(self) -> List[Tuple[str, str]]:
        """Internally joined port pairs (declared or all pairs)."""
        if self.internal_connections is None:
            return list(combinations(self.port_ids, 2))
        return [tuple(pair) for pair in self.internal_connections]

    def junction_resistance(self, config: Optional[SolverConfig] = None) -> float:
        """Configured internal resistance of this junction type (Pa·s/m³)."""
        return 0.0


class TJunction(JunctionBase):
    """Three-way junction chip."""

    kind: Literal["t_junction"] = "t_junction"
    ports: List[Port] = Field(default_factory=_t_junction_ports)

    def junction_resistance(self, config: Optional[SolverConfig] = None) -> float:
        if config is None:
            return 0.0
        return config.junctions.t_junction_resistance_pa_s_per_m3


class XJunction(JunctionBase):
    """Four-way cross junction chip."""

    kind: Literal["x_junction"] = "x_junction"
    ports: List[Port] = Field(default_factory=_x_junction_ports)

    def junction_resistance(self, config: Optional[SolverConfig] = None) -> float:
        if config is None:
            return 0.0
        return config.junctions.x_junction_resistance_pa_s_per_m3


class Pump(ComponentBase):
    """Pressure-driven pump: each port is held at a fixed pressure."""

    kind: Literal["pump"] = "pump"
    ports: List[Port] = Field(default_factory=_pump_ports)
    port_pressures_pa: Dict[str, float] = Field(
        default_factory=lambda: {"out1": 10000.0, "out2": 10000.0, "out3": 0.0, "out4": 0.0},
        description="Port id → target pressure (Pa)"
    )

    is_pressure_source: ClassVar[bool] = True

    @field_validator('port_pressures_pa')
    @classmethod
    def check_finite(cls, v):
        """Pressures must be finite numbers."""
        for pid, p in v.items():
            if not math.isfinite(p):
                raise ValueError(f"Pressure for port '{pid}' is not finite: {p}")
        return v

    def pressure_for(self, port_id: str) -> Optional[float]:
        """Configured pressure of a port, or None if unset."""
        return self.port_pressures_pa.get(port_id)


class Outlet(ComponentBase):
    """Outlet reservoir: one port at reference pressure."""

    kind: Literal["outlet"] = "outlet"
    ports: List[Port] = Field(default_factory=_outlet_ports)

    is_ground: ClassVar[bool] = True

    @model_validator(mode='after')
    def validate_single_port(self):
        """An outlet exposes exactly one port."""
        if len(self.ports) != 1:
            raise ValueError(
                f"Outlet '{self.id}' must have exactly 1 port, got {len(self.ports)}"
            )
        return self

    @property
    def pressure_pa(self) -> float:
        return 0.0


Component = Annotated[
    Union[StraightChannel, MeanderChannel, TJunction, XJunction, Pump, Outlet],
    Field(discriminator="kind"),
]


# =============================================================================
# Tubing Connections
# =============================================================================

class TubingConnection(BaseModel):
    """Length of tubing between ports of two different components."""

    id: Optional[str] = None
    from_component: str
    from_port: str
    to_component: str
    to_port: str
    material: str = Field(default="silicone", description="Tubing material")
    length_m: float = Field(default=0.05, description="Tubing length (m)")

    @property
    def from_key(self) -> str:
        return port_key(self.from_component, self.from_port)

    @property
    def to_key(self) -> str:
        return port_key(self.to_component, self.to_port)

    def inner_diameter_mm(self, config: Optional[SolverConfig] = None) -> float:
        """
        Inner diameter from the material's tubing type.

        Raises:
            UnknownMaterialError: If the material is not in the lookup
        """
        materials = None if config is None else config.tubing_materials
        return tubing_inner_diameter_mm(self.material, materials)

    def resistance(self, config: Optional[SolverConfig] = None) -> float:
        """
        Hydraulic resistance from material and length (Pa·s/m³).

        Raises:
            UnknownMaterialError: If the material is not in the lookup
        """
        if config is None:
            return tubing_resistance(self.length_m, self.material)
        return tubing_resistance(
            self.length_m, self.material,
            viscosity_pa_s=config.viscosity_pa_s,
            materials=config.tubing_materials,
        )


# =============================================================================
# Design Snapshot
# =============================================================================

class CircuitDesign(BaseModel):
    """Placed components and their tubing connections."""

    name: str = Field(default="untitled", description="Design name")
    description: Optional[str] = None
    components: List[Component] = Field(default_factory=list)
    connections: List[TubingConnection] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_unique_ids(self):
        """Component ids, and explicit connection ids, are unique."""
        seen = set()
        for comp in self.components:
            if comp.id in seen:
                raise ValueError(f"Duplicate component id '{comp.id}'")
            seen.add(comp.id)

        seen = set()
        for conn in self.connections:
            if conn.id is None:
                continue
            if conn.id in seen:
                raise ValueError(f"Duplicate connection id '{conn.id}'")
            seen.add(conn.id)
        return self

    def get_component(self, component_id: str):
        """
        Look up a component by id.

        Raises:
            KeyError: If no component has that id
        """
        for comp in self.components:
            if comp.id == component_id:
                return comp
        raise KeyError(f"No component with id '{component_id}'")

    def with_component(self, component_id: str, **changes) -> "CircuitDesign":
        """
        Copy of the design with one component's fields changed.

        Example:
            wider = design.with_component("ch1", width_um=200.0)
        """
        components = [
            c.model_copy(update=changes) if c.id == component_id else c
            for c in self.components
        ]
        if all(c.id != component_id for c in self.components):
            raise KeyError(f"No component with id '{component_id}'")
        return self.model_copy(update={"components": components})

    @property
    def n_components(self) -> int:
        return len(self.components)

    @property
    def n_connections(self) -> int:
        return len(self.connections)


def load_design(filepath: str) -> CircuitDesign:
    """Load and validate a circuit design from YAML file."""
    import yaml

    with open(filepath, 'r') as f:
        data = yaml.safe_load(f) or {}

    return CircuitDesign(**data)
