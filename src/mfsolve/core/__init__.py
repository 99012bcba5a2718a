"""Core network components."""

from .resistance import (
    UnknownMaterialError,
    circular_tube_resistance,
    rectangular_channel_resistance,
    tubing_inner_diameter_mm,
    tubing_resistance,
)
from .network import FluidicNetwork, NetworkNode, NetworkEdge

__all__ = [
    'UnknownMaterialError',
    'circular_tube_resistance',
    'rectangular_channel_resistance',
    'tubing_inner_diameter_mm',
    'tubing_resistance',
    'FluidicNetwork',
    'NetworkNode',
    'NetworkEdge',
]
