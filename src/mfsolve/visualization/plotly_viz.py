"""
Plotly-based visualization for solver results.

Provides interactive visualizations for:
- Node pressures
- Segment flow rates
- Circuit layout coloured by flow and pressure
- Parameter sweeps

Figures only read a SimulationResult; nothing here recomputes
pressures or flows.
"""

import math
from typing import Any, Dict, List, Optional, Sequence

import plotly.graph_objects as go

from ..models.config import DisplayConfig
from ..models.design import CircuitDesign
from ..results import SimulationResult
from .units import (
    M3S_TO_ULMIN,
    PASCAL_TO_MBAR,
    finite_range,
    flow_color,
    format_flow_rate,
    format_flow_velocity,
    format_pressure,
    mean_velocity_m_s,
    pressure_color,
)


class ResultVisualizer:
    """
    Interactive visualization and display tables for one result.

    The design is optional; it is needed for the layout figure and
    channel velocities.
    """

    def __init__(self, result: SimulationResult,
                 design: Optional[CircuitDesign] = None,
                 display: Optional[DisplayConfig] = None):
        """
        Initialize visualizer.

        Args:
            result: Solved SimulationResult
            design: Design the result was solved from
            display: Colour settings (defaults if None)
        """
        self.result = result
        self.design = design
        self.display = display or DisplayConfig()

        self.pressure_range = finite_range(result.node_pressures.values())
        self.flow_range = finite_range(
            abs(s.flow_m3_s) for s in result.segment_flows.values()
        )

    # =========================================================================
    # Tables
    # =========================================================================

    def port_rows(self) -> List[Dict[str, Any]]:
        """One row per port: component, port, node and pressure."""
        rows = []
        for key, node_id in self.result.port_to_node.items():
            component_id, port_id = key.split(':', 1)
            pressure = self.result.port_pressures[key]
            rows.append({
                'component': component_id,
                'port': port_id,
                'node': node_id,
                'pressure_pa': pressure,
                'pressure': format_pressure(pressure),
            })
        return rows

    def segment_rows(self) -> List[Dict[str, Any]]:
        """One row per segment: kind, owner, flow, direction and resistance."""
        rows = []
        for seg in self.result.segment_flows.values():
            owner = seg.component_id or seg.connection_id or ""
            row = {
                'segment': seg.id,
                'kind': seg.kind,
                'owner': owner,
                'flow_m3_s': seg.flow_m3_s,
                'flow': format_flow_rate(seg.flow_m3_s),
                'direction': seg.direction.value,
                'resistance_pa_s_per_m3': seg.resistance,
                'pressure_drop': format_pressure(seg.pressure_drop_pa),
            }
            velocity = self._channel_velocity(seg.component_id, seg.flow_m3_s) \
                if seg.kind == 'channel' else math.nan
            row['velocity'] = format_flow_velocity(velocity) if not math.isnan(velocity) else ""
            rows.append(row)
        return rows

    def diagnostic_rows(self) -> List[Dict[str, Any]]:
        """Errors first, then warnings."""
        return [d.to_dict() for d in self.result.errors + self.result.warnings]

    def summary(self) -> Dict[str, str]:
        """Headline numbers, formatted."""
        p_min, p_max = self.pressure_range
        return {
            'status': self.result.status.value,
            'total_flow': format_flow_rate(self.result.total_flow_m3_s),
            'min_pressure': format_pressure(p_min),
            'max_pressure': format_pressure(p_max),
            'segments': str(len(self.result.segment_flows)),
            'errors': str(len(self.result.errors)),
            'warnings': str(len(self.result.warnings)),
        }

    def _channel_velocity(self, component_id: Optional[str], flow_m3_s: float) -> float:
        if self.design is None or component_id is None:
            return math.nan
        try:
            comp = self.design.get_component(component_id)
        except KeyError:
            return math.nan
        return mean_velocity_m_s(flow_m3_s, comp.width_um, comp.depth_um)

    # =========================================================================
    # Figures
    # =========================================================================

    def plot_pressure_bars(self, title: str = "Node Pressures") -> go.Figure:
        """
        Bar chart of node pressures (mbar).

        Returns:
            Plotly Figure
        """
        p_min, p_max = self.pressure_range
        node_ids = list(self.result.node_pressures.keys())
        pressures = [self.result.node_pressures[n] for n in node_ids]

        fig = go.Figure(data=go.Bar(
            x=node_ids,
            y=[p * PASCAL_TO_MBAR if math.isfinite(p) else None for p in pressures],
            marker_color=[pressure_color(p, p_min, p_max, self.display) for p in pressures],
            text=[format_pressure(p) for p in pressures],
            hovertemplate='%{x}<br>%{text}<extra></extra>'
        ))

        fig.update_layout(
            title=title,
            xaxis_title="Node",
            yaxis_title="Pressure (mbar)",
            height=450,
            template="plotly_white"
        )

        return fig

    def plot_flow_bars(self, title: str = "Segment Flow Rates") -> go.Figure:
        """
        Bar chart of segment flow magnitudes (µL/min).

        Returns:
            Plotly Figure
        """
        f_min, f_max = self.flow_range
        segments = list(self.result.segment_flows.values())

        fig = go.Figure(data=go.Bar(
            x=[s.id for s in segments],
            y=[abs(s.flow_m3_s) * M3S_TO_ULMIN if math.isfinite(s.flow_m3_s) else None
               for s in segments],
            marker_color=[flow_color(s.flow_m3_s, f_min, f_max, self.display) for s in segments],
            text=[f"{format_flow_rate(s.flow_m3_s)} ({s.direction.value})" for s in segments],
            hovertemplate='%{x}<br>%{text}<extra></extra>'
        ))

        fig.update_layout(
            title=title,
            xaxis_title="Segment",
            yaxis_title="Flow rate (µL/min)",
            height=450,
            template="plotly_white"
        )

        return fig

    def plot_network_layout(self, title: str = "Circuit Layout") -> go.Figure:
        """
        Plan view of the circuit.

        Segments are drawn between port positions and coloured by flow
        magnitude; ports are coloured by pressure.

        Returns:
            Plotly Figure

        Raises:
            ValueError: If the visualizer has no design
        """
        if self.design is None:
            raise ValueError("Layout figure requires the design")

        f_min, f_max = self.flow_range
        p_min, p_max = self.pressure_range
        fig = go.Figure()

        # Segments
        for seg in self.result.segment_flows.values():
            start = self._position(seg.port_a)
            end = self._position(seg.port_b)
            if start is None or end is None:
                continue
            fig.add_trace(go.Scatter(
                x=[start[0], end[0]],
                y=[start[1], end[1]],
                mode='lines',
                line=dict(color=flow_color(seg.flow_m3_s, f_min, f_max, self.display),
                          width=6 if seg.kind == 'tubing' else 10),
                name=seg.id,
                showlegend=False,
                hovertemplate=(
                    f"{seg.id}<br>{format_flow_rate(seg.flow_m3_s)} "
                    f"({seg.direction.value})<extra></extra>"
                )
            ))

        # Components
        fig.add_trace(go.Scatter(
            x=[c.x_mm for c in self.design.components],
            y=[c.y_mm for c in self.design.components],
            mode='markers+text',
            marker=dict(symbol='square', size=22, color='white',
                        line=dict(color='#555555', width=2)),
            text=[c.id for c in self.design.components],
            textposition='top center',
            name='Components',
            hovertemplate='%{text}<extra></extra>'
        ))

        # Ports
        xs, ys, colors, labels = [], [], [], []
        for comp in self.design.components:
            for port in comp.ports:
                key = f"{comp.id}:{port.id}"
                x, y = comp.port_position_mm(port.id)
                pressure = self.result.port_pressures.get(key, math.nan)
                xs.append(x)
                ys.append(y)
                colors.append(pressure_color(pressure, p_min, p_max, self.display))
                labels.append(f"{key}<br>{format_pressure(pressure)}")

        fig.add_trace(go.Scatter(
            x=xs, y=ys,
            mode='markers',
            marker=dict(size=10, color=colors, line=dict(color='black', width=1)),
            text=labels,
            name='Ports',
            hovertemplate='%{text}<extra></extra>'
        ))

        fig.update_layout(
            title=title,
            xaxis_title="X (mm)",
            yaxis_title="Y (mm)",
            height=600,
            showlegend=False,
            template="plotly_white"
        )

        # Equal aspect ratio
        fig.update_yaxes(scaleanchor="x", scaleratio=1)

        return fig

    def _position(self, key: Optional[str]):
        """Absolute position of a port key, or of the component for a hub id."""
        if key is None:
            return None
        component_id, port_id = key.split(':', 1)
        try:
            comp = self.design.get_component(component_id)
        except KeyError:
            return None
        if comp.has_port(port_id):
            return comp.port_position_mm(port_id)
        return (comp.x_mm, comp.y_mm)


def plot_parameter_sweep(values: Sequence[float], flows_m3_s: Sequence[float],
                         parameter_label: str,
                         title: Optional[str] = None) -> go.Figure:
    """
    Line plot of total flow against a swept parameter.

    Args:
        values: Swept parameter values
        flows_m3_s: Total flow for each value (m³/s)
        parameter_label: Axis label for the parameter
        title: Optional plot title

    Returns:
        Plotly Figure
    """
    fig = go.Figure(data=go.Scatter(
        x=list(values),
        y=[q * M3S_TO_ULMIN if math.isfinite(q) else None for q in flows_m3_s],
        mode='lines+markers',
        hovertemplate='%{x}<br>%{y:.3f} µL/min<extra></extra>'
    ))

    fig.update_layout(
        title=title or f"Total Flow vs {parameter_label}",
        xaxis_title=parameter_label,
        yaxis_title="Total flow (µL/min)",
        height=450,
        template="plotly_white"
    )

    return fig
