#!/usr/bin/env python3
"""
Microfluidic Circuit Solver

Interactive page: pick (or upload) a circuit design, solve for steady-state
pressures and flows, and inspect the results.
"""

import streamlit as st
from pathlib import Path
import sys
import yaml

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent / "src"))
from mfsolve.config_loader import get_solver_config, get_ui_text, list_example_designs
from mfsolve.models.design import CircuitDesign
from mfsolve.simulation import solve_snapshot
from mfsolve.visualization.plotly_viz import ResultVisualizer
from mfsolve.visualization.units import MBAR_TO_PASCAL, PASCAL_TO_MBAR

st.set_page_config(
    page_title="Microfluidic Circuit Solver",
    page_icon="🔬",
    layout="wide",
)

st.markdown("""
<style>
    .main-header {
        text-align: center;
        padding: 1.5rem 0 1rem;
        border-bottom: 3px solid #e0e0e0;
        margin-bottom: 1.5rem;
    }

    .main-title {
        font-size: 2.6rem;
        font-weight: 700;
        margin-bottom: 0.5rem;
    }

    .main-subtitle {
        font-size: 1.2rem;
        color: #555;
    }
</style>
""", unsafe_allow_html=True)


def load_snapshot():
    """Design snapshot chosen in the sidebar (example file or upload)."""
    examples = list_example_designs()

    source = st.sidebar.radio("Design source", ["Example", "Upload YAML"])
    if source == "Upload YAML":
        uploaded = st.sidebar.file_uploader("Design file", type=["yaml", "yml"])
        if uploaded is None:
            return None
        try:
            return yaml.safe_load(uploaded.getvalue()) or {}
        except yaml.YAMLError as e:
            st.sidebar.error(f"Could not parse YAML: {e}")
            return None

    if not examples:
        st.sidebar.warning("No example designs found")
        return None

    name = st.sidebar.selectbox("Example design", list(examples))
    with open(examples[name]) as f:
        return yaml.safe_load(f) or {}


def apply_pump_overrides(snapshot):
    """Sidebar inputs for pump port pressures (mbar)."""
    components = snapshot.get("components", []) if isinstance(snapshot, dict) else []
    pumps = [c for c in components if isinstance(c, dict) and c.get("kind") == "pump"]
    if not pumps:
        return snapshot

    st.sidebar.subheader("Pump pressures (mbar)")
    for pump in pumps:
        pressures = dict(pump.get("port_pressures_pa") or {})
        for port_id, pressure_pa in sorted(pressures.items()):
            value = st.sidebar.number_input(
                f"{pump.get('id')} · {port_id}",
                value=float(pressure_pa) * PASCAL_TO_MBAR,
                step=10.0,
                key=f"{pump.get('id')}_{port_id}",
            )
            pressures[port_id] = value * MBAR_TO_PASCAL
        pump["port_pressures_pa"] = pressures
    return snapshot


snapshot = load_snapshot()

st.sidebar.subheader("Fluid")
viscosity_mpa_s = st.sidebar.number_input(
    "Viscosity (mPa·s)", min_value=0.01, value=1.0, step=0.1
)

if snapshot is None:
    text = get_ui_text()
    st.markdown(f"""
<div class="main-header">
    <div class="main-title">{text['title']}</div>
    <div class="main-subtitle">Choose or upload a design to start</div>
</div>
""", unsafe_allow_html=True)
    st.stop()

snapshot = apply_pump_overrides(snapshot)
config = get_solver_config({"fluid": {"viscosity_pa_s": viscosity_mpa_s * 1e-3}})

result = solve_snapshot(snapshot, config)

n_components = len(snapshot.get("components", [])) if isinstance(snapshot, dict) else 0
n_connections = len(snapshot.get("connections", [])) if isinstance(snapshot, dict) else 0
text = get_ui_text(n_components, n_connections)
st.markdown(f"""
<div class="main-header">
    <div class="main-title">{text['title']}</div>
    <div class="main-subtitle">{text['subtitle']}</div>
</div>
""", unsafe_allow_html=True)

# Design is only available when the snapshot validated
try:
    design = CircuitDesign.model_validate(snapshot)
except ValueError:
    design = None

viz = ResultVisualizer(result, design=design, display=config.display)
summary = viz.summary()

col1, col2, col3, col4 = st.columns(4)
col1.metric("Status", summary['status'])
col2.metric("Total flow", summary['total_flow'])
col3.metric("Max pressure", summary['max_pressure'])
col4.metric("Warnings / Errors", f"{summary['warnings']} / {summary['errors']}")

for diag in result.errors:
    st.error(str(diag))
for diag in result.warnings:
    st.warning(str(diag))

if result.segment_flows:
    if design is not None:
        st.plotly_chart(viz.plot_network_layout(), use_container_width=True)

    left, right = st.columns(2)
    with left:
        st.plotly_chart(viz.plot_pressure_bars(), use_container_width=True)
    with right:
        st.plotly_chart(viz.plot_flow_bars(), use_container_width=True)

    st.subheader("Segments")
    st.dataframe(viz.segment_rows(), use_container_width=True)

    st.subheader("Ports")
    st.dataframe(viz.port_rows(), use_container_width=True)
