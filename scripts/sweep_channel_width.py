#!/usr/bin/env python3
"""
Sweep the width of one channel and report total network flow.

Each width is a fresh solve of a modified copy of the design; the
original design is never changed.

Usage:
    python scripts/sweep_channel_width.py configs/designs/parallel_meanders.yaml m2
"""

import argparse
import logging
from pathlib import Path
import sys

import numpy as np

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from mfsolve.config_loader import get_solver_config
from mfsolve.models.design import load_design
from mfsolve.simulation import solve_design
from mfsolve.visualization.plotly_viz import plot_parameter_sweep
from mfsolve.visualization.units import format_flow_rate, M3S_TO_ULMIN


def run_sweep(design, channel_id, widths_um, config):
    """Solve the design once per width and collect total flow."""
    results = []
    for width in widths_um:
        variant = design.with_component(channel_id, width_um=float(width))
        result = solve_design(variant, config)
        results.append({
            'width_um': float(width),
            'total_flow_m3_s': result.total_flow_m3_s,
            'status': result.status.value,
            'n_warnings': len(result.warnings),
        })
    return results


def main():
    parser = argparse.ArgumentParser(description="Sweep one channel's width")
    parser.add_argument("design", help="Design YAML file")
    parser.add_argument("channel", help="Id of the straight/meander channel to vary")
    parser.add_argument("--min-um", type=float, default=50.0)
    parser.add_argument("--max-um", type=float, default=300.0)
    parser.add_argument("--steps", type=int, default=11)
    parser.add_argument("--html", default=None, help="Save the sweep plot to this HTML file")
    args = parser.parse_args()

    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    config = get_solver_config()
    design = load_design(args.design)
    widths = np.linspace(args.min_um, args.max_um, args.steps)

    print("=" * 60)
    print(f"Width sweep of '{args.channel}' in {design.name}")
    print("=" * 60)

    results = run_sweep(design, args.channel, widths, config)

    print(f"\n{'Width (μm)':>12} {'Total flow':>16} {'µL/min':>12} {'Status':>10}")
    print("-" * 60)
    for r in results:
        print(f"{r['width_um']:>12.1f} {format_flow_rate(r['total_flow_m3_s']):>16} "
              f"{r['total_flow_m3_s'] * M3S_TO_ULMIN:>12.3f} {r['status']:>10}")

    if args.html:
        fig = plot_parameter_sweep(
            [r['width_um'] for r in results],
            [r['total_flow_m3_s'] for r in results],
            parameter_label=f"{args.channel} width (μm)",
        )
        fig.write_html(args.html)
        print(f"\nWrote {args.html}")


if __name__ == "__main__":
    main()
