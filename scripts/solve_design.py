#!/usr/bin/env python3
"""
Solve a circuit design file and print pressures and flows.

Usage:
    python scripts/solve_design.py configs/designs/parallel_meanders.yaml
    python scripts/solve_design.py design.yaml --json result.json
"""

import argparse
import json
import logging
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from mfsolve.config_loader import get_solver_config
from mfsolve.simulation import solve_file
from mfsolve.visualization.plotly_viz import ResultVisualizer


def main():
    parser = argparse.ArgumentParser(description="Solve a microfluidic circuit design")
    parser.add_argument("design", help="Design YAML file")
    parser.add_argument("--viscosity", type=float, default=None,
                        help="Fluid viscosity (Pa·s), overrides the default")
    parser.add_argument("--json", dest="json_path", default=None,
                        help="Write the full result as JSON to this path")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s"
    )

    overrides = {}
    if args.viscosity is not None:
        overrides["fluid"] = {"viscosity_pa_s": args.viscosity}
    config = get_solver_config(overrides)

    result = solve_file(args.design, config)
    viz = ResultVisualizer(result, display=config.display)

    print("=" * 70)
    print(f"Design: {result.design_name or args.design}")
    print("=" * 70)
    for key, value in viz.summary().items():
        print(f"{key:>14}: {value}")

    if result.port_pressures:
        print(f"\n{'Port':<28} {'Node':<28} {'Pressure':>12}")
        print("-" * 70)
        for row in viz.port_rows():
            port = f"{row['component']}:{row['port']}"
            print(f"{port:<28} {row['node']:<28} {row['pressure']:>12}")

    if result.segment_flows:
        print(f"\n{'Segment':<44} {'Kind':<8} {'Flow':>14} {'Dir':>8}")
        print("-" * 78)
        for row in viz.segment_rows():
            print(f"{row['segment']:<44} {row['kind']:<8} {row['flow']:>14} {row['direction']:>8}")

    for diag in result.errors + result.warnings:
        print(f"{diag.severity.value.upper():>8} {diag}")

    if args.json_path:
        with open(args.json_path, "w") as f:
            json.dump(result.to_dict(), f, indent=2, default=str)
        print(f"\nWrote {args.json_path}")

    return 1 if result.has_errors else 0


if __name__ == "__main__":
    sys.exit(main())
