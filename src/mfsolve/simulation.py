"""
One-call entry points: design snapshot → SimulationResult.

Each call builds the topology, solves it and runs the post-solve
checks. Nothing is cached between calls, so solving the same snapshot
twice gives identical results.
"""

import logging
from typing import Any, Mapping, Optional

import yaml
from pydantic import ValidationError

from .core.topology import TopologyBuilder
from .diagnostics import (
    DiagnosticCode,
    DiagnosticLog,
    check_isolated_components,
    check_near_zero_flow,
    check_unconnected_components,
    make_error,
)
from .models.config import SolverConfig
from .models.design import CircuitDesign
from .results import ResultStatus, SimulationResult
from .solvers.network_solver import NetworkFlowSolver

logger = logging.getLogger(__name__)


def solve_design(design: CircuitDesign,
                 config: Optional[SolverConfig] = None) -> SimulationResult:
    """
    Solve a validated circuit design.

    Args:
        design: Circuit design snapshot (not modified)
        config: Solver configuration (defaults if None)

    Returns:
        SimulationResult (never raises for a bad design)
    """
    if config is None:
        config = SolverConfig()

    logger.info(
        "Solving design '%s': %d components, %d connections",
        design.name, design.n_components, design.n_connections
    )

    build = TopologyBuilder(config).build(design)

    post = DiagnosticLog()
    post.extend(check_unconnected_components(design))

    if build.network is None:
        result = SimulationResult.failed(build.errors, build.warnings, design_name=design.name)
        return result.with_diagnostics(warnings=post.warnings)

    result = NetworkFlowSolver(build.network, config).solve(design_name=design.name)
    result = result.with_diagnostics(
        errors=build.errors, warnings=build.warnings, prepend=True
    )

    if result.status != ResultStatus.FAILED:
        post.extend(check_isolated_components(design, result.port_pressures))
        post.add(check_near_zero_flow(result.total_flow_m3_s, config.diagnostics))

    result = result.with_diagnostics(warnings=post.warnings)
    logger.info("Design '%s' solved: %r", design.name, result)
    return result


def solve_snapshot(snapshot: Mapping[str, Any],
                   config: Optional[SolverConfig] = None) -> SimulationResult:
    """
    Validate a raw snapshot (e.g. from the UI or JSON) and solve it.

    Validation failures become TopologyError diagnostics on a failed
    result.

    Args:
        snapshot: Dict with 'components' and 'connections'
        config: Solver configuration (defaults if None)

    Returns:
        SimulationResult
    """
    name = ""
    if isinstance(snapshot, Mapping):
        name = str(snapshot.get("name", ""))

    try:
        design = CircuitDesign.model_validate(snapshot)
    except ValidationError as e:
        log = DiagnosticLog()
        for err in e.errors():
            location = ".".join(str(part) for part in err.get("loc", ()))
            message = err.get("msg", "invalid value")
            log.add(make_error(
                DiagnosticCode.TOPOLOGY_ERROR,
                f"{location}: {message}" if location else message,
                *((location,) if location else ()),
            ))
        return SimulationResult.failed(log.errors, design_name=name)

    return solve_design(design, config)


def solve_file(filepath: str, config: Optional[SolverConfig] = None) -> SimulationResult:
    """
    Load a YAML design file and solve it.

    Raises:
        OSError: If the file cannot be read
        yaml.YAMLError: If the file is not valid YAML
    """
    with open(filepath, 'r') as f:
        snapshot = yaml.safe_load(f) or {}
    return solve_snapshot(snapshot, config)
