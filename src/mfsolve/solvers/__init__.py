"""Network flow solvers."""

from .network_solver import NetworkFlowSolver, SingularSystemError

__all__ = [
    'NetworkFlowSolver',
    'SingularSystemError',
]
