"""Exception classes raised by the pressure solver and its collaborators."""

from __future__ import annotations

from typing import Any, Optional


class ComptpfaError(Exception):
    """Base class for errors raised by comptpfa."""


class InconsistentPhasesError(ComptpfaError, ValueError):
    """Raised when wells and fluid properties disagree on the number of phases."""


class ConvergenceError(ComptpfaError):
    """Raised when the Newton iterations reach the iteration cap without meeting
    the residual and increment tolerances.

    Parameters:
        message: Description of the failure.
        statistics: The :class:`~comptpfa.SolverStatistics` of the failed solve, so
            that the caller can inspect the norms before cutting the time step.

    """

    def __init__(self, message: str, statistics: Optional[Any] = None) -> None:
        super().__init__(message)
        self.statistics = statistics


class LinearSolverError(ComptpfaError):
    """Raised when the linear solver fails or returns a non-finite solution."""
