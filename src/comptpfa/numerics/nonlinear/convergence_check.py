"""Collection of objects and functions related to convergence checking of the Newton
iteration."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import numpy as np


class ConvergenceStatus(Enum):
    CONVERGED = "converged"
    NOT_CONVERGED = "not_converged"
    DIVERGED = "diverged"

    def __str__(self):
        return self.value

    @classmethod
    def from_str(cls, status_str: str):
        """Convert a string to a ConvergenceStatus."""
        return cls[status_str.upper()]

    def is_converged(self) -> bool:
        """Check if the status indicates convergence."""
        return self == ConvergenceStatus.CONVERGED

    def is_not_converged(self) -> bool:
        """Check if the status indicates not converged."""
        return self == ConvergenceStatus.NOT_CONVERGED

    def is_diverged(self) -> bool:
        """Check if the status indicates divergence."""
        return self == ConvergenceStatus.DIVERGED


@dataclass
class ConvergenceTolerance:
    """Tolerances of the Newton iteration.

    Both the residual and the increment are measured in the maximum norm.

    Raises:
        ValueError: If a tolerance is not positive, or the iteration cap is less than
            one.

    """

    tol_residual: float = 1e-8
    """Residual norm tolerance for convergence."""
    tol_increment: float = 1e-8
    """Increment norm tolerance for convergence."""
    max_iterations: int = 10
    """Maximum number of Newton iterations."""
    max_residual: float = np.inf
    """Residual norm beyond which the iteration is considered diverged."""
    max_increment: float = np.inf
    """Increment norm beyond which the iteration is considered diverged."""

    def __post_init__(self) -> None:
        if not self.tol_residual > 0 or not self.tol_increment > 0:
            raise ValueError("Convergence tolerances should be positive")
        if not self.max_residual > 0 or not self.max_increment > 0:
            raise ValueError("Divergence thresholds should be positive")
        if int(self.max_iterations) < 1:
            raise ValueError("At least one iteration is needed")
        self.max_iterations = int(self.max_iterations)

    def check(self, residual: np.ndarray, increment: np.ndarray) -> ConvergenceStatus:
        """Check convergence of a Newton iterate.

        Parameters:
            residual: The residual vector at the current iterate.
            increment: The increment leading to the current iterate.

        Returns:
            Diverged if either vector contains NaN values or exceeds the divergence
            thresholds, converged if both norms are within the tolerances, not
            converged otherwise.

        """
        if bool(np.any(np.isnan(residual))) or bool(np.any(np.isnan(increment))):
            return ConvergenceStatus.DIVERGED
        residual_norm = max_norm(residual)
        increment_norm = max_norm(increment)
        if residual_norm > self.max_residual or increment_norm > self.max_increment:
            return ConvergenceStatus.DIVERGED
        if residual_norm <= self.tol_residual and increment_norm <= self.tol_increment:
            return ConvergenceStatus.CONVERGED
        return ConvergenceStatus.NOT_CONVERGED


def max_norm(v: np.ndarray) -> float:
    """Maximum norm of a vector. The norm of an empty vector is zero."""
    v = np.asarray(v)
    if v.size == 0:
        return 0.0
    return float(np.max(np.abs(v)))
