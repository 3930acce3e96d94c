"""Solver statistics object for the Newton loop."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from comptpfa.numerics.nonlinear.convergence_check import ConvergenceStatus

logger = logging.getLogger(__name__)


@dataclass
class SolverStatistics:
    """Statistics object for the Newton loop of a single pressure solve.

    This object keeps track of the number of Newton iterations performed, as well as
    increment and residual norms for each iteration.

    Example:

        After storing solver statistics to file, we can load the file and inspect the
        residual history of the solve.

        >>> import json
        >>> with open("solver_statistics.json", "r") as f:
        >>>     history = json.load(f)
        >>> err = history["residual_norms"]

    """

    num_iteration: int = field(default=0)
    """Number of Newton iterations performed."""
    residual_norms: list[float] = field(default_factory=list)
    """Maximum norm of the residual, starting with the initial residual and followed
    by one value for each iteration."""
    increment_norms: list[float] = field(default_factory=list)
    """Maximum norm of the increment of each iteration."""
    convergence_status: ConvergenceStatus = field(
        default=ConvergenceStatus.NOT_CONVERGED
    )
    """Convergence status of the solver."""
    path: Optional[Path] = None
    """Path to save the statistics object to."""
    custom_data: dict[str, Any] = field(default_factory=dict)
    """Custom data to be added to the statistics object."""

    def advance_iteration(self) -> None:
        """Advance the iteration count by one."""
        self.num_iteration += 1

    def log_residual(self, residual_norm: float) -> None:
        """Store the norm of a residual."""
        self.residual_norms.append(float(residual_norm))

    def log_increment(self, increment_norm: float) -> None:
        """Store the norm of an increment."""
        self.increment_norms.append(float(increment_norm))

    def log_convergence_status(self, convergence_status: ConvergenceStatus) -> None:
        """Log the convergence status of the solver.

        Parameters:
            convergence_status: Convergence status of the solver.

        """
        self.convergence_status = convergence_status

    def log_custom_data(self, **kwargs) -> None:
        """Log custom data to be added to the statistics object with custom keys,
        potentially overwriting existing data with the same key."""
        self.custom_data.update(kwargs)

    def as_dict(self) -> dict[str, Any]:
        """
        Returns:
            The statistics in a form that can be serialized to JSON.

        """
        return {
            "num_iteration": self.num_iteration,
            "residual_norms": self.residual_norms,
            "increment_norms": self.increment_norms,
            "convergence_status": str(self.convergence_status),
            **self.custom_data,
        }

    def save(self) -> None:
        """Save the statistics object to a JSON file, if a path is set."""
        if self.path is not None:
            with self.path.open("w") as file:
                json.dump(self.as_dict(), file, indent=4)
            logger.debug(f"Solver statistics saved to {self.path}")
