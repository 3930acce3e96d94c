"""Module containing functionality for testing the implementation of Jacobians."""

from __future__ import annotations

from typing import Callable

import numpy as np

__all__ = ["finite_difference_jacobian"]


def finite_difference_jacobian(
    func: Callable[[np.ndarray], np.ndarray], x0: np.ndarray, h: float = 1e-6
) -> np.ndarray:
    """Approximate the Jacobian of a vector function by central differences.

    Parameters:
        func: Function mapping an array with ``shape=(n,)`` to an array with
            ``shape=(m,)``.
        x0: Point at which the Jacobian is approximated.
        h: ``default=1e-6``

            Step size, relative to the magnitude of the perturbed entry (and absolute
            for entries smaller than one).

    Returns:
        The approximated Jacobian, ``shape=(m, n)``.

    """
    x0 = np.asarray(x0, dtype=float)
    columns = []
    for i in range(x0.size):
        step = h * max(1.0, abs(x0[i]))
        xp = x0.copy()
        xm = x0.copy()
        xp[i] += step
        xm[i] -= step
        columns.append((func(xp) - func(xm)) / (2 * step))
    return np.column_stack(columns)
