"""Linear solvers for the Newton systems of the pressure solver.

The pressure solver only relies on :class:`LinearSolverInterface`; a solver returns
the solution ``x`` of ``A x = b``, and the Newton driver negates it to obtain the
increment.

"""

from __future__ import annotations

import abc
import logging
import time
import warnings
from typing import Optional

import numpy as np
import scipy.sparse as sps
import scipy.sparse.linalg as spla

from comptpfa.utils.exceptions import LinearSolverError
from comptpfa.utils.logging import time_logger

logger = logging.getLogger(__name__)


class LinearSolverInterface(abc.ABC):
    """Abstract linear solver for sparse systems."""

    @time_logger(sections=["matrix"])
    def solve(self, A: sps.spmatrix, b: np.ndarray) -> np.ndarray:
        """Solve a linear system.

        Parameters:
            A: ``shape=(n, n)``

                System matrix.
            b: ``shape=(n,)``

                Right hand side.

        Raises:
            ValueError: If the matrix is not square or does not match the right hand
                side.
            LinearSolverError: If the solver fails, or the solution is not finite.

        Returns:
            Solution vector, ``shape=(n,)``.

        """
        b = np.asarray(b, dtype=float)
        if A.shape[0] != A.shape[1] or A.shape[0] != b.size:
            raise ValueError(
                f"Incompatible linear system: matrix {A.shape}, right hand side "
                f"{b.shape}"
            )
        t_0 = time.time()
        x = np.atleast_1d(self._solve(sps.csr_matrix(A), b))
        if not np.all(np.isfinite(x)):
            raise LinearSolverError("Linear solver returned non-finite values")
        logger.debug(
            f"Solved linear system of size {b.size} in {time.time() - t_0:.2e} seconds."
        )
        return x

    @abc.abstractmethod
    def _solve(self, A: sps.csr_matrix, b: np.ndarray) -> np.ndarray:
        """Solve the system, without checks on the input and output."""


class DirectSolver(LinearSolverInterface):
    """Sparse direct solver based on :func:`scipy.sparse.linalg.spsolve`.

    Parameters:
        use_umfpack: ``default=False``

            Use UMFPACK if available. Otherwise SuperLU is used.

    """

    def __init__(self, use_umfpack: bool = False) -> None:
        self.use_umfpack = use_umfpack

    def _solve(self, A: sps.csr_matrix, b: np.ndarray) -> np.ndarray:
        # A singular matrix gives NaN values, which are reported by the caller.
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", spla.MatrixRankWarning)
            return spla.spsolve(A.tocsc(), b, use_umfpack=self.use_umfpack)


class GmresSolver(LinearSolverInterface):
    """Restarted GMRES, preconditioned by an incomplete LU factorization.

    Parameters:
        rtol: ``default=1e-10``

            Relative tolerance of the residual.
        restart: ``default=50``

            Number of iterations between restarts.
        maxiter: ``default=None``

            Maximum number of restart cycles. Uses the scipy default if None.
        drop_tol: ``default=1e-4``

            Drop tolerance of the incomplete factorization.

    """

    def __init__(
        self,
        rtol: float = 1e-10,
        restart: int = 50,
        maxiter: Optional[int] = None,
        drop_tol: float = 1e-4,
    ) -> None:
        self.rtol = rtol
        self.restart = restart
        self.maxiter = maxiter
        self.drop_tol = drop_tol

    def _solve(self, A: sps.csr_matrix, b: np.ndarray) -> np.ndarray:
        try:
            ilu = spla.spilu(A.tocsc(), drop_tol=self.drop_tol)
        except RuntimeError as err:
            raise LinearSolverError("Incomplete factorization failed") from err
        M = spla.LinearOperator(A.shape, ilu.solve)

        x, info = spla.gmres(
            A, b, M=M, rtol=self.rtol, restart=self.restart, maxiter=self.maxiter
        )
        if info > 0:
            raise LinearSolverError(f"GMRES did not converge in {info} iterations")
        elif info < 0:
            raise LinearSolverError("GMRES reported illegal input or breakdown")
        return x
