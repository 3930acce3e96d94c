"""Newton solver for the compressible pressure equation.

The solver is meant to be called once per time step of a sequential simulator. It
computes the cell pressures and well bottom-hole pressures at the end of the step,
with the component surface volumes of the cells held fixed, and reports the face
fluxes and well rates of the converged solution.

Example:
    >>> g = ct.CartGrid([10])
    >>> props = ct.ConstantProperties(ct.SecondOrderTensor(np.ones(10)), 0.2, [1.0])
    >>> state = ct.ReservoirState.initialize(g, 1, pressure=1.0)
    >>> with ct.CompressibleTpfa(g, props, ct.DirectSolver(), 1e-10, 1e-10, 5) as s:
    ...     stats = s.solve(1.0, state)

"""

from __future__ import annotations

import logging
from contextlib import ExitStack
from pathlib import Path
from typing import Any, Optional

import numpy as np
import scipy.sparse as sps

from comptpfa.grids.grid import Grid
from comptpfa.numerics.fv import tpfa
from comptpfa.numerics.fv.dynamic_data import (
    DynamicData,
    VolumeDiscrepancy,
    compute_dynamic_data,
    compute_well_potentials,
    vertical_gravity,
)
from comptpfa.numerics.fv.residual import CompressibleTpfaResidual
from comptpfa.numerics.linalg.linear_solvers import LinearSolverInterface
from comptpfa.numerics.nonlinear.convergence_check import (
    ConvergenceStatus,
    ConvergenceTolerance,
    max_norm,
)
from comptpfa.numerics.nonlinear.solver_statistics import SolverStatistics
from comptpfa.params.bc import BoundaryCondition
from comptpfa.properties.interface import FluidRockProperties
from comptpfa.state import ReservoirState, WellState
from comptpfa.utils.exceptions import (
    ConvergenceError,
    InconsistentPhasesError,
    LinearSolverError,
)
from comptpfa.utils.logging import time_logger
from comptpfa.wells.wells import Wells

logger = logging.getLogger(__name__)


default_solver_params: dict[str, Any] = {
    "nl_convergence_tol": ConvergenceTolerance(
        tol_residual=1e-8,  # Maximum norm of the residual
        tol_increment=1e-8,  # Maximum norm of the pressure increment
        max_iterations=10,  # Newton iterations before giving up
    ),
    "gravity": None,  # Gravity vector, for instance [0, 0, GRAVITY_ACCELERATION]
    "wells": None,
    "bc": None,  # No-flow on all boundary faces
    "src": None,
    "volume_discrepancy": None,  # Zero volume discrepancy
    "scale_face_gravity": False,  # Face gravity terms rho * dz, without g
    "statistics_path": None,  # Do not save solver statistics
}
"""Default parameters of :meth:`CompressibleTpfa.from_params`."""


class CompressibleTpfa:
    """Newton-Raphson solver for the pressure equation of compressible multiphase
    flow, discretized by a two-point flux approximation.

    The solver borrows the grid, properties, linear solver and wells; the caller must
    keep them alive while the solver is used. The topology of the wells must not
    change, but their controls may be changed between calls to :meth:`solve`.

    The solver holds a residual assembler, which is released by :meth:`close`. The
    solver can be used as a context manager.

    Parameters:
        g: Grid. The vertical axis is coordinate ``g.dim - 1``.
        props: Rock and fluid properties.
        linsolver: Solver for the linear systems of the Newton iterations.
        residual_tol: Tolerance of the maximum norm of the residual.
        change_tol: Tolerance of the maximum norm of the pressure increment.
        maxiter: Maximum number of Newton iterations.
        gravity: ``default=None``

            Gravity vector with ``g.dim`` components. No gravity if None.
        wells: ``default=None``

            Wells. No wells if None.
        bc: ``default=None``

            Boundary conditions. No-flow on all boundary faces if None.
        src: ``default=None``

            Volumetric source of each cell, positive for injection.
        volume_discrepancy: ``default=None``

            Function computing the volume discrepancy of all cells from their
            composition matrices and surface volumes. Zero if None.
        max_residual: ``default=np.inf``

            Residual norm beyond which the iteration is stopped as diverged.
        max_increment: ``default=np.inf``

            Increment norm beyond which the iteration is stopped as diverged.
        scale_face_gravity: ``default=False``

            Multiply the face gravity terms by the vertical gravity component, see
            :func:`~comptpfa.numerics.fv.dynamic_data.compute_face_data`.
        statistics_path: ``default=None``

            JSON file to which the statistics of each solve are written.

    Raises:
        InconsistentPhasesError: If the wells and the properties have a different
            number of phases.
        ValueError: If a tolerance or the iteration cap is not positive, the gravity
            vector is too short, or the boundary conditions, sources, wells or
            properties do not match the grid.

    """

    def __init__(
        self,
        g: Grid,
        props: FluidRockProperties,
        linsolver: LinearSolverInterface,
        residual_tol: float,
        change_tol: float,
        maxiter: int,
        gravity: Optional[np.ndarray] = None,
        wells: Optional[Wells] = None,
        bc: Optional[BoundaryCondition] = None,
        src: Optional[np.ndarray] = None,
        volume_discrepancy: Optional[VolumeDiscrepancy] = None,
        max_residual: float = np.inf,
        max_increment: float = np.inf,
        scale_face_gravity: bool = False,
        statistics_path: Optional[Path] = None,
    ) -> None:
        if wells is not None and wells.num_phases != props.num_phases:
            raise InconsistentPhasesError(
                "Inconsistent number of phases specified (wells vs. props): "
                f"{wells.num_phases} != {props.num_phases}"
            )

        self._g = g
        self._props = props
        self._linsolver = linsolver
        self._wells = wells
        self._volume_discrepancy = volume_discrepancy
        self._scale_face_gravity = scale_face_gravity
        self.statistics_path: Optional[Path] = (
            None if statistics_path is None else Path(statistics_path)
        )
        """File the statistics of each solve are saved to, if not None."""

        self.tolerance = ConvergenceTolerance(
            tol_residual=residual_tol,
            tol_increment=change_tol,
            max_iterations=maxiter,
            max_residual=max_residual,
            max_increment=max_increment,
        )
        """Convergence tolerances of the Newton iteration."""

        if gravity is not None:
            gravity = np.atleast_1d(np.asarray(gravity, dtype=float))
            # Validates the number of components.
            vertical_gravity(g, gravity)
        self._gravity = gravity

        with ExitStack() as stack:
            self._assembler: CompressibleTpfaResidual = stack.enter_context(
                CompressibleTpfaResidual(g, wells, bc, src)
            )

            self.htrans: np.ndarray = tpfa.half_transmissibilities(
                g, props.permeability()
            )
            """Half-transmissibility of each cell-face incidence."""
            self.trans: np.ndarray = tpfa.transmissibilities(g, self.htrans)
            """Transmissibility of each face."""
            self.porevol: np.ndarray = tpfa.pore_volume(g, props.porosity())
            """Pore volume of each cell."""

            self.data: DynamicData = DynamicData.allocate(
                g.num_cells, g.num_faces, self.num_perforations, props.num_phases
            )
            """Workspace of the quantities recomputed in each Newton iteration."""
            self.well_gpot: np.ndarray = np.zeros(
                (self.num_perforations, props.num_phases)
            )
            """Gravity potentials of the perforations, fixed during a solve."""

            # Construction succeeded, keep the assembler beyond the with block.
            self._exit_stack = stack.pop_all()

        logger.info(
            f"Pressure solver set up on {g.num_cells} cells, {g.num_faces} faces and "
            f"{self.num_wells} wells with {props.num_phases} phases"
        )

    @classmethod
    def from_params(
        cls,
        g: Grid,
        props: FluidRockProperties,
        linsolver: LinearSolverInterface,
        params: Optional[dict] = None,
    ) -> CompressibleTpfa:
        """Construct a solver from a parameter dictionary.

        Parameters:
            g: Grid.
            props: Rock and fluid properties.
            linsolver: Linear solver.
            params: ``default=None``

                Parameters, see :data:`default_solver_params` for keys and default
                values.

        Returns:
            The solver.

        """
        if params is None:
            params = {}
        unknown = set(params) - set(default_solver_params)
        if unknown:
            raise ValueError(f"Unknown solver parameters: {sorted(unknown)}")
        p = {**default_solver_params, **params}
        tol: ConvergenceTolerance = p["nl_convergence_tol"]
        return cls(
            g,
            props,
            linsolver,
            residual_tol=tol.tol_residual,
            change_tol=tol.tol_increment,
            maxiter=tol.max_iterations,
            gravity=p["gravity"],
            wells=p["wells"],
            bc=p["bc"],
            src=p["src"],
            volume_discrepancy=p["volume_discrepancy"],
            max_residual=tol.max_residual,
            max_increment=tol.max_increment,
            scale_face_gravity=p["scale_face_gravity"],
            statistics_path=p["statistics_path"],
        )

    @property
    def num_wells(self) -> int:
        return 0 if self._wells is None else self._wells.num_wells

    @property
    def num_perforations(self) -> int:
        return 0 if self._wells is None else self._wells.num_perforations

    @property
    def num_dofs(self) -> int:
        """Number of unknowns: cell pressures followed by bottom-hole pressures."""
        return self._g.num_cells + self.num_wells

    def close(self) -> None:
        """Release the residual assembler."""
        self._exit_stack.close()

    def __enter__(self) -> CompressibleTpfa:
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    @time_logger(sections=["numerics"])
    def solve(
        self,
        dt: float,
        state: ReservoirState,
        well_state: Optional[WellState] = None,
    ) -> SolverStatistics:
        """Solve the pressure equation by Newton iterations.

        The pressures of ``state`` and the bottom-hole pressures of ``well_state`` are
        used as initial guess, and are updated in place. On convergence, the face
        fluxes of ``state`` and the rates of ``well_state`` are computed.

        Parameters:
            dt: Time step length.
            state: Reservoir state.
            well_state: ``default=None``

                Well state. May only be None if the solver has no wells.

        Raises:
            ValueError: If the time step is not positive, or the states do not match
                the grid, properties or wells.
            ConvergenceError: If the iteration does not converge within the maximum
                number of iterations, or diverges. The state holds the last iterate.
            LinearSolverError: If a linear solve fails.

        Returns:
            Statistics of the Newton iteration.

        """
        if not dt > 0:
            raise ValueError("Time step should be positive")
        well_state = self._check_states(state, well_state)
        nc = self._g.num_cells
        statistics = SolverStatistics(path=self.statistics_path)
        statistics.log_custom_data(dt=dt)

        # Set up dynamic data.
        self.well_gpot = self.compute_well_potentials(state)
        self.compute_dynamic_data(state)

        # Assemble J and F.
        F, J = self.assemble(dt, state, well_state)
        statistics.log_residual(max_norm(F))
        logger.info(f"Initial residual norm: {max_norm(F):.2e}")

        status = ConvergenceStatus.NOT_CONVERGED
        while statistics.num_iteration < self.tolerance.max_iterations:
            increment = self.solve_increment(F, J)

            # Update pressure vars with increment.
            state.pressure += increment[:nc]
            well_state.bhp += increment[nc:]
            statistics.advance_iteration()

            self.compute_dynamic_data(state)
            F, J = self.assemble(dt, state, well_state)

            statistics.log_residual(max_norm(F))
            statistics.log_increment(max_norm(increment))
            logger.info(
                f"Newton iteration {statistics.num_iteration}: residual norm "
                f"{statistics.residual_norms[-1]:.2e}, increment norm "
                f"{statistics.increment_norms[-1]:.2e}"
            )

            status = self.tolerance.check(F, increment)
            if not status.is_not_converged():
                break

        statistics.log_convergence_status(status)
        if not status.is_converged():
            msg = (
                f"Pressure solver {status} after {statistics.num_iteration} "
                f"iterations, residual norm {statistics.residual_norms[-1]:.2e}"
            )
            logger.warning(msg)
            statistics.save()
            raise ConvergenceError(msg, statistics)

        self.compute_results(state, well_state)
        statistics.save()
        return statistics

    def compute_well_potentials(self, state: ReservoirState) -> np.ndarray:
        """Gravity contribution to the pressure of each perforation relative to the
        bottom-hole pressure of its well.

        Parameters:
            state: Reservoir state.

        Returns:
            Potentials with ``shape=(num_perforations, num_phases)``.

        """
        return compute_well_potentials(
            self._g, self._props, self._wells, state, self._gravity
        )

    def compute_dynamic_data(self, state: ReservoirState) -> None:
        """Recompute the per-iteration quantities of :attr:`data`.

        Parameters:
            state: Reservoir state.

        """
        compute_dynamic_data(
            self.data,
            self._g,
            self._props,
            state,
            gravity=self._gravity,
            wells=self._wells,
            volume_discrepancy=self._volume_discrepancy,
            scale_face_gravity=self._scale_face_gravity,
        )

    def assemble(
        self, dt: float, state: ReservoirState, well_state: WellState
    ) -> tuple[np.ndarray, sps.csr_matrix]:
        """Assemble the residual and Jacobian at the current state.

        Requires :attr:`data` and :attr:`well_gpot` to be up to date.

        Parameters:
            dt: Time step length.
            state: Reservoir state.
            well_state: Well state.

        Returns:
            The residual and Jacobian.

        """
        return self._assembler.assemble(
            dt,
            state.surfacevol,
            state.pressure,
            state.facepressure,
            well_state.bhp,
            self.data,
            self.trans,
            self.porevol,
            self.well_gpot,
        )

    def solve_increment(self, F: np.ndarray, J: sps.spmatrix) -> np.ndarray:
        """Compute the Newton increment ``-J^{-1} F``.

        Raises:
            ValueError: If the linear solver returns a vector of wrong size.
            LinearSolverError: If the increment is not finite.

        """
        increment = -np.asarray(self._linsolver.solve(J, F), dtype=float)
        if increment.shape != (self.num_dofs,):
            raise ValueError(
                f"Linear solver returned {increment.size} values, expected "
                f"{self.num_dofs}"
            )
        if not np.all(np.isfinite(increment)):
            raise LinearSolverError("Newton increment is not finite")
        return increment

    def compute_results(self, state: ReservoirState, well_state: WellState) -> None:
        """Compute face fluxes and well rates from the current dynamic data.

        Parameters:
            state: Reservoir state, :attr:`~ReservoirState.faceflux` is written.
            well_state: Well state, rates and perforation rates are written.

        """
        phase_flux = self._assembler.face_phase_fluxes(
            state.pressure, state.facepressure, self.data, self.trans
        )
        state.faceflux = phase_flux.sum(axis=1) + self._assembler.neumann_face_fluxes()

        perfrates = self._assembler.perforation_rates(
            state.pressure, well_state.bhp, self.data, self.well_gpot
        )
        rates = np.zeros((self.num_wells, self._props.num_phases))
        if self._wells is not None:
            np.add.at(rates, self._wells.perforation_wells(), perfrates)
        well_state.perfrates = perfrates
        well_state.rates = rates

    def _check_states(
        self, state: ReservoirState, well_state: Optional[WellState]
    ) -> WellState:
        """Validate the shapes of the states, and create an empty well state if there
        are no wells."""
        g, n = self._g, self._props.num_phases
        if state.pressure.shape != (g.num_cells,):
            raise ValueError("Need one pressure per cell")
        if state.surfacevol.shape != (g.num_cells, n):
            raise ValueError("Need one surface volume per cell and phase")
        if state.saturation.shape != (g.num_cells, n):
            raise ValueError("Need one saturation per cell and phase")
        if state.facepressure.shape != (g.num_faces,):
            raise ValueError("Need one face pressure per face")

        if well_state is None:
            if self.num_wells > 0:
                raise ValueError("A well state is needed for a solver with wells")
            well_state = WellState.initialize(0, 0, n)
        if well_state.bhp.shape != (self.num_wells,):
            raise ValueError("Need one bottom-hole pressure per well")
        return well_state
