"""Pressure dependent quantities needed to assemble the Newton system.

The quantities are recomputed at every Newton iteration by three passes, which must
be run in the order cells, faces, wells; see :func:`compute_dynamic_data`. Each pass
reads the results of the previous ones from a :class:`DynamicData` workspace, and
writes its own results to the same workspace.

Conventions:
    The composition matrix ``A`` of a cell maps phase reservoir volumes to component
    surface volumes, ``A @ u = z``. Row ``i`` of ``A`` holds the amount of component
    ``i`` carried by a unit volume of each phase.

    Phase mobilities and the rows of the face composition matrices are upwinded by
    phase; row ``i`` of ``face_A`` is taken from the upwind cell of phase ``i``.

"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from comptpfa.grids.grid import Grid, SidePair
from comptpfa.properties.interface import FluidRockProperties
from comptpfa.state import ReservoirState
from comptpfa.utils.logging import time_logger
from comptpfa.wells.wells import Wells

logger = logging.getLogger(__name__)

VolumeDiscrepancy = Callable[[np.ndarray, np.ndarray], np.ndarray]
"""Function computing the volume discrepancy of all cells from their composition
matrices and surface volumes."""


@dataclass
class DynamicData:
    """Workspace of the per-iteration quantities.

    Use :meth:`allocate` to create a workspace with consistently shaped arrays.

    """

    cell_A: np.ndarray
    """Composition matrix of each cell, ``shape=(num_cells, num_phases,
    num_phases)``."""
    cell_dA: np.ndarray
    """Pressure derivative of ``cell_A``, same shape."""
    cell_viscosity: np.ndarray
    """Phase viscosities, ``shape=(num_cells, num_phases)``."""
    cell_phasemob: np.ndarray
    """Phase mobilities (relative permeability over viscosity),
    ``shape=(num_cells, num_phases)``."""
    cell_voldisc: np.ndarray
    """Volume discrepancy of each cell, ``shape=(num_cells,)``."""
    face_A: np.ndarray
    """Upwinded composition matrix of each face, ``shape=(num_faces, num_phases,
    num_phases)``."""
    face_phasemob: np.ndarray
    """Upwinded phase mobilities, ``shape=(num_faces, num_phases)``."""
    face_gravcap: np.ndarray
    """Gravity term of the potential difference over each face,
    ``shape=(num_faces, num_phases)``."""
    face_upwind: np.ndarray
    """Upwind cell of each face and phase, ``shape=(num_faces, num_phases)``."""
    wellperf_A: np.ndarray
    """Composition matrix of each perforation, ``shape=(num_perforations,
    num_phases, num_phases)``."""
    wellperf_phasemob: np.ndarray
    """Phase mobilities of each perforation, ``shape=(num_perforations,
    num_phases)``."""

    @classmethod
    def allocate(
        cls, num_cells: int, num_faces: int, num_perforations: int, num_phases: int
    ) -> DynamicData:
        """Create a zero-initialized workspace.

        Parameters:
            num_cells: Number of cells of the grid.
            num_faces: Number of faces of the grid.
            num_perforations: Total number of well perforations.
            num_phases: Number of phases.

        Returns:
            The workspace.

        """
        nc, nf, nperf, n = num_cells, num_faces, num_perforations, num_phases
        return cls(
            cell_A=np.zeros((nc, n, n)),
            cell_dA=np.zeros((nc, n, n)),
            cell_viscosity=np.zeros((nc, n)),
            cell_phasemob=np.zeros((nc, n)),
            cell_voldisc=np.zeros(nc),
            face_A=np.zeros((nf, n, n)),
            face_phasemob=np.zeros((nf, n)),
            face_gravcap=np.zeros((nf, n)),
            face_upwind=-np.ones((nf, n), dtype=int),
            wellperf_A=np.zeros((nperf, n, n)),
            wellperf_phasemob=np.zeros((nperf, n)),
        )


def vertical_gravity(g: Grid, gravity: Optional[np.ndarray]) -> float:
    """The component of the gravity vector along the vertical axis of a grid.

    Parameters:
        g: Grid. The vertical axis is coordinate ``g.dim - 1``.
        gravity: Gravity vector with at least ``g.dim`` components, or None.

    Raises:
        ValueError: If the gravity vector has too few components.

    Returns:
        The vertical gravity component, zero if ``gravity`` is None.

    """
    if gravity is None:
        return 0.0
    gravity = np.atleast_1d(np.asarray(gravity, dtype=float))
    if gravity.size < g.dim:
        raise ValueError(f"Gravity vector should have at least {g.dim} components")
    return float(gravity[g.dim - 1])


def compute_well_potentials(
    g: Grid,
    props: FluidRockProperties,
    wells: Optional[Wells],
    state: ReservoirState,
    gravity: Optional[np.ndarray],
) -> np.ndarray:
    """Gravity contribution to the pressure difference between each perforation and
    the bottom-hole pressure of its well.

    The contribution of perforation ``j`` of well ``w`` is
    ``rho_p * g * (z_cell(j) - depth_ref[w])``, with the phase densities ``rho_p`` of
    the perforated cell at the current pressure.

    Parameters:
        g: Grid.
        props: Rock and fluid properties.
        wells: Wells, or None.
        state: Reservoir state, pressures and surface volumes are used.
        gravity: Gravity vector, or None.

    Returns:
        The potentials, ``shape=(num_perforations, num_phases)``. Without gravity the
        array is zero and the properties are not queried. Without wells the array is
        empty.

    """
    np_ = props.num_phases
    if wells is None:
        return np.zeros((0, np_))

    grav = vertical_gravity(g, gravity)
    if grav == 0.0:
        return np.zeros((wells.num_perforations, np_))

    cells = wells.well_cells
    A, _ = props.matrix(
        state.pressure[cells], state.surfacevol[cells], cells, compute_derivative=False
    )
    rho = props.density(A, cells)
    depth_diff = g.cell_depths()[cells] - wells.depth_ref[wells.perforation_wells()]
    return rho * grav * depth_diff[:, None]


@time_logger(sections=["numerics"])
def compute_cell_data(
    data: DynamicData,
    props: FluidRockProperties,
    state: ReservoirState,
    volume_discrepancy: Optional[VolumeDiscrepancy] = None,
) -> None:
    """Compute composition matrices, viscosities and mobilities of all cells.

    Parameters:
        data: Workspace, the ``cell_*`` fields are written.
        props: Rock and fluid properties.
        state: Reservoir state.
        volume_discrepancy: ``default=None``

            Function computing the volume discrepancy. The discrepancy is zero if
            None.

    """
    nc = state.pressure.size
    cells = np.arange(nc)
    p, z = state.pressure, state.surfacevol

    A, dA = props.matrix(p, z, cells, compute_derivative=True)
    data.cell_A = np.asarray(A, dtype=float)
    data.cell_dA = np.asarray(dA, dtype=float)
    data.cell_viscosity = np.asarray(props.viscosity(p, z, cells), dtype=float)
    kr = np.asarray(props.relperm(state.saturation, cells), dtype=float)
    data.cell_phasemob = kr / data.cell_viscosity

    if volume_discrepancy is None:
        data.cell_voldisc = np.zeros(nc)
    else:
        data.cell_voldisc = np.asarray(volume_discrepancy(data.cell_A, z), dtype=float)
        if data.cell_voldisc.shape != (nc,):
            raise ValueError("Need one volume discrepancy per cell")


@time_logger(sections=["numerics"])
def compute_face_data(
    data: DynamicData,
    g: Grid,
    props: FluidRockProperties,
    state: ReservoirState,
    gravity: Optional[np.ndarray] = None,
    scale_face_gravity: bool = False,
) -> None:
    """Compute gravity terms and upwind quantities of all faces.

    For each side of a face, the pressure is that of the neighboring cell, or the
    face pressure of the state if the side is on the boundary. The gravity
    contribution of a side is ``rho_p * (z_face - z_cell)``, zero on the boundary,
    and zero for all faces if the vertical gravity component vanishes. With
    ``scale_face_gravity`` the contribution is multiplied by the vertical gravity
    component. The well potentials always include it.
    The phase potentials are ``p_0 + gravcap`` and ``p_1``, and the upwind cell of a
    phase is on side 1 only if its potential is strictly larger. Boundary faces are
    upwinded from their single cell.

    Parameters:
        data: Workspace, the ``face_*`` fields are written. The cell fields must be
            up to date.
        g: Grid.
        props: Rock and fluid properties.
        state: Reservoir state.
        gravity: ``default=None``

            Gravity vector.
        scale_face_gravity: ``default=False``

            Multiply the gravity contribution by the vertical gravity component.

    """
    nf = g.num_faces
    np_ = data.cell_phasemob.shape[1]
    grav = vertical_gravity(g, gravity)
    factor = grav if scale_face_gravity else 1.0

    cells = g.face_sides()
    has_cell = SidePair(cells.first >= 0, cells.second >= 0)

    press = SidePair(
        *(
            np.where(has_cell[j], state.pressure[cells[j]], state.facepressure)
            for j in range(2)
        )
    )

    gravcontrib = SidePair(np.zeros((nf, np_)), np.zeros((nf, np_)))
    if grav != 0.0:
        rho = props.density(data.cell_A, np.arange(g.num_cells))
        face_depth = g.face_depths()
        cell_depth = g.cell_depths()
        for j in range(2):
            faces = np.where(has_cell[j])[0]
            c = cells[j][faces]
            depth_diff = face_depth[faces] - cell_depth[c]
            gravcontrib[j][faces] = rho[c] * factor * depth_diff[:, None]

    data.face_gravcap = gravcontrib.first - gravcontrib.second
    pot_0 = press.first[:, None] + data.face_gravcap
    pot_1 = np.broadcast_to(press.second[:, None], (nf, np_))

    both = (has_cell.first & has_cell.second)[:, None]
    use_second = (both & (pot_0 < pot_1)) | ~has_cell.first[:, None]
    upwind = np.where(use_second, cells.second[:, None], cells.first[:, None])

    phase = np.arange(np_)
    data.face_upwind = upwind
    data.face_phasemob = data.cell_phasemob[upwind, phase]
    data.face_A = data.cell_A[upwind, phase]
    logger.debug(
        f"Upwinded {nf} faces, phase potential differences up to "
        f"{np.max(np.abs(pot_0 - pot_1), initial=0):.2e}"
    )


@time_logger(sections=["numerics"])
def compute_well_data(data: DynamicData, wells: Optional[Wells]) -> None:
    """Compute composition matrices and mobilities of all perforations.

    A perforation gets the composition matrix of its cell. Injector perforations get
    the total mobility of the cell in every phase, producer perforations the phase
    mobilities of the cell.

    Parameters:
        data: Workspace, the ``wellperf_*`` fields are written. The cell fields must be
            up to date.
        wells: Wells, or None.

    """
    np_ = data.cell_phasemob.shape[1]
    if wells is None:
        data.wellperf_A = np.zeros((0, np_, np_))
        data.wellperf_phasemob = np.zeros((0, np_))
        return

    cells = wells.well_cells
    data.wellperf_A = data.cell_A[cells]
    mob = data.cell_phasemob[cells]

    injector = wells.is_injector()[wells.perforation_wells()]
    mob[injector] = mob[injector].sum(axis=1, keepdims=True)
    data.wellperf_phasemob = mob


def compute_dynamic_data(
    data: DynamicData,
    g: Grid,
    props: FluidRockProperties,
    state: ReservoirState,
    gravity: Optional[np.ndarray] = None,
    wells: Optional[Wells] = None,
    volume_discrepancy: Optional[VolumeDiscrepancy] = None,
    scale_face_gravity: bool = False,
) -> None:
    """Run the cell, face and well passes, in that order.

    Parameters:
        data: Workspace to be filled.
        g: Grid.
        props: Rock and fluid properties.
        state: Reservoir state.
        gravity: ``default=None``

            Gravity vector.
        wells: ``default=None``

            Wells.
        volume_discrepancy: ``default=None``

            Function computing the volume discrepancy of the cells.
        scale_face_gravity: ``default=False``

            See :func:`compute_face_data`.

    """
    compute_cell_data(data, props, state, volume_discrepancy)
    compute_face_data(data, g, props, state, gravity, scale_face_gravity)
    compute_well_data(data, wells)
