"""Static geometric quantities of the two-point flux approximation.

The half-transmissibilities are stored per cell-face incidence, in the order given
by :meth:`~comptpfa.grids.grid.Grid.cell_face_incidence`.

"""

from __future__ import annotations

import logging

import numpy as np

from comptpfa.grids.grid import Grid
from comptpfa.params.tensor import SecondOrderTensor
from comptpfa.utils.logging import time_logger

logger = logging.getLogger(__name__)


@time_logger(sections=["geometry"])
def half_transmissibilities(g: Grid, k: SecondOrderTensor) -> np.ndarray:
    """Discretize the flux between a cell and each of its faces by a two-point
    approximation.

    Parameters:
        g: Grid with geometry fields computed.
        k: Permeability. Cell-wise.

    Raises:
        ValueError: If the permeability is not defined on the cells of the grid, or a
            half-transmissibility is not positive. The latter happens when the vector
            from a cell center to a face center points against the outward normal,
            which signals a malformed grid.

    Returns:
        One half-transmissibility per cell-face incidence,
        ``shape=(num_incidences,)``.

    """
    if k.num_cells != g.num_cells:
        raise ValueError("Permeability should be given for all cells of the grid")

    fi, ci, sgn = g.cell_face_incidence()

    # Normal vectors and permeability for each face (here and there side)
    n = g.face_normals[:, fi] * sgn
    perm = k.values[::, ::, ci]

    # Distance from face center to cell center
    fc_cc = g.face_centers[::, fi] - g.cell_centers[::, ci]

    nk = perm * n
    nk = nk.sum(axis=0)
    nk *= fc_cc
    t_face = nk.sum(axis=0)

    dist_face_cell = np.power(fc_cc, 2).sum(axis=0)
    t_face = np.divide(t_face, dist_face_cell)

    if np.any(t_face <= 0):
        bad = np.where(t_face <= 0)[0]
        raise ValueError(
            f"Found {bad.size} non-positive half-transmissibilities, first at face "
            f"{fi[bad[0]]} of cell {ci[bad[0]]}"
        )
    return t_face


@time_logger(sections=["geometry"])
def transmissibilities(g: Grid, htrans: np.ndarray) -> np.ndarray:
    """Combine half-transmissibilities into face transmissibilities.

    The transmissibility of a face is the harmonic average of the
    half-transmissibilities of its cells. A boundary face gets the
    half-transmissibility of its single cell.

    Parameters:
        g: Grid.
        htrans: ``shape=(num_incidences,)``

            Half-transmissibilities, see :func:`half_transmissibilities`.

    Returns:
        Face transmissibilities, ``shape=(num_faces,)``.

    """
    fi, _, _ = g.cell_face_incidence()
    if htrans.shape != fi.shape:
        raise ValueError("Need one half-transmissibility per cell-face incidence")
    # Return harmonic average
    return 1 / np.bincount(fi, weights=1 / htrans, minlength=g.num_faces)


def pore_volume(g: Grid, porosity: np.ndarray) -> np.ndarray:
    """
    Parameters:
        g: Grid.
        porosity: ``shape=(num_cells,)``

            Cell porosities.

    Returns:
        Pore volume of each cell, ``shape=(num_cells,)``.

    """
    porosity = np.asarray(porosity, dtype=float)
    if porosity.shape != (g.num_cells,):
        raise ValueError("Need one porosity value per cell")
    return porosity * g.cell_volumes
