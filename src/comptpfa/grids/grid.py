"""Module containing the grid class used by the pressure solver.

See documentation of class :class:`Grid` for further details.

.. rubric:: Acknowledgements
    The data structure for the grid is inspired by that used in the
    `Matlab Reservoir Simulation Toolbox (MRST) <www.sintef.no/projectweb/mrst/>`_
    developed by SINTEF ICT.

"""

from __future__ import annotations

from typing import NamedTuple, Optional

import numpy as np
from scipy import sparse as sps


class SidePair(NamedTuple):
    """Values associated with the two sides of a set of faces.

    Every face of a grid has exactly two sides. Side 0 is the cell the face normal
    points out of, side 1 the cell it points into. Either side may be missing on the
    boundary.

    """

    first: np.ndarray
    """Values on side 0."""
    second: np.ndarray
    """Values on side 1."""


class Grid:
    """Container of grid topology and geometry for polyhedral grids.

    The grid stores the cell-face topology as a signed sparse matrix, and the
    geometric quantities needed by a finite volume discretization. Geometry is
    supplied by the constructor, thus any grid generator can be used as long as it
    provides centroids, volumes and area-weighted normal vectors. Coordinates always
    have three components; the vertical (depth) axis of a grid of dimension ``dim``
    is coordinate ``dim - 1``, with depth increasing along it.

    The grid is treated as immutable once constructed.

    Parameters:
        dim: Grid dimension.
        cell_faces: ``shape=(num_faces, num_cells)``

            A map from cells to faces bordering the respective cell. Matrix elements
            have value +-1, where + corresponds to the face normal vector being
            outwards.
        cell_centers: ``shape=(3, num_cells)``

            Cell centroids.
        cell_volumes: ``shape=(num_cells,)``

            Cell volumes (areas in 2d, lengths in 1d).
        face_centers: ``shape=(3, num_faces)``

            Face centroids.
        face_normals: ``shape=(3, num_faces)``

            Face normal vectors, with length equal to the face area.
        face_areas: ``default=None``

            Face areas. Computed from the normal vectors if not given.
        name: ``default="Grid"``

            Name of grid.

    Raises:
        ValueError: If the dimension is not 1, 2 or 3, if the geometric arrays do not
            match the topology, or if a face has more than one cell on either side.

    """

    def __init__(
        self,
        dim: int,
        cell_faces: sps.spmatrix,
        cell_centers: np.ndarray,
        cell_volumes: np.ndarray,
        face_centers: np.ndarray,
        face_normals: np.ndarray,
        face_areas: Optional[np.ndarray] = None,
        name: str = "Grid",
    ) -> None:
        if dim not in (1, 2, 3):
            raise ValueError("A grid has to be of dimension 1, 2, or 3.")

        self.dim: int = dim
        """Grid dimension. Should be in ``{1, 2, 3}``."""

        # Force topological information to be stored as integers, in canonical csc
        # format. The storage order of the csc matrix defines the flattened
        # cell-face incidence list used for half-transmissibilities.
        cell_faces = sps.csc_matrix(cell_faces)
        cell_faces.sort_indices()
        cell_faces.data = cell_faces.data.astype(int)

        self.cell_faces: sps.csc_matrix = cell_faces
        """An array with ``shape=(num_faces, num_cells)`` representing the map from
        cells to faces bordering respective cell.

        Matrix elements have value +-1, where + corresponds to the face normal vector
        being outwards.

        """

        self.name: str = name
        """Name assigned to this grid."""

        self.num_faces: int = cell_faces.shape[0]
        """Number of faces in the grid."""
        self.num_cells: int = cell_faces.shape[1]
        """Number of cells in the grid."""

        self.cell_centers: np.ndarray = self._as_points(cell_centers, self.num_cells)
        """Centers of all cells, ``shape=(3, num_cells)``."""
        self.face_centers: np.ndarray = self._as_points(face_centers, self.num_faces)
        """Centers of all faces, ``shape=(3, num_faces)``."""
        self.face_normals: np.ndarray = self._as_points(face_normals, self.num_faces)
        """Area-weighted face normals, ``shape=(3, num_faces)``.

        The normal of face ``f`` points out of the cell with ``cell_faces[f, c] == 1``.

        """
        self.cell_volumes: np.ndarray = np.asarray(cell_volumes, dtype=float)
        """Cell volumes, ``shape=(num_cells,)``."""
        if face_areas is None:
            face_areas = np.linalg.norm(self.face_normals, axis=0)
        self.face_areas: np.ndarray = np.asarray(face_areas, dtype=float)
        """Face areas, ``shape=(num_faces,)``."""

        if self.cell_volumes.shape != (self.num_cells,):
            raise ValueError("Need one volume per cell")
        if self.face_areas.shape != (self.num_faces,):
            raise ValueError("Need one area per face")

        self._face_cells = self._compute_face_cells()

    def __repr__(self) -> str:
        s = f"Grid with name {self.name}" + "\n"
        s += "Number of cells " + str(self.num_cells) + "\n"
        s += "Number of faces " + str(self.num_faces) + "\n"
        s += "Dimension " + str(self.dim)
        return s

    def __str__(self) -> str:
        s = f"{self.name} in {self.dim} dimensions.\n"
        s += "Number of cells " + str(self.num_cells) + "\n"
        s += "Number of faces " + str(self.num_faces) + "\n"
        return s

    def face_cells(self) -> np.ndarray:
        """Obtain the cell-face relation in the form of two rows, rather than a
        sparse matrix.

        Each column in the array corresponds to a face, and the elements in that column
        refer to cell indices. The value -1 signifies a boundary. The normal vector of
        the face points from the first to the second row.

        Returns:
            Array representation of face-cell relations with ``shape=(2, num_faces)``.
            The array is a copy; modifying it does not change the grid.

        """
        return self._face_cells.copy()

    def face_sides(self) -> SidePair:
        """The face-cell relation split by sides.

        Returns:
            Pair of arrays with ``shape=(num_faces,)``, see :meth:`face_cells`.

        """
        fc = self.face_cells()
        return SidePair(fc[0], fc[1])

    def cell_face_incidence(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """The flattened cell-face incidence list.

        Incidences are ordered by cell, that is, all faces of cell 0 come first, then
        all faces of cell 1 etc. This is the ordering of half-transmissibilities.

        Returns:
            A 3-tuple of arrays with ``shape=(num_incidences,)``: face indices, cell
            indices and the sign of the face normal seen from the cell.

        """
        faces = self.cell_faces.indices
        cells = np.repeat(np.arange(self.num_cells), np.diff(self.cell_faces.indptr))
        return faces, cells, self.cell_faces.data

    def cell_facepos(self) -> np.ndarray:
        """Pointer into the incidence list, ``shape=(num_cells + 1,)``.

        The faces of cell ``c`` are found at positions
        ``cell_facepos[c]:cell_facepos[c + 1]`` of :meth:`cell_face_incidence`.

        """
        return self.cell_faces.indptr.copy()

    def get_boundary_faces(self) -> np.ndarray:
        """
        Returns:
            An array with ``shape=(n,)`` containing the indices of all faces with a
            single neighboring cell.

        """
        return np.argwhere(np.any(self._face_cells < 0, axis=0)).ravel("F")

    def get_internal_faces(self) -> np.ndarray:
        """
        Returns:
            An array with ``shape=(num_internal_faces,)`` containing indices of internal
            faces.

        """
        return np.argwhere(np.all(self._face_cells >= 0, axis=0)).ravel("F")

    def cell_depths(self) -> np.ndarray:
        """Vertical coordinate of the cell centers, ``shape=(num_cells,)``."""
        return self.cell_centers[self.dim - 1]

    def face_depths(self) -> np.ndarray:
        """Vertical coordinate of the face centers, ``shape=(num_faces,)``."""
        return self.face_centers[self.dim - 1]

    def _compute_face_cells(self) -> np.ndarray:
        """Compute the dense face-cell relation from :attr:`cell_faces`.

        Raises:
            ValueError: If a face has more than one cell on either side, or a face is
                not connected to any cell.

        """
        faces, cells, sgn = self.cell_face_incidence()
        if np.any(np.abs(sgn) != 1):
            raise ValueError("Elements of cell_faces should be +-1")

        outward = sgn > 0
        if np.any(np.bincount(faces[outward], minlength=self.num_faces) > 1) or np.any(
            np.bincount(faces[~outward], minlength=self.num_faces) > 1
        ):
            raise ValueError("A face can have at most one cell on either side")

        face_cells = -np.ones((2, self.num_faces), dtype=int)
        face_cells[0, faces[outward]] = cells[outward]
        face_cells[1, faces[~outward]] = cells[~outward]

        if np.any(np.all(face_cells < 0, axis=0)):
            raise ValueError("Found faces not connected to any cell")
        return face_cells

    @staticmethod
    def _as_points(pts: np.ndarray, num: int) -> np.ndarray:
        """Pad coordinates to three rows and check the number of columns."""
        pts = np.atleast_2d(np.asarray(pts, dtype=float))
        if pts.shape[1] != num:
            raise ValueError(f"Expected {num} points, got {pts.shape[1]}")
        if pts.shape[0] < 3:
            pts = np.vstack((pts, np.zeros((3 - pts.shape[0], num))))
        return pts
