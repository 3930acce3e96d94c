""" Module containing classes for structured grids.

The grids are constructed with their geometry, so that no separate geometry
computation is needed. Cells are numbered with the x-index running fastest, then y,
then z. Faces are numbered by direction: all x-faces first, then y-faces and finally
z-faces, each group in the same lexicographic order as the cells.

Acknowledgements:
    The numbering of structured grids follows the corresponding functions found in
    the Matlab Reservoir Simulation Toolbox (MRST) developed by SINTEF ICT, see
    www.sintef.no/projectweb/mrst/

"""
from __future__ import annotations

from typing import Optional, Union

import numpy as np
import scipy.sparse as sps

from comptpfa.grids.grid import Grid


class TensorGrid(Grid):
    """Representation of grid formed by a tensor product of line point
    distributions.

    For information on attributes and methods, see the documentation of the
    parent Grid class.

    Parameters:
        x: Node coordinates in x-direction.
        y: ``default=None``

            Node coordinates in y-direction. If None, the grid is 1D.
        z: ``default=None``

            Node coordinates in z-direction. If None, the grid is 2D (or 1D).
        name: ``default=None``

            Name of grid, passed to super constructor.

    Raises:
        ValueError: If the coordinates are not strictly increasing.

    """

    def __init__(
        self,
        x: np.ndarray,
        y: Optional[np.ndarray] = None,
        z: Optional[np.ndarray] = None,
        name: Optional[str] = None,
    ) -> None:
        if name is None:
            name = "TensorGrid"

        if y is None:
            coords = [x]
        elif z is None:
            coords = [x, y]
        else:
            coords = [x, y, z]
        coords = [np.asarray(c, dtype=float) for c in coords]
        for c in coords:
            if c.size < 2 or np.any(np.diff(c) <= 0):
                raise ValueError("Node coordinates must be strictly increasing")

        self.cart_dims: np.ndarray = np.array([c.size - 1 for c in coords])
        """Number of cells in each direction."""

        geometry = self._create_grid(coords)
        super().__init__(len(coords), *geometry, name=name)

    def _create_grid(self, coords: list[np.ndarray]) -> tuple:
        """Compute topology and geometry of the tensor grid.

        This is really a part of the constructor, but put it here to improve
        readability.

        Returns:
            Cell-face map, cell centers, cell volumes, face centers, face normals and
            face areas, in the order expected by the Grid constructor.

        """
        dim = len(coords)
        num = [c.size - 1 for c in coords]
        mids = [0.5 * (c[1:] + c[:-1]) for c in coords]
        widths = [np.diff(c) for c in coords]

        cell_ind = np.arange(np.prod(num)).reshape(num, order="F")
        cell_mesh = np.meshgrid(*mids, indexing="ij")
        cell_centers = np.vstack([m.ravel(order="F") for m in cell_mesh])
        volumes = np.prod(np.meshgrid(*widths, indexing="ij"), axis=0)
        cell_volumes = volumes.ravel(order="F")

        rows, cols, data = [], [], []
        face_centers, face_normals = [], []
        offset = 0
        for axis in range(dim):
            shape = list(num)
            shape[axis] += 1
            face_ind = offset + np.arange(np.prod(shape)).reshape(shape, order="F")
            offset += face_ind.size

            # Face centers: node coordinates along the axis, midpoints otherwise.
            pts = [coords[d] if d == axis else mids[d] for d in range(dim)]
            mesh = np.meshgrid(*pts, indexing="ij")
            face_centers.append(np.vstack([m.ravel(order="F") for m in mesh]))

            # The normal vector points in the positive axis direction, and has length
            # equal to the product of the cell widths in the other directions.
            other = [
                widths[d] if d != axis else np.ones(shape[axis]) for d in range(dim)
            ]
            area = np.prod(np.meshgrid(*other, indexing="ij"), axis=0).ravel(order="F")
            normals = np.zeros((dim, area.size))
            normals[axis] = area
            face_normals.append(normals)

            lower = [slice(None)] * dim
            upper = [slice(None)] * dim
            lower[axis] = slice(0, -1)
            upper[axis] = slice(1, None)
            # The normal of the lower face points into the cell, that of the upper
            # face points out of it.
            for sl, sgn in ((tuple(lower), -1), (tuple(upper), 1)):
                rows.append(face_ind[sl].ravel(order="F"))
                cols.append(cell_ind.ravel(order="F"))
                data.append(sgn * np.ones(cell_ind.size, dtype=int))

        num_faces = offset
        cell_faces = sps.coo_matrix(
            (np.hstack(data), (np.hstack(rows), np.hstack(cols))),
            shape=(num_faces, cell_ind.size),
        ).tocsc()

        fn = np.hstack(face_normals)
        return (
            cell_faces,
            cell_centers,
            cell_volumes,
            np.hstack(face_centers),
            fn,
            np.linalg.norm(fn, axis=0),
        )


class CartGrid(TensorGrid):
    """Representation of a 1D, 2D or 3D Cartesian grid.

    For information on attributes and methods, see the documentation of the
    parent Grid class.

    Parameters:
        nx: Number of cells in each direction. Should be 1D, 2D or 3D.
        physdims: ``default=None``

            Physical dimensions in each direction. Defaults to same as nx, that is,
            cells of unit size.

    Raises:
        ValueError: If more than three dimensions are requested, or nx and physdims
            are of different size.

    """

    def __init__(
        self,
        nx: Union[int, np.ndarray, list[int]],
        physdims: Optional[Union[float, np.ndarray, list[float]]] = None,
    ) -> None:
        nx = np.atleast_1d(np.asarray(nx, dtype=int))
        if physdims is None:
            physdims = nx
        physdims = np.atleast_1d(np.asarray(physdims, dtype=float))

        if nx.size != physdims.size:
            raise ValueError("nx and physdims must have the same size")
        if nx.size > 3:
            raise ValueError(
                "Cartesian grid only implemented for up to three dimensions"
            )

        # Create point distribution, and then leave construction to TensorGrid
        # constructor
        nodes = [np.linspace(0, physdims[i], nx[i] + 1) for i in range(nx.size)]
        super().__init__(*nodes, name="CartGrid")
