"""
Class representing boundary conditions for the pressure equation.

The class identifies faces of a grid which have Dirichlet or Neumann type boundary
conditions. Boundary faces that are not assigned a condition are no-flow faces.
"""

from __future__ import annotations

from typing import Optional, Union

import numpy as np

from comptpfa.grids.grid import Grid


class BoundaryCondition:
    """Class to store information on boundary conditions for the pressure equation.

    The BCs are specified by face number, and can have type Dirichlet or Neumann.
    Faces that do not get an explicit condition are assigned a homogeneous Neumann
    (no-flow) condition.

    On Dirichlet faces, the boundary pressure is taken from the reservoir state
    (``ReservoirState.facepressure``), and the flux is computed by the two-point
    approximation. On Neumann faces, :attr:`values` gives the total volumetric
    outflow of the face, that is, positive values drain the adjacent cell.

    Parameters:
        g: Grid for which boundary conditions are set.
        faces: ``default=None``

            Faces for which conditions are assigned, either as indices or as a
            boolean mask of size ``g.num_faces``.
        cond: ``default=None``

            Conditions on the faces, in the same order as used in faces. Should be as
            long as faces, or a single string applied to all of them. The elements
            should be one of ``"dir"`` or ``"neu"``.
        values: ``default=None``

            Neumann outflow rates, in the same order as faces. Ignored on Dirichlet
            faces.

    Raises:
        ValueError: If faces are a boolean array with size not matching the number of
            faces, if internal faces are marked, if the numbers of boundary condition
            types, values and faces do not match, or if a keyword other than ``"dir"``
            or ``"neu"`` is used.

    Example:
        >>> g = CartGrid([2, 2])
        >>> west_face = face_on_side(g, "west")[0]
        >>> bound_cond = BoundaryCondition(g, faces=west_face, cond="dir")

    """

    def __init__(
        self,
        g: Grid,
        faces: Optional[np.ndarray] = None,
        cond: Optional[Union[list[str], str]] = None,
        values: Optional[np.ndarray] = None,
    ) -> None:
        self.num_faces: int = g.num_faces
        """Number of faces in the grid."""

        self.bf: np.ndarray = g.get_boundary_faces()
        """Indices of the boundary faces of the grid."""

        self.is_neu: np.ndarray = np.zeros(self.num_faces, dtype=bool)
        """Element i is true if face i has been assigned a Neumann condition. All
        boundary faces are Neumann by default."""
        self.is_dir: np.ndarray = np.zeros(self.num_faces, dtype=bool)
        """Element i is true if face i has been assigned a Dirichlet condition."""
        self.values: np.ndarray = np.zeros(self.num_faces)
        """Neumann outflow rates, ``shape=(num_faces,)``. Zero means no flow."""

        self.is_neu[self.bf] = True

        if faces is None:
            return

        if cond is None:
            raise ValueError("Conditions must be given together with faces")
        faces = np.asarray(faces)
        if faces.dtype == bool:
            if faces.size != self.num_faces:
                raise ValueError(
                    "When giving logical faces, the size of array must match number "
                    "of faces"
                )
            faces = np.where(faces)[0]
        faces = np.atleast_1d(faces).astype(int)

        if not np.all(np.isin(faces, self.bf)):
            raise ValueError("Give boundary condition only on the boundary")
        if isinstance(cond, str):
            cond = [cond] * faces.size
        if faces.size != len(cond):
            raise ValueError("One BC per face")
        if values is not None:
            values = np.atleast_1d(np.asarray(values, dtype=float))
            if values.size != faces.size:
                raise ValueError("One boundary value per face")

        for ind in range(faces.size):
            s = cond[ind].lower().strip()
            if s == "neu":
                self.is_dir[faces[ind]] = False
                self.is_neu[faces[ind]] = True
                if values is not None:
                    self.values[faces[ind]] = values[ind]
            elif s == "dir":
                self.is_dir[faces[ind]] = True
                self.is_neu[faces[ind]] = False
                self.values[faces[ind]] = 0.0
            else:
                raise ValueError("Boundary should be Dirichlet or Neumann")

    def __repr__(self) -> str:
        s = (
            f"Boundary condition for pressure problem\n"
            f"Grid has {self.num_faces} faces, {self.bf.size} on the boundary.\n"
            f"Number of faces with Dirichlet conditions: {self.is_dir.sum()} \n"
            f"Number of faces with Neumann conditions: {self.is_neu.sum()} \n"
            f"Number of faces with nonzero Neumann values: "
            f"{np.count_nonzero(self.values)} \n"
        )
        return s


def face_on_side(
    g: Grid, side: Union[list[str], str], tol: float = 1e-8
) -> list[np.ndarray]:
    """Find boundary faces on specified sides of a grid.

    It is assumed that the grid forms a box in 1d, 2d or 3d.

    The faces are specified by one of two type of keywords: (xmin / west),
    (xmax / east), (ymin / south), (ymax / north), (zmin, bottom),
    (zmax / top).

    Parameters:
        g: Grid for which we want to find faces.
        side: Sides for which we want to find the boundary faces.
        tol: ``default=1e-8``

            Geometric tolerance for deciding whether a face lays on the boundary.

    Returns:
        Outer list has one element per element in side (same ordering). Arrays
        contain global indices of faces laying on that side.

    Raises:
        ValueError: If a not supported keyword is used to identify a boundary part.

    """
    if isinstance(side, str):
        side = [side]

    bf = g.get_boundary_faces()
    fc = g.face_centers[:, bf]

    keywords = {
        "west": (0, np.min),
        "xmin": (0, np.min),
        "east": (0, np.max),
        "xmax": (0, np.max),
        "south": (1, np.min),
        "ymin": (1, np.min),
        "north": (1, np.max),
        "ymax": (1, np.max),
        "bottom": (2, np.min),
        "bot": (2, np.min),
        "zmin": (2, np.min),
        "top": (2, np.max),
        "zmax": (2, np.max),
    }

    faces = []
    for s in side:
        s = s.lower().strip()
        if s not in keywords:
            raise ValueError("Unknown face side")
        axis, extreme = keywords[s]
        xm = extreme(fc[axis])
        faces.append(bf[np.where(np.abs(fc[axis] - xm) < tol)[0]])
    return faces
