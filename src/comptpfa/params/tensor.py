"""
The tensor module contains the second order tensor class, intended for
representation of permeability.
"""

from __future__ import annotations

from typing import Optional

import numpy as np


class SecondOrderTensor:
    """Cell-wise permeability represented by a 3x3 tensor per cell.

    The permeability is always 3-dimensional (since the geometry is always 3D), however,
    1D and 2D problems are accommodated by assigning unit values to kzz and kyy, and no
    cross terms. Since face normals of lower-dimensional grids have no components in
    the missing directions, these values do not enter the transmissibilities.

    Parameters:
        kxx: Nc array, with cell-wise values of kxx permeability.
        kyy: Nc array of kyy. Default equal to kxx.
        kzz: Nc array of kzz. Default equal to kxx.
        kxy: Nc array of kxy. Defaults to zero.
        kxz: Nc array of kxz. Defaults to zero.
        kyz: Nc array of kyz. Defaults to zero.

    Raises:
        ValueError if the permeability is not positive definite.

    """

    def __init__(
        self,
        kxx: np.ndarray,
        kyy: Optional[np.ndarray] = None,
        kzz: Optional[np.ndarray] = None,
        kxy: Optional[np.ndarray] = None,
        kxz: Optional[np.ndarray] = None,
        kyz: Optional[np.ndarray] = None,
    ):
        kxx = np.atleast_1d(np.asarray(kxx, dtype=float))
        Nc = kxx.size

        if kyy is None:
            kyy = kxx
        if kzz is None:
            kzz = kxx
        if kxy is None:
            kxy = 0 * kxx
        if kxz is None:
            kxz = 0 * kxx
        if kyz is None:
            kyz = 0 * kxx

        if np.any(kxx <= 0):
            raise ValueError(
                "Tensor is not positive definite because of components in x-direction"
            )
        # Onsager's principle - tensor should be positive definite
        if np.any((kxx * kyy - kxy * kxy) <= 0):
            raise ValueError(
                "Tensor is not positive definite because of components in y-direction"
            )
        if np.any(
            (
                kxx * (kyy * kzz - kyz * kyz)
                - kxy * (kxy * kzz - kxz * kyz)
                + kxz * (kxy * kyz - kxz * kyy)
            )
            <= 0
        ):
            raise ValueError(
                "Tensor is not positive definite because of components in z-direction"
            )

        perm = np.zeros((3, 3, Nc))
        perm[0, 0] = kxx
        perm[1, 1] = kyy
        perm[2, 2] = kzz
        perm[1, 0] = perm[0, 1] = kxy
        perm[2, 0] = perm[0, 2] = kxz
        perm[2, 1] = perm[1, 2] = kyz

        self.values: np.ndarray = perm
        """Tensor values, ``shape=(3, 3, num_cells)``."""

    @property
    def num_cells(self) -> int:
        """Number of cells the tensor is defined on."""
        return self.values.shape[2]

    def __str__(self) -> str:
        return f"Second order tensor defined on {self.num_cells} cells"

    def __repr__(self) -> str:
        return self.__str__()
