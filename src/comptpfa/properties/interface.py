"""Abstract interface for evaluation of rock and fluid properties.

All methods are vectorized over a set of cells. Phase and component quantities are
stored with the cell index running along the first axis, that is, a phase quantity
has ``shape=(n, num_phases)`` and a composition matrix ``shape=(n, num_phases,
num_phases)``. Components and phases are identified (black-oil convention), hence
the composition matrix is square.

"""

from __future__ import annotations

import abc
from typing import Optional

import numpy as np

from comptpfa.params.tensor import SecondOrderTensor


class FluidRockProperties(abc.ABC):
    """Abstract class representing the rock and fluid properties of a reservoir.

    Child classes have to implement the abstract methods below. The pressure solver
    borrows an instance of this class, and queries it once per Newton iteration.

    Note:
        The composition matrix ``A`` of a cell maps phase reservoir volumes to
        component surface volumes, ``A @ u = z``. For an immiscible fluid, ``A`` is
        diagonal with the inverse formation volume factors on the diagonal.

    """

    @property
    @abc.abstractmethod
    def num_phases(self) -> int:
        """Number of phases (and components) of the fluid."""

    @abc.abstractmethod
    def permeability(self) -> SecondOrderTensor:
        """
        Returns:
            Permeability tensor of all cells in the grid.

        """

    @abc.abstractmethod
    def porosity(self) -> np.ndarray:
        """
        Returns:
            Porosity of all cells in the grid, ``shape=(num_cells,)``.

        """

    @abc.abstractmethod
    def matrix(
        self,
        p: np.ndarray,
        z: np.ndarray,
        cells: np.ndarray,
        compute_derivative: bool = False,
    ) -> tuple[np.ndarray, Optional[np.ndarray]]:
        """Evaluate the composition matrix.

        Parameters:
            p: ``shape=(n,)``

                Pressure in the cells.
            z: ``shape=(n, num_phases)``

                Surface volumes of the components in the cells.
            cells: ``shape=(n,)``

                Indices of the cells.
            compute_derivative: ``default=False``

                If True, the pressure derivative of the matrix is also computed.

        Returns:
            A 2-tuple containing the composition matrices ``A`` with
            ``shape=(n, num_phases, num_phases)``, and their pressure derivatives with
            the same shape, or None if ``compute_derivative`` is False.

        """

    @abc.abstractmethod
    def viscosity(self, p: np.ndarray, z: np.ndarray, cells: np.ndarray) -> np.ndarray:
        """
        Parameters:
            p: ``shape=(n,)``

                Pressure in the cells.
            z: ``shape=(n, num_phases)``

                Surface volumes of the components in the cells.
            cells: ``shape=(n,)``

                Indices of the cells.

        Returns:
            Phase viscosities, ``shape=(n, num_phases)``.

        """

    @abc.abstractmethod
    def relperm(self, s: np.ndarray, cells: np.ndarray) -> np.ndarray:
        """
        Parameters:
            s: ``shape=(n, num_phases)``

                Phase saturations.
            cells: ``shape=(n,)``

                Indices of the cells.

        Returns:
            Relative permeabilities, ``shape=(n, num_phases)``.

        """

    @abc.abstractmethod
    def density(self, A: np.ndarray, cells: np.ndarray) -> np.ndarray:
        """Phase densities at reservoir conditions.

        The density of phase ``p`` is ``sum_i rho_surface[i] * A[i, p]``, where
        ``rho_surface`` are the component densities at surface conditions.

        Parameters:
            A: ``shape=(n, num_phases, num_phases)``

                Composition matrices of the cells.
            cells: ``shape=(n,)``

                Indices of the cells.

        Returns:
            Phase densities, ``shape=(n, num_phases)``.

        """
