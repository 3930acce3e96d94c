"""Simple immiscible rock and fluid property evaluators.

Both evaluators describe an immiscible fluid, where every component lives in the
phase of the same index. The composition matrix is then diagonal, with the inverse
formation volume factors ``1 / B`` on the diagonal.

"""

from __future__ import annotations

from typing import Optional, Union

import numpy as np

from comptpfa.params.tensor import SecondOrderTensor
from comptpfa.properties.interface import FluidRockProperties

__all__ = ["ConstantProperties", "SlightlyCompressibleProperties"]


class ConstantProperties(FluidRockProperties):
    """Incompressible immiscible fluid with linear relative permeabilities.

    The composition matrix is the identity, thus reservoir and surface volumes
    coincide.

    Parameters:
        permeability: Permeability of the cells.
        porosity: Porosity of the cells, either one value per cell or a scalar.
        viscosity: ``shape=(num_phases,)``

            Phase viscosities.
        surface_density: ``default=None``

            Component densities at surface conditions, ``shape=(num_phases,)``.
            Defaults to zero, that is, weightless fluids.

    Raises:
        ValueError: If the porosity is outside ``(0, 1]`` or the number of cells does
            not match the permeability, or the phase data have different sizes, or the
            viscosities are not positive.

    """

    def __init__(
        self,
        permeability: SecondOrderTensor,
        porosity: Union[float, np.ndarray],
        viscosity: np.ndarray,
        surface_density: Optional[np.ndarray] = None,
    ) -> None:
        self._perm = permeability
        nc = permeability.num_cells

        poro = np.asarray(porosity, dtype=float)
        if poro.ndim == 0:
            poro = poro * np.ones(nc)
        if poro.shape != (nc,):
            raise ValueError("Need one porosity value per cell")
        if np.any(poro <= 0) or np.any(poro > 1):
            raise ValueError("Porosity should be in (0, 1]")
        self._poro = poro

        self._mu = np.atleast_1d(np.asarray(viscosity, dtype=float))
        if np.any(self._mu <= 0):
            raise ValueError("Viscosities should be positive")

        if surface_density is None:
            surface_density = np.zeros(self._mu.size)
        self._rho_s = np.atleast_1d(np.asarray(surface_density, dtype=float))
        if self._rho_s.size != self._mu.size:
            raise ValueError("Need one surface density per phase")

    @property
    def num_phases(self) -> int:
        return self._mu.size

    def permeability(self) -> SecondOrderTensor:
        return self._perm

    def porosity(self) -> np.ndarray:
        return self._poro

    def matrix(
        self,
        p: np.ndarray,
        z: np.ndarray,
        cells: np.ndarray,
        compute_derivative: bool = False,
    ) -> tuple[np.ndarray, Optional[np.ndarray]]:
        n = np.asarray(cells).size
        A = np.tile(np.eye(self.num_phases), (n, 1, 1))
        dA = np.zeros_like(A) if compute_derivative else None
        return A, dA

    def viscosity(self, p: np.ndarray, z: np.ndarray, cells: np.ndarray) -> np.ndarray:
        n = np.asarray(cells).size
        return np.tile(self._mu, (n, 1))

    def relperm(self, s: np.ndarray, cells: np.ndarray) -> np.ndarray:
        return np.clip(np.asarray(s, dtype=float), 0.0, 1.0)

    def density(self, A: np.ndarray, cells: np.ndarray) -> np.ndarray:
        return np.einsum("i,nip->np", self._rho_s, A)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__} with {self.num_phases} phases on "
            f"{self._poro.size} cells"
        )


class SlightlyCompressibleProperties(ConstantProperties):
    """Immiscible fluid with exponential pressure dependence of the formation volume
    factors, and Corey-type relative permeabilities.

    The formation volume factor of phase ``p`` is

    .. math::

        B_p = B_{ref, p} \\exp(-c_p (p - p_{ref})),

    so that the reservoir density ``rho_s / B`` grows with pressure.

    Parameters:
        permeability: Permeability of the cells.
        porosity: Porosity of the cells, either one value per cell or a scalar.
        viscosity: ``shape=(num_phases,)``

            Phase viscosities.
        surface_density: ``shape=(num_phases,)``

            Component densities at surface conditions.
        compressibility: ``shape=(num_phases,)``

            Phase compressibilities.
        reference_pressure: Pressure at which the formation volume factors equal
            their reference values.
        reference_fvf: ``default=None``

            Formation volume factors at the reference pressure. Defaults to one.
        relperm_exponent: ``default=2.0``

            Corey exponent of the relative permeabilities.

    Raises:
        ValueError: If the phase data have different sizes, or the compressibilities
            are negative, or the reference formation volume factors are not positive.

    """

    def __init__(
        self,
        permeability: SecondOrderTensor,
        porosity: Union[float, np.ndarray],
        viscosity: np.ndarray,
        surface_density: np.ndarray,
        compressibility: np.ndarray,
        reference_pressure: float,
        reference_fvf: Optional[np.ndarray] = None,
        relperm_exponent: float = 2.0,
    ) -> None:
        super().__init__(permeability, porosity, viscosity, surface_density)

        self._c = np.atleast_1d(np.asarray(compressibility, dtype=float))
        if self._c.size != self.num_phases:
            raise ValueError("Need one compressibility per phase")
        if np.any(self._c < 0):
            raise ValueError("Compressibilities should be non-negative")

        if reference_fvf is None:
            reference_fvf = np.ones(self.num_phases)
        self._B_ref = np.atleast_1d(np.asarray(reference_fvf, dtype=float))
        if self._B_ref.size != self.num_phases:
            raise ValueError("Need one reference formation volume factor per phase")
        if np.any(self._B_ref <= 0):
            raise ValueError("Formation volume factors should be positive")

        self._p_ref = float(reference_pressure)
        self._n = float(relperm_exponent)

    def formation_volume_factor(self, p: np.ndarray) -> np.ndarray:
        """
        Parameters:
            p: ``shape=(n,)``

                Pressure in the cells.

        Returns:
            Phase formation volume factors, ``shape=(n, num_phases)``.

        """
        dp = np.asarray(p, dtype=float)[:, None] - self._p_ref
        return self._B_ref * np.exp(-self._c * dp)

    def matrix(
        self,
        p: np.ndarray,
        z: np.ndarray,
        cells: np.ndarray,
        compute_derivative: bool = False,
    ) -> tuple[np.ndarray, Optional[np.ndarray]]:
        inv_B = 1.0 / self.formation_volume_factor(p)
        n, num_phases = inv_B.shape
        diag = np.arange(num_phases)

        A = np.zeros((n, num_phases, num_phases))
        A[:, diag, diag] = inv_B
        dA = None
        if compute_derivative:
            dA = np.zeros_like(A)
            # d(1/B)/dp = c / B
            dA[:, diag, diag] = self._c * inv_B
        return A, dA

    def relperm(self, s: np.ndarray, cells: np.ndarray) -> np.ndarray:
        return np.clip(np.asarray(s, dtype=float), 0.0, 1.0) ** self._n
