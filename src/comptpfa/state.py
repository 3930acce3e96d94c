"""Containers for the reservoir and well state.

The pressure solver updates the pressures in place, and fills in the derived flux
and rate fields when a solve converges.

"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

import numpy as np

from comptpfa.grids.grid import Grid


@dataclass
class ReservoirState:
    """Primary and derived variables of the reservoir.

    Use :meth:`initialize` to create a state with consistently shaped arrays.

    """

    pressure: np.ndarray
    """Cell pressures, ``shape=(num_cells,)``."""
    saturation: np.ndarray
    """Phase saturations, ``shape=(num_cells, num_phases)``."""
    surfacevol: np.ndarray
    """Component surface volumes per unit pore volume,
    ``shape=(num_cells, num_phases)``. Held fixed during a pressure solve."""
    facepressure: np.ndarray
    """Face pressures, ``shape=(num_faces,)``. Only the values on Dirichlet boundary
    faces are used."""
    faceflux: np.ndarray
    """Total volumetric face fluxes in the direction of the face normals,
    ``shape=(num_faces,)``. Output."""

    @classmethod
    def initialize(
        cls,
        g: Grid,
        num_phases: int,
        pressure: Union[float, np.ndarray] = 0.0,
        saturation: Optional[np.ndarray] = None,
        surfacevol: Optional[np.ndarray] = None,
    ) -> ReservoirState:
        """Create a state with uniform values.

        Parameters:
            g: Grid of the reservoir.
            num_phases: Number of phases.
            pressure: ``default=0.0``

                Initial pressure, a scalar or one value per cell. Also used as the
                initial face pressure.
            saturation: ``default=None``

                Saturations, either one row per cell or a single row broadcast to all
                cells. Defaults to the fluid being all in the first phase.
            surfacevol: ``default=None``

                Surface volumes, same broadcasting as saturation. Defaults to the
                saturations.

        Returns:
            The initialized state.

        """
        p = np.broadcast_to(np.asarray(pressure, dtype=float), (g.num_cells,)).copy()
        if saturation is None:
            saturation = np.zeros(num_phases)
            saturation[0] = 1.0
        s = np.broadcast_to(
            np.asarray(saturation, dtype=float), (g.num_cells, num_phases)
        ).copy()
        if surfacevol is None:
            z = s.copy()
        else:
            z = np.broadcast_to(
                np.asarray(surfacevol, dtype=float), (g.num_cells, num_phases)
            ).copy()

        # Face pressures are initialized by the mean pressure of the neighboring cells.
        fc = g.face_cells()
        has_cell = fc >= 0
        facepressure = np.sum(np.where(has_cell, p[fc], 0), axis=0) / np.sum(
            has_cell, axis=0
        )
        return cls(
            pressure=p,
            saturation=s,
            surfacevol=z,
            facepressure=facepressure,
            faceflux=np.zeros(g.num_faces),
        )

    @property
    def num_phases(self) -> int:
        """Number of phases."""
        return self.saturation.shape[1]


@dataclass
class WellState:
    """Primary and derived variables of a set of wells."""

    bhp: np.ndarray
    """Bottom-hole pressure of each well, ``shape=(num_wells,)``."""
    rates: np.ndarray
    """Phase rates at reservoir conditions of each well, positive into the reservoir,
    ``shape=(num_wells, num_phases)``. Output."""
    perfrates: np.ndarray
    """Phase rates at reservoir conditions of each perforation, positive into the
    reservoir, ``shape=(num_perforations, num_phases)``. Output."""

    @classmethod
    def initialize(
        cls,
        num_wells: int,
        num_perforations: int,
        num_phases: int,
        bhp: Union[float, np.ndarray] = 0.0,
    ) -> WellState:
        """Create a well state with zero rates.

        Parameters:
            num_wells: Number of wells.
            num_perforations: Total number of perforations.
            num_phases: Number of phases.
            bhp: ``default=0.0``

                Initial bottom-hole pressure, a scalar or one value per well.

        Returns:
            The initialized well state.

        """
        return cls(
            bhp=np.broadcast_to(np.asarray(bhp, dtype=float), (num_wells,)).copy(),
            rates=np.zeros((num_wells, num_phases)),
            perfrates=np.zeros((num_perforations, num_phases)),
        )
