"""Well topology and controls.

A set of wells is stored in compressed form: the perforations of all wells are
concatenated, and :attr:`Wells.well_connpos` points into the perforation arrays, so
that the perforations of well ``w`` are ``well_connpos[w]:well_connpos[w + 1]``.

Sign convention: well rates are positive when flowing into the reservoir. Injection
targets are thus positive, production targets negative.

"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)


class WellType(Enum):
    """Type of a well."""

    INJECTOR = "injector"
    PRODUCER = "producer"

    def __str__(self):
        return self.value


class ControlType(Enum):
    """The quantity prescribed by a well control.

    BHP: Bottom-hole pressure.
    RESERVOIR_RATE: Weighted sum of phase rates at reservoir conditions.
    SURFACE_RATE: Weighted sum of component rates at surface conditions.

    """

    BHP = "bhp"
    RESERVOIR_RATE = "reservoir_rate"
    SURFACE_RATE = "surface_rate"

    def __str__(self):
        return self.value

    @classmethod
    def from_str(cls, control_str: str) -> ControlType:
        """Convert a string to a ControlType."""
        return cls[control_str.upper()]


@dataclass
class WellControl:
    """Control of a single well."""

    type: ControlType
    """Controlled quantity."""
    target: float
    """Target value of the controlled quantity."""
    distr: Optional[np.ndarray] = None
    """Phase (reservoir rate) or component (surface rate) weights of the rate
    control, ``shape=(num_phases,)``. Not used by pressure controls."""

    def __post_init__(self) -> None:
        if isinstance(self.type, str):
            self.type = ControlType.from_str(self.type)
        if self.distr is not None:
            self.distr = np.asarray(self.distr, dtype=float)
        if self.type is not ControlType.BHP and self.distr is None:
            raise ValueError("Rate controls need a distribution")


@dataclass
class Wells:
    """Topology, completion data and controls of a set of wells.

    Topology and completion data are fixed after construction, controls may be
    replaced between calls to the pressure solver.

    Raises:
        ValueError: If the arrays are inconsistent with each other, if well indices are
            not positive, or injection compositions do not sum to one.

    """

    num_phases: int
    """Number of phases of the fluid produced or injected."""
    type: list[WellType]
    """Type of each well."""
    well_connpos: np.ndarray
    """Pointers into the perforation arrays, ``shape=(num_wells + 1,)``."""
    well_cells: np.ndarray
    """Cell of each perforation, ``shape=(num_perforations,)``."""
    WI: np.ndarray
    """Well index (connection transmissibility) of each perforation,
    ``shape=(num_perforations,)``."""
    depth_ref: np.ndarray
    """Reference depth of the bottom-hole pressure of each well,
    ``shape=(num_wells,)``."""
    comp_frac: np.ndarray
    """Phase fractions of the injected fluid, ``shape=(num_wells, num_phases)``.
    Only used for injectors."""
    controls: list[WellControl]
    """Current control of each well."""
    names: list[str] = field(default_factory=list)
    """Names of the wells. Defaults to ``well_0``, ``well_1`` etc."""

    def __post_init__(self) -> None:
        self.type = [WellType(t) if isinstance(t, str) else t for t in self.type]
        self.well_connpos = np.asarray(self.well_connpos, dtype=int)
        self.well_cells = np.asarray(self.well_cells, dtype=int)
        self.WI = np.asarray(self.WI, dtype=float)
        self.depth_ref = np.asarray(self.depth_ref, dtype=float)
        self.comp_frac = np.asarray(self.comp_frac, dtype=float).reshape(
            (-1, self.num_phases)
        )
        if not self.names:
            self.names = [f"well_{w}" for w in range(self.num_wells)]

        nw = self.num_wells
        if self.well_connpos.size == 0 or self.well_connpos[0] != 0:
            raise ValueError("Perforation pointer should start at zero")
        if np.any(np.diff(self.well_connpos) < 1):
            raise ValueError("Every well needs at least one perforation")
        if self.well_connpos[-1] != self.well_cells.size:
            raise ValueError("Perforation pointer does not match number of cells")
        if self.WI.shape != self.well_cells.shape:
            raise ValueError("Need one well index per perforation")
        if np.any(self.WI <= 0):
            raise ValueError("Well indices should be positive")
        if len(self.type) != nw or len(self.controls) != nw:
            raise ValueError("Need one type and one control per well")
        if self.depth_ref.shape != (nw,) or self.comp_frac.shape[0] != nw:
            raise ValueError("Need one reference depth and composition per well")
        if len(self.names) != nw:
            raise ValueError("Need one name per well")
        if np.any(self.comp_frac < 0) or not np.allclose(
            self.comp_frac.sum(axis=1), 1
        ):
            raise ValueError("Injection compositions should be fractions summing to 1")
        for control in self.controls:
            self._validate_control(control)

    @property
    def num_wells(self) -> int:
        """Number of wells."""
        return self.well_connpos.size - 1

    @property
    def num_perforations(self) -> int:
        """Total number of perforations of all wells."""
        return self.well_cells.size

    def perforation_wells(self) -> np.ndarray:
        """
        Returns:
            The well index of each perforation, ``shape=(num_perforations,)``.

        """
        return np.repeat(np.arange(self.num_wells), np.diff(self.well_connpos))

    def is_injector(self) -> np.ndarray:
        """
        Returns:
            Boolean array flagging injectors, ``shape=(num_wells,)``.

        """
        return np.array([t is WellType.INJECTOR for t in self.type], dtype=bool)

    def set_control(self, well: int, control: WellControl) -> None:
        """Replace the control of a well.

        Parameters:
            well: Index of the well.
            control: The new control.

        Raises:
            ValueError: If the distribution has the wrong size.

        """
        self._validate_control(control)
        logger.debug(f"Control of {self.names[well]} set to {control.type}")
        self.controls[well] = control

    def _validate_control(self, control: WellControl) -> None:
        if control.distr is not None and control.distr.shape != (self.num_phases,):
            raise ValueError("Control distribution should have one value per phase")


class WellsBuilder:
    """Incremental construction of a :class:`Wells` object.

    Parameters:
        num_phases: Number of phases of the fluid.

    Example:
        >>> builder = WellsBuilder(2)
        >>> builder.add_well(
        ...     WellType.PRODUCER, cells=[0], WI=[1.0], depth_ref=0.0,
        ...     control=WellControl(ControlType.BHP, 1e5),
        ... )
        >>> wells = builder.build()

    """

    def __init__(self, num_phases: int) -> None:
        if num_phases < 1:
            raise ValueError("Need at least one phase")
        self.num_phases = num_phases
        self._type: list[WellType] = []
        self._cells: list[np.ndarray] = []
        self._WI: list[np.ndarray] = []
        self._depth_ref: list[float] = []
        self._comp_frac: list[np.ndarray] = []
        self._controls: list[WellControl] = []
        self._names: list[str] = []

    def add_well(
        self,
        type: WellType,
        cells: np.ndarray,
        WI: np.ndarray,
        depth_ref: float,
        control: WellControl,
        comp_frac: Optional[np.ndarray] = None,
        name: Optional[str] = None,
    ) -> int:
        """Add a well.

        Parameters:
            type: Injector or producer.
            cells: Perforated cells.
            WI: Well index of each perforation.
            depth_ref: Reference depth of the bottom-hole pressure.
            control: Well control.
            comp_frac: ``default=None``

                Phase fractions of the injected fluid. Defaults to all injection in
                the first phase.
            name: ``default=None``

                Name of the well.

        Returns:
            Index of the new well.

        """
        if comp_frac is None:
            comp_frac = np.zeros(self.num_phases)
            comp_frac[0] = 1.0
        index = len(self._type)
        self._type.append(type)
        self._cells.append(np.atleast_1d(np.asarray(cells, dtype=int)))
        self._WI.append(np.atleast_1d(np.asarray(WI, dtype=float)))
        self._depth_ref.append(float(depth_ref))
        self._comp_frac.append(np.asarray(comp_frac, dtype=float))
        self._controls.append(control)
        self._names.append(name if name is not None else f"well_{index}")
        return index

    def build(self) -> Wells:
        """
        Returns:
            The wells added so far.

        Raises:
            ValueError: If the well data are inconsistent, see :class:`Wells`.

        """
        num_perf = [c.size for c in self._cells]
        connpos = np.hstack(([0], np.cumsum(num_perf))).astype(int)
        empty = np.zeros(0)
        return Wells(
            num_phases=self.num_phases,
            type=list(self._type),
            well_connpos=connpos,
            well_cells=np.hstack(self._cells) if self._cells else empty.astype(int),
            WI=np.hstack(self._WI) if self._WI else empty,
            depth_ref=np.array(self._depth_ref),
            comp_frac=(
                np.vstack(self._comp_frac)
                if self._comp_frac
                else np.zeros((0, self.num_phases))
            ),
            controls=list(self._controls),
            names=list(self._names),
        )
