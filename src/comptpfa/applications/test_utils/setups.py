"""Small problem setups shared by several test modules."""

from __future__ import annotations

from typing import Optional

import numpy as np

import comptpfa as ct


def single_phase_properties(
    g: ct.Grid,
    porosity: float = 1.0,
    viscosity: float = 1.0,
    density: float = 0.0,
    perm: float = 1.0,
) -> ct.ConstantProperties:
    """Incompressible single-phase fluid in a homogeneous medium."""
    return ct.ConstantProperties(
        ct.SecondOrderTensor(perm * np.ones(g.num_cells)),
        porosity,
        np.array([viscosity]),
        np.array([density]),
    )


def two_phase_properties(
    g: ct.Grid,
    compressibility: tuple[float, float] = (1e-4, 1e-3),
    porosity: float = 0.2,
    surface_density: tuple[float, float] = (1000.0, 800.0),
) -> ct.SlightlyCompressibleProperties:
    """Slightly compressible two-phase fluid with quadratic relative
    permeabilities. The reference pressure is 100."""
    return ct.SlightlyCompressibleProperties(
        ct.SecondOrderTensor(np.ones(g.num_cells)),
        porosity,
        viscosity=np.array([1.0, 2.0]),
        surface_density=np.array(surface_density),
        compressibility=np.array(compressibility),
        reference_pressure=100.0,
    )


def dirichlet_sides(
    g: ct.Grid, sides: list[str], values: list[float], state: ct.ReservoirState
) -> ct.BoundaryCondition:
    """Dirichlet conditions on the given sides of a box grid.

    The face pressures of ``state`` are set to the given values.

    """
    faces = ct.face_on_side(g, sides)
    for f, v in zip(faces, values):
        state.facepressure[f] = v
    return ct.BoundaryCondition(g, np.hstack(faces), "dir")


def two_cell_producer(
    control: ct.WellControl,
) -> tuple[ct.Grid, ct.ConstantProperties, ct.Wells, ct.BoundaryCondition, dict]:
    """Two unit cells on a line, a producer in cell 0 and a Dirichlet condition
    ``p = 1`` on the east face.

    With unit permeability, viscosity and well index, and a production rate of 0.5,
    the exact solution is ``p = [0.25, 0.75]`` and ``bhp = -0.25``. The transmissibility
    of the internal face is 1, that of the east face is 2.

    Returns:
        Grid, properties, wells, boundary condition and the known solution, with keys
        ``pressure``, ``bhp``, ``faceflux`` and ``rate``.

    """
    g = ct.CartGrid([2])
    props = single_phase_properties(g)
    builder = ct.WellsBuilder(1)
    builder.add_well(ct.WellType.PRODUCER, [0], [1.0], depth_ref=0.0, control=control)
    wells = builder.build()
    bc = ct.BoundaryCondition(g, np.array([2]), "dir")
    known = {
        "pressure": np.array([0.25, 0.75]),
        "bhp": np.array([-0.25]),
        "faceflux": np.array([0.0, -0.5, -0.5]),
        "rate": np.array([[-0.5]]),
    }
    return g, props, wells, bc, known


def two_cell_state(
    g: ct.Grid, pressure: np.ndarray, boundary_pressure: Optional[float] = 1.0
) -> ct.ReservoirState:
    """Single-phase state with the given cell pressures and east face pressure."""
    state = ct.ReservoirState.initialize(g, 1, pressure=pressure)
    if boundary_pressure is not None:
        state.facepressure[-1] = boundary_pressure
    return state
