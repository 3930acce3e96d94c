"""Tests of the per-iteration quantities: cell mobilities, upwinding and gravity
terms of the faces, and perforation data."""

import numpy as np
import pytest

import comptpfa as ct
from comptpfa.applications.test_utils import setups
from comptpfa.numerics.fv.dynamic_data import (
    DynamicData,
    compute_cell_data,
    compute_dynamic_data,
    compute_face_data,
    compute_well_data,
    compute_well_potentials,
    vertical_gravity,
)


class _NoDensityProperties(ct.ConstantProperties):
    """Properties that fail if densities are requested."""

    def density(self, A, cells):
        raise AssertionError("Densities should not be needed without gravity")


def _two_phase_props(g, cls=ct.ConstantProperties):
    return cls(
        ct.SecondOrderTensor(np.ones(g.num_cells)),
        0.2,
        np.array([1.0, 2.0]),
        np.array([1000.0, 100.0]),
    )


def _setup(g, props, pressure, wells=None):
    state = ct.ReservoirState.initialize(
        g, 2, pressure=np.asarray(pressure, dtype=float), saturation=[0.5, 0.5]
    )
    nperf = 0 if wells is None else wells.num_perforations
    data = DynamicData.allocate(g.num_cells, g.num_faces, nperf, 2)
    return state, data


def test_cell_data():
    g = ct.CartGrid([2])
    props = _two_phase_props(g)
    state, data = _setup(g, props, [1.0, 2.0])
    state.saturation = np.array([[0.3, 0.7], [0.6, 0.4]])

    compute_cell_data(data, props, state)
    assert np.allclose(data.cell_viscosity, [[1, 2], [1, 2]])
    assert np.allclose(data.cell_phasemob, [[0.3, 0.35], [0.6, 0.2]])
    assert np.allclose(data.cell_A, np.eye(2))
    assert np.allclose(data.cell_voldisc, 0)


def test_volume_discrepancy():
    g = ct.CartGrid([2])
    props = _two_phase_props(g)
    state, data = _setup(g, props, [1.0, 2.0])

    def discrepancy(A, z):
        return np.sum(z, axis=1) - 1.0 + 0.1

    compute_cell_data(data, props, state, discrepancy)
    assert np.allclose(data.cell_voldisc, 0.1)

    with pytest.raises(ValueError):
        compute_cell_data(data, props, state, lambda A, z: np.zeros(3))


@pytest.mark.parametrize(
    "pressure, upwind_internal",
    [
        # Equal potentials: the cell on side 0 is upwind.
        ([1.0, 1.0], [0, 0]),
        ([1.0, 2.0], [1, 1]),
        ([2.0, 1.0], [0, 0]),
    ],
)
def test_upwind_without_gravity(pressure, upwind_internal):
    g = ct.CartGrid([2])
    props = _two_phase_props(g, _NoDensityProperties)
    state, data = _setup(g, props, pressure)
    compute_cell_data(data, props, state)
    compute_face_data(data, g, props, state)

    assert np.array_equal(data.face_upwind[1], upwind_internal)
    # Boundary faces are upwinded from their single cell.
    assert np.array_equal(data.face_upwind[0], [0, 0])
    assert np.array_equal(data.face_upwind[2], [1, 1])
    assert np.allclose(data.face_gravcap, 0)
    assert np.allclose(
        data.face_phasemob, data.cell_phasemob[data.face_upwind, [0, 1]]
    )


def test_upwind_with_gravity():
    g = ct.CartGrid([2])
    props = _two_phase_props(g)
    state, data = _setup(g, props, [0.0, 500.0])
    compute_cell_data(data, props, state)
    compute_face_data(data, g, props, state, gravity=np.array([10.0]))

    # The gravity term is rho * dz, independent of the gravity magnitude.
    assert np.allclose(data.face_gravcap[1], [1000, 100])
    assert np.allclose(data.face_gravcap[0], [500, 50])
    assert np.allclose(data.face_gravcap[2], [500, 50])
    # The heavy phase flows from cell 0, the light phase from cell 1.
    assert np.array_equal(data.face_upwind[1], [0, 1])


def test_upwind_with_scaled_gravity():
    g = ct.CartGrid([2])
    props = _two_phase_props(g)
    state, data = _setup(g, props, [0.0, 5000.0])
    compute_cell_data(data, props, state)
    compute_face_data(
        data, g, props, state, gravity=np.array([10.0]), scale_face_gravity=True
    )

    assert np.allclose(data.face_gravcap[1], [10000, 1000])
    assert np.allclose(data.face_gravcap[0], [5000, 500])
    assert np.array_equal(data.face_upwind[1], [0, 1])

    # Unscaled, both phases are pushed from cell 1 at this pressure drop.
    compute_face_data(data, g, props, state, gravity=np.array([10.0]))
    assert np.array_equal(data.face_upwind[1], [1, 1])


def test_face_composition_upwinded_by_phase():
    g = ct.CartGrid([2])
    props = setups.two_phase_properties(
        g, compressibility=(1e-5, 1e-5), surface_density=(1000.0, 100.0)
    )
    state, data = _setup(g, props, [0.0, 500.0])
    compute_cell_data(data, props, state)
    compute_face_data(data, g, props, state, gravity=np.array([10.0]))

    assert np.array_equal(data.face_upwind[1], [0, 1])
    assert np.allclose(data.face_A[1, 0], data.cell_A[0, 0])
    assert np.allclose(data.face_A[1, 1], data.cell_A[1, 1])
    assert not np.allclose(data.cell_A[0], data.cell_A[1])


@pytest.mark.parametrize(
    "nx, gravity",
    [([2], None), ([2], np.array([0.0])), ([2, 1], np.array([9.8, 0.0]))],
)
def test_zero_gravity(nx, gravity):
    g = ct.CartGrid(nx)
    props = _two_phase_props(g, _NoDensityProperties)
    state, data = _setup(g, props, np.arange(g.num_cells, dtype=float))
    compute_cell_data(data, props, state)
    compute_face_data(data, g, props, state, gravity=gravity)
    assert np.allclose(data.face_gravcap, 0)


def test_vertical_gravity():
    assert vertical_gravity(ct.CartGrid([2, 2]), None) == 0.0
    assert vertical_gravity(ct.CartGrid([2, 2]), [1.0, 2.0]) == 2.0
    assert vertical_gravity(ct.CartGrid([2, 2, 2]), [0.0, 0.0, 9.8]) == 9.8
    with pytest.raises(ValueError):
        vertical_gravity(ct.CartGrid([2, 2]), [9.8])


def _column_wells():
    builder = ct.WellsBuilder(2)
    builder.add_well(
        ct.WellType.INJECTOR,
        [1],
        [1.0],
        depth_ref=0.0,
        control=ct.WellControl(ct.ControlType.BHP, 1.0),
        comp_frac=[0.0, 1.0],
    )
    builder.add_well(
        ct.WellType.PRODUCER,
        [3],
        [1.0],
        depth_ref=0.0,
        control=ct.WellControl(ct.ControlType.BHP, 0.0),
    )
    return builder.build()


def test_well_potentials():
    g = ct.CartGrid([4])
    props = _two_phase_props(g)
    wells = _column_wells()
    state, _ = _setup(g, props, np.zeros(4), wells)

    gpot = compute_well_potentials(g, props, wells, state, np.array([10.0]))
    assert np.allclose(gpot, [[15000, 1500], [35000, 3500]])

    gpot = compute_well_potentials(g, props, None, state, np.array([10.0]))
    assert gpot.shape == (0, 2)

    no_density = _two_phase_props(g, _NoDensityProperties)
    gpot = compute_well_potentials(g, no_density, wells, state, None)
    assert np.allclose(gpot, np.zeros((2, 2)))


def test_well_data():
    g = ct.CartGrid([4])
    props = _two_phase_props(g)
    wells = _column_wells()
    state, data = _setup(g, props, np.zeros(4), wells)
    state.saturation = np.array([[0.1, 0.9], [0.2, 0.8], [0.3, 0.7], [0.4, 0.6]])

    compute_dynamic_data(data, g, props, state, wells=wells)
    # The injector sees the total mobility of its cell in all phases, the producer
    # the phase mobilities.
    assert np.allclose(data.wellperf_phasemob[0], [0.6, 0.6])
    assert np.allclose(data.wellperf_phasemob[1], data.cell_phasemob[3])
    assert np.allclose(data.wellperf_A, data.cell_A[[1, 3]])

    compute_well_data(data, None)
    assert data.wellperf_phasemob.shape == (0, 2)
