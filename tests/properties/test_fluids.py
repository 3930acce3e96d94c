"""Tests of the simple rock and fluid property evaluators."""

import numpy as np
import pytest

import comptpfa as ct
from comptpfa.applications.test_utils import setups


def test_constant_properties():
    g = ct.CartGrid([3])
    props = ct.ConstantProperties(
        ct.SecondOrderTensor(np.ones(3)), 0.3, [1.0, 4.0], [1000.0, 800.0]
    )
    cells = np.arange(3)
    p = np.array([1.0, 2.0, 3.0])
    z = np.ones((3, 2))

    assert props.num_phases == 2
    assert np.allclose(props.porosity(), 0.3)
    A, dA = props.matrix(p, z, cells, compute_derivative=True)
    assert A.shape == (3, 2, 2)
    assert np.allclose(A, np.eye(2))
    assert np.allclose(dA, 0)
    _, dA = props.matrix(p, z, cells)
    assert dA is None

    assert np.allclose(props.viscosity(p, z, cells), [[1, 4]] * 3)
    s = np.array([[0.2, 0.8], [1.0, 0.0], [0.5, 0.5]])
    assert np.allclose(props.relperm(s, cells), s)
    assert np.allclose(props.density(A, cells), [[1000, 800]] * 3)
    assert g.num_cells == props.permeability().num_cells


def test_slightly_compressible_matrix():
    g = ct.CartGrid([2])
    props = setups.two_phase_properties(g, compressibility=(0.01, 0.1))
    p = np.array([100.0, 110.0])
    A, dA = props.matrix(p, np.ones((2, 2)), np.arange(2), compute_derivative=True)

    inv_B = np.exp(np.array([0.01, 0.1]) * (p[:, None] - 100.0))
    assert np.allclose(A[:, [0, 1], [0, 1]], inv_B)
    assert np.allclose(A[:, 0, 1], 0) and np.allclose(A[:, 1, 0], 0)
    assert np.allclose(props.formation_volume_factor(p), 1 / inv_B)

    # Derivative by finite differences.
    h = 1e-6
    Ap, _ = props.matrix(p + h, np.ones((2, 2)), np.arange(2))
    Am, _ = props.matrix(p - h, np.ones((2, 2)), np.arange(2))
    assert np.allclose(dA, (Ap - Am) / (2 * h), rtol=1e-6)

    # Reservoir densities are surface densities divided by the formation volume
    # factors.
    assert np.allclose(props.density(A, np.arange(2)), np.array([1000, 800]) * inv_B)


def test_corey_relperm():
    g = ct.CartGrid([2])
    props = setups.two_phase_properties(g)
    s = np.array([[0.5, 0.5], [0.2, 0.8]])
    assert np.allclose(props.relperm(s, np.arange(2)), s**2)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"porosity": 0.0},
        {"porosity": np.array([0.2, 0.2, 0.2])},
        {"viscosity": [1.0, -1.0]},
        {"surface_density": [1.0]},
    ],
)
def test_invalid_constant_properties(kwargs):
    args = {
        "permeability": ct.SecondOrderTensor(np.ones(2)),
        "porosity": 0.2,
        "viscosity": [1.0, 1.0],
        "surface_density": [1.0, 1.0],
    }
    args.update(kwargs)
    with pytest.raises(ValueError):
        ct.ConstantProperties(**args)


def test_invalid_compressibility():
    with pytest.raises(ValueError):
        ct.SlightlyCompressibleProperties(
            ct.SecondOrderTensor(np.ones(2)),
            0.2,
            viscosity=[1.0, 1.0],
            surface_density=[1.0, 1.0],
            compressibility=[1e-3],
            reference_pressure=0.0,
        )
