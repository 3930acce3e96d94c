"""Tests of the Newton driver of the pressure solver.

The tests cover:
* Problems with known solutions: linear pressure profiles and hydrostatic columns.
* Ordering of the unknowns and the update of the states.
* Failure modes: non-convergence, inconsistent input and lifetime of the assembler.
* Two-phase problems with wells.

"""

import json

import numpy as np
import pytest

import comptpfa as ct
from comptpfa.applications.test_utils import setups


class _FixedIncrementSolver(ct.LinearSolverInterface):
    """Linear solver returning a fixed vector, regardless of the system."""

    def __init__(self, x):
        self.x = np.asarray(x, dtype=float)

    def _solve(self, A, b):
        return self.x


def _linear_profile(g):
    props = setups.single_phase_properties(g)
    state = ct.ReservoirState.initialize(g, 1, pressure=0.5)
    bc = setups.dirichlet_sides(g, ["west", "east"], [1.0, 0.0], state)
    return props, state, bc


@pytest.mark.parametrize("linsolver", [ct.DirectSolver(), ct.GmresSolver()])
def test_linear_profile_1d(linsolver):
    g = ct.CartGrid([10], physdims=[1])
    props, state, bc = _linear_profile(g)

    with ct.CompressibleTpfa(g, props, linsolver, 1e-10, 1e-10, 5, bc=bc) as solver:
        stats = solver.solve(1.0, state)

    assert stats.convergence_status is ct.ConvergenceStatus.CONVERGED
    assert len(stats.residual_norms) == stats.num_iteration + 1
    assert np.allclose(state.pressure, 1 - g.cell_centers[0])


def test_divergence_on_large_increment():
    g = ct.CartGrid([10], physdims=[1])
    props, state, bc = _linear_profile(g)
    solver = ct.CompressibleTpfa(
        g, props, ct.DirectSolver(), 1e-10, 1e-10, 5, bc=bc, max_increment=1e-3
    )

    with pytest.raises(ct.ConvergenceError) as excinfo:
        solver.solve(1.0, state)
    stats = excinfo.value.statistics
    assert stats.num_iteration == 1
    assert stats.convergence_status is ct.ConvergenceStatus.DIVERGED


def test_non_finite_increment():
    g = ct.CartGrid([3])
    props = setups.single_phase_properties(g)
    state = ct.ReservoirState.initialize(g, 1)
    solver = ct.CompressibleTpfa(
        g, props, _FixedIncrementSolver(np.full(3, np.nan)), 1e-8, 1e-8, 3
    )
    with pytest.raises(ct.LinearSolverError):
        solver.solve(1.0, state)


def test_statistics_saved(tmp_path):
    g = ct.CartGrid([10], physdims=[1])
    props, state, bc = _linear_profile(g)
    path = tmp_path / "stats.json"
    with ct.CompressibleTpfa(
        g, props, ct.DirectSolver(), 1e-10, 1e-10, 5, bc=bc, statistics_path=path
    ) as solver:
        stats = solver.solve(0.5, state)

    with path.open("r") as f:
        data = json.load(f)
    assert data["dt"] == 0.5
    assert data["convergence_status"] == "converged"
    assert data["num_iteration"] == stats.num_iteration
    assert np.allclose(state.faceflux, 1)


def test_linear_profile_2d():
    g = ct.CartGrid([4, 3], physdims=[1, 1])
    props, state, bc = _linear_profile(g)

    with ct.CompressibleTpfa(
        g, props, ct.DirectSolver(), 1e-10, 1e-10, 5, bc=bc
    ) as solver:
        solver.solve(1.0, state)

    assert np.allclose(state.pressure, 1 - g.cell_centers[0])
    # Faces 0-14 are x-faces, the rest are y-faces.
    assert np.allclose(state.faceflux[:15], g.face_areas[:15])
    assert np.allclose(state.faceflux[15:], 0)


@pytest.mark.parametrize("scale_face_gravity", [False, True])
def test_hydrostatic_column(scale_face_gravity):
    g = ct.CartGrid([5], physdims=[10])
    rho, grav, p_top = 1000.0, ct.GRAVITY_ACCELERATION, 1 * ct.BAR
    props = setups.single_phase_properties(g, density=rho)
    state = ct.ReservoirState.initialize(g, 1, pressure=p_top)
    bc = setups.dirichlet_sides(g, ["west"], [p_top], state)

    with ct.CompressibleTpfa(
        g,
        props,
        ct.DirectSolver(),
        1e-8,
        1e-6,
        5,
        gravity=[grav],
        bc=bc,
        scale_face_gravity=scale_face_gravity,
    ) as solver:
        solver.solve(1.0, state)

    # Without scaling, the face gravity terms are rho * dz.
    factor = grav if scale_face_gravity else 1.0
    assert np.allclose(state.pressure, p_top + rho * factor * g.cell_centers[0])
    assert np.allclose(state.faceflux, 0, atol=1e-6)


@pytest.mark.skipped
def test_hydrostatic_column_3d():
    g = ct.CartGrid([3, 3, 4], physdims=[1, 1, 8])
    rho, grav, p_top = 800.0, ct.GRAVITY_ACCELERATION, 2 * ct.BAR
    props = setups.single_phase_properties(g, density=rho)
    state = ct.ReservoirState.initialize(g, 1, pressure=p_top)
    bc = setups.dirichlet_sides(g, ["zmin"], [p_top], state)

    with ct.CompressibleTpfa(
        g,
        props,
        ct.GmresSolver(),
        1e-8,
        1e-6,
        5,
        gravity=[0, 0, grav],
        bc=bc,
        scale_face_gravity=True,
    ) as solver:
        solver.solve(1.0, state)

    assert np.allclose(state.pressure, p_top + rho * grav * g.cell_centers[2])
    assert np.allclose(state.faceflux, 0, atol=1e-6)


def _two_bhp_wells():
    builder = ct.WellsBuilder(1)
    for cell in (0, 2):
        builder.add_well(
            ct.WellType.PRODUCER,
            [cell],
            [1.0],
            depth_ref=0.0,
            control=ct.WellControl(ct.ControlType.BHP, 0.0),
        )
    return builder.build()


def test_unknowns_ordered_cells_then_wells():
    g = ct.CartGrid([3])
    props = setups.single_phase_properties(g)
    wells = _two_bhp_wells()
    state = ct.ReservoirState.initialize(g, 1)
    well_state = ct.WellState.initialize(2, 2, 1)

    # The increment is the negative solution of the linear system.
    linsolver = _FixedIncrementSolver(-np.array([1.0, 2.0, 3.0, 10.0, 20.0]))
    solver = ct.CompressibleTpfa(g, props, linsolver, 1e30, 1e30, 1, wells=wells)
    assert solver.num_dofs == 5
    stats = solver.solve(1.0, state, well_state)

    assert stats.num_iteration == 1
    assert np.allclose(state.pressure, [1, 2, 3])
    assert np.allclose(well_state.bhp, [10, 20])
    # Rates follow from the drawdown at the updated pressures.
    assert np.allclose(well_state.perfrates, [[9.0], [17.0]])
    assert np.allclose(well_state.rates, well_state.perfrates)
    solver.close()


def test_increment_of_wrong_size():
    g = ct.CartGrid([3])
    props = setups.single_phase_properties(g)
    state = ct.ReservoirState.initialize(g, 1)
    solver = ct.CompressibleTpfa(
        g, props, _FixedIncrementSolver(np.zeros(2)), 1e-8, 1e-8, 3
    )
    with pytest.raises(ValueError):
        solver.solve(1.0, state)


def test_repeated_solve_is_idempotent():
    g = ct.CartGrid([10], physdims=[1])
    props, state, bc = _linear_profile(g)
    with ct.CompressibleTpfa(
        g, props, ct.DirectSolver(), 1e-10, 1e-10, 5, bc=bc
    ) as solver:
        solver.solve(1.0, state)
        pressure = state.pressure.copy()
        faceflux = state.faceflux.copy()
        stats = solver.solve(1.0, state)

    assert stats.num_iteration == 1
    assert np.allclose(state.pressure, pressure)
    assert np.allclose(state.faceflux, faceflux)


def test_convergence_failure():
    g = ct.CartGrid([10], physdims=[1])
    props, state, bc = _linear_profile(g)
    solver = ct.CompressibleTpfa(g, props, ct.DirectSolver(), 1e-10, 1e-10, 1, bc=bc)

    with pytest.raises(ct.ConvergenceError) as excinfo:
        solver.solve(1.0, state)
    stats = excinfo.value.statistics
    assert stats.num_iteration == 1
    assert stats.convergence_status is ct.ConvergenceStatus.NOT_CONVERGED
    # The state holds the last iterate.
    assert np.allclose(state.pressure, 1 - g.cell_centers[0])


def test_inconsistent_phases():
    g = ct.CartGrid([3])
    props = setups.single_phase_properties(g)
    builder = ct.WellsBuilder(2)
    builder.add_well(
        ct.WellType.PRODUCER, [0], [1.0], 0.0, ct.WellControl(ct.ControlType.BHP, 0.0)
    )
    with pytest.raises(ct.InconsistentPhasesError):
        ct.CompressibleTpfa(
            g, props, ct.DirectSolver(), 1e-8, 1e-8, 5, wells=builder.build()
        )
    assert issubclass(ct.InconsistentPhasesError, ValueError)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"residual_tol": 0.0},
        {"maxiter": 0},
        {"gravity": [0.0]},
        {"src": np.zeros(2)},
    ],
)
def test_invalid_construction(kwargs):
    g = ct.CartGrid([3, 2])
    args = {
        "g": g,
        "props": setups.single_phase_properties(g),
        "linsolver": ct.DirectSolver(),
        "residual_tol": 1e-8,
        "change_tol": 1e-8,
        "maxiter": 5,
    }
    args.update(kwargs)
    with pytest.raises(ValueError):
        ct.CompressibleTpfa(**args)


def test_invalid_states():
    g = ct.CartGrid([3])
    props = setups.single_phase_properties(g)
    wells = _two_bhp_wells()
    solver = ct.CompressibleTpfa(g, props, ct.DirectSolver(), 1e-8, 1e-8, 5, wells=wells)
    state = ct.ReservoirState.initialize(g, 1)

    with pytest.raises(ValueError):
        solver.solve(1.0, state)
    with pytest.raises(ValueError):
        solver.solve(1.0, state, ct.WellState.initialize(1, 1, 1))
    with pytest.raises(ValueError):
        solver.solve(0.0, state, ct.WellState.initialize(2, 2, 1))
    with pytest.raises(ValueError):
        solver.solve(1.0, ct.ReservoirState.initialize(g, 2), None)


def test_closed_solver():
    g, props, wells, bc, known = setups.two_cell_producer(
        ct.WellControl(ct.ControlType.BHP, -0.25)
    )
    state = setups.two_cell_state(g, known["pressure"])
    well_state = ct.WellState.initialize(1, 1, 1)

    with ct.CompressibleTpfa(
        g, props, ct.DirectSolver(), 1e-10, 1e-10, 5, wells=wells, bc=bc
    ) as solver:
        solver.compute_dynamic_data(state)
    with pytest.raises(RuntimeError):
        solver.assemble(1.0, state, well_state)


def test_assembler_released_on_failed_construction(monkeypatch):
    closed = []
    monkeypatch.setattr(
        ct.CompressibleTpfaResidual, "close", lambda self: closed.append(True)
    )
    g = ct.CartGrid([2])
    # Permeability defined on the wrong number of cells.
    props = setups.single_phase_properties(ct.CartGrid([3]))
    with pytest.raises(ValueError):
        ct.CompressibleTpfa(g, props, ct.DirectSolver(), 1e-8, 1e-8, 5)
    assert closed == [True]


@pytest.mark.parametrize(
    "control",
    [
        ct.WellControl(ct.ControlType.BHP, -0.25),
        ct.WellControl(ct.ControlType.RESERVOIR_RATE, -0.5, [1.0]),
        ct.WellControl(ct.ControlType.SURFACE_RATE, -0.5, [1.0]),
    ],
)
def test_two_cell_producer(control):
    g, props, wells, bc, known = setups.two_cell_producer(control)
    state = setups.two_cell_state(g, np.zeros(2))
    well_state = ct.WellState.initialize(1, 1, 1)

    with ct.CompressibleTpfa(
        g, props, ct.DirectSolver(), 1e-10, 1e-10, 5, wells=wells, bc=bc
    ) as solver:
        solver.solve(1.0, state, well_state)

    assert np.allclose(state.pressure, known["pressure"])
    assert np.allclose(well_state.bhp, known["bhp"])
    assert np.allclose(state.faceflux, known["faceflux"])
    assert np.allclose(well_state.rates, known["rate"])


class TestTwoPhaseWells:
    """Slightly compressible two-phase flow between an injector and a producer."""

    def setup_problem(self, producer_control):
        g = ct.CartGrid([4, 3])
        props = setups.two_phase_properties(g)
        s = np.array([0.5, 0.5])
        p_init = 150.0
        A, _ = props.matrix(
            p_init * np.ones(g.num_cells),
            np.ones((g.num_cells, 2)),
            np.arange(g.num_cells),
        )
        state = ct.ReservoirState.initialize(
            g, 2, pressure=p_init, saturation=s, surfacevol=A[0] @ s
        )

        builder = ct.WellsBuilder(2)
        builder.add_well(
            ct.WellType.INJECTOR,
            [0],
            [1.0],
            depth_ref=0.5,
            control=ct.WellControl(ct.ControlType.BHP, 200.0),
            comp_frac=[1.0, 0.0],
            name="injector",
        )
        builder.add_well(
            ct.WellType.PRODUCER,
            [g.num_cells - 1],
            [1.0],
            depth_ref=2.5,
            control=producer_control,
            name="producer",
        )
        wells = builder.build()
        well_state = ct.WellState.initialize(2, 2, 2, bhp=p_init)
        return g, props, wells, state, well_state

    def solve(self, producer_control):
        g, props, wells, state, well_state = self.setup_problem(producer_control)
        params = {
            "nl_convergence_tol": ct.ConvergenceTolerance(
                tol_residual=1e-8, tol_increment=1e-6, max_iterations=15
            ),
            "wells": wells,
        }
        with ct.CompressibleTpfa.from_params(
            g, props, ct.DirectSolver(), params
        ) as solver:
            stats = solver.solve(1.0, state, well_state)
        assert stats.convergence_status.is_converged()
        return state, well_state

    def test_bhp_controls(self):
        state, well_state = self.solve(ct.WellControl(ct.ControlType.BHP, 100.0))

        assert np.allclose(well_state.bhp, [200, 100])
        assert np.all((state.pressure > 100) & (state.pressure < 200))
        # Only the injected phase enters the reservoir.
        assert well_state.rates[0, 0] > 0
        assert well_state.rates[0, 1] == 0
        assert np.all(well_state.rates[1] < 0)

    def test_rate_controlled_producer(self):
        state, well_state = self.solve(
            ct.WellControl(ct.ControlType.RESERVOIR_RATE, -1.0, [1.0, 1.0])
        )
        assert np.isclose(well_state.rates[1].sum(), -1.0)
        assert np.all(well_state.rates[1] < 0)
        assert np.allclose(well_state.perfrates, well_state.rates)


def test_from_params():
    g = ct.CartGrid([3])
    props = setups.single_phase_properties(g)
    solver = ct.CompressibleTpfa.from_params(g, props, ct.DirectSolver())
    default_tol = ct.default_solver_params["nl_convergence_tol"]
    assert solver.tolerance == default_tol
    assert solver.num_wells == 0

    with pytest.raises(ValueError):
        ct.CompressibleTpfa.from_params(
            g, props, ct.DirectSolver(), {"max_iterations": 3}
        )


def test_from_params_keeps_divergence_thresholds():
    g = ct.CartGrid([10], physdims=[1])
    props, state, bc = _linear_profile(g)
    tol = ct.ConvergenceTolerance(1e-10, 1e-10, 5, max_increment=1e-6)
    solver = ct.CompressibleTpfa.from_params(
        g, props, ct.DirectSolver(), {"nl_convergence_tol": tol, "bc": bc}
    )
    assert solver.tolerance == tol

    with pytest.raises(ct.ConvergenceError) as excinfo:
        solver.solve(1.0, state)
    stats = excinfo.value.statistics
    assert stats.convergence_status is ct.ConvergenceStatus.DIVERGED
    solver.close()
