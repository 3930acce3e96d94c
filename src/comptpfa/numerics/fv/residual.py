"""Assembly of the residual and Jacobian of the compressible pressure equation.

The pressure equation of a cell is the volume balance obtained by weighting the
component mass balances with the row vector ``w = 1^T A^{-1}`` of the cell,

.. math::

    F_c = \\frac{pv_c}{\\Delta t} (1 - w_c \\cdot z_c - d_c)
        + \\sum_{f} \\pm w_c \\cdot (A_f v_f)
        - \\sum_{j} w_c \\cdot (A_j q_j) + n_c - s_c,

where ``z`` are the component surface volumes per unit pore volume, held fixed
during the solve, ``d`` the volume discrepancy, ``v`` the phase fluxes over the
faces of the cell (positive in the direction of the face normal, with sign + if the
normal points out of the cell), ``q`` the phase rates of the perforations in the
cell (positive into the reservoir), ``n`` the Neumann outflow and ``s`` the cell
sources.

The phase flux of face ``f`` is ``v[p] = T_f mob_f[p] (p_0 - p_1 + gravcap_f[p])``,
the phase rate of perforation ``j`` of well ``w`` is
``q[p] = f[p] WI_j mob_j[p] (bhp_w + gpot_j[p] - p_c)``, with ``f`` the injection
composition for injectors and one for producers.

Each well adds one equation for its control. Unknowns and equations are ordered
with all cells first, followed by all wells.

Face and perforation composition matrices, mobilities and gravity terms are treated
as constant within an assembly; the Jacobian accounts for the pressure dependence
of the cell weights ``w`` and of the pressure differences.

"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
import scipy.sparse as sps

from comptpfa.grids.grid import Grid, SidePair
from comptpfa.numerics.fv.dynamic_data import DynamicData
from comptpfa.params.bc import BoundaryCondition
from comptpfa.utils.logging import time_logger
from comptpfa.wells.wells import ControlType, Wells

logger = logging.getLogger(__name__)


class CompressibleTpfaResidual:
    """Assembler for the residual and Jacobian of the pressure equation.

    The assembler holds the topology of the grid and wells, and the boundary
    conditions and sources, and should be closed when no longer needed. It can be
    used as a context manager:

        >>> with CompressibleTpfaResidual(g, wells) as assembler:
        ...     F, J = assembler.assemble(dt, z, p, facepressure, bhp, data, T, pv, gpot)

    Parameters:
        g: Grid.
        wells: ``default=None``

            Wells.
        bc: ``default=None``

            Boundary conditions. All boundary faces are no-flow if None.
        src: ``default=None``

            Volumetric source of each cell, positive for injection,
            ``shape=(num_cells,)``.

    Raises:
        ValueError: If the boundary condition or sources do not match the grid, or a
            well perforates a cell outside the grid.

    """

    def __init__(
        self,
        g: Grid,
        wells: Optional[Wells] = None,
        bc: Optional[BoundaryCondition] = None,
        src: Optional[np.ndarray] = None,
    ) -> None:
        self._g = g
        self._wells = wells

        if bc is None:
            bc = BoundaryCondition(g)
        if bc.num_faces != g.num_faces:
            raise ValueError("Boundary condition does not match the grid")
        self._bc = bc

        if src is None:
            src = np.zeros(g.num_cells)
        src = np.asarray(src, dtype=float)
        if src.shape != (g.num_cells,):
            raise ValueError("Need one source value per cell")
        self._src = src

        if wells is not None and wells.num_perforations > 0:
            if wells.well_cells.min() < 0 or wells.well_cells.max() >= g.num_cells:
                raise ValueError("Well perforations should be in cells of the grid")

        self._cells: SidePair = g.face_sides()
        is_boundary = (self._cells.first < 0) | (self._cells.second < 0)
        self._flux_faces = np.where(~is_boundary | bc.is_dir)[0]
        """Faces with a two-point flux: internal faces and Dirichlet faces."""
        self._neumann_faces = np.where(is_boundary & bc.is_neu)[0]

        self._closed = False

    @property
    def num_wells(self) -> int:
        return 0 if self._wells is None else self._wells.num_wells

    @property
    def num_dofs(self) -> int:
        """Number of unknowns, cells followed by wells."""
        return self._g.num_cells + self.num_wells

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Release the assembler. Further assembly is not possible."""
        if not self._closed:
            logger.debug("Residual assembler closed")
        self._closed = True

    def __enter__(self) -> CompressibleTpfaResidual:
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def face_phase_fluxes(
        self,
        pressure: np.ndarray,
        facepressure: np.ndarray,
        data: DynamicData,
        trans: np.ndarray,
    ) -> np.ndarray:
        """Phase fluxes over all faces.

        Parameters:
            pressure: ``shape=(num_cells,)``

                Cell pressures.
            facepressure: ``shape=(num_faces,)``

                Face pressures, used on Dirichlet faces.
            data: Dynamic data at the current pressures.
            trans: ``shape=(num_faces,)``

                Face transmissibilities.

        Returns:
            Phase volume fluxes in the direction of the face normals,
            ``shape=(num_faces, num_phases)``. Zero on no-flow faces; the Neumann
            outflow is not included.

        """
        fluxes = np.zeros_like(data.face_phasemob)
        faces = self._flux_faces
        fluxes[faces] = self._face_fluxes(faces, pressure, facepressure, data, trans)[0]
        return fluxes

    def perforation_rates(
        self,
        pressure: np.ndarray,
        bhp: np.ndarray,
        data: DynamicData,
        gpot: np.ndarray,
    ) -> np.ndarray:
        """Phase rates of all perforations.

        Parameters:
            pressure: ``shape=(num_cells,)``

                Cell pressures.
            bhp: ``shape=(num_wells,)``

                Bottom-hole pressures.
            data: Dynamic data at the current pressures.
            gpot: ``shape=(num_perforations, num_phases)``

                Gravity potentials of the perforations.

        Returns:
            Phase rates at reservoir conditions, positive into the reservoir,
            ``shape=(num_perforations, num_phases)``.

        """
        return self._perforation_rates(pressure, bhp, data, gpot)[0]

    @time_logger(sections=["assembly"])
    def assemble(
        self,
        dt: float,
        z: np.ndarray,
        pressure: np.ndarray,
        facepressure: np.ndarray,
        bhp: np.ndarray,
        data: DynamicData,
        trans: np.ndarray,
        porevol: np.ndarray,
        gpot: np.ndarray,
    ) -> tuple[np.ndarray, sps.csr_matrix]:
        """Assemble the residual and the Jacobian.

        Parameters:
            dt: Time step length.
            z: ``shape=(num_cells, num_phases)``

                Component surface volumes per unit pore volume.
            pressure: ``shape=(num_cells,)``

                Cell pressures.
            facepressure: ``shape=(num_faces,)``

                Face pressures, used on Dirichlet faces.
            bhp: ``shape=(num_wells,)``

                Bottom-hole pressures.
            data: Dynamic data at the current pressures.
            trans: ``shape=(num_faces,)``

                Face transmissibilities.
            porevol: ``shape=(num_cells,)``

                Pore volumes.
            gpot: ``shape=(num_perforations, num_phases)``

                Gravity potentials of the perforations.

        Raises:
            RuntimeError: If the assembler has been closed.
            ValueError: If the time step is not positive, or the number of bottom-hole
                pressures does not match the number of wells.

        Returns:
            The residual, ``shape=(num_dofs,)``, and the Jacobian,
            ``shape=(num_dofs, num_dofs)``.

        """
        if self._closed:
            raise RuntimeError("Cannot assemble with a closed assembler")
        if not dt > 0:
            raise ValueError("Time step should be positive")
        bhp = np.atleast_1d(np.asarray(bhp, dtype=float))
        if bhp.size != self.num_wells:
            raise ValueError("Need one bottom-hole pressure per well")

        nc = self._g.num_cells
        F = np.zeros(self.num_dofs)
        rows: list[np.ndarray] = []
        cols: list[np.ndarray] = []
        vals: list[np.ndarray] = []

        w, dw = cell_weights(data.cell_A, data.cell_dA)
        cells = np.arange(nc)

        # Accumulation
        F[:nc] = porevol / dt * (1 - np.sum(w * z, axis=1) - data.cell_voldisc)
        rows.append(cells)
        cols.append(cells)
        vals.append(-porevol / dt * np.sum(dw * z, axis=1))

        # Fluxes over internal and Dirichlet faces
        faces = self._flux_faces
        _, X, G = self._face_fluxes(faces, pressure, facepressure, data, trans)
        c = SidePair(self._cells.first[faces], self._cells.second[faces])
        has_cell = SidePair(c.first >= 0, c.second >= 0)
        both = has_cell.first & has_cell.second

        h = has_cell.first
        c0 = c.first[h]
        F += np.bincount(
            c0, weights=np.sum(w[c0] * X[h], axis=1), minlength=self.num_dofs
        )
        rows.append(c0)
        cols.append(c0)
        vals.append(np.sum(dw[c0] * X[h] + w[c0] * G[h], axis=1))
        rows.append(c.first[both])
        cols.append(c.second[both])
        vals.append(-np.sum(w[c.first[both]] * G[both], axis=1))

        h = has_cell.second
        c1 = c.second[h]
        F -= np.bincount(
            c1, weights=np.sum(w[c1] * X[h], axis=1), minlength=self.num_dofs
        )
        rows.append(c1)
        cols.append(c1)
        vals.append(np.sum(-dw[c1] * X[h] + w[c1] * G[h], axis=1))
        rows.append(c.second[both])
        cols.append(c.first[both])
        vals.append(-np.sum(w[c.second[both]] * G[both], axis=1))

        # Neumann outflow and sources
        F[:nc] += self._neumann_outflow()
        F[:nc] -= self._src

        if self.num_wells > 0:
            self._assemble_wells(F, rows, cols, vals, w, dw, pressure, bhp, data, gpot)

        J = sps.coo_matrix(
            (np.hstack(vals), (np.hstack(rows), np.hstack(cols))),
            shape=(self.num_dofs, self.num_dofs),
        ).tocsr()
        logger.debug(
            f"Assembled system with {self.num_dofs} unknowns and {J.nnz} nonzeros"
        )
        return F, J

    def _assemble_wells(
        self,
        F: np.ndarray,
        rows: list[np.ndarray],
        cols: list[np.ndarray],
        vals: list[np.ndarray],
        w: np.ndarray,
        dw: np.ndarray,
        pressure: np.ndarray,
        bhp: np.ndarray,
        data: DynamicData,
        gpot: np.ndarray,
    ) -> None:
        """Add the perforation terms of the cell equations, and the well equations."""
        wells = self._wells
        nc = self._g.num_cells
        cells = wells.well_cells
        well_of_perf = wells.perforation_wells()
        well_dof = nc + well_of_perf

        q, coeff = self._perforation_rates(pressure, bhp, data, gpot)
        Q = np.einsum("jik,jk->ji", data.wellperf_A, q)
        Gw = np.einsum("jik,jk->ji", data.wellperf_A, coeff)

        F -= np.bincount(
            cells, weights=np.sum(w[cells] * Q, axis=1), minlength=self.num_dofs
        )
        rows.append(cells)
        cols.append(cells)
        vals.append(np.sum(-dw[cells] * Q + w[cells] * Gw, axis=1))
        rows.append(cells)
        cols.append(well_dof)
        vals.append(-np.sum(w[cells] * Gw, axis=1))

        for well, control in enumerate(wells.controls):
            row = nc + well
            perfs = np.arange(wells.well_connpos[well], wells.well_connpos[well + 1])
            if control.type is ControlType.BHP:
                F[row] = bhp[well] - control.target
                rows.append(np.array([row]))
                cols.append(np.array([row]))
                vals.append(np.array([1.0]))
                continue

            if control.type is ControlType.RESERVOIR_RATE:
                rate, drate = q[perfs], coeff[perfs]
            elif control.type is ControlType.SURFACE_RATE:
                rate, drate = Q[perfs], Gw[perfs]
            else:
                raise ValueError(f"Unknown well control {control.type}")

            F[row] = np.sum(rate @ control.distr) - control.target
            d = drate @ control.distr
            rows.append(np.full(perfs.size + 1, row))
            cols.append(np.hstack((cells[perfs], [row])))
            vals.append(np.hstack((-d, [d.sum()])))

    def _face_fluxes(
        self,
        faces: np.ndarray,
        pressure: np.ndarray,
        facepressure: np.ndarray,
        data: DynamicData,
        trans: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Phase fluxes, component fluxes and component flux derivatives of a set of
        faces.

        The derivative is taken with respect to the pressure on side 0, the derivative
        with respect to the pressure on side 1 has opposite sign.

        """
        c = SidePair(self._cells.first[faces], self._cells.second[faces])
        p = SidePair(
            *(
                np.where(c[j] >= 0, pressure[c[j]], facepressure[faces])
                for j in range(2)
            )
        )
        mobT = trans[faces, None] * data.face_phasemob[faces]
        v = mobT * ((p.first - p.second)[:, None] + data.face_gravcap[faces])
        A = data.face_A[faces]
        X = np.einsum("fik,fk->fi", A, v)
        G = np.einsum("fik,fk->fi", A, mobT)
        return v, X, G

    def _perforation_rates(
        self,
        pressure: np.ndarray,
        bhp: np.ndarray,
        data: DynamicData,
        gpot: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray]:
        """Phase rates of the perforations, and their derivatives with respect to the
        bottom-hole pressure. The derivative with respect to the cell pressure has
        opposite sign."""
        wells = self._wells
        if wells is None:
            empty = np.zeros((0, data.cell_phasemob.shape[1]))
            return empty, empty

        well_of_perf = wells.perforation_wells()
        injector = wells.is_injector()[well_of_perf]
        frac = np.where(injector[:, None], wells.comp_frac[well_of_perf], 1.0)

        coeff = frac * wells.WI[:, None] * data.wellperf_phasemob
        drawdown = bhp[well_of_perf][:, None] + gpot - pressure[wells.well_cells][:, None]
        return coeff * drawdown, coeff

    def _neumann_outflow(self) -> np.ndarray:
        """Neumann outflow of each cell."""
        faces = self._neumann_faces
        fc = np.where(
            self._cells.first[faces] >= 0,
            self._cells.first[faces],
            self._cells.second[faces],
        )
        return np.bincount(
            fc, weights=self._bc.values[faces], minlength=self._g.num_cells
        )

    def neumann_face_fluxes(self) -> np.ndarray:
        """Total Neumann fluxes in the direction of the face normals,
        ``shape=(num_faces,)``. Zero on all other faces."""
        flux = np.zeros(self._g.num_faces)
        faces = self._neumann_faces
        sgn = np.where(self._cells.first[faces] >= 0, 1.0, -1.0)
        flux[faces] = sgn * self._bc.values[faces]
        return flux


def cell_weights(A: np.ndarray, dA: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Weights turning component mass balances into a volume balance.

    Parameters:
        A: ``shape=(n, num_phases, num_phases)``

            Composition matrices.
        dA: Pressure derivatives of the composition matrices, same shape.

    Returns:
        The weights ``w = 1^T A^{-1}`` and their pressure derivatives
        ``dw = -w dA A^{-1}``, both with ``shape=(n, num_phases)``.

    """
    At = np.swapaxes(A, 1, 2)
    ones = np.ones(A.shape[:2] + (1,))
    w = np.linalg.solve(At, ones)[..., 0]
    wdA = np.einsum("ni,nij->nj", w, dA)
    dw = -np.linalg.solve(At, wdA[..., None])[..., 0]
    return w, dw
