"""   comptpfa.

Root directory for the comptpfa package: a Newton-Raphson pressure solver for
compressible multiphase flow, discretized by a two-point flux approximation on
unstructured grids. Contains the following sub-packages:

grids: Grid class and Cartesian constructors.

numerics: Transmissibilities, dynamic (upwinded) data, residual assembly, the
    Newton driver and linear solvers.

params: Permeability tensors and boundary conditions.

properties: Interface for rock and fluid properties, and simple implementations.

wells: Well topology and controls.

state: Reservoir and well state containers.

utils: Units, exceptions and logging.

applications: Shared test setups and derivative testing.


isort:skip_file

"""

import configparser
import os
from pathlib import Path


__version__ = "0.1.0"

# Read the config file from the directory where the python process was launched.
# A missing file leaves the configuration empty.
_cfg = configparser.ConfigParser()
_cfg.read(Path(os.getcwd()) / Path("comptpfa.cfg"))
config = {section: dict(_cfg[section]) for section in _cfg.sections()}

# ------------------------------------
# Simplified namespaces. Classes and modules that a user is exposed to have a
# shortcut here.

from comptpfa.utils.common_constants import *
from comptpfa.utils.exceptions import (
    ComptpfaError,
    InconsistentPhasesError,
    ConvergenceError,
    LinearSolverError,
)

# Parameters
from comptpfa.params.tensor import SecondOrderTensor
from comptpfa.params.bc import BoundaryCondition, face_on_side

# Grids
from comptpfa.grids.grid import Grid, SidePair
from comptpfa.grids.structured import CartGrid, TensorGrid

# Properties
from comptpfa.properties.interface import FluidRockProperties
from comptpfa.properties.fluids import (
    ConstantProperties,
    SlightlyCompressibleProperties,
)

# Wells and state
from comptpfa.wells.wells import (
    ControlType,
    WellControl,
    Wells,
    WellsBuilder,
    WellType,
)
from comptpfa.state import ReservoirState, WellState

# Numerics
from comptpfa.numerics.nonlinear.convergence_check import (
    ConvergenceStatus,
    ConvergenceTolerance,
)
from comptpfa.numerics.nonlinear.solver_statistics import SolverStatistics
from comptpfa.numerics.linalg.linear_solvers import (
    LinearSolverInterface,
    DirectSolver,
    GmresSolver,
)
from comptpfa.numerics.fv import tpfa
from comptpfa.numerics.fv.dynamic_data import DynamicData
from comptpfa.numerics.fv.residual import CompressibleTpfaResidual
from comptpfa.numerics.fv.compressible_tpfa import (
    CompressibleTpfa,
    default_solver_params,
)
