"""The subpackage ``grids`` contains the grid representation used by the pressure
solver.

The base class stores the topology and geometry of general polyhedral grids; grid
generation is left to external tools. Structured (tensor and Cartesian) grids are
provided for convenience.

"""
