"""
The module gives access to a set of unified units and physical constants.

To access the quantities, invoke ct.KEY.

All values are given in SI units, so that multiplying a number by e.g. ``ct.BAR``
converts it to Pascal.

"""

""" Units """
SECOND = 1.0
METER = 1.0

PASCAL = 1.0
BAR = 100000 * PASCAL

GRAVITY_ACCELERATION = 9.80665 * METER / SECOND**2
