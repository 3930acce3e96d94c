"""Rock and fluid property evaluation.

The pressure solver only depends on the abstract :class:`FluidRockProperties`.
Two simple evaluators are provided for use in tests and examples.

"""
