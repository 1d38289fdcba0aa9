"""
sixdof: six-degree-of-freedom rigid-body flight dynamics.

Subpackages:
- core: frames, lookup tables, aerodynamics, propulsion, force aggregation
- environment: standard atmosphere
- io: configuration loading and output export
- simulation: trim, integration and the real-time stepper
"""

__version__ = "0.1.0"
