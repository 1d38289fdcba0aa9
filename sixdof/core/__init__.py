"""
Core 6-DOF flight dynamics components.

This module provides the fundamental building blocks for six-degree-of-freedom
aircraft flight simulation.
"""

from .errors import (
    SixDOFError,
    TableBuildError,
    DegenerateInertiaError,
    ConfigurationError,
    StateCorruptionError
)
from .transforms import (
    WindParameters,
    InertiaCoefficients,
    wind_parameters,
    alpha_dot,
    wind_to_body,
    body_to_ned,
    inertia_coefficients,
    ground_effect_factor
)
from .state import FlightState
from .controls import FlightControl, ControlState, DEFAULT_CONTROLS
from .lookup_table import (
    InterpolatedDerivativeTable,
    ConstantDerivative,
    TableDerivative,
    constant_table,
    load_table_file,
    resolve_derivative
)
from .aircraft import AircraftSpec, WingGeometry, MassProperties, DEFAULT_DERIVATIVES
from .aerodynamics import AerodynamicsModel, AeroCoefficients, AeroForces
from .propulsion import PropulsionModel, FixedPitchPropEngine, EngineOutput
from .ground_reaction import LandingGear, GearLeg
from .forces import ForceMomentAggregator, SaturationLimits, NetLoads
from .dynamics import AircraftDynamics
from .integrator import RK4Integrator

__all__ = [
    'SixDOFError',
    'TableBuildError',
    'DegenerateInertiaError',
    'ConfigurationError',
    'StateCorruptionError',
    'WindParameters',
    'InertiaCoefficients',
    'wind_parameters',
    'alpha_dot',
    'wind_to_body',
    'body_to_ned',
    'inertia_coefficients',
    'ground_effect_factor',
    'FlightState',
    'FlightControl',
    'ControlState',
    'DEFAULT_CONTROLS',
    'InterpolatedDerivativeTable',
    'ConstantDerivative',
    'TableDerivative',
    'constant_table',
    'load_table_file',
    'resolve_derivative',
    'AircraftSpec',
    'WingGeometry',
    'MassProperties',
    'DEFAULT_DERIVATIVES',
    'AerodynamicsModel',
    'AeroCoefficients',
    'AeroForces',
    'PropulsionModel',
    'FixedPitchPropEngine',
    'EngineOutput',
    'LandingGear',
    'GearLeg',
    'ForceMomentAggregator',
    'SaturationLimits',
    'NetLoads',
    'AircraftDynamics',
    'RK4Integrator'
]
