"""
Aircraft definition: wing geometry, mass properties, stability derivatives,
engines and landing gear.

An AircraftSpec is built once when the aircraft is loaded and is not changed
while a simulation runs.
"""

import numpy as np
from types import MappingProxyType
from typing import Mapping, Optional, Sequence

from archimedes import struct

from .errors import ConfigurationError
from .ground_reaction import LandingGear
from .lookup_table import ConstantDerivative, Derivative
from .propulsion import PropulsionModel, FixedPitchPropEngine
from .controls import MAX_ENGINES
from .transforms import InertiaCoefficients, inertia_coefficients


# Stability derivative names and their defaults (per rad, nondimensional)
DEFAULT_DERIVATIVES = {
    'CL_alpha': 4.44,
    'CL_0': 0.41,
    'CL_q': 3.8,
    'CL_alpha_dot': 0.0,
    'CL_d_elev': 0.355,
    'CL_d_flap': 0.355,
    'CY_beta': -0.564,
    'CY_d_rud': 0.157,
    'CD_alpha': 0.33,
    'CD_0': 0.025,
    'CD_d_flap': 0.02,
    'CD_d_elev': 0.0,
    'CD_d_gear': 0.09,
    'Croll_beta': -0.074,
    'Croll_p': -0.410,
    'Croll_r': 0.107,
    'Croll_d_ail': -0.134,
    'Croll_d_rud': 0.0107,
    'CM_alpha': -0.683,
    'CM_0': 0.0,
    'CM_q': -9.96,
    'CM_alpha_dot': -4.36,
    'CM_d_elev': -0.923,
    'CM_d_flap': -0.050,
    'CN_beta': 0.071,
    'CN_p': -0.0575,
    'CN_r': -0.125,
    'CN_d_ail': -0.0035,
    'CN_d_rud': -0.072,
}

DERIVATIVE_NAMES = tuple(DEFAULT_DERIVATIVES)


@struct(frozen=True)
class WingGeometry:
    """Reference geometry (m, m²); aerodynamic center in body axes."""

    area: float = 16.7
    span: float = 10.2
    chord: float = 1.74
    ac_x: float = 0.0
    ac_y: float = 0.0
    ac_z: float = 0.0

    @property
    def aerodynamic_center(self) -> np.ndarray:
        return np.hstack([self.ac_x, self.ac_y, self.ac_z])


@struct(frozen=True)
class MassProperties:
    """Mass (kg), inertia (kg·m²) and center of gravity in body axes (m)."""

    mass: float = 1247.0
    ix: float = 1420.9
    iy: float = 4067.5
    iz: float = 4786.0
    ixz: float = 0.0
    cg_x: float = 0.0
    cg_y: float = 0.0
    cg_z: float = 0.0

    @property
    def center_of_gravity(self) -> np.ndarray:
        return np.hstack([self.cg_x, self.cg_y, self.cg_z])

    @property
    def inertia(self) -> np.ndarray:
        """Inertia tensor (3x3)."""
        return np.array([
            [self.ix, 0.0, -self.ixz],
            [0.0, self.iy, 0.0],
            [-self.ixz, 0.0, self.iz],
        ])


class AircraftSpec:
    """
    Immutable aircraft data consumed by the dynamics.

    Attributes
    ----------
    name : str
        Aircraft name
    geometry : WingGeometry
        Reference geometry
    mass_properties : MassProperties
        Mass, inertia and CG
    derivatives : mapping
        Derivative name -> Derivative (constant or table); names missing from
        the input take their DEFAULT_DERIVATIVES value
    engines : tuple
        Propulsion models, at most 4
    landing_gear : LandingGear or None
        Ground reaction model
    inertia_coefficients : InertiaCoefficients
        Precomputed from the inertia; raises DegenerateInertiaError on load
    """

    def __init__(self, name: str = 'Navion',
                 geometry: Optional[WingGeometry] = None,
                 mass_properties: Optional[MassProperties] = None,
                 derivatives: Optional[Mapping[str, Derivative]] = None,
                 engines: Optional[Sequence[PropulsionModel]] = None,
                 landing_gear: Optional[LandingGear] = None):
        self.name = name
        self.geometry = geometry if geometry is not None else WingGeometry()
        self.mass_properties = mass_properties if mass_properties is not None else MassProperties()

        if self.mass_properties.mass <= 0.0:
            raise ConfigurationError(f"{name}: mass must be positive")

        resolved = {key: ConstantDerivative(value, key) for key, value in DEFAULT_DERIVATIVES.items()}
        if derivatives:
            unknown = set(derivatives) - set(DEFAULT_DERIVATIVES)
            if unknown:
                raise ConfigurationError(f"{name}: unknown stability derivatives {sorted(unknown)}")
            for key, value in derivatives.items():
                if isinstance(value, (int, float)):
                    value = ConstantDerivative(value, key)
                resolved[key] = value
        self.derivatives = MappingProxyType(resolved)

        self.engines = tuple(engines) if engines is not None else (FixedPitchPropEngine(),)
        if len(self.engines) > MAX_ENGINES:
            raise ConfigurationError(f"{name}: at most {MAX_ENGINES} engines supported")

        self.landing_gear = landing_gear

        mp = self.mass_properties
        self.inertia_coefficients: InertiaCoefficients = inertia_coefficients(
            mp.ix, mp.iy, mp.iz, mp.ixz)

    @property
    def mass(self) -> float:
        return self.mass_properties.mass

    @property
    def weight(self) -> float:
        """Weight at standard gravity (N)."""
        return self.mass_properties.mass * 9.80665

    def derivative(self, name: str) -> Derivative:
        return self.derivatives[name]

    def __repr__(self) -> str:
        return (f"AircraftSpec(name={self.name!r}, mass={self.mass:.1f} kg, "
                f"S={self.geometry.area:.2f} m², b={self.geometry.span:.2f} m, "
                f"engines={len(self.engines)})")
