"""
Propulsion models for 6-DOF flight dynamics.

Provides:
- Base propulsion model interface
- Fixed-pitch propeller piston engine

Thrust acts along the body x-axis; moments come from the engine position
relative to the center of gravity.
"""

import numpy as np
from abc import ABC, abstractmethod
from typing import Mapping, NamedTuple

from .controls import FlightControl, MAX_ENGINES
from ..environment.atmosphere import EnvironmentState


HP_TO_WATTS = 745.699872

# Sea level density for the Gagg-Ferrar power lapse (kg/m³)
RHO_SSL = 1.225
A_P = 1.132
B_P = 0.132

# Below this airspeed the static thrust relation is used (m/s)
STATIC_THRUST_SPEED = 19.8


class EngineOutput(NamedTuple):
    """Instantaneous engine outputs."""
    force: np.ndarray  # N, body frame
    moment: np.ndarray  # N·m, body frame
    rpm: float
    fuel_flow: float  # gal/h


class PropulsionModel(ABC):
    """
    Base class for propulsion models.

    Provides interface for computing thrust forces and moments.
    """

    number: int = 1

    @abstractmethod
    def thrust(self, throttle: float, environment: EnvironmentState, airspeed: float) -> float:
        """
        Thrust magnitude along the body x-axis (N).

        Parameters:
        -----------
        throttle : float
            Throttle setting [0, 1]
        environment : EnvironmentState
            Current atmosphere
        airspeed : float
            True airspeed (m/s)
        """

    @abstractmethod
    def compute(self, controls: Mapping[FlightControl, float],
                environment: EnvironmentState, airspeed: float) -> EngineOutput:
        """Forces, moments, RPM and fuel flow for the current controls."""

    def max_thrust(self, environment: EnvironmentState, airspeed: float) -> float:
        """Thrust available at full throttle (N)."""
        return self.thrust(1.0, environment, airspeed)


class FixedPitchPropEngine(PropulsionModel):
    """
    Piston engine driving a fixed-pitch propeller.

    Static thrust from momentum theory at low speed; above that thrust is
    power-limited, T = throttle·P·(A_P·σ − B_P)·η/V, with the Gagg-Ferrar
    density correction for power lapse.
    """

    def __init__(self, name: str = 'Lycoming IO-360',
                 max_power_hp: float = 200.0,
                 max_rpm: float = 2700.0,
                 prop_diameter: float = 1.98,
                 prop_efficiency: float = 0.85,
                 position: np.ndarray = None,
                 number: int = 1):
        """
        Initialize engine.

        Parameters:
        -----------
        name : str
            Engine name
        max_power_hp : float
            Maximum brake horsepower
        max_rpm : float
            Maximum RPM
        prop_diameter : float
            Propeller diameter (m)
        prop_efficiency : float
            Propeller efficiency [0, 1]
        position : np.ndarray, shape (3,), optional
            Engine location relative to the CG, body frame (m)
        number : int
            Engine number 1-4, selects the throttle and mixture channels
        """
        if not 1 <= number <= MAX_ENGINES:
            raise ValueError(f"Engine number must be 1-{MAX_ENGINES}, got {number}")

        self.name = name
        self.max_power_hp = max_power_hp
        self.max_rpm = max_rpm
        self.prop_diameter = prop_diameter
        self.prop_area = np.pi * prop_diameter**2 / 4.0
        self.prop_efficiency = prop_efficiency
        if position is None:
            self.position = np.array([0.0, 0.0, 0.0])
        else:
            self.position = np.asarray(position, dtype=float)
        self.number = number

        self.max_power = max_power_hp * HP_TO_WATTS

    def thrust(self, throttle: float, environment: EnvironmentState, airspeed: float) -> float:
        """Thrust magnitude (N)."""
        power = throttle * self.max_power
        rho = environment.density

        if airspeed <= STATIC_THRUST_SPEED:
            return power**(2.0/3.0) * (2.0*rho*self.prop_area)**(1.0/3.0)

        return power * (A_P*rho/RHO_SSL - B_P) * self.prop_efficiency / airspeed

    def rpm(self, throttle: float) -> float:
        return 500.0 + throttle*(self.max_rpm - 500.0)

    @staticmethod
    def fuel_flow(throttle: float, mixture: float) -> float:
        """Fuel flow (gal/h)."""
        return (0.9 + 14.8*throttle) * mixture

    def compute(self, controls: Mapping[FlightControl, float],
                environment: EnvironmentState, airspeed: float) -> EngineOutput:
        """Compute engine outputs for this engine's throttle and mixture."""
        throttle = controls[FlightControl.throttle(self.number)]
        mixture = controls[FlightControl.mixture(self.number)]

        force = np.hstack([self.thrust(throttle, environment, airspeed), 0.0, 0.0])
        moment = np.cross(self.position, force)

        return EngineOutput(force, moment, self.rpm(throttle), self.fuel_flow(throttle, mixture))

    def __repr__(self) -> str:
        return (f"FixedPitchPropEngine({self.name!r} #{self.number}, "
                f"{self.max_power_hp:.0f} hp, {self.max_rpm:.0f} rpm, "
                f"prop {self.prop_diameter:.2f} m)")
