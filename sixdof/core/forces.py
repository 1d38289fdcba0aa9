"""
Force and moment aggregation with saturation limits.

Sums aerodynamic, propulsion and ground-reaction loads into the net
acceleration and moment handed to the equations of motion. Both are clamped
per axis so that one bad evaluation (e.g. a degenerate table lookup) cannot
blow up the integration.
"""

import numpy as np
from typing import Mapping, NamedTuple, Sequence, Tuple

from archimedes import struct

from .aerodynamics import AerodynamicsModel, AeroForces
from .aircraft import AircraftSpec
from .controls import FlightControl
from .propulsion import EngineOutput
from .state import FlightState
from .transforms import wrap_heading
from ..environment.atmosphere import EnvironmentState


# Field names accepted from the `saturation:` block of a simulation file
SATURATION_KEYS = ('max_acceleration', 'max_moment', 'max_angular_rate', 'max_pitch',
                   'max_depth_below_terrain')


@struct(frozen=True)
class SaturationLimits:
    """
    Hard bounds applied to the dynamics.

    Attributes
    ----------
    max_acceleration : float
        Per-axis linear acceleration limit (m/s²)
    max_moment : float
        Per-axis moment limit (N·m)
    max_angular_rate : float
        Per-axis body rate limit (rad/s)
    max_pitch : float
        Pitch attitude is held inside ±max_pitch to keep the Euler
        kinematics away from their singularity (rad)
    max_depth_below_terrain : float
        Deepest the aircraft may sink below the terrain (m)
    """

    max_acceleration: float = 300.0
    max_moment: float = 1.5e5
    max_angular_rate: float = 10.0
    max_pitch: float = np.pi/2 - 1e-4
    max_depth_below_terrain: float = 3.0

    def limit_acceleration(self, accel: np.ndarray) -> np.ndarray:
        return np.clip(accel, -self.max_acceleration, self.max_acceleration)

    def limit_moment(self, moment: np.ndarray) -> np.ndarray:
        return np.clip(moment, -self.max_moment, self.max_moment)

    def limit_state(self, state: FlightState, terrain_height: float = 0.0) -> FlightState:
        """
        Apply rate, attitude and position limits to an integrated state.

        Heading is wrapped into [0, 2π).
        """
        x = state.to_array()
        x[3:6] = np.clip(x[3:6], -self.max_angular_rate, self.max_angular_rate)
        x[7] = np.clip(x[7], -self.max_pitch, self.max_pitch)
        x[8] = wrap_heading(x[8])

        # down must not exceed terrain depth
        floor = -(terrain_height - self.max_depth_below_terrain)
        x[11] = min(x[11], floor)

        return FlightState.from_array(x, state.latitude, state.longitude)


class NetLoads(NamedTuple):
    """Aggregated loads for one derivative evaluation."""
    acceleration: np.ndarray  # m/s², body frame, saturated
    moment: np.ndarray  # N·m, body frame, saturated
    aero: AeroForces
    engines: Tuple[EngineOutput, ...]
    ground_force: np.ndarray
    ground_moment: np.ndarray


class ForceMomentAggregator:
    """
    Combines the aircraft's force models.

    Parameters:
    -----------
    aircraft : AircraftSpec
        Aircraft (engines and landing gear are taken from it)
    aero_model : AerodynamicsModel, optional
        Aerodynamic model; built from the aircraft when omitted
    limits : SaturationLimits, optional
        Saturation bounds
    """

    def __init__(self, aircraft: AircraftSpec, aero_model: AerodynamicsModel = None,
                 limits: SaturationLimits = None):
        self.aircraft = aircraft
        self.aero_model = aero_model if aero_model is not None else AerodynamicsModel(aircraft)
        self.limits = limits if limits is not None else SaturationLimits()
        self.mass = aircraft.mass

    def combine(self, aero_force: np.ndarray, aero_moment: np.ndarray,
                engine_forces: Sequence[np.ndarray] = (),
                engine_moments: Sequence[np.ndarray] = (),
                ground_force: np.ndarray = None,
                ground_moment: np.ndarray = None) -> Tuple[np.ndarray, np.ndarray]:
        """
        Sum force and moment contributions.

        Returns:
        --------
        acceleration : np.ndarray, shape (3,)
            ΣF / mass, saturated (m/s²)
        moment : np.ndarray, shape (3,)
            ΣM, saturated (N·m)
        """
        total_force = np.array(aero_force, dtype=float)
        total_moment = np.array(aero_moment, dtype=float)

        for force in engine_forces:
            total_force = total_force + force
        for moment in engine_moments:
            total_moment = total_moment + moment

        if ground_force is not None:
            total_force = total_force + ground_force
        if ground_moment is not None:
            total_moment = total_moment + ground_moment

        acceleration = self.limits.limit_acceleration(total_force / self.mass)
        moment = self.limits.limit_moment(total_moment)

        return acceleration, moment

    def compute(self, state: FlightState, controls: Mapping[FlightControl, float],
                environment: EnvironmentState, alpha_dot: float = 0.0,
                terrain_height: float = 0.0) -> NetLoads:
        """
        Evaluate every force model and aggregate.

        Parameters:
        -----------
        state : FlightState
            Current state
        controls : mapping
            Control snapshot
        environment : EnvironmentState
            Atmosphere for this tick
        alpha_dot : float
            Angle of attack rate (rad/s)
        terrain_height : float
            Terrain elevation (m)
        """
        aero = self.aero_model.compute(state, controls, environment, alpha_dot, terrain_height)

        airspeed = state.airspeed
        engines = tuple(engine.compute(controls, environment, airspeed)
                        for engine in self.aircraft.engines)

        if self.aircraft.landing_gear is not None:
            ground_force, ground_moment = self.aircraft.landing_gear.compute(
                state, controls, terrain_height)
        else:
            ground_force, ground_moment = np.zeros(3), np.zeros(3)

        acceleration, moment = self.combine(
            aero.force, aero.moment,
            [e.force for e in engines], [e.moment for e in engines],
            ground_force, ground_moment)

        return NetLoads(acceleration, moment, aero, engines, ground_force, ground_moment)
