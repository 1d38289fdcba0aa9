"""
Landing gear ground reaction model.

Three struts (nose, left main, right main) modeled as spring-dampers that
push back when the tire point is below the terrain. Tire friction, brakes
and nosewheel steering act in the wheel plane.
"""

import numpy as np
from typing import Mapping, Tuple

from archimedes import struct

from .controls import FlightControl
from .state import FlightState
from .transforms import body_to_ned


TIRE_STATIC_FRICTION = 0.5
TIRE_ROLLING_FRICTION = 0.06

# Contact speed (m/s) over which friction builds up to its full value
FRICTION_SPEED_SCALE = 0.5


@struct(frozen=True)
class GearLeg:
    """One strut: tire contact point relative to the CG (body frame, m)."""

    x: float = 0.0
    y: float = 0.0
    z: float = 1.0
    spring: float = 50000.0  # N/m
    damping: float = 5000.0  # N·s/m

    @property
    def position(self) -> np.ndarray:
        return np.hstack([self.x, self.y, self.z])


class LandingGear:
    """
    Tricycle landing gear.

    Parameters:
    -----------
    nose, left, right : GearLeg
        Strut definitions
    braking_force : float
        Main wheel braking force at full brake (N)
    max_steering : float
        Nosewheel deflection at full rudder (rad)
    """

    def __init__(self, nose: GearLeg = None, left: GearLeg = None, right: GearLeg = None,
                 braking_force: float = 3000.0, max_steering: float = np.radians(20.0)):
        self.nose = nose if nose is not None else GearLeg(x=1.8, y=0.0, z=1.2)
        self.left = left if left is not None else GearLeg(x=-0.3, y=-1.3, z=1.2)
        self.right = right if right is not None else GearLeg(x=-0.3, y=1.3, z=1.2)
        self.braking_force = braking_force
        self.max_steering = max_steering

    def compute(self, state: FlightState, controls: Mapping[FlightControl, float],
                terrain_height: float = 0.0) -> Tuple[np.ndarray, np.ndarray]:
        """
        Ground forces and moments on the airframe.

        Parameters:
        -----------
        state : FlightState
            Current state
        controls : mapping
            Control snapshot (rudder steers the nosewheel; brakes act on mains)
        terrain_height : float
            Terrain elevation under the aircraft (m)

        Returns:
        --------
        forces : np.ndarray, shape (3,)
            Body-frame force (N)
        moments : np.ndarray, shape (3,)
            Body-frame moment about the CG (N·m)
        """
        forces = np.zeros(3)
        moments = np.zeros(3)

        C_bn = body_to_ned(state.phi, state.theta, state.psi)
        steering = controls[FlightControl.RUDDER] / FlightControl.RUDDER.maximum * self.max_steering

        legs = (
            (self.nose, steering, 0.0),
            (self.left, 0.0, controls[FlightControl.BRAKE_L]),
            (self.right, 0.0, controls[FlightControl.BRAKE_R]),
        )

        for leg, steer, brake in legs:
            force = self._leg_force(leg, state, C_bn, terrain_height, steer, brake)
            forces += force
            moments += np.cross(leg.position, force)

        return forces, moments

    def _leg_force(self, leg: GearLeg, state: FlightState, C_bn: np.ndarray,
                   terrain_height: float, steer: float, brake: float) -> np.ndarray:
        """Body-frame force from one strut."""
        r = leg.position
        tire_altitude = state.altitude - (C_bn @ r)[2]
        compression = terrain_height - tire_altitude
        if compression <= 0.0:
            return np.zeros(3)

        # Contact point velocity
        v_contact = state.velocity_body + np.cross(state.angular_rates, r)
        compression_rate = (C_bn @ v_contact)[2]

        normal = max(leg.spring*compression + leg.damping*compression_rate, 0.0)
        force = C_bn.T @ np.array([0.0, 0.0, -normal])

        # Wheel-plane friction
        cs, ss = np.cos(steer), np.sin(steer)
        v_long = cs*v_contact[0] + ss*v_contact[1]
        v_lat = -ss*v_contact[0] + cs*v_contact[1]

        rolling = TIRE_ROLLING_FRICTION*normal + self.braking_force*brake
        f_long = -rolling * np.tanh(v_long / FRICTION_SPEED_SCALE)
        f_lat = -TIRE_STATIC_FRICTION*normal * np.tanh(v_lat / FRICTION_SPEED_SCALE)

        force[0] += cs*f_long - ss*f_lat
        force[1] += ss*f_long + cs*f_lat

        return force
