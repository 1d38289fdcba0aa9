"""
6-DOF equations of motion in body axes with Euler-angle attitude.

Implements:
- Translational dynamics (body-axis Newton's 2nd law with gravity)
- Rotational dynamics via precomputed inertia coefficients
- Euler angle kinematics
- NED position kinematics
"""

import numpy as np
from typing import Mapping, Tuple

from .controls import FlightControl
from .forces import ForceMomentAggregator, NetLoads
from .state import FlightState, STATE_SIZE
from ..environment.atmosphere import EnvironmentState


class AircraftDynamics:
    """
    6-DOF rigid body dynamics for one aircraft.

    State vector order: [u, v, w, p, q, r, phi, theta, psi, north, east, down].
    """

    def __init__(self, aggregator: ForceMomentAggregator):
        """
        Parameters:
        -----------
        aggregator : ForceMomentAggregator
            Source of net acceleration and moment
        """
        self.aggregator = aggregator
        self.aircraft = aggregator.aircraft
        self.coeffs = aggregator.aircraft.inertia_coefficients

    def state_derivative(self, state: FlightState, controls: Mapping[FlightControl, float],
                         environment: EnvironmentState, alpha_dot: float = 0.0,
                         terrain_height: float = 0.0) -> Tuple[np.ndarray, NetLoads]:
        """
        Compute state time derivative.

        Parameters:
        -----------
        state : FlightState
            Current state
        controls : mapping
            Control snapshot, held for the whole step
        environment : EnvironmentState
            Atmosphere, held for the whole step
        alpha_dot : float
            Angle of attack rate used by the alpha-dot derivatives (rad/s)
        terrain_height : float
            Terrain elevation (m)

        Returns:
        --------
        state_dot : np.ndarray, shape (12,)
            Time derivative of the state vector
        loads : NetLoads
            Forces and moments behind the derivative
        """
        loads = self.aggregator.compute(state, controls, environment, alpha_dot, terrain_height)
        ax, ay, az = loads.acceleration
        L, M, N = loads.moment
        g = environment.gravity
        c = self.coeffs

        u, v, w = state.u, state.v, state.w
        p, q, r = state.p, state.q, state.r
        sphi, cphi = np.sin(state.phi), np.cos(state.phi)
        sth, cth = np.sin(state.theta), np.cos(state.theta)

        state_dot = np.zeros(STATE_SIZE)

        # === Translational Dynamics ===
        state_dot[0] = r*v - q*w - g*sth + ax
        state_dot[1] = p*w - r*u + g*sphi*cth + ay
        state_dot[2] = q*u - p*v + g*cphi*cth + az

        # === Rotational Dynamics ===
        state_dot[3] = c.gamma1*p*q - c.gamma2*q*r + c.gamma3*L + c.gamma4*N
        state_dot[4] = c.gamma5*p*r - c.gamma6*(p**2 - r**2) + c.inv_iy*M
        state_dot[5] = c.gamma7*p*q - c.gamma1*q*r + c.gamma4*L + c.gamma8*N

        # === Euler Kinematics ===
        state_dot[6] = p + np.tan(state.theta)*(q*sphi + r*cphi)
        state_dot[7] = q*cphi - r*sphi
        state_dot[8] = (q*sphi + r*cphi) / cth

        # === Position Kinematics ===
        state_dot[9:12] = state.velocity_ned

        return state_dot, loads

    def derivative_function(self, controls: Mapping[FlightControl, float],
                            environment: EnvironmentState, alpha_dot: float = 0.0,
                            terrain_height: float = 0.0):
        """
        Freeze the per-tick inputs into f(x) -> x_dot for the integrator.
        """
        def f(x: np.ndarray) -> np.ndarray:
            state_dot, _ = self.state_derivative(
                FlightState.from_array(x), controls, environment, alpha_dot, terrain_height)
            return state_dot
        return f
