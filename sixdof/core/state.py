"""
6-DOF state vector for the Euler-angle equations of motion.

State includes (12 integrated scalars):
- Velocity (u, v, w) in body frame
- Angular rates (p, q, r) in body frame
- Euler angles (phi, theta, psi)
- Position (north, east, down) in local NED frame

Latitude and longitude ride along with the state but are advanced from the
NED rates after each step rather than integrated as part of the ODE.
"""

import numpy as np

from archimedes import struct

from .transforms import WindParameters, body_to_ned, wind_parameters


STATE_SIZE = 12

# Order of the integrated state vector
STATE_NAMES = ('u', 'v', 'w', 'p', 'q', 'r',
               'phi', 'theta', 'psi', 'north', 'east', 'down')


@struct(frozen=False)
class FlightState:
    """
    Complete aircraft state (SI units).

    Velocities in m/s, rates in rad/s, angles in rad, position in m.
    `down` is the NED down coordinate, so altitude = -down.
    """

    # Velocity in body frame (m/s)
    u: float = 0.0
    v: float = 0.0
    w: float = 0.0

    # Angular rates in body frame (rad/s)
    p: float = 0.0
    q: float = 0.0
    r: float = 0.0

    # Euler angles (rad)
    phi: float = 0.0
    theta: float = 0.0
    psi: float = 0.0

    # Position in NED frame (m)
    north: float = 0.0
    east: float = 0.0
    down: float = 0.0

    # Geodetic position (rad)
    latitude: float = 0.0
    longitude: float = 0.0

    @property
    def velocity_body(self) -> np.ndarray:
        """Velocity vector in body frame (m/s)."""
        return np.hstack([self.u, self.v, self.w])

    @property
    def angular_rates(self) -> np.ndarray:
        """Angular rate vector in body frame (rad/s)."""
        return np.hstack([self.p, self.q, self.r])

    @property
    def euler_angles(self) -> np.ndarray:
        """Euler angles [phi, theta, psi] (rad)."""
        return np.hstack([self.phi, self.theta, self.psi])

    @property
    def position(self) -> np.ndarray:
        """Position in NED frame (m)."""
        return np.hstack([self.north, self.east, self.down])

    @property
    def velocity_ned(self) -> np.ndarray:
        """Velocity in NED frame (m/s)."""
        return body_to_ned(self.phi, self.theta, self.psi) @ self.velocity_body

    @property
    def altitude(self) -> float:
        """Altitude above reference (m, positive up)."""
        return -self.down

    @property
    def wind(self) -> WindParameters:
        """Airspeed, sideslip and angle of attack."""
        return wind_parameters(self.u, self.v, self.w)

    @property
    def airspeed(self) -> float:
        """True airspeed (m/s)."""
        return self.wind.airspeed

    @property
    def alpha(self) -> float:
        """Angle of attack (rad)."""
        return self.wind.alpha

    @property
    def beta(self) -> float:
        """Sideslip angle (rad)."""
        return self.wind.beta

    def height_above_ground(self, terrain_height: float = 0.0) -> float:
        """Height above terrain (m)."""
        return self.altitude - terrain_height

    def to_array(self) -> np.ndarray:
        """
        Convert to the integrated state vector.

        Returns:
        --------
        x : np.ndarray, shape (12,)
            [u, v, w, p, q, r, phi, theta, psi, north, east, down]
        """
        return np.array([getattr(self, name) for name in STATE_NAMES], dtype=float)

    @classmethod
    def from_array(cls, x: np.ndarray, latitude: float = 0.0,
                   longitude: float = 0.0) -> 'FlightState':
        """Build a state from a 12-element vector (see `to_array`)."""
        values = {name: float(x[i]) for i, name in enumerate(STATE_NAMES)}
        return cls(latitude=latitude, longitude=longitude, **values)

    def copy(self) -> 'FlightState':
        """Independent copy of the state."""
        return FlightState.from_array(self.to_array(), self.latitude, self.longitude)

    def is_finite(self) -> bool:
        """True when every component is a finite number."""
        return bool(np.all(np.isfinite(self.to_array()))
                    and np.isfinite(self.latitude) and np.isfinite(self.longitude))

    def __str__(self) -> str:
        """Pretty print state."""
        return (
            f"6-DOF Aircraft State:\n"
            f"  Position (NED):   [{self.north:9.1f}, {self.east:9.1f}, {self.down:9.1f}] m\n"
            f"  Altitude:         {self.altitude:9.1f} m\n"
            f"  Velocity (body):  [{self.u:7.2f}, {self.v:7.2f}, {self.w:7.2f}] m/s\n"
            f"  Airspeed:         {self.airspeed:7.2f} m/s\n"
            f"  Euler angles:     [{np.degrees(self.phi):6.2f}, {np.degrees(self.theta):6.2f}, "
            f"{np.degrees(self.psi):6.2f}] deg\n"
            f"  Alpha, Beta:      [{np.degrees(self.alpha):6.2f}, {np.degrees(self.beta):6.2f}] deg\n"
            f"  Angular rates:    [{self.p:7.4f}, {self.q:7.4f}, {self.r:7.4f}] rad/s"
        )
