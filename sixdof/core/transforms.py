"""
Coordinate transformations between the wind, body and NED frames.

Provides:
- Wind-to-body and body-to-NED direction cosine matrices
- Wind parameters (airspeed, sideslip, angle of attack) from body velocities
- Inertia coefficients for the rotational equations of motion
- Ground effect factor and geodetic position rates

All functions are pure; angles in radians, lengths in meters.
"""

import numpy as np
from typing import NamedTuple

from .errors import DegenerateInertiaError


# Below this airspeed (m/s) flow angles are undefined
MIN_AIRSPEED = 1e-6

# WGS84 ellipsoid
EARTH_RADIUS = 6378137.0  # m, equatorial
EARTH_ECCENTRICITY = 0.08181919


class WindParameters(NamedTuple):
    """Relative wind in body axes: true airspeed (m/s), sideslip and angle of attack (rad)."""
    airspeed: float
    beta: float
    alpha: float


class InertiaCoefficients(NamedTuple):
    """
    Coefficients of the rotational equations of motion.

    With Γ = Ix·Iz − Ixz²:
        p_dot = Γ1·p·q − Γ2·q·r + Γ3·L + Γ4·N
        q_dot = Γ5·p·r − Γ6·(p² − r²) + M/Iy
        r_dot = Γ7·p·q − Γ1·q·r + Γ4·L + Γ8·N
    """
    gamma1: float
    gamma2: float
    gamma3: float
    gamma4: float
    gamma5: float
    gamma6: float
    gamma7: float
    gamma8: float
    inv_iy: float


def wind_parameters(u: float, v: float, w: float) -> WindParameters:
    """
    Compute airspeed, sideslip and angle of attack from body velocities.

    Parameters:
    -----------
    u, v, w : float
        Body-frame velocity components (m/s)

    Returns:
    --------
    WindParameters
        (airspeed, beta, alpha); all zero when airspeed is ~0, alpha = ±π/2
        for purely vertical flow
    """
    airspeed = float(np.sqrt(u*u + v*v + w*w))
    if airspeed < MIN_AIRSPEED:
        return WindParameters(0.0, 0.0, 0.0)

    beta = float(np.arcsin(np.clip(v / airspeed, -1.0, 1.0)))
    if abs(u) > MIN_AIRSPEED:
        alpha = float(np.arctan(w / u))
    else:
        # Limit of atan(w/u) as u -> 0
        alpha = float(np.sign(w) * np.pi/2)

    return WindParameters(airspeed, beta, alpha)


def alpha_dot(u: float, w: float, u_dot: float, w_dot: float) -> float:
    """Rate of change of angle of attack (rad/s)."""
    denominator = u*u + w*w
    if denominator < MIN_AIRSPEED**2:
        return 0.0
    return (u*w_dot - w*u_dot) / denominator


def wind_to_body(wind: WindParameters) -> np.ndarray:
    """
    Rotation matrix from wind axes to body axes.

    The wind x-axis maps onto the body-frame velocity direction:
    C @ [V, 0, 0] = [u, v, w].
    """
    ca, sa = np.cos(wind.alpha), np.sin(wind.alpha)
    cb, sb = np.cos(wind.beta), np.sin(wind.beta)

    return np.array([
        [ca*cb, -ca*sb, -sa],
        [sb,     cb,    0.0],
        [sa*cb, -sa*sb,  ca],
    ])


def body_to_ned(phi: float, theta: float, psi: float) -> np.ndarray:
    """
    Direction cosine matrix from body axes to NED (3-2-1 Euler sequence).

    Parameters:
    -----------
    phi, theta, psi : float
        Roll, pitch, yaw (rad)

    Returns:
    --------
    C_bn : np.ndarray, shape (3, 3)
        v_ned = C_bn @ v_body
    """
    cphi, sphi = np.cos(phi), np.sin(phi)
    cth, sth = np.cos(theta), np.sin(theta)
    cpsi, spsi = np.cos(psi), np.sin(psi)

    return np.array([
        [cth*cpsi, sphi*sth*cpsi - cphi*spsi, cphi*sth*cpsi + sphi*spsi],
        [cth*spsi, sphi*sth*spsi + cphi*cpsi, cphi*sth*spsi - sphi*cpsi],
        [-sth,     sphi*cth,                  cphi*cth],
    ])


def inertia_coefficients(ix: float, iy: float, iz: float, ixz: float) -> InertiaCoefficients:
    """
    Precompute the inertia coefficients used by the moment equations.

    Raises:
    -------
    DegenerateInertiaError
        If Γ = Ix·Iz − Ixz² or Iy is (near) zero
    """
    gamma = ix*iz - ixz**2
    if abs(gamma) < 1e-9 or abs(iy) < 1e-9:
        raise DegenerateInertiaError(
            f"Degenerate inertia: Ix={ix}, Iy={iy}, Iz={iz}, Ixz={ixz} (Gamma={gamma})")

    return InertiaCoefficients(
        gamma1=ixz*(ix - iy + iz) / gamma,
        gamma2=(iz*(iz - iy) + ixz**2) / gamma,
        gamma3=iz / gamma,
        gamma4=ixz / gamma,
        gamma5=(iz - ix) / iy,
        gamma6=ixz / iy,
        gamma7=(ix*(ix - iy) + ixz**2) / gamma,
        gamma8=ix / gamma,
        inv_iy=1.0 / iy,
    )


def ground_effect_factor(h_over_b: float) -> float:
    """
    Ground effect factor as a function of height over wingspan.

    1.0 at or above one wingspan; below that it falls smoothly toward
    about 0.85 at ground contact. Lift slope is divided by this factor and
    the angle-dependent drag multiplied by it.
    """
    if h_over_b >= 1.0:
        return 1.0
    h_over_b = max(h_over_b, 0.0)
    return 1.0 + np.arctan(15.0*(h_over_b - 1.0)) / 10.0


def geodetic_rates(north_dot: float, east_dot: float,
                   latitude: float, altitude: float) -> tuple:
    """
    Latitude and longitude rates (rad/s) from NED velocity on the WGS84 ellipsoid.
    """
    e2 = EARTH_ECCENTRICITY**2
    s2 = np.sin(latitude)**2
    meridian_radius = EARTH_RADIUS*(1.0 - e2) / (1.0 - e2*s2)**1.5
    normal_radius = EARTH_RADIUS / np.sqrt(1.0 - e2*s2)

    lat_dot = north_dot / (meridian_radius + altitude)
    cos_lat = max(abs(np.cos(latitude)), 1e-6)
    lon_dot = east_dot / ((normal_radius + altitude)*cos_lat)

    return float(lat_dot), float(lon_dot)


def wrap_heading(psi: float) -> float:
    """Wrap heading into [0, 2π)."""
    return float(np.mod(psi, 2.0*np.pi))
