"""
Stability-derivative aerodynamic model.

Builds CL, CY, CD, C_roll, CM, CN from the aircraft's derivatives (constant or
tabulated against angle and flap deflection), then scales them by dynamic
pressure into body-frame forces and moments.
"""

import numpy as np
from typing import Mapping, NamedTuple

from .aircraft import AircraftSpec
from .controls import FlightControl
from .state import FlightState
from .transforms import MIN_AIRSPEED, WindParameters, ground_effect_factor, wind_to_body
from ..environment.atmosphere import EnvironmentState


class AeroCoefficients(NamedTuple):
    """Nondimensional force and moment coefficients."""
    CL: float
    CY: float
    CD: float
    Croll: float
    CM: float
    CN: float


class AeroForces(NamedTuple):
    """Aerodynamic loads in body axes."""
    force: np.ndarray  # N
    moment: np.ndarray  # N·m, about the CG
    coefficients: AeroCoefficients


class AerodynamicsModel:
    """
    Aerodynamic model for one aircraft.

    Derivatives named `*_beta` are looked up against sideslip, all others
    against angle of attack; the control axis of every table is flap
    deflection. Lookups outside a table contribute zero.
    """

    def __init__(self, aircraft: AircraftSpec):
        """
        Parameters:
        -----------
        aircraft : AircraftSpec
            Geometry, mass properties and derivatives
        """
        self.aircraft = aircraft
        self.S_ref = aircraft.geometry.area
        self.c_ref = aircraft.geometry.chord
        self.b_ref = aircraft.geometry.span
        self._derivs = aircraft.derivatives

        # Arm from CG to aerodynamic center
        self.ac_offset = (aircraft.geometry.aerodynamic_center
                          - aircraft.mass_properties.center_of_gravity)

    def _d(self, name: str, wind: WindParameters, flaps: float) -> float:
        """Value of one derivative at the current flow angles and flap setting."""
        angle = wind.beta if name.endswith('_beta') else wind.alpha
        return self._derivs[name].value(angle, flaps)

    def ground_effect(self, height_agl: float) -> float:
        """Ground effect factor at a height above ground (m)."""
        return ground_effect_factor(height_agl / self.b_ref)

    def coefficients(self, state: FlightState, controls: Mapping[FlightControl, float],
                     alpha_dot: float = 0.0, terrain_height: float = 0.0,
                     wind: WindParameters = None) -> AeroCoefficients:
        """
        Compute nondimensional coefficients.

        Parameters:
        -----------
        state : FlightState
            Current state
        controls : mapping
            Control snapshot (rad for surfaces)
        alpha_dot : float
            Angle of attack rate (rad/s)
        terrain_height : float
            Terrain elevation for ground effect (m)
        wind : WindParameters, optional
            Precomputed flow angles; derived from the state when omitted

        Returns:
        --------
        AeroCoefficients
        """
        if wind is None:
            wind = state.wind
        V, beta, alpha = wind

        elevator = controls[FlightControl.ELEVATOR]
        aileron = controls[FlightControl.AILERON]
        rudder = controls[FlightControl.RUDDER]
        flaps = controls[FlightControl.FLAPS]
        gear = controls[FlightControl.GEAR]

        def d(name):
            return self._d(name, wind, flaps)

        # Non-dimensional rates
        if V > MIN_AIRSPEED:
            p_hat = state.p * self.b_ref / (2 * V)
            q_hat = state.q * self.c_ref / (2 * V)
            r_hat = state.r * self.b_ref / (2 * V)
            alpha_dot_hat = alpha_dot * self.c_ref / (2 * V)
        else:
            p_hat = q_hat = r_hat = alpha_dot_hat = 0.0

        f_ge = self.ground_effect(state.height_above_ground(terrain_height))

        CL = (d('CL_alpha') * alpha / f_ge + d('CL_0')
              + d('CL_q') * q_hat + d('CL_alpha_dot') * alpha_dot_hat
              + d('CL_d_elev') * elevator + d('CL_d_flap') * flaps)

        CY = d('CY_beta') * beta + d('CY_d_rud') * rudder

        CD = (d('CD_alpha') * abs(alpha) * f_ge + d('CD_0')
              + d('CD_d_flap') * flaps + d('CD_d_elev') * elevator + d('CD_d_gear') * gear)

        Croll = (d('Croll_beta') * beta + d('Croll_p') * p_hat + d('Croll_r') * r_hat
                 + d('Croll_d_ail') * aileron + d('Croll_d_rud') * rudder)

        CM = (d('CM_alpha') * alpha + d('CM_0')
              + d('CM_q') * q_hat + d('CM_alpha_dot') * alpha_dot_hat
              + d('CM_d_elev') * elevator + d('CM_d_flap') * flaps)

        CN = (d('CN_beta') * beta + d('CN_p') * p_hat + d('CN_r') * r_hat
              + d('CN_d_ail') * aileron + d('CN_d_rud') * rudder)

        return AeroCoefficients(float(CL), float(CY), float(CD),
                                float(Croll), float(CM), float(CN))

    def compute(self, state: FlightState, controls: Mapping[FlightControl, float],
                environment: EnvironmentState, alpha_dot: float = 0.0,
                terrain_height: float = 0.0) -> AeroForces:
        """
        Compute body-frame aerodynamic force and moment.

        Returns:
        --------
        AeroForces
            force (N), moment about the CG (N·m) and the coefficients used
        """
        wind = state.wind
        coeffs = self.coefficients(state, controls, alpha_dot, terrain_height, wind)

        q_bar_S = environment.dynamic_pressure(wind.airspeed) * self.S_ref

        # Wind axes: drag aft, side force right, lift up
        force_wind = np.array([-coeffs.CD, coeffs.CY, -coeffs.CL]) * q_bar_S
        force = wind_to_body(wind) @ force_wind

        moment = np.array([
            q_bar_S * self.b_ref * coeffs.Croll,
            q_bar_S * self.c_ref * coeffs.CM,
            q_bar_S * self.b_ref * coeffs.CN,
        ])
        moment = moment + np.cross(force, self.ac_offset)

        return AeroForces(force, moment, coeffs)
