"""
Closed-form static trim for steady, wings-level, unaccelerated flight.

Steps:
1. Dynamic pressure at the commanded airspeed and altitude
2. CL_trim = W / (q·S)
3. Solve the 2x2 linear system for alpha and elevator so that
   CL = CL_trim and CM = 0
4. Clamp elevator to its limits and alpha to [0, 10 deg]
5. theta = alpha (flight path angle 0)
6. Throttle so that total thrust equals drag

The solve is a single linear step. Derivatives are sampled at alpha = 0 and
the current flap setting, so aircraft with strongly nonlinear lift or pitching
moment curves only trim approximately.
"""

import logging
import numpy as np
from typing import Dict, Mapping, Optional, Tuple

from archimedes import struct

from ..core.aerodynamics import AerodynamicsModel
from ..core.aircraft import AircraftSpec
from ..core.controls import FlightControl, DEFAULT_CONTROLS
from ..core.state import FlightState
from ..core.transforms import WindParameters
from ..environment.atmosphere import environment_at


logger = logging.getLogger(__name__)

MAX_TRIM_ALPHA = np.radians(10.0)

# Below this |determinant| the 2x2 system is treated as singular
SINGULAR_DETERMINANT = 1e-9


@struct(frozen=True)
class TrimResult:
    """
    Trimmed controls and attitude.

    Attributes
    ----------
    elevator : float
        Elevator deflection (rad)
    throttle : tuple
        Throttle per engine, in engine order
    theta : float
        Pitch attitude (rad), equal to alpha
    alpha : float
        Angle of attack (rad)
    u, w : float
        Body velocities at trim (m/s)
    airspeed, altitude : float
        Commanded condition
    approximate : bool
        True when any clamp or singular fallback was used
    """

    elevator: float = 0.0
    throttle: tuple = ()
    theta: float = 0.0
    alpha: float = 0.0
    u: float = 0.0
    w: float = 0.0
    airspeed: float = 0.0
    altitude: float = 0.0
    approximate: bool = False

    def apply(self, initial_state: FlightState,
              controls: Optional[Mapping[FlightControl, float]] = None
              ) -> Tuple[FlightState, Dict[FlightControl, float]]:
        """
        Fold the trim into initial conditions and controls.

        Position, heading and geodetic position are kept from initial_state;
        velocities, rates, roll and pitch come from the trim.
        """
        state = FlightState(
            u=self.u, v=0.0, w=self.w,
            p=0.0, q=0.0, r=0.0,
            phi=0.0, theta=self.theta, psi=initial_state.psi,
            north=initial_state.north, east=initial_state.east, down=-self.altitude,
            latitude=initial_state.latitude, longitude=initial_state.longitude,
        )

        trimmed = dict(controls) if controls is not None else dict(DEFAULT_CONTROLS)
        trimmed[FlightControl.ELEVATOR] = self.elevator
        trimmed[FlightControl.AILERON] = 0.0
        trimmed[FlightControl.RUDDER] = 0.0
        for i, throttle in enumerate(self.throttle, start=1):
            trimmed[FlightControl.throttle(i)] = throttle

        return state, trimmed


class TrimSolver:
    """
    Static trim solver for one aircraft.

    Parameters
    ----------
    aircraft : AircraftSpec
        Aircraft to trim
    aero_model : AerodynamicsModel, optional
        Model used for the trimmed drag; built from the aircraft when omitted
    terrain_height : float
        Terrain elevation, for ground effect at low altitude (m)
    """

    def __init__(self, aircraft: AircraftSpec, aero_model: AerodynamicsModel = None,
                 terrain_height: float = 0.0):
        self.aircraft = aircraft
        self.aero_model = aero_model if aero_model is not None else AerodynamicsModel(aircraft)
        self.terrain_height = terrain_height

    def solve(self, airspeed: float, altitude: float,
              controls: Optional[Mapping[FlightControl, float]] = None) -> TrimResult:
        """
        Trim for level flight.

        Parameters
        ----------
        airspeed : float
            Commanded true airspeed (m/s), must be positive
        altitude : float
            Commanded altitude (m)
        controls : mapping, optional
            Current controls; flaps, gear and mixtures are held

        Returns
        -------
        TrimResult
        """
        if airspeed <= 0.0:
            raise ValueError(f"Trim airspeed must be positive, got {airspeed}")

        controls = dict(controls) if controls is not None else dict(DEFAULT_CONTROLS)
        flaps = controls[FlightControl.FLAPS]
        approximate = False

        environment = environment_at(altitude)
        q_bar = environment.dynamic_pressure(airspeed)
        S = self.aircraft.geometry.area
        derivs = self.aircraft.derivatives

        def d(name):
            return derivs[name].value(0.0, flaps)

        CL_trim = self.aircraft.mass * environment.gravity / (q_bar * S)

        f_ge = self.aero_model.ground_effect(altitude - self.terrain_height)
        CL_alpha = d('CL_alpha') / f_ge
        CL_de = d('CL_d_elev')
        CM_alpha = d('CM_alpha')
        CM_de = d('CM_d_elev')

        # Flap contributions join the zero-alpha terms
        CL_0 = d('CL_0') + d('CL_d_flap') * flaps
        CM_0 = d('CM_0') + d('CM_d_flap') * flaps

        # [CL_alpha CL_de; CM_alpha CM_de] [alpha; de] = [CL_trim - CL_0; -CM_0]
        delta = CM_alpha * CL_de - CL_alpha * CM_de
        if abs(delta) < SINGULAR_DETERMINANT:
            logger.warning("Trim system singular (determinant %.3g); trimming on lift only", delta)
            approximate = True
            alpha = (CL_trim - CL_0) / CL_alpha if abs(CL_alpha) > SINGULAR_DETERMINANT else 0.0
            elevator = 0.0
        else:
            alpha = (CL_de * CM_0 + CM_de * (CL_trim - CL_0)) / -delta
            elevator = (CL_alpha * CM_0 + CM_alpha * (CL_trim - CL_0)) / delta

        clamped_elevator = FlightControl.ELEVATOR.clamp(elevator)
        clamped_alpha = float(np.clip(alpha, 0.0, MAX_TRIM_ALPHA))
        if clamped_elevator != elevator or clamped_alpha != alpha:
            logger.warning(
                "Trim clamped: alpha %.2f -> %.2f deg, elevator %.2f -> %.2f deg",
                np.degrees(alpha), np.degrees(clamped_alpha),
                np.degrees(elevator), np.degrees(clamped_elevator))
            approximate = True
        alpha, elevator = clamped_alpha, clamped_elevator

        theta = alpha
        u = airspeed * np.cos(alpha)
        w = airspeed * np.sin(alpha)

        # Drag at the trimmed condition
        controls[FlightControl.ELEVATOR] = elevator
        trim_state = FlightState(u=u, w=w, theta=theta, down=-altitude)
        wind = WindParameters(airspeed, 0.0, alpha)
        coeffs = self.aero_model.coefficients(trim_state, controls, 0.0, self.terrain_height, wind)
        drag = q_bar * S * coeffs.CD

        throttle = self._throttle_for(abs(drag), environment, airspeed)
        if any(t >= 1.0 for t in throttle) and self.aircraft.engines:
            logger.warning("Trim drag %.0f N exceeds available thrust; throttle saturated", drag)
            approximate = True

        result = TrimResult(
            elevator=float(elevator),
            throttle=throttle,
            theta=float(theta),
            alpha=float(alpha),
            u=float(u),
            w=float(w),
            airspeed=float(airspeed),
            altitude=float(altitude),
            approximate=approximate,
        )
        logger.info("Trimmed at %.1f m/s, %.0f m: alpha=%.2f deg, elevator=%.2f deg, throttle=%s",
                    airspeed, altitude, np.degrees(alpha), np.degrees(elevator),
                    ', '.join(f'{t:.3f}' for t in throttle))
        return result

    def _throttle_for(self, drag: float, environment, airspeed: float) -> tuple:
        """Common throttle setting making total thrust equal drag."""
        engines = self.aircraft.engines
        if not engines:
            logger.warning("Aircraft has no engines; trim throttle set to 0")
            return ()

        available = sum(engine.max_thrust(environment, airspeed) for engine in engines)
        if available <= 0.0:
            logger.warning("No thrust available at %.1f m/s; throttle set to full", airspeed)
            return tuple(1.0 for _ in engines)

        throttle = FlightControl.THROTTLE_1.clamp(drag / available)
        return tuple(throttle for _ in engines)


def trim_aircraft(aircraft: AircraftSpec, airspeed: float, altitude: float,
                  controls: Optional[Mapping[FlightControl, float]] = None,
                  terrain_height: float = 0.0) -> TrimResult:
    """Convenience wrapper around TrimSolver.solve."""
    return TrimSolver(aircraft, terrain_height=terrain_height).solve(airspeed, altitude, controls)
