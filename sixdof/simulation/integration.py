"""
6-DOF integration with run-state control and a bounded output log.

Run states:

    IDLE --start--> STEPPING --pause--> PAUSED --resume--> STEPPING
                                         PAUSED --reset--> IDLE

A reset restores the initial (trimmed) state. Invalid requests are logged and
ignored. Each STEPPING tick advances the 12-state vector by one RK4 step and
appends one output record.
"""

import logging
import threading
from collections import deque
from enum import Enum
from typing import Mapping, Optional, Tuple

import numpy as np

from ..core.aerodynamics import AerodynamicsModel
from ..core.aircraft import AircraftSpec
from ..core.controls import ControlState, FlightControl
from ..core.dynamics import AircraftDynamics
from ..core.errors import StateCorruptionError
from ..core.forces import ForceMomentAggregator, SaturationLimits
from ..core.integrator import RK4Integrator
from ..core.state import FlightState
from ..core.transforms import alpha_dot, geodetic_rates
from ..environment.atmosphere import environment_at
from ..io.config import IntegratorConfig
from ..io.output import SimOutput, SimOutputRecord, make_record


logger = logging.getLogger(__name__)


class RunState(Enum):
    IDLE = 'idle'
    STEPPING = 'stepping'
    PAUSED = 'paused'


# (request, from state) -> to state
TRANSITIONS = {
    ('start', RunState.IDLE): RunState.STEPPING,
    ('pause', RunState.STEPPING): RunState.PAUSED,
    ('resume', RunState.PAUSED): RunState.STEPPING,
    ('reset', RunState.PAUSED): RunState.IDLE,
}


class SixDOFIntegrator:
    """
    Owns the flight state and advances it one tick at a time.

    Parameters
    ----------
    aircraft : AircraftSpec
        Aircraft to fly
    initial_state : FlightState
        Initial (normally trimmed) state; restored on reset
    controls : ControlState
        Shared control state, read once per tick
    config : IntegratorConfig, optional
        Start time, step size and end time
    limits : SaturationLimits, optional
        Saturation bounds
    terrain_height : float
        Terrain elevation (m)
    unlimited_flight : bool
        Keep only the last `log_retention_s` seconds of output
    log_retention_s : float
        Output retention window in unlimited flight (s)
    """

    def __init__(self, aircraft: AircraftSpec, initial_state: FlightState,
                 controls: Optional[ControlState] = None,
                 config: Optional[IntegratorConfig] = None,
                 limits: Optional[SaturationLimits] = None,
                 terrain_height: float = 0.0,
                 unlimited_flight: bool = False,
                 log_retention_s: float = 100.0):
        self.aircraft = aircraft
        self.config = config if config is not None else IntegratorConfig()
        self.controls = controls if controls is not None else ControlState()
        self.limits = limits if limits is not None else SaturationLimits()
        self.terrain_height = terrain_height
        self.unlimited_flight = unlimited_flight
        self.log_retention_s = log_retention_s

        self.aero_model = AerodynamicsModel(aircraft)
        self.aggregator = ForceMomentAggregator(aircraft, self.aero_model, self.limits)
        self.dynamics = AircraftDynamics(self.aggregator)
        self.rk4 = RK4Integrator(self.config.dt)

        self._initial_state = initial_state.copy()
        # Serializes run-state changes, resets and steps across threads
        self._step_lock = threading.RLock()
        self._lock = threading.Lock()
        self._log = deque()
        self._restore_initial()
        self.run_state = RunState.IDLE

    def _restore_initial(self):
        self.state = self._initial_state.copy()
        self.time = self.config.start_time
        self.state_dot = np.zeros(12)
        self.alpha_dot = 0.0

    # --- run control ---

    def _transition(self, request: str) -> bool:
        with self._step_lock:
            target = TRANSITIONS.get((request, self.run_state))
            if target is None:
                logger.warning("Ignoring %s request while %s", request, self.run_state.value)
                return False
            logger.info("Integrator %s -> %s", self.run_state.value, target.value)
            self.run_state = target
            return True

    def start(self) -> bool:
        return self._transition('start')

    def pause(self) -> bool:
        return self._transition('pause')

    def resume(self) -> bool:
        return self._transition('resume')

    def reset(self) -> bool:
        """Return to the initial state; valid only while paused."""
        with self._step_lock:
            if not self._transition('reset'):
                return False
            self._restore_initial()
            return True

    @property
    def finished(self) -> bool:
        """True when the end time is reached (never in unlimited flight)."""
        return (not self.unlimited_flight
                and self.time + 0.5*self.config.dt > self.config.end_time)

    # --- stepping ---

    def derivatives(self, state: FlightState, controls: Mapping[FlightControl, float],
                    alpha_rate: float = 0.0):
        """
        State derivative and loads at one state with per-tick inputs held fixed.
        """
        environment = environment_at(state.altitude)
        return self.dynamics.state_derivative(
            state, controls, environment, alpha_rate, self.terrain_height)

    def propagate(self, state: FlightState, controls: Mapping[FlightControl, float],
                  alpha_rate: float = 0.0) -> FlightState:
        """
        One RK4 step from `state`, without touching the integrator.

        Deterministic: identical arguments give identical results.
        """
        environment = environment_at(state.altitude)
        f = self.dynamics.derivative_function(controls, environment, alpha_rate,
                                              self.terrain_height)
        x_new = self.rk4.step(state.to_array(), f)
        return FlightState.from_array(x_new, state.latitude, state.longitude)

    def step(self) -> Optional[SimOutputRecord]:
        """
        Advance one tick if stepping.

        Returns
        -------
        SimOutputRecord or None
            The new record, or None when not stepping

        Raises
        ------
        StateCorruptionError
            If the new state contains NaN or Inf; the state is not committed
            and the integrator returns to IDLE
        """
        with self._step_lock:
            return self._step()

    def _step(self) -> Optional[SimOutputRecord]:
        if self.run_state is not RunState.STEPPING:
            return None

        controls = self.controls.snapshot()
        state = self.state
        a_dot = alpha_dot(state.u, state.w, self.state_dot[0], self.state_dot[2])

        new_state = self.propagate(state, controls, a_dot)
        if not new_state.is_finite():
            self.run_state = RunState.IDLE
            logger.error("Non-finite state at t=%.3f s; stopping integration", self.time)
            raise StateCorruptionError(f"Non-finite state at t={self.time:.3f} s", self.time)

        new_state = self.limits.limit_state(new_state, self.terrain_height)

        # Derivative and loads at the new state for outputs and the next alpha-dot
        state_dot, loads = self.derivatives(new_state, controls, a_dot)
        if not np.all(np.isfinite(state_dot)):
            self.run_state = RunState.IDLE
            logger.error("Non-finite derivatives at t=%.3f s; stopping integration", self.time)
            raise StateCorruptionError(f"Non-finite derivatives at t={self.time:.3f} s", self.time)

        lat_dot, lon_dot = geodetic_rates(state_dot[9], state_dot[10],
                                          new_state.latitude, new_state.altitude)
        new_state.latitude += lat_dot * self.config.dt
        new_state.longitude += lon_dot * self.config.dt

        self.state = new_state
        self.state_dot = state_dot
        self.alpha_dot = a_dot
        self.time += self.config.dt
        logger.debug("t=%.3f s: alt=%.1f m, V=%.2f m/s, alpha=%.3f rad",
                     self.time, new_state.altitude, new_state.airspeed, new_state.alpha)

        environment = environment_at(new_state.altitude)
        record = make_record(self.time, new_state, state_dot, new_state.wind, a_dot,
                             environment, loads, controls, (lat_dot, lon_dot))
        self._append(record)
        return record

    # --- output log ---

    def _append(self, record: SimOutputRecord):
        with self._lock:
            self._log.append(record)
            if self.unlimited_flight:
                latest = record[SimOutput.TIME]
                while self._log and latest - self._log[0][SimOutput.TIME] > self.log_retention_s:
                    self._log.popleft()

    def output_log(self) -> Tuple[SimOutputRecord, ...]:
        """Snapshot of the output log; records are read-only."""
        with self._lock:
            return tuple(self._log)

    def clear_output_log(self):
        with self._lock:
            self._log.clear()
