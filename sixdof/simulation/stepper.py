"""
Simulation driver loop.

Runs the integrator on a dedicated daemon thread at a fixed tick rate (real
time) or as fast as possible (analysis mode). Pause, resume and reset may be
requested from any thread; requests are queued and applied by the simulation
thread at the next tick boundary, never mid-tick. In analysis mode, scripted
inputs are written to the controls at each tick boundary before the step.
"""

import logging
import threading
import time
from collections import deque
from typing import Callable, List, Optional, Tuple

from ..core.errors import StateCorruptionError
from ..io.config import MAX_TICK_RATE, MIN_TICK_RATE
from ..io.output import SimOutputRecord
from .analysis import AnalysisControls
from .integration import RunState, SixDOFIntegrator


logger = logging.getLogger(__name__)

FlightDataListener = Callable[[SimOutputRecord], None]


class SimulationStepper:
    """
    Drives a SixDOFIntegrator.

    Parameters
    ----------
    integrator : SixDOFIntegrator
        Integrator to drive
    tick_rate_hz : float, optional
        Real-time tick rate, clamped to 20-500 Hz; defaults to 1/dt
    analysis_mode : bool
        Do not pace ticks against the wall clock
    analysis_controls : AnalysisControls, optional
        Scripted inputs, flown in analysis mode only
    """

    def __init__(self, integrator: SixDOFIntegrator, tick_rate_hz: Optional[float] = None,
                 analysis_mode: bool = False,
                 analysis_controls: Optional[AnalysisControls] = None):
        self.integrator = integrator
        rate = tick_rate_hz if tick_rate_hz is not None else 1.0 / integrator.config.dt
        self.tick_rate_hz = min(max(rate, MIN_TICK_RATE), MAX_TICK_RATE)
        self.analysis_mode = analysis_mode
        self.analysis_controls = analysis_controls
        if analysis_controls and not analysis_mode:
            logger.warning("Scripted inputs are only flown in analysis mode; ignoring %d inputs",
                           len(analysis_controls))

        self.failure: Optional[StateCorruptionError] = None
        self.time_drift = 0.0

        self._running = threading.Event()
        # Set on every request so a paused loop wakes up to apply it
        self._wake = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._requests = deque()
        self._request_lock = threading.Lock()
        self._listeners: List[FlightDataListener] = []

    @property
    def running(self) -> bool:
        return self._running.is_set()

    @property
    def run_state(self) -> RunState:
        return self.integrator.run_state

    # --- control plane ---

    def start(self) -> bool:
        """
        Start the simulation thread.

        Returns
        -------
        bool
            False (with a warning) if already running
        """
        if self.running:
            logger.warning("Simulation already running; start ignored")
            return False

        self.failure = None
        self.time_drift = 0.0
        if self.integrator.run_state is RunState.IDLE:
            self.integrator.start()

        self._running.set()
        self._thread = threading.Thread(target=self._run_loop, name='sixdof-sim', daemon=True)
        self._thread.start()
        logger.info("Simulation started at %.0f Hz%s", self.tick_rate_hz,
                    " (analysis mode)" if self.analysis_mode else "")
        return True

    def stop(self, timeout: Optional[float] = None):
        """Stop at the next tick boundary and wait for the thread to exit."""
        self._running.clear()
        self._wake.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def pause(self):
        self._request('pause')

    def resume(self):
        self._request('resume')

    def reset(self):
        """Request a reset to the initial state; honored only while paused."""
        self._request('reset')

    def _request(self, request: str):
        with self._request_lock:
            self._requests.append(request)
        self._wake.set()
        if not self.running:
            self._apply_requests()

    def _apply_requests(self):
        with self._request_lock:
            requests = list(self._requests)
            self._requests.clear()

        for request in requests:
            if request == 'resume' and self.integrator.run_state is RunState.IDLE:
                # Resuming after a reset restarts from the initial state
                self.integrator.start()
            elif getattr(self.integrator, request)() and request == 'reset':
                if self.analysis_controls is not None:
                    self.analysis_controls.reset()

    # --- listeners and output ---

    def add_listener(self, listener: FlightDataListener):
        """Register a callback invoked on the simulation thread with each new record."""
        self._listeners.append(listener)

    def get_output_log(self) -> Tuple[SimOutputRecord, ...]:
        """Immutable snapshot of the output log."""
        return self.integrator.output_log()

    def clear_output_log(self) -> bool:
        """
        Clear the output log.

        Returns
        -------
        bool
            False when the simulation is not running
        """
        if not self.running:
            logger.warning("Output log can only be cleared while the simulation is running")
            return False
        self.integrator.clear_output_log()
        return True

    # --- stepping ---

    def tick(self) -> Optional[SimOutputRecord]:
        """
        One tick boundary: apply queued requests, then step if stepping.
        """
        self._apply_requests()
        if (self.analysis_mode and self.analysis_controls is not None
                and self.integrator.run_state is RunState.STEPPING):
            self.analysis_controls.update(self.integrator.time, self.integrator.controls)
        record = self.integrator.step()
        if record is not None:
            for listener in self._listeners:
                listener(record)
        return record

    def run(self, max_ticks: Optional[int] = None) -> Tuple[SimOutputRecord, ...]:
        """
        Run in the calling thread without wall-clock pacing.

        Stops at the integrator's end time, after `max_ticks` ticks, when
        stop() is called from another thread, or as soon as the integrator is
        not stepping (paused or reset), since no tick could advance it.

        Raises
        ------
        StateCorruptionError
            If the state becomes non-finite
        """
        if self.running:
            logger.warning("Simulation already running; run ignored")
            return self.get_output_log()

        if self.integrator.run_state is RunState.IDLE:
            self.integrator.start()

        self._running.set()
        ticks = 0
        try:
            while self.running and not self.integrator.finished:
                if max_ticks is not None and ticks >= max_ticks:
                    break
                self.tick()
                if self.integrator.run_state is not RunState.STEPPING:
                    logger.info("Integrator %s; offline run returns at t=%.2f s",
                                self.integrator.run_state.value, self.integrator.time)
                    break
                ticks += 1
        except StateCorruptionError as e:
            self.failure = e
            raise
        finally:
            self._running.clear()

        return self.get_output_log()

    def _run_loop(self):
        period = 1.0 / self.tick_rate_hz
        wall_start = deadline = time.perf_counter()
        sim_start = self.integrator.time

        try:
            while self.running and not self.integrator.finished:
                self.tick()
                now = time.perf_counter()

                if self.integrator.run_state is not RunState.STEPPING:
                    # Block until a request arrives; time spent paused is not drift
                    self._wake.wait(period)
                    self._wake.clear()
                    wall_start = deadline = time.perf_counter()
                    sim_start = self.integrator.time
                    continue

                self.time_drift = (now - wall_start) - (self.integrator.time - sim_start)

                if self.analysis_mode:
                    time.sleep(0)
                    continue

                deadline += period
                if deadline > now:
                    time.sleep(deadline - now)
                else:
                    # Host cannot keep up; do not try to catch up with a burst
                    deadline = now
        except StateCorruptionError as e:
            self.failure = e
            logger.error("Simulation halted: %s", e)
        finally:
            self._running.clear()
            logger.info("Simulation stopped at t=%.2f s", self.integrator.time)
