"""
Simulation Tests

Tests for:
- Integrator run states and reset
- Corrupted state detection
- Output log retention
- Threaded stepper control
- Trimmed end-to-end flight
"""

import logging
import threading
import time

import pytest
import numpy as np
import os
import sys
import yaml

# Add package root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from sixdof.core.aircraft import AircraftSpec, MassProperties, WingGeometry
from sixdof.core.controls import ControlState, FlightControl
from sixdof.core.errors import StateCorruptionError
from sixdof.core.propulsion import FixedPitchPropEngine
from sixdof.core.state import FlightState
from sixdof.io.config import IntegratorConfig, SimulationConfig
from sixdof.io.output import SimOutput
from sixdof.simulation.integration import SixDOFIntegrator, RunState
from sixdof.simulation.runner import build_simulation, main
from sixdof.simulation.stepper import SimulationStepper
from sixdof.simulation.trim import TrimSolver


CONFIG_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'config'))


def trainer_aircraft():
    """1000 kg trainer with a statically stable linear pitch model."""
    return AircraftSpec(
        name='Trainer',
        geometry=WingGeometry(area=16.0, span=10.0, chord=1.6),
        mass_properties=MassProperties(mass=1000.0, ix=1000.0, iy=1800.0, iz=2500.0),
        derivatives={
            'CL_0': 0.2, 'CL_alpha': 5.0, 'CL_q': 0.0, 'CL_alpha_dot': 0.0, 'CL_d_elev': 0.4,
            'CD_0': 0.03, 'CD_alpha': 0.3,
            'CM_0': 0.05, 'CM_alpha': -1.0, 'CM_q': -12.0, 'CM_alpha_dot': 0.0,
            'CM_d_elev': -1.2,
        },
        engines=[FixedPitchPropEngine()],
    )


def trimmed_integrator(end_time=5.0, dt=0.05, **kwargs):
    """Integrator starting from a level trim at 50 m/s, 1500 m."""
    aircraft = trainer_aircraft()
    trim = TrimSolver(aircraft).solve(50.0, 1500.0)
    state, controls = trim.apply(FlightState(down=-1500.0))
    config = IntegratorConfig(start_time=0.0, dt=dt, end_time=end_time)
    return SixDOFIntegrator(aircraft, state, ControlState(controls), config, **kwargs)


def wait_for(condition, timeout=10.0):
    deadline = time.monotonic() + timeout
    while not condition():
        if time.monotonic() > deadline:
            return False
        time.sleep(0.005)
    return True


class GatedControls(ControlState):
    """ControlState whose first snapshot blocks until released."""

    def __init__(self, values):
        super().__init__(values)
        self.entered = threading.Event()
        self.release = threading.Event()

    def snapshot(self):
        if not self.entered.is_set():
            self.entered.set()
            self.release.wait(5.0)
        return super().snapshot()


class TestRunStates:
    """Test the integrator state machine."""

    def test_initial_state_idle(self):
        integrator = trimmed_integrator()

        assert integrator.run_state is RunState.IDLE
        assert integrator.step() is None
        assert integrator.time == 0.0

    def test_start_twice(self):
        integrator = trimmed_integrator()

        assert integrator.start()
        assert not integrator.start()
        assert integrator.run_state is RunState.STEPPING

    def test_pause_resume(self):
        integrator = trimmed_integrator()
        integrator.start()
        integrator.step()

        assert integrator.pause()
        assert integrator.step() is None
        assert integrator.resume()
        assert integrator.step() is not None
        assert np.isclose(integrator.time, 2*integrator.config.dt)

    def test_reset_only_from_paused(self, caplog):
        integrator = trimmed_integrator()
        integrator.start()

        with caplog.at_level(logging.WARNING):
            assert not integrator.reset()

        assert integrator.run_state is RunState.STEPPING
        assert any('reset' in r.getMessage() for r in caplog.records)

    def test_reset_restores_initial_state(self):
        integrator = trimmed_integrator()
        initial = integrator.state.to_array()
        integrator.start()
        for _ in range(10):
            integrator.step()
        integrator.pause()

        assert integrator.reset()
        assert integrator.run_state is RunState.IDLE
        assert integrator.time == 0.0
        assert np.array_equal(integrator.state.to_array(), initial)

    def test_second_reset_is_noop(self):
        integrator = trimmed_integrator()
        integrator.start()
        integrator.step()
        integrator.pause()
        integrator.reset()
        state_after_reset = integrator.state.to_array()

        assert not integrator.reset()
        assert integrator.run_state is RunState.IDLE
        assert np.array_equal(integrator.state.to_array(), state_after_reset)

    def test_finished(self):
        integrator = trimmed_integrator(end_time=1.0)
        integrator.start()
        steps = 0
        while not integrator.finished:
            integrator.step()
            steps += 1

        assert steps == 20
        assert np.isclose(integrator.time, 1.0)

    def test_unlimited_never_finishes(self):
        integrator = trimmed_integrator(end_time=0.1, unlimited_flight=True)
        integrator.start()
        for _ in range(10):
            integrator.step()

        assert not integrator.finished


class TestStepping:
    """Test per-tick integration."""

    def test_propagate_deterministic(self):
        """Same state, controls and dt give bit-identical results."""
        a = trimmed_integrator()
        b = trimmed_integrator()
        controls = a.controls.snapshot()

        x_a = a.propagate(a.state, controls).to_array()
        x_b = b.propagate(b.state, controls).to_array()

        assert np.array_equal(x_a, x_b)

    def test_record_per_step(self):
        integrator = trimmed_integrator()
        integrator.start()

        record = integrator.step()

        assert np.isclose(record[SimOutput.TIME], 0.05)
        assert np.isclose(record[SimOutput.TAS], 50.0, atol=0.1)
        assert len(integrator.output_log()) == 1

    def test_controls_read_each_tick(self):
        """A throttle change shows up in the next record."""
        integrator = trimmed_integrator()
        integrator.start()
        integrator.step()

        integrator.controls[FlightControl.THROTTLE_1] = 1.0
        record = integrator.step()

        assert record[SimOutput.THROTTLE_1] == 1.0

    def test_geodetic_position_advances(self):
        integrator = trimmed_integrator()
        integrator.state.latitude = 0.7
        integrator.start()
        for _ in range(5):
            integrator.step()

        # Heading north
        assert integrator.state.latitude > 0.7

    def test_non_finite_state(self, caplog):
        """NaN in the state halts integration with StateCorruptionError."""
        aircraft = trainer_aircraft()
        state = FlightState(u=np.nan, down=-1500.0)
        integrator = SixDOFIntegrator(aircraft, state)
        integrator.start()

        with caplog.at_level(logging.ERROR):
            with pytest.raises(StateCorruptionError):
                integrator.step()

        assert integrator.run_state is RunState.IDLE
        assert integrator.output_log() == ()
        assert caplog.records

    def test_nan_control_write_mid_run(self):
        """A NaN device write is dropped and integration carries on."""
        integrator = trimmed_integrator()
        integrator.start()
        before = integrator.step()

        integrator.controls[FlightControl.AILERON] = np.nan
        record = integrator.step()

        assert record[SimOutput.AILERON] == before[SimOutput.AILERON]
        assert integrator.state.is_finite()
        assert integrator.run_state is RunState.STEPPING

    def test_reset_waits_for_step_in_progress(self):
        """Pause and reset from another thread land after the current step, never inside it."""
        aircraft = trainer_aircraft()
        trim = TrimSolver(aircraft).solve(50.0, 1500.0)
        state, controls = trim.apply(FlightState(down=-1500.0))
        gated = GatedControls(controls)
        integrator = SixDOFIntegrator(aircraft, state, gated, IntegratorConfig(0.0, 0.05, 5.0))
        initial = integrator.state.to_array()
        integrator.start()

        stepping = threading.Thread(target=integrator.step)
        stepping.start()
        assert gated.entered.wait(5.0)

        def pause_and_reset():
            integrator.pause()
            integrator.reset()

        requester = threading.Thread(target=pause_and_reset)
        requester.start()
        requester.join(0.1)
        assert requester.is_alive()

        gated.release.set()
        stepping.join(5.0)
        requester.join(5.0)

        assert integrator.run_state is RunState.IDLE
        assert integrator.time == 0.0
        assert np.array_equal(integrator.state.to_array(), initial)

    def test_unlimited_flight_log_retention(self):
        """Only the retention window is kept in unlimited flight."""
        integrator = trimmed_integrator(unlimited_flight=True, log_retention_s=1.0)
        integrator.start()
        for _ in range(60):
            integrator.step()

        log = integrator.output_log()
        latest = log[-1][SimOutput.TIME]
        assert np.isclose(latest, 3.0)
        assert 20 <= len(log) <= 21
        assert latest - log[0][SimOutput.TIME] <= 1.0 + 1e-9

    def test_limited_flight_keeps_everything(self):
        integrator = trimmed_integrator(end_time=3.0, log_retention_s=1.0)
        integrator.start()
        while not integrator.finished:
            integrator.step()

        assert len(integrator.output_log()) == 60

    def test_output_log_is_snapshot(self):
        integrator = trimmed_integrator()
        integrator.start()
        integrator.step()
        log = integrator.output_log()
        integrator.step()

        assert len(log) == 1
        assert len(integrator.output_log()) == 2


class TestStepper:
    """Test the driver loop."""

    def test_offline_run(self):
        stepper = SimulationStepper(trimmed_integrator(end_time=1.0), analysis_mode=True)
        received = []
        stepper.add_listener(received.append)

        records = stepper.run()

        assert len(records) == 20
        assert len(received) == 20
        assert not stepper.running

    def test_offline_run_max_ticks(self):
        stepper = SimulationStepper(trimmed_integrator(end_time=10.0))

        assert len(stepper.run(max_ticks=7)) == 7

    def test_offline_failure_recorded(self):
        integrator = SixDOFIntegrator(trainer_aircraft(), FlightState(u=np.nan, down=-1500.0))
        stepper = SimulationStepper(integrator)

        with pytest.raises(StateCorruptionError):
            stepper.run()

        assert isinstance(stepper.failure, StateCorruptionError)
        assert not stepper.running

    def test_offline_run_returns_when_paused(self):
        """run() on a paused integrator returns instead of spinning."""
        stepper = SimulationStepper(trimmed_integrator(end_time=10.0))
        stepper.run(max_ticks=2)
        stepper.pause()
        assert stepper.run_state is RunState.PAUSED

        runner = threading.Thread(target=stepper.run)
        runner.start()
        runner.join(2.0)

        assert not runner.is_alive()
        assert np.isclose(stepper.integrator.time, 0.1)
        assert not stepper.running

    def test_threaded_pause_does_not_spin(self):
        """A paused analysis-mode loop waits for requests instead of ticking flat out."""
        stepper = SimulationStepper(trimmed_integrator(unlimited_flight=True), analysis_mode=True)
        ticks = []
        tick = stepper.tick

        def counting_tick():
            ticks.append(stepper.run_state)
            return tick()

        stepper.tick = counting_tick
        stepper.start()
        try:
            assert wait_for(lambda: len(stepper.get_output_log()) > 5)
            stepper.pause()
            assert wait_for(lambda: stepper.run_state is RunState.PAUSED)
            paused_ticks = len(ticks)
            time.sleep(0.3)

            # 20 Hz idle wake-ups: about 6 in 0.3 s
            assert len(ticks) - paused_ticks < 30

            stepper.resume()
            assert wait_for(lambda: stepper.run_state is RunState.STEPPING)
        finally:
            stepper.stop(timeout=5.0)

        assert not stepper.running

    def test_tick_rate_clamped(self):
        stepper = SimulationStepper(trimmed_integrator(), tick_rate_hz=5000.0)

        assert stepper.tick_rate_hz == 500.0

    def test_clear_log_requires_running(self, caplog):
        stepper = SimulationStepper(trimmed_integrator())

        with caplog.at_level(logging.WARNING):
            assert not stepper.clear_output_log()

        assert caplog.records

    def test_requests_when_stopped(self):
        """Requests apply immediately when the loop is not running."""
        stepper = SimulationStepper(trimmed_integrator(end_time=10.0))
        stepper.run(max_ticks=5)
        stepper.integrator.pause()

        stepper.reset()
        assert stepper.run_state is RunState.IDLE

        # Resuming after a reset restarts from the initial state
        stepper.resume()
        assert stepper.run_state is RunState.STEPPING
        assert stepper.integrator.time == 0.0

    def test_threaded_run_to_end(self):
        stepper = SimulationStepper(trimmed_integrator(end_time=1.0), analysis_mode=True)

        assert stepper.start()
        assert wait_for(lambda: not stepper.running)
        stepper.stop(timeout=5.0)

        assert len(stepper.get_output_log()) == 20
        assert stepper.failure is None

    def test_threaded_start_twice(self):
        stepper = SimulationStepper(trimmed_integrator(unlimited_flight=True), analysis_mode=True)

        assert stepper.start()
        try:
            assert not stepper.start()
        finally:
            stepper.stop(timeout=5.0)

        assert not stepper.running

    def test_threaded_pause_resume_clear(self):
        stepper = SimulationStepper(trimmed_integrator(unlimited_flight=True), analysis_mode=True)
        stepper.start()
        try:
            assert wait_for(lambda: len(stepper.get_output_log()) > 5)

            stepper.pause()
            assert wait_for(lambda: stepper.run_state is RunState.PAUSED)
            paused_at = stepper.integrator.time
            time.sleep(0.05)
            assert stepper.integrator.time == paused_at

            assert stepper.clear_output_log()
            assert stepper.get_output_log() == ()

            stepper.resume()
            assert wait_for(lambda: stepper.integrator.time > paused_at)
        finally:
            stepper.stop(timeout=5.0)

    def test_threaded_real_time(self):
        """At 100 Hz with dt = 0.01 simulated time tracks the wall clock."""
        integrator = trimmed_integrator(end_time=0.3, dt=0.01)
        stepper = SimulationStepper(integrator, tick_rate_hz=100.0)

        start = time.perf_counter()
        stepper.start()
        assert wait_for(lambda: not stepper.running)
        elapsed = time.perf_counter() - start
        stepper.stop(timeout=5.0)

        assert len(stepper.get_output_log()) == 30
        assert elapsed >= 0.25


class TestTrimmedFlight:
    """End-to-end: trimmed aircraft holds level flight."""

    def test_level_flight_holds(self):
        """100 ticks from trim: vertical speed stays within ±1 m/s."""
        aircraft = trainer_aircraft()
        trim = TrimSolver(aircraft).solve(50.0, 1500.0)

        assert 0.0 <= trim.theta <= np.radians(10.0)
        assert FlightControl.ELEVATOR.minimum <= trim.elevator <= FlightControl.ELEVATOR.maximum

        state, controls = trim.apply(FlightState(down=-1500.0))
        integrator = SixDOFIntegrator(aircraft, state, ControlState(controls),
                                      IntegratorConfig(0.0, 0.05, 100.0))
        stepper = SimulationStepper(integrator, analysis_mode=True)

        records = stepper.run(max_ticks=100)

        assert len(records) == 100
        vertical_speed = np.array([r[SimOutput.ALT_DOT] for r in records])
        assert np.all(np.abs(vertical_speed) <= 1.0)
        assert abs(records[-1][SimOutput.ALT] - 1500.0) < 5.0
        assert abs(records[-1][SimOutput.TAS] - 50.0) < 2.0
        assert abs(records[-1][SimOutput.PHI]) < 1e-6

    def test_build_simulation_defaults(self):
        """Default setup trims the default aircraft and flies."""
        config = SimulationConfig({'simulation': {'integrator': {'end_time': 1.0},
                                                  'analysis_mode': True}})

        stepper = build_simulation(config)
        records = stepper.run()

        assert len(records) == 20
        assert all(np.isfinite(r[SimOutput.ALT]) for r in records)
        assert stepper.analysis_mode

    def test_build_simulation_missing_aircraft_file(self, tmp_path, caplog):
        """A missing aircraft file is not fatal: the example aircraft flies."""
        config = SimulationConfig({'simulation': {'aircraft_file': 'missing.yaml',
                                                  'integrator': {'end_time': 0.5}}},
                                  base_dir=tmp_path)

        with caplog.at_level(logging.WARNING):
            records = build_simulation(config).run()

        assert len(records) == 10
        assert any('missing.yaml' in r.getMessage() for r in caplog.records)

    def test_main_writes_csv(self, tmp_path):
        sim_file = tmp_path / 'simulation.yaml'
        with open(sim_file, 'w') as f:
            yaml.safe_dump({'simulation': {
                'aircraft_file': os.path.join(CONFIG_DIR, 'navion.yaml'),
                'integrator': {'end_time': 0.5},
                'analysis_mode': True,
            }}, f)
        output = tmp_path / 'out.csv'

        assert main([str(sim_file), str(output)]) == 0
        assert output.exists()
        assert len(output.read_text().splitlines()) == 11
