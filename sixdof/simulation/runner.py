"""
Simulation setup: configuration in, ready-to-run stepper out.

Loads the aircraft, trims it at the initial airspeed and altitude, and wires
the shared control state, integrator, scripted analysis inputs and stepper
together.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import numpy as np

from ..core.controls import ControlState
from ..io.config import SimulationConfig, load_simulation_config
from ..io.output import export_csv
from .analysis import AnalysisControls
from .integration import SixDOFIntegrator
from .stepper import SimulationStepper
from .trim import TrimSolver


logger = logging.getLogger(__name__)


def build_simulation(config: Optional[SimulationConfig] = None) -> SimulationStepper:
    """
    Build a stepper from run options.

    Parameters:
    -----------
    config : SimulationConfig, optional
        Run options; defaults give the Navion in level flight at 1500 m

    Returns:
    --------
    SimulationStepper
        Idle stepper, ready for start() or run()
    """
    config = config if config is not None else SimulationConfig()
    aircraft = config.create_aircraft()
    initial_state = config.initial_conditions
    controls = dict(config.initial_controls)

    if config.trim:
        solver = TrimSolver(aircraft, terrain_height=config.terrain_height)
        trim = solver.solve(initial_state.airspeed, initial_state.altitude, controls)
        initial_state, controls = trim.apply(initial_state, controls)
        if trim.approximate:
            logger.warning("Starting from an approximate trim")

    integrator = SixDOFIntegrator(
        aircraft, initial_state,
        controls=ControlState(controls),
        config=config.integrator,
        limits=config.limits,
        terrain_height=config.terrain_height,
        unlimited_flight=config.unlimited_flight,
        log_retention_s=config.log_retention_s,
    )
    logger.info("Built simulation for %s: dt=%.3f s, end=%.1f s",
                aircraft.name, config.integrator.dt, config.integrator.end_time)

    analysis_controls = None
    if config.analysis_mode:
        analysis_controls = AnalysisControls.from_config(config.analysis_inputs, controls)
        if analysis_controls:
            logger.info("Flying %d scripted inputs, last ends at %.1f s",
                        len(analysis_controls), analysis_controls.end_time)

    return SimulationStepper(integrator, tick_rate_hz=config.tick_rate_hz,
                             analysis_mode=config.analysis_mode,
                             analysis_controls=analysis_controls)


def main(argv=None):
    """
    Run one simulation in analysis mode and write its output to CSV.

    Usage: python -m sixdof.simulation.runner [simulation.yaml] [output.csv]
    """
    argv = sys.argv[1:] if argv is None else argv
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    config = load_simulation_config(argv[0]) if argv else SimulationConfig()
    output_file = Path(argv[1]) if len(argv) > 1 else Path('sixdof_output.csv')

    stepper = build_simulation(config)
    records = stepper.run()

    final = stepper.integrator.state
    print("=" * 60)
    print(f"Simulated {stepper.integrator.time:.2f} s ({len(records)} records)")
    print(f"  Altitude: {final.altitude:.1f} m")
    print(f"  Airspeed: {final.airspeed:.1f} m/s")
    print(f"  Pitch:    {np.degrees(final.theta):.2f} deg")
    print(f"  Heading:  {np.degrees(final.psi):.1f} deg")
    print("=" * 60)

    export_csv(records, output_file)
    return 0


if __name__ == "__main__":
    sys.exit(main())
