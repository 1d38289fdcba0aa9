"""
Configuration loading and simulation output.
"""

from .config import (
    AircraftConfig,
    SimulationConfig,
    IntegratorConfig,
    load_aircraft_config,
    load_simulation_config,
    load_initial_conditions,
    load_initial_controls,
    load_integrator_config,
    create_example_config
)
from .output import SimOutput, make_record, records_to_frame, export_csv

__all__ = [
    'AircraftConfig',
    'SimulationConfig',
    'IntegratorConfig',
    'load_aircraft_config',
    'load_simulation_config',
    'load_initial_conditions',
    'load_initial_controls',
    'load_integrator_config',
    'create_example_config',
    'SimOutput',
    'make_record',
    'records_to_frame',
    'export_csv'
]
