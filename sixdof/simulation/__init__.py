"""
Trim, integration, scripted analysis inputs and the real-time driver loop.
"""

from .trim import TrimSolver, TrimResult, trim_aircraft
from .analysis import AnalysisControls, Doublet, Singlet, doublet_series
from .integration import SixDOFIntegrator, RunState
from .stepper import SimulationStepper
from .runner import build_simulation

__all__ = [
    'TrimSolver',
    'TrimResult',
    'trim_aircraft',
    'AnalysisControls',
    'Doublet',
    'Singlet',
    'doublet_series',
    'SixDOFIntegrator',
    'RunState',
    'SimulationStepper',
    'build_simulation'
]
