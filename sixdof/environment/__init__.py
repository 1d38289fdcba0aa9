"""
Environment models for flight simulation.

This module provides the atmosphere model and the per-tick environment state.
"""

from .atmosphere import StandardAtmosphere, EnvironmentState, environment_at

__all__ = ['StandardAtmosphere', 'EnvironmentState', 'environment_at']
