"""
Fixed-step numerical integration of the 6-DOF state vector.

Implements RK4 (Runge-Kutta 4th order). The step is a pure function of its
inputs, so identical state, derivative function and dt give identical output.
"""

import numpy as np
from typing import Callable, Tuple


class RK4Integrator:
    """
    4th-order Runge-Kutta integrator (fixed time step).

    Classic RK4 method with good accuracy for smooth dynamics.
    """

    def __init__(self, dt: float = 0.05):
        """
        Initialize RK4 integrator.

        Parameters:
        -----------
        dt : float
            Fixed time step (seconds)
        """
        if dt <= 0.0:
            raise ValueError(f"Time step must be positive, got {dt}")
        self.dt = dt

    def step(self, x: np.ndarray, derivative_func: Callable[[np.ndarray], np.ndarray]) -> np.ndarray:
        """
        Advance state by one time step using RK4.

        Parameters:
        -----------
        x : np.ndarray
            Current state vector
        derivative_func : Callable
            Function that computes x_dot = f(x)

        Returns:
        --------
        x_new : np.ndarray
            State at t + dt
        """
        x = np.asarray(x, dtype=float)
        dt = self.dt

        k1 = derivative_func(x)
        k2 = derivative_func(x + 0.5 * dt * k1)
        k3 = derivative_func(x + 0.5 * dt * k2)
        k4 = derivative_func(x + dt * k3)

        return x + (dt / 6.0) * (k1 + 2*k2 + 2*k3 + k4)

    def integrate(self, x0: np.ndarray, t_span: Tuple[float, float],
                  derivative_func: Callable) -> Tuple[np.ndarray, np.ndarray]:
        """
        Integrate from t0 to tf with a time-invariant derivative function.

        Parameters:
        -----------
        x0 : np.ndarray
            Initial state
        t_span : tuple
            (t0, tf) time span
        derivative_func : Callable
            State derivative function

        Returns:
        --------
        t_history : np.ndarray
            Time points
        state_history : np.ndarray, shape (n_steps, len(x0))
            State at each time point
        """
        t0, tf = t_span
        n_steps = int(round((tf - t0) / self.dt)) + 1

        t_history = t0 + self.dt * np.arange(n_steps)
        state_history = np.zeros((n_steps, len(x0)))
        state_history[0, :] = x0

        for i in range(1, n_steps):
            state_history[i, :] = self.step(state_history[i - 1], derivative_func)

        return t_history, state_history
