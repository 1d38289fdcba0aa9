"""
Two-dimensional stability derivative lookup tables.

A table maps (angle, control deflection) to a derivative value, e.g.
CL_alpha(alpha, flaps). Breakpoints are stored in radians; table files keep
them in degrees:

    row 0:     <corner>, control breakpoints (deg) ...
    row 1..n:  angle breakpoint (deg), values ...

separated by commas and/or tabs.

Stability derivatives are either a constant or a table. Both expose the same
`value(angle, control)` call so the aerodynamics never inspects which one it
holds.
"""

import logging
from pathlib import Path
from typing import Optional, Union

import numpy as np
import pandas as pd
from scipy.interpolate import RectBivariateSpline, RegularGridInterpolator

from .errors import TableBuildError


logger = logging.getLogger(__name__)

# Grid used when a table cannot be built: flaps 0-40 deg, alpha -14 to 14 deg
DEFAULT_CONTROL_BREAKPOINTS = np.radians(np.arange(0.0, 41.0, 10.0))
DEFAULT_ANGLE_BREAKPOINTS = np.radians(np.arange(-14.0, 15.0, 2.0))

# Bicubic splines need at least this many breakpoints per axis
CUBIC_MIN_POINTS = 4


class InterpolatedDerivativeTable:
    """
    Smooth 2-D interpolation surface over (angle, control) breakpoints.

    Queries outside the breakpoint range return 0.0 and log one warning per
    call. The number of such queries is kept in `out_of_range_count` so an
    envelope the table does not cover shows up in diagnostics.
    """

    def __init__(self, angle_breakpoints, control_breakpoints, values, name: str = ''):
        """
        Build the interpolant.

        Parameters:
        -----------
        angle_breakpoints : array_like, shape (n,)
            Angle of attack or sideslip breakpoints (rad), strictly increasing
        control_breakpoints : array_like, shape (m,)
            Control deflection breakpoints (rad), strictly increasing
        values : array_like, shape (n, m)
            Derivative values (rows = angle, columns = control)
        name : str
            Derivative name used in log messages

        Raises:
        -------
        TableBuildError
            On shape mismatch, non-monotonic breakpoints or non-finite data
        """
        self.name = name
        self.angles = _as_breakpoints(angle_breakpoints, 'angle', name)
        self.controls = _as_breakpoints(control_breakpoints, 'control', name)

        try:
            grid = np.asarray(values, dtype=float)
        except (TypeError, ValueError) as e:
            raise TableBuildError(f"{name}: values are not numeric ({e})") from e

        if grid.shape != (len(self.angles), len(self.controls)):
            raise TableBuildError(
                f"{name}: grid shape {grid.shape} does not match breakpoints "
                f"({len(self.angles)}, {len(self.controls)})")
        if not np.all(np.isfinite(grid)):
            raise TableBuildError(f"{name}: grid contains NaN or Inf")

        self.values = grid
        self.out_of_range_count = 0

        # Constant grids short-circuit so every in-range query returns the exact value
        self._constant: Optional[float] = None
        self._spline = False
        if np.all(grid == grid.flat[0]):
            self._constant = float(grid.flat[0])
            self._interp = None
        else:
            self._spline = min(grid.shape) >= CUBIC_MIN_POINTS
            if self._spline:
                # s=0 passes through every grid value
                self._interp = RectBivariateSpline(self.angles, self.controls, grid,
                                                   kx=3, ky=3, s=0)
            else:
                self._interp = RegularGridInterpolator(
                    (self.angles, self.controls), grid, method='linear')

    @property
    def angle_range(self) -> tuple:
        return float(self.angles[0]), float(self.angles[-1])

    @property
    def control_range(self) -> tuple:
        return float(self.controls[0]), float(self.controls[-1])

    def contains(self, angle: float, control: float) -> bool:
        """True when (angle, control) lies inside the breakpoint range."""
        return (self.angles[0] <= angle <= self.angles[-1]
                and self.controls[0] <= control <= self.controls[-1])

    def value(self, angle: float, control: float) -> float:
        """
        Interpolated value at (angle, control).

        Parameters:
        -----------
        angle : float
            Angle of attack or sideslip (rad)
        control : float
            Control deflection (rad)

        Returns:
        --------
        float
            Interpolated value, or 0.0 outside the table
        """
        if not (np.isfinite(angle) and np.isfinite(control)) or not self.contains(angle, control):
            self.out_of_range_count += 1
            logger.warning(
                "%s lookup outside table: angle=%.2f deg, control=%.2f deg; using 0.0",
                self.name or 'table', np.degrees(angle), np.degrees(control))
            return 0.0

        if self._constant is not None:
            return self._constant
        if self._spline:
            return float(self._interp.ev(angle, control))
        return float(self._interp([[angle, control]])[0])

    def __call__(self, angle: float, control: float) -> float:
        return self.value(angle, control)

    def __repr__(self) -> str:
        lo_a, hi_a = np.degrees(self.angle_range)
        lo_c, hi_c = np.degrees(self.control_range)
        return (f"InterpolatedDerivativeTable({self.name!r}, "
                f"angle=[{lo_a:.1f}, {hi_a:.1f}] deg, control=[{lo_c:.1f}, {hi_c:.1f}] deg, "
                f"shape={self.values.shape})")


def _as_breakpoints(breakpoints, axis: str, name: str) -> np.ndarray:
    """Validate a breakpoint axis."""
    try:
        bp = np.asarray(breakpoints, dtype=float)
    except (TypeError, ValueError) as e:
        raise TableBuildError(f"{name}: {axis} breakpoints are not numeric ({e})") from e

    if bp.ndim != 1 or bp.size < 2:
        raise TableBuildError(f"{name}: {axis} axis needs at least 2 breakpoints")
    if not np.all(np.isfinite(bp)):
        raise TableBuildError(f"{name}: {axis} breakpoints contain NaN or Inf")
    if np.any(np.diff(bp) <= 0.0):
        raise TableBuildError(f"{name}: {axis} breakpoints are not strictly increasing")
    return bp


def constant_table(value: float, name: str = '') -> InterpolatedDerivativeTable:
    """
    Table filled with one value on the default flap/alpha grid.
    """
    grid = np.full((len(DEFAULT_ANGLE_BREAKPOINTS), len(DEFAULT_CONTROL_BREAKPOINTS)),
                   float(value))
    return InterpolatedDerivativeTable(
        DEFAULT_ANGLE_BREAKPOINTS, DEFAULT_CONTROL_BREAKPOINTS, grid, name=name)


def load_table_file(path: Union[str, Path], name: str = '') -> InterpolatedDerivativeTable:
    """
    Read a breakpoint table file (degrees) into a table (radians).

    Raises:
    -------
    TableBuildError
        If the file is missing, unreadable or malformed
    """
    path = Path(path)
    name = name or path.stem
    if not path.is_file():
        raise TableBuildError(f"{name}: table file not found: {path}")

    try:
        df = pd.read_csv(path, sep=r'\s*[,\t]\s*', header=None, engine='python',
                         skip_blank_lines=True, comment='#')
    except (OSError, ValueError, pd.errors.ParserError) as e:
        raise TableBuildError(f"{name}: could not parse {path}: {e}") from e

    data = df.apply(pd.to_numeric, errors='coerce').to_numpy(dtype=float)
    if data.shape[0] < 3 or data.shape[1] < 3:
        raise TableBuildError(f"{name}: table in {path} is too small ({data.shape})")

    control_deg = data[0, 1:]
    angle_deg = data[1:, 0]
    values = data[1:, 1:]

    # Trailing delimiters leave an empty column
    keep = ~np.isnan(control_deg)
    if not np.all(np.isnan(values[:, ~keep])):
        raise TableBuildError(f"{name}: row/column counts do not match in {path}")

    return InterpolatedDerivativeTable(
        np.radians(angle_deg), np.radians(control_deg[keep]), values[:, keep], name=name)


class ConstantDerivative:
    """Stability derivative with a single value everywhere."""

    def __init__(self, constant: float, name: str = ''):
        self.constant = float(constant)
        self.name = name

    def value(self, angle: float = 0.0, control: float = 0.0) -> float:
        return self.constant

    def __repr__(self) -> str:
        return f"ConstantDerivative({self.name!r}, {self.constant})"


class TableDerivative:
    """Stability derivative backed by an interpolation table."""

    def __init__(self, table: InterpolatedDerivativeTable):
        self.table = table
        self.name = table.name

    def value(self, angle: float = 0.0, control: float = 0.0) -> float:
        return self.table.value(angle, control)

    def __repr__(self) -> str:
        return f"TableDerivative({self.table!r})"


Derivative = Union[ConstantDerivative, TableDerivative]


def resolve_derivative(name: str, entry, default: float = 0.0,
                       base_dir: Optional[Union[str, Path]] = None) -> Derivative:
    """
    Turn a configuration entry into a Derivative.

    Parameters:
    -----------
    name : str
        Derivative name, e.g. 'CL_alpha'
    entry : float, str, dict or None
        A number, a table file name (relative to base_dir), or a dict with
        'angles', 'controls' (deg) and 'values'
    default : float
        Scalar used for the fallback table when the entry cannot be built
    base_dir : path, optional
        Directory that relative table file names are resolved against

    Returns:
    --------
    Derivative
        Constant or table derivative; a constant table of `default` when
        the table cannot be built
    """
    if entry is None:
        return ConstantDerivative(default, name)
    if isinstance(entry, (int, float)) and not isinstance(entry, bool):
        return ConstantDerivative(entry, name)

    table, error = build_table(name, entry, base_dir)
    if table is not None:
        return TableDerivative(table)

    logger.warning("%s: %s; using constant table of %.4f", name, error, default)
    return TableDerivative(constant_table(default, name))


def build_table(name: str, entry, base_dir=None):
    """
    Build a table from a file name or inline dict.

    Returns:
    --------
    (table, error) : tuple
        The table and None on success, or None and the TableBuildError
    """
    try:
        if isinstance(entry, dict):
            table = InterpolatedDerivativeTable(
                np.radians(entry.get('angles', [])),
                np.radians(entry.get('controls', [])),
                entry.get('values', []),
                name=name)
        else:
            path = Path(str(entry))
            if base_dir is not None and not path.is_absolute():
                path = Path(base_dir) / path
            table = load_table_file(path, name=name)
    except TableBuildError as e:
        return None, e
    except (TypeError, ValueError) as e:
        return None, TableBuildError(f"{name}: malformed inline table ({e})")
    return table, None
