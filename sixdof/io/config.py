"""
Configuration loading for aircraft and simulation setup.

Aircraft and simulation options are YAML files. Initial conditions, initial
controls and integrator settings are plain `key = value` text files read in a
fixed key order. Any setup file that is missing or malformed is replaced by
documented defaults with a logged warning; the simulation still runs.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import yaml

from archimedes import struct

from ..core.aircraft import AircraftSpec, MassProperties, WingGeometry, DEFAULT_DERIVATIVES
from ..core.controls import DEFAULT_CONTROLS, FlightControl
from ..core.errors import ConfigurationError
from ..core.forces import SATURATION_KEYS, SaturationLimits
from ..core.ground_reaction import GearLeg, LandingGear
from ..core.lookup_table import resolve_derivative
from ..core.propulsion import FixedPitchPropEngine
from ..core.state import FlightState


logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


# ---------------------------------------------------------------------------
# key = value setup files
# ---------------------------------------------------------------------------

INITIAL_CONDITION_KEYS = ('u', 'v', 'w', 'north', 'east', 'down',
                          'phi', 'theta', 'psi', 'p', 'q', 'r',
                          'latitude', 'longitude')

INTEGRATOR_CONFIG_KEYS = ('start_time', 'dt', 'end_time')

CONTROL_KEYS = tuple(channel.key for channel in FlightControl)

DEFAULT_INITIAL_CONDITIONS = FlightState(
    u=60.0, v=0.0, w=2.0,
    north=0.0, east=0.0, down=-1500.0,
    phi=0.0, theta=0.033, psi=1.57,
    p=0.0, q=0.0, r=0.0,
    latitude=np.radians(40.7), longitude=np.radians(-74.0),
)


@struct(frozen=True)
class IntegratorConfig:
    """Start time, fixed step and end time (s)."""

    start_time: float = 0.0
    dt: float = 0.05
    end_time: float = 100.0


def parse_key_value_file(path: PathLike,
                         expected_keys: Sequence[str]) -> Tuple[Optional[List[float]], Optional[str]]:
    """
    Read an ordered `key = value` file.

    Keys must appear in exactly the expected order.

    Returns:
    --------
    (values, error) : tuple
        Parsed floats and None, or None and a description of the problem
    """
    path = Path(path)
    try:
        text = path.read_text()
    except OSError as e:
        return None, f"cannot read {path}: {e}"

    lines = [line.strip() for line in text.splitlines()]
    lines = [line for line in lines if line and not line.startswith('#')]

    if len(lines) < len(expected_keys):
        return None, f"{path} has {len(lines)} entries, expected {len(expected_keys)}"

    values = []
    for line, expected in zip(lines, expected_keys):
        key, sep, raw = line.partition('=')
        if not sep:
            return None, f"{path}: malformed line {line!r}"
        key = key.strip()
        if key != expected:
            return None, f"{path}: expected key {expected!r}, found {key!r}"
        try:
            values.append(float(raw.strip()))
        except ValueError:
            return None, f"{path}: value for {key!r} is not a number ({raw.strip()!r})"

    return values, None


def write_key_value_file(path: PathLike, items: Sequence[Tuple[str, float]]) -> Path:
    """Write an ordered `key = value` file."""
    path = Path(path)
    path.write_text(''.join(f"{key} = {value!r}\n" for key, value in items))
    return path


def load_initial_conditions(path: Optional[PathLike]) -> FlightState:
    """
    Load initial conditions (SI units, angles in rad).

    Falls back to DEFAULT_INITIAL_CONDITIONS when the file is missing or malformed.
    """
    if path is None:
        return DEFAULT_INITIAL_CONDITIONS.copy()

    values, error = parse_key_value_file(path, INITIAL_CONDITION_KEYS)
    if error is not None:
        logger.warning("Initial conditions: %s; using defaults", error)
        return DEFAULT_INITIAL_CONDITIONS.copy()

    return FlightState(**dict(zip(INITIAL_CONDITION_KEYS, values)))


def save_initial_conditions(path: PathLike, state: FlightState) -> Path:
    """Write a state as an initial conditions file."""
    return write_key_value_file(path, [(key, float(getattr(state, key)))
                                       for key in INITIAL_CONDITION_KEYS])


def load_initial_controls(path: Optional[PathLike]) -> Dict[FlightControl, float]:
    """
    Load initial control settings, one line per channel in FlightControl order.

    Falls back to DEFAULT_CONTROLS when the file is missing or malformed.
    Out-of-range values are clamped.
    """
    if path is None:
        return dict(DEFAULT_CONTROLS)

    values, error = parse_key_value_file(path, CONTROL_KEYS)
    if error is not None:
        logger.warning("Initial controls: %s; using defaults", error)
        return dict(DEFAULT_CONTROLS)

    return {channel: channel.clamp(value) for channel, value in zip(FlightControl, values)}


def load_integrator_config(path: Optional[PathLike]) -> IntegratorConfig:
    """
    Load start time, step size and end time.

    Falls back to IntegratorConfig() when the file is missing or malformed, or
    when the step size is not positive.
    """
    if path is None:
        return IntegratorConfig()

    values, error = parse_key_value_file(path, INTEGRATOR_CONFIG_KEYS)
    if error is None and values[1] <= 0.0:
        error = f"step size must be positive, got {values[1]}"
    if error is not None:
        logger.warning("Integrator config: %s; using defaults", error)
        return IntegratorConfig()

    return IntegratorConfig(*values)


# ---------------------------------------------------------------------------
# Aircraft (YAML)
# ---------------------------------------------------------------------------

class AircraftConfig:
    """
    Aircraft configuration loaded from YAML.

    Attributes
    ----------
    name : str
        Aircraft name
    base_dir : Path or None
        Directory that derivative table file names are resolved against
    wing : dict
        Reference geometry (area, span, chord, aerodynamic_center)
    mass_properties : dict
        mass, inertia (Ixx, Iyy, Izz, Ixz), center_of_gravity
    stability_derivatives : dict
        Name -> scalar, table file name, or inline table
    engines : list of dict
        Engine definitions
    landing_gear : dict or None
        Strut definitions and braking force
    """

    def __init__(self, config_dict: Dict[str, Any], base_dir: Optional[PathLike] = None):
        """
        Initialize aircraft configuration from dictionary.

        Parameters
        ----------
        config_dict : dict
            Configuration dictionary (typically from YAML)
        base_dir : path, optional
            Directory for relative table file names
        """
        self.raw_config = config_dict or {}
        self.base_dir = Path(base_dir) if base_dir is not None else None
        self._parse_config()

    def _parse_config(self):
        """Parse configuration dictionary."""
        aircraft = self.raw_config.get('aircraft', {})

        self.name = aircraft.get('name', 'Unnamed Aircraft')
        self.wing = aircraft.get('wing', {})
        self.mass_properties = aircraft.get('mass_properties', {})
        self.stability_derivatives = aircraft.get('stability_derivatives', {}) or {}
        self.engines = aircraft.get('engines', []) or []
        self.landing_gear = aircraft.get('landing_gear')

    def create_geometry(self) -> WingGeometry:
        ac = self.wing.get('aerodynamic_center', [0.0, 0.0, 0.0])
        return WingGeometry(
            area=float(self.wing.get('area', 16.7)),
            span=float(self.wing.get('span', 10.2)),
            chord=float(self.wing.get('chord', 1.74)),
            ac_x=float(ac[0]), ac_y=float(ac[1]), ac_z=float(ac[2]),
        )

    def create_mass_properties(self) -> MassProperties:
        inertia = self.mass_properties.get('inertia', {})
        cg = self.mass_properties.get('center_of_gravity', [0.0, 0.0, 0.0])
        return MassProperties(
            mass=float(self.mass_properties.get('mass', 1247.0)),
            ix=float(inertia.get('Ixx', 1420.9)),
            iy=float(inertia.get('Iyy', 4067.5)),
            iz=float(inertia.get('Izz', 4786.0)),
            ixz=float(inertia.get('Ixz', 0.0)),
            cg_x=float(cg[0]), cg_y=float(cg[1]), cg_z=float(cg[2]),
        )

    def create_derivatives(self) -> dict:
        """
        Resolve every stability derivative.

        Table entries that cannot be built become constant tables of the
        derivative's default value.
        """
        unknown = set(self.stability_derivatives) - set(DEFAULT_DERIVATIVES)
        if unknown:
            raise ConfigurationError(f"{self.name}: unknown stability derivatives {sorted(unknown)}")

        return {
            name: resolve_derivative(name, self.stability_derivatives.get(name), default,
                                     self.base_dir)
            for name, default in DEFAULT_DERIVATIVES.items()
        }

    def create_engines(self) -> list:
        engines = []
        for i, engine in enumerate(self.engines, start=1):
            engines.append(FixedPitchPropEngine(
                name=engine.get('name', f'Engine {i}'),
                max_power_hp=float(engine.get('max_power_hp', 200.0)),
                max_rpm=float(engine.get('max_rpm', 2700.0)),
                prop_diameter=float(engine.get('prop_diameter', 1.98)),
                prop_efficiency=float(engine.get('prop_efficiency', 0.85)),
                position=np.array(engine.get('position', [0.0, 0.0, 0.0]), dtype=float),
                number=int(engine.get('number', i)),
            ))
        return engines

    def create_landing_gear(self) -> Optional[LandingGear]:
        if not self.landing_gear:
            return None

        def leg(key):
            entry = self.landing_gear.get(key)
            if entry is None:
                return None
            x, y, z = entry.get('position', [0.0, 0.0, 1.0])
            return GearLeg(x=float(x), y=float(y), z=float(z),
                           spring=float(entry.get('spring', 50000.0)),
                           damping=float(entry.get('damping', 5000.0)))

        return LandingGear(
            nose=leg('nose'), left=leg('left'), right=leg('right'),
            braking_force=float(self.landing_gear.get('braking_force', 3000.0)),
            max_steering=np.radians(float(self.landing_gear.get('max_steering_deg', 20.0))),
        )

    def create_aircraft(self) -> AircraftSpec:
        """
        Build the AircraftSpec.

        Raises
        ------
        DegenerateInertiaError
            If the inertia tensor is singular
        ConfigurationError
            On unknown derivative names, non-positive mass or too many engines
        """
        return AircraftSpec(
            name=self.name,
            geometry=self.create_geometry(),
            mass_properties=self.create_mass_properties(),
            derivatives=self.create_derivatives(),
            engines=self.create_engines() or None,
            landing_gear=self.create_landing_gear(),
        )

    def __repr__(self):
        """String representation."""
        return (f"AircraftConfig(name='{self.name}', "
                f"derivatives={len(self.stability_derivatives)}, "
                f"engines={len(self.engines)})")


def _read_yaml(yaml_file: Path, section: str) -> Optional[Dict[str, Any]]:
    """
    Read a YAML mapping that should hold `section`.

    Returns None, with a warning, when the file is missing, unreadable, not
    valid YAML, or does not hold a mapping.
    """
    try:
        with open(yaml_file, 'r') as f:
            config_dict = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Cannot read %s: %s", yaml_file, e)
        return None

    if not isinstance(config_dict, dict) or not isinstance(config_dict.get(section, {}), dict):
        logger.warning("%s does not hold a '%s' mapping", yaml_file, section)
        return None
    return config_dict


def load_aircraft_config(yaml_file: PathLike) -> AircraftConfig:
    """
    Load aircraft configuration from YAML file.

    Table file names inside the file are resolved relative to its directory.
    A missing or malformed file gives the example aircraft, with a warning.

    Examples
    --------
    >>> config = load_aircraft_config('aircraft/navion.yaml')
    >>> aircraft = config.create_aircraft()
    """
    yaml_file = Path(yaml_file)
    config_dict = _read_yaml(yaml_file, 'aircraft')
    if config_dict is None:
        logger.warning("Using the example aircraft instead of %s", yaml_file)
        return AircraftConfig(create_example_config())

    return AircraftConfig(config_dict, base_dir=yaml_file.parent)


def create_example_config() -> Dict[str, Any]:
    """
    Example aircraft configuration (Navion, SI units).
    """
    return {
        'aircraft': {
            'name': 'Navion',
            'wing': {
                'area': 16.7,  # m²
                'span': 10.2,  # m
                'chord': 1.74,  # m
                'aerodynamic_center': [0.0, 0.0, 0.0]
            },
            'mass_properties': {
                'mass': 1247.0,  # kg
                'inertia': {
                    'Ixx': 1420.9,  # kg·m²
                    'Iyy': 4067.5,
                    'Izz': 4786.0,
                    'Ixz': 0.0
                },
                'center_of_gravity': [0.0, 0.0, 0.0]
            },
            'stability_derivatives': dict(DEFAULT_DERIVATIVES),
            'engines': [
                {
                    'name': 'Continental IO-520',
                    'max_power_hp': 205.0,
                    'max_rpm': 2700.0,
                    'prop_diameter': 2.13,  # m
                    'position': [0.0, 0.0, 0.0],
                    'number': 1
                }
            ],
            'landing_gear': {
                'nose': {'position': [1.8, 0.0, 1.2], 'spring': 40000.0, 'damping': 4000.0},
                'left': {'position': [-0.3, -1.3, 1.2], 'spring': 60000.0, 'damping': 6000.0},
                'right': {'position': [-0.3, 1.3, 1.2], 'spring': 60000.0, 'damping': 6000.0},
                'braking_force': 3000.0,  # N
                'max_steering_deg': 20.0
            }
        }
    }


# ---------------------------------------------------------------------------
# Simulation options (YAML)
# ---------------------------------------------------------------------------

MIN_TICK_RATE = 20.0
MAX_TICK_RATE = 500.0


class SimulationConfig:
    """
    Run options.

    Attributes
    ----------
    integrator : IntegratorConfig
        Start time, step and end time
    unlimited_flight : bool
        Run until stopped; end time ignored and the output log is trimmed to
        the retention window
    analysis_mode : bool
        Run as fast as possible instead of in real time, flying any scripted
        inputs
    analysis_inputs : list of dict
        Scripted singlet and doublet entries, see sixdof.simulation.analysis
    tick_rate_hz : float
        Real-time loop rate, clamped to 20-500 Hz
    log_retention_s : float
        Output log window in unlimited flight (s)
    terrain_height : float
        Terrain elevation (m)
    limits : SaturationLimits
        Saturation bounds
    initial_conditions : FlightState
    initial_controls : dict
    aircraft_file : Path or None
    trim : bool
        Trim at the initial airspeed and altitude before starting
    """

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None,
                 base_dir: Optional[PathLike] = None):
        self.raw_config = config_dict or {}
        self.base_dir = Path(base_dir) if base_dir is not None else None
        self._parse_config()

    def _resolve(self, name) -> Optional[Path]:
        if name is None:
            return None
        path = Path(name)
        if self.base_dir is not None and not path.is_absolute():
            path = self.base_dir / path
        return path

    def _parse_config(self):
        sim = self.raw_config.get('simulation', {}) or {}

        self.integrator = load_integrator_config(self._resolve(sim.get('integrator_file')))
        if 'integrator' in sim:
            entry = sim['integrator']
            self.integrator = IntegratorConfig(
                start_time=float(entry.get('start_time', self.integrator.start_time)),
                dt=float(entry.get('dt', self.integrator.dt)),
                end_time=float(entry.get('end_time', self.integrator.end_time)),
            )

        self.unlimited_flight = bool(sim.get('unlimited_flight', False))
        self.analysis_mode = bool(sim.get('analysis_mode', False))
        self.log_retention_s = float(sim.get('log_retention_s', 100.0))
        self.terrain_height = float(sim.get('terrain_height', 0.0))
        self.trim = bool(sim.get('trim', True))

        default_rate = 1.0 / self.integrator.dt
        rate = float(sim.get('tick_rate_hz', default_rate))
        self.tick_rate_hz = float(np.clip(rate, MIN_TICK_RATE, MAX_TICK_RATE))
        if self.tick_rate_hz != rate:
            logger.warning("Tick rate %.1f Hz outside [%.0f, %.0f]; using %.1f Hz",
                           rate, MIN_TICK_RATE, MAX_TICK_RATE, self.tick_rate_hz)

        self.limits = self._parse_saturation(sim.get('saturation', {}) or {})
        self.analysis_inputs = sim.get('analysis_inputs', []) or []

        self.initial_conditions = load_initial_conditions(
            self._resolve(sim.get('initial_conditions_file')))
        self.initial_controls = load_initial_controls(
            self._resolve(sim.get('initial_controls_file')))
        self.aircraft_file = self._resolve(sim.get('aircraft_file'))

    @staticmethod
    def _parse_saturation(entries: Dict[str, Any]) -> SaturationLimits:
        """Saturation limits; unknown or non-numeric entries are dropped with a warning."""
        limits = {}
        for key, value in entries.items():
            if key not in SATURATION_KEYS:
                logger.warning("Unknown saturation limit '%s' ignored", key)
                continue
            try:
                limits[key] = float(value)
            except (TypeError, ValueError):
                logger.warning("Saturation limit %s=%r is not a number; using the default",
                               key, value)
        return SaturationLimits(**limits)

    def create_aircraft(self) -> AircraftSpec:
        """Aircraft from the configured file, or the default aircraft."""
        if self.aircraft_file is None:
            return AircraftConfig(create_example_config()).create_aircraft()
        return load_aircraft_config(self.aircraft_file).create_aircraft()


def load_simulation_config(yaml_file: PathLike) -> SimulationConfig:
    """
    Load simulation options from YAML.

    File names inside are resolved relative to the YAML file. A missing or
    malformed file gives the default options, with a warning.
    """
    yaml_file = Path(yaml_file)
    config_dict = _read_yaml(yaml_file, 'simulation')
    if config_dict is None:
        logger.warning("Using default simulation options instead of %s", yaml_file)
        return SimulationConfig()

    return SimulationConfig(config_dict, base_dir=yaml_file.parent)
