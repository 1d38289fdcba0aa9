"""
Simulation output quantities and CSV export.

Each integration tick produces one record: a read-only mapping from
SimOutput to float. Records are exported to CSV with pandas, one column per
output quantity labelled with its name and unit.
"""

import logging
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping, Sequence, Union

import numpy as np
import pandas as pd

from ..core.controls import FlightControl, MAX_ENGINES
from ..core.forces import NetLoads
from ..core.state import FlightState
from ..core.transforms import WindParameters
from ..environment.atmosphere import EnvironmentState


logger = logging.getLogger(__name__)


class SimOutput(Enum):
    """Output quantities, valued by their CSV column label."""

    TIME = 'Time [sec]'

    U = 'u [m/s]'
    U_DOT = 'u_dot [m/s^2]'
    V = 'v [m/s]'
    V_DOT = 'v_dot [m/s^2]'
    W = 'w [m/s]'
    W_DOT = 'w_dot [m/s^2]'

    NORTH = 'North [m]'
    NORTH_DOT = 'North_dot [m/s]'
    EAST = 'East [m]'
    EAST_DOT = 'East_dot [m/s]'
    ALT = 'Altitude [m]'
    ALT_DOT = 'Vertical Speed [m/s]'

    PHI = 'phi [rad]'
    PHI_DOT = 'phi_dot [rad/s]'
    THETA = 'theta [rad]'
    THETA_DOT = 'theta_dot [rad/s]'
    PSI = 'psi [rad]'
    PSI_DOT = 'psi_dot [rad/s]'

    P = 'p [rad/s]'
    P_DOT = 'p_dot [rad/s^2]'
    Q = 'q [rad/s]'
    Q_DOT = 'q_dot [rad/s^2]'
    R = 'r [rad/s]'
    R_DOT = 'r_dot [rad/s^2]'

    TAS = 'TAS [m/s]'
    BETA = 'Beta [rad]'
    ALPHA = 'Alpha [rad]'
    ALPHA_DOT = 'Alpha_dot [rad/s]'
    MACH = 'Mach'

    LAT = 'Latitude [rad]'
    LAT_DOT = 'Latitude_dot [rad/s]'
    LON = 'Longitude [rad]'
    LON_DOT = 'Longitude_dot [rad/s]'

    A_X = 'a_x [m/s^2]'
    A_Y = 'a_y [m/s^2]'
    A_Z = 'a_z [m/s^2]'
    AN_X = 'a_n_x [g]'
    AN_Y = 'a_n_y [g]'
    AN_Z = 'a_n_z [g]'

    L = 'L [N*m]'
    M = 'M [N*m]'
    N = 'N [N*m]'

    THRUST_1 = 'Thrust 1 [N]'
    RPM_1 = 'RPM 1'
    FUEL_FLOW_1 = 'Fuel Flow 1 [gal/hr]'
    THRUST_2 = 'Thrust 2 [N]'
    RPM_2 = 'RPM 2'
    FUEL_FLOW_2 = 'Fuel Flow 2 [gal/hr]'
    THRUST_3 = 'Thrust 3 [N]'
    RPM_3 = 'RPM 3'
    FUEL_FLOW_3 = 'Fuel Flow 3 [gal/hr]'
    THRUST_4 = 'Thrust 4 [N]'
    RPM_4 = 'RPM 4'
    FUEL_FLOW_4 = 'Fuel Flow 4 [gal/hr]'

    ELEVATOR = 'Elevator [rad]'
    AILERON = 'Aileron [rad]'
    RUDDER = 'Rudder [rad]'
    THROTTLE_1 = 'Throttle 1'
    THROTTLE_2 = 'Throttle 2'
    THROTTLE_3 = 'Throttle 3'
    THROTTLE_4 = 'Throttle 4'
    PROPELLER_1 = 'Propeller 1'
    PROPELLER_2 = 'Propeller 2'
    PROPELLER_3 = 'Propeller 3'
    PROPELLER_4 = 'Propeller 4'
    MIXTURE_1 = 'Mixture 1'
    MIXTURE_2 = 'Mixture 2'
    MIXTURE_3 = 'Mixture 3'
    MIXTURE_4 = 'Mixture 4'
    FLAPS = 'Flaps [rad]'
    GEAR = 'Gear'
    BRAKE_L = 'Brake L'
    BRAKE_R = 'Brake R'

    def __str__(self) -> str:
        return self.value


SimOutputRecord = Mapping[SimOutput, float]


def make_record(time: float, state: FlightState, state_dot: np.ndarray,
                wind: WindParameters, alpha_dot: float,
                environment: EnvironmentState, loads: NetLoads,
                controls: Mapping[FlightControl, float],
                geodetic_dot: Sequence[float] = (0.0, 0.0)) -> SimOutputRecord:
    """
    Assemble one read-only output record.

    Parameters:
    -----------
    time : float
        Simulation time (s)
    state : FlightState
        State after the step
    state_dot : np.ndarray, shape (12,)
        State derivative at the new state
    wind : WindParameters
        Flow angles at the new state
    alpha_dot : float
        Angle of attack rate (rad/s)
    environment : EnvironmentState
        Atmosphere at the new state
    loads : NetLoads
        Loads behind state_dot
    controls : mapping
        Control snapshot used for the step
    geodetic_dot : (lat_dot, lon_dot)
        Latitude and longitude rates (rad/s)
    """
    g = environment.gravity
    ax, ay, az = loads.acceleration
    u_dot, v_dot, w_dot = state_dot[0:3]

    values = {
        SimOutput.TIME: time,
        SimOutput.U: state.u, SimOutput.U_DOT: u_dot,
        SimOutput.V: state.v, SimOutput.V_DOT: v_dot,
        SimOutput.W: state.w, SimOutput.W_DOT: w_dot,
        SimOutput.NORTH: state.north, SimOutput.NORTH_DOT: state_dot[9],
        SimOutput.EAST: state.east, SimOutput.EAST_DOT: state_dot[10],
        SimOutput.ALT: state.altitude, SimOutput.ALT_DOT: -state_dot[11],
        SimOutput.PHI: state.phi, SimOutput.PHI_DOT: state_dot[6],
        SimOutput.THETA: state.theta, SimOutput.THETA_DOT: state_dot[7],
        SimOutput.PSI: state.psi, SimOutput.PSI_DOT: state_dot[8],
        SimOutput.P: state.p, SimOutput.P_DOT: state_dot[3],
        SimOutput.Q: state.q, SimOutput.Q_DOT: state_dot[4],
        SimOutput.R: state.r, SimOutput.R_DOT: state_dot[5],
        SimOutput.TAS: wind.airspeed,
        SimOutput.BETA: wind.beta,
        SimOutput.ALPHA: wind.alpha,
        SimOutput.ALPHA_DOT: alpha_dot,
        SimOutput.MACH: environment.mach_number(wind.airspeed),
        SimOutput.LAT: state.latitude, SimOutput.LAT_DOT: geodetic_dot[0],
        SimOutput.LON: state.longitude, SimOutput.LON_DOT: geodetic_dot[1],
        SimOutput.A_X: ax, SimOutput.A_Y: ay, SimOutput.A_Z: az,
        SimOutput.AN_X: u_dot / g,
        SimOutput.AN_Y: v_dot / g,
        SimOutput.AN_Z: w_dot / g + 1.0,
        SimOutput.L: loads.moment[0],
        SimOutput.M: loads.moment[1],
        SimOutput.N: loads.moment[2],
    }

    for i in range(1, MAX_ENGINES + 1):
        if i <= len(loads.engines):
            engine = loads.engines[i - 1]
            thrust, rpm, fuel_flow = engine.force[0], engine.rpm, engine.fuel_flow
        else:
            thrust = rpm = fuel_flow = 0.0
        values[SimOutput[f'THRUST_{i}']] = thrust
        values[SimOutput[f'RPM_{i}']] = rpm
        values[SimOutput[f'FUEL_FLOW_{i}']] = fuel_flow

    for channel in FlightControl:
        values[SimOutput[channel.name]] = controls[channel]

    return MappingProxyType({key: float(value) for key, value in values.items()})


def records_to_frame(records: Iterable[SimOutputRecord]) -> pd.DataFrame:
    """
    Tabulate records, one row per tick and one column per output label.
    """
    columns = [output.value for output in SimOutput]
    rows = [[record.get(output, np.nan) for output in SimOutput] for record in records]
    return pd.DataFrame(rows, columns=columns)


def export_csv(records: Iterable[SimOutputRecord], csv_file: Union[str, Path]) -> Path:
    """
    Write records to CSV: header row of output labels, one row per tick.

    Returns:
    --------
    Path
        File written
    """
    csv_file = Path(csv_file)
    df = records_to_frame(records)
    df.to_csv(csv_file, index=False)
    logger.info("Wrote %d output records to %s", len(df), csv_file)
    return csv_file
