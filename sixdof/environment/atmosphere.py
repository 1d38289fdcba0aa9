"""
International Standard Atmosphere (ISA) model.

Provides atmospheric properties as a function of geometric altitude:
- Temperature
- Pressure
- Density
- Speed of sound
- Gravitational acceleration

Units: SI (m, K, Pa, kg/m³, m/s²)
"""

import numpy as np

from archimedes import struct


@struct(frozen=True)
class EnvironmentState:
    """
    Atmospheric conditions at one altitude.

    Recomputed once per integration tick from the aircraft's altitude.
    """

    altitude: float = 0.0  # m
    temperature: float = 288.15  # K
    pressure: float = 101325.0  # Pa
    density: float = 1.225  # kg/m³
    speed_of_sound: float = 340.294  # m/s
    gravity: float = 9.80665  # m/s²

    def dynamic_pressure(self, velocity: float) -> float:
        """Dynamic pressure q = 0.5 * rho * V² (Pa)."""
        return 0.5 * self.density * velocity**2

    def mach_number(self, velocity: float) -> float:
        """Mach number for a true airspeed (m/s)."""
        return velocity / self.speed_of_sound


class StandardAtmosphere:
    """
    ISA model up to 20 km.

    Attributes
    ----------
    temperature : float
        Static temperature (K)
    pressure : float
        Static pressure (Pa)
    density : float
        Air density (kg/m³)
    speed_of_sound : float
        Speed of sound (m/s)
    gravity : float
        Gravitational acceleration (m/s²)

    Notes
    -----
    Model covers two layers:
    - Troposphere: 0 - 11,000 m (temperature decreases linearly)
    - Lower Stratosphere: 11,000 - 20,000 m (isothermal)

    Altitudes below sea level are evaluated with the tropospheric equations;
    above 20 km the isothermal layer is extended.
    """

    # Sea level conditions
    T0 = 288.15  # K
    P0 = 101325.0  # Pa
    rho0 = 1.225  # kg/m³
    g0 = 9.80665  # m/s²

    # Gas constant for air
    R = 287.05287  # J/(kg·K)

    # Ratio of specific heats
    gamma = 1.4

    # Mean Earth radius for gravity variation
    R_earth = 6356766.0  # m

    # Layer boundary and lapse rate
    h_trop = 11000.0  # m
    lapse_trop = -0.0065  # K/m

    def __init__(self, altitude: float = 0.0):
        """
        Initialize atmosphere at specified altitude.

        Parameters
        ----------
        altitude : float, optional
            Geometric altitude in meters (default: 0.0, sea level)
        """
        self.altitude = altitude
        self._compute_properties()

    def _compute_properties(self):
        """Compute all atmospheric properties at current altitude."""
        h = self.altitude
        exponent_trop = -self.g0 / (self.lapse_trop * self.R)

        if h <= self.h_trop:
            # Troposphere
            self.temperature = self.T0 + self.lapse_trop * h
            self.pressure = self.P0 * (self.temperature / self.T0)**exponent_trop
        else:
            # Lower stratosphere (isothermal)
            T_trop = self.T0 + self.lapse_trop * self.h_trop
            P_trop = self.P0 * (T_trop / self.T0)**exponent_trop

            self.temperature = T_trop
            self.pressure = P_trop * np.exp(-self.g0 * (h - self.h_trop) / (self.R * T_trop))

        # Density from ideal gas law
        self.density = self.pressure / (self.R * self.temperature)

        # Speed of sound
        self.speed_of_sound = np.sqrt(self.gamma * self.R * self.temperature)

        # Inverse-square gravity
        self.gravity = self.g0 * (self.R_earth / (self.R_earth + h))**2

    def update(self, altitude: float):
        """
        Update atmospheric properties for new altitude.

        Parameters
        ----------
        altitude : float
            New geometric altitude in meters
        """
        self.altitude = altitude
        self._compute_properties()

    def state(self) -> EnvironmentState:
        """Snapshot of the current properties."""
        return EnvironmentState(
            altitude=float(self.altitude),
            temperature=float(self.temperature),
            pressure=float(self.pressure),
            density=float(self.density),
            speed_of_sound=float(self.speed_of_sound),
            gravity=float(self.gravity),
        )

    def get_dynamic_pressure(self, velocity: float) -> float:
        """Dynamic pressure q = 0.5 * rho * V² (Pa)."""
        return 0.5 * self.density * velocity**2

    def get_mach_number(self, velocity: float) -> float:
        """Mach number for a true airspeed (m/s)."""
        return velocity / self.speed_of_sound

    def __repr__(self):
        """String representation."""
        return (f"StandardAtmosphere(altitude={self.altitude:.0f} m, "
                f"T={self.temperature - 273.15:.1f}°C, "
                f"P={self.pressure / 1000.0:.2f} kPa, "
                f"rho={self.density:.4f} kg/m³)")


def environment_at(altitude: float) -> EnvironmentState:
    """EnvironmentState for a geometric altitude (m)."""
    return StandardAtmosphere(altitude).state()


if __name__ == "__main__":
    print(f"{'Alt (m)':<10} {'T (C)':<10} {'P (kPa)':<10} {'rho':<10} {'a (m/s)':<10}")
    print("-" * 50)
    for alt in [0, 1500, 5000, 11000, 15000]:
        atm = StandardAtmosphere(alt)
        print(f"{alt:<10.0f} {atm.temperature - 273.15:<10.1f} {atm.pressure / 1000:<10.2f} "
              f"{atm.density:<10.4f} {atm.speed_of_sound:<10.1f}")
