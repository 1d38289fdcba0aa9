"""
Flight control channels and the shared control state.

Each channel carries a [min, max] range; writes outside the range are clamped.
ControlState is written by input devices on their own threads and read by the
simulation thread once per tick through `snapshot()`.
"""

import logging
import threading
from enum import Enum
from typing import Dict, Mapping, Optional

import numpy as np


logger = logging.getLogger(__name__)


class FlightControl(Enum):
    """Control channels with their limits (rad for surfaces, fraction otherwise)."""

    ELEVATOR = ('elevator', np.radians(-25.0), np.radians(15.0))
    AILERON = ('aileron', np.radians(-15.0), np.radians(15.0))
    RUDDER = ('rudder', np.radians(-15.0), np.radians(15.0))
    THROTTLE_1 = ('throttle_1', 0.0, 1.0)
    THROTTLE_2 = ('throttle_2', 0.0, 1.0)
    THROTTLE_3 = ('throttle_3', 0.0, 1.0)
    THROTTLE_4 = ('throttle_4', 0.0, 1.0)
    PROPELLER_1 = ('propeller_1', 0.0, 1.0)
    PROPELLER_2 = ('propeller_2', 0.0, 1.0)
    PROPELLER_3 = ('propeller_3', 0.0, 1.0)
    PROPELLER_4 = ('propeller_4', 0.0, 1.0)
    MIXTURE_1 = ('mixture_1', 0.0, 1.0)
    MIXTURE_2 = ('mixture_2', 0.0, 1.0)
    MIXTURE_3 = ('mixture_3', 0.0, 1.0)
    MIXTURE_4 = ('mixture_4', 0.0, 1.0)
    FLAPS = ('flaps', 0.0, np.radians(30.0))
    GEAR = ('gear', 0.0, 1.0)
    BRAKE_L = ('brake_l', 0.0, 1.0)
    BRAKE_R = ('brake_r', 0.0, 1.0)

    def __init__(self, key: str, minimum: float, maximum: float):
        self.key = key
        self.minimum = float(minimum)
        self.maximum = float(maximum)

    def clamp(self, value: float) -> float:
        """
        Clamp a value into this channel's range.

        Infinities go to the nearest bound. NaN has no nearest bound and maps
        to the channel's default.
        """
        if np.isnan(value):
            logger.warning("%s command is NaN; using default %.4f", self.key, DEFAULT_CONTROLS[self])
            return float(DEFAULT_CONTROLS[self])
        return float(min(max(value, self.minimum), self.maximum))

    @classmethod
    def from_key(cls, key: str) -> 'FlightControl':
        """Look up a channel by its configuration key."""
        for channel in cls:
            if channel.key == key:
                return channel
        raise KeyError(key)

    @classmethod
    def throttle(cls, engine: int) -> 'FlightControl':
        """Throttle channel for engine number 1-4."""
        return cls[f'THROTTLE_{engine}']

    @classmethod
    def propeller(cls, engine: int) -> 'FlightControl':
        """Propeller channel for engine number 1-4."""
        return cls[f'PROPELLER_{engine}']

    @classmethod
    def mixture(cls, engine: int) -> 'FlightControl':
        """Mixture channel for engine number 1-4."""
        return cls[f'MIXTURE_{engine}']


MAX_ENGINES = 4

DEFAULT_CONTROLS: Dict[FlightControl, float] = {
    FlightControl.ELEVATOR: 0.036,
    FlightControl.AILERON: 0.0,
    FlightControl.RUDDER: 0.0,
    **{FlightControl.throttle(i): 0.65 for i in range(1, MAX_ENGINES + 1)},
    **{FlightControl.propeller(i): 1.0 for i in range(1, MAX_ENGINES + 1)},
    **{FlightControl.mixture(i): 1.0 for i in range(1, MAX_ENGINES + 1)},
    FlightControl.FLAPS: 0.0,
    FlightControl.GEAR: 0.0,
    FlightControl.BRAKE_L: 0.0,
    FlightControl.BRAKE_R: 0.0,
}


class ControlState:
    """
    Thread-safe container of current control deflections.

    Every channel always holds a value inside its limits. Writers swap single
    channels under a lock; the simulation reads a full copy once per tick.
    """

    def __init__(self, values: Optional[Mapping[FlightControl, float]] = None):
        """
        Parameters:
        -----------
        values : mapping, optional
            Initial channel values; missing channels take DEFAULT_CONTROLS
        """
        self._lock = threading.Lock()
        self._values = {channel: channel.clamp(DEFAULT_CONTROLS[channel])
                        for channel in FlightControl}
        if values:
            self.update(values)

    def get(self, channel: FlightControl) -> float:
        """Current value of one channel."""
        with self._lock:
            return self._values[channel]

    def set(self, channel: FlightControl, value: float) -> float:
        """
        Set one channel, clamping into its range.

        Non-finite commands are dropped with a warning and the channel keeps
        its previous value.

        Returns:
        --------
        float
            Value actually stored
        """
        with self._lock:
            return self._store(channel, value)

    def update(self, values: Mapping[FlightControl, float]):
        """Set several channels at once."""
        with self._lock:
            for channel, value in values.items():
                self._store(channel, value)

    def _store(self, channel: FlightControl, value: float) -> float:
        # Caller holds the lock
        if not np.isfinite(value):
            logger.warning("Ignoring non-finite %s command %r", channel.key, value)
            return self._values[channel]
        clamped = channel.clamp(value)
        if clamped != value:
            logger.debug("%s command %.4f clamped to %.4f", channel.key, value, clamped)
        self._values[channel] = clamped
        return clamped

    def snapshot(self) -> Dict[FlightControl, float]:
        """Consistent copy of every channel."""
        with self._lock:
            return dict(self._values)

    def __getitem__(self, channel: FlightControl) -> float:
        return self.get(channel)

    def __setitem__(self, channel: FlightControl, value: float):
        self.set(channel, value)

    def __repr__(self) -> str:
        values = self.snapshot()
        return "ControlState(" + ", ".join(
            f"{channel.key}={value:.4f}" for channel, value in values.items()) + ")"
