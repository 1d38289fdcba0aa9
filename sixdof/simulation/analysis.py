"""
Scripted control inputs for analysis runs.

An analysis run flies from trim with pre-planned inputs instead of a pilot:

- Singlet: a step of +amplitude held for `duration`
- Doublet: +amplitude for `duration`, then -amplitude for `duration`

Inputs are offsets from the trimmed control values. AnalysisControls writes
trim + (sum of active offsets) to the shared ControlState at every tick
boundary while an input on that channel is active, then restores the trim
value once when it ends.

Input lists come from the simulation YAML:

    analysis_inputs:
      - type: doublet
        control: elevator
        start_time: 5.0    # s
        duration: 0.5      # s, per half for a doublet
        amplitude: 0.035   # rad for surfaces, fraction otherwise
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..core.controls import ControlState, FlightControl


logger = logging.getLogger(__name__)

# Tick times accumulate dt, so edges are compared with this slack (s)
TIME_TOLERANCE = 1e-9


class AnalysisInput(ABC):
    """
    Base class for a scripted input on one control channel.

    Parameters:
    -----------
    channel : FlightControl
        Channel driven by the input
    start_time : float
        Simulation time the input begins (s)
    duration : float
        Length of one pulse (s), must be positive
    amplitude : float
        Offset from trim while the pulse is on
    """

    def __init__(self, channel: FlightControl, start_time: float, duration: float,
                 amplitude: float):
        if duration <= 0.0:
            raise ValueError(f"Input duration must be positive, got {duration}")
        self.channel = channel
        self.start_time = float(start_time)
        self.duration = float(duration)
        self.amplitude = float(amplitude)

    @property
    @abstractmethod
    def end_time(self) -> float:
        """Simulation time the input is finished (s)."""

    @abstractmethod
    def offset(self, time: float) -> float:
        """Offset from trim at `time`; 0.0 outside the input."""

    def active(self, time: float) -> bool:
        return self.start_time - TIME_TOLERANCE <= time < self.end_time - TIME_TOLERANCE

    def __lt__(self, other: 'AnalysisInput') -> bool:
        return self.start_time < other.start_time

    def __repr__(self) -> str:
        return (f"{self.__class__.__name__}({self.channel.key}, start={self.start_time:.2f} s, "
                f"duration={self.duration:.2f} s, amplitude={self.amplitude:.4f})")


class Singlet(AnalysisInput):
    """Single step of +amplitude."""

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration

    def offset(self, time: float) -> float:
        return self.amplitude if self.active(time) else 0.0


class Doublet(AnalysisInput):
    """+amplitude for one duration, then -amplitude for another."""

    @property
    def end_time(self) -> float:
        return self.start_time + 2.0*self.duration

    def offset(self, time: float) -> float:
        if not self.active(time):
            return 0.0
        first_half_end = self.start_time + self.duration
        return self.amplitude if time < first_half_end - TIME_TOLERANCE else -self.amplitude


INPUT_TYPES = {
    'singlet': Singlet,
    'doublet': Doublet,
}


class AnalysisControls:
    """
    Applies scripted inputs to a ControlState.

    Parameters:
    -----------
    inputs : sequence of AnalysisInput
        Inputs to fly; kept sorted by start time
    trim_values : mapping, optional
        Control values the offsets are added to. When omitted, the controls
        seen at the first update are taken as trim.
    """

    def __init__(self, inputs: Sequence[AnalysisInput] = (),
                 trim_values: Optional[Mapping[FlightControl, float]] = None):
        self.inputs: List[AnalysisInput] = sorted(inputs)
        self.trim_values = dict(trim_values) if trim_values is not None else None
        self._driven = set()

    def __len__(self) -> int:
        return len(self.inputs)

    @property
    def end_time(self) -> float:
        """Time the last input is finished (s); 0.0 with no inputs."""
        return max((i.end_time for i in self.inputs), default=0.0)

    def update(self, time: float, controls: ControlState):
        """
        Write scripted values for `time` to `controls`.

        Called by the simulation thread at tick boundaries.
        """
        if not self.inputs:
            return
        if self.trim_values is None:
            self.trim_values = controls.snapshot()

        offsets: Dict[FlightControl, float] = {}
        for analysis_input in self.inputs:
            if analysis_input.active(time):
                channel = analysis_input.channel
                offsets[channel] = offsets.get(channel, 0.0) + analysis_input.offset(time)

        for channel, offset in offsets.items():
            if channel not in self._driven:
                logger.info("Scripted %s input begins at t=%.2f s", channel.key, time)
            controls.set(channel, self.trim_values[channel] + offset)

        # Channels whose inputs just ended go back to trim once
        for channel in self._driven - set(offsets):
            logger.info("Scripted %s input ends at t=%.2f s", channel.key, time)
            controls.set(channel, self.trim_values[channel])

        self._driven = set(offsets)

    def reset(self):
        """Forget which channels were being driven; trim values are kept."""
        self._driven = set()

    @classmethod
    def from_config(cls, entries: Optional[Sequence[Dict[str, Any]]],
                    trim_values: Optional[Mapping[FlightControl, float]] = None
                    ) -> 'AnalysisControls':
        """
        Build from the `analysis_inputs` list of a simulation YAML.

        Entries with an unknown type or channel, or bad timing, are logged
        and skipped.
        """
        inputs = []
        for i, entry in enumerate(entries or []):
            try:
                input_cls = INPUT_TYPES[str(entry.get('type', '')).lower()]
                channel = FlightControl.from_key(str(entry.get('control', '')).lower())
                inputs.append(input_cls(
                    channel,
                    start_time=float(entry.get('start_time', 0.0)),
                    duration=float(entry.get('duration', 0.5)),
                    amplitude=float(entry.get('amplitude', 0.0)),
                ))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping analysis input %d (%r): %s", i, entry, e)

        return cls(inputs, trim_values)


def doublet_series(amplitude: float = 0.035, duration: float = 0.5) -> AnalysisControls:
    """
    Standard handling-qualities sequence: aileron doublet at 10 s, rudder
    doublet at 14 s, elevator doublet at 52 s.
    """
    return AnalysisControls([
        Doublet(FlightControl.AILERON, 10.0, duration, amplitude),
        Doublet(FlightControl.RUDDER, 14.0, duration, amplitude),
        Doublet(FlightControl.ELEVATOR, 52.0, duration, amplitude),
    ])
