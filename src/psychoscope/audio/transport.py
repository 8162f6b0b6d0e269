"""
Tempo transport with look-ahead loop scheduling.

The transport does not keep time itself: it is advanced by the audio context
once per rendered block and dispatches every loop tick that falls before the
end of that block plus a small look-ahead window. Callbacks receive the
tick's exact context time in seconds, so instruments can place notes on the
right sample regardless of when the callback actually ran.
"""

import logging
from typing import Callable, List

from psychoscope.audio.notes import Duration, duration_to_seconds

logger = logging.getLogger(__name__)

DEFAULT_BPM = 120.0
DEFAULT_LOOKAHEAD = 0.1

TickCallback = Callable[[float], None]


class Loop:
    """A callback repeated every ``interval`` from transport time ``start``."""

    def __init__(self, transport: "Transport", callback: TickCallback, interval: Duration, start: float = 0.0):
        if start < 0:
            raise ValueError(f"Loop start must be >= 0, got {start}")
        self._transport = transport
        self.callback = callback
        self.interval = interval
        self.start_offset = float(start)
        self.next_time = self.start_offset
        self.iterations = 0
        self.state = "started"
        self.disposed = False

        # Fail at schedule time rather than inside the audio callback
        if self.interval_seconds() <= 0:
            raise ValueError(f"Loop interval must be positive, got {interval!r}")

    def interval_seconds(self) -> float:
        return duration_to_seconds(self.interval, self._transport.bpm)

    def _dispatch_until(self, horizon: float):
        while self.state == "started" and not self.disposed and self.next_time < horizon:
            tick_time = self.next_time
            self.next_time += self.interval_seconds()
            self.iterations += 1
            self._transport._invoke(self, tick_time)

    def rewind(self):
        self.next_time = self.start_offset

    def stop(self):
        self.state = "stopped"

    def dispose(self):
        """Stop the loop and detach it; pending ticks become no-ops."""
        self.stop()
        self.disposed = True
        self._transport._remove(self)


class Transport:
    """
    Shared tempo clock for one audio context.

    Transport time starts at 0 on :meth:`start` and rewinds to 0 on
    :meth:`stop`.
    """

    def __init__(self, context, bpm: float = DEFAULT_BPM, lookahead: float = DEFAULT_LOOKAHEAD):
        self.context = context
        self._bpm = float(bpm)
        self.lookahead = float(lookahead)
        self.state = "stopped"
        self._origin_frame = 0
        self._loops: List[Loop] = []

    @property
    def bpm(self) -> float:
        return self._bpm

    @bpm.setter
    def bpm(self, value: float):
        if value <= 0:
            raise ValueError(f"bpm must be positive, got {value}")
        self._bpm = float(value)

    @property
    def loops(self) -> List[Loop]:
        return list(self._loops)

    @property
    def seconds(self) -> float:
        """Current transport position in seconds."""
        if self.state != "started":
            return 0.0
        return (self.context.frame - self._origin_frame) / self.context.sample_rate

    def to_seconds(self, duration: Duration) -> float:
        return duration_to_seconds(duration, self._bpm)

    def to_context_time(self, transport_time: float) -> float:
        return self._origin_frame / self.context.sample_rate + transport_time

    def schedule_repeat(self, callback: TickCallback, interval: Duration, start: float = 0.0) -> Loop:
        """Create a loop firing ``callback(time)`` every ``interval``."""
        loop = Loop(self, callback, interval, start)
        self._loops.append(loop)
        return loop

    def start(self):
        if self.state == "started":
            return
        self._origin_frame = self.context.frame
        self.state = "started"
        logger.debug("Transport started at %.1f bpm", self._bpm)

    def stop(self):
        """Halt and rewind to 0."""
        if self.state == "stopped":
            return
        self.state = "stopped"
        for loop in self._loops:
            loop.rewind()
        logger.debug("Transport stopped")

    def advance(self, frames: int):
        """Dispatch ticks due before the end of the next ``frames`` plus look-ahead."""
        if self.state != "started":
            return
        sr = self.context.sample_rate
        block_end = (self.context.frame + frames - self._origin_frame) / sr
        horizon = block_end + self.lookahead
        for loop in list(self._loops):
            loop._dispatch_until(horizon)

    def _invoke(self, loop: Loop, tick_time: float):
        if loop.disposed:
            return
        loop.callback(self.to_context_time(tick_time))

    def _remove(self, loop: Loop):
        if loop in self._loops:
            self._loops.remove(loop)
