"""
Audio context: sample clock, signal graph and transport.

Nodes are pulled block by block from the destination. Every node has at
most one output, so each node is pulled exactly once per block.
"""

import threading
from typing import List

import numpy as np

from psychoscope.audio.transport import DEFAULT_LOOKAHEAD, Transport

DEFAULT_SAMPLE_RATE = 44100


class AudioNode:
    """Base for anything that produces or processes audio blocks."""

    def __init__(self, context: "AudioContext"):
        self.context = context
        self._inputs: List["AudioNode"] = []
        self._output: "AudioNode | None" = None
        self.disposed = False

    def connect(self, destination: "AudioNode") -> "AudioNode":
        self.disconnect()
        destination._inputs.append(self)
        self._output = destination
        return self

    def disconnect(self):
        if self._output is not None and self in self._output._inputs:
            self._output._inputs.remove(self)
        self._output = None

    def _pull_inputs(self, start: int, frames: int) -> np.ndarray:
        block = np.zeros(frames, dtype=np.float64)
        for node in list(self._inputs):
            block += node.pull(start, frames)
        return block

    def pull(self, start: int, frames: int) -> np.ndarray:
        """Return ``frames`` samples beginning at context frame ``start``."""
        return self._pull_inputs(start, frames)

    def dispose(self):
        self.disconnect()
        for node in list(self._inputs):
            node.disconnect()
        self.disposed = True


class AudioContext:
    """
    Owns the sample clock, the destination bus and the transport.

    ``render`` is the single entry point for output backends. It holds
    ``lock`` for the whole block, so engine operations taking the same lock
    never observe a half-rendered graph.
    """

    def __init__(self, sample_rate: int = DEFAULT_SAMPLE_RATE, lookahead: float = DEFAULT_LOOKAHEAD):
        if sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {sample_rate}")
        self.sample_rate = int(sample_rate)
        self.frame = 0
        self.lock = threading.RLock()
        self.destination = AudioNode(self)
        self.transport = Transport(self, lookahead=lookahead)

    @property
    def current_time(self) -> float:
        return self.frame / self.sample_rate

    def render(self, frames: int) -> np.ndarray:
        """Advance the transport, pull the graph and return a float32 block."""
        with self.lock:
            self.transport.advance(frames)
            block = self.destination.pull(self.frame, frames)
            self.frame += frames
        return np.clip(block, -1.0, 1.0).astype(np.float32)
