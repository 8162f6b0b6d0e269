"""
Audio layer: pitch and duration helpers, transport, signal graph and output.

The engine lives in :mod:`psychoscope.audio.engine` and is imported from
there (it depends on the condition profiles, which depend on this package).
"""

from psychoscope.audio.context import AudioContext, AudioNode
from psychoscope.audio.notes import duration_to_seconds, note_to_frequency, note_to_midi, transpose_note
from psychoscope.audio.output import AudioOutput, OfflineOutput, SoundDeviceOutput
from psychoscope.audio.synth import Envelope, FeedbackDelay, InstrumentSpec, PolySynth, Reverb
from psychoscope.audio.transport import Loop, Transport
