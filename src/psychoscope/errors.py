"""Exception hierarchy for the psychoscope engine."""


class PsychoscopeError(Exception):
    """Base error for psychoscope."""


class UnknownConditionError(PsychoscopeError, KeyError):
    """Raised when a condition name is not one of the five known conditions."""

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message.
        return str(self.args[0]) if self.args else ""


class InvalidProfileError(PsychoscopeError, ValueError):
    """Raised when a condition profile carries out-of-range parameters."""


class TrajectoryError(PsychoscopeError, ValueError):
    """Raised when a trajectory generator is called with invalid arguments."""


class ProjectionError(PsychoscopeError, ValueError):
    """Raised when a point cannot be projected (at or behind the focal plane)."""


class AudioInitError(PsychoscopeError, RuntimeError):
    """Raised when the sound output device cannot be acquired."""


class ExportError(PsychoscopeError, RuntimeError):
    """Raised when ffmpeg is missing or fails while encoding a render."""
