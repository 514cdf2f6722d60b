"""Exceptions raised by the piano engine."""


class PianoError(Exception):
    """Base class for recoverable engine errors."""


class DeviceUnavailableError(PianoError):
    """An audio or MIDI device could not be opened or used."""


class InvalidConfigurationError(PianoError, ValueError):
    """A setting was rejected; the previous value is kept."""


class MidiFileError(PianoError, OSError):
    """A MIDI file could not be read or written."""


class PlaybackError(PianoError):
    """A song could not be parsed or scheduled."""
