"""Note number arithmetic: frequencies, names and key colours."""
import math
from typing import List, Optional

NOTE_NAMES = ['C', 'C#', 'D', 'D#', 'E', 'F', 'F#', 'G', 'G#', 'A', 'A#', 'B']

# Semitone offsets within an octave that sit on black keys
BLACK_KEYS = {1, 3, 6, 8, 10}  # C#, D#, F#, G#, A#

LOWEST_NOTE = 0
HIGHEST_NOTE = 127


def is_valid_note(note) -> bool:
    return isinstance(note, int) and LOWEST_NOTE <= note <= HIGHEST_NOTE


def midi_to_frequency(note: int) -> float:
    """Return the equal-tempered frequency of a note (69 = A4 = 440 Hz)."""
    return 440.0 * (2.0 ** ((note - 69) / 12.0))


def frequency_to_midi(frequency: float) -> int:
    """Return the note number closest to a frequency."""
    if frequency <= 0:
        raise ValueError(f"Frequency must be positive, got {frequency}")
    return int(round(69 + 12 * math.log2(frequency / 440.0)))


def is_black_key(note: int) -> bool:
    return note % 12 in BLACK_KEYS


def note_name(note: int) -> str:
    """Return the scientific pitch name, e.g. 60 -> 'C4'."""
    return f"{NOTE_NAMES[note % 12]}{note // 12 - 1}"


def note_from_name(name: str) -> Optional[int]:
    """Parse a name such as 'C#4' back into a note number.

    Returns:
        The note number, or None when the name is not recognised.
    """
    name = name.strip()
    if len(name) < 2:
        return None
    pitch, octave = name[:-1], name[-1]
    if pitch.endswith('-'):
        # Negative octave, e.g. 'C-1'
        pitch, octave = pitch[:-1], '-' + octave
    if pitch not in NOTE_NAMES:
        return None
    try:
        note = (int(octave) + 1) * 12 + NOTE_NAMES.index(pitch)
    except ValueError:
        return None
    return note if is_valid_note(note) else None


def octave_notes(start_octave: int, end_octave: int) -> List[int]:
    """All note numbers on a keyboard spanning start..end octaves inclusive."""
    first = (start_octave + 1) * 12
    last = (end_octave + 2) * 12
    return [n for n in range(first, last) if is_valid_note(n)]
