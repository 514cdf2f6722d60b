"""Turns pointer, typing-key and MIDI-in events into note-on / note-off calls."""
from typing import Callable, Dict, Optional, Set

from music.notes import is_valid_note
from music.voice_manager import Origin

# Two-row "tracker" layout: bottom row starts at the base note, top row one
# octave higher. Black keys sit on the row above their white neighbours.
LOWER_ROW = "zsxdcvgbhnjm"
UPPER_ROW = "q2w3er5t6y7ui9o0p"


def default_keymap(base_note: int = 48) -> Dict[str, int]:
    """Build the typing-key to note map for a keyboard starting at base_note."""
    keymap = {}
    for offset, key in enumerate(LOWER_ROW):
        keymap[key] = base_note + offset
    for offset, key in enumerate(UPPER_ROW):
        keymap[key] = base_note + 12 + offset
    return {k: n for k, n in keymap.items() if is_valid_note(n)}


class PointerInput:
    """Press / drag / release over the on-screen keyboard.

    Dragging while pressed moves the note with the pointer (legato): the old
    note is released right before the new one starts. Moving over a gap
    between keys keeps the current note.
    """

    def __init__(self, voice_manager, hit_test: Callable[[int, int], Optional[int]]):
        self.voice_manager = voice_manager
        self.hit_test = hit_test
        self.captured = False
        self.last_note: Optional[int] = None

    def press(self, x: int, y: int) -> bool:
        note = self.hit_test(x, y)
        if note is None:
            return False
        if self.captured and self.last_note is not None:
            self.voice_manager.note_off(self.last_note)
        self.captured = True
        self.last_note = note
        self.voice_manager.note_on(note, Origin.POINTER)
        return True

    def move(self, x: int, y: int):
        if not self.captured:
            return
        note = self.hit_test(x, y)
        if note is None or note == self.last_note:
            return
        if self.last_note is not None:
            self.voice_manager.note_off(self.last_note)
        self.last_note = note
        self.voice_manager.note_on(note, Origin.POINTER)

    def release(self):
        if not self.captured:
            return
        self.captured = False
        if self.last_note is not None:
            self.voice_manager.note_off(self.last_note)
            self.last_note = None


class TypingInput:
    """Computer keyboard as a piano keyboard, with auto-repeat suppressed."""

    def __init__(self, voice_manager, keymap: Optional[Dict[str, int]] = None):
        self.voice_manager = voice_manager
        self.keymap = keymap if keymap is not None else default_keymap()
        self.held: Dict[str, int] = {}

    def press(self, key: str) -> bool:
        """Returns True if the key belongs to the keyboard (even when repeated)."""
        note = self.keymap.get(key)
        if note is None:
            return False
        if key in self.held:
            return True
        self.held[key] = note
        self.voice_manager.note_on(note, Origin.TYPING)
        return True

    def release(self, key: str):
        # Release the note that was pressed, even if the keymap moved since
        note = self.held.pop(key, None)
        if note is not None:
            self.voice_manager.note_off(note)

    def release_all(self):
        for key in list(self.held):
            self.release(key)

    def set_keymap(self, keymap: Dict[str, int]):
        self.release_all()
        self.keymap = keymap

    def held_keys(self) -> Set[str]:
        return set(self.held)


class MidiInput:
    """Translates incoming mido messages into Voice Manager calls."""

    def __init__(self, voice_manager):
        self.voice_manager = voice_manager

    def handle_message(self, msg) -> bool:
        """Returns True if the message was a note event."""
        if msg.type == 'note_on' and msg.velocity > 0:
            self.voice_manager.note_on(msg.note, Origin.MIDI_IN)
            return True
        if msg.type == 'note_off' or (msg.type == 'note_on' and msg.velocity == 0):
            self.voice_manager.note_off(msg.note)
            return True
        return False
