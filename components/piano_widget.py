"""On-screen piano keyboard with pointer hit-testing."""
from typing import Dict, List, Optional, Set, Tuple

from rich.text import Text
from textual import events
from textual.message import Message
from textual.widgets import Static

from music.notes import NOTE_NAMES, is_black_key, octave_notes


class PianoWidget(Static):
    """Draws the keys for an octave range and maps cells back to notes.

    Geometry (in cells): every white key is WHITE_WIDTH columns wide, with a
    separator in its last column. Black keys are BLACK_WIDTH columns wide,
    centred on the separator they straddle, and occupy the top BLACK_ROWS
    rows. Below that only white keys are hit.
    """

    WHITE_WIDTH = 4
    BLACK_WIDTH = 3
    BLACK_ROWS = 4
    WHITE_ROWS = 5
    LABEL_ROW = BLACK_ROWS + 2

    DEFAULT_CSS = """
    PianoWidget {
        width: auto;
        height: auto;
        min-height: 10;
    }
    """

    class PointerPressed(Message):
        def __init__(self, x: int, y: int):
            super().__init__()
            self.x = x
            self.y = y

    class PointerMoved(Message):
        def __init__(self, x: int, y: int):
            super().__init__()
            self.x = x
            self.y = y

    class PointerReleased(Message):
        pass

    def __init__(self, start_octave: int = 3, end_octave: int = 5, **kwargs):
        # Build the initial layout before super init so the first render has keys
        self.pressed: Set[int] = set()
        self.show_labels = True
        self._white: List[int] = []
        self._black: List[Tuple[int, int]] = []  # (note, first column)
        self._dragging = False
        self._layout(start_octave, end_octave)
        super().__init__(self.render_keys(), **kwargs)

    # ── Layout ───────────────────────────────────────────────────

    def set_range(self, start_octave: int, end_octave: int):
        self._layout(start_octave, end_octave)
        self.pressed = {n for n in self.pressed if n in self.notes}
        self.refresh_keys()

    def _layout(self, start_octave: int, end_octave: int):
        self.start_octave = start_octave
        self.end_octave = end_octave
        self._white = []
        self._black = []
        for note in octave_notes(start_octave, end_octave):
            if is_black_key(note):
                # Straddles the separator of the white key to its left
                separator = len(self._white) * self.WHITE_WIDTH
                self._black.append((note, separator - self.BLACK_WIDTH // 2))
            else:
                self._white.append(note)

    @property
    def notes(self) -> List[int]:
        return sorted(self._white + [n for n, _ in self._black])

    @property
    def key_width(self) -> int:
        return 1 + len(self._white) * self.WHITE_WIDTH

    @property
    def key_height(self) -> int:
        return self.BLACK_ROWS + self.WHITE_ROWS + 1

    def hit_test(self, x: int, y: int) -> Optional[int]:
        """Note under cell (x, y) of the keyboard, or None."""
        if x < 1 or y < 0 or y >= self.key_height - 1 or x >= self.key_width:
            return None
        if y < self.BLACK_ROWS:
            for note, first in self._black:
                if first <= x < first + self.BLACK_WIDTH:
                    return note
        index = (x - 1) // self.WHITE_WIDTH
        if 0 <= index < len(self._white):
            return self._white[index]
        return None

    # ── Rendering ────────────────────────────────────────────────

    def set_key_state(self, note: int, pressed: bool):
        if pressed:
            self.pressed.add(note)
        else:
            self.pressed.discard(note)
        self.refresh_keys()

    def clear_pressed(self):
        self.pressed.clear()
        self.refresh_keys()

    def _cell(self, x: int, y: int) -> Tuple[str, str]:
        bottom = self.key_height - 1
        if y == bottom:
            if x == 0:
                return "└", ""
            if x == self.key_width - 1:
                return "┘", ""
            return ("┴" if x % self.WHITE_WIDTH == 0 else "─"), ""

        if y < self.BLACK_ROWS:
            for note, first in self._black:
                if first <= x < first + self.BLACK_WIDTH:
                    return "▓", ("red" if note in self.pressed else "")

        if x % self.WHITE_WIDTH == 0:
            return "│", ""
        note = self._white[(x - 1) // self.WHITE_WIDTH]
        char = " "
        if self.show_labels and y == self.LABEL_ROW:
            label = NOTE_NAMES[note % 12]
            if label == "C":
                label = f"C{note // 12 - 1}"
            column = (x - 1) % self.WHITE_WIDTH
            if column < len(label):
                char = label[column]
        return char, ("black on red" if note in self.pressed else "")

    def render_keys(self) -> Text:
        text = Text()
        for y in range(self.key_height):
            for x in range(self.key_width):
                char, style = self._cell(x, y)
                text.append(char, style=style or None)
            if y < self.key_height - 1:
                text.append("\n")
        return text

    def refresh_keys(self):
        self.update(self.render_keys())

    def toggle_labels(self) -> bool:
        self.show_labels = not self.show_labels
        if self.is_mounted:
            self.refresh_keys()
        return self.show_labels

    # ── Pointer ──────────────────────────────────────────────────

    def _content_xy(self, event: events.MouseEvent) -> Optional[Tuple[int, int]]:
        offset = event.get_content_offset(self)
        if offset is None:
            return None
        return offset.x, offset.y

    def on_mouse_down(self, event: events.MouseDown):
        xy = self._content_xy(event)
        if xy is None or event.button != 1:
            return
        self._dragging = True
        self.capture_mouse()
        self.post_message(self.PointerPressed(*xy))

    def on_mouse_move(self, event: events.MouseMove):
        if not self._dragging:
            return
        offset = event.get_content_offset_capture(self)
        self.post_message(self.PointerMoved(offset.x, offset.y))

    def on_mouse_up(self, event: events.MouseUp):
        if not self._dragging:
            return
        self._dragging = False
        self.release_mouse()
        self.post_message(self.PointerReleased())
