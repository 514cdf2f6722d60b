#!/usr/bin/env python3
"""Terminal Piano - Main Entry Point."""
import os
from typing import Callable, Optional

# Note: On Windows, mido will auto-detect available MIDI backends
# We don't force a specific backend to avoid DLL issues

from textual.app import App
from textual.binding import Binding
from textual.containers import Container
from textual.message import Message
from textual.screen import Screen
from textual.widgets import Footer, Header, Static

from config_manager import ConfigManager
from music.synth_engine import SynthEngine

from components.confirmation_dialog import ConfirmationDialog
from modes.config_mode import ConfigMode
from modes.piano_mode import PianoMode

MIDI_POLL_INTERVAL = 0.01


class UiCall(Message):
    """Runs a callable on the UI thread.

    Audio, playback and MIDI threads post these instead of touching widgets.
    Posting never blocks, so it is safe while the voice manager holds its lock.
    """

    def __init__(self, fn: Callable[[], None]):
        super().__init__()
        self.fn = fn


class PianoHelpBar(Static):
    """ABOUTME: Help bar displaying Piano keybinds.
    ABOUTME: Displays the typing keyboard and the transport shortcuts on two lines."""

    def render(self) -> str:
        line1 = "Z-M / Q-P: Play | Tab: Wave | [/]: Volume | ,/.: Release | -/=: Octave | PgUp/PgDn: Instrument"
        line2 = "Ctrl+R: Record | Ctrl+P: Play take | Enter: Play song | Ctrl+S: Stop | Ctrl+L: Labels | SPACE: Panic"
        return f"{line1}\n{line2}"


class MainScreen(Screen):
    """Main screen hosting the piano."""

    CSS = """
    MainScreen {
        layout: vertical;
    }

    #content-area {
        height: 1fr;
        width: 100%;
        align: center middle;
    }

    #piano-help-bar {
        width: 100%;
        height: auto;
        text-align: center;
        color: $text-muted;
        padding: 0;
        margin: 0;
        border-top: solid $accent;
    }
    """

    BINDINGS = [
        Binding("f2", "show_config", "Config", show=True),
        Binding("escape", "quit_app", "Quit", show=True),
    ]

    def __init__(self, app_context):
        super().__init__()
        self.app_context = app_context
        self.piano_mode: Optional[PianoMode] = None

    def compose(self):
        yield Header()
        with Container(id="content-area"):
            pass
        yield PianoHelpBar(id="piano-help-bar")
        yield Footer()

    def on_mount(self):
        self.show_piano()

    def show_piano(self):
        content = self.query_one("#content-area")
        content.remove_children()
        self.piano_mode = self.app_context["create_piano"]()
        content.mount(self.piano_mode)
        self.piano_mode.focus()

    def action_show_config(self):
        """Show config modal."""
        engine: SynthEngine = self.app_context["synth_engine"]
        # Silence any notes held before the device change
        engine.all_off()

        def on_closed(result):
            self.app.update_sub_title()
            self.app.open_selected_devices()
            if self.piano_mode is not None:
                self.piano_mode.focus()

        config = ConfigMode(self.app_context["device_manager"])
        self.app.push_screen(config, on_closed)

    def action_quit_app(self):
        """Quit with confirmation."""
        def check_quit(result):
            if result:
                self.app.exit()

        self.app.push_screen(ConfirmationDialog("Quit Piano?"), check_quit)


class PianoApp(App):
    """Terminal Piano Application."""

    VERSION = "1.0.0"

    def __init__(self, config_manager: Optional[ConfigManager] = None):
        super().__init__()
        self.title = f"Piano v{self.VERSION}"
        self.config_manager = config_manager or ConfigManager()
        self.synth_engine = SynthEngine(
            self.config_manager,
            notify=self._notify_from_engine,
            post=lambda fn: self.post_message(UiCall(fn)),
            on_key_state=self._on_key_state,
        )
        self.device_manager = self.synth_engine.device_manager
        self.main_screen: Optional[MainScreen] = None

        self.app_context = {
            "device_manager": self.device_manager,
            "synth_engine": self.synth_engine,
            "config_manager": self.config_manager,
            "create_piano": self._create_piano_mode,
        }

    def on_mount(self):
        """Called when app mounts."""
        self.synth_engine.start()
        self.open_selected_devices()
        self.set_interval(MIDI_POLL_INTERVAL, self.synth_engine.poll_midi)

        self.main_screen = MainScreen(self.app_context)
        self.push_screen(self.main_screen)
        self.update_sub_title()

    def on_ui_call(self, message: UiCall):
        message.fn()

    def _notify_from_engine(self, message: str, severity: str):
        self.notify(message, severity=severity, timeout=4)

    def _on_key_state(self, key, pressed: bool):
        if self.main_screen is None or self.main_screen.piano_mode is None:
            return
        if isinstance(key, int):
            self.main_screen.piano_mode.set_key_state(key, pressed)

    def open_selected_devices(self):
        """(Re)open the MIDI devices chosen in the config screen."""
        selected_in = self.device_manager.selected_input
        if selected_in and self.synth_engine.midi_in.device_name != selected_in:
            self.synth_engine.open_midi_input(selected_in)
        selected_out = self.device_manager.selected_output
        if selected_out and self.synth_engine.midi_out.device_name != selected_out:
            self.synth_engine.open_midi_output(selected_out)

    def update_sub_title(self):
        """Update sub title with device info."""
        parts = []
        if self.device_manager.selected_input:
            parts.append(f"🎹 In: {self.device_manager.selected_input}")
        if self.device_manager.selected_output:
            parts.append(f"🔊 Out: {self.device_manager.selected_output}")
        if not self.synth_engine.is_available():
            parts.append("⚠ No audio")
        self.sub_title = " | ".join(parts) or "No MIDI devices (press F2 to configure)"

    def _create_piano_mode(self):
        return PianoMode(self.synth_engine)

    def on_unmount(self):
        """Clean up on exit."""
        self.synth_engine.shutdown()
        # Clear the terminal screen
        os.system('cls' if os.name == 'nt' else 'clear')


def main():
    """Main entry point."""
    app = PianoApp()
    app.run()


if __name__ == "__main__":
    main()
