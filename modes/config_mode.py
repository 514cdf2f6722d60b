"""MIDI device configuration screen."""
from textual.screen import Screen
from textual.containers import Horizontal, Vertical
from textual.widgets import Header, Footer, ListView, ListItem, Label
from textual.binding import Binding
from typing import TYPE_CHECKING, List

if TYPE_CHECKING:
    from midi.device_manager import MIDIDeviceManager


class ConfigMode(Screen):
    """Screen for choosing the MIDI input and output devices."""

    BINDINGS = [
        Binding("escape", "dismiss", "Close", show=True),
        Binding("r", "refresh_devices", "Refresh", show=True),
        Binding("space", "select", "Select", show=True),
    ]

    CSS = """
    ConfigMode {
        align: center middle;
    }

    #config-container {
        width: 90;
        height: auto;
        border: thick #ffd700;
        background: #1a1a1a;
        padding: 1 2;
    }

    #title {
        width: 100%;
        content-align: center middle;
        text-style: bold;
        color: #ffd700;
        margin-bottom: 1;
    }

    #lists {
        height: auto;
    }

    .device-column {
        width: 1fr;
        height: auto;
    }

    .device-list {
        width: 100%;
        height: 12;
        border: solid #ffd700;
        margin: 1 1;
    }

    #instructions {
        width: 100%;
        content-align: center middle;
        color: #888888;
        text-style: italic;
        margin-top: 1;
    }

    #selected-device {
        width: 100%;
        content-align: center middle;
        color: #00ff00;
        margin-top: 1;
    }
    """

    def __init__(self, device_manager: 'MIDIDeviceManager'):
        super().__init__()
        self.device_manager = device_manager
        self.inputs: List[str] = []
        self.outputs: List[str] = []

    def compose(self):
        yield Header()
        with Vertical(id="config-container"):
            yield Label("🎹 MIDI Device Configuration", id="title")
            with Horizontal(id="lists"):
                with Vertical(classes="device-column"):
                    yield Label("Input (keyboard)")
                    yield ListView(id="input-list", classes="device-list")
                with Vertical(classes="device-column"):
                    yield Label("Output (synth)")
                    yield ListView(id="output-list", classes="device-list")
            yield Label("", id="selected-device")
            yield Label(
                "↑↓: Navigate | Tab: Switch list | Space: Select | R: Refresh | Esc: Close",
                id="instructions"
            )
        yield Footer()

    def on_mount(self):
        self.refresh_device_list()
        self.query_one("#input-list", ListView).focus()

    def _fill(self, list_view: ListView, devices: List[str], selected):
        list_view.clear()
        if not devices:
            if self.device_manager.last_error:
                list_view.append(ListItem(Label("❌ " + self.device_manager.last_error, markup=False)))
            else:
                list_view.append(ListItem(Label("No MIDI devices found")))
            return
        for device in devices:
            mark = "☑" if device == selected else "☐"
            list_view.append(ListItem(Label(f"{mark} {device}", markup=False)))

    def refresh_device_list(self):
        self.inputs = self.device_manager.get_input_devices()
        self.outputs = self.device_manager.get_output_devices()
        self._fill(self.query_one("#input-list", ListView), self.inputs,
                   self.device_manager.selected_input)
        self._fill(self.query_one("#output-list", ListView), self.outputs,
                   self.device_manager.selected_output)
        self.update_selected_display()

    def update_selected_display(self):
        label = self.query_one("#selected-device", Label)
        label.update(
            f"In: {self.device_manager.selected_input or 'None'} | "
            f"Out: {self.device_manager.selected_output or 'None'}"
        )

    def action_refresh_devices(self):
        self.refresh_device_list()
        self.app.notify("Device list refreshed")

    def action_select(self):
        """Select the highlighted device in the focused list."""
        focused = self.focused
        if not isinstance(focused, ListView) or focused.index is None:
            return
        if focused.id == "input-list":
            devices, select = self.inputs, self.device_manager.select_input
        else:
            devices, select = self.outputs, self.device_manager.select_output
        if not 0 <= focused.index < len(devices):
            return

        device = devices[focused.index]
        if select(device):
            self.app.notify(f"✓ Selected: {device}")
        else:
            self.app.notify(f"✗ Failed to select: {device}", severity="error")
        self.refresh_device_list()

    def on_list_view_selected(self, event: ListView.Selected):
        self.action_select()
