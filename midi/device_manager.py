"""MIDI device detection and management."""
import mido
import os
import sys
from typing import Callable, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from config_manager import ConfigManager


class MIDIDeviceManager:
    """Enumerates MIDI input and output devices and remembers the selection."""

    def __init__(self, config_manager: 'ConfigManager' = None):
        self.config_manager = config_manager
        self.selected_input: Optional[str] = None
        self.selected_output: Optional[str] = None
        self.last_error: Optional[str] = None

        # Load saved devices from config, verifying they still exist
        if self.config_manager:
            saved_input = self.config_manager.get_midi_input()
            if saved_input and saved_input in self.get_input_devices():
                self.selected_input = saved_input
            saved_output = self.config_manager.get_midi_output()
            if saved_output and saved_output in self.get_output_devices():
                self.selected_output = saved_output

    def _list_devices(self, lister: Callable[[], List[str]]) -> List[str]:
        try:
            # Suppress ALSA error messages to stderr
            stderr_backup = sys.stderr
            with open(os.devnull, 'w') as devnull:
                sys.stderr = devnull
                try:
                    devices = lister()
                finally:
                    sys.stderr = stderr_backup

            self.last_error = None
            return list(devices)
        except Exception as e:
            # Store user-friendly error message
            error_msg = str(e).lower()
            if "no such file" in error_msg and "snd/seq" in error_msg:
                self.last_error = "ALSA sequencer not available. Run: sudo modprobe snd-seq"
            else:
                self.last_error = f"Error: {e}"
            return []

    def get_input_devices(self) -> List[str]:
        """Get list of available MIDI input device names."""
        return self._list_devices(mido.get_input_names)

    def get_output_devices(self) -> List[str]:
        """Get list of available MIDI output device names."""
        return self._list_devices(mido.get_output_names)

    def input_by_index(self, index: int) -> Optional[str]:
        devices = self.get_input_devices()
        return devices[index] if 0 <= index < len(devices) else None

    def output_by_index(self, index: int) -> Optional[str]:
        devices = self.get_output_devices()
        return devices[index] if 0 <= index < len(devices) else None

    def select_input(self, device_name: str) -> bool:
        """Select a MIDI input device.

        Returns:
            True if device is valid and selected, False otherwise.
        """
        if device_name in self.get_input_devices():
            self.selected_input = device_name
            if self.config_manager:
                self.config_manager.set_midi_input(device_name)
            return True
        return False

    def select_output(self, device_name: str) -> bool:
        """Select a MIDI output device.

        Returns:
            True if device is valid and selected, False otherwise.
        """
        if device_name in self.get_output_devices():
            self.selected_output = device_name
            if self.config_manager:
                self.config_manager.set_midi_output(device_name)
            return True
        return False

    def has_devices(self) -> bool:
        """Check if any MIDI input or output device is available."""
        return bool(self.get_input_devices() or self.get_output_devices())
