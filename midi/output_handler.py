"""MIDI output: mirrors played notes and instrument changes to a MIDI device."""
import mido
from threading import Lock
from typing import Callable, Optional

MIDI_CHANNEL = 0


class MIDIOutputHandler:
    """Serialised access to one MIDI output port.

    All sends go through one lock so messages leave in the order the caller
    issued them. Without an open port every call is a no-op.
    """

    def __init__(self, port=None, on_error: Optional[Callable[[str], None]] = None):
        self.port = port
        self.on_error = on_error
        self.port_lock = Lock()
        self._error_reported = False
        self.device_name: Optional[str] = None

    def open_device(self, device_name: str) -> bool:
        """Open a MIDI output device.

        Args:
            device_name: Name of the MIDI device to open.

        Returns:
            True if device opened successfully, False otherwise.
        """
        try:
            self.close_device()
            port = mido.open_output(device_name)
        except Exception as e:
            print(f"Error opening MIDI output device: {e}")
            return False
        with self.port_lock:
            self.port = port
            self.device_name = device_name
            self._error_reported = False
        return True

    def close_device(self):
        """Close the current MIDI output device."""
        with self.port_lock:
            if self.port:
                try:
                    self.port.close()
                except Exception as e:
                    print(f"Error closing MIDI output device: {e}")
                finally:
                    self.port = None
                    self.device_name = None

    def is_device_open(self) -> bool:
        return self.port is not None

    def send(self, msg) -> bool:
        with self.port_lock:
            if self.port is None:
                return False
            try:
                self.port.send(msg)
                return True
            except Exception as e:
                print(f"Error sending MIDI message: {e}")
                if not self._error_reported and self.on_error:
                    self._error_reported = True
                    self.on_error(f"MIDI output failed: {e}")
                return False

    def note_on(self, note: int, velocity: int = 127) -> bool:
        return self.send(mido.Message('note_on', channel=MIDI_CHANNEL, note=note, velocity=velocity))

    def note_off(self, note: int, velocity: int = 0) -> bool:
        return self.send(mido.Message('note_off', channel=MIDI_CHANNEL, note=note, velocity=velocity))

    def program_change(self, program: int) -> bool:
        return self.send(mido.Message('program_change', channel=MIDI_CHANNEL, program=program))
