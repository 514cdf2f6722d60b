"""Real-time MIDI input processing."""
import mido
from typing import Optional
from threading import Lock


class MIDIInputHandler:
    """Reads a MIDI input port and hands note messages to a dispatcher.

    Messages are drained by poll_messages(), which the UI calls from its
    timer, so note events reach the Voice Manager on the UI thread in the
    order the device sent them.
    """

    def __init__(self, dispatcher=None):
        self.port: Optional[mido.ports.BaseInput] = None
        self.dispatcher = dispatcher
        self.port_lock = Lock()
        self.device_name: Optional[str] = None

    def open_device(self, device_name: str) -> bool:
        """Open a MIDI input device.

        Args:
            device_name: Name of the MIDI device to open.

        Returns:
            True if device opened successfully, False otherwise.
        """
        try:
            self.close_device()
            port = mido.open_input(device_name)
        except Exception as e:
            print(f"Error opening MIDI device: {e}")
            return False
        with self.port_lock:
            self.port = port
            self.device_name = device_name
        return True

    def close_device(self):
        """Close the current MIDI input device."""
        with self.port_lock:
            if self.port:
                try:
                    self.port.close()
                except Exception as e:
                    print(f"Error closing MIDI device: {e}")
                finally:
                    self.port = None
                    self.device_name = None

    def poll_messages(self) -> int:
        """Poll for pending MIDI messages (non-blocking).

        Returns:
            Number of note messages forwarded to the dispatcher.
        """
        with self.port_lock:
            port = self.port
        if not port or self.dispatcher is None:
            return 0

        handled = 0
        try:
            for msg in port.iter_pending():
                if self.dispatcher.handle_message(msg):
                    handled += 1
        except Exception as e:
            print(f"Error polling MIDI messages: {e}")
        return handled

    def is_device_open(self) -> bool:
        """Check if a MIDI device is currently open."""
        return self.port is not None
