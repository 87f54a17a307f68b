"""
Live audio input and output for Warble.
"""

import logging
import queue
import time
from typing import Callable, Optional

import numpy as np
import sounddevice as sd

from .config import Configuration
from .decoder import WarbleDecoder, MessageEvent, ErrorEvent

_logger = logging.getLogger(__name__)


def play_signal(samples: np.ndarray, sample_rate: float, device: Optional[int] = None):
    """Play samples on an output device and wait until done."""
    sd.play(samples.astype(np.float32), int(sample_rate), device=device)
    sd.wait()


class LiveDecoder:
    """
    Real-time Warble decoder from audio input.

    The engine runs inside the sounddevice callback; decoded payloads are
    handed over through a queue.
    """

    def __init__(
        self,
        configuration: Configuration,
        callback: Optional[Callable[[bytes], None]] = None,
        device: Optional[int] = None,
        channel: int = 0,
    ):
        """
        Initialize decoder.

        Args:
            configuration: Modem configuration
            callback: Optional callback for each decoded payload, called from
                the audio thread
            device: Audio input device (None = default)
            channel: Audio channel to listen to (0 = first/left)
        """
        self.configuration = configuration
        self.callback = callback
        self.device = device
        self.channel = channel

        self.decoder = WarbleDecoder(configuration)
        self.messages: queue.Queue = queue.Queue()

        # Audio stream
        self.stream: Optional[sd.InputStream] = None

        # Statistics
        self.messages_received = 0
        self.errors = 0
        self.last_message_time: Optional[float] = None

    def _audio_callback(self, indata: np.ndarray, frames, time_info, status):
        """
        Called by sounddevice for each audio block.
        """
        try:
            self._feed(indata, status)
        except Exception as e:
            # Audio callback must not raise
            _logger.error(f"Error in audio callback: {e}")

    def _feed(self, indata: np.ndarray, status):
        if status:
            _logger.warning(f"Audio status: {status}")

        samples = indata[:, self.channel].astype(np.float64)

        # Respect the decoder's chunk limit so no window is skipped
        position = 0
        while position < len(samples):
            chunk_length = self.decoder.max_push_samples_length()
            for event in self.decoder.push(samples[position:position + chunk_length]):
                self._handle_event(event)
            position += chunk_length

    def _handle_event(self, event):
        if isinstance(event, MessageEvent):
            self.messages_received += 1
            self.last_message_time = time.time()
            self.messages.put(event.payload)
            if self.callback:
                self.callback(event.payload)
        elif isinstance(event, ErrorEvent):
            self.errors += 1

    def start(self):
        """Start decoding from audio input."""
        if self.stream is not None:
            return  # Already running

        self.stream = sd.InputStream(
            device=self.device,
            channels=self.channel + 1,
            samplerate=self.configuration.sample_rate,
            callback=self._audio_callback,
            blocksize=self.configuration.window_offset,
        )
        self.stream.start()
        _logger.info(
            f"Listening on device {self.device if self.device is not None else 'default'}, "
            f"channel {self.channel}"
        )

    def stop(self):
        """Stop decoding."""
        if self.stream is not None:
            self.stream.stop()
            self.stream.close()
            self.stream = None

    def get_message(self, timeout: Optional[float] = None) -> Optional[bytes]:
        """
        Wait for the next decoded payload.

        Returns:
            Payload bytes, or None on timeout
        """
        try:
            return self.messages.get(timeout=timeout)
        except queue.Empty:
            return None

    def get_statistics(self) -> dict:
        """
        Get decoder statistics.

        Returns:
            Dict with: messages_received, errors, corrected_errors, synchronized
        """
        return {
            "messages_received": self.messages_received,
            "errors": self.errors,
            "corrected_errors": self.decoder.corrected_errors,
            "synchronized": self.decoder.synchronized,
        }
