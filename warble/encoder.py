"""
Warble Encoder - Generates the multi-tone waveform of a message.
"""

import logging
from pathlib import Path
from typing import Optional, Sequence

import numpy as np
import soundfile as sf

from . import DOOR_CHECK, NUM_FREQUENCIES
from . import hamming
from .config import Configuration
from .spectrum import tone_table

_logger = logging.getLogger(__name__)


def generate_pitch(
    signal_out: np.ndarray,
    location: int,
    length: int,
    sample_rate: float,
    frequency: float,
    power_peak: float,
):
    """
    Add a Hann windowed tone burst to a signal, in place.

    The sine phase follows the absolute sample index so that bursts placed
    side by side share one continuous time base.

    Args:
        signal_out: Signal to add the burst to
        location: First sample of the burst
        length: Burst length in samples
        sample_rate: Sample rate (Hz)
        frequency: Tone frequency (Hz)
        power_peak: Peak amplitude of the burst
    """
    index = np.arange(location, location + length)
    window = 0.5 * (1 - np.cos(2 * np.pi * (index - location) / (length - 1)))
    tone = np.sin(index / sample_rate * 2 * np.pi * frequency)
    signal_out[location:location + length] += tone * power_peak * window


def code_to_tones(code: int) -> list[bool]:
    """Tone decisions of a 12-bit code word, True where the bit is 1."""
    return [bool((code >> i) & 1) for i in range(NUM_FREQUENCIES)]


class WarbleEncoder:
    """
    Multi-tone encoder for Warble messages.

    A message is a pure tone chirp on the door frequency, a validation word
    and one word per payload byte. Each word renders the 12 bits of a
    Hamming(12,8) code word at once, bit i on frequencies[i] when set and on
    frequencies_uptone[i] otherwise.
    """

    def __init__(self, configuration: Configuration, word_observer=None):
        """
        Initialize encoder.

        Args:
            configuration: Modem configuration
            word_observer: Optional object with a
                generate_word(value, code, tones) method, told of each word
        """
        self.configuration = configuration
        self.word_observer = word_observer
        self.frequencies, self.frequencies_uptone = tone_table(configuration)
        self.frequency_door = NUM_FREQUENCIES - 1

        self.word_length = configuration.word_length
        self.door_length = configuration.door_length

    def frame_codes(self, payload: bytes) -> list[int]:
        """
        Hamming code words of a message: validation word then payload.

        Args:
            payload: Exactly payload_size bytes

        Returns:
            List of 12-bit code words
        """
        payload = bytes(payload)
        if len(payload) != self.configuration.payload_size:
            raise ValueError(
                f"payload must be {self.configuration.payload_size} bytes, "
                f"got {len(payload)}"
            )

        values = [DOOR_CHECK] + list(payload)
        codes = [hamming.encode(value) for value in values]

        if self.word_observer is not None:
            for value, code in zip(values, codes):
                self.word_observer.generate_word(value, code, code_to_tones(code))

        return codes

    def _render_word(self, signal_out: np.ndarray, location: int, length: int, code: int, power_peak: float):
        sample_rate = self.configuration.sample_rate
        # Twelve simultaneous tones share the peak power
        amplitude = power_peak / NUM_FREQUENCIES
        for i in range(NUM_FREQUENCIES):
            if (code >> i) & 1:
                frequency = self.frequencies[i]
            else:
                frequency = self.frequencies_uptone[i]
            generate_pitch(signal_out, location, length, sample_rate, frequency, amplitude)

    def render(self, codes: Sequence[int], power_peak: float = 1.0) -> np.ndarray:
        """
        Render a chirp followed by the given code words.

        Args:
            codes: 12-bit code words, the first one goes in the door window
            power_peak: Peak amplitude (0.0 to 1.0)

        Returns:
            Array of audio samples
        """
        total = self.door_length * 2 + (len(codes) - 1) * self.word_length
        signal_out = np.zeros(total)

        # Pure tone trigger
        generate_pitch(
            signal_out,
            0,
            self.door_length,
            self.configuration.sample_rate,
            self.frequencies[self.frequency_door],
            power_peak,
        )
        location = self.door_length

        for index, code in enumerate(codes):
            length = self.door_length if index == 0 else self.word_length
            self._render_word(signal_out, location, length, code, power_peak)
            location += length

        return signal_out

    def generate_signal(self, payload: bytes, power_peak: float = 1.0) -> np.ndarray:
        """
        Generate the waveform of one message.

        Args:
            payload: Exactly payload_size bytes
            power_peak: Peak amplitude (0.0 to 1.0)

        Returns:
            Array of message_samples audio samples
        """
        return self.render(self.frame_codes(payload), power_peak)

    def generate_to_file(
        self,
        output_path: str | Path,
        payload: bytes,
        power_peak: float = 0.7,
        padding: float = 0.0,
        repeat: int = 1,
    ):
        """
        Generate and save a message to an audio file.

        Args:
            output_path: Output WAV file path
            payload: Exactly payload_size bytes
            power_peak: Peak amplitude (0.0 to 1.0)
            padding: Silence before and after each message (seconds)
            repeat: Number of times the message is sent
        """
        message = self.generate_signal(payload, power_peak)
        silence = np.zeros(int(padding * self.configuration.sample_rate))

        parts = []
        for _ in range(repeat):
            parts.extend([silence, message])
        parts.append(silence)
        samples = np.concatenate(parts)

        # Save using soundfile (supports various formats)
        sf.write(
            str(output_path),
            samples,
            int(self.configuration.sample_rate),
            subtype='PCM_16'
        )
        _logger.info(
            f"Wrote {len(samples)} samples ({repeat} message(s)) to {output_path}"
        )
