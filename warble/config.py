"""
Warble modem configuration.
"""

import math
from dataclasses import dataclass

from . import (
    NUM_FREQUENCIES,
    WINDOW_OFFSET_DENOMINATOR,
    SAMPLE_RATE,
    WORD_TIME,
    TRIGGER_SNR,
    PEAK_RATIO,
    AUDIBLE_FIRST_FREQUENCY,
    SEMITONE,
    ULTRASONIC_FIRST_FREQUENCY,
    ULTRASONIC_INCREMENT,
)


@dataclass(frozen=True)
class Configuration:
    """
    Immutable modem parameters shared by the encoder and the decoder.

    Exactly one tone spacing rule is active: a linear ``frequency_increment``
    or a geometric ``frequency_multi``. The other one must be left at 0.

    Attributes:
        payload_size: Number of payload bytes per message
        sample_rate: Audio sample rate (Hz)
        first_frequency: Lowest tone of the table (Hz)
        frequency_increment: Linear spacing between consecutive tones (Hz)
        frequency_multi: Geometric ratio between consecutive tones
        word_time: Duration of one word (seconds)
        trigger_snr: Tone over uptone level (dB) above which a bit reads as 1
        convolution_peak_ratio: Fraction of the strongest chirp reading a
            secondary peak must exceed to be counted
    """

    payload_size: int
    sample_rate: float = SAMPLE_RATE
    first_frequency: float = AUDIBLE_FIRST_FREQUENCY
    frequency_increment: float = 0.0
    frequency_multi: float = SEMITONE
    word_time: float = WORD_TIME
    trigger_snr: float = TRIGGER_SNR
    convolution_peak_ratio: float = PEAK_RATIO

    def __post_init__(self):
        if self.payload_size <= 0:
            raise ValueError("payload_size must be positive")
        if self.sample_rate <= 0:
            raise ValueError("sample_rate must be positive")
        if self.first_frequency <= 0:
            raise ValueError("first_frequency must be positive")
        if (self.frequency_increment != 0) == (self.frequency_multi != 0):
            raise ValueError(
                "exactly one of frequency_increment and frequency_multi must be set"
            )
        if self.word_length < WINDOW_OFFSET_DENOMINATOR:
            raise ValueError("word_time is too short for the sample rate")
        if self.top_frequency >= self.sample_rate / 2:
            raise ValueError(
                f"highest tone {self.top_frequency:.0f} Hz is above Nyquist "
                f"({self.sample_rate / 2:.0f} Hz)"
            )

    @property
    def top_frequency(self) -> float:
        """Highest frequency of the interleaved tone progression (Hz)."""
        steps = NUM_FREQUENCIES * 2 - 1
        if self.frequency_increment != 0:
            return self.first_frequency + steps * self.frequency_increment
        return self.first_frequency * self.frequency_multi ** steps

    @property
    def word_length(self) -> int:
        """Samples per word."""
        return int(self.sample_rate * self.word_time)

    @property
    def door_length(self) -> int:
        """Samples of the chirp and of the validation word."""
        return self.word_length

    @property
    def window_offset(self) -> int:
        """Step (samples) between two chirp search windows."""
        return int(math.ceil(self.word_length / WINDOW_OFFSET_DENOMINATOR))

    @property
    def message_samples(self) -> int:
        """Total samples of an encoded message (chirp + validation + payload)."""
        return self.door_length * 2 + self.payload_size * self.word_length

    @classmethod
    def audible(cls, payload_size: int, sample_rate: float = SAMPLE_RATE) -> "Configuration":
        """Semitone spaced tones starting at 1760 Hz."""
        return cls(
            payload_size=payload_size,
            sample_rate=sample_rate,
            first_frequency=AUDIBLE_FIRST_FREQUENCY,
            frequency_increment=0.0,
            frequency_multi=SEMITONE,
        )

    @classmethod
    def ultrasonic(cls, payload_size: int, sample_rate: float = SAMPLE_RATE) -> "Configuration":
        """Linearly spaced tones above 18 kHz."""
        return cls(
            payload_size=payload_size,
            sample_rate=sample_rate,
            first_frequency=ULTRASONIC_FIRST_FREQUENCY,
            frequency_increment=ULTRASONIC_INCREMENT,
            frequency_multi=0.0,
        )

    @classmethod
    def from_preset(
        cls,
        name: str,
        payload_size: int,
        sample_rate: float = SAMPLE_RATE,
    ) -> "Configuration":
        """
        Build a configuration from a preset name.

        Args:
            name: "audible" or "ultrasonic"
            payload_size: Number of payload bytes per message
            sample_rate: Audio sample rate (Hz)

        Returns:
            Configuration for the preset
        """
        presets = {
            "audible": cls.audible,
            "ultrasonic": cls.ultrasonic,
        }
        try:
            factory = presets[name.strip().lower()]
        except KeyError:
            raise ValueError(
                f"unknown preset {name!r}, expected one of {', '.join(presets)}"
            ) from None
        return factory(payload_size, sample_rate)
