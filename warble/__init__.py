"""
Warble - Acoustic data modem.
Sends short fixed-length payloads as Hamming(12,8) protected multi-tone words,
preceded by a pure-tone synchronization chirp.
"""

__version__ = "0.1.0"

# Protocol constants
NUM_FREQUENCIES = 12  # one tone pair per Hamming(12,8) code bit
WINDOW_OFFSET_DENOMINATOR = 4  # chirp search step = word length / 4
DOOR_CHECK = ord("W")  # validation word sent right after the chirp
SNR_FLOOR = 1e-12  # levels are clamped to this before taking ratios

# Default timing and thresholds
SAMPLE_RATE = 44100  # Hz (default)
WORD_TIME = 0.1  # seconds per word
TRIGGER_SNR = 10.0  # dB, tone over uptone level to read a bit as 1
PEAK_RATIO = 0.5  # chirp peaks must reach this fraction of the maximum

# Tone tables
AUDIBLE_FIRST_FREQUENCY = 1760.0  # Hz
SEMITONE = 2 ** (1 / 12.0)
ULTRASONIC_FIRST_FREQUENCY = 18000.0  # Hz
ULTRASONIC_INCREMENT = 170.0  # Hz

from .config import Configuration
from .hamming import CorrectResult, CorrectResultCode
from .spectrum import generalized_goertzel, snr_db, tone_table
from .buffer import SampleRing
from .encoder import WarbleEncoder, generate_pitch
from .decoder import (
    WarbleDecoder,
    MessageCallback,
    PitchEvent,
    MessageEvent,
    ErrorEvent,
    decode_file,
)

__all__ = [
    "Configuration",
    "CorrectResult",
    "CorrectResultCode",
    "generalized_goertzel",
    "snr_db",
    "tone_table",
    "SampleRing",
    "WarbleEncoder",
    "generate_pitch",
    "WarbleDecoder",
    "MessageCallback",
    "PitchEvent",
    "MessageEvent",
    "ErrorEvent",
    "decode_file",
]
