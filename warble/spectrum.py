"""
Tone table and spectral level estimation.

Levels are computed with the Goertzel algorithm generalized to non-integer
multiples of the fundamental frequency:

    Sysel and Rajmic, "Goertzel algorithm generalized to non-integer multiples
    of fundamental frequency", EURASIP Journal on Advances in Signal
    Processing 2012, 2012:56.
"""

from typing import Optional, Sequence, Tuple

import numpy as np
from scipy import signal

from . import NUM_FREQUENCIES, SNR_FLOOR


def tone_table(configuration) -> Tuple[np.ndarray, np.ndarray]:
    """
    Compute the tone frequencies for a configuration.

    Tones are taken from one interleaved progression: even steps carry the
    bit=1 tones, odd steps the uptone (bit=0 / reference) tones.

    Args:
        configuration: Modem configuration

    Returns:
        Tuple of (frequencies, frequencies_uptone), 12 entries each
    """
    steps = np.arange(NUM_FREQUENCIES) * 2
    first = configuration.first_frequency
    if configuration.frequency_increment != 0:
        increment = configuration.frequency_increment
        return first + steps * increment, first + (steps + 1) * increment
    multi = configuration.frequency_multi
    return first * multi ** steps, first * multi ** (steps + 1)


def _exp(x: float) -> complex:
    # cos(x) - i sin(x), the phase correction rotates backward
    return complex(np.cos(x), -np.sin(x))


def generalized_goertzel(
    samples: np.ndarray,
    sample_rate: float,
    frequencies: Sequence[float],
    start: int = 0,
    length: Optional[int] = None,
) -> np.ndarray:
    """
    Compute the RMS level of each frequency over a window of samples.

    Args:
        samples: Audio samples
        sample_rate: Sampling rate in Hz
        frequencies: Frequencies to measure (Hz), need not fall on DFT bins
        start: First sample of the window
        length: Window length (default: up to the end of samples)

    Returns:
        Array with one level per frequency, normalized by the window length
    """
    if length is None:
        length = len(samples) - start
    if length < 2:
        raise ValueError("window must hold at least 2 samples")

    window = np.asarray(samples[start:start + length], dtype=np.float64)
    levels = np.zeros(len(frequencies))
    sampling_rate_factor = length / sample_rate

    for index, frequency in enumerate(frequencies):
        pik_term = 2 * np.pi * (frequency * sampling_rate_factor) / length
        cos_pik_term2 = np.cos(pik_term) * 2

        # s0 = x[n] + 2cos(theta) * s1 - s2 over the whole window
        state = signal.lfilter([1.0], [1.0, -cos_pik_term2, 1.0], window)
        s0 = state[-1]
        s1 = state[-2]

        # Substitutes the last iteration and corrects the phase for
        # non-integer frequencies at the same time
        y = (s0 - s1 * _exp(pik_term)) * _exp(pik_term * (length - 1))
        levels[index] = np.sqrt((y.real * y.real + y.imag * y.imag) * 2) / length

    return levels


def snr_db(level: float, reference: float) -> float:
    """
    Level over reference ratio in dB.

    Both levels are clamped to SNR_FLOOR first, so silence reads 0 dB instead
    of dividing by zero. The floor is a noise guard, not a precision bound.
    """
    level = max(level, SNR_FLOOR)
    reference = max(reference, SNR_FLOOR)
    return float(10 * np.log10(level / reference))


def compute_rms(samples: np.ndarray) -> float:
    """Root mean square of a block of samples."""
    samples = np.asarray(samples, dtype=np.float64)
    if len(samples) == 0:
        return 0.0
    return float(np.sqrt(np.mean(samples ** 2)))
