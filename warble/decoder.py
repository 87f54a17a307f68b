"""
Warble Decoder - Streaming demodulation of Warble messages.

Samples are pushed in chunks of any size. The decoder first searches for the
synchronization chirp, then reads one word window at a time relative to the
chirp onset until the whole payload is decoded, and reports what happened as
a list of events.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Optional, Union

import numpy as np

from . import DOOR_CHECK, NUM_FREQUENCIES
from . import hamming
from .buffer import SampleRing
from .config import Configuration
from .hamming import CorrectResultCode
from .spectrum import generalized_goertzel, snr_db, tone_table

# Module-level logger
_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PitchEvent:
    """Chirp detected (sample_index is the onset) or a word decoded."""

    sample_index: int


@dataclass(frozen=True)
class MessageEvent:
    """Complete payload decoded from the message starting at trigger_index."""

    payload: bytes
    trigger_index: int


@dataclass(frozen=True)
class ErrorEvent:
    """Synchronization lost or a word could not be decoded."""

    processed_samples: int


Event = Union[PitchEvent, MessageEvent, ErrorEvent]


class MessageCallback:
    """
    Receiver of decoder events. Subclass and override what you need.

    Methods are called synchronously, in order, from within push().
    """

    def on_pitch(self, sample_index: int):
        pass

    def on_new_message(self, payload: bytes, trigger_index: int):
        pass

    def on_error(self, processed_samples: int):
        pass


@dataclass
class Searching:
    """
    Looking for the chirp.

    history holds the door over uptone ratio (dB) of the most recent search
    windows. corrected_errors is kept from the last synchronized session.
    """

    history: deque
    corrected_errors: int = 0


@dataclass
class Synchronized:
    """Reading words of the message whose chirp starts at trigger."""

    trigger: int
    parsed: bytearray
    cursor: int = 0
    corrected_errors: int = 0


SessionState = Union[Searching, Synchronized]


def count_peaks(history, peak_ratio: float) -> tuple[int, int]:
    """
    Locate the strongest reading of the gate history and count its rivals.

    A peak is a change of direction whose turning value has the sign of the
    strongest reading and a magnitude above ``max * peak_ratio``.

    Args:
        history: Ratios in dB, oldest first
        peak_ratio: Fraction of the maximum a turning value must exceed

    Returns:
        Tuple of (max_index, peak_count)
    """
    values = np.asarray(history, dtype=np.float64)
    magnitudes = np.abs(values)
    max_index = int(np.argmax(magnitudes))
    max_value = magnitudes[max_index]
    negative = values[max_index] < 0

    peak_count = 0
    increase = False
    for i in range(1, len(values)):
        delta = values[i] - values[i - 1]
        if (delta > 0 and not increase) or (delta < 0 and increase):
            previous = values[i - 1]
            if (previous < 0) == negative and abs(previous) > max_value * peak_ratio:
                peak_count += 1
        increase = delta > 0

    return max_index, peak_count


class WarbleDecoder:
    """
    Streaming Warble decoder.

    Not thread safe: push() mutates the ring and the session in place.
    """

    def __init__(
        self,
        configuration: Configuration,
        callback: Optional[MessageCallback] = None,
        word_observer=None,
    ):
        """
        Initialize decoder.

        Args:
            configuration: Modem configuration
            callback: Optional MessageCallback told of every event
            word_observer: Optional object with a
                detect_word(value, code, tones) method, told of each word read
        """
        self.configuration = configuration
        self.callback = callback
        self.word_observer = word_observer

        self.frequencies, self.frequencies_uptone = tone_table(configuration)
        door = NUM_FREQUENCIES - 1
        self._door_frequencies = [self.frequencies[door], self.frequencies_uptone[door]]

        self.word_length = configuration.word_length
        self.door_length = configuration.door_length
        self.window_offset = configuration.window_offset

        self._ring = SampleRing(self.door_length * 3)
        self._history_length = self._ring.capacity // self.window_offset
        self._processed = 0
        self.state: SessionState = self._new_search()

    def _new_search(self, corrected_errors: int = 0) -> Searching:
        history = deque([0.0] * self._history_length, maxlen=self._history_length)
        return Searching(history, corrected_errors)

    @property
    def pushed_samples(self) -> int:
        return self._ring.pushed

    @property
    def processed_samples(self) -> int:
        return self._processed

    @property
    def synchronized(self) -> bool:
        return isinstance(self.state, Synchronized)

    @property
    def trigger_sample_index(self) -> int:
        """Absolute index of the chirp onset, -1 while searching."""
        if isinstance(self.state, Synchronized):
            return self.state.trigger
        return -1

    @property
    def corrected_errors(self) -> int:
        """Words repaired by Hamming decoding since the last chirp."""
        return self.state.corrected_errors

    def max_push_samples_length(self) -> int:
        """
        Largest chunk the next push() can take without skipping a window.
        """
        pending = self._ring.pushed - self._processed
        if isinstance(self.state, Searching):
            room = self.door_length + self.window_offset - pending
            return min(self._ring.capacity, room)
        return min(self.word_length, self.word_length - pending)

    def push(self, samples) -> list[Event]:
        """
        Process incoming audio samples.

        Args:
            samples: Audio samples (float, same scale as the encoder output)

        Returns:
            Events raised by these samples, in order
        """
        if self._ring.push(samples) == 0:
            return []

        pending = self._ring.pushed - self._processed
        if isinstance(self.state, Searching):
            ready = pending >= self.window_offset
        else:
            ready = pending >= self.word_length

        events: list[Event] = []
        while ready:
            event = self._step()
            if event is not None:
                events.append(event)
            ready = isinstance(event, (PitchEvent, MessageEvent))

        if self.callback is not None:
            for event in events:
                self._dispatch(event)

        return events

    def _dispatch(self, event: Event):
        if isinstance(event, PitchEvent):
            self.callback.on_pitch(event.sample_index)
        elif isinstance(event, MessageEvent):
            self.callback.on_new_message(event.payload, event.trigger_index)
        else:
            self.callback.on_error(event.processed_samples)

    def _step(self) -> Optional[Event]:
        if isinstance(self.state, Searching):
            return self._search(self.state)
        event = self._read_word(self.state)
        # A synchronized step consumes everything pushed so far
        self._processed = self._ring.pushed
        return event

    def _search(self, state: Searching) -> Optional[Event]:
        if self._processed < self._ring.oldest:
            # Caller pushed more than max_push_samples_length()
            _logger.debug(
                f"Search skipped {self._ring.oldest - self._processed} dropped samples"
            )
            self._processed = self._ring.oldest

        while self._processed + self.door_length < self._ring.pushed:
            window = self._ring.window(self._processed, self.door_length)
            levels = generalized_goertzel(
                window, self.configuration.sample_rate, self._door_frequencies
            )
            state.history.append(snr_db(levels[0], levels[1]))
            self._processed += self.window_offset

        max_index, peak_count = count_peaks(
            state.history, self.configuration.convolution_peak_ratio
        )
        # The chirp tail must have been swept before trusting the peak
        behind = (self._history_length - max_index) * self.window_offset
        if peak_count != 1 or behind < self.door_length // 2:
            return None

        trigger = self._processed - behind
        self.state = Synchronized(
            trigger=trigger,
            parsed=bytearray(self.configuration.payload_size),
        )
        _logger.debug(f"Chirp detected at sample {trigger}")
        return PitchEvent(trigger)

    def _lose_sync(self, state: Synchronized, reason: str) -> ErrorEvent:
        _logger.debug(f"Message at sample {state.trigger} dropped: {reason}")
        self.state = self._new_search(state.corrected_errors)
        return ErrorEvent(self._ring.pushed)

    def _read_word(self, state: Synchronized) -> Optional[Event]:
        target = state.trigger + self.door_length + state.cursor * self.word_length

        if target < self._ring.oldest:
            return self._lose_sync(state, f"word {state.cursor} left the buffer")

        if target + self.word_length > self._ring.pushed:
            # Window not complete yet
            return None

        window = self._ring.window(target, self.word_length)
        sample_rate = self.configuration.sample_rate
        levels = generalized_goertzel(window, sample_rate, self.frequencies)
        levels_uptone = generalized_goertzel(window, sample_rate, self.frequencies_uptone)

        tones = [
            snr_db(levels[i], levels_uptone[i]) >= self.configuration.trigger_snr
            for i in range(NUM_FREQUENCIES)
        ]
        code = 0
        for i, tone in enumerate(tones):
            if tone:
                code |= 1 << i

        result = hamming.decode(code)
        if self.word_observer is not None:
            self.word_observer.detect_word(result.value, code, tones)

        if result.result == CorrectResultCode.FAIL_CORRECTION:
            return self._lose_sync(state, f"word {state.cursor} uncorrectable ({code:03x})")

        if result.result == CorrectResultCode.CORRECTED_ERROR:
            state.corrected_errors += 1

        if state.cursor == 0:
            if result.value != DOOR_CHECK:
                return self._lose_sync(
                    state, f"validation word mismatch ({result.value:#04x})"
                )
            state.cursor += 1
            return PitchEvent(state.trigger + state.cursor * self.word_length)

        state.parsed[state.cursor - 1] = result.value
        state.cursor += 1
        if state.cursor == self.configuration.payload_size + 1:
            payload = bytes(state.parsed)
            _logger.debug(
                f"Message decoded at sample {state.trigger} "
                f"({state.corrected_errors} corrected word(s))"
            )
            self.state = self._new_search(state.corrected_errors)
            return MessageEvent(payload, state.trigger)

        return PitchEvent(state.trigger + state.cursor * self.word_length)


def decode_file(
    file_path: str,
    configuration: Configuration,
    channel: int = 0,
) -> list[tuple[float, bytes]]:
    """
    Decode Warble messages from an audio file.

    Args:
        file_path: Path to audio file
        configuration: Modem configuration (its sample rate is the target rate)
        channel: Channel to decode for multi-channel files

    Returns:
        List of (time_seconds, payload) tuples
    """
    import soundfile as sf

    samples, sr = sf.read(file_path, dtype='float64')
    if samples.ndim > 1:
        samples = samples[:, channel]

    sample_rate = configuration.sample_rate
    # Resample if needed
    if sr != sample_rate:
        from scipy import signal
        num_samples = int(len(samples) * sample_rate / sr)
        samples = signal.resample(samples, num_samples)
        _logger.info(f"Resampled {file_path} from {sr} Hz to {sample_rate} Hz")

    decoder = WarbleDecoder(configuration)
    results = []
    position = 0
    while position < len(samples):
        chunk_length = decoder.max_push_samples_length()
        for event in decoder.push(samples[position:position + chunk_length]):
            if isinstance(event, MessageEvent):
                results.append((event.trigger_index / sample_rate, event.payload))
        position += chunk_length

    _logger.info(f"Decoded {len(results)} message(s) from {file_path}")
    return results
