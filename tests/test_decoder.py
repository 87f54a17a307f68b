"""
Tests for the streaming Warble decoder.
"""

import numpy as np
import pytest

from warble import (
    Configuration,
    WarbleEncoder,
    WarbleDecoder,
    MessageCallback,
    PitchEvent,
    MessageEvent,
    ErrorEvent,
    decode_file,
)
from warble import hamming
from warble.decoder import count_peaks, Searching, Synchronized


PAYLOAD = b"Warble!\x00"


def feed(decoder: WarbleDecoder, samples: np.ndarray) -> list:
    """Push samples in the largest chunks the decoder accepts."""
    events = []
    position = 0
    while position < len(samples):
        chunk_length = decoder.max_push_samples_length()
        events.extend(decoder.push(samples[position:position + chunk_length]))
        position += chunk_length
    return events


def with_silence(configuration: Configuration, message: np.ndarray, lead: int) -> np.ndarray:
    """Surround a message with silence (lead samples before, two words after)."""
    tail = np.zeros(configuration.word_length * 2)
    return np.concatenate([np.zeros(lead), message, tail])


def messages(events):
    return [event for event in events if isinstance(event, MessageEvent)]


def errors(events):
    return [event for event in events if isinstance(event, ErrorEvent)]


class RecordingCallback(MessageCallback):
    def __init__(self):
        self.calls = []

    def on_pitch(self, sample_index):
        self.calls.append(("pitch", sample_index))

    def on_new_message(self, payload, trigger_index):
        self.calls.append(("message", payload, trigger_index))

    def on_error(self, processed_samples):
        self.calls.append(("error", processed_samples))


class RecordingObserver:
    def __init__(self):
        self.words = []

    def detect_word(self, value, code, tones):
        self.words.append((value, code, tones))


@pytest.fixture
def configuration():
    return Configuration.audible(len(PAYLOAD))


@pytest.fixture
def encoder(configuration):
    return WarbleEncoder(configuration)


class TestCountPeaks:
    """Test the single peak rule of the chirp gate."""

    def test_single_peak(self):
        max_index, peak_count = count_peaks([0, 0, 5, 20, 50, 18, 4, 0], 0.5)
        assert max_index == 4
        assert peak_count == 1

    def test_two_peaks(self):
        """A second reading above the ratio makes the chirp ambiguous."""
        max_index, peak_count = count_peaks([0, 50, 10, 40, 10, 0], 0.5)
        assert max_index == 1
        assert peak_count == 2

    def test_small_rival_ignored(self):
        _, peak_count = count_peaks([0, 50, 10, 20, 10, 0], 0.5)
        assert peak_count == 1

    def test_opposite_sign_ignored(self):
        """Turns on the other side of zero do not compete with the maximum."""
        max_index, peak_count = count_peaks([0, 50, 0, -45, 0], 0.5)
        assert max_index == 1
        assert peak_count == 1

    def test_negative_maximum(self):
        max_index, peak_count = count_peaks([0, -10, -60, -10, 0], 0.5)
        assert max_index == 2
        assert peak_count == 1

    def test_silence(self):
        assert count_peaks([0.0] * 8, 0.5) == (0, 0)


class TestDecoderInit:
    """Test decoder state at rest."""

    def test_initial_state(self, configuration):
        decoder = WarbleDecoder(configuration)
        assert decoder.trigger_sample_index == -1
        assert not decoder.synchronized
        assert isinstance(decoder.state, Searching)
        assert decoder.word_length == 4410
        assert decoder.door_length == 4410
        assert decoder.corrected_errors == 0
        assert decoder.pushed_samples == 0
        assert decoder.processed_samples == 0
        assert decoder.max_push_samples_length() == 4410 + 1103


class TestRoundTrip:
    """Encode then stream the waveform back through the decoder."""

    def test_round_trip(self, configuration, encoder):
        lead = configuration.window_offset * 4
        samples = with_silence(configuration, encoder.generate_signal(PAYLOAD), lead)
        decoder = WarbleDecoder(configuration)

        events = feed(decoder, samples)

        found = messages(events)
        assert len(found) == 1
        assert found[0].payload == PAYLOAD
        assert found[0].trigger_index == lead
        assert errors(events) == []
        assert decoder.corrected_errors == 0
        assert decoder.trigger_sample_index == -1

    def test_pitch_events(self, configuration, encoder):
        """One pitch for the chirp, then one per word except the last one."""
        lead = configuration.window_offset * 4
        samples = with_silence(configuration, encoder.generate_signal(PAYLOAD), lead)
        decoder = WarbleDecoder(configuration)

        events = feed(decoder, samples)

        pitches = [event.sample_index for event in events if isinstance(event, PitchEvent)]
        word = configuration.word_length
        assert pitches == [lead + cursor * word for cursor in range(len(PAYLOAD) + 1)]
        assert isinstance(events[-1], MessageEvent)

    def test_unaligned_chirp(self, configuration, encoder):
        """The chirp need not start on a search step."""
        lead = configuration.window_offset * 4 + configuration.window_offset // 4 + 5
        samples = with_silence(configuration, encoder.generate_signal(PAYLOAD), lead)
        decoder = WarbleDecoder(configuration)

        found = messages(feed(decoder, samples))

        assert len(found) == 1
        assert found[0].payload == PAYLOAD
        assert abs(found[0].trigger_index - lead) <= configuration.window_offset

    def test_small_chunks(self, configuration, encoder):
        """Chunk size below the limit does not change the outcome."""
        lead = configuration.window_offset * 4
        samples = with_silence(configuration, encoder.generate_signal(PAYLOAD), lead)
        decoder = WarbleDecoder(configuration)

        events = []
        for start in range(0, len(samples), 500):
            events.extend(decoder.push(samples[start:start + 500]))

        found = messages(events)
        assert [event.payload for event in found] == [PAYLOAD]

    def test_ultrasonic(self):
        configuration = Configuration.ultrasonic(4)
        encoder = WarbleEncoder(configuration)
        lead = configuration.window_offset * 4
        samples = with_silence(configuration, encoder.generate_signal(b"\x01\x02\xfe\xff"), lead)

        found = messages(feed(WarbleDecoder(configuration), samples))

        assert [event.payload for event in found] == [b"\x01\x02\xfe\xff"]

    def test_consecutive_messages(self, configuration, encoder):
        lead = configuration.window_offset * 4
        first = with_silence(configuration, encoder.generate_signal(PAYLOAD), lead)
        second = with_silence(configuration, encoder.generate_signal(b"\x00" * 8), lead)
        decoder = WarbleDecoder(configuration)

        events = feed(decoder, first)
        events += feed(decoder, second)

        assert [event.payload for event in messages(events)] == [PAYLOAD, b"\x00" * 8]

    def test_back_to_back_messages(self):
        """The last word read skips what follows it, so a joined chirp is lost."""
        configuration = Configuration.audible(3)
        encoder = WarbleEncoder(configuration)
        samples = np.concatenate([
            np.zeros(2000),
            encoder.generate_signal(b"abc"),
            encoder.generate_signal(b"xyz"),
        ])

        found = messages(feed(WarbleDecoder(configuration), samples))

        assert [event.payload for event in found] == [b"abc"]

    def test_gap_between_messages(self):
        configuration = Configuration.audible(3)
        encoder = WarbleEncoder(configuration)
        gap = np.zeros(configuration.word_length * 2)
        samples = np.concatenate([
            np.zeros(2000),
            encoder.generate_signal(b"abc"),
            gap,
            encoder.generate_signal(b"xyz"),
            gap,
            gap,
        ])

        found = messages(feed(WarbleDecoder(configuration), samples))

        assert [event.payload for event in found] == [b"abc", b"xyz"]


class TestCallbacks:
    """Test event dispatch to a MessageCallback."""

    def test_callback_order(self, configuration, encoder):
        lead = configuration.window_offset * 4
        samples = with_silence(configuration, encoder.generate_signal(PAYLOAD), lead)
        callback = RecordingCallback()
        decoder = WarbleDecoder(configuration, callback=callback)

        feed(decoder, samples)

        assert callback.calls[0] == ("pitch", lead)
        assert callback.calls[-1] == ("message", PAYLOAD, lead)
        assert [call[0] for call in callback.calls].count("message") == 1
        assert "error" not in [call[0] for call in callback.calls]

    def test_word_observer(self, configuration, encoder):
        lead = configuration.window_offset * 4
        samples = with_silence(configuration, encoder.generate_signal(PAYLOAD), lead)
        observer = RecordingObserver()
        decoder = WarbleDecoder(configuration, word_observer=observer)

        feed(decoder, samples)

        values = [value for value, _, _ in observer.words]
        assert values == [ord("W")] + list(PAYLOAD)
        assert observer.words[1][1] == hamming.encode(PAYLOAD[0])


class TestCounters:
    """Test sample counters."""

    def test_monotonic_counters(self, configuration, encoder):
        lead = configuration.window_offset * 4
        samples = with_silence(configuration, encoder.generate_signal(PAYLOAD), lead)
        decoder = WarbleDecoder(configuration)

        last_pushed = last_processed = 0
        rng = np.random.default_rng(7)
        position = 0
        while position < len(samples):
            chunk_length = int(rng.integers(1, decoder.max_push_samples_length() + 1))
            decoder.push(samples[position:position + chunk_length])
            position += chunk_length

            assert decoder.pushed_samples >= last_pushed
            assert decoder.processed_samples >= last_processed
            assert decoder.processed_samples <= decoder.pushed_samples
            last_pushed = decoder.pushed_samples
            last_processed = decoder.processed_samples

        assert decoder.pushed_samples == len(samples)

    def test_max_push_while_synchronized(self, configuration, encoder):
        lead = configuration.window_offset * 4
        samples = with_silence(configuration, encoder.generate_signal(PAYLOAD), lead)
        decoder = WarbleDecoder(configuration)

        # Stop right after the chirp has been found
        feed(decoder, samples[:lead + configuration.door_length * 2])

        assert decoder.synchronized
        assert decoder.max_push_samples_length() <= configuration.word_length


class TestIdle:
    """Test pushes that must not do anything."""

    def test_empty_push(self, configuration):
        callback = RecordingCallback()
        decoder = WarbleDecoder(configuration, callback=callback)

        assert decoder.push(np.zeros(0)) == []
        assert decoder.push([]) == []
        assert callback.calls == []
        assert decoder.trigger_sample_index == -1

    def test_sub_threshold_chunks(self, configuration):
        """Chunks smaller than a search step are only stored."""
        callback = RecordingCallback()
        decoder = WarbleDecoder(configuration, callback=callback)

        for _ in range(10):
            assert decoder.push(np.zeros(100)) == []
        assert decoder.processed_samples == 0
        assert decoder.pushed_samples == 1000
        assert callback.calls == []
        assert decoder.trigger_sample_index == -1

    def test_silence(self, configuration):
        callback = RecordingCallback()
        decoder = WarbleDecoder(configuration, callback=callback)

        assert feed(decoder, np.zeros(configuration.word_length * 10)) == []
        assert callback.calls == []
        assert decoder.trigger_sample_index == -1

    def test_tones_without_chirp(self, configuration, encoder):
        """Words alone, without their chirp, do not produce a message."""
        # No byte decodes to the validation word
        codes = encoder.frame_codes(b"\x10\x20\x30\x40\x50\x60\x70\x01")
        signal = encoder.render(codes)[configuration.door_length:]
        decoder = WarbleDecoder(configuration)

        events = feed(decoder, np.concatenate([np.zeros(4412), signal, np.zeros(8820)]))

        assert messages(events) == []

    def test_payload_starting_with_validation_byte(self, configuration, encoder):
        """
        Without its chirp, the validation word can pass for one.

        The first payload byte then validates and the message decodes shifted
        by one word, padded with the silence that follows.
        """
        assert PAYLOAD[0] == ord("W")
        codes = encoder.frame_codes(PAYLOAD)
        signal = encoder.render(codes)[configuration.door_length:]
        decoder = WarbleDecoder(configuration)

        events = feed(decoder, np.concatenate([np.zeros(4412), signal, np.zeros(8820)]))

        assert [event.payload for event in messages(events)] == [PAYLOAD[1:] + b"\x00"]


class TestErrorCorrection:
    """Test Hamming correction through the decoder."""

    def _decode_codes(self, configuration, encoder, codes):
        lead = configuration.window_offset * 4
        samples = with_silence(configuration, encoder.render(codes), lead)
        decoder = WarbleDecoder(configuration)
        return decoder, feed(decoder, samples)

    def test_single_flipped_tone(self, configuration, encoder):
        codes = encoder.frame_codes(PAYLOAD)
        codes[3] ^= 1 << 5

        decoder, events = self._decode_codes(configuration, encoder, codes)

        assert [event.payload for event in messages(events)] == [PAYLOAD]
        assert decoder.corrected_errors == 1

    def test_one_flip_per_word(self, configuration, encoder):
        codes = encoder.frame_codes(PAYLOAD)
        for index in range(len(codes)):
            codes[index] ^= 1 << (index % 12)

        decoder, events = self._decode_codes(configuration, encoder, codes)

        assert [event.payload for event in messages(events)] == [PAYLOAD]
        assert decoder.corrected_errors == len(codes)

    def test_uncorrectable_word(self, configuration, encoder):
        codes = encoder.frame_codes(PAYLOAD)
        # Syndrome 13 cannot be corrected
        codes[2] ^= (1 << 0) | (1 << 11)

        _, events = self._decode_codes(configuration, encoder, codes)

        assert messages(events) == []
        # Chirp, validation word and first byte are read before the failure
        assert isinstance(events[3], ErrorEvent)

    def test_validation_mismatch(self, configuration, encoder):
        codes = encoder.frame_codes(PAYLOAD)
        codes[0] = hamming.encode(ord("X"))

        _, events = self._decode_codes(configuration, encoder, codes)

        assert messages(events) == []
        assert events[0] == PitchEvent(configuration.window_offset * 4)
        assert isinstance(events[1], ErrorEvent)


class TestDesynchronization:
    """Test recovery after samples were missed."""

    def test_missed_window_then_recover(self, configuration, encoder):
        word = configuration.word_length
        lead = configuration.window_offset * 4
        first = with_silence(configuration, encoder.generate_signal(PAYLOAD), lead)
        decoder = WarbleDecoder(configuration)

        # Chirp, validation and a few words, stopping inside a word
        cut = lead + configuration.door_length * 2 + 3 * word + word // 3
        events = feed(decoder, first[:cut])
        assert decoder.synchronized
        assert isinstance(decoder.state, Synchronized)
        assert decoder.state.cursor > 1

        # One push far larger than allowed drops the next word window
        oversized = first[cut:cut + configuration.door_length * 3 + word // 2]
        events = decoder.push(oversized)

        assert len(errors(events)) == 1
        assert messages(events) == []
        assert not decoder.synchronized

        # A fresh message decodes from a clean state
        other = b"\x10\x20\x30\x40\x50\x60\x70\x80"
        second = with_silence(configuration, encoder.generate_signal(other), lead)
        events = feed(decoder, second)

        assert errors(events) == []
        assert [event.payload for event in messages(events)] == [other]
        assert decoder.corrected_errors == 0


class TestDecodeFile:
    """Test decoding from an audio file."""

    def test_decode_file(self, tmp_path, configuration, encoder):
        path = tmp_path / "message.wav"
        encoder.generate_to_file(path, PAYLOAD, power_peak=0.7, padding=0.1)

        results = decode_file(str(path), configuration)

        assert len(results) == 1
        timestamp, payload = results[0]
        assert payload == PAYLOAD
        assert timestamp == pytest.approx(0.1, abs=0.03)
