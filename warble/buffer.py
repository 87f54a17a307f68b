"""
Fixed-capacity sample ring for the streaming decoder.
"""

import numpy as np


class SampleRing:
    """
    Keeps the most recent ``capacity`` samples of a stream.

    Samples are addressed by their absolute index in the stream. Slots that
    were never written read as zero, so the ring behaves as if the stream
    started with ``capacity`` samples of silence.
    """

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._data = np.zeros(capacity)
        self.pushed = 0

    @property
    def oldest(self) -> int:
        """Absolute index of the oldest retained sample."""
        return self.pushed - self.capacity

    def push(self, samples) -> int:
        """
        Append samples, discarding the oldest ones.

        When the chunk is larger than the ring only its tail is kept, and
        only the kept samples are counted.

        Args:
            samples: New samples, oldest first

        Returns:
            Number of samples accepted
        """
        samples = np.asarray(samples, dtype=np.float64).ravel()
        if len(samples) > self.capacity:
            samples = samples[-self.capacity:]

        count = len(samples)
        if count == 0:
            return 0

        start = self.pushed % self.capacity
        head = min(count, self.capacity - start)
        self._data[start:start + head] = samples[:head]
        self._data[:count - head] = samples[head:]
        self.pushed += count
        return count

    def contains(self, start: int, length: int) -> bool:
        """True if samples [start, start + length) are all retained."""
        return start >= self.oldest and start + length <= self.pushed

    def window(self, start: int, length: int) -> np.ndarray:
        """
        Copy of samples [start, start + length) by absolute index.

        Raises:
            ValueError: if part of the window was dropped or not pushed yet
        """
        if not self.contains(start, length):
            raise ValueError(
                f"window [{start}, {start + length}) is outside the ring "
                f"[{self.oldest}, {self.pushed})"
            )
        return np.take(self._data, np.arange(start, start + length), mode="wrap")
