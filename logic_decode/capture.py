"""
Sample Buffer Module

The immutable capture the decoders read from: one channel bitmask per
sample, plus the sample rate the capture was taken at.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional
import json
import numpy as np
from vcd import VCDWriter

MAX_CHANNEL_WIDTH = 32


def _frozen(array: np.ndarray) -> np.ndarray:
    array = np.array(array, copy=True)
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class SampleBuffer:
    """
    Attributes:
        sample_rate: Nominal sample rate (Hz)
        channel_width: Number of channels in each bitmask
        indices: Sample index of each sample (monotonic, int64)
        levels: Channel bitmask of each sample (uint32)
        has_timing_data: False if indices are plain sample counts rather
            than time based (no meaningful sample rate)

    Samples may be run-length compressed: a sample's levels hold until the
    next sample index, so indices need not be contiguous.
    """
    sample_rate: int
    channel_width: int
    indices: np.ndarray
    levels: np.ndarray
    has_timing_data: bool = True

    def __post_init__(self):
        indices = np.asarray(self.indices, dtype=np.int64)
        levels = np.asarray(self.levels, dtype=np.uint32)

        if indices.ndim != 1 or levels.shape != indices.shape:
            raise ValueError("indices and levels must be 1-D arrays of equal length")
        if len(indices) > 1 and np.any(np.diff(indices) <= 0):
            raise ValueError("Sample indices must be strictly increasing")
        if len(indices) and indices[0] < 0:
            raise ValueError("Sample indices must not be negative")
        if not 1 <= self.channel_width <= MAX_CHANNEL_WIDTH:
            raise ValueError(f"channel_width must be within 1..{MAX_CHANNEL_WIDTH}")
        if self.sample_rate < 0:
            raise ValueError("sample_rate must not be negative")

        object.__setattr__(self, "indices", _frozen(indices))
        object.__setattr__(self, "levels", _frozen(levels))

    @classmethod
    def from_channel_data(
        cls,
        channel_data: Dict[int, np.ndarray],
        sample_rate: int,
        channel_width: Optional[int] = None,
        indices: Optional[np.ndarray] = None,
        has_timing_data: bool = True,
    ) -> "SampleBuffer":
        """Pack per-channel 0/1 arrays into a buffer."""
        if not channel_data:
            raise ValueError("channel_data must contain at least one channel")

        lengths = {len(data) for data in channel_data.values()}
        if len(lengths) != 1:
            raise ValueError("All channels must have the same number of samples")
        num_samples = lengths.pop()

        if channel_width is None:
            channel_width = max(channel_data) + 1

        levels = np.zeros(num_samples, dtype=np.uint32)
        for bit, data in channel_data.items():
            levels |= (np.asarray(data, dtype=np.uint32) & 1) << np.uint32(bit)

        if indices is None:
            indices = np.arange(num_samples, dtype=np.int64)

        return cls(
            sample_rate=sample_rate,
            channel_width=channel_width,
            indices=indices,
            levels=levels,
            has_timing_data=has_timing_data,
        )

    @property
    def num_samples(self) -> int:
        return len(self.indices)

    @property
    def first_index(self) -> int:
        return int(self.indices[0]) if self.num_samples else 0

    @property
    def last_index(self) -> int:
        return int(self.indices[-1]) if self.num_samples else 0

    @property
    def duration(self) -> float:
        """Capture duration in seconds (sample counts without timing data)."""
        return self.time_of(self.last_index) - self.time_of(self.first_index)

    def channel(self, bit: int) -> np.ndarray:
        """0/1 level array of one channel."""
        return ((self.levels >> np.uint32(bit)) & 1).astype(np.uint8)

    def position_of(self, sample_index) -> np.ndarray:
        """Array position of the sample holding the level at sample_index."""
        pos = np.searchsorted(self.indices, sample_index, side="right") - 1
        return np.maximum(pos, 0)

    def levels_at(self, bit: int, sample_indices) -> np.ndarray:
        """Level of one channel at arbitrary sample indices."""
        pos = self.position_of(np.asarray(sample_indices, dtype=np.int64))
        return ((self.levels[pos] >> np.uint32(bit)) & 1).astype(np.uint8)

    def time_of(self, sample_index) -> float:
        if self.has_timing_data and self.sample_rate > 0:
            return sample_index / self.sample_rate
        return float(sample_index)

    def times(self) -> np.ndarray:
        """Timestamp (seconds, or sample counts) of every sample."""
        if self.has_timing_data and self.sample_rate > 0:
            return self.indices / self.sample_rate
        return self.indices.astype(np.float64)

    def __repr__(self) -> str:
        return (
            f"SampleBuffer({self.num_samples:,} samples, {self.channel_width} channels, "
            f"{self.duration*1000:.2f}ms @ {self.sample_rate/1e6:.1f}MHz)"
        )

    def save_vcd(self, filepath: Path, labels: Optional[List[str]] = None) -> Path:
        """Dump the buffer as a VCD file, one wire per channel."""
        filepath = Path(filepath)
        labels = labels or []
        metadata = {
            "sample_rate": self.sample_rate,
            "channel_width": self.channel_width,
            "has_timing_data": self.has_timing_data,
            "labels": labels,
        }

        if self.has_timing_data and self.sample_rate > 0:
            ticks = (self.indices * (1e9 / self.sample_rate)).astype(np.int64)
        else:
            ticks = self.indices

        with open(filepath, 'w') as f:
            with VCDWriter(f, timescale='1 ns', comment=json.dumps(metadata)) as writer:
                signals = {}
                for ch in range(self.channel_width):
                    sig_name = labels[ch] if ch < len(labels) else f"D{ch}"
                    signals[ch] = writer.register_var("capture", sig_name, 'wire', size=1)

                if self.num_samples == 0:
                    return filepath

                for ch, var in signals.items():
                    writer.change(var, int(ticks[0]), int((self.levels[0] >> ch) & 1))

                # Only samples where at least one channel moved
                changed = np.flatnonzero(np.diff(self.levels)) + 1
                for pos in changed:
                    flipped = int(self.levels[pos] ^ self.levels[pos - 1])
                    for ch, var in signals.items():
                        if flipped & (1 << ch):
                            writer.change(var, int(ticks[pos]), int((self.levels[pos] >> ch) & 1))

        return filepath
