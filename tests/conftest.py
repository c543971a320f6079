import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from logic_decode import FramingConfig, Parity, SampleBuffer, StopBits


def frame_bits(value, framing: FramingConfig, corrupt_parity=False):
    """Logical (start, data LSB first, parity, stop) bits of one frame."""
    data = [(value >> n) & 1 for n in range(framing.bit_count)]
    bits = [0] + data
    if framing.has_parity:
        ones = sum(data)
        parity = ones % 2 if framing.parity is Parity.EVEN else 1 - ones % 2
        bits.append(parity ^ int(corrupt_parity))
    return bits


def encode_uart(values, bit_period, framing=None, lead_bits=3, trail_bits=3,
                gap_bits=0, corrupt_parity=()):
    """
    Render values as raw line levels (one entry per sample).

    Returns (levels, frame_starts) where frame_starts holds the sample
    index of each start bit.
    """
    framing = framing or FramingConfig()
    idle = framing.idle_level
    stop_samples = int(framing.stop_bits.value * bit_period)

    chunks = [np.full(lead_bits * bit_period, idle, dtype=np.uint8)]
    starts = []
    pos = len(chunks[0])
    for i, value in enumerate(values):
        starts.append(pos)
        for bit in frame_bits(value, framing, corrupt_parity=i in corrupt_parity):
            chunks.append(np.full(bit_period, bit ^ int(framing.inverted), dtype=np.uint8))
            pos += bit_period
        chunks.append(np.full(stop_samples + gap_bits * bit_period, idle, dtype=np.uint8))
        pos += stop_samples + gap_bits * bit_period
    chunks.append(np.full(trail_bits * bit_period, idle, dtype=np.uint8))
    return np.concatenate(chunks), starts


def make_buffer(channels, sample_rate=1_000_000, channel_width=8, **kwargs):
    return SampleBuffer.from_channel_data(channels, sample_rate=sample_rate,
                                          channel_width=channel_width, **kwargs)


def pad_to(levels, length, level):
    if len(levels) >= length:
        return levels
    return np.concatenate([levels, np.full(length - len(levels), level, dtype=np.uint8)])


@pytest.fixture
def framing_8n1():
    return FramingConfig(bit_count=8, parity=Parity.NONE, stop_bits=StopBits.ONE)
