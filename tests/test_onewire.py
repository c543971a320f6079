import numpy as np
import pytest

from conftest import make_buffer
from logic_decode import (
    BusReset,
    ChannelMap,
    ChannelRole,
    DataSymbol,
    OneWireDecoder,
    SampleRateError,
    decode,
)

OWR = ChannelRole.PRIMARY_DATA


class Waveform:
    """1-Wire line builder at 1 MHz (one sample per µs)."""

    def __init__(self, idle=100):
        self.levels = [np.ones(idle, dtype=np.uint8)]
        self.length = idle

    def add(self, level, duration):
        self.levels.append(np.full(duration, level, dtype=np.uint8))
        self.length += duration
        return self

    def reset(self, presence=True):
        self.add(0, 500)
        if presence:
            self.add(1, 30).add(0, 120).add(1, 400)
        else:
            self.add(1, 500)
        return self

    def byte(self, value, overdrive=False):
        starts = self.length
        for n in range(8):
            if overdrive:
                low = 1 if (value >> n) & 1 else 8
                self.add(0, low).add(1, 10 - low)
            else:
                low = 6 if (value >> n) & 1 else 65
                self.add(0, low).add(1, 70 - low)
        return starts

    def buffer(self, **kwargs):
        return make_buffer({0: np.concatenate(self.levels)}, **kwargs)


def test_reset_presence_and_byte():
    wave = Waveform()
    wave.reset()
    byte_start = wave.byte(0xCC)
    wave.add(1, 100)

    symbols = OneWireDecoder().decode_line(wave.buffer(), 0, OWR)

    assert symbols[0] == BusReset(timestamp=100, line=OWR, presence=True, end=750)
    assert isinstance(symbols[1], DataSymbol)
    assert symbols[1].value == 0xCC
    assert symbols[1].timestamp == byte_start
    assert not symbols[1].framing_error
    assert len(symbols) == 2


def test_reset_without_presence():
    wave = Waveform()
    wave.reset(presence=False)
    wave.byte(0x33)
    wave.reset(presence=False)

    symbols = OneWireDecoder().decode_line(wave.buffer(), 0, OWR)

    assert [type(s) for s in symbols] == [BusReset, DataSymbol, BusReset]
    assert [s.presence for s in symbols if isinstance(s, BusReset)] == [False, False]
    assert symbols[1].value == 0x33


def test_erroneous_pulse_flags_framing_error():
    wave = Waveform()
    wave.reset()
    wave.byte(0xCC)
    wave.add(0, 200).add(1, 100)

    result = decode(wave.buffer(), ChannelMap({OWR: 0}), OneWireDecoder())

    data = result.data_for(OWR)
    assert [s.framing_error for s in data] == [False, True]
    assert result.stats.symbol_count == 2
    assert result.stats.error_count == 1
    assert result.stats.bit_period_samples == 60
    assert not result.stats.low_resolution_warning


def test_overdrive_skip_rom():
    wave = Waveform()
    wave.reset()
    wave.byte(0x3C)
    wave.byte(0xA5, overdrive=True)
    wave.add(1, 50)

    symbols = OneWireDecoder().decode_line(wave.buffer(), 0, OWR)

    assert [s.value for s in symbols if isinstance(s, DataSymbol)] == [0x3C, 0xA5]


def test_requires_sample_rate():
    wave = Waveform()
    wave.reset()

    with pytest.raises(SampleRateError):
        decode(wave.buffer(has_timing_data=False), ChannelMap({OWR: 0}), OneWireDecoder())
