import numpy as np
import pytest

from conftest import encode_uart, make_buffer
from logic_decode import ChannelMap, ChannelRole, Edge, FramingConfig, decode, estimate_bit_timing
from logic_decode.timing import dominant_distance

RXD = ChannelRole.PRIMARY_DATA
TXD = ChannelRole.SECONDARY_DATA


def edges_at(*indices):
    return [Edge(i, n % 2) for n, i in enumerate(indices)]


def test_shortest_recurring_distance_wins():
    # 3 is a one-off glitch, 10 recurs
    indices = np.array([0, 10, 20, 23, 40, 50, 70])
    assert dominant_distance(indices) == 10


def test_single_gap_falls_back_to_shortest():
    assert dominant_distance(np.array([5, 25])) == 20


def test_fewer_than_two_edges():
    assert dominant_distance(np.array([], dtype=np.int64)) == 0
    assert dominant_distance(np.array([7])) == 0


def test_estimate_reports_baud_rate():
    timing = estimate_bit_timing(edges_at(0, 16, 32, 64, 80), sample_rate=1_600_000)

    assert timing.bit_period_samples == 16
    assert timing.edge_count == 5
    assert timing.baud_rate == pytest.approx(100_000)
    assert not timing.failed
    assert not timing.low_resolution


def test_failed_estimate():
    timing = estimate_bit_timing(edges_at(100), sample_rate=1_000_000)

    assert timing.failed
    assert timing.baud_rate == 0.0
    assert not timing.low_resolution


@pytest.mark.parametrize("period, warned", [(10, True), (14, True), (15, False), (20, False)])
def test_low_resolution_warning(period, warned):
    levels, _ = encode_uart([0x55, 0x41, 0x55], period)
    result = decode(make_buffer({0: levels}), ChannelMap({RXD: 0}), FramingConfig())

    assert result.stats.bit_period_samples == period
    assert result.stats.low_resolution_warning is warned
    assert result.as_bytes() == bytes([0x55, 0x41, 0x55])


def test_less_than_two_edges_yields_no_data():
    levels = np.ones(500, dtype=np.uint8)
    levels[300:] = 0

    result = decode(make_buffer({0: levels}), ChannelMap({RXD: 0}), FramingConfig())

    assert result.stats.bit_period_samples == 0
    assert result.stats.baud_calculation_failed
    assert result.stats.timing_failed_lines == (RXD,)
    assert result.data_for(RXD) == []
    assert result.stats.symbol_count == 0


def test_failed_line_does_not_stop_other_line():
    levels, _ = encode_uart([0x55, 0x41], 16)
    flat = np.ones(len(levels), dtype=np.uint8)

    result = decode(make_buffer({0: flat, 1: levels}),
                    ChannelMap({RXD: 0, TXD: 1}), FramingConfig())

    assert result.stats.timing_failed_lines == (RXD,)
    assert result.stats.bit_period_samples == 16
    assert result.as_bytes(TXD) == bytes([0x55, 0x41])
    assert result.as_bytes(RXD) == b""
