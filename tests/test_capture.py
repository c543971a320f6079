import numpy as np
import pytest

from logic_decode import SampleBuffer


def test_from_channel_data_packs_bits():
    buffer = SampleBuffer.from_channel_data(
        {0: np.array([1, 0, 1]), 3: np.array([0, 1, 1])},
        sample_rate=2_000_000,
    )

    assert buffer.channel_width == 4
    assert buffer.levels.tolist() == [0b0001, 0b1000, 0b1001]
    assert buffer.channel(3).tolist() == [0, 1, 1]
    assert buffer.num_samples == 3
    assert buffer.time_of(2) == pytest.approx(1e-6)


def test_buffer_is_read_only():
    buffer = SampleBuffer(1000, 1, np.arange(4), np.array([1, 0, 1, 1]))

    with pytest.raises(ValueError):
        buffer.levels[0] = 0
    with pytest.raises(AttributeError):
        buffer.sample_rate = 5


def test_levels_at_holds_until_next_sample():
    buffer = SampleBuffer(1000, 2, np.array([0, 10, 30]), np.array([0b10, 0b01, 0b10]))

    assert buffer.levels_at(0, [0, 9, 10, 29, 30, 99]).tolist() == [0, 0, 1, 1, 0, 0]
    assert buffer.levels_at(1, [5, 15]).tolist() == [1, 0]


def test_without_timing_data_times_are_sample_counts():
    buffer = SampleBuffer(0, 1, np.array([0, 5]), np.array([0, 1]), has_timing_data=False)

    assert buffer.time_of(5) == 5.0
    assert buffer.times().tolist() == [0.0, 5.0]
    assert buffer.duration == 5.0


@pytest.mark.parametrize("kwargs", [
    {"indices": np.array([0, 2, 1]), "levels": np.array([0, 0, 0])},
    {"indices": np.array([0, 1]), "levels": np.array([0])},
    {"indices": np.array([0]), "levels": np.array([0]), "channel_width": 33},
])
def test_invalid_buffers(kwargs):
    args = {"sample_rate": 1000, "channel_width": 1}
    args.update(kwargs)
    with pytest.raises(ValueError):
        SampleBuffer(**args)


def test_mismatched_channel_lengths():
    with pytest.raises(ValueError):
        SampleBuffer.from_channel_data({0: np.zeros(3), 1: np.zeros(4)}, sample_rate=1)


def test_save_vcd(tmp_path):
    buffer = SampleBuffer.from_channel_data(
        {0: np.array([1, 1, 0, 0, 1]), 1: np.array([0, 0, 0, 1, 1])},
        sample_rate=1_000_000,
    )

    path = buffer.save_vcd(tmp_path / "capture.vcd", labels=["RxD"])

    text = path.read_text()
    assert "$timescale 1 ns $end" in text
    assert "RxD" in text
    assert "D1" in text
    assert "#2000" in text
    assert "#3000" in text
    assert "#1000" not in text
