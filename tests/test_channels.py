import numpy as np
import pytest

from conftest import make_buffer
from logic_decode import (
    ChannelMap,
    ChannelRole,
    ConfigError,
    DecodeSession,
    DuplicateAssignment,
    OutOfRange,
    scan_edges,
)


def test_resolve_and_unassigned_roles():
    channel_map = ChannelMap({ChannelRole.PRIMARY_DATA: 0, ChannelRole.CTS: 4, ChannelRole.RTS: None})

    assert channel_map.resolve(ChannelRole.PRIMARY_DATA) == 0
    assert channel_map.resolve(ChannelRole.CTS) == 4
    assert channel_map.resolve(ChannelRole.RTS) is None
    assert channel_map.resolve(ChannelRole.SECONDARY_DATA) is None
    assert channel_map.data_roles() == [ChannelRole.PRIMARY_DATA]
    assert channel_map.aux_roles() == [ChannelRole.CTS]
    assert channel_map.label_for(4) == "CTS"
    assert channel_map.label_for(5) == "D5"


def test_roles_accept_labels():
    channel_map = ChannelMap({"rxd": 1, "TXD": 2, "dcd": 3})

    assert channel_map.resolve(ChannelRole.PRIMARY_DATA) == 1
    assert channel_map.resolve(ChannelRole.SECONDARY_DATA) == 2
    assert channel_map.resolve(ChannelRole.DCD) == 3
    with pytest.raises(ValueError):
        ChannelRole.parse("clock")


def test_from_masks():
    channel_map = ChannelMap.from_masks({
        ChannelRole.PRIMARY_DATA: 1 << 3,
        ChannelRole.SECONDARY_DATA: 0,
        ChannelRole.RI: 1 << 7,
    })

    assert channel_map.resolve(ChannelRole.PRIMARY_DATA) == 3
    assert not channel_map.is_assigned(ChannelRole.SECONDARY_DATA)
    assert channel_map.resolve(ChannelRole.RI) == 7
    with pytest.raises(ValueError):
        ChannelMap.from_masks({ChannelRole.CTS: 0b110})


def test_duplicate_assignment():
    channel_map = ChannelMap({ChannelRole.PRIMARY_DATA: 2, ChannelRole.DSR: 2})

    with pytest.raises(DuplicateAssignment) as excinfo:
        channel_map.validate(8)
    assert excinfo.value.bit == 2
    assert excinfo.value.first_role is ChannelRole.PRIMARY_DATA
    assert excinfo.value.second_role is ChannelRole.DSR


def test_out_of_range():
    with pytest.raises(OutOfRange) as excinfo:
        ChannelMap({ChannelRole.SECONDARY_DATA: 8}).validate(8)
    assert excinfo.value.role is ChannelRole.SECONDARY_DATA
    assert excinfo.value.channel_width == 8


def test_session_fails_before_scanning():
    buffer = make_buffer({0: np.ones(100, dtype=np.uint8)}, channel_width=4)
    calls = []
    session = DecodeSession(buffer, ChannelMap({ChannelRole.PRIMARY_DATA: 5}), progress=calls.append)

    with pytest.raises(ConfigError):
        session.run()
    assert calls == []


def test_scan_edges_is_chunk_independent():
    levels = np.array([1, 1, 0, 0, 0, 1, 0, 1, 1, 1, 0], dtype=np.uint8)
    buffer = make_buffer({3: levels})

    expected = [(2, 0), (5, 1), (6, 0), (7, 1), (10, 0)]
    assert [tuple(e) for e in scan_edges(buffer, 3)] == expected
    assert [tuple(e) for e in scan_edges(buffer, 3, chunk_size=1)] == expected
    assert [tuple(e) for e in scan_edges(buffer, 3, chunk_size=3)] == expected
    assert list(scan_edges(buffer, 0)) == []


def test_scan_edges_uses_sample_indices():
    buffer = make_buffer({0: np.array([0, 1, 1, 0])}, indices=np.array([0, 40, 90, 200]))

    assert [tuple(e) for e in scan_edges(buffer, 0)] == [(40, 1), (200, 0)]


def test_scan_edges_checkpoints_every_chunk():
    buffer = make_buffer({0: np.zeros(10, dtype=np.uint8)})
    positions = []

    list(scan_edges(buffer, 0, chunk_size=4, checkpoint=positions.append))

    assert positions == [4, 8, 9]


def test_scan_edges_is_restartable():
    buffer = make_buffer({0: np.array([0, 1, 0, 1], dtype=np.uint8)})

    assert list(scan_edges(buffer, 0)) == list(scan_edges(buffer, 0))
