"""
Edge Scanning

Finds the samples where one channel changes level. The buffer is walked
one chunk at a time, so the edge list of a large capture is never built
up front and callers get a chance to cancel between chunks.
"""

from typing import Callable, Iterator, NamedTuple, Optional
import numpy as np

from .capture import SampleBuffer
from .config import CANCEL_CHECK_INTERVAL

# Called with the sample index reached so far
Checkpoint = Callable[[int], None]


class Edge(NamedTuple):
    sample_index: int                  # Index of the first sample at the new level
    new_level: int                     # Level after the edge (0 or 1)


def scan_edges(
    buffer: SampleBuffer,
    bit: int,
    start: int = 0,
    chunk_size: int = CANCEL_CHECK_INTERVAL,
    checkpoint: Optional[Checkpoint] = None,
) -> Iterator[Edge]:
    """
    Lazily yield every level change of one channel.

    Args:
        buffer: Sample buffer to scan
        bit: Bit position of the channel (must be assigned)
        start: Array position to start scanning from
        chunk_size: Samples examined per step
        checkpoint: Called with the last sample index of each chunk
            before its edges are yielded; may raise to abort the scan
    """
    levels = buffer.levels
    indices = buffer.indices
    mask = np.uint32(1 << bit)
    total = len(levels)

    # The first sample of the buffer has no predecessor, so it is never an edge
    pos = max(start, 1)
    while pos < total:
        end = min(pos + chunk_size, total)
        if checkpoint is not None:
            checkpoint(int(indices[end - 1]))

        current = (levels[pos:end] & mask) != 0
        previous = (levels[pos - 1:end - 1] & mask) != 0
        for offset in np.flatnonzero(current != previous):
            yield Edge(int(indices[pos + offset]), int(current[offset]))
        pos = end
