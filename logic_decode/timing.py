"""
Bit Timing Estimation

In asynchronous serial traffic most edges are one bit apart: a run of
equal bits only ever stretches the gap to a multiple of the bit period.
The shortest inter-edge distance that keeps coming back is therefore the
bit period, while a shorter one-off gap is taken as a glitch.
"""

from dataclasses import dataclass
from typing import Iterable
import logging
import numpy as np

from .config import LOW_RESOLUTION_THRESHOLD, MIN_RECURRENCE
from .edges import Edge

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class BitTiming:
    """Bit period estimate of one data line."""
    bit_period_samples: int            # 0 if the period could not be determined
    sample_rate: int
    edge_count: int
    low_resolution_threshold: int = LOW_RESOLUTION_THRESHOLD

    @property
    def failed(self) -> bool:
        return self.bit_period_samples == 0

    @property
    def low_resolution(self) -> bool:
        return 0 < self.bit_period_samples < self.low_resolution_threshold

    @property
    def baud_rate(self) -> float:
        if self.bit_period_samples == 0:
            return 0.0
        return self.sample_rate / self.bit_period_samples


def dominant_distance(edge_indices: np.ndarray, min_recurrence: int = MIN_RECURRENCE) -> int:
    """Shortest inter-edge distance seen at least min_recurrence times."""
    if len(edge_indices) < 2:
        return 0

    distances, counts = np.unique(np.diff(edge_indices), return_counts=True)
    recurring = distances[counts >= min_recurrence]
    if len(recurring):
        return int(recurring[0])
    # Nothing recurs (e.g. a single gap), fall back to the shortest one
    return int(distances[0])


def estimate_bit_timing(
    edges: Iterable[Edge],
    sample_rate: int,
    min_recurrence: int = MIN_RECURRENCE,
    low_resolution_threshold: int = LOW_RESOLUTION_THRESHOLD,
) -> BitTiming:
    """Estimate the bit period of one data line from its edges."""
    edge_indices = np.fromiter((edge.sample_index for edge in edges), dtype=np.int64)
    period = dominant_distance(edge_indices, min_recurrence)

    timing = BitTiming(
        bit_period_samples=period,
        sample_rate=sample_rate,
        edge_count=len(edge_indices),
        low_resolution_threshold=low_resolution_threshold,
    )
    if timing.failed:
        log.debug("Bit period undetermined, only %d edges", timing.edge_count)
    else:
        log.debug("Bit period %d samples from %d edges (%.1f baud)",
                  period, timing.edge_count, timing.baud_rate)
    return timing
