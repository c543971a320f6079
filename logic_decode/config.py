"""
Decoder Settings

Tunable thresholds of the decode engine. The defaults reproduce the
behaviour of the classic logic-analyzer UART tool.
"""

from dataclasses import dataclass
from typing import Optional

# Below this many samples per bit, mid-bit sampling may misfire
LOW_RESOLUTION_THRESHOLD = 15

# An inter-edge distance must occur this often to count as the bit period
MIN_RECURRENCE = 2

# Samples processed between two cancellation checks
CANCEL_CHECK_INTERVAL = 4096

# Minimum change of the completion fraction between progress callbacks
PROGRESS_STEP = 0.01


@dataclass(frozen=True)
class DecoderSettings:
    """
    Attributes:
        low_resolution_threshold: Bit periods below this set the
            low resolution warning
        min_recurrence: Occurrences needed for an edge distance to be
            taken as the bit period
        cancel_check_interval: Max samples between cancellation checks
        progress_step: Min fraction delta between progress callbacks
        parallel_lines: Decode data lines on a thread pool
        max_workers: Thread pool size (None = one per line)
    """
    low_resolution_threshold: int = LOW_RESOLUTION_THRESHOLD
    min_recurrence: int = MIN_RECURRENCE
    cancel_check_interval: int = CANCEL_CHECK_INTERVAL
    progress_step: float = PROGRESS_STEP
    parallel_lines: bool = False
    max_workers: Optional[int] = None

    def __post_init__(self):
        if self.cancel_check_interval < 1:
            raise ValueError("cancel_check_interval must be at least 1")
        if self.min_recurrence < 1:
            raise ValueError("min_recurrence must be at least 1")
        if not 0.0 <= self.progress_step <= 1.0:
            raise ValueError("progress_step must be within [0, 1]")


DEFAULT_SETTINGS = DecoderSettings()
