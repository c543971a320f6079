"""
Serial Protocol Decoder Module

Usage:
    from logic_decode import FramingConfig, UartDecoder, ChannelRole

    decoder = UartDecoder(FramingConfig(bit_count=8, parity="even"))
    symbols = decoder.decode_line(buffer, bit=0, role=ChannelRole.PRIMARY_DATA,
                                  bit_period=16)

Most callers go through DecodeSession, which estimates the bit period
and runs the decoder over every configured line.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union
import logging
import numpy as np

from .capture import SampleBuffer
from .channels import ChannelRole
from .config import CANCEL_CHECK_INTERVAL
from .edges import Checkpoint, scan_edges
from .errors import InvalidFraming
from .symbols import DataSymbol, DecodedSymbol, LineEvent

log = logging.getLogger(__name__)


# =============================================================================
# Framing
# =============================================================================

class Parity(Enum):
    NONE = "none"
    ODD = "odd"
    EVEN = "even"

    @classmethod
    def parse(cls, value: Union[str, "Parity"]) -> "Parity":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidFraming("parity", value, [p.value for p in cls]) from None


class StopBits(Enum):
    ONE = 1.0
    ONE_AND_HALF = 1.5
    TWO = 2.0

    @property
    def sampled(self) -> int:
        """Stop bits actually sampled; the extra half of 1.5 is not checked."""
        return 2 if self is StopBits.TWO else 1

    @classmethod
    def parse(cls, value: Union[str, float, "StopBits"]) -> "StopBits":
        if isinstance(value, cls):
            return value
        try:
            return cls(float(value))
        except (TypeError, ValueError):
            raise InvalidFraming("stop bits", value, [s.value for s in cls]) from None


MIN_BIT_COUNT = 5
MAX_BIT_COUNT = 8


@dataclass(frozen=True)
class FramingConfig:
    """
    UART character framing. Fixed for the duration of one run.

    Attributes:
        bit_count: Data bits per frame (5..8)
        parity: Parity mode (strings "none"/"odd"/"even" are accepted)
        stop_bits: 1, 1.5 or 2 (strings accepted)
        inverted: Line is idle low and all levels are flipped
    """
    bit_count: int = 8
    parity: Parity = Parity.NONE
    stop_bits: StopBits = StopBits.ONE
    inverted: bool = False

    def __post_init__(self):
        allowed = list(range(MIN_BIT_COUNT, MAX_BIT_COUNT + 1))
        try:
            bit_count = int(self.bit_count)
            integral = bit_count == float(self.bit_count)
        except (TypeError, ValueError):
            raise InvalidFraming("bit count", self.bit_count, allowed) from None
        if not integral or bit_count not in allowed:
            raise InvalidFraming("bit count", self.bit_count, allowed)
        object.__setattr__(self, "bit_count", bit_count)
        object.__setattr__(self, "parity", Parity.parse(self.parity))
        object.__setattr__(self, "stop_bits", StopBits.parse(self.stop_bits))
        object.__setattr__(self, "inverted", bool(self.inverted))

    @property
    def has_parity(self) -> bool:
        return self.parity is not Parity.NONE

    @property
    def idle_level(self) -> int:
        """Raw line level while the line is idle (mark)."""
        return 0 if self.inverted else 1

    @property
    def frame_bits(self) -> float:
        """Frame length in bits: start + data + parity + stop."""
        return 1 + self.bit_count + int(self.has_parity) + self.stop_bits.value

    def __str__(self) -> str:
        stop = f"{self.stop_bits.value:g}"
        inv = " inverted" if self.inverted else ""
        return f"{self.bit_count}{self.parity.value[0].upper()}{stop}{inv}"


def round_half_up(value) -> np.ndarray:
    """Round to the nearest sample, halves going up."""
    return np.floor(np.asarray(value, dtype=np.float64) + 0.5).astype(np.int64)


# =============================================================================
# Decoders
# =============================================================================

class ProtocolDecoder(ABC):
    """
    Turns the samples of one data line into symbols.

    Each protocol supplies its own state machine; the session handles
    timing estimation, auxiliary lines, progress and cancellation.
    """

    # Whether the session must estimate a bit period before decoding
    needs_bit_timing = False

    @abstractmethod
    def decode_line(
        self,
        buffer: SampleBuffer,
        bit: int,
        role: ChannelRole,
        bit_period: int = 0,
        checkpoint: Optional[Checkpoint] = None,
        chunk_size: int = CANCEL_CHECK_INTERVAL,
    ) -> list[DecodedSymbol]:
        """
        Decode one line. Symbols must come out in timestamp order.

        `checkpoint` is called at most `chunk_size` samples apart.
        """

    def nominal_bit_period(self, buffer: SampleBuffer) -> int:
        """Bit period reported by decoders that don't estimate one."""
        return 0


class UartDecoder(ProtocolDecoder):
    """
    Asynchronous serial (UART) frame decoder.

    Every edge that leaves the idle level is a start bit candidate. Bits
    are sampled mid-bit, relative to that edge:

        start bit:   edge + round(0.5 * period)
        data bit n:  edge + round((n + 1.5) * period), LSB first
        parity:      after the last data bit
        stop bit(s): after parity; 1.5 stop bits sample one stop bit

    The next start edge is looked for right after the last sampled stop
    bit, so the half bit of 1.5 stop bits only extends DataSymbol.end.

    A start bit that is no longer at the start level half a bit later is
    a glitch and the edge is dropped. Parity and framing errors are
    flagged on the symbol and decoding continues with the next frame.
    """

    needs_bit_timing = True

    def __init__(self, framing: Optional[FramingConfig] = None):
        self.framing = framing or FramingConfig()
        self._weights = np.left_shift(1, np.arange(self.framing.bit_count, dtype=np.int64))

    def sample_offsets(self, bit_period: int) -> np.ndarray:
        """Sample points of one frame, relative to its start edge."""
        f = self.framing
        bit_centers = [0.5]
        bit_centers += [n + 1.5 for n in range(f.bit_count)]
        next_center = f.bit_count + 1.5
        if f.has_parity:
            bit_centers.append(next_center)
            next_center += 1
        bit_centers += [next_center + k for k in range(f.stop_bits.sampled)]
        return round_half_up(np.array(bit_centers) * bit_period)

    def decode_line(
        self,
        buffer: SampleBuffer,
        bit: int,
        role: ChannelRole,
        bit_period: int = 0,
        checkpoint: Optional[Checkpoint] = None,
        chunk_size: int = CANCEL_CHECK_INTERVAL,
    ) -> list[DecodedSymbol]:
        if bit_period <= 0:
            log.debug("%s: no bit period, nothing to decode", role.label)
            return []

        f = self.framing
        offsets = self.sample_offsets(bit_period)
        frame_length = int(round_half_up(f.frame_bits * bit_period))
        data_slice = slice(1, 1 + f.bit_count)
        parity_pos = 1 + f.bit_count
        stop_slice = slice(parity_pos + int(f.has_parity), None)
        last_index = buffer.last_index

        symbols = []
        resume = buffer.first_index
        glitches = 0

        for edge in scan_edges(buffer, bit, chunk_size=chunk_size, checkpoint=checkpoint):
            # Idle: wait for the line to leave its idle level
            if edge.sample_index < resume or edge.new_level == f.idle_level:
                continue

            start = edge.sample_index
            points = start + offsets
            if points[-1] > last_index:
                log.debug("%s: incomplete frame at %d dropped", role.label, start)
                break

            logical = buffer.levels_at(bit, points) ^ np.uint8(f.inverted)

            # Start bit: must still be at the start level at mid-bit
            if logical[0] != 0:
                glitches += 1
                continue

            data = logical[data_slice]
            value = int(np.dot(data.astype(np.int64), self._weights))

            parity_error = False
            if f.has_parity:
                ones = int(data.sum()) + int(logical[parity_pos])
                if f.parity is Parity.EVEN:
                    parity_error = ones % 2 != 0
                else:
                    parity_error = ones % 2 != 1

            framing_error = bool(np.any(logical[stop_slice] != 1))

            symbols.append(DataSymbol(
                timestamp=start,
                value=value,
                line=role,
                framing_error=framing_error,
                parity_error=parity_error,
                end=start + frame_length,
                bit_count=f.bit_count,
            ))
            # Back to idle once the last stop bit has been sampled
            resume = int(points[-1]) + 1

        if glitches:
            log.debug("%s: %d start bit glitches ignored", role.label, glitches)
        return symbols


def decode_line_events(
    buffer: SampleBuffer,
    bit: int,
    role: ChannelRole,
    chunk_size: int = CANCEL_CHECK_INTERVAL,
    checkpoint: Optional[Checkpoint] = None,
) -> list[LineEvent]:
    """Every edge of an auxiliary line is an event of its own."""
    return [
        LineEvent(timestamp=edge.sample_index, line=role, new_level=edge.new_level)
        for edge in scan_edges(buffer, bit, chunk_size=chunk_size, checkpoint=checkpoint)
    ]
