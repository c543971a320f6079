"""
1-Wire Link Layer Decoder

The 1-Wire bus is idle high. The master starts every bit slot by pulling
the line low: a short low pulse is a 1, a long one a 0. A very long low
pulse is a bus reset, which the devices answer with a presence pulse.
Bits are grouped into LSB-first bytes, counted from the last reset.

Timing values (µs) at regular and overdrive speed follow the 1-Wire
link-layer specification.
"""

from typing import Optional
import logging

from .capture import SampleBuffer
from .channels import ChannelRole
from .config import CANCEL_CHECK_INTERVAL
from .decoder import ProtocolDecoder, round_half_up
from .edges import Checkpoint, scan_edges
from .errors import SampleRateError
from .symbols import BusReset, DataSymbol, DecodedSymbol

log = logging.getLogger(__name__)

# (regular, overdrive) limits in µs
RESET_LOW_MIN = (480.0, 48.0)
RESET_LOW_MAX = (960.0, 80.0)
PRESENCE_WAIT_MAX = (60.0, 6.0)
SLOT_MIN = (60.0, 6.0)
SLOT_MAX = (120.0, 16.0)
WRITE_ONE_LOW_MAX = (15.0, 2.0)

# ROM commands that switch the bus to overdrive speed
OVERDRIVE_COMMANDS = (0x3C, 0x69)

# Below these rates slot timing can't be resolved (Hz)
MIN_SAMPLE_RATE = (400_000, 2_000_000)


class OneWireDecoder(ProtocolDecoder):
    """
    1-Wire decoder emitting BusReset and byte DataSymbols.

    A low pulse too long for a slot yet too short for a reset is a bus
    error: the partially assembled byte is emitted with framing_error set
    and byte assembly restarts.

    Args:
        overdrive: Start in overdrive speed
    """

    def __init__(self, overdrive: bool = False):
        self.overdrive = overdrive

    @staticmethod
    def check_buffer(buffer: SampleBuffer):
        if not buffer.has_timing_data or buffer.sample_rate <= 0:
            raise SampleRateError("Cannot decode 1-Wire without a sample rate.")

    def nominal_bit_period(self, buffer: SampleBuffer) -> int:
        """Minimum slot length in samples."""
        self.check_buffer(buffer)
        return int(round_half_up(SLOT_MIN[self.overdrive] * 1e-6 * buffer.sample_rate))

    def decode_line(
        self,
        buffer: SampleBuffer,
        bit: int,
        role: ChannelRole,
        bit_period: int = 0,
        checkpoint: Optional[Checkpoint] = None,
        chunk_size: int = CANCEL_CHECK_INTERVAL,
    ) -> list[DecodedSymbol]:
        self.check_buffer(buffer)
        rate = buffer.sample_rate
        overdrive = self.overdrive
        if rate < MIN_SAMPLE_RATE[overdrive]:
            log.warning("Sample rate %.0f kHz is too low for 1-Wire decoding", rate / 1000)

        def us(samples: int) -> float:
            return samples * 1e6 / rate

        symbols = []
        fall = None
        reset_fall = None              # Reset waiting for its presence pulse
        reset_rise = None
        in_presence = False
        value = 0
        bits = 0
        byte_start = None
        bytes_since_reset = None       # None until the first reset

        def emit_byte(framing_error: bool, end: int):
            nonlocal value, bits, byte_start, bytes_since_reset, overdrive
            symbols.append(DataSymbol(
                timestamp=byte_start, value=value, line=role,
                framing_error=framing_error, end=end, bit_count=8,
            ))
            if not framing_error and bytes_since_reset == 0 and value in OVERDRIVE_COMMANDS:
                log.debug("Entering overdrive mode at %d", end)
                overdrive = True
            if bytes_since_reset is not None:
                bytes_since_reset += 1
            value = bits = 0
            byte_start = None

        def emit_reset(presence: bool, end: int):
            nonlocal reset_fall, reset_rise, value, bits, byte_start, bytes_since_reset
            symbols.append(BusReset(timestamp=reset_fall, line=role, presence=presence, end=end))
            reset_fall = reset_rise = None
            value = bits = 0
            byte_start = None
            bytes_since_reset = 0

        for edge in scan_edges(buffer, bit, chunk_size=chunk_size, checkpoint=checkpoint):
            if edge.new_level == 0:
                fall = edge.sample_index
                if reset_rise is not None:
                    if us(fall - reset_rise) <= PRESENCE_WAIT_MAX[overdrive]:
                        in_presence = True
                        continue
                    emit_reset(False, reset_rise)
                continue

            rise = edge.sample_index
            if fall is None:
                # Line started low, no pulse to measure yet
                continue

            if in_presence:
                in_presence = False
                emit_reset(True, rise)
                continue

            low = us(rise - fall)
            if low >= RESET_LOW_MIN[False]:
                if low > RESET_LOW_MAX[False]:
                    log.debug("Reset pulse at %d too long (%.1f µs)", fall, low)
                # A regular reset also drops out of overdrive
                overdrive = False
            elif not (overdrive and RESET_LOW_MIN[True] <= low < RESET_LOW_MAX[True]):
                if low < SLOT_MAX[overdrive]:
                    if byte_start is None:
                        byte_start = fall
                    value |= int(low < WRITE_ONE_LOW_MAX[overdrive]) << bits
                    bits += 1
                    if bits == 8:
                        emit_byte(False, rise)
                else:
                    log.debug("Erroneous low pulse at %d (%.1f µs)", fall, low)
                    if byte_start is None:
                        byte_start = fall
                    emit_byte(True, rise)
                continue

            if bits:
                log.debug("Reset at %d discards %d pending bits", fall, bits)
            reset_fall = fall
            reset_rise = rise

        if reset_rise is not None:
            emit_reset(in_presence, buffer.last_index)

        return symbols
