"""
Decoded Symbols

Result types of a decode run, and their conversion to plot annotations.

Usage:
    result = DecodeSession(buffer, channel_map, framing).run()
    print(result.stats.baud_rate, result.as_hex_string(ChannelRole.PRIMARY_DATA))
    plot_digital(buffer, channel_map, annotations=result.to_annotations())
"""

from dataclasses import dataclass, field
from typing import Optional, Union

from .channels import ChannelMap, ChannelRole
from .formatting import ascii_char, byte_to_ascii_label, index_to_time, to_bin_string, to_hex_string


# =============================================================================
# Annotation (for plotting)
# =============================================================================

@dataclass
class Annotation:
    """
    A display annotation for plotting.

    Start/end times plus text variants (long to short) for different
    zoom levels.
    """
    channel: int                       # Bit position this annotation belongs to
    start: float                       # Start time (seconds, or samples)
    end: float                         # End time (seconds, or samples)
    text: list[str]                    # Text variants, longest first
    row: str = "default"               # Row/category for grouping

    @property
    def label(self) -> str:
        """Shortest text variant."""
        return self.text[-1] if self.text else ""

    @property
    def label_long(self) -> str:
        """Longest text variant."""
        return self.text[0] if self.text else ""


# =============================================================================
# Symbols
# =============================================================================

@dataclass(frozen=True)
class DataSymbol:
    """A decoded data word (UART frame or 1-Wire byte)."""
    timestamp: int                     # Sample index of the start edge
    value: int
    line: ChannelRole
    framing_error: bool = False
    parity_error: bool = False
    end: Optional[int] = None          # Sample index where the frame ends
    bit_count: int = 8

    @property
    def has_error(self) -> bool:
        return self.framing_error or self.parity_error

    @property
    def event(self) -> Optional[str]:
        """Error event name, None for a clean frame."""
        if self.framing_error:
            return f"{self.line.label.upper()}_FRAME_ERROR"
        if self.parity_error:
            return f"{self.line.label.upper()}_PARITY_ERROR"
        return None

    @property
    def hex_str(self) -> str:
        return to_hex_string(self.value, self.bit_count)

    @property
    def bin_str(self) -> str:
        return to_bin_string(self.value, self.bit_count)

    @property
    def ascii(self) -> str:
        """Printable character of an 8-bit word, empty otherwise."""
        return ascii_char(self.value, self.bit_count)

    def __repr__(self) -> str:
        flags = "".join(f" {name}" for name, set_ in
                        (("framing", self.framing_error), ("parity", self.parity_error)) if set_)
        return f"DataSymbol({self.line.label}@{self.timestamp} {self.hex_str}{flags})"


@dataclass(frozen=True)
class LineEvent:
    """A level change of an auxiliary (handshake) line."""
    timestamp: int
    line: ChannelRole
    new_level: int

    @property
    def has_error(self) -> bool:
        return False

    @property
    def event(self) -> str:
        return f"{self.line.label}_{'HIGH' if self.new_level else 'LOW'}"


@dataclass(frozen=True)
class BusReset:
    """A 1-Wire reset pulse and whether any device answered it."""
    timestamp: int
    line: ChannelRole
    presence: bool
    end: Optional[int] = None

    @property
    def has_error(self) -> bool:
        return False

    @property
    def event(self) -> str:
        return "RESET_PRESENCE" if self.presence else "RESET_NO_PRESENCE"


DecodedSymbol = Union[DataSymbol, LineEvent, BusReset]


# =============================================================================
# Result Wrapper Classes
# =============================================================================

@dataclass(frozen=True)
class DecodeStats:
    symbol_count: int = 0
    error_count: int = 0
    bit_period_samples: int = 0        # 0 if timing could not be determined
    sample_rate: int = 0
    low_resolution_warning: bool = False
    timing_failed_lines: tuple[ChannelRole, ...] = ()

    @property
    def baud_calculation_failed(self) -> bool:
        return self.bit_period_samples == 0

    @property
    def baud_rate(self) -> float:
        if self.bit_period_samples == 0:
            return 0.0
        return self.sample_rate / self.bit_period_samples


@dataclass(frozen=True)
class DecodeResult:
    """Result of one decode run. Symbols are ordered by timestamp."""
    symbols: tuple[DecodedSymbol, ...]
    stats: DecodeStats
    channel_map: ChannelMap = field(default_factory=ChannelMap)
    start_of_decode: int = 0           # First sample index of the buffer
    has_timing_data: bool = True

    def __len__(self) -> int:
        return len(self.symbols)

    def __iter__(self):
        return iter(self.symbols)

    def __getitem__(self, index):
        return self.symbols[index]

    def is_empty(self) -> bool:
        return not self.symbols

    def data_for(self, role: ChannelRole) -> list[DataSymbol]:
        return [s for s in self.symbols if isinstance(s, DataSymbol) and s.line is role]

    def events_for(self, role: ChannelRole) -> list[LineEvent]:
        return [s for s in self.symbols if isinstance(s, LineEvent) and s.line is role]

    def errors(self) -> list[DecodedSymbol]:
        return [s for s in self.symbols if s.has_error]

    def as_bytes(self, role: ChannelRole = ChannelRole.PRIMARY_DATA) -> bytes:
        """Return decoded values of one line as a bytes object."""
        return bytes(s.value for s in self.data_for(role))

    def as_hex_string(self, role: ChannelRole = ChannelRole.PRIMARY_DATA) -> str:
        return " ".join(f"{s.value:02X}" for s in self.data_for(role))

    def as_ascii(self, role: ChannelRole = ChannelRole.PRIMARY_DATA) -> str:
        """Return decoded values as ASCII (printable chars only)."""
        return "".join(s.ascii or "." for s in self.data_for(role))

    def time_str(self, symbol: DecodedSymbol) -> str:
        """Time of a symbol since the start of the decode, for display."""
        return index_to_time(symbol.timestamp, self.start_of_decode,
                             self.stats.sample_rate, self.has_timing_data)

    def _time(self, sample_index: int) -> float:
        if self.has_timing_data and self.stats.sample_rate > 0:
            return sample_index / self.stats.sample_rate
        return float(sample_index)

    def to_annotations(self, data_row: str = "data", events_row: str = "events") -> list[Annotation]:
        """Get one annotation per symbol, placed on its line's channel."""
        annotations = []
        for symbol in self.symbols:
            bit = self.channel_map.resolve(symbol.line)
            if bit is None:
                continue

            start = self._time(symbol.timestamp)
            end = self._time(symbol.end) if getattr(symbol, "end", None) is not None else start

            if isinstance(symbol, DataSymbol):
                label = byte_to_ascii_label(symbol.value)
                text = [f"{symbol.hex_str} {symbol.bin_str} \"{label}\"",
                        f"{symbol.hex_str} \"{label}\"", symbol.hex_str]
                if symbol.event:
                    text.insert(0, f"{symbol.hex_str} {symbol.event}")
                    text[-1] = f"{symbol.hex_str}!"
                row = data_row
            elif isinstance(symbol, BusReset):
                text = [symbol.event, "Reset"]
                row = data_row
            else:
                text = [symbol.event, "H" if symbol.new_level else "L"]
                row = events_row

            annotations.append(Annotation(channel=bit, start=start, end=end, text=text, row=row))
        return annotations
