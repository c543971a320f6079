"""
Value and time formatting shared by the result types.
"""

# =============================================================================
# ASCII Lookup Table
# =============================================================================

ASCII_TABLE = {
    # Control Codes (0-31)
    0: 'NUL', 1: 'SOH', 2: 'STX', 3: 'ETX', 4: 'EOT', 5: 'ENQ', 6: 'ACK', 7: 'BEL',
    8: 'BS',  9: 'HT',  10: 'LF', 11: 'VT', 12: 'FF',  13: 'CR', 14: 'SO', 15: 'SI',
    16: 'DLE', 17: 'DC1', 18: 'DC2', 19: 'DC3', 20: 'DC4', 21: 'NAK', 22: 'SYN', 23: 'ETB',
    24: 'CAN', 25: 'EM',  26: 'SUB', 27: 'ESC', 28: 'FS',  29: 'GS',  30: 'RS',  31: 'US',
    32: 'Space',
    # Delete (127)
    127: 'DEL'
}


def byte_to_ascii_label(value: int) -> str:
    """Convert byte value to human-readable ASCII label."""
    if isinstance(value, bytes):
        value = value[0]
    if value in ASCII_TABLE:
        return ASCII_TABLE[value]
    if 32 < value < 127:
        return chr(value)
    return f'{value:02X}h'


def ascii_char(value: int, bit_count: int) -> str:
    """Printable character of a full 8-bit word, empty otherwise."""
    if bit_count == 8 and 32 <= value < 127:
        return chr(value)
    return ""


# =============================================================================
# Numbers
# =============================================================================

def hex_digits(bit_count: int) -> int:
    """Hex digits needed to show a word of bit_count bits."""
    return bit_count // 4 + (1 if bit_count % 4 else 0)


def to_hex_string(value: int, bit_count: int = 8) -> str:
    return f"0x{value:0{hex_digits(bit_count)}X}"


def to_bin_string(value: int, bit_count: int = 8) -> str:
    return f"0b{value:0{bit_count}b}"


# =============================================================================
# Time
# =============================================================================

TIME_UNITS = (
    (1.0, "s"),
    (1e-3, "ms"),
    (1e-6, "µs"),
    (1e-9, "ns"),
)


def display_scaled_time(seconds: float) -> str:
    """Format a duration with the largest unit that keeps it >= 1."""
    if seconds == 0:
        return "0.000 s"
    magnitude = abs(seconds)
    for scale, unit in TIME_UNITS:
        if magnitude >= scale:
            return f"{seconds / scale:.3f} {unit}"
    scale, unit = TIME_UNITS[-1]
    return f"{seconds / scale:.3f} {unit}"


def index_to_time(sample_index: int, start_of_decode: int, sample_rate: int, has_timing_data: bool = True) -> str:
    """
    Display a sample index relative to the start of the decode: a scaled
    time with timing data, the raw sample index without it.
    """
    if has_timing_data and sample_rate > 0:
        count = max(0, sample_index - start_of_decode)
        return display_scaled_time(count / sample_rate)
    return str(sample_index)
