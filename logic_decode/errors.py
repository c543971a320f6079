"""
Decoder Exceptions

Structural problems (bad channel map, bad framing) are raised before any
scanning starts. Protocol anomalies are never raised; they end up on the
decoded symbols and in DecodeStats.
"""


class DecodeError(Exception):
    """Base class for all decoder errors"""


class ConfigError(DecodeError):
    """Invalid decoder input, detected before the run starts"""


class DuplicateAssignment(ConfigError):
    """Two channel roles are mapped to the same bit position"""

    def __init__(self, bit, first_role, second_role):
        self.bit = bit
        self.first_role = first_role
        self.second_role = second_role
        super().__init__(
            f"Bit {bit} is assigned to both {first_role.label} and {second_role.label}"
        )


class OutOfRange(ConfigError):
    """A role is mapped to a bit the sample buffer does not have"""

    def __init__(self, role, bit, channel_width):
        self.role = role
        self.bit = bit
        self.channel_width = channel_width
        super().__init__(
            f"{role.label} is mapped to bit {bit}, "
            f"but the buffer only has {channel_width} channels"
        )


class InvalidFraming(ConfigError):
    """A framing parameter outside its allowed set"""

    def __init__(self, name, value, allowed):
        self.name = name
        self.value = value
        self.allowed = allowed
        super().__init__(f"Invalid {name} {value!r}, expected one of {allowed}")


class SampleRateError(DecodeError):
    """Decoding needs real timing information the buffer doesn't have"""


class Cancelled(DecodeError):
    """The run observed a cancellation request and produced no result"""

    def __init__(self, position=None):
        self.position = position
        if position is None:
            super().__init__("Decode cancelled")
        else:
            super().__init__(f"Decode cancelled at sample {position}")
