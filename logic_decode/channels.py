"""
Channel Roles

Maps the logical signals of a serial link (data lines and handshake
lines) onto bit positions of the captured channel bitmask.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Optional

from .errors import DuplicateAssignment, OutOfRange


class ChannelRole(Enum):
    """Logical signal roles, in canonical decode order."""
    PRIMARY_DATA = ("RxD", True)
    SECONDARY_DATA = ("TxD", True)
    CTS = ("CTS", False)
    RTS = ("RTS", False)
    DTR = ("DTR", False)
    DSR = ("DSR", False)
    DCD = ("DCD", False)
    RI = ("RI", False)

    def __init__(self, label: str, is_data: bool):
        self.label = label
        self.is_data = is_data

    @property
    def order(self) -> int:
        return _ROLE_ORDER[self]

    @classmethod
    def parse(cls, name: str) -> "ChannelRole":
        """Look up a role by enum name or signal label (case insensitive)."""
        key = name.strip().upper()
        for role in cls:
            if key in (role.name, role.label.upper()):
                return role
        raise ValueError(f"Unknown channel role {name!r}")


_ROLE_ORDER = {role: i for i, role in enumerate(ChannelRole)}

DATA_ROLES = tuple(role for role in ChannelRole if role.is_data)
AUX_ROLES = tuple(role for role in ChannelRole if not role.is_data)


@dataclass(frozen=True)
class ChannelMap:
    """
    Role to bit position assignments. Roles that are missing, or mapped
    to None, are unassigned and excluded from decoding.

    Usage:
        channel_map = ChannelMap({ChannelRole.PRIMARY_DATA: 0, ChannelRole.CTS: 3})
        channel_map.validate(buffer.channel_width)
    """
    assignments: Dict[ChannelRole, Optional[int]] = field(default_factory=dict)

    def __post_init__(self):
        cleaned = {
            ChannelRole.parse(role) if isinstance(role, str) else role: bit
            for role, bit in self.assignments.items()
            if bit is not None
        }
        object.__setattr__(self, "assignments", dict(sorted(cleaned.items(), key=lambda kv: kv[0].order)))

    @classmethod
    def from_masks(cls, masks: Dict[ChannelRole, int]) -> "ChannelMap":
        """Build from one-hot channel masks (0 = unused)."""
        assignments = {}
        for role, mask in masks.items():
            if not mask:
                continue
            if mask & (mask - 1):
                raise ValueError(f"Mask 0x{mask:X} for {role.label} selects more than one channel")
            assignments[role] = mask.bit_length() - 1
        return cls(assignments)

    def resolve(self, role: ChannelRole) -> Optional[int]:
        return self.assignments.get(role)

    def is_assigned(self, role: ChannelRole) -> bool:
        return role in self.assignments

    def data_roles(self) -> list[ChannelRole]:
        return [role for role in DATA_ROLES if role in self.assignments]

    def aux_roles(self) -> list[ChannelRole]:
        return [role for role in AUX_ROLES if role in self.assignments]

    def roles(self) -> Iterable[ChannelRole]:
        return iter(self.assignments)

    def label_for(self, bit: int) -> str:
        """Signal label of a bit position, D<n> when unassigned."""
        for role, assigned in self.assignments.items():
            if assigned == bit:
                return role.label
        return f"D{bit}"

    def validate(self, channel_width: int) -> "ChannelMap":
        """Raise a ConfigError if the map can't be used with the buffer."""
        owners: Dict[int, ChannelRole] = {}
        for role, bit in self.assignments.items():
            if bit < 0 or bit >= channel_width:
                raise OutOfRange(role, bit, channel_width)
            if bit in owners:
                raise DuplicateAssignment(bit, owners[bit], role)
            owners[bit] = role
        return self
