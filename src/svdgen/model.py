# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

"""
Immutable description model of a SVD device.

This is the tree consumed by the generation engine: Device -> Peripherals -> Registers/Clusters
-> Fields -> Enumerations -> EnumeratedValues. Every attribute that the SVD format allows to be
inherited (through 'derivedFrom' or through the register property defaults) is optional here.
The resolver produces a copy of the tree where all of them are set.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from functools import cached_property
from typing import Iterator, Mapping, NamedTuple, Optional, Tuple, Union

from typing_extensions import Self


class CaseInsensitiveStrEnum(enum.Enum):
    """String enum class that can be constructed from a case-insensitive string."""

    @classmethod
    def _missing_(cls, value: object) -> Optional[Self]:
        """Handler for string values with mismatched case."""
        if not isinstance(value, str):
            return None

        value_lower = value.lower()
        for member in cls:
            if member.value.lower() == value_lower:
                return member

        return None


@enum.unique
class Access(CaseInsensitiveStrEnum):
    """
    Access rights for a given register or field.
    See "accessType" in the SVD schema.
    """

    # Read access is permitted. Write operations have an undefined result.
    READ_ONLY = "read-only"
    # Write access is permitted. Read operations have an undefined result.
    WRITE_ONLY = "write-only"
    # Read and write accesses are permitted.
    READ_WRITE = "read-write"
    # Only the first write after reset has an effect. Read operations have an undefined results.
    WRITE_ONCE = "writeOnce"
    # Only the first write after reset has an effect. Read access is permitted.
    READ_WRITE_ONCE = "read-writeOnce"

    @property
    def is_readable(self) -> bool:
        return self in (Access.READ_ONLY, Access.READ_WRITE, Access.READ_WRITE_ONCE)

    @property
    def is_writable(self) -> bool:
        return self is not Access.READ_ONLY


@enum.unique
class EnumUsage(CaseInsensitiveStrEnum):
    """
    Usage of an enumerated value.
    See "enumUsageType" in the SVD schema.
    """

    # The value is relevant for read operations.
    READ = "read"
    # The value is relevant for write operations.
    WRITE = "write"
    # The value is relevant for read and write operations.
    READ_WRITE = "read-write"


class BitRange(NamedTuple):
    """Bit range of a field."""

    # Bit offset of the field.
    offset: int

    # Bit width of the field.
    width: int

    @property
    def msb(self) -> int:
        """Most significant bit occupied by the range."""
        return self.offset + self.width - 1


@dataclass(frozen=True)
class RegisterProperties:
    """Common SVD device/peripheral/cluster/register level properties."""

    # Size of the register in bits.
    size: Optional[int] = None

    # Access rights of the register.
    access: Optional[Access] = None

    # Reset value of the register.
    reset_value: Optional[int] = None

    # Reset mask of the register.
    reset_mask: Optional[int] = None

    def inherit(self, base: RegisterProperties) -> RegisterProperties:
        """
        Fill the properties that are not set in this object from a base set of properties.
        Each property is inherited independently of the others.
        """
        return RegisterProperties(
            size=self.size if self.size is not None else base.size,
            access=self.access if self.access is not None else base.access,
            reset_value=(
                self.reset_value if self.reset_value is not None else base.reset_value
            ),
            reset_mask=(
                self.reset_mask if self.reset_mask is not None else base.reset_mask
            ),
        )

    @property
    def is_full(self) -> bool:
        """True if every property is set."""
        return all(
            p is not None
            for p in (self.size, self.access, self.reset_value, self.reset_mask)
        )


# Properties used when neither the device nor any other level defines them.
# The reset mask is derived from the register size during resolution.
DEFAULT_PROPERTIES = RegisterProperties(
    size=32, access=Access.READ_WRITE, reset_value=0, reset_mask=None
)


@dataclass(frozen=True)
class EnumeratedValue:
    """Named interpretation of a field value."""

    name: str

    # Numeric value. If None, the value is either positional or, for the default value,
    # a catch-all for every value not otherwise enumerated.
    value: Optional[int] = None

    # True if the enumerated value is the default value of the field.
    is_default: bool = False

    description: Optional[str] = None


@dataclass(frozen=True)
class Enumeration:
    """Set of enumerated values of a field, for a given usage."""

    values: Tuple[EnumeratedValue, ...] = ()

    name: Optional[str] = None

    usage: Optional[EnumUsage] = None

    derived_from: Optional[str] = None

    @property
    def effective_usage(self) -> EnumUsage:
        return self.usage if self.usage is not None else EnumUsage.READ_WRITE

    @property
    def is_read(self) -> bool:
        return self.effective_usage in (EnumUsage.READ, EnumUsage.READ_WRITE)

    @property
    def is_write(self) -> bool:
        return self.effective_usage in (EnumUsage.WRITE, EnumUsage.READ_WRITE)

    @property
    def default(self) -> Optional[EnumeratedValue]:
        """The value flagged as default, if any."""
        return next((v for v in self.values if v.is_default), None)


@dataclass(frozen=True)
class Field:
    """Bit field of a register."""

    name: str

    # Bit range occupied by the field. Only derived fields may leave this unset.
    bit_range: Optional[BitRange] = None

    # Access override. Inherited from the register if not set.
    access: Optional[Access] = None

    description: Optional[str] = None

    enumerations: Tuple[Enumeration, ...] = ()

    derived_from: Optional[str] = None

    @property
    def read_enumeration(self) -> Optional[Enumeration]:
        """Enumeration used to interpret values read from the field."""
        return next((e for e in self.enumerations if e.is_read), None)

    @property
    def write_enumeration(self) -> Optional[Enumeration]:
        """Enumeration used to interpret values written to the field."""
        return next((e for e in self.enumerations if e.is_write), None)


@dataclass(frozen=True)
class Register:
    """SVD register."""

    name: str

    # Address offset relative to the enclosing peripheral or cluster.
    offset: Optional[int] = None

    properties: RegisterProperties = field(default_factory=RegisterProperties)

    description: Optional[str] = None

    fields: Tuple[Field, ...] = ()

    derived_from: Optional[str] = None

    @property
    def size(self) -> Optional[int]:
        return self.properties.size

    @property
    def access(self) -> Optional[Access]:
        return self.properties.access

    @property
    def reset_value(self) -> Optional[int]:
        return self.properties.reset_value


@dataclass(frozen=True)
class Cluster:
    """Named group of registers sharing an address sub-range."""

    name: str

    # Address offset relative to the enclosing peripheral or cluster.
    offset: Optional[int] = None

    properties: RegisterProperties = field(default_factory=RegisterProperties)

    description: Optional[str] = None

    children: Tuple[RegisterNode, ...] = ()

    derived_from: Optional[str] = None


# Elements that can appear in the register level of a peripheral
RegisterNode = Union[Register, Cluster]


@dataclass(frozen=True)
class Peripheral:
    """SVD peripheral."""

    name: str

    # Absolute base address of the peripheral.
    base_address: int

    group_name: Optional[str] = None

    description: Optional[str] = None

    properties: RegisterProperties = field(default_factory=RegisterProperties)

    children: Tuple[RegisterNode, ...] = ()

    derived_from: Optional[str] = None

    def register_iter(self) -> Iterator[Register]:
        """Iterate over all registers of the peripheral, descending into clusters."""
        yield from _iter_registers(self.children)


def _iter_registers(nodes: Tuple[RegisterNode, ...]) -> Iterator[Register]:
    for node in nodes:
        if isinstance(node, Cluster):
            yield from _iter_registers(node.children)
        else:
            yield node


@dataclass(frozen=True)
class Device:
    """Root of the description: device level defaults and peripherals."""

    name: str

    peripherals: Tuple[Peripheral, ...] = ()

    properties: RegisterProperties = field(default_factory=RegisterProperties)

    description: Optional[str] = None

    vendor: Optional[str] = None

    version: Optional[str] = None

    @cached_property
    def peripheral_map(self) -> Mapping[str, Peripheral]:
        """Peripherals indexed by name, in declaration order."""
        return {p.name: p for p in self.peripherals}

    @property
    def defaults(self) -> RegisterProperties:
        """Device level register properties completed with the built-in defaults."""
        return self.properties.inherit(DEFAULT_PROPERTIES)
