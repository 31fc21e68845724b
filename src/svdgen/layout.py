# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

"""
Bit level layout of resolved registers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, NamedTuple, Sequence, Tuple

import svdgen

from .errors import GenerationError, OutOfRange, OverlappingFields
from .model import Access, BitRange, Cluster, Field, Peripheral, Register, RegisterNode


class FieldLayout(NamedTuple):
    """Mask and shift of a field within its register."""

    field: Field

    # Field mask, not shifted. Has bit_width ones.
    mask: int

    # Bit offset of the field.
    shift: int

    # Effective access of the field.
    access: Access

    @property
    def name(self) -> str:
        return self.field.name

    @property
    def width(self) -> int:
        return self.mask.bit_length()

    @property
    def shifted_mask(self) -> int:
        """Mask of the field bits in the register."""
        return self.mask << self.shift

    @property
    def is_bit(self) -> bool:
        """True for single-bit fields."""
        return self.mask == 1

    def extract(self, register_value: int) -> int:
        """Extract the field value from a register value."""
        return (register_value >> self.shift) & self.mask

    def insert(self, register_value: int, value: int) -> int:
        """
        Replace the field bits of a register value, keeping every other bit.

        :raises ValueError: If the value does not fit in the field.
        """
        if value < 0 or value > self.mask:
            raise ValueError(
                f"Value {value:#x} does not fit in {self.width}-bit field {self.name}"
            )
        return (register_value & ~self.shifted_mask) | (value << self.shift)


@dataclass(frozen=True)
class RegisterLayout:
    """Resolved register with its fields laid out."""

    register: Register

    # Element names from the peripheral down to the register.
    path: Tuple[str, ...]

    # Address offset relative to the peripheral base address, including cluster offsets.
    offset: int

    fields: Tuple[FieldLayout, ...]

    @property
    def name(self) -> str:
        """Register name qualified with the names of the enclosing clusters."""
        return "_".join(self.path[1:])

    @property
    def size(self) -> int:
        assert self.register.properties.size is not None
        return self.register.properties.size

    @property
    def access(self) -> Access:
        assert self.register.properties.access is not None
        return self.register.properties.access

    @property
    def reset_value(self) -> int:
        assert self.register.properties.reset_value is not None
        return self.register.properties.reset_value

    @property
    def full_mask(self) -> int:
        return (1 << self.size) - 1

    @property
    def field_mask(self) -> int:
        """Mask of all the bits covered by fields."""
        mask = 0
        for field in self.fields:
            mask |= field.shifted_mask
        return mask

    @property
    def reserved_mask(self) -> int:
        """Mask of the bits not covered by any field."""
        return self.full_mask & ~self.field_mask

    def reserved_spans(self) -> List[BitRange]:
        """Contiguous ranges of reserved bits, in ascending order."""
        reserved_mask = self.reserved_mask
        spans = []
        start = None
        for bit in range(self.size + 1):
            reserved = bit < self.size and (reserved_mask >> bit) & 1
            if reserved and start is None:
                start = bit
            elif not reserved and start is not None:
                spans.append(BitRange(offset=start, width=bit - start))
                start = None
        return spans


@dataclass(frozen=True)
class PeripheralLayout:
    """Resolved peripheral with every register laid out, clusters flattened."""

    peripheral: Peripheral

    registers: Tuple[RegisterLayout, ...]

    @property
    def name(self) -> str:
        return self.peripheral.name

    @property
    def base_address(self) -> int:
        return self.peripheral.base_address

    def address_of(self, register: RegisterLayout) -> int:
        """Absolute address of a register of the peripheral."""
        return self.base_address + register.offset


def plan_register(
    register: Register, path: Sequence[str] = (), offset: int = 0
) -> RegisterLayout:
    """
    Compute the field masks and shifts of a resolved register and validate its fields.

    :param register: Resolved register.
    :param path: Path of the enclosing elements; the register name is appended.
    :param offset: Offset of the enclosing cluster relative to the peripheral.

    :raises OutOfRange: If a field does not fit in the register.
    :raises OverlappingFields: If two fields share a bit.

    :return: Register layout with the fields in ascending bit order.
    """
    reg_path = (*path, register.name)
    props = register.properties

    if not props.is_full or register.offset is None:
        raise GenerationError(reg_path, "register has not been resolved")

    size = props.size
    assert size is not None and props.reset_value is not None

    if size <= 0:
        raise GenerationError(reg_path, f"invalid register size {size}")

    if props.reset_value < 0 or props.reset_value.bit_length() > size:
        raise GenerationError(
            reg_path,
            f"reset value {props.reset_value:#x} does not fit in a {size}-bit register",
        )

    fields: List[FieldLayout] = []

    for field in register.fields:
        field_path = (*reg_path, field.name)
        if field.bit_range is None:
            raise GenerationError(field_path, "field has not been resolved")

        bit_offset, width = field.bit_range
        if bit_offset < 0 or width <= 0 or bit_offset + width > size:
            raise OutOfRange(field_path, bit_offset, width, size)

        fields.append(
            FieldLayout(
                field=field,
                mask=(1 << width) - 1,
                shift=bit_offset,
                access=field.access if field.access is not None else props.access,
            )
        )

    fields.sort(key=lambda f: f.shift)

    for lower, upper in zip(fields, fields[1:]):
        lower_msb = lower.shift + lower.width - 1
        if upper.shift <= lower_msb:
            raise OverlappingFields(reg_path, lower.name, upper.name, upper.shift)

    return RegisterLayout(
        register=register,
        path=reg_path,
        offset=offset + register.offset,
        fields=tuple(fields),
    )


def plan_peripheral(peripheral: Peripheral) -> PeripheralLayout:
    """
    Lay out every register of a resolved peripheral.
    Registers inside clusters get the cluster offsets added and their names qualified with
    the cluster names.

    :param peripheral: Resolved peripheral.
    :return: Peripheral layout with registers in declaration order.
    """
    if peripheral.derived_from is not None:
        raise GenerationError((peripheral.name,), "peripheral has not been resolved")

    registers = tuple(_iter_layouts(peripheral.children, (peripheral.name,), 0))

    svdgen.log.debug(f"Laid out {len(registers)} registers of {peripheral.name}")

    return PeripheralLayout(peripheral=peripheral, registers=registers)


def _iter_layouts(
    nodes: Sequence[RegisterNode], path: Tuple[str, ...], offset: int
) -> Iterator[RegisterLayout]:
    for node in nodes:
        if isinstance(node, Cluster):
            if node.offset is None:
                raise GenerationError((*path, node.name), "cluster has not been resolved")
            yield from _iter_layouts(
                node.children, (*path, node.name), offset + node.offset
            )
        else:
            yield plan_register(node, path, offset)
