# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

"""
"Low-level" read-only Python bindings of the SVD XML document.
Each type of structural element in the SVD XML tree is represented by a class in this module.
The class properties correspond more or less directly to the XML elements/attributes.
Each binding converts itself to the immutable description model with to_model().

Based on CMSIS-SVD schema v1.3.9.
"""

from __future__ import annotations

import typing
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple, Union

from . import model
from ._bindings import (
    Attr,
    BindingRegistry,
    Elem,
    SvdElement,
    iter_element_children,
    to_bool,
    to_int,
    to_text,
)
from .errors import SvdDefinitionError

# Container for classes that represent structural elements in the SVD XML tree.
BINDING_REGISTRY = BindingRegistry()

# Alias for the BINDING_REGISTRY.add for convenience.
binding = BINDING_REGISTRY.add


class DerivedMixin(SvdElement):
    """Common functionality for elements that contain a SVD 'derivedFrom' attribute."""

    # Name of the element that this element is derived from.
    derived_from: Attr[Optional[str]] = Attr("derivedFrom", default=None)


class RegisterPropertiesGroupMixin(SvdElement):
    """Common functionality for elements that contain a SVD 'registerPropertiesGroup'."""

    @property
    def register_properties(self) -> model.RegisterProperties:
        """Register properties specified in the element itself."""
        return model.RegisterProperties(
            size=self._size,
            access=self._access,
            reset_value=self._reset_value,
            reset_mask=self._reset_mask,
        )

    _size: Elem[Optional[int]] = Elem("size", converter=to_int, default=None)
    _access: Elem[Optional[model.Access]] = Elem(
        "access", converter=lambda s: model.Access(s.strip()), default=None
    )
    _reset_value: Elem[Optional[int]] = Elem("resetValue", converter=to_int, default=None)
    _reset_mask: Elem[Optional[int]] = Elem("resetMask", converter=to_int, default=None)


@dataclass
class Dimensions:
    """Dimensions of a repeated SVD element."""

    # Number of times the element is repeated.
    length: int

    # Increment between each element.
    step: int

    # Strings substituted for %s in the element name.
    indices: Sequence[str]


class DimElementGroupMixin(SvdElement):
    """Common functionality for elements that contain a SVD 'dimElementGroup'."""

    @property
    def dimensions(self) -> Optional[Dimensions]:
        """Get the dimensions of the element, if it is repeated."""
        if self._dim is None:
            return None

        step = self._dim_increment if self._dim_increment is not None else 0

        if self._dim_index is None:
            indices: Sequence[str] = [str(i) for i in range(self._dim)]
        else:
            indices = _parse_dim_index(self._dim_index)

        if len(indices) != self._dim:
            raise SvdDefinitionError(
                [self],
                f"dimIndex '{self._dim_index}' has {len(indices)} entries, "
                f"expected {self._dim}",
            )

        return Dimensions(length=self._dim, step=step, indices=indices)

    _dim: Elem[Optional[int]] = Elem("dim", converter=to_int, default=None)
    _dim_increment: Elem[Optional[int]] = Elem(
        "dimIncrement", converter=to_int, default=None
    )
    _dim_index: Elem[Optional[str]] = Elem("dimIndex", converter=str.strip, default=None)


def _parse_dim_index(dim_index: str) -> List[str]:
    """Parse a dimIndex value such as "0-3", "A-D" or "A,B,C"."""
    if "," in dim_index:
        return [s.strip() for s in dim_index.split(",")]

    if "-" in dim_index:
        start, end = (s.strip() for s in dim_index.split("-", 1))
        if start.isdigit() and end.isdigit():
            return [str(i) for i in range(int(start), int(end) + 1)]
        if len(start) == 1 and len(end) == 1:
            return [chr(c) for c in range(ord(start), ord(end) + 1)]

    return [dim_index]


def _expand_name(name: str, index: str) -> str:
    """Substitute a dimension index into an element name."""
    if "[%s]" in name:
        return name.replace("[%s]", index)
    return name.replace("%s", index)


def _expand_dimensions(
    element: DimElementGroupMixin, name: str
) -> Iterator[Tuple[str, int]]:
    """
    Yield (name, offset increment) for every instance of a possibly repeated element.
    Elements without dimensions yield a single instance.
    """
    dimensions = element.dimensions
    if dimensions is None:
        yield name, 0
        return

    if "%s" not in name:
        raise SvdDefinitionError(
            [element], f"Element '{name}' has dimensions but no %s in its name"
        )

    for i, index in enumerate(dimensions.indices):
        yield _expand_name(name, index), i * dimensions.step


@binding
class EnumeratedValueElement(SvdElement):
    """Value definition for a field."""

    TAG: str = "enumeratedValue"

    # Name of the enumerated value.
    name: Elem[str] = Elem("name", converter=to_text)

    # Description of the enumerated value.
    description: Elem[Optional[str]] = Elem("description", converter=to_text, default=None)

    # Value of the enumerated value, if given.
    value: Elem[Optional[int]] = Elem("value", converter=to_int, default=None)

    # True if the enumerated value is the default value of the field.
    is_default: Elem[bool] = Elem("isDefault", converter=to_bool, default=False)

    def to_model(self) -> model.EnumeratedValue:
        return model.EnumeratedValue(
            name=self.name,
            value=self.value,
            is_default=self.is_default,
            description=self.description,
        )


@binding
class EnumerationElement(DerivedMixin):
    """Container for enumerated values."""

    TAG: str = "enumeratedValues"

    # Name of the enumeration.
    name: Elem[Optional[str]] = Elem("name", converter=to_text, default=None)

    # Description of which types of operations the enumeration is used for.
    usage: Elem[Optional[model.EnumUsage]] = Elem(
        "usage", converter=lambda s: model.EnumUsage(s.strip()), default=None
    )

    @property
    def enums(self) -> Iterator[EnumeratedValueElement]:
        """Iterate over all enumerated values."""
        it = iter_element_children(self, EnumeratedValueElement.TAG)
        return typing.cast(Iterator[EnumeratedValueElement], it)

    def to_model(self) -> model.Enumeration:
        return model.Enumeration(
            values=tuple(e.to_model() for e in self.enums),
            name=self.name,
            usage=self.usage,
            derived_from=self.derived_from,
        )


@binding
class FieldElement(DimElementGroupMixin, DerivedMixin):
    """SVD field element."""

    TAG: str = "field"

    # Name of the field.
    name: Elem[str] = Elem("name", converter=to_text)

    # Description of the field.
    description: Elem[Optional[str]] = Elem("description", converter=to_text, default=None)

    # Access rights of the field.
    access: Elem[Optional[model.Access]] = Elem(
        "access", converter=lambda s: model.Access(s.strip()), default=None
    )

    @property
    def enumerations(self) -> Iterator[EnumerationElement]:
        """Iterate over the enumerated value sets of the field (at most one per usage)."""
        it = iter_element_children(self, EnumerationElement.TAG)
        return typing.cast(Iterator[EnumerationElement], it)

    @property
    def bit_range(self) -> Optional[model.BitRange]:
        """
        Bit range of the field, given in any of the three styles permitted by the schema.
        None if the field does not specify one (permitted for derived fields).
        """
        if self._lsb is not None and self._msb is not None:
            return model.BitRange(offset=self._lsb, width=self._msb - self._lsb + 1)

        if self._bit_offset is not None:
            width = self._bit_width if self._bit_width is not None else 1
            return model.BitRange(offset=self._bit_offset, width=width)

        if self._bit_range is not None:
            msb_string, lsb_string = self._bit_range.strip()[1:-1].split(":")
            msb, lsb = to_int(msb_string), to_int(lsb_string)
            return model.BitRange(offset=lsb, width=msb - lsb + 1)

        return None

    # (internal) Least significant bit of the field, if specified in the bitRangeLsbMsbStyle style.
    _lsb: Elem[Optional[int]] = Elem("lsb", converter=to_int, default=None)

    # (internal) Most significant bit of the field, if specified in the bitRangeLsbMsbStyle style.
    _msb: Elem[Optional[int]] = Elem("msb", converter=to_int, default=None)

    # (internal) Bit offset of the field, if specified in the bitRangeOffsetWidthStyle style.
    _bit_offset: Elem[Optional[int]] = Elem("bitOffset", converter=to_int, default=None)

    # (internal) Bit width of the field, if specified in the bitRangeOffsetWidthStyle style.
    _bit_width: Elem[Optional[int]] = Elem("bitWidth", converter=to_int, default=None)

    # (internal) Bit range of the field, given in the form "[msb:lsb]".
    _bit_range: Elem[Optional[str]] = Elem("bitRange", converter=str, default=None)

    def to_model(self) -> List[model.Field]:
        """Convert to model fields, one per array instance."""
        enumerations = tuple(e.to_model() for e in self.enumerations)
        bit_range = self.bit_range
        fields = []

        for name, step in _expand_dimensions(self, self.name):
            fields.append(
                model.Field(
                    name=name,
                    bit_range=(
                        bit_range._replace(offset=bit_range.offset + step)
                        if bit_range is not None
                        else None
                    ),
                    access=self.access,
                    description=self.description,
                    enumerations=enumerations,
                    derived_from=self.derived_from,
                )
            )

        return fields


@binding
class FieldsElement(SvdElement):
    """Container for SVD field elements."""

    TAG: str = "fields"


@binding
class RegisterElement(
    DimElementGroupMixin,
    RegisterPropertiesGroupMixin,
    DerivedMixin,
):
    """SVD register element."""

    TAG: str = "register"

    # Name of the register.
    name: Elem[str] = Elem("name", converter=to_text)

    # Description of the register.
    description: Elem[Optional[str]] = Elem("description", converter=to_text, default=None)

    # Address offset of the register, relative to the parent element.
    offset: Elem[Optional[int]] = Elem("addressOffset", converter=to_int, default=None)

    @property
    def fields(self) -> Iterator[FieldElement]:
        """Iterator over the fields of the register."""
        it = iter_element_children(self.find(FieldsElement.TAG), FieldElement.TAG)
        return typing.cast(Iterator[FieldElement], it)

    def to_model(self) -> List[model.Register]:
        """Convert to model registers, one per array instance."""
        fields = tuple(f for element in self.fields for f in element.to_model())
        registers = []

        for name, step in _expand_dimensions(self, self.name):
            registers.append(
                model.Register(
                    name=name,
                    offset=self.offset + step if self.offset is not None else None,
                    properties=self.register_properties,
                    description=self.description,
                    fields=fields,
                    derived_from=self.derived_from,
                )
            )

        return registers


@binding
class ClusterElement(
    DimElementGroupMixin,
    RegisterPropertiesGroupMixin,
    DerivedMixin,
):
    """SVD cluster element."""

    TAG: str = "cluster"

    # Name of the cluster.
    name: Elem[str] = Elem("name", converter=to_text)

    # Description of the cluster.
    description: Elem[Optional[str]] = Elem("description", converter=to_text, default=None)

    # Address offset of the cluster, relative to the parent element.
    offset: Elem[Optional[int]] = Elem("addressOffset", converter=to_int, default=None)

    @property
    def registers(self) -> Iterator[Union[RegisterElement, ClusterElement]]:
        """Iterator over the registers and clusters that are direct children of this cluster."""
        it = iter_element_children(self, RegisterElement.TAG, ClusterElement.TAG)
        return typing.cast(Iterator[Union[RegisterElement, ClusterElement]], it)

    def to_model(self) -> List[model.Cluster]:
        """Convert to model clusters, one per array instance."""
        children = _register_nodes(self.registers)
        clusters = []

        for name, step in _expand_dimensions(self, self.name):
            clusters.append(
                model.Cluster(
                    name=name,
                    offset=self.offset + step if self.offset is not None else None,
                    properties=self.register_properties,
                    description=self.description,
                    children=children,
                    derived_from=self.derived_from,
                )
            )

        return clusters


def _register_nodes(
    elements: Iterator[Union[RegisterElement, ClusterElement]],
) -> Tuple[model.RegisterNode, ...]:
    nodes: List[model.RegisterNode] = []
    for element in elements:
        nodes.extend(element.to_model())
    return tuple(nodes)


@binding
class RegistersElement(SvdElement):
    """Container for SVD register/cluster elements."""

    TAG: str = "registers"


@binding
class PeripheralElement(
    DimElementGroupMixin,
    RegisterPropertiesGroupMixin,
    DerivedMixin,
):
    """SVD peripheral element."""

    TAG: str = "peripheral"

    # Name of the peripheral.
    name: Elem[str] = Elem("name", converter=to_text)

    # Description of the peripheral.
    description: Elem[Optional[str]] = Elem("description", converter=to_text, default=None)

    # Base address of the peripheral.
    base_address: Elem[int] = Elem("baseAddress", converter=to_int)

    # Name of the group that the peripheral belongs to.
    group_name: Elem[Optional[str]] = Elem("groupName", converter=to_text, default=None)

    @property
    def registers(self) -> Iterator[Union[RegisterElement, ClusterElement]]:
        """Iterator over the registers and clusters that are direct children of this peripheral."""
        it = iter_element_children(
            self.find(RegistersElement.TAG), RegisterElement.TAG, ClusterElement.TAG
        )
        return typing.cast(Iterator[Union[RegisterElement, ClusterElement]], it)

    def to_model(self) -> List[model.Peripheral]:
        """Convert to model peripherals, one per array instance."""
        children = _register_nodes(self.registers)
        peripherals = []

        for name, step in _expand_dimensions(self, self.name):
            peripherals.append(
                model.Peripheral(
                    name=name,
                    base_address=self.base_address + step,
                    group_name=self.group_name,
                    description=self.description,
                    properties=self.register_properties,
                    children=children,
                    derived_from=self.derived_from,
                )
            )

        return peripherals


@binding
class PeripheralsElement(SvdElement):
    """Container for SVD peripheral elements."""

    TAG: str = "peripherals"


@binding
class DeviceElement(RegisterPropertiesGroupMixin):
    """SVD device element."""

    TAG: str = "device"

    # Name of the device.
    name: Elem[str] = Elem("name", converter=to_text)

    # Version of the device.
    version: Elem[Optional[str]] = Elem("version", converter=to_text, default=None)

    # Full device vendor name.
    vendor: Elem[Optional[str]] = Elem("vendor", converter=to_text, default=None)

    # Description of the device.
    description: Elem[Optional[str]] = Elem("description", converter=to_text, default=None)

    # Number of data bits selected by each address.
    address_unit_bits: Elem[int] = Elem("addressUnitBits", converter=to_int, default=8)

    @property
    def peripherals(self) -> Iterator[PeripheralElement]:
        """Iterate over all peripherals in the device"""
        it = iter_element_children(self.find(PeripheralsElement.TAG), PeripheralElement.TAG)
        return typing.cast(Iterator[PeripheralElement], it)

    def to_model(self) -> model.Device:
        if self.address_unit_bits != 8:
            raise SvdDefinitionError(
                [self], "only byte-addressable devices (addressUnitBits 8) are supported"
            )

        peripherals: List[model.Peripheral] = []
        seen = {}
        for element in self.peripherals:
            for peripheral in element.to_model():
                if peripheral.name in seen:
                    raise SvdDefinitionError(
                        [seen[peripheral.name], element],
                        f"Duplicate peripheral name '{peripheral.name}'",
                    )
                seen[peripheral.name] = element
                peripherals.append(peripheral)

        return model.Device(
            name=self.name,
            peripherals=tuple(peripherals),
            properties=self.register_properties,
            description=self.description,
            vendor=self.vendor,
            version=self.version,
        )
