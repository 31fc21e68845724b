# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

"""
Resolution of 'derivedFrom' relationships and register property defaults.

The resolver turns a peripheral of the description model into a self-contained copy where every
'derivedFrom' chain has been merged and every register property has been filled from the nearest
enclosing level (field -> register -> cluster -> peripheral -> device). The input model is never
modified, so the same device can be resolved any number of times.
"""

from __future__ import annotations

import dataclasses as dc
from typing import Callable, Dict, List, Optional, Sequence, Tuple, TypeVar, Union

import svdgen

from .errors import DerivationCycle, GenerationError, UnresolvedReference
from .model import (
    DEFAULT_PROPERTIES,
    Cluster,
    Device,
    Enumeration,
    Field,
    Peripheral,
    Register,
    RegisterNode,
    RegisterProperties,
)

Path = Tuple[str, ...]

NodeT = TypeVar("NodeT", Field, Register, Cluster, RegisterNode)


class Resolver:
    """
    Resolves the peripherals of a device.

    Resolved peripherals are cached by name. The cache is populated write-once: if two threads
    resolve the same peripheral concurrently, both compute the result and the first one stored
    is the one that every caller gets.
    """

    def __init__(self, device: Device) -> None:
        """
        :param device: Device containing the peripherals to resolve.
        """
        self._device: Device = device
        self._defaults: RegisterProperties = device.defaults
        self._cache: Dict[str, Peripheral] = {}

    @property
    def device(self) -> Device:
        """The device that peripherals are resolved against."""
        return self._device

    def resolve(self, peripheral: Union[str, Peripheral]) -> Peripheral:
        """
        Resolve a peripheral of the device.

        :param peripheral: Peripheral name, or a peripheral object. Peripheral objects that are
                           not part of the device are resolved against it but not cached.

        :raises UnresolvedReference: If a 'derivedFrom' attribute names a nonexistent element.
        :raises DerivationCycle: If 'derivedFrom' attributes form a cycle.

        :return: Resolved copy of the peripheral.
        """
        if isinstance(peripheral, str):
            if peripheral not in self._device.peripheral_map:
                raise UnresolvedReference((), peripheral)
            return self._resolve_name(peripheral, ())

        if self._device.peripheral_map.get(peripheral.name) is peripheral:
            return self._resolve_name(peripheral.name, ())

        return self._resolve(peripheral, ())

    def _resolve_name(self, name: str, visited: Path) -> Peripheral:
        cached = self._cache.get(name)
        if cached is not None:
            return cached

        result = self._resolve(self._device.peripheral_map[name], visited)
        return self._cache.setdefault(name, result)

    def _resolve(self, peripheral: Peripheral, visited: Path) -> Peripheral:
        if peripheral.name in visited:
            raise DerivationCycle((peripheral.name,), (*visited, peripheral.name))

        base: Optional[Peripheral] = None
        if peripheral.derived_from is not None:
            if peripheral.derived_from not in self._device.peripheral_map:
                raise UnresolvedReference((peripheral.name,), peripheral.derived_from)

            svdgen.log.debug(
                f"Resolving {peripheral.name} derived from {peripheral.derived_from}"
            )
            base = self._resolve_name(
                peripheral.derived_from, (*visited, peripheral.name)
            )

        return resolve_peripheral(peripheral, self._defaults, base)


def resolve_peripheral(
    peripheral: Peripheral,
    defaults: RegisterProperties = DEFAULT_PROPERTIES,
    base: Optional[Peripheral] = None,
) -> Peripheral:
    """
    Resolve a single peripheral.

    :param peripheral: Peripheral to resolve.
    :param defaults: Device level register properties.
    :param base: Resolved peripheral that the peripheral derives from, if any.

    :return: Resolved copy of the peripheral.
    """
    path: Path = (peripheral.name,)

    if peripheral.derived_from is not None and base is None:
        raise UnresolvedReference(path, peripheral.derived_from)

    if base is not None:
        peripheral = dc.replace(
            peripheral,
            group_name=_first(peripheral.group_name, base.group_name),
            description=_first(peripheral.description, base.description),
            properties=peripheral.properties.inherit(base.properties),
            children=_merge_children(peripheral.children, base.children),
        )

    properties = peripheral.properties.inherit(defaults.inherit(DEFAULT_PROPERTIES))

    return dc.replace(
        peripheral,
        properties=properties,
        children=_resolve_nodes(peripheral.children, properties, path),
        derived_from=None,
    )


def _first(value, fallback):
    return value if value is not None else fallback


def _local_name(reference: str) -> str:
    """Qualified references (PERIPH.REG.FIELD) are looked up by their last component."""
    return reference.rsplit(".", 1)[-1]


def _merge_children(own: Sequence[NodeT], base: Sequence[NodeT]) -> Tuple[NodeT, ...]:
    """
    Merge two lists of named children.
    Own children replace base children of the same name in the base position;
    the remaining own children follow the base children in declaration order.
    """
    own_by_name = {child.name: child for child in own}
    merged: List[NodeT] = [own_by_name.pop(child.name, child) for child in base]
    merged.extend(child for child in own if child.name in own_by_name)
    return tuple(merged)


def _resolve_scope(
    nodes: Sequence[NodeT],
    path: Path,
    merge: Callable[[NodeT, NodeT], NodeT],
    finish: Callable[[NodeT], NodeT],
) -> Tuple[NodeT, ...]:
    """
    Resolve the 'derivedFrom' attributes of sibling elements.

    :param nodes: Sibling elements.
    :param path: Path of the parent element.
    :param merge: Merge an element with its resolved base element.
    :param finish: Complete an element that has no remaining 'derivedFrom' attribute.

    :return: Resolved elements in the original order.
    """
    by_name = {node.name: node for node in nodes}
    # Keyed on object identity, since names are not guaranteed to be unique
    resolved: Dict[int, NodeT] = {}

    def resolve_node(node: NodeT, visited: Path) -> NodeT:
        key = id(node)
        if key in resolved:
            return resolved[key]

        if node.name in visited:
            raise DerivationCycle((*path, node.name), (*visited, node.name))

        if node.derived_from is not None:
            target = by_name.get(_local_name(node.derived_from))
            if target is None or type(target) is not type(node):
                raise UnresolvedReference((*path, node.name), node.derived_from)

            base = resolve_node(target, (*visited, node.name))
            node = merge(node, base)

        result = finish(node)
        resolved[key] = result
        return result

    return tuple(resolve_node(node, ()) for node in nodes)


def _resolve_nodes(
    nodes: Sequence[RegisterNode], parent_props: RegisterProperties, path: Path
) -> Tuple[RegisterNode, ...]:
    def merge(node: RegisterNode, base: RegisterNode) -> RegisterNode:
        if isinstance(node, Register):
            assert isinstance(base, Register)
            return dc.replace(
                node,
                offset=_first(node.offset, base.offset),
                properties=node.properties.inherit(base.properties),
                description=_first(node.description, base.description),
                fields=_merge_children(node.fields, base.fields),
                derived_from=None,
            )

        assert isinstance(base, Cluster)
        return dc.replace(
            node,
            offset=_first(node.offset, base.offset),
            properties=node.properties.inherit(base.properties),
            description=_first(node.description, base.description),
            children=_merge_children(node.children, base.children),
            derived_from=None,
        )

    def finish(node: RegisterNode) -> RegisterNode:
        properties = node.properties.inherit(parent_props)
        node_path = (*path, node.name)

        if isinstance(node, Cluster):
            return dc.replace(
                node,
                offset=_first(node.offset, 0),
                properties=properties,
                children=_resolve_nodes(node.children, properties, node_path),
                derived_from=None,
            )

        assert properties.size is not None and properties.access is not None
        if properties.reset_mask is None:
            properties = dc.replace(properties, reset_mask=(1 << properties.size) - 1)

        return dc.replace(
            node,
            offset=_first(node.offset, 0),
            properties=properties,
            fields=_resolve_fields(node.fields, properties, node_path),
            derived_from=None,
        )

    return _resolve_scope(nodes, path, merge, finish)


def _resolve_fields(
    fields: Sequence[Field], register_props: RegisterProperties, path: Path
) -> Tuple[Field, ...]:
    enumerations = {
        e.name: e for f in fields for e in f.enumerations if e.name is not None
    }

    def merge(field: Field, base: Field) -> Field:
        return dc.replace(
            field,
            bit_range=_first(field.bit_range, base.bit_range),
            access=_first(field.access, base.access),
            description=_first(field.description, base.description),
            enumerations=field.enumerations or base.enumerations,
            derived_from=None,
        )

    def finish(field: Field) -> Field:
        field_path = (*path, field.name)
        if field.bit_range is None:
            raise GenerationError(field_path, "field has no bit range")

        return dc.replace(
            field,
            access=_first(field.access, register_props.access),
            enumerations=tuple(
                _resolve_enumeration(e, enumerations, field_path, ())
                for e in field.enumerations
            ),
            derived_from=None,
        )

    return _resolve_scope(fields, path, merge, finish)


def _resolve_enumeration(
    enumeration: Enumeration,
    scope: Dict[str, Enumeration],
    path: Path,
    visited: Path,
) -> Enumeration:
    if enumeration.derived_from is None:
        return dc.replace(enumeration, usage=enumeration.effective_usage)

    label = enumeration.name or "<enumeratedValues>"
    if label in visited:
        raise DerivationCycle(path, (*visited, label))

    base = scope.get(_local_name(enumeration.derived_from))
    if base is None:
        raise UnresolvedReference(path, enumeration.derived_from)

    base = _resolve_enumeration(base, scope, path, (*visited, label))

    return Enumeration(
        values=enumeration.values or base.values,
        name=enumeration.name,
        usage=enumeration.usage if enumeration.usage is not None else base.usage,
        derived_from=None,
    )
