# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

"""
Generation entry points.
"""

from __future__ import annotations

import enum
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Union

import svdgen

from .emit import Emitter, GeneratorOptions
from .errors import GenerationError, IdentifierCollision, NoMatch, SvdgenError
from .layout import plan_peripheral
from .model import Device, Peripheral
from .resolve import Resolver


class _Selector(enum.Enum):
    ALL_PERIPHERALS = enum.auto()


# Selector for the base address table of all peripherals
ALL_PERIPHERALS = _Selector.ALL_PERIPHERALS


def select_peripheral(device: Device, pattern: str) -> Optional[Peripheral]:
    """
    Select a peripheral by name.

    A case-insensitive exact match takes precedence over a case-insensitive substring match.
    If several peripherals contain the pattern, the first one in declaration order is selected.

    :param device: Device to select from.
    :param pattern: Name or part of a name.
    :return: The selected peripheral, or None if no peripheral matches.
    """
    pattern_lower = pattern.lower()

    for peripheral in device.peripherals:
        if peripheral.name.lower() == pattern_lower:
            return peripheral

    for peripheral in device.peripherals:
        if pattern_lower in peripheral.name.lower():
            return peripheral

    return None


def generate(
    device: Device,
    selector: Union[str, _Selector, None] = ALL_PERIPHERALS,
    options: Optional[GeneratorOptions] = None,
    resolver: Optional[Resolver] = None,
    collisions: Optional[List[IdentifierCollision]] = None,
) -> List[str]:
    """
    Generate code for a device.

    :param device: Parsed device.
    :param selector: ALL_PERIPHERALS (or None) to generate the base address table of every
                     peripheral, or a pattern selecting one peripheral to generate register
                     access code for. See select_peripheral().
    :param options: Generator options.
    :param resolver: Resolver to use. Pass the same resolver to several calls to reuse
                     resolved peripherals.
    :param collisions: If given, identifier collisions in the generated code are appended to
                       this list.

    :raises NoMatch: If the pattern matches no peripheral.
    :raises GenerationError: If the selected peripheral has a structural error.

    :return: Code units in emission order.
    """
    emitter = Emitter(options=options)

    if selector is None or selector is ALL_PERIPHERALS:
        return emitter.emit_address_table(device.peripherals, collisions)

    assert isinstance(selector, str)
    peripheral = select_peripheral(device, selector)
    if peripheral is None:
        raise NoMatch(selector)

    if resolver is None:
        resolver = Resolver(device)

    svdgen.log.info(f"Generating {peripheral.name} (selected by '{selector}')")

    return _generate_peripheral(resolver, emitter, peripheral, collisions)


def generate_all(
    device: Device,
    options: Optional[GeneratorOptions] = None,
    max_workers: Optional[int] = None,
) -> Dict[str, Union[List[str], SvdgenError]]:
    """
    Generate register access code for every peripheral of a device.

    Peripherals are generated independently on a thread pool, sharing one resolver. A structural
    error in one peripheral does not affect the others: the error is returned in place of the
    code units of that peripheral.

    :param device: Parsed device.
    :param options: Generator options.
    :param max_workers: Maximum number of worker threads. See ThreadPoolExecutor.

    :return: Mapping from peripheral name to code units or error, in declaration order.
    """
    resolver = Resolver(device)
    emitter = Emitter(options=options)

    def generate_one(peripheral: Peripheral) -> Union[List[str], SvdgenError]:
        try:
            return _generate_peripheral(resolver, emitter, peripheral)
        except GenerationError as e:
            svdgen.log.warning(f"Skipping peripheral {peripheral.name}: {e}")
            return e

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        results = list(executor.map(generate_one, device.peripherals))

    return {p.name: result for p, result in zip(device.peripherals, results)}


def _generate_peripheral(
    resolver: Resolver,
    emitter: Emitter,
    peripheral: Peripheral,
    collisions: Optional[List[IdentifierCollision]] = None,
) -> List[str]:
    resolved = resolver.resolve(peripheral)
    layout = plan_peripheral(resolved)
    return emitter.emit_peripheral(layout, collisions)
