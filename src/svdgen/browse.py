# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

"""
Searching and text listing of peripherals.

Names in the listing are enclosed in '||' markers, which a front end can turn into colors
(see colorize()) or remove (see strip_markers()).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple

from .model import Access, Cluster, EnumeratedValue, Field, Peripheral, Register, RegisterNode

MARKER = "||"

_MARKED_RE = re.compile(r"\|\|(.*?)\|\|")


@dataclass(frozen=True)
class SearchSettings:
    # Also match the pattern against descriptions.
    search_descriptions: bool = False


@dataclass(frozen=True)
class OutputSettings:
    # 0: names, offsets, access and descriptions. 1: also register sizes and reset values.
    verbosity: int = 0


def create_pattern(search_string: str) -> re.Pattern:
    """
    Create a pattern that matches the search string regardless of case.

    Every character becomes a character class of its upper and lower case forms, so "uart"
    becomes "[Uu][Aa][Rr][Tt]". Other characters are matched literally.
    """
    parts = []
    for c in search_string:
        variants = {c.upper(), c.lower()}
        parts.append("[" + "".join(re.escape(v) for v in sorted(variants)) + "]")
    return re.compile("".join(parts))


def _search(pattern: re.Pattern, text: Optional[str]) -> bool:
    return text is not None and pattern.search(text) is not None


def match_field(pattern: re.Pattern, field: Field, settings: SearchSettings) -> bool:
    if _search(pattern, field.name):
        return True

    if settings.search_descriptions and _search(pattern, field.description):
        return True

    return any(
        _search(pattern, value.name)
        for enumeration in field.enumerations
        for value in enumeration.values
    )


def match_register(pattern: re.Pattern, register: Register, settings: SearchSettings) -> bool:
    if _search(pattern, register.name):
        return True

    if settings.search_descriptions and _search(pattern, register.description):
        return True

    return any(match_field(pattern, f, settings) for f in register.fields)


def match(
    pattern: re.Pattern,
    peripheral: Peripheral,
    settings: Optional[SearchSettings] = None,
) -> bool:
    """
    Check if a peripheral, or any of its registers, fields or enumerated values, matches
    a pattern.

    :param pattern: Pattern created with create_pattern().
    :param peripheral: Peripheral to match, typically a resolved one.
    :param settings: Search settings.
    :return: True if the pattern is found.
    """
    if settings is None:
        settings = SearchSettings()

    if _search(pattern, peripheral.name) or _search(pattern, peripheral.group_name):
        return True

    if settings.search_descriptions and _search(pattern, peripheral.description):
        return True

    return any(match_register(pattern, r, settings) for r in peripheral.register_iter())


def render(peripheral: Peripheral, settings: Optional[OutputSettings] = None) -> str:
    """
    Render a text listing of a peripheral, its registers, fields and enumerated values.

    :param peripheral: Resolved peripheral.
    :param settings: Output settings.
    :return: Listing with names enclosed in markers.
    """
    if settings is None:
        settings = OutputSettings()

    registers = list(_iter_registers(peripheral.children, "", 0))
    max_field_len = max(
        (len(f.name) for _, _, r in registers for f in r.fields), default=0
    )

    lines = [_format_peripheral(peripheral)]

    for name, offset, register in registers:
        lines.append(_format_register(name, offset, register, max_field_len, settings))

        if not register.fields:
            continue

        for field in register.fields:
            lines.append(_format_field(field, max_field_len))
            for enumeration in field.enumerations:
                for value in enumeration.values:
                    lines.append(_format_enumerated_value(value, max_field_len))
        lines.append("")

    return "\n".join(lines)


def highlight(text: str, pattern: re.Pattern) -> str:
    """Enclose every match of the pattern in markers."""
    return pattern.sub(lambda m: f"{MARKER}{m.group(0)}{MARKER}", text)


def strip_markers(text: str) -> str:
    return _MARKED_RE.sub(r"\1", text)


def colorize(text: str, start: str = "\x1b[1;31m", end: str = "\x1b[0m") -> str:
    """Replace pairs of markers with terminal escape sequences."""
    return _MARKED_RE.sub(lambda m: f"{start}{m.group(1)}{end}", text)


def _iter_registers(
    nodes: Sequence[RegisterNode], prefix: str, offset: int
) -> Iterator[Tuple[str, int, Register]]:
    for node in nodes:
        node_offset = offset + (node.offset or 0)
        if isinstance(node, Cluster):
            yield from _iter_registers(node.children, f"{prefix}{node.name}.", node_offset)
        else:
            yield f"{prefix}{node.name}", node_offset, node


def _format_peripheral(peripheral: Peripheral) -> str:
    parts = [f"{MARKER}{peripheral.name}{MARKER}"]
    if peripheral.group_name is not None:
        parts.append(f"({peripheral.group_name})")
    parts.append(f"(0x{peripheral.base_address:08x}): {peripheral.description or ''}")
    return " ".join(parts)


def _format_register(
    name: str,
    offset: int,
    register: Register,
    max_field_len: int,
    settings: OutputSettings,
) -> str:
    access = register.access if register.access is not None else Access.READ_WRITE
    padding = " " * max(max_field_len - 5 - len(name), 0)
    line = (
        f"  - {MARKER}{name}{MARKER}{padding} (+0x{offset:04x}): {access.value} - "
        f"{register.description or ''}"
    )
    if settings.verbosity > 0 and register.size is not None:
        reset = register.reset_value if register.reset_value is not None else 0
        line += f" [{register.size} bits, reset 0x{reset:0{(register.size + 3) // 4}x}]"
    return line


def _format_field(field: Field, max_field_len: int) -> str:
    padding = " " * max(max_field_len - len(field.name), 0)
    parts = [f"      - {MARKER}{field.name}{MARKER}{padding} :"]

    if field.bit_range is None:
        parts.append(f"{'?':>5}")
    elif field.bit_range.width == 1:
        parts.append(f"{field.bit_range.offset:>5}")
    else:
        parts.append(f"{f'{field.bit_range.offset}-{field.bit_range.msb}':>5}")

    if field.access is not None:
        parts.append(f"- {field.access.value}")
    parts.append(f"- {field.description or ''}")

    return " ".join(parts)


def _format_enumerated_value(value: EnumeratedValue, max_field_len: int) -> str:
    parts: List[str] = [f"{'':>{max_field_len + 20}} + {MARKER}{value.name}{MARKER}"]
    if value.value is not None:
        parts.append(f"({value.value})")
    if value.is_default:
        parts.append("(DEFAULT)")
    if value.description:
        parts.append(value.description)
    return " ".join(parts)
