# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

"""
Mapping of SVD names to identifiers.

The functions here only guarantee that the result has the shape of an identifier. Escaping of
reserved words of the output language is left to the emitter, which passes its escape function
to the scopes it creates.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Set

import svdgen

from .errors import IdentifierCollision

# Words are runs of upper case letters (acronyms), capitalized or lower case words, and numbers.
# Trailing digits stay attached to the word they follow, so "TIMER0" is one word.
_WORD_RE = re.compile(r"[A-Z]+[0-9]*(?![a-z])|[A-Z]?[a-z]+[0-9]*|[0-9]+[A-Za-z]*")


@enum.unique
class CaseStyle(enum.Enum):
    """Word-joining style of an identifier."""

    # TimerCtrl
    PASCAL = "pascal"
    # timer_ctrl
    SNAKE = "snake"
    # TIMER_CTRL
    UPPER_SNAKE = "upper-snake"


def split_words(name: str) -> List[str]:
    """
    Split a name into words on punctuation, whitespace and case boundaries.

    :param name: Name as written in the SVD file, e.g. "UARTConfig_reg".
    :return: Words of the name, e.g. ["UART", "Config", "reg"].
    """
    return _WORD_RE.findall(name)


def join_words(words: List[str], style: CaseStyle) -> str:
    if style is CaseStyle.PASCAL:
        return "".join(w[:1].upper() + w[1:].lower() for w in words)
    if style is CaseStyle.SNAKE:
        return "_".join(w.lower() for w in words)
    return "_".join(w.upper() for w in words)


def to_identifier(name: str, style: CaseStyle, digit_prefix: str = "_") -> str:
    """
    Convert a name to an identifier in the given style.

    The result contains only ASCII letters, digits and underscores, does not start with a digit
    and is never empty.

    :param name: Name to convert.
    :param style: Case style of the result.
    :param digit_prefix: Prefix added if the identifier would otherwise start with a digit.
    """
    identifier = join_words(split_words(name), style)

    if not identifier:
        return "_"

    if identifier[0].isdigit():
        identifier = digit_prefix + identifier

    return identifier


@dataclass(frozen=True)
class NamingConvention:
    """Case styles used for the different kinds of generated identifiers."""

    # Peripheral, register block and enumeration type names.
    type_case: CaseStyle = CaseStyle.PASCAL

    # Field accessor names.
    accessor_case: CaseStyle = CaseStyle.SNAKE

    # Enumeration members and address constants.
    constant_case: CaseStyle = CaseStyle.UPPER_SNAKE

    # Prefix for identifiers that would start with a digit.
    digit_prefix: str = "_"

    def type_name(self, *names: str) -> str:
        """Type name built from the words of all the given names, e.g. (TIMER0, CTRL)."""
        return self._join(names, self.type_case)

    def accessor_name(self, name: str) -> str:
        return self._join((name,), self.accessor_case)

    def constant_name(self, name: str) -> str:
        return self._join((name,), self.constant_case)

    def _join(self, names, style: CaseStyle) -> str:
        return to_identifier(" ".join(names), style, self.digit_prefix)


class Scope:
    """
    A namespace in which every identifier must be unique.

    Each distinct name is given one identifier. If a name maps to an identifier that is already
    taken by a different name, a numeric suffix is appended (_1, _2, ...) in first-seen order and
    the collision is reported as a warning.
    """

    def __init__(
        self, label: str, escape: Optional[Callable[[str], str]] = None
    ) -> None:
        """
        :param label: Description of the scope used in collision reports.
        :param escape: Function applied to identifiers before checking uniqueness,
                       e.g. to escape reserved words.
        """
        self._label = label
        self._escape = escape if escape is not None else (lambda s: s)
        self._identifiers: Dict[object, str] = {}
        self._used: Set[str] = set()
        self.collisions: List[IdentifierCollision] = []

    @property
    def label(self) -> str:
        return self._label

    def reserve(self, identifier: str) -> None:
        """Mark an identifier as used without associating it with a name."""
        self._used.add(identifier)

    def claim(self, name: str, identifier: str, key: Optional[object] = None) -> str:
        """
        Get the unique identifier for a name.

        :param name: Name as written in the SVD file.
        :param identifier: Sanitized identifier for the name.
        :param key: Key identifying the element, if names may repeat within the scope.
                    Defaults to the name.
        :return: Unique identifier. The same key always gets the same identifier.
        """
        key = name if key is None else key
        if key in self._identifiers:
            return self._identifiers[key]

        base = self._escape(identifier)
        candidate = base
        suffix = 1
        while candidate in self._used:
            candidate = self._escape(f"{identifier}_{suffix}")
            suffix += 1

        if candidate != base:
            collision = IdentifierCollision(self._label, name, base, candidate)
            self.collisions.append(collision)
            svdgen.log.warning(str(collision))

        self._used.add(candidate)
        self._identifiers[key] = candidate
        return candidate
