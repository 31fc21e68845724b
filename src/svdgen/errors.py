# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

from typing import Any, Iterable, Optional, Sequence


def format_path(path: Sequence[str]) -> str:
    """Format a peripheral/register/field path for error messages."""
    return ".".join(path) if path else "<device>"


class SvdgenError(Exception):
    """Base class for errors raised by the library."""

    ...


class SvdParseError(SvdgenError):
    """Raised when an error occurs during SVD parsing."""

    ...


class SvdDefinitionError(SvdgenError, ValueError):
    """Raised when unrecoverable errors occur due to an invalid definition in the SVD file."""

    def __init__(self, bindings: Iterable[Any], explanation: str):
        bindings_str = "\n".join(f"  * {b!r}" for b in bindings)
        super().__init__(f"Invalid SVD file element(s):\n{bindings_str}\n{explanation}")


class GenerationError(SvdgenError):
    """
    Base class for structural errors that abort generation of a peripheral.

    :param path: Path of the offending element, starting at the peripheral name.
    """

    def __init__(self, path: Sequence[str], explanation: str) -> None:
        self.path = tuple(path)
        super().__init__(f"{format_path(self.path)}: {explanation}")


class UnresolvedReference(GenerationError, LookupError):
    """Raised when a 'derivedFrom' attribute names an element that does not exist."""

    def __init__(self, path: Sequence[str], reference: str) -> None:
        self.reference = reference
        super().__init__(
            path, f"'derivedFrom' refers to unknown element '{reference}'"
        )


class DerivationCycle(GenerationError):
    """Raised when following 'derivedFrom' attributes revisits an element."""

    def __init__(self, path: Sequence[str], chain: Sequence[str]) -> None:
        self.chain = tuple(chain)
        super().__init__(path, f"cyclic 'derivedFrom' chain: {' -> '.join(chain)}")


class OverlappingFields(GenerationError):
    """Raised when two fields of a register occupy the same bit."""

    def __init__(
        self, path: Sequence[str], first: str, second: str, overlap: Optional[int] = None
    ) -> None:
        self.fields = (first, second)
        overlap_str = f" (bit {overlap})" if overlap is not None else ""
        super().__init__(path, f"fields '{first}' and '{second}' overlap{overlap_str}")


class OutOfRange(GenerationError):
    """Raised when a field bit range does not fit in its register."""

    def __init__(self, path: Sequence[str], offset: int, width: int, size: int) -> None:
        self.bit_range = (offset, width)
        self.size = size
        super().__init__(
            path,
            f"bit range [{offset}:{offset + width - 1}] "
            f"does not fit in a {size}-bit register",
        )


class NoMatch(SvdgenError, LookupError):
    """Raised when a selection pattern matches no peripheral."""

    def __init__(self, pattern: str) -> None:
        self.pattern = pattern
        super().__init__(f"No peripheral matches '{pattern}'")


class IdentifierCollision(UserWarning):
    """
    Two distinct names sanitized to the same identifier in one scope.
    This is resolved by suffixing and is only reported, never raised.
    """

    def __init__(self, scope: str, name: str, identifier: str, resolved: str) -> None:
        self.scope = scope
        self.name = name
        self.identifier = identifier
        self.resolved = resolved
        super().__init__(
            f"{scope}: '{name}' sanitizes to '{identifier}' which is already in use, "
            f"using '{resolved}'"
        )
