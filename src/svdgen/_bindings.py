# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

"""
Various internal functionality used by the bindings module.
"""

from __future__ import annotations

import typing
from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    Iterable,
    List,
    Literal,
    Mapping,
    Optional,
    Type,
    TypeVar,
    Union,
    overload,
)

from lxml import objectify
from typing_extensions import Self


def to_int(number: str) -> int:
    """
    Convert a string representation of an integer following the SVD format to its corresponding
    integer representation.

    :param number: String representation of the integer.

    :return: Decoded integer.
    """
    number = number.strip()
    if number.lower().startswith("0x"):
        return int(number, base=16)
    if number.startswith("#"):
        return int(number[1:], base=2)
    if number.lower().startswith("0b"):
        return int(number[2:], base=2)
    return int(number)


def to_bool(value: str) -> bool:
    """
    Convert a string representation of a boolean following the SVD format to its corresponding
    boolean representation.

    :param value: String representation of the boolean.

    :return: Decoded boolean.
    """
    value = value.strip()
    if value in ("true", "1"):
        return True
    if value in ("false", "0"):
        return False
    raise ValueError(f"Invalid boolean value: {value}")


def to_text(value: str) -> str:
    """Collapse the whitespace of a free-text element such as a description."""
    return " ".join(value.split())


class SvdElement(objectify.ObjectifiedElement):
    """Base class for all the SVD element classes."""

    TAG: str

    def __repr__(self) -> str:
        """
        A more informative string representation than the default one from lxml.
        This is mostly useful for the exception tracebacks that occur on parsing errors.
        """
        props: Dict[str, Any] = {}
        name = self.find("name")
        if name is not None:
            props["name"] = name.text

        parent = self.getparent()
        ancestors_str = f" in {parent!r}" if isinstance(parent, SvdElement) else ""
        props_str = f" {props}" if props else ""

        return f"[{self.tag}{props_str}]{ancestors_str}"


class _Missing:
    ...


# Sentinel value used to indicate that a default value is missing.
MISSING = _Missing()


O = TypeVar("O", bound=objectify.ObjectifiedElement)
T = TypeVar("T")


class _Prop(Generic[T]):
    """Common functionality of the element and attribute descriptors."""

    def __init__(
        self,
        name: str,
        /,
        *,
        converter: Optional[Callable[[str], T]] = None,
        default: Union[T, _Missing] = MISSING,
    ) -> None:
        """
        :param name: Name of the XML element or attribute.
        :param converter: Callable that converts the text to another type.
        :param default: Default value to return if the element or attribute is not found.
        """
        self.name: str = name
        self.converter: Optional[Callable[[str], T]] = converter
        self.default: Union[T, _Missing] = default

    @overload
    def __get__(self, node: Literal[None], owner: Optional[Type] = None) -> Self:
        ...

    @overload
    def __get__(self, node: O, owner: Optional[Type] = None) -> T:
        ...

    def __get__(self, node: Optional[O], owner: Any = None) -> Union[T, Self]:
        if node is None:
            # Accessed through the class object
            return self

        found, value = self._lookup(node)

        if not found:
            if not isinstance(self.default, _Missing):
                return self.default
            raise AttributeError(f"{node!r} has no {self._kind} '{self.name}'")

        if self.converter is None:
            return value

        try:
            return self.converter(value)
        except Exception as e:
            raise ValueError(f"Error converting {self._kind} '{self.name}' of {node!r}") from e

    _kind: str = ""

    def _lookup(self, node: objectify.ObjectifiedElement) -> typing.Tuple[bool, Any]:
        raise NotImplementedError


class Elem(_Prop[T]):
    """
    Data descriptor used to access a XML child element.
    Without a converter, the child element itself is returned, otherwise the converted text.
    """

    _kind = "element"

    def _lookup(self, node: objectify.ObjectifiedElement) -> typing.Tuple[bool, Any]:
        child = node.find(self.name)
        if child is None:
            return False, None
        if self.converter is None:
            return True, child
        return True, child.text if child.text is not None else ""


class Attr(_Prop[T]):
    """Data descriptor used to access a XML attribute."""

    _kind = "attribute"

    def _lookup(self, node: objectify.ObjectifiedElement) -> typing.Tuple[bool, Any]:
        value = node.get(self.name)
        return value is not None, value


C = TypeVar("C", bound=SvdElement)


class BindingRegistry:
    """Simple container for XML binding classes."""

    def __init__(self) -> None:
        self._element_classes: List[Type[SvdElement]] = []

    def add(self, element_class: Type[C], /) -> Type[C]:
        """
        Add a class to the binding registry.
        This is intended to be used as a class decorator.
        """
        self._element_classes.append(element_class)

        return element_class

    def tag_map(self) -> Mapping[str, Type[SvdElement]]:
        """Map from XML tag to binding class."""
        tags: Dict[str, Type[SvdElement]] = {}
        for element_class in self._element_classes:
            if element_class.TAG in tags:
                raise RuntimeError(
                    f"Multiple classes for tag {element_class.TAG}: "
                    f"{tags[element_class.TAG]}, {element_class}"
                )
            tags[element_class.TAG] = element_class
        return tags


def iter_element_children(
    element: Optional[objectify.ObjectifiedElement], *tags: str
) -> Iterable[objectify.ObjectifiedElement]:
    """
    Iterate over the children of an lxml element, optionally filtered by tag.
    If the element is None, an empty iterator is returned.
    """
    if element is None:
        return iter(())

    child_iter = element.iterchildren(*tags)  # type: ignore
    return typing.cast(Iterable[objectify.ObjectifiedElement], child_iter)
