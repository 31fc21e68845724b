# Copyright (c) 2022 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import dataclasses as dc
import re
import typing
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping, Sequence, Type, Union

import lxml.etree as ET
from lxml import objectify

import svdgen

from . import bindings
from ._bindings import SvdElement
from .errors import SvdDefinitionError, SvdParseError
from .model import Device


@dataclass(frozen=True)
class Options:
    """Options to configure the SVD parsing behavior."""

    # Cluster/register elements to remove from the XML document prior to parsing.
    # This can be used to remove outdated/deprecated elements from the device if they cause
    # issues with generation.
    #
    # The value should be a dictionary mapping string peripheral name regex patterns to lists
    # containing the paths of elements to remove from the peripherals matching the pattern.
    # For example, passing the value
    # {"UART[0-9]": ["CONFIG.DEPRECATED"]}
    # would cause the element named "DEPRECATED" to be removed from the element named "CONFIG"
    # in peripherals whose name match "UART[0-9]" (UART0, UART1 etc.).
    #
    # Note: the element paths must match exactly the names used in the SVD document.
    skip_registers: Mapping[str, Sequence[str]] = dc.field(
        default_factory=lambda: defaultdict(list)
    )


def parse(svd_path: Union[str, Path], options: Options = Options()) -> Device:
    """
    Parse a device described by a SVD file.

    :param svd_path: Path to the SVD file.
    :param options: Parsing options.

    :raises FileNotFoundError: If the SVD file does not exist.
    :raises SvdParseError: If an error occurred while parsing the SVD file.

    :return: Parsed `Device` description of the SVD file.
    """
    svd_file = Path(svd_path)

    if not svd_file.is_file():
        raise FileNotFoundError(f"No such file: {svd_file.absolute()}")

    try:
        with open(svd_file, "rb") as f:
            xml_device = objectify.parse(f, parser=_make_parser())
    except (OSError, ET.XMLSyntaxError) as e:
        raise SvdParseError(f"Error parsing SVD file {svd_file}") from e

    return _to_device(xml_device.getroot(), options, source=str(svd_file))


def parse_bytes(content: bytes, options: Options = Options()) -> Device:
    """
    Parse a device described by a SVD document held in memory.

    :param content: Raw SVD document.
    :param options: Parsing options.

    :raises SvdParseError: If an error occurred while parsing the document.

    :return: Parsed `Device` description of the document.
    """
    try:
        root = objectify.fromstring(content, parser=_make_parser())
    except ET.XMLSyntaxError as e:
        raise SvdParseError("Error parsing SVD document") from e

    return _to_device(root, options, source="<bytes>")


def _make_parser() -> ET.XMLParser:
    # Note: remove comments as otherwise these are present as nodes in the returned XML tree
    xml_parser = objectify.makeparser(remove_comments=True)
    xml_parser.set_element_class_lookup(_TagLookup(bindings.BINDING_REGISTRY.tag_map()))
    return xml_parser


def _to_device(root: ET._Element, options: Options, source: str) -> Device:
    if not isinstance(root, bindings.DeviceElement):
        raise SvdParseError(f"{source}: root element is <{root.tag}>, expected <device>")

    for peripheral_element in root.peripherals:
        if options.skip_registers:
            remove_registers(peripheral_element, options.skip_registers)

    try:
        device = root.to_model()
    except SvdDefinitionError:
        raise
    except (AttributeError, ValueError) as e:
        raise SvdParseError(f"Error parsing SVD document {source}") from e

    svdgen.log.debug(
        f"Parsed {source}: device {device.name} with {len(device.peripherals)} peripherals"
    )

    return device


def remove_registers(
    peripheral_element: bindings.PeripheralElement,
    remove: Mapping[str, Sequence[str]],
) -> None:
    """
    Remove clusters/registers from a peripheral by deleting the nodes from the XML tree itself.

    :param peripheral_element: Peripheral node to filter registers from.
    :param remove: Map from peripheral name pattern to dotted element paths.
    """
    registers = peripheral_element.find(bindings.RegistersElement.TAG)
    if registers is None:
        # Skip if the node has no <registers> node (permitted on derived peripherals)
        return

    for pattern_str, paths in remove.items():
        if re.fullmatch(pattern_str, peripheral_element.name) is None:
            continue

        for path in paths:
            xpath = "." + "".join((f"/*[name='{p}']" for p in path.split(".")))
            nodes = typing.cast(Iterable[ET._Element], registers.xpath(xpath))
            for node in nodes:
                if (parent := node.getparent()) is not None:
                    parent.remove(node)


class _TagLookup(ET.ElementNamespaceClassLookup):
    """
    XML element class lookup that maps the structural SVD tags to their binding classes.
    Leaf elements fall back to the default objectify classes; the bindings convert their text.
    """

    def __init__(self, tag_map: Mapping[str, Type[SvdElement]]):
        """
        :param tag_map: Map from tag to lxml element class.
        """
        super().__init__(objectify.ObjectifyElementClassLookup())

        namespace = self.get_namespace(None)  # None is the empty namespace
        for tag, element_class in tag_map.items():
            # namespace is a decorator, so the syntax here is a little odd
            namespace(tag)(element_class)
