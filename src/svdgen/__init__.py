# Copyright (c) 2022 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

from .model import (
    Access,
    EnumUsage,
    BitRange,
    RegisterProperties,
    EnumeratedValue,
    Enumeration,
    Field,
    Register,
    Cluster,
    Peripheral,
    Device,
)
from .errors import (
    SvdgenError,
    SvdParseError,
    SvdDefinitionError,
    GenerationError,
    UnresolvedReference,
    DerivationCycle,
    OverlappingFields,
    OutOfRange,
    NoMatch,
    IdentifierCollision,
)
from .parsing import (
    parse,
    parse_bytes,
    Options,
)
from .resolve import Resolver, resolve_peripheral
from .layout import FieldLayout, RegisterLayout, PeripheralLayout, plan_register, plan_peripheral
from .naming import CaseStyle, NamingConvention, Scope, to_identifier
from .emit import Emitter
from .generate import (
    ALL_PERIPHERALS,
    GeneratorOptions,
    generate,
    generate_all,
    select_peripheral,
)
from .memory_bus import MemoryBus

import importlib.metadata
import logging

__version__ = importlib.metadata.version("svdgen")


def _init_logger() -> logging.Logger:
    formatter = logging.Formatter("{message}", style="{")
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    logger = logging.getLogger("svdgen")
    logger.setLevel(logging.ERROR)
    logger.addHandler(handler)

    return logger


# logging.Logger instance used for log output from svdgen
log = _init_logger()

__all__ = [
    # from model
    "Access",
    "EnumUsage",
    "BitRange",
    "RegisterProperties",
    "EnumeratedValue",
    "Enumeration",
    "Field",
    "Register",
    "Cluster",
    "Peripheral",
    "Device",
    # from errors
    "SvdgenError",
    "SvdParseError",
    "SvdDefinitionError",
    "GenerationError",
    "UnresolvedReference",
    "DerivationCycle",
    "OverlappingFields",
    "OutOfRange",
    "NoMatch",
    "IdentifierCollision",
    # from parsing
    "parse",
    "parse_bytes",
    "Options",
    # from resolve
    "Resolver",
    "resolve_peripheral",
    # from layout
    "FieldLayout",
    "RegisterLayout",
    "PeripheralLayout",
    "plan_register",
    "plan_peripheral",
    # from naming
    "CaseStyle",
    "NamingConvention",
    "Scope",
    "to_identifier",
    # from emit
    "Emitter",
    # from generate
    "ALL_PERIPHERALS",
    "GeneratorOptions",
    "generate",
    "generate_all",
    "select_peripheral",
    # from memory_bus
    "MemoryBus",
    # other
    "log",
    "__version__",
]
