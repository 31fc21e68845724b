# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

"""
Emission of Python register access code for a laid out peripheral.

Every peripheral is rendered into a list of code units that are meant to be concatenated into
one module, in order:

1. an import header,
2. one enum.IntEnum class per set of enumerated field values,
3. per register, a reader snapshot class, a writer class and the register class,
4. the peripheral class, which binds every register to a bus object.

The generated register classes access hardware through a bus object with the methods
read(address, size) -> int and write(address, size, value), where size is in bits.
See svdgen.memory_bus.MemoryBus for an in-memory implementation.

The output is a pure function of the input: no timestamps, no unordered iteration.
"""

from __future__ import annotations

import builtins
import dataclasses as dc
import keyword
import textwrap
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, FrozenSet, Iterator, List, NamedTuple, Optional, Sequence, Tuple

import svdgen

from .errors import GenerationError, IdentifierCollision
from .layout import FieldLayout, PeripheralLayout, RegisterLayout
from .model import EnumeratedValue, Enumeration, Peripheral
from .naming import NamingConvention, Scope

# Names imported by the header unit
_IMPORTED_NAMES = ("enum", "Callable", "Optional", "Union")

_KEYWORDS = frozenset(keyword.kwlist) | frozenset(keyword.softkwlist)

_MODULE_RESERVED = _KEYWORDS | frozenset(dir(builtins)) | frozenset(_IMPORTED_NAMES)

# Attributes of the generated reader/writer classes, and the register methods
_FIELD_RESERVED = _KEYWORDS | {"bits", "read", "read_fields", "write", "write_fields", "modify"}

# Attributes of the generated peripheral classes
_REGISTER_RESERVED = _KEYWORDS | {"base_address", "BASE_ADDRESS", "NAME"}

# Attributes of the generated enum classes (IntEnum and int attributes)
_MEMBER_RESERVED = _KEYWORDS | {
    "as_integer_ratio",
    "bit_count",
    "bit_length",
    "catch_all",
    "conjugate",
    "decode",
    "default",
    "denominator",
    "from_bytes",
    "imag",
    "is_integer",
    "mro",
    "name",
    "numerator",
    "real",
    "to_bytes",
    "value",
}


def _escaper(reserved: FrozenSet[str]) -> Callable[[str], str]:
    def escape(identifier: str) -> str:
        return identifier + "_" if identifier in reserved else identifier

    return escape


@dataclass(frozen=True)
class GeneratorOptions:
    """Options to configure the generated code."""

    # Case styles of the generated identifiers.
    naming: NamingConvention = field(default_factory=NamingConvention)

    # Include descriptions from the SVD file as docstrings and comments.
    emit_docstrings: bool = True

    # Indentation unit of the generated code.
    indent: str = "    "

    # Maximum line width of wrapped docstrings.
    line_width: int = 99


class NumberedValue(NamedTuple):
    """Enumerated value with its numeric representation."""

    value: EnumeratedValue

    # None for the catch-all: a default value without a number, which stands for every number
    # that is not otherwise enumerated.
    number: Optional[int]

    @property
    def catch_all(self) -> bool:
        return self.number is None


def number_enumeration(
    enumeration: Enumeration, mask: int, path: Sequence[str] = ()
) -> List[NumberedValue]:
    """
    Assign a number to every value of an enumeration.

    Values with an explicit number keep it. Values without one are numbered positionally: the
    number following the previous value (starting at 0), skipping numbers that are taken.
    A default value without a number is the catch-all. It is not given a number, so raw values
    that are not enumerated keep their own number.

    :param enumeration: Enumeration to number.
    :param mask: Unshifted mask of the field.
    :param path: Path of the field, used in error messages.

    :raises GenerationError: If a value does not fit in the field.

    :return: Numbered values in declaration order.
    """
    taken = {v.value for v in enumeration.values if v.value is not None}
    numbered = []
    next_number = 0

    for value in enumeration.values:
        if value.value is not None:
            number = value.value
            next_number = number + 1
        elif value.is_default:
            numbered.append(NumberedValue(value, None))
            continue
        else:
            while next_number in taken:
                next_number += 1
            number = next_number
            taken.add(number)
            next_number += 1

        if not 0 <= number <= mask:
            raise GenerationError(
                (*path, value.name),
                f"enumerated value {number:#x} does not fit in a "
                f"{mask.bit_length()}-bit field",
            )

        numbered.append(NumberedValue(value, number))

    return numbered


class _Lines:
    """Indentation aware line buffer."""

    def __init__(self, indent: str) -> None:
        self._indent = indent
        self._level = 0
        self._lines: List[str] = []

    def __call__(self, text: str = "") -> None:
        self._lines.append(f"{self._indent * self._level}{text}" if text else "")

    @contextmanager
    def indented(self) -> Iterator[None]:
        self._level += 1
        try:
            yield
        finally:
            self._level -= 1

    @property
    def width(self) -> int:
        return len(self._indent) * self._level

    def render(self) -> str:
        return "\n".join(self._lines)


class _FieldNames(NamedTuple):
    layout: FieldLayout
    accessor: str
    read_enum: Optional[str]
    write_enum: Optional[str]
    readable: bool
    writable: bool


class Emitter:
    """Renders laid out peripherals to Python code units."""

    def __init__(
        self,
        convention: Optional[NamingConvention] = None,
        options: Optional[GeneratorOptions] = None,
    ) -> None:
        """
        :param convention: Naming convention, overriding the one in options if given.
        :param options: Generator options.
        """
        options = options if options is not None else GeneratorOptions()
        if convention is not None:
            options = dc.replace(options, naming=convention)
        self._options = options

    @property
    def options(self) -> GeneratorOptions:
        return self._options

    @property
    def naming(self) -> NamingConvention:
        return self._options.naming

    def emit_address_table(
        self,
        peripherals: Sequence[Peripheral],
        collisions: Optional[List[IdentifierCollision]] = None,
    ) -> List[str]:
        """
        Emit one base address constant per peripheral, in declaration order.

        :param peripherals: Peripherals of the device.
        :param collisions: If given, identifier collisions are appended to this list.
        :return: One code unit per peripheral.
        """
        scope = Scope("<device>", escape=_escaper(_MODULE_RESERVED))
        units = []
        for index, peripheral in enumerate(peripherals):
            name = scope.claim(
                peripheral.name, self.naming.constant_name(peripheral.name), key=index
            )
            units.append(f"{name} = 0x{peripheral.base_address:08x}")

        if collisions is not None:
            collisions.extend(scope.collisions)

        return units

    def emit_peripheral(
        self,
        layout: PeripheralLayout,
        collisions: Optional[List[IdentifierCollision]] = None,
    ) -> List[str]:
        """
        Emit the code units of a laid out peripheral.

        :param layout: Layout of a resolved peripheral.
        :param collisions: If given, identifier collisions are appended to this list.
        :return: Code units, each declared before it is used.
        """
        types = Scope(f"{layout.name} (types)", escape=_escaper(_MODULE_RESERVED))
        attributes = Scope(
            f"{layout.name} (registers)", escape=_escaper(_REGISTER_RESERVED)
        )
        scopes = [types, attributes]

        periph_type = types.claim(layout.name, self.naming.type_name(layout.name))

        units = [self._header(layout)]
        register_units: List[str] = []
        register_attrs: List[Tuple[str, str, RegisterLayout]] = []

        for index, register in enumerate(layout.registers):
            label = f"{layout.name}.{register.name}"
            field_scope = Scope(label, escape=_escaper(_FIELD_RESERVED))
            scopes.append(field_scope)

            base = self.naming.type_name(layout.name, register.name)
            reg_type = types.claim(register.name, base, key=("register", index))
            reader = types.claim(register.name, base + "R", key=("reader", index))
            writer = types.claim(register.name, base + "W", key=("writer", index))

            fields = []
            for field_index, field_layout in enumerate(register.fields):
                accessor = field_scope.claim(
                    field_layout.name,
                    self.naming.accessor_name(field_layout.name),
                    key=field_index,
                )
                enum_names = []
                for enumeration, suffix in self._field_enumerations(field_layout):
                    key = ("enum", index, field_index, suffix)
                    enum_type = types.claim(
                        field_layout.name,
                        self.naming.type_name(
                            layout.name, register.name, field_layout.name, suffix
                        ),
                        key=key,
                    )
                    units.append(
                        self._enum_unit(
                            enum_type,
                            enumeration,
                            field_layout,
                            (*register.path, field_layout.name),
                            Scope(f"{label}.{field_layout.name}", _escaper(_MEMBER_RESERVED)),
                        )
                    )
                    enum_names.append((enumeration, enum_type))

                fields.append(
                    self._field_names(register, field_layout, accessor, enum_names)
                )

            if register.access.is_readable:
                register_units.append(self._reader_unit(reader, register, fields))
            if register.access.is_writable:
                register_units.append(self._writer_unit(writer, register, fields))
            register_units.append(
                self._register_unit(reg_type, reader, writer, register)
            )

            attr = attributes.claim(
                register.name, self.naming.accessor_name(register.name), key=index
            )
            register_attrs.append((attr, reg_type, register))

        units.extend(register_units)
        units.append(self._peripheral_unit(periph_type, layout, register_attrs))

        for scope in scopes:
            if collisions is not None:
                collisions.extend(scope.collisions)

        svdgen.log.debug(f"Emitted {len(units)} code units for {layout.name}")

        return units

    def _field_enumerations(
        self, field_layout: FieldLayout
    ) -> List[Tuple[Enumeration, str]]:
        """Enumerations of a field that get their own type, with the type name suffix."""
        read_enum = field_layout.field.read_enumeration
        write_enum = field_layout.field.write_enumeration

        if read_enum is not None and read_enum is write_enum:
            return [(read_enum, "")] if read_enum.values else []

        result = []
        if read_enum is not None and read_enum.values:
            result.append((read_enum, "Read"))
        if write_enum is not None and write_enum.values:
            result.append((write_enum, "Write"))
        return result

    def _field_names(
        self,
        register: RegisterLayout,
        field_layout: FieldLayout,
        accessor: str,
        enum_names: List[Tuple[Enumeration, str]],
    ) -> _FieldNames:
        read_enum = field_layout.field.read_enumeration
        write_enum = field_layout.field.write_enumeration
        return _FieldNames(
            layout=field_layout,
            accessor=accessor,
            read_enum=next((n for e, n in enum_names if e is read_enum), None),
            write_enum=next((n for e, n in enum_names if e is write_enum), None),
            readable=register.access.is_readable and field_layout.access.is_readable,
            writable=register.access.is_writable and field_layout.access.is_writable,
        )

    def _header(self, layout: PeripheralLayout) -> str:
        out = _Lines(self._options.indent)
        out(f"# Register access code for peripheral {_one_line(layout.name)}")
        out("import enum")
        out("from typing import Callable, Optional, Union")
        return out.render()

    def _enum_unit(
        self,
        type_name: str,
        enumeration: Enumeration,
        field_layout: FieldLayout,
        path: Tuple[str, ...],
        members: Scope,
    ) -> str:
        numbered = number_enumeration(enumeration, field_layout.mask, path)
        default: Optional[str] = None
        catch_all: Optional[str] = None

        out = _Lines(self._options.indent)
        out(f"class {type_name}(enum.IntEnum):")
        with out.indented():
            self._docstring(out, f"Values of {'.'.join(path)}.")
            out()
            for index, item in enumerate(numbered):
                if item.catch_all:
                    catch_all = item.value.name
                    if self._options.emit_docstrings:
                        note = f"{item.value.name}: any value not listed here"
                        if item.value.description:
                            note += f". {item.value.description}"
                        self._comment(out, note)
                    continue

                member = members.claim(
                    item.value.name,
                    self.naming.constant_name(item.value.name),
                    key=index,
                )
                if self._options.emit_docstrings and item.value.description:
                    self._comment(out, item.value.description)
                out(f"{member} = {item.number:#x}")
                if item.value.is_default and default is None:
                    default = member

            out()
            out("@classmethod")
            out(f'def decode(cls, raw: int) -> Union["{type_name}", int]:')
            with out.indented():
                self._docstring(
                    out, "Member for a raw field value, or the raw value if not enumerated."
                )
                out("try:")
                with out.indented():
                    out("return cls(raw)")
                out("except ValueError:")
                with out.indented():
                    out("return raw")

            out()
            out("@classmethod")
            out(f'def default(cls) -> Optional["{type_name}"]:')
            with out.indented():
                out(f"return cls.{default}" if default is not None else "return None")

            out()
            out("@classmethod")
            out("def catch_all(cls) -> Optional[str]:")
            with out.indented():
                self._docstring(
                    out, "Name of the value that stands for every value not enumerated, if any."
                )
                out(f"return {catch_all!r}" if catch_all is not None else "return None")

        return out.render()

    def _reader_unit(
        self, type_name: str, register: RegisterLayout, fields: List[_FieldNames]
    ) -> str:
        out = _Lines(self._options.indent)
        out(f"class {type_name}:")
        with out.indented():
            self._docstring(out, f"Value read from {'.'.join(register.path)}.")
            out()
            out('__slots__ = ("bits",)')
            out()
            out("def __init__(self, bits: int) -> None:")
            with out.indented():
                out("self.bits = bits")

            for names in fields:
                if not names.readable:
                    continue
                f = names.layout
                raw = f"(self.bits >> {f.shift}) & {f.mask:#x}"
                out()
                if names.read_enum is not None:
                    out(f"def {names.accessor}(self) -> Union[{names.read_enum}, int]:")
                    value = f"{names.read_enum}.decode({raw})"
                elif f.is_bit:
                    out(f"def {names.accessor}(self) -> bool:")
                    value = f"bool({raw})"
                else:
                    out(f"def {names.accessor}(self) -> int:")
                    value = raw
                with out.indented():
                    self._docstring(out, _field_summary(f))
                    out(f"return {value}")

            out()
            out("def __eq__(self, other: object) -> bool:")
            with out.indented():
                out(f"return isinstance(other, {type_name}) and other.bits == self.bits")
            out()
            out("def __repr__(self) -> str:")
            with out.indented():
                out(f'return "{type_name}(0x%0{_hex_digits(register.size)}x)" % self.bits')

        return out.render()

    def _writer_unit(
        self, type_name: str, register: RegisterLayout, fields: List[_FieldNames]
    ) -> str:
        out = _Lines(self._options.indent)
        out(f"class {type_name}:")
        with out.indented():
            self._docstring(
                out,
                f"Value to be written to {'.'.join(register.path)}. "
                "Setters return the writer so that they can be chained.",
            )
            out()
            out('__slots__ = ("bits",)')
            out()
            out("def __init__(self, bits: int) -> None:")
            with out.indented():
                out("self.bits = bits")

            for names in fields:
                if not names.writable:
                    continue
                f = names.layout
                path = ".".join((*register.path, f.name)).replace("%", "%%")
                if names.write_enum is not None:
                    value_type = f"Union[{names.write_enum}, int]"
                elif f.is_bit:
                    value_type = "Union[bool, int]"
                else:
                    value_type = "int"
                keep_mask = register.full_mask & ~f.shifted_mask
                digits = _hex_digits(register.size)
                bits_str = "bit" if f.is_bit else "bits"
                out()
                out(f'def {names.accessor}(self, value: {value_type}) -> "{type_name}":')
                with out.indented():
                    self._docstring(out, _field_summary(f))
                    out("value = int(value)")
                    out(f"if not 0 <= value <= {f.mask:#x}:")
                    with out.indented():
                        message = repr(f"%#x does not fit in {path} ({f.width} {bits_str})")
                        out(f"raise ValueError({message} % value)")
                    out(
                        f"self.bits = (self.bits & 0x{keep_mask:0{digits}x}) | "
                        f"(value << {f.shift})"
                    )
                    out("return self")

            out()
            out("def __repr__(self) -> str:")
            with out.indented():
                out(f'return "{type_name}(0x%0{_hex_digits(register.size)}x)" % self.bits')

        return out.render()

    def _register_unit(
        self, type_name: str, reader: str, writer: str, register: RegisterLayout
    ) -> str:
        access = register.access
        digits = _hex_digits(register.size)
        path = ".".join(register.path)

        out = _Lines(self._options.indent)
        out(f"class {type_name}:")
        with out.indented():
            self._docstring(out, register.register.description or f"{path} register.")
            out()
            out(f"NAME = {register.name!r}")
            out(f"OFFSET = {register.offset:#x}")
            out(f"SIZE = {register.size}")
            out(f"ACCESS = {access.value!r}")
            out(f"RESET_VALUE = 0x{register.reset_value:0{digits}x}")
            out(f"RESERVED_MASK = 0x{register.reserved_mask:0{digits}x}")
            out()
            out("def __init__(self, bus, base_address: int) -> None:")
            with out.indented():
                out("self._bus = bus")
                out(f"self.address = base_address + {register.offset:#x}")

            if access.is_readable:
                out()
                out("def read(self) -> int:")
                with out.indented():
                    self._docstring(out, "Read the register value.")
                    out(f"return self._bus.read(self.address, {register.size})")
                out()
                out(f"def read_fields(self) -> {reader}:")
                with out.indented():
                    self._docstring(out, "Read the register and return a field reader.")
                    out(f"return {reader}(self.read())")

            if access.is_writable:
                out()
                out("def write(self, value: int) -> None:")
                with out.indented():
                    self._docstring(out, "Write the whole register value.")
                    out(f"if not 0 <= value <= 0x{register.full_mask:0{digits}x}:")
                    with out.indented():
                        message = repr(
                            f"%#x does not fit in {path.replace('%', '%%')} ({register.size} bits)"
                        )
                        out(f"raise ValueError({message} % value)")
                    out(f"self._bus.write(self.address, {register.size}, value)")
                out()
                out(
                    f"def write_fields(self, fn: Callable[[{writer}], object], "
                    "shadow: Optional[int] = None) -> int:"
                )
                with out.indented():
                    self._docstring(
                        out,
                        "Write the fields set by fn. The register is not read: the fields "
                        "that fn does not set, and the reserved bits, are taken from shadow "
                        "or from the reset value if no shadow is given. Returns the written "
                        "value, which can be passed as shadow to coalesce later writes.",
                    )
                    out(f"w = {writer}(self.RESET_VALUE if shadow is None else shadow)")
                    out("fn(w)")
                    out("self.write(w.bits)")
                    out("return w.bits")

            if access.is_readable and access.is_writable:
                out()
                out(
                    f"def modify(self, fn: Callable[[{reader}, {writer}], object]) -> int:"
                )
                with out.indented():
                    self._docstring(
                        out,
                        "Read the register, let fn change selected fields and write the "
                        "result back. Fields that fn does not set and reserved bits keep "
                        "their current value. Returns the written value.",
                    )
                    out("bits = self.read()")
                    out(f"w = {writer}(bits)")
                    out(f"fn({reader}(bits), w)")
                    out("self.write(w.bits)")
                    out("return w.bits")

        return out.render()

    def _peripheral_unit(
        self,
        type_name: str,
        layout: PeripheralLayout,
        registers: List[Tuple[str, str, RegisterLayout]],
    ) -> str:
        peripheral = layout.peripheral
        out = _Lines(self._options.indent)
        out(f"class {type_name}:")
        with out.indented():
            self._docstring(out, peripheral.description or f"{peripheral.name} peripheral.")
            out()
            out(f"NAME = {peripheral.name!r}")
            out(f"BASE_ADDRESS = 0x{layout.base_address:08x}")
            out()
            out("def __init__(self, bus, base_address: int = BASE_ADDRESS) -> None:")
            with out.indented():
                out("self.base_address = base_address")
                for attr, reg_type, _ in registers:
                    out(f"self.{attr} = {reg_type}(bus, base_address)")

        return out.render()

    def _docstring(self, out: _Lines, text: str) -> None:
        if not self._options.emit_docstrings:
            return

        text = _escape_docstring(_one_line(text))
        width = max(self._options.line_width - out.width - 6, 20)
        lines = textwrap.wrap(
            text, width=width, break_long_words=False, break_on_hyphens=False
        ) or [""]

        if len(lines) == 1:
            out(f'"""{lines[0]}"""')
        else:
            out('"""')
            for line in lines:
                out(line)
            out('"""')

    def _comment(self, out: _Lines, text: str) -> None:
        width = max(self._options.line_width - out.width - 2, 20)
        for line in textwrap.wrap(_one_line(text), width=width, break_long_words=False):
            out(f"# {line}")


def _one_line(text: str) -> str:
    return " ".join(text.split())


def _escape_docstring(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


def _hex_digits(size: int) -> int:
    return (size + 3) // 4


def _field_summary(field_layout: FieldLayout) -> str:
    if field_layout.is_bit:
        bits = f"Bit {field_layout.shift}"
    else:
        bits = f"Bits {field_layout.shift}-{field_layout.shift + field_layout.width - 1}"

    description = field_layout.field.description
    return f"{bits} - {description}" if description else f"{bits} - {field_layout.name}"
