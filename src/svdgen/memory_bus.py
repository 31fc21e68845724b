# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

"""
In-memory bus that generated register access code can be run against.
"""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Mapping, NamedTuple, Tuple

import numpy as np

from .layout import PeripheralLayout

# Accesses of the generated code are at most one register wide
SIZE_TO_DTYPE: Mapping[int, np.dtype] = {
    8: np.dtype(np.uint8),
    16: np.dtype("<u2"),
    32: np.dtype("<u4"),
    64: np.dtype("<u8"),
}

PAGE_SIZE = 0x1000


def _get_dtype_for_size(size: int) -> np.dtype:
    try:
        return SIZE_TO_DTYPE[size]
    except KeyError:
        raise ValueError(f"Unsupported access size: {size} bits")


class Transaction(NamedTuple):
    """A bus transaction."""

    # "read" or "write"
    kind: str
    address: int
    size: int
    value: int


class MemoryBus:
    """
    Sparse little-endian memory with a transaction log.

    Memory is allocated in pages on first write. Reads from addresses that were never written
    return the default content.
    """

    def __init__(self, default_content: int = 0) -> None:
        """
        :param default_content: Byte value of memory that has not been written.
        """
        self._default_content = default_content
        self._pages: Dict[int, np.ndarray] = {}
        self._written: Dict[int, np.ndarray] = {}
        self.log: List[Transaction] = []

    @classmethod
    def with_reset_values(cls, *layouts: PeripheralLayout) -> MemoryBus:
        """
        Create a bus where the registers of the given peripherals hold their reset values.
        Loading the reset values is not logged as a transaction.
        """
        bus = cls()
        for layout in layouts:
            for register in layout.registers:
                bus.poke(layout.address_of(register), register.size, register.reset_value)
        bus.clear_written()
        return bus

    def read(self, address: int, size: int) -> int:
        """
        Read a value from the bus.

        :param address: Byte address, aligned to the access size.
        :param size: Access size in bits.
        :return: Value at the address.
        """
        value = self.peek(address, size)
        self.log.append(Transaction("read", address, size, value))
        return value

    def write(self, address: int, size: int, value: int) -> None:
        """
        Write a value to the bus.

        :param address: Byte address, aligned to the access size.
        :param size: Access size in bits.
        :param value: Value to write, which must fit in the access size.
        """
        self.poke(address, size, value)
        self.log.append(Transaction("write", address, size, value))

    def peek(self, address: int, size: int) -> int:
        """Get the value at an address without logging a transaction."""
        page, offset, dtype = self._translate_access(address, size)
        if page not in self._pages:
            return int(_fill_value(self._default_content, dtype))
        return int(self._pages[page][offset : offset + dtype.itemsize].view(dtype)[0])

    def poke(self, address: int, size: int, value: int) -> None:
        """Set the value at an address without logging a transaction."""
        page, offset, dtype = self._translate_access(address, size)
        if not 0 <= value < (1 << size):
            raise ValueError(f"Value {value:#x} does not fit in {size} bits")

        if page not in self._pages:
            self._pages[page] = np.full(PAGE_SIZE, self._default_content, dtype=np.uint8)
            self._written[page] = np.zeros(PAGE_SIZE, dtype=bool)

        self._pages[page][offset : offset + dtype.itemsize].view(dtype)[0] = value
        self._written[page][offset : offset + dtype.itemsize] = True

    def is_written(self, address: int) -> bool:
        """:return: True if the byte at the address has been written to, False otherwise."""
        page, offset = divmod(address, PAGE_SIZE)
        written = self._written.get(page)
        return written is not None and bool(written[offset])

    def clear_written(self) -> None:
        for written in self._written.values():
            written[:] = False

    def reads(self) -> List[Transaction]:
        return [a for a in self.log if a.kind == "read"]

    def writes(self) -> List[Transaction]:
        return [a for a in self.log if a.kind == "write"]

    def memory_iter(self, written_only: bool = False) -> Iterator[Tuple[int, int]]:
        """
        Iterator over byte addresses and values of the allocated memory,
        in ascending address order.

        :param written_only: Yield only the addresses that have been explicitly written to.
        :return: Iterator over (address, value) pairs.
        """
        for page in sorted(self._pages):
            data = self._pages[page]
            offsets: Iterable[int] = (
                np.flatnonzero(self._written[page]) if written_only else range(PAGE_SIZE)
            )
            for offset in offsets:
                yield page * PAGE_SIZE + int(offset), int(data[offset])

    def _translate_access(self, address: int, size: int) -> Tuple[int, int, np.dtype]:
        dtype = _get_dtype_for_size(size)

        if address < 0 or address % dtype.itemsize != 0:
            raise ValueError(
                f"Address {address:#x} is not aligned to the access size of {size} bits"
            )

        page, offset = divmod(address, PAGE_SIZE)
        return page, offset, dtype


def _fill_value(byte: int, dtype: np.dtype) -> int:
    """:return: Value of an item of the given type where every byte is the given byte."""
    return int.from_bytes(bytes([byte]) * dtype.itemsize, "little")
