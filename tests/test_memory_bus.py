# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

import pytest

from svdgen.layout import plan_peripheral
from svdgen.memory_bus import MemoryBus, Transaction
from svdgen.resolve import Resolver


def test_little_endian_layout():
    bus = MemoryBus()
    bus.write(0x1000, 32, 0x11223344)

    assert bus.peek(0x1000, 8) == 0x44
    assert bus.peek(0x1003, 8) == 0x11
    assert bus.peek(0x1002, 16) == 0x1122
    assert bus.read(0x1000, 32) == 0x11223344


def test_default_content():
    assert MemoryBus().read(0x2000, 32) == 0
    assert MemoryBus(default_content=0xFF).read(0x2000, 16) == 0xFFFF


def test_transaction_log():
    bus = MemoryBus()
    bus.write(0x0, 32, 1)
    bus.read(0x0, 32)
    bus.poke(0x4, 32, 2)
    bus.peek(0x4, 32)

    assert bus.log == [
        Transaction("write", 0x0, 32, 1),
        Transaction("read", 0x0, 32, 1),
    ]
    assert bus.reads() == [Transaction("read", 0x0, 32, 1)]
    assert bus.writes() == [Transaction("write", 0x0, 32, 1)]


def test_unaligned_access():
    bus = MemoryBus()
    with pytest.raises(ValueError):
        bus.read(0x1002, 32)
    with pytest.raises(ValueError):
        bus.write(0x1001, 16, 0)


def test_unsupported_size():
    with pytest.raises(ValueError):
        MemoryBus().read(0x0, 24)


def test_value_too_large():
    with pytest.raises(ValueError):
        MemoryBus().write(0x0, 8, 0x100)


def test_written_tracking():
    bus = MemoryBus()
    bus.write(0x10, 16, 0xABCD)

    assert bus.is_written(0x10)
    assert bus.is_written(0x11)
    assert not bus.is_written(0x12)
    assert not bus.is_written(0x10_0000)

    assert list(bus.memory_iter(written_only=True)) == [(0x10, 0xCD), (0x11, 0xAB)]

    bus.clear_written()
    assert not bus.is_written(0x10)
    assert bus.peek(0x10, 16) == 0xABCD


def test_with_reset_values(device):
    resolver = Resolver(device)
    layouts = [plan_peripheral(resolver.resolve(name)) for name in ("TIMER0", "UART0")]
    bus = MemoryBus.with_reset_values(*layouts)

    assert bus.read(0x40008000, 32) == 0x2
    assert bus.read(0x40002524, 32) == 0x04000000
    assert bus.read(0x40008100, 16) == 0
    assert bus.writes() == []
    assert not bus.is_written(0x40008000)
