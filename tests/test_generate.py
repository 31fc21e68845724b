# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

import pytest

import svdgen
from svdgen.generate import ALL_PERIPHERALS, generate, generate_all, select_peripheral
from svdgen.memory_bus import MemoryBus
from svdgen.model import Device, Peripheral

from conftest import exec_units, make_field, make_register


def _device(*names: str) -> Device:
    return Device(
        name="DEV",
        peripherals=tuple(
            Peripheral(name=name, base_address=0x4000_0000 + i * 0x1000)
            for i, name in enumerate(names)
        ),
    )


def test_select_prefers_exact_match():
    device = _device("UART0", "UART", "UART1")
    assert select_peripheral(device, "uart").name == "UART"


def test_select_substring_fallback():
    device = _device("TIMER0", "UART0", "UART1")
    assert select_peripheral(device, "uart").name == "UART0"


def test_select_is_case_insensitive():
    device = _device("spi0", "Twi0")
    assert select_peripheral(device, "SPI0").name == "spi0"
    assert select_peripheral(device, "TWI").name == "Twi0"


def test_select_no_match():
    assert select_peripheral(_device("UART0"), "spi") is None


def test_generate_no_match():
    with pytest.raises(svdgen.NoMatch) as exc_info:
        generate(_device("UART0"), "spi")

    assert exc_info.value.pattern == "spi"
    assert isinstance(exc_info.value, LookupError)


def test_generate_address_table(device):
    expected = [
        "TIMER0 = 0x40008000",
        "TIMER1 = 0x40009000",
        "UART0 = 0x40002000",
    ]
    assert generate(device) == expected
    assert generate(device, None) == expected
    assert generate(device, ALL_PERIPHERALS) == expected


def test_generate_address_table_executes(device):
    namespace = exec_units(generate(device))
    assert namespace["UART0"] == 0x40002000


def test_generate_derived_peripheral(device):
    namespace = exec_units(generate(device, "timer1"))

    bus = MemoryBus()
    timer1 = namespace["Timer1"](bus)
    timer1.ctrl.write_fields(lambda w: w.mode(namespace["Timer1CtrlMode"].COUNTER))

    assert namespace["Timer1"].BASE_ADDRESS == 0x40009000
    assert bus.peek(0x40009000, 32) == 0x1


def test_generate_uses_reset_value_as_seed(device):
    namespace = exec_units(generate(device, "TIMER0"))

    bus = MemoryBus()
    timer0 = namespace["Timer0"](bus)
    written = timer0.ctrl.write_fields(lambda w: w.en(True))

    assert written == 0x12


def test_generate_with_options(device):
    options = svdgen.GeneratorOptions(emit_docstrings=False, indent="\t")
    units = generate(device, "UART0", options)

    assert all('"""' not in unit for unit in units)
    assert "\tBASE_ADDRESS = 0x40002000" in units[-1]


def test_generate_structural_error():
    device = Device(
        name="DEV",
        peripherals=(
            Peripheral(
                name="BAD",
                base_address=0,
                children=(make_register(fields=(make_field("A", 0, 4), make_field("B", 2, 4))),),
            ),
        ),
    )
    with pytest.raises(svdgen.OverlappingFields):
        generate(device, "BAD")


def test_generate_all_isolates_errors():
    good = Peripheral(
        name="GOOD",
        base_address=0x1000,
        children=(make_register(fields=(make_field("A", 0, 4),)),),
    )
    bad = Peripheral(
        name="BAD",
        base_address=0x2000,
        children=(make_register(fields=(make_field("A", 30, 4),)),),
    )
    cyclic = Peripheral(name="CYCLIC", base_address=0x3000, derived_from="CYCLIC")
    device = Device(name="DEV", peripherals=(good, bad, cyclic))

    results = generate_all(device, max_workers=2)

    assert list(results) == ["GOOD", "BAD", "CYCLIC"]
    assert isinstance(results["GOOD"], list)
    assert isinstance(results["BAD"], svdgen.OutOfRange)
    assert isinstance(results["CYCLIC"], svdgen.DerivationCycle)

    namespace = exec_units(results["GOOD"])
    assert namespace["Good"].BASE_ADDRESS == 0x1000


def test_generate_all_matches_generate(device):
    results = generate_all(device)
    for peripheral in device.peripherals:
        assert results[peripheral.name] == generate(device, peripheral.name)


def test_generate_reports_collisions():
    peripheral = Peripheral(
        name="P",
        base_address=0,
        children=(make_register("CTRL", 0x0), make_register("Ctrl", 0x4)),
    )
    device = Device(name="DEV", peripherals=(peripheral,))

    collisions = []
    generate(device, "P", collisions=collisions)
    assert {"PCtrl_1", "ctrl_1"} <= {c.resolved for c in collisions if c.name == "Ctrl"}

    table_collisions = []
    generate(_device("UART0", "uart0"), collisions=table_collisions)
    assert [c.resolved for c in table_collisions] == ["UART0_1"]
