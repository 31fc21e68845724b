# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

import dataclasses as dc
from concurrent.futures import ThreadPoolExecutor

import pytest

import svdgen
from svdgen.model import (
    Access,
    Cluster,
    Device,
    EnumeratedValue,
    Enumeration,
    EnumUsage,
    Peripheral,
    Register,
    RegisterProperties,
)
from svdgen.resolve import Resolver, resolve_peripheral

from conftest import make_field, make_register


def _timers() -> Device:
    timer0 = Peripheral(
        name="TIMER0",
        base_address=0x40008000,
        description="Timer 0",
        children=(
            make_register(
                "CTRL", 0x0, properties=RegisterProperties(access=Access.READ_WRITE)
            ),
            make_register("STATUS", 0x4, properties=RegisterProperties(access=Access.READ_ONLY)),
        ),
    )
    timer1 = Peripheral(name="TIMER1", base_address=0x40009000, derived_from="TIMER0")
    return Device(name="DEV", peripherals=(timer0, timer1))


def test_derived_peripheral_registers():
    device = _timers()
    resolver = Resolver(device)

    timer0 = resolver.resolve("TIMER0")
    timer1 = resolver.resolve("TIMER1")

    assert timer1.derived_from is None
    assert timer1.base_address == 0x40009000
    assert timer1.description == "Timer 0"
    assert timer1.children == timer0.children

    layout0 = svdgen.plan_peripheral(timer0)
    layout1 = svdgen.plan_peripheral(timer1)
    assert layout0.address_of(layout0.registers[0]) == 0x40008000
    assert layout1.address_of(layout1.registers[0]) == 0x40009000


def test_default_cascade():
    device = Device(
        name="DEV",
        properties=RegisterProperties(size=32, reset_value=0xFF),
        peripherals=(
            Peripheral(
                name="P",
                base_address=0,
                properties=RegisterProperties(access=Access.READ_ONLY),
                children=(
                    Cluster(
                        name="C",
                        offset=0x100,
                        properties=RegisterProperties(size=16),
                        children=(make_register("R", 0x2),),
                    ),
                    make_register("S", 0x0, properties=RegisterProperties(reset_value=1)),
                ),
            ),
        ),
    )
    resolved = Resolver(device).resolve("P")

    cluster = resolved.children[0]
    assert isinstance(cluster, Cluster)
    assert cluster.children[0].properties == RegisterProperties(
        size=16, access=Access.READ_ONLY, reset_value=0xFF, reset_mask=0xFFFF
    )

    assert resolved.children[1].properties == RegisterProperties(
        size=32, access=Access.READ_ONLY, reset_value=1, reset_mask=0xFFFFFFFF
    )


def test_builtin_defaults():
    device = Device(
        name="DEV",
        peripherals=(Peripheral(name="P", base_address=0, children=(make_register(),)),),
    )
    register = Resolver(device).resolve("P").children[0]
    assert register.properties == RegisterProperties(
        size=32, access=Access.READ_WRITE, reset_value=0, reset_mask=0xFFFFFFFF
    )


def test_field_access_defaults_to_register_access():
    register = make_register(
        properties=RegisterProperties(access=Access.WRITE_ONLY),
        fields=(make_field("A", 0, 1), make_field("B", 1, 1, access=Access.READ_WRITE)),
    )
    peripheral = resolve_peripheral(Peripheral(name="P", base_address=0, children=(register,)))
    fields = peripheral.children[0].fields
    assert fields[0].access is Access.WRITE_ONLY
    assert fields[1].access is Access.READ_WRITE


def test_derived_peripheral_overrides_registers():
    base = Peripheral(
        name="BASE",
        base_address=0x1000,
        children=(
            make_register("A", 0x0, description="base A"),
            make_register("B", 0x4, description="base B"),
        ),
    )
    derived = Peripheral(
        name="DERIVED",
        base_address=0x2000,
        derived_from="BASE",
        description="derived",
        children=(
            make_register("C", 0x8),
            make_register("A", 0x10, description="own A"),
        ),
    )
    device = Device(name="DEV", peripherals=(base, derived))

    resolved = Resolver(device).resolve("DERIVED")

    assert [(r.name, r.offset, r.description) for r in resolved.children] == [
        ("A", 0x10, "own A"),
        ("B", 0x4, "base B"),
        ("C", 0x8, None),
    ]
    assert resolved.description == "derived"


def test_multi_hop_derivation():
    device = Device(
        name="DEV",
        peripherals=(
            Peripheral(name="A", base_address=0, children=(make_register("R"),)),
            Peripheral(name="B", base_address=0x1000, derived_from="A"),
            Peripheral(name="C", base_address=0x2000, derived_from="B"),
        ),
    )
    resolver = Resolver(device)
    assert resolver.resolve("C").children == resolver.resolve("A").children


def test_register_derivation():
    register = make_register(
        "SRC",
        0x0,
        description="source",
        properties=RegisterProperties(reset_value=0x5),
        fields=(make_field("F", 0, 3),),
    )
    copy = Register(name="COPY", offset=0x4, derived_from="SRC")
    peripheral = resolve_peripheral(
        Peripheral(name="P", base_address=0, children=(register, copy))
    )

    resolved_copy = peripheral.children[1]
    assert resolved_copy.offset == 0x4
    assert resolved_copy.description == "source"
    assert resolved_copy.properties.reset_value == 0x5
    assert [f.name for f in resolved_copy.fields] == ["F"]


def test_field_derivation():
    fields = (
        make_field("A", 0, 4, description="field A"),
        make_field("B", 8, 4, derived_from="A"),
    )
    peripheral = resolve_peripheral(
        Peripheral(name="P", base_address=0, children=(make_register(fields=fields),))
    )
    derived = peripheral.children[0].fields[1]
    assert derived.bit_range == svdgen.BitRange(8, 4)
    assert derived.description == "field A"


def test_derived_field_without_own_bit_range():
    fields = (
        make_field("A", 0, 4),
        svdgen.Field(name="B", derived_from="A"),
    )
    peripheral = resolve_peripheral(
        Peripheral(name="P", base_address=0, children=(make_register(fields=fields),))
    )
    assert peripheral.children[0].fields[1].bit_range == svdgen.BitRange(0, 4)


def test_enumeration_derivation():
    modes = Enumeration(
        name="MODES",
        usage=EnumUsage.READ_WRITE,
        values=(EnumeratedValue("OFF", 0), EnumeratedValue("ON", 1)),
    )
    fields = (
        make_field("A", 0, 1, enumerations=(modes,)),
        make_field("B", 1, 1, enumerations=(Enumeration(derived_from="MODES"),)),
    )
    peripheral = resolve_peripheral(
        Peripheral(name="P", base_address=0, children=(make_register(fields=fields),))
    )
    (derived,) = peripheral.children[0].fields[1].enumerations
    assert derived.values == modes.values
    assert derived.derived_from is None


def test_qualified_derived_from_name():
    register = make_register("SRC", 0x0, description="source")
    copy = Register(name="COPY", offset=0x4, derived_from="P.SRC")
    peripheral = resolve_peripheral(
        Peripheral(name="P", base_address=0, children=(register, copy))
    )
    assert peripheral.children[1].description == "source"


def test_unresolved_peripheral_reference():
    device = Device(
        name="DEV",
        peripherals=(Peripheral(name="A", base_address=0, derived_from="MISSING"),),
    )
    with pytest.raises(svdgen.UnresolvedReference) as exc_info:
        Resolver(device).resolve("A")

    assert exc_info.value.reference == "MISSING"
    assert exc_info.value.path == ("A",)


def test_unresolved_register_reference():
    copy = Register(name="COPY", offset=0x4, derived_from="NOPE")
    with pytest.raises(svdgen.UnresolvedReference) as exc_info:
        resolve_peripheral(Peripheral(name="P", base_address=0, children=(copy,)))

    assert exc_info.value.path == ("P", "COPY")


def test_unknown_peripheral_name():
    with pytest.raises(svdgen.UnresolvedReference):
        Resolver(_timers()).resolve("TIMER9")


def test_peripheral_derivation_cycle():
    device = Device(
        name="DEV",
        peripherals=(
            Peripheral(name="A", base_address=0, derived_from="B"),
            Peripheral(name="B", base_address=0x1000, derived_from="A"),
        ),
    )
    with pytest.raises(svdgen.DerivationCycle) as exc_info:
        Resolver(device).resolve("A")

    assert exc_info.value.chain == ("A", "B", "A")


def test_self_derived_register():
    register = Register(name="R", offset=0, derived_from="R")
    with pytest.raises(svdgen.DerivationCycle):
        resolve_peripheral(Peripheral(name="P", base_address=0, children=(register,)))


def test_register_derivation_cycle():
    registers = (
        Register(name="R1", offset=0, derived_from="R2"),
        Register(name="R2", offset=4, derived_from="R1"),
    )
    with pytest.raises(svdgen.DerivationCycle):
        resolve_peripheral(Peripheral(name="P", base_address=0, children=registers))


def test_resolution_is_idempotent():
    device = _timers()
    resolved = Resolver(device).resolve("TIMER1")
    assert resolve_peripheral(resolved) == resolved


def test_input_is_not_modified():
    device = _timers()
    before = dc.replace(device)
    Resolver(device).resolve("TIMER1")
    assert device == before
    assert device.peripheral_map["TIMER1"].children == ()


def test_cache_returns_same_object():
    resolver = Resolver(_timers())
    assert resolver.resolve("TIMER1") is resolver.resolve("TIMER1")
    assert resolver.resolve(resolver.device.peripheral_map["TIMER0"]) is resolver.resolve(
        "TIMER0"
    )


def test_concurrent_resolution():
    resolver = Resolver(_timers())
    with ThreadPoolExecutor(max_workers=4) as executor:
        results = list(executor.map(resolver.resolve, ["TIMER1"] * 16))

    assert all(r is results[0] for r in results)


def test_resolved_output_is_complete(device):
    resolver = Resolver(device)
    for peripheral in device.peripherals:
        resolved = resolver.resolve(peripheral.name)
        assert resolved.derived_from is None
        for register in resolved.register_iter():
            assert register.derived_from is None
            assert register.properties.is_full
            for field in register.fields:
                assert field.bit_range is not None
                assert field.access is not None
