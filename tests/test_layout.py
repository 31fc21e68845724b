# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

import pytest

import svdgen
from svdgen.layout import plan_peripheral, plan_register
from svdgen.model import Access, BitRange, Cluster, Peripheral, RegisterProperties
from svdgen.resolve import Resolver, resolve_peripheral

from conftest import make_field, make_register, timer_peripheral

FULL_PROPERTIES = RegisterProperties(
    size=32, access=Access.READ_WRITE, reset_value=0, reset_mask=0xFFFFFFFF
)


def _register(*fields, **kwargs):
    kwargs.setdefault("properties", FULL_PROPERTIES)
    return make_register(fields=tuple(fields), **kwargs)


def test_masks_and_shifts():
    layout = plan_register(_register(make_field("B", 4, 1), make_field("A", 0, 4)), ("P",))

    assert [f.name for f in layout.fields] == ["A", "B"]
    a, b = layout.fields
    assert (a.mask, a.shift, a.shifted_mask) == (0xF, 0, 0xF)
    assert (b.mask, b.shift, b.shifted_mask) == (0x1, 4, 0x10)
    assert not a.is_bit
    assert b.is_bit
    assert layout.path == ("P", "CTRL")


def test_reserved_bits():
    resolved = resolve_peripheral(timer_peripheral())
    layout = plan_peripheral(resolved).registers[0]

    assert layout.field_mask == 0x1F
    assert layout.reserved_mask == 0xFFFFFFE0
    assert layout.reserved_spans() == [BitRange(offset=5, width=27)]


def test_reserved_spans_between_fields():
    layout = plan_register(_register(make_field("A", 2, 2), make_field("B", 8, 8)))
    assert layout.reserved_spans() == [
        BitRange(0, 2),
        BitRange(4, 4),
        BitRange(16, 16),
    ]


def test_field_covering_whole_register():
    layout = plan_register(_register(make_field("VALUE", 0, 32)))
    assert layout.fields[0].mask == 0xFFFFFFFF
    assert layout.reserved_mask == 0
    assert layout.reserved_spans() == []


def test_overlapping_fields():
    register = _register(make_field("A", 0, 4), make_field("B", 2, 4))
    with pytest.raises(svdgen.OverlappingFields) as exc_info:
        plan_register(register, ("P",))

    assert exc_info.value.fields == ("A", "B")
    assert exc_info.value.path == ("P", "CTRL")


def test_overlap_is_detected_regardless_of_declaration_order():
    register = _register(make_field("B", 2, 4), make_field("A", 0, 4))
    with pytest.raises(svdgen.OverlappingFields):
        plan_register(register)


def test_adjacent_fields_do_not_overlap():
    layout = plan_register(_register(make_field("A", 0, 4), make_field("B", 4, 4)))
    assert len(layout.fields) == 2


@pytest.mark.parametrize(
    "offset, width",
    [(30, 4), (32, 1), (0, 0), (-1, 2)],
)
def test_field_out_of_range(offset, width):
    register = _register(make_field("F", offset, width))
    with pytest.raises(svdgen.OutOfRange) as exc_info:
        plan_register(register, ("P",))

    assert exc_info.value.path == ("P", "CTRL", "F")


def test_field_out_of_range_in_small_register():
    register = _register(
        make_field("F", 4, 8),
        properties=RegisterProperties(
            size=8, access=Access.READ_WRITE, reset_value=0, reset_mask=0xFF
        ),
    )
    with pytest.raises(svdgen.OutOfRange):
        plan_register(register)


def test_reset_value_too_large():
    register = _register(
        properties=RegisterProperties(
            size=8, access=Access.READ_WRITE, reset_value=0x100, reset_mask=0xFF
        ),
    )
    with pytest.raises(svdgen.GenerationError):
        plan_register(register)


def test_unresolved_register_is_rejected():
    with pytest.raises(svdgen.GenerationError):
        plan_register(make_register())


def test_field_access_override():
    register = _register(
        make_field("RO", 0, 1, access=Access.READ_ONLY),
        make_field("INHERITED", 1, 1),
    )
    layout = plan_register(register)
    assert layout.fields[0].access is Access.READ_ONLY
    assert layout.fields[1].access is Access.READ_WRITE


def test_insert_and_extract():
    layout = plan_register(_register(make_field("A", 4, 4)))
    (field,) = layout.fields

    value = field.insert(0xFFFF_FFFF, 0x5)
    assert value == 0xFFFF_FF5F
    assert field.extract(value) == 0x5

    with pytest.raises(ValueError):
        field.insert(0, 0x10)


def test_clusters_are_flattened():
    peripheral = Peripheral(
        name="P",
        base_address=0x4000_0000,
        children=(
            make_register("A", 0x0),
            Cluster(
                name="OUTER",
                offset=0x100,
                children=(
                    make_register("B", 0x4),
                    Cluster(name="INNER", offset=0x20, children=(make_register("C", 0x8),)),
                ),
            ),
        ),
    )
    layout = plan_peripheral(resolve_peripheral(peripheral))

    assert [(r.name, r.offset) for r in layout.registers] == [
        ("A", 0x0),
        ("OUTER_B", 0x104),
        ("OUTER_INNER_C", 0x128),
    ]
    assert layout.address_of(layout.registers[2]) == 0x4000_0128
    assert layout.registers[2].path == ("P", "OUTER", "INNER", "C")


def test_parsed_device_layout(device):
    layout = plan_peripheral(Resolver(device).resolve("TIMER0"))

    names = [r.name for r in layout.registers]
    assert names == [
        "CTRL",
        "TASKS_START",
        "STATUS",
        "CC0",
        "CC1",
        "CC2",
        "CC3",
        "EVENTS_COMPARE",
    ]

    compare = layout.registers[-1]
    assert compare.size == 16
    assert layout.address_of(compare) == 0x40008100
