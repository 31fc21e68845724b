# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

from pathlib import Path
from typing import Any, Dict, List

import pytest

import svdgen
from svdgen.model import (
    Access,
    BitRange,
    Device,
    EnumeratedValue,
    Enumeration,
    Field,
    Peripheral,
    Register,
    RegisterProperties,
)

SVD_DOCUMENT = b"""<?xml version="1.0" encoding="utf-8"?>
<device schemaVersion="1.3">
  <vendor>Test Vendor</vendor>
  <name>TESTDEV</name>
  <version>1.0</version>
  <description>Device used by the tests</description>
  <addressUnitBits>8</addressUnitBits>
  <width>32</width>
  <size>32</size>
  <access>read-write</access>
  <resetValue>0x00000000</resetValue>
  <resetMask>0xFFFFFFFF</resetMask>
  <peripherals>
    <peripheral>
      <name>TIMER0</name>
      <description>Timer 0</description>
      <groupName>TIMER</groupName>
      <baseAddress>0x40008000</baseAddress>
      <registers>
        <register>
          <name>CTRL</name>
          <description>Control register</description>
          <addressOffset>0x000</addressOffset>
          <resetValue>0x00000002</resetValue>
          <fields>
            <field>
              <name>MODE</name>
              <description>Timer mode</description>
              <bitRange>[1:0]</bitRange>
              <enumeratedValues>
                <name>MODES</name>
                <enumeratedValue>
                  <name>Timer</name>
                  <value>0</value>
                </enumeratedValue>
                <enumeratedValue>
                  <name>Counter</name>
                  <value>1</value>
                </enumeratedValue>
                <enumeratedValue>
                  <name>LowPowerCounter</name>
                  <value>2</value>
                  <isDefault>true</isDefault>
                </enumeratedValue>
              </enumeratedValues>
            </field>
            <field>
              <name>EN</name>
              <bitOffset>4</bitOffset>
              <bitWidth>1</bitWidth>
            </field>
            <field>
              <name>PRESCALER</name>
              <lsb>8</lsb>
              <msb>11</msb>
            </field>
          </fields>
        </register>
        <register>
          <name>TASKS_START</name>
          <addressOffset>0x004</addressOffset>
          <access>write-only</access>
          <fields>
            <field>
              <name>TASKS_START</name>
              <bitOffset>0</bitOffset>
            </field>
          </fields>
        </register>
        <register>
          <name>STATUS</name>
          <addressOffset>0x008</addressOffset>
          <access>read-only</access>
        </register>
        <register>
          <dim>4</dim>
          <dimIncrement>4</dimIncrement>
          <name>CC[%s]</name>
          <description>Capture/compare register</description>
          <addressOffset>0x010</addressOffset>
        </register>
        <cluster>
          <name>EVENTS</name>
          <addressOffset>0x100</addressOffset>
          <register>
            <name>COMPARE</name>
            <addressOffset>0x0</addressOffset>
            <size>16</size>
          </register>
        </cluster>
      </registers>
    </peripheral>
    <peripheral derivedFrom="TIMER0">
      <name>TIMER1</name>
      <baseAddress>0x40009000</baseAddress>
    </peripheral>
    <peripheral>
      <name>UART0</name>
      <baseAddress>0x40002000</baseAddress>
      <registers>
        <register>
          <name>BAUDRATE</name>
          <addressOffset>0x524</addressOffset>
          <resetValue>0x04000000</resetValue>
        </register>
      </registers>
    </peripheral>
  </peripherals>
</device>
"""


@pytest.fixture
def svd_document() -> bytes:
    return SVD_DOCUMENT


@pytest.fixture
def svd_file(tmp_path: Path) -> Path:
    path = tmp_path / "testdev.svd"
    path.write_bytes(SVD_DOCUMENT)
    return path


@pytest.fixture
def device() -> Device:
    return svdgen.parse_bytes(SVD_DOCUMENT)


def exec_units(units: List[str]) -> Dict[str, Any]:
    """Execute generated code units as a module and return its namespace."""
    namespace: Dict[str, Any] = {"__name__": "generated"}
    exec(compile("\n\n\n".join(units) + "\n", "<generated>", "exec"), namespace)
    return namespace


def make_register(name: str = "CTRL", offset: int = 0, **kwargs) -> Register:
    return Register(name=name, offset=offset, **kwargs)


def make_field(name: str, offset: int, width: int, **kwargs) -> Field:
    return Field(name=name, bit_range=BitRange(offset=offset, width=width), **kwargs)


def timer_peripheral() -> Peripheral:
    """A 32-bit register with an enumerated 4-bit field and a single bit field."""
    mode = make_field(
        "MODE",
        0,
        4,
        enumerations=(
            Enumeration(
                values=(
                    EnumeratedValue("A", 0, is_default=True),
                    EnumeratedValue("B", 1),
                )
            ),
        ),
    )
    enable = make_field("EN", 4, 1)
    return Peripheral(
        name="TIMER0",
        base_address=0x40008000,
        children=(
            make_register(
                "CTRL",
                0,
                properties=RegisterProperties(access=Access.READ_WRITE),
                fields=(mode, enable),
            ),
        ),
    )
