"""
Slave simulator
A canonical RTU slave kept in memory, and transports that deliver a master's frames to
it. Used to exercise the clients without a serial line.
"""
from __future__ import annotations

import asyncio
import logging
import struct
import typing
from dataclasses import dataclass, field

from rtumaster import crc
from rtumaster.datastore import DataStore, check_bit
from rtumaster.decoders import unpack_bits
from rtumaster.encoders import (
    MAX_READ_BITS,
    MAX_READ_REGISTERS,
    MAX_WRITE_BITS,
    MAX_WRITE_REGISTERS,
    pack_bits,
)
from rtumaster.exceptions import (
    ChecksumMismatch,
    IllegalDataAddress,
    IllegalDataValue,
    IllegalFunction,
    SlaveException,
    TransportError,
)
from rtumaster.request import DIAGNOSTICS_ECHO, FunctionCode
from rtumaster.transport import AsyncTransport, Transport

log = logging.getLogger(__name__)


def _bit_store() -> DataStore:
    return DataStore(check=check_bit)


def _unpack(fmt: str, data: bytes) -> tuple:
    try:
        return struct.unpack(fmt, data)
    except struct.error as e:
        raise IllegalDataValue(str(e)) from e


def _unpack_read(data: bytes, max_count: int) -> typing.Tuple[int, int]:
    address, count = _unpack(">HH", data)
    if not 1 <= count <= max_count:
        raise IllegalDataValue(f"Quantity {count} out of range")
    return address, count


def _unpack_write_multiple(
    data: bytes, max_count: int
) -> typing.Tuple[int, int, bytes]:
    address, count, size = _unpack(">HHB", data[:5])
    values = data[5:]
    if not 1 <= count <= max_count or len(values) != size:
        raise IllegalDataValue(f"Quantity {count} with {len(values)} of {size} bytes")
    return address, count, values


@dataclass
class SlaveSimulator:
    unit: int = 1
    coils: DataStore = field(default_factory=_bit_store)
    discrete_inputs: DataStore = field(default_factory=_bit_store)
    holding_registers: DataStore = field(default_factory=DataStore)
    input_registers: DataStore = field(default_factory=DataStore)
    exception_status: int = 0

    def __post_init__(self):
        self.function_codes = {
            FunctionCode.READ_COILS: self._read_coils,
            FunctionCode.READ_DISCRETE_INPUTS: self._read_discrete_inputs,
            FunctionCode.READ_HOLDING_REGISTERS: self._read_holding_registers,
            FunctionCode.READ_INPUT_REGISTERS: self._read_input_registers,
            FunctionCode.WRITE_SINGLE_COIL: self._write_single_coil,
            FunctionCode.WRITE_SINGLE_REGISTER: self._write_single_register,
            FunctionCode.READ_EXCEPTION_STATUS: self._read_exception_status,
            FunctionCode.DIAGNOSTICS: self._diagnostics,
            FunctionCode.WRITE_MULTIPLE_COILS: self._write_multiple_coils,
            FunctionCode.WRITE_MULTIPLE_REGISTERS: self._write_multiple_registers,
        }

    def process_request(self, frame: bytes) -> typing.Optional[bytes]:
        """
        Handle a request ADU
        :return: The response ADU, or None when a real slave would stay silent:
            corrupted frames and frames for other units
        """
        try:
            crc.check_crc(frame)
        except ChecksumMismatch:
            log.debug("Simulator dropped corrupted frame")
            return None
        unit, function_code = frame[0], frame[1]
        if unit != self.unit:
            return None
        try:
            handler = self.function_codes.get(function_code)
            if handler is None:
                raise IllegalFunction(f"Function code {function_code} not supported")
            pdu = handler(function_code, bytes(frame[2:-2]))
        except SlaveException as e:
            pdu = struct.pack(">BB", function_code | 0x80, e.code)
        return crc.append_crc(struct.pack(">B", unit) + pdu)

    @staticmethod
    def _read(store: DataStore, address: int, count: int) -> list:
        if not store.contains_range(address, count):
            raise IllegalDataAddress(
                f"Addresses {address}..{address + count - 1} not available"
            )
        return store[address:address + count]

    @staticmethod
    def _write(store: DataStore, address: int, values: list):
        if not store.contains_range(address, len(values)):
            raise IllegalDataAddress(
                f"Addresses {address}..{address + len(values) - 1} not available"
            )
        store[address:address + len(values)] = values

    def _read_bits(self, store: DataStore, function_code: int, data: bytes) -> bytes:
        address, count = _unpack_read(data, MAX_READ_BITS)
        packed = pack_bits(*self._read(store, address, count))
        fmt = ">BB" + "B" * len(packed)
        return struct.pack(fmt, function_code, len(packed), *packed)

    def _read_words(self, store: DataStore, function_code: int, data: bytes) -> bytes:
        address, count = _unpack_read(data, MAX_READ_REGISTERS)
        values = self._read(store, address, count)
        return struct.pack(">BB" + "H" * count, function_code, count * 2, *values)

    def _read_coils(self, function_code: int, data: bytes) -> bytes:
        return self._read_bits(self.coils, function_code, data)

    def _read_discrete_inputs(self, function_code: int, data: bytes) -> bytes:
        return self._read_bits(self.discrete_inputs, function_code, data)

    def _read_holding_registers(self, function_code: int, data: bytes) -> bytes:
        return self._read_words(self.holding_registers, function_code, data)

    def _read_input_registers(self, function_code: int, data: bytes) -> bytes:
        return self._read_words(self.input_registers, function_code, data)

    def _write_single_coil(self, function_code: int, data: bytes) -> bytes:
        address, value = _unpack(">HH", data)
        if value not in (0xFF00, 0x0000):
            raise IllegalDataValue(f"Coil value {value:04X}")
        self._write(self.coils, address, [value == 0xFF00])
        return struct.pack(">B", function_code) + data

    def _write_single_register(self, function_code: int, data: bytes) -> bytes:
        address, value = _unpack(">HH", data)
        self._write(self.holding_registers, address, [value])
        return struct.pack(">B", function_code) + data

    def _write_multiple_coils(self, function_code: int, data: bytes) -> bytes:
        address, count, values = _unpack_write_multiple(data, MAX_WRITE_BITS)
        if len(values) != (count + 7) // 8:
            raise IllegalDataValue(f"{len(values)} bytes for {count} coils")
        self._write(self.coils, address, unpack_bits(*values)[:count])
        return struct.pack(">BHH", function_code, address, count)

    def _write_multiple_registers(self, function_code: int, data: bytes) -> bytes:
        address, count, values = _unpack_write_multiple(data, MAX_WRITE_REGISTERS)
        if len(values) != count * 2:
            raise IllegalDataValue(f"{len(values)} bytes for {count} registers")
        registers = list(struct.unpack(">" + "H" * count, values))
        self._write(self.holding_registers, address, registers)
        return struct.pack(">BHH", function_code, address, count)

    def _read_exception_status(self, function_code: int, data: bytes) -> bytes:
        return struct.pack(">BB", function_code, self.exception_status)

    def _diagnostics(self, function_code: int, data: bytes) -> bytes:
        (sub_function,) = _unpack(">H", data[:2])
        if sub_function != DIAGNOSTICS_ECHO:
            raise IllegalFunction(
                f"Diagnostics sub-function {sub_function} not supported"
            )
        return struct.pack(">B", function_code) + data


class SimulatedLine:
    """
    The shared half of both simulated transports: frames written are answered by the
    simulator of the addressed unit, and every write and read is recorded in
    `operations` in the order it happened.
    """

    def __init__(self, *slaves: SlaveSimulator):
        self.slaves = {slave.unit: slave for slave in slaves}
        self.pending = bytearray()
        self.operations: typing.List[tuple] = []
        self.written: typing.List[bytes] = []
        self.opened = False

    def respond(self, frame: bytes) -> typing.Optional[bytes]:
        """Override to tamper with the line"""
        slave = self.slaves.get(frame[0])
        return slave.process_request(frame) if slave else None

    def _check_open(self):
        if not self.opened:
            raise TransportError("Simulated line is not open")

    def _write(self, data: bytes):
        self._check_open()
        self.operations.append(("write", bytes(data)))
        self.written.append(bytes(data))
        response = self.respond(bytes(data))
        if response:
            self.pending.extend(response)

    def _read(self, count: int) -> bytes:
        self._check_open()
        self.operations.append(("read", count))
        data = bytes(self.pending[:count])
        del self.pending[:count]
        return data

    def _reset(self):
        self._check_open()
        self.pending.clear()


class SimulatedTransport(SimulatedLine, Transport):
    def __init__(self, *slaves: SlaveSimulator):
        SimulatedLine.__init__(self, *slaves)
        Transport.__init__(self)

    @property
    def is_open(self) -> bool:
        return self.opened

    def open(self):
        self.opened = True

    def close(self):
        self.opened = False

    def reset(self):
        self._reset()

    def write(self, data: bytes):
        self._write(data)

    def read_exact(self, count: int, timeout: float) -> bytes:
        return self._read(count)


class AsyncSimulatedTransport(SimulatedLine, AsyncTransport):
    def __init__(self, *slaves: SlaveSimulator):
        SimulatedLine.__init__(self, *slaves)
        AsyncTransport.__init__(self)

    @property
    def is_open(self) -> bool:
        return self.opened

    async def open(self):
        self.opened = True

    def close(self):
        self.opened = False

    def reset(self):
        self._reset()

    async def write(self, data: bytes):
        self._write(data)
        await asyncio.sleep(0)

    async def read_exact(self, count: int, timeout: float) -> bytes:
        await asyncio.sleep(0)
        return self._read(count)
