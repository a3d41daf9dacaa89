import struct
import typing

from rtumaster.exceptions import InvalidRequest
from rtumaster.request import DIAGNOSTICS_ECHO, FunctionCode, Request

MAX_READ_BITS = 2000
MAX_WRITE_BITS = 1968
MAX_READ_REGISTERS = 125
MAX_WRITE_REGISTERS = 123
# unit + function code + sub-function + crc around the echoed data must fit in a 256
# byte ADU
MAX_ECHO_DATA = 256 - 6


def _check_range(name: str, value: int, low: int, high: int) -> int:
    if not isinstance(value, int) or not low <= value <= high:
        raise InvalidRequest(f"{name} must be in range {low}..{high}, got {value!r}")
    return value


def _check_block(address: int, count: int, max_count: int):
    _check_range("address", address, 0, 0xFFFF)
    _check_range("count", count, 1, max_count)
    if address + count > 0x10000:
        raise InvalidRequest(
            f"Block of {count} from address {address} runs past the last address 0xFFFF"
        )


def _pack_read(address: int, count: int) -> bytes:
    return struct.pack(">HH", address, count)


def _pack_single_coil(address: int, value: bool) -> bytes:
    return struct.pack(">HH", address, 0xFF00 if value else 0x0000)


def _pack_single_register(address: int, value: int) -> bytes:
    return struct.pack(">HH", address, value)


def pack_bits(*values: bool, size=8) -> typing.List[int]:
    vals = [0] * ((len(values) + size - 1) // size)
    for ind, bit in enumerate(values):
        vals[ind // size] |= bool(bit) << ind % size
    return vals


def _pack_write_coils(address: int, *values: bool) -> bytes:
    vals = pack_bits(*values)
    return struct.pack(">HHB" + "B" * len(vals), address, len(values), len(vals), *vals)


def _pack_write_words(address: int, *values: int) -> bytes:
    fmt = ">HHB" + "H" * len(values)
    return struct.pack(fmt, address, len(values), len(values) * 2, *values)


def _pack_diagnostics(sub_function: int, data: bytes) -> bytes:
    return struct.pack(">H", sub_function) + bytes(data)


function_codes = {
    FunctionCode.READ_COILS: _pack_read,
    FunctionCode.READ_DISCRETE_INPUTS: _pack_read,
    FunctionCode.READ_HOLDING_REGISTERS: _pack_read,
    FunctionCode.READ_INPUT_REGISTERS: _pack_read,
    FunctionCode.WRITE_SINGLE_COIL: _pack_single_coil,
    FunctionCode.WRITE_SINGLE_REGISTER: _pack_single_register,
    FunctionCode.READ_EXCEPTION_STATUS: lambda: b"",
    FunctionCode.DIAGNOSTICS: _pack_diagnostics,
    FunctionCode.WRITE_MULTIPLE_COILS: _pack_write_coils,
    FunctionCode.WRITE_MULTIPLE_REGISTERS: _pack_write_words,
}


def from_func_code(func_code, *args) -> bytes:
    return function_codes[func_code](*args)


def _request(
    unit: int, function_code: FunctionCode, *args, address=0, count=0, data=b""
) -> Request:
    _check_range("unit", unit, 0, 0xFF)
    return Request(
        unit,
        function_code,
        from_func_code(function_code, *args),
        address=address,
        count=count,
        data=data,
    )


def _read(
    unit: int, function_code: FunctionCode, address: int, count: int, max_count: int
) -> Request:
    _check_block(address, count, max_count)
    return _request(unit, function_code, address, count, address=address, count=count)


def read_coils(unit: int, address: int, count: int) -> Request:
    return _read(unit, FunctionCode.READ_COILS, address, count, MAX_READ_BITS)


def read_discrete_inputs(unit: int, address: int, count: int) -> Request:
    return _read(unit, FunctionCode.READ_DISCRETE_INPUTS, address, count, MAX_READ_BITS)


def read_holding_register(unit: int, address: int) -> Request:
    return _read(unit, FunctionCode.READ_HOLDING_REGISTERS, address, 1, 1)


def read_holding_registers(unit: int, address: int, count: int) -> Request:
    return _read(
        unit, FunctionCode.READ_HOLDING_REGISTERS, address, count, MAX_READ_REGISTERS
    )


def read_input_registers(unit: int, address: int, count: int) -> Request:
    return _read(
        unit, FunctionCode.READ_INPUT_REGISTERS, address, count, MAX_READ_REGISTERS
    )


def write_single_coil(unit: int, address: int, value: bool) -> Request:
    _check_range("address", address, 0, 0xFFFF)
    return _request(
        unit, FunctionCode.WRITE_SINGLE_COIL, address, value, address=address, count=1
    )


def write_single_register(unit: int, address: int, value: int) -> Request:
    _check_range("address", address, 0, 0xFFFF)
    _check_range("value", value, 0, 0xFFFF)
    return _request(
        unit,
        FunctionCode.WRITE_SINGLE_REGISTER,
        address,
        value,
        address=address,
        count=1,
    )


def write_multiple_coils(
    unit: int, address: int, values: typing.Sequence[bool]
) -> Request:
    _check_block(address, len(values), MAX_WRITE_BITS)
    return _request(
        unit,
        FunctionCode.WRITE_MULTIPLE_COILS,
        address,
        *values,
        address=address,
        count=len(values),
    )


def write_multiple_registers(
    unit: int, address: int, values: typing.Sequence[int]
) -> Request:
    _check_block(address, len(values), MAX_WRITE_REGISTERS)
    for value in values:
        _check_range("value", value, 0, 0xFFFF)
    return _request(
        unit,
        FunctionCode.WRITE_MULTIPLE_REGISTERS,
        address,
        *values,
        address=address,
        count=len(values),
    )


def read_exception_status(unit: int) -> Request:
    return _request(unit, FunctionCode.READ_EXCEPTION_STATUS)


def diagnostics_echo(unit: int, data: bytes) -> Request:
    data = bytes(data)
    if len(data) > MAX_ECHO_DATA:
        raise InvalidRequest(
            f"Echo data is limited to {MAX_ECHO_DATA} bytes, got {len(data)}"
        )
    return _request(
        unit,
        FunctionCode.DIAGNOSTICS,
        DIAGNOSTICS_ECHO,
        data,
        count=len(data),
        data=data,
    )
