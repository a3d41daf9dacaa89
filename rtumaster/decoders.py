import struct
import typing

from rtumaster import crc, lengths
from rtumaster.exceptions import (
    InvalidResponseLength,
    UnexpectedResponse,
    from_exception_code,
)
from rtumaster.request import DIAGNOSTICS_ECHO, FunctionCode, Request


def unpack_bits(*values: int, size=8) -> typing.List[bool]:
    vals = []
    for val in values:
        for ind in range(size):
            vals.append(bool((val >> ind) & 1))
    return vals


def to_signed(value: int) -> int:
    (signed,) = struct.unpack(">h", struct.pack(">H", value))
    return signed


def _check_byte_count(request: Request, response: bytes, expected: int):
    if response[2] != expected:
        raise UnexpectedResponse(
            f"Byte count {response[2]} in response, expected {expected}"
        )


def _unpack_bits(request: Request, response: bytes) -> typing.List[bool]:
    size = (request.count + 7) // 8
    _check_byte_count(request, response, size)
    values = struct.unpack(">" + "B" * size, response[3 : 3 + size])
    return unpack_bits(*values)[:request.count]


def _unpack_words(request: Request, response: bytes) -> typing.List[int]:
    _check_byte_count(request, response, request.count * 2)
    data = response[3 : 3 + request.count * 2]
    return list(struct.unpack(">" + "H" * request.count, data))


def _unpack_write_echo(request: Request, response: bytes) -> None:
    if response[2:6] != request.payload[:4]:
        address, value = struct.unpack(">HH", response[2:6])
        raise UnexpectedResponse(
            f"Write confirmation echoed {address} and {value}, not the request's fields"
        )


def _unpack_exception_status(request: Request, response: bytes) -> int:
    return response[2]


def _unpack_diagnostics(request: Request, response: bytes) -> bytes:
    (sub_function,) = struct.unpack(">H", response[2:4])
    if sub_function != DIAGNOSTICS_ECHO:
        raise UnexpectedResponse(f"Diagnostics sub-function {sub_function} in response")
    return bytes(response[4 : 4 + len(request.data)])


function_codes = {
    FunctionCode.READ_COILS: _unpack_bits,
    FunctionCode.READ_DISCRETE_INPUTS: _unpack_bits,
    FunctionCode.READ_HOLDING_REGISTERS: _unpack_words,
    FunctionCode.READ_INPUT_REGISTERS: _unpack_words,
    FunctionCode.WRITE_SINGLE_COIL: _unpack_write_echo,
    FunctionCode.WRITE_SINGLE_REGISTER: _unpack_write_echo,
    FunctionCode.READ_EXCEPTION_STATUS: _unpack_exception_status,
    FunctionCode.DIAGNOSTICS: _unpack_diagnostics,
    FunctionCode.WRITE_MULTIPLE_COILS: _unpack_write_echo,
    FunctionCode.WRITE_MULTIPLE_REGISTERS: _unpack_write_echo,
}


def is_exception_response(request: Request, response: bytes) -> bool:
    return len(response) >= 2 and response[1] == request.function_code | 0x80


def decode(request: Request, response: bytes):
    """
    Validate a raw response to the request and extract its values
    :raises InvalidResponseLength: if the response is not exactly as long as expected
    :raises ChecksumMismatch: if the CRC doesn't match, no values are returned from a
        corrupted frame
    :raises UnexpectedResponse: if the response doesn't echo the request's unit,
        function code or fields
    :raises SlaveException: the mapped exception if the slave answered with an exception
        response
    """
    exception = is_exception_response(request, response)
    if exception:
        expected = lengths.EXCEPTION_RESPONSE_LENGTH
    else:
        expected = lengths.response_length(request)
    if len(response) != expected:
        raise InvalidResponseLength(
            f"Response is {len(response)} bytes, expected {expected}"
        )
    crc.check_crc(response)
    if response[0] != request.unit:
        raise UnexpectedResponse(
            f"Response from unit {response[0]}, request was for unit {request.unit}"
        )
    if exception:
        raise from_exception_code(response[2])
    if response[1] != request.function_code:
        raise UnexpectedResponse(
            f"Function code {response[1]} in response to {request.function_code}"
        )
    return function_codes[request.function_code](request, response)
