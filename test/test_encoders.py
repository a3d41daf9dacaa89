import pytest

from rtumaster import crc, encoders
from rtumaster.exceptions import InvalidRequest
from rtumaster.request import FunctionCode


def test_write_multiple_coils_packs_lsb_first():
    request = encoders.write_multiple_coils(1, 0, [True, False, True])
    assert request.payload == b"\x00\x00\x00\x03\x01\x05"
    assert request.count == 3


def test_write_multiple_coils_adu():
    request = encoders.write_multiple_coils(0x11, 0x13, [True, False, True, True, False, False, True, True, True, False])
    assert request.adu == b"\x11\x0F\x00\x13\x00\x0A\x02\xCD\x01\xBF\x0B"


@pytest.mark.parametrize("count,byte_count", [(1, 1), (7, 1), (8, 1), (9, 2), (16, 2), (17, 3)])
def test_write_multiple_coils_byte_count(count, byte_count):
    request = encoders.write_multiple_coils(1, 0, [True] * count)
    assert request.payload[4] == byte_count
    assert len(request.payload) == 5 + byte_count


def test_write_multiple_coils_zero_padding():
    request = encoders.write_multiple_coils(1, 0, [True] * 9)
    assert request.payload[5:] == b"\xFF\x01"


def test_write_single_register_big_endian():
    request = encoders.write_single_register(1, 0x0001, 0x1234)
    assert request.payload == b"\x00\x01\x12\x34"
    assert request.function_code == FunctionCode.WRITE_SINGLE_REGISTER


@pytest.mark.parametrize("value,payload", [(True, b"\x00\xAC\xFF\x00"), (False, b"\x00\xAC\x00\x00")])
def test_write_single_coil(value, payload):
    assert encoders.write_single_coil(0x11, 0xAC, value).payload == payload


def test_write_single_coil_adu():
    assert encoders.write_single_coil(0x11, 0xAC, True).adu == b"\x11\x05\x00\xAC\xFF\x00\x4E\x8B"


def test_write_multiple_registers():
    request = encoders.write_multiple_registers(0x11, 0x01, [0x000A, 0x0102])
    assert request.adu == b"\x11\x10\x00\x01\x00\x02\x04\x00\x0A\x01\x02\xC6\xF0"


@pytest.mark.parametrize(
    "builder,function_code,adu",
    [
        (encoders.read_coils, FunctionCode.READ_COILS, b"\x11\x01\x00\x13\x00\x25\x0E\x84"),
        (encoders.read_discrete_inputs, FunctionCode.READ_DISCRETE_INPUTS, b"\x11\x02\x00\xC4\x00\x16\xBA\xA9"),
        (encoders.read_holding_registers, FunctionCode.READ_HOLDING_REGISTERS, b"\x11\x03\x00\x6b\x00\x03\x76\x87"),
        (encoders.read_input_registers, FunctionCode.READ_INPUT_REGISTERS, b"\x11\x04\x00\x08\x00\x01\xB2\x98"),
    ],
)
def test_read_requests(builder, function_code, adu):
    address, count = int.from_bytes(adu[2:4], "big"), int.from_bytes(adu[4:6], "big")
    request = builder(0x11, address, count)
    assert request.function_code == function_code
    assert request.adu == adu


def test_read_holding_register_forces_single_count():
    request = encoders.read_holding_register(1, 0x0102)
    assert request.payload == b"\x01\x02\x00\x01"
    assert request.count == 1


def test_read_exception_status_has_no_payload():
    request = encoders.read_exception_status(0x11)
    assert request.payload == b""
    assert request.adu == crc.append_crc(b"\x11\x07")


def test_diagnostics_echo():
    request = encoders.diagnostics_echo(1, b"\xA5\x37")
    assert request.payload == b"\x00\x00\xA5\x37"
    assert request.data == b"\xA5\x37"
    assert request.adu[:2] == b"\x01\x08"


def test_request_is_immutable():
    request = encoders.read_coils(1, 0, 1)
    with pytest.raises(AttributeError):
        request.unit = 2


@pytest.mark.parametrize(
    "build",
    [
        lambda: encoders.read_coils(1, 0, 0),
        lambda: encoders.read_coils(1, 0, 2001),
        lambda: encoders.read_coils(256, 0, 1),
        lambda: encoders.read_coils(-1, 0, 1),
        lambda: encoders.read_discrete_inputs(1, 0x10000, 1),
        lambda: encoders.read_input_registers(1, 0, 126),
        lambda: encoders.read_holding_registers(1, 0xFFFF, 2),
        lambda: encoders.write_single_register(1, 0, 0x10000),
        lambda: encoders.write_single_register(1, 0, -1),
        lambda: encoders.write_single_coil(1, 0x10000, True),
        lambda: encoders.write_multiple_coils(1, 0, []),
        lambda: encoders.write_multiple_coils(1, 0, [True] * 1969),
        lambda: encoders.write_multiple_registers(1, 0, [0] * 124),
        lambda: encoders.write_multiple_registers(1, 0, [0x10000]),
        lambda: encoders.diagnostics_echo(1, b"\x00" * 251),
    ],
)
def test_invalid_requests(build):
    with pytest.raises(InvalidRequest):
        build()


def test_invalid_request_is_value_error():
    with pytest.raises(ValueError):
        encoders.read_coils(1, 0, 0)


def test_largest_echo_fits_in_adu():
    assert len(encoders.diagnostics_echo(1, b"\x00" * 250).adu) == 256
