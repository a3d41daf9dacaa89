import pytest
import struct

import rtumaster.crc
import rtumaster.exceptions
from rtumaster.client import AsyncModbusRtuClient
from rtumaster.simulator import AsyncSimulatedTransport


class ScriptedTransport(AsyncSimulatedTransport):
    """Answers every frame with a fixed response"""

    def __init__(self, response: bytes):
        super().__init__()
        self.response = response

    def respond(self, frame):
        return self.response


@pytest.fixture
def create_mock_coro(mocker, monkeypatch):
    def _create_mock_patch_coro(to_patch=None):
        mock = mocker.Mock()

        async def _coro(*args, **kwargs):
            return mock(*args, **kwargs)

        if to_patch:  # <-- may not need/want to patch anything
            monkeypatch.setattr(to_patch, _coro)
        return mock, _coro

    return _create_mock_patch_coro


@pytest.fixture
def mock_sleep(create_mock_coro):
    # won't need the returned coroutine here
    mock, _ = create_mock_coro(to_patch="asyncio.sleep")
    return mock


async def connected_client(response: bytes) -> AsyncModbusRtuClient:
    client = AsyncModbusRtuClient(transport=ScriptedTransport(response), settle_delay=0.1)
    await client.connect()
    return client


@pytest.mark.asyncio
async def test_read_coils(mock_sleep):
    client = await connected_client(b"\x11\x01\x05\xCD\x6B\xB2\x0E\x1B\x45\xE6")
    result = await client.read_coils(0x13, 0x25, unit=0x11)
    assert client.transport.written == [b"\x11\x01\x00\x13\x00\x25\x0E\x84"]
    mock_sleep.assert_any_call(0.1)
    assert result == [True, False, True, True, False, False, True, True, True, True, False, True, False, True,
                      True,
                      False, False, True, False, False, True, True, False, True, False, True, True, True, False,
                      False,
                      False, False, True, True, False, True, True]


@pytest.mark.asyncio
async def test_read_discrete_inputs(mock_sleep):
    client = await connected_client(b"\x11\x02\x03\xAC\xDB\x35\x20\x18")
    result = await client.read_discrete_inputs(0xC4, 0x16, unit=0x11)
    assert client.transport.written == [b"\x11\x02\x00\xC4\x00\x16\xBA\xA9"]
    assert result == [False, False, True, True, False, True, False, True, True, True, False, True, True, False,
                      True,
                      True, True, False, True, False, True, True]


@pytest.mark.asyncio
async def test_read_holding_registers(mock_sleep):
    client = await connected_client(b"\x11\x03\x06\xAE\x41\x56\x52\x43\x40\x49\xAD")
    result = await client.read_holding_registers(0x6b, 0x3, unit=0x11)
    assert client.transport.written == [b"\x11\x03\x00\x6b\x00\x03\x76\x87"]
    assert result == [0xAE41, 0x5652, 0x4340]


@pytest.mark.asyncio
async def test_read_holding_register(mock_sleep):
    response = bytearray(b"\x11\x03\x02\xFF\xFE")
    response.extend(struct.pack("<H", rtumaster.crc.compute(response)))
    client = await connected_client(bytes(response))
    assert await client.read_holding_register(0x6b, unit=0x11) == 0xFFFE
    assert await client.read_holding_register(0x6b, unit=0x11, signed=True) == -2
    assert client.transport.written[0][:6] == b"\x11\x03\x00\x6b\x00\x01"


@pytest.mark.asyncio
async def test_read_input_registers(mock_sleep):
    client = await connected_client(b"\x11\x04\x02\x00\x0A\xF8\xF4")
    result = await client.read_input_registers(0x08, 0x1, unit=0x11)
    assert client.transport.written == [b"\x11\x04\x00\x08\x00\x01\xB2\x98"]
    assert result == [0xA]


@pytest.mark.asyncio
async def test_write_coil(mock_sleep):
    client = await connected_client(b"\x11\x05\x00\xAC\xFF\x00\x4E\x8B")
    assert await client.write_single_coil(0xAC, True, unit=0x11) is None
    assert client.transport.written == [b"\x11\x05\x00\xAC\xFF\x00\x4E\x8B"]


@pytest.mark.asyncio
async def test_write_register(mock_sleep):
    client = await connected_client(b"\x11\x06\x00\x01\x00\x03\x9A\x9B")
    await client.write_single_register(0x01, 0x3, unit=0x11)
    assert client.transport.written == [b"\x11\x06\x00\x01\x00\x03\x9A\x9B"]


@pytest.mark.asyncio
async def test_write_coils(mock_sleep):
    client = await connected_client(b"\x11\x0F\x00\x13\x00\x0A\x26\x99")
    await client.write_multiple_coils(0x13, [True, False, True, True, False, False, True, True, True, False], unit=0x11)
    assert client.transport.written == [b"\x11\x0F\x00\x13\x00\x0A\x02\xCD\x01\xBF\x0B"]


@pytest.mark.asyncio
async def test_write_registers(mock_sleep):
    client = await connected_client(b"\x11\x10\x00\x01\x00\x02\x12\x98")
    await client.write_multiple_registers(0x01, [0xA, 0x102], unit=0x11)
    assert client.transport.written == [b"\x11\x10\x00\x01\x00\x02\x04\x00\x0A\x01\x02\xC6\xF0"]


@pytest.mark.asyncio
async def test_read_exception_status(mock_sleep):
    client = await connected_client(rtumaster.crc.append_crc(b"\x11\x07\x6D"))
    assert await client.read_exception_status(unit=0x11) == 0x6D
    assert client.transport.written == [rtumaster.crc.append_crc(b"\x11\x07")]


@pytest.mark.asyncio
async def test_diagnostics_echo(mock_sleep):
    client = await connected_client(rtumaster.crc.append_crc(b"\x11\x08\x00\x00\xA5\x37"))
    assert await client.diagnostics_echo(b"\xA5\x37", unit=0x11) == b"\xA5\x37"
    assert client.transport.written == [rtumaster.crc.append_crc(b"\x11\x08\x00\x00\xA5\x37")]


@pytest.mark.asyncio
async def test_write_echo_mismatch(mock_sleep):
    client = await connected_client(b"\x11\x06\x00\x01\x00\x03\x9A\x9B")
    with pytest.raises(rtumaster.exceptions.UnexpectedResponse):
        await client.write_single_register(0x02, 0x3, unit=0x11)


@pytest.mark.parametrize("exceptioncls,exception_code", [
    (rtumaster.exceptions.IllegalFunction, 1),
    (rtumaster.exceptions.IllegalDataAddress, 2),
    (rtumaster.exceptions.IllegalDataValue, 3),
    (rtumaster.exceptions.SlaveDeviceFailure, 4),
    (rtumaster.exceptions.AcknowledgeError, 5),
    (rtumaster.exceptions.DeviceBusy, 6),
    (rtumaster.exceptions.NegativeAcknowledgeError, 7),
    (rtumaster.exceptions.MemoryParityError, 8),
    (rtumaster.exceptions.GatewayPathUnavailable, 10),
    (rtumaster.exceptions.GatewayDeviceFailedToRespond, 11),
    (rtumaster.exceptions.SlaveException, 12),
])
@pytest.mark.asyncio
async def test_exceptions(exceptioncls, exception_code, mock_sleep):
    exc_packet = bytearray([0x11, 0x83, exception_code])
    exc_packet.extend(struct.pack("<H", rtumaster.crc.compute(exc_packet)))
    client = await connected_client(bytes(exc_packet))
    with pytest.raises(exceptioncls):
        await client.read_holding_registers(0x6b, 0x3, unit=0x11)
    assert client.transport.written == [b"\x11\x03\x00\x6b\x00\x03\x76\x87"]
    assert client.transport.operations[1:] == [("read", 5)]
