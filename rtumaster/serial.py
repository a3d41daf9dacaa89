"""
Serial Communications
Transports over a serial line. The line settings (baud rate, parity, stop bits) are
handed to pyserial as given, nothing here negotiates or derives them. Framing on the
wire relies on the exact response length computed for each request, not on measuring
the t1.5/t3.5 silent intervals.
"""
import asyncio
import logging

import serial
import serial_asyncio

from rtumaster.exceptions import TransportError
from rtumaster.transport import AsyncTransport, Transport

log = logging.getLogger(__name__)


class SerialTransport(Transport):
    """Blocking transport on a pyserial port"""

    def __init__(
        self,
        port: str,
        baudrate: int = 9600,
        parity: str = "N",
        stopbits: int = 1,
        bytesize: int = 8,
    ):
        super().__init__()
        self.serial = serial.serial_for_url(
            port,
            do_not_open=True,
            baudrate=baudrate,
            parity=parity,
            stopbits=stopbits,
            bytesize=bytesize,
        )

    @property
    def is_open(self) -> bool:
        return self.serial.is_open

    def open(self):
        if self.serial.is_open:
            return
        try:
            self.serial.open()
        except serial.SerialException as e:
            raise TransportError(f"Failed to open {self.serial.name}: {e}") from e
        log.debug("Opened %s", self.serial.name)

    def close(self):
        if self.serial.is_open:
            self.serial.close()
            log.debug("Closed %s", self.serial.name)

    def _check_open(self):
        if not self.serial.is_open:
            raise TransportError(f"{self.serial.name} is not open")

    def reset(self):
        self._check_open()
        try:
            self.serial.reset_input_buffer()
            self.serial.reset_output_buffer()
        except serial.SerialException as e:
            raise TransportError(str(e)) from e

    def write(self, data: bytes):
        self._check_open()
        try:
            self.serial.write(data)
            self.serial.flush()
        except serial.SerialException as e:
            raise TransportError(f"Write to {self.serial.name} failed: {e}") from e

    def read_exact(self, count: int, timeout: float) -> bytes:
        self._check_open()
        if count <= 0:
            return b""
        # pyserial applies the timeout to the whole read, returning what arrived if it
        # expires
        self.serial.timeout = timeout
        try:
            return bytes(self.serial.read(count))
        except serial.SerialException as e:
            raise TransportError(f"Read from {self.serial.name} failed: {e}") from e


class ModbusSerialProtocol(asyncio.Protocol):
    def __init__(self):
        self.transport = None
        self.buffer = bytearray()
        self.connected = asyncio.Event()
        self.received = asyncio.Event()
        self.can_write = asyncio.Event()
        self.can_write.set()
        self.exc = None

    def connection_made(self, transport: serial_asyncio.SerialTransport):
        self.transport = transport
        self.connected.set()

    def data_received(self, data):
        self.buffer.extend(data)
        self.received.set()

    def connection_lost(self, exc):
        self.exc = exc
        self.connected.clear()
        # wake up anything waiting on the line so it can see the loss
        self.received.set()
        self.can_write.set()

    def pause_writing(self):
        log.debug(
            "Pause writing, %d bytes buffered", self.transport.get_write_buffer_size()
        )
        self.can_write.clear()

    def resume_writing(self):
        log.debug("Resume writing")
        self.can_write.set()


class AsyncSerialTransport(AsyncTransport):
    """asyncio transport on a pyserial-asyncio connection"""

    def __init__(
        self,
        port: str,
        baudrate: int = 9600,
        parity: str = "N",
        stopbits: int = 1,
        bytesize: int = 8,
    ):
        super().__init__()
        self.port = port
        self.baudrate = baudrate
        self.parity = parity
        self.stopbits = stopbits
        self.bytesize = bytesize
        self.transport: serial_asyncio.SerialTransport = None
        self.protocol: ModbusSerialProtocol = None

    @property
    def is_open(self) -> bool:
        return self.protocol is not None and self.protocol.connected.is_set()

    async def open(self):
        if self.is_open:
            return
        try:
            connection = await serial_asyncio.create_serial_connection(
                asyncio.get_running_loop(),
                ModbusSerialProtocol,
                url=self.port,
                baudrate=self.baudrate,
                parity=self.parity,
                stopbits=self.stopbits,
                bytesize=self.bytesize,
            )
        except serial.SerialException as e:
            raise TransportError(f"Failed to open {self.port}: {e}") from e
        self.transport, self.protocol = connection
        await self.protocol.connected.wait()
        log.debug("Opened %s", self.port)

    def close(self):
        if self.transport is not None:
            self.transport.close()
            log.debug("Closed %s", self.port)
        self.transport = None
        self.protocol = None

    def _check_open(self):
        if not self.is_open:
            cause = getattr(self.protocol, "exc", None)
            raise TransportError(f"{self.port} is not open") from cause

    def reset(self):
        self._check_open()
        self.protocol.buffer.clear()
        self.protocol.received.clear()

    async def write(self, data: bytes):
        self._check_open()
        await self.protocol.can_write.wait()
        self._check_open()
        self.transport.write(data)

    async def read_exact(self, count: int, timeout: float) -> bytes:
        self._check_open()
        protocol = self.protocol
        try:
            await asyncio.wait_for(self._fill(protocol, count), timeout)
        except asyncio.TimeoutError:
            pass
        data = bytes(protocol.buffer[:count])
        del protocol.buffer[:count]
        return data

    async def _fill(self, protocol: ModbusSerialProtocol, count: int):
        while len(protocol.buffer) < count:
            if not protocol.connected.is_set():
                raise TransportError(
                    f"Connection to {self.port} lost"
                ) from protocol.exc
            protocol.received.clear()
            await protocol.received.wait()
