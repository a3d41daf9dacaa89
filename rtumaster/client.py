"""
Modbus RTU masters
ModbusRtuClient blocks the calling thread for each transaction, AsyncModbusRtuClient
suspends the calling coroutine. Both build the same requests and run the same
transaction, they differ only in how they wait. An AsyncModbusRtuClient may be given
the blocking transport of a ModbusRtuClient, both then queue on that transport's lock.
Neither retries, a caller that wants another attempt repeats the call.
"""
import typing
from dataclasses import dataclass

from rtumaster import decoders, encoders
from rtumaster.serial import AsyncSerialTransport, SerialTransport
from rtumaster.transaction import (
    DEFAULT_SETTLE_DELAY,
    DEFAULT_TIMEOUT,
    AsyncTransactionExecutor,
    TransactionExecutor,
)
from rtumaster.transport import AsyncTransport, Transport

Timeout = typing.Optional[float]
Unit = typing.Optional[int]


@dataclass
class ModbusRtuClient:
    """
    :param port: Serial port or pyserial URL, ignored when a transport is given
    :param settle_delay: Fixed wait between sending a request and reading the response,
        giving the slave time to process it
    :param timeout: Bound on the read of the full response once started
    """

    port: typing.Optional[str] = None
    baudrate: int = 9600
    parity: str = "N"
    stopbits: int = 1
    bytesize: int = 8
    default_unit_id: int = 1
    settle_delay: float = DEFAULT_SETTLE_DELAY
    timeout: float = DEFAULT_TIMEOUT
    transport: Transport = None

    def __post_init__(self):
        if self.transport is None:
            if self.port is None:
                raise ValueError("A port or a transport is required")
            self.transport = SerialTransport(
                self.port, self.baudrate, self.parity, self.stopbits, self.bytesize
            )
        self.executor = TransactionExecutor(
            self.transport, self.settle_delay, self.timeout
        )

    @property
    def connected(self) -> bool:
        return self.transport.is_open

    def connect(self):
        self.transport.open()

    def close(self):
        self.transport.close()

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _unit(self, unit: Unit) -> int:
        return self.default_unit_id if unit is None else unit

    def read_coils(
        self, address: int, count: int, *, unit: Unit = None, timeout: Timeout = None
    ) -> typing.List[bool]:
        request = encoders.read_coils(self._unit(unit), address, count)
        return self.executor.execute(request, timeout)

    def read_discrete_inputs(
        self, address: int, count: int, *, unit: Unit = None, timeout: Timeout = None
    ) -> typing.List[bool]:
        request = encoders.read_discrete_inputs(self._unit(unit), address, count)
        return self.executor.execute(request, timeout)

    def read_holding_register(
        self,
        address: int,
        *,
        signed: bool = False,
        unit: Unit = None,
        timeout: Timeout = None,
    ) -> int:
        request = encoders.read_holding_register(self._unit(unit), address)
        (value,) = self.executor.execute(request, timeout)
        return decoders.to_signed(value) if signed else value

    def read_holding_registers(
        self, address: int, count: int, *, unit: Unit = None, timeout: Timeout = None
    ) -> typing.List[int]:
        request = encoders.read_holding_registers(self._unit(unit), address, count)
        return self.executor.execute(request, timeout)

    def read_input_registers(
        self, address: int, count: int, *, unit: Unit = None, timeout: Timeout = None
    ) -> typing.List[int]:
        request = encoders.read_input_registers(self._unit(unit), address, count)
        return self.executor.execute(request, timeout)

    def write_single_coil(
        self, address: int, value: bool, *, unit: Unit = None, timeout: Timeout = None
    ):
        request = encoders.write_single_coil(self._unit(unit), address, value)
        self.executor.execute(request, timeout)

    def write_single_register(
        self, address: int, value: int, *, unit: Unit = None, timeout: Timeout = None
    ):
        request = encoders.write_single_register(self._unit(unit), address, value)
        self.executor.execute(request, timeout)

    def write_multiple_coils(
        self,
        address: int,
        values: typing.Sequence[bool],
        *,
        unit: Unit = None,
        timeout: Timeout = None,
    ):
        request = encoders.write_multiple_coils(self._unit(unit), address, values)
        self.executor.execute(request, timeout)

    def write_multiple_registers(
        self,
        address: int,
        values: typing.Sequence[int],
        *,
        unit: Unit = None,
        timeout: Timeout = None,
    ):
        request = encoders.write_multiple_registers(self._unit(unit), address, values)
        self.executor.execute(request, timeout)

    def read_exception_status(
        self, *, unit: Unit = None, timeout: Timeout = None
    ) -> int:
        request = encoders.read_exception_status(self._unit(unit))
        return self.executor.execute(request, timeout)

    def diagnostics_echo(
        self, data: bytes, *, unit: Unit = None, timeout: Timeout = None
    ) -> bytes:
        request = encoders.diagnostics_echo(self._unit(unit), data)
        return self.executor.execute(request, timeout)


@dataclass
class AsyncModbusRtuClient:
    port: typing.Optional[str] = None
    baudrate: int = 9600
    parity: str = "N"
    stopbits: int = 1
    bytesize: int = 8
    default_unit_id: int = 1
    settle_delay: float = DEFAULT_SETTLE_DELAY
    timeout: float = DEFAULT_TIMEOUT
    transport: typing.Union[AsyncTransport, Transport] = None

    def __post_init__(self):
        if self.transport is None:
            if self.port is None:
                raise ValueError("A port or a transport is required")
            self.transport = AsyncSerialTransport(
                self.port, self.baudrate, self.parity, self.stopbits, self.bytesize
            )
        self.executor = AsyncTransactionExecutor(
            self.transport, self.settle_delay, self.timeout
        )

    @property
    def connected(self) -> bool:
        return self.transport.is_open

    async def connect(self):
        if isinstance(self.transport, Transport):
            self.transport.open()
        else:
            await self.transport.open()

    def close(self):
        self.transport.close()

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _unit(self, unit: Unit) -> int:
        return self.default_unit_id if unit is None else unit

    async def read_coils(
        self, address: int, count: int, *, unit: Unit = None, timeout: Timeout = None
    ) -> typing.List[bool]:
        request = encoders.read_coils(self._unit(unit), address, count)
        return await self.executor.execute(request, timeout)

    async def read_discrete_inputs(
        self, address: int, count: int, *, unit: Unit = None, timeout: Timeout = None
    ) -> typing.List[bool]:
        request = encoders.read_discrete_inputs(self._unit(unit), address, count)
        return await self.executor.execute(request, timeout)

    async def read_holding_register(
        self,
        address: int,
        *,
        signed: bool = False,
        unit: Unit = None,
        timeout: Timeout = None,
    ) -> int:
        request = encoders.read_holding_register(self._unit(unit), address)
        (value,) = await self.executor.execute(request, timeout)
        return decoders.to_signed(value) if signed else value

    async def read_holding_registers(
        self, address: int, count: int, *, unit: Unit = None, timeout: Timeout = None
    ) -> typing.List[int]:
        request = encoders.read_holding_registers(self._unit(unit), address, count)
        return await self.executor.execute(request, timeout)

    async def read_input_registers(
        self, address: int, count: int, *, unit: Unit = None, timeout: Timeout = None
    ) -> typing.List[int]:
        request = encoders.read_input_registers(self._unit(unit), address, count)
        return await self.executor.execute(request, timeout)

    async def write_single_coil(
        self, address: int, value: bool, *, unit: Unit = None, timeout: Timeout = None
    ):
        request = encoders.write_single_coil(self._unit(unit), address, value)
        await self.executor.execute(request, timeout)

    async def write_single_register(
        self, address: int, value: int, *, unit: Unit = None, timeout: Timeout = None
    ):
        request = encoders.write_single_register(self._unit(unit), address, value)
        await self.executor.execute(request, timeout)

    async def write_multiple_coils(
        self,
        address: int,
        values: typing.Sequence[bool],
        *,
        unit: Unit = None,
        timeout: Timeout = None,
    ):
        request = encoders.write_multiple_coils(self._unit(unit), address, values)
        await self.executor.execute(request, timeout)

    async def write_multiple_registers(
        self,
        address: int,
        values: typing.Sequence[int],
        *,
        unit: Unit = None,
        timeout: Timeout = None,
    ):
        request = encoders.write_multiple_registers(self._unit(unit), address, values)
        await self.executor.execute(request, timeout)

    async def read_exception_status(
        self, *, unit: Unit = None, timeout: Timeout = None
    ) -> int:
        request = encoders.read_exception_status(self._unit(unit))
        return await self.executor.execute(request, timeout)

    async def diagnostics_echo(
        self, data: bytes, *, unit: Unit = None, timeout: Timeout = None
    ) -> bytes:
        request = encoders.diagnostics_echo(self._unit(unit), data)
        return await self.executor.execute(request, timeout)
