"""
Transactions
One request/response exchange on a half duplex line: write the frame, wait for the
slave to settle, read exactly the expected number of bytes, then decode.
Transaction.steps() is the only place this sequence is written down. It does no I/O
itself, it yields the step to perform and gets back the bytes read.

TransactionExecutor runs it with blocking calls. AsyncTransactionExecutor runs it with
coroutines, on an asyncio transport or on a blocking one, whose calls then go to worker
threads. Either way the executor holds the transport's lock for the whole exchange, so
blocking and asyncio callers sharing a blocking transport queue on the same lock.
"""
from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
import time
import typing
from dataclasses import dataclass

from rtumaster import decoders, lengths
from rtumaster.exceptions import (
    InvalidResponseLength,
    ModbusException,
    ResponseTimeout,
    TransportError,
)
from rtumaster.request import Request
from rtumaster.transport import AsyncTransport, Transport

log = logging.getLogger(__name__)

DEFAULT_SETTLE_DELAY = 0.1
DEFAULT_TIMEOUT = 0.5


def hexlify(data: bytes) -> str:
    return " ".join(f"{byt:02X}" for byt in data)


class TransactionState(enum.Enum):
    IDLE = "idle"
    SENDING = "sending"
    AWAITING_SETTLE = "awaiting_settle"
    READING = "reading"
    VALIDATING = "validating"
    DECODED = "decoded"
    FAILED = "failed"


@dataclass(frozen=True)
class Write:
    frame: bytes


@dataclass(frozen=True)
class Settle:
    delay: float


@dataclass(frozen=True)
class Read:
    count: int
    timeout: float


Step = typing.Union[Write, Settle, Read]


class Transaction:
    def __init__(
        self,
        request: Request,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        timeout: float = DEFAULT_TIMEOUT,
        clock: typing.Callable[[], float] = time.monotonic,
    ):
        self.request = request
        self.settle_delay = settle_delay
        self.timeout = timeout
        self.clock = clock
        self.state = TransactionState.IDLE
        self.response = bytearray()

    def steps(self) -> typing.Generator[Step, typing.Optional[bytes], typing.Any]:
        self.state = TransactionState.SENDING
        frame = self.request.adu
        log.debug("Encode: " + hexlify(frame))
        yield Write(frame)

        self.state = TransactionState.AWAITING_SETTLE
        yield Settle(self.settle_delay)

        self.state = TransactionState.READING
        expected = lengths.response_length(self.request)
        deadline = self.clock() + self.timeout
        # every response, exception responses included, is at least this long
        header = yield Read(lengths.EXCEPTION_RESPONSE_LENGTH, self.timeout)
        self.response.extend(header)
        if not self.response:
            raise ResponseTimeout(
                f"No response from unit {self.request.unit} within {self.timeout}s"
            )
        if len(self.response) < lengths.EXCEPTION_RESPONSE_LENGTH:
            raise InvalidResponseLength(
                f"Response is {len(self.response)} bytes, expected {expected}"
            )
        exception = decoders.is_exception_response(self.request, self.response)
        if not exception and expected > len(self.response):
            remaining = max(deadline - self.clock(), 0.0)
            self.response.extend((yield Read(expected - len(self.response), remaining)))

        self.state = TransactionState.VALIDATING
        log.debug("Decode: " + hexlify(self.response))
        result = decoders.decode(self.request, bytes(self.response))
        self.state = TransactionState.DECODED
        return result


def _translate(exc: Exception) -> Exception:
    """Map low level errors raised by a transport to the transaction error taxonomy"""
    if isinstance(exc, ModbusException):
        return exc
    if isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
        return ResponseTimeout(str(exc) or "Timed out waiting for the transport")
    return TransportError(str(exc) or exc.__class__.__name__)


def _perform_blocking(transport: Transport, step: Step) -> typing.Optional[bytes]:
    if isinstance(step, Write):
        transport.reset()
        transport.write(step.frame)
    elif isinstance(step, Settle):
        time.sleep(step.delay)
    else:
        return transport.read_exact(step.count, step.timeout)


class _Executor:
    def __init__(
        self,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.settle_delay = settle_delay
        self.timeout = timeout
        self.last_transaction: typing.Optional[Transaction] = None

    def _transaction(
        self, request: Request, timeout: typing.Optional[float]
    ) -> Transaction:
        timeout = self.timeout if timeout is None else timeout
        transaction = Transaction(request, self.settle_delay, timeout)
        self.last_transaction = transaction
        return transaction

    @staticmethod
    def _failed(transaction: Transaction, exc: Exception) -> Exception:
        transaction.state = TransactionState.FAILED
        exc = _translate(exc)
        log.warning(
            "Transaction with unit %d failed: %r", transaction.request.unit, exc
        )
        return exc


class TransactionExecutor(_Executor):
    def __init__(
        self,
        transport: Transport,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        super().__init__(settle_delay, timeout)
        self.transport = transport

    def execute(self, request: Request, timeout: typing.Optional[float] = None):
        with self.transport.lock:
            transaction = self._transaction(request, timeout)
            steps = transaction.steps()
            reply = None
            try:
                while True:
                    try:
                        step = steps.send(reply)
                    except StopIteration as stop:
                        return stop.value
                    reply = _perform_blocking(self.transport, step)
            except (OSError, asyncio.TimeoutError, ModbusException) as e:
                failure = self._failed(transaction, e)
                if failure is e:
                    raise
                raise failure from e
            except KeyboardInterrupt:
                transaction.state = TransactionState.FAILED
                self.transport.close()
                raise
            finally:
                steps.close()


class AsyncTransactionExecutor(_Executor):
    def __init__(
        self,
        transport: typing.Union[AsyncTransport, Transport],
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        super().__init__(settle_delay, timeout)
        self.transport = transport
        # the worker thread call of a blocking transport that has not returned yet
        self._in_flight: typing.Optional[asyncio.Future] = None

    @property
    def blocking(self) -> bool:
        return isinstance(self.transport, Transport)

    @contextlib.asynccontextmanager
    async def _hold_line(self):
        if not self.blocking:
            async with self.transport.lock:
                yield
            return
        lock = self.transport.lock
        acquiring = asyncio.get_running_loop().run_in_executor(None, lock.acquire)
        try:
            await asyncio.shield(acquiring)
        except asyncio.CancelledError:
            acquiring.add_done_callback(lambda _: lock.release())
            raise
        try:
            yield
        finally:
            self._after_in_flight(lock.release)

    def _after_in_flight(self, callback: typing.Callable[[], None]):
        """Run callback now, or once a worker thread still using the line returns"""
        if self._in_flight is None or self._in_flight.done():
            self._in_flight = None
            callback()
        else:
            self._in_flight.add_done_callback(lambda _: callback())

    async def _perform(self, step: Step) -> typing.Optional[bytes]:
        if isinstance(step, Settle):
            await asyncio.sleep(step.delay)
        elif self.blocking:
            loop = asyncio.get_running_loop()
            self._in_flight = loop.run_in_executor(
                None, _perform_blocking, self.transport, step
            )
            return await asyncio.shield(self._in_flight)
        elif isinstance(step, Write):
            self.transport.reset()
            await self.transport.write(step.frame)
        else:
            return await self.transport.read_exact(step.count, step.timeout)

    async def execute(self, request: Request, timeout: typing.Optional[float] = None):
        async with self._hold_line():
            transaction = self._transaction(request, timeout)
            steps = transaction.steps()
            reply = None
            try:
                while True:
                    try:
                        step = steps.send(reply)
                    except StopIteration as stop:
                        return stop.value
                    reply = await self._perform(step)
            except (OSError, asyncio.TimeoutError, ModbusException) as e:
                failure = self._failed(transaction, e)
                if failure is e:
                    raise
                raise failure from e
            except asyncio.CancelledError:
                # the line is somewhere mid frame, only a fresh connection is byte
                # aligned again
                transaction.state = TransactionState.FAILED
                log.warning(
                    "Transaction with unit %d cancelled, closing transport",
                    request.unit,
                )
                self._after_in_flight(self.transport.close)
                raise
            finally:
                steps.close()
