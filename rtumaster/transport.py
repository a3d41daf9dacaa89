"""
Byte channel interfaces
A transport only moves bytes. Framing, timing between request and response, and
validation belong to the transaction running on top of it. Each transport carries the
lock that serializes transactions on its line.
"""
import asyncio
import threading
import typing


class Transport:
    """
    Blocking transport. Both the blocking and the asyncio executor accept one, and both
    queue on its threading lock, so threads and coroutines can share a line.
    """

    def __init__(self):
        self.lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        raise NotImplementedError

    def open(self):
        raise NotImplementedError

    def close(self):
        raise NotImplementedError

    def reset(self):
        """Discard any bytes pending in either direction"""
        raise NotImplementedError

    def write(self, data: bytes):
        raise NotImplementedError

    def read_exact(self, count: int, timeout: float) -> bytes:
        """
        Read count bytes
        :param timeout: Seconds to wait for all of them
        :return: The bytes received before the timeout expired, which may be fewer than
            count
        """
        raise NotImplementedError

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class AsyncTransport:
    def __init__(self):
        self._lock: typing.Optional[asyncio.Lock] = None

    @property
    def lock(self) -> asyncio.Lock:
        # created on first use, inside the loop that runs the transactions
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    @property
    def is_open(self) -> bool:
        raise NotImplementedError

    async def open(self):
        raise NotImplementedError

    def close(self):
        raise NotImplementedError

    def reset(self):
        raise NotImplementedError

    async def write(self, data: bytes):
        raise NotImplementedError

    async def read_exact(self, count: int, timeout: float) -> bytes:
        raise NotImplementedError

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.close()
