from __future__ import annotations

import typing
from dataclasses import dataclass, field


def slice_range(slic: slice) -> range:
    return range(*(x for x in [slic.start, slic.stop, slic.step] if x is not None))


def check_uint16(value: int) -> int:
    if not isinstance(value, int) or (value & 0xFFFF) != value:
        raise ValueError(f"{value!r} is not an unsigned 16 bit value")
    return value


def check_bit(value) -> bool:
    if value not in (0, 1):
        raise ValueError(f"{value!r} is not a bit value")
    return bool(value)


@dataclass
class DataStore:
    """
    One table of a slave's memory: coils, discrete inputs, holding registers or input
    registers. Only the addresses present in the buffer exist, everything else is an
    illegal address.
    """

    buffer: dict = field(default_factory=dict)
    check: typing.Callable = check_uint16

    @classmethod
    def from_values(
        cls,
        values: typing.Sequence,
        start: int = 0,
        check: typing.Callable = check_uint16,
    ) -> DataStore:
        return cls({start + ind: check(val) for ind, val in enumerate(values)}, check)

    def __getitem__(self, addr: typing.Union[int, slice]):
        if isinstance(addr, int):
            return self.buffer[addr]
        elif isinstance(addr, slice):
            return [self.buffer[i] for i in slice_range(addr)]
        else:
            raise KeyError("Address has unsupported type")

    def __setitem__(self, key: typing.Union[int, slice], value):
        if isinstance(key, slice):
            addrs = list(slice_range(key))
            if len(addrs) != len(value):
                raise ValueError(f"Invalid value length for key {value}")
            current = dict(zip(addrs, value))
        else:
            current = {key: value}
        missing = set(current).difference(self.buffer)
        if missing:
            raise KeyError(f"Invalid Addresses {missing}")
        self.buffer.update({addr: self.check(val) for addr, val in current.items()})

    def __contains__(self, item: int):
        return item in self.buffer

    def contains_range(self, start: int, count: int) -> bool:
        return all(addr in self.buffer for addr in range(start, start + count))

    def __repr__(self):
        return f"DataStore: {self.buffer}"
