from __future__ import annotations

import enum
import struct
from dataclasses import dataclass

from rtumaster import crc


class FunctionCode(enum.IntEnum):
    READ_COILS = 0x01
    READ_DISCRETE_INPUTS = 0x02
    READ_HOLDING_REGISTERS = 0x03
    READ_INPUT_REGISTERS = 0x04
    WRITE_SINGLE_COIL = 0x05
    WRITE_SINGLE_REGISTER = 0x06
    READ_EXCEPTION_STATUS = 0x07
    DIAGNOSTICS = 0x08
    WRITE_MULTIPLE_COILS = 0x0F
    WRITE_MULTIPLE_REGISTERS = 0x10


# Diagnostics sub-function 0x0000: return query data
DIAGNOSTICS_ECHO = 0x0000


@dataclass(frozen=True)
class Request:
    """
    A single request to one slave.
    address, count and data are the parameters the payload was packed from. The response
    length and the decoding of the response depend on them.
    """

    unit: int
    function_code: FunctionCode
    payload: bytes = b""
    address: int = 0
    count: int = 0
    data: bytes = b""

    @property
    def pdu(self) -> bytes:
        return struct.pack(">B", self.function_code) + self.payload

    @property
    def adu(self) -> bytes:
        return crc.append_crc(struct.pack(">B", self.unit) + self.pdu)
