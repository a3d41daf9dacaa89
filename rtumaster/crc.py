"""
CRC-16/Modbus
Reflected polynomial 0xA001, initial value 0xFFFF. The checksum is appended to the
frame low byte first.
"""
import struct

from rtumaster.exceptions import ChecksumMismatch

POLYNOMIAL = 0xA001
INITIAL = 0xFFFF


def compute(data: bytes) -> int:
    crc = INITIAL
    for byt in data:
        crc ^= byt
        for _ in range(8):
            if crc & 0x0001:
                crc = (crc >> 1) ^ POLYNOMIAL
            else:
                crc >>= 1
    return crc


def verify(data: bytes, received_crc: int) -> bool:
    return compute(data) == received_crc


def append_crc(data: bytes) -> bytes:
    return bytes(data) + struct.pack("<H", compute(data))


def check_crc(frame: bytes):
    """
    Validate the two trailing CRC bytes of a frame
    :raises ChecksumMismatch: if the frame is too short or the checksum doesn't match
    """
    if len(frame) < 3:
        raise ChecksumMismatch(
            f"Frame of {len(frame)} bytes is too short to carry a CRC"
        )
    (received,) = struct.unpack("<H", frame[-2:])
    if not verify(frame[:-2], received):
        computed = compute(frame[:-2])
        raise ChecksumMismatch(
            f"CRC {received:04X} does not match computed {computed:04X}"
        )
