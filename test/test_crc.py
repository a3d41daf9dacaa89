import pytest
import rtumaster.crc
from rtumaster.exceptions import ChecksumMismatch

CORPUS = [
    b"\x01",
    b"\x11\x01\x00\x13\x00\x25",
    b"\x01\x03\x00\x01\x00\x0A",
    b"\x01\x03\x14" + b"\x00" * 20,
    bytes(range(64)),
    b"modbus rtu",
]


def test_compute_empty():
    assert rtumaster.crc.compute(b"") == 0xFFFF


@pytest.mark.parametrize(
    "arr,result",
    [
        (bytearray(b"\x01\x03\x14" + b"\x00" * 20), 0x67A3),
        (bytearray(b"\x01\x03\x00\x01\x00\x0A"), 0x0D94),
        (b"\x11\x01\x00\x13\x00\x25", 0x840E),
        (b"\x11\x03\x00\x6b\x00\x03", 0x8776),
    ],
)
def test_compute(arr, result):
    assert rtumaster.crc.compute(arr) == result


def test_append_crc_low_byte_first():
    frame = rtumaster.crc.append_crc(b"\x01\x03\x00\x01\x00\x0A")
    assert frame == b"\x01\x03\x00\x01\x00\x0A\x94\x0D"


@pytest.mark.parametrize("data", CORPUS)
def test_verify_own_crc(data):
    assert rtumaster.crc.verify(data, rtumaster.crc.compute(data))


@pytest.mark.parametrize("data", CORPUS)
def test_verify_wrong_crc(data):
    assert not rtumaster.crc.verify(data, rtumaster.crc.compute(data) ^ 0x0001)


@pytest.mark.parametrize("data", CORPUS)
def test_single_bit_flip_changes_crc(data):
    original = rtumaster.crc.compute(data)
    for ind in range(len(data)):
        for bit in range(8):
            flipped = bytearray(data)
            flipped[ind] ^= 1 << bit
            assert rtumaster.crc.compute(flipped) != original


@pytest.mark.parametrize("data", CORPUS)
def test_check_crc_accepts_appended_crc(data):
    rtumaster.crc.check_crc(rtumaster.crc.append_crc(data))


@pytest.mark.parametrize("data", CORPUS)
@pytest.mark.parametrize("position", [-2, -1])
def test_check_crc_rejects_altered_crc_byte(data, position):
    frame = bytearray(rtumaster.crc.append_crc(data))
    frame[position] ^= 0x80
    with pytest.raises(ChecksumMismatch):
        rtumaster.crc.check_crc(frame)


def test_check_crc_too_short():
    with pytest.raises(ChecksumMismatch):
        rtumaster.crc.check_crc(b"\xFF\xFF")
