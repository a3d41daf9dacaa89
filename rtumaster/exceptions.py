class ModbusException(Exception):
    pass


class InvalidRequest(ValueError, ModbusException):
    pass


class TransportError(IOError, ModbusException):
    pass


class ResponseTimeout(TimeoutError, ModbusException):
    pass


class InvalidResponse(IOError, ModbusException):
    pass


class InvalidResponseLength(InvalidResponse):
    pass


class ChecksumMismatch(InvalidResponse):
    pass


class UnexpectedResponse(InvalidResponse):
    pass


class SlaveException(ModbusException):
    """Raised when the slave answers with a Modbus exception response"""

    code = 0


class RequestException(ValueError, SlaveException):
    pass


class IllegalFunction(RequestException):
    code = 1


class IllegalDataAddress(RequestException):
    code = 2


class IllegalDataValue(RequestException):
    code = 3


class SlaveDeviceFailure(IOError, SlaveException):
    code = 4


class AcknowledgeError(IOError, SlaveException):
    code = 5


class DeviceBusy(IOError, SlaveException):
    code = 6


class NegativeAcknowledgeError(IOError, SlaveException):
    code = 7


class MemoryParityError(IOError, SlaveException):
    code = 8


class GatewayPathUnavailable(IOError, SlaveException):
    code = 10


class GatewayDeviceFailedToRespond(IOError, SlaveException):
    code = 11


modbus_exception_codes = {
    1: IllegalFunction,
    2: IllegalDataAddress,
    3: IllegalDataValue,
    4: SlaveDeviceFailure,
    5: AcknowledgeError,
    6: DeviceBusy,
    7: NegativeAcknowledgeError,
    8: MemoryParityError,
    10: GatewayPathUnavailable,
    11: GatewayDeviceFailedToRespond,
}


def from_exception_code(code: int) -> SlaveException:
    exc_class = modbus_exception_codes.get(code, SlaveException)
    exc = exc_class(f"Slave exception code {code}")
    exc.code = code
    return exc
