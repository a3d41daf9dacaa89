"""
Response length resolution
RTU frames carry no delimiters, so the master reads exactly the number of bytes the
slave is expected to answer with. The count depends only on the function code and the
request parameters.
"""
from rtumaster.request import FunctionCode, Request

# unit + function code + exception code + crc
EXCEPTION_RESPONSE_LENGTH = 5
# unit + function code + byte count ... + crc
READ_OVERHEAD = 5
# unit + function code + address + count/value + crc
WRITE_ECHO_LENGTH = 8


def _bits(request: Request) -> int:
    return READ_OVERHEAD + (request.count + 7) // 8


def _words(request: Request) -> int:
    return READ_OVERHEAD + 2 * request.count


def _write_echo(request: Request) -> int:
    return WRITE_ECHO_LENGTH


def _exception_status(request: Request) -> int:
    return 5


def _diagnostics(request: Request) -> int:
    # unit + function code + sub-function + data + crc
    return 6 + len(request.data)


function_codes = {
    FunctionCode.READ_COILS: _bits,
    FunctionCode.READ_DISCRETE_INPUTS: _bits,
    FunctionCode.READ_HOLDING_REGISTERS: _words,
    FunctionCode.READ_INPUT_REGISTERS: _words,
    FunctionCode.WRITE_SINGLE_COIL: _write_echo,
    FunctionCode.WRITE_SINGLE_REGISTER: _write_echo,
    FunctionCode.READ_EXCEPTION_STATUS: _exception_status,
    FunctionCode.DIAGNOSTICS: _diagnostics,
    FunctionCode.WRITE_MULTIPLE_COILS: _write_echo,
    FunctionCode.WRITE_MULTIPLE_REGISTERS: _write_echo,
}


def response_length(request: Request) -> int:
    return function_codes[request.function_code](request)
