"""
Modbus RTU master for serial lines, with a blocking and an asyncio client.
"""
__version__ = "0.1.0"

from rtumaster.client import AsyncModbusRtuClient, ModbusRtuClient
from rtumaster.exceptions import (
    ChecksumMismatch,
    InvalidRequest,
    InvalidResponse,
    InvalidResponseLength,
    ModbusException,
    ResponseTimeout,
    SlaveException,
    TransportError,
    UnexpectedResponse,
)
from rtumaster.request import FunctionCode, Request
from rtumaster.serial import AsyncSerialTransport, SerialTransport
from rtumaster.simulator import (
    AsyncSimulatedTransport,
    SimulatedTransport,
    SlaveSimulator,
)
