"""Composite message payloads and the framed package that carries them.

A package on the wire is one operation-code byte, an unsigned 32-bit
little-endian payload size, then the payload itself.
"""

from __future__ import annotations

import socket
import struct
from dataclasses import dataclass, fields

from .types import (
    Data,
    EvictionContext,
    Info,
    InfoRead,
    InfoWrite,
    PidInstruction,
    PidStatus,
    ProcessContext,
    Registers,
    SegmentsTable,
    StatusCode,
)
from .wire import (
    DecodeError,
    Reader,
    decode_instruction,
    decode_instruction_list,
    decode_segments_table,
    encode_instruction,
    encode_instruction_list,
    encode_segments_table,
    encode_u32,
)

_HEADER = struct.Struct("<BI")
NULL_PAYLOAD = b"\0"


def _recv_exact(sock: socket.socket, size: int) -> bytes:
    chunks = bytearray()
    while len(chunks) < size:
        chunk = sock.recv(size - len(chunks))
        if not chunk:
            raise ConnectionError(
                f"connection closed after {len(chunks)} of {size} bytes"
            )
        chunks.extend(chunk)
    return bytes(chunks)


@dataclass
class Package:
    """An operation code together with its payload."""

    operation_code: int
    payload: bytes = NULL_PAYLOAD

    def __post_init__(self) -> None:
        self.operation_code = int(self.operation_code)
        if not 0 <= self.operation_code <= 0xFF:
            raise ValueError(f"operation code {self.operation_code} does not fit in a byte")
        self.payload = NULL_PAYLOAD if self.payload is None else bytes(self.payload)

    def encode(self) -> bytes:
        """Return the framed bytes of this package."""
        return _HEADER.pack(self.operation_code, len(self.payload)) + self.payload

    def size(self) -> int:
        """Return the number of bytes the framed package takes."""
        return _HEADER.size + len(self.payload)

    def send(self, sock: socket.socket) -> None:
        """Send the whole package over ``sock``."""
        sock.sendall(self.encode())

    @classmethod
    def receive(cls, sock: socket.socket) -> Package:
        """Read one whole package from ``sock``."""
        operation_code, size = _HEADER.unpack(_recv_exact(sock, _HEADER.size))
        return cls(operation_code, _recv_exact(sock, size))


def _status(value: int) -> StatusCode:
    try:
        return StatusCode(value)
    except ValueError as exc:
        raise DecodeError(f"unknown status code {value}") from exc


def encode_registers(registers: Registers) -> bytes:
    """Encode the twelve registers in AX..RDX order."""
    return b"".join(getattr(registers, item.name) for item in fields(registers))


def decode_registers(reader: Reader) -> Registers:
    """Read the twelve registers from ``reader``."""
    return Registers(**{name: reader.take(size) for name, size in Registers.SIZES.items()})


def encode_process_context(context: ProcessContext) -> bytes:
    """Encode pid, program counter, registers, both sizes, instructions, segments."""
    instructions = encode_instruction_list(context.instructions)
    table = encode_segments_table(SegmentsTable(context.pid, context.segments))
    return b"".join((
        encode_u32(context.pid),
        encode_u32(context.program_counter),
        encode_registers(context.registers),
        encode_u32(len(instructions)),
        encode_u32(len(table)),
        instructions,
        table,
    ))


def decode_process_context(data: bytes) -> ProcessContext:
    """Decode a payload made by :func:`encode_process_context`."""
    reader = Reader(data)
    pid = reader.u32()
    program_counter = reader.u32()
    registers = decode_registers(reader)
    instructions_size = reader.u32()
    table_size = reader.u32()
    instructions = decode_instruction_list(reader.take(instructions_size))
    table = decode_segments_table(Reader(reader.take(table_size)))
    return ProcessContext(pid, instructions, program_counter, registers, table.segments)


def encode_eviction_context(context: EvictionContext) -> bytes:
    """Encode pid, program counter, status, registers, reason and instructions."""
    reason = encode_instruction(context.reason)
    instructions = encode_instruction_list(context.instructions)
    return b"".join((
        encode_u32(context.pid),
        encode_u32(context.program_counter),
        encode_u32(int(context.status_code)),
        encode_registers(context.registers),
        encode_u32(len(reason)),
        reason,
        encode_u32(len(instructions)),
        instructions,
    ))


def decode_eviction_context(data: bytes) -> EvictionContext:
    """Decode a payload made by :func:`encode_eviction_context`."""
    reader = Reader(data)
    pid = reader.u32()
    program_counter = reader.u32()
    status = _status(reader.u32())
    registers = decode_registers(reader)
    reason = decode_instruction(Reader(reader.take(reader.u32())))
    instructions = decode_instruction_list(reader.take(reader.u32()))
    return EvictionContext(pid, instructions, program_counter, registers, reason, status)


def encode_data(data: Data) -> bytes:
    """Encode the text length followed by the text and a terminating NUL."""
    raw = data.value.encode("utf-8")
    return encode_u32(len(raw)) + raw + b"\0"


def decode_data(payload: bytes) -> Data:
    """Decode a payload made by :func:`encode_data`."""
    reader = Reader(payload)
    raw = reader.take(reader.u32())
    try:
        return Data(raw.decode("utf-8"))
    except UnicodeDecodeError as exc:
        raise DecodeError(f"data value is not valid UTF-8: {raw!r}") from exc


def encode_pid_instruction(item: PidInstruction) -> bytes:
    """Encode pid, instruction size, then the instruction."""
    instruction = encode_instruction(item.instruction)
    return encode_u32(item.pid) + encode_u32(len(instruction)) + instruction


def decode_pid_instruction(payload: bytes) -> PidInstruction:
    """Decode a payload made by :func:`encode_pid_instruction`."""
    reader = Reader(payload)
    pid = reader.u32()
    instruction = decode_instruction(Reader(reader.take(reader.u32())))
    return PidInstruction(pid, instruction)


def encode_pid_status(item: PidStatus) -> bytes:
    """Encode pid and status."""
    return encode_u32(item.pid) + encode_u32(int(item.status))


def decode_pid_status(payload: bytes) -> PidStatus:
    """Decode a payload made by :func:`encode_pid_status`."""
    reader = Reader(payload)
    pid = reader.u32()
    return PidStatus(pid, _status(reader.u32()))


def encode_info(info: Info) -> bytes:
    """Encode the data size followed by the data."""
    return encode_u32(info.size) + info.data


def decode_info(payload: bytes) -> Info:
    """Decode a payload made by :func:`encode_info`."""
    reader = Reader(payload)
    return Info(reader.take(reader.u32()))


def encode_info_write(item: InfoWrite) -> bytes:
    """Encode base address, encoded info size, then the encoded info."""
    info = encode_info(item.info)
    return encode_u32(item.base_address) + encode_u32(len(info)) + info


def decode_info_write(payload: bytes) -> InfoWrite:
    """Decode a payload made by :func:`encode_info_write`."""
    reader = Reader(payload)
    base_address = reader.u32()
    info = decode_info(reader.take(reader.u32()))
    return InfoWrite(base_address, info)


def encode_info_read(item: InfoRead) -> bytes:
    """Encode base address and size."""
    return encode_u32(item.base_address) + encode_u32(item.size)


def decode_info_read(payload: bytes) -> InfoRead:
    """Decode a payload made by :func:`encode_info_read`."""
    reader = Reader(payload)
    base_address = reader.u32()
    return InfoRead(base_address, reader.u32())