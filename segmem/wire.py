"""Binary encoding of instructions, segments and segment tables.

Every integer travels as an unsigned 32-bit little-endian value.
"""

from __future__ import annotations

import struct
from collections.abc import Iterable

from .types import MAX_PARAMETERS, Instruction, InstructionId, Segment, SegmentsTable

_U32 = struct.Struct("<I")
U32_SIZE = _U32.size
U32_MAX = 0xFFFFFFFF
_UNASSIGNED = U32_MAX


class DecodeError(ValueError):
    """Raised when a payload is truncated or malformed."""


class Reader:
    """Sequential reader over a byte payload."""

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._position = 0

    @property
    def position(self) -> int:
        return self._position

    @property
    def remaining(self) -> int:
        return len(self._data) - self._position

    def take(self, size: int) -> bytes:
        """Return the next ``size`` bytes and advance past them."""
        if size < 0:
            raise DecodeError(f"cannot read a negative number of bytes ({size})")
        if size > self.remaining:
            raise DecodeError(
                f"payload truncated: wanted {size} bytes at offset "
                f"{self._position}, {self.remaining} left"
            )
        chunk = self._data[self._position:self._position + size]
        self._position += size
        return chunk

    def u32(self) -> int:
        """Read one unsigned 32-bit integer."""
        (value,) = _U32.unpack(self.take(U32_SIZE))
        return value

    def at_end(self) -> bool:
        """Return True when every byte has been consumed."""
        return self._position >= len(self._data)


def encode_u32(value: int) -> bytes:
    """Encode an unsigned 32-bit integer."""
    value = int(value)
    if not 0 <= value <= U32_MAX:
        raise ValueError(f"{value} does not fit in an unsigned 32-bit integer")
    return _U32.pack(value)


def decode_u32(data: bytes) -> int:
    """Decode the unsigned 32-bit integer at the start of ``data``."""
    return Reader(data).u32()


def _encode_parameter(parameter: str) -> bytes:
    return parameter.encode("utf-8") + b"\0"


def _decode_parameter(raw: bytes) -> str:
    if raw.endswith(b"\0"):
        raw = raw[:-1]
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeError(f"parameter is not valid UTF-8: {raw!r}") from exc


def encode_instruction(instruction: Instruction) -> bytes:
    """Encode identifier, parameter count, four lengths, then the parameters."""
    encoded = [_encode_parameter(p) for p in instruction.parameters]
    lengths = [len(p) for p in encoded]
    lengths += [0] * (MAX_PARAMETERS - len(lengths))
    header = [int(instruction.identifier), len(encoded), *lengths]
    return b"".join(encode_u32(v) for v in header) + b"".join(encoded)


def decode_instruction(reader: Reader) -> Instruction:
    """Read one instruction from ``reader``."""
    raw_identifier = reader.u32()
    count = reader.u32()
    lengths = [reader.u32() for _ in range(MAX_PARAMETERS)]
    if count > MAX_PARAMETERS:
        raise DecodeError(f"instruction declares {count} parameters, at most {MAX_PARAMETERS}")
    try:
        identifier = InstructionId(raw_identifier)
    except ValueError as exc:
        raise DecodeError(f"unknown instruction identifier {raw_identifier}") from exc
    parameters = [_decode_parameter(reader.take(length)) for length in lengths[:count]]
    return Instruction(identifier, parameters)


def encode_instruction_list(instructions: Iterable[Instruction]) -> bytes:
    """Encode instructions back to back, with no count prefix."""
    return b"".join(encode_instruction(i) for i in instructions)


def decode_instruction_list(data: bytes) -> list[Instruction]:
    """Decode instructions until the payload is exhausted."""
    reader = Reader(data)
    instructions = []
    while not reader.at_end():
        instructions.append(decode_instruction(reader))
    return instructions


def encode_segment(segment: Segment) -> bytes:
    """Encode id, size and base address; an unassigned base is all ones."""
    base = _UNASSIGNED if segment.base_address == -1 else segment.base_address
    return encode_u32(segment.id) + encode_u32(segment.size) + encode_u32(base)


def decode_segment(reader: Reader) -> Segment:
    """Read one segment from ``reader``."""
    segment_id = reader.u32()
    size = reader.u32()
    base = reader.u32()
    return Segment(segment_id, size, -1 if base == _UNASSIGNED else base)


def encode_segments_table(table: SegmentsTable) -> bytes:
    """Encode pid, segment count, then each segment."""
    return (
        encode_u32(table.pid)
        + encode_u32(len(table.segments))
        + b"".join(encode_segment(s) for s in table.segments)
    )


def decode_segments_table(reader: Reader) -> SegmentsTable:
    """Read one segments table from ``reader``."""
    pid = reader.u32()
    count = reader.u32()
    return SegmentsTable(pid, [decode_segment(reader) for _ in range(count)])


def encode_segments_tables(tables: Iterable[SegmentsTable]) -> bytes:
    """Encode a table count, the size of each table, then the tables."""
    encoded = [encode_segments_table(t) for t in tables]
    return (
        encode_u32(len(encoded))
        + b"".join(encode_u32(len(e)) for e in encoded)
        + b"".join(encoded)
    )


def decode_segments_tables(data: bytes) -> list[SegmentsTable]:
    """Decode a payload made by :func:`encode_segments_tables`."""
    reader = Reader(data)
    count = reader.u32()
    sizes = [reader.u32() for _ in range(count)]
    return [decode_segments_table(Reader(reader.take(size))) for size in sizes]