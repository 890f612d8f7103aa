"""Data types shared by the memory server and its clients."""

from __future__ import annotations

import copy as _copy
from dataclasses import dataclass, field, fields
from enum import IntEnum

MAX_PARAMETERS = 4


class StatusCode(IntEnum):
    """Result codes exchanged between modules."""

    SEGMENTATION_FAULT = 0
    COMPACTATION_REQUIRED = 1
    OUT_OF_MEMORY = 2
    MAX_SEG_QUANTITY_REACHED = 3
    FILE_OPEN = 4
    FILE_NOT_EXIST = 5
    FILE_CREATED = 6
    FILE_READ = 7
    FILE_TRUNCATED = 8
    FILE_WRITTEN = 9
    FILE_NOT_EXISTS = 10
    SUCCESS = 11
    PROCESS_NEW = 12
    PROCESS_END = 13
    ERROR = 14
    INVALID_RESOURCE = 15
    PROCESS_ABORTED = 16


class InstructionId(IntEnum):
    """Identifiers of the pseudo-code instructions."""

    F_READ = 0
    F_WRITE = 1
    SET = 2
    MOV_IN = 3
    MOV_OUT = 4
    F_TRUNCATE = 5
    F_SEEK = 6
    CREATE_SEGMENT = 7
    I_O = 8
    WAIT = 9
    SIGNAL = 10
    F_OPEN = 11
    F_CLOSE = 12
    DELETE_SEGMENT = 13
    EXIT = 14
    YIELD = 15


class QueueId(IntEnum):
    """Scheduler queues a process can be in."""

    NEW = 0
    READY = 1
    EXEC = 2
    BLOCK = 3
    EXIT = 4


@dataclass
class Instruction:
    """One pseudo-code instruction with at most four parameters."""

    identifier: InstructionId
    parameters: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.identifier = InstructionId(self.identifier)
        self.parameters = list(self.parameters)
        if len(self.parameters) > MAX_PARAMETERS:
            raise ValueError(
                f"an instruction takes at most {MAX_PARAMETERS} parameters, "
                f"got {len(self.parameters)}"
            )

    def copy(self) -> Instruction:
        """Return an independent copy of this instruction."""
        return Instruction(self.identifier, list(self.parameters))


_REGISTER_SIZES = {
    "ax": 4, "bx": 4, "cx": 4, "dx": 4,
    "eax": 8, "ebx": 8, "ecx": 8, "edx": 8,
    "rax": 16, "rbx": 16, "rcx": 16, "rdx": 16,
}


def _zeros(size: int):
    return field(default_factory=lambda: b"0" * size)


@dataclass
class Registers:
    """CPU registers: four of 4 bytes, four of 8 bytes and four of 16 bytes."""

    ax: bytes = _zeros(4)
    bx: bytes = _zeros(4)
    cx: bytes = _zeros(4)
    dx: bytes = _zeros(4)
    eax: bytes = _zeros(8)
    ebx: bytes = _zeros(8)
    ecx: bytes = _zeros(8)
    edx: bytes = _zeros(8)
    rax: bytes = _zeros(16)
    rbx: bytes = _zeros(16)
    rcx: bytes = _zeros(16)
    rdx: bytes = _zeros(16)

    SIZES = _REGISTER_SIZES

    def __post_init__(self) -> None:
        for item in fields(self):
            value = bytes(getattr(self, item.name))
            expected = _REGISTER_SIZES[item.name]
            if len(value) != expected:
                raise ValueError(
                    f"register {item.name.upper()} holds {expected} bytes, got {len(value)}"
                )
            setattr(self, item.name, value)

    def copy(self) -> Registers:
        """Return an independent copy of the registers."""
        return _copy.copy(self)


@dataclass
class Segment:
    """A memory segment."""

    id: int
    size: int
    base_address: int = -1

    def copy(self) -> Segment:
        """Return an independent copy of the segment."""
        return Segment(self.id, self.size, self.base_address)


@dataclass
class SegmentsTable:
    """The segments belonging to one process."""

    pid: int
    segments: list[Segment] = field(default_factory=list)

    def copy_segments(self) -> list[Segment]:
        """Return copies of every segment in the table, in order."""
        return [segment.copy() for segment in self.segments]


@dataclass
class ProcessContext:
    """Execution context handed to the CPU."""

    pid: int
    instructions: list[Instruction] = field(default_factory=list)
    program_counter: int = 0
    registers: Registers = field(default_factory=Registers)
    segments: list[Segment] = field(default_factory=list)


@dataclass
class EvictionContext:
    """Execution context returned by the CPU when a process leaves it."""

    pid: int
    instructions: list[Instruction] = field(default_factory=list)
    program_counter: int = 0
    registers: Registers = field(default_factory=Registers)
    reason: Instruction = field(default_factory=lambda: Instruction(InstructionId.EXIT))
    status_code: StatusCode = StatusCode.SUCCESS


@dataclass
class PidInstruction:
    """An instruction issued on behalf of a process."""

    pid: int
    instruction: Instruction


@dataclass
class PidStatus:
    """A status change of a process."""

    pid: int
    status: StatusCode


@dataclass
class Data:
    """A text value."""

    value: str


@dataclass
class Info:
    """A raw block of bytes."""

    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class InfoWrite:
    """A request to write bytes at a physical address."""

    base_address: int
    info: Info


@dataclass
class InfoRead:
    """A request to read bytes from a physical address."""

    base_address: int
    size: int


_STATUS_NAMES = {
    StatusCode.SEGMENTATION_FAULT: "SEGMENTATION FAULT",
    StatusCode.COMPACTATION_REQUIRED: "COMPACTATION REQUIRED",
    StatusCode.OUT_OF_MEMORY: "OUT OF MEMORY",
    StatusCode.FILE_OPEN: "FILE OPEN",
    StatusCode.FILE_CREATED: "FILE CREATED",
    StatusCode.FILE_READ: "FILE READ",
    StatusCode.FILE_TRUNCATED: "FILE TRUNCATED",
    StatusCode.FILE_WRITTEN: "FILE WRITTEN",
    StatusCode.SUCCESS: "SUCCESS",
    StatusCode.PROCESS_NEW: "PROCESS NEW",
    StatusCode.PROCESS_END: "PROCESS END",
    StatusCode.ERROR: "ERROR",
    StatusCode.INVALID_RESOURCE: "INVALID RESOURCE",
    StatusCode.MAX_SEG_QUANTITY_REACHED: "MAX SEG QUANTITY REACHED",
    StatusCode.PROCESS_ABORTED: "PROCESS ABORTED",
}


def status_code_string(code) -> str:
    """Return the display text of a status code, or "UNKNOWN"."""
    try:
        status = StatusCode(code)
    except ValueError:
        return "UNKNOWN"
    return _STATUS_NAMES.get(status, "UNKNOWN")