"""Connections between modules: framed packages, handshakes and sockets."""

from __future__ import annotations

import logging
import socket
import struct
import time
from collections.abc import Iterable
from enum import IntEnum

from .messages import (
    Package,
    encode_data,
    encode_eviction_context,
    encode_info,
    encode_info_read,
    encode_info_write,
    encode_pid_instruction,
    encode_pid_status,
    encode_process_context,
)
from .types import (
    Data,
    EvictionContext,
    Info,
    InfoRead,
    InfoWrite,
    Instruction,
    InstructionId,
    PidInstruction,
    PidStatus,
    ProcessContext,
    Segment,
    SegmentsTable,
    StatusCode,
)
from .wire import (
    encode_instruction,
    encode_instruction_list,
    encode_segment,
    encode_segments_table,
    encode_segments_tables,
    encode_u32,
)

logger = logging.getLogger(__name__)

_HANDSHAKE = struct.Struct("<i")


class OpCode(IntEnum):
    """Operation codes that open every package."""

    INSTRUCTIONS = 0
    PROCESS_CONTEXT = 1
    EVICTION_CONTEXT = 2
    SEGMENTS_TABLES = 3
    SEGMENTS_TABLE = 4
    SEGMENT = 5
    OPEN_FILE = 6
    FILE_ADDRESS = 7
    DATA = 8
    INSTRUCTION = 9
    END = 10
    STATUS_CODE = 11
    PID_INSTRUCTION = 12
    COMPACT = 13
    PID_STATUS = 14
    INFO_WRITE = 15
    INFO_READ = 16
    INFO = 17


class HandshakeCode(IntEnum):
    """Codes exchanged while two modules introduce themselves."""

    CONSOLE = 0
    KERNEL = 1
    CPU = 2
    FS = 3
    MEMORY = 4
    OK = 5
    FAIL = 6


class CommunicationError(ConnectionError):
    """Raised when a connection cannot be made, or a send or receive fails."""


class Connection:
    """A connected stream socket speaking the package protocol."""

    def __init__(self, sock: socket.socket) -> None:
        self.sock = sock

    def __enter__(self) -> Connection:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Connection(fd={self.sock.fileno()})"

    def close(self) -> None:
        """Close the underlying socket; closing twice is harmless."""
        self.sock.close()

    # -- packages ---------------------------------------------------------

    def receive(self) -> Package:
        """Read one whole package."""
        try:
            package = Package.receive(self.sock)
        except OSError as exc:
            raise CommunicationError(f"could not receive package: {exc}") from exc
        logger.info("Received operation code: %d", package.operation_code)
        return package

    def _send(self, operation: OpCode, payload: bytes | None = None) -> None:
        try:
            Package(operation, payload).send(self.sock)
        except OSError as exc:
            logger.error("Could not send the package")
            raise CommunicationError(f"could not send package: {exc}") from exc

    def send_instructions(self, instructions: Iterable[Instruction]) -> None:
        """Send a list of instructions."""
        self._send(OpCode.INSTRUCTIONS, encode_instruction_list(instructions))

    def send_process_context(self, context: ProcessContext) -> None:
        """Send a process context."""
        self._send(OpCode.PROCESS_CONTEXT, encode_process_context(context))

    def send_eviction_context(self, context: EvictionContext) -> None:
        """Send the context of a process leaving the CPU."""
        self._send(OpCode.EVICTION_CONTEXT, encode_eviction_context(context))

    def send_data(self, data: Data) -> None:
        """Send a text value."""
        self._send(OpCode.DATA, encode_data(data))

    def send_address(self, address: int) -> None:
        """Send a file address."""
        self._send(OpCode.FILE_ADDRESS, encode_u32(address))

    def send_instruction(self, instruction: Instruction) -> None:
        """Send a single instruction."""
        self._send(OpCode.INSTRUCTION, encode_instruction(instruction))

    def send_end(self) -> None:
        """Announce the end of the conversation."""
        self._send(OpCode.END)

    def send_exit(self) -> None:
        """Send an EXIT instruction with no parameters."""
        self.send_instruction(Instruction(InstructionId.EXIT))

    def send_segments_tables(self, tables: Iterable[SegmentsTable]) -> None:
        """Send several segments tables."""
        self._send(OpCode.SEGMENTS_TABLES, encode_segments_tables(tables))

    def send_segments_table(self, table: SegmentsTable) -> None:
        """Send one segments table."""
        self._send(OpCode.SEGMENTS_TABLE, encode_segments_table(table))

    def send_segment(self, segment: Segment) -> None:
        """Send one segment."""
        self._send(OpCode.SEGMENT, encode_segment(segment))

    def send_status_code(self, code: StatusCode) -> None:
        """Send a status code."""
        self._send(OpCode.STATUS_CODE, encode_u32(int(code)))

    def send_pid_instruction(self, item: PidInstruction) -> None:
        """Send an instruction issued for a process."""
        self._send(OpCode.PID_INSTRUCTION, encode_pid_instruction(item))

    def send_compact(self) -> None:
        """Ask the peer to compact memory."""
        self._send(OpCode.COMPACT)

    def send_pid_status(self, item: PidStatus) -> None:
        """Send a process status change."""
        self._send(OpCode.PID_STATUS, encode_pid_status(item))

    def send_info_write(self, item: InfoWrite) -> None:
        """Send a memory write request."""
        self._send(OpCode.INFO_WRITE, encode_info_write(item))

    def send_info_read(self, item: InfoRead) -> None:
        """Send a memory read request."""
        self._send(OpCode.INFO_READ, encode_info_read(item))

    def send_info(self, info: Info) -> None:
        """Send a raw block of bytes."""
        self._send(OpCode.INFO, encode_info(info))

    # -- handshake --------------------------------------------------------

    def _send_code(self, code: int) -> None:
        try:
            self.sock.sendall(_HANDSHAKE.pack(int(code)))
        except OSError as exc:
            raise CommunicationError(f"handshake send failed: {exc}") from exc

    def _recv_code(self) -> int:
        data = bytearray()
        try:
            while len(data) < _HANDSHAKE.size:
                chunk = self.sock.recv(_HANDSHAKE.size - len(data))
                if not chunk:
                    raise CommunicationError("connection closed during handshake")
                data.extend(chunk)
        except CommunicationError:
            raise
        except OSError as exc:
            raise CommunicationError(f"handshake receive failed: {exc}") from exc
        (value,) = _HANDSHAKE.unpack(bytes(data))
        return value

    def _server_exchange(self, origin: HandshakeCode) -> tuple[int, bool]:
        peer = self._recv_code()
        self._send_code(origin)
        accepted = self._recv_code() == HandshakeCode.OK
        if accepted:
            logger.info("Valid handshake - connection accepted")
        else:
            logger.warning("Invalid handshake - connection rejected")
        return peer, accepted

    def server_handshake_valid(self, origin: HandshakeCode) -> bool:
        """Answer a client's handshake; return whether the client accepted us."""
        _, accepted = self._server_exchange(origin)
        return accepted

    def accept_handshake(self, origin: HandshakeCode) -> int | None:
        """Answer a client's handshake; return the client's code, or None if rejected."""
        peer, accepted = self._server_exchange(origin)
        return peer if accepted else None

    def client_handshake(self, origin: HandshakeCode, expected: HandshakeCode) -> bool:
        """Introduce ourselves and check that the server is the module expected."""
        self._send_code(origin)
        peer = self._recv_code()
        if peer == expected:
            logger.info("Valid handshake - connection accepted")
            answer = HandshakeCode.OK
        else:
            logger.warning("Invalid handshake - connection rejected")
            answer = HandshakeCode.FAIL
        self._send_code(answer)
        return answer == HandshakeCode.OK


def create_connection(host: str, port) -> Connection:
    """Connect over IPv4 TCP to ``host``:``port``."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.connect((host, int(port)))
    except (OSError, ValueError) as exc:
        sock.close()
        logger.error("Could not connect the socket")
        raise CommunicationError(f"could not connect to {host}:{port}: {exc}") from exc
    return Connection(sock)


def server_start(port) -> socket.socket:
    """Open a non-blocking IPv4 listening socket on ``port``."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.setblocking(False)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind(("", int(port)))
        sock.listen(socket.SOMAXCONN)
    except (OSError, ValueError) as exc:
        sock.close()
        logger.error("Could not start listening on port %s", port)
        raise CommunicationError(f"could not listen on port {port}: {exc}") from exc
    logger.info("Server listening on port: %s", port)
    return sock


def client_wait(server_socket: socket.socket, attempts: int = 2) -> Connection | None:
    """Try to accept a client, once a second; return None if none arrives."""
    for attempt in range(attempts):
        try:
            client, _ = server_socket.accept()
        except (BlockingIOError, InterruptedError):
            if attempt + 1 < attempts:
                time.sleep(1)
            continue
        client.setblocking(True)
        return Connection(client)
    return None