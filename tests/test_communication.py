import socket
import threading

import pytest

from segmem.communication import (
    CommunicationError,
    Connection,
    HandshakeCode,
    OpCode,
    client_wait,
    create_connection,
    server_start,
)
from segmem.messages import (
    decode_data,
    decode_eviction_context,
    decode_info,
    decode_info_read,
    decode_info_write,
    decode_pid_instruction,
    decode_pid_status,
    decode_process_context,
)
from segmem.types import (
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
    Registers,
    Segment,
    SegmentsTable,
    StatusCode,
)
from segmem.wire import (
    Reader,
    decode_instruction,
    decode_instruction_list,
    decode_segment,
    decode_segments_table,
    decode_segments_tables,
    decode_u32,
)


@pytest.fixture
def pair():
    left, right = socket.socketpair()
    a, b = Connection(left), Connection(right)
    yield a, b
    a.close()
    b.close()


def _run(target, *args):
    result = {}

    def runner():
        try:
            result["value"] = target(*args)
        except Exception as exc:  # noqa: BLE001
            result["error"] = exc

    thread = threading.Thread(target=runner)
    thread.start()
    return thread, result


def test_send_end_wire_bytes(pair):
    a, b = pair
    a.send_end()
    assert b.sock.recv(64) == b"\x0a\x01\x00\x00\x00\x00"


def test_send_compact(pair):
    a, b = pair
    a.send_compact()
    package = b.receive()
    assert package.operation_code == OpCode.COMPACT
    assert package.payload == b"\0"


def test_status_code_round_trip(pair):
    a, b = pair
    a.send_status_code(StatusCode.OUT_OF_MEMORY)
    package = b.receive()
    assert package.operation_code == OpCode.STATUS_CODE
    assert decode_u32(package.payload) == StatusCode.OUT_OF_MEMORY


def test_address_round_trip(pair):
    a, b = pair
    a.send_address(4096)
    package = b.receive()
    assert package.operation_code == OpCode.FILE_ADDRESS
    assert decode_u32(package.payload) == 4096


def test_segment_round_trip(pair):
    a, b = pair
    a.send_segment(Segment(3, 64, 128))
    package = b.receive()
    assert package.operation_code == OpCode.SEGMENT
    assert decode_segment(Reader(package.payload)) == Segment(3, 64, 128)


def test_segments_table_round_trip(pair):
    a, b = pair
    table = SegmentsTable(7, [Segment(0, 128, 0), Segment(1, 32, 200)])
    a.send_segments_table(table)
    package = b.receive()
    assert package.operation_code == OpCode.SEGMENTS_TABLE
    assert decode_segments_table(Reader(package.payload)) == table


def test_segments_tables_round_trip(pair):
    a, b = pair
    tables = [SegmentsTable(1, [Segment(0, 10, 0)]), SegmentsTable(2, [])]
    a.send_segments_tables(tables)
    package = b.receive()
    assert package.operation_code == OpCode.SEGMENTS_TABLES
    assert decode_segments_tables(package.payload) == tables


def test_instructions_round_trip(pair):
    a, b = pair
    instructions = [
        Instruction(InstructionId.SET, ["AX", "HOLA"]),
        Instruction(InstructionId.YIELD),
    ]
    a.send_instructions(instructions)
    package = b.receive()
    assert package.operation_code == OpCode.INSTRUCTIONS
    assert decode_instruction_list(package.payload) == instructions


def test_send_instruction(pair):
    a, b = pair
    instruction = Instruction(InstructionId.CREATE_SEGMENT, ["1", "64"])
    a.send_instruction(instruction)
    package = b.receive()
    assert package.operation_code == OpCode.INSTRUCTION
    assert decode_instruction(Reader(package.payload)) == instruction


def test_send_exit(pair):
    a, b = pair
    a.send_exit()
    package = b.receive()
    assert package.operation_code == OpCode.INSTRUCTION
    assert decode_instruction(Reader(package.payload)) == Instruction(InstructionId.EXIT)


def test_process_context_round_trip(pair):
    a, b = pair
    context = ProcessContext(
        5,
        [Instruction(InstructionId.WAIT, ["DISCO"])],
        2,
        Registers(ax=b"ABCD"),
        [Segment(0, 128, 0)],
    )
    a.send_process_context(context)
    package = b.receive()
    assert package.operation_code == OpCode.PROCESS_CONTEXT
    assert decode_process_context(package.payload) == context


def test_eviction_context_round_trip(pair):
    a, b = pair
    context = EvictionContext(
        9,
        [Instruction(InstructionId.YIELD)],
        1,
        Registers(),
        Instruction(InstructionId.I_O, ["10"]),
        StatusCode.SUCCESS,
    )
    a.send_eviction_context(context)
    package = b.receive()
    assert package.operation_code == OpCode.EVICTION_CONTEXT
    assert decode_eviction_context(package.payload) == context


def test_data_round_trip(pair):
    a, b = pair
    a.send_data(Data("hola"))
    package = b.receive()
    assert package.operation_code == OpCode.DATA
    assert decode_data(package.payload) == Data("hola")


def test_pid_instruction_round_trip(pair):
    a, b = pair
    item = PidInstruction(4, Instruction(InstructionId.DELETE_SEGMENT, ["2"]))
    a.send_pid_instruction(item)
    package = b.receive()
    assert package.operation_code == OpCode.PID_INSTRUCTION
    assert decode_pid_instruction(package.payload) == item


def test_pid_status_round_trip(pair):
    a, b = pair
    item = PidStatus(3, StatusCode.PROCESS_NEW)
    a.send_pid_status(item)
    package = b.receive()
    assert package.operation_code == OpCode.PID_STATUS
    assert decode_pid_status(package.payload) == item


def test_info_messages_round_trip(pair):
    a, b = pair
    write = InfoWrite(16, Info(b"abc"))
    read = InfoRead(16, 3)
    a.send_info_write(write)
    a.send_info_read(read)
    a.send_info(Info(b"xyz"))
    first, second, third = b.receive(), b.receive(), b.receive()
    assert first.operation_code == OpCode.INFO_WRITE
    assert decode_info_write(first.payload) == write
    assert second.operation_code == OpCode.INFO_READ
    assert decode_info_read(second.payload) == read
    assert third.operation_code == OpCode.INFO
    assert decode_info(third.payload) == Info(b"xyz")


def test_receive_after_peer_closed(pair):
    a, b = pair
    a.close()
    with pytest.raises(CommunicationError):
        b.receive()


def test_handshake_accepted(pair):
    client, server = pair
    thread, result = _run(server.accept_handshake, HandshakeCode.MEMORY)
    ok = client.client_handshake(HandshakeCode.KERNEL, HandshakeCode.MEMORY)
    thread.join(5)
    assert ok is True
    assert result["value"] == HandshakeCode.KERNEL


def test_handshake_rejected(pair):
    client, server = pair
    thread, result = _run(server.accept_handshake, HandshakeCode.MEMORY)
    ok = client.client_handshake(HandshakeCode.CPU, HandshakeCode.FS)
    thread.join(5)
    assert ok is False
    assert result["value"] is None


@pytest.mark.parametrize("expected, valid", [
    (HandshakeCode.MEMORY, True),
    (HandshakeCode.KERNEL, False),
])
def test_server_handshake_valid(pair, expected, valid):
    client, server = pair
    thread, result = _run(server.server_handshake_valid, HandshakeCode.MEMORY)
    ok = client.client_handshake(HandshakeCode.FS, expected)
    thread.join(5)
    assert ok is valid
    assert result["value"] is valid


def test_handshake_peer_closed(pair):
    client, server = pair
    client.close()
    with pytest.raises(CommunicationError):
        server.accept_handshake(HandshakeCode.MEMORY)


def test_server_client_round_trip():
    listener = server_start(0)
    try:
        port = listener.getsockname()[1]
        with create_connection("127.0.0.1", port) as client:
            accepted = client_wait(listener, 3)
            assert accepted is not None
            with accepted:
                client.send_status_code(StatusCode.SUCCESS)
                package = accepted.receive()
                assert decode_u32(package.payload) == StatusCode.SUCCESS
    finally:
        listener.close()


def test_client_wait_without_clients():
    listener = server_start(0)
    try:
        assert client_wait(listener, 1) is None
    finally:
        listener.close()


def test_create_connection_refused():
    probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    with pytest.raises(CommunicationError):
        create_connection("127.0.0.1", port)


def test_context_manager_closes_socket():
    left, right = socket.socketpair()
    right.close()
    with Connection(left) as conn:
        pass
    assert conn.sock.fileno() == -1