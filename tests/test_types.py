import pytest

from segmem.types import (
    Info,
    Instruction,
    InstructionId,
    Registers,
    Segment,
    SegmentsTable,
    StatusCode,
    status_code_string,
)


@pytest.mark.parametrize(
    "code, text",
    [
        (StatusCode.SEGMENTATION_FAULT, "SEGMENTATION FAULT"),
        (StatusCode.COMPACTATION_REQUIRED, "COMPACTATION REQUIRED"),
        (StatusCode.OUT_OF_MEMORY, "OUT OF MEMORY"),
        (StatusCode.MAX_SEG_QUANTITY_REACHED, "MAX SEG QUANTITY REACHED"),
        (StatusCode.SUCCESS, "SUCCESS"),
        (StatusCode.PROCESS_ABORTED, "PROCESS ABORTED"),
        (StatusCode.INVALID_RESOURCE, "INVALID RESOURCE"),
    ],
)
def test_status_code_string(code, text):
    assert status_code_string(code) == text


def test_status_code_string_unknown():
    assert status_code_string(StatusCode.FILE_NOT_EXIST) == "UNKNOWN"
    assert status_code_string(StatusCode.FILE_NOT_EXISTS) == "UNKNOWN"
    assert status_code_string(999) == "UNKNOWN"


def test_status_code_string_accepts_plain_int():
    assert status_code_string(int(StatusCode.ERROR)) == "ERROR"


def test_enum_order_follows_declaration():
    # Wire values follow declaration order: first and last codes by number.
    assert status_code_string(0) == "SEGMENTATION FAULT"
    assert status_code_string(16) == "PROCESS ABORTED"
    assert status_code_string(11) == "SUCCESS"
    assert Instruction(0, []).identifier is InstructionId.F_READ
    assert Instruction(15, []).identifier is InstructionId.YIELD
    assert Instruction(7, ["1", "64"]).identifier is InstructionId.CREATE_SEGMENT


def test_registers_default_to_ascii_zeros():
    regs = Registers()
    assert regs.ax == b"0000"
    assert regs.edx == b"0" * 8
    assert regs.rax == b"0000000000000000"


def test_registers_reject_wrong_size():
    with pytest.raises(ValueError):
        Registers(ax=b"12345")


def test_registers_copy_is_equal_and_independent():
    regs = Registers(ax=b"ABCD", rbx=b"x" * 16)
    dup = regs.copy()
    assert dup == regs
    dup.ax = b"WXYZ"
    assert regs.ax == b"ABCD"


def test_instruction_limit():
    with pytest.raises(ValueError):
        Instruction(InstructionId.SET, ["a", "b", "c", "d", "e"])


def test_instruction_identifier_coerced():
    instr = Instruction(InstructionId.SET.value, ["AX", "HOLA"])
    assert instr.identifier is InstructionId.SET


def test_instruction_copy_is_deep():
    instr = Instruction(InstructionId.CREATE_SEGMENT, ["1", "64"])
    dup = instr.copy()
    assert dup == instr
    dup.parameters.append("extra")
    assert instr.parameters == ["1", "64"]


def test_segment_copy():
    seg = Segment(3, 128, 256)
    dup = seg.copy()
    assert dup == seg
    dup.base_address = 0
    assert seg.base_address == 256


def test_segments_table_copy_segments():
    table = SegmentsTable(7, [Segment(0, 16, 0), Segment(1, 32, 16)])
    copies = table.copy_segments()
    assert copies == table.segments
    assert all(a is not b for a, b in zip(copies, table.segments))
    copies[1].size = 1
    assert table.segments[1].size == 32


def test_info_size_tracks_data():
    assert Info(b"hello").size == len(b"hello")
    assert Info(b"").size == 0