import io

import pytest

from segmem.config import MemoryConfig
from segmem.console import (
    format_all_memory,
    format_config,
    format_free_space,
    format_segments_table,
    format_status,
    run_menu_once,
)
from segmem.memory import Memory
from segmem.server import MemoryServer
from segmem.types import Segment, SegmentsTable


@pytest.fixture
def setup():
    config = MemoryConfig("8002", 64, 8, 4, 0, 0, "FIRST")
    memory = Memory(config)
    table = memory.create_segments_table(1)
    segment = memory.create_segment(1, 16)
    memory.add_segment_to_table(1, segment)
    server = MemoryServer(config.port, memory)
    return config, memory, server, table


def run(setup, text):
    config, memory, server, _ = setup
    out = io.StringIO()
    result = run_menu_once(memory, config, server, io.StringIO(text), out)
    return result, out.getvalue()


def test_format_segments_table():
    table = SegmentsTable(3, [Segment(0, 8, 0), Segment(1, 16, 8)])
    assert format_segments_table(table) == (
        "Tabla de segmentos del PID: 3\n  ID\tBASE\tSIZE\n  0\t0\t8\n  1\t8\t16\n"
    )


def test_format_status():
    assert format_status(True, False) == (
        "Estados internos\nend_program_flag: 1\naccept_connections: 0\n"
    )


def test_format_config(setup):
    config = setup[0]
    text = format_config(config)
    assert f"  PUERTO_ESCUCHA: {config.port}\n" in text
    assert f"  ALGORITMO_ASIGNACION: {config.compactation_algorithm}\n" in text


def test_format_free_space(setup):
    _, memory, _, _ = setup
    text = format_free_space(memory)
    assert text.startswith("Tabla de huecos libres\n")
    for base, size in memory.free_holes():
        assert f"  {base}\t{size}\n" in text


def test_format_all_memory(setup):
    config, memory, _, table = setup
    text = format_all_memory(memory, config)
    assert f"  0\t0\t{config.segment_zero_size}\n" in text
    assert "PID: 1\n" + format_segments_table(table) in text


def test_menu_exit(setup):
    result, _ = run(setup, "6\n")
    assert result is True
    assert setup[2].end_requested is True


def test_menu_end_of_input_exits(setup):
    result, _ = run(setup, "")
    assert result is True


def test_menu_invalid_option(setup):
    result, out = run(setup, "9\n")
    assert result is False
    assert "Opcion invalida\n" in out


def test_menu_shows_table(setup):
    result, out = run(setup, "2\n1\n")
    assert result is False
    assert format_segments_table(setup[3]) in out


def test_menu_missing_table(setup):
    _, out = run(setup, "2\n42\n")
    assert "No existe la tabla de segmentos para el PID: 42\n" in out


def test_menu_config_and_status(setup):
    config, _, server, _ = setup
    _, out = run(setup, "1\n")
    assert format_config(config) in out
    _, out = run(setup, "5\n")
    assert format_status(server.end_requested, server.accepting) in out