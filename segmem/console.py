"""The interactive menu that shows the memory module's state."""

from __future__ import annotations

import re
from typing import TextIO

from .config import MemoryConfig
from .memory import Memory
from .types import SegmentsTable

_MENU = (
    "\n\nMenu:\n"
    "1. Mostrar config\n"
    "2. Mostrar tabla de segmentos\n"
    "3. Mostrar tabla de huecos libres\n"
    "4. Mostrar contenido de memoria\n"
    "5. Mostrar estados internos\n"
    "6. Salir\n"
)

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _scan_int(line: str) -> int | None:
    match = _LEADING_INT.match(line)
    return int(match.group(1)) if match else None


def format_config(config: MemoryConfig) -> str:
    """Return the configuration as display text."""
    return (
        "Configuracion:\n"
        f"  PUERTO_ESCUCHA: {config.port}\n"
        f"  TAM_MEMORIA: {config.memory_size}\n"
        f"  TAM_SEGMENTO_0: {config.segment_zero_size}\n"
        f"  CANT_SEGMENTOS: {config.segment_quantity}\n"
        f"  RETARDO_MEMORIA: {config.memory_time_delay}\n"
        f"  RETARDO_COMPACTACION: {config.compactation_time_delay}\n"
        f"  ALGORITMO_ASIGNACION: {config.compactation_algorithm}\n"
    )


def format_segments_table(table: SegmentsTable) -> str:
    """Return one process's segments table as display text."""
    rows = "".join(
        f"  {s.id}\t{s.base_address}\t{s.size}\n" for s in table.segments
    )
    return f"Tabla de segmentos del PID: {table.pid}\n  ID\tBASE\tSIZE\n{rows}"


def format_free_space(memory: Memory) -> str:
    """Return the free holes of memory as display text."""
    rows = "".join(f"  {base}\t{size}\n" for base, size in memory.free_holes())
    return f"Tabla de huecos libres\n  BASE\tSIZE\n{rows}"


def format_all_memory(memory: Memory, config: MemoryConfig) -> str:
    """Return segment 0 and every process's segments table as display text."""
    parts = [
        "Contenido de memoria\n",
        "Segmento 0\n",
        "  ID\tBASE\tSIZE\n",
        f"  0\t0\t{config.segment_zero_size}\n",
    ]
    for table in memory.tables:
        parts.append(f"PID: {table.pid}\n")
        parts.append(format_segments_table(table))
    return "".join(parts)


def format_status(end_requested: bool, accepting: bool) -> str:
    """Return the internal flags as display text."""
    return (
        "Estados internos\n"
        f"end_program_flag: {int(bool(end_requested))}\n"
        f"accept_connections: {int(bool(accepting))}\n"
    )


def run_menu_once(memory: Memory, config: MemoryConfig, server, stream_in: TextIO, stream_out: TextIO) -> bool:
    """Show the menu, carry out one choice, and return True when exit was chosen."""
    stream_out.write(_MENU)
    stream_out.flush()
    line = stream_in.readline()
    if not line:
        server.end_requested = True
        return True
    choice = _scan_int(line)
    stream_out.write("\n\n")
    if choice == 1:
        stream_out.write(format_config(config))
    elif choice == 2:
        stream_out.write("Ingrese el PID de la tabla de segmentos: ")
        stream_out.flush()
        pid = _scan_int(stream_in.readline())
        pid = -1 if pid is None else pid
        table = memory.segments_table(pid)
        if table is None:
            stream_out.write(f"No existe la tabla de segmentos para el PID: {pid}\n")
        else:
            stream_out.write(format_segments_table(table))
    elif choice == 3:
        stream_out.write(format_free_space(memory))
    elif choice == 4:
        stream_out.write(format_all_memory(memory, config))
    elif choice == 5:
        stream_out.write(format_status(server.end_requested, server.accepting))
    elif choice == 6:
        server.end_requested = True
        stream_out.flush()
        return True
    else:
        stream_out.write("Opcion invalida\n")
    stream_out.flush()
    return False