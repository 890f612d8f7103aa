"""Request handlers for the kernel, CPU and file-system connections."""

from __future__ import annotations

import logging
import re

from .communication import CommunicationError, Connection, OpCode
from .memory import CompactionRequired, Memory, MemoryAccessError, OutOfMemoryError
from .messages import (
    decode_info_read,
    decode_info_write,
    decode_pid_instruction,
    decode_pid_status,
)
from .types import InstructionId, PidInstruction, PidStatus, SegmentsTable, StatusCode
from .wire import DecodeError

logger = logging.getLogger(__name__)
events = logging.getLogger("segmem.events")

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _to_int(text: str) -> int:
    """Parse a leading integer; text without one counts as 0."""
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def _parameter(parameters: list[str], index: int) -> str:
    return parameters[index] if index < len(parameters) else ""


def _create_segment(connection: Connection, memory: Memory, pid: int, parameters: list[str]) -> None:
    segment_id = _to_int(_parameter(parameters, 0))
    table = memory.segments_table(pid)
    count = len(table.segments) if table is not None else 0
    if count >= memory.config.segment_quantity:
        connection.send_status_code(StatusCode.MAX_SEG_QUANTITY_REACHED)
        events.warning("PID: %d - Crear Segmento - No se puede crear mas segmentos", pid)
        return
    size = _to_int(_parameter(parameters, 1))
    try:
        segment = memory.create_segment(segment_id, size)
    except OutOfMemoryError:
        connection.send_status_code(StatusCode.OUT_OF_MEMORY)
        return
    except CompactionRequired:
        events.info("Se envio una solicitud de compactacion")
        connection.send_status_code(StatusCode.COMPACTATION_REQUIRED)
        return
    memory.add_segment_to_table(pid, segment)
    events.info(
        "PID: %d - Crear Segmento: %d - Base: %d - Tamanio: %d",
        pid, segment_id, segment.base_address, size,
    )
    connection.send_segment(segment)


def _delete_segment(connection: Connection, memory: Memory, pid: int, parameters: list[str]) -> None:
    segment_id = _to_int(_parameter(parameters, 0))
    table = memory.segments_table(pid)
    segment = None
    if table is not None:
        segment = next((s for s in table.segments if s.id == segment_id), None)
    if segment is None:
        logger.warning("PID: %d - segment %d not found", pid, segment_id)
    else:
        events.info(
            "PID: %d - Eliminar Segmento: %d - Base: %d - Tamanio: %d",
            pid, segment_id, segment.base_address, segment.size,
        )
        memory.delete_segment(pid, segment)
    connection.send_segments_table(table if table is not None else SegmentsTable(pid))


def handle_pid_instruction(connection: Connection, memory: Memory, item: PidInstruction) -> None:
    """Carry out a segment creation or deletion asked for by the kernel."""
    instruction = item.instruction
    if instruction.identifier == InstructionId.CREATE_SEGMENT:
        _create_segment(connection, memory, item.pid, instruction.parameters)
    elif instruction.identifier == InstructionId.DELETE_SEGMENT:
        _delete_segment(connection, memory, item.pid, instruction.parameters)
    else:
        logger.warning("Unknown instruction %s", instruction.identifier.name)


def handle_pid_status(connection: Connection, memory: Memory, item: PidStatus) -> None:
    """Create the table of a new process, or drop the table of an ended one."""
    if item.status == StatusCode.PROCESS_NEW:
        table = memory.create_segments_table(item.pid)
        events.info("Creacion de Proceso PID: %d", item.pid)
        connection.send_segments_table(table)
    elif item.status == StatusCode.PROCESS_END:
        events.info("Eliminacion de Proceso PID: %d", item.pid)
        table = memory.segments_table(item.pid)
        if table is not None:
            memory.delete_segments_table(table)


def serve_kernel(connection: Connection, memory: Memory) -> None:
    """Answer the kernel's requests until it ends the conversation."""
    while True:
        try:
            package = connection.receive()
        except CommunicationError as exc:
            logger.warning("Kernel: connection lost (%s)", exc)
            return
        operation = package.operation_code
        try:
            if operation == OpCode.COMPACT:
                events.info("Solicitud de Compactacion")
                memory.compact()
                events.info("RESULTADO DE LA COMPACTACION")
                memory.log_all_segments()
                connection.send_segments_tables(memory.tables)
            elif operation == OpCode.PID_INSTRUCTION:
                handle_pid_instruction(connection, memory, decode_pid_instruction(package.payload))
            elif operation == OpCode.PID_STATUS:
                handle_pid_status(connection, memory, decode_pid_status(package.payload))
            elif operation == OpCode.END:
                logger.warning("Kernel: Conexion Finalizada")
                return
            else:
                logger.warning("Kernel: Operacion desconocida")
                return
        except DecodeError as exc:
            logger.warning("Kernel: malformed package (%s)", exc)
            return
        except CommunicationError as exc:
            logger.error("Kernel: could not answer (%s)", exc)
            return


def _reply_status(connection: Connection, code: StatusCode, module_name: str) -> None:
    try:
        connection.send_status_code(code)
    except CommunicationError:
        logger.error("No se pudo enviar la respuesta a %s", module_name)


def _serve_read(connection: Connection, memory: Memory, payload: bytes, module_name: str) -> None:
    request = decode_info_read(payload)
    pid = memory.pid_by_address(request.base_address)
    if pid is None:
        logger.error("No se encontro un segmento para esa direccion fisica")
        _reply_status(connection, StatusCode.SEGMENTATION_FAULT, module_name)
        return
    try:
        info = memory.read(request.base_address, request.size)
    except MemoryAccessError:
        _reply_status(connection, StatusCode.SEGMENTATION_FAULT, module_name)
        return
    events.info(
        "PID: %d - Accion: LEER - Direccion fisica: %d - Tamanio: %d - Origen: %s",
        pid, request.base_address, request.size, module_name,
    )
    logger.info("Valor leido: %s", info.data.decode("utf-8", errors="replace"))
    try:
        connection.send_info(info)
    except CommunicationError:
        logger.error("No se pudo enviar el valor leido de memoria a %s", module_name)


def _serve_write(connection: Connection, memory: Memory, payload: bytes, module_name: str) -> None:
    request = decode_info_write(payload)
    pid = memory.pid_by_address(request.base_address)
    if pid is None:
        logger.error("No se encontro un segmento para esa direccion fisica")
        _reply_status(connection, StatusCode.SEGMENTATION_FAULT, module_name)
        return
    try:
        memory.write(request.base_address, request.info.data)
    except MemoryAccessError:
        logger.error("No se pudo escribir en memoria")
        _reply_status(connection, StatusCode.SEGMENTATION_FAULT, module_name)
        return
    events.info(
        "PID: %d - Accion: ESCRIBIR - Direccion fisica: %d - Tamanio: %d - Origen: %s",
        pid, request.base_address, request.info.size, module_name,
    )
    logger.info("Valor escrito: %s", request.info.data.decode("utf-8", errors="replace"))
    _reply_status(connection, StatusCode.SUCCESS, module_name)


def serve_cpu_fs(connection: Connection, memory: Memory, module_name: str) -> None:
    """Answer read and write requests from the CPU or file system until they end."""
    while True:
        try:
            package = connection.receive()
        except CommunicationError as exc:
            logger.warning("%s: connection lost (%s)", module_name, exc)
            return
        operation = package.operation_code
        try:
            if operation == OpCode.INFO_READ:
                _serve_read(connection, memory, package.payload, module_name)
            elif operation == OpCode.INFO_WRITE:
                _serve_write(connection, memory, package.payload, module_name)
            elif operation == OpCode.END:
                logger.warning("%s: Conexion Finalizada", module_name)
                return
            else:
                logger.warning("%s: Operacion desconocida", module_name)
                return
        except DecodeError as exc:
            logger.warning("%s: malformed package (%s)", module_name, exc)
            return