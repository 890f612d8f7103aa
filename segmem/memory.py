"""Segmented main memory: allocation, segment tables, data access and compaction."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterator

from .bitmap import Bitmap
from .config import MemoryConfig
from .types import Info, Segment, SegmentsTable

logger = logging.getLogger(__name__)


class OutOfMemoryError(Exception):
    """Raised when the free space as a whole cannot hold a segment."""


class CompactionRequired(Exception):
    """Raised when enough space is free, but no single hole can hold a segment."""


class MemoryAccessError(Exception):
    """Raised when a read or write falls outside the memory."""


class Memory:
    """The memory space, its free-space bitmap and every process's segments table."""

    def __init__(self, config: MemoryConfig) -> None:
        self.config = config
        self.space = bytearray(config.memory_size)
        self._lock = threading.Lock()
        self.tables: list[SegmentsTable] = []
        self.free_space = Bitmap(config.memory_size)
        self._algorithms = {
            "FIRST": self.first_fit,
            "BEST": self.best_fit,
            "WORST": self.worst_fit,
        }
        try:
            self.segment_zero = self.create_segment(0, config.segment_zero_size)
        except (OutOfMemoryError, CompactionRequired):
            self.segment_zero = Segment(0, config.segment_zero_size)
            logger.error("Could not create segment 0, not enough memory")
        else:
            logger.info("Segment 0 created")

    # -- holes and placement ------------------------------------------------

    def _holes(self) -> Iterator[tuple[int, int]]:
        index = 0
        size = len(self.free_space)
        while index < size:
            if self.free_space.get(index):
                index += 1
                continue
            run = self.free_space.free_run(index)
            yield index, run
            index += run

    def free_holes(self) -> list[tuple[int, int]]:
        """Return every free hole as ``(base, size)``, in address order."""
        return list(self._holes())

    def _fitting(self, size: int) -> list[tuple[int, int]]:
        return [hole for hole in self._holes() if hole[1] >= size]

    def first_fit(self, size: int) -> int | None:
        """Return the base of the first hole that holds ``size`` bytes."""
        return next((base for base, hole in self._holes() if hole >= size), None)

    def best_fit(self, size: int) -> int | None:
        """Return the base of the smallest hole that holds ``size`` bytes."""
        candidates = self._fitting(size)
        if not candidates:
            return None
        return min(candidates, key=lambda hole: hole[1])[0]

    def worst_fit(self, size: int) -> int | None:
        """Return the base of the largest hole that holds ``size`` bytes."""
        candidates = self._fitting(size)
        if not candidates:
            return None
        return max(candidates, key=lambda hole: hole[1])[0]

    def _mark_used(self, base: int, size: int) -> None:
        for index in range(base, base + size):
            self.free_space.set(index, True)

    def find_base(self, size: int) -> int | None:
        """Place ``size`` bytes with the configured algorithm and mark them used."""
        algorithm = self._algorithms.get(self.config.compactation_algorithm)
        if algorithm is None:
            logger.warning("Unknown allocation algorithm %r", self.config.compactation_algorithm)
            return None
        base = algorithm(size)
        if base is not None:
            self._mark_used(base, size)
        return base

    def is_allocation_possible(self, size: int) -> bool:
        """Return whether the free space as a whole can hold ``size`` bytes."""
        return self.free_space.count_free() >= size

    # -- segments -------------------------------------------------------------

    def create_segment(self, segment_id: int, size: int) -> Segment:
        """Allocate a new segment, or raise if it cannot be placed."""
        if not self.is_allocation_possible(size):
            logger.error("Not enough free space to create the segment")
            raise OutOfMemoryError(f"no room for a segment of {size} bytes")
        base = self.find_base(size)
        if base is None:
            raise CompactionRequired(f"no single hole holds {size} bytes")
        return Segment(segment_id, size, base)

    def delete_segment(self, pid: int, segment: Segment) -> None:
        """Remove ``segment`` from the table of ``pid`` and free its space."""
        table = self.segments_table(pid)
        if table is None:
            raise KeyError(f"no segments table for pid {pid}")
        table.segments = [item for item in table.segments if item is not segment]
        self.free_space.clear_range(segment.base_address, segment.size)

    # -- segments tables --------------------------------------------------------

    def create_segments_table(self, pid: int) -> SegmentsTable:
        """Return the table of ``pid``, creating it with segment 0 if needed."""
        table = self.segments_table(pid)
        if table is None:
            table = SegmentsTable(pid, [self.segment_zero])
            self.tables.append(table)
        return table

    def add_segment_to_table(self, pid: int, segment: Segment) -> None:
        """Append ``segment`` to the table of ``pid``."""
        self.create_segments_table(pid).segments.append(segment)

    def delete_segments_table(self, table: SegmentsTable) -> None:
        """Drop ``table`` and free every segment in it except the shared segment 0."""
        self.tables = [item for item in self.tables if item is not table]
        for segment in table.segments[1:]:
            self.free_space.clear_range(segment.base_address, segment.size)
        table.segments.clear()

    # -- lookups ----------------------------------------------------------------

    def _all_segments(self) -> Iterator[tuple[int, Segment]]:
        for table in self.tables:
            for segment in table.segments:
                yield table.pid, segment

    def segment_by_id(self, segment_id: int) -> Segment | None:
        """Return the first segment with this id, in any table."""
        return next((s for _, s in self._all_segments() if s.id == segment_id), None)

    def segment_by_address(self, address: int) -> Segment | None:
        """Return the first segment whose base is ``address``."""
        return next(
            (s for _, s in self._all_segments() if s.base_address == address), None
        )

    def segments_table(self, pid: int) -> SegmentsTable | None:
        """Return the table of ``pid``, if there is one."""
        return next((table for table in self.tables if table.pid == pid), None)

    def pid_by_address(self, address: int) -> int | None:
        """Return the pid owning the segment that contains ``address``."""
        return next(
            (
                pid
                for pid, s in self._all_segments()
                if s.base_address <= address < s.base_address + s.size
            ),
            None,
        )

    # -- data ---------------------------------------------------------------------

    def _check_range(self, base_address: int, size: int, action: str) -> None:
        if base_address < 0 or size < 0 or base_address + size > self.config.memory_size:
            logger.error("Attempt to %s outside memory", action)
            raise MemoryAccessError(
                f"cannot {action} {size} bytes at {base_address}: "
                f"memory holds {self.config.memory_size} bytes"
            )

    def read(self, base_address: int, size: int) -> Info:
        """Return ``size`` bytes starting at ``base_address``."""
        time.sleep(self.config.memory_time_delay // 1000)
        self._check_range(base_address, size, "read")
        with self._lock:
            return Info(bytes(self.space[base_address:base_address + size]))

    def write(self, base_address: int, data: bytes) -> None:
        """Write ``data`` starting at ``base_address``."""
        time.sleep(self.config.memory_time_delay // 1000)
        data = bytes(data)
        self._check_range(base_address, len(data), "write")
        with self._lock:
            self.space[base_address:base_address + len(data)] = data

    def move_data(self, to: int, source: int, length: int) -> None:
        """Copy ``length`` bytes from ``source`` to ``to``."""
        with self._lock:
            self.space[to:to + length] = self.space[source:source + length]

    # -- compaction -------------------------------------------------------------------

    def _first_free(self) -> int | None:
        return next((base for base, _ in self._holes()), None)

    def _last_used(self) -> int | None:
        return next(
            (i for i in reversed(range(len(self.free_space))) if self.free_space.get(i)),
            None,
        )

    def _first_used_from(self, start: int) -> int | None:
        return next(
            (i for i in range(start, len(self.free_space)) if self.free_space.get(i)),
            None,
        )

    def compact(self) -> None:
        """Move every segment down so that all free space forms one hole at the end."""
        logger.info("Starting compaction")
        time.sleep(self.config.compactation_time_delay // 1000)
        while True:
            first_free = self._first_free()
            last_used = self._last_used()
            if first_free is None or last_used is None or first_free >= last_used:
                break
            address = self._first_used_from(first_free)
            segment = self.segment_by_address(address)
            if segment is None:
                raise RuntimeError(f"used address {address} starts no known segment")
            old_base = segment.base_address
            self.free_space.clear_range(old_base, segment.size)
            new_base = self.first_fit(segment.size)
            self._mark_used(new_base, segment.size)
            segment.base_address = new_base
            self.move_data(new_base, old_base, segment.size)
        logger.info("Compaction finished")

    def log_all_segments(self) -> list[str]:
        """Log every process's segments except segment 0; return the lines logged."""
        lines = [
            f"PID: {table.pid} - Segmento: {s.id} - Base: {s.base_address} - Tamanio: {s.size}"
            for table in self.tables
            for s in table.segments[1:]
        ]
        for line in lines:
            logger.info(line)
        return lines