"""A fixed-size bitmap of used (1) and free (0) positions."""

from __future__ import annotations

from collections.abc import Iterator


class Bitmap:
    """A fixed-size array of bits, all clear when created."""

    def __init__(self, size: int) -> None:
        if size < 0:
            raise ValueError("bitmap size cannot be negative")
        self._size = size
        self._bytes = bytearray((size + 7) // 8)

    def __len__(self) -> int:
        return self._size

    def __str__(self) -> str:
        return "".join("1" if bit else "0" for bit in self._bits())

    def __repr__(self) -> str:
        return f"Bitmap({self._size})"

    def _check(self, index: int) -> None:
        if not 0 <= index < self._size:
            raise IndexError(f"bit index {index} out of range for size {self._size}")

    def _bits(self) -> Iterator[bool]:
        for index in range(self._size):
            yield bool((self._bytes[index // 8] >> (index % 8)) & 1)

    def set(self, index: int, value: bool) -> None:
        """Set or clear the bit at ``index``."""
        self._check(index)
        mask = 1 << (index % 8)
        if value:
            self._bytes[index // 8] |= mask
        else:
            self._bytes[index // 8] &= ~mask & 0xFF

    def get(self, index: int) -> bool:
        """Return the bit at ``index``."""
        self._check(index)
        return bool((self._bytes[index // 8] >> (index % 8)) & 1)

    def clear_range(self, start: int, count: int) -> None:
        """Clear ``count`` bits starting at ``start``."""
        for index in range(start, start + count):
            self.set(index, False)

    def clear(self) -> None:
        """Clear every bit."""
        self._bytes = bytearray(len(self._bytes))

    def free_run(self, start: int) -> int:
        """Return how many consecutive clear bits begin at ``start``."""
        run = 0
        for index in range(start, self._size):
            if self.get(index):
                break
            run += 1
        return run

    def count_free(self) -> int:
        """Return the number of clear bits."""
        return sum(1 for bit in self._bits() if not bit)