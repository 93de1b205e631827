"""Bounded capture of a child process's merged output."""

from collections import deque
from typing import Iterable, Iterator

DEFAULT_CAPACITY = 50


class LogBuffer:
    """Keeps the last *capacity* non-empty lines appended to it.

    Patterns registered with :meth:`watch` are matched as lines arrive, so a
    matching line is remembered even after it has been evicted from the tail.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._lines: deque[str] = deque(maxlen=capacity)
        self._watched: dict[str, str | None] = {}
        self._partial = ""

    def append(self, line: str) -> bool:
        line = line.rstrip("\r\n")
        if not line:
            return False
        self._lines.append(line)
        for pattern, first in self._watched.items():
            if first is None and pattern in line:
                self._watched[pattern] = line
        return True

    def extend(self, lines: Iterable[str]) -> list[str]:
        return [line.rstrip("\r\n") for line in lines if self.append(line)]

    def feed(self, chunk: str) -> list[str]:
        """Append a raw output chunk, holding back an unterminated last line.

        Returns the lines that were committed.
        """
        data = self._partial + chunk
        *complete, self._partial = data.split("\n")
        return self.extend(complete)

    def flush(self) -> list[str]:
        """Commit any unterminated trailing line."""
        if not self._partial:
            return []
        partial, self._partial = self._partial, ""
        return self.extend([partial])

    def watch(self, pattern: str) -> None:
        if pattern not in self._watched:
            self._watched[pattern] = next((line for line in self._lines if pattern in line), None)

    def first_match(self, pattern: str) -> str | None:
        """First line seen containing *pattern* (watched or still buffered)."""
        if pattern in self._watched:
            return self._watched[pattern]
        return next((line for line in self._lines if pattern in line), None)

    def tail(self, n: int | None = None) -> list[str]:
        lines = list(self._lines)
        if n is None:
            return lines
        return lines[-n:] if n > 0 else []

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._lines))
