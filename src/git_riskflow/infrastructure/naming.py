"""Qualified names for function units within one file."""

from __future__ import annotations


class QualifiedNamer:
    """Joins scope parts with dots and keeps names unique within a file.

    Later occurrences of an already-issued name (overloads, redefinitions,
    property setters) get ``#2``, ``#3``, ... in the order they are requested.
    """

    def __init__(self) -> None:
        self._seen: dict[str, int] = {}

    def name(self, parts: tuple[str, ...]) -> str:
        base = ".".join(parts)
        count = self._seen.get(base, 0) + 1
        self._seen[base] = count
        if count == 1:
            return base
        return f"{base}#{count}"
