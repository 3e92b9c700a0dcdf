"""Matching of fully-qualified Protobuf paths against path matchers."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from itertools import chain
from typing import Generic, TypeVar

T = TypeVar("T")


def prefixes(fq_path: str) -> Iterator[str]:
    """Yield the fully-qualified prefixes of a path, longest first.

    ``prefixes(".a.b.c.d")`` yields ``".a.b.c"``, ``".a.b"``, ``".a"``.
    """
    path = fq_path
    while True:
        head, sep, _ = path.rpartition(".")
        if not sep or not head:
            return
        yield head
        path = head


def suffixes(fq_path: str) -> Iterator[str]:
    """Yield the suffixes of a path, longest first.

    ``suffixes(".a.b.c.d")`` yields ``"a.b.c.d"``, ``"b.c.d"``, ``"c.d"``, ``"d"``.
    """
    path = fq_path
    while True:
        _, sep, tail = path.partition(".")
        if not sep or not tail:
            return
        yield tail
        path = tail


class PathMap(Generic[T]):
    """Maps fully-qualified Protobuf paths to values using path matchers."""

    def __init__(self) -> None:
        self._matchers: dict[str, T] = {}

    def __repr__(self) -> str:
        return f"PathMap({self._matchers!r})"

    def __len__(self) -> int:
        return len(self._matchers)

    def insert(self, matcher: str, value: T) -> None:
        """Add a matcher and its value, replacing any previous value."""
        self._matchers[matcher] = value

    def _first_match(self, candidates: Iterable[str]) -> T | None:
        for path in candidates:
            if path in self._matchers:
                return self._matchers[path]
        return None

    def get(self, fq_path: str) -> T | None:
        """Return the value matching a fully-qualified path, or None."""
        return self._first_match(
            chain((fq_path,), suffixes(fq_path), prefixes(fq_path), (".",))
        )

    def get_field(self, fq_path: str, field: str) -> T | None:
        """Return the value matching a field of a fully-qualified path, or None."""
        full_path = f"{fq_path}.{field}"
        return self._first_match(
            chain(
                (full_path,),
                suffixes(full_path),
                suffixes(fq_path),
                prefixes(full_path),
                (".",),
            )
        )

    def clear(self) -> None:
        """Remove all matchers."""
        self._matchers.clear()