"""Table ordering.

The engine addresses assets by their position in the file table, so a packed
archive must list its entries in the order the engine's own tool produced.
That order appears to be a case-insensitive byte sort in which ``_`` sorts
after ``.`` and before digits; substituting ``/`` for ``_`` reproduces it for
every title checked so far. Other titles may need another strategy, hence the
registry below.
"""

from __future__ import annotations

from typing import Callable, Dict, Iterable, List, TypeVar

T = TypeVar("T")


class Collation:
    name = "bytes"

    def key(self, name: bytes) -> bytes:
        return name

    def sort(self, items: Iterable[T], name_of: Callable[[T], bytes] = lambda e: e.name) -> List[T]:
        # sorted() is stable: equal keys keep their input order
        return sorted(items, key=lambda e: self.key(name_of(e)))


class LowercaseCollation(Collation):
    name = "lowercase"

    def key(self, name: bytes) -> bytes:
        return name.lower()


class UnderscoreSlashCollation(Collation):
    name = "underscore-slash"

    def key(self, name: bytes) -> bytes:
        return name.lower().replace(b"_", b"/")


DEFAULT_COLLATION = UnderscoreSlashCollation()

COLLATIONS: Dict[str, Collation] = {
    c.name: c for c in (DEFAULT_COLLATION, LowercaseCollation(), Collation())
}


def canonical_key(name: bytes) -> bytes:
    return DEFAULT_COLLATION.key(name)


def get_collation(name: str) -> Collation:
    try:
        return COLLATIONS[name]
    except KeyError:
        raise ValueError(f"unknown collation: {name}") from None
