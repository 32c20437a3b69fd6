"""
Lazy sequence builders.

Every builder returns an Enumerator: a re-enterable, pull-based sequence of
(item, cursor) pairs, where the cursor is the value a later slice needs to
resume right after that item. Builders validate their input when called so
configuration mistakes surface before the first item is pulled.
"""
import logging
from collections.abc import Sequence as SequenceABC
from typing import Any, Callable, Iterator, List, Optional, Sequence, Tuple

from .cursor import Cursor, cursor_key
from .errors import ConfigurationError
from .relation import Relation, check_identifier

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100


class Enumerator:
    """Pull-based sequence of (item, cursor) pairs."""

    def __init__(self, factory: Callable[[], Iterator[Tuple[Any, Cursor]]], description: str = ""):
        self._factory = factory
        self.description = description

    def __iter__(self) -> Iterator[Tuple[Any, Cursor]]:
        return iter(self._factory())

    def items(self) -> List[Any]:
        """Materialize the remaining items. Meant for tests and debugging."""
        return [item for item, _ in self]

    def __repr__(self) -> str:
        return f"<Enumerator {self.description}>"


def _positional_start(cursor: Cursor) -> int:
    if cursor is None:
        return 0
    if isinstance(cursor, bool) or not isinstance(cursor, int) or cursor < 0:
        raise ConfigurationError(f"Positional cursor must be a non-negative integer, got {cursor!r}")
    return cursor + 1


def _check_batch_size(batch_size: int) -> int:
    if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size < 1:
        raise ConfigurationError(f"batch_size must be a positive integer, got {batch_size!r}")
    return batch_size


class EnumeratorBuilder:
    def build_times_enumerator(self, n: int, cursor: Cursor = None) -> Enumerator:
        if isinstance(n, bool) or not isinstance(n, int) or n < 0:
            raise ConfigurationError(f"First argument must be a non-negative integer, got {n!r}")
        start = _positional_start(cursor)

        def produce():
            for index in range(start, n):
                yield index, index

        return Enumerator(produce, f"times({n}) from {start}")

    def build_once_enumerator(self, cursor: Cursor = None) -> Enumerator:
        return self.build_times_enumerator(1, cursor=cursor)

    def build_array_enumerator(self, items: Sequence[Any], cursor: Cursor = None) -> Enumerator:
        if isinstance(items, (str, bytes)) or not isinstance(items, SequenceABC):
            raise ConfigurationError(
                f"build_array_enumerator needs an indexable sequence, got {type(items).__name__}"
            )
        start = _positional_start(cursor)

        def produce():
            for index in range(start, len(items)):
                yield items[index], index

        return Enumerator(produce, f"array({len(items)}) from {start}")

    def _check_relation(self, relation: Relation, columns: Optional[Sequence[str]]) -> List[str]:
        if not isinstance(relation, Relation):
            raise ConfigurationError(f"Expected a Relation, got {type(relation).__name__}")
        if relation.ordered or relation.limited:
            raise ConfigurationError(
                "The relation cannot use ORDER BY or LIMIT due to the way the enumerator "
                "iterates over it. Pass the ordering columns and batch_size instead."
            )
        columns = [check_identifier(c) for c in (columns or [relation.primary_key])]
        if not columns:
            raise ConfigurationError("At least one ordering column is required")
        return columns

    def _pages(self, relation: Relation, columns: List[str], cursor: Cursor, batch_size: int):
        last = cursor
        while True:
            page = relation.page_after(columns, last, batch_size)
            logger.debug("fetched %d rows from %s after %r", len(page), relation.table, last)
            if not page:
                return
            last = cursor_key(page[-1], columns)
            yield page, last
            if len(page) < batch_size:
                return

    def build_record_enumerator(
        self,
        relation: Relation,
        cursor: Cursor = None,
        columns: Optional[Sequence[str]] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> Enumerator:
        columns = self._check_relation(relation, columns)
        batch_size = _check_batch_size(batch_size)

        def produce():
            for page, _ in self._pages(relation, columns, cursor, batch_size):
                for row in page:
                    yield row, cursor_key(row, columns)

        return Enumerator(produce, f"records({relation.table}) after {cursor!r}")

    def build_batch_enumerator(
        self,
        relation: Relation,
        cursor: Cursor = None,
        columns: Optional[Sequence[str]] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> Enumerator:
        columns = self._check_relation(relation, columns)
        batch_size = _check_batch_size(batch_size)

        def produce():
            for page, last in self._pages(relation, columns, cursor, batch_size):
                yield list(page), last

        return Enumerator(produce, f"batches({relation.table}, {batch_size}) after {cursor!r}")
