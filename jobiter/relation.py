"""
Query description over a SQLite table.

The record and batch enumerators own the ORDER BY and LIMIT of the queries
they run, so a Relation records whether the caller already set either one and
lets the enumerator builder refuse it.
"""
import re
import sqlite3
from typing import Any, List, Optional, Sequence, Tuple

from .cursor import Cursor, serialize_cursor
from .errors import ConfigurationError

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def check_identifier(name: str) -> str:
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ConfigurationError(f"Invalid SQL identifier: {name!r}")
    return name


class Relation:
    def __init__(
        self,
        conn: sqlite3.Connection,
        table: str,
        where: Optional[str] = None,
        params: Sequence[Any] = (),
        primary_key: str = "id",
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
    ):
        self.conn = conn
        self.table = check_identifier(table)
        self.primary_key = check_identifier(primary_key)
        self._where = where
        self._params = tuple(params)
        self._order_by = order_by
        self._limit = limit

    def _copy(self, **changes) -> "Relation":
        state = dict(
            where=self._where,
            params=self._params,
            primary_key=self.primary_key,
            order_by=self._order_by,
            limit=self._limit,
        )
        state.update(changes)
        return Relation(self.conn, self.table, **state)

    def where(self, clause: str, *params: Any) -> "Relation":
        if self._where:
            clause = f"({self._where}) AND ({clause})"
        return self._copy(where=clause, params=self._params + params)

    def order(self, clause: str) -> "Relation":
        return self._copy(order_by=clause)

    def limit(self, n: int) -> "Relation":
        return self._copy(limit=int(n))

    @property
    def ordered(self) -> bool:
        return self._order_by is not None

    @property
    def limited(self) -> bool:
        return self._limit is not None

    def _select(self) -> Tuple[str, List[Any]]:
        sql = f"SELECT * FROM {self.table}"
        params: List[Any] = list(self._params)
        if self._where:
            sql += f" WHERE ({self._where})"
        return sql, params

    def all(self) -> List[sqlite3.Row]:
        sql, params = self._select()
        sql += f" ORDER BY {self._order_by or self.primary_key}"
        if self._limit is not None:
            sql += " LIMIT ?"
            params.append(self._limit)
        return self.conn.execute(sql, params).fetchall()

    def page_after(self, columns: Sequence[str], cursor: Cursor, limit: int) -> List[sqlite3.Row]:
        """Next `limit` rows ordered by `columns`, keyed strictly after `cursor`."""
        cols = [check_identifier(c) for c in columns]
        sql, params = self._select()
        if cursor is not None:
            bound = serialize_cursor(cursor)
            if len(cols) == 1:
                condition = f"{cols[0]} > ?"
                params.append(bound)
            else:
                if not isinstance(bound, list) or len(bound) != len(cols):
                    raise ConfigurationError(
                        f"Cursor {cursor!r} does not match ordering columns {cols}"
                    )
                condition = f"({', '.join(cols)}) > ({', '.join('?' for _ in cols)})"
                params.extend(bound)
            sql += (" AND " if self._where else " WHERE ") + condition
        sql += f" ORDER BY {', '.join(cols)} LIMIT ?"
        params.append(int(limit))
        return self.conn.execute(sql, params).fetchall()

    def __repr__(self) -> str:
        return f"<Relation {self.table} where={self._where!r}>"
