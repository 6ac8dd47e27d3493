# database/sql.py
"""
Small binding helpers so every SQL fragment travels together with its
parameters. A clause is only accepted when its '?' count matches the number
of values handed in, which keeps placeholder/param drift out of the repos.

Column and table names are always code constants (never user input); they are
still checked against a plain identifier pattern.
"""
from __future__ import annotations

import re
from typing import Any, Iterable, Mapping, Sequence, Tuple

_IDENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")

Params = Tuple[Any, ...]


def ident(name: str) -> str:
    if not _IDENT.match(name or ""):
        raise ValueError(f"Unsafe SQL identifier: {name!r}")
    return name


def _check(clause: str, params: Sequence[Any]) -> None:
    expected = clause.count("?")
    if expected != len(params):
        raise ValueError(
            f"Placeholder mismatch in {clause!r}: {expected} '?' vs {len(params)} params"
        )


def placeholders(n: int) -> str:
    return ", ".join("?" for _ in range(n))


class Where:
    """
    AND-joined WHERE builder.

        w = Where()
        w.eq("order_booker_id", ob_id)
        w.date_range("date", "2024-03-01", "2024-03-31")
        rows = db.select(f"SELECT * FROM daily_entries{w.sql} ORDER BY date DESC", w.params)
    """

    def __init__(self) -> None:
        self._clauses: list[str] = []
        self._params: list[Any] = []

    def add(self, clause: str, *params: Any) -> "Where":
        _check(clause, params)
        self._clauses.append(clause)
        self._params.extend(params)
        return self

    def eq(self, column: str, value: Any) -> "Where":
        if value is not None:
            self.add(f"{ident(column)} = ?", value)
        return self

    def gte(self, column: str, value: Any) -> "Where":
        if value is not None:
            self.add(f"{ident(column)} >= ?", value)
        return self

    def lte(self, column: str, value: Any) -> "Where":
        if value is not None:
            self.add(f"{ident(column)} <= ?", value)
        return self

    def date_range(self, column: str, date_from: str | None, date_to: str | None) -> "Where":
        """Inclusive on both ends; either side may be open."""
        return self.gte(column, date_from).lte(column, date_to)

    def in_(self, column: str, values: Iterable[Any] | None) -> "Where":
        """Inclusion filter; an empty/None collection means 'no filter'."""
        vals = list(values or [])
        if vals:
            self.add(f"{ident(column)} IN ({placeholders(len(vals))})", *vals)
        return self

    def like_any(self, columns: Sequence[str], term: str | None) -> "Where":
        """Case-insensitive substring match over any of `columns`."""
        if term is None or not str(term).strip():
            return self
        pattern = f"%{str(term).strip()}%"
        parts = [f"{ident(c)} LIKE ?" for c in columns]
        self.add("(" + " OR ".join(parts) + ")", *([pattern] * len(parts)))
        return self

    @property
    def sql(self) -> str:
        return (" WHERE " + " AND ".join(self._clauses)) if self._clauses else ""

    @property
    def params(self) -> Params:
        return tuple(self._params)

    def __bool__(self) -> bool:
        return bool(self._clauses)


class Assignments:
    """Column = ? pairs for UPDATE statements."""

    def __init__(self) -> None:
        self._cols: list[str] = []
        self._params: list[Any] = []

    def set(self, column: str, value: Any) -> "Assignments":
        self._cols.append(ident(column))
        self._params.append(value)
        return self

    def update(self, values: Mapping[str, Any]) -> "Assignments":
        for col, val in values.items():
            self.set(col, val)
        return self

    @property
    def sql(self) -> str:
        return ", ".join(f"{c} = ?" for c in self._cols)

    @property
    def params(self) -> Params:
        return tuple(self._params)

    def __bool__(self) -> bool:
        return bool(self._cols)


def insert(table: str, values: Mapping[str, Any]) -> Tuple[str, Params]:
    cols = [ident(c) for c in values]
    sql = f"INSERT INTO {ident(table)} ({', '.join(cols)}) VALUES ({placeholders(len(cols))})"
    return sql, tuple(values.values())


def update(table: str, assignments: Assignments, key_column: str, key: Any) -> Tuple[str, Params]:
    if not assignments:
        raise ValueError("UPDATE with no assignments")
    sql = f"UPDATE {ident(table)} SET {assignments.sql} WHERE {ident(key_column)} = ?"
    return sql, assignments.params + (key,)


def order_by(
    sort_by: str | None,
    columns: Mapping[str, str],
    default: str,
    descending: bool = False,
) -> str:
    """
    Map a public sort key to a column. Unknown keys fall back to `default`,
    which is used verbatim (it may already carry ASC/DESC and tie-breakers).
    """
    if sort_by and sort_by in columns:
        return f" ORDER BY {ident(columns[sort_by])} {'DESC' if descending else 'ASC'}"
    return f" ORDER BY {default}"


__all__ = [
    "Where",
    "Assignments",
    "insert",
    "update",
    "order_by",
    "placeholders",
    "ident",
]
