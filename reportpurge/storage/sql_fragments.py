"""
Small builder for parameterised WHERE expressions.

Fragments carry their SQL text and bound values together, so values never
end up concatenated into the statement. Column names are written by the
caller and are never user data.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Optional, Tuple


@dataclass(frozen=True)
class SqlFragment:
    """A SQL boolean expression and its bound parameters."""
    sql: str
    params: Tuple[Any, ...] = ()

    def grouped(self) -> 'SqlFragment':
        return SqlFragment(f"({self.sql})", self.params)


def _placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


def in_(column: str, values: Iterable[Any]) -> SqlFragment:
    values = tuple(values)
    if not values:
        raise ValueError(f"IN list for {column} is empty")
    return SqlFragment(f"{column} IN ({_placeholders(len(values))})", values)


def not_in(column: str, values: Iterable[Any]) -> SqlFragment:
    values = tuple(values)
    if not values:
        raise ValueError(f"NOT IN list for {column} is empty")
    return SqlFragment(f"{column} NOT IN ({_placeholders(len(values))})", values)


def like(column: str, pattern: str) -> SqlFragment:
    return SqlFragment(f"{column} LIKE ?", (pattern,))


def not_like(column: str, pattern: str) -> SqlFragment:
    return SqlFragment(f"{column} NOT LIKE ?", (pattern,))


def not_equal(column: str, value: Any) -> SqlFragment:
    return SqlFragment(f"{column} != ?", (value,))


def and_(*fragments: SqlFragment) -> SqlFragment:
    return _join(" AND ", fragments)


def or_(*fragments: SqlFragment) -> SqlFragment:
    return _join(" OR ", fragments)


def _join(operator: str, fragments: Iterable[SqlFragment]) -> SqlFragment:
    fragments = [f for f in fragments if f is not None]
    if not fragments:
        raise ValueError("Cannot join zero SQL fragments")
    if len(fragments) == 1:
        return fragments[0]
    sql = operator.join(f.sql for f in fragments)
    params = tuple(p for f in fragments for p in f.params)
    return SqlFragment(sql, params)


def where_clause(fragment: Optional[SqlFragment]) -> SqlFragment:
    """Render a full ``WHERE`` clause, or nothing for an empty restriction."""
    if fragment is None or not fragment.sql:
        return SqlFragment("")
    return SqlFragment(f"WHERE {fragment.sql}", fragment.params)
