"""
Structured SQL builders.

Values never touch the SQL text: every value gets a `$n` slot and travels in
the params list. Identifiers (columns, tables, sort keys) come only from the
code or from an allow-list.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

OPERATORS = frozenset({"=", "ILIKE", ">=", "<="})


@dataclass(frozen=True)
class Clause:
    column: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in OPERATORS:
            raise ValueError(f"Unsupported operator: {self.op}")


@dataclass
class Filter:
    """
    AND-joined predicates. Adding a None value is a no-op, so callers can pass
    optional filter fields straight through.
    """

    clauses: list[Clause] = field(default_factory=list)

    def _add(self, column: str, op: str, value: Any) -> "Filter":
        if value is not None:
            self.clauses.append(Clause(column, op, value))
        return self

    def equals(self, column: str, value: Any) -> "Filter":
        return self._add(column, "=", value)

    def contains(self, column: str, value: str | None) -> "Filter":
        # Empty strings match everything; treat them as absent.
        return self._add(column, "ILIKE", f"%{value}%" if value else None)

    def at_least(self, column: str, value: Any) -> "Filter":
        return self._add(column, ">=", value)

    def at_most(self, column: str, value: Any) -> "Filter":
        return self._add(column, "<=", value)

    def render(self, start: int = 1) -> tuple[str, list[Any]]:
        """
        Return (`AND a = $1 AND b ILIKE $2 ...`, params). Empty filter gives "".
        """
        parts: list[str] = []
        params: list[Any] = []
        for n, clause in enumerate(self.clauses, start=start):
            parts.append(f"{clause.column} {clause.op} ${n}")
            params.append(clause.value)
        if not parts:
            return "", params
        return "AND " + " AND ".join(parts), params


@dataclass(frozen=True)
class Sort:
    column: str
    direction: str

    @classmethod
    def resolve(
        cls,
        sort_by: str | None,
        sort_order: str | None,
        *,
        allowed: Iterable[str],
        default: str = "id",
        prefix: str = "",
    ) -> "Sort":
        column = sort_by if sort_by in set(allowed) else default
        direction = "DESC" if (sort_order or "").upper() == "DESC" else "ASC"
        return cls(column=f"{prefix}{column}", direction=direction)

    def render(self) -> str:
        return f"ORDER BY {self.column} {self.direction}"


@dataclass(frozen=True)
class Page:
    page: int = 1
    limit: int = 10

    @classmethod
    def of(cls, page: int | None, limit: int | None) -> "Page":
        return cls(page=max(page or 1, 1), limit=max(limit or 10, 1))

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class BuiltListQuery:
    sql: str
    params: list[Any]
    count_sql: str
    count_params: list[Any]


@dataclass(frozen=True)
class ListQuery:
    """
    Listing + count pair sharing one WHERE predicate.

    `select_sql` and `count_sql` must end in a WHERE clause (e.g. `WHERE 1=1`)
    so the filter can be appended with AND.
    """

    select_sql: str
    count_sql: str
    filter: Filter
    sort: Sort
    page: Page

    def build(self) -> BuiltListQuery:
        where, params = self.filter.render()
        n = len(params)
        sql = "\n".join(
            part
            for part in (
                self.select_sql.rstrip(),
                where,
                self.sort.render(),
                f"LIMIT ${n + 1} OFFSET ${n + 2}",
            )
            if part
        )
        count_sql = "\n".join(part for part in (self.count_sql.rstrip(), where) if part)
        return BuiltListQuery(
            sql=sql,
            params=[*params, self.page.limit, self.page.offset],
            count_sql=count_sql,
            count_params=list(params),
        )


def build_update(
    table: str,
    changes: Mapping[str, Any],
    *,
    allowed_columns: Iterable[str],
    row_id: Any,
) -> tuple[str, list[Any]]:
    """
    Partial UPDATE touching only the given columns, always refreshing
    `updated_at`. With no changes only the timestamp is written.
    """
    allowed = set(allowed_columns)
    assignments = ["updated_at = CURRENT_TIMESTAMP"]
    params: list[Any] = []
    for column, value in changes.items():
        if column not in allowed:
            raise ValueError(f"Column not updatable: {column}")
        params.append(value)
        assignments.append(f"{column} = ${len(params)}")

    params.append(row_id)
    sql = (
        f"UPDATE {table}\n"
        f"SET {', '.join(assignments)}\n"
        f"WHERE id = ${len(params)}\n"
        "RETURNING *"
    )
    return sql, params
