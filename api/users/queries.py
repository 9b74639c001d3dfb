"""
User SQL.
"""

from __future__ import annotations

from core.query import Filter, ListQuery, Page, Sort

from .schemas import UserQuery

SORTABLE_COLUMNS = ("id", "name", "email", "created_at")
UPDATABLE_COLUMNS = ("email", "name", "age", "is_active")
NULLABLE_COLUMNS = ("age",)

SELECT_ALL = """
SELECT id, email, name, age, is_active, created_at, updated_at
FROM users
WHERE 1=1
"""

COUNT_ALL = """
SELECT count(*) AS total
FROM users
WHERE 1=1
"""

FIND_BY_ID = """
SELECT id, email, name, age, is_active, created_at, updated_at
FROM users
WHERE id = $1
"""

FIND_BY_EMAIL = """
SELECT id, email, name, age, is_active, created_at, updated_at
FROM users
WHERE email = $1
"""

FIND_BY_EMAILS = """
SELECT email
FROM users
WHERE email = ANY($1::text[])
"""

INSERT = """
INSERT INTO users (id, email, name, age)
VALUES ($1, $2, $3, $4)
RETURNING id, email, name, age, is_active, created_at, updated_at
"""

DELETE = """
DELETE FROM users
WHERE id = $1
"""

FIND_BY_ID_WITH_CARS = """
SELECT
  u.id, u.email, u.name, u.age, u.is_active, u.created_at, u.updated_at,
  COALESCE(
    json_agg(
      json_build_object(
        'id', c.id,
        'brand', c.brand,
        'model', c.model,
        'year', c.year,
        'color', c.color,
        'license_plate', c.license_plate,
        'is_available', c.is_available,
        'created_at', c.created_at,
        'updated_at', c.updated_at
      ) ORDER BY c.created_at DESC
    ) FILTER (WHERE c.id IS NOT NULL),
    '[]'::json
  )::text AS cars,
  count(c.id) AS car_count
FROM users u
LEFT JOIN cars c ON c.user_id = u.id
WHERE u.id = $1
GROUP BY u.id
"""


def list_query(query: UserQuery) -> ListQuery:
    where = (
        Filter()
        .contains("name", query.name)
        .contains("email", query.email)
        .at_least("age", query.min_age)
        .at_most("age", query.max_age)
    )
    return ListQuery(
        select_sql=SELECT_ALL,
        count_sql=COUNT_ALL,
        filter=where,
        sort=Sort.resolve(query.sort_by, query.sort_order, allowed=SORTABLE_COLUMNS),
        page=Page.of(query.page, query.limit),
    )
