"""
Car SQL.

Reads join the owner so responses carry `user_name` / `user_email`.
"""

from __future__ import annotations

from core.query import Filter, ListQuery, Page, Sort

from .schemas import CarQuery

SORTABLE_COLUMNS = ("id", "brand", "model", "year", "created_at")
UPDATABLE_COLUMNS = ("brand", "model", "year", "color", "license_plate", "is_available")
NULLABLE_COLUMNS = ("color",)

CAR_COLUMNS = "id, user_id, brand, model, year, color, license_plate, is_available, created_at, updated_at"

SELECT_ALL = """
SELECT c.*, u.name AS user_name, u.email AS user_email
FROM cars c
LEFT JOIN users u ON u.id = c.user_id
WHERE 1=1
"""

COUNT_ALL = """
SELECT count(*) AS total
FROM cars c
WHERE 1=1
"""

FIND_BY_ID = """
SELECT c.*, u.name AS user_name, u.email AS user_email
FROM cars c
LEFT JOIN users u ON u.id = c.user_id
WHERE c.id = $1
"""

FIND_BY_USER_ID = """
SELECT c.*, u.name AS user_name, u.email AS user_email
FROM cars c
LEFT JOIN users u ON u.id = c.user_id
WHERE c.user_id = $1
ORDER BY c.created_at DESC
"""

FIND_BY_LICENSE_PLATE = f"""
SELECT {CAR_COLUMNS}
FROM cars
WHERE license_plate = $1
"""

FIND_BY_LICENSE_PLATES = """
SELECT license_plate
FROM cars
WHERE license_plate = ANY($1::text[])
"""

INSERT = f"""
INSERT INTO cars (id, user_id, brand, model, year, color, license_plate)
VALUES ($1, $2, $3, $4, $5, $6, $7)
RETURNING {CAR_COLUMNS}
"""

DELETE = """
DELETE FROM cars
WHERE id = $1
"""

DELETE_BY_USER_ID = """
DELETE FROM cars
WHERE user_id = $1
"""

STATS_BY_USER = """
SELECT
  count(*) AS total_cars,
  count(*) FILTER (WHERE is_available = true) AS available_cars,
  count(DISTINCT brand) AS unique_brands,
  min(year) AS oldest_car_year,
  max(year) AS newest_car_year
FROM cars
WHERE user_id = $1
"""

SEARCH = """
SELECT c.*, u.name AS user_name, u.email AS user_email
FROM cars c
LEFT JOIN users u ON u.id = c.user_id
WHERE c.brand ILIKE $1
   OR c.model ILIKE $1
   OR c.color ILIKE $1
   OR c.license_plate ILIKE $1
   OR u.name ILIKE $1
ORDER BY c.created_at DESC
"""

# Conditional on the current owner: zero rows means "absent or not yours".
TRANSFER_OWNERSHIP = f"""
UPDATE cars
SET user_id = $1, updated_at = CURRENT_TIMESTAMP
WHERE id = $2
  AND user_id = $3
RETURNING {CAR_COLUMNS}
"""

VERIFY_OWNERSHIP = """
SELECT id
FROM cars
WHERE id = $1
  AND user_id = $2
"""

COUNT_BY_USER = """
SELECT count(*) AS count
FROM cars
WHERE user_id = $1
"""


def list_query(query: CarQuery) -> ListQuery:
    where = (
        Filter()
        .equals("c.user_id", query.user_id)
        .contains("c.brand", query.brand)
        .contains("c.model", query.model)
        .contains("c.color", query.color)
        .at_least("c.year", query.min_year)
        .at_most("c.year", query.max_year)
    )
    return ListQuery(
        select_sql=SELECT_ALL,
        count_sql=COUNT_ALL,
        filter=where,
        sort=Sort.resolve(query.sort_by, query.sort_order, allowed=SORTABLE_COLUMNS, prefix="c."),
        page=Page.of(query.page, query.limit),
    )
