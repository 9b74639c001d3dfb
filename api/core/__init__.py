"""
Cross-cutting building blocks shared by the `users/` and `cars/` features:
configuration, logging, the database pool, SQL builders, metrics and errors.

Feature SQL and business rules stay in their own packages.
"""
