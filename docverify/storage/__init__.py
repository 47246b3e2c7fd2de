"""Storage implementations.

Concrete PostgreSQL access (via SQLAlchemy) lives here so the loader and the
executor stay free of driver details.
"""

from .postgres import PostgresConfig, PostgresRunner, Sandbox
