"""Repository adapters - Database and in-process implementations."""

from .memory import InMemoryAccountStore, InMemoryTokenStore
from .postgres import PostgresAccountStore, PostgresTokenStore, run_migrations

__all__ = [
    "InMemoryAccountStore",
    "InMemoryTokenStore",
    "PostgresAccountStore",
    "PostgresTokenStore",
    "run_migrations",
]
