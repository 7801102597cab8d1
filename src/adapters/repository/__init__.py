"""Repository adapters - In-memory and database implementations."""

from .memory import InMemoryCredentialRepository, InMemoryOtpRepository
from .postgres import PostgresCredentialRepository, PostgresOtpRepository, run_migrations

__all__ = [
    "InMemoryCredentialRepository",
    "InMemoryOtpRepository",
    "PostgresCredentialRepository",
    "PostgresOtpRepository",
    "run_migrations",
]
