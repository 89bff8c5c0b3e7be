"""Activity storage backends.

    ActivityStore         — abstract contract used by the sync engine
    InMemoryActivityStore — dict-backed store for tests and dry runs
    PostgresActivityStore — asyncpg production store
"""

from src.childcare.storage.base import ActivityStore
from src.childcare.storage.memory import InMemoryActivityStore
from src.childcare.storage.postgres import PostgresActivityStore

__all__ = [
    "ActivityStore",
    "InMemoryActivityStore",
    "PostgresActivityStore",
]
