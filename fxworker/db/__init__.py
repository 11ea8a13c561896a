"""
Database module.
Contains the connection handle, models, tube queue and rate store.
"""

from fxworker.db.connection import Database
from fxworker.db.models import Base, ExchangeRate, QueueEntry
from fxworker.db.queue import TubeQueue
from fxworker.db.store import RateStore

__all__ = [
    "Database",
    "Base",
    "QueueEntry",
    "ExchangeRate",
    "TubeQueue",
    "RateStore",
]
