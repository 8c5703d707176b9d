"""
Line-oriented stores for trips, seat occupancy and the two ledgers.
"""

from .files import read_text, atomic_write_text
from .journal import CommitJournal
from .records import money, format_money
from .synchronizer import PersistenceSynchronizer

__all__ = [
    "read_text",
    "atomic_write_text",
    "CommitJournal",
    "money",
    "format_money",
    "PersistenceSynchronizer",
]
