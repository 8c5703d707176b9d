"""
Ticket id allocation.

Ticket ids are drawn uniformly from a 6-digit range and re-drawn while they
collide with ids in the active ledger. Cancelled ids return to the pool.
"""

import logging
import random
from typing import Iterable, List, Optional, Set

from ..exceptions import AllocationExhausted
from ..models.ledger import TICKET_ID_MIN, TICKET_ID_MAX

logger = logging.getLogger(__name__)


class TicketIDAllocator:
    """Collision-free random ticket ids, bounded number of draws per id."""

    def __init__(
        self,
        min_id: int = TICKET_ID_MIN,
        max_id: int = TICKET_ID_MAX,
        max_attempts: int = 1000,
        rng: Optional[random.Random] = None,
    ):
        if min_id > max_id:
            raise ValueError(f"Empty ticket id range {min_id}-{max_id}")
        self.min_id = min_id
        self.max_id = max_id
        self.max_attempts = max_attempts
        self.rng = rng or random.Random()

    def allocate(self, in_use: Iterable[int]) -> int:
        """
        Draw one ticket id not in in_use.

        Raises:
            AllocationExhausted: No free id within max_attempts draws
        """
        taken = set(in_use)
        for _ in range(self.max_attempts):
            candidate = self.rng.randint(self.min_id, self.max_id)
            if candidate not in taken:
                return candidate

        logger.error(f"Ticket id allocation exhausted after {self.max_attempts} draws")
        raise AllocationExhausted(self.max_attempts)

    def allocate_many(self, count: int, in_use: Iterable[int]) -> List[int]:
        """Draw count distinct ids, none of them in in_use."""
        taken: Set[int] = set(in_use)
        issued = []
        for _ in range(count):
            ticket_id = self.allocate(taken)
            taken.add(ticket_id)
            issued.append(ticket_id)
        return issued
