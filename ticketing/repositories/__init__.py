"""
Ticketing Repositories

Persistence collaborators of the services.
"""

from .memory import (
    InMemoryRepository,
    InMemoryUserRepository,
    InMemoryContractRepository,
    InMemorySoftwareRepository,
    InMemoryTicketRepository,
    InMemoryTimelineRepository,
)

__all__ = [
    "InMemoryRepository", "InMemoryUserRepository", "InMemoryContractRepository",
    "InMemorySoftwareRepository", "InMemoryTicketRepository", "InMemoryTimelineRepository",
]
