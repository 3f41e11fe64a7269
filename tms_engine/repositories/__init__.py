"""
TMS Engine record stores
"""

from .memory import (
    TicketFilters,
    TicketRepository,
    AssignmentRepository,
    UserScoreRepository,
    CommentRepository,
    AuditRepository,
    UserRepository,
    InMemoryStores,
)

__all__ = [
    "TicketFilters", "TicketRepository", "AssignmentRepository", "UserScoreRepository",
    "CommentRepository", "AuditRepository", "UserRepository", "InMemoryStores",
]
