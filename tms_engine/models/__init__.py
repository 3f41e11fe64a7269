"""
TMS Engine Models
"""

from .ticket import (
    # Enums
    Role,
    TicketStatus,
    InitialType,
    ResolvedType,
    Priority,
    CLOSED_STATUSES,

    # Core models
    Ticket,
    Assignment,
    UserScore,
    Comment,
    AuditLog,

    # Supporting models
    User,
    Actor,
    UserRanking,

    utcnow,
)

__all__ = [
    "Role", "TicketStatus", "InitialType", "ResolvedType", "Priority", "CLOSED_STATUSES",
    "Ticket", "Assignment", "UserScore", "Comment", "AuditLog",
    "User", "Actor", "UserRanking",
    "utcnow",
]
