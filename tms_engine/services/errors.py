"""
TMS Engine error taxonomy.

Services raise these; the API layer maps them to HTTP responses.
"""

from enum import Enum


class TicketEngineError(Exception):
    """Base class for all engine errors."""
    code = "SERVER_ERROR"


class ValidationError(TicketEngineError):
    """Malformed or missing required input. Operation not attempted."""
    code = "BAD_REQUEST"


class NotFoundError(TicketEngineError):
    """Referenced ticket or user does not exist."""
    code = "NOT_FOUND"


class PreconditionError(TicketEngineError):
    """Operation not legal in the ticket's current state."""
    code = "PRECONDITION_FAILED"


class ContractViolation(TicketEngineError):
    """
    Programmer error. Never reachable through the public operations;
    fail loudly if it is.
    """
    code = "CONTRACT_VIOLATION"


class ForbiddenReason(str, Enum):
    ROLE_NOT_PERMITTED_FOR_TYPE = "ROLE_NOT_PERMITTED_FOR_TYPE"
    NOT_TICKET_OWNER = "NOT_TICKET_OWNER"
    CONTACT_INFO_REQUIRED = "CONTACT_INFO_REQUIRED"
    INSUFFICIENT_ROLE = "INSUFFICIENT_ROLE"
    SELF_ASSIGNMENT_ONLY = "SELF_ASSIGNMENT_ONLY"


class ForbiddenError(TicketEngineError):
    """Role or ownership policy violation. No mutation occurs."""
    code = "FORBIDDEN"

    def __init__(self, reason: ForbiddenReason, message: str):
        super().__init__(message)
        self.reason = reason
