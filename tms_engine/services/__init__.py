"""
TMS Engine Services

Core business logic for ticket scoring and workflow.
"""

from .errors import (
    TicketEngineError,
    ValidationError,
    ForbiddenError,
    ForbiddenReason,
    NotFoundError,
    PreconditionError,
    ContractViolation,
)
from .policy import AuthorizationPolicy, Capability
from .narration import NarrationService, FieldChange
from .audit import AuditTrail
from .assignment import AssignmentService
from .workflow import TicketWorkflow, TicketCreate, TicketUpdate, FieldOverride
from .metrics import MetricsService
from .users import UserDirectory
from .effort import EffortChecklist
from .priority import PriorityQuestionnaire, PriorityScore

__all__ = [
    # Errors
    "TicketEngineError", "ValidationError", "ForbiddenError", "ForbiddenReason",
    "NotFoundError", "PreconditionError", "ContractViolation",

    # Authorization
    "AuthorizationPolicy", "Capability",

    # History
    "NarrationService", "FieldChange", "AuditTrail",

    # Workflow
    "AssignmentService", "TicketWorkflow", "TicketCreate", "TicketUpdate", "FieldOverride",

    # Reporting
    "MetricsService", "UserDirectory",

    # Scoring
    "EffortChecklist", "PriorityQuestionnaire", "PriorityScore",
]
