"""
TMS Ticket Model

Core principles:
1. Ticket = a request or incident raised by anyone (even anonymous)
2. initial_type is chosen at creation, resolved_type is set once by triage
3. Assignees live in a join table, never on the ticket itself
4. Scores are derived, raw questionnaire blobs are kept for audit
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WireModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class Checklist(WireModel):
    """
    A section of yes/no answers.

    Unknown keys are ignored. Anything other than a real true or false,
    null included, counts as not selected.
    """
    model_config = ConfigDict(extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def _selected(cls, value):
        return value if isinstance(value, bool) else False


# =============================================================================
# ENUMS
# =============================================================================

class Role(str, Enum):
    ANONYMOUS = "Anonymous"
    USER = "User"
    SUPERVISOR = "Supervisor"
    MANAGER = "Manager"


class TicketStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELED = "canceled"


class InitialType(str, Enum):
    ISSUE_REPORT = "ISSUE_REPORT"
    CHANGE_REQUEST_NORMAL = "CHANGE_REQUEST_NORMAL"
    SERVICE_REQUEST_DATA_CORRECTION = "SERVICE_REQUEST_DATA_CORRECTION"
    SERVICE_REQUEST_DATA_EXTRACTION = "SERVICE_REQUEST_DATA_EXTRACTION"
    SERVICE_REQUEST_ADVISORY = "SERVICE_REQUEST_ADVISORY"
    SERVICE_REQUEST_GENERAL = "SERVICE_REQUEST_GENERAL"


class ResolvedType(str, Enum):
    EMERGENCY_CHANGE = "EMERGENCY_CHANGE"
    DATA_CORRECTION = "DATA_CORRECTION"


class Priority(str, Enum):
    P0 = "P0"  # final score 10
    P1 = "P1"  # 8-9
    P2 = "P2"  # 5-7
    P3 = "P3"  # 0-4


CLOSED_STATUSES = frozenset({TicketStatus.COMPLETED, TicketStatus.CANCELED})


# =============================================================================
# CORE MODELS
# =============================================================================

class Ticket(WireModel):
    """
    The core ticket entity.

    closed_at is set if and only if status is completed or canceled.
    resolved_type may only be set when initial_type is ISSUE_REPORT.
    """
    id: UUID = Field(default_factory=uuid4)
    code: Optional[int] = None  # Sequential, assigned by the store

    # Requester
    created_by: Optional[UUID] = None  # None for anonymous
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None

    # Classification
    initial_type: InitialType
    resolved_type: Optional[ResolvedType] = None
    status: TicketStatus = TicketStatus.PENDING

    # Content
    title: str = ""
    description: str = ""
    details: Dict[str, Any] = Field(default_factory=dict)  # Opaque, never interpreted

    # Scoring (derived)
    impact_score: int = 0
    urgency_score: int = 0
    final_score: int = 0
    red_flag: bool = False
    priority: Priority = Priority.P3
    effort_score: Optional[int] = None  # None until effort is assessed

    # Raw questionnaire input, stored verbatim for recompute/audit
    red_flags_data: Optional[Dict[str, Any]] = None
    impact_assessment_data: Optional[Dict[str, Any]] = None
    urgency_timeline_data: Optional[Dict[str, Any]] = None

    # Timestamps
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    closed_at: Optional[datetime] = None


class Assignment(WireModel):
    """One row of the ticket/assignee join table. Unique per (ticket, assignee)."""
    id: UUID = Field(default_factory=uuid4)
    ticket_id: UUID
    assignee_id: UUID
    assigned_at: datetime = Field(default_factory=utcnow)
    assigned_by: Optional[UUID] = None


class UserScore(WireModel):
    """
    A user's share of one completed ticket's points.

    Unique per (user, ticket). Replaced wholesale on every redistribution.
    """
    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    ticket_id: UUID
    points: float
    awarded_at: datetime = Field(default_factory=utcnow)


class Comment(WireModel):
    """
    Entry in the ticket's human-readable history.

    System-generated comments carry no author.
    """
    id: UUID = Field(default_factory=uuid4)
    ticket_id: UUID
    author_id: Optional[UUID] = None
    body: str
    is_system_generated: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class AuditLog(WireModel):
    """Structured, append-only record of a mutating operation."""
    id: UUID = Field(default_factory=uuid4)
    ticket_id: UUID
    actor_id: Optional[UUID] = None
    action: str
    after: Optional[Any] = None
    created_at: datetime = Field(default_factory=utcnow)


# =============================================================================
# SUPPORTING MODELS
# =============================================================================

class User(WireModel):
    """Directory entry for a person who can be assigned work."""
    id: UUID = Field(default_factory=uuid4)
    name: str
    email: str
    role: Role = Role.USER
    created_at: datetime = Field(default_factory=utcnow)


class Actor(WireModel):
    """
    The caller of an operation, as issued by the session layer.

    Anonymous actors have no id.
    """
    id: Optional[UUID] = None
    role: Role = Role.ANONYMOUS

    def owns(self, ticket: Ticket) -> bool:
        return self.id is not None and ticket.created_by == self.id


class UserRanking(WireModel):
    """Leaderboard row built from UserScore totals."""
    id: UUID
    name: str
    email: str
    role: Role
    total_points: float
    tickets_completed: int
    rank: int
