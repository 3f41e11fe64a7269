"""
TMS Ticket Workflow

The ticket state machine plus every other path that mutates a ticket.

States:
    pending     -> in_progress, canceled
    in_progress -> completed, canceled, pending (reopen)
    completed   -> in_progress (reopen)
    canceled    -> (terminal)

Ordering rule for every operation: authorization and preconditions are
checked before anything is persisted or narrated. A failed check leaves
the ticket exactly as it was.
"""

from math import ceil
from types import MappingProxyType
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import ConfigDict, Field

from ..models.ticket import (
    CLOSED_STATUSES,
    Actor,
    Comment,
    InitialType,
    Priority,
    ResolvedType,
    Ticket,
    TicketStatus,
    WireModel,
    utcnow,
)
from ..repositories.memory import TicketFilters
from ..utils.logger import get_logger
from . import effort, narration, priority
from .assignment import AssignmentService
from .audit import AuditTrail
from .effort import EffortChecklist
from .errors import NotFoundError, PreconditionError, ValidationError
from .narration import NarrationService
from .policy import AuthorizationPolicy
from .priority import PriorityQuestionnaire

logger = get_logger(__name__)


TRANSITIONS = MappingProxyType({
    TicketStatus.PENDING: frozenset({TicketStatus.IN_PROGRESS, TicketStatus.CANCELED}),
    TicketStatus.IN_PROGRESS: frozenset({
        TicketStatus.COMPLETED,
        TicketStatus.CANCELED,
        TicketStatus.PENDING,
    }),
    TicketStatus.COMPLETED: frozenset({TicketStatus.IN_PROGRESS}),
    TicketStatus.CANCELED: frozenset(),
})


def can_transition(old: TicketStatus, new: TicketStatus) -> bool:
    return new in TRANSITIONS[old]


# =============================================================================
# REQUEST MODELS
# =============================================================================

class TicketCreate(WireModel):
    model_config = ConfigDict(extra="ignore")

    title: str = ""
    description: str = ""
    initial_type: InitialType
    details: Dict[str, Any] = Field(default_factory=dict)
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    priority_input: Optional[PriorityQuestionnaire] = None


class TicketUpdate(WireModel):
    """Content edit. Omitted fields stay as they are."""
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    description: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class FieldOverride(WireModel):
    """Administrative correction of classification and scores."""
    model_config = ConfigDict(extra="ignore")

    initial_type: Optional[InitialType] = None
    resolved_type: Optional[ResolvedType] = None
    priority: Optional[Priority] = None
    impact_score: Optional[int] = Field(None, ge=0)
    urgency_score: Optional[int] = Field(None, ge=0)
    final_score: Optional[int] = Field(None, ge=0)
    red_flag: Optional[bool] = None


class TicketWorkflow:
    """
    Creates tickets and moves them through their lifecycle.

    Every successful mutation leaves two traces: a narration comment
    (human-readable) and an audit record (structured).
    """

    def __init__(
        self,
        ticket_repo,
        comment_repo,
        assignments: AssignmentService,
        narration_service: NarrationService,
        audit: AuditTrail,
        policy: Optional[AuthorizationPolicy] = None
    ):
        self.ticket_repo = ticket_repo
        self.comment_repo = comment_repo
        self.assignments = assignments
        self.narration = narration_service
        self.audit = audit
        self.policy = policy or AuthorizationPolicy()

    # =========================================================================
    # Creation and reads
    # =========================================================================

    async def create_ticket(self, actor: Actor, request: TicketCreate) -> Ticket:
        """
        Open a new ticket in status pending.

        Priority comes from the questionnaire when one is supplied; the
        raw questionnaire is stored next to the derived numbers.
        """
        self.policy.require_create(actor, request.initial_type, request.contact_email)

        ticket = Ticket(
            created_by=actor.id,
            contact_email=request.contact_email,
            contact_phone=request.contact_phone,
            initial_type=request.initial_type,
            status=TicketStatus.PENDING,
            title=request.title,
            description=request.description,
            details=request.details,
        )

        if request.priority_input is not None:
            score = priority.compute(request.priority_input)
            ticket.impact_score = score.impact
            ticket.urgency_score = score.urgency
            ticket.final_score = score.final
            ticket.red_flag = score.red_flag
            ticket.priority = score.priority
            for name, blob in priority.raw_blobs(request.priority_input).items():
                setattr(ticket, name, blob)

        ticket = await self.ticket_repo.add(ticket)
        await self.audit.record(ticket.id, actor, "create_ticket", ticket)
        logger.info(
            f"Ticket #{ticket.code} created as {ticket.initial_type.value} "
            f"with priority {ticket.priority.value}"
        )
        return ticket

    async def get_ticket(self, ticket_id: UUID) -> Ticket:
        ticket = await self.ticket_repo.get(ticket_id)
        if ticket is None:
            raise NotFoundError(f"ticket {ticket_id} not found")
        return ticket

    async def ticket_detail(self, ticket_id: UUID) -> Dict[str, Any]:
        """Ticket with its assignees and full comment history."""
        ticket = await self.get_ticket(ticket_id)
        return {
            "ticket": ticket,
            "assignees": await self.assignments.assignees(ticket_id),
            "comments": await self.comment_repo.list_for_ticket(ticket_id),
        }

    async def list_tickets(
        self,
        status: Optional[TicketStatus] = None,
        priority_filter: Optional[Priority] = None,
        assignee_id: Optional[UUID] = None,
        created_by: Optional[UUID] = None,
        query: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
        max_page_size: int = 100
    ) -> Dict[str, Any]:
        page = max(1, page)
        page_size = page_size if page_size > 0 else 20
        page_size = min(page_size, max_page_size)

        ticket_ids = None
        if assignee_id is not None:
            ticket_ids = await self.assignments.assignment_repo.ticket_ids_for_assignee(assignee_id)

        filters = TicketFilters(
            status=status,
            priority=priority_filter,
            created_by=created_by,
            query=query,
            ticket_ids=ticket_ids
        )
        items, total = await self.ticket_repo.list(
            filters, offset=(page - 1) * page_size, limit=page_size
        )
        return {
            "items": items,
            "page": page,
            "page_size": page_size,
            "total": total,
            "total_pages": ceil(total / page_size) if total else 0,
        }

    # =========================================================================
    # Edits
    # =========================================================================

    async def update_ticket(
        self,
        ticket_id: UUID,
        actor: Actor,
        request: TicketUpdate
    ) -> Ticket:
        """Edit title, description or details. Users may only edit their own."""
        ticket = await self.get_ticket(ticket_id)
        self.policy.require_edit(actor, ticket)

        updates = request.model_dump(exclude_none=True)
        changes = narration.diff(ticket, updates, narration.CONTENT_FIELDS)
        details_changed = "details" in updates and updates["details"] != ticket.details

        if not changes and not details_changed:
            return ticket

        values = {change.field: change.new for change in changes}
        if details_changed:
            values["details"] = updates["details"]
        ticket = await self._write(ticket_id, **values)

        await self.narration.narrate_changes(ticket_id, "Ticket updated", actor.role, changes)
        await self.audit.record(ticket_id, actor, "update_ticket", request)
        return ticket

    async def update_fields(
        self,
        ticket_id: UUID,
        actor: Actor,
        request: FieldOverride
    ) -> Ticket:
        """
        Set classification and score fields directly, bypassing the scorers.

        Supervisor/Manager only. All changed fields are narrated in one
        comment.
        """
        self.policy.require_field_override(actor)
        ticket = await self.get_ticket(ticket_id)

        updates = request.model_dump(exclude_none=True)
        effective_type = updates.get("initial_type", ticket.initial_type)
        if effective_type != InitialType.ISSUE_REPORT:
            if "resolved_type" in updates:
                raise ValidationError(
                    "resolvedType can only be set on ISSUE_REPORT tickets"
                )
            if ticket.resolved_type is not None:
                updates["resolved_type"] = None

        changes = narration.diff(ticket, updates, narration.OVERRIDE_FIELDS)
        if not changes:
            return ticket

        ticket = await self._write(
            ticket_id, **{change.field: change.new for change in changes}
        )

        await self.narration.narrate_changes(
            ticket_id, "Ticket fields updated", actor.role, changes
        )
        await self.audit.record(ticket_id, actor, "update_ticket_fields", request)
        return ticket

    async def classify(
        self,
        ticket_id: UUID,
        actor: Actor,
        resolved_type: ResolvedType
    ) -> Ticket:
        """Give an ISSUE_REPORT its resolved type. Allowed exactly once."""
        self.policy.require_classify(actor)
        ticket = await self.get_ticket(ticket_id)

        if ticket.initial_type != InitialType.ISSUE_REPORT:
            raise ValidationError("only ISSUE_REPORT can be classified")
        if ticket.resolved_type is not None:
            raise PreconditionError(
                f"ticket already classified as {ticket.resolved_type.value}"
            )

        change = narration.FieldChange("resolved_type", None, resolved_type)
        ticket = await self._write(ticket_id, resolved_type=resolved_type)

        await self.narration.narrate_changes(
            ticket_id, "Ticket classified", actor.role, [change]
        )
        await self.audit.record(
            ticket_id, actor, "classify", {"resolvedType": resolved_type.value}
        )
        return ticket

    async def add_comment(
        self,
        ticket_id: UUID,
        actor: Actor,
        body: str
    ) -> Comment:
        """Free-text comment from a person. Anonymous comments have no author."""
        if not body or not body.strip():
            raise ValidationError("invalid comment")
        await self.get_ticket(ticket_id)

        comment = Comment(ticket_id=ticket_id, author_id=actor.id, body=body)
        await self.comment_repo.add(comment)
        await self.audit.record(ticket_id, actor, "add_comment", {"body": body})
        return comment

    # =========================================================================
    # State machine
    # =========================================================================

    async def change_status(
        self,
        ticket_id: UUID,
        actor: Actor,
        new_status: TicketStatus,
        effort_checklist: Optional[EffortChecklist] = None
    ) -> Ticket:
        """
        Move a ticket to a new status.

        Entering completed requires at least one assignee and triggers the
        point distribution; leaving completed withdraws the points.
        """
        ticket = await self.get_ticket(ticket_id)
        self.policy.require_status_change(actor, ticket, new_status)

        old_status = ticket.status
        if new_status == old_status:
            return ticket

        if not can_transition(old_status, new_status):
            raise PreconditionError(
                f"cannot move ticket from {old_status.value} to {new_status.value}"
            )

        assignee_ids: List[UUID] = []
        if new_status == TicketStatus.COMPLETED:
            assignee_ids = await self.assignments.assignee_ids(ticket_id)
            if not assignee_ids:
                raise PreconditionError("cannot complete a ticket with no assignees")

        extra = {}
        if new_status == TicketStatus.COMPLETED and effort_checklist is not None:
            extra["effort_score"] = effort.compute_base(effort_checklist)
        closed_at = utcnow() if new_status in CLOSED_STATUSES else None
        ticket = await self.ticket_repo.update_status(
            ticket_id, old_status, new_status, closed_at, **extra
        )
        if ticket is None:
            raise PreconditionError(
                f"ticket {ticket_id} changed status concurrently, expected {old_status.value}"
            )

        await self.narration.narrate_status(ticket_id, old_status, new_status, actor.role)
        await self.audit.record(
            ticket_id, actor, "status_change", {"status": new_status.value}
        )

        if new_status == TicketStatus.COMPLETED:
            total = self.assignments.completion_total(
                ticket, len(assignee_ids), effort_checklist
            )
            await self.assignments.distribute_points(ticket_id, total, assignee_ids)
        elif old_status == TicketStatus.COMPLETED:
            await self.assignments.clear_points(ticket_id)

        return ticket

    # =========================================================================
    # Private helpers
    # =========================================================================

    async def _write(self, ticket_id: UUID, **values) -> Ticket:
        """Write only the given columns plus updated_at, returning the fresh row."""
        ticket = await self.ticket_repo.update(ticket_id, updated_at=utcnow(), **values)
        if ticket is None:
            raise NotFoundError(f"ticket {ticket_id} not found")
        return ticket
