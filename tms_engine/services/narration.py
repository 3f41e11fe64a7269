"""
TMS Change Narration

Turns ticket mutations into an append-only, human-readable history.

A mutation is diffed against the pre-mutation snapshot as an ordered
list of FieldChange(field, old, new). Each change renders through a
per-field template; one request's changes batch into a single system
comment prefixed by the actor's role. Status and assignment changes get
their own comments. Unchanged values never produce a line.
"""

from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, NamedTuple, Optional, Sequence
from uuid import UUID

from ..models.ticket import Comment, Role, Ticket, TicketStatus, User
from ..utils.logger import get_logger

logger = get_logger(__name__)


class FieldChange(NamedTuple):
    field: str
    old: Any
    new: Any


CONTENT_FIELDS = ("title", "description")

OVERRIDE_FIELDS = (
    "initial_type",
    "resolved_type",
    "priority",
    "impact_score",
    "urgency_score",
    "final_score",
    "red_flag",
)


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _quoted(label: str) -> Callable[[FieldChange], str]:
    def render(change: FieldChange) -> str:
        return f'{label} changed from "{_plain(change.old)}" to "{_plain(change.new)}"'
    return render


def _number(label: str) -> Callable[[FieldChange], str]:
    def render(change: FieldChange) -> str:
        return f"{label} changed from {change.old} to {change.new}"
    return render


def _resolved_type(change: FieldChange) -> str:
    if change.new is None:
        return "Resolved Type was cleared"
    if change.old is None:
        return f'Resolved Type set to "{_plain(change.new)}"'
    return _quoted("Resolved Type")(change)


def _red_flag(change: FieldChange) -> str:
    return "Red Flag was set" if change.new else "Red Flag was cleared"


TEMPLATES: Dict[str, Callable[[FieldChange], str]] = {
    "title": _quoted("Title"),
    "description": lambda change: "Description was updated",
    "initial_type": _quoted("Initial Type"),
    "resolved_type": _resolved_type,
    "priority": _quoted("Priority"),
    "impact_score": _number("Impact Score"),
    "urgency_score": _number("Urgency Score"),
    "final_score": _number("Final Score"),
    "red_flag": _red_flag,
}


def diff(
    before: Ticket,
    updates: Dict[str, Any],
    fields: Sequence[str]
) -> List[FieldChange]:
    """
    Compare requested values against the snapshot, in declared field order.

    Fields absent from updates are untouched and never reported.
    """
    changes = []
    for field in fields:
        if field not in updates:
            continue
        old = getattr(before, field)
        new = updates[field]
        if _plain(old) != _plain(new):
            changes.append(FieldChange(field, old, new))
    return changes


def render(changes: Iterable[FieldChange]) -> List[str]:
    return [TEMPLATES[change.field](change) for change in changes]


def batch_body(header: str, role: Role, lines: Sequence[str]) -> Optional[str]:
    """One comment body for a request's changes, or None if nothing changed."""
    if not lines:
        return None
    return f"{header} by {role.value}:\n\n" + "\n".join(lines)


def status_body(old: TicketStatus, new: TicketStatus, role: Role) -> str:
    return f'Status changed from "{old.value}" to "{new.value}" by {role.value}'


def assigned_line(user: User) -> str:
    return f"Assigned to {user.name} ({user.role.value})"


def unassigned_line(user: User) -> str:
    return f"Unassigned {user.name} ({user.role.value})"


class NarrationService:
    """
    Appends system comments to a ticket's history.

    Emission is best effort: a failed write is logged and never undoes
    the mutation it describes.
    """

    def __init__(self, comment_repo):
        self.comment_repo = comment_repo

    async def add_system_comment(
        self,
        ticket_id: UUID,
        body: Optional[str]
    ) -> Optional[Comment]:
        if not body:
            return None

        comment = Comment(
            ticket_id=ticket_id,
            author_id=None,
            body=body,
            is_system_generated=True
        )
        try:
            await self.comment_repo.add(comment)
        except Exception as e:
            logger.warning(f"Failed to add narration comment to ticket {ticket_id}: {e}")
            return None

        return comment

    async def narrate_changes(
        self,
        ticket_id: UUID,
        header: str,
        role: Role,
        changes: Sequence[FieldChange]
    ) -> Optional[Comment]:
        return await self.add_system_comment(
            ticket_id, batch_body(header, role, render(changes))
        )

    async def narrate_status(
        self,
        ticket_id: UUID,
        old: TicketStatus,
        new: TicketStatus,
        role: Role
    ) -> Optional[Comment]:
        return await self.add_system_comment(ticket_id, status_body(old, new, role))

    async def narrate_assignment(
        self,
        ticket_id: UUID,
        role: Role,
        lines: Sequence[str]
    ) -> List[Comment]:
        """One comment per added or removed assignee."""
        comments = []
        for line in lines:
            comment = await self.add_system_comment(
                ticket_id, batch_body("Assignment updated", role, [line])
            )
            if comment:
                comments.append(comment)
        return comments
