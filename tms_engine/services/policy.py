"""
TMS Authorization Policy

Who may do what to a ticket.

Rules live in immutable role -> capability tables built once at import.
Every check either returns or raises ForbiddenError with a reason that
tells the caller which rule failed:
- ROLE_NOT_PERMITTED_FOR_TYPE: the role cannot open this ticket type
- CONTACT_INFO_REQUIRED: anonymous requester left no contact email
- NOT_TICKET_OWNER: a User touching someone else's ticket
- INSUFFICIENT_ROLE: the operation needs Supervisor or Manager
- SELF_ASSIGNMENT_ONLY: a User (un)assigning somebody else
"""

from enum import Enum
from types import MappingProxyType
from typing import Iterable, Optional
from uuid import UUID

from ..models.ticket import Actor, InitialType, Role, Ticket, TicketStatus
from .errors import ForbiddenError, ForbiddenReason


class Capability(str, Enum):
    EDIT_ANY = "edit_any"              # Content edits and cancel on any ticket
    EDIT_OWN = "edit_own"              # Content edits and cancel on own tickets
    CHANGE_STATUS = "change_status"
    OVERRIDE_FIELDS = "override_fields"
    CLASSIFY = "classify"
    ASSIGN_ANY = "assign_any"
    ASSIGN_SELF = "assign_self"
    SEARCH_USERS = "search_users"


ROLE_CAPABILITIES = MappingProxyType({
    Role.ANONYMOUS: frozenset(),
    Role.USER: frozenset({
        Capability.EDIT_OWN,
        Capability.CHANGE_STATUS,
        Capability.ASSIGN_SELF,
        Capability.SEARCH_USERS,
    }),
    Role.SUPERVISOR: frozenset(Capability),
    Role.MANAGER: frozenset(Capability),
})

CREATABLE_TYPES = MappingProxyType({
    Role.ANONYMOUS: frozenset({InitialType.ISSUE_REPORT}),
    Role.USER: frozenset({
        InitialType.CHANGE_REQUEST_NORMAL,
        InitialType.SERVICE_REQUEST_DATA_EXTRACTION,
        InitialType.SERVICE_REQUEST_ADVISORY,
        InitialType.SERVICE_REQUEST_GENERAL,
        InitialType.ISSUE_REPORT,
    }),
    Role.SUPERVISOR: frozenset(InitialType),
    Role.MANAGER: frozenset(InitialType),
})

# Roles that must leave a way to be contacted back
CONTACT_REQUIRED = frozenset({Role.ANONYMOUS})


def has(actor: Actor, capability: Capability) -> bool:
    return capability in ROLE_CAPABILITIES.get(actor.role, frozenset())


def can_create(role: Role, initial_type: InitialType) -> bool:
    return initial_type in CREATABLE_TYPES.get(role, frozenset())


class AuthorizationPolicy:
    """
    Guard for ticket operations.

    Stateless; the tables above hold all the rules.
    """

    def require_create(
        self,
        actor: Actor,
        initial_type: InitialType,
        contact_email: Optional[str] = None
    ) -> None:
        if not can_create(actor.role, initial_type):
            if actor.role == Role.ANONYMOUS:
                message = "anonymous can only open issue reports"
            else:
                message = "insufficient permissions for this ticket type"
            raise ForbiddenError(
                ForbiddenReason.ROLE_NOT_PERMITTED_FOR_TYPE,
                f"{message} ({actor.role.value} cannot create {initial_type.value})"
            )

        if actor.role in CONTACT_REQUIRED and not (contact_email or "").strip():
            raise ForbiddenError(
                ForbiddenReason.CONTACT_INFO_REQUIRED,
                "contact email required for anonymous users"
            )

    def require_edit(self, actor: Actor, ticket: Ticket) -> None:
        """Title/description/details edits."""
        self._require_owner_or_any(actor, ticket, "edit")

    def require_status_change(
        self,
        actor: Actor,
        ticket: Ticket,
        new_status: TicketStatus
    ) -> None:
        if not has(actor, Capability.CHANGE_STATUS):
            raise ForbiddenError(
                ForbiddenReason.INSUFFICIENT_ROLE,
                "authentication required to change ticket status"
            )
        if new_status == TicketStatus.CANCELED:
            self._require_owner_or_any(actor, ticket, "cancel")

    def require_field_override(self, actor: Actor) -> None:
        if not has(actor, Capability.OVERRIDE_FIELDS):
            raise ForbiddenError(
                ForbiddenReason.INSUFFICIENT_ROLE,
                "only supervisors and managers can update ticket fields"
            )

    def require_classify(self, actor: Actor) -> None:
        if not has(actor, Capability.CLASSIFY):
            raise ForbiddenError(
                ForbiddenReason.INSUFFICIENT_ROLE,
                "only supervisors and managers can classify tickets"
            )

    def require_assignment(self, actor: Actor, user_ids: Iterable[UUID]) -> None:
        """Same rule for assign and unassign."""
        if has(actor, Capability.ASSIGN_ANY):
            return

        if not has(actor, Capability.ASSIGN_SELF):
            raise ForbiddenError(
                ForbiddenReason.INSUFFICIENT_ROLE,
                "authentication required to change assignments"
            )

        others = [u for u in user_ids if u != actor.id]
        if others:
            raise ForbiddenError(
                ForbiddenReason.SELF_ASSIGNMENT_ONLY,
                "only supervisors/managers can assign others"
            )

    def require_user_lookup(self, actor: Actor) -> None:
        if not has(actor, Capability.SEARCH_USERS):
            raise ForbiddenError(
                ForbiddenReason.INSUFFICIENT_ROLE,
                "authentication required to search users"
            )

    # =========================================================================
    # Private helpers
    # =========================================================================

    def _require_owner_or_any(self, actor: Actor, ticket: Ticket, action: str) -> None:
        if has(actor, Capability.EDIT_ANY):
            return

        if not has(actor, Capability.EDIT_OWN):
            raise ForbiddenError(
                ForbiddenReason.INSUFFICIENT_ROLE,
                f"authentication required to {action} tickets"
            )

        if not actor.owns(ticket):
            raise ForbiddenError(
                ForbiddenReason.NOT_TICKET_OWNER,
                f"can only {action} your own tickets"
            )
