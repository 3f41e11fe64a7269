"""
TMS Assignment & Point Distribution

A ticket has any number of assignees. When it is completed its point
total is split evenly across whoever is assigned at that moment.

Distribution is wholesale replace, never an incremental merge: every run
deletes the ticket's score rows and writes one fresh row per assignee.
Running it twice with the same inputs leaves the same rows behind.
"""

from typing import Iterable, List, Optional, Sequence
from uuid import UUID

from ..models.ticket import Actor, Assignment, Ticket, TicketStatus, User, UserScore
from ..utils.logger import get_logger
from . import effort
from .audit import AuditTrail
from .effort import EffortChecklist
from .errors import ContractViolation, NotFoundError, ValidationError
from .narration import NarrationService, assigned_line, unassigned_line
from .policy import AuthorizationPolicy

logger = get_logger(__name__)


def _unique(user_ids: Iterable[UUID]) -> List[UUID]:
    seen = []
    for user_id in user_ids:
        if user_id not in seen:
            seen.append(user_id)
    return seen


class AssignmentService:
    """
    Maintains the assignee set per ticket and the points it earns.

    Concurrent assigns against the same ticket rely on the store's
    insert-ignore-duplicate semantics, not on locks.
    """

    def __init__(
        self,
        ticket_repo,
        assignment_repo,
        score_repo,
        user_repo,
        narration: NarrationService,
        audit: AuditTrail,
        policy: Optional[AuthorizationPolicy] = None
    ):
        self.ticket_repo = ticket_repo
        self.assignment_repo = assignment_repo
        self.score_repo = score_repo
        self.user_repo = user_repo
        self.narration = narration
        self.audit = audit
        self.policy = policy or AuthorizationPolicy()

    async def assign(
        self,
        ticket_id: UUID,
        user_ids: Sequence[UUID],
        actor: Actor
    ) -> List[User]:
        """
        Add users to the ticket. Already-assigned users are ignored.

        Returns the full assignee list after the change.
        """
        user_ids = _unique(user_ids)
        if not user_ids:
            raise ValidationError("no assignees specified")

        await self._get_ticket(ticket_id)
        self.policy.require_assignment(actor, user_ids)
        users = await self._get_users(user_ids)

        added = []
        for user_id in user_ids:
            inserted = await self.assignment_repo.add(Assignment(
                ticket_id=ticket_id,
                assignee_id=user_id,
                assigned_by=actor.id
            ))
            if inserted:
                added.append(users[user_id])

        if added:
            ticket = await self._touch(ticket_id)
            await self.narration.narrate_assignment(
                ticket_id, actor.role, [assigned_line(u) for u in added]
            )
            await self.audit.record(
                ticket_id, actor, "assign",
                {"assigneeIds": [str(u.id) for u in added]}
            )
            if ticket.status == TicketStatus.COMPLETED:
                await self.redistribute(ticket)

        return await self.assignees(ticket_id)

    async def unassign(
        self,
        ticket_id: UUID,
        user_ids: Sequence[UUID],
        actor: Actor
    ) -> List[User]:
        """
        Remove users from the ticket. Users not assigned are ignored.

        Returns the full assignee list after the change.
        """
        user_ids = _unique(user_ids)
        if not user_ids:
            raise ValidationError("no assignees specified")

        await self._get_ticket(ticket_id)
        self.policy.require_assignment(actor, user_ids)

        current = {u.id: u for u in await self.assignees(ticket_id)}
        removed = []
        for user_id in user_ids:
            if user_id in current and await self.assignment_repo.remove(ticket_id, user_id):
                removed.append(current[user_id])

        if removed:
            ticket = await self._touch(ticket_id)
            await self.narration.narrate_assignment(
                ticket_id, actor.role, [unassigned_line(u) for u in removed]
            )
            await self.audit.record(
                ticket_id, actor, "unassign",
                {"assigneeIds": [str(u.id) for u in removed]}
            )
            if ticket.status == TicketStatus.COMPLETED:
                await self.redistribute(ticket)

        return await self.assignees(ticket_id)

    async def assignee_ids(self, ticket_id: UUID) -> List[UUID]:
        rows = await self.assignment_repo.list_for_ticket(ticket_id)
        return [row.assignee_id for row in rows]

    async def assignees(self, ticket_id: UUID) -> List[User]:
        ids = await self.assignee_ids(ticket_id)
        users = await self.user_repo.get_many(ids)
        return [users[i] for i in ids if i in users]

    # =========================================================================
    # Points
    # =========================================================================

    async def distribute_points(
        self,
        ticket_id: UUID,
        total_points: float,
        assignee_ids: Sequence[UUID]
    ) -> List[UserScore]:
        """
        Replace the ticket's score rows with an even split of total_points.

        Zero assignees is a caller bug: the completion precondition makes
        it unreachable, so it fails loudly instead of skipping.
        """
        assignee_ids = _unique(assignee_ids)
        if not assignee_ids:
            logger.error(f"Point distribution for ticket {ticket_id} called with no assignees")
            raise ContractViolation(
                f"cannot distribute points for ticket {ticket_id} with no assignees"
            )

        await self.score_repo.remove_for_ticket(ticket_id)

        share = total_points / len(assignee_ids)
        scores = []
        for assignee_id in assignee_ids:
            score = UserScore(user_id=assignee_id, ticket_id=ticket_id, points=share)
            await self.score_repo.upsert(score)
            scores.append(score)

        logger.info(
            f"Distributed {total_points} points on ticket {ticket_id} "
            f"across {len(assignee_ids)} assignee(s)"
        )
        return scores

    def completion_total(
        self,
        ticket: Ticket,
        assignee_count: int,
        checklist: Optional[EffortChecklist] = None
    ) -> float:
        """
        Points a completed ticket is worth.

        - effort checklist supplied with the completion: base + bonus
        - effort recorded earlier on the ticket: same formula on that base
        - neither: the priority final score (legacy path)
        """
        if checklist is not None:
            return effort.total_points_for_distribution(checklist, assignee_count)
        if ticket.effort_score is not None:
            return effort.total_for_base(ticket.effort_score, assignee_count)
        return float(ticket.final_score)

    async def redistribute(
        self,
        ticket: Ticket,
        checklist: Optional[EffortChecklist] = None
    ) -> List[UserScore]:
        """Recompute a completed ticket's distribution for its current assignees."""
        ids = await self.assignee_ids(ticket.id)
        if not ids:
            await self.clear_points(ticket.id)
            return []
        total = self.completion_total(ticket, len(ids), checklist)
        return await self.distribute_points(ticket.id, total, ids)

    async def clear_points(self, ticket_id: UUID) -> None:
        removed = await self.score_repo.remove_for_ticket(ticket_id)
        if removed:
            logger.info(f"Removed {removed} score row(s) from ticket {ticket_id}")

    async def points_for_ticket(self, ticket_id: UUID) -> List[UserScore]:
        await self._get_ticket(ticket_id)
        return await self.score_repo.list_for_ticket(ticket_id)

    # =========================================================================
    # Private helpers
    # =========================================================================

    async def _get_ticket(self, ticket_id: UUID) -> Ticket:
        ticket = await self.ticket_repo.get(ticket_id)
        if ticket is None:
            raise NotFoundError(f"ticket {ticket_id} not found")
        return ticket

    async def _get_users(self, user_ids: Sequence[UUID]) -> dict:
        users = await self.user_repo.get_many(user_ids)
        missing = [str(u) for u in user_ids if u not in users]
        if missing:
            raise NotFoundError(f"unknown user(s): {', '.join(missing)}")
        return users

    async def _touch(self, ticket_id: UUID) -> Ticket:
        """Bump updated_at only, returning the current row."""
        ticket = await self.ticket_repo.touch(ticket_id)
        if ticket is None:
            raise NotFoundError(f"ticket {ticket_id} not found")
        return ticket
