"""Tests for multi-assignee management and point distribution"""
from uuid import uuid4

import pytest

from conftest import new_ticket
from tms_engine.models import TicketStatus
from tms_engine.services.errors import (
    ContractViolation,
    ForbiddenError,
    ForbiddenReason,
    NotFoundError,
    ValidationError,
)


async def completed_ticket(engine, actor, assignee_ids, **overrides):
    ticket = await engine.workflow.create_ticket(actor, new_ticket(**overrides))
    await engine.assignments.assign(ticket.id, assignee_ids, actor)
    await engine.workflow.change_status(ticket.id, actor, TicketStatus.IN_PROGRESS)
    return await engine.workflow.change_status(ticket.id, actor, TicketStatus.COMPLETED)


class TestAssign:
    @pytest.mark.asyncio
    async def test_assign_returns_full_list(self, engine, supervisor, alice, bob):
        ticket = await engine.workflow.create_ticket(supervisor, new_ticket())

        await engine.assignments.assign(ticket.id, [alice.id], supervisor)
        assignees = await engine.assignments.assign(ticket.id, [bob.id], supervisor)

        assert [u.id for u in assignees] == [alice.id, bob.id]

    @pytest.mark.asyncio
    async def test_assign_is_idempotent(self, engine, supervisor, alice):
        ticket = await engine.workflow.create_ticket(supervisor, new_ticket())

        await engine.assignments.assign(ticket.id, [alice.id], supervisor)
        assignees = await engine.assignments.assign(ticket.id, [alice.id, alice.id], supervisor)

        assert [u.id for u in assignees] == [alice.id]
        comments = await engine.stores.comments.list_for_ticket(ticket.id)
        assert len(comments) == 1

    @pytest.mark.asyncio
    async def test_one_comment_per_new_assignee(self, engine, supervisor, alice, bob):
        ticket = await engine.workflow.create_ticket(supervisor, new_ticket())

        await engine.assignments.assign(ticket.id, [alice.id, bob.id], supervisor)

        comments = await engine.stores.comments.list_for_ticket(ticket.id)
        assert [c.body for c in comments] == [
            "Assignment updated by Supervisor:\n\nAssigned to Alice (User)",
            "Assignment updated by Supervisor:\n\nAssigned to Bob (User)",
        ]

    @pytest.mark.asyncio
    async def test_user_self_assign_only(self, engine, alice_actor, alice, bob):
        ticket = await engine.workflow.create_ticket(alice_actor, new_ticket())

        await engine.assignments.assign(ticket.id, [alice.id], alice_actor)

        with pytest.raises(ForbiddenError) as exc:
            await engine.assignments.assign(ticket.id, [bob.id], alice_actor)
        assert exc.value.reason == ForbiddenReason.SELF_ASSIGNMENT_ONLY
        assert await engine.assignments.assignee_ids(ticket.id) == [alice.id]

    @pytest.mark.asyncio
    async def test_unknown_user(self, engine, supervisor):
        ticket = await engine.workflow.create_ticket(supervisor, new_ticket())

        with pytest.raises(NotFoundError):
            await engine.assignments.assign(ticket.id, [uuid4()], supervisor)

    @pytest.mark.asyncio
    async def test_empty_list(self, engine, supervisor):
        ticket = await engine.workflow.create_ticket(supervisor, new_ticket())

        with pytest.raises(ValidationError):
            await engine.assignments.assign(ticket.id, [], supervisor)


class TestUnassign:
    @pytest.mark.asyncio
    async def test_unassign_narrates_removed_only(self, engine, supervisor, alice, bob):
        ticket = await engine.workflow.create_ticket(supervisor, new_ticket())
        await engine.assignments.assign(ticket.id, [alice.id], supervisor)

        assignees = await engine.assignments.unassign(ticket.id, [alice.id, bob.id], supervisor)

        assert assignees == []
        comments = await engine.stores.comments.list_for_ticket(ticket.id)
        assert comments[-1].body == "Assignment updated by Supervisor:\n\nUnassigned Alice (User)"
        assert len(comments) == 2


class TestDistribution:
    @pytest.mark.asyncio
    async def test_distribution_is_idempotent(self, engine, supervisor, alice, bob):
        ticket = await engine.workflow.create_ticket(supervisor, new_ticket())

        await engine.assignments.distribute_points(ticket.id, 10, [alice.id, bob.id])
        await engine.assignments.distribute_points(ticket.id, 10, [alice.id, bob.id])

        scores = await engine.assignments.points_for_ticket(ticket.id)
        assert sorted(s.points for s in scores) == [5.0, 5.0]

    @pytest.mark.asyncio
    async def test_distribution_replaces_wholesale(self, engine, supervisor, alice, bob):
        ticket = await engine.workflow.create_ticket(supervisor, new_ticket())

        await engine.assignments.distribute_points(ticket.id, 10, [alice.id, bob.id])
        await engine.assignments.distribute_points(ticket.id, 6, [bob.id])

        scores = await engine.assignments.points_for_ticket(ticket.id)
        assert [(s.user_id, s.points) for s in scores] == [(bob.id, 6.0)]

    @pytest.mark.asyncio
    async def test_no_assignees_is_contract_violation(self, engine, supervisor):
        ticket = await engine.workflow.create_ticket(supervisor, new_ticket())

        with pytest.raises(ContractViolation):
            await engine.assignments.distribute_points(ticket.id, 10, [])

    @pytest.mark.asyncio
    async def test_assign_after_completion_redistributes(self, engine, supervisor, alice, bob):
        ticket = await completed_ticket(
            engine, supervisor, [alice.id], priority_input={"urgency": "<=48h"}
        )
        assert [s.points for s in await engine.assignments.points_for_ticket(ticket.id)] == [4.0]

        await engine.assignments.assign(ticket.id, [bob.id], supervisor)

        scores = await engine.assignments.points_for_ticket(ticket.id)
        assert sorted(s.points for s in scores) == [2.0, 2.0]

    @pytest.mark.asyncio
    async def test_unassign_all_after_completion_clears(self, engine, supervisor, alice):
        ticket = await completed_ticket(engine, supervisor, [alice.id])

        await engine.assignments.unassign(ticket.id, [alice.id], supervisor)

        assert await engine.assignments.points_for_ticket(ticket.id) == []

    @pytest.mark.asyncio
    async def test_stored_effort_used_on_redistribution(self, engine, supervisor, alice, bob):
        ticket = await engine.workflow.create_ticket(supervisor, new_ticket())
        await engine.assignments.assign(ticket.id, [alice.id], supervisor)
        await engine.workflow.change_status(ticket.id, supervisor, TicketStatus.IN_PROGRESS)
        await engine.workflow.change_status(
            ticket.id, supervisor, TicketStatus.COMPLETED,
            {"security": {"accessControl": True, "personalData": True}}
        )

        await engine.assignments.assign(ticket.id, [bob.id], supervisor)

        scores = await engine.assignments.points_for_ticket(ticket.id)
        # (2 + 2 * 2) / 2
        assert sorted(s.points for s in scores) == [3.0, 3.0]

    @pytest.mark.asyncio
    async def test_zero_effort_base_survives_redistribution(self, engine, supervisor, alice, bob, sam):
        ticket = await engine.workflow.create_ticket(
            supervisor, new_ticket(priority_input={"urgency": "<=48h"})
        )
        await engine.assignments.assign(ticket.id, [alice.id, bob.id], supervisor)
        await engine.workflow.change_status(ticket.id, supervisor, TicketStatus.IN_PROGRESS)
        await engine.workflow.change_status(ticket.id, supervisor, TicketStatus.COMPLETED, {})

        await engine.assignments.assign(ticket.id, [sam.id], supervisor)

        scores = await engine.assignments.points_for_ticket(ticket.id)
        # (0 + 4 * 3) / 3, not the priority final score
        assert sorted(s.points for s in scores) == [4.0, 4.0, 4.0]

    @pytest.mark.asyncio
    async def test_assign_keeps_concurrent_completion(self, engine, supervisor, alice, bob, monkeypatch):
        ticket = await engine.workflow.create_ticket(
            supervisor, new_ticket(priority_input={"urgency": "<=48h"})
        )
        await engine.assignments.assign(ticket.id, [alice.id], supervisor)
        await engine.workflow.change_status(ticket.id, supervisor, TicketStatus.IN_PROGRESS)
        stale = await engine.workflow.get_ticket(ticket.id)
        done = await engine.workflow.change_status(ticket.id, supervisor, TicketStatus.COMPLETED)

        async def stale_get(ticket_id):
            return stale.model_copy(deep=True)

        monkeypatch.setattr(engine.stores.tickets, "get", stale_get)
        await engine.assignments.assign(ticket.id, [bob.id], supervisor)
        monkeypatch.undo()

        stored = await engine.workflow.get_ticket(ticket.id)
        assert stored.status == TicketStatus.COMPLETED
        assert stored.closed_at == done.closed_at
        scores = await engine.assignments.points_for_ticket(ticket.id)
        assert sorted(s.points for s in scores) == [2.0, 2.0]

    @pytest.mark.asyncio
    async def test_points_for_missing_ticket(self, engine):
        with pytest.raises(NotFoundError):
            await engine.assignments.points_for_ticket(uuid4())
