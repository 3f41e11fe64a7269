"""Tests for change narration rendering"""
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from tms_engine.models import InitialType, Priority, ResolvedType, Role, Ticket, TicketStatus
from tms_engine.services import narration
from tms_engine.services.narration import FieldChange, NarrationService


@pytest.fixture
def ticket():
    return Ticket(
        initial_type=InitialType.ISSUE_REPORT,
        title="Old title",
        description="Old description",
        priority=Priority.P3,
        impact_score=2,
    )


class TestDiff:
    def test_diff_in_declared_order(self, ticket):
        changes = narration.diff(
            ticket,
            {"impact_score": 4, "priority": Priority.P2, "initial_type": InitialType.ISSUE_REPORT},
            narration.OVERRIDE_FIELDS
        )

        assert changes == [
            FieldChange("priority", Priority.P3, Priority.P2),
            FieldChange("impact_score", 2, 4),
        ]

    def test_enum_and_plain_value_compare_equal(self, ticket):
        assert narration.diff(ticket, {"priority": "P3"}, narration.OVERRIDE_FIELDS) == []


class TestRender:
    @pytest.mark.parametrize("change,line", [
        (FieldChange("title", "a", "b"), 'Title changed from "a" to "b"'),
        (FieldChange("description", "a", "b"), "Description was updated"),
        (
            FieldChange("initial_type", InitialType.ISSUE_REPORT, InitialType.SERVICE_REQUEST_GENERAL),
            'Initial Type changed from "ISSUE_REPORT" to "SERVICE_REQUEST_GENERAL"',
        ),
        (FieldChange("resolved_type", None, ResolvedType.EMERGENCY_CHANGE), 'Resolved Type set to "EMERGENCY_CHANGE"'),
        (FieldChange("resolved_type", ResolvedType.EMERGENCY_CHANGE, None), "Resolved Type was cleared"),
        (
            FieldChange("resolved_type", ResolvedType.EMERGENCY_CHANGE, ResolvedType.DATA_CORRECTION),
            'Resolved Type changed from "EMERGENCY_CHANGE" to "DATA_CORRECTION"',
        ),
        (FieldChange("urgency_score", 1, 3), "Urgency Score changed from 1 to 3"),
        (FieldChange("red_flag", False, True), "Red Flag was set"),
        (FieldChange("red_flag", True, False), "Red Flag was cleared"),
    ])
    def test_templates(self, change, line):
        assert narration.render([change]) == [line]

    def test_batch_body(self):
        body = narration.batch_body("Ticket updated", Role.MANAGER, ["one", "two"])
        assert body == "Ticket updated by Manager:\n\none\ntwo"

    def test_empty_batch_is_none(self):
        assert narration.batch_body("Ticket updated", Role.MANAGER, []) is None

    def test_status_body(self):
        body = narration.status_body(TicketStatus.IN_PROGRESS, TicketStatus.COMPLETED, Role.SUPERVISOR)
        assert body == 'Status changed from "in_progress" to "completed" by Supervisor'


class TestNarrationService:
    @pytest.mark.asyncio
    async def test_write_failure_is_swallowed(self):
        repo = AsyncMock()
        repo.add.side_effect = RuntimeError("store down")
        service = NarrationService(repo)

        result = await service.narrate_status(
            uuid4(), TicketStatus.PENDING, TicketStatus.IN_PROGRESS, Role.USER
        )

        assert result is None
        repo.add.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_no_changes_no_comment(self):
        repo = AsyncMock()
        service = NarrationService(repo)

        assert await service.narrate_changes(uuid4(), "Ticket updated", Role.USER, []) is None
        repo.add.assert_not_awaited()
