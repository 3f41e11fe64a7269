"""Authorization matrix tests"""
from uuid import uuid4

import pytest

from tms_engine.models import Actor, InitialType, Role, Ticket, TicketStatus
from tms_engine.services.errors import ForbiddenError, ForbiddenReason
from tms_engine.services.policy import AuthorizationPolicy, can_create


USER_TYPES = [
    InitialType.CHANGE_REQUEST_NORMAL,
    InitialType.SERVICE_REQUEST_DATA_EXTRACTION,
    InitialType.SERVICE_REQUEST_ADVISORY,
    InitialType.SERVICE_REQUEST_GENERAL,
    InitialType.ISSUE_REPORT,
]


@pytest.fixture
def policy():
    return AuthorizationPolicy()


@pytest.fixture
def owner():
    return Actor(id=uuid4(), role=Role.USER)


@pytest.fixture
def ticket(owner):
    return Ticket(initial_type=InitialType.CHANGE_REQUEST_NORMAL, created_by=owner.id)


class TestCreate:
    @pytest.mark.parametrize("initial_type", list(InitialType))
    def test_anonymous_only_issue_reports(self, initial_type):
        expected = initial_type == InitialType.ISSUE_REPORT
        assert can_create(Role.ANONYMOUS, initial_type) is expected

    @pytest.mark.parametrize("initial_type", USER_TYPES)
    def test_user_allowed_types(self, initial_type):
        assert can_create(Role.USER, initial_type)

    def test_user_cannot_open_data_correction(self):
        assert not can_create(Role.USER, InitialType.SERVICE_REQUEST_DATA_CORRECTION)

    @pytest.mark.parametrize("role", [Role.SUPERVISOR, Role.MANAGER])
    @pytest.mark.parametrize("initial_type", list(InitialType))
    def test_staff_can_open_anything(self, role, initial_type):
        assert can_create(role, initial_type)

    def test_anonymous_needs_contact_email(self, policy):
        with pytest.raises(ForbiddenError) as exc:
            policy.require_create(Actor(), InitialType.ISSUE_REPORT, "  ")
        assert exc.value.reason == ForbiddenReason.CONTACT_INFO_REQUIRED

    def test_anonymous_with_contact_email(self, policy):
        policy.require_create(Actor(), InitialType.ISSUE_REPORT, "me@example.com")

    def test_wrong_type_reason(self, policy, owner):
        with pytest.raises(ForbiddenError) as exc:
            policy.require_create(owner, InitialType.SERVICE_REQUEST_DATA_CORRECTION)
        assert exc.value.reason == ForbiddenReason.ROLE_NOT_PERMITTED_FOR_TYPE


class TestEditAndStatus:
    def test_owner_can_edit(self, policy, owner, ticket):
        policy.require_edit(owner, ticket)

    def test_other_user_cannot_edit(self, policy, ticket):
        with pytest.raises(ForbiddenError) as exc:
            policy.require_edit(Actor(id=uuid4(), role=Role.USER), ticket)
        assert exc.value.reason == ForbiddenReason.NOT_TICKET_OWNER

    def test_supervisor_edits_any(self, policy, ticket):
        policy.require_edit(Actor(id=uuid4(), role=Role.SUPERVISOR), ticket)

    def test_anonymous_cannot_edit(self, policy, ticket):
        with pytest.raises(ForbiddenError) as exc:
            policy.require_edit(Actor(), ticket)
        assert exc.value.reason == ForbiddenReason.INSUFFICIENT_ROLE

    def test_user_cancels_only_own(self, policy, owner, ticket):
        policy.require_status_change(owner, ticket, TicketStatus.CANCELED)
        with pytest.raises(ForbiddenError) as exc:
            policy.require_status_change(
                Actor(id=uuid4(), role=Role.USER), ticket, TicketStatus.CANCELED
            )
        assert exc.value.reason == ForbiddenReason.NOT_TICKET_OWNER

    def test_user_moves_any_ticket_forward(self, policy, ticket):
        policy.require_status_change(
            Actor(id=uuid4(), role=Role.USER), ticket, TicketStatus.IN_PROGRESS
        )

    def test_anonymous_cannot_change_status(self, policy, ticket):
        with pytest.raises(ForbiddenError):
            policy.require_status_change(Actor(), ticket, TicketStatus.IN_PROGRESS)


class TestStaffOnly:
    @pytest.mark.parametrize("role", [Role.ANONYMOUS, Role.USER])
    def test_field_override_denied(self, policy, role):
        with pytest.raises(ForbiddenError) as exc:
            policy.require_field_override(Actor(role=role))
        assert exc.value.reason == ForbiddenReason.INSUFFICIENT_ROLE

    @pytest.mark.parametrize("role", [Role.ANONYMOUS, Role.USER])
    def test_classify_denied(self, policy, role):
        with pytest.raises(ForbiddenError):
            policy.require_classify(Actor(role=role))

    @pytest.mark.parametrize("role", [Role.SUPERVISOR, Role.MANAGER])
    def test_staff_allowed(self, policy, role):
        actor = Actor(id=uuid4(), role=role)
        policy.require_field_override(actor)
        policy.require_classify(actor)
        policy.require_assignment(actor, [uuid4(), uuid4()])


class TestAssignment:
    def test_user_self_assign(self, policy, owner):
        policy.require_assignment(owner, [owner.id])

    def test_user_cannot_assign_others(self, policy, owner):
        with pytest.raises(ForbiddenError) as exc:
            policy.require_assignment(owner, [owner.id, uuid4()])
        assert exc.value.reason == ForbiddenReason.SELF_ASSIGNMENT_ONLY

    def test_anonymous_cannot_assign(self, policy):
        with pytest.raises(ForbiddenError) as exc:
            policy.require_assignment(Actor(), [uuid4()])
        assert exc.value.reason == ForbiddenReason.INSUFFICIENT_ROLE


class TestUserLookup:
    @pytest.mark.parametrize("role", [Role.USER, Role.SUPERVISOR, Role.MANAGER])
    def test_authenticated_roles_allowed(self, policy, role):
        policy.require_user_lookup(Actor(id=uuid4(), role=role))

    def test_anonymous_denied(self, policy):
        with pytest.raises(ForbiddenError) as exc:
            policy.require_user_lookup(Actor())
        assert exc.value.reason == ForbiddenReason.INSUFFICIENT_ROLE
