"""
Service wiring.

Builds every service over one set of record stores.
"""

from dataclasses import dataclass
from typing import Optional

from .repositories import InMemoryStores
from .services import (
    AssignmentService,
    AuditTrail,
    AuthorizationPolicy,
    MetricsService,
    NarrationService,
    TicketWorkflow,
    UserDirectory,
)


@dataclass
class Engine:
    stores: InMemoryStores
    policy: AuthorizationPolicy
    narration: NarrationService
    audit: AuditTrail
    assignments: AssignmentService
    workflow: TicketWorkflow
    metrics: MetricsService
    users: UserDirectory


def build_engine(stores: Optional[InMemoryStores] = None) -> Engine:
    stores = stores or InMemoryStores()
    policy = AuthorizationPolicy()
    narration = NarrationService(stores.comments)
    audit = AuditTrail(stores.audits)

    assignments = AssignmentService(
        ticket_repo=stores.tickets,
        assignment_repo=stores.assignments,
        score_repo=stores.scores,
        user_repo=stores.users,
        narration=narration,
        audit=audit,
        policy=policy
    )
    workflow = TicketWorkflow(
        ticket_repo=stores.tickets,
        comment_repo=stores.comments,
        assignments=assignments,
        narration_service=narration,
        audit=audit,
        policy=policy
    )
    metrics = MetricsService(
        ticket_repo=stores.tickets,
        assignment_repo=stores.assignments,
        score_repo=stores.scores,
        user_repo=stores.users
    )
    users = UserDirectory(stores.users, metrics, policy)

    return Engine(
        stores=stores,
        policy=policy,
        narration=narration,
        audit=audit,
        assignments=assignments,
        workflow=workflow,
        metrics=metrics,
        users=users
    )
