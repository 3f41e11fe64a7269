"""
TMS Metrics Service

Dashboard counts and the points leaderboard.

Rankings sum each user's UserScore rows. Because distribution replaces
rows wholesale, a reopened or re-split ticket never double counts.
"""

from collections import Counter, defaultdict
from typing import Any, Dict, List, Optional
from uuid import UUID

from ..models.ticket import (
    InitialType,
    Priority,
    Ticket,
    TicketStatus,
    UserRanking,
)

UNCLASSIFIED = "UNCLASSIFIED"

PRIORITY_ORDER = {p: i for i, p in enumerate(Priority)}


def _in_period(ticket: Ticket, month: Optional[int], year: Optional[int]) -> bool:
    if year is not None and ticket.created_at.year != year:
        return False
    if month is not None and ticket.created_at.month != month:
        return False
    return True


class MetricsService:
    def __init__(self, ticket_repo, assignment_repo, score_repo, user_repo):
        self.ticket_repo = ticket_repo
        self.assignment_repo = assignment_repo
        self.score_repo = score_repo
        self.user_repo = user_repo

    async def summary(
        self,
        month: Optional[int] = None,
        year: Optional[int] = None,
        in_progress_limit: int = 20
    ) -> Dict[str, Any]:
        """
        Counts by status, category, priority and issue-report outcome,
        plus the most urgent in-progress tickets.

        The in-progress list is ordered P0 first, then most recently
        updated, then lowest effort.
        """
        tickets = [
            t for t in await self.ticket_repo.all()
            if _in_period(t, month, year)
        ]

        status_counts = Counter(t.status.value for t in tickets)
        category_counts = Counter(t.initial_type.value for t in tickets)
        priority_counts = Counter(t.priority.value for t in tickets)
        issue_report_counts = Counter(
            t.resolved_type.value if t.resolved_type else UNCLASSIFIED
            for t in tickets
            if t.initial_type == InitialType.ISSUE_REPORT
        )

        in_progress = [t for t in tickets if t.status == TicketStatus.IN_PROGRESS]
        in_progress.sort(key=lambda t: t.effort_score or 0)
        in_progress.sort(key=lambda t: t.updated_at, reverse=True)
        in_progress.sort(key=lambda t: PRIORITY_ORDER[t.priority])

        active = []
        for ticket in in_progress[:in_progress_limit]:
            rows = await self.assignment_repo.list_for_ticket(ticket.id)
            users = await self.user_repo.get_many([r.assignee_id for r in rows])
            active.append({
                "id": str(ticket.id),
                "title": ticket.title,
                "priority": ticket.priority.value,
                "updatedAt": ticket.updated_at.isoformat(),
                "assignees": [
                    {"id": str(u.id), "name": u.name}
                    for u in (users.get(r.assignee_id) for r in rows) if u
                ],
            })

        return {
            "inProgress": active,
            "statusCounts": dict(status_counts),
            "categoryCounts": dict(category_counts),
            "priorityCounts": dict(priority_counts),
            "issueReportCounts": dict(issue_report_counts),
        }

    async def rankings(
        self,
        limit: int = 10,
        month: Optional[int] = None,
        year: Optional[int] = None
    ) -> List[UserRanking]:
        """
        Users ordered by total points (desc), then name.

        month/year restrict which tickets count, by ticket creation date.
        Users with no points still appear, with zero.
        """
        tickets = {t.id: t for t in await self.ticket_repo.all()}
        totals: Dict[UUID, float] = defaultdict(float)
        completed: Dict[UUID, int] = defaultdict(int)

        for score in await self.score_repo.all():
            ticket = tickets.get(score.ticket_id)
            if ticket is None or not _in_period(ticket, month, year):
                continue
            totals[score.user_id] += score.points
            completed[score.user_id] += 1

        users = await self.user_repo.all()
        users.sort(key=lambda u: u.name)
        users.sort(key=lambda u: totals[u.id], reverse=True)

        return [
            UserRanking(
                id=user.id,
                name=user.name,
                email=user.email,
                role=user.role,
                total_points=totals[user.id],
                tickets_completed=completed[user.id],
                rank=position
            )
            for position, user in enumerate(users[:limit], start=1)
        ]

    async def user_total_points(self, user_id: UUID) -> float:
        return sum(s.points for s in await self.score_repo.all() if s.user_id == user_id)
