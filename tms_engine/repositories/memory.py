"""
In-memory record stores.

Same async surface a database-backed adapter provides. Rows are copied on
the way in and out so callers never share state with the store, the same
as reading from a database.

Row-level semantics the engine relies on:
- tickets: updates write only the named columns; status changes are
  compare-and-set on the current status
- assignments: insert ignores an existing (ticket, assignee) pair
- user scores: upsert on (user, ticket)
"""

from dataclasses import dataclass, field
from datetime import datetime
from itertools import count
from typing import Dict, Iterable, List, Optional, Set, Tuple
from uuid import UUID

from ..models.ticket import (
    Assignment,
    AuditLog,
    Comment,
    Priority,
    Role,
    Ticket,
    TicketStatus,
    User,
    UserScore,
    utcnow,
)


@dataclass
class TicketFilters:
    status: Optional[TicketStatus] = None
    priority: Optional[Priority] = None
    created_by: Optional[UUID] = None
    query: Optional[str] = None
    ticket_ids: Optional[Set[UUID]] = None  # Restrict to these, e.g. by assignee

    def matches(self, ticket: Ticket) -> bool:
        if self.status and ticket.status != self.status:
            return False
        if self.priority and ticket.priority != self.priority:
            return False
        if self.created_by and ticket.created_by != self.created_by:
            return False
        if self.ticket_ids is not None and ticket.id not in self.ticket_ids:
            return False
        if self.query:
            haystack = f"{ticket.title} {ticket.description}".lower()
            if not all(word in haystack for word in self.query.lower().split()):
                return False
        return True


class TicketRepository:
    def __init__(self):
        self._rows: Dict[UUID, Ticket] = {}
        self._codes = count(1)

    async def add(self, ticket: Ticket) -> Ticket:
        stored = ticket.model_copy(deep=True)
        stored.code = next(self._codes)
        self._rows[stored.id] = stored
        return stored.model_copy(deep=True)

    async def get(self, ticket_id: UUID) -> Optional[Ticket]:
        ticket = self._rows.get(ticket_id)
        return ticket.model_copy(deep=True) if ticket else None

    async def update(self, ticket_id: UUID, **values) -> Optional[Ticket]:
        """
        Write only the named columns, like UPDATE ... SET col = value.

        Columns not named keep whatever the store holds now, so a stale
        snapshot held by the caller can never revert them.
        """
        stored = self._rows.get(ticket_id)
        if stored is None:
            return None
        for name, value in values.items():
            setattr(stored, name, value)
        return stored.model_copy(deep=True)

    async def touch(self, ticket_id: UUID) -> Optional[Ticket]:
        return await self.update(ticket_id, updated_at=utcnow())

    async def update_status(
        self,
        ticket_id: UUID,
        expected: TicketStatus,
        status: TicketStatus,
        closed_at: Optional[datetime],
        **values
    ) -> Optional[Ticket]:
        """
        Compare-and-set the status.

        Returns None, writing nothing, when the stored status is no longer
        the one the caller checked its transition against.
        """
        stored = self._rows.get(ticket_id)
        if stored is None or stored.status != expected:
            return None
        return await self.update(
            ticket_id, status=status, closed_at=closed_at, updated_at=utcnow(), **values
        )

    async def list(
        self,
        filters: TicketFilters,
        offset: int = 0,
        limit: int = 20
    ) -> Tuple[List[Ticket], int]:
        matched = [t for t in self._rows.values() if filters.matches(t)]
        matched.sort(key=lambda t: t.created_at, reverse=True)
        page = matched[offset:offset + limit]
        return [t.model_copy(deep=True) for t in page], len(matched)

    async def all(self) -> List[Ticket]:
        return [t.model_copy(deep=True) for t in self._rows.values()]


class AssignmentRepository:
    def __init__(self):
        self._rows: Dict[Tuple[UUID, UUID], Assignment] = {}

    async def add(self, assignment: Assignment) -> bool:
        """Insert, ignoring duplicates. Returns whether a row was created."""
        key = (assignment.ticket_id, assignment.assignee_id)
        if key in self._rows:
            return False
        self._rows[key] = assignment.model_copy()
        return True

    async def remove(self, ticket_id: UUID, assignee_id: UUID) -> bool:
        return self._rows.pop((ticket_id, assignee_id), None) is not None

    async def list_for_ticket(self, ticket_id: UUID) -> List[Assignment]:
        rows = [a for (t, _), a in self._rows.items() if t == ticket_id]
        rows.sort(key=lambda a: a.assigned_at)
        return [a.model_copy() for a in rows]

    async def ticket_ids_for_assignee(self, assignee_id: UUID) -> Set[UUID]:
        return {t for (t, a) in self._rows if a == assignee_id}


class UserScoreRepository:
    def __init__(self):
        self._rows: Dict[Tuple[UUID, UUID], UserScore] = {}

    async def upsert(self, score: UserScore) -> None:
        self._rows[(score.user_id, score.ticket_id)] = score.model_copy()

    async def remove_for_ticket(self, ticket_id: UUID) -> int:
        keys = [k for k in self._rows if k[1] == ticket_id]
        for key in keys:
            del self._rows[key]
        return len(keys)

    async def list_for_ticket(self, ticket_id: UUID) -> List[UserScore]:
        return [s.model_copy() for (_, t), s in self._rows.items() if t == ticket_id]

    async def all(self) -> List[UserScore]:
        return [s.model_copy() for s in self._rows.values()]


class CommentRepository:
    def __init__(self):
        self._rows: List[Comment] = []

    async def add(self, comment: Comment) -> None:
        self._rows.append(comment.model_copy())

    async def list_for_ticket(self, ticket_id: UUID) -> List[Comment]:
        rows = [c for c in self._rows if c.ticket_id == ticket_id]
        rows.sort(key=lambda c: c.created_at)
        return [c.model_copy() for c in rows]


class AuditRepository:
    def __init__(self):
        self._rows: List[AuditLog] = []

    async def add(self, entry: AuditLog) -> None:
        self._rows.append(entry.model_copy(deep=True))

    async def list_for_ticket(self, ticket_id: UUID) -> List[AuditLog]:
        return [e.model_copy(deep=True) for e in self._rows if e.ticket_id == ticket_id]


class UserRepository:
    def __init__(self, users: Iterable[User] = ()):
        self._rows: Dict[UUID, User] = {u.id: u.model_copy() for u in users}

    async def add(self, user: User) -> User:
        self._rows[user.id] = user.model_copy()
        return user

    async def get(self, user_id: UUID) -> Optional[User]:
        user = self._rows.get(user_id)
        return user.model_copy() if user else None

    async def get_many(self, user_ids: Iterable[UUID]) -> Dict[UUID, User]:
        return {
            uid: self._rows[uid].model_copy()
            for uid in user_ids
            if uid in self._rows
        }

    async def all(self) -> List[User]:
        return [u.model_copy() for u in self._rows.values()]

    async def search(
        self,
        query: Optional[str] = None,
        role: Optional[Role] = None,
        limit: int = 20
    ) -> List[User]:
        """Case-insensitive substring match on name or email, ordered by name."""
        needle = (query or "").strip().lower()
        matched = [
            u for u in self._rows.values()
            if (role is None or u.role == role)
            and (not needle or needle in u.name.lower() or needle in u.email.lower())
        ]
        matched.sort(key=lambda u: u.name.lower())
        return [u.model_copy() for u in matched[:limit]]


@dataclass
class InMemoryStores:
    """All record stores the engine needs, wired together."""
    tickets: TicketRepository = field(default_factory=TicketRepository)
    assignments: AssignmentRepository = field(default_factory=AssignmentRepository)
    scores: UserScoreRepository = field(default_factory=UserScoreRepository)
    comments: CommentRepository = field(default_factory=CommentRepository)
    audits: AuditRepository = field(default_factory=AuditRepository)
    users: UserRepository = field(default_factory=UserRepository)
