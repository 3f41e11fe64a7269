"""
TMS Audit Trail

Structured record of every mutating operation, kept apart from the
human-readable narration comments.
"""

from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel

from ..models.ticket import Actor, AuditLog
from ..utils.logger import get_logger

logger = get_logger(__name__)


class AuditTrail:
    def __init__(self, audit_repo):
        self.audit_repo = audit_repo

    async def record(
        self,
        ticket_id: UUID,
        actor: Actor,
        action: str,
        after: Optional[Any] = None
    ) -> AuditLog:
        if isinstance(after, BaseModel):
            after = after.model_dump(mode="json", by_alias=True)

        entry = AuditLog(
            ticket_id=ticket_id,
            actor_id=actor.id,
            action=action,
            after=after
        )
        await self.audit_repo.add(entry)
        logger.info(f"{action} on ticket {ticket_id} by {actor.role.value} {actor.id or ''}".rstrip())
        return entry
