"""
TMS User Directory

Lookup of people for assignment pickers, and the caller's own profile.
"""

from typing import Any, Dict, List, Optional

from ..models.ticket import Actor, Role, User
from .errors import NotFoundError
from .metrics import MetricsService
from .policy import AuthorizationPolicy

DEFAULT_SEARCH_LIMIT = 20


class UserDirectory:
    def __init__(
        self,
        user_repo,
        metrics: MetricsService,
        policy: Optional[AuthorizationPolicy] = None
    ):
        self.user_repo = user_repo
        self.metrics = metrics
        self.policy = policy or AuthorizationPolicy()

    async def search(
        self,
        actor: Actor,
        query: Optional[str] = None,
        role: Optional[Role] = None,
        limit: int = DEFAULT_SEARCH_LIMIT
    ) -> List[User]:
        """Users whose name or email contains query, ordered by name."""
        self.policy.require_user_lookup(actor)
        return await self.user_repo.search(query, role, limit)

    async def profile(self, actor: Actor) -> Dict[str, Any]:
        """
        The caller's directory entry plus the points they have earned.

        Anonymous callers only learn their role.
        """
        if actor.role == Role.ANONYMOUS or actor.id is None:
            return {"role": Role.ANONYMOUS.value}

        user = await self.user_repo.get(actor.id)
        if user is None:
            raise NotFoundError("user not found")

        profile = user.model_dump(mode="json", by_alias=True)
        profile["totalPoints"] = await self.metrics.user_total_points(user.id)
        return profile
