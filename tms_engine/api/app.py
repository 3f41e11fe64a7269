"""
TMS API

FastAPI boundary over the ticket engine:
- Priority and effort calculators
- Ticket CRUD with role/ownership protection
- Status transitions, field overrides, classification
- Multi-assignee management (legacy single assigneeId accepted)
- Points distribution, metrics and rankings
- User search and the caller profile

The caller identity arrives already authenticated, as the X-Actor-Id and
X-Actor-Role headers.
"""

from typing import Any, List, Optional
from uuid import UUID

from fastapi import Depends, FastAPI, Header, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from ..config import get_settings
from ..engine import Engine, build_engine
from ..models import Actor, Priority, ResolvedType, Role, TicketStatus
from ..models.ticket import WireModel
from ..services import effort, priority
from ..services.effort import EffortChecklist
from ..services.errors import (
    ContractViolation,
    ForbiddenError,
    TicketEngineError,
    ValidationError,
)
from ..services.priority import PriorityQuestionnaire
from ..services.workflow import FieldOverride, TicketCreate, TicketUpdate
from ..utils.logger import get_logger
from .middleware import LoggingMiddleware

logger = get_logger(__name__)

ERROR_STATUS = {
    "BAD_REQUEST": status.HTTP_400_BAD_REQUEST,
    "FORBIDDEN": status.HTTP_403_FORBIDDEN,
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "PRECONDITION_FAILED": status.HTTP_409_CONFLICT,
}


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class StatusChangeRequest(WireModel):
    status: TicketStatus
    effort: Optional[EffortChecklist] = None  # Used when completing


class ClassifyRequest(WireModel):
    resolved_type: ResolvedType


class AssignRequest(WireModel):
    model_config = ConfigDict(extra="ignore")

    assignee_ids: List[UUID] = Field(default_factory=list)
    assignee_id: Optional[UUID] = None  # Deprecated single-assignee form
    self_assign: bool = Field(False, alias="self")


class UnassignRequest(WireModel):
    model_config = ConfigDict(extra="ignore")

    assignee_ids: List[UUID] = Field(default_factory=list)
    self_assign: bool = Field(False, alias="self")


class CommentRequest(BaseModel):
    body: str


class EffortComputeRequest(EffortChecklist):
    assignee_count: int = 1


def envelope(data: Any) -> dict:
    return {"data": data}


def dump(model: Any) -> Any:
    if isinstance(model, BaseModel):
        return model.model_dump(mode="json", by_alias=True)
    if isinstance(model, list):
        return [dump(m) for m in model]
    if isinstance(model, dict):
        return {k: dump(v) for k, v in model.items()}
    return model


def error_body(code: str, message: str, reason: Optional[str] = None) -> dict:
    error = {"code": code, "message": message}
    if reason:
        error["reason"] = reason
    return {"error": error}


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_engine(request: Request) -> Engine:
    return request.app.state.engine


def get_actor(
    x_actor_id: Optional[str] = Header(None),
    x_actor_role: Optional[str] = Header(None)
) -> Actor:
    """Opaque caller identity issued by the session layer."""
    try:
        role = Role(x_actor_role) if x_actor_role else Role.ANONYMOUS
    except ValueError:
        raise ValidationError(f"invalid role: {x_actor_role}")

    actor_id = None
    if x_actor_id:
        try:
            actor_id = UUID(x_actor_id)
        except ValueError:
            raise ValidationError("invalid actor id")

    if role != Role.ANONYMOUS and actor_id is None:
        raise ValidationError("actor id required for authenticated roles")

    return Actor(id=actor_id, role=role)


# =============================================================================
# APP SETUP
# =============================================================================

def create_app(engine: Optional[Engine] = None) -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="TMS Engine",
        description="IT ticket scoring and workflow engine",
        version="0.1.0"
    )
    app.state.engine = engine or build_engine()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)

    @app.exception_handler(TicketEngineError)
    async def engine_error_handler(request: Request, exc: TicketEngineError):
        if isinstance(exc, ContractViolation):
            logger.error(f"Contract violation on {request.url.path}: {exc}")
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content=error_body("SERVER_ERROR", "internal error")
            )

        reason = exc.reason.value if isinstance(exc, ForbiddenError) else None
        return JSONResponse(
            status_code=ERROR_STATUS.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
            content=error_body(exc.code, str(exc), reason)
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body("BAD_REQUEST", "invalid payload")
        )

    register_routes(app)
    return app


def register_routes(app: FastAPI) -> None:
    settings = get_settings()

    # =========================================================================
    # HEALTH CHECK
    # =========================================================================

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "service": "tms-engine",
            "version": "0.1.0"
        }

    # =========================================================================
    # SCORING
    # =========================================================================

    @app.post("/priority/compute")
    async def compute_priority(request: PriorityQuestionnaire):
        return envelope(priority.compute(request).to_dict())

    @app.post("/effort/compute")
    async def compute_effort(request: EffortComputeRequest):
        base = effort.compute_base(request)
        count = max(1, request.assignee_count)
        return envelope({
            "base": base,
            "assigneeCount": count,
            "extraPerPerson": effort.collaboration_extra_per_person(count),
            "totalForDistribution": effort.total_for_base(base, count),
            "perPerson": effort.share_per_person(base, count),
        })

    # =========================================================================
    # TICKET ENDPOINTS
    # =========================================================================

    @app.post("/tickets", status_code=status.HTTP_201_CREATED)
    async def create_ticket(
        request: TicketCreate,
        actor: Actor = Depends(get_actor),
        engine: Engine = Depends(get_engine)
    ):
        """
        Open a ticket.

        Anonymous callers may only open issue reports and must leave a
        contact email.
        """
        ticket = await engine.workflow.create_ticket(actor, request)
        return envelope(dump(ticket))

    @app.get("/tickets")
    async def list_tickets(
        status_filter: Optional[TicketStatus] = Query(None, alias="status"),
        priority_filter: Optional[Priority] = Query(None, alias="priority"),
        assignee_id: Optional[UUID] = Query(None, alias="assigneeId"),
        created_by: Optional[UUID] = Query(None, alias="createdBy"),
        q: Optional[str] = None,
        page: int = 1,
        page_size: int = Query(settings.default_page_size, alias="pageSize"),
        engine: Engine = Depends(get_engine)
    ):
        """Paged ticket list, newest first."""
        result = await engine.workflow.list_tickets(
            status=status_filter,
            priority_filter=priority_filter,
            assignee_id=assignee_id,
            created_by=created_by,
            query=q,
            page=page,
            page_size=page_size,
            max_page_size=settings.max_page_size
        )
        return {
            "data": dump(result["items"]),
            "page": result["page"],
            "pageSize": result["page_size"],
            "total": result["total"],
            "totalPages": result["total_pages"],
        }

    @app.get("/tickets/{ticket_id}")
    async def get_ticket(ticket_id: UUID, engine: Engine = Depends(get_engine)):
        """Ticket with assignees and comment history."""
        detail = await engine.workflow.ticket_detail(ticket_id)
        return envelope(dump(detail))

    @app.patch("/tickets/{ticket_id}")
    async def update_ticket(
        ticket_id: UUID,
        request: TicketUpdate,
        actor: Actor = Depends(get_actor),
        engine: Engine = Depends(get_engine)
    ):
        ticket = await engine.workflow.update_ticket(ticket_id, actor, request)
        return envelope(dump(ticket))

    @app.patch("/tickets/{ticket_id}/fields")
    async def update_ticket_fields(
        ticket_id: UUID,
        request: FieldOverride,
        actor: Actor = Depends(get_actor),
        engine: Engine = Depends(get_engine)
    ):
        """Supervisor/Manager correction of type, priority and scores."""
        ticket = await engine.workflow.update_fields(ticket_id, actor, request)
        return envelope(dump(ticket))

    @app.post("/tickets/{ticket_id}/status")
    async def change_status(
        ticket_id: UUID,
        request: StatusChangeRequest,
        actor: Actor = Depends(get_actor),
        engine: Engine = Depends(get_engine)
    ):
        ticket = await engine.workflow.change_status(
            ticket_id, actor, request.status, request.effort
        )
        return envelope(dump(ticket))

    @app.post("/tickets/{ticket_id}/classify")
    async def classify_ticket(
        ticket_id: UUID,
        request: ClassifyRequest,
        actor: Actor = Depends(get_actor),
        engine: Engine = Depends(get_engine)
    ):
        ticket = await engine.workflow.classify(ticket_id, actor, request.resolved_type)
        return envelope(dump(ticket))

    @app.post("/tickets/{ticket_id}/comments", status_code=status.HTTP_201_CREATED)
    async def add_comment(
        ticket_id: UUID,
        request: CommentRequest,
        actor: Actor = Depends(get_actor),
        engine: Engine = Depends(get_engine)
    ):
        comment = await engine.workflow.add_comment(ticket_id, actor, request.body)
        return envelope(dump(comment))

    # =========================================================================
    # ASSIGNMENT ENDPOINTS
    # =========================================================================

    @app.post("/tickets/{ticket_id}/assign")
    async def assign(
        ticket_id: UUID,
        request: AssignRequest,
        actor: Actor = Depends(get_actor),
        engine: Engine = Depends(get_engine)
    ):
        """
        Add assignees.

        Accepts assigneeIds, the legacy single assigneeId, or self=true.
        All three end up as the same multi-assignee call.
        """
        if request.self_assign:
            user_ids = [actor.id] if actor.id else []
        elif request.assignee_ids:
            user_ids = request.assignee_ids
        elif request.assignee_id:
            user_ids = [request.assignee_id]
        else:
            raise ValidationError("no assignees specified")

        assignees = await engine.assignments.assign(ticket_id, user_ids, actor)
        return envelope({"id": str(ticket_id), "assignees": dump(assignees)})

    @app.post("/tickets/{ticket_id}/unassign")
    async def unassign(
        ticket_id: UUID,
        request: UnassignRequest,
        actor: Actor = Depends(get_actor),
        engine: Engine = Depends(get_engine)
    ):
        user_ids = [actor.id] if request.self_assign and actor.id else request.assignee_ids
        assignees = await engine.assignments.unassign(ticket_id, user_ids, actor)
        return envelope({"id": str(ticket_id), "assignees": dump(assignees)})

    @app.get("/tickets/{ticket_id}/points")
    async def ticket_points(ticket_id: UUID, engine: Engine = Depends(get_engine)):
        """Current points distribution for a ticket."""
        scores = await engine.assignments.points_for_ticket(ticket_id)
        return envelope(dump(scores))

    # =========================================================================
    # METRICS ENDPOINTS
    # =========================================================================

    @app.get("/metrics/summary")
    async def metrics_summary(
        month: Optional[int] = None,
        year: Optional[int] = None,
        engine: Engine = Depends(get_engine)
    ):
        return envelope(await engine.metrics.summary(month=month, year=year))

    @app.get("/rankings")
    async def rankings(
        limit: int = Query(settings.rankings_limit, ge=1, le=settings.max_page_size),
        month: Optional[int] = None,
        year: Optional[int] = None,
        engine: Engine = Depends(get_engine)
    ):
        result = await engine.metrics.rankings(limit=limit, month=month, year=year)
        return envelope(dump(result))

    # =========================================================================
    # USER ENDPOINTS
    # =========================================================================

    @app.get("/me")
    async def me(
        actor: Actor = Depends(get_actor),
        engine: Engine = Depends(get_engine)
    ):
        """Caller profile with earned points, or just the role when anonymous."""
        return envelope(await engine.users.profile(actor))

    @app.get("/users/search")
    async def search_users(
        q: Optional[str] = None,
        role: Optional[Role] = None,
        limit: int = Query(settings.user_search_limit, ge=1, le=settings.max_page_size),
        actor: Actor = Depends(get_actor),
        engine: Engine = Depends(get_engine)
    ):
        """Authenticated lookup by name or email, ordered by name."""
        users = await engine.users.search(actor, query=q, role=role, limit=limit)
        return envelope(dump(users))


app = create_app()


# =============================================================================
# RUN
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(app, host=settings.app_host, port=settings.app_port)
