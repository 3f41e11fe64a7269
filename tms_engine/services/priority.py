"""
TMS Priority Scorer

Deterministic priority scoring from a risk/impact/urgency questionnaire.

Formula: final = min(10, impact + urgency), unless a red flag is raised.

Every input maps to exactly one output, so two people scoring the same
ticket always agree and the score can be recomputed later from the raw
questionnaire blobs stored on the ticket.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, PrivateAttr, field_validator, model_validator

from ..models.ticket import Checklist, Priority, Ticket, WireModel


class RedFlags(Checklist):
    """Acute incident indicators. Any one of them forces P0."""

    outage: bool = False
    payments_failing: bool = False
    security_breach: bool = False
    non_compliance: bool = False

    @property
    def any_raised(self) -> bool:
        return (
            self.outage or
            self.payments_failing or
            self.security_breach or
            self.non_compliance
        )


class ImpactChecklist(Checklist):
    """Multi-select impact checklist, 2 points per item."""

    lost_revenue: bool = False
    core_processes: bool = False
    data_loss: bool = False


class PriorityQuestionnaire(WireModel):
    """
    Full scoring questionnaire.

    Missing or null sections mean "nothing selected", i.e. the lowest
    scoring contribution. urgency is kept loosely typed: anything that is
    not a known timeline string scores 0.

    The payload as received is kept aside so it can be stored verbatim.
    """
    model_config = ConfigDict(extra="ignore")

    red_flags: Optional[RedFlags] = None
    impact: Optional[ImpactChecklist] = None
    urgency: Optional[Any] = None

    _raw: Optional[Dict[str, Any]] = PrivateAttr(default=None)

    @field_validator("red_flags", "impact", mode="before")
    @classmethod
    def _section_or_none(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, BaseModel)) else None

    @model_validator(mode="wrap")
    @classmethod
    def _keep_raw(cls, data: Any, handler):
        questionnaire = handler(data)
        if isinstance(data, dict):
            questionnaire._raw = data
        return questionnaire

    @property
    def flags(self) -> RedFlags:
        return self.red_flags or RedFlags()

    @property
    def checklist(self) -> ImpactChecklist:
        return self.impact or ImpactChecklist()

    def raw_section(self, name: str) -> Any:
        """A section exactly as the caller sent it, by wire or field name."""
        if self._raw is None:
            return getattr(self, name)
        field = type(self).model_fields[name]
        return self._raw.get(field.alias, self._raw.get(name))


@dataclass
class PriorityScore:
    """Breakdown of priority calculation."""
    impact: int
    urgency: int
    final: int
    red_flag: bool
    priority: Priority

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        return {
            "impact": data["impact"],
            "urgency": data["urgency"],
            "final": data["final"],
            "redFlag": data["red_flag"],
            "priority": self.priority.value,
        }


IMPACT_POINTS_PER_ITEM = 2
IMPACT_CAP = 6
FINAL_CAP = 10

URGENCY_POINTS = {
    "<=48h": 4,
    "≤48h": 4,
    "3-7d": 3,
    "8-30d": 2,
    ">=31d": 1,
    "≥31d": 1,
}


def band(final: int) -> Priority:
    """
    Map a final score to a priority band.

    - 10: P0
    - 8-9: P1
    - 5-7: P2
    - anything else: P3
    """
    if final >= FINAL_CAP:
        return Priority.P0
    elif final >= 8:
        return Priority.P1
    elif final >= 5:
        return Priority.P2
    return Priority.P3


def impact_points(impact: ImpactChecklist) -> int:
    selected = sum([impact.lost_revenue, impact.core_processes, impact.data_loss])
    return min(IMPACT_CAP, selected * IMPACT_POINTS_PER_ITEM)


def urgency_points(urgency: Any) -> int:
    if not isinstance(urgency, str):
        return 0
    return URGENCY_POINTS.get(urgency.strip(), 0)


def compute(
    questionnaire: Union[PriorityQuestionnaire, Dict[str, Any], None]
) -> PriorityScore:
    """
    Score a questionnaire.

    Red flags short-circuit: final is 10, the priority P0, and the impact
    and urgency sub-scores report as 0 no matter what the checklist says.
    Never raises: malformed sections and items score as unselected.
    """
    if questionnaire is None:
        questionnaire = PriorityQuestionnaire()
    elif isinstance(questionnaire, dict):
        questionnaire = PriorityQuestionnaire.model_validate(questionnaire)

    if questionnaire.flags.any_raised:
        return PriorityScore(
            impact=0,
            urgency=0,
            final=FINAL_CAP,
            red_flag=True,
            priority=Priority.P0
        )

    impact = impact_points(questionnaire.checklist)
    urgency = urgency_points(questionnaire.urgency)
    final = min(FINAL_CAP, impact + urgency)

    return PriorityScore(
        impact=impact,
        urgency=urgency,
        final=final,
        red_flag=False,
        priority=band(final)
    )


def _object_or_none(value: Any) -> Optional[Dict[str, Any]]:
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True)
    return value if isinstance(value, dict) else None


def raw_blobs(
    questionnaire: PriorityQuestionnaire
) -> Dict[str, Optional[Dict[str, Any]]]:
    """
    Split a questionnaire into the three blobs persisted on the ticket.

    Sections are stored exactly as received, unknown keys included. The
    blob columns hold JSON objects, so a bare timeline answer such as
    "3-7d" is kept under an "urgency" key.
    """
    urgency = questionnaire.raw_section("urgency")
    if isinstance(urgency, dict):
        timeline = urgency
    elif urgency is None:
        timeline = None
    else:
        timeline = {"urgency": urgency}

    return {
        "red_flags_data": _object_or_none(questionnaire.raw_section("red_flags")),
        "impact_assessment_data": _object_or_none(questionnaire.raw_section("impact")),
        "urgency_timeline_data": timeline,
    }


def _unwrap(blob: Optional[Dict[str, Any]], *keys: str) -> Any:
    """Pull the answers out of a blob, which may nest them one level down."""
    blob = blob or {}
    for key in keys:
        if key in blob:
            return blob[key]
    return blob


def recompute_from_ticket(ticket: Ticket) -> PriorityScore:
    """
    Recompute the score from the raw blobs stored on a ticket.

    Accepts both the sections as scored and the assessment blobs the web
    client sends, which nest the answers under criticalIssues, impacts and
    timeline. Tickets created without a questionnaire recompute to the
    empty score.
    """
    urgency = _unwrap(ticket.urgency_timeline_data, "urgency", "timeline")
    return compute({
        "redFlags": _unwrap(ticket.red_flags_data, "criticalIssues"),
        "impact": _unwrap(ticket.impact_assessment_data, "impacts"),
        "urgency": urgency if isinstance(urgency, str) else None,
    })
