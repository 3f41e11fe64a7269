"""
TMS Effort Scorer

Effort is independent of priority: it measures how much work a ticket
took and drives point distribution on completion.

Base effort: 4 categories x up to 3 items, 1 point each, capped at 3 per
category (0-12).

Collaboration bonus is a flat per-head incentive on top of an evenly
split base:

    total = base + extra(n) * n
    share = total / n = base / n + extra(n)
"""

from typing import Any, Union

from pydantic import BaseModel, ConfigDict, field_validator

from ..models.ticket import Checklist, WireModel


CATEGORY_CAP = 3

# (lowest assignee count of the tier, extra points per person)
COLLABORATION_TIERS = (
    (7, 8),
    (5, 6),
    (3, 4),
    (2, 2),
    (1, 0),
)


class _Category(Checklist):
    def raw_points(self) -> int:
        return sum(1 for value in self.model_dump().values() if value)

    def points(self) -> int:
        return min(CATEGORY_CAP, self.raw_points())


class Development(_Category):
    version_control: bool = False
    external_service: bool = False
    internal_integration: bool = False


class Security(_Category):
    legal_compliance: bool = False
    access_control: bool = False
    personal_data: bool = False


class Data(_Category):
    migration: bool = False
    data_preparation: bool = False
    encryption: bool = False


class Operations(_Category):
    off_hours: bool = False
    training: bool = False
    uat: bool = False


class EffortChecklist(WireModel):
    """Effort checklist selections, one section per category."""
    model_config = ConfigDict(extra="ignore")

    development: Development = Development()
    security: Security = Security()
    data: Data = Data()
    operations: Operations = Operations()

    @field_validator("development", "security", "data", "operations", mode="before")
    @classmethod
    def _section(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, BaseModel)) else {}


def _checklist(checklist: Union[EffortChecklist, dict, None]) -> EffortChecklist:
    if checklist is None:
        return EffortChecklist()
    if isinstance(checklist, dict):
        return EffortChecklist.model_validate(checklist)
    return checklist


def compute_base(checklist: Union[EffortChecklist, dict, None]) -> int:
    """Base effort (0-12) before collaboration."""
    checklist = _checklist(checklist)
    return sum(
        category.points()
        for category in (
            checklist.development,
            checklist.security,
            checklist.data,
            checklist.operations,
        )
    )


def collaboration_extra_per_person(assignee_count: int) -> int:
    """
    Collaboration bonus per person.

    - 1: 0
    - 2: 2
    - 3-4: 4
    - 5-6: 6
    - 7+: 8

    Counts of zero or less are looked up as 1.
    """
    assignee_count = max(1, assignee_count)
    for lowest, extra in COLLABORATION_TIERS:
        if assignee_count >= lowest:
            return extra
    return 0


def total_for_base(base: int, assignee_count: int) -> float:
    assignee_count = max(1, assignee_count)
    extra = collaboration_extra_per_person(assignee_count)
    return float(base + extra * assignee_count)


def total_points_for_distribution(
    checklist: Union[EffortChecklist, dict, None],
    assignee_count: int
) -> float:
    """
    Total to hand to the distribution step.

    Dividing it evenly gives each assignee base / n + extra(n). Callers
    must never distribute with zero assignees; a count of zero is only
    treated as 1 here so the arithmetic stays defined.
    """
    return total_for_base(compute_base(checklist), assignee_count)


def share_per_person(base: int, assignee_count: int) -> float:
    assignee_count = max(1, assignee_count)
    return total_for_base(base, assignee_count) / assignee_count
