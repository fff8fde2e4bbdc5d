"""Completion scorer: 0..100 progress from partial form data.

The form is split into 5 weighted steps (25, 25, 15, 15, 20).  Inside a
step, required fields share 80% of the weight and optional fields the
remaining 20%.  A step with no required fields gives its whole weight to
the optional fields.

The score is always recomputed from the full snapshot; it never raises
and is idempotent.
"""

import math
from dataclasses import dataclass
from typing import Any, Mapping

REQUIRED_SHARE = 0.8


@dataclass(frozen=True)
class StepChecklist:
    name: str
    weight: int
    required: tuple[str, ...] = ()
    optional: tuple[str, ...] = ()


STEP_CHECKLISTS: tuple[StepChecklist, ...] = (
    StepChecklist(
        name="company_basics",
        weight=25,
        required=("companyName", "industry", "employeeCount"),
        optional=("revenue", "website"),
    ),
    StepChecklist(
        name="business_operations",
        weight=25,
        required=("businessGoals", "timeConsumingTasks"),
        optional=("repetitiveTaskTime",),
    ),
    StepChecklist(
        name="tech_readiness",
        weight=15,
        optional=("techReadiness",),
    ),
    StepChecklist(
        name="ai_goals",
        weight=15,
        optional=("aiGoals",),
    ),
    StepChecklist(
        name="contact_info",
        weight=20,
        required=("email",),
        optional=("fullName", "phone", "preferredContact", "marketingConsent"),
    ),
)


def is_field_completed(value: Any) -> bool:
    """Recursive completeness check over the form's value shapes.

    - None, "", whitespace, [], {}  → incomplete
    - bool                          → always complete (False included)
    - non-empty str / list          → complete
    - dict                          → complete iff any value is complete
    - numbers                       → complete iff non-zero
    """
    if value is None:
        return False
    if isinstance(value, bool):
        return True
    if isinstance(value, str):
        return len(value.strip()) > 0
    if isinstance(value, (list, tuple)):
        return len(value) > 0
    if isinstance(value, Mapping):
        return any(is_field_completed(v) for v in value.values())
    if isinstance(value, (int, float)):
        return value != 0
    return False


def score_step(checklist: StepChecklist, form_data: Mapping[str, Any]) -> float:
    """Unrounded contribution of one step to the total."""
    done_required = sum(1 for f in checklist.required if is_field_completed(form_data.get(f)))
    done_optional = sum(1 for f in checklist.optional if is_field_completed(form_data.get(f)))

    if not checklist.required:
        if not checklist.optional:
            return 0.0
        return checklist.weight * done_optional / len(checklist.optional)

    score = checklist.weight * REQUIRED_SHARE * done_required / len(checklist.required)
    if checklist.optional:
        optional_weight = checklist.weight - checklist.weight * REQUIRED_SHARE
        score += optional_weight * done_optional / len(checklist.optional)
    return score


def calculate_completion_score(form_data: Mapping[str, Any] | None) -> int:
    """Weighted completion percentage in [0, 100], rounded half up."""
    if not isinstance(form_data, Mapping):
        return 0
    total = sum(score_step(checklist, form_data) for checklist in STEP_CHECKLISTS)
    return int(min(100, max(0, math.floor(total + 0.5))))
