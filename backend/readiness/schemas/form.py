"""Pydantic schemas for the 5-step readiness form.

Attributes are snake_case; the wire format (and the stored form blob) is
camelCase, exactly what the workflow engine receives.

`StepNRequirements` models cover only the fields a step gates on and are
used by the step validator.  `AuditFormSubmission` is the full payload
accepted by the direct submit endpoint.
"""

from typing import Annotated, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _required(message: str) -> AfterValidator:
    """Reject empty strings / empty lists with a human-readable message."""

    def check(value):
        if not value:
            raise PydanticCustomError("required", message)
        return value

    return AfterValidator(check)


# ── Nested config sections ──────────────────────────────────

class TechReadiness(CamelModel):
    current_tools: list[str] | None = None
    comfort_level: Literal["low", "medium", "high"] | None = None
    challenges: list[str] | None = None


class AIGoals(CamelModel):
    primary_objective: str | None = None
    budget_range: str | None = None
    timeline: str | None = None
    specific_use_cases: list[str] | None = None


# ── Per-step requirements ───────────────────────────────────

class StepRequirements(CamelModel):
    # Missing fields fall back to the empty default and are validated too
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, validate_default=True
    )


class CompanyBasicsRequirements(StepRequirements):
    company_name: Annotated[str, _required("Company name is required")] = ""
    industry: Annotated[str, _required("Industry is required")] = ""
    employee_count: Annotated[str, _required("Employee count is required")] = ""


class OperationsRequirements(StepRequirements):
    business_goals: Annotated[
        list[str], _required("Select at least one business goal")
    ] = []
    time_consuming_tasks: Annotated[
        list[str], _required("Add at least one time-consuming task")
    ] = []


class TechReadinessRequirements(StepRequirements):
    """No hard requirements."""


class AIGoalsRequirements(StepRequirements):
    """No hard requirements."""


class ContactRequirements(StepRequirements):
    email: Annotated[str, _required("Email is required")] = ""


# ── Full submission ─────────────────────────────────────────

class AuditFormSubmission(CamelModel):
    # Company basics
    company_name: Annotated[str, _required("Company name is required")]
    industry: Annotated[str, _required("Industry is required")]
    employee_count: Annotated[str, _required("Employee count is required")]
    revenue: str | None = None
    website: str | None = None

    # Business operations
    business_goals: Annotated[list[str], _required("Select at least one business goal")]
    time_consuming_tasks: Annotated[
        list[str], _required("Add at least one time-consuming task")
    ]
    repetitive_task_time: str | None = None

    # Tech readiness / AI goals
    tech_readiness: TechReadiness | None = None
    ai_goals: AIGoals | None = None

    # Contact
    email: Annotated[str, _required("Email is required")]
    full_name: str | None = None
    phone: str | None = None
    preferred_contact: Literal["email", "phone"] | None = None
    marketing_consent: bool | None = None

    # Client-generated correlation id (optional; generated server-side if absent)
    submission_id: str | None = None

    def to_form_data(self) -> dict:
        """camelCase blob as stored on the submission and sent downstream."""
        return self.model_dump(by_alias=True, exclude_none=True)


class SubmissionCreated(CamelModel):
    success: bool = True
    submission_id: str
    correlation_id: str
    completion_score: int
    message: str = "Audit submission saved successfully"
