"""Schemas for the server-side form wizard.

WizardSession is the explicit, serializable draft object the wizard
transitions operate on.  WizardProgress is the API view of it.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from readiness.schemas.form import CamelModel


class StepRecord(BaseModel):
    step: int
    step_name: str
    time_spent: int  # seconds
    completed_at: datetime


class WizardSession(BaseModel):
    id: str | None = None
    form_data: dict = Field(default_factory=dict)
    current_step: int = 0
    completion_score: int = 0
    is_valid: bool = False
    validation_errors: dict[str, str] = Field(default_factory=dict)
    step_history: list[StepRecord] = Field(default_factory=list)
    step_started_at: datetime | None = None
    # Single in-flight flag guarding duplicate submit
    is_submitting: bool = False
    is_submitted: bool = False
    correlation_id: str | None = None
    submission_id: str | None = None


class StepValidation(BaseModel):
    valid: bool
    errors: dict[str, str] = {}


class WizardProgress(CamelModel):
    success: bool = True
    id: str
    current_step: int
    step_name: str
    total_steps: int
    completion_score: int
    is_valid: bool
    validation_errors: dict[str, str]
    is_submitted: bool
    form_data: dict
    correlation_id: str | None = None
    submission_id: str | None = None


class WizardSubmitResult(WizardProgress):
    outcome: str  # report | accepted | timeout
    message: str
    report_id: str | None = None
