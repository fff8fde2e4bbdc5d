"""Form wizard state machine.

FormWizard runs the transitions of the 5-step form over an explicit
WizardSession:

    update_field(patch)  merge → rescore → revalidate current step
    next()               only when the current step is valid; clamps at 4
    prev()               always allowed; clamps at 0
    submit(dispatch)     last step only, current step valid, one in flight

The wizard performs no I/O of its own.  Drafts are persisted by a
DraftStore injected by the caller, and the submit hand-off is an async
callable supplied per call.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from readiness.middleware.exceptions import (
    BusinessLogicError,
    ResourceNotFoundError,
    StepValidationError,
    SubmitInProgressError,
)
from readiness.models.wizard_draft import WizardDraft
from readiness.schemas.wizard import StepRecord, WizardSession
from readiness.services.scoring import STEP_CHECKLISTS, calculate_completion_score
from readiness.services.validation import validate_step

logger = logging.getLogger(__name__)

TOTAL_STEPS = len(STEP_CHECKLISTS)
LAST_STEP = TOTAL_STEPS - 1
STEP_NAMES = [checklist.name for checklist in STEP_CHECKLISTS]

# Config sections merged one level deep by update_field
NESTED_SECTIONS = ("techReadiness", "aiGoals")

INITIAL_FORM_DATA: dict = {
    "businessGoals": [],
    "timeConsumingTasks": [],
    "techReadiness": {
        "currentTools": [],
        "comfortLevel": "medium",
        "challenges": [],
    },
    "aiGoals": {
        "specificUseCases": [],
    },
    "marketingConsent": False,
}


@dataclass
class DispatchOutcome:
    """Result of handing a submission to the report workflow."""
    status: str  # report | accepted | timeout
    submission_id: str
    report_id: str | None = None
    message: str = ""


Dispatcher = Callable[[dict], Awaitable[DispatchOutcome]]


def new_session(now: datetime | None = None) -> WizardSession:
    session = WizardSession(
        form_data=copy.deepcopy(INITIAL_FORM_DATA),
        step_started_at=now or datetime.utcnow(),
    )
    return FormWizard(session).refresh()


def merge_form_data(current: dict, patch: dict) -> dict:
    """Shallow merge; nested config sections merge at their own level."""
    merged = dict(current)
    for key, value in patch.items():
        if key in NESTED_SECTIONS and isinstance(value, dict):
            section = current.get(key)
            merged[key] = {**(section if isinstance(section, dict) else {}), **value}
        else:
            merged[key] = value
    return merged


class FormWizard:
    """Transitions over a WizardSession (mutated in place)."""

    def __init__(self, session: WizardSession, clock: Callable[[], datetime] = datetime.utcnow):
        self.session = session
        self._clock = clock

    @property
    def step_name(self) -> str:
        return STEP_NAMES[self.session.current_step]

    def refresh(self) -> WizardSession:
        """Recompute score and current-step validation from the snapshot."""
        s = self.session
        s.completion_score = calculate_completion_score(s.form_data)
        result = validate_step(s.form_data, s.current_step)
        s.is_valid = result.valid
        s.validation_errors = result.errors
        return s

    def _ensure_editable(self) -> None:
        if self.session.is_submitted:
            raise BusinessLogicError("Audit already submitted", error_code="ALREADY_SUBMITTED")

    def update_field(self, patch: dict) -> WizardSession:
        self._ensure_editable()
        self.session.form_data = merge_form_data(self.session.form_data, patch)
        return self.refresh()

    def next(self) -> bool:
        """Advance one step if the current step validates."""
        self._ensure_editable()
        self.refresh()
        if not self.session.is_valid:
            return False

        s = self.session
        if s.current_step == LAST_STEP:
            return True

        now = self._clock()
        started = s.step_started_at or now
        s.step_history.append(
            StepRecord(
                step=s.current_step,
                step_name=self.step_name,
                time_spent=max(int((now - started).total_seconds()), 0),
                completed_at=now,
            )
        )
        s.current_step += 1
        s.step_started_at = now
        self.refresh()
        return True

    def prev(self) -> WizardSession:
        self._ensure_editable()
        s = self.session
        s.current_step = max(s.current_step - 1, 0)
        s.step_started_at = self._clock()
        return self.refresh()

    def build_payload(self) -> dict:
        """Payload handed to the workflow engine."""
        s = self.session
        return {
            **s.form_data,
            "submissionId": s.correlation_id,
            "timestamp": self._clock().isoformat() + "Z",
            "completionScore": s.completion_score,
            "currentStep": s.current_step + 1,
            "totalSteps": TOTAL_STEPS,
        }

    async def submit(
        self,
        dispatch: Dispatcher,
        correlation_id_factory: Callable[[], str],
    ) -> DispatchOutcome:
        """Hand the form off for report generation.

        Any outcome returned by `dispatch` (report, accepted, timeout)
        moves the session to submitted.  An exception from `dispatch`
        (network failure) leaves the session where it was.
        """
        s = self.session
        if s.is_submitting:
            raise SubmitInProgressError()
        self._ensure_editable()
        if s.current_step != LAST_STEP:
            raise BusinessLogicError(
                "Submit is only available on the last step",
                error_code="NOT_ON_LAST_STEP",
            )

        self.refresh()
        if not s.is_valid:
            raise StepValidationError(s.current_step, s.validation_errors)

        if not s.correlation_id:
            s.correlation_id = correlation_id_factory()

        s.is_submitting = True
        try:
            outcome = await dispatch(self.build_payload())
        finally:
            s.is_submitting = False

        s.is_submitted = True
        s.submission_id = outcome.submission_id
        logger.info(
            "Wizard %s submitted as %s (outcome=%s)",
            s.id, s.correlation_id, outcome.status,
        )
        return outcome


class DraftStore:
    """Persists WizardSessions in the wizard_drafts table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self) -> WizardSession:
        session = new_session()
        draft = WizardDraft()
        self.db.add(draft)
        self._apply(draft, session)
        await self.db.flush()
        session.id = draft.id
        return session

    async def load(self, draft_id: str) -> WizardSession:
        draft = await self._get(draft_id)
        session = WizardSession(
            id=draft.id,
            form_data=draft.form_data or {},
            current_step=draft.current_step,
            step_history=draft.step_history or [],
            step_started_at=draft.step_started_at,
            is_submitted=draft.is_submitted,
            correlation_id=draft.correlation_id,
            submission_id=draft.submission_id,
        )
        return FormWizard(session).refresh()

    async def save(self, session: WizardSession) -> None:
        draft = await self._get(session.id)
        self._apply(draft, session)
        await self.db.flush()

    async def delete(self, draft_id: str) -> None:
        draft = await self._get(draft_id)
        await self.db.delete(draft)
        await self.db.flush()

    async def _get(self, draft_id: str | None) -> WizardDraft:
        result = await self.db.execute(
            select(WizardDraft).where(WizardDraft.id == draft_id)
        )
        draft = result.scalar_one_or_none()
        if not draft:
            raise ResourceNotFoundError("Wizard session", str(draft_id))
        return draft

    @staticmethod
    def _apply(draft: WizardDraft, session: WizardSession) -> None:
        draft.current_step = session.current_step
        draft.form_data = copy.deepcopy(session.form_data)
        draft.completion_score = session.completion_score
        draft.step_history = [r.model_dump(mode="json") for r in session.step_history]
        draft.step_started_at = session.step_started_at
        draft.correlation_id = session.correlation_id
        draft.submission_id = session.submission_id
        draft.is_submitted = session.is_submitted
