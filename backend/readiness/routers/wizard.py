"""Audit form wizard: 5-step draft with save/resume and submit.

Endpoints:
  POST   /api/wizard/sessions                → start a draft
  GET    /api/wizard/sessions/{id}           → progress + form data
  PATCH  /api/wizard/sessions/{id}           → merge a partial form update
  POST   /api/wizard/sessions/{id}/next      → advance (current step must validate)
  POST   /api/wizard/sessions/{id}/prev      → go back one step
  POST   /api/wizard/sessions/{id}/submit    → hand off for report generation
  DELETE /api/wizard/sessions/{id}           → discard the draft

Design:
  - Every request loads the draft, applies one FormWizard transition
    and saves it back in the same transaction.
  - A draft being submitted is tracked in-process; a second submit for
    the same draft gets 409 until the first returns.
  - The draft and its submission row are committed before the workflow
    engine is called.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from readiness.database import get_db
from readiness.middleware.exceptions import StepValidationError, SubmitInProgressError
from readiness.schemas.wizard import WizardProgress, WizardSession, WizardSubmitResult
from readiness.services.pdf_storage import PdfStorage, get_pdf_storage
from readiness.services.submission import submit_and_dispatch
from readiness.services.wizard import TOTAL_STEPS, DraftStore, FormWizard
from readiness.services.workflow import (
    WorkflowClient,
    generate_correlation_id,
    get_workflow_client,
)

router = APIRouter()

# Draft ids with a submit currently awaiting the workflow engine
_submitting: set[str] = set()


def _progress(session: WizardSession) -> WizardProgress:
    return WizardProgress(
        id=session.id,
        current_step=session.current_step,
        step_name=FormWizard(session).step_name,
        total_steps=TOTAL_STEPS,
        completion_score=session.completion_score,
        is_valid=session.is_valid,
        validation_errors=session.validation_errors,
        is_submitted=session.is_submitted,
        form_data=session.form_data,
        correlation_id=session.correlation_id,
        submission_id=session.submission_id,
    )


@router.post("/sessions", response_model=WizardProgress, status_code=status.HTTP_201_CREATED)
async def start_session(db: AsyncSession = Depends(get_db)):
    session = await DraftStore(db).create()
    return _progress(session)


@router.get("/sessions/{session_id}", response_model=WizardProgress)
async def get_session(session_id: str, db: AsyncSession = Depends(get_db)):
    return _progress(await DraftStore(db).load(session_id))


@router.patch("/sessions/{session_id}", response_model=WizardProgress)
async def update_session(
    session_id: str,
    patch: dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_db),
):
    """Merge camelCase form fields into the draft.

    Top-level keys replace; techReadiness / aiGoals merge one level deep.
    """
    store = DraftStore(db)
    session = await store.load(session_id)
    FormWizard(session).update_field(patch)
    await store.save(session)
    return _progress(session)


@router.post("/sessions/{session_id}/next", response_model=WizardProgress)
async def next_step(session_id: str, db: AsyncSession = Depends(get_db)):
    store = DraftStore(db)
    session = await store.load(session_id)
    if not FormWizard(session).next():
        raise StepValidationError(session.current_step, session.validation_errors)
    await store.save(session)
    return _progress(session)


@router.post("/sessions/{session_id}/prev", response_model=WizardProgress)
async def prev_step(session_id: str, db: AsyncSession = Depends(get_db)):
    store = DraftStore(db)
    session = await store.load(session_id)
    FormWizard(session).prev()
    await store.save(session)
    return _progress(session)


@router.post("/sessions/{session_id}/submit", response_model=WizardSubmitResult)
async def submit_session(
    session_id: str,
    db: AsyncSession = Depends(get_db),
    client: WorkflowClient = Depends(get_workflow_client),
    storage: PdfStorage = Depends(get_pdf_storage),
):
    """Store the submission and dispatch it to the workflow engine.

    A report, an acknowledgement and a timeout all mark the draft
    submitted.  An unreachable engine returns 502 and leaves the draft
    on the last step; the retry reuses its correlation id and the
    already stored submission.
    """
    # Marked before the first await so a concurrent submit sees it
    if session_id in _submitting:
        raise SubmitInProgressError()
    _submitting.add(session_id)

    store = DraftStore(db)
    try:
        session = await store.load(session_id)

        async def dispatch(payload: dict):
            # Committed with the submission row, so a retry keeps the correlation id
            await store.save(session)
            return await submit_and_dispatch(
                db, client, storage, payload, step_history=session.step_history
            )

        outcome = await FormWizard(session).submit(dispatch, generate_correlation_id)
    finally:
        _submitting.discard(session_id)

    await store.save(session)
    return WizardSubmitResult(
        **_progress(session).model_dump(),
        outcome=outcome.status,
        message=outcome.message,
        report_id=outcome.report_id,
    )


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(session_id: str, db: AsyncSession = Depends(get_db)) -> None:
    await DraftStore(db).delete(session_id)
