"""Audit submission intake.

Handles a completed form:
  - get-or-create the Company by exact name
  - find-or-create the AuditSubmission by correlation id, so a retried
    submit never duplicates the row
  - record the submit (and per-step timings) as UserInteraction events
  - dispatch to the workflow engine and ingest a synchronous report
"""

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from readiness.models.audit_submission import STATUS_IN_PROGRESS, AuditSubmission
from readiness.models.company import Company
from readiness.schemas.wizard import StepRecord
from readiness.services.ingestion import ingest_workflow_report
from readiness.services.pdf_storage import PdfStorage
from readiness.services.scoring import calculate_completion_score
from readiness.services.wizard import TOTAL_STEPS, DispatchOutcome
from readiness.services.workflow import WorkflowClient
from readiness.utils.interactions import log_interaction

logger = logging.getLogger(__name__)

# Keys added to the form blob for the engine, not part of the form itself
DISPATCH_KEYS = ("timestamp", "completionScore", "currentStep", "totalSteps")

OUTCOME_MESSAGES = {
    "report": "Your personalized AI audit report has been generated and saved.",
    "accepted": "Your AI audit has been submitted. We'll email your report shortly.",
    "timeout": (
        "Your AI audit is being processed. This may take a few minutes; "
        "we'll email your detailed report once it's ready."
    ),
}


async def get_or_create_company(db: AsyncSession, form_data: dict) -> Company:
    name = form_data["companyName"]
    result = await db.execute(
        select(Company).where(Company.name == name).order_by(Company.created_at).limit(1)
    )
    company = result.scalar_one_or_none()
    if company:
        return company

    company = Company(
        name=name,
        industry=form_data.get("industry"),
        employee_count_range=form_data.get("employeeCount"),
        annual_revenue_range=form_data.get("revenue"),
        website=form_data.get("website"),
    )
    db.add(company)
    await db.flush()
    logger.info("Created company %s (%s)", company.id, name)
    return company


async def create_submission(
    db: AsyncSession,
    form_data: dict,
    correlation_id: str,
    *,
    step_history: list[StepRecord] | None = None,
) -> AuditSubmission:
    """Persist a submission, or return the one already stored for this id."""
    existing = (
        await db.execute(
            select(AuditSubmission).where(AuditSubmission.correlation_id == correlation_id)
        )
    ).scalar_one_or_none()
    if existing:
        logger.info("Submission %s already stored as %s", correlation_id, existing.id)
        return existing

    blob = {k: v for k, v in form_data.items() if k not in DISPATCH_KEYS}
    blob["submissionId"] = correlation_id

    company = await get_or_create_company(db, blob)
    completion_score = calculate_completion_score(blob)

    submission = AuditSubmission(
        company_id=company.id,
        correlation_id=correlation_id,
        email=blob["email"],
        form_data=blob,
        status=STATUS_IN_PROGRESS,
        completion_percentage=completion_score,
        calculated_metrics={
            "completionScore": completion_score,
            "submittedAt": datetime.utcnow().isoformat(),
            "industry": blob.get("industry"),
            "employeeCount": blob.get("employeeCount"),
        },
    )
    db.add(submission)
    await db.flush()

    for record in step_history or []:
        await log_interaction(
            db, submission.id, "form_step_completed",
            step_name=record.step_name,
            time_spent=record.time_spent,
            interaction_data={"step": record.step},
        )
    await log_interaction(
        db, submission.id, "form_submitted",
        time_spent=sum(r.time_spent for r in step_history or []),
        interaction_data={"completionScore": completion_score, "totalSteps": TOTAL_STEPS},
    )
    logger.info("Stored submission %s for %s", submission.id, correlation_id)
    return submission


async def submit_and_dispatch(
    db: AsyncSession,
    client: WorkflowClient,
    storage: PdfStorage,
    payload: dict,
    *,
    step_history: list[StepRecord] | None = None,
) -> DispatchOutcome:
    """Store the submission, then hand it to the workflow engine.

    The row is committed before dispatch: an asynchronous callback may
    arrive while the outbound call is still open, and no connection is
    held for the length of the call.  WorkflowUnavailableError
    propagates to the caller; the committed row is reused on retry.
    """
    correlation_id = payload["submissionId"]
    submission = await create_submission(
        db, payload, correlation_id, step_history=step_history
    )
    await db.commit()

    result = await client.dispatch(payload)

    report_id = None
    if result.status == "report":
        ingested = await ingest_workflow_report(
            db, storage, result.response, submission=submission
        )
        report_id = ingested.report_id
    elif result.status == "timeout":
        await log_interaction(
            db, submission.id, "dispatch_timeout",
            interaction_data={"timeoutSeconds": client.timeout},
        )

    return DispatchOutcome(
        status=result.status,
        submission_id=submission.id,
        report_id=report_id,
        message=OUTCOME_MESSAGES[result.status],
    )
