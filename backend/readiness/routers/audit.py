"""Audit router: form intake, report/PDF ingestion and report queries.

Endpoints:
    POST /api/audit/submit             Store a completed audit form
    POST /api/audit/report             Ingest a synchronous engine report
    POST /api/audit/webhook-response   Ingest the engine's PDF callback
    POST /api/audit/store-pdf          Store a PDF sent as a data: URL
    GET  /api/audit/reports            Reports by submission id or email
    POST /api/audit/reports            Mark opened / sent, merge metadata
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from readiness.database import get_db
from readiness.middleware.exceptions import ResourceNotFoundError
from readiness.schemas.form import AuditFormSubmission, SubmissionCreated
from readiness.schemas.report import (
    IngestionResponse,
    PdfCallback,
    ReportAction,
    ReportActionResponse,
    ReportList,
    StorePdfRequest,
    WorkflowResponse,
)
from readiness.services.ingestion import (
    ingest_pdf_callback,
    ingest_store_pdf,
    ingest_workflow_report,
)
from readiness.services.pdf_storage import PdfStorage, get_pdf_storage
from readiness.services.reports import latest_report, list_reports, summarize
from readiness.services.submission import create_submission
from readiness.services.workflow import generate_correlation_id
from readiness.utils.interactions import log_interaction

logger = logging.getLogger(__name__)

router = APIRouter()

ACTION_MESSAGES = {
    "mark_opened": "Report marked as opened",
    "mark_sent": "Report marked as sent",
    "update_metadata": "Report metadata updated",
}


# ── Intake ──────────────────────────────────────────────────

@router.post("/submit", response_model=SubmissionCreated, status_code=status.HTTP_201_CREATED)
async def submit_audit(
    body: AuditFormSubmission,
    db: AsyncSession = Depends(get_db),
):
    """Store a validated audit form.

    A client-supplied submissionId is kept as the correlation id, so
    repeating the call returns the same submission.
    """
    correlation_id = body.submission_id or generate_correlation_id()
    submission = await create_submission(db, body.to_form_data(), correlation_id)

    return SubmissionCreated(
        submission_id=submission.id,
        correlation_id=correlation_id,
        completion_score=submission.completion_percentage,
    )


# ── Ingestion ───────────────────────────────────────────────

@router.post("/report", response_model=IngestionResponse)
async def receive_report(
    body: WorkflowResponse,
    db: AsyncSession = Depends(get_db),
    storage: PdfStorage = Depends(get_pdf_storage),
):
    return await ingest_workflow_report(db, storage, body)


@router.post("/webhook-response", response_model=IngestionResponse)
async def receive_pdf_callback(
    body: PdfCallback,
    db: AsyncSession = Depends(get_db),
    storage: PdfStorage = Depends(get_pdf_storage),
):
    logger.info(
        "PDF callback received: submissionId=%s email=%s company=%s file=%s",
        body.submission_id, body.email, body.resolved_company_name, body.data.file_name,
    )
    return await ingest_pdf_callback(db, storage, body)


@router.post("/store-pdf", response_model=IngestionResponse)
async def store_pdf(
    body: StorePdfRequest,
    db: AsyncSession = Depends(get_db),
    storage: PdfStorage = Depends(get_pdf_storage),
):
    return await ingest_store_pdf(db, storage, body)


# ── Report queries ──────────────────────────────────────────

@router.get("/reports", response_model=ReportList)
async def get_reports(
    submission_id: str | None = Query(None, alias="submissionId"),
    email: str | None = Query(None),
    include_metadata: bool = Query(False, alias="includeMetadata"),
    db: AsyncSession = Depends(get_db),
):
    if not submission_id and not email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Either submissionId or email is required",
        )

    rows = await list_reports(db, submission_id=submission_id, email=email)
    return ReportList(
        reports=[summarize(row, include_metadata) for row in rows],
        count=len(rows),
        message=f"Found {len(rows)} report(s)" if rows else "No reports found",
    )


@router.post("/reports", response_model=ReportActionResponse)
async def update_report(
    body: ReportAction,
    db: AsyncSession = Depends(get_db),
):
    row = await latest_report(db, report_id=body.report_id)
    if not row:
        raise ResourceNotFoundError("Report", body.report_id)

    report, submission = row[0], row[1]
    if body.action == "mark_opened":
        report.opened_at = datetime.utcnow()
        await log_interaction(
            db, submission.id, "report_opened", interaction_data={"reportId": report.id}
        )
    elif body.action == "mark_sent":
        report.sent_at = datetime.utcnow()
        await log_interaction(
            db, submission.id, "report_sent", interaction_data={"reportId": report.id}
        )
    else:
        report.report_data = {**(report.report_data or {}), **(body.metadata or {})}

    await db.flush()
    logger.info("Report %s: %s", report.id, body.action)

    return ReportActionResponse(
        report=summarize(row),
        action=body.action,
        message=ACTION_MESSAGES[body.action],
    )
