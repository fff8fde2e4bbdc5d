"""Report and PDF ingestion.

Three inbound shapes end up in the same place, the single current
AuditReport of a submission:

    ingest_workflow_report  synchronous engine response (structured report)
    ingest_pdf_callback     asynchronous callback carrying a PDF binary
    ingest_store_pdf        explicit store request (data: URL)

Order of work for every path:
    1. decode + signature-check the PDF   (format error → nothing written)
    2. resolve the owning submission      (reconciler)
    3. write the PDF file                 (I/O failure → report without PDF)
    4. upsert the report, advance the submission status
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from readiness.config import settings
from readiness.middleware.exceptions import PdfFormatError, WorkflowRejectedError
from readiness.models.audit_report import AuditReport
from readiness.models.audit_submission import (
    STATUS_COMPLETED,
    STATUS_PDF_READY,
    AuditSubmission,
)
from readiness.schemas.report import (
    IngestionResponse,
    PdfCallback,
    StorePdfRequest,
    WorkflowResponse,
)
from readiness.services.pdf_storage import PdfStorage, StoredPdf, decode_pdf
from readiness.services.reconciler import MatchKeys, resolve_submission
from readiness.utils.interactions import log_interaction

logger = logging.getLogger(__name__)


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _store(storage: PdfStorage, content: bytes, filename: str) -> StoredPdf | None:
    """Write the PDF; an I/O failure degrades to a report without a file."""
    try:
        return storage.save(content, filename)
    except OSError as exc:
        logger.warning("PDF storage failed for %s, keeping report without file: %s", filename, exc)
        return None


async def _upsert_report(
    db: AsyncSession,
    submission: AuditSubmission,
    report_data: dict,
    *,
    stored: StoredPdf | None = None,
    content: bytes | None = None,
    pdf_url: str | None = None,
    pdf_filename: str | None = None,
    generated_at: datetime | None = None,
) -> AuditReport:
    """Update the submission's first report in place, or create it.

    Report data is merged key-by-key; the PDF columns are replaced
    whenever a new PDF is supplied.
    """
    result = await db.execute(
        select(AuditReport)
        .where(AuditReport.submission_id == submission.id)
        .order_by(AuditReport.generated_at)
        .limit(1)
    )
    report = result.scalar_one_or_none()
    if report is None:
        report = AuditReport(submission_id=submission.id, report_data={})
        db.add(report)
        logger.info("Creating report for submission %s", submission.id)
    else:
        logger.info("Updating report %s for submission %s", report.id, submission.id)

    report.report_data = {**(report.report_data or {}), **report_data}
    if generated_at is not None:
        report.generated_at = generated_at

    if stored is not None:
        report.pdf_url = stored.url
        report.pdf_filename = stored.filename
        report.pdf_file_size = stored.size
        report.pdf_stored_at = datetime.utcnow()
        if settings.store_pdf_inline and content is not None:
            report.pdf_data = content
    elif pdf_url:
        report.pdf_url = pdf_url
        report.pdf_filename = pdf_filename
        report.pdf_stored_at = datetime.utcnow()

    await db.flush()
    return report


def _advance_submission(submission: AuditSubmission, status: str, metrics: dict) -> None:
    submission.status = status
    submission.completed_at = datetime.utcnow()
    # New dict so the JSON column is flagged dirty
    submission.calculated_metrics = {**(submission.calculated_metrics or {}), **metrics}


async def ingest_workflow_report(
    db: AsyncSession,
    storage: PdfStorage,
    response: WorkflowResponse,
    submission: AuditSubmission | None = None,
) -> IngestionResponse:
    """Persist a synchronous engine report.

    Raises:
        WorkflowRejectedError: engine reported failure or sent no report
        SubmissionNotFoundError: no submission for response.submission_id
    """
    if not response.success:
        raise WorkflowRejectedError(response.error or "Workflow processing failed")
    if response.report is None:
        raise WorkflowRejectedError("Workflow response did not include a report")

    matched_by = None
    if submission is None:
        match = await resolve_submission(db, MatchKeys(submission_id=response.submission_id))
        submission, matched_by = match.submission, match.strategy

    report = response.report
    blob = report.model_dump(by_alias=True, mode="json")
    pdf_format = report.formats.pdf
    if blob["formats"].get("pdf"):
        blob["formats"]["pdf"].pop("data", None)

    stored = content = None
    if pdf_format is not None and pdf_format.data:
        try:
            content = decode_pdf(pdf_format.data)
        except PdfFormatError as exc:
            logger.warning(
                "Ignoring invalid PDF in report for %s: %s", response.submission_id, exc.message
            )
        else:
            stored = _store(storage, content, pdf_format.filename)

    row = await _upsert_report(
        db, submission, blob,
        stored=stored,
        content=content,
        pdf_url=pdf_format.url if pdf_format else None,
        pdf_filename=pdf_format.filename if pdf_format else None,
        generated_at=_naive_utc(report.generated_at),
    )
    _advance_submission(submission, STATUS_COMPLETED, {
        "aiReadinessScore": report.ai_readiness_score,
        "industryBenchmark": report.industry_benchmark.model_dump(by_alias=True),
        "processingTime": response.processing_time,
        "reportGeneratedAt": blob["generatedAt"],
    })
    await log_interaction(
        db, submission.id, "report_received",
        interaction_data={"reportId": row.id, "hasPdf": row.pdf_url is not None},
    )

    return IngestionResponse(
        submission_id=submission.id,
        report_id=row.id,
        pdf_url=row.pdf_url,
        matched_by=matched_by,
        message="Report saved successfully",
    )


async def ingest_pdf_callback(
    db: AsyncSession,
    storage: PdfStorage,
    callback: PdfCallback,
) -> IngestionResponse:
    """Persist the PDF the engine posts back once rendering finishes.

    Raises:
        PdfFormatError: data.data is not a base64 PDF
        SubmissionNotFoundError: no strategy matched
    """
    content = decode_pdf(callback.data.data)

    match = await resolve_submission(db, MatchKeys(
        submission_id=callback.submission_id,
        email=callback.email,
        company_name=callback.resolved_company_name,
    ))
    submission = match.submission

    stored = _store(storage, content, callback.data.file_name)
    now = datetime.utcnow().isoformat()
    pdf_metadata = {
        "filename": callback.data.file_name,
        "fileSize": len(content),
        "mimeType": callback.data.mime_type,
        "fileExtension": callback.data.file_extension,
        "storedAt": now if stored else None,
        "originalTimestamp": callback.timestamp,
        "processedByWorkflow": True,
    }

    row = await _upsert_report(
        db, submission,
        {"status": "completed_with_pdf", "pdfMetadata": pdf_metadata},
        stored=stored,
        content=content,
    )
    # A degraded store reports no PDF even if an earlier file is still on the row
    pdf_url = row.pdf_url if stored else None
    _advance_submission(submission, STATUS_COMPLETED, {
        "pdfGenerated": stored is not None,
        "pdfUrl": pdf_url,
        "workflowCompletedAt": now,
    })
    await log_interaction(
        db, submission.id, "pdf_received",
        interaction_data={"reportId": row.id, "matchedBy": match.strategy},
    )

    return IngestionResponse(
        submission_id=submission.id,
        report_id=row.id,
        pdf_url=pdf_url,
        matched_by=match.strategy,
        pdf_metadata=pdf_metadata,
        message=(
            "PDF report received and stored successfully" if stored
            else "PDF report received but the file could not be stored"
        ),
    )


async def ingest_store_pdf(
    db: AsyncSession,
    storage: PdfStorage,
    request: StorePdfRequest,
) -> IngestionResponse:
    """Persist a PDF sent as a data: URL and mark the submission pdf_ready."""
    content = decode_pdf(request.pdf_data)

    match = await resolve_submission(db, MatchKeys(
        submission_id=request.submission_id,
        email=request.email,
        company_name=request.company_name,
    ))
    submission = match.submission

    stored = _store(storage, content, request.filename)
    pdf_metadata = {
        "filename": request.filename,
        "fileSize": request.file_size,
        "storedAt": datetime.utcnow().isoformat() if stored else None,
        "originalTimestamp": request.timestamp,
    }

    row = await _upsert_report(
        db, submission,
        {"status": "pdf_ready", "pdfMetadata": pdf_metadata},
        stored=stored,
        content=content,
    )
    pdf_url = row.pdf_url if stored else None
    _advance_submission(submission, STATUS_PDF_READY, {
        "pdfGenerated": stored is not None,
        "pdfUrl": pdf_url,
    })
    await log_interaction(
        db, submission.id, "pdf_received",
        interaction_data={"reportId": row.id, "matchedBy": match.strategy},
    )

    return IngestionResponse(
        submission_id=submission.id,
        report_id=row.id,
        pdf_url=pdf_url,
        matched_by=match.strategy,
        pdf_metadata=pdf_metadata,
        message="PDF stored successfully" if stored else "PDF could not be stored",
    )
