"""PDF router: retrieval and serving of stored report PDFs.

Endpoints:
    GET /api/pdf/retrieve           Metadata, download, or list of stored PDFs
    GET /api/pdf/serve/{filename}   Inline PDF by stored file name
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import FileResponse, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from readiness.database import get_db
from readiness.middleware.exceptions import ResourceNotFoundError
from readiness.models.audit_report import AuditReport
from readiness.schemas.report import PdfRetrieveResponse, ReportList
from readiness.services.pdf_storage import PdfStorage, get_pdf_storage
from readiness.services.reports import latest_report, list_reports, summarize

logger = logging.getLogger(__name__)

router = APIRouter()

PDF_MEDIA_TYPE = "application/pdf"


@router.get("/retrieve", response_model=None)
async def retrieve_pdf(
    report_id: str | None = Query(None, alias="reportId"),
    submission_id: str | None = Query(None, alias="submissionId"),
    email: str | None = Query(None),
    download: bool = Query(False),
    list_all: bool = Query(False, alias="list"),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    storage: PdfStorage = Depends(get_pdf_storage),
) -> Response | PdfRetrieveResponse | ReportList:
    """Look up the latest report PDF by reportId, submissionId or email.

    `download=true` streams the file as an attachment; `list=true`
    ignores the lookup keys and lists every report with a stored PDF.
    """
    if list_all:
        rows = await list_reports(db, limit=limit, with_pdf=True)
        return ReportList(
            reports=[summarize(row) for row in rows],
            count=len(rows),
            message=f"Found {len(rows)} stored PDF(s)",
        )

    if not (report_id or submission_id or email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="reportId, submissionId or email is required",
        )

    row = await latest_report(
        db, report_id=report_id, submission_id=submission_id, email=email
    )
    if not row:
        raise ResourceNotFoundError("Report", report_id or submission_id or email)

    report = row[0]
    if not download:
        return PdfRetrieveResponse(report=summarize(row))

    filename = report.pdf_filename or f"ai-audit-{report.id}.pdf"
    path = storage.path_for_url(report.pdf_url)
    if path is not None:
        return FileResponse(path, media_type=PDF_MEDIA_TYPE, filename=filename)

    # Fall back to bytes kept on the row (store_pdf_inline)
    content = (
        await db.execute(select(AuditReport.pdf_data).where(AuditReport.id == report.id))
    ).scalar_one_or_none()
    if not content:
        logger.warning("PDF for report %s is not available (url=%s)", report.id, report.pdf_url)
        raise ResourceNotFoundError("PDF", report.id)

    return Response(
        content=content,
        media_type=PDF_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/serve/{filename}")
async def serve_pdf(
    filename: str,
    storage: PdfStorage = Depends(get_pdf_storage),
):
    path = storage.path_for_name(filename)
    if path is None:
        raise ResourceNotFoundError("PDF", filename)

    return FileResponse(
        path,
        media_type=PDF_MEDIA_TYPE,
        headers={
            "Content-Disposition": f'inline; filename="{path.name}"',
            "Cache-Control": "public, max-age=3600",
        },
    )
