"""Report lookups shared by the audit and PDF routers.

Rows are always fetched as (AuditReport, AuditSubmission, Company)
tuples through explicit joins; report PDF bytes stay deferred.
"""

from sqlalchemy import Select, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from readiness.models.audit_report import AuditReport
from readiness.models.audit_submission import AuditSubmission
from readiness.models.company import Company
from readiness.schemas.report import PdfInfo, ReportSummary
from readiness.services.pdf_storage import format_file_size

ReportRow = tuple[AuditReport, AuditSubmission, Company]


def report_query() -> Select:
    return (
        select(AuditReport, AuditSubmission, Company)
        .join(AuditSubmission, AuditSubmission.id == AuditReport.submission_id)
        .join(Company, Company.id == AuditSubmission.company_id)
    )


def filter_reports(
    stmt: Select,
    *,
    report_id: str | None = None,
    submission_id: str | None = None,
    email: str | None = None,
    with_pdf: bool = False,
) -> Select:
    """Narrow a report query.  submission_id matches the row id or correlation id."""
    if report_id:
        stmt = stmt.where(AuditReport.id == report_id)
    if submission_id:
        stmt = stmt.where(
            or_(
                AuditSubmission.id == submission_id,
                AuditSubmission.correlation_id == submission_id,
            )
        )
    if email:
        stmt = stmt.where(AuditSubmission.email == email.strip())
    if with_pdf:
        stmt = stmt.where(AuditReport.pdf_url.is_not(None))
    return stmt.order_by(AuditReport.generated_at.desc())


async def list_reports(db: AsyncSession, limit: int = 100, **filters) -> list[ReportRow]:
    result = await db.execute(filter_reports(report_query(), **filters).limit(limit))
    return [tuple(row) for row in result.all()]


async def latest_report(db: AsyncSession, **filters) -> ReportRow | None:
    rows = await list_reports(db, limit=1, **filters)
    return rows[0] if rows else None


def summarize(row: ReportRow, include_metadata: bool = False) -> ReportSummary:
    report, submission, company = row
    return ReportSummary(
        id=report.id,
        submission_id=submission.id,
        correlation_id=submission.correlation_id,
        company_name=company.name,
        email=submission.email,
        report_type=report.report_type,
        submission_status=submission.status,
        generated_at=report.generated_at,
        completed_at=submission.completed_at,
        pdf=PdfInfo(
            available=bool(report.pdf_url),
            url=report.pdf_url,
            filename=report.pdf_filename,
            file_size=report.pdf_file_size,
            file_size_formatted=format_file_size(report.pdf_file_size),
            stored_at=report.pdf_stored_at,
        ),
        email_sent=report.sent_at is not None,
        email_sent_at=report.sent_at,
        email_opened=report.opened_at is not None,
        email_opened_at=report.opened_at,
        report_data=report.report_data if include_metadata else None,
        form_data=submission.form_data if include_metadata else None,
    )
