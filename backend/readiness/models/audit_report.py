"""AuditReport: the generated readiness report for a submission.

The schema allows several reports per submission, but ingestion keeps a
single current report by upserting "the first report" of a submission.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, JSON, LargeBinary, String
from sqlalchemy.orm import Mapped, mapped_column

from readiness.database import Base


class AuditReport(Base):
    __tablename__ = "audit_reports"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    submission_id: Mapped[str] = mapped_column(
        ForeignKey("audit_submissions.id"), nullable=False, index=True
    )
    report_type: Mapped[str] = mapped_column(String(50), default="comprehensive")
    report_data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    # ── PDF artifact ─────────────────────────────────────────
    pdf_url: Mapped[str | None] = mapped_column(String(500))
    pdf_filename: Mapped[str | None] = mapped_column(String(255))
    pdf_file_size: Mapped[int | None] = mapped_column(Integer)
    pdf_stored_at: Mapped[datetime | None] = mapped_column(DateTime)
    # Only populated when settings.store_pdf_inline is on
    pdf_data: Mapped[bytes | None] = mapped_column(LargeBinary, deferred=True)

    # ── Email engagement ─────────────────────────────────────
    generated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime)
    opened_at: Mapped[datetime | None] = mapped_column(DateTime)
