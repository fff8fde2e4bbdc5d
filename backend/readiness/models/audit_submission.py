"""AuditSubmission: one completed run of the readiness wizard.

The full wizard payload is kept verbatim in `form_data`.  The client
correlation id that the workflow engine echoes back is extracted into
`correlation_id` at write time so callbacks can be matched with an
indexed lookup instead of a path-into-JSON predicate.

Lifecycle:  in_progress → pdf_ready | completed
(mutated in place by report / PDF ingestion, never deleted)
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from readiness.database import Base

STATUS_IN_PROGRESS = "in_progress"
STATUS_PDF_READY = "pdf_ready"
STATUS_COMPLETED = "completed"


class AuditSubmission(Base):
    __tablename__ = "audit_submissions"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id"), nullable=False, index=True
    )
    # sub_<epoch-ms>_<random>; also present inside form_data["submissionId"]
    correlation_id: Mapped[str | None] = mapped_column(String(64), index=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    form_data: Mapped[dict] = mapped_column(JSON, nullable=False)
    # in_progress | pdf_ready | completed
    status: Mapped[str] = mapped_column(String(20), default=STATUS_IN_PROGRESS)
    completion_percentage: Mapped[int] = mapped_column(Integer, default=0)
    # Accumulates scoring and report metadata over the lifecycle
    calculated_metrics: Mapped[dict | None] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, index=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime)
