"""UserInteraction: append-only event log tied to a submission.

Written once, never mutated or deleted.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from readiness.database import Base


class UserInteraction(Base):
    __tablename__ = "user_interactions"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    submission_id: Mapped[str] = mapped_column(
        ForeignKey("audit_submissions.id"), nullable=False, index=True
    )
    # form_step_completed | form_submitted | dispatch_timeout |
    # report_received | pdf_received | report_sent | report_opened
    interaction_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    step_name: Mapped[str | None] = mapped_column(String(100))
    time_spent: Mapped[int | None] = mapped_column(Integer)  # seconds
    interaction_data: Mapped[dict | None] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
