"""Persisted wizard session (draft) for one visitor.

Holds the serialized WizardSession so a visitor can resume the form.
Rows are created on first access and kept after submission so the
correlation id stays available for retries.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from readiness.database import Base


class WizardDraft(Base):
    __tablename__ = "wizard_drafts"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    current_step: Mapped[int] = mapped_column(Integer, default=0)
    form_data: Mapped[dict] = mapped_column(JSON, default=dict)
    completion_score: Mapped[int] = mapped_column(Integer, default=0)
    # [{"step": 0, "step_name": "company_basics", "time_spent": 42, ...}]
    step_history: Mapped[list] = mapped_column(JSON, default=list)
    step_started_at: Mapped[datetime | None] = mapped_column(DateTime)
    correlation_id: Mapped[str | None] = mapped_column(String(64))
    submission_id: Mapped[str | None] = mapped_column(String(36))
    is_submitted: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
