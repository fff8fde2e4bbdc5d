"""Lightweight helper for recording user interaction events.

Usage:
    await log_interaction(
        db, submission.id, "form_submitted",
        interaction_data={"completionScore": 72, "totalSteps": 5},
    )

The row is added to the current session and committed with the
enclosing transaction; no extra flush is performed.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from readiness.models.user_interaction import UserInteraction


async def log_interaction(
    db: AsyncSession,
    submission_id: str,
    interaction_type: str,
    *,
    step_name: str | None = None,
    time_spent: int | None = None,
    interaction_data: dict | None = None,
) -> None:
    """Append an interaction event to the current DB session."""
    db.add(
        UserInteraction(
            submission_id=submission_id,
            interaction_type=interaction_type,
            step_name=step_name,
            time_spent=time_spent,
            interaction_data=interaction_data,
        )
    )
