"""Submission reconciler: match an inbound report/PDF callback to the
submission it belongs to.

Callbacks carry loosely-correlated identifiers.  Strategies run in
priority order; the first one that finds anything wins, and within it the
most recently created submission is chosen:

    1. correlation_id        exact correlation id
    2. email_and_company     contact email AND company name
    3. company_recent        company name, created within the window

Each match reports the strategy that produced it so callbacks can be
audited in the logs.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from readiness.config import settings
from readiness.middleware.exceptions import SubmissionNotFoundError
from readiness.models.audit_submission import AuditSubmission
from readiness.models.company import Company

logger = logging.getLogger(__name__)


@dataclass
class MatchKeys:
    submission_id: str | None = None  # correlation id
    email: str | None = None
    company_name: str | None = None
    window_hours: int | None = None


@dataclass
class Match:
    submission: AuditSubmission
    strategy: str


def _strategies(keys: MatchKeys, now: datetime) -> list[tuple[str, Select]]:
    base = select(AuditSubmission).join(Company, Company.id == AuditSubmission.company_id)
    strategies: list[tuple[str, Select]] = []

    if keys.submission_id:
        strategies.append((
            "correlation_id",
            select(AuditSubmission).where(
                AuditSubmission.correlation_id == keys.submission_id
            ),
        ))

    if keys.email and keys.company_name:
        strategies.append((
            "email_and_company",
            base.where(
                AuditSubmission.email == keys.email,
                Company.name == keys.company_name,
            ),
        ))

    if keys.company_name:
        window = keys.window_hours or settings.match_window_hours
        strategies.append((
            "company_recent",
            base.where(
                Company.name == keys.company_name,
                AuditSubmission.created_at >= now - timedelta(hours=window),
            ),
        ))

    return strategies


async def find_submission(
    db: AsyncSession,
    keys: MatchKeys,
    now: datetime | None = None,
) -> Match | None:
    """Return the best match, or None when no strategy matches."""
    now = now or datetime.utcnow()

    for name, stmt in _strategies(keys, now):
        result = await db.execute(
            stmt.order_by(AuditSubmission.created_at.desc()).limit(1)
        )
        submission = result.scalar_one_or_none()
        if submission is not None:
            logger.info(
                "Reconciled callback to submission %s via %s (keys=%s)",
                submission.id, name, asdict(keys),
            )
            return Match(submission=submission, strategy=name)

    logger.warning("No matching audit submission for keys=%s", asdict(keys))
    return None


async def resolve_submission(
    db: AsyncSession,
    keys: MatchKeys,
    now: datetime | None = None,
) -> Match:
    """Like find_submission, but a miss raises SubmissionNotFoundError."""
    match = await find_submission(db, keys, now=now)
    if match is None:
        raise SubmissionNotFoundError(
            {k: v for k, v in asdict(keys).items() if v is not None}
        )
    return match
