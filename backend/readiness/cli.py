"""Management CLI.

Usage:
    python -m readiness.cli init-db                 # Create all tables
    python -m readiness.cli recent-submissions [N]  # Show the latest N submissions
"""

import sys

from sqlalchemy import create_engine, select

from readiness.config import settings
from readiness.database import Base
from readiness.models import AuditSubmission, Company


def get_engine():
    return create_engine(settings.database_url_sync)


def init_db():
    """Create every table that does not exist yet (no migrations)."""
    engine = get_engine()
    Base.metadata.create_all(engine)
    for name in sorted(Base.metadata.tables):
        print(f"  {name}")
    print(f"\n{len(Base.metadata.tables)} table(s) ready")


def recent_submissions(limit: int = 10):
    engine = get_engine()
    stmt = (
        select(
            AuditSubmission.created_at,
            AuditSubmission.status,
            AuditSubmission.completion_percentage,
            AuditSubmission.email,
            AuditSubmission.correlation_id,
            Company.name,
        )
        .join(Company, Company.id == AuditSubmission.company_id)
        .order_by(AuditSubmission.created_at.desc())
        .limit(limit)
    )
    with engine.connect() as conn:
        rows = conn.execute(stmt).all()

    for row in rows:
        print(
            f"  {row.created_at:%Y-%m-%d %H:%M}  {row.status:<12} "
            f"{row.completion_percentage:>3}%  {row.name}  <{row.email}>  {row.correlation_id}"
        )
    print(f"\n{len(rows)} submission(s)")


if __name__ == "__main__":
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""
    if cmd == "init-db":
        init_db()
    elif cmd == "recent-submissions":
        recent_submissions(int(sys.argv[2]) if len(sys.argv) > 2 else 10)
    else:
        print("Usage: python -m readiness.cli [init-db|recent-submissions [N]]")
