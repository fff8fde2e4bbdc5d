"""Aggregate model imports for Alembic auto-detection."""

from readiness.models.company import Company  # noqa: F401
from readiness.models.audit_submission import AuditSubmission  # noqa: F401
from readiness.models.audit_report import AuditReport  # noqa: F401
from readiness.models.user_interaction import UserInteraction  # noqa: F401
from readiness.models.wizard_draft import WizardDraft  # noqa: F401
