"""Pytest configuration and fixtures for the readiness tests.

Provides an in-memory SQLite database, a temporary PDF store and a
scripted stand-in for the workflow engine webhook.
"""

import base64
import copy
import json
import os
from typing import AsyncGenerator, Callable

# Rate limiting needs Redis; disable before the app settings load
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import readiness.models  # noqa: F401
from readiness.database import Base, get_db
from readiness.main import app
from readiness.services.pdf_storage import PdfStorage, get_pdf_storage
from readiness.services.workflow import WorkflowClient, get_workflow_client

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
WEBHOOK_URL = "http://workflow.test/webhook/ai-audit"

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\ntrailer\n%%EOF\n"
PDF_BASE64 = base64.b64encode(PDF_BYTES).decode()


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ── Collaborators ────────────────────────────────────────────────

@pytest.fixture
def pdf_storage(tmp_path) -> PdfStorage:
    return PdfStorage(tmp_path / "reports", "/uploads/reports")


class FakeWorkflowEngine:
    """Records every dispatched payload and answers with `responder`.

    The default answer is the engine's plain "workflow started"
    acknowledgement.  Tests swap `responder` to return a report, a
    non-2xx status, or to raise a transport error.  An async responder
    can hold the request open or call back into the app first.
    """

    def __init__(self):
        self.payloads: list[dict] = []
        self.responder: Callable[[httpx.Request], httpx.Response] = (
            lambda request: httpx.Response(200, json={"message": "Workflow was started"})
        )

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.payloads.append(json.loads(request.content))
        return self.responder(request)

    def client(self) -> WorkflowClient:
        return WorkflowClient(
            webhook_url=WEBHOOK_URL,
            timeout=5.0,
            transport=httpx.MockTransport(self.handle),
        )


@pytest.fixture
def workflow_engine() -> FakeWorkflowEngine:
    return FakeWorkflowEngine()


@pytest_asyncio.fixture
async def client(
    session_factory, pdf_storage, workflow_engine
) -> AsyncGenerator[AsyncClient, None]:
    """App client with DB, PDF storage and workflow engine overridden."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_pdf_storage] = lambda: pdf_storage
    app.dependency_overrides[get_workflow_client] = workflow_engine.client

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ── Test Data ────────────────────────────────────────────────────

@pytest.fixture
def acme_form() -> dict:
    """Minimal form that passes every step with required fields."""
    return {
        "companyName": "Acme",
        "industry": "retail",
        "employeeCount": "6-25",
        "businessGoals": ["grow-revenue"],
        "timeConsumingTasks": ["invoicing"],
        "email": "a@acme.com",
    }


@pytest.fixture
def full_form(acme_form) -> dict:
    return {
        **acme_form,
        "revenue": "1m-5m",
        "website": "https://acme.example",
        "repetitiveTaskTime": "10-20h",
        "techReadiness": {
            "currentTools": ["spreadsheets"],
            "comfortLevel": "high",
            "challenges": ["data silos"],
        },
        "aiGoals": {
            "primaryObjective": "automation",
            "budgetRange": "10k-50k",
            "timeline": "3-6 months",
            "specificUseCases": ["invoice processing"],
        },
        "fullName": "Ada Acme",
        "phone": "+15550100",
        "preferredContact": "email",
        "marketingConsent": True,
    }


@pytest.fixture
def pdf_bytes() -> bytes:
    return PDF_BYTES


@pytest.fixture
def pdf_base64() -> str:
    return PDF_BASE64


REPORT_TEMPLATE = {
    "executiveSummary": "Acme is well placed to automate invoicing.",
    "aiReadinessScore": 68,
    "industryBenchmark": {"score": 68, "percentile": 62, "industryAverage": 55},
    "recommendations": [
        {
            "category": "automation",
            "priority": "high",
            "title": "Automate invoice processing",
            "description": "Extract and reconcile invoices automatically.",
            "estimatedImpact": "20h/week saved",
            "implementationTime": "6 weeks",
            "estimatedCost": "$15k",
        }
    ],
    "implementationRoadmap": [
        {
            "phase": 1,
            "title": "Foundations",
            "duration": "1 month",
            "tasks": ["Audit data sources"],
            "expectedOutcomes": ["Clean invoice data"],
        }
    ],
    "roiProjections": {
        "timeToBreakeven": "8 months",
        "yearOneROI": 120,
        "threeYearROI": 340,
        "costSavings": {"annual": 48000, "breakdown": {"invoicing": 48000}},
    },
    "riskAssessment": {
        "overallRisk": "low",
        "risks": [
            {
                "category": "data",
                "level": "medium",
                "description": "Inconsistent invoice formats",
                "mitigation": "Start with top suppliers",
            }
        ],
    },
    "nextSteps": ["Book a strategy call"],
    "generatedAt": "2026-10-18T12:00:00Z",
}


@pytest.fixture
def report_payload() -> Callable[..., dict]:
    """Build a synchronous engine response for a correlation id."""

    def build(submission_id: str, pdf_data: str | None = None, success: bool = True) -> dict:
        pdf = {"filename": "acme-audit.pdf", "size": len(PDF_BYTES)}
        if pdf_data is not None:
            pdf["data"] = pdf_data
        return {
            "success": success,
            "submissionId": submission_id,
            "report": {**copy.deepcopy(REPORT_TEMPLATE), "formats": {"pdf": pdf}},
            "processingTime": 42.5,
        }

    return build


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "api: API endpoint tests")
    config.addinivalue_line("markers", "slow: Slow tests")
