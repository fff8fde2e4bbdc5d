"""Form wizard state machine and wizard endpoint tests."""

import asyncio
import json
from datetime import datetime, timedelta

import httpx
import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from readiness.database import Base
from readiness.middleware.exceptions import (
    BusinessLogicError,
    StepValidationError,
    SubmitInProgressError,
    WorkflowUnavailableError,
)
from readiness.models.audit_report import AuditReport
from readiness.models.audit_submission import AuditSubmission
from readiness.models.user_interaction import UserInteraction
from readiness.services.wizard import (
    LAST_STEP,
    DispatchOutcome,
    FormWizard,
    merge_form_data,
    new_session,
)

START = datetime(2026, 10, 18, 9, 0, 0)


class FakeClock:
    def __init__(self, start: datetime = START):
        self.now = start

    def advance(self, seconds: int) -> None:
        self.now += timedelta(seconds=seconds)

    def __call__(self) -> datetime:
        return self.now


def _wizard(clock: FakeClock | None = None) -> FormWizard:
    clock = clock or FakeClock()
    return FormWizard(new_session(now=clock()), clock=clock)


def _walk_to_last_step(wizard: FormWizard, form: dict) -> None:
    wizard.update_field(form)
    for _ in range(LAST_STEP):
        assert wizard.next() is True


def _correlation(request: httpx.Request) -> str:
    return json.loads(request.content)["submissionId"]


def _outcome(status: str = "accepted"):
    calls: list[dict] = []

    async def dispatch(payload: dict) -> DispatchOutcome:
        calls.append(payload)
        return DispatchOutcome(status=status, submission_id="row-1")

    return dispatch, calls


# ── State machine ────────────────────────────────────────────────

@pytest.mark.unit
class TestFormWizard:

    def test_new_session_defaults(self):
        session = new_session()
        assert session.current_step == 0
        assert session.form_data["techReadiness"]["comfortLevel"] == "medium"
        assert session.is_valid is False
        assert "companyName" in session.validation_errors
        # techReadiness defaults (15) + marketingConsent=False (1)
        assert session.completion_score == 16

    def test_update_field_merges_nested_sections_one_level(self):
        wizard = _wizard()
        wizard.update_field({"techReadiness": {"currentTools": ["crm"]}})
        tech = wizard.session.form_data["techReadiness"]
        assert tech["currentTools"] == ["crm"]
        assert tech["comfortLevel"] == "medium"

    def test_update_field_replaces_top_level_lists(self):
        merged = merge_form_data({"businessGoals": ["a"]}, {"businessGoals": ["b"]})
        assert merged == {"businessGoals": ["b"]}

    def test_update_field_rescores_and_revalidates(self):
        wizard = _wizard()
        session = wizard.update_field(
            {"companyName": "Acme", "industry": "retail", "employeeCount": "6-25"}
        )
        assert session.is_valid is True
        assert session.validation_errors == {}
        assert session.completion_score == 36

    def test_next_blocked_while_step_invalid(self):
        wizard = _wizard()
        assert wizard.next() is False
        assert wizard.session.current_step == 0
        assert wizard.session.step_history == []

    def test_next_records_time_spent(self, acme_form):
        clock = FakeClock()
        wizard = _wizard(clock)
        wizard.update_field(acme_form)
        clock.advance(42)
        assert wizard.next() is True

        record = wizard.session.step_history[0]
        assert wizard.session.current_step == 1
        assert record.step == 0
        assert record.step_name == "company_basics"
        assert record.time_spent == 42

    def test_next_clamps_at_last_step(self, acme_form):
        wizard = _wizard()
        _walk_to_last_step(wizard, acme_form)
        assert wizard.next() is True
        assert wizard.session.current_step == LAST_STEP
        assert len(wizard.session.step_history) == LAST_STEP

    def test_prev_clamps_at_zero(self, acme_form):
        wizard = _wizard()
        wizard.update_field(acme_form)
        wizard.next()
        wizard.prev()
        wizard.prev()
        assert wizard.session.current_step == 0

    def test_acme_scenario_scores_and_validates(self, acme_form):
        wizard = _wizard()
        _walk_to_last_step(wizard, acme_form)
        assert wizard.session.completion_score == 72
        assert wizard.session.is_valid is True

    @pytest.mark.asyncio
    async def test_submit_requires_last_step(self, acme_form):
        wizard = _wizard()
        wizard.update_field(acme_form)
        dispatch, calls = _outcome()
        with pytest.raises(BusinessLogicError) as exc:
            await wizard.submit(dispatch, lambda: "sub_1_abc")
        assert exc.value.error_code == "NOT_ON_LAST_STEP"
        assert calls == []

    @pytest.mark.asyncio
    async def test_submit_requires_valid_last_step(self, acme_form):
        wizard = _wizard()
        _walk_to_last_step(wizard, acme_form)
        wizard.update_field({"email": ""})
        dispatch, calls = _outcome()
        with pytest.raises(StepValidationError) as exc:
            await wizard.submit(dispatch, lambda: "sub_1_abc")
        assert exc.value.details == {"errors": {"email": "Email is required"}}
        assert calls == []

    @pytest.mark.asyncio
    async def test_submit_builds_payload_and_marks_submitted(self, acme_form):
        wizard = _wizard()
        _walk_to_last_step(wizard, acme_form)
        dispatch, calls = _outcome("timeout")

        outcome = await wizard.submit(dispatch, lambda: "sub_1_abc")

        assert outcome.status == "timeout"
        payload = calls[0]
        assert payload["submissionId"] == "sub_1_abc"
        assert payload["companyName"] == "Acme"
        assert payload["currentStep"] == 5
        assert payload["totalSteps"] == 5
        assert payload["completionScore"] == 72
        assert payload["timestamp"].endswith("Z")

        session = wizard.session
        assert session.is_submitted is True
        assert session.is_submitting is False
        assert session.submission_id == "row-1"
        assert session.correlation_id == "sub_1_abc"

    @pytest.mark.asyncio
    async def test_submit_guards_in_flight_dispatch(self, acme_form):
        wizard = _wizard()
        _walk_to_last_step(wizard, acme_form)
        wizard.session.is_submitting = True
        dispatch, calls = _outcome()
        with pytest.raises(SubmitInProgressError):
            await wizard.submit(dispatch, lambda: "sub_1_abc")
        assert calls == []

    @pytest.mark.asyncio
    async def test_network_failure_keeps_pre_submit_state(self, acme_form):
        wizard = _wizard()
        _walk_to_last_step(wizard, acme_form)

        async def unreachable(payload: dict) -> DispatchOutcome:
            raise WorkflowUnavailableError()

        with pytest.raises(WorkflowUnavailableError):
            await wizard.submit(unreachable, lambda: "sub_1_abc")

        session = wizard.session
        assert session.is_submitted is False
        assert session.is_submitting is False
        assert session.current_step == LAST_STEP

    @pytest.mark.asyncio
    async def test_no_edits_or_resubmit_after_submit(self, acme_form):
        wizard = _wizard()
        _walk_to_last_step(wizard, acme_form)
        dispatch, calls = _outcome()
        await wizard.submit(dispatch, lambda: "sub_1_abc")

        with pytest.raises(BusinessLogicError):
            wizard.update_field({"companyName": "Other"})
        with pytest.raises(BusinessLogicError):
            wizard.prev()
        with pytest.raises(BusinessLogicError):
            wizard.next()
        assert wizard.session.current_step == LAST_STEP
        with pytest.raises(BusinessLogicError):
            await wizard.submit(dispatch, lambda: "sub_2_def")
        assert len(calls) == 1


# ── Endpoints ────────────────────────────────────────────────────

async def _create(client: AsyncClient) -> str:
    resp = await client.post("/api/wizard/sessions")
    assert resp.status_code == 201
    return resp.json()["id"]


async def _fill_and_advance(client: AsyncClient, session_id: str, form: dict) -> None:
    resp = await client.patch(f"/api/wizard/sessions/{session_id}", json=form)
    assert resp.status_code == 200
    for _ in range(LAST_STEP):
        resp = await client.post(f"/api/wizard/sessions/{session_id}/next")
        assert resp.status_code == 200, resp.json()


@pytest.mark.api
@pytest.mark.asyncio
class TestWizardEndpoints:

    async def test_create_session(self, client: AsyncClient):
        resp = await client.post("/api/wizard/sessions")
        assert resp.status_code == 201
        data = resp.json()
        assert data["success"] is True
        assert data["currentStep"] == 0
        assert data["stepName"] == "company_basics"
        assert data["totalSteps"] == 5
        assert data["isValid"] is False

    async def test_unknown_session_404(self, client: AsyncClient):
        resp = await client.get("/api/wizard/sessions/missing")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "RESOURCE_NOT_FOUND"

    async def test_next_on_invalid_step_returns_errors(self, client: AsyncClient):
        session_id = await _create(client)
        resp = await client.post(f"/api/wizard/sessions/{session_id}/next")
        assert resp.status_code == 400
        error = resp.json()["error"]
        assert error["code"] == "STEP_INVALID"
        assert error["details"]["errors"]["companyName"] == "Company name is required"

    async def test_progress_is_persisted(self, client: AsyncClient, acme_form):
        session_id = await _create(client)
        await client.patch(f"/api/wizard/sessions/{session_id}", json=acme_form)
        await client.post(f"/api/wizard/sessions/{session_id}/next")

        resp = await client.get(f"/api/wizard/sessions/{session_id}")
        data = resp.json()
        assert data["currentStep"] == 1
        assert data["formData"]["companyName"] == "Acme"

        resp = await client.post(f"/api/wizard/sessions/{session_id}/prev")
        assert resp.json()["currentStep"] == 0

    async def test_submit_stores_submission_and_dispatches(
        self, client: AsyncClient, db_session: AsyncSession, workflow_engine, acme_form
    ):
        session_id = await _create(client)
        await _fill_and_advance(client, session_id, acme_form)

        resp = await client.post(f"/api/wizard/sessions/{session_id}/submit")
        assert resp.status_code == 200
        data = resp.json()
        assert data["outcome"] == "accepted"
        assert data["isSubmitted"] is True
        assert data["correlationId"].startswith("sub_")

        payload = workflow_engine.payloads[0]
        assert payload["submissionId"] == data["correlationId"]
        assert payload["totalSteps"] == 5

        submission = (await db_session.execute(select(AuditSubmission))).scalar_one()
        assert submission.id == data["submissionId"]
        assert submission.correlation_id == data["correlationId"]
        assert submission.status == "in_progress"
        assert submission.completion_percentage == 72
        assert submission.form_data["submissionId"] == data["correlationId"]
        assert "totalSteps" not in submission.form_data

        types = (
            await db_session.execute(
                select(UserInteraction.interaction_type).order_by(UserInteraction.created_at)
            )
        ).scalars().all()
        assert types.count("form_step_completed") == LAST_STEP
        assert types.count("form_submitted") == 1

    async def test_submit_with_synchronous_report(
        self, client: AsyncClient, db_session: AsyncSession, workflow_engine,
        report_payload, pdf_base64, acme_form,
    ):
        workflow_engine.responder = lambda request: httpx.Response(
            200, json=report_payload(_correlation(request), pdf_base64)
        )
        session_id = await _create(client)
        await _fill_and_advance(client, session_id, acme_form)

        resp = await client.post(f"/api/wizard/sessions/{session_id}/submit")
        assert resp.status_code == 200
        data = resp.json()
        assert data["outcome"] == "report"
        assert data["reportId"]

        report = (await db_session.execute(select(AuditReport))).scalar_one()
        assert report.pdf_url.startswith("/uploads/reports/")
        submission = (await db_session.execute(select(AuditSubmission))).scalar_one()
        assert submission.status == "completed"
        assert submission.calculated_metrics["aiReadinessScore"] == 68

    async def test_network_failure_returns_502_and_retry_reuses_submission(
        self, client: AsyncClient, db_session: AsyncSession, workflow_engine, acme_form
    ):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        workflow_engine.responder = refuse
        session_id = await _create(client)
        await _fill_and_advance(client, session_id, acme_form)

        resp = await client.post(f"/api/wizard/sessions/{session_id}/submit")
        assert resp.status_code == 502
        assert resp.json()["error"]["code"] == "WORKFLOW_UNAVAILABLE"

        draft = (await client.get(f"/api/wizard/sessions/{session_id}")).json()
        assert draft["isSubmitted"] is False
        assert draft["currentStep"] == LAST_STEP
        assert draft["correlationId"] == workflow_engine.payloads[0]["submissionId"]

        workflow_engine.responder = lambda request: httpx.Response(
            200, json={"message": "Workflow was started"}
        )
        resp = await client.post(f"/api/wizard/sessions/{session_id}/submit")
        assert resp.status_code == 200
        assert resp.json()["correlationId"] == draft["correlationId"]
        assert workflow_engine.payloads[1]["submissionId"] == draft["correlationId"]

        count = (await db_session.execute(select(func.count(AuditSubmission.id)))).scalar()
        assert count == 1
        submitted = (
            await db_session.execute(
                select(func.count(UserInteraction.id)).where(
                    UserInteraction.interaction_type == "form_submitted"
                )
            )
        ).scalar()
        assert submitted == 1

    async def test_timeout_counts_as_submitted(
        self, client: AsyncClient, workflow_engine, acme_form
    ):
        def slow(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        workflow_engine.responder = slow
        session_id = await _create(client)
        await _fill_and_advance(client, session_id, acme_form)

        resp = await client.post(f"/api/wizard/sessions/{session_id}/submit")
        assert resp.status_code == 200
        assert resp.json()["outcome"] == "timeout"
        assert resp.json()["isSubmitted"] is True

    async def test_second_submit_rejected(self, client: AsyncClient, acme_form):
        session_id = await _create(client)
        await _fill_and_advance(client, session_id, acme_form)
        await client.post(f"/api/wizard/sessions/{session_id}/submit")

        resp = await client.post(f"/api/wizard/sessions/{session_id}/submit")
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "ALREADY_SUBMITTED"

    async def test_concurrent_submit_conflicts(
        self, client: AsyncClient, workflow_engine, acme_form
    ):
        session_id = await _create(client)
        await _fill_and_advance(client, session_id, acme_form)

        dispatched = asyncio.Event()
        release = asyncio.Event()

        async def hold(request: httpx.Request) -> httpx.Response:
            dispatched.set()
            await release.wait()
            return httpx.Response(200, json={"message": "Workflow was started"})

        workflow_engine.responder = hold
        first = asyncio.create_task(client.post(f"/api/wizard/sessions/{session_id}/submit"))
        await asyncio.wait_for(dispatched.wait(), timeout=5)

        second = await client.post(f"/api/wizard/sessions/{session_id}/submit")
        release.set()
        first_resp = await first

        assert second.status_code == 409
        assert second.json()["error"]["code"] == "SUBMIT_IN_PROGRESS"
        assert first_resp.status_code == 200
        assert first_resp.json()["isSubmitted"] is True
        assert len(workflow_engine.payloads) == 1

    async def test_no_navigation_after_submit(self, client: AsyncClient, acme_form):
        session_id = await _create(client)
        await _fill_and_advance(client, session_id, acme_form)
        await client.post(f"/api/wizard/sessions/{session_id}/submit")

        resp = await client.post(f"/api/wizard/sessions/{session_id}/prev")
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "ALREADY_SUBMITTED"
        data = (await client.get(f"/api/wizard/sessions/{session_id}")).json()
        assert data["currentStep"] == LAST_STEP

    async def test_delete_session(self, client: AsyncClient):
        session_id = await _create(client)
        resp = await client.delete(f"/api/wizard/sessions/{session_id}")
        assert resp.status_code == 204
        resp = await client.get(f"/api/wizard/sessions/{session_id}")
        assert resp.status_code == 404

@pytest.mark.integration
@pytest.mark.asyncio
class TestSubmitHandOff:
    """Submit against a file database, where each session has its own connection."""

    @pytest_asyncio.fixture
    async def session_factory(self, tmp_path):
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'audit.db'}")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

        await engine.dispose()

    async def test_callback_during_dispatch_finds_submission(
        self, client: AsyncClient, db_session: AsyncSession, workflow_engine,
        acme_form, pdf_base64,
    ):
        callbacks: list[httpx.Response] = []

        async def answer_with_callback(request: httpx.Request) -> httpx.Response:
            # The engine posts the PDF back before acknowledging the submit
            callbacks.append(await client.post("/api/audit/webhook-response", json={
                "submissionId": _correlation(request),
                "data": {
                    "fileName": "Acme AI Audit.pdf",
                    "fileExtension": "pdf",
                    "mimeType": "application/pdf",
                    "fileSize": 64,
                    "data": pdf_base64,
                },
            }))
            return httpx.Response(200, json={"message": "Workflow was started"})

        workflow_engine.responder = answer_with_callback
        session_id = await _create(client)
        await _fill_and_advance(client, session_id, acme_form)

        resp = await client.post(f"/api/wizard/sessions/{session_id}/submit")

        assert resp.status_code == 200
        assert resp.json()["outcome"] == "accepted"
        assert callbacks[0].status_code == 200, callbacks[0].json()
        assert callbacks[0].json()["matchedBy"] == "correlation_id"
        assert callbacks[0].json()["submissionId"] == resp.json()["submissionId"]

        submission = (await db_session.execute(select(AuditSubmission))).scalar_one()
        assert submission.status == "completed"
        report = (await db_session.execute(select(AuditReport))).scalar_one()
        assert report.pdf_url.startswith("/uploads/reports/")
