"""Outbound client for the report-generation workflow engine.

The engine may answer synchronously with a full report, accept the job
and call back later, or take longer than the bounded timeout.  A timeout
means "accepted, pending": the request is cancelled, never retried.
Only a network-level failure is reported as an error.
"""

import logging
import random
import string
import time
from dataclasses import dataclass

import httpx
from pydantic import ValidationError

from readiness.config import settings
from readiness.middleware.exceptions import WorkflowUnavailableError
from readiness.schemas.report import WorkflowResponse

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_correlation_id() -> str:
    """sub_<epoch-ms>_<9 base36 chars>"""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"sub_{int(time.time() * 1000)}_{suffix}"


@dataclass
class WorkflowResult:
    status: str  # report | accepted | timeout
    response: WorkflowResponse | None = None
    detail: str | None = None


class WorkflowClient:
    def __init__(
        self,
        webhook_url: str,
        timeout: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self._transport = transport

    async def dispatch(self, payload: dict) -> WorkflowResult:
        """POST the submission payload and classify the engine's answer.

        Raises:
            WorkflowUnavailableError: connection-level failure
        """
        correlation_id = payload.get("submissionId")
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(self.webhook_url, json=payload)
        except httpx.TimeoutException:
            logger.info(
                "Workflow dispatch for %s timed out after %.0fs; report pending",
                correlation_id, self.timeout,
            )
            return WorkflowResult(status="timeout")
        except httpx.TransportError as exc:
            logger.error("Workflow dispatch for %s failed: %s", correlation_id, exc)
            raise WorkflowUnavailableError() from exc

        if not response.is_success:
            logger.warning(
                "Workflow engine answered %s for %s; treating as pending",
                response.status_code, correlation_id,
            )
            return WorkflowResult(status="accepted", detail=f"HTTP {response.status_code}")

        try:
            parsed = WorkflowResponse.model_validate(response.json())
        except (ValueError, ValidationError):
            # Plain acknowledgements ("Workflow was started") land here
            logger.info("Workflow accepted %s without a report body", correlation_id)
            return WorkflowResult(status="accepted")

        if parsed.success and parsed.report is not None:
            return WorkflowResult(status="report", response=parsed)

        logger.warning(
            "Workflow processing incomplete for %s: %s", correlation_id, parsed.error
        )
        return WorkflowResult(status="accepted", response=parsed, detail=parsed.error)


def get_workflow_client() -> WorkflowClient:
    """FastAPI dependency."""
    return WorkflowClient(
        webhook_url=settings.workflow_webhook_url,
        timeout=settings.workflow_timeout_seconds,
    )
