"""Schemas for workflow-engine responses, PDF callbacks and report queries."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from readiness.schemas.form import CamelModel
from readiness.schemas.validators import Email

Level = Literal["low", "medium", "high"]


# ── Synchronous engine response (structured report) ─────────

class IndustryBenchmark(CamelModel):
    score: float
    percentile: float
    industry_average: float


class Recommendation(CamelModel):
    category: str
    priority: Level
    title: str
    description: str
    estimated_impact: str
    implementation_time: str
    estimated_cost: str


class RoadmapPhase(CamelModel):
    phase: int
    title: str
    duration: str
    tasks: list[str]
    expected_outcomes: list[str]


class CostSavings(CamelModel):
    annual: float
    breakdown: dict[str, float]


class ROIProjections(CamelModel):
    # "yearOneROI" does not survive to_camel, so aliases are explicit
    time_to_breakeven: str
    year_one_roi: float = Field(alias="yearOneROI")
    three_year_roi: float = Field(alias="threeYearROI")
    cost_savings: CostSavings


class Risk(CamelModel):
    category: str
    level: Level
    description: str
    mitigation: str


class RiskAssessment(CamelModel):
    overall_risk: Level
    risks: list[Risk]


class PdfFormat(CamelModel):
    data: str | None = None  # base64
    url: str | None = None
    filename: str
    size: int | None = None


class HtmlFormat(CamelModel):
    content: str
    title: str


class MarkdownFormat(CamelModel):
    content: str
    filename: str


class ReportFormats(CamelModel):
    pdf: PdfFormat | None = None
    html: HtmlFormat | None = None
    markdown: MarkdownFormat | None = None


class WorkflowReport(CamelModel):
    executive_summary: str
    ai_readiness_score: float = Field(ge=0, le=100)
    industry_benchmark: IndustryBenchmark
    recommendations: list[Recommendation]
    implementation_roadmap: list[RoadmapPhase]
    roi_projections: ROIProjections
    risk_assessment: RiskAssessment
    next_steps: list[str]
    generated_at: datetime
    formats: ReportFormats


class WorkflowResponse(CamelModel):
    success: bool
    submission_id: str
    report: WorkflowReport | None = None
    error: str | None = None
    processing_time: float | None = None


# ── Asynchronous PDF callback ───────────────────────────────

class BusinessOverview(BaseModel):
    company_name: str
    industry: str | None = None
    employees: str | None = None
    goals: list[str] | None = None


class PdfFile(CamelModel):
    file_name: str
    file_extension: str
    mime_type: str
    file_size: int
    data: str  # base64


class PdfCallback(BaseModel):
    """Callback posted by the engine once the PDF is rendered.

    Identifying fields are loosely structured: the company name may come
    nested under business_overview or flat as companyName.
    """

    model_config = ConfigDict(populate_by_name=True)

    submission_id: str | None = Field(default=None, alias="submissionId")
    email: Email | None = None
    timestamp: str | None = None
    business_overview: BusinessOverview | None = None
    company_name: str | None = Field(default=None, alias="companyName")
    data: PdfFile

    @property
    def resolved_company_name(self) -> str | None:
        if self.business_overview and self.business_overview.company_name:
            return self.business_overview.company_name
        return self.company_name


class StorePdfRequest(CamelModel):
    submission_id: str = Field(min_length=1)
    email: Email
    company_name: str = Field(min_length=1)
    pdf_data: str = Field(min_length=1)  # data:application/pdf;base64,...
    filename: str = Field(min_length=1)
    file_size: int = Field(ge=0)
    timestamp: str | None = None


# ── Report API views ────────────────────────────────────────

class IngestionResponse(CamelModel):
    success: bool = True
    submission_id: str
    report_id: str
    pdf_url: str | None = None
    matched_by: str | None = None
    pdf_metadata: dict | None = None
    message: str


class PdfInfo(CamelModel):
    available: bool
    url: str | None
    filename: str | None
    file_size: int | None
    file_size_formatted: str
    stored_at: datetime | None


class ReportSummary(CamelModel):
    id: str
    submission_id: str
    correlation_id: str | None
    company_name: str
    email: str
    report_type: str
    submission_status: str
    generated_at: datetime
    completed_at: datetime | None
    pdf: PdfInfo
    email_sent: bool
    email_sent_at: datetime | None
    email_opened: bool
    email_opened_at: datetime | None
    report_data: dict | None = None
    form_data: dict | None = None


class ReportList(CamelModel):
    success: bool = True
    reports: list[ReportSummary]
    count: int
    message: str


class ReportAction(CamelModel):
    report_id: str
    action: Literal["mark_opened", "mark_sent", "update_metadata"]
    metadata: dict | None = None


class ReportActionResponse(CamelModel):
    success: bool = True
    report: ReportSummary
    action: str
    message: str


class PdfRetrieveResponse(CamelModel):
    success: bool = True
    report: ReportSummary
