import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from readiness.config import settings
from readiness.logging_config import configure_logging
from readiness.middleware.exceptions import register_exception_handlers
from readiness.middleware.rate_limit import RateLimitMiddleware
from readiness.routers import audit, pdf, wizard
from readiness.utils.cache import close_redis

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level)
    Path(settings.reports_dir).mkdir(parents=True, exist_ok=True)
    logger.info("Readiness API starting (environment=%s)", settings.environment)
    yield
    await close_redis()


app = FastAPI(
    title="AI Readiness Audit",
    description="Lead-generation audit wizard, report ingestion and PDF delivery",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware (outermost first) ─────────────────────────────
# Rate limiting
app.add_middleware(
    RateLimitMiddleware,
    default_limit=100,  # 100 requests per minute per IP
    default_window=60,
    exempt_paths=["/docs", "/openapi.json", settings.reports_url_prefix],
    custom_limits={
        "/api/audit/submit": (10, 60),
        "/api/wizard/sessions": (60, 60),
    },
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(wizard.router, prefix="/api/wizard", tags=["wizard"])
app.include_router(audit.router, prefix="/api/audit", tags=["audit"])
app.include_router(pdf.router, prefix="/api/pdf", tags=["pdf"])

# Stored report PDFs, at the URL kept on each report row
app.mount(
    settings.reports_url_prefix,
    StaticFiles(directory=settings.reports_dir, check_dir=False),
    name="reports",
)
