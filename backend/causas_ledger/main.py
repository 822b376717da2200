"""
FastAPI application entry point
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from causas_ledger.core.config import settings
from causas_ledger.api.v1.api import api_router
from causas_ledger.core.logger import logger
from causas_ledger.db.database import init_db
from causas_ledger.middleware.correlation import CorrelationMiddleware

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else None,
)

# ── Routers ───────────────────────────────────────────────────────────────────
app.include_router(api_router, prefix="/api/v1")

# ── Correlation ID middleware (must be added before CORS) ─────────────────────
app.add_middleware(CorrelationMiddleware)

# ── CORS ──────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Correlation-ID"],
)


@app.get("/")
def read_root():
    logger.info("Root endpoint accessed")
    return {"message": f"{settings.APP_NAME} is running", "version": settings.APP_VERSION, "docs": "/docs"}


@app.get("/health")
def health_check():
    return {"status": "healthy"}


# ── Startup / Shutdown ────────────────────────────────────────────────────────

@app.on_event("startup")
def startup_event():
    init_db()
    logger.info("%s started", settings.APP_NAME)


@app.on_event("shutdown")
def shutdown_event():
    logger.info("%s shutdown", settings.APP_NAME)
