from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
import time
import uuid

from fastapi import FastAPI
from fastapi import Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.budgets import router as budgets_router
from app.core.config import settings
from app.db.base import Base
from app.db.session import engine
from app.services.budget_evaluator import BudgetEvaluationError
from app.services.spend_source import SpendSourceError
import app.models  # noqa: F401 - register models with Base.metadata

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s %(message)s",
)
request_logger = logging.getLogger("app.request")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: create DB tables
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(
    title="Fint Budgets API",
    description="Budgets, budget status and spending alerts for Fint",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.app_cors_origins.split(",") if settings.app_cors_origins else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_logging_middleware(request, call_next):
    req_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        request_logger.exception(
            "request_failed id=%s method=%s path=%s ms=%s",
            req_id,
            request.method,
            request.url.path,
            elapsed_ms,
        )
        raise
    elapsed_ms = int((time.perf_counter() - started) * 1000)
    response.headers["x-request-id"] = req_id
    request_logger.info(
        "request_done id=%s method=%s path=%s status=%s ms=%s",
        req_id,
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


@app.exception_handler(BudgetEvaluationError)
async def budget_evaluation_error_handler(request: Request, exc: BudgetEvaluationError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(SpendSourceError)
async def spend_source_error_handler(request: Request, exc: SpendSourceError):
    return JSONResponse(status_code=502, content={"detail": str(exc)})


app.include_router(budgets_router)


@app.get("/health", tags=["health"])
def health() -> dict:
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}
