"""
FastAPI application entry point.

Lifespan:
  startup  → create tables → seed questions → start the scoring consumer thread
  shutdown → stop consumer threads gracefully
"""
from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from riskguard.config import get_settings

settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # ── Startup ────────────────────────────────────────────────────────────
    logger.info("Risk service starting up …")

    # 1. Tables + seed content
    from riskguard.db.database import init_db
    from riskguard.db.seed import seed_questions
    init_db()
    if settings.seed_on_startup:
        seed_questions()

    # 2. Scoring consumer (queue dispatch only; background mode scores in-process)
    consumers = []
    if settings.scoring_dispatch == "queue":
        from riskguard.consumers.scoring_consumer import ScoringConsumer
        consumers.append(ScoringConsumer())
    for c in consumers:
        c.start()
        logger.info("Started consumer thread: %s", c.name)

    app.state.consumers = consumers

    yield

    # ── Shutdown ───────────────────────────────────────────────────────────
    logger.info("Risk service shutting down …")
    for c in app.state.consumers:
        c.stop()


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("Rejected %s %s: %s", request.method, request.url.path, exc.errors())
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Missing required fields"},
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title       = "Exam Risk-Scoring Service",
        description = "Behavioural telemetry and answer-judgment risk scoring for online tests",
        version     = "1.0.0",
        lifespan    = lifespan,
    )
    app.add_exception_handler(RequestValidationError, _validation_error)

    from riskguard.api.routes import router
    app.include_router(router)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "riskguard.main:app",
        host   = "0.0.0.0",
        port   = settings.port,
        reload = False,
        workers= 1,       # one consumer thread per process
    )
