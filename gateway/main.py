from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from gateway.config import Settings
from gateway.db import init_db
from gateway.errors import ServiceError, service_error_handler, unhandled_error_handler
from gateway.logger import setup_logging
from gateway.services import receipts, vision
from gateway.controllers import v1

settings = Settings()
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await asyncio.to_thread(init_db, settings)
    if not settings.jwt_verify_signature:
        logger.warning("JWT signature verification is disabled")
    if not settings.anthropic_api_key:
        logger.warning("ANTHROPIC_API_KEY is not set; analysis requests will fail")
    yield
    await vision.close_client()
    await receipts.close_client()


app = FastAPI(
    title="SkinInsight Gateway API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)
app.add_exception_handler(ServiceError, service_error_handler)
app.add_exception_handler(Exception, unhandled_error_handler)

app.include_router(v1.router)

Instrumentator().instrument(app).expose(app)
