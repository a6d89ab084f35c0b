"""FastAPI backend for the Crosspost publishing service."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.error_handlers import register_error_handlers
from api.middleware import RequestContextMiddleware
from api.routes import connections, posting
from publisher import config
from publisher.db import init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Crosspost API started (database=%s)", config.DATABASE_URL.split("@")[-1])
    yield


app = FastAPI(
    title="Crosspost API",
    description="Connect social accounts and publish posts across platforms",
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware is added in reverse order of execution
# Order of execution: CORS -> RequestContext -> Route
app.add_middleware(RequestContextMiddleware)

# CORS for the dashboard (outermost - handles preflight requests)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register global error handlers
register_error_handlers(app)

app.include_router(posting.router, prefix="/api")
app.include_router(connections.router, prefix="/api")
