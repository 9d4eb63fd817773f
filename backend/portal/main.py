"""FastAPI application entry point."""
from __future__ import annotations
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from portal.api import assignments, auth, courses, gradebook, tests
from portal.api.errors import NO_STORE, register_exception_handlers
from portal.api.request_context import new_request_id
from portal.container import get_database
from portal.core.config import (
    BOOTSTRAP_ADMIN_PASSWORD,
    BOOTSTRAP_ADMIN_USERNAME,
    CORS_ALLOW_ORIGINS,
    LOG_LEVEL,
)

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)

# ------------------------------------------------------------------
# App creation
# ------------------------------------------------------------------
app = FastAPI(
    title="Campus Portal Core API",
    description="Courses, tests, assignments and gradebook for the campus portal",
    version="1.0.0",
)

# CORS: permissive for local dev (restrict for production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.middleware("http")
async def assign_request_id(request: Request, call_next):
    request.state.request_id = new_request_id()
    response = await call_next(request)
    response.headers.update(NO_STORE)
    return response


# ------------------------------------------------------------------
# Startup: initialise DB schema, seed the first admin
# ------------------------------------------------------------------
@app.on_event("startup")
def on_startup():
    db = get_database()
    db.init_schema()
    auth.seed_bootstrap_admin(db, BOOTSTRAP_ADMIN_USERNAME, BOOTSTRAP_ADMIN_PASSWORD)
    log.info("portal core ready (database=%s)", db.path)


# ------------------------------------------------------------------
# Routers
# ------------------------------------------------------------------
app.include_router(auth.router)
app.include_router(courses.router)
app.include_router(tests.router)
app.include_router(assignments.router)
app.include_router(gradebook.router)


@app.get("/health")
def health():
    return {"status": "ok"}
