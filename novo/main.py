"""Novo tracker application"""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from novo.api.v1 import assignments, comments, labels, members, milestones, projects, tasks
from novo.config import settings
from novo.database import Base, engine
from novo.logging_config import configure_logging

configure_logging()
logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=engine)

app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, debug=settings.DEBUG)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

API_PREFIX = "/api/v1"
app.include_router(projects.router, prefix=API_PREFIX, tags=["projects"])
app.include_router(members.router, prefix=API_PREFIX, tags=["members"])
app.include_router(tasks.router, prefix=API_PREFIX, tags=["tasks"])
app.include_router(assignments.router, prefix=API_PREFIX, tags=["assignments"])
app.include_router(milestones.router, prefix=API_PREFIX, tags=["milestones"])
app.include_router(labels.router, prefix=API_PREFIX, tags=["labels"])
app.include_router(comments.router, prefix=API_PREFIX, tags=["comments"])


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": {"message": "Internal server error"}})


@app.get("/health")
def health():
    return {"status": "ok", "version": settings.APP_VERSION}
