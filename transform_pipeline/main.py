from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from transform_pipeline.api.routes import jobs, maintenance, sessions, tasks
from transform_pipeline.config import get_settings
from transform_pipeline.core.exceptions import global_exception_handler, http_exception_handler, pipeline_exception_handler, request_validation_exception_handler
from transform_pipeline.core.lifespan import lifespan
from transform_pipeline.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from transform_pipeline.jobs.errors import PipelineError

settings = get_settings()

app = FastAPI(title="transform-pipeline", lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)

app.add_middleware(CORSMiddleware, allow_origins=list(settings.allowed_origins), allow_credentials=True, allow_methods=["GET", "POST", "OPTIONS"], allow_headers=["content-type", "authorization"], expose_headers=["content-length", "x-request-id"])

# Add exception handlers
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(PipelineError, pipeline_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

# Add middleware
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": "0.1.0"}


app.include_router(sessions.router, prefix="/v1", tags=["sessions"])
app.include_router(jobs.router, prefix="/v1", tags=["jobs"])
app.include_router(tasks.router, prefix="/internal")
app.include_router(maintenance.router, prefix="/internal")
