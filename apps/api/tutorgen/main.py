import logging
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tutorgen.api.tutorials import router as tutorials_router
from tutorgen.core.config import get_settings
from tutorgen.domain.tutorial.schema import SCHEMA_VERSION
from tutorgen.services.tutorial.error_policy import (
    build_http_error_payload,
    build_unexpected_error_payload,
    build_validation_error_payload,
)


settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Tutorial Generation API",
    version="0.1.0",
    description="Generates multi-lesson programming tutorials and repairs model output",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _trace_id(request: Request) -> str:
    return request.headers.get("x-trace-id") or uuid4().hex


@app.get("/health")
def health_check() -> dict[str, str]:
    return {"status": "ok", "env": settings.env, "schema_version": SCHEMA_VERSION}


@app.exception_handler(HTTPException)
async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    payload = build_http_error_payload(exc, _trace_id(request))
    return JSONResponse(status_code=exc.status_code, content=payload)


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    payload = build_validation_error_payload(exc, _trace_id(request))
    return JSONResponse(status_code=422, content=payload)


@app.exception_handler(Exception)
async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
    trace_id = _trace_id(request)
    logger.exception("unexpected error trace_id=%s: %s", trace_id, exc)
    return JSONResponse(status_code=500, content=build_unexpected_error_payload(trace_id))


app.include_router(tutorials_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("tutorgen.main:app", host=settings.api_host, port=settings.api_port)
