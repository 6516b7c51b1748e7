from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from .configuration import get_settings
from .errors import SigningProxyError, ValidationError
from .job_store import SigningJobStore
from .models import SignerInfo, SignJobCreated, SignJobStatus
from .provider import GoodflagClient
from .signing_service import SigningService
from .utils import attachment_disposition, clean_text, is_pdf_upload

logger = logging.getLogger(__name__)

settings = get_settings()
job_store = SigningJobStore(ttl_seconds=settings.job_ttl_seconds)
signing_service = SigningService(
    job_store,
    GoodflagClient(settings),
    refresh_failure_limit=settings.refresh_failure_limit,
)
_started_at = time.monotonic()


@asynccontextmanager
async def lifespan(_app: FastAPI):
    job_store.start_reaper()
    try:
        yield
    finally:
        job_store.stop_reaper()


app = FastAPI(title="Goodflag Signing Proxy", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_origin],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "X-Goodflag-Signature"],
    expose_headers=["Content-Disposition"],
)


@app.middleware("http")
async def no_store_api_responses(request: Request, call_next):
    response = await call_next(request)
    if request.url.path.startswith("/api/"):
        response.headers.setdefault("Cache-Control", "no-store")
    return response


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@app.exception_handler(SigningProxyError)
async def signing_error_handler(_request: Request, exc: SigningProxyError) -> JSONResponse:
    return _error_response(exc.status_code, exc.client_message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = sorted({str(error["loc"][-1]) for error in exc.errors() if error.get("loc")})
    message = f"Invalid form field: {', '.join(fields)}" if fields else ValidationError.public_message
    return _error_response(ValidationError.status_code, message)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = "Not found" if exc.status_code == 404 else str(exc.detail)
    return _error_response(exc.status_code, message)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled server error on {request.method} {request.url.path}")
    return _error_response(500, "Internal server error")


def get_signing_service() -> SigningService:
    return signing_service


@app.get("/healthz")
def healthcheck() -> Dict[str, Any]:
    return {"status": "ok", "uptime": round(time.monotonic() - _started_at, 3)}


@app.post("/api/sign", response_model=SignJobCreated)
async def create_signing_job(
    file: Optional[UploadFile] = File(None),
    signer_email: Optional[str] = Form(None),
    signer_first_name: Optional[str] = Form(None),
    signer_last_name: Optional[str] = Form(None),
    signer_phone: Optional[str] = Form(None),
    signer_locale: Optional[str] = Form(None),
    signer_comments: Optional[str] = Form(None),
    signer_consent_page_id: Optional[str] = Form(None),
    signer_user_id: Optional[str] = Form(None),
    workflow_name: Optional[str] = Form(None),
    service: SigningService = Depends(get_signing_service),
) -> SignJobCreated:
    if file is None:
        raise ValidationError("File field is required")

    file_name = file.filename or "document.pdf"
    if not is_pdf_upload(file_name, file.content_type):
        raise ValidationError("Only PDF files are supported")

    email = clean_text(signer_email)
    if not email:
        raise ValidationError("Signer email is required")

    signer = SignerInfo(
        email=email,
        first_name=clean_text(signer_first_name),
        last_name=clean_text(signer_last_name),
        phone_number=clean_text(signer_phone),
        preferred_locale=clean_text(signer_locale),
        comments=clean_text(signer_comments),
        consent_page_id=clean_text(signer_consent_page_id),
        user_id=clean_text(signer_user_id),
    )

    content = await file.read()
    await file.close()

    return await run_in_threadpool(
        service.start_signing,
        content,
        file_name,
        file.content_type or "application/pdf",
        signer,
        clean_text(workflow_name),
    )


@app.get("/api/sign/{job_id}", response_model=SignJobStatus)
def get_signing_status(job_id: str, service: SigningService = Depends(get_signing_service)) -> SignJobStatus:
    return service.refresh_status(job_id)


@app.get("/api/sign/{job_id}/file")
def download_signed_file(job_id: str, service: SigningService = Depends(get_signing_service)) -> Response:
    content, file_name, content_type = service.get_signed_document(job_id)
    return Response(
        content=content,
        media_type=content_type,
        headers={"Content-Disposition": attachment_disposition(file_name)},
    )


def run() -> None:
    import uvicorn

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info(f"Starting Goodflag signing proxy on port {settings.port}")
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
