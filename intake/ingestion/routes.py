"""
Ingestion HTTP routes — POST /api/upload/signature, POST /api/upload,
                         POST /api/parse-file

All routes require a signed-in user. Errors are raised as IntakeError
subclasses and rendered by the global handlers in main.py.
"""
from __future__ import annotations

import logging
import os
import tempfile
import uuid

from fastapi import APIRouter, Depends, File, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from intake.analysis.reconcile import record_failed
from intake.auth import AuthUser, require_user
from intake.cache import record_session_step
from intake.config import settings
from intake.database import get_db
from intake.errors import IntakeError, PayloadTooLarge, UnsupportedFileType
from intake.ingestion.schemas import (
    ParsedDocument,
    ParseFileRequest,
    UploadResponse,
    UploadSignature,
    UploadSignatureRequest,
)
from intake.ingestion.service import parse_document
from intake.ingestion.storage import StorageConfig, build_upload_signature, upload_document

router = APIRouter(prefix="/api", tags=["ingestion"])
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Upload constants
# ---------------------------------------------------------------------------

ALLOWED_MIMES = {
    "application/pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/msword",
    "text/plain",
}
MIME_EXTENSIONS = {
    "application/pdf": ".pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
    "application/msword": ".doc",
    "text/plain": ".txt",
}
# libmagic reports OOXML documents generically when [Content_Types].xml is not first
_ZIP_MIMES = {"application/zip", "application/octet-stream"}


def _sniff_mime(contents: bytes, file_name: str) -> str:
    """
    MIME detection from content bytes (NOT the client-declared content type).
    A zip container is accepted as DOCX only when the name says .docx.
    """
    import magic  # lazy import — libmagic is only needed on this route

    detected = magic.from_buffer(contents[:2048], mime=True)
    if detected in _ZIP_MIMES and file_name.lower().endswith(".docx"):
        return "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    return detected


# ---------------------------------------------------------------------------
# POST /api/upload/signature
# ---------------------------------------------------------------------------

@router.post("/upload/signature", response_model=UploadSignature)
async def get_upload_signature(
    body: UploadSignatureRequest,
    user: AuthUser = Depends(require_user),
) -> UploadSignature:
    """
    Presigned POST for a direct browser → bucket upload.

    The declared content type must be one we can parse; the bucket policy then
    pins it, along with the size limit, for the actual upload.
    """
    content_type = body.content_type.split(";")[0].strip().lower()
    if content_type not in ALLOWED_MIMES:
        raise UnsupportedFileType()

    signature = build_upload_signature(
        StorageConfig.from_settings(),
        body.file_name,
        content_type,
        settings.max_file_size,
    )
    logger.info("Upload signature issued user_id=%s key=%s", user.id, signature["key"])
    return UploadSignature.model_validate(signature)


# ---------------------------------------------------------------------------
# POST /api/upload
# ---------------------------------------------------------------------------

@router.post("/upload", response_model=UploadResponse)
async def upload_file(
    file: UploadFile = File(...),
    user: AuthUser = Depends(require_user),
) -> UploadResponse:
    """
    Proxy upload of a business-profile document to object storage.

    Returns:
        200: {url, key, fileName, format}
        413: PAYLOAD_TOO_LARGE (no disk write)
        415: UNSUPPORTED_FILE_TYPE (no disk write)
    """
    # Step 1: Read all bytes first — never write to disk before validating
    contents = await file.read()
    file_name = file.filename or "document"

    # Step 2: Size check BEFORE any disk write
    if len(contents) > settings.max_file_size:
        raise PayloadTooLarge("File size exceeds maximum allowed 10 MB")

    # Step 3: Content sniffing
    detected_mime = _sniff_mime(contents, file_name)
    if detected_mime not in ALLOWED_MIMES:
        logger.info("Upload rejected user_id=%s mime=%s", user.id, detected_mime)
        raise UnsupportedFileType()

    # Step 4: Write validated content to a temp file with a UUID name
    temp_path = os.path.join(
        tempfile.gettempdir(),
        f"intake_{uuid.uuid4().hex}{MIME_EXTENSIONS[detected_mime]}",
    )
    try:
        with open(temp_path, "wb") as fh:
            fh.write(contents)
        del contents
        uploaded = await upload_document(
            temp_path, file_name, detected_mime, StorageConfig.from_settings()
        )
    finally:
        if os.path.exists(temp_path):
            os.unlink(temp_path)

    logger.info("Upload complete user_id=%s key=%s", user.id, uploaded["key"])
    return UploadResponse.model_validate(uploaded)


# ---------------------------------------------------------------------------
# POST /api/parse-file
# ---------------------------------------------------------------------------

@router.post("/parse-file", response_model=ParsedDocument)
async def parse_file(
    body: ParseFileRequest,
    request: Request,
    user: AuthUser = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> ParsedDocument:
    """
    uploaded → parsing → extracted.

    Returns:
        200: {content, fileName}
        4xx/502: typed error; when pendingAnalysisId is given that record is
                 marked failed with the same message before the error is returned.
    """
    try:
        parsed = await parse_document(
            request.app.state.http_client,
            body.file_url,
            file_name=body.file_name,
            mime_type=body.mime_type,
        )
    except IntakeError as exc:
        if body.pending_analysis_id:
            await record_failed(db, user.id, body.pending_analysis_id, exc.message)
        raise

    logger.info("File parsed user_id=%s chars=%d", user.id, len(parsed.content))

    redis = getattr(request.app.state, "redis", None)
    await record_session_step(
        redis,
        user.id,
        {"uploadedFile": {"name": parsed.file_name, "type": body.mime_type or "", "content": parsed.content}},
    )
    return parsed
