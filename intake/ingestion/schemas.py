"""
schemas.py — Request/response contracts for the document ingestion routes.
"""
from typing import Optional

from pydantic import Field

from intake.profile.schemas import CamelModel


class ParseFileRequest(CamelModel):
    file_url: str = Field(..., min_length=1, description="Stored delivery URL of the uploaded document.")
    file_name: Optional[str] = None
    mime_type: Optional[str] = None
    pending_analysis_id: Optional[str] = Field(
        default=None,
        description="When set, a parse failure marks this pending record as failed.",
    )


class ParsedDocument(CamelModel):
    content: str
    file_name: str


class UploadResponse(CamelModel):
    url: str
    key: str
    file_name: str
    format: str


class UploadSignatureRequest(CamelModel):
    file_name: str = Field(..., min_length=1, max_length=255)
    content_type: str = Field(..., min_length=1)


class UploadSignature(CamelModel):
    """Presigned POST: the browser sends `fields` plus the file to `url`."""

    url: str
    fields: dict[str, str]
    key: str
    file_url: str
    expires_in: int
