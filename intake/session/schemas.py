"""
schemas.py — Client session layer contracts (Redis-backed, never a source of truth).
"""
from typing import Any, List, Optional

from pydantic import Field

from intake.profile.schemas import CamelModel


class UploadedFile(CamelModel):
    name: str
    type: str = ""
    content: str = ""


class ClientSession(CamelModel):
    user_id: str
    business_profile: Optional[dict[str, Any]] = None
    recommendations: Optional[List[dict[str, Any]]] = None
    project_blueprint: Optional[dict[str, Any]] = None
    uploaded_file: Optional[UploadedFile] = None
    pending_analysis_id: Optional[str] = None
    last_updated: Optional[str] = None


class SessionUpdate(CamelModel):
    """Partial session write from the client; omitted fields are left unchanged."""

    business_profile: Optional[dict[str, Any]] = None
    recommendations: Optional[List[dict[str, Any]]] = None
    project_blueprint: Optional[dict[str, Any]] = None
    uploaded_file: Optional[UploadedFile] = None
    pending_analysis_id: Optional[str] = None


class QuestionnaireDraft(CamelModel):
    data: dict[str, Any] = Field(default_factory=dict)
    current_step: int = 0
    last_saved: Optional[str] = None
