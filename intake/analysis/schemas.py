"""
schemas.py — Analysis record contracts and analysis route payloads.

Record models (AnalysisRecord, AnalysisSummary) keep the snake_case column names
on the wire; the history screen of the web client reads them as-is.
Request/response payloads use the camelCase CamelModel convention.
"""
from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from intake.profile.schemas import BusinessProfile, CamelModel, ProjectBlueprint, ServiceRecommendation

AnalysisStatusLiteral = Literal["pending", "completed", "failed"]


# ---------------------------------------------------------------------------
# Store contracts
# ---------------------------------------------------------------------------

class NewAnalysisRecord(BaseModel):
    user_id: str = Field(..., min_length=1)
    company_name: str = "Unknown Company"
    status: AnalysisStatusLiteral = "pending"
    parsed_data: Optional[dict[str, Any]] = None
    business_profile: Optional[dict[str, Any]] = None
    recommendations: Optional[List[dict[str, Any]]] = None
    project_blueprint: Optional[dict[str, Any]] = None
    business_profile_pdf_url: Optional[str] = None
    error_message: Optional[str] = None


class AnalysisSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    company_name: str
    status: AnalysisStatusLiteral
    created_at: datetime
    business_profile_pdf_url: Optional[str] = None
    error_message: Optional[str] = None


class AnalysisRecord(AnalysisSummary):
    user_id: str
    parsed_data: Optional[dict[str, Any]] = None
    business_profile: Optional[dict[str, Any]] = None
    recommendations: Optional[List[dict[str, Any]]] = None
    project_blueprint: Optional[dict[str, Any]] = None
    updated_at: datetime


# ---------------------------------------------------------------------------
# Route payloads
# ---------------------------------------------------------------------------

class SaveParsedDataRequest(CamelModel):
    parsed_data: dict[str, Any]
    company_name: Optional[str] = None
    pdf_url: Optional[str] = None


class SaveParsedDataResponse(CamelModel):
    success: bool = True
    analysis_id: str
    message: str = "Parsed data saved successfully"


class AnalyzeResponse(CamelModel):
    recommendations: List[ServiceRecommendation]
    project_blueprint: Optional[ProjectBlueprint] = None
    analysis_id: Optional[str] = None
    # validated profile for the session cache; never serialized
    business_profile: Optional[BusinessProfile] = Field(default=None, exclude=True)
