"""
Analysis HTTP routes — POST /api/save-parsed-data, POST /api/analyze-profile,
                        GET /api/analysis-history, GET /api/analysis-history/{id}

analyze-profile accepts anonymous callers (result returned, nothing persisted);
every other route requires a signed-in user and is owner-scoped via store.py.
"""
from __future__ import annotations

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from intake.analysis.pipeline import run_analysis
from intake.analysis.reconcile import UNKNOWN_COMPANY
from intake.analysis.schemas import (
    AnalysisRecord,
    AnalysisSummary,
    AnalyzeResponse,
    NewAnalysisRecord,
    SaveParsedDataRequest,
    SaveParsedDataResponse,
)
from intake.auth import AuthUser, optional_user, require_user
from intake.cache import record_session_step
from intake.config import settings
from intake.database import get_db
from intake.errors import BadInput, NotFound, PayloadTooLarge
from intake.store import get_analysis, insert_analysis, list_analyses

router = APIRouter(prefix="/api", tags=["analysis"])
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# POST /api/save-parsed-data
# ---------------------------------------------------------------------------

@router.post("/save-parsed-data", response_model=SaveParsedDataResponse)
async def save_parsed_data(
    body: SaveParsedDataRequest,
    request: Request,
    user: AuthUser = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> SaveParsedDataResponse:
    """
    extracted → pending record. One record per submission attempt.

    Returns:
        200: {success, analysisId, message}
    """
    company_name = (
        (body.company_name or "").strip()
        or str(body.parsed_data.get("businessName") or "").strip()
        or UNKNOWN_COMPANY
    )
    analysis_id = await insert_analysis(
        db,
        NewAnalysisRecord(
            user_id=user.id,
            company_name=company_name,
            status="pending",
            parsed_data=body.parsed_data,
            business_profile_pdf_url=body.pdf_url,
        ),
    )

    await record_session_step(
        getattr(request.app.state, "redis", None),
        user.id,
        {"pendingAnalysisId": analysis_id},
    )
    return SaveParsedDataResponse(analysis_id=analysis_id)


# ---------------------------------------------------------------------------
# POST /api/analyze-profile
# ---------------------------------------------------------------------------

async def _read_payload(request: Request) -> dict:
    raw = await request.body()
    if len(raw) > settings.max_payload_size:
        raise PayloadTooLarge("Request payload too large")
    try:
        payload = json.loads(raw or b"{}")
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise BadInput("Request body must be valid JSON")
    if not isinstance(payload, dict):
        raise BadInput("Request body must be a JSON object")
    for key in ("pendingAnalysisId", "businessProfilePdfUrl"):
        if payload.get(key) is not None and not isinstance(payload[key], str):
            raise BadInput(f"{key} must be a string")
    return payload


@router.post("/analyze-profile", response_model=AnalyzeResponse)
async def analyze_profile(
    request: Request,
    user: Optional[AuthUser] = Depends(optional_user),
    db: AsyncSession = Depends(get_db),
) -> AnalyzeResponse:
    """
    analyzing → completed | failed.

    Body: intake fields (camelCase) plus optional pendingAnalysisId and
    businessProfilePdfUrl.

    Returns:
        200: {recommendations, projectBlueprint, analysisId}
        400: VALIDATION_ERROR (first violation as message)
        413: PAYLOAD_TOO_LARGE
        502: ANALYSIS_FAILED (pending record already marked failed)
        503: SERVICE_NOT_CONFIGURED
    """
    payload = await _read_payload(request)
    pending_id = payload.get("pendingAnalysisId") or None
    pdf_url = payload.get("businessProfilePdfUrl") or None

    result = await run_analysis(
        request.app.state.analysis_graph,
        db,
        request.app.state.analyzer,
        payload,
        owner_id=user.id if user else None,
        pending_analysis_id=pending_id if user else None,
        pdf_url=pdf_url,
    )

    if user is not None:
        await record_session_step(
            getattr(request.app.state, "redis", None),
            user.id,
            {
                "businessProfile": (
                    result.business_profile.model_dump(by_alias=True, mode="json")
                    if result.business_profile else None
                ),
                "recommendations": [r.model_dump(by_alias=True, mode="json") for r in result.recommendations],
                "projectBlueprint": (
                    result.project_blueprint.model_dump(by_alias=True, mode="json")
                    if result.project_blueprint else None
                ),
                "pendingAnalysisId": None,
            },
        )
    return result


# ---------------------------------------------------------------------------
# GET /api/analysis-history
# ---------------------------------------------------------------------------

@router.get("/analysis-history", response_model=list[AnalysisSummary])
async def get_analysis_history(
    user: AuthUser = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> list[AnalysisSummary]:
    """Owner-scoped summaries, newest first."""
    return await list_analyses(db, user.id)


@router.get("/analysis-history/{analysis_id}", response_model=AnalysisRecord)
async def get_analysis_by_id(
    analysis_id: str,
    user: AuthUser = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> AnalysisRecord:
    """
    Returns:
        200: full record
        404: NOT_FOUND (absent OR owned by someone else — indistinguishable)
    """
    record = await get_analysis(db, analysis_id, user.id)
    if record is None:
        raise NotFound("Analysis not found")
    return record
