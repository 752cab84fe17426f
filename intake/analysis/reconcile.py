"""
reconcile.py — Durable outcome of one analysis attempt.

record_completed():
  pending id given → overwrite that record (status=completed, profile +
                     recommendations + blueprint attached, parsed_data and
                     error_message cleared)
  update finds nothing or the database rejects it → insert a fresh record
  no pending id    → insert

record_failed():
  pending id given → status=failed, error_message set. parsed_data and
                     business_profile are left as they were so the attempt can
                     be retried from the history screen.
  A failure while recording the failure is logged and swallowed: the caller
  still gets the analyzer error, never a database error.

Both commit explicitly. The analyze route raises after record_failed(), and
get_db() rolls back on exceptions, so an uncommitted failure would be lost.
"""
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from intake.analysis.schemas import NewAnalysisRecord
from intake.models.analysis import AnalysisStatus
from intake.profile.schemas import AnalysisResult, BusinessProfile
from intake.store import insert_analysis, update_analysis

logger = logging.getLogger(__name__)

UNKNOWN_COMPANY = "Unknown Company"


def _completed_columns(profile: BusinessProfile, result: AnalysisResult) -> dict:
    blueprint = result.project_blueprint
    return {
        "status": AnalysisStatus.COMPLETED,
        "business_profile": profile.model_dump(by_alias=True, mode="json"),
        "recommendations": [r.model_dump(by_alias=True, mode="json") for r in result.recommendations],
        "project_blueprint": blueprint.model_dump(by_alias=True, mode="json") if blueprint else None,
        "parsed_data": None,
        "error_message": None,
    }


async def record_completed(
    db: AsyncSession,
    owner_id: str,
    profile: BusinessProfile,
    result: AnalysisResult,
    pending_analysis_id: Optional[str] = None,
    pdf_url: Optional[str] = None,
) -> str:
    """Persist a successful analysis and return the record id."""
    columns = _completed_columns(profile, result)

    if pending_analysis_id:
        patch = dict(columns)
        if pdf_url:
            patch["business_profile_pdf_url"] = pdf_url
        try:
            updated = await update_analysis(db, pending_analysis_id, owner_id, patch)
        except SQLAlchemyError as exc:
            logger.warning(
                "Updating pending analysis failed, inserting instead analysis_id=%s: %s",
                pending_analysis_id,
                type(exc).__name__,
            )
            await db.rollback()
            updated = None

        if updated is not None:
            await db.commit()
            return updated
        logger.info("Pending analysis unavailable, inserting new record analysis_id=%s", pending_analysis_id)

    analysis_id = await insert_analysis(
        db,
        NewAnalysisRecord(
            user_id=owner_id,
            company_name=profile.business_name or UNKNOWN_COMPANY,
            business_profile_pdf_url=pdf_url,
            **columns,
        ),
    )
    await db.commit()
    return analysis_id


async def record_failed(
    db: AsyncSession,
    owner_id: str,
    pending_analysis_id: str,
    message: str,
) -> None:
    """Mark a pending record failed. Never raises for persistence problems."""
    try:
        updated = await update_analysis(
            db,
            pending_analysis_id,
            owner_id,
            {"status": AnalysisStatus.FAILED, "error_message": message},
        )
        await db.commit()
    except SQLAlchemyError as exc:
        logger.error(
            "Could not record failed analysis analysis_id=%s: %s",
            pending_analysis_id,
            type(exc).__name__,
        )
        await db.rollback()
        return

    if updated is None:
        logger.info("Failed attempt not recorded, analysis not found analysis_id=%s", pending_analysis_id)
