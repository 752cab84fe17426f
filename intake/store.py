"""
store.py — Data access facade for the analysis history.

All routes and pipeline steps use these functions; nothing else touches
AnalysisRecordORM directly.

Design principles:
  - All functions are async and accept an AsyncSession parameter
  - Ownership is enforced HERE: every read and update filters on user_id, so a
    record owned by someone else is indistinguishable from a missing one
  - flush() only — the get_db() dependency (or the pipeline) decides when to commit
  - Logs only analysis_id / user_id / status — never profile contents
  - Returns Pydantic objects (not ORM instances) so callers are persistence-agnostic
"""
import logging
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from intake.analysis.schemas import AnalysisRecord, AnalysisSummary, NewAnalysisRecord
from intake.models.analysis import AnalysisRecordORM

logger = logging.getLogger(__name__)

# Columns a patch may touch — id, user_id and created_at are immutable
_UPDATABLE = {
    "company_name",
    "status",
    "parsed_data",
    "business_profile",
    "recommendations",
    "project_blueprint",
    "business_profile_pdf_url",
    "error_message",
}


async def insert_analysis(db: AsyncSession, record: NewAnalysisRecord) -> str:
    """Persist a new analysis record and return its id."""
    orm = AnalysisRecordORM(**record.model_dump(by_alias=False))
    db.add(orm)
    await db.flush()
    logger.info(
        "Inserted analysis analysis_id=%s user_id=%s status=%s",
        orm.id,
        orm.user_id,
        orm.status,
    )
    return orm.id


async def update_analysis(
    db: AsyncSession,
    analysis_id: str,
    user_id: str,
    patch: dict[str, Any],
) -> Optional[str]:
    """
    Overwrite the given columns of an owned record.

    Returns the id, or None when the record does not exist or belongs to another
    user (callers decide whether that is an error or a fallback).

    Raises:
        ValueError: patch names a column that may not be changed.
    """
    unknown = set(patch) - _UPDATABLE
    if unknown:
        raise ValueError(f"Cannot update analysis columns: {sorted(unknown)}")

    orm = await _get_owned(db, analysis_id, user_id)
    if orm is None:
        logger.info("Update skipped, analysis not found analysis_id=%s user_id=%s", analysis_id, user_id)
        return None

    for column, value in patch.items():
        setattr(orm, column, value)
    await db.flush()
    logger.info(
        "Updated analysis analysis_id=%s user_id=%s status=%s",
        analysis_id,
        user_id,
        orm.status,
    )
    return orm.id


async def get_analysis(
    db: AsyncSession,
    analysis_id: str,
    user_id: str,
) -> Optional[AnalysisRecord]:
    """Full record, or None if absent or not owned by user_id."""
    orm = await _get_owned(db, analysis_id, user_id)
    if orm is None:
        return None
    return AnalysisRecord.model_validate(orm)


async def list_analyses(db: AsyncSession, user_id: str) -> list[AnalysisSummary]:
    """Owner-scoped summaries, newest first."""
    result = await db.execute(
        select(AnalysisRecordORM)
        .where(AnalysisRecordORM.user_id == user_id)
        .order_by(AnalysisRecordORM.created_at.desc())
    )
    rows = result.scalars().all()
    logger.info("Listed analyses user_id=%s count=%d", user_id, len(rows))
    return [AnalysisSummary.model_validate(row) for row in rows]


async def _get_owned(
    db: AsyncSession,
    analysis_id: str,
    user_id: str,
) -> Optional[AnalysisRecordORM]:
    result = await db.execute(
        select(AnalysisRecordORM).where(
            AnalysisRecordORM.id == analysis_id,
            AnalysisRecordORM.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()
