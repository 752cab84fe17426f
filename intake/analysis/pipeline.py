"""
pipeline.py — Entry point for one analysis run (manual questionnaire or
extracted document, the graph does not care which).
"""
import logging
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from intake.analysis.schemas import AnalyzeResponse
from intake.errors import IntakeError

logger = logging.getLogger(__name__)


async def run_analysis(
    graph: Any,
    db: AsyncSession,
    analyzer: Any,
    payload: dict,
    owner_id: Optional[str] = None,
    pending_analysis_id: Optional[str] = None,
    pdf_url: Optional[str] = None,
) -> AnalyzeResponse:
    """
    Drive the compiled analysis graph to a terminal state.

    Raises:
        IntakeError: the error recorded by the graph (validation or analyzer),
                     AFTER any failed attempt has been persisted.
    """
    initial_state = {
        "raw_input": payload,
        "owner_id": owner_id,
        "pending_analysis_id": pending_analysis_id,
        "pdf_url": pdf_url,
        "status": "analyzing",
        "trace": [],
    }
    final = await graph.ainvoke(
        initial_state,
        config={"configurable": {"db": db, "analyzer": analyzer}},
    )

    logger.info("Analysis run finished status=%s trace=%s", final.get("status"), final.get("trace"))

    error = final.get("error")
    if isinstance(error, IntakeError):
        raise error

    result = final["result"]
    return AnalyzeResponse(
        recommendations=result.recommendations,
        project_blueprint=result.project_blueprint,
        analysis_id=final.get("analysis_id"),
        business_profile=final.get("profile"),
    )
