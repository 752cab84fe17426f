"""
nodes.py — Node functions for the analysis LangGraph.

Per-request resources travel in the run config, never in module globals:
    config["configurable"]["db"]        — AsyncSession of the current request
    config["configurable"]["analyzer"]  — object with async analyze(profile)

Nodes never raise for expected failures. They put the IntakeError on state
under "error" and let the router pick the next node; pipeline.py re-raises it
once the graph has finished recording the outcome.
"""
from __future__ import annotations

import logging

from langchain_core.runnables import RunnableConfig

from intake.analysis.reconcile import record_completed, record_failed
from intake.errors import AnalyzerError, IntakeError, ProfileValidationError
from intake.graph.state import AnalysisState
from intake.profile.validator import normalize_business_profile, validate_business_profile

logger = logging.getLogger(__name__)


async def validate_profile_node(state: AnalysisState) -> dict:
    """Normalize then validate the raw intake payload."""
    normalized = normalize_business_profile(state.get("raw_input"))
    try:
        profile = validate_business_profile(normalized)
    except ProfileValidationError as exc:
        return {"status": "rejected", "error": exc, "trace": ["validate_profile"]}
    return {"profile": profile, "status": "analyzing", "trace": ["validate_profile"]}


async def analyze_node(state: AnalysisState, config: RunnableConfig) -> dict:
    analyzer = config["configurable"]["analyzer"]
    try:
        result = await analyzer.analyze(state["profile"])
    except IntakeError as exc:
        logger.warning("Analysis failed code=%s", exc.code)
        return {"error": exc, "trace": ["analyze"]}
    except Exception as exc:
        logger.error("Analyzer raised unexpectedly: %s", type(exc).__name__)
        return {"error": AnalyzerError(), "trace": ["analyze"]}
    return {"result": result, "trace": ["analyze"]}


async def record_completed_node(state: AnalysisState, config: RunnableConfig) -> dict:
    """
    Reconcile a successful analysis. Anonymous runs are returned to the caller
    but never persisted — a record always needs an owner.
    """
    owner_id = state.get("owner_id")
    if not owner_id:
        logger.info("Anonymous analysis completed, not persisted")
        return {"status": "completed", "analysis_id": None, "trace": ["record_completed"]}

    analysis_id = await record_completed(
        config["configurable"]["db"],
        owner_id,
        state["profile"],
        state["result"],
        pending_analysis_id=state.get("pending_analysis_id"),
        pdf_url=state.get("pdf_url"),
    )
    logger.info("Analysis completed analysis_id=%s", analysis_id)
    return {"status": "completed", "analysis_id": analysis_id, "trace": ["record_completed"]}


async def record_failed_node(state: AnalysisState, config: RunnableConfig) -> dict:
    owner_id = state.get("owner_id")
    pending_id = state.get("pending_analysis_id")
    if owner_id and pending_id:
        await record_failed(
            config["configurable"]["db"],
            owner_id,
            pending_id,
            state["error"].message,
        )
    return {"status": "failed", "analysis_id": pending_id, "trace": ["record_failed"]}


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

def route_after_validate(state: AnalysisState) -> str:
    return "rejected" if state.get("error") is not None else "analyze"


def route_after_analyze(state: AnalysisState) -> str:
    return "failed" if state.get("error") is not None else "completed"
