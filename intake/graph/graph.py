"""
graph.py — LangGraph StateGraph for the analysis half of the ingestion pipeline.

    validate_profile ──rejected──────────────────────────► END
          │
          └─► analyze ──failed──► record_failed ─────────► END
                 │
                 └─completed─► record_completed ─────────► END

Compiled once at FastAPI startup:
    app.state.analysis_graph = build_graph()

At request time (see analysis/pipeline.py):
    await graph.ainvoke(initial_state, config={"configurable": {"db": db, "analyzer": analyzer}})
"""
from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


def build_graph():
    """Build and compile the analysis StateGraph."""
    from langgraph.graph import END, StateGraph

    from intake.graph.nodes import (
        analyze_node,
        record_completed_node,
        record_failed_node,
        route_after_analyze,
        route_after_validate,
        validate_profile_node,
    )
    from intake.graph.state import AnalysisState

    workflow = StateGraph(AnalysisState)

    workflow.add_node("validate_profile", validate_profile_node)
    workflow.add_node("analyze", analyze_node)
    workflow.add_node("record_completed", record_completed_node)
    workflow.add_node("record_failed", record_failed_node)

    workflow.set_entry_point("validate_profile")

    workflow.add_conditional_edges(
        "validate_profile",
        route_after_validate,
        {
            "rejected": END,
            "analyze": "analyze",
        },
    )
    workflow.add_conditional_edges(
        "analyze",
        route_after_analyze,
        {
            "failed": "record_failed",
            "completed": "record_completed",
        },
    )

    workflow.add_edge("record_completed", END)
    workflow.add_edge("record_failed", END)

    compiled = workflow.compile()
    logger.info("Analysis LangGraph compiled successfully")
    return compiled
