"""
state.py — Shared AnalysisState TypedDict for the analysis LangGraph.

Flows through: validate_profile → analyze → record_completed | record_failed
All nodes read from and write to this state; LangGraph merges the partial
updates each node returns.
"""
from __future__ import annotations

import operator
from typing import Annotated, Any, Optional

from typing_extensions import TypedDict


class AnalysisState(TypedDict, total=False):
    """
    'total=False' — every field is optional at construction time; each node
    adds/overwrites only the fields it is responsible for.
    """

    # ---- Request (set before graph.ainvoke) ---------------------------------
    raw_input: dict                       # Intake payload as received
    owner_id: Optional[str]               # None for anonymous callers (nothing persisted)
    pending_analysis_id: Optional[str]
    pdf_url: Optional[str]

    # ---- validate_profile ---------------------------------------------------
    profile: Optional[Any]                # BusinessProfile instance

    # ---- analyze ------------------------------------------------------------
    result: Optional[Any]                 # AnalysisResult instance

    # ---- record_* -----------------------------------------------------------
    analysis_id: Optional[str]

    # ---- Control flow -------------------------------------------------------
    status: str                           # "analyzing" | "rejected" | "completed" | "failed"
    error: Optional[Any]                  # IntakeError raised to the caller after the run
    trace: Annotated[list[str], operator.add]   # Node names in execution order
