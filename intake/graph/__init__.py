"""LangGraph state machine for the analysis half of the pipeline."""
