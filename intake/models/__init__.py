"""
models/__init__.py — imports all ORM models so Alembic's env.py
sees them via Base.metadata.
"""
from intake.models.analysis import AnalysisRecordORM, AnalysisStatus

__all__ = ["AnalysisRecordORM", "AnalysisStatus"]
