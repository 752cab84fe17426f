"""
Test configuration for the intake backend.

No live services are needed:
  - PostgreSQL → in-memory SQLite (aiosqlite + StaticPool), get_db overridden
  - Redis      → FakeRedis, a dict with the handful of commands cache.py uses
  - Storage    → httpx.MockTransport serving DOCUMENTS by URL
  - Mistral    → FakeAnalyzer returning a canned AnalysisResult (or raising)
  - Auth       → HS256 tokens minted with the test secret
"""
import io
import os
import time
from typing import Any, Optional

# Must be set before intake.config is imported anywhere
os.environ.setdefault("AUTH_JWT_SECRET", "test-secret-with-at-least-32-characters!!")
os.environ.setdefault("AUTH_JWT_AUDIENCE", "authenticated")

import httpx
import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from redis.asyncio import RedisError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from intake.config import settings
from intake.database import Base, get_db
from intake.errors import AnalyzerError
from intake.profile.schemas import AnalysisResult

TEST_USER_ID = "3f1c2b8e-0000-4000-8000-000000000001"
OTHER_USER_ID = "3f1c2b8e-0000-4000-8000-000000000002"


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------

VALID_PROFILE: dict[str, Any] = {
    "businessName": "Northwind Logistics",
    "industry": "Logistics",
    "businessModel": "B2B",
    "yearEstablished": "2014",
    "teamSize": "45",
    "operatingRegions": ["India", "UAE"],
    "coreOperations": "Freight forwarding and last-mile delivery",
    "workflowChallenges": "Dispatch is coordinated over phone calls",
    "manualTasks": "Invoice reconciliation in spreadsheets",
    "currentTools": "Tally, Excel, WhatsApp",
    "hasWebsite": True,
    "hasMobileApp": False,
    "hasCRM": False,
    "hasERP": True,
    "hasCloudSetup": False,
    "hasAdminTools": False,
    "hasDevTeam": False,
    "shortTermGoals": "Automate dispatch",
    "budgetPreference": "Medium",
    "deadline": "Q3",
}

ANALYSIS_REPLY: dict[str, Any] = {
    "recommendations": [
        {
            "id": "rec-1",
            "title": "Dispatch automation platform",
            "category": "Process Automation & Optimization",
            "description": "Route and assign deliveries automatically.",
            "whyNeeded": "Dispatch runs over phone calls.",
            "howItHelps": "Removes manual coordination.",
            "businessImpact": "Faster deliveries",
            "expectedROI": "30% less dispatch time",
            "priority": "High",
            "estimatedTimeline": "8-10 weeks",
            "estimatedCost": "$15k-$25k",
        },
        {
            "id": "rec-2",
            "title": "Customer CRM rollout",
            "category": "Software Solutions",
            "description": "Central customer records.",
            "priority": "Medium",
        },
    ],
    "projectBlueprint": {
        "deliverables": ["Dispatch app", "CRM"],
        "timeline": "4 months",
        "costBracket": "$30k-$50k",
        "phases": [{"name": "Discovery", "duration": "2 weeks", "description": "Process mapping"}],
    },
}


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeRedis:
    """In-memory stand-in for redis.asyncio.Redis (decode_responses=True)."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.fail = False

    def _check(self) -> None:
        if self.fail:
            raise RedisError("connection refused")

    async def ping(self) -> bool:
        self._check()
        return True

    async def get(self, key: str) -> Optional[str]:
        self._check()
        return self.store.get(key)

    async def setex(self, key: str, ttl: int, value: str) -> bool:
        self._check()
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    async def delete(self, *keys: str) -> int:
        self._check()
        removed = 0
        for key in keys:
            removed += self.store.pop(key, None) is not None
            self.ttls.pop(key, None)
        return removed

    async def aclose(self) -> None:
        pass


class FakeAnalyzer:
    """Records every profile it is asked to analyze."""

    def __init__(self, reply: Optional[dict] = None, error: Optional[Exception] = None) -> None:
        self.reply = reply or ANALYSIS_REPLY
        self.error = error
        self.calls: list = []

    async def analyze(self, profile):
        self.calls.append(profile)
        if self.error is not None:
            raise self.error
        return AnalysisResult.model_validate(self.reply)


# ---------------------------------------------------------------------------
# Document builders
# ---------------------------------------------------------------------------

def make_pdf(lines: list[str]) -> bytes:
    """Single-page PDF with a Helvetica text layer (empty list → no text layer)."""
    ops = ["BT", "/F1 12 Tf", "72 720 Td", "14 TL"]
    for line in lines:
        escaped = line.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
        ops.append(f"({escaped}) Tj T*")
    ops.append("ET")
    stream = "\n".join(ops) if lines else ""

    objects = [
        "<< /Type /Catalog /Pages 2 0 R >>",
        "<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        "/Contents 4 0 R /Resources << /Font << /F1 5 0 R >> >> >>",
        f"<< /Length {len(stream.encode('latin-1'))} >>\nstream\n{stream}\nendstream",
        "<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]

    out = io.BytesIO()
    out.write(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(out.tell())
        out.write(f"{number} 0 obj\n{body}\nendobj\n".encode("latin-1"))
    xref_at = out.tell()
    out.write(f"xref\n0 {len(objects) + 1}\n".encode("latin-1"))
    out.write(b"0000000000 65535 f \n")
    for offset in offsets:
        out.write(f"{offset:010d} 00000 n \n".encode("latin-1"))
    out.write(
        f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\nstartxref\n{xref_at}\n%%EOF\n".encode("latin-1")
    )
    return out.getvalue()


def make_docx(paragraphs: list[str], table: Optional[list[list[str]]] = None) -> bytes:
    from docx import Document

    doc = Document()
    for text in paragraphs:
        doc.add_paragraph(text)
    if table:
        grid = doc.add_table(rows=len(table), cols=len(table[0]))
        for r, row in enumerate(table):
            for c, value in enumerate(row):
                grid.cell(r, c).text = value
    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

def mint_token(
    sub: str = TEST_USER_ID,
    email: str = "owner@northwind.example",
    role: str = "authenticated",
    expires_in: int = 3600,
    **claims: Any,
) -> str:
    now = int(time.time())
    payload = {
        "sub": sub,
        "email": email,
        "role": role,
        "aud": settings.auth_jwt_audience,
        "iat": now,
        "exp": now + expires_in,
        **claims,
    }
    return jwt.encode(payload, settings.auth_jwt_secret, algorithm="HS256")


def auth_headers(sub: str = TEST_USER_ID, **kwargs: Any) -> dict[str, str]:
    return {"Authorization": f"Bearer {mint_token(sub=sub, **kwargs)}"}


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    import intake.models  # noqa: F401  register tables on Base.metadata

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Application fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def analyzer() -> FakeAnalyzer:
    return FakeAnalyzer()


@pytest.fixture
def documents() -> dict[str, tuple[int, str, bytes]]:
    """URL → (status, content-type, body) served by the mocked storage host."""
    return {
        "https://files.example.com/profile.txt": (
            200,
            "text/plain",
            b"Business name: Northwind Logistics\nIndustry: Logistics\n",
        ),
        "https://files.example.com/profile.pdf": (
            200,
            "application/octet-stream",
            make_pdf(["Northwind Logistics", "Freight forwarding"]),
        ),
        "https://files.example.com/scan.pdf": (200, "application/pdf", make_pdf([])),
        "https://files.example.com/slides.pptx": (200, "application/octet-stream", b"PK\x03\x04"),
    }


@pytest_asyncio.fixture
async def client(session_factory, fake_redis, analyzer, documents):
    """Async httpx client using ASGI transport — no live server needed."""
    from intake.graph.graph import build_graph
    from intake.main import app

    def serve(request: httpx.Request) -> httpx.Response:
        status, content_type, body = documents.get(str(request.url), (404, "text/plain", b"missing"))
        return httpx.Response(status, headers={"content-type": content_type}, content=body)

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.state.redis = fake_redis
    app.state.analyzer = analyzer
    app.state.analysis_graph = build_graph()
    app.state.http_client = httpx.AsyncClient(transport=httpx.MockTransport(serve))

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    await app.state.http_client.aclose()
    app.dependency_overrides.clear()
