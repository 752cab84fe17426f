"""
test_llm_service.py — prompt rendering, reply destructuring and the analyzer
call, with the openai client replaced by a MagicMock/AsyncMock pair.
"""
from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import ANALYSIS_REPLY, VALID_PROFILE
from intake.analysis.llm_service import (
    SYSTEM_PROMPT,
    MistralAnalyzer,
    build_profile_prompt,
    parse_analysis_reply,
)
from intake.errors import AnalyzerError, ServiceNotConfigured
from intake.profile.schemas import Priority, ServiceCategory
from intake.profile.validator import normalize_business_profile, validate_business_profile


@pytest.fixture
def profile():
    return validate_business_profile(normalize_business_profile(VALID_PROFILE))


def _completion(content) -> SimpleNamespace:
    message = SimpleNamespace(content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _client(response=None, error: Exception | None = None) -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=response, side_effect=error)
    return client


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------

def test_system_prompt_lists_every_category() -> None:
    for category in ServiceCategory:
        assert category.value in SYSTEM_PROMPT


def test_profile_prompt_sections(profile) -> None:
    prompt = build_profile_prompt(profile)

    assert "- Business name: Northwind Logistics" in prompt
    assert "- Operating regions: India, UAE" in prompt
    assert "- Has CRM: No" in prompt
    assert "- Has ERP: Yes" in prompt
    assert "Budget & constraints:" in prompt


def test_profile_prompt_skips_empty_fields(profile) -> None:
    prompt = build_profile_prompt(profile)
    assert "Competitors" not in prompt
    assert "Market:" not in prompt


# ---------------------------------------------------------------------------
# Reply destructuring
# ---------------------------------------------------------------------------

def test_parse_plain_json() -> None:
    result = parse_analysis_reply(json.dumps(ANALYSIS_REPLY))
    assert [r.id for r in result.recommendations] == ["rec-1", "rec-2"]
    assert result.recommendations[0].category is ServiceCategory.process_automation
    assert result.recommendations[0].expected_roi == "30% less dispatch time"
    assert result.project_blueprint.phases[0].name == "Discovery"


def test_parse_fenced_json() -> None:
    text = "```json\n" + json.dumps(ANALYSIS_REPLY) + "\n```"
    assert len(parse_analysis_reply(text).recommendations) == 2


def test_parse_tolerates_loose_category_priority_and_ids() -> None:
    reply = {
        "recommendations": [
            {"id": 1, "title": "SOC2 readiness", "category": "cybersecurity and risk reduction", "priority": "high"},
        ]
    }
    result = parse_analysis_reply(json.dumps(reply))
    rec = result.recommendations[0]
    assert rec.id == "1"
    assert rec.category is ServiceCategory.cybersecurity
    assert rec.priority is Priority.high
    assert result.project_blueprint is None


@pytest.mark.parametrize("text", ["", "not json", "[1, 2]", '{"recommendations": '])
def test_parse_malformed(text: str) -> None:
    with pytest.raises(AnalyzerError) as exc_info:
        parse_analysis_reply(text)
    assert exc_info.value.message == "AI analysis returned malformed output"


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"recommendations": []},
        {"recommendations": [{"title": "x", "category": "Gardening", "priority": "High"}]},
        {"recommendations": [{"title": "x", "category": "Software Solutions", "priority": "Urgent"}]},
    ],
)
def test_parse_incomplete(payload: dict) -> None:
    with pytest.raises(AnalyzerError) as exc_info:
        parse_analysis_reply(json.dumps(payload))
    assert exc_info.value.message == "AI analysis returned an incomplete report"


# ---------------------------------------------------------------------------
# MistralAnalyzer
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_analyze_calls_json_mode(profile) -> None:
    client = _client(_completion(json.dumps(ANALYSIS_REPLY)))
    analyzer = MistralAnalyzer(client, asyncio.Semaphore(1), model="mistral-small-latest")

    result = await analyzer.analyze(profile)

    assert len(result.recommendations) == 2
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "mistral-small-latest"
    assert kwargs["response_format"] == {"type": "json_object"}
    assert kwargs["messages"][0] == {"role": "system", "content": SYSTEM_PROMPT}
    assert "Northwind Logistics" in kwargs["messages"][1]["content"]


@pytest.mark.asyncio
async def test_analyze_without_client(profile) -> None:
    analyzer = MistralAnalyzer(None, asyncio.Semaphore(1))
    with pytest.raises(ServiceNotConfigured):
        await analyzer.analyze(profile)


@pytest.mark.asyncio
async def test_provider_error_becomes_analyzer_error(profile) -> None:
    analyzer = MistralAnalyzer(_client(error=RuntimeError("502 from provider")), asyncio.Semaphore(1))
    with pytest.raises(AnalyzerError) as exc_info:
        await analyzer.analyze(profile)
    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_empty_choices(profile) -> None:
    analyzer = MistralAnalyzer(_client(SimpleNamespace(choices=[])), asyncio.Semaphore(1))
    with pytest.raises(AnalyzerError) as exc_info:
        await analyzer.analyze(profile)
    assert exc_info.value.message == "AI analysis returned no result"


@pytest.mark.asyncio
async def test_content_parts_are_joined(profile) -> None:
    text = json.dumps(ANALYSIS_REPLY)
    parts = [SimpleNamespace(text=text[:20]), SimpleNamespace(text=text[20:])]
    analyzer = MistralAnalyzer(_client(_completion(parts)), asyncio.Semaphore(1))

    result = await analyzer.analyze(profile)
    assert result.recommendations[1].title == "Customer CRM rollout"


@pytest.mark.asyncio
async def test_semaphore_released_after_failure(profile) -> None:
    semaphore = asyncio.Semaphore(1)
    analyzer = MistralAnalyzer(_client(error=RuntimeError("timeout")), semaphore)

    with pytest.raises(AnalyzerError):
        await analyzer.analyze(profile)
    assert not semaphore.locked()
