"""
llm_service.py — AI analysis layer: BusinessProfile → service recommendations.

The provider is Mistral, reached through its OpenAI-compatible chat completions
endpoint with the openai SDK (base_url = settings.mistral_base_url).

Components:
  SYSTEM_PROMPT          — consultant persona, category list and output contract
  build_profile_prompt() — renders the profile as labelled sections (empty ones skipped)
  parse_analysis_reply() — untrusted model text → AnalysisResult (or AnalyzerError)
  MistralAnalyzer        — async call wrapped in the lifespan-created asyncio.Semaphore

No module-level asyncio.Semaphore — it is created in main.py lifespan and passed
in (avoids RuntimeError: no running event loop at import).

No retries here: a failed call surfaces as AnalyzerError and the pipeline records
the failed attempt. No HTTPException anywhere — HTTP is routes.py.
"""
import asyncio
import json
import logging
import re
from typing import Any, Optional

from openai import AsyncOpenAI
from pydantic import ValidationError

from intake.errors import AnalyzerError, ServiceNotConfigured
from intake.profile.schemas import AnalysisResult, BusinessProfile, Priority, ServiceCategory

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Mistral API constants
# ---------------------------------------------------------------------------

MISTRAL_MODEL = "mistral-small-latest"
MISTRAL_TEMPERATURE = 0.3
MISTRAL_MAX_TOKENS = 4096


_CATEGORIES = "\n".join(f"- {c.value}" for c in ServiceCategory)
_PRIORITIES = ", ".join(p.value for p in Priority)

SYSTEM_PROMPT = f"""You are a senior technology consultant preparing a discovery report for a business.

Rules you MUST follow:
1. Recommend 4 to 8 services that address the pain points and goals in the profile.
2. Every recommendation's "category" must be exactly one of:
{_CATEGORIES}
3. "priority" must be exactly one of: {_PRIORITIES}.
4. Ground every recommendation in something the profile actually says. Never invent facts about the business.
5. Respect the stated budget, deadline and resource constraints when estimating cost and timeline.
6. Reply with a single JSON object and nothing else, shaped as:
{{
  "recommendations": [
    {{"id": "rec-1", "title": "", "category": "", "description": "", "whyNeeded": "",
      "howItHelps": "", "businessImpact": "", "expectedROI": "", "priority": "",
      "estimatedTimeline": "", "estimatedCost": ""}}
  ],
  "projectBlueprint": {{
    "deliverables": [""], "timeline": "", "costBracket": "",
    "phases": [{{"name": "", "duration": "", "description": ""}}]
  }}
}}"""


# Section title → profile fields, in the order the questionnaire asks them
_PROFILE_SECTIONS: list[tuple[str, list[str]]] = [
    ("Company", ["business_name", "industry", "business_model", "year_established", "team_size", "operating_regions"]),
    ("Operations", ["core_operations", "workflow_challenges", "manual_tasks", "current_tools"]),
    ("Digital footprint", ["has_website", "has_mobile_app", "has_crm", "has_erp", "has_cloud_setup", "has_admin_tools", "has_dev_team"]),
    ("Technology", ["technology_stack", "cybersecurity_practices", "api_integrations"]),
    ("Goals", ["short_term_goals", "long_term_goals", "upcoming_launches", "automation_areas"]),
    ("Challenges", ["revenue_challenges", "sales_marketing_challenges", "tech_bottlenecks", "customer_support_challenges", "compliance_concerns"]),
    ("Market", ["target_customers", "competitors", "data_format", "industry_specific_processes"]),
    ("Budget & constraints", ["budget_preference", "preferred_solution_type", "deadline", "resource_constraints"]),
]


_ACRONYMS = {"crm": "CRM", "erp": "ERP", "api": "API"}


def _label(field_name: str) -> str:
    words = [_ACRONYMS.get(w, w) for w in field_name.split("_")]
    words[0] = words[0].capitalize()
    return " ".join(words)


def build_profile_prompt(profile: BusinessProfile) -> str:
    """
    Render the profile as labelled sections for the user turn.
    Empty text/list fields are skipped; flags are always shown as Yes/No.
    """
    blocks = []
    for title, fields in _PROFILE_SECTIONS:
        lines = []
        for name in fields:
            value = getattr(profile, name)
            if isinstance(value, bool):
                rendered = "Yes" if value else "No"
            elif isinstance(value, list):
                rendered = ", ".join(value)
            else:
                rendered = value
            if rendered:
                lines.append(f"- {_label(name)}: {rendered}")
        if lines:
            blocks.append(f"{title}:\n" + "\n".join(lines))
    return "Business profile:\n\n" + "\n\n".join(blocks) + "\n\nReturn the JSON report now."


_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def _reply_text(content: Any) -> str:
    # str from OpenAI-compatible endpoints; some providers return content parts
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(getattr(chunk, "text", "") or "" for chunk in content)
    return ""


def parse_analysis_reply(text: str) -> AnalysisResult:
    """
    Destructure the model reply into AnalysisResult.

    Raises:
        AnalyzerError: reply is not JSON or does not match the contract.
    """
    cleaned = _FENCE.sub("", text.strip())
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise AnalyzerError("AI analysis returned malformed output") from exc

    if not isinstance(payload, dict):
        raise AnalyzerError("AI analysis returned malformed output")

    try:
        return AnalysisResult.model_validate(payload)
    except ValidationError as exc:
        logger.warning("Analyzer reply failed contract validation errors=%d", exc.error_count())
        raise AnalyzerError("AI analysis returned an incomplete report") from exc


class MistralAnalyzer:
    """Analyzer backed by Mistral chat completions in JSON mode."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI],
        semaphore: asyncio.Semaphore,
        model: str = MISTRAL_MODEL,
    ) -> None:
        self.client = client
        self.semaphore = semaphore
        self.model = model

    async def analyze(self, profile: BusinessProfile) -> AnalysisResult:
        """
        Raises:
            ServiceNotConfigured: no API key was configured at startup.
            AnalyzerError:        provider call failed or reply was unusable.
        """
        if self.client is None:
            logger.error("Analysis requested but MISTRAL_API_KEY is not set")
            raise ServiceNotConfigured()

        prompt = build_profile_prompt(profile)
        logger.info("Calling Mistral API model=%s prompt_len=%d", self.model, len(prompt))

        try:
            async with self.semaphore:
                response = await self.client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": SYSTEM_PROMPT},
                        {"role": "user", "content": prompt},
                    ],
                    temperature=MISTRAL_TEMPERATURE,
                    max_tokens=MISTRAL_MAX_TOKENS,
                    response_format={"type": "json_object"},
                )
        except Exception as exc:
            logger.error("Mistral API call failed: %s", type(exc).__name__)
            raise AnalyzerError() from exc

        if not response or not response.choices:
            raise AnalyzerError("AI analysis returned no result")

        text = _reply_text(response.choices[0].message.content)
        logger.info("Mistral response received reply_len=%d", len(text))

        result = parse_analysis_reply(text)
        logger.info(
            "Analysis parsed recommendations=%d blueprint=%s",
            len(result.recommendations),
            result.project_blueprint is not None,
        )
        return result
