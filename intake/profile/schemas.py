"""
schemas.py — Business intake Pydantic v2 data contracts.

Defines:
  - CamelModel             (base: snake_case in Python, camelCase on the wire)
  - BusinessProfile        (the central intake contract — 37 fields)
  - ServiceCategory / Priority enums
  - ServiceRecommendation, ProjectPhase, ProjectBlueprint, AnalysisResult
  - ErrorDetail, ErrorBody, ErrorResponse  (cross-cutting error envelope)

Wire names are fixed by the web client: hasCRM / hasERP / expectedROI keep their
upper-case acronyms, so they carry explicit aliases instead of the generated ones.
"""
import uuid
from enum import Enum
from typing import Annotated, Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

MAX_TEXT_LENGTH = 10_000

ProfileText = Annotated[str, Field(max_length=MAX_TEXT_LENGTH)]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


# ---------------------------------------------------------------------------
# BusinessProfile — central intake contract
# ---------------------------------------------------------------------------

class BusinessProfile(CamelModel):
    """
    Complete intake profile for one business.

    Every field has a type-correct default so a normalized payload always
    validates structurally; the only hard requirement is a non-empty
    business_name (enforced in validator.py before this model is built).
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        str_strip_whitespace=True,
    )

    # --- Identity ---
    business_name: str = Field(..., min_length=1, max_length=255)
    industry: ProfileText = ""
    business_model: ProfileText = ""
    year_established: ProfileText = ""
    team_size: ProfileText = ""
    operating_regions: List[str] = Field(default_factory=list)

    # --- Operations ---
    core_operations: ProfileText = ""
    workflow_challenges: ProfileText = ""
    manual_tasks: ProfileText = ""
    current_tools: ProfileText = ""

    # --- Capability flags ---
    has_website: bool = False
    has_mobile_app: bool = False
    has_crm: bool = Field(default=False, alias="hasCRM")
    has_erp: bool = Field(default=False, alias="hasERP")
    has_cloud_setup: bool = False
    has_admin_tools: bool = False
    has_dev_team: bool = False

    # --- Technology ---
    technology_stack: ProfileText = ""
    cybersecurity_practices: ProfileText = ""
    api_integrations: ProfileText = ""

    # --- Goals ---
    short_term_goals: ProfileText = ""
    long_term_goals: ProfileText = ""
    upcoming_launches: ProfileText = ""
    automation_areas: ProfileText = ""

    # --- Pain points ---
    revenue_challenges: ProfileText = ""
    sales_marketing_challenges: ProfileText = ""
    tech_bottlenecks: ProfileText = ""
    customer_support_challenges: ProfileText = ""
    compliance_concerns: ProfileText = ""

    # --- Market ---
    target_customers: ProfileText = ""
    competitors: ProfileText = ""
    data_format: ProfileText = ""
    industry_specific_processes: ProfileText = ""

    # --- Budget & constraints ---
    budget_preference: ProfileText = ""
    preferred_solution_type: ProfileText = ""
    deadline: ProfileText = ""
    resource_constraints: ProfileText = ""


# ---------------------------------------------------------------------------
# Analyzer output
# ---------------------------------------------------------------------------

class ServiceCategory(str, Enum):
    process_automation = "Process Automation & Optimization"
    software_solutions = "Software Solutions"
    cybersecurity = "Cybersecurity & Risk Reduction"
    modernization = "Technology Modernization"
    ai_automation = "AI & Intelligent Automation"
    industry_specific = "Industry-Specific Solutions"


class Priority(str, Enum):
    high = "High"
    medium = "Medium"
    low = "Low"


class ServiceRecommendation(CamelModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str = Field(..., min_length=1)
    category: ServiceCategory
    description: str = ""
    why_needed: str = ""
    how_it_helps: str = ""
    business_impact: str = ""
    expected_roi: str = Field(default="", alias="expectedROI")
    priority: Priority
    estimated_timeline: str = ""
    estimated_cost: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v: Any) -> Any:
        # Model output sometimes numbers recommendations 1..n
        return str(v) if isinstance(v, int) else v

    @field_validator("category", mode="before")
    @classmethod
    def _match_category(cls, v: Any) -> Any:
        if isinstance(v, str):
            wanted = v.strip().lower().replace(" and ", " & ")
            for member in ServiceCategory:
                if member.value.lower() == wanted:
                    return member
        return v

    @field_validator("priority", mode="before")
    @classmethod
    def _match_priority(cls, v: Any) -> Any:
        return v.strip().capitalize() if isinstance(v, str) else v


class ProjectPhase(CamelModel):
    name: str
    duration: str = ""
    description: str = ""


class ProjectBlueprint(CamelModel):
    deliverables: List[str] = Field(default_factory=list)
    timeline: str = ""
    cost_bracket: str = ""
    phases: List[ProjectPhase] = Field(default_factory=list)


class AnalysisResult(CamelModel):
    """Destructured analyzer reply: recommendations plus an optional blueprint."""

    recommendations: List[ServiceRecommendation] = Field(..., min_length=1)
    project_blueprint: Optional[ProjectBlueprint] = None


# ---------------------------------------------------------------------------
# Error envelope — {error: {code, message, details}}
# ---------------------------------------------------------------------------

class ErrorDetail(BaseModel):
    field: Optional[str] = None
    issue: str


class ErrorBody(BaseModel):
    code: str
    message: str
    details: List[ErrorDetail] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    error: ErrorBody
