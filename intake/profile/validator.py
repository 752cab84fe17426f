"""
Business profile normalizer and validator.

Two steps, always run in this order by the analysis pipeline:

  1. normalize_business_profile(raw) — TOTAL. Never raises. Accepts whatever the
     client or the extraction step produced (camelCase or snake_case keys, flags as
     "yes"/"true"/1, lists as comma-separated strings, nulls) and returns a dict
     keyed by wire name in which every BusinessProfile field is present with a
     type-correct value. Unknown keys are dropped.

  2. validate_business_profile(normalized) — builds the BusinessProfile model.
     Raises ProfileValidationError carrying the FIRST failure as one human-readable
     message (the web client shows a single line), with every violation in details.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Mapping

from pydantic import ValidationError

from intake.errors import ProfileValidationError
from intake.profile.schemas import BusinessProfile

logger = logging.getLogger(__name__)

_TRUTHY = {"true", "yes", "y", "1", "on", "checked"}
_LIST_SPLIT = re.compile(r"[,;\n]")


def _field_kinds() -> dict[str, tuple[str, str]]:
    """Map wire alias → (python name, kind) where kind is 'bool' | 'list' | 'str'."""
    kinds = {}
    for name, info in BusinessProfile.model_fields.items():
        annotation = info.annotation
        if annotation is bool:
            kind = "bool"
        elif getattr(annotation, "__origin__", None) is list:
            kind = "list"
        else:
            kind = "str"
        kinds[info.alias or name] = (name, kind)
    return kinds


_FIELDS = _field_kinds()


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return False


def _to_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        items = _LIST_SPLIT.split(value)
    elif isinstance(value, (list, tuple, set)):
        items = [str(v) for v in value if v is not None]
    else:
        items = [str(value)]
    return [item.strip() for item in items if item.strip()]


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v).strip() for v in value if v is not None and str(v).strip())
    return str(value).strip()


def normalize_business_profile(raw: Mapping[str, Any] | None) -> dict[str, Any]:
    """
    Fill every BusinessProfile field with a type-correct value.

    Returns a new dict keyed by wire name (camelCase). Wire-name keys win over
    snake_case duplicates.
    """
    raw = raw or {}
    normalized: dict[str, Any] = {}
    for alias, (name, kind) in _FIELDS.items():
        value = raw.get(alias, raw.get(name))
        if kind == "bool":
            normalized[alias] = _to_bool(value)
        elif kind == "list":
            normalized[alias] = _to_list(value)
        else:
            normalized[alias] = _to_text(value)
    return normalized


def validate_business_profile(normalized: Mapping[str, Any]) -> BusinessProfile:
    """
    Validate a normalized payload and return the BusinessProfile.

    Raises:
        ProfileValidationError: message is the first violation, details lists all.
    """
    if not str(normalized.get("businessName") or "").strip():
        raise ProfileValidationError(
            "Business name is required",
            details=[{"field": "businessName", "issue": "Business name is required"}],
        )

    try:
        return BusinessProfile.model_validate(dict(normalized))
    except ValidationError as exc:
        details = []
        for error in exc.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            details.append({"field": field or None, "issue": error["msg"]})
        first = details[0]
        message = f"{first['field']}: {first['issue']}" if first["field"] else first["issue"]
        logger.info("Business profile rejected violations=%d", len(details))
        raise ProfileValidationError(message, details=details) from exc
