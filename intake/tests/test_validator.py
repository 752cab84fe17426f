"""
test_validator.py — profile normalization (total) and validation (first failure wins).
"""
from __future__ import annotations

import pytest

from conftest import VALID_PROFILE
from intake.errors import ProfileValidationError
from intake.profile.schemas import BusinessProfile
from intake.profile.validator import normalize_business_profile, validate_business_profile


# ---------------------------------------------------------------------------
# normalize_business_profile
# ---------------------------------------------------------------------------

class TestNormalize:

    @pytest.mark.parametrize("raw", [None, {}, {"unknown": 1}, {"businessName": None, "teamSize": None}])
    def test_total_on_empty_and_junk_input(self, raw) -> None:
        normalized = normalize_business_profile(raw)
        assert len(normalized) == len(BusinessProfile.model_fields)
        assert normalized["businessName"] == ""
        assert normalized["operatingRegions"] == []
        assert normalized["hasCRM"] is False
        assert "unknown" not in normalized

    def test_every_value_has_the_declared_type(self) -> None:
        normalized = normalize_business_profile({"teamSize": 45, "operatingRegions": "India", "hasWebsite": "no"})
        for name, info in BusinessProfile.model_fields.items():
            value = normalized[info.alias or name]
            if info.annotation is bool:
                assert isinstance(value, bool)
            elif isinstance(value, list):
                assert all(isinstance(v, str) for v in value)
            else:
                assert isinstance(value, str)

    @pytest.mark.parametrize("flag", ["yes", "Yes", "true", "TRUE", "1", "y", "on", 1, True])
    def test_truthy_flags(self, flag) -> None:
        assert normalize_business_profile({"hasWebsite": flag})["hasWebsite"] is True

    @pytest.mark.parametrize("flag", ["no", "false", "0", "", 0, False, None, "maybe"])
    def test_falsy_flags(self, flag) -> None:
        assert normalize_business_profile({"hasWebsite": flag})["hasWebsite"] is False

    def test_lists_split_and_trimmed(self) -> None:
        normalized = normalize_business_profile({"operatingRegions": " India, UAE ;Singapore\n, "})
        assert normalized["operatingRegions"] == ["India", "UAE", "Singapore"]

    def test_list_input_drops_blanks(self) -> None:
        normalized = normalize_business_profile({"operatingRegions": ["India", " ", None, "UAE "]})
        assert normalized["operatingRegions"] == ["India", "UAE"]

    def test_text_fields_trimmed_and_stringified(self) -> None:
        normalized = normalize_business_profile(
            {"businessName": "  Northwind  ", "teamSize": 45, "currentTools": ["Tally", "Excel"]}
        )
        assert normalized["businessName"] == "Northwind"
        assert normalized["teamSize"] == "45"
        assert normalized["currentTools"] == "Tally, Excel"

    def test_snake_case_keys_accepted(self) -> None:
        normalized = normalize_business_profile(
            {"business_name": "Northwind", "has_crm": "yes", "operating_regions": "India"}
        )
        assert normalized["businessName"] == "Northwind"
        assert normalized["hasCRM"] is True
        assert normalized["operatingRegions"] == ["India"]

    def test_wire_name_wins_over_snake_case(self) -> None:
        normalized = normalize_business_profile({"businessName": "Wire", "business_name": "Snake"})
        assert normalized["businessName"] == "Wire"

    def test_input_is_not_mutated(self) -> None:
        raw = {"businessName": "  Northwind  ", "extra": True}
        normalize_business_profile(raw)
        assert raw == {"businessName": "  Northwind  ", "extra": True}


# ---------------------------------------------------------------------------
# validate_business_profile
# ---------------------------------------------------------------------------

class TestValidate:

    def test_valid_profile(self) -> None:
        profile = validate_business_profile(normalize_business_profile(VALID_PROFILE))
        assert profile.business_name == "Northwind Logistics"
        assert profile.operating_regions == ["India", "UAE"]
        assert profile.has_erp is True
        assert profile.has_crm is False

    def test_wire_names_round_out_on_dump(self) -> None:
        profile = validate_business_profile(normalize_business_profile(VALID_PROFILE))
        dumped = profile.model_dump(by_alias=True)
        assert dumped["hasCRM"] is False
        assert dumped["hasERP"] is True
        assert dumped["businessName"] == "Northwind Logistics"

    @pytest.mark.parametrize("name", ["", "   "])
    def test_business_name_required(self, name: str) -> None:
        with pytest.raises(ProfileValidationError) as exc_info:
            validate_business_profile(normalize_business_profile({**VALID_PROFILE, "businessName": name}))
        assert exc_info.value.message == "Business name is required"
        assert exc_info.value.status_code == 400
        assert exc_info.value.code == "VALIDATION_ERROR"

    def test_missing_business_name_on_empty_payload(self) -> None:
        with pytest.raises(ProfileValidationError):
            validate_business_profile(normalize_business_profile({}))

    def test_oversized_text_reports_first_violation(self) -> None:
        payload = {
            **VALID_PROFILE,
            "coreOperations": "x" * 10_001,
            "manualTasks": "y" * 10_001,
        }
        with pytest.raises(ProfileValidationError) as exc_info:
            validate_business_profile(normalize_business_profile(payload))

        err = exc_info.value
        assert err.message.startswith("coreOperations:")
        assert "10000" in err.message
        assert [d["field"] for d in err.details] == ["coreOperations", "manualTasks"]

    def test_text_at_the_limit_is_accepted(self) -> None:
        payload = {**VALID_PROFILE, "coreOperations": "x" * 10_000}
        profile = validate_business_profile(normalize_business_profile(payload))
        assert len(profile.core_operations) == 10_000
