from __future__ import annotations

import json

import pytest

from govengine.core.exceptions import ConfigurationError
from govengine.modules.assessment.domain.naming_scheme import NamingScheme, load_naming_scheme


def _scheme_payload(**overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "components": [
            {"componentType": "Company", "position": 1, "isRequired": True},
            {"componentType": "environment", "position": 2, "allowedValues": ["dev", "prod"]},
            {"component_type": "service", "position": 3, "required": False},
        ],
        "separator": "-",
        "caseFormat": "lower",
        "acceptedCompanyNames": [" ABC ", ""],
        "serviceAbbreviations": [{"abbreviation": "cmp", "fullName": "Compass"}],
    }
    payload.update(overrides)
    return payload


def test_load_naming_scheme_returns_none_when_not_configured() -> None:
    assert load_naming_scheme(None) is None
    assert load_naming_scheme("   ") is None


def test_load_naming_scheme_accepts_camel_case_keys() -> None:
    scheme = load_naming_scheme(json.dumps(_scheme_payload()))

    assert isinstance(scheme, NamingScheme)
    assert scheme.case_format == "lowercase"
    assert [c.component_type for c in scheme.ordered_components] == [
        "company",
        "environment",
        "service",
    ]
    assert scheme.component("service") is not None
    assert scheme.component("service").required is False
    assert scheme.accepted_company_names == ("ABC",)
    assert scheme.service_overrides == {"cmp": "Compass"}


def test_company_names_match_case_insensitively() -> None:
    scheme = load_naming_scheme(_scheme_payload())

    assert scheme is not None
    assert scheme.is_accepted_company("abc") is True
    assert scheme.is_accepted_company("xyz") is False


def test_camel_case_has_no_effective_separator() -> None:
    scheme = load_naming_scheme(_scheme_payload(caseFormat="camelCase"))

    assert scheme is not None
    assert scheme.separator == "-"
    assert scheme.effective_separator == ""


def test_invalid_json_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError, match="not valid JSON"):
        load_naming_scheme("{not json")


def test_non_object_payload_is_rejected() -> None:
    with pytest.raises(ConfigurationError):
        load_naming_scheme("[1, 2]")


@pytest.mark.parametrize(
    "overrides",
    [
        {
            "components": [
                {"componentType": "company", "position": 1},
                {"componentType": "service", "position": 1},
            ]
        },
        {
            "components": [
                {"componentType": "company", "position": 1},
                {"componentType": "company", "position": 2},
            ]
        },
        {"separator": "/"},
        {"separator": "", "caseFormat": "lowercase"},
        {
            "serviceAbbreviations": [
                {"abbreviation": "cmp", "fullName": "Compass"},
                {"abbreviation": "cmp", "fullName": "Compute"},
            ]
        },
        {
            "components": [
                {
                    "componentType": "environment",
                    "position": 1,
                    "allowedValues": ["dev"],
                    "defaultValue": "prod",
                }
            ]
        },
        {
            "components": [
                {
                    "componentType": "service",
                    "position": 1,
                    "validationRules": {"minLength": 5, "maxLength": 2},
                }
            ]
        },
        {
            "components": [
                {
                    "componentType": "service",
                    "position": 1,
                    "validationRules": {"pattern": "(["},
                }
            ]
        },
    ],
)
def test_structural_problems_reject_the_scheme(overrides: dict[str, object]) -> None:
    with pytest.raises(ConfigurationError) as exc_info:
        load_naming_scheme(_scheme_payload(**overrides))

    assert exc_info.value.code == "invalid_naming_scheme"
    assert exc_info.value.details["errors"]


def test_empty_separator_is_allowed_for_pascal_case() -> None:
    scheme = load_naming_scheme(_scheme_payload(separator="", caseFormat="PascalCase"))

    assert scheme is not None
    assert scheme.effective_separator == ""
