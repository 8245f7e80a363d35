from __future__ import annotations

import pytest

from govengine.modules.assessment.domain.naming_classifier import (
    classify_component,
    classify_naming_pattern,
    convert_case,
    convert_to_pattern,
    detect_environment,
    generate_example,
    location_abbreviation,
    validate_generated_name,
)
from govengine.modules.assessment.domain.naming_scheme import NamingScheme

VM = "Microsoft.Compute/virtualMachines"


@pytest.mark.parametrize(
    ("token", "expected"),
    [
        ("vm", "resource-type"),
        ("prod", "environment"),
        ("01", "instance"),
        ("app7", "instance"),
        ("abc", "company"),
        ("", ""),
    ],
)
def test_classify_component(token: str, expected: str) -> None:
    assert classify_component(token, VM) == expected


def test_classify_component_is_total() -> None:
    for token in ("!!!", "ü", "a" * 200, "  ", "9x"):
        assert classify_component(token, "") in {
            "resource-type",
            "environment",
            "instance",
            "company",
            "service",
            "",
        }


@pytest.mark.parametrize(
    ("name", "pattern"),
    [
        ("my_vm", "snake_case"),
        ("my-vm", "kebab-case"),
        ("MYVM", "UPPERCASE"),
        ("myvm", "lowercase"),
        ("MyVm", "PascalCase"),
        ("myVm", "camelCase"),
        ("0f8fad5b-d9cb-469f-a165-70867728950e", "UUID"),
        ("", "Other"),
    ],
)
def test_classify_naming_pattern(name: str, pattern: str) -> None:
    assert classify_naming_pattern(name) == pattern


def test_detect_environment_prefers_longest_keyword() -> None:
    assert detect_environment("app-production-01") == "production"
    assert detect_environment("myprodapp") == "prod"
    assert detect_environment("payments") is None


def test_location_abbreviation_defaults_to_east_us() -> None:
    assert location_abbreviation("West Europe") == "weu"
    assert location_abbreviation(None) == "eus"
    assert location_abbreviation("moonbase") == "eus"


def test_convert_to_pattern() -> None:
    assert convert_to_pattern("app-prod-01") == "{name}-{name}-{number}"


def test_convert_case_styles() -> None:
    assert convert_case("my-app-name", "camelCase") == "myAppName"
    assert convert_case("my-app-name", "PascalCase") == "MyAppName"
    assert convert_case("my-app-name", "snake_case") == "my_app_name"
    assert convert_case("my_app_name", "kebab-case") == "my-app-name"


def test_generate_example_follows_component_order(standard_scheme: NamingScheme) -> None:
    example = generate_example(standard_scheme)

    assert example.name == "abc-prod-web-vm-01"
    assert example.is_valid is True
    assert list(example.component_values) == [
        "company",
        "environment",
        "service",
        "resource-type",
        "instance",
    ]


def test_generate_example_camel_case_drops_separator(standard_scheme: NamingScheme) -> None:
    scheme = standard_scheme.model_copy(update={"case_format": "camelCase"})

    assert generate_example(scheme).name == "abcProdWebVm01"


def test_validate_generated_name_blocks_empty_names(standard_scheme: NamingScheme) -> None:
    assert validate_generated_name("", standard_scheme) == ["!Name cannot be empty"]
    messages = validate_generated_name("abc-prod", standard_scheme)
    assert "!Name has 2 components but 5 are required" in messages
