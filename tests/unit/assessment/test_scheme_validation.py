from __future__ import annotations

from collections.abc import Callable

from govengine.modules.assessment.domain.models import ResourceDescriptor
from govengine.modules.assessment.domain.naming_classifier import generate_example
from govengine.modules.assessment.domain.naming_scheme import NamingScheme
from govengine.modules.assessment.domain.scheme_validation import (
    identify_component_type,
    validate_against_scheme,
)

VM = "Microsoft.Compute/virtualMachines"


def test_compliant_name_reports_every_component(
    make_resource: Callable[..., ResourceDescriptor], standard_scheme: NamingScheme
) -> None:
    validation = validate_against_scheme(make_resource("abc-prod-web-vm-01"), standard_scheme)

    assert validation.is_compliant is True
    assert validation.message == "Complies with naming scheme"
    assert validation.detected_components == {
        "company": "abc",
        "environment": "prod",
        "service": "web",
        "resource-type": "vm",
        "instance": "01",
    }
    assert validation.suggested_name is None


def test_non_compliant_name_lists_missing_components_and_suggests_a_name(
    make_resource: Callable[..., ResourceDescriptor], standard_scheme: NamingScheme
) -> None:
    validation = validate_against_scheme(make_resource("webserver01"), standard_scheme)

    assert validation.is_compliant is False
    assert "company" in validation.missing_components
    assert "environment" in validation.missing_components
    assert validation.suggested_name
    assert validation.suggested_name != "webserver01"


def test_without_scheme_every_name_complies(
    make_resource: Callable[..., ResourceDescriptor],
) -> None:
    validation = validate_against_scheme(make_resource("anything goes"), None)

    assert validation.is_compliant is True


def test_accepted_company_wins_over_service_rules(standard_scheme: NamingScheme) -> None:
    assert identify_component_type("abc", VM, standard_scheme) == "company"
    assert identify_component_type("prod", VM, standard_scheme) == "environment"
    assert identify_component_type("vm", VM, standard_scheme) == "resource-type"
    assert identify_component_type("payments", VM, standard_scheme) == "service"


def test_tenant_service_override_is_recognised(standard_scheme: NamingScheme) -> None:
    scheme = NamingScheme.model_validate(
        {
            **standard_scheme.model_dump(by_alias=True),
            "serviceAbbreviations": [{"abbreviation": "cmp", "fullName": "Compass"}],
        }
    )

    assert identify_component_type("cmp", VM, scheme) == "service"
    assert identify_component_type("CMP", VM, scheme) == "service"


def _camel_case(scheme: NamingScheme) -> NamingScheme:
    return NamingScheme.model_validate(
        {**scheme.model_dump(by_alias=True), "caseFormat": "camelCase", "separator": ""}
    )


def test_camel_case_example_validates_against_its_own_scheme(
    make_resource: Callable[..., ResourceDescriptor], standard_scheme: NamingScheme
) -> None:
    scheme = _camel_case(standard_scheme)
    example = generate_example(scheme, VM)

    validation = validate_against_scheme(make_resource(example.name), scheme)

    assert example.name == "abcProdWebVm01"
    assert validation.is_compliant is True
    assert validation.detected_components == {
        "company": "abc",
        "environment": "Prod",
        "service": "Web",
        "resource-type": "Vm",
        "instance": "01",
    }


def test_camel_case_suggestion_follows_case_format(
    make_resource: Callable[..., ResourceDescriptor], standard_scheme: NamingScheme
) -> None:
    validation = validate_against_scheme(make_resource("webserver01"), _camel_case(standard_scheme))

    assert validation.is_compliant is False
    assert validation.suggested_name == "abcProdWebserverVm01"


def test_camel_case_scheme_rejects_separated_names(
    make_resource: Callable[..., ResourceDescriptor], standard_scheme: NamingScheme
) -> None:
    validation = validate_against_scheme(
        make_resource("abc-prod-web-vm-01"), _camel_case(standard_scheme)
    )

    assert validation.is_compliant is False
    assert validation.suggested_name == "abcProdWebVm01"


def test_pascal_case_with_separator_joins_on_it(
    make_resource: Callable[..., ResourceDescriptor], standard_scheme: NamingScheme
) -> None:
    scheme = NamingScheme.model_validate(
        {**standard_scheme.model_dump(by_alias=True), "caseFormat": "PascalCase"}
    )

    validation = validate_against_scheme(make_resource("abc-web-01"), scheme)

    assert validation.suggested_name == "Abc-Prod-Web-Vm-01"
