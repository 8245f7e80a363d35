"""
Validation of existing resource names against a tenant naming scheme.

Validation is two-pass: every name part is first classified into a component
type (keeping, for duplicates, the occurrence closest to its configured
position), then each configured component is checked for presence, position
and value. Non-compliant names get a suggested replacement built from the
detected values plus generated placeholders.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from govengine.modules.assessment.domain import taxonomy
from govengine.modules.assessment.domain.models import ResourceDescriptor
from govengine.modules.assessment.domain.naming_classifier import (
    apply_case_format,
    location_abbreviation,
    split_scheme_name,
)
from govengine.modules.assessment.domain.naming_scheme import (
    ComponentDefinition,
    NamingScheme,
)

STORAGE_ACCOUNT_TYPE = "microsoft.storage/storageaccounts"

_INSTANCE = re.compile(r"^\d{1,3}$|^[a-z]+\d{1,3}$")
_TRAILING_DIGITS = re.compile(r"(\d+)$")
_FIRST_DIGITS = re.compile(r"(\d+)")
_LEADING_DIGITS = re.compile(r"^(\d+)")
_CONTEXT_ENVIRONMENTS = ("dev", "test", "staging", "prod", "production", "qa", "uat")
_STORAGE_ENVIRONMENTS = ("dev", "prod", "test", "staging", "qa", "uat")


@dataclass(frozen=True)
class SchemeValidation:
    resource_id: str
    resource_name: str
    is_compliant: bool
    message: str
    detected_components: dict[str, str] = field(default_factory=dict)
    missing_components: tuple[str, ...] = ()
    invalid_components: tuple[str, ...] = ()
    suggested_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource_id": self.resource_id,
            "resource_name": self.resource_name,
            "is_compliant": self.is_compliant,
            "message": self.message,
            "detected_components": dict(self.detected_components),
            "missing_components": list(self.missing_components),
            "invalid_components": list(self.invalid_components),
            "suggested_name": self.suggested_name,
        }


@dataclass
class _Detected:
    component_type: str
    value: str
    actual_position: int
    expected_position: int


def _matches_override(part: str, scheme: NamingScheme) -> bool:
    overrides = scheme.service_overrides
    if part in overrides:
        return True
    lowered = part.lower()
    return any(abbreviation.lower() == lowered for abbreviation in overrides)


def identify_component_type(part: str, resource_type: str, scheme: NamingScheme) -> str:
    """
    Classify one name part in the context of a tenant scheme.

    Accepted company names are checked before instance and service rules, so a
    configured company token is never mistaken for a service.
    """
    lowered = part.lower()
    if taxonomy.is_valid_abbreviation(resource_type, lowered):
        return "resource-type"
    if lowered in taxonomy.ENVIRONMENT_KEYWORDS:
        return "environment"
    if scheme.is_accepted_company(lowered):
        return "company"
    if _INSTANCE.match(lowered):
        return "instance"
    if _matches_override(part, scheme):
        return "service"
    if taxonomy.is_definitely_service_name(lowered, scheme.accepted_company_names):
        return "service"
    if (
        len(lowered) > 3
        and not taxonomy.is_known_abbreviation(lowered)
        and not lowered[0].isdigit()
    ):
        return "service"
    return ""


def _scheme_key(detected_type: str, scheme: NamingScheme) -> str:
    """Map a detected kind onto the scheme's own component type name."""
    if detected_type == "service":
        service = next((item for item in scheme.components if item.is_service), None)
        if service is not None:
            return service.component_type
    return detected_type


def component_value_is_valid(
    component: ComponentDefinition, value: str, resource: ResourceDescriptor
) -> bool:
    if not component.validation_rules.accepts(value):
        return False
    if component.allowed_values and value.lower() not in {
        allowed.lower() for allowed in component.allowed_values
    }:
        return False
    if component.component_type == "resource-type":
        expected = {
            taxonomy.primary_abbreviation(resource.type),
            taxonomy.abbreviation_with_kind(resource.type, resource.kind),
        }
        return value.lower() in expected
    return True


def _environment_from_context(resource: ResourceDescriptor) -> str | None:
    for context in (resource.name, resource.resource_group or ""):
        lowered = context.lower()
        detected = next((env for env in _CONTEXT_ENVIRONMENTS if env in lowered), None)
        if detected:
            return "prod" if detected == "production" else detected
    return None


def _instance_from_name(name: str) -> str | None:
    match = _TRAILING_DIGITS.search(name)
    return match.group(1) if match else None


def _company_value(resource: ResourceDescriptor, scheme: NamingScheme, default: str | None) -> str:
    if scheme.accepted_company_names:
        lowered_name = resource.name.lower()
        detected = next(
            (
                company
                for company in scheme.accepted_company_names
                if company.lower() in lowered_name
            ),
            None,
        )
        return (detected or scheme.accepted_company_names[0]).lower()
    return default or "abc"


def generate_component_value(
    component: ComponentDefinition,
    resource: ResourceDescriptor,
    scheme: NamingScheme,
    detected: dict[str, _Detected],
) -> str:
    kind = component.component_type
    if kind == "company":
        return _company_value(resource, scheme, component.default_value)
    if kind == "environment":
        if "environment" in detected:
            return detected["environment"].value
        from_context = _environment_from_context(resource)
        if from_context:
            return from_context
        if component.allowed_values:
            return component.allowed_values[0]
        return component.default_value or "prod"
    if component.is_service:
        if kind in detected:
            return detected[kind].value
        service = taxonomy.extract_service(
            resource.name, scheme.accepted_company_names, scheme.service_overrides
        )
        return service or component.default_value or "app"
    if kind == "resource-type":
        return taxonomy.abbreviation_with_kind(resource.type, resource.kind)
    if kind == "instance":
        zero_padded = "zero-padded" in (component.format or "")
        if "instance" in detected:
            match = _FIRST_DIGITS.search(detected["instance"].value)
            return match.group(1) if match else "01"
        from_name = _instance_from_name(resource.name)
        if from_name:
            return from_name.zfill(2) if zero_padded else from_name
        return "01" if zero_padded else "1"
    if kind in ("location", "region"):
        return location_abbreviation(resource.location)
    if kind in detected:
        return detected[kind].value
    return component.default_value or "comp"


def _suggest_name(
    resource: ResourceDescriptor, scheme: NamingScheme, detected: dict[str, _Detected]
) -> str:
    parts: list[str] = []
    for component in scheme.ordered_components:
        found = detected.get(component.component_type)
        if found is not None and component_value_is_valid(component, found.value, resource):
            parts.append(found.value)
        else:
            parts.append(generate_component_value(component, resource, scheme, detected))

    if resource.type_lower == STORAGE_ACCOUNT_TYPE:
        return "".join(parts).lower()
    return apply_case_format(parts, scheme.case_format, scheme.effective_separator)


def _is_unseparated_storage_account(resource: ResourceDescriptor) -> bool:
    return resource.type_lower == STORAGE_ACCOUNT_TYPE and not any(
        separator in resource.name for separator in taxonomy.NAME_SEPARATORS
    )


def _storage_component_prefix(remaining: str, component: ComponentDefinition, scheme: NamingScheme) -> str | None:
    kind = component.component_type
    if kind == "company":
        return next(
            (
                company.lower()
                for company in scheme.accepted_company_names
                if remaining.startswith(company.lower())
            ),
            None,
        )
    if kind == "environment":
        return next((env for env in _STORAGE_ENVIRONMENTS if remaining.startswith(env)), None)
    if component.is_service:
        tokens = [*scheme.service_overrides, *taxonomy.SERVICE_ABBREVIATIONS]
        return next((token.lower() for token in tokens if remaining.startswith(token.lower())), None)
    if kind == "resource-type":
        return next(
            (
                abbreviation
                for abbreviation in taxonomy.valid_abbreviations(STORAGE_ACCOUNT_TYPE)
                if remaining.startswith(abbreviation)
            ),
            None,
        )
    if kind == "instance":
        match = _LEADING_DIGITS.match(remaining)
        return match.group(1) if match else None
    return None


def _storage_fallback_value(component: ComponentDefinition, resource: ResourceDescriptor, scheme: NamingScheme) -> str:
    kind = component.component_type
    if kind == "company":
        return scheme.accepted_company_names[0].lower() if scheme.accepted_company_names else "comp"
    if kind == "environment":
        if component.allowed_values:
            return component.allowed_values[0]
        return component.default_value or "prod"
    if component.is_service:
        return component.default_value or "app"
    if kind == "resource-type":
        lowered = resource.name.lower()
        return next(
            (
                abbreviation
                for abbreviation in taxonomy.valid_abbreviations(STORAGE_ACCOUNT_TYPE)
                if abbreviation in lowered
            ),
            "stg",
        )
    if kind == "instance":
        return "01"
    return component.default_value or "default"


def _validate_storage_account(resource: ResourceDescriptor, scheme: NamingScheme) -> SchemeValidation:
    """Storage account names carry no separators; parse them by scheme order instead."""
    name = resource.name.lower()
    detected: dict[str, str] = {}
    remaining = name
    for component in scheme.ordered_components:
        if not remaining:
            break
        value = _storage_component_prefix(remaining, component, scheme)
        if value:
            detected[component.component_type] = value
            index = remaining.find(value)
            if index >= 0:
                remaining = remaining[index + len(value):]

    issues: list[str] = []
    missing: list[str] = []
    if detected:
        missing = [
            component.component_type
            for component in scheme.components
            if component.required and component.component_type not in detected
        ]
        if missing:
            issues.append(f"Missing: {', '.join(missing)}")
    else:
        for company in scheme.accepted_company_names:
            if company.lower() in name:
                detected["company"] = company.lower()
                break
        environment = next((env for env in _STORAGE_ENVIRONMENTS if env in name), None)
        if environment:
            detected["environment"] = environment
        abbreviation = next(
            (item for item in taxonomy.valid_abbreviations(STORAGE_ACCOUNT_TYPE) if item in name),
            None,
        )
        if abbreviation:
            detected["resource-type"] = abbreviation
        instance = _FIRST_DIGITS.search(name)
        if instance:
            detected["instance"] = instance.group(1)
        issues.append(
            "Storage account name doesn't follow client naming scheme - components "
            "detected where possible"
        )

    suggested = "".join(
        detected.get(component.component_type)
        or _storage_fallback_value(component, resource, scheme)
        for component in scheme.ordered_components
    )
    return SchemeValidation(
        resource_id=resource.id,
        resource_name=resource.name,
        is_compliant=not issues,
        message="; ".join(issues) if issues else "Complies with naming scheme",
        detected_components=detected,
        missing_components=tuple(missing),
        invalid_components=tuple(issues),
        suggested_name=suggested,
    )


def validate_against_scheme(resource: ResourceDescriptor, scheme: NamingScheme | None) -> SchemeValidation:
    if scheme is None or not scheme.has_components:
        return SchemeValidation(
            resource_id=resource.id,
            resource_name=resource.name,
            is_compliant=True,
            message="No naming scheme configured",
        )

    if _is_unseparated_storage_account(resource):
        return _validate_storage_account(resource, scheme)

    ordered = scheme.ordered_components
    expected_positions = {component.component_type: component.position for component in ordered}
    parts = split_scheme_name(resource.name, scheme)
    part_types = [
        _scheme_key(identify_component_type(part, resource.type, scheme), scheme) if part else ""
        for part in parts
    ]

    detected: dict[str, _Detected] = {}
    for index, (part, kind) in enumerate(zip(parts, part_types), start=1):
        if not kind:
            continue
        expected = expected_positions.get(kind, 0)
        existing = detected.get(kind)
        if existing is None or abs(index - expected) < abs(existing.actual_position - expected):
            detected[kind] = _Detected(kind, part, index, expected)

    missing: list[str] = []
    invalid: list[str] = []
    values: dict[str, str] = {}
    for component in ordered:
        found = detected.get(component.component_type)
        if found is None:
            if component.required:
                missing.append(component.component_type)
            continue
        if found.actual_position != component.position:
            invalid.append(
                f"{component.component_type}: '{found.value}' in wrong position "
                f"({found.actual_position}), should be position {component.position}"
            )
        elif not component_value_is_valid(component, found.value, resource):
            invalid.append(f"{component.component_type}: '{found.value}' invalid format")
        values[component.component_type] = found.value

    for index in range(min(len(parts), len(ordered))):
        kind = part_types[index]
        expected_type = ordered[index].component_type
        if kind and kind != expected_type:
            invalid.append(
                f"Position {index + 1}: found '{kind}' component but expected '{expected_type}'"
            )
        elif not kind:
            invalid.append(
                f"Position {index + 1}: unrecognized component '{parts[index]}', "
                f"expected '{expected_type}'"
            )
    if not scheme.effective_separator and "".join(parts) != resource.name:
        invalid.append(f"Name contains characters outside the {scheme.case_format} format")

    is_compliant = not missing and not invalid
    if is_compliant:
        message = "Complies with naming scheme"
    else:
        issues: list[str] = []
        if missing:
            issues.append(f"Missing: {', '.join(missing)}")
        if invalid:
            issues.append(f"Issues: {'; '.join(invalid)}")
        message = "; ".join(issues)

    return SchemeValidation(
        resource_id=resource.id,
        resource_name=resource.name,
        is_compliant=is_compliant,
        message=message,
        detected_components=values,
        missing_components=tuple(missing),
        invalid_components=tuple(invalid),
        suggested_name=None if is_compliant else _suggest_name(resource, scheme, detected),
    )
