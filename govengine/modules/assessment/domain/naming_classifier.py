"""
Token-level naming classification.

All functions here are pure and total: any string input yields a defined
answer, never an exception.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Literal

from govengine.modules.assessment.domain import taxonomy
from govengine.modules.assessment.domain.naming_scheme import CaseFormat, NamingScheme

ComponentKind = Literal["resource-type", "environment", "instance", "company", "service", ""]

MAX_NAME_LENGTH = 63
MIN_NAME_LENGTH = 2
INVALID_NAME_CHARACTERS = re.compile(r"[^a-zA-Z0-9\-_.]")

_UUID_FULL = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)
_UUID_ANY = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.IGNORECASE
)
_PASCAL = re.compile(r"^[A-Z][a-zA-Z0-9]*$")
_INSTANCE = re.compile(r"^\d{1,3}$")
_ALPHA_INSTANCE = re.compile(r"^[a-z]+\d{1,3}$")
_CASE_SPLIT = re.compile(r"[-_\s]+")
_CASE_BOUNDARY = re.compile(r"[A-Z]?[a-z]+|[A-Z]+(?![a-z])|\d+")

_LOCATION_ABBREVIATIONS = {
    "eastus": "eus",
    "eastus2": "eus2",
    "westus": "wus",
    "westus2": "wus2",
    "westus3": "wus3",
    "centralus": "cus",
    "northcentralus": "ncus",
    "southcentralus": "scus",
    "westcentralus": "wcus",
    "canadacentral": "cac",
    "canadaeast": "cae",
    "northeurope": "neu",
    "westeurope": "weu",
    "uksouth": "uks",
    "ukwest": "ukw",
    "francecentral": "frc",
    "germanywestcentral": "gwc",
    "switzerlandnorth": "szn",
    "norwayeast": "noe",
    "southeastasia": "sea",
    "eastasia": "ea",
    "australiaeast": "aue",
    "australiasoutheast": "ause",
    "australiacentral": "auc",
    "japaneast": "jpe",
    "japanwest": "jpw",
    "koreacentral": "krc",
    "koreasouth": "krs",
    "southindia": "ins",
    "westindia": "inw",
    "centralindia": "inc",
    "brazilsouth": "brs",
    "southafricanorth": "san",
    "uaenorth": "uaen",
}
DEFAULT_LOCATION_ABBREVIATION = "eus"


def classify_component(token: str, resource_type: str) -> ComponentKind:
    component = (token or "").lower()
    if not component:
        return ""

    if taxonomy.is_valid_abbreviation(resource_type, component):
        return "resource-type"
    if component in taxonomy.ENVIRONMENT_KEYWORDS:
        return "environment"
    if _INSTANCE.match(component) or _ALPHA_INSTANCE.match(component):
        return "instance"

    known = taxonomy.is_known_abbreviation(component)
    if 2 <= len(component) <= 5 and not known:
        return "company"
    if len(component) > 3 and not known and not component[0].isdigit():
        return "service"
    return ""


def classify_naming_pattern(name: str) -> str:
    if not name:
        return "Other"
    if _UUID_FULL.match(name) or _UUID_ANY.search(name):
        return "UUID"
    if "_" in name:
        return "snake_case"
    if "-" in name:
        return "kebab-case"

    letters = [char for char in name if char.isalpha()]
    if letters and all(char.isupper() for char in letters):
        return "UPPERCASE"
    if letters and all(char.islower() for char in letters):
        return "lowercase"
    if _PASCAL.match(name):
        return "PascalCase"
    if name[0].islower() and any(char.isupper() for char in name):
        return "camelCase"
    return "Other"


def detect_separator(name: str) -> str | None:
    for separator in taxonomy.NAME_SEPARATORS:
        if separator in (name or ""):
            return separator
    return None


def detect_environment(name: str, candidates: Iterable[str] | None = None) -> str | None:
    """First environment keyword contained anywhere in the name (substring match)."""
    lowered = (name or "").lower()
    pool = candidates if candidates is not None else _ENVIRONMENT_SCAN_ORDER
    return next((env for env in pool if env.lower() in lowered), None)


# "production" must be tested before "prod"; "staging" before "stage".
_ENVIRONMENT_SCAN_ORDER = (
    "production",
    "prod",
    "staging",
    "stage",
    "test",
    "dev",
    "qa",
    "uat",
    "shared",
)


def location_abbreviation(location: str | None) -> str:
    if not location:
        return DEFAULT_LOCATION_ABBREVIATION
    key = location.replace(" ", "").lower()
    return _LOCATION_ABBREVIATIONS.get(key, DEFAULT_LOCATION_ABBREVIATION)


def convert_to_pattern(name: str) -> str:
    """Reduce a name to its shape, e.g. ``app-prod-01`` -> ``{name}-{name}-{number}``."""
    shape = re.sub(r"[A-Za-z]+", "{name}", name or "")
    return re.sub(r"\d+", "{number}", shape)


def _title(part: str) -> str:
    return part[:1].upper() + part[1:].lower()


def apply_case_format(parts: Iterable[str], case_format: CaseFormat, separator: str) -> str:
    values = [part for part in parts if part]
    if case_format == "uppercase":
        return separator.join(values).upper()
    if case_format == "PascalCase":
        return separator.join(_title(part) for part in values)
    if case_format == "camelCase":
        if not values:
            return ""
        return values[0].lower() + "".join(_title(part) for part in values[1:])
    return separator.join(values).lower()


def split_scheme_name(name: str, scheme: NamingScheme) -> list[str]:
    """
    Split a name into scheme components.

    Names in an unseparated camelCase or PascalCase scheme are split at case and
    letter-digit boundaries, so ``abcProdWebVm01`` yields five parts.
    """
    separator = scheme.effective_separator
    if separator:
        return [part for part in name.split(separator) if part]
    if scheme.case_format in ("camelCase", "PascalCase"):
        return _CASE_BOUNDARY.findall(name)
    return [name] if name else []


def convert_case(name: str, style: str) -> str:
    """Rewrite an existing name into a target style (used for suggestions)."""
    parts = [part for part in _CASE_SPLIT.split(name or "") if part]
    normalized = style.replace("-", "").replace("_", "").lower()
    if normalized == "camelcase":
        return apply_case_format(parts, "camelCase", "")
    if normalized == "pascalcase":
        return apply_case_format(parts, "PascalCase", "")
    if normalized == "snakecase":
        return "_".join(parts).lower()
    if normalized == "kebabcase":
        return "-".join(parts).lower()
    if normalized == "uppercase":
        return (name or "").upper()
    return (name or "").lower()


@dataclass(frozen=True)
class NamingExample:
    resource_type: str
    name: str
    component_values: dict[str, str] = field(default_factory=dict)
    is_valid: bool = True
    messages: tuple[str, ...] = ()


def _placeholder(component_type: str, scheme: NamingScheme, resource_type: str | None) -> str:
    definition = scheme.component(component_type)
    default = definition.default_value if definition else None
    allowed = definition.allowed_values if definition else ()

    if component_type == "company":
        if scheme.accepted_company_names:
            return scheme.accepted_company_names[0]
        return default or "abc"
    if component_type == "environment":
        return allowed[0] if allowed else (default or "prod")
    if component_type in ("service", "application", "service/application"):
        return default or "web"
    if component_type == "resource-type":
        return taxonomy.primary_abbreviation(resource_type) if resource_type else "vm"
    if component_type == "instance":
        return "01"
    if component_type in ("location", "region"):
        return default or location_abbreviation("eastus")
    return default or "comp"


def generate_example(scheme: NamingScheme, resource_type: str | None = None) -> NamingExample:
    """Render one example name from the scheme's placeholders and case format."""
    values: dict[str, str] = {}
    for definition in scheme.ordered_components:
        values[definition.component_type] = _placeholder(
            definition.component_type, scheme, resource_type
        )

    name = apply_case_format(values.values(), scheme.case_format, scheme.effective_separator)
    messages = validate_generated_name(name, scheme)
    return NamingExample(
        resource_type=resource_type or "microsoft.compute/virtualmachines",
        name=name,
        component_values=values,
        is_valid=not any(message.startswith("!") for message in messages),
        messages=tuple(message.lstrip("!") for message in messages),
    )


def validate_generated_name(name: str, scheme: NamingScheme) -> list[str]:
    """
    Check a generated name against length and component-count rules.

    Blocking problems are prefixed with ``!``; the remainder are advisory.
    """
    if not name:
        return ["!Name cannot be empty"]

    messages: list[str] = []
    if len(name) > MAX_NAME_LENGTH:
        messages.append(f"!Name exceeds maximum length of {MAX_NAME_LENGTH} characters")

    separator = scheme.effective_separator
    if separator:
        if separator not in name:
            messages.append(f"Name should use '{separator}' as separator")
        parts = [part for part in name.split(separator) if part]
        required = sum(1 for component in scheme.components if component.required)
        if len(parts) < required:
            messages.append(
                f"!Name has {len(parts)} components but {required} are required"
            )
    return messages
