"""Tenant naming scheme configuration, validated before an assessment run starts."""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from typing import Any, Literal, Self

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from govengine.core.exceptions import ConfigurationError

CaseFormat = Literal["lowercase", "uppercase", "PascalCase", "camelCase"]

_CASE_FORMATS: dict[str, CaseFormat] = {
    "lowercase": "lowercase",
    "lower": "lowercase",
    "uppercase": "uppercase",
    "upper": "uppercase",
    "pascalcase": "PascalCase",
    "pascal": "PascalCase",
    "camelcase": "camelCase",
    "camel": "camelCase",
}
_ALLOWED_SEPARATORS = {"", "-", "_", "."}


class _SchemeModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )


class ComponentValidationRules(_SchemeModel):
    min_length: int | None = Field(default=None, ge=0)
    max_length: int | None = Field(default=None, ge=1)
    pattern: str | None = None
    reserved_words: tuple[str, ...] = ()

    @field_validator("pattern")
    @classmethod
    def _pattern_compiles(cls, value: str | None) -> str | None:
        if value:
            try:
                re.compile(value)
            except re.error as exc:
                raise ValueError(f"invalid component pattern {value!r}: {exc}") from exc
        return value or None

    @model_validator(mode="after")
    def _length_bounds(self) -> Self:
        if (
            self.min_length is not None
            and self.max_length is not None
            and self.min_length > self.max_length
        ):
            raise ValueError("min_length must not exceed max_length")
        return self

    def accepts(self, value: str) -> bool:
        if self.min_length is not None and len(value) < self.min_length:
            return False
        if self.max_length is not None and len(value) > self.max_length:
            return False
        if self.pattern and not re.search(self.pattern, value):
            return False
        return value.lower() not in {word.lower() for word in self.reserved_words}


class ComponentDefinition(_SchemeModel):
    component_type: str
    position: int = Field(ge=1)
    required: bool = Field(
        default=True,
        validation_alias=AliasChoices("required", "isRequired", "is_required"),
    )
    allowed_values: tuple[str, ...] = ()
    default_value: str | None = None
    format: str | None = None
    validation_rules: ComponentValidationRules = Field(
        default_factory=ComponentValidationRules
    )

    @field_validator("component_type")
    @classmethod
    def _normalize_type(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError("component_type must not be empty")
        return normalized

    @model_validator(mode="after")
    def _default_is_allowed(self) -> Self:
        if self.allowed_values and self.default_value is not None:
            allowed = {value.lower() for value in self.allowed_values}
            if self.default_value.lower() not in allowed:
                raise ValueError(
                    f"default_value {self.default_value!r} is not one of the allowed values "
                    f"for component {self.component_type!r}"
                )
        return self

    @property
    def is_service(self) -> bool:
        return self.component_type in {"service", "application", "service/application"}


class ServiceAbbreviation(_SchemeModel):
    abbreviation: str
    full_name: str

    @field_validator("abbreviation", "full_name")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("service abbreviation entries must not be blank")
        return stripped


class NamingScheme(_SchemeModel):
    """
    Ordered component template plus formatting rules for one tenant.

    Company names are matched case-insensitively. Service abbreviations are
    matched case-sensitively first, then case-insensitively as a fallback.
    """

    components: tuple[ComponentDefinition, ...] = ()
    separator: str = "-"
    case_format: CaseFormat = "lowercase"
    accepted_company_names: tuple[str, ...] = ()
    service_abbreviations: tuple[ServiceAbbreviation, ...] = ()
    required_tags: tuple[str, ...] = ()
    enforce_tag_compliance: bool = True
    is_active: bool = True

    @field_validator("case_format", mode="before")
    @classmethod
    def _normalize_case_format(cls, value: Any) -> Any:
        if isinstance(value, str):
            return _CASE_FORMATS.get(value.strip().lower(), value)
        return value

    @field_validator("separator")
    @classmethod
    def _separator_supported(cls, value: str) -> str:
        if value not in _ALLOWED_SEPARATORS:
            raise ValueError(
                f"separator {value!r} is not supported; use one of '-', '_', '.' or ''"
            )
        return value

    @field_validator("accepted_company_names", "required_tags")
    @classmethod
    def _strip_names(cls, values: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(value.strip() for value in values if value and value.strip())

    @model_validator(mode="after")
    def _consistent(self) -> Self:
        positions = [component.position for component in self.components]
        if len(positions) != len(set(positions)):
            raise ValueError("component positions must be unique")

        types = [component.component_type for component in self.components]
        if len(types) != len(set(types)):
            raise ValueError("component types must be unique")

        if (
            self.separator == ""
            and self.case_format in ("lowercase", "uppercase")
            and len(self.components) > 1
        ):
            raise ValueError(
                f"case_format {self.case_format!r} with an empty separator leaves "
                "components indistinguishable"
            )

        seen: dict[str, str] = {}
        for entry in self.service_abbreviations:
            existing = seen.get(entry.abbreviation)
            if existing is not None and existing != entry.full_name:
                raise ValueError(
                    f"service abbreviation {entry.abbreviation!r} maps to both "
                    f"{existing!r} and {entry.full_name!r}"
                )
            seen[entry.abbreviation] = entry.full_name
        return self

    @property
    def has_components(self) -> bool:
        return bool(self.components)

    @property
    def ordered_components(self) -> tuple[ComponentDefinition, ...]:
        return tuple(sorted(self.components, key=lambda component: component.position))

    @property
    def effective_separator(self) -> str:
        # camelCase always joins without a separator.
        return "" if self.case_format == "camelCase" else self.separator

    @property
    def service_overrides(self) -> dict[str, str]:
        return {entry.abbreviation: entry.full_name for entry in self.service_abbreviations}

    def component(self, component_type: str) -> ComponentDefinition | None:
        key = component_type.lower()
        return next(
            (item for item in self.components if item.component_type == key), None
        )

    def is_accepted_company(self, value: str) -> bool:
        lowered = value.lower()
        return any(lowered == company.lower() for company in self.accepted_company_names)


def load_naming_scheme(payload: Mapping[str, Any] | str | None) -> NamingScheme | None:
    """
    Parse and validate a persisted naming scheme.

    Returns None when nothing is configured. Any structural problem is raised as
    ConfigurationError so that the run is rejected before it starts.
    """
    if payload is None:
        return None
    if isinstance(payload, str):
        if not payload.strip():
            return None
        try:
            payload = json.loads(payload)
        except ValueError as exc:
            raise ConfigurationError(
                "Naming scheme is not valid JSON", details={"error": str(exc)}
            ) from exc
    if not isinstance(payload, Mapping):
        raise ConfigurationError("Naming scheme must be a JSON object")

    try:
        return NamingScheme.model_validate(dict(payload))
    except ValidationError as exc:
        raise ConfigurationError(
            "Naming scheme failed validation",
            code="invalid_naming_scheme",
            details={"errors": exc.errors(include_url=False)},
        ) from exc
