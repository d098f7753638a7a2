"""
Data models for the gallery console.

The console owns no durable state: these dataclasses are transient copies of
entities owned by the remote API. Each model converts to and from the API's
camelCase JSON and validates itself before any network call.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog
from flask_login import UserMixin

from gallery_admin.errors import ValidationError

logger = structlog.get_logger(__name__)

NAME_MIN_LENGTH = 2
UNKNOWN_TEMPLATE = "Unknown Template"


class FieldType(Enum):
    """
    Value types a template field may declare.

    - STRING: free text
    - NUMBER: integer or decimal
    - DATE: calendar date
    - BOOLEAN: yes/no flag
    """

    STRING = "string"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"

    @classmethod
    def choices(cls) -> list[tuple[str, str]]:
        return [(member.value, member.value.capitalize()) for member in cls]

    @classmethod
    def parse(cls, value: Any) -> "FieldType":
        """Read a field type from API data; unknown types are shown as text."""
        try:
            return cls(value)
        except ValueError:
            logger.warning("unknown_field_type", field_type=value)
            return cls.STRING


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _check_min_length(
    errors: dict[str, list[str]], key: str, value: str | None, message: str
) -> None:
    if len((value or "").strip()) < NAME_MIN_LENGTH:
        errors.setdefault(key, []).append(message)


@dataclass
class AuthUser(UserMixin):
    """Signed-in user derived from the current session tokens."""

    email: str
    groups: list[str] = field(default_factory=list)
    admin_group: str = "Admin"

    def get_id(self) -> str:
        return self.email

    @property
    def is_admin(self) -> bool:
        return self.admin_group in self.groups


@dataclass
class Category:
    name: str
    description: str | None = None
    template_id: str | None = None
    id: str | None = None

    def validate(self) -> None:
        errors: dict[str, list[str]] = {}
        _check_min_length(
            errors,
            "name",
            self.name,
            "Category name must be at least 2 characters",
        )
        if errors:
            raise ValidationError(errors)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"name": self.name.strip()}
        description = _blank_to_none(self.description)
        if description is not None:
            payload["description"] = description
        template_id = _blank_to_none(self.template_id)
        if template_id is not None:
            payload["templateId"] = template_id
        return payload

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Category":
        return cls(
            id=str(data["id"]) if data.get("id") is not None else None,
            name=data.get("name", ""),
            description=data.get("description"),
            template_id=_blank_to_none(data.get("templateId")),
        )

    def template_name(self, templates: list["Template"]) -> str | None:
        """Resolve the referenced template's name; dangling ids render as unknown."""
        if not self.template_id:
            return None
        for template in templates:
            if template.id == self.template_id:
                return template.name
        return UNKNOWN_TEMPLATE


@dataclass
class TemplateField:
    name: str
    label: str
    type: FieldType = FieldType.STRING
    required: bool = True

    def validation_errors(self) -> list[str]:
        problems = []
        if len((self.name or "").strip()) < NAME_MIN_LENGTH:
            problems.append("Field name must be at least 2 characters")
        if len((self.label or "").strip()) < NAME_MIN_LENGTH:
            problems.append("Label must be at least 2 characters")
        return problems

    def to_payload(self) -> dict[str, Any]:
        return {
            "name": self.name.strip(),
            "label": self.label.strip(),
            "type": self.type.value,
            "required": bool(self.required),
        }

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "TemplateField":
        return cls(
            name=data.get("name", ""),
            label=data.get("label", ""),
            type=FieldType.parse(data.get("type", FieldType.STRING.value)),
            required=bool(data.get("required", False)),
        )


@dataclass
class Template:
    name: str
    fields: list[TemplateField] = field(default_factory=list)
    description: str | None = None
    id: str | None = None

    def validate(self) -> None:
        errors: dict[str, list[str]] = {}
        _check_min_length(
            errors,
            "name",
            self.name,
            "Template name must be at least 2 characters",
        )
        if not self.fields:
            errors.setdefault("fields", []).append("At least one field is required")
        for index, template_field in enumerate(self.fields):
            problems = template_field.validation_errors()
            if problems:
                errors[f"fields.{index}"] = problems
        if errors:
            raise ValidationError(errors)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": self.name.strip(),
            "fields": [f.to_payload() for f in self.fields],
        }
        description = _blank_to_none(self.description)
        if description is not None:
            payload["description"] = description
        return payload

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Template":
        return cls(
            id=str(data["id"]) if data.get("id") is not None else None,
            name=data.get("name", ""),
            description=data.get("description"),
            fields=[TemplateField.from_api(f) for f in data.get("fields") or []],
        )


@dataclass
class MediaMetadata:
    """Metadata shared by every file of one upload batch."""

    category_id: str
    title: str
    description: str | None = None

    def validate(self) -> None:
        errors: dict[str, list[str]] = {}
        if not (self.category_id or "").strip():
            errors["category_id"] = ["Category is required"]
        _check_min_length(errors, "title", self.title, "Title is required")
        if errors:
            raise ValidationError(errors)

    def to_payload(self, filename: str) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "categoryId": self.category_id,
            "title": self.title.strip(),
            "filename": filename,
        }
        description = _blank_to_none(self.description)
        if description is not None:
            payload["description"] = description
        return payload


@dataclass
class DroppedFile:
    """An uploaded file held in memory between the drop and the batch run."""

    filename: str
    content_type: str
    data: bytes = field(repr=False, default=b"")

    @property
    def size(self) -> int:
        return len(self.data)
