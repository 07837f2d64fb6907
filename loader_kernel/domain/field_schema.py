"""
Declarative field schemas published by each policy.

Consumed by schema-driven forms and mapping UIs; the engine never interprets
them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class FieldType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    ARRAY = "array"
    OBJECT = "object"
    ID = "id"


@dataclass(frozen=True)
class FieldDefinition:
    """One loadable field of an entity type."""

    key: str
    label: str
    type: FieldType
    required: bool = False
    lookupable: bool = False
    translatable: bool = False
    description: str = ""
    example: Any = None
    children: tuple[FieldDefinition, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "key": self.key,
            "label": self.label,
            "type": self.type.value,
            "required": self.required,
        }
        if self.lookupable:
            data["lookupable"] = True
        if self.translatable:
            data["translatable"] = True
        if self.description:
            data["description"] = self.description
        if self.example is not None:
            data["example"] = self.example
        if self.children:
            data["fields"] = [c.to_dict() for c in self.children]
        return data


@dataclass(frozen=True)
class EntityFieldSchema:
    entity_type: str
    fields: tuple[FieldDefinition, ...] = ()

    @property
    def required_keys(self) -> tuple[str, ...]:
        return tuple(f.key for f in self.fields if f.required)

    @property
    def lookup_keys(self) -> tuple[str, ...]:
        return tuple(f.key for f in self.fields if f.lookupable)

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity_type": self.entity_type,
            "fields": [f.to_dict() for f in self.fields],
        }
