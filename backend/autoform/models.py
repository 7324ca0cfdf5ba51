"""
Template, field, mapping and profile entities.

Records handed to the record store are plain JSON-safe dicts with snake_case
keys; the document bytes of a template travel base64 encoded.
"""

from __future__ import annotations

import base64
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

DEFAULT_FONT_SIZE = 12.0


class FieldType(str, Enum):
    TEXT = "TEXT"
    CHECKBOX = "CHECKBOX"  # reserved, never filled


class Transformation(str, Enum):
    NONE = "none"
    UPPERCASE = "uppercase"
    LOWERCASE = "lowercase"


def apply_transformation(value: str, transformation: Optional[str]) -> str:
    """Fold `value` according to a mapping's transformation tag.

    Unknown or absent tags leave the value unchanged.
    """
    if transformation == Transformation.UPPERCASE.value:
        return value.upper()
    if transformation == Transformation.LOWERCASE.value:
        return value.lower()
    return value


def now_millis() -> int:
    return int(time.time() * 1000)


@dataclass
class Profile:
    name: str
    fields: Dict[str, str] = field(default_factory=dict)
    id: Optional[int] = None

    def value_for(self, key: str) -> str:
        return self.fields.get(key) or ""

    def to_record(self) -> Dict:
        return {"name": self.name, "fields": dict(self.fields)}

    @classmethod
    def from_record(cls, record: Dict) -> "Profile":
        return cls(
            id=record.get("id"),
            name=record.get("name", ""),
            fields={str(k): str(v) for k, v in (record.get("fields") or {}).items()},
        )


@dataclass
class TemplateField:
    """One fillable region: a native form field or a user-drawn box.

    Geometry is in document points with y measured from the top edge of the
    page, and is only authoritative for manual fields.
    """

    id: str
    name: str
    type: FieldType = FieldType.TEXT
    is_manual: bool = False
    page_index: int = 0
    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    font_size: Optional[float] = None

    @property
    def effective_font_size(self) -> float:
        return self.font_size or DEFAULT_FONT_SIZE

    @property
    def has_geometry(self) -> bool:
        return None not in (self.x, self.y, self.width, self.height)

    def to_record(self) -> Dict:
        record = {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "is_manual": self.is_manual,
            "page_index": self.page_index,
        }
        if self.is_manual:
            record.update(
                x=self.x, y=self.y, width=self.width, height=self.height, font_size=self.font_size
            )
        return record

    @classmethod
    def from_record(cls, record: Dict) -> "TemplateField":
        return cls(
            id=record["id"],
            name=record.get("name") or record["id"],
            type=FieldType(record.get("type", FieldType.TEXT.value)),
            is_manual=bool(record.get("is_manual", False)),
            page_index=int(record.get("page_index", 0)),
            x=record.get("x"),
            y=record.get("y"),
            width=record.get("width"),
            height=record.get("height"),
            font_size=record.get("font_size"),
        )


@dataclass
class Mapping:
    template_field_id: str
    profile_key: str
    transformation: Optional[str] = None

    def to_record(self) -> Dict:
        record = {"template_field_id": self.template_field_id, "profile_key": self.profile_key}
        if self.transformation:
            record["transformation"] = self.transformation
        return record

    @classmethod
    def from_record(cls, record: Dict) -> "Mapping":
        return cls(
            template_field_id=record["template_field_id"],
            profile_key=record["profile_key"],
            transformation=record.get("transformation"),
        )


@dataclass
class Template:
    name: str
    document_bytes: bytes
    fields: List[TemplateField] = field(default_factory=list)
    mappings: List[Mapping] = field(default_factory=list)
    created_at: int = field(default_factory=now_millis)
    id: Optional[int] = None

    def field_by_id(self, field_id: str) -> Optional[TemplateField]:
        for template_field in self.fields:
            if template_field.id == field_id:
                return template_field
        return None

    def mapping_for(self, field_id: str) -> Optional[Mapping]:
        for mapping in self.mappings:
            if mapping.template_field_id == field_id:
                return mapping
        return None

    def manual_fields(self) -> List[TemplateField]:
        return [f for f in self.fields if f.is_manual]

    def detected_fields(self) -> List[TemplateField]:
        return [f for f in self.fields if not f.is_manual]

    def fields_on_page(self, page_index: int) -> List[TemplateField]:
        """Manual fields drawn on the given page (what the editor overlays)."""
        return [f for f in self.fields if f.is_manual and f.page_index == page_index]

    def fields_record(self) -> List[Dict]:
        return [f.to_record() for f in self.fields]

    def mappings_record(self) -> List[Dict]:
        return [m.to_record() for m in self.mappings]

    def summary(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at,
            "native_field_count": len(self.detected_fields()),
            "custom_field_count": len(self.manual_fields()),
            "mapping_count": len(self.mappings),
        }

    def to_record(self) -> Dict:
        return {
            "name": self.name,
            "document_bytes": base64.b64encode(self.document_bytes).decode("ascii"),
            "fields": self.fields_record(),
            "mappings": self.mappings_record(),
            "created_at": self.created_at,
        }

    @classmethod
    def from_record(cls, record: Dict) -> "Template":
        return cls(
            id=record.get("id"),
            name=record.get("name", ""),
            document_bytes=base64.b64decode(record.get("document_bytes") or b""),
            fields=[TemplateField.from_record(r) for r in record.get("fields", [])],
            mappings=[Mapping.from_record(r) for r in record.get("mappings", [])],
            created_at=int(record.get("created_at") or 0),
        )
