"""
Template analysis: turn uploaded PDF bytes into a Template.

Every interactive field the inspector reports becomes a non-manual TEXT
field. Detected fields are all placed on page 0; native fields are filled
by name, so their page is never consulted during generation.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from .collaborators import FormInspector
from .errors import AnalysisError, DocumentParseError
from .models import FieldType, Template, TemplateField, now_millis
from .pdf_utils import PdfFormInspector

logger = logging.getLogger(__name__)


class TemplateScanner:
    """Scans PDF bytes for form fields"""

    def __init__(self, inspector: Optional[FormInspector] = None):
        self.inspector = inspector or PdfFormInspector()

    def scan_template(self, document_bytes: bytes, name: str) -> Template:
        try:
            field_names = self.inspector.list_fields(document_bytes)
        except DocumentParseError as exc:
            logger.error("Cannot analyze '%s': %s", name, exc)
            raise AnalysisError(f"'{name}' is not a readable PDF document") from exc

        fields: List[TemplateField] = []
        seen = set()
        for field_name in field_names:
            if field_name in seen:
                continue
            seen.add(field_name)
            fields.append(
                TemplateField(
                    id=field_name,
                    name=field_name,
                    type=FieldType.TEXT,
                    is_manual=False,
                    page_index=0,
                )
            )

        logger.info("Analyzed template '%s': %d form fields", name, len(fields))
        return Template(
            name=name,
            document_bytes=bytes(document_bytes),
            fields=fields,
            mappings=[],
            created_at=now_millis(),
        )
