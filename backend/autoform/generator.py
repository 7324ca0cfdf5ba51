"""
Document generation: stamp a profile's values onto a template's PDF.

Works exclusively in document space. Native fields go to the form writer by
name; manual fields are painted at their stored box, flipped into the
painter's bottom-up convention. A problem with one field is reported as a
warning and never aborts the rest of the document; a document that cannot be
opened or written fails the whole generation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .collaborators import DocumentOpener, FillableDocument
from .coordinates import paint_y
from .errors import (
    DocumentParseError,
    FieldWriteError,
    FieldWriteWarning,
    GenerationError,
    GenerationWarning,
    MissingGeometryWarning,
    PageOutOfRangeWarning,
    StaleMappingWarning,
)
from .models import Mapping, Profile, Template, TemplateField, apply_transformation
from .pdf_utils import open_fill_session

logger = logging.getLogger(__name__)

PDF_MEDIA_TYPE = "application/pdf"


def output_filename(template: Template, profile: Profile) -> str:
    return f"{template.name}_{profile.name}.pdf"


def resolve_value(mapping: Mapping, profile: Profile) -> str:
    """Profile value for a mapping, transformed; missing keys give ""."""
    return apply_transformation(profile.value_for(mapping.profile_key), mapping.transformation)


@dataclass
class GenerationResult:
    data: bytes
    warnings: List[GenerationWarning] = field(default_factory=list)
    filled_field_ids: List[str] = field(default_factory=list)


class DocumentGenerator:
    def __init__(self, opener: Optional[DocumentOpener] = None):
        self.opener = opener or open_fill_session

    def generate(self, template: Template, profile: Profile) -> bytes:
        return self.run(template, profile).data

    def run(self, template: Template, profile: Profile) -> GenerationResult:
        try:
            document = self.opener(template.document_bytes)
        except DocumentParseError as exc:
            logger.error("Cannot open template '%s' for generation: %s", template.name, exc)
            raise GenerationError(f"Template '{template.name}' has an unreadable document") from exc

        warnings: List[GenerationWarning] = []
        filled: List[str] = []
        for mapping in template.mappings:
            template_field = template.field_by_id(mapping.template_field_id)
            if template_field is None:
                self._warn(
                    warnings,
                    StaleMappingWarning(
                        mapping.template_field_id,
                        f"Mapping references missing field '{mapping.template_field_id}'",
                    ),
                )
                continue

            value = resolve_value(mapping, profile)
            if template_field.is_manual:
                done = self._paint(document, template_field, value, warnings)
            else:
                done = self._write(document, template_field, value, warnings)
            if done:
                filled.append(template_field.id)

        try:
            data = document.save()
        except DocumentParseError as exc:
            logger.error("Cannot write filled document for '%s': %s", template.name, exc)
            raise GenerationError(f"Could not write the filled document for '{template.name}'") from exc

        logger.info(
            "Generated '%s' for profile '%s': %d/%d mappings filled, %d warnings",
            template.name,
            profile.name,
            len(filled),
            len(template.mappings),
            len(warnings),
        )
        return GenerationResult(data=data, warnings=warnings, filled_field_ids=filled)

    def _write(
        self,
        document: FillableDocument,
        template_field: TemplateField,
        value: str,
        warnings: List[GenerationWarning],
    ) -> bool:
        try:
            document.set_field_value(template_field.id, value)
        except FieldWriteError as exc:
            self._warn(warnings, FieldWriteWarning(template_field.id, str(exc)))
            return False
        return True

    def _paint(
        self,
        document: FillableDocument,
        template_field: TemplateField,
        value: str,
        warnings: List[GenerationWarning],
    ) -> bool:
        if not template_field.has_geometry:
            self._warn(
                warnings,
                MissingGeometryWarning(template_field.id, f"Manual field '{template_field.id}' has no box"),
            )
            return False
        if not 0 <= template_field.page_index < document.page_count:
            self._warn(
                warnings,
                PageOutOfRangeWarning(
                    template_field.id,
                    f"Manual field '{template_field.id}' is on page {template_field.page_index}, "
                    f"document has {document.page_count}",
                ),
            )
            return False

        page_height = document.page_height(template_field.page_index)
        document.draw_text(
            template_field.page_index,
            template_field.x,
            paint_y(page_height, template_field.y, template_field.height),
            value,
            template_field.effective_font_size,
            max_width=template_field.width,
        )
        return True

    @staticmethod
    def _warn(warnings: List[GenerationWarning], warning: GenerationWarning) -> None:
        logger.warning("%s: %s", type(warning).__name__, warning)
        warnings.append(warning)
