"""
Binding template fields to profile keys.

A template holds at most one mapping per field. Binding an empty key is the
same as unbinding: the mapping record is removed, never stored empty.
"""

from __future__ import annotations

import logging
from typing import Optional

from .errors import UnknownFieldError
from .models import Mapping, Template
from .record_store import TEMPLATES, RecordStore

logger = logging.getLogger(__name__)


class MappingResolver:
    def __init__(self, store: RecordStore, strict: bool = False):
        self.store = store
        self.strict = strict

    def bind(
        self,
        template: Template,
        field_id: str,
        profile_key: str,
        transformation: Optional[str] = None,
    ) -> Optional[Mapping]:
        """Bind `field_id` to `profile_key`, replacing any existing binding.

        When `transformation` is None an existing mapping keeps its tag.
        Returns the stored mapping, or None when nothing is bound.
        """
        if not profile_key:
            self.unbind(template, field_id)
            return None
        if not self._known(template, field_id):
            return None

        mapping = template.mapping_for(field_id)
        if mapping is not None:
            mapping.profile_key = profile_key
            if transformation is not None:
                mapping.transformation = transformation
        else:
            mapping = Mapping(field_id, profile_key, transformation)
            template.mappings.append(mapping)

        self._persist(template)
        logger.debug("Bound field '%s' -> '%s' (%s)", field_id, profile_key, mapping.transformation)
        return mapping

    def unbind(self, template: Template, field_id: str) -> None:
        if not self._known(template, field_id):
            return
        template.mappings = [m for m in template.mappings if m.template_field_id != field_id]
        self._persist(template)
        logger.debug("Unbound field '%s'", field_id)

    def _known(self, template: Template, field_id: str) -> bool:
        if template.field_by_id(field_id) is not None:
            return True
        if self.strict:
            raise UnknownFieldError(field_id)
        logger.warning("Ignoring mapping change for unknown field '%s' in template %s", field_id, template.id)
        return False

    def _persist(self, template: Template) -> None:
        if template.id is not None:
            self.store.update(TEMPLATES, template.id, {"mappings": template.mappings_record()})
