"""
Error and warning taxonomy for the AutoForm core.

Document-level failures are exceptions and propagate to the caller.
Field-level problems found during generation are warnings: they are logged,
collected on the generation result and never abort the document.
"""

from __future__ import annotations


class AutoFormError(RuntimeError):
    """Base class for all AutoForm exceptions."""


class DocumentParseError(AutoFormError):
    """A collaborator could not parse the given document bytes."""


class AnalysisError(AutoFormError):
    """The uploaded document could not be analyzed; nothing was persisted."""


class GenerationError(AutoFormError):
    """The stored document could not be re-opened or written."""


class FieldWriteError(AutoFormError):
    """A form writer could not set one native field (unknown or not text)."""

    def __init__(self, field_name: str, reason: str):
        super().__init__(f"Cannot set field '{field_name}': {reason}")
        self.field_name = field_name
        self.reason = reason


class UnknownFieldError(AutoFormError, KeyError):
    def __init__(self, field_id: str):
        super().__init__(f"Template has no field '{field_id}'")
        self.field_id = field_id

    def __str__(self) -> str:
        return self.args[0]


class NotFoundError(AutoFormError, KeyError):
    def __init__(self, collection: str, record_id: int):
        super().__init__(f"No record {record_id} in '{collection}'")
        self.collection = collection
        self.record_id = record_id

    def __str__(self) -> str:
        return self.args[0]


class ValidationError(AutoFormError, ValueError):
    """Invalid user supplied data (e.g. a profile without a name)."""


class GenerationWarning(UserWarning):
    """Base class for per-field problems reported during generation."""

    def __init__(self, field_id: str, message: str):
        super().__init__(message)
        self.field_id = field_id

    def __str__(self) -> str:
        return self.args[0]


class FieldWriteWarning(GenerationWarning):
    pass


class StaleMappingWarning(GenerationWarning):
    pass


class MissingGeometryWarning(GenerationWarning):
    pass


class PageOutOfRangeWarning(GenerationWarning):
    pass
