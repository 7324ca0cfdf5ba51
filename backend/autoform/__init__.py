"""
AutoForm: reusable PDF templates filled from data profiles.

This package bundles:
  - the template / field / mapping / profile model and its record store
  - template analysis of uploaded PDFs (native form fields)
  - the field editor for user-drawn boxes, in document space
  - document generation stamping a profile onto a fresh copy of the PDF
"""

from .errors import AnalysisError, AutoFormError, GenerationError, NotFoundError, UnknownFieldError, ValidationError
from .generator import DocumentGenerator, GenerationResult
from .models import FieldType, Mapping, Profile, Template, TemplateField, Transformation
from .service import AutoFormService

__all__ = [
    "AutoFormService",
    "AutoFormError",
    "AnalysisError",
    "GenerationError",
    "NotFoundError",
    "UnknownFieldError",
    "ValidationError",
    "DocumentGenerator",
    "GenerationResult",
    "FieldType",
    "Mapping",
    "Profile",
    "Template",
    "TemplateField",
    "Transformation",
]
