"""
High-level service that exposes AutoForm to the FastAPI layer.

Responsibilities
----------------
* profile CRUD on top of the record store
* template upload (analysis), listing, page rendering and deletion
* field editing and mapping changes against persisted templates
* document generation, with an in-memory TTL cache of recent outputs and
  optional persistence to disk or S3
"""

from __future__ import annotations

import datetime as dt
import json
import logging
import os
import uuid
from pathlib import Path
from typing import Callable, Dict, List, Optional

import boto3
from cachetools import TTLCache

from .collaborators import DocumentOpener, DocumentRenderer, FormInspector, RenderedPage
from .errors import NotFoundError, ValidationError
from .field_editor import FieldEditor
from .generator import PDF_MEDIA_TYPE, DocumentGenerator, output_filename
from .mapping_resolver import MappingResolver
from .models import Mapping, Profile, Template
from .pdf_utils import PdfPageRenderer, count_pages
from .record_store import PROFILES, TEMPLATES, RecordStore, Subscription
from .template_scanner import TemplateScanner

logger = logging.getLogger(__name__)

STANDARD_PROFILE_KEYS = [
    "Full Name",
    "Address",
    "City",
    "State",
    "Zip",
    "Phone",
    "Email",
    "DOB",
    "Father's Name",
]


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def display_name_from_filename(filename: str) -> str:
    name = Path(filename or "").name
    if name.lower().endswith(".pdf"):
        name = name[:-4]
    return name or "Untitled"


class AutoFormService:
    def __init__(
        self,
        base_dir: Optional[Path] = None,
        store: Optional[RecordStore] = None,
        inspector: Optional[FormInspector] = None,
        renderer: Optional[DocumentRenderer] = None,
        opener: Optional[DocumentOpener] = None,
        strict_mappings: Optional[bool] = None,
        cache_ttl: Optional[int] = None,
        s3_client=None,
    ):
        base = base_dir or os.getenv("AUTOFORM_BASE_DIR")
        self.base_dir = Path(base) if base else None
        self.generated_dir: Optional[Path] = None
        if self.base_dir is not None:
            self.generated_dir = self.base_dir / "generated"
            self.generated_dir.mkdir(parents=True, exist_ok=True)

        self.store = store or RecordStore(self.base_dir)
        self.scanner = TemplateScanner(inspector)
        self.renderer = renderer or PdfPageRenderer()
        self.generator = DocumentGenerator(opener)
        if strict_mappings is None:
            strict_mappings = _env_flag("AUTOFORM_STRICT_MAPPINGS")
        self.resolver = MappingResolver(self.store, strict=strict_mappings)

        ttl = cache_ttl if cache_ttl is not None else int(os.getenv("AUTOFORM_CACHE_TTL", "3600"))
        self._pdf_cache: TTLCache = TTLCache(maxsize=128, ttl=ttl)

        self.s3_bucket = os.getenv("AUTOFORM_S3_BUCKET")
        self.s3_prefix = os.getenv("AUTOFORM_S3_PREFIX", "autoform/")
        self.s3 = s3_client
        if self.s3_bucket and self.s3 is None:
            self.s3 = boto3.client("s3")

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------
    def list_profiles(self) -> List[Profile]:
        return [Profile.from_record(r) for r in self.store.all(PROFILES)]

    def get_profile(self, profile_id: int) -> Profile:
        record = self.store.get(PROFILES, profile_id)
        if record is None:
            raise NotFoundError(PROFILES, profile_id)
        return Profile.from_record(record)

    def create_profile(self, name: str, fields: Optional[Dict[str, str]] = None) -> Profile:
        profile = Profile(name=(name or "").strip(), fields=dict(fields or {}))
        self._validate_profile(profile)
        profile.id = self.store.add(PROFILES, profile.to_record())
        logger.info("Created profile %s '%s'", profile.id, profile.name)
        return profile

    def update_profile(
        self,
        profile_id: int,
        name: Optional[str] = None,
        fields: Optional[Dict[str, str]] = None,
    ) -> Profile:
        profile = self.get_profile(profile_id)
        if name is not None:
            profile.name = name.strip()
        if fields is not None:
            profile.fields = dict(fields)
        self._validate_profile(profile)
        self.store.update(PROFILES, profile_id, profile.to_record())
        return profile

    def delete_profile(self, profile_id: int) -> bool:
        return self.store.delete(PROFILES, profile_id)

    def subscribe_profiles(self, listener: Callable[[List[Profile]], None]) -> Subscription:
        return self.store.subscribe(PROFILES, lambda records: listener([Profile.from_record(r) for r in records]))

    @staticmethod
    def _validate_profile(profile: Profile) -> None:
        if not profile.name:
            raise ValidationError("Profile name is required")

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------
    def upload_template(self, document_bytes: bytes, filename: str, name: Optional[str] = None) -> Template:
        template = self.scanner.scan_template(document_bytes, name or display_name_from_filename(filename))
        template.id = self.store.add(TEMPLATES, template.to_record())
        logger.info("Stored template %s '%s'", template.id, template.name)
        return template

    def list_templates(self) -> List[Dict]:
        return [Template.from_record(r).summary() for r in self.store.all(TEMPLATES)]

    def get_template(self, template_id: int) -> Template:
        record = self.store.get(TEMPLATES, template_id)
        if record is None:
            raise NotFoundError(TEMPLATES, template_id)
        return Template.from_record(record)

    def delete_template(self, template_id: int) -> bool:
        return self.store.delete(TEMPLATES, template_id)

    def subscribe_templates(self, listener: Callable[[List[Template]], None]) -> Subscription:
        return self.store.subscribe(TEMPLATES, lambda records: listener([Template.from_record(r) for r in records]))

    def render_page(self, template_id: int, page_index: int, target_width_px: float) -> RenderedPage:
        template = self.get_template(template_id)
        return self.renderer.render_page(template.document_bytes, page_index, target_width_px)

    def editor(self, template_id: int, page_index: int = 0) -> FieldEditor:
        """Editor for one page; ValueError when the page is not in the document."""
        template = self.get_template(template_id)
        return FieldEditor(
            template,
            self.store,
            renderer=self.renderer,
            page_index=page_index,
            page_count=count_pages(template.document_bytes),
        )

    # ------------------------------------------------------------------
    # Mappings
    # ------------------------------------------------------------------
    def bind(
        self,
        template_id: int,
        field_id: str,
        profile_key: str,
        transformation: Optional[str] = None,
    ) -> Optional[Mapping]:
        return self.resolver.bind(self.get_template(template_id), field_id, profile_key, transformation)

    def unbind(self, template_id: int, field_id: str) -> None:
        self.resolver.unbind(self.get_template(template_id), field_id)

    # ------------------------------------------------------------------
    # Generation / storage
    # ------------------------------------------------------------------
    def generate(self, template_id: int, profile_id: int, persist: bool = False) -> Dict:
        template = self.get_template(template_id)
        profile = self.get_profile(profile_id)
        result = self.generator.run(template, profile)

        pdf_id = str(uuid.uuid4())
        metadata = {
            "pdf_id": pdf_id,
            "template_id": template.id,
            "profile_id": profile.id,
            "filename": output_filename(template, profile),
            "media_type": PDF_MEDIA_TYPE,
            "generated_at": dt.datetime.now(dt.timezone.utc).isoformat(),
            "filled_fields": result.filled_field_ids,
            "warnings": [str(w) for w in result.warnings],
        }
        if persist:
            metadata.update(self._store_pdf(pdf_id, metadata["filename"], result.data))

        self._pdf_cache[pdf_id] = {"metadata": metadata, "bytes": result.data}
        return {"metadata": metadata, "bytes": result.data}

    def get_generated(self, pdf_id: str) -> Optional[Dict]:
        entry = self._pdf_cache.get(pdf_id)
        if entry:
            return entry

        if self.s3_bucket:
            key = f"{self.s3_prefix}{pdf_id}.pdf"
            try:
                obj = self.s3.get_object(Bucket=self.s3_bucket, Key=key)
            except self.s3.exceptions.NoSuchKey:
                return None
            metadata = {"pdf_id": pdf_id, "s3_key": key, "filename": obj.get("Metadata", {}).get("filename")}
            entry = {"metadata": metadata, "bytes": obj["Body"].read()}
            self._pdf_cache[pdf_id] = entry
            return entry

        if self.generated_dir is not None:
            file_path = self.generated_dir / f"{pdf_id}.pdf"
            if file_path.exists():
                with file_path.open("rb") as f:
                    pdf_bytes = f.read()
                metadata = {"pdf_id": pdf_id}
                metadata_path = file_path.with_suffix(".json")
                if metadata_path.exists():
                    with metadata_path.open("r", encoding="utf-8") as f:
                        metadata.update(json.load(f))
                entry = {"metadata": metadata, "bytes": pdf_bytes}
                self._pdf_cache[pdf_id] = entry
                return entry
        return None

    def _store_pdf(self, pdf_id: str, filename: str, pdf_bytes: bytes) -> Dict:
        if self.s3_bucket:
            key = f"{self.s3_prefix}{pdf_id}.pdf"
            self.s3.put_object(
                Bucket=self.s3_bucket,
                Key=key,
                Body=pdf_bytes,
                ContentType=PDF_MEDIA_TYPE,
                Metadata={"filename": filename},
            )
            return {"s3_bucket": self.s3_bucket, "s3_key": key}

        if self.generated_dir is None:
            logger.warning("No storage configured; generated document %s is only cached", pdf_id)
            return {}

        target = self.generated_dir / f"{pdf_id}.pdf"
        with target.open("wb") as f:
            f.write(pdf_bytes)
        with target.with_suffix(".json").open("w", encoding="utf-8") as f:
            json.dump({"filename": filename}, f, indent=2)
        return {"file_path": str(target)}
