import base64
import binascii
import logging

from dotenv import load_dotenv

load_dotenv(".env.local"); load_dotenv()  # also loads .env if present

import os  # noqa: E402
import urllib.parse  # noqa: E402
from typing import Optional  # noqa: E402

from fastapi import FastAPI, HTTPException, Response  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from pydantic import BaseModel  # noqa: E402

from autoform import (  # noqa: E402
    AnalysisError,
    AutoFormService,
    GenerationError,
    NotFoundError,
    UnknownFieldError,
    ValidationError,
)
from autoform.models import Profile, Template  # noqa: E402
from autoform.service import STANDARD_PROFILE_KEYS  # noqa: E402

logging.basicConfig(level=os.getenv("AUTOFORM_LOG_LEVEL", "INFO").upper())

app = FastAPI(title="AutoForm")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("AUTOFORM_CORS_ORIGINS", "*").split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

service = AutoFormService()


class ProfileRequest(BaseModel):
    name: str
    fields: dict[str, str] = {}


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = None
    fields: Optional[dict[str, str]] = None


class TemplateUploadRequest(BaseModel):
    filename: str
    pdf_base64: str
    name: Optional[str] = None


class FieldUpdateRequest(BaseModel):
    name: Optional[str] = None
    font_size: Optional[float] = None
    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None


class MappingRequest(BaseModel):
    profile_key: str
    transformation: Optional[str] = None


class GenerateRequest(BaseModel):
    profile_id: int
    persist: bool = False
    as_json: bool = False


def _profile_payload(profile: Profile) -> dict:
    return {"id": profile.id, **profile.to_record()}


def _template_payload(template: Template) -> dict:
    payload = template.summary()
    payload["fields"] = template.fields_record()
    payload["mappings"] = template.mappings_record()
    return payload


def _not_found(exc: Exception) -> HTTPException:
    return HTTPException(status_code=404, detail=str(exc))


def _content_disposition(filename: str) -> str:
    """Attachment header with an ASCII fallback and the UTF-8 name (RFC 6266)."""
    fallback = filename.encode("ascii", "replace").decode("ascii")
    for char in '?"\\':
        fallback = fallback.replace(char, "_")
    quoted = urllib.parse.quote(filename, safe="")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quoted}"


@app.get("/hello")
def read_root():
    return {"msg": "Hello AutoForm!"}


# --- Profiles -----------------------------------------------------------------


@app.get("/profiles")
def list_profiles():
    return {"profiles": [_profile_payload(p) for p in service.list_profiles()]}


@app.get("/profiles/standard-keys")
def profile_standard_keys():
    return {"keys": STANDARD_PROFILE_KEYS}


@app.post("/profiles", status_code=201)
def create_profile(req: ProfileRequest):
    try:
        profile = service.create_profile(req.name, req.fields)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"profile": _profile_payload(profile)}


@app.get("/profiles/{profile_id}")
def get_profile(profile_id: int):
    try:
        profile = service.get_profile(profile_id)
    except NotFoundError as exc:
        raise _not_found(exc) from exc
    return {"profile": _profile_payload(profile)}


@app.put("/profiles/{profile_id}")
def update_profile(profile_id: int, req: ProfileUpdateRequest):
    try:
        profile = service.update_profile(profile_id, name=req.name, fields=req.fields)
    except NotFoundError as exc:
        raise _not_found(exc) from exc
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"profile": _profile_payload(profile)}


@app.delete("/profiles/{profile_id}")
def delete_profile(profile_id: int):
    if not service.delete_profile(profile_id):
        raise HTTPException(status_code=404, detail=f"Profile {profile_id} not found")
    return {"ok": True}


# --- Templates ----------------------------------------------------------------


@app.get("/templates")
def list_templates():
    return {"templates": service.list_templates()}


@app.post("/templates", status_code=201)
def upload_template(req: TemplateUploadRequest):
    try:
        document_bytes = base64.b64decode(req.pdf_base64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise HTTPException(status_code=400, detail="pdf_base64 is not valid base64") from exc
    try:
        template = service.upload_template(document_bytes, req.filename, name=req.name)
    except AnalysisError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"template": _template_payload(template)}


@app.get("/templates/{template_id}")
def get_template(template_id: int):
    try:
        template = service.get_template(template_id)
    except NotFoundError as exc:
        raise _not_found(exc) from exc
    return {"template": _template_payload(template)}


@app.delete("/templates/{template_id}")
def delete_template(template_id: int):
    if not service.delete_template(template_id):
        raise HTTPException(status_code=404, detail=f"Template {template_id} not found")
    return {"ok": True}


@app.get("/templates/{template_id}/pages/{page_index}")
def render_template_page(template_id: int, page_index: int, width: float = 800):
    try:
        page = service.render_page(template_id, page_index, width)
    except NotFoundError as exc:
        raise _not_found(exc) from exc
    except IndexError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    headers = {
        "X-Page-Count": str(page.page_count),
        "X-Page-Width": str(page.page_width),
        "X-Page-Height": str(page.page_height),
    }
    return Response(content=page.image, media_type="image/png", headers=headers)


# --- Fields -------------------------------------------------------------------


@app.post("/templates/{template_id}/fields", status_code=201)
def add_manual_field(template_id: int, page_index: int = 0):
    try:
        editor = service.editor(template_id, page_index=page_index)
    except NotFoundError as exc:
        raise _not_found(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    field = editor.add_manual_field()
    return {"field": field.to_record()}


@app.patch("/templates/{template_id}/fields/{field_id}")
def update_field(template_id: int, field_id: str, req: FieldUpdateRequest):
    try:
        field = service.editor(template_id).edit_field(
            field_id,
            name=req.name,
            font_size=req.font_size,
            x=req.x,
            y=req.y,
            width=req.width,
            height=req.height,
        )
    except (NotFoundError, UnknownFieldError) as exc:
        raise _not_found(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"field": field.to_record()}


@app.delete("/templates/{template_id}/fields/{field_id}")
def delete_field(template_id: int, field_id: str):
    try:
        service.editor(template_id).delete_field(field_id)
    except (NotFoundError, UnknownFieldError) as exc:
        raise _not_found(exc) from exc
    return {"ok": True}


# --- Mappings -----------------------------------------------------------------


@app.put("/templates/{template_id}/mappings/{field_id}")
def bind_mapping(template_id: int, field_id: str, req: MappingRequest):
    try:
        mapping = service.bind(template_id, field_id, req.profile_key, req.transformation)
    except (NotFoundError, UnknownFieldError) as exc:
        raise _not_found(exc) from exc
    return {"mapping": mapping.to_record() if mapping else None}


@app.delete("/templates/{template_id}/mappings/{field_id}")
def unbind_mapping(template_id: int, field_id: str):
    try:
        service.unbind(template_id, field_id)
    except (NotFoundError, UnknownFieldError) as exc:
        raise _not_found(exc) from exc
    return {"ok": True}


# --- Generation ---------------------------------------------------------------


@app.post("/templates/{template_id}/generate")
def generate_document(template_id: int, req: GenerateRequest):
    try:
        result = service.generate(template_id, req.profile_id, persist=req.persist)
    except NotFoundError as exc:
        raise _not_found(exc) from exc
    except GenerationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    metadata = result["metadata"]
    if req.as_json:
        return {
            "metadata": metadata,
            "pdf_base64": base64.b64encode(result["bytes"]).decode("ascii"),
        }
    headers = {
        "Content-Disposition": _content_disposition(metadata["filename"]),
        "X-Pdf-Id": metadata["pdf_id"],
    }
    return Response(content=result["bytes"], media_type=metadata["media_type"], headers=headers)


@app.get("/generated/{pdf_id}")
def get_generated(pdf_id: str):
    """Download a generated PDF by ID"""
    record = service.get_generated(pdf_id)
    if not record:
        raise HTTPException(status_code=404, detail="PDF not found")
    filename = record["metadata"].get("filename") or f"{pdf_id}.pdf"
    headers = {"Content-Disposition": _content_disposition(filename)}
    return Response(content=record["bytes"], media_type="application/pdf", headers=headers)
