from __future__ import annotations

import pytest

from autoform.errors import AnalysisError
from autoform.models import FieldType
from autoform.template_scanner import TemplateScanner
from conftest import FakeInspector, make_pdf


def test_each_detected_field_becomes_a_native_text_field() -> None:
    scanner = TemplateScanner(FakeInspector(["full_name", "signature_date"]))

    template = scanner.scan_template(b"%PDF", "Lease")

    assert template.name == "Lease"
    assert template.document_bytes == b"%PDF"
    assert template.mappings == []
    assert template.created_at > 0
    assert [(f.id, f.name) for f in template.fields] == [
        ("full_name", "full_name"),
        ("signature_date", "signature_date"),
    ]
    for field in template.fields:
        assert field.type is FieldType.TEXT
        assert field.is_manual is False
        assert field.page_index == 0
        assert field.x is None and field.width is None


def test_duplicate_names_collapse_to_one_field() -> None:
    scanner = TemplateScanner(FakeInspector(["a", "b", "a"]))

    template = scanner.scan_template(b"%PDF", "Form")

    assert [f.id for f in template.fields] == ["a", "b"]


def test_unparseable_document_raises_analysis_error() -> None:
    scanner = TemplateScanner(FakeInspector(fail=True))

    with pytest.raises(AnalysisError):
        scanner.scan_template(b"garbage", "Broken")


def test_real_pdf_fields_are_detected() -> None:
    data = make_pdf(text_fields=["full_name", "signature_date"])

    template = TemplateScanner().scan_template(data, "Real")

    assert {f.id for f in template.fields} == {"full_name", "signature_date"}


def test_analysis_is_idempotent() -> None:
    data = make_pdf(text_fields=["b_field", "a_field"], checkbox_fields=["agree"])
    scanner = TemplateScanner()

    first = scanner.scan_template(data, "Form")
    second = scanner.scan_template(data, "Form")

    assert {f.id for f in first.fields} == {f.id for f in second.fields}
    assert {f.id for f in first.fields} == {"a_field", "b_field", "agree"}


def test_pdf_without_form_yields_no_fields() -> None:
    template = TemplateScanner().scan_template(make_pdf(pages=2), "Plain")

    assert template.fields == []


@pytest.mark.parametrize("data", [b"", b"not a pdf at all", b"%PDF-1.7\n%%garbage"])
def test_real_inspector_rejects_invalid_bytes(data: bytes) -> None:
    with pytest.raises(AnalysisError):
        TemplateScanner().scan_template(data, "Broken")
