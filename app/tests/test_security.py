import base64

import pytest

from companion.models import Attachment
from companion.services.security import (
    MAX_ATTACHMENT_BYTES,
    MAX_INPUT_CHARS,
    DefaultSecurity,
    sanitize_markup,
)

guard = DefaultSecurity()


def test_empty_input_needs_an_attachment():
    with pytest.raises(ValueError):
        guard.validate_user_input("  ")
    guard.validate_user_input("", has_attachment=True)


def test_overlong_input_is_rejected():
    with pytest.raises(ValueError):
        guard.validate_user_input("x" * (MAX_INPUT_CHARS + 1))


def test_attachment_types_and_size():
    guard.validate_attachment(Attachment(data="AA==", mime_type="image/jpeg"))
    guard.validate_attachment(Attachment(data="AA==", mime_type="application/pdf"))
    with pytest.raises(ValueError):
        guard.validate_attachment(Attachment(data="AA==", mime_type="text/html"))

    big = Attachment.from_bytes(b"\0" * (MAX_ATTACHMENT_BYTES + 1), "image/png")
    with pytest.raises(ValueError):
        guard.validate_attachment(big)


def test_attachment_size_is_decoded_size():
    att = Attachment(data=base64.b64encode(b"hello").decode(), mime_type="image/png")
    assert att.size_bytes == 5
    assert att.data_uri.startswith("data:image/png;base64,")


def test_prompt_sanitizer_strips_nulls_and_whitespace():
    assert guard.sanitize_for_prompt("  hi\x00 there ") == "hi there"


def test_markup_sanitizer_keeps_formatting_and_drops_scripts():
    html = (
        '<h3>Meds</h3><ul><li><strong>Ibuprofen</strong></li></ul>'
        '<script>alert(1)</script><img src=x onerror="alert(2)">'
        '<a href="javascript:alert(3)">bad</a><div class="document-analysis" onclick="x()">ok</div>'
    )
    clean = sanitize_markup(html)
    assert "<h3>Meds</h3>" in clean
    assert "<strong>Ibuprofen</strong>" in clean
    assert "<script" not in clean
    assert "onerror" not in clean
    assert "javascript:" not in clean
    assert "onclick" not in clean
    assert '<div class="document-analysis">ok</div>' in clean
