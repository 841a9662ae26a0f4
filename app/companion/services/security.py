"""
Purpose: Guardrails for inputs and rendered content.
Content: early, predictable failures; prevent empty or oversized requests and
unsupported attachments; strip model markup down to a safe allow-list before
it is rendered as HTML.
"""

from __future__ import annotations
import bleach

from ..models import Attachment

MAX_INPUT_CHARS = 8000
MAX_ATTACHMENT_BYTES = 4 * 1024 * 1024

ALLOWED_MIME_PREFIXES = ("image/", "audio/")
ALLOWED_MIME_TYPES = {"application/pdf"}

ALLOWED_TAGS = frozenset(
    {
        "p",
        "br",
        "div",
        "span",
        "strong",
        "b",
        "em",
        "i",
        "u",
        "ul",
        "ol",
        "li",
        "h3",
        "h4",
        "blockquote",
        "code",
        "pre",
        "a",
    }
)
ALLOWED_ATTRIBUTES = {"a": ["href", "title"], "div": ["class"], "span": ["class"]}
ALLOWED_PROTOCOLS = frozenset({"http", "https", "mailto"})


class DefaultSecurity:
    def validate_user_input(self, text: str, *, has_attachment: bool = False) -> None:
        if not (text or "").strip() and not has_attachment:
            raise ValueError("Please enter a message or attach a file.")
        if len(text or "") > MAX_INPUT_CHARS:
            raise ValueError("Your message is too long. Please shorten it.")

    def validate_attachment(self, attachment: Attachment) -> None:
        mime = (attachment.mime_type or "").lower()
        if not (
            mime in ALLOWED_MIME_TYPES
            or any(mime.startswith(p) for p in ALLOWED_MIME_PREFIXES)
        ):
            raise ValueError(
                f"Unsupported file type {attachment.mime_type!r}. "
                "Please upload an image or PDF file."
            )
        if attachment.size_bytes > MAX_ATTACHMENT_BYTES:
            raise ValueError("File is too large. Please upload a file under 4MB.")

    def sanitize_for_prompt(self, text: str) -> str:
        return (text or "").replace("\x00", "").strip()

    def sanitize_markup(self, markup: str) -> str:
        """Model output is untrusted; keep formatting tags, drop the rest."""
        return bleach.clean(
            markup or "",
            tags=ALLOWED_TAGS,
            attributes=ALLOWED_ATTRIBUTES,
            protocols=ALLOWED_PROTOCOLS,
            strip=True,
        )


def sanitize_markup(markup: str) -> str:
    return DefaultSecurity().sanitize_markup(markup)
