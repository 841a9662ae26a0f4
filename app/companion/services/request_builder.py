"""
Purpose: Turn (text, attachment, instruction, prior turns) into the
provider-ready request shape. Pure; no I/O, no re-encoding.

History keeps only {role, content} of user/model turns. System turns,
pending placeholders, attachment previews and mood tags stay local. Turns
with blank content (attachment-only sends) are dropped: providers reject
empty text parts.

Testing: Plain unit tests on the returned ProviderRequest.
"""

from __future__ import annotations
from typing import Any, Iterable, Optional

from ..models import Attachment, Message, ProviderRequest, Role


def project_history(prior_turns: Iterable[Message]) -> list[dict[str, str]]:
    """Conversation history as the provider sees it, in transcript order."""
    return [
        {"role": m.role.value, "content": m.content}
        for m in prior_turns
        if m.role != Role.SYSTEM and not m.pending and m.content.strip()
    ]


def content_parts(
    text: str, attachment: Optional[Attachment] = None
) -> list[dict[str, Any]]:
    parts: list[dict[str, Any]] = []
    if text or attachment is None:
        parts.append({"text": text})
    if attachment is not None:
        # caller guarantees base64; forwarded as-is
        parts.append(
            {
                "inline_data": {
                    "mime_type": attachment.mime_type,
                    "data": attachment.data,
                }
            }
        )
    return parts


def build_request(
    text: str,
    attachment: Optional[Attachment] = None,
    instruction: Optional[str] = None,
    prior_turns: Iterable[Message] = (),
) -> ProviderRequest:
    return ProviderRequest(
        instruction=instruction,
        history=project_history(prior_turns),
        parts=content_parts(text, attachment),
    )
