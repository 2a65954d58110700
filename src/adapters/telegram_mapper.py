"""Telegram-to-core message mapping adapter.

This keeps Telethon-specific details out of the core pipeline.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Tuple

from telethon.tl import types

from core.models import MessageSpan, RawMessage, SpanKind

_ENTITY_KINDS = {
    types.MessageEntityBold: SpanKind.BOLD,
    types.MessageEntityItalic: SpanKind.ITALIC,
    types.MessageEntityUnderline: SpanKind.UNDERLINE,
    types.MessageEntityStrike: SpanKind.STRIKE,
    types.MessageEntityCode: SpanKind.CODE,
    types.MessageEntityPre: SpanKind.PRE,
    types.MessageEntityHashtag: SpanKind.HASHTAG,
    types.MessageEntityUrl: SpanKind.URL,
    types.MessageEntityTextUrl: SpanKind.TEXT_URL,
    types.MessageEntityMention: SpanKind.MENTION,
}


def span_from_entity(entity: Any) -> MessageSpan:
    """Map a Telethon MessageEntity to a span; unknown classes keep their range."""

    kind = _ENTITY_KINDS.get(type(entity), SpanKind.UNKNOWN)
    return MessageSpan(
        kind=kind,
        offset=getattr(entity, "offset", -1),
        length=getattr(entity, "length", 0),
        url=getattr(entity, "url", None),
    )


def spans_from_entities(entities: Optional[Iterable[Any]]) -> Tuple[MessageSpan, ...]:
    return tuple(span_from_entity(entity) for entity in entities or ())


def _as_utc(value: Optional[datetime]) -> datetime:
    if value is None:
        # Without a timestamp the look-back window cannot be applied.
        raise ValueError("Message has no date")
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_raw_message(message: Any) -> RawMessage:
    """Build a core RawMessage from a Telethon Message.

    ``message.message`` is the text the entity offsets refer to; raw_text is
    only a fallback for objects that do not carry it. Raises ValueError for
    a message without a date.
    """

    text = getattr(message, "message", None)
    if text is None:
        text = getattr(message, "raw_text", None) or ""
    return RawMessage(
        id=message.id,
        text=text,
        published_at=_as_utc(getattr(message, "date", None)),
        spans=spans_from_entities(getattr(message, "entities", None)),
    )
