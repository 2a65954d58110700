"""Notification formatting helpers.

Telegram reports message formatting as entities (offset/length spans in
UTF-16 code units). Here they are turned into Bot API HTML so recipients
see the posting the way it was published.
"""

from __future__ import annotations

import html
import re
from functools import partial
from typing import Callable, Dict, Iterable, List, Optional

from telethon.helpers import add_surrogate, del_surrogate

from core.config import DeliveryConfig
from core.models import Budget, CandidateRecord, MessageSpan, SpanKind

ELLIPSIS = "…"
DIVIDER = "──────────────"

# Matches "&" unless it starts one of the entities the Bot API accepts
# (&lt; &gt; &amp; &quot; and numeric ones). Named entities such as &nbsp;
# are rejected by Telegram, so they get escaped too.
_BARE_AMPERSAND = re.compile(r"&(?!(?:amp|lt|gt|quot|#\d+|#[xX][0-9a-fA-F]+);)")


def escape_html(text: str) -> str:
    """Escape ``&``, ``<`` and ``>`` without re-escaping existing entities."""

    return _BARE_AMPERSAND.sub("&amp;", text).replace("<", "&lt;").replace(">", "&gt;")


def _attr(value: str) -> str:
    return escape_html(value).replace('"', "&quot;")


def _wrap(tag: str) -> Callable[[str, MessageSpan, str], str]:
    def render(inner: str, span: MessageSpan, raw: str) -> str:
        return f"<{tag}>{inner}</{tag}>"

    return render


def _render_url(inner: str, span: MessageSpan, raw: str) -> str:
    target = raw.strip()
    if "://" not in target:
        target = f"http://{target}"
    return f'<a href="{_attr(target)}">{inner}</a>'


def _render_text_url(inner: str, span: MessageSpan, raw: str) -> str:
    if not span.url:
        return inner
    return f'<a href="{_attr(span.url)}">{inner}</a>'


def _render_mention(inner: str, span: MessageSpan, raw: str) -> str:
    username = raw.strip().lstrip("@")
    if not username:
        return inner
    return f'<a href="https://t.me/{_attr(username)}">{inner}</a>'


def _render_plain(inner: str, span: MessageSpan, raw: str) -> str:
    return inner


_SPAN_RENDERERS: Dict[SpanKind, Callable[[str, MessageSpan, str], str]] = {
    SpanKind.BOLD: _wrap("b"),
    SpanKind.ITALIC: _wrap("i"),
    SpanKind.UNDERLINE: _wrap("u"),
    SpanKind.STRIKE: _wrap("s"),
    SpanKind.CODE: _wrap("code"),
    SpanKind.PRE: _wrap("pre"),
    SpanKind.HASHTAG: _wrap("b"),
    SpanKind.URL: _render_url,
    SpanKind.TEXT_URL: _render_text_url,
    SpanKind.MENTION: _render_mention,
}


def _is_low_surrogate(char: str) -> bool:
    return "\udc00" <= char <= "\udfff"


def _splits_pair(text: str, index: int) -> bool:
    return 0 < index < len(text) and _is_low_surrogate(text[index])


def _is_valid_span(span: MessageSpan, text: str) -> bool:
    if not isinstance(span.offset, int) or not isinstance(span.length, int):
        return False
    if span.offset < 0 or span.length <= 0 or span.offset >= len(text):
        return False
    end = min(span.offset + span.length, len(text))
    return not (_splits_pair(text, span.offset) or _splits_pair(text, end))


def render_message_html(
    text: str,
    spans: Iterable[MessageSpan] = (),
    limit: Optional[int] = None,
) -> str:
    """Render message text and its spans as Telegram HTML.

    Spans are applied left to right; a span starting inside an already
    rendered span is dropped. ``limit`` clips the text (in UTF-16 units)
    before rendering and appends an ellipsis.
    """

    if not text:
        return ""

    surrogate = add_surrogate(text)
    truncated = False
    if limit is not None and len(surrogate) > limit:
        cut = limit - 1 if _splits_pair(surrogate, limit) else limit
        surrogate = surrogate[:cut]
        truncated = True

    valid = sorted(
        (span for span in spans if _is_valid_span(span, surrogate)),
        key=lambda span: (span.offset, -span.length),
    )

    parts: List[str] = []
    position = 0
    for span in valid:
        if span.offset < position:
            continue
        end = min(span.offset + span.length, len(surrogate))
        if span.offset > position:
            parts.append(escape_html(del_surrogate(surrogate[position:span.offset])))
        raw = del_surrogate(surrogate[span.offset:end])
        renderer = _SPAN_RENDERERS.get(span.kind, _render_plain)
        parts.append(renderer(escape_html(raw), span, raw))
        position = end

    if position < len(surrogate):
        parts.append(escape_html(del_surrogate(surrogate[position:])))
    if truncated:
        parts.append(ELLIPSIS)
    return "".join(parts)


def format_budget(budget: Budget) -> str:
    if budget.minimum and budget.maximum and budget.minimum != budget.maximum:
        return f"{budget.minimum} - {budget.maximum} {budget.currency}"
    amount = budget.minimum or budget.maximum
    if budget.minimum is None:
        return f"up to {amount} {budget.currency}"
    return f"{amount} {budget.currency}"


def format_notification(record: CandidateRecord, body_chars: Optional[int] = None) -> str:
    """Create the HTML notification body sent to recipients."""

    timestamp = html.escape(record.published_at.astimezone().strftime("%H:%M %d-%m-%Y"))
    body = render_message_html(record.message.text, record.message.spans, limit=body_chars)

    parts = [
        f"🔔 <b>New posting</b> [{timestamp}]",
        f"📂 <b>Topic:</b> {escape_html(record.topic_label)}",
        DIVIDER,
        "",
        body,
        "",
    ]
    if record.budget is not None:
        parts.append(f"💰 <b>Budget:</b> {escape_html(format_budget(record.budget))}")
    parts.append(f'🔗 <a href="{_attr(record.source_url)}">Open posting</a>')
    parts.append(DIVIDER)
    return "\n".join(parts)


def build_renderer(config: DeliveryConfig) -> Callable[[CandidateRecord], str]:
    return partial(format_notification, body_chars=config.body_chars)
