"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple, Union

ChannelId = Union[int, str]


@dataclass(frozen=True)
class ChannelSource:
    """A channel to scan, as supplied by the catalog."""

    id: ChannelId
    handle: str
    topic_key: str
    topic_label: str
    keywords: Tuple[str, ...] = ()
    stop_words: Tuple[str, ...] = ()
    last_scanned_at: Optional[datetime] = None
    active: bool = True


class SpanKind(str, Enum):
    """Rich-text span kinds we know how to render."""

    BOLD = "bold"
    ITALIC = "italic"
    UNDERLINE = "underline"
    STRIKE = "strike"
    CODE = "code"
    PRE = "pre"
    HASHTAG = "hashtag"
    URL = "url"
    TEXT_URL = "text_url"
    MENTION = "mention"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class MessageSpan:
    """Formatting span over a message text.

    Offsets and lengths are UTF-16 code units, as Telegram reports them.
    """

    kind: SpanKind
    offset: int
    length: int
    url: Optional[str] = None


@dataclass(frozen=True)
class RawMessage:
    """Message fetched from the source platform; never persisted."""

    id: int
    text: str
    published_at: datetime
    spans: Tuple[MessageSpan, ...] = ()


@dataclass(frozen=True)
class Budget:
    """Budget range mentioned in a posting."""

    minimum: Optional[int]
    maximum: Optional[int]
    currency: str


@dataclass(frozen=True)
class CandidateRecord:
    """A qualifying message extracted from one channel during a cycle."""

    topic_key: str
    topic_label: str
    source_url: str
    published_at: datetime
    channel_id: ChannelId
    message: RawMessage
    title: str = ""
    budget: Optional[Budget] = None


@dataclass(frozen=True)
class DedupEntry:
    """Ledger entry keyed by the content hash of normalized text."""

    content_hash: str
    first_seen: datetime
    last_seen: datetime
    seen_count: int
    channel_id: ChannelId
    topic_key: str


@dataclass(frozen=True)
class DedupVerdict:
    is_duplicate: bool
    content_hash: Optional[str] = None


@dataclass(frozen=True)
class Recipient:
    """A notification recipient subscribed to one topic."""

    recipient_id: int
    topic_key: str
    active: bool = True
    expires_at: Optional[datetime] = None

    def is_current(self, now: datetime) -> bool:
        if not self.active:
            return False
        return self.expires_at is None or self.expires_at > now


class DeliveryOutcome(str, Enum):
    DELIVERED = "delivered"
    RECIPIENT_UNREACHABLE = "recipient_unreachable"
    TRANSIENT_ERROR = "transient_error"


@dataclass(frozen=True)
class DeliveryResult:
    recipient_id: int
    outcome: DeliveryOutcome


@dataclass
class CycleReport:
    """Counters collected while one pipeline cycle runs."""

    started_at: datetime
    duration_seconds: float = 0.0
    channels_total: int = 0
    channels_scanned: int = 0
    channels_failed: int = 0
    candidates: int = 0
    duplicates: int = 0
    notifications_sent: int = 0
    skipped: bool = False
    aborted: bool = False
    failed_channels: List[ChannelId] = field(default_factory=list)
