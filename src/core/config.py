"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SessionConfig:
    """Health cache and reconnect policy for the source session."""

    health_ttl_seconds: float = 300.0
    probe_timeout_seconds: float = 10.0
    connect_timeout_seconds: float = 30.0
    max_attempts: int = 3
    backoff_base_seconds: float = 1.0
    backoff_max_seconds: float = 10.0

    def backoff_delay(self, attempt: int) -> float:
        """Delay after the zero-based ``attempt`` failed."""

        return min(self.backoff_base_seconds * (2 ** attempt), self.backoff_max_seconds)


@dataclass(frozen=True)
class ScanConfig:
    """Per-channel fetch limits and pacing."""

    message_limit: int = 100
    lookback_minutes: float = 30.0
    resolve_timeout_seconds: float = 15.0
    fetch_timeout_seconds: float = 20.0
    message_pause_seconds: float = 0.1
    channel_pause_seconds: float = 3.0


@dataclass(frozen=True)
class DedupConfig:
    """Deduplication settings for the core pipeline.

    ``preserve_chars`` lists the punctuation kept during normalization. The
    default keeps only ``@+#`` (handles, phone prefixes, hashtags), so
    postings differing in ``.,!?():-`` still collide. Set it to ``.,!?():-@``
    to keep sentence punctuation significant.
    """

    retention_days: int = 7
    preserve_chars: str = "@+#"
    excerpt_chars: int = 500


@dataclass(frozen=True)
class DeliveryConfig:
    """Notification rendering and pacing settings."""

    pause_seconds: float = 0.05
    body_chars: int = 3500
    disable_link_preview: bool = True


@dataclass(frozen=True)
class SchedulerConfig:
    period_minutes: float = 30.0
    run_on_start: bool = True
    sweep_hours: float = 24.0
