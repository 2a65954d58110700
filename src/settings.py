"""Static configuration for jobscope.

All user-editable settings (channels, recipients, timing, dedup,
notifications) live in a single JSON file for quick edits without touching
Python. Secrets stay in the environment (.env).
"""

import json
import os

from core.config import DedupConfig, DeliveryConfig, ScanConfig, SchedulerConfig, SessionConfig

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# Where to store the SQLite database (ledger and channel scan state).
DB_PATH = os.getenv("JOBSCOPE_DB", os.path.join(PROJECT_ROOT, "jobscope.db"))

# Settings are loaded from config.json to keep everything in one place.
CONFIG_PATH = os.getenv("JOBSCOPE_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _ms(section: dict, key: str, default: float) -> float:
    return float(section.get(key, default)) / 1000.0


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Source session health and reconnect policy.
_session = _CONFIG.get("session", {})
SESSION = SessionConfig(
    health_ttl_seconds=float(_session.get("health_ttl_seconds", 300)),
    probe_timeout_seconds=float(_session.get("probe_timeout_seconds", 10)),
    connect_timeout_seconds=float(_session.get("connect_timeout_seconds", 30)),
    max_attempts=int(_session.get("max_attempts", 3)),
    backoff_base_seconds=_ms(_session, "backoff_base_ms", 1000),
    backoff_max_seconds=_ms(_session, "backoff_max_ms", 10000),
)

# Scan window and pacing. lookback_minutes is applied client-side after a
# fetch bounded by message_limit.
_scan = _CONFIG.get("scan", {})
SCAN = ScanConfig(
    message_limit=int(_scan.get("message_limit", 100)),
    lookback_minutes=float(_scan.get("lookback_minutes", 30)),
    resolve_timeout_seconds=float(_scan.get("resolve_timeout_seconds", 15)),
    fetch_timeout_seconds=float(_scan.get("fetch_timeout_seconds", 20)),
    message_pause_seconds=_ms(_scan, "message_pause_ms", 100),
    channel_pause_seconds=_ms(_scan, "channel_pause_ms", 3000),
)

# Deduplication controls to reduce notification spam for repeated content.
# - retention_days: sweep horizon, by last sighting
# - preserve_chars: punctuation kept during normalization
# - excerpt_chars: text stored next to each hash for diagnostics
_dedup = _CONFIG.get("dedup", {})
DEDUP = DedupConfig(
    retention_days=int(_dedup.get("retention_days", 7)),
    preserve_chars=str(_dedup.get("preserve_chars", "@+#")),
    excerpt_chars=int(_dedup.get("excerpt_chars", 500)),
)

_notifications = _CONFIG.get("notifications", {})
DELIVERY = DeliveryConfig(
    pause_seconds=_ms(_notifications, "pause_ms", 50),
    body_chars=int(_notifications.get("body_chars", 3500)),
    disable_link_preview=bool(_notifications.get("disable_link_preview", True)),
)

_scheduler = _CONFIG.get("scheduler", {})
SCHEDULER = SchedulerConfig(
    period_minutes=float(_scheduler.get("period_minutes", 30)),
    run_on_start=bool(_scheduler.get("run_on_start", True)),
    sweep_hours=float(_scheduler.get("sweep_hours", 24)),
)

# Catalog entries; see config.example.json for the expected fields.
CHANNELS = _CONFIG.get("channels", [])
RECIPIENTS = _CONFIG.get("recipients", [])

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
