"""Helpers for working with channel handles and posting links."""

from __future__ import annotations

from typing import Union

LINK_PREFIXES = ("https://t.me/", "http://t.me/", "t.me/")


def normalize_handle(handle: str) -> str:
    """Return the bare public username for ``@name``, ``name`` or a t.me link."""

    value = handle.strip()
    for prefix in LINK_PREFIXES:
        if value.lower().startswith(prefix):
            value = value[len(prefix):]
            break
    value = value.split("/", 1)[0].split("?", 1)[0]
    return value.lstrip("@")


def build_source_url(handle: str, message_id: Union[int, str]) -> str:
    """Deterministic public link to one message of a channel."""

    return f"https://t.me/{normalize_handle(handle)}/{message_id}"
