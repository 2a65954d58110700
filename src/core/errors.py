"""Exceptions shared by the core pipeline and its adapters."""

from __future__ import annotations

from typing import Optional


class JobscopeError(Exception):
    """Base class for errors raised by jobscope."""


class SourceConnectionError(JobscopeError):
    """The source connection is unusable (timeout, migration, lost auth).

    Raising this from a scan makes the cycle invalidate the session and
    reconnect before the next channel.
    """


class ChannelScanError(JobscopeError):
    """A single channel could not be scanned; other channels are unaffected."""


class DuplicateEntryError(JobscopeError):
    """A ledger insert hit an existing content hash."""


class DeliveryError(JobscopeError):
    """Sending a notification to one recipient failed."""

    def __init__(
        self,
        code: Optional[int],
        description: str,
        retry_after: Optional[int] = None,
    ) -> None:
        super().__init__(f"{code}: {description}" if code else description)
        self.code = code
        self.description = description
        self.retry_after = retry_after

    @property
    def recipient_unreachable(self) -> bool:
        """True when the recipient blocked the bot or no longer exists."""

        if self.code == 403:
            return True
        return self.code == 400 and "chat not found" in self.description.lower()
