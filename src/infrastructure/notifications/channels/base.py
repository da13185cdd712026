# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Shared types for transactional email delivery.

A channel never raises on a delivery problem. Whatever happens, send()
hands back a ChannelResult, and the caller decides whether the outcome
matters.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from src.utils.datetime import utc_now


class ChannelType(str, Enum):
    RESEND = "resend"
    SMTP = "smtp"
    DISABLED = "disabled"


class DeliveryStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class EmailTag:
    """Provider-side tag (Resend analytics, X-Tag-* header over SMTP)."""

    name: str
    value: str


@dataclass
class EmailMessage:
    to: list[str]
    subject: str
    html: str
    text: str = ""
    tags: list[EmailTag] = field(default_factory=list)


@dataclass
class ChannelResult:
    """Outcome of one send attempt.

    error_message carries the failure text for FAILED and the reason for
    SKIPPED. metadata holds channel specifics such as the HTTP status.
    """

    channel: ChannelType
    status: DeliveryStatus
    message_id: str | None = None
    error_message: str | None = None
    sent_at: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_sent(self) -> bool:
        return self.status is DeliveryStatus.SENT


class BaseEmailChannel(ABC):
    """A way of getting an EmailMessage to a mailbox."""

    def __init__(self) -> None:
        self.logger = logging.getLogger(f"{__name__}.{type(self).__name__}")

    @property
    @abstractmethod
    def channel_type(self) -> ChannelType: ...

    @abstractmethod
    async def send(self, message: EmailMessage) -> ChannelResult:
        """Attempt delivery. Must not raise for provider or network errors."""

    async def close(self) -> None:
        """Release held connections. Nothing to do by default."""

    def _result(self, status: DeliveryStatus, **kwargs: Any) -> ChannelResult:
        return ChannelResult(channel=self.channel_type, status=status, sent_at=utc_now(), **kwargs)

    def sent(self, message_id: str | None = None, metadata: dict[str, Any] | None = None) -> ChannelResult:
        return self._result(DeliveryStatus.SENT, message_id=message_id, metadata=metadata or {})

    def failed(self, error_message: str, metadata: dict[str, Any] | None = None) -> ChannelResult:
        return self._result(DeliveryStatus.FAILED, error_message=error_message, metadata=metadata or {})

    def skipped(self, reason: str) -> ChannelResult:
        return self._result(DeliveryStatus.SKIPPED, error_message=reason)


class DisabledEmailChannel(BaseEmailChannel):
    """Selected when EMAIL_PROVIDER is unset or "disabled". Every send is skipped."""

    def __init__(self, reason: str = "Email delivery disabled") -> None:
        super().__init__()
        self._reason = reason

    @property
    def channel_type(self) -> ChannelType:
        return ChannelType.DISABLED

    async def send(self, message: EmailMessage) -> ChannelResult:
        self.logger.info("Skipping email '%s': %s", message.subject, self._reason)
        return self.skipped(self._reason)
