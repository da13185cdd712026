# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Email channels for transactional notifications.

This package provides channel implementations for delivering email:

- ResendEmailChannel: Sends email via the Resend HTTP API
- SmtpEmailChannel: Sends email via SMTP
- DisabledEmailChannel: Records every send as skipped

Usage:
    from src.infrastructure.notifications.channels import (
        EmailMessage,
        create_email_channel,
    )

    channel = create_email_channel(settings.email)
    result = await channel.send(
        EmailMessage(to=["parent@example.com"], subject="Hi", html="<p>Hi</p>")
    )
"""

from src.core.config.settings import EmailSettings
from src.infrastructure.notifications.channels.base import (
    BaseEmailChannel,
    ChannelResult,
    ChannelType,
    DeliveryStatus,
    DisabledEmailChannel,
    EmailMessage,
    EmailTag,
)
from src.infrastructure.notifications.channels.email import SmtpEmailChannel
from src.infrastructure.notifications.channels.resend import ResendEmailChannel


def create_email_channel(settings: EmailSettings) -> BaseEmailChannel:
    """Create the email channel selected by settings.provider.

    Args:
        settings: Email settings.

    Returns:
        Channel instance. The caller owns it and should close() it.
    """
    if settings.provider == ChannelType.RESEND.value:
        return ResendEmailChannel(settings)
    if settings.provider == ChannelType.SMTP.value:
        return SmtpEmailChannel(settings)
    return DisabledEmailChannel()


__all__ = [
    # Base types
    "BaseEmailChannel",
    "ChannelResult",
    "ChannelType",
    "DeliveryStatus",
    "EmailMessage",
    "EmailTag",
    # Channels
    "DisabledEmailChannel",
    "ResendEmailChannel",
    "SmtpEmailChannel",
    # Factory
    "create_email_channel",
]
