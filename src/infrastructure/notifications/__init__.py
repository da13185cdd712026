# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Notification infrastructure.

Delivery channels for the transactional email sent to parents when a
family registration is approved. Composing the email is the concern of
the family approval domain; this package only delivers it.
"""

from src.infrastructure.notifications.channels import (
    BaseEmailChannel,
    ChannelResult,
    ChannelType,
    DeliveryStatus,
    DisabledEmailChannel,
    EmailMessage,
    EmailTag,
    ResendEmailChannel,
    SmtpEmailChannel,
    create_email_channel,
)

__all__ = [
    "BaseEmailChannel",
    "ChannelResult",
    "ChannelType",
    "DeliveryStatus",
    "DisabledEmailChannel",
    "EmailMessage",
    "EmailTag",
    "ResendEmailChannel",
    "SmtpEmailChannel",
    "create_email_channel",
]
