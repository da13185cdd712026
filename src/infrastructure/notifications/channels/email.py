# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SMTP delivery through aiosmtplib.

Messages go out as multipart/alternative with the HTML part last. Tags
travel as X-Tag-<name> headers.
"""

from email.message import EmailMessage as MimeMessage
from email.utils import formataddr, make_msgid

import aiosmtplib

from src.core.config.settings import EmailSettings
from src.infrastructure.notifications.channels.base import (
    BaseEmailChannel,
    ChannelResult,
    ChannelType,
    EmailMessage,
)


class SmtpEmailChannel(BaseEmailChannel):
    def __init__(self, settings: EmailSettings) -> None:
        super().__init__()
        self._settings = settings

    @property
    def channel_type(self) -> ChannelType:
        return ChannelType.SMTP

    async def send(self, message: EmailMessage) -> ChannelResult:
        settings = self._settings
        if not settings.smtp_host:
            return self.skipped("SMTP host not configured")
        if not message.to:
            return self.skipped("No recipient email address")

        mime = self._to_mime(message)
        recipients = {"recipients": message.to}
        try:
            await aiosmtplib.send(
                mime,
                hostname=settings.smtp_host,
                port=settings.smtp_port,
                username=settings.smtp_username,
                password=settings.smtp_password.get_secret_value() if settings.smtp_password else None,
                start_tls=settings.smtp_use_tls,
                timeout=settings.timeout,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            self.logger.error("SMTP delivery to %s failed: %s", ", ".join(message.to), e, exc_info=True)
            return self.failed(f"SMTP error: {e}", metadata=recipients)

        self.logger.info("Email '%s' sent to %s over SMTP", message.subject, ", ".join(message.to))
        return self.sent(message_id=mime["Message-ID"], metadata=recipients)

    def _to_mime(self, message: EmailMessage) -> MimeMessage:
        mime = MimeMessage()
        mime["From"] = formataddr((self._settings.from_name, self._settings.from_email))
        mime["To"] = ", ".join(message.to)
        mime["Subject"] = message.subject
        mime["Message-ID"] = make_msgid()
        for tag in message.tags:
            mime[f"X-Tag-{tag.name}"] = tag.value

        if message.text:
            mime.set_content(message.text)
            mime.add_alternative(message.html, subtype="html")
        else:
            mime.set_content(message.html, subtype="html")
        return mime
