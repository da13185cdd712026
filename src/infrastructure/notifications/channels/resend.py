# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Email channel using the Resend HTTP API.

POSTs {from, to, subject, html, text, tags} to the configured endpoint
with a bearer API key. A missing key disables the channel (skipped
result) instead of failing.
"""

import httpx

from src.core.config.settings import EmailSettings
from src.infrastructure.notifications.channels.base import (
    BaseEmailChannel,
    ChannelResult,
    ChannelType,
    EmailMessage,
)


class ResendEmailChannel(BaseEmailChannel):
    """Email channel backed by the Resend API."""

    def __init__(
        self,
        settings: EmailSettings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the channel.

        Args:
            settings: Email settings with the Resend key and sender.
            client: Optional preconfigured HTTP client (used by tests).
        """
        super().__init__()
        self._settings = settings
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=settings.timeout)

    @property
    def channel_type(self) -> ChannelType:
        """Return the channel type."""
        return ChannelType.RESEND

    async def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def send(self, message: EmailMessage) -> ChannelResult:
        """Send email through the Resend API."""
        if self._settings.resend_api_key is None:
            return self.skipped("Resend API key not configured")

        if not message.to:
            return self.skipped("No recipient email address")

        payload = {
            "from": f"{self._settings.from_name} <{self._settings.from_email}>",
            "to": message.to,
            "subject": message.subject,
            "html": message.html,
            "tags": [{"name": t.name, "value": t.value} for t in message.tags],
        }
        if message.text:
            payload["text"] = message.text

        try:
            response = await self._client.post(
                self._settings.resend_api_url,
                json=payload,
                headers={
                    "Authorization": f"Bearer {self._settings.resend_api_key.get_secret_value()}",
                    "Content-Type": "application/json",
                },
            )
        except httpx.RequestError as e:
            self.logger.error("Resend request failed: %s", e)
            return self.failed(
                f"Resend not reachable: {e}",
                metadata={"recipients": message.to},
            )

        if not response.is_success:
            self.logger.error(
                "Resend rejected email to %s (%d): %s",
                ", ".join(message.to),
                response.status_code,
                response.text,
            )
            return self.failed(
                f"Resend error {response.status_code}: {response.text}",
                metadata={"recipients": message.to, "status_code": response.status_code},
            )

        message_id = None
        try:
            message_id = response.json().get("id")
        except ValueError:
            self.logger.warning("Resend response had no JSON body")

        self.logger.info("Email sent to %s: %s", ", ".join(message.to), message.subject)
        return self.sent(
            message_id=message_id,
            metadata={"recipients": message.to},
        )
