# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Parent notification for approved family registrations.

NotificationDispatcher composes the approval email (usernames, initial
passwords, next steps and login link) and hands it to an email channel.
It never raises: delivery problems are logged, counted and returned as a
FAILED channel result. Nothing here can change an approval's status or
touch provisioned accounts.
"""

import re
from html import escape

from src.core.config.settings import EmailSettings
from src.infrastructure.notifications.channels import (
    BaseEmailChannel,
    ChannelResult,
    DeliveryStatus,
    EmailMessage,
    EmailTag,
)
from src.models.family_approval import ApprovalResult, ParentContact, ProvisionedAccount
from src.utils.logging import get_logger

logger = get_logger(__name__)


def organization_tag(organization_name: str) -> str:
    """Tag value for an organization: lowercase, non-alphanumerics as dashes."""
    return re.sub(r"[^a-z0-9]+", "-", organization_name.lower()).strip("-") or "academy"


def _student_block(account: ProvisionedAccount) -> str:
    return (
        '<div style="background-color: #f3f4f6; padding: 16px; border-radius: 8px; margin-bottom: 12px;">'
        f"<strong>{escape(account.child_name)}</strong><br>"
        f"Username: <code>{escape(account.username)}</code><br>"
        f"Password: <code>{escape(account.initial_secret.get_secret_value())}</code>"
        "</div>"
    )


def render_approval_html(
    parent_name: str,
    organization_name: str,
    accounts: list[ProvisionedAccount],
    login_url: str,
) -> str:
    """Render the HTML body of the approval email."""
    students = "\n".join(_student_block(a) for a in accounts)
    return f"""<!DOCTYPE html>
<html>
  <body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; color: #374151;">
    <div style="max-width: 600px; margin: 0 auto; padding: 24px;">
      <h1 style="color: #1f2937;">Welcome to {escape(organization_name)}!</h1>
      <p>Hi {escape(parent_name)},</p>
      <p>
        Your family registration with <strong style="color: #1f2937;">{escape(organization_name)}</strong>
        has been approved! Your children's accounts are now active.
      </p>
      <h2 style="color: #1f2937;">Student accounts</h2>
      {students}
      <h2 style="color: #1f2937;">Next steps</h2>
      <ol>
        <li>Download the app and open the login screen.</li>
        <li>Your children can now log in with their usernames and passwords above.</li>
        <li>Change the password after the first login.</li>
      </ol>
      <p><a href="{escape(login_url, quote=True)}" style="color: #2563eb;">Log in</a></p>
      <p style="color: #6b7280; font-size: 12px;">Keep this email safe. It contains login details.</p>
    </div>
  </body>
</html>"""


def render_approval_text(
    parent_name: str,
    organization_name: str,
    accounts: list[ProvisionedAccount],
    login_url: str,
) -> str:
    """Render the plain text body of the approval email."""
    lines = [
        f"Hi {parent_name},",
        "",
        f"Your family registration with {organization_name} has been approved!",
        "Your children's accounts are now active.",
        "",
    ]
    for account in accounts:
        lines.append(
            f"- {account.child_name}: username {account.username}, "
            f"password {account.initial_secret.get_secret_value()}"
        )
    lines.extend(["", f"Log in at {login_url}"])
    return "\n".join(lines)


class NotificationDispatcher:
    """Sends the approval outcome to the parent.

    Attributes:
        delivered: Number of emails accepted by the channel.
        failed: Number of emails that could not be delivered.
    """

    def __init__(self, channel: BaseEmailChannel, settings: EmailSettings) -> None:
        self._channel = channel
        self._settings = settings
        self.delivered = 0
        self.failed = 0

    def build_message(
        self,
        parent: ParentContact,
        organization_name: str,
        result: ApprovalResult,
    ) -> EmailMessage:
        """Compose the approval email for a saga result."""
        accounts = result.provisioned
        return EmailMessage(
            to=[parent.email],
            subject=f"Family Registration Approved - {organization_name}",
            html=render_approval_html(parent.name, organization_name, accounts, self._settings.login_url),
            text=render_approval_text(parent.name, organization_name, accounts, self._settings.login_url),
            tags=[
                EmailTag(name="type", value="family-approval"),
                EmailTag(name="organization", value=organization_tag(organization_name)),
            ],
        )

    async def send(
        self,
        parent: ParentContact,
        organization_name: str,
        result: ApprovalResult,
    ) -> ChannelResult:
        """Email the outcome to the parent. Never raises.

        No email is sent when no account was provisioned; the result is
        then SKIPPED.
        """
        if not result.provisioned:
            logger.info("approval_email_skipped", request_id=result.request_id, reason="no accounts")
            return self._channel.skipped("No accounts provisioned")

        message = self.build_message(parent, organization_name, result)

        try:
            outcome = await self._channel.send(message)
        except Exception as e:
            logger.exception("approval_email_crashed", request_id=result.request_id)
            outcome = self._channel.failed(str(e))

        if outcome.status == DeliveryStatus.SENT:
            self.delivered += 1
            logger.info(
                "approval_email_sent",
                request_id=result.request_id,
                message_id=outcome.message_id,
                accounts=len(result.provisioned),
            )
        elif outcome.status == DeliveryStatus.FAILED:
            self.failed += 1
            logger.error(
                "approval_email_failed",
                request_id=result.request_id,
                error=outcome.error_message,
            )
        else:
            logger.info(
                "approval_email_skipped",
                request_id=result.request_id,
                reason=outcome.error_message,
            )

        return outcome
