# Wayfourth - Reminder Sweep Service
# Copyright (c) 2025-2026 Slash Daemon slashdaemon@protonmail.com
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, version 3 of the License.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.
#
# Commercial licensing: [slashdaemon@protonmail.com]

"""
Email-to-SMS Gateway Channel

Delivers reminders by mailing the carrier's email-to-SMS gateway
(e.g. 5551234567@vtext.com for Verizon).
"""

import asyncio
import logging
import re
import smtplib
from email.message import EmailMessage
from typing import Optional

from .base import (
    ChannelConfigError,
    InvalidDestinationError,
    NotificationChannel,
    ProviderRejectedError,
    TransientDeliveryError,
)

logger = logging.getLogger("wayfourth.notifications.email_gateway")


def gateway_address(destination: str, gateway: str) -> str:
    """
    Build the gateway email address for a phone number.

    Args:
        destination: Phone number in any format
        gateway: Carrier gateway domain

    Returns:
        "<digits>@<gateway>"

    Raises:
        InvalidDestinationError: If the number has no digits
    """
    digits = re.sub(r"\D", "", destination or "")
    if not digits:
        raise InvalidDestinationError(f"No digits in destination '{destination}'")
    return f"{digits}@{gateway}"


class EmailGatewayChannel(NotificationChannel):
    """Sends reminders over SMTP to an email-to-SMS gateway."""

    name = "email_gateway"

    def __init__(
        self,
        smtp_host: str,
        smtp_port: int,
        username: Optional[str],
        password: Optional[str],
        gateway: Optional[str],
        subject: str = "Wayfourth Reminder",
        timeout: float = 15.0,
    ):
        if not (username and password and gateway):
            raise ChannelConfigError(
                "EMAIL_USER, EMAIL_PASSWORD and SMS_GATEWAY are required"
            )

        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.username = username
        self.password = password
        self.gateway = gateway.strip().lstrip("@")
        self.subject = subject
        self.timeout = timeout

    def _build_message(self, recipient: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.username
        message["To"] = recipient
        message["Subject"] = self.subject
        message.set_content(body)
        return message

    def _deliver(self, message: EmailMessage) -> None:
        # Blocking; run in a worker thread
        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as smtp:
            smtp.starttls()
            smtp.login(self.username, self.password)
            smtp.send_message(message)

    async def send(self, destination: str, body: str) -> None:
        """
        Mail `body` to the gateway address for `destination`.

        Raises:
            InvalidDestinationError: Bad number or recipient refused
            ProviderRejectedError: Login or message rejected by the SMTP server
            TransientDeliveryError: Connection failure
        """
        recipient = gateway_address(destination, self.gateway)
        message = self._build_message(recipient, body)

        try:
            await asyncio.to_thread(self._deliver, message)
        except smtplib.SMTPRecipientsRefused as e:
            raise InvalidDestinationError(f"Gateway refused {recipient}") from e
        except smtplib.SMTPServerDisconnected as e:
            raise TransientDeliveryError(f"SMTP server disconnected: {e}") from e
        except smtplib.SMTPException as e:
            raise ProviderRejectedError(f"SMTP error: {e}") from e
        except OSError as e:
            raise TransientDeliveryError(f"SMTP connection failed: {e}") from e

        logger.info(f"Mailed reminder to gateway {self.gateway}")
