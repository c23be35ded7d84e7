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
Notification Channel Configuration

Provider credentials for the delivery backends. Exactly one backend is
active per deployment, selected by NOTIFICATION_BACKEND.
"""

import os
from dataclasses import dataclass
from typing import Optional

BACKEND_TWILIO = "twilio"
BACKEND_EMAIL_GATEWAY = "email_gateway"


@dataclass
class NotificationConfig:
    """Configuration for the notification channel."""

    backend: str = BACKEND_TWILIO

    # Twilio (direct SMS)
    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None
    twilio_phone_number: Optional[str] = None
    twilio_api_url: str = "https://api.twilio.com/2010-04-01"

    # Email-to-SMS gateway
    email_user: Optional[str] = None
    email_password: Optional[str] = None
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    sms_gateway: Optional[str] = None  # e.g. "vtext.com"
    email_subject: str = "Wayfourth Reminder"  # Most gateways drop the subject

    # Provider client timeout; kept below the sweep delivery timeout
    provider_timeout_seconds: float = 15.0

    @classmethod
    def from_env(cls) -> "NotificationConfig":
        """Create config from environment variables with defaults."""
        return cls(
            backend=os.getenv("NOTIFICATION_BACKEND", BACKEND_TWILIO).strip().lower(),
            twilio_account_sid=os.getenv("TWILIO_ACCOUNT_SID"),
            twilio_auth_token=os.getenv("TWILIO_AUTH_TOKEN"),
            twilio_phone_number=os.getenv("TWILIO_PHONE_NUMBER"),
            twilio_api_url=os.getenv(
                "TWILIO_API_URL", "https://api.twilio.com/2010-04-01"
            ),
            email_user=os.getenv("EMAIL_USER"),
            email_password=os.getenv("EMAIL_PASSWORD"),
            smtp_host=os.getenv("SMTP_HOST", "smtp.gmail.com"),
            smtp_port=int(os.getenv("SMTP_PORT", "587")),
            sms_gateway=os.getenv("SMS_GATEWAY"),
            email_subject=os.getenv("EMAIL_SUBJECT", "Wayfourth Reminder"),
            provider_timeout_seconds=float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "15")),
        )
