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
Notification Channels Package

One NotificationChannel interface with a concrete backend per deployment:
- Twilio direct SMS
- Email-to-SMS carrier gateway
"""

from typing import Optional

from .base import (
    ChannelConfigError,
    DeliveryError,
    InvalidDestinationError,
    NotificationChannel,
    ProviderRejectedError,
    TransientDeliveryError,
)
from .config import BACKEND_EMAIL_GATEWAY, BACKEND_TWILIO, NotificationConfig
from .email_gateway import EmailGatewayChannel, gateway_address
from .twilio_sms import TwilioSMSChannel

# Fraction of the sweep delivery timeout a provider call may use
PROVIDER_TIMEOUT_SHARE = 0.75


def build_channel(
    config: NotificationConfig, delivery_timeout: Optional[float] = None
) -> NotificationChannel:
    """
    Construct the channel selected by `config.backend`.

    When `delivery_timeout` is given the provider client timeout is capped
    below it, so a slow provider fails inside the channel with a
    TransientDeliveryError instead of being cancelled by the sweep.

    Raises:
        ChannelConfigError: Unknown backend or missing credentials
    """
    timeout = config.provider_timeout_seconds
    if delivery_timeout:
        timeout = min(timeout, delivery_timeout * PROVIDER_TIMEOUT_SHARE)

    if config.backend == BACKEND_TWILIO:
        return TwilioSMSChannel(
            account_sid=config.twilio_account_sid,
            auth_token=config.twilio_auth_token,
            from_number=config.twilio_phone_number,
            api_url=config.twilio_api_url,
            timeout=timeout,
        )
    if config.backend == BACKEND_EMAIL_GATEWAY:
        return EmailGatewayChannel(
            smtp_host=config.smtp_host,
            smtp_port=config.smtp_port,
            username=config.email_user,
            password=config.email_password,
            gateway=config.sms_gateway,
            subject=config.email_subject,
            timeout=timeout,
        )
    raise ChannelConfigError(f"Unknown NOTIFICATION_BACKEND '{config.backend}'")


__all__ = [
    "ChannelConfigError",
    "DeliveryError",
    "InvalidDestinationError",
    "NotificationChannel",
    "ProviderRejectedError",
    "TransientDeliveryError",
    "NotificationConfig",
    "BACKEND_TWILIO",
    "BACKEND_EMAIL_GATEWAY",
    "EmailGatewayChannel",
    "TwilioSMSChannel",
    "gateway_address",
    "build_channel",
]
