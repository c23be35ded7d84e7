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
Twilio SMS Channel

Sends reminders as SMS through the Twilio Messages REST API.
"""

import logging
from typing import Optional

import httpx

from .base import (
    ChannelConfigError,
    InvalidDestinationError,
    NotificationChannel,
    ProviderRejectedError,
    TransientDeliveryError,
)

logger = logging.getLogger("wayfourth.notifications.twilio")

# Twilio error codes that mean the 'To' number itself is unusable
INVALID_DESTINATION_CODES = {21211, 21214, 21217, 21608, 21610, 21614}


class TwilioSMSChannel(NotificationChannel):
    """Client for the Twilio Messages API"""

    name = "twilio"

    def __init__(
        self,
        account_sid: Optional[str],
        auth_token: Optional[str],
        from_number: Optional[str],
        api_url: str = "https://api.twilio.com/2010-04-01",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not (account_sid and auth_token and from_number):
            raise ChannelConfigError(
                "TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN and TWILIO_PHONE_NUMBER are required"
            )

        self.account_sid = account_sid
        self.from_number = from_number
        self.timeout = timeout

        self._client = httpx.AsyncClient(
            base_url=api_url,
            auth=(account_sid, auth_token),
            headers={"Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        """Close the HTTP client"""
        await self._client.aclose()

    async def send(self, destination: str, body: str) -> None:
        """
        Send an SMS.

        Args:
            destination: Recipient phone number (E.164, e.g. +15551234567)
            body: Message text

        Raises:
            InvalidDestinationError: Twilio rejected the recipient number
            ProviderRejectedError: Twilio rejected the request
            TransientDeliveryError: Network error or Twilio 5xx
        """
        if not destination or not destination.strip():
            raise InvalidDestinationError("Empty destination number")

        try:
            response = await self._client.post(
                f"/Accounts/{self.account_sid}/Messages.json",
                data={
                    "To": destination.strip(),
                    "From": self.from_number,
                    "Body": body,
                },
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            code, message = _parse_error(e.response)
            if status >= 500 or status == 429:
                raise TransientDeliveryError(f"Twilio HTTP {status}: {message}") from e
            if code in INVALID_DESTINATION_CODES:
                raise InvalidDestinationError(f"Twilio error {code}: {message}") from e
            raise ProviderRejectedError(f"Twilio HTTP {status} (code {code}): {message}") from e
        except httpx.HTTPError as e:
            raise TransientDeliveryError(f"Twilio request failed: {e}") from e

        sid = _parse_sid(response)
        logger.info(f"Queued SMS {sid} via Twilio")


def _parse_sid(response: httpx.Response) -> str:
    """Message SID from an accepted response; the send has succeeded regardless."""
    try:
        return response.json().get("sid", "")
    except Exception:
        logger.warning("Twilio accepted the message but returned an unreadable body")
        return ""


def _parse_error(response: httpx.Response) -> tuple[Optional[int], str]:
    """Extract Twilio's error code and message from an error response."""
    try:
        data = response.json()
        return data.get("code"), data.get("message", "")
    except Exception:
        return None, response.text[:200]
