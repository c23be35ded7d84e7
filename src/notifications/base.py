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
Notification Channel Interface

A channel delivers one message body to one destination. Failures are
raised as DeliveryError subclasses so callers can keep the reason.
"""

from abc import ABC, abstractmethod


class DeliveryError(Exception):
    """Base class for failed deliveries."""

    pass


class InvalidDestinationError(DeliveryError):
    """The destination address or number cannot be delivered to."""

    pass


class ProviderRejectedError(DeliveryError):
    """The provider refused the message (bad credentials, blocked sender, ...)."""

    pass


class TransientDeliveryError(DeliveryError):
    """Network failure, provider outage, or timeout."""

    pass


class ChannelConfigError(Exception):
    """Raised when a channel is missing required configuration."""

    pass


class NotificationChannel(ABC):
    """Delivers reminder messages through an external provider."""

    name = "channel"

    @abstractmethod
    async def send(self, destination: str, body: str) -> None:
        """
        Deliver `body` to `destination`.

        Raises:
            DeliveryError: If the provider did not accept the message
        """

    async def close(self) -> None:
        """Release any provider connections."""
        return None
