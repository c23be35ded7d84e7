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
Sweep Configuration

Tunable parameters for the due-reminder sweep and its HTTP endpoint.
Values can be overridden via environment variables.
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class SweepConfig:
    """Configuration for the reminder sweep."""

    # Per-delivery timeout; a timeout counts as a failed delivery
    delivery_timeout_seconds: float = 20.0

    # Sweep sizing
    batch_limit: int = 100
    max_concurrency: int = 10

    # Claims older than this can be expired by an operator
    claim_expiry_minutes: int = 15

    # Endpoint
    cron_secret: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = 8080

    @classmethod
    def from_env(cls) -> "SweepConfig":
        """Create config from environment variables with defaults."""
        return cls(
            delivery_timeout_seconds=float(os.getenv("DELIVERY_TIMEOUT_SECONDS", "20")),
            batch_limit=int(os.getenv("SWEEP_BATCH_LIMIT", "100")),
            max_concurrency=int(os.getenv("SWEEP_MAX_CONCURRENCY", "10")),
            claim_expiry_minutes=int(os.getenv("CLAIM_EXPIRY_MINUTES", "15")),
            cron_secret=os.getenv("CRON_SECRET") or None,
            host=os.getenv("SWEEP_HOST", "0.0.0.0"),
            port=int(os.getenv("SWEEP_PORT", "8080")),
        )
