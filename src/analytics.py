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
Lightweight analytics tracking for the reminder sweep.

Usage:
    tracker = AnalyticsTracker(db_pool)

    # Synchronous (fire-and-forget, uses background task)
    tracker.track("reminder_sent", "reminder", user_id=owner_id, properties={"channel": "twilio"})

    # Async (when you need to await completion)
    await tracker.track_async("sweep_completed", "sweep", properties={"processed": 3})
"""

import asyncio
import json
import logging
import os
from typing import Any, Optional

import asyncpg

logger = logging.getLogger("wayfourth.analytics")


def analytics_enabled_from_env() -> bool:
    return os.getenv("ANALYTICS_ENABLED", "true").lower() == "true"


class AnalyticsTracker:
    """Records events into the analytics_events table. Never raises."""

    def __init__(self, db_pool: Optional[asyncpg.Pool], enabled: bool = True):
        self.db = db_pool
        self.enabled = enabled and db_pool is not None
        self._tasks: set[asyncio.Task] = set()

    async def track_async(
        self,
        event_name: str,
        event_category: str,
        user_id: Optional[str] = None,
        properties: Optional[dict[str, Any]] = None,
    ) -> bool:
        """
        Track an event asynchronously.

        Args:
            event_name: Specific event identifier (e.g., "reminder_sent")
            event_category: One of: reminder, sweep, error
            user_id: Reminder owner ID (optional)
            properties: Additional event data as key-value pairs

        Returns:
            True if event was recorded, False otherwise
        """
        if not self.enabled:
            return False

        try:
            await self.db.execute(
                """
                INSERT INTO analytics_events
                    (event_name, event_category, user_id, properties)
                VALUES ($1, $2, $3, $4)
                """,
                event_name,
                event_category,
                user_id,
                json.dumps(properties or {}),
            )
            return True
        except Exception as e:
            logger.debug(f"Analytics tracking failed: {e}")
            return False

    def track(
        self,
        event_name: str,
        event_category: str,
        user_id: Optional[str] = None,
        properties: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        Track an event (fire-and-forget).

        Creates a background task to record the event without blocking.
        Safe to call from sync or async contexts.
        """
        if not self.enabled:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No running loop - skip tracking
            return

        task = loop.create_task(
            self.track_async(event_name, event_category, user_id, properties)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def flush(self) -> None:
        """Wait for pending fire-and-forget events. Call before shutdown."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
