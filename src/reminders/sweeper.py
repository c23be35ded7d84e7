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
Reminder Sweeper Module

One sweep delivers every pending reminder that is due and records a terminal
status for each. Sweeps are invoked by an external scheduler (see sweep_api);
nothing is kept in memory between invocations.

Each due reminder is claimed (pending -> in_progress) before delivery, so two
overlapping sweeps never deliver the same reminder.
"""

import asyncio
import logging
from contextlib import nullcontext
from datetime import datetime
from typing import Optional

from analytics import AnalyticsTracker
from notifications import DeliveryError, NotificationChannel

from .config import SweepConfig
from .models import Reminder, ReminderStatus, SweepOutcome, SweepResult
from .store import ReminderStore, ReminderStoreError
from .time_parser import ensure_utc

logger = logging.getLogger("wayfourth.reminders.sweeper")


class ReminderSweeper:
    """
    Delivers due reminders through a notification channel.

    Deliveries within one sweep run concurrently; a failure delivering one
    reminder never affects the others.
    """

    def __init__(
        self,
        store: ReminderStore,
        channel: NotificationChannel,
        config: Optional[SweepConfig] = None,
        analytics: Optional[AnalyticsTracker] = None,
    ):
        """
        Initialize the sweeper.

        Args:
            store: Reminder store
            channel: Delivery backend
            config: Sweep tuning (defaults to SweepConfig())
            analytics: Optional event tracker
        """
        self.store = store
        self.channel = channel
        self.config = config or SweepConfig()
        self.analytics = analytics

    async def run_sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """
        Deliver every pending reminder due at `now`.

        Args:
            now: Reference time (defaults to the current UTC time)

        Returns:
            SweepResult with one outcome per reminder this sweep handled

        Raises:
            ReminderStoreError: If the due reminders cannot be fetched
        """
        now = ensure_utc(now)

        try:
            due = await self.store.get_due_reminders(now)
        except ReminderStoreError as e:
            logger.error(f"Sweep aborted, could not fetch due reminders: {e}")
            self._track("sweep_error", "error", properties={"error_message": str(e)[:200]})
            raise

        if not due:
            logger.debug("No reminders due")
            return SweepResult()

        logger.info(f"Processing {len(due)} due reminder(s)")

        limit = self.config.max_concurrency
        semaphore = asyncio.Semaphore(limit) if limit and limit > 0 else None
        outcomes = await asyncio.gather(
            *(self._process(reminder, semaphore) for reminder in due)
        )

        result = SweepResult()
        for outcome in outcomes:
            if outcome is None:
                result.skipped += 1
            else:
                result.details.append(outcome)

        logger.info(
            f"Sweep finished: processed={result.processed} sent={result.sent} "
            f"failed={result.failed} skipped={result.skipped}"
        )
        self._track(
            "sweep_completed",
            "sweep",
            properties={
                "processed": result.processed,
                "sent": result.sent,
                "failed": result.failed,
                "skipped": result.skipped,
                "channel": self.channel.name,
            },
        )
        return result

    async def _process(
        self, reminder: Reminder, semaphore: Optional[asyncio.Semaphore]
    ) -> Optional[SweepOutcome]:
        async with semaphore or nullcontext():
            return await self._handle_reminder(reminder)

    async def _handle_reminder(self, reminder: Reminder) -> Optional[SweepOutcome]:
        """
        Claim, deliver, and finalize one reminder.

        Returns:
            The outcome, or None if another sweep already claimed it
        """
        try:
            claimed = await self.store.claim_reminder(reminder.id)
        except Exception as e:
            logger.error(
                f"Could not claim reminder {reminder.id}: {e}",
                exc_info=not isinstance(e, ReminderStoreError),
            )
            return SweepOutcome(
                reminder_id=reminder.id,
                success=False,
                error=f"Claim failed: {e}",
                status_recorded=False,
            )

        if not claimed:
            logger.info(f"Reminder {reminder.id} already claimed, skipping")
            return None

        error = await self._deliver(reminder)
        status = ReminderStatus.SENT if error is None else ReminderStatus.FAILED
        recorded = await self._record_status(reminder, status, error)

        if error is None:
            self._track(
                "reminder_sent",
                "reminder",
                user_id=reminder.owner_id,
                properties={"reminder_id": reminder.id, "channel": self.channel.name},
            )
        else:
            self._track(
                "reminder_failed",
                "reminder",
                user_id=reminder.owner_id,
                properties={
                    "reminder_id": reminder.id,
                    "channel": self.channel.name,
                    "error_message": error[:200],
                },
            )

        return SweepOutcome(
            reminder_id=reminder.id,
            success=error is None,
            error=error,
            status_recorded=recorded,
        )

    async def _deliver(self, reminder: Reminder) -> Optional[str]:
        """
        Send one reminder through the channel.

        Returns:
            None on success, otherwise the failure reason
        """
        timeout = self.config.delivery_timeout_seconds

        try:
            await asyncio.wait_for(
                self.channel.send(reminder.destination, reminder.body),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            reason = f"Delivery timed out after {timeout:g}s"
            logger.warning(f"Failed to send reminder {reminder.id}: {reason}")
            return reason
        except DeliveryError as e:
            reason = str(e) or type(e).__name__
            logger.warning(
                f"Failed to send reminder {reminder.id} ({type(e).__name__}): {reason}"
            )
            return reason
        except Exception as e:
            logger.error(f"Failed to send reminder {reminder.id}: {e}", exc_info=True)
            return str(e) or type(e).__name__

        logger.info(f"Delivered reminder {reminder.id} via {self.channel.name}")
        return None

    async def _record_status(
        self, reminder: Reminder, status: ReminderStatus, error: Optional[str]
    ) -> bool:
        """
        Write the terminal status after a delivery attempt.

        Returns:
            True if the status was stored
        """
        try:
            updated = await self.store.update_status(
                reminder.id, status, error[:500] if error else None
            )
        except Exception as e:
            # The reminder stays in_progress, so no later sweep resends it
            logger.error(
                f"STATUS WRITE FAILED for reminder {reminder.id}: delivery "
                f"{'succeeded' if status == ReminderStatus.SENT else 'failed'} but "
                f"status '{status.value}' was not stored: {e}",
                exc_info=not isinstance(e, ReminderStoreError),
            )
            self._track(
                "status_write_failed",
                "error",
                user_id=reminder.owner_id,
                properties={"reminder_id": reminder.id, "status": status.value},
            )
            return False

        return updated

    def _track(self, *args, **kwargs) -> None:
        if self.analytics is not None:
            self.analytics.track(*args, **kwargs)
