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
Reminder Store Module

Handles database operations for reminders.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

import asyncpg

from .models import Reminder, ReminderStatus
from .time_parser import ensure_utc

logger = logging.getLogger("wayfourth.reminders.store")

# Connection-level failures surface as InterfaceError or OSError
DB_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)

REMINDER_COLUMNS = """
    id, owner_id, destination, body, due_at, status, last_error,
    created_at, claimed_at, completed_at
"""


class ReminderStoreError(Exception):
    """Raised when the reminder database cannot be read or written."""

    pass


class ReminderStore:
    """
    Manages database operations for reminders.

    Provides the authoring operations (create, list, delete) and the
    sweep-facing operations (due query, claim, status transition).
    """

    def __init__(self, db_pool: asyncpg.Pool, batch_limit: int = 100):
        """
        Initialize the reminder store.

        Args:
            db_pool: asyncpg connection pool
            batch_limit: Maximum number of due reminders returned per query
        """
        self.db = db_pool
        self.batch_limit = batch_limit

    async def create_reminder(
        self,
        owner_id: str,
        destination: str,
        body: str,
        due_at: datetime,
    ) -> Reminder:
        """
        Create a new pending reminder.

        Args:
            owner_id: ID of the user creating the reminder
            destination: Phone number to deliver to
            body: Message text
            due_at: When the reminder should be delivered

        Returns:
            The created reminder
        """
        try:
            row = await self.db.fetchrow(
                f"""
                INSERT INTO reminders (owner_id, destination, body, due_at, status)
                VALUES ($1, $2, $3, $4, 'pending')
                RETURNING {REMINDER_COLUMNS}
                """,
                owner_id,
                destination,
                body,
                ensure_utc(due_at),
            )
        except DB_ERRORS as e:
            raise ReminderStoreError(f"Failed to create reminder: {e}") from e

        reminder = Reminder.from_row(row)
        logger.info(
            f"Created reminder {reminder.id} for owner {owner_id}: due={reminder.due_at}"
        )
        return reminder

    async def list_reminders(self, owner_id: str) -> list[Reminder]:
        """
        List all reminders for an owner, soonest first.

        Args:
            owner_id: Owner ID

        Returns:
            List of reminders ordered by due time
        """
        try:
            rows = await self.db.fetch(
                f"""
                SELECT {REMINDER_COLUMNS}
                FROM reminders
                WHERE owner_id = $1
                ORDER BY due_at ASC
                """,
                owner_id,
            )
        except DB_ERRORS as e:
            raise ReminderStoreError(f"Failed to list reminders: {e}") from e

        return [Reminder.from_row(row) for row in rows]

    async def get_reminder(self, reminder_id: str) -> Optional[Reminder]:
        """
        Get a reminder by ID.

        Args:
            reminder_id: Reminder ID

        Returns:
            Reminder or None if not found
        """
        try:
            row = await self.db.fetchrow(
                f"""
                SELECT {REMINDER_COLUMNS}
                FROM reminders
                WHERE id = $1::uuid
                """,
                reminder_id,
            )
        except DB_ERRORS as e:
            raise ReminderStoreError(f"Failed to fetch reminder {reminder_id}: {e}") from e

        return Reminder.from_row(row) if row else None

    async def delete_reminder(self, reminder_id: str, owner_id: str) -> bool:
        """
        Delete a reminder if the owner owns it.

        Args:
            reminder_id: Reminder ID
            owner_id: Owner ID (for ownership check)

        Returns:
            True if deleted, False if not found or not owned
        """
        try:
            result = await self.db.execute(
                """
                DELETE FROM reminders
                WHERE id = $1::uuid AND owner_id = $2
                """,
                reminder_id,
                owner_id,
            )
        except DB_ERRORS as e:
            raise ReminderStoreError(f"Failed to delete reminder {reminder_id}: {e}") from e

        deleted = result == "DELETE 1"
        if deleted:
            logger.info(f"Deleted reminder {reminder_id} for owner {owner_id}")
        return deleted

    # =========================================================================
    # Sweep-facing methods
    # =========================================================================

    async def get_due_reminders(self, now: Optional[datetime] = None) -> list[Reminder]:
        """
        Get all pending reminders whose due time has passed.

        Args:
            now: Reference time (defaults to the current UTC time)

        Returns:
            Pending reminders with due_at <= now, oldest first

        Raises:
            ReminderStoreError: If the query fails
        """
        now = ensure_utc(now)

        try:
            rows = await self.db.fetch(
                f"""
                SELECT {REMINDER_COLUMNS}
                FROM reminders
                WHERE status = 'pending' AND due_at <= $1
                ORDER BY due_at ASC
                LIMIT $2
                """,
                now,
                self.batch_limit,
            )
        except DB_ERRORS as e:
            raise ReminderStoreError(f"Failed to query due reminders: {e}") from e

        return [Reminder.from_row(row) for row in rows]

    async def claim_reminder(self, reminder_id: str) -> bool:
        """
        Atomically move a reminder from pending to in_progress.

        Only one caller can win the claim for a given reminder, so overlapping
        sweeps never deliver the same reminder twice.

        Args:
            reminder_id: Reminder ID

        Returns:
            True if this caller now owns the reminder, False if it was
            already claimed, finalized, or deleted
        """
        try:
            result = await self.db.execute(
                """
                UPDATE reminders
                SET status = 'in_progress', claimed_at = NOW()
                WHERE id = $1::uuid AND status = 'pending'
                """,
                reminder_id,
            )
        except DB_ERRORS as e:
            raise ReminderStoreError(f"Failed to claim reminder {reminder_id}: {e}") from e

        return result == "UPDATE 1"

    async def update_status(
        self,
        reminder_id: str,
        status: ReminderStatus,
        error_message: Optional[str] = None,
    ) -> bool:
        """
        Record the terminal status of a claimed reminder.

        Args:
            reminder_id: Reminder ID
            status: SENT or FAILED
            error_message: Failure reason (stored for FAILED)

        Returns:
            True if the row was updated, False if it no longer exists

        Raises:
            ValueError: If status is not terminal
            ReminderStoreError: If the update fails
        """
        status = ReminderStatus(status)
        if not status.is_terminal:
            raise ValueError(f"Cannot finalize reminder with status '{status.value}'")

        try:
            result = await self.db.execute(
                """
                UPDATE reminders
                SET status = $2,
                    last_error = $3,
                    completed_at = NOW()
                WHERE id = $1::uuid AND status IN ('pending', 'in_progress')
                """,
                reminder_id,
                status.value,
                error_message,
            )
        except DB_ERRORS as e:
            raise ReminderStoreError(
                f"Failed to mark reminder {reminder_id} as {status.value}: {e}"
            ) from e

        updated = result == "UPDATE 1"
        if updated:
            logger.info(f"Reminder {reminder_id} -> {status.value}")
        else:
            logger.warning(
                f"Reminder {reminder_id} not updated to {status.value} (deleted or already final)"
            )
        return updated

    # =========================================================================
    # Operator methods
    # =========================================================================

    async def expire_stale_claims(self, older_than: timedelta) -> int:
        """
        Fail reminders stuck in in_progress (the sweep that claimed them died).

        Args:
            older_than: Minimum claim age before a claim counts as stale

        Returns:
            Number of reminders marked failed
        """
        cutoff = ensure_utc() - older_than

        try:
            result = await self.db.execute(
                """
                UPDATE reminders
                SET status = 'failed',
                    last_error = 'Delivery claim expired',
                    completed_at = NOW()
                WHERE status = 'in_progress' AND claimed_at < $1
                """,
                cutoff,
            )
        except DB_ERRORS as e:
            raise ReminderStoreError(f"Failed to expire stale claims: {e}") from e

        expired = int(result.split()[-1]) if result else 0
        if expired:
            logger.warning(f"Expired {expired} stale reminder claim(s) older than {cutoff}")
        return expired

    async def count_by_status(self) -> dict[str, int]:
        """
        Count reminders in each status.

        Returns:
            Mapping of status value to count (every status present, zero if none)
        """
        try:
            rows = await self.db.fetch(
                """
                SELECT status, COUNT(*) AS count
                FROM reminders
                GROUP BY status
                """
            )
        except DB_ERRORS as e:
            raise ReminderStoreError(f"Failed to count reminders: {e}") from e

        counts = {status.value: 0 for status in ReminderStatus}
        for row in rows:
            counts[row["status"]] = row["count"]
        return counts
