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
Reminder Models

Data types shared by the reminder store, the sweeper, and the sweep endpoint.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class ReminderStatus(str, Enum):
    """Lifecycle states of a reminder."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"  # Claimed by a sweep, delivery underway
    SENT = "sent"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ReminderStatus.SENT, ReminderStatus.FAILED)


@dataclass
class Reminder:
    """A single scheduled reminder row."""

    id: str
    owner_id: str
    destination: str
    body: str
    due_at: datetime  # UTC, timezone-aware
    status: ReminderStatus = ReminderStatus.PENDING
    last_error: Optional[str] = None
    created_at: Optional[datetime] = None
    claimed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Any) -> "Reminder":
        """Build a Reminder from an asyncpg Record or a plain dict."""
        data = dict(row)
        return cls(
            id=str(data["id"]),
            owner_id=str(data["owner_id"]),
            destination=data["destination"],
            body=data["body"],
            due_at=data["due_at"],
            status=ReminderStatus(data.get("status") or ReminderStatus.PENDING.value),
            last_error=data.get("last_error"),
            created_at=data.get("created_at"),
            claimed_at=data.get("claimed_at"),
            completed_at=data.get("completed_at"),
        )

    def is_due(self, now: datetime) -> bool:
        """True if a sweep running at `now` should pick this reminder up."""
        return self.status == ReminderStatus.PENDING and self.due_at <= now


@dataclass
class SweepOutcome:
    """Result of handling one reminder during a sweep."""

    reminder_id: str
    success: bool
    error: Optional[str] = None
    status_recorded: bool = True

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"id": self.reminder_id, "success": self.success}
        if self.error:
            result["error"] = self.error
        if not self.status_recorded:
            result["status_recorded"] = False
        return result


@dataclass
class SweepResult:
    """Summary of one sweep invocation."""

    details: list[SweepOutcome] = field(default_factory=list)
    skipped: int = 0  # Due reminders claimed by a concurrent sweep

    @property
    def processed(self) -> int:
        return len(self.details)

    @property
    def sent(self) -> int:
        return sum(1 for d in self.details if d.success)

    @property
    def failed(self) -> int:
        return sum(1 for d in self.details if not d.success)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "processed": self.processed,
            "details": [d.to_dict() for d in self.details],
        }
