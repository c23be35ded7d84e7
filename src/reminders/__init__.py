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
Reminders Package

Reminder storage, due-time resolution, and the due-reminder sweep.
"""

from .config import SweepConfig
from .models import Reminder, ReminderStatus, SweepOutcome, SweepResult
from .store import ReminderStore, ReminderStoreError
from .sweeper import ReminderSweeper
from .time_parser import TimeParseError, ensure_utc, resolve_due_at, validate_timezone

__all__ = [
    "SweepConfig",
    "Reminder",
    "ReminderStatus",
    "SweepOutcome",
    "SweepResult",
    "ReminderStore",
    "ReminderStoreError",
    "ReminderSweeper",
    "TimeParseError",
    "ensure_utc",
    "resolve_due_at",
    "validate_timezone",
]
