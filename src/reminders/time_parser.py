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
Time Parser Module

Resolves the date and time a user picks for a reminder into the absolute
UTC instant stored as `due_at`.
"""

import logging
from datetime import datetime
from typing import Optional

import pytz

logger = logging.getLogger("wayfourth.reminders.time_parser")

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMATS = ("%H:%M", "%H:%M:%S")


class TimeParseError(Exception):
    """Raised when a date/time pair cannot be resolved."""

    pass


def validate_timezone(tz_name: str) -> bool:
    """
    Validate that a timezone name is valid.

    Args:
        tz_name: IANA timezone name (e.g., "America/Los_Angeles")

    Returns:
        True if valid, False otherwise
    """
    try:
        pytz.timezone(tz_name)
        return True
    except pytz.UnknownTimeZoneError:
        return False


def _parse_time_of_day(time_str: str) -> datetime:
    for fmt in TIME_FORMATS:
        try:
            return datetime.strptime(time_str.strip(), fmt)
        except ValueError:
            continue
    raise TimeParseError(f"Invalid time '{time_str}', expected HH:MM")


def resolve_due_at(date_str: str, time_str: str, timezone: str = "UTC") -> datetime:
    """
    Combine a picked date and time in the user's timezone into a UTC instant.

    Args:
        date_str: Date in YYYY-MM-DD format
        time_str: Time in HH:MM (24-hour) format
        timezone: IANA timezone the user picked the time in

    Returns:
        Timezone-aware UTC datetime

    Raises:
        TimeParseError: If the date, time, or timezone is invalid
    """
    if not validate_timezone(timezone):
        raise TimeParseError(f"Unknown timezone '{timezone}'")

    try:
        day = datetime.strptime(date_str.strip(), DATE_FORMAT)
    except ValueError:
        raise TimeParseError(f"Invalid date '{date_str}', expected YYYY-MM-DD")

    clock = _parse_time_of_day(time_str)
    naive = day.replace(hour=clock.hour, minute=clock.minute, second=clock.second)

    # localize() picks the standard-time offset for ambiguous DST wall times
    local = pytz.timezone(timezone).localize(naive)
    due_at = local.astimezone(pytz.UTC)
    logger.debug(f"Resolved {date_str} {time_str} {timezone} -> {due_at.isoformat()}")
    return due_at


def ensure_utc(value: Optional[datetime] = None) -> datetime:
    """
    Return `value` as an aware UTC datetime, or the current time if None.

    Naive datetimes are assumed to already be in UTC.
    """
    if value is None:
        return datetime.now(pytz.UTC)
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value.astimezone(pytz.UTC)
