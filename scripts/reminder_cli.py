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
Reminder CLI

Command-line tool for operating the reminder sweep.

Usage:
    # Run one sweep now (e.g. from a system cron job)
    python scripts/reminder_cli.py sweep

    # List a user's reminders
    python scripts/reminder_cli.py list --owner 2f1c...

    # Create a reminder
    python scripts/reminder_cli.py create --owner 2f1c... --phone +15551234567 \
        --message "Take medicine" --date 2026-03-01 --time 09:30 --timezone America/New_York

    # Delete a reminder
    python scripts/reminder_cli.py delete 6b0e... --owner 2f1c...

    # Fail reminders whose sweep died mid-delivery
    python scripts/reminder_cli.py expire-claims --minutes 15

    # Show counts per status
    python scripts/reminder_cli.py stats
"""

import argparse
import asyncio
import logging
import os
import sys
from datetime import timedelta

import asyncpg
from dotenv import load_dotenv

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from analytics import AnalyticsTracker, analytics_enabled_from_env
from notifications import NotificationConfig, build_channel
from reminders import (
    ReminderStore,
    ReminderSweeper,
    SweepConfig,
    TimeParseError,
    resolve_due_at,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def truncate(text: str, max_len: int = 40) -> str:
    """Truncate text with ellipsis."""
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


async def run_sweep(pool: asyncpg.Pool, config: SweepConfig) -> None:
    """Run one sweep and print its summary."""
    channel = build_channel(
        NotificationConfig.from_env(), config.delivery_timeout_seconds
    )
    analytics = AnalyticsTracker(pool, enabled=analytics_enabled_from_env())
    sweeper = ReminderSweeper(
        store=ReminderStore(pool, batch_limit=config.batch_limit),
        channel=channel,
        config=config,
        analytics=analytics,
    )

    try:
        result = await sweeper.run_sweep()
    finally:
        await analytics.flush()
        await channel.close()

    print(f"Processed {result.processed} reminder(s): {result.sent} sent, {result.failed} failed")
    if result.skipped:
        print(f"Skipped {result.skipped} reminder(s) claimed by another sweep")
    for outcome in result.details:
        if not outcome.success:
            print(f"  {outcome.reminder_id}: {outcome.error}")
        if not outcome.status_recorded:
            print(f"  {outcome.reminder_id}: status NOT recorded, check the database")


async def list_reminders(store: ReminderStore, owner_id: str) -> None:
    """List an owner's reminders."""
    reminders = await store.list_reminders(owner_id)

    if not reminders:
        print(f"No reminders for {owner_id}.")
        return

    print(f"{'ID':<38} {'Due (UTC)':<18} {'Status':<12} {'Phone':<16} {'Message':<40}")
    print("-" * 126)
    for r in reminders:
        print(
            f"{r.id:<38} "
            f"{r.due_at.strftime('%Y-%m-%d %H:%M'):<18} "
            f"{r.status.value:<12} "
            f"{r.destination:<16} "
            f"{truncate(r.body)}"
        )


async def create_reminder(store: ReminderStore, args: argparse.Namespace) -> None:
    """Create a reminder from CLI arguments."""
    try:
        due_at = resolve_due_at(args.date, args.time, args.timezone)
    except TimeParseError as e:
        print(f"Error: {e}")
        sys.exit(1)

    reminder = await store.create_reminder(
        owner_id=args.owner,
        destination=args.phone,
        body=args.message,
        due_at=due_at,
    )
    print(f"Created reminder {reminder.id} due {reminder.due_at.isoformat()}")


async def delete_reminder(store: ReminderStore, reminder_id: str, owner_id: str) -> None:
    """Delete a reminder owned by owner_id."""
    if await store.delete_reminder(reminder_id, owner_id):
        print(f"Deleted reminder {reminder_id}")
    else:
        print(f"Reminder {reminder_id} not found for owner {owner_id}")


async def expire_claims(store: ReminderStore, minutes: int) -> None:
    """Fail reminders stuck in in_progress."""
    expired = await store.expire_stale_claims(timedelta(minutes=minutes))
    print(f"Expired {expired} stale claim(s) older than {minutes} minute(s)")


async def show_stats(store: ReminderStore) -> None:
    """Show reminder counts per status."""
    counts = await store.count_by_status()

    print("Reminder Statistics")
    print("=" * 30)
    for status, count in counts.items():
        print(f"  {status:<12} {count:>6}")
    print(f"  {'total':<12} {sum(counts.values()):>6}")


async def main():
    load_dotenv()
    config = SweepConfig.from_env()

    parser = argparse.ArgumentParser(description="Reminder sweep management CLI")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # sweep command
    subparsers.add_parser("sweep", help="Run one sweep now")

    # list command
    list_parser = subparsers.add_parser("list", help="List an owner's reminders")
    list_parser.add_argument("--owner", required=True, help="Owner ID")

    # create command
    create_parser = subparsers.add_parser("create", help="Create a reminder")
    create_parser.add_argument("--owner", required=True, help="Owner ID")
    create_parser.add_argument("--phone", required=True, help="Destination phone number")
    create_parser.add_argument("--message", required=True, help="Message text")
    create_parser.add_argument("--date", required=True, help="Date (YYYY-MM-DD)")
    create_parser.add_argument("--time", required=True, help="Time (HH:MM, 24-hour)")
    create_parser.add_argument(
        "--timezone", default="UTC", help="IANA timezone of --date/--time (default: UTC)"
    )

    # delete command
    delete_parser = subparsers.add_parser("delete", help="Delete a reminder")
    delete_parser.add_argument("reminder_id", help="Reminder ID")
    delete_parser.add_argument("--owner", required=True, help="Owner ID")

    # expire-claims command
    expire_parser = subparsers.add_parser(
        "expire-claims", help="Fail reminders stuck in in_progress"
    )
    expire_parser.add_argument(
        "--minutes",
        type=int,
        default=config.claim_expiry_minutes,
        help="Minimum claim age in minutes",
    )

    # stats command
    subparsers.add_parser("stats", help="Show reminder counts per status")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        print("Error: DATABASE_URL environment variable not set")
        sys.exit(1)

    pool = await asyncpg.create_pool(database_url, min_size=1, max_size=2)
    store = ReminderStore(pool, batch_limit=config.batch_limit)

    try:
        if args.command == "sweep":
            await run_sweep(pool, config)
        elif args.command == "list":
            await list_reminders(store, args.owner)
        elif args.command == "create":
            await create_reminder(store, args)
        elif args.command == "delete":
            await delete_reminder(store, args.reminder_id, args.owner)
        elif args.command == "expire-claims":
            await expire_claims(store, args.minutes)
        elif args.command == "stats":
            await show_stats(store)
    finally:
        await pool.close()


if __name__ == "__main__":
    asyncio.run(main())
