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

"""Tests for the due-reminder sweep."""

import asyncio
import logging
import sys
from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import pytz

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from notifications import NotificationChannel
from reminders import ReminderStatus, ReminderStoreError, ReminderSweeper, SweepConfig

from fakes import FakeStore, StubChannel, make_reminder


@pytest.fixture
def now():
    return datetime(2026, 3, 1, 12, 0, 0, tzinfo=pytz.UTC)


class TestDueSet:
    """Only pending reminders with due_at <= now are swept."""

    @pytest.mark.asyncio
    async def test_only_due_pending_reminders_are_delivered(self, now):
        due = make_reminder(now - timedelta(minutes=5), destination="+1000")
        future = make_reminder(now + timedelta(seconds=1), destination="+2000")
        already_sent = make_reminder(
            now - timedelta(hours=1), destination="+3000", status=ReminderStatus.SENT
        )
        already_failed = make_reminder(
            now - timedelta(hours=1), destination="+4000", status=ReminderStatus.FAILED
        )
        claimed = make_reminder(
            now - timedelta(hours=1), destination="+5000", status=ReminderStatus.IN_PROGRESS
        )
        store = FakeStore([due, future, already_sent, already_failed, claimed])
        channel = StubChannel()

        result = await ReminderSweeper(store, channel).run_sweep(now)

        assert channel.attempts == ["+1000"]
        assert result.processed == 1
        assert store.rows[future.id].status == ReminderStatus.PENDING
        assert store.rows[already_sent.id].status == ReminderStatus.SENT
        assert store.rows[already_failed.id].status == ReminderStatus.FAILED
        assert store.rows[claimed.id].status == ReminderStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_due_exactly_now_is_included(self, now):
        reminder = make_reminder(now)
        store = FakeStore([reminder])

        result = await ReminderSweeper(store, StubChannel()).run_sweep(now)

        assert result.processed == 1
        assert store.rows[reminder.id].status == ReminderStatus.SENT

    @pytest.mark.asyncio
    async def test_empty_due_set_is_a_noop(self, now):
        future = make_reminder(now + timedelta(days=1))
        store = FakeStore([future])
        channel = StubChannel()

        result = await ReminderSweeper(store, channel).run_sweep(now)

        assert result.processed == 0
        assert result.to_dict() == {"success": True, "processed": 0, "details": []}
        assert channel.attempts == []
        assert store.claims == []
        assert store.status_writes == []


class TestDeliveryOutcomes:
    """Status transitions after delivery."""

    @pytest.mark.asyncio
    async def test_successful_delivery_marks_sent(self, now):
        reminder = make_reminder(now - timedelta(minutes=5))
        store = FakeStore([reminder])
        channel = StubChannel()

        result = await ReminderSweeper(store, channel).run_sweep(now)

        assert store.rows[reminder.id].status == ReminderStatus.SENT
        assert channel.sent == [("+15551234567", "Take medicine")]
        assert result.to_dict()["details"] == [{"id": reminder.id, "success": True}]

    @pytest.mark.asyncio
    async def test_failed_delivery_marks_failed_with_reason(self, now):
        reminder = make_reminder(now - timedelta(minutes=5))
        store = FakeStore([reminder])

        result = await ReminderSweeper(store, StubChannel(always_fail=True)).run_sweep(now)

        row = store.rows[reminder.id]
        assert row.status == ReminderStatus.FAILED
        assert "rejected" in row.last_error
        detail = result.to_dict()["details"][0]
        assert detail["id"] == reminder.id
        assert detail["success"] is False
        assert "rejected" in detail["error"]

    @pytest.mark.asyncio
    async def test_failed_reminder_is_not_retried(self, now):
        reminder = make_reminder(now - timedelta(minutes=5))
        store = FakeStore([reminder])
        channel = StubChannel(always_fail=True)
        sweeper = ReminderSweeper(store, channel)

        await sweeper.run_sweep(now)
        second = await sweeper.run_sweep(now + timedelta(minutes=1))

        assert second.processed == 0
        assert channel.attempts == ["+15551234567"]
        assert store.rows[reminder.id].status == ReminderStatus.FAILED

    @pytest.mark.asyncio
    async def test_sent_reminder_is_not_resent(self, now):
        reminder = make_reminder(now - timedelta(minutes=5))
        store = FakeStore([reminder])
        channel = StubChannel()
        sweeper = ReminderSweeper(store, channel)

        await sweeper.run_sweep(now)
        await sweeper.run_sweep(now + timedelta(minutes=1))

        assert len(channel.attempts) == 1
        assert len(store.status_writes) == 1

    @pytest.mark.asyncio
    async def test_one_failure_does_not_affect_others(self, now):
        good = make_reminder(now, destination="+1111")
        bad = make_reminder(now, destination="+2222")
        store = FakeStore([good, bad])
        pending_before = store.count(ReminderStatus.PENDING)

        result = await ReminderSweeper(store, StubChannel(fail_for={"+2222"})).run_sweep(now)

        assert result.processed == 2
        assert result.sent == 1
        assert result.failed == 1
        assert store.rows[good.id].status == ReminderStatus.SENT
        assert store.rows[bad.id].status == ReminderStatus.FAILED
        assert store.count(ReminderStatus.PENDING) == pending_before - 2

    @pytest.mark.asyncio
    async def test_unexpected_channel_exception_marks_failed(self, now):
        class BrokenChannel(NotificationChannel):
            name = "broken"

            async def send(self, destination, body):
                raise RuntimeError("socket exploded")

        reminder = make_reminder(now)
        store = FakeStore([reminder])

        result = await ReminderSweeper(store, BrokenChannel()).run_sweep(now)

        assert store.rows[reminder.id].status == ReminderStatus.FAILED
        assert result.details[0].error == "socket exploded"

    @pytest.mark.asyncio
    async def test_delivery_timeout_marks_failed(self, now):
        slow = make_reminder(now, destination="+1111")
        fast = make_reminder(now, destination="+2222")
        store = FakeStore([slow, fast])

        class SlowForOne(StubChannel):
            async def send(self, destination, body):
                if destination == "+1111":
                    await asyncio.sleep(5)
                await super().send(destination, body)

        config = SweepConfig(delivery_timeout_seconds=0.05)
        result = await ReminderSweeper(store, SlowForOne(), config).run_sweep(now)

        outcomes = {d.reminder_id: d for d in result.details}
        assert outcomes[slow.id].success is False
        assert "timed out" in outcomes[slow.id].error
        assert outcomes[fast.id].success is True
        assert store.rows[slow.id].status == ReminderStatus.FAILED


class TestConcurrency:
    """Deliveries fan out and overlapping sweeps never double-send."""

    @pytest.mark.asyncio
    async def test_deliveries_run_concurrently(self, now):
        reminders = [make_reminder(now, destination=f"+{i}") for i in range(3)]
        store = FakeStore(reminders)
        all_started = asyncio.Event()

        class Barrier(StubChannel):
            async def send(self, destination, body):
                self.attempts.append(destination)
                if len(self.attempts) == 3:
                    all_started.set()
                # Sequential delivery would never see all three in flight
                await all_started.wait()
                self.sent.append((destination, body))

        config = SweepConfig(delivery_timeout_seconds=1.0)
        result = await ReminderSweeper(store, Barrier(), config).run_sweep(now)

        assert result.sent == 3

    @pytest.mark.asyncio
    async def test_max_concurrency_bounds_in_flight_deliveries(self, now):
        reminders = [make_reminder(now, destination=f"+{i}") for i in range(6)]
        store = FakeStore(reminders)
        in_flight = 0
        peak = 0

        class Counting(StubChannel):
            async def send(self, destination, body):
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.01)
                in_flight -= 1

        config = SweepConfig(max_concurrency=2)
        result = await ReminderSweeper(store, Counting(), config).run_sweep(now)

        assert result.processed == 6
        assert peak == 2

    @pytest.mark.asyncio
    async def test_overlapping_sweeps_deliver_once(self, now):
        reminder = make_reminder(now)
        store = FakeStore([reminder])
        channel = StubChannel(delay=0.01)
        first = ReminderSweeper(store, channel)
        second = ReminderSweeper(store, channel)

        results = await asyncio.gather(first.run_sweep(now), second.run_sweep(now))

        assert channel.attempts == ["+15551234567"]
        assert sorted(r.processed for r in results) == [0, 1]
        assert sorted(r.skipped for r in results) == [0, 1]
        assert store.rows[reminder.id].status == ReminderStatus.SENT

    @pytest.mark.asyncio
    async def test_lost_claim_is_skipped(self, now):
        reminder = make_reminder(now)
        store = FakeStore([reminder])
        channel = StubChannel()

        async def lose_claim(reminder_id):
            return False

        store.claim_reminder = lose_claim

        result = await ReminderSweeper(store, channel).run_sweep(now)

        assert result.processed == 0
        assert result.skipped == 1
        assert channel.attempts == []
        assert store.status_writes == []


class TestStoreFailures:
    """Store errors at each stage of a sweep."""

    @pytest.mark.asyncio
    async def test_query_failure_aborts_sweep(self, now):
        store = FakeStore([make_reminder(now)])
        store.fail_query = True
        channel = StubChannel()

        with pytest.raises(ReminderStoreError):
            await ReminderSweeper(store, channel).run_sweep(now)

        assert channel.attempts == []
        assert store.status_writes == []

    @pytest.mark.asyncio
    async def test_status_write_failure_is_reported(self, now, caplog):
        reminder = make_reminder(now)
        store = FakeStore([reminder])
        store.fail_update = True

        with caplog.at_level(logging.ERROR, logger="wayfourth.reminders.sweeper"):
            result = await ReminderSweeper(store, StubChannel()).run_sweep(now)

        outcome = result.details[0]
        assert outcome.success is True
        assert outcome.status_recorded is False
        assert result.to_dict()["details"][0]["status_recorded"] is False
        assert "STATUS WRITE FAILED" in caplog.text
        # Still claimed, so the next sweep cannot resend it
        assert store.rows[reminder.id].status == ReminderStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_claim_failure_reported_without_delivery(self, now):
        reminder = make_reminder(now)
        store = FakeStore([reminder])
        channel = StubChannel()

        async def broken_claim(reminder_id):
            raise ReminderStoreError("deadlock detected")

        store.claim_reminder = broken_claim

        result = await ReminderSweeper(store, channel).run_sweep(now)

        assert channel.attempts == []
        assert result.details[0].success is False
        assert "Claim failed" in result.details[0].error

    @pytest.mark.asyncio
    async def test_unexpected_status_write_error_does_not_abort_batch(self, now, caplog):
        first = make_reminder(now, destination="+1111")
        second = make_reminder(now, destination="+2222")
        store = FakeStore([first, second])
        channel = StubChannel()
        original_update = store.update_status

        async def flaky_update(reminder_id, status, error_message=None):
            if reminder_id == first.id:
                raise TimeoutError("pool acquire timed out")
            return await original_update(reminder_id, status, error_message)

        store.update_status = flaky_update

        with caplog.at_level(logging.ERROR, logger="wayfourth.reminders.sweeper"):
            result = await ReminderSweeper(store, channel).run_sweep(now)

        assert result.processed == 2
        assert len(channel.sent) == 2
        by_id = {o.reminder_id: o for o in result.details}
        assert by_id[first.id].success is True
        assert by_id[first.id].status_recorded is False
        assert by_id[second.id].status_recorded is True
        assert store.rows[second.id].status == ReminderStatus.SENT
        assert "STATUS WRITE FAILED" in caplog.text

    @pytest.mark.asyncio
    async def test_unexpected_claim_error_does_not_abort_batch(self, now):
        first = make_reminder(now, destination="+1111")
        second = make_reminder(now, destination="+2222")
        store = FakeStore([first, second])
        channel = StubChannel()
        original_claim = store.claim_reminder

        async def flaky_claim(reminder_id):
            if reminder_id == first.id:
                raise RuntimeError("connection reset")
            return await original_claim(reminder_id)

        store.claim_reminder = flaky_claim

        result = await ReminderSweeper(store, channel).run_sweep(now)

        by_id = {o.reminder_id: o for o in result.details}
        assert by_id[first.id].success is False
        assert by_id[first.id].status_recorded is False
        assert "Claim failed" in by_id[first.id].error
        assert by_id[second.id].success is True
        assert channel.attempts == ["+2222"]


class TestAnalytics:
    """Sweep events are reported to the tracker."""

    @pytest.mark.asyncio
    async def test_tracks_sent_failed_and_sweep_events(self, now):
        good = make_reminder(now, destination="+1111")
        bad = make_reminder(now, destination="+2222")
        store = FakeStore([good, bad])
        tracker = MagicMock()

        await ReminderSweeper(
            store, StubChannel(fail_for={"+2222"}), analytics=tracker
        ).run_sweep(now)

        events = [call.args[0] for call in tracker.track.call_args_list]
        assert events.count("reminder_sent") == 1
        assert events.count("reminder_failed") == 1
        assert events[-1] == "sweep_completed"

    @pytest.mark.asyncio
    async def test_tracks_sweep_error(self, now):
        store = FakeStore()
        store.fail_query = True
        tracker = MagicMock()

        with pytest.raises(ReminderStoreError):
            await ReminderSweeper(store, StubChannel(), analytics=tracker).run_sweep(now)

        tracker.track.assert_called_once()
        assert tracker.track.call_args.args[0] == "sweep_error"
