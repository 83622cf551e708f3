"""End-to-end dispatch runs against the mocked store and providers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from conftest import NOW, make_reminder_doc
from notenex.models.reminder_models import ReminderChannel
from notenex.models.user_models import UserContact, UserPreference
from notenex.services import dispatch_service
from notenex.services.channel_resolver import DispatchContext
from notenex.services.reminder_service import ReminderScanError

UTC = timezone.utc


@pytest.fixture
def ctx():
    return DispatchContext(now=NOW, run_id="run-1")


def _final_writes(store):
    """The conditional post-dispatch writes (filtered on the claim token and status)."""
    return [
        c.args for c in store.reminders.update_one.await_args_list
        if c.args[0].get("status") == "dispatching"
    ]


class TestRunDispatch:
    @pytest.mark.asyncio
    async def test_nothing_due(self, store, providers, ctx):
        result = await dispatch_service.run_dispatch(ctx)
        assert result.processed == 0
        assert result.reminders is None
        store.reminders.find_one_and_update.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_scan_failure_propagates(self, store, providers, ctx):
        with patch(
            "notenex.services.reminder_service.fetch_due_reminders",
            AsyncMock(side_effect=ReminderScanError("down")),
        ):
            with pytest.raises(ReminderScanError):
                await dispatch_service.run_dispatch(ctx)

    @pytest.mark.asyncio
    async def test_stale_claim_release_failure_does_not_abort(self, store, providers, ctx):
        store.reminders.update_many.side_effect = RuntimeError("sweep failed")
        store.reminders.docs_by_status["scheduled"] = [make_reminder_doc()]
        result = await dispatch_service.run_dispatch(ctx)
        assert result.processed == 1

    @pytest.mark.asyncio
    async def test_one_off_reminder_is_marked_sent(self, store, providers, ctx):
        store.reminders.docs_by_status["scheduled"] = [make_reminder_doc()]
        result = await dispatch_service.run_dispatch(ctx)

        assert result.processed == 1
        entry = result.reminders[0]
        assert entry.reminderId == "rem-1"
        assert entry.ownerId == "user-1"
        assert entry.channels == [ReminderChannel.PUSH]
        assert entry.nextFireAt is None

        [(query, update)] = _final_writes(store)
        assert query == {"_id": "rem-1", "claimToken": "run-1", "status": "dispatching"}
        assert update["$set"]["status"] == "sent"
        assert update["$set"]["lastSentAt"] == NOW
        assert update["$set"]["snoozeUntil"] is None
        assert "fireAt" not in update["$set"]
        store.notes.update_one.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_daily_reminder_is_rescheduled_and_note_linked(self, store, providers, ctx):
        store.reminders.docs_by_status["scheduled"] = [make_reminder_doc(frequency="daily")]
        result = await dispatch_service.run_dispatch(ctx)

        expected_next = datetime(2024, 3, 2, 9, 0, tzinfo=UTC)
        assert result.reminders[0].nextFireAt == expected_next

        [(_, update)] = _final_writes(store)
        assert update["$set"]["status"] == "scheduled"
        assert update["$set"]["fireAt"] == expected_next

        note_query, note_update = store.notes.update_one.await_args.args
        assert note_query == {"_id": "note-1", "ownerId": "user-1"}
        assert note_update["$set"]["reminderAt"] == expected_next

    @pytest.mark.asyncio
    async def test_snoozed_weekly_reminder_advances_from_snooze_time(self, store, providers, ctx):
        doc = make_reminder_doc(
            status="snoozed",
            frequency="weekly",
            fireAt=datetime(2024, 2, 29, 8, 0, tzinfo=UTC),
            snoozeUntil=datetime(2024, 3, 1, 9, 0, tzinfo=UTC),
        )
        store.reminders.docs_by_status["snoozed"] = [doc]
        result = await dispatch_service.run_dispatch(ctx)
        assert result.reminders[0].nextFireAt == datetime(2024, 3, 8, 9, 0, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_partial_channel_failure_still_marks_dispatched(self, store, providers, ctx):
        store.get_contact.return_value = UserContact(email="owner@example.com", phoneNumber="+15550001")
        providers.send_email.return_value = False
        store.reminders.docs_by_status["scheduled"] = [make_reminder_doc(channels=["email", "sms"])]

        result = await dispatch_service.run_dispatch(ctx)

        assert result.reminders[0].channels == [ReminderChannel.SMS]
        [(_, update)] = _final_writes(store)
        assert update["$set"]["status"] == "sent"

    @pytest.mark.asyncio
    async def test_owner_default_channels_used_when_reminder_has_none(self, store, providers, ctx):
        store.get_preference.return_value = UserPreference(reminderChannels=["email"])
        store.reminders.docs_by_status["scheduled"] = [make_reminder_doc(channels=[])]
        result = await dispatch_service.run_dispatch(ctx)
        assert result.reminders[0].channels == [ReminderChannel.EMAIL]
        assert providers.send_email.await_args.kwargs["to"] == "owner@example.com"

    @pytest.mark.asyncio
    async def test_lost_claim_skips_reminder(self, store, providers, ctx):
        store.reminders.find_one_and_update = AsyncMock(return_value=None)
        store.reminders.docs_by_status["scheduled"] = [make_reminder_doc()]
        result = await dispatch_service.run_dispatch(ctx)
        assert result.processed == 0
        assert result.reminders == []
        store.reminders.update_one.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_claim_lost_before_final_write_is_not_counted(self, store, providers, ctx):
        store.reminders.update_one = AsyncMock(return_value=MagicMock(matched_count=0))
        store.reminders.docs_by_status["scheduled"] = [make_reminder_doc(frequency="daily")]
        result = await dispatch_service.run_dispatch(ctx)
        assert result.processed == 0
        assert result.reminders == []
        store.notes.update_one.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_each_claim_is_stamped_when_taken(self, store, providers, ctx):
        store.reminders.docs_by_status["scheduled"] = [
            make_reminder_doc(_id=f"rem-{i}", channels=["email"]) for i in range(3)
        ]
        claim_times = [NOW + timedelta(minutes=m) for m in (1, 8, 15)]
        with patch("notenex.services.reminder_service.utc_now", side_effect=claim_times):
            await dispatch_service.run_dispatch(ctx)
        stamped = [
            c.args[1]["$set"]["claimedAt"] for c in store.reminders.find_one_and_update.await_args_list
        ]
        assert stamped == claim_times
        # The due check still uses the run's reference time
        for c in store.reminders.find_one_and_update.await_args_list:
            assert c.args[0]["$or"][1]["fireAt"] == {"$lte": NOW}

    @pytest.mark.asyncio
    async def test_unexpected_error_releases_claim_and_batch_continues(self, store, providers, ctx):
        store.reminders.docs_by_status["scheduled"] = [
            make_reminder_doc(_id="rem-1", ownerId="user-1"),
            make_reminder_doc(_id="rem-2", ownerId="user-2"),
        ]
        calls = {"n": 0}

        async def flaky_delivery(reminder, target, tz):
            calls["n"] += 1
            if reminder.id == "rem-1":
                raise RuntimeError("boom")
            return list(target.channels)

        with patch("notenex.services.dispatch_service.deliver_reminder", flaky_delivery):
            result = await dispatch_service.run_dispatch(ctx)

        assert calls["n"] == 2
        assert [r.reminderId for r in result.reminders] == ["rem-2"]
        release = [
            c.args for c in store.reminders.update_one.await_args_list
            if c.args[0] == {"_id": "rem-1", "claimToken": "run-1"}
        ]
        assert len(release) == 1
        assert release[0][1]["$set"]["status"] == "scheduled"

    @pytest.mark.asyncio
    async def test_invalid_custom_cron_is_recorded_and_terminal(self, store, providers, ctx):
        store.reminders.docs_by_status["scheduled"] = [
            make_reminder_doc(frequency="custom", customCron="every tuesday")
        ]
        result = await dispatch_service.run_dispatch(ctx)
        assert result.processed == 1
        assert result.reminders[0].nextFireAt is None
        [(_, update)] = _final_writes(store)
        assert update["$set"]["status"] == "sent"
        assert "every tuesday" in update["$set"]["lastError"]

    @pytest.mark.asyncio
    async def test_custom_cron_reschedules(self, store, providers, ctx):
        store.reminders.docs_by_status["scheduled"] = [
            make_reminder_doc(frequency="custom", customCron="0 9 * * 1")
        ]
        result = await dispatch_service.run_dispatch(ctx)
        # 2024-03-01 is a Friday; next Monday 09:00 UTC
        assert result.reminders[0].nextFireAt == datetime(2024, 3, 4, 9, 0, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_note_update_failure_is_not_fatal(self, store, providers, ctx):
        store.notes.update_one = AsyncMock(side_effect=RuntimeError("notes down"))
        store.reminders.docs_by_status["scheduled"] = [make_reminder_doc(frequency="daily")]
        result = await dispatch_service.run_dispatch(ctx)
        assert result.processed == 1
        assert result.reminders[0].nextFireAt == datetime(2024, 3, 2, 9, 0, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_missing_note_is_not_fatal(self, store, providers, ctx):
        store.notes.update_one = AsyncMock(return_value=MagicMock(matched_count=0))
        store.reminders.docs_by_status["scheduled"] = [make_reminder_doc(frequency="daily")]
        result = await dispatch_service.run_dispatch(ctx)
        assert result.processed == 1

    @pytest.mark.asyncio
    async def test_lookups_are_shared_across_an_owners_reminders(self, store, providers, ctx):
        store.reminders.docs_by_status["scheduled"] = [
            make_reminder_doc(_id=f"rem-{i}", channels=["email"]) for i in range(3)
        ]
        result = await dispatch_service.run_dispatch(ctx)
        assert result.processed == 3
        assert store.get_contact.await_count == 1
        assert store.get_preference.await_count == 1
        assert providers.send_email.await_count == 3

    @pytest.mark.asyncio
    async def test_owner_timezone_drives_daily_recurrence(self, store, providers, ctx):
        store.get_preference.return_value = UserPreference(timezone="America/New_York")
        # 2024-03-09 09:00 New York (EST) = 14:00 UTC; the next day is after the DST switch
        doc = make_reminder_doc(frequency="daily", fireAt=datetime(2024, 3, 9, 14, 0, tzinfo=UTC))
        store.reminders.docs_by_status["scheduled"] = [doc]
        later_ctx = DispatchContext(now=datetime(2024, 3, 9, 14, 1, tzinfo=UTC), run_id="run-2")
        result = await dispatch_service.run_dispatch(later_ctx)
        assert result.reminders[0].nextFireAt == datetime(2024, 3, 10, 13, 0, tzinfo=UTC)
