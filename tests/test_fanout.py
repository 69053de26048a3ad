"""Tests for notification fan-out, the companion channel and the host client."""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest
import requests

from pomodoro_cube import companion as companion_module
from pomodoro_cube import host_client as host_client_module
from pomodoro_cube.companion import CompanionChannel, CompanionMessage
from pomodoro_cube.fanout import NotificationFanout
from pomodoro_cube.host_client import HostClient
from pomodoro_cube.timer import TimerRecord, TimerState

from conftest import T0, RecordingCompanion, RecordingWidgets


class BrokenWidgets:
    async def reload_all_timelines(self):
        raise RuntimeError("widget host gone")


class BrokenLiveActivities:
    async def start(self, end_date):
        raise RuntimeError("not authorized")

    async def end_all(self):
        raise RuntimeError("not authorized")


# ---- NotificationFanout ----

class TestDispatch:
    async def test_one_failure_does_not_block_others(self):
        widgets = RecordingWidgets()
        companion = RecordingCompanion()
        fanout = NotificationFanout(widgets=BrokenWidgets(), live_activities=BrokenLiveActivities(),
                                    companion=companion)
        results = await fanout.dispatch(TimerRecord().running(T0, 60))
        assert results == {"widgets": False, "live_activity": False, "companion": True}
        assert len(companion.messages) == 1

        fanout = NotificationFanout(widgets=widgets, companion=BrokenCompanion())
        results = await fanout.dispatch(TimerRecord())
        assert results == {"widgets": True, "companion": False}
        assert widgets.reloads == 1

    async def test_running_starts_live_activity(self, live_activities):
        fanout = NotificationFanout(live_activities=live_activities)
        record = TimerRecord().running(T0, 1500)
        await fanout.dispatch(record)
        assert [a.content_state.end_date for a in live_activities.activities] == [record.end_date]

    async def test_restart_replaces_live_activity(self, live_activities):
        fanout = NotificationFanout(live_activities=live_activities)
        await fanout.dispatch(TimerRecord().running(T0, 1500))
        await fanout.dispatch(TimerRecord().running(T0, 300))
        assert len(live_activities.activities) == 1
        assert live_activities.activities[0].content_state.end_date == T0 + timedelta(seconds=300)

    @pytest.mark.parametrize("record", [
        TimerRecord().running(T0, 1500).paused(1400),
        TimerRecord(),
    ])
    async def test_leaving_running_ends_live_activity(self, live_activities, record):
        fanout = NotificationFanout(live_activities=live_activities)
        await fanout.dispatch(TimerRecord().running(T0, 1500))
        await fanout.dispatch(record)
        assert live_activities.activities == []

    async def test_no_targets_is_fine(self):
        assert await NotificationFanout().dispatch(TimerRecord()) == {}


class BrokenCompanion:
    async def send_state(self, message):
        raise ConnectionError("watch asleep")


# ---- CompanionMessage ----

class TestCompanionMessage:
    def test_running_payload(self):
        record = TimerRecord().running(T0, 1500)
        payload = CompanionMessage.from_record(record, sent_at=T0).to_payload()
        assert payload == {
            "state": "running",
            "endDate": (T0 + timedelta(seconds=1500)).isoformat(),
            "originalDuration": 1500,
            "sentAt": T0.isoformat(),
        }

    def test_paused_payload_has_remaining_not_end(self):
        record = TimerRecord().running(T0, 1500).paused(1490)
        payload = CompanionMessage.from_record(record, sent_at=T0).to_payload()
        assert payload["remaining"] == 1490
        assert payload["originalDuration"] == 1500
        assert "endDate" not in payload

    def test_idle_payload_is_state_only(self):
        payload = CompanionMessage.from_record(TimerRecord(), sent_at=T0).to_payload()
        assert payload == {"state": "idle", "sentAt": T0.isoformat()}

    def test_naive_timestamps_are_utc(self):
        message = CompanionMessage.from_payload({
            "state": "running", "endDate": "2026-01-02T09:25:00", "sentAt": "2026-01-02T09:00:00",
        })
        assert message.end_date == T0 + timedelta(minutes=25)
        assert message.sent_at == T0
        assert message.to_record().state == TimerState.RUNNING


# ---- CompanionChannel ----

class TestCompanionChannel:
    async def test_unpaired_drops_silently(self, monkeypatch):
        post = MagicMock()
        monkeypatch.setattr(companion_module.requests, "post", post)
        channel = CompanionChannel(None)
        assert not channel.is_paired
        assert await channel.send_state(CompanionMessage(TimerState.IDLE)) is False
        post.assert_not_called()

    async def test_posts_context(self, monkeypatch):
        post = MagicMock()
        monkeypatch.setattr(companion_module.requests, "post", post)
        channel = CompanionChannel("http://watch.local:7789/", timeout=1.5)
        message = CompanionMessage.from_record(TimerRecord().running(T0, 60), sent_at=T0)
        assert await channel.send_state(message) is True
        post.assert_called_once_with(
            "http://watch.local:7789/context", json=message.to_payload(), timeout=1.5
        )

    async def test_unreachable_companion_is_dropped(self, monkeypatch):
        def refuse(*args, **kwargs):
            raise requests.ConnectionError("refused")

        monkeypatch.setattr(companion_module.requests, "post", refuse)
        channel = CompanionChannel("http://watch.local:7789")
        assert await channel.send_state(CompanionMessage(TimerState.IDLE)) is False


# ---- HostClient ----

class TestHostClient:
    async def test_live_activity_start_posts_end_date(self, monkeypatch):
        response = MagicMock()
        response.json.return_value = {"started": None}
        post = MagicMock(return_value=response)
        monkeypatch.setattr(host_client_module.requests, "post", post)

        client = HostClient("http://localhost:7788/", timeout=1.0)
        end = T0 + timedelta(minutes=25)
        await client.start(end)
        post.assert_called_once_with(
            "http://localhost:7788/api/system/live-activities/start",
            json={"end_date": end.isoformat()}, timeout=1.0,
        )

    async def test_host_down_fails_fanout_quietly(self, monkeypatch):
        def refuse(*args, **kwargs):
            raise requests.ConnectionError("refused")

        monkeypatch.setattr(host_client_module.requests, "post", refuse)
        client = HostClient("http://localhost:7788")
        fanout = NotificationFanout(widgets=client, live_activities=client)
        results = await fanout.dispatch(TimerRecord().running(T0, 60))
        assert results == {"widgets": False, "live_activity": False}
