"""
Tests for the telemetry collector and the behaviour record wire format.
Run with: pytest risk-service/tests/test_telemetry_collector.py -v
"""
import pytest

from riskguard.telemetry.behavior_record import BehaviorRecord
from riskguard.telemetry.collector import TelemetryCollector

T0 = 1_700_000_000_000.0


class FakeClock:
    def __init__(self, now: float = T0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> float:
        self.now += ms
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def collector(clock):
    return TelemetryCollector(clock=clock)


class TestFocus:
    def test_blur_focus_cycle_records_duration(self, collector, clock):
        collector.on_blur()
        clock.advance(4200)
        collector.on_focus()
        assert collector.record.blur_count == 1
        assert collector.record.blur_durations == [4200.0]

    def test_focus_without_blur_is_ignored(self, collector):
        collector.on_focus()
        assert collector.record.blur_durations == []

    def test_hidden_tab_counts_as_blur(self, collector, clock):
        collector.on_visibility_change(hidden=True)
        clock.advance(1500)
        collector.on_visibility_change(hidden=False)
        assert collector.record.blur_count == 1
        assert collector.record.visibility_change_count == 1
        assert collector.record.blur_durations == [1500.0]


class TestMouse:
    def test_moves_are_throttled_to_100ms(self, collector, clock):
        collector.on_mouse_move(clock.advance(10))
        collector.on_mouse_move(clock.advance(50))    # dropped
        collector.on_mouse_move(clock.advance(60))    # 110 ms after the first
        assert collector.record.mouse_move_count == 2

    def test_long_gap_counts_as_inactivity(self, collector, clock):
        collector.on_mouse_move(clock.advance(6000))
        collector.on_mouse_move(clock.advance(4000))
        assert collector.record.mouse_inactive_time == 6000
        assert collector.record.mouse_move_count == 2

    def test_mouse_leave(self, collector):
        collector.on_mouse_leave()
        collector.on_mouse_leave()
        assert collector.record.mouse_leave_count == 2


class TestClipboard:
    def test_copied_texts_are_a_bounded_fifo(self, collector):
        for i in range(15):
            collector.on_copy(f"text-{i}")
        texts = collector.record.copied_texts
        assert len(texts) == 10
        assert texts[0] == "text-5"
        assert texts[-1] == "text-14"
        assert collector.record.copy_count == 15

    def test_selection_truncated_and_missing_selection_allowed(self, collector):
        collector.on_copy("x" * 250)
        collector.on_copy(None)
        assert collector.record.copied_texts == ["x" * 100, ""]

    def test_paste_and_cut_are_independent(self, collector):
        collector.on_paste()
        collector.on_cut()
        collector.on_cut()
        assert collector.record.paste_count == 1
        assert collector.record.cut_count == 2


class TestTyping:
    def test_speed_is_keys_in_last_ten_seconds(self, collector, clock):
        for _ in range(5):
            collector.on_key_down(clock.advance(1000))
        assert collector.record.typing_speed == pytest.approx(0.5)

        # 20 s later the buffer only holds the new key
        collector.on_key_down(clock.advance(20_000))
        assert collector.record.typing_speed == pytest.approx(0.1)
        assert collector.record.key_press_count == 6


class TestOther:
    def test_right_click_and_scroll(self, collector):
        collector.on_context_menu()
        collector.on_scroll()
        collector.on_scroll()
        assert collector.record.right_click_count == 1
        assert collector.record.scroll_count == 2
        assert collector.record.scroll_distance == 0

    def test_listeners_see_every_change(self, collector):
        seen = []
        collector.subscribe(lambda record: seen.append(record.copy_count))
        collector.on_copy("a")
        collector.on_copy("b")
        assert seen == [1, 2]

    def test_snapshot_is_detached(self, collector):
        collector.on_copy("first")
        snap = collector.snapshot()
        collector.on_copy("second")
        assert snap.copied_texts == ["first"]
        assert snap.copy_count == 1

    def test_reset(self, collector, clock):
        collector.on_blur()
        clock.advance(1000)
        collector.reset()
        assert collector.record.blur_count == 0
        assert collector.record.start_time == clock.now


class TestReplay:
    def test_raw_event_stream(self):
        events = [
            {"type": "copy", "timestamp": T0, "text": "Climate change is"},
            {"type": "blur", "timestamp": T0 + 500},
            {"type": "focus", "timestamp": T0 + 4500},
            {"type": "visibilitychange", "timestamp": T0 + 5000, "hidden": True},
            {"type": "visibilitychange", "timestamp": T0 + 5200, "hidden": False},
            {"type": "paste", "timestamp": T0 + 6000},
            {"type": "wheel", "timestamp": T0 + 6100},
        ]
        record = TelemetryCollector.replay(events).record
        assert record.start_time == T0
        assert record.copied_texts == ["Climate change is"]
        assert record.blur_count == 2
        assert record.blur_durations == [4000.0, 200.0]
        assert record.visibility_change_count == 1
        assert record.paste_count == 1

    def test_first_mouse_move_is_always_sampled(self):
        events = [
            {"type": "mousemove", "timestamp": 50},
            {"type": "mousemove", "timestamp": 90},     # throttled
            {"type": "mousemove", "timestamp": 160},
        ]
        assert TelemetryCollector.replay(events).record.mouse_move_count == 2


class TestWireFormat:
    def test_empty_dict_reads_as_zero(self):
        record = BehaviorRecord.from_dict({})
        assert record.blur_count == 0
        assert record.blur_durations == []
        assert record.typing_speed == 0.0

    def test_camel_case_round_trip_keys(self):
        data = BehaviorRecord(blur_count=2, mouse_inactive_time=61000).to_dict()
        assert data["blurCount"] == 2
        assert data["mouseInactiveTime"] == 61000
        assert "endTime" not in data
        assert BehaviorRecord.from_dict(data).mouse_inactive_seconds == 61.0

    def test_oversized_copied_texts_keep_newest(self):
        record = BehaviorRecord.from_dict({"copiedTexts": [str(i) for i in range(12)]})
        assert record.copied_texts == [str(i) for i in range(2, 12)]

    def test_long_copied_texts_are_truncated(self):
        record = BehaviorRecord.from_dict({"copiedTexts": ["y" * 250, "short"]})
        assert record.copied_texts == ["y" * 100, "short"]
