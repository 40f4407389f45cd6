"""
TelemetryCollector — folds window/document signals into a BehaviorRecord.

One collector observes one visible question. Every handler is synchronous,
does no I/O and returns immediately; listeners registered with subscribe()
are pushed the live record after each state change so the owner can
snapshot it at submission time.

Handlers take an optional `now` (epoch millis). When omitted the injected
clock is read, which lets the same code drive a live client and a server-side
replay of a recorded event stream:

    collector = TelemetryCollector.replay([
        {"type": "blur",  "timestamp": 1000},
        {"type": "focus", "timestamp": 4500},
        {"type": "copy",  "timestamp": 5000, "text": "Climate change ..."},
    ])
    collector.record.blur_durations   # [3500.0]
"""
from __future__ import annotations

import logging
import time
from collections import deque
from typing import Any, Callable, Iterable

from riskguard.telemetry.behavior_record import (
    BehaviorRecord,
    MAX_COPIED_LENGTH,
    MAX_COPIED_TEXTS,
)

logger = logging.getLogger(__name__)

MOUSE_THROTTLE_MS     = 100      # at most one processed mousemove per window
MOUSE_INACTIVE_MIN_MS = 5000     # gaps longer than this count as inactivity
TYPING_WINDOW_MS      = 10_000   # trailing window for typing speed

Listener = Callable[[BehaviorRecord], None]


def _wall_clock_ms() -> float:
    return time.time() * 1000.0


class TelemetryCollector:
    """Maintains one BehaviorRecord from raw browser-level events."""

    def __init__(self, clock: Callable[[], float] = _wall_clock_ms) -> None:
        self._clock = clock
        self._listeners: list[Listener] = []
        self._reset_state()

    # ── Lifecycle ───────────────────────────────────────────────────────────

    def _reset_state(self) -> None:
        now = self._clock()
        self.record = BehaviorRecord(start_time=now)
        self._blur_started_at: float | None = None
        self._last_move_at   = now    # inactivity reference
        self._last_sample_at: float | None = None    # throttle reference
        self._key_times: deque[float] = deque()

    def reset(self) -> None:
        """Start a fresh zeroed record (e.g. when the next question is shown)."""
        self._reset_state()
        self._notify()

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def snapshot(self) -> BehaviorRecord:
        return self.record.snapshot()

    def _now(self, now: float | None) -> float:
        return self._clock() if now is None else float(now)

    def _notify(self) -> None:
        for listener in self._listeners:
            listener(self.record)

    # ── Window / tab ────────────────────────────────────────────────────────

    def on_blur(self, now: float | None = None) -> None:
        self._blur_started_at = self._now(now)
        self.record.blur_count += 1
        self._notify()

    def on_focus(self, now: float | None = None) -> None:
        if self._blur_started_at is None:
            return
        duration = self._now(now) - self._blur_started_at
        self.record.blur_durations.append(duration)
        self._blur_started_at = None
        self._notify()

    def on_visibility_change(self, hidden: bool, now: float | None = None) -> None:
        if hidden:
            self.on_blur(now)
            self.record.visibility_change_count += 1
            self._notify()
        else:
            self.on_focus(now)

    # ── Mouse ───────────────────────────────────────────────────────────────

    def on_mouse_move(self, now: float | None = None) -> None:
        now = self._now(now)
        if self._last_sample_at is not None and now - self._last_sample_at < MOUSE_THROTTLE_MS:
            return
        self._last_sample_at = now

        gap = now - self._last_move_at
        if gap > MOUSE_INACTIVE_MIN_MS:
            self.record.mouse_inactive_time += gap
        self.record.mouse_move_count += 1
        self._last_move_at = now
        self._notify()

    def on_mouse_leave(self, now: float | None = None) -> None:
        self.record.mouse_leave_count += 1
        self._notify()

    # ── Clipboard ───────────────────────────────────────────────────────────

    def on_copy(self, selection: str | None = None, now: float | None = None) -> None:
        texts = self.record.copied_texts
        texts.append((selection or "")[:MAX_COPIED_LENGTH])
        del texts[:-MAX_COPIED_TEXTS]
        self.record.copy_count += 1
        self._notify()

    def on_paste(self, now: float | None = None) -> None:
        self.record.paste_count += 1
        self._notify()

    def on_cut(self, now: float | None = None) -> None:
        self.record.cut_count += 1
        self._notify()

    # ── Keyboard ────────────────────────────────────────────────────────────

    def on_key_down(self, now: float | None = None) -> None:
        now = self._now(now)
        keys = self._key_times
        keys.append(now)
        while keys and now - keys[0] >= TYPING_WINDOW_MS:
            keys.popleft()

        self.record.key_press_count += 1
        self.record.typing_speed = len(keys) / (TYPING_WINDOW_MS / 1000.0)
        self._notify()

    # ── Other ───────────────────────────────────────────────────────────────

    def on_context_menu(self, now: float | None = None) -> None:
        # counted only; the menu itself is never suppressed
        self.record.right_click_count += 1
        self._notify()

    def on_scroll(self, now: float | None = None) -> None:
        # scroll_distance is not derived from deltas and stays 0
        self.record.scroll_count += 1
        self._notify()

    # ── Raw event streams ───────────────────────────────────────────────────

    def dispatch(self, event: dict[str, Any]) -> None:
        """Route one raw client event (`type` + optional `timestamp`) to its handler."""
        event_type = str(event.get("type", "")).lower()
        now = event.get("timestamp")

        if event_type == "visibilitychange":
            self.on_visibility_change(bool(event.get("hidden", True)), now)
        elif event_type == "copy":
            self.on_copy(event.get("text"), now)
        elif event_type in _HANDLERS:
            getattr(self, _HANDLERS[event_type])(now)
        else:
            logger.debug("Ignoring unknown telemetry event type %r", event_type)

    @classmethod
    def replay(
        cls,
        events: Iterable[dict[str, Any]],
        start_time: float | None = None,
    ) -> "TelemetryCollector":
        """
        Fold a recorded event stream into a fresh collector.
        The record starts at `start_time`, else at the first event's timestamp.
        """
        events = list(events)
        if start_time is None:
            stamps = [e["timestamp"] for e in events if e.get("timestamp") is not None]
            start_time = float(stamps[0]) if stamps else _wall_clock_ms()

        collector = cls(clock=lambda: start_time)
        for event in events:
            collector.dispatch(event)
        return collector


_HANDLERS = {
    "blur":        "on_blur",
    "focus":       "on_focus",
    "mousemove":   "on_mouse_move",
    "mouseleave":  "on_mouse_leave",
    "paste":       "on_paste",
    "cut":         "on_cut",
    "keydown":     "on_key_down",
    "contextmenu": "on_context_menu",
    "scroll":      "on_scroll",
}
