"""
BehaviorRecord — the accumulating behaviour log for one question on one client.

Wire format (camelCase JSON, as sent by the browser and stored in
test_attempts.behavior_logs):
{
    "startTime": 1700000000000,        // epoch millis
    "blurCount": 2,
    "blurDurations": [1200, 4100],     // millis, one per blur → focus cycle
    "visibilityChangeCount": 1,
    "mouseMoveCount": 310,
    "mouseInactiveTime": 65000,        // cumulative millis
    "mouseLeaveCount": 0,
    "copyCount": 1,
    "copiedTexts": ["Climate change is one of ..."],
    "pasteCount": 0,
    "cutCount": 0,
    "keyPressCount": 412,
    "typingSpeed": 3.2,                // keystrokes/sec over the last 10 s
    "rightClickCount": 0,
    "scrollCount": 4,
    "scrollDistance": 0
}

Missing keys read as zero/empty, so an empty `{}` snapshot is valid.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field, fields
from typing import Any

MAX_COPIED_TEXTS   = 10
MAX_COPIED_LENGTH  = 100


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


@dataclass
class BehaviorRecord:
    start_time:              float = 0.0
    end_time:                float | None = None
    blur_count:              int   = 0
    blur_durations:          list[float] = field(default_factory=list)
    visibility_change_count: int   = 0
    mouse_move_count:        int   = 0
    mouse_inactive_time:     float = 0.0
    mouse_leave_count:       int   = 0
    copy_count:              int   = 0
    copied_texts:            list[str] = field(default_factory=list)
    paste_count:             int   = 0
    cut_count:               int   = 0
    key_press_count:         int   = 0
    typing_speed:            float = 0.0
    right_click_count:       int   = 0
    scroll_count:            int   = 0
    scroll_distance:         float = 0.0

    @property
    def mouse_inactive_seconds(self) -> float:
        return self.mouse_inactive_time / 1000.0

    def snapshot(self) -> "BehaviorRecord":
        """Deep copy, frozen at submission time by convention."""
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "end_time" and value is None:
                continue
            out[_camel(f.name)] = list(value) if isinstance(value, list) else value
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "BehaviorRecord":
        """Build a record from the wire dict. Unknown keys are ignored."""
        data = data or {}
        record = cls()
        for f in fields(cls):
            key = _camel(f.name)
            if key not in data or data[key] is None:
                continue
            value = data[key]
            if f.name == "blur_durations":
                value = [float(v) for v in value]
            elif f.name == "copied_texts":
                value = [str(v)[:MAX_COPIED_LENGTH] for v in value][-MAX_COPIED_TEXTS:]
            elif f.name in ("typing_speed", "mouse_inactive_time", "scroll_distance",
                            "start_time", "end_time"):
                value = float(value)
            else:
                value = int(value)
            setattr(record, f.name, value)
        return record
