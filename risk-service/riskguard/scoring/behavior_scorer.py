"""
Behavioural scorer — rule table over one BehaviorRecord snapshot.

Each signal contributes the points of its first matching band; signals are
independent, so several can fire at once. The sum is clamped to [0, 100].

Two weight tables exist:
    FUSED_WEIGHTS          used when the external judgment is blended in
    BEHAVIOR_ONLY_WEIGHTS  heavier focus-loss / paste bands to make up for
                           the missing judgment signal
"""
from __future__ import annotations

from dataclasses import dataclass

from riskguard.telemetry.behavior_record import BehaviorRecord

COMPOUND_MAX_ANSWER_SECS = 60
COMPOUND_MIN_BLUR_MS     = 3000


@dataclass(frozen=True)
class BandWeights:
    # (threshold, points) pairs, checked top-down with ">" comparisons
    blur_bands:       tuple[tuple[int, int], ...]
    copy_bands:       tuple[tuple[int, int], ...]
    paste_points:     int
    inactive_bands:   tuple[tuple[int, int], ...]   # thresholds in seconds
    fast_typing_cps:  float = 6.0
    fast_typing_pts:  int   = 20
    slow_typing_cps:  float = 1.0
    slow_typing_keys: int   = 50
    slow_typing_pts:  int   = 15
    compound_pts:     int   = 35


FUSED_WEIGHTS = BandWeights(
    blur_bands     = ((5, 30), (3, 20), (0, 10)),
    copy_bands     = ((2, 25), (0, 15)),
    paste_points   = 30,
    inactive_bands = ((120, 25), (60, 15)),
)

BEHAVIOR_ONLY_WEIGHTS = BandWeights(
    blur_bands     = ((10, 40), (5, 30), (3, 20), (0, 10)),
    copy_bands     = ((2, 25), (0, 15)),
    paste_points   = 35,
    inactive_bands = ((120, 25), (60, 15)),
)


def _band(value: float, bands: tuple[tuple[int, int], ...]) -> int:
    for threshold, points in bands:
        if value > threshold:
            return points
    return 0


def is_compound_pattern(record: BehaviorRecord, answer_time: float) -> bool:
    """Copy, then a long absence, then a quick answer: the translate-and-paste shape."""
    return (
        record.copy_count > 0
        and record.blur_count > 0
        and answer_time < COMPOUND_MAX_ANSWER_SECS
        and any(d > COMPOUND_MIN_BLUR_MS for d in record.blur_durations)
    )


def behavioral_score(
    record:      BehaviorRecord,
    answer_time: float,
    weights:     BandWeights = FUSED_WEIGHTS,
) -> int:
    """Return the behavioural risk of one answer as an int in [0, 100]."""
    score = 0
    score += _band(record.blur_count, weights.blur_bands)
    score += _band(record.copy_count, weights.copy_bands)
    if record.paste_count > 0:
        score += weights.paste_points
    score += _band(record.mouse_inactive_seconds, weights.inactive_bands)

    if record.typing_speed > weights.fast_typing_cps:
        score += weights.fast_typing_pts
    elif (record.typing_speed < weights.slow_typing_cps
          and record.key_press_count > weights.slow_typing_keys):
        score += weights.slow_typing_pts

    if is_compound_pattern(record, answer_time):
        score += weights.compound_pts

    return max(0, min(100, score))


def behavior_only_score(record: BehaviorRecord, answer_time: float) -> int:
    return behavioral_score(record, answer_time, BEHAVIOR_ONLY_WEIGHTS)
