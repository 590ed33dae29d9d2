# -*- coding: utf-8 -*-
########################
# engine.py
########################
# Purpose:
# - Per-title scoring and timing rules (the "engine" the chart is played on).
# - One immutable rule table per title, looked up by name.
#
# Design notes:
# - Engine is a frozen dataclass of constants and pure functions. Titles differ only
#   by the values in the table, never by subclassing.
# - Timing window functions take the gap to the previous and next chord in seconds
#   (math.inf at either end of the chart) and return a tolerance in seconds.
# - No I/O. Safe to share between threads.
#
########################
# Interfaces:
# Public enums:
# - class SustainRounding(enum.Enum): TRUNCATE | ROUND_UP | ROUND_TO_NEAREST
#   - apply(value: float) -> int
#
# Public dataclasses:
# - Engine(...)
#   - early_timing_window(early_gap: float, late_gap: float) -> float
#   - late_timing_window(early_gap: float, late_gap: float) -> float
#   - multiplier_for_combo(combo: int) -> int
#
# Public constants:
# - ENGINES: dict[str, Engine]
#
# Public functions:
# - engine_by_name(name: str) -> Engine
# - fixed_window(seconds: float) -> TimingWindowFn
# - gh1_early_window(early_gap: float, late_gap: float) -> float
# - gh1_late_window(early_gap: float, late_gap: float) -> float
#
########################

from __future__ import annotations

from dataclasses import dataclass
import enum
import math
from typing import Callable, Dict


TimingWindowFn = Callable[[float, float], float]

COMBO_PER_MULTIPLIER_STEP = 10
SP_PHRASE_AMOUNT = 0.25
MEASURES_PER_BAR = 8.0

GH1_MAX_WINDOW_SECONDS = 0.1


class SustainRounding(enum.Enum):
    TRUNCATE = "truncate"
    ROUND_UP = "round_up"
    ROUND_TO_NEAREST = "round_to_nearest"

    def apply(self, value: float) -> int:
        if self == SustainRounding.ROUND_UP:
            return int(math.ceil(value))
        if self == SustainRounding.ROUND_TO_NEAREST:
            return int(math.floor(value + 0.5))
        return int(math.floor(value))


def fixed_window(seconds: float) -> TimingWindowFn:
    window_seconds = float(seconds)

    def window(early_gap: float, late_gap: float) -> float:
        return window_seconds

    return window


def gh1_early_window(early_gap: float, late_gap: float) -> float:
    # Half the gap to the neighbour, capped at the nominal window.
    return min(GH1_MAX_WINDOW_SECONDS, float(early_gap) / 2.0)


def gh1_late_window(early_gap: float, late_gap: float) -> float:
    return min(GH1_MAX_WINDOW_SECONDS, float(late_gap) / 2.0)


@dataclass(frozen=True)
class Engine:
    name: str
    base_note_value: int
    base_cymbal_value: int
    max_multiplier: int
    delayed_multiplier: bool
    early_window: TimingWindowFn
    late_window: TimingWindowFn
    sustain_rounding: SustainRounding
    merge_uneven_sustains: bool
    chords_multiply_sustains: bool
    sust_points_per_beat: int
    round_tick_gap: bool
    burst_size: float
    sp_gain_rate: float
    minimum_sp_to_activate: float = 0.5
    overlaps: bool = True
    has_unison_bonuses: bool = False
    has_bres: bool = False
    uses_od_beats: bool = False
    is_drums: bool = False

    def early_timing_window(self, early_gap: float, late_gap: float) -> float:
        return float(self.early_window(float(early_gap), float(late_gap)))

    def late_timing_window(self, early_gap: float, late_gap: float) -> float:
        return float(self.late_window(float(early_gap), float(late_gap)))

    def multiplier_for_combo(self, combo: int) -> int:
        """Multiplier earned by a combo count (combo 0..9 -> 1x)."""
        steps = max(int(combo), 0) // COMBO_PER_MULTIPLIER_STEP
        return min(steps + 1, int(self.max_multiplier))


CH_GUITAR = Engine(
    name="ch_guitar",
    base_note_value=50,
    base_cymbal_value=50,
    max_multiplier=4,
    delayed_multiplier=False,
    early_window=fixed_window(0.07),
    late_window=fixed_window(0.07),
    sustain_rounding=SustainRounding.ROUND_UP,
    merge_uneven_sustains=False,
    chords_multiply_sustains=False,
    sust_points_per_beat=25,
    round_tick_gap=True,
    burst_size=0.25,
    sp_gain_rate=1.0 / 30.0,
)

CH_DRUMS = Engine(
    name="ch_drums",
    base_note_value=50,
    base_cymbal_value=65,
    max_multiplier=4,
    delayed_multiplier=False,
    early_window=fixed_window(0.07),
    late_window=fixed_window(0.07),
    sustain_rounding=SustainRounding.ROUND_UP,
    merge_uneven_sustains=False,
    chords_multiply_sustains=False,
    sust_points_per_beat=25,
    round_tick_gap=True,
    burst_size=0.25,
    sp_gain_rate=1.0 / 30.0,
    is_drums=True,
)

GH1 = Engine(
    name="gh1",
    base_note_value=50,
    base_cymbal_value=50,
    max_multiplier=4,
    delayed_multiplier=False,
    early_window=gh1_early_window,
    late_window=gh1_late_window,
    sustain_rounding=SustainRounding.TRUNCATE,
    merge_uneven_sustains=True,
    chords_multiply_sustains=True,
    sust_points_per_beat=25,
    round_tick_gap=False,
    burst_size=0.0,
    sp_gain_rate=0.034,
    overlaps=False,
)

RB = Engine(
    name="rb",
    base_note_value=25,
    base_cymbal_value=25,
    max_multiplier=4,
    delayed_multiplier=True,
    early_window=fixed_window(0.1),
    late_window=fixed_window(0.1),
    sustain_rounding=SustainRounding.ROUND_TO_NEAREST,
    merge_uneven_sustains=True,
    chords_multiply_sustains=True,
    sust_points_per_beat=12,
    round_tick_gap=False,
    burst_size=0.0,
    sp_gain_rate=0.034,
    has_unison_bonuses=True,
    has_bres=True,
    uses_od_beats=True,
)

RB_BASS = Engine(
    name="rb_bass",
    base_note_value=25,
    base_cymbal_value=25,
    max_multiplier=6,
    delayed_multiplier=True,
    early_window=fixed_window(0.1),
    late_window=fixed_window(0.1),
    sustain_rounding=SustainRounding.ROUND_TO_NEAREST,
    merge_uneven_sustains=True,
    chords_multiply_sustains=True,
    sust_points_per_beat=12,
    round_tick_gap=False,
    burst_size=0.0,
    sp_gain_rate=0.034,
    has_unison_bonuses=True,
    has_bres=True,
    uses_od_beats=True,
)

RB_DRUMS = Engine(
    name="rb_drums",
    base_note_value=25,
    base_cymbal_value=25,
    max_multiplier=4,
    delayed_multiplier=True,
    early_window=fixed_window(0.1),
    late_window=fixed_window(0.1),
    sustain_rounding=SustainRounding.ROUND_TO_NEAREST,
    merge_uneven_sustains=True,
    chords_multiply_sustains=True,
    sust_points_per_beat=12,
    round_tick_gap=False,
    burst_size=0.0,
    sp_gain_rate=0.034,
    has_unison_bonuses=True,
    has_bres=True,
    uses_od_beats=True,
    is_drums=True,
)

ENGINES: Dict[str, Engine] = {
    engine.name: engine for engine in (CH_GUITAR, CH_DRUMS, GH1, RB, RB_BASS, RB_DRUMS)
}


def engine_by_name(name: str) -> Engine:
    key = (name or "").strip().lower()
    try:
        return ENGINES[key]
    except KeyError:
        known = ", ".join(sorted(ENGINES))
        raise KeyError(f"Unknown engine {name!r}. Known engines: {known}") from None


def _run_unit_tests() -> None:
    assert SustainRounding.ROUND_UP.apply(27.1) == 28
    assert SustainRounding.TRUNCATE.apply(27.9) == 27
    assert SustainRounding.ROUND_TO_NEAREST.apply(27.5) == 28

    assert CH_GUITAR.early_timing_window(math.inf, 0.01) == 0.07
    assert GH1.early_timing_window(0.1, math.inf) == 0.05
    assert GH1.late_timing_window(0.1, math.inf) == GH1_MAX_WINDOW_SECONDS

    assert CH_GUITAR.multiplier_for_combo(9) == 1
    assert CH_GUITAR.multiplier_for_combo(10) == 2
    assert CH_GUITAR.multiplier_for_combo(100) == 4
    assert RB_BASS.multiplier_for_combo(100) == 6
    assert engine_by_name(" CH_Drums ") is CH_DRUMS


if __name__ == "__main__":
    _run_unit_tests()
    print("engine.py: ok")
