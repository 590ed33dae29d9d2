# -*- coding: utf-8 -*-
########################
# sp_data.py
########################
# Purpose:
# - Star Power resource model: where whammy can be gained, how fast the bar drains and
#   how the bar evolves between two positions.
# - Per-measure fill curve of a finished path for the rendering collaborator.
#
# Design notes:
# - No I/O. Immutable after construction.
# - Whammy ranges are kept merged and sorted by beat, with prefix sums of their lengths,
#   so whammy totals between two beats are O(log n).
# - The bar drains 1/8 per measure. Engines that drain by overdrive beats use OD measures
#   when the tempo map carries OD beat markers.
# - Propagation returns -1.0 when the bar empties on the way.
#
########################
# Interfaces:
# Public classes:
# - class SpData
#   - __init__(track, converter, squeeze_settings, engine)
#   - available_whammy(start: float, end: float) -> float
#   - whammy_beats(start: float, end: float) -> float
#   - is_in_whammy_ranges(beat: float) -> bool
#   - next_whammy_start(beat: float) -> float
#   - drain(start: float, end: float) -> float
#   - propagate_sp_over_whammy_max(start: float, end: float, sp: float) -> float
#   - propagate_sp_over_whammy_min(start: float, end: float, sp: float, required_whammy_end: float) -> float
#   - activation_end_point(start: float, sp: float, whammy_until: float) -> Position
#   - earliest_whammy_reach(start: float, limit: float, amount: float) -> Optional[float]
#   - whammy_beats_per_measure(measure_count: int) -> list[float]
#   - sp_percent_values(points, activations, measure_count) -> list[float]
#
# Inputs:
# - NoteTrack, TimeConverter, SqueezeSettings, Engine.
#
# Outputs:
# - Bar values in [0, 1] (or -1.0 for "ran out") used by processed.py.
#
########################

from __future__ import annotations

from bisect import bisect_left, bisect_right
from dataclasses import dataclass
import math
from typing import List, Optional, Sequence, Tuple

import chart_models
import engine as engine_module
import path_models
import points as points_module
import settings
import time_converter
from engine import MEASURES_PER_BAR, SP_PHRASE_AMOUNT
from time_converter import Position


_EMPTY_TOLERANCE = 1e-9


@dataclass(frozen=True)
class WhammyRange:
    start: float
    end: float


def _merge_ranges(ranges: List[WhammyRange]) -> List[WhammyRange]:
    merged: List[WhammyRange] = []
    for whammy_range in sorted(ranges, key=lambda item: (item.start, item.end)):
        if merged and whammy_range.start <= merged[-1].end:
            if whammy_range.end > merged[-1].end:
                merged[-1] = WhammyRange(start=merged[-1].start, end=whammy_range.end)
            continue
        merged.append(whammy_range)
    return merged


def phrase_amount(point: points_module.Point) -> float:
    amount = SP_PHRASE_AMOUNT
    if point.is_unison_sp_granting_note:
        amount += SP_PHRASE_AMOUNT
    return amount


class SpData:
    def __init__(
        self,
        track: chart_models.NoteTrack,
        converter: time_converter.TimeConverter,
        squeeze_settings: settings.SqueezeSettings,
        engine: engine_module.Engine,
    ) -> None:
        self._converter = converter
        self._engine = engine
        self._gain_rate = float(engine.sp_gain_rate)

        if engine.uses_od_beats and converter.has_od_beats():
            self._to_sp_measures = converter.beats_to_od_measures
            self._from_sp_measures = converter.od_measures_to_beats
        else:
            self._to_sp_measures = converter.beats_to_measures
            self._from_sp_measures = converter.measures_to_beats

        ranges = _merge_ranges(self._whammy_ranges(track, squeeze_settings))
        self._starts: List[float] = [item.start for item in ranges]
        self._ends: List[float] = [item.end for item in ranges]
        self._prefix: List[float] = [0.0]
        for item in ranges:
            self._prefix.append(self._prefix[-1] + (item.end - item.start))

    def _whammy_ranges(
        self,
        track: chart_models.NoteTrack,
        squeeze_settings: settings.SqueezeSettings,
    ) -> List[WhammyRange]:
        if self._engine.is_drums or track.track_type == chart_models.TrackType.DRUMS:
            return []

        notes = [note for note in track.notes]
        if self._engine.has_bres and track.bre is not None:
            notes = [note for note in notes if int(note.position) < int(track.bre.start)]

        chord_ticks = sorted({int(note.position) for note in notes})
        chord_seconds = {
            tick: self._converter.beats_to_seconds(self._converter.ticks_to_beats(tick)) for tick in chord_ticks
        }
        tick_slots = {tick: slot for slot, tick in enumerate(chord_ticks)}

        video_lag = float(squeeze_settings.video_lag)
        ranges: List[WhammyRange] = []
        for note in notes:
            if int(note.length) <= 0:
                continue
            if not any(phrase.contains(note.position) for phrase in track.sp_phrases):
                continue

            slot = tick_slots[int(note.position)]
            seconds = chord_seconds[int(note.position)]
            early_gap = seconds - chord_seconds[chord_ticks[slot - 1]] if slot > 0 else math.inf
            late_gap = chord_seconds[chord_ticks[slot + 1]] - seconds if slot + 1 < len(chord_ticks) else math.inf
            early_window = self._engine.early_timing_window(early_gap, late_gap)

            start_seconds = seconds - float(squeeze_settings.early_whammy) * early_window
            start_seconds += float(squeeze_settings.lazy_whammy) + float(squeeze_settings.whammy_delay)
            end_seconds = self._converter.beats_to_seconds(self._converter.ticks_to_beats(note.end_position()))

            start_beat = self._converter.seconds_to_beats(start_seconds + video_lag)
            end_beat = self._converter.seconds_to_beats(end_seconds + video_lag)
            if video_lag == 0.0:
                end_beat = self._converter.ticks_to_beats(note.end_position())
            if end_beat <= start_beat:
                continue
            ranges.append(WhammyRange(start=start_beat, end=end_beat))

        return ranges

    ########################
    # Whammy queries
    ########################

    def _covered_before(self, beat: float) -> float:
        index = bisect_right(self._starts, beat)
        if index == 0:
            return 0.0
        last = index - 1
        return self._prefix[last] + (min(beat, self._ends[last]) - self._starts[last])

    def whammy_beats(self, start: float, end: float) -> float:
        if end <= start:
            return 0.0
        return max(self._covered_before(float(end)) - self._covered_before(float(start)), 0.0)

    def available_whammy(self, start: float, end: float) -> float:
        return self.whammy_beats(start, end) * self._gain_rate

    def is_in_whammy_ranges(self, beat: float) -> bool:
        index = bisect_right(self._starts, float(beat)) - 1
        return index >= 0 and float(beat) <= self._ends[index]

    def next_whammy_start(self, beat: float) -> float:
        """``beat`` itself inside a whammy range, otherwise where the next range starts."""
        if self.is_in_whammy_ranges(beat):
            return float(beat)
        index = bisect_right(self._starts, float(beat))
        if index >= len(self._starts):
            return math.inf
        return self._starts[index]

    def earliest_whammy_reach(self, start: float, limit: float, amount: float) -> Optional[float]:
        """Earliest beat in [start, limit] by which whammy from start gains ``amount``."""
        if amount <= 0.0:
            return float(start)
        if self._gain_rate <= 0.0 or limit <= start:
            return None

        target = self._covered_before(float(start)) + float(amount) / self._gain_rate
        if self._covered_before(float(limit)) + _EMPTY_TOLERANCE < target:
            return None

        index = bisect_left(self._prefix, target) - 1
        index = max(0, min(index, len(self._starts) - 1))
        beat = self._starts[index] + (target - self._prefix[index])
        return min(max(beat, float(start)), float(limit))

    def whammy_beats_per_measure(self, measure_count: int) -> List[float]:
        values: List[float] = []
        for measure in range(int(measure_count)):
            start = self._converter.measures_to_beats(float(measure))
            end = self._converter.measures_to_beats(float(measure + 1))
            values.append(self.whammy_beats(start, end))
        return values

    ########################
    # Bar propagation
    ########################

    def drain(self, start: float, end: float) -> float:
        if end <= start:
            return 0.0
        return (self._to_sp_measures(float(end)) - self._to_sp_measures(float(start))) / MEASURES_PER_BAR

    def _segments(self, start: float, end: float, whammy_until: float) -> List[Tuple[float, float, bool]]:
        """Split [start, end] into pieces with and without whammy."""
        segments: List[Tuple[float, float, bool]] = []
        cursor = float(start)
        limit = min(float(end), float(whammy_until))
        index = bisect_right(self._ends, cursor)

        while cursor < end:
            if index >= len(self._starts) or cursor >= limit:
                segments.append((cursor, float(end), False))
                break
            range_start = self._starts[index]
            range_end = self._ends[index]
            if range_start > cursor:
                gap_end = min(range_start, float(end))
                segments.append((cursor, gap_end, False))
                cursor = gap_end
                continue
            whammy_end = min(range_end, limit)
            segments.append((cursor, whammy_end, True))
            cursor = whammy_end
            if cursor >= range_end:
                index += 1

        return segments

    def _propagate(self, start: float, end: float, sp: float, whammy_until: float, clamp: bool) -> float:
        sp = float(sp)
        for segment_start, segment_end, has_whammy in self._segments(start, end, whammy_until):
            sp -= self.drain(segment_start, segment_end)
            if has_whammy:
                sp = min(sp + (segment_end - segment_start) * self._gain_rate, 1.0)
            if sp < -_EMPTY_TOLERANCE:
                if clamp:
                    sp = 0.0
                    continue
                return -1.0
        return max(sp, 0.0)

    def propagate_sp_over_whammy_max(self, start: float, end: float, sp: float) -> float:
        return self._propagate(start, end, sp, math.inf, clamp=False)

    def propagate_sp_over_whammy_min(self, start: float, end: float, sp: float, required_whammy_end: float) -> float:
        return self._propagate(start, end, sp, required_whammy_end, clamp=False)

    def activation_end_point(self, start: float, sp: float, whammy_until: float) -> Position:
        """Position at which a bar of ``sp`` activated at ``start`` runs out."""
        cursor = float(start)
        sp = float(sp)
        if whammy_until > cursor:
            for segment_start, segment_end, has_whammy in self._segments(cursor, float(whammy_until), whammy_until):
                if not has_whammy:
                    run_out = self._from_sp_measures(self._to_sp_measures(segment_start) + sp * MEASURES_PER_BAR)
                    if run_out <= segment_end:
                        return self._converter.position(run_out)
                    sp -= self.drain(segment_start, segment_end)
                else:
                    after = sp - self.drain(segment_start, segment_end)
                    after += (segment_end - segment_start) * self._gain_rate
                    if after < 0.0:
                        fraction = sp / (sp - after)
                        return self._converter.position(segment_start + fraction * (segment_end - segment_start))
                    sp = min(after, 1.0)
                cursor = segment_end

        end_beat = self._from_sp_measures(self._to_sp_measures(cursor) + sp * MEASURES_PER_BAR)
        return self._converter.position(end_beat)

    ########################
    # Fill curve
    ########################

    def _gain_outside_activation(
        self,
        points: Sequence[points_module.Point],
        start: float,
        end: float,
        sp: float,
        index: int,
        stop: int,
    ) -> Tuple[float, int]:
        cursor = float(start)
        while index < stop and index < len(points) and points[index].position.beat < end:
            point = points[index]
            if point.is_sp_granting_note:
                beat = max(point.position.beat, cursor)
                sp = min(1.0, sp + self.available_whammy(cursor, beat))
                cursor = beat
                sp = min(1.0, sp + phrase_amount(point))
            index += 1
        sp = min(1.0, sp + self.available_whammy(cursor, end))
        return sp, index

    def _gain_inside_activation(
        self,
        points: Sequence[points_module.Point],
        start: float,
        end: float,
        sp: float,
        index: int,
        activation: path_models.Activation,
    ) -> Tuple[float, int]:
        cursor = float(start)
        whammy_until = min(float(activation.whammy_end), float(activation.sp_end))
        while index <= activation.act_end and index < len(points) and points[index].position.beat < end:
            point = points[index]
            if point.is_sp_granting_note and self._engine.overlaps:
                beat = max(point.position.beat, cursor)
                sp = self._propagate(cursor, beat, sp, whammy_until, clamp=True)
                cursor = beat
                sp = min(1.0, sp + phrase_amount(point))
            index += 1
        sp = self._propagate(cursor, end, sp, whammy_until, clamp=True)
        return sp, index

    def sp_percent_values(
        self,
        points: Sequence[points_module.Point],
        activations: Sequence[path_models.Activation],
        measure_count: int,
    ) -> List[float]:
        """Bar fill at the end of each measure under the given activations."""
        values: List[float] = []
        sp = 0.0
        current_beat = self._converter.measures_to_beats(0.0)
        point_index = 0
        act_index = 0

        for measure in range(int(measure_count)):
            end_beat = self._converter.measures_to_beats(float(measure + 1))
            while current_beat < end_beat:
                activation = activations[act_index] if act_index < len(activations) else None
                stop = activation.act_start if activation is not None else len(points)

                if activation is None or end_beat <= activation.sp_start:
                    sp, point_index = self._gain_outside_activation(points, current_beat, end_beat, sp, point_index, stop)
                    current_beat = end_beat
                elif current_beat < activation.sp_start:
                    sp, point_index = self._gain_outside_activation(
                        points, current_beat, activation.sp_start, sp, point_index, stop
                    )
                    current_beat = activation.sp_start
                else:
                    # Phrases hit before the activation but after its start time still count.
                    while point_index < activation.act_start:
                        if points[point_index].is_sp_granting_note:
                            sp = min(1.0, sp + phrase_amount(points[point_index]))
                        point_index += 1
                    segment_end = min(end_beat, float(activation.sp_end))
                    sp, point_index = self._gain_inside_activation(
                        points, current_beat, segment_end, sp, point_index, activation
                    )
                    current_beat = max(current_beat, segment_end)
                    if segment_end >= activation.sp_end:
                        sp = 0.0
                        act_index += 1

            values.append(min(max(sp, 0.0), 1.0))

        return values
