# -*- coding: utf-8 -*-
########################
# processed.py
########################
# Purpose:
# - ProcessedSong: one chart prepared for one engine and one set of run settings.
# - Decides whether a candidate activation is feasible (the path validator) and
#   summarises finished paths.
#
# Design notes:
# - No I/O. Owns the TimeConverter, PointSet and SpData of the run.
# - Candidate evaluation never raises. Failure is an ActValidity value.
# - The bar is tracked as an interval: max_phase assumes every whammy opportunity is
#   taken and phrases are hit as early as allowed, min_phase assumes only the required
#   whammy and phrases hit as late as allowed.
# - Squeeze narrows hit windows toward the note. Windows are scaled in seconds.
#
########################
# Interfaces:
# Public classes:
# - class ProcessedSong
#   - __init__(track, tempo_map, squeeze_settings, drum_settings, engine, unison_phrases=())
#   - converter() -> TimeConverter
#   - points() -> PointSet
#   - sp_data() -> SpData
#   - engine() -> Engine
#   - track() -> NoteTrack
#   - total_available_sp(start, first_point, act_start, required_whammy_end=-inf) -> SpBar
#   - total_available_sp_with_earliest_pos(start, first_point, act_start, earliest_potential_pos)
#       -> tuple[SpBar, Position]
#   - whammy_topped_bar(bar, start, act_start, earliest_potential_pos) -> tuple[SpBar, Position]
#   - adjusted_hit_window_start(point_index: int, squeeze: float) -> Position
#   - adjusted_hit_window_end(point_index: int, squeeze: float) -> Position
#   - is_candidate_valid(candidate, squeeze=1.0, required_whammy_end=-inf) -> ActResult
#   - minimum_squeeze(candidate, required_whammy_end=-inf) -> float
#   - minimum_whammy_end(candidate, squeeze=1.0) -> float
#   - base_score() -> int
#   - total_solo_boost() -> int
#   - bre_boost() -> int
#   - path_summary(path: Path) -> str
#
# Inputs:
# - NoteTrack, TempoMap, SqueezeSettings, DrumSettings, Engine, unison phrase ticks.
#
# Outputs:
# - ActResult values for the optimiser; text summary for the CLI.
#
########################

from __future__ import annotations

import math
from typing import List, Optional, Sequence, Tuple

import chart_models
import engine as engine_module
import settings
from path_models import ActivationCandidate, ActResult, ActValidity, Path, SpBar
from points import PointSet
from sp_data import SpData, phrase_amount
from time_converter import Position, TimeConverter


BRE_BASE_BONUS = 750
BRE_BONUS_PER_SECOND = 500
SQUEEZE_STEP = 0.05

_NULL_POSITION = Position(beat=0.0, measure=0.0)


class ProcessedSong:
    def __init__(
        self,
        track: chart_models.NoteTrack,
        tempo_map: chart_models.TempoMap,
        squeeze_settings: settings.SqueezeSettings,
        drum_settings: settings.DrumSettings,
        engine: engine_module.Engine,
        unison_phrases: Sequence[int] = (),
    ) -> None:
        self._track = track
        self._engine = engine
        self._converter = TimeConverter(tempo_map)
        self._points = PointSet(track, self._converter, unison_phrases, squeeze_settings, drum_settings, engine)
        self._sp_data = SpData(track, self._converter, squeeze_settings, engine)

        self._base_score = self._points.range_score(0, self._points.count())
        self._total_solo_boost = sum(int(boost.value) for boost in self._points.solo_boosts())
        self._bre_boost = 0
        if engine.has_bres and track.bre is not None:
            start_seconds = self._converter.beats_to_seconds(self._converter.ticks_to_beats(track.bre.start))
            end_seconds = self._converter.beats_to_seconds(self._converter.ticks_to_beats(track.bre.end))
            self._bre_boost = int(BRE_BASE_BONUS + BRE_BONUS_PER_SECOND * (end_seconds - start_seconds))

    def converter(self) -> TimeConverter:
        return self._converter

    def points(self) -> PointSet:
        return self._points

    def sp_data(self) -> SpData:
        return self._sp_data

    def engine(self) -> engine_module.Engine:
        return self._engine

    def track(self) -> chart_models.NoteTrack:
        return self._track

    def base_score(self) -> int:
        return int(self._base_score)

    def total_solo_boost(self) -> int:
        return int(self._total_solo_boost)

    def bre_boost(self) -> int:
        return int(self._bre_boost)

    ########################
    # Bar availability
    ########################

    def _phrases_between(self, first_point: int, act_start: int) -> SpBar:
        bar = SpBar()
        index = self._points.next_sp_granting_note(first_point)
        while index < act_start:
            bar.add_phrase(phrase_amount(self._points.point(index)))
            index = self._points.next_sp_granting_note(index + 1)
        return bar

    def total_available_sp(
        self,
        start: float,
        first_point: int,
        act_start: int,
        required_whammy_end: float = -math.inf,
    ) -> SpBar:
        """Bar gained from ``start`` up to (not including) the point ``act_start``."""
        bar = self._phrases_between(first_point, act_start)
        if act_start < self._points.count():
            whammy_limit = self._points.point(act_start).hit_window_start.beat
        else:
            whammy_limit = math.inf

        bar.max_phase = min(1.0, bar.max_phase + self._sp_data.available_whammy(start, whammy_limit))
        if required_whammy_end > start:
            min_whammy = self._sp_data.available_whammy(start, min(required_whammy_end, whammy_limit))
            bar.min_phase = min(1.0, bar.min_phase + min_whammy)
        return bar

    def total_available_sp_with_earliest_pos(
        self,
        start: float,
        first_point: int,
        act_start: int,
        earliest_potential_pos: Position,
    ) -> Tuple[SpBar, Position]:
        """Bar from phrases, topped up with whammy until activation becomes possible.

        Returns the bar together with the earliest position at or after
        ``earliest_potential_pos`` where it reaches the engine minimum, or the bar at the
        last moment ``act_start`` can still be activated on when the minimum is never reached.
        """
        bar = self._phrases_between(first_point, act_start)
        return self.whammy_topped_bar(bar, start, act_start, earliest_potential_pos)

    def whammy_topped_bar(
        self,
        bar: SpBar,
        start: float,
        act_start: int,
        earliest_potential_pos: Position,
    ) -> Tuple[SpBar, Position]:
        """Same as total_available_sp_with_earliest_pos for an already known phrase bar."""
        bar = bar.copy()
        minimum = float(self._engine.minimum_sp_to_activate)
        if act_start < self._points.count():
            latest_beat = self._points.point(act_start).hit_window_end.beat
        else:
            latest_beat = math.inf

        earliest_beat = max(float(earliest_potential_pos.beat), float(start))
        bar.max_phase = min(1.0, bar.max_phase + self._sp_data.available_whammy(start, earliest_beat))
        if bar.max_phase >= minimum:
            return bar, self._converter.position(earliest_beat)

        reach = self._sp_data.earliest_whammy_reach(earliest_beat, latest_beat, minimum - bar.max_phase)
        if reach is None:
            if math.isfinite(latest_beat):
                bar.max_phase = min(1.0, bar.max_phase + self._sp_data.available_whammy(earliest_beat, latest_beat))
                return bar, self._converter.position(latest_beat)
            return bar, self._converter.position(earliest_beat)

        bar.max_phase = minimum
        return bar, self._converter.position(reach)

    ########################
    # Hit windows
    ########################

    def _squeezed(self, point_index: int, edge: Position, squeeze: float) -> Position:
        point = self._points.point(point_index)
        if squeeze >= 1.0 or point.is_hold_point:
            return edge
        middle_seconds = self._converter.beats_to_seconds(point.position.beat)
        edge_seconds = self._converter.beats_to_seconds(edge.beat)
        return self._converter.position_from_seconds(middle_seconds + (edge_seconds - middle_seconds) * float(squeeze))

    def adjusted_hit_window_start(self, point_index: int, squeeze: float) -> Position:
        return self._squeezed(point_index, self._points.point(point_index).hit_window_start, squeeze)

    def adjusted_hit_window_end(self, point_index: int, squeeze: float) -> Position:
        return self._squeezed(point_index, self._points.point(point_index).hit_window_end, squeeze)

    ########################
    # Candidate validation
    ########################

    def _phrase_indices(self, act_start: int, act_end: int) -> List[int]:
        if not self._engine.overlaps:
            return []
        indices: List[int] = []
        index = self._points.next_sp_granting_note(act_start)
        while index <= act_end:
            indices.append(index)
            index = self._points.next_sp_granting_note(index + 1)
        return indices

    def _max_bar_at_act_end(self, candidate: ActivationCandidate, squeeze: float, whammy_until: float) -> Optional[float]:
        """Bar left when reaching act_end with every chance taken, None if it runs out.

        The player may hold the activation back until act_start's window closes. The bar
        does not drain while waiting, and whammy before whammy_until keeps filling it.
        """
        earliest = float(candidate.earliest_activation_point.beat)
        cursor = max(earliest, self.adjusted_hit_window_end(candidate.act_start, squeeze).beat)
        waiting_gain = self._sp_data.available_whammy(earliest, min(cursor, whammy_until))
        sp = min(1.0, float(candidate.sp_bar.max_phase) + waiting_gain)
        for index in self._phrase_indices(candidate.act_start, candidate.act_end):
            phrase_beat = self.adjusted_hit_window_start(index, squeeze).beat
            sp = self._sp_data.propagate_sp_over_whammy_min(cursor, phrase_beat, sp, whammy_until)
            if sp < 0.0:
                return None
            sp = min(1.0, sp + phrase_amount(self._points.point(index)))
            cursor = max(cursor, phrase_beat)

        act_end_beat = self.adjusted_hit_window_start(candidate.act_end, squeeze).beat
        sp = self._sp_data.propagate_sp_over_whammy_min(cursor, act_end_beat, sp, whammy_until)
        if sp < 0.0:
            return None
        return sp

    def _min_activation_end(self, candidate: ActivationCandidate, squeeze: float, required_whammy_end: float) -> float:
        """Beat where the activation ends with the least bar the player can have."""
        sp = max(float(candidate.sp_bar.min_phase), float(self._engine.minimum_sp_to_activate))
        cursor = float(candidate.earliest_activation_point.beat)
        for index in self._phrase_indices(candidate.act_start, candidate.act_end):
            phrase_beat = self.adjusted_hit_window_end(index, squeeze).beat
            remaining = self._sp_data.propagate_sp_over_whammy_min(cursor, phrase_beat, sp, required_whammy_end)
            if remaining < 0.0:
                return self._sp_data.activation_end_point(cursor, sp, required_whammy_end).beat
            sp = min(1.0, remaining + phrase_amount(self._points.point(index)))
            cursor = max(cursor, phrase_beat)
        return self._sp_data.activation_end_point(cursor, sp, required_whammy_end).beat

    def is_candidate_valid(
        self,
        candidate: ActivationCandidate,
        squeeze: float = 1.0,
        required_whammy_end: float = -math.inf,
    ) -> ActResult:
        minimum = float(self._engine.minimum_sp_to_activate)
        if not candidate.sp_bar.full_enough_to_activate(minimum):
            return ActResult(ending_position=_NULL_POSITION, validity=ActValidity.INSUFFICIENT_SP)

        start_beat = float(candidate.earliest_activation_point.beat)
        if start_beat > self.adjusted_hit_window_end(candidate.act_start, squeeze).beat:
            return ActResult(ending_position=_NULL_POSITION, validity=ActValidity.INSUFFICIENT_SP)

        if self._max_bar_at_act_end(candidate, squeeze, math.inf) is None:
            return ActResult(ending_position=_NULL_POSITION, validity=ActValidity.INSUFFICIENT_SP)

        act_end_beat = self.adjusted_hit_window_start(candidate.act_end, squeeze).beat
        min_end_beat = self._min_activation_end(candidate, squeeze, required_whammy_end)
        ending_position = self._converter.position(max(act_end_beat, min_end_beat))

        next_index = candidate.act_end + 1
        if next_index >= self._points.count():
            return ActResult(ending_position=ending_position, validity=ActValidity.SUCCESS)

        if min_end_beat > self.adjusted_hit_window_end(next_index, squeeze).beat:
            return ActResult(
                ending_position=self._converter.position(min_end_beat),
                validity=ActValidity.SURPLUS_SP,
            )
        return ActResult(ending_position=ending_position, validity=ActValidity.SUCCESS)

    def minimum_squeeze(self, candidate: ActivationCandidate, required_whammy_end: float = -math.inf) -> float:
        steps = int(round(1.0 / SQUEEZE_STEP))
        for step in range(steps + 1):
            squeeze = step * SQUEEZE_STEP
            result = self.is_candidate_valid(candidate, squeeze, required_whammy_end)
            if result.validity == ActValidity.SUCCESS:
                return round(squeeze, 2)
        return 1.0

    def minimum_whammy_end(self, candidate: ActivationCandidate, squeeze: float = 1.0) -> float:
        """Earliest beat the player may stop whammying and still reach act_end."""
        if self._max_bar_at_act_end(candidate, squeeze, -math.inf) is not None:
            return -math.inf

        low = float(candidate.earliest_activation_point.beat)
        high = self.adjusted_hit_window_start(candidate.act_end, squeeze).beat
        if high <= low or self._max_bar_at_act_end(candidate, squeeze, high) is None:
            return high

        for _ in range(40):
            middle = (low + high) / 2.0
            if self._max_bar_at_act_end(candidate, squeeze, middle) is None:
                low = middle
            else:
                high = middle
        return high

    ########################
    # Summaries
    ########################

    def _count_phrases(self, start: int, end: int) -> int:
        count = 0
        index = self._points.next_sp_granting_note(start)
        while index < end:
            count += 1
            index = self._points.next_sp_granting_note(index + 1)
        return count

    def path_string(self, path: Path) -> str:
        if not path.activations:
            return "None"

        parts: List[str] = []
        cursor = 0
        for activation in path.activations:
            text = str(self._count_phrases(cursor, activation.act_start))
            inside = self._count_phrases(activation.act_start, activation.act_end + 1)
            if inside > 0 and self._engine.overlaps:
                text += f"(+{inside})"
            parts.append(text)
            cursor = activation.act_end + 1

        text = "-".join(parts)
        spare = self._count_phrases(cursor, self._points.count())
        if spare > 0:
            text += f" (+{spare})"
        return text

    def path_summary(self, path: Path) -> str:
        no_sp_score = self.base_score() + self.total_solo_boost() + self.bre_boost()
        lines: List[str] = [
            f"Path: {self.path_string(path)}",
            f"No SP score: {no_sp_score}",
            f"Total score: {no_sp_score + int(path.score_boost)}",
        ]
        if self.total_solo_boost() > 0:
            lines.append(f"Solo bonuses: {self.total_solo_boost()}")
        if self.bre_boost() > 0:
            lines.append(f"Big Rock Ending bonus: {self.bre_boost()}")

        for number, activation in enumerate(path.activations, start=1):
            start_measure = self._converter.beats_to_measures(activation.sp_start) + 1.0
            end_measure = self._converter.beats_to_measures(activation.sp_end) + 1.0
            delta = self._points.range_score(activation.act_start, activation.act_end + 1)
            lines.append(
                f"Activation {number}: Measure {_format_measure(start_measure)} to Measure "
                f"{_format_measure(end_measure)} (squeeze {int(round(activation.squeeze * 100))}%, +{delta})"
            )
        return "\n".join(lines)


def _format_measure(measure: float) -> str:
    text = f"{measure:.2f}".rstrip("0").rstrip(".")
    return text or "0"
