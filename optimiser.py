# -*- coding: utf-8 -*-
########################
# optimiser.py
########################
# Purpose:
# - Find the highest scoring sequence of non-overlapping Star Power activations for a
#   ProcessedSong.
#
# Design notes:
# - After each activation the bar is empty, so the rest of the search depends only on the
#   first unused point and the earliest beat the next activation may begin.
# - Every act_start is its own memo entry, keyed by (act_start, earliest beat, phrase bar
#   collected since the last activation, whether act_start is the first unused point).
#   Searches resumed after different activations meet on these entries.
# - The earliest beat is moved forward over stretches without whammy that end before the
#   next hit window opens, where nothing can happen. Inside whammy ranges it is rounded
#   up to a 1/16 beat grid, giving up at most 1/16 beat of whammy.
# - ProcessedSong.is_candidate_valid is the only admissibility oracle. Scores come from
#   the PointSet prefix sums in O(1).
# - An activation end is not followed further when its points plus every later point
#   doubled cannot beat the best path found so far.
# - Ties keep the earliest sequence of activation starts.
# - Cooperative cancellation: a threading.Event is polled between candidate extensions.
#   Shared song data is never mutated, so cancelling leaves nothing half built.
# - Whammy end and squeeze of each activation are resolved only for the winning path.
#
########################
# Interfaces:
# Public exceptions:
# - class OptimiserCancelledError(Exception)
#
# Public classes:
# - class Optimiser
#   - __init__(song: ProcessedSong, terminate_event: Optional[threading.Event] = None)
#   - optimal_path() -> Path
#
# Public functions:
# - activations_summary(song: ProcessedSong, path: Path) -> list[str]
#
# Inputs:
# - ProcessedSong.
#
# Outputs:
# - Path with resolved activations, score boost and flat bonus.
#
########################

from __future__ import annotations

from dataclasses import dataclass
import logging
import math
import threading
from typing import Dict, List, Optional, Tuple

from path_models import Activation, ActivationCandidate, ActValidity, Path, SpBar
from processed import ProcessedSong
from sp_data import phrase_amount
from time_converter import Position


logger = logging.getLogger(__name__)

WHAMMY_GRID_PER_BEAT = 16


class OptimiserCancelledError(Exception):
    """Raised when the terminate event is set while the optimiser is running."""


@dataclass(frozen=True)
class _Choice:
    act_start: int
    act_end: int
    earliest_position: Position
    ending_position: Position
    sp_bar: SpBar
    required_whammy_end: float


_Result = Tuple[int, Tuple[_Choice, ...]]
_StartKey = Tuple[int, float, float, bool]

_NO_RESULT: _Result = (0, ())


class Optimiser:
    def __init__(self, song: ProcessedSong, terminate_event: Optional[threading.Event] = None) -> None:
        self._song = song
        self._points = song.points()
        self._engine = song.engine()
        self._terminate_event = terminate_event
        self._cache: Dict[_StartKey, _Result] = {}

        # Earliest hit window start among the points from each index on.
        point_count = self._points.count()
        self._window_floor: List[float] = [math.inf] * (point_count + 1)
        for index in range(point_count - 1, -1, -1):
            window_start = float(self._points.point(index).hit_window_start.beat)
            self._window_floor[index] = min(window_start, self._window_floor[index + 1])

    def _check_cancelled(self) -> None:
        if self._terminate_event is not None and self._terminate_event.is_set():
            raise OptimiserCancelledError("Optimisation cancelled")

    def optimal_path(self) -> Path:
        self._cache = {}
        flat_bonus = self._song.total_solo_boost() + self._song.bre_boost()
        if self._points.count() == 0:
            return Path(activations=[], score_boost=0, flat_bonus=flat_bonus)

        logger.info("Optimising %d points with engine %s", self._points.count(), self._engine.name)
        first_window = self._points.point(0).hit_window_start
        score, choices = self._best_from(0, float(first_window.beat))
        logger.debug("Search visited %d states", len(self._cache))

        activations = [self._resolve(choice) for choice in choices]
        logger.info("Best path has %d activations (+%d)", len(activations), score)
        return Path(activations=activations, score_boost=int(score), flat_bonus=int(flat_bonus))

    def _normalised_beat(self, act_start: int, after_first: bool, beat: float) -> float:
        sp_data = self._song.sp_data()
        if sp_data.is_in_whammy_ranges(beat):
            beat = math.ceil(beat * WHAMMY_GRID_PER_BEAT - 1e-9) / WHAMMY_GRID_PER_BEAT
        else:
            # An activation after the first unused point waits for the previous point's window.
            window_floor = self._window_floor[act_start - 1 if after_first else act_start]
            beat = max(beat, min(sp_data.next_whammy_start(beat), window_floor))
        return round(beat, 6)

    def _best_from(self, first_point: int, earliest_beat: float) -> _Result:
        """Best continuation with an empty bar and every point before ``first_point`` settled.

        Walks forward to the first act_start already solved, then solves the pending ones
        from the back, so each entry holds the best path starting at or after its act_start.
        """
        point_count = self._points.count()
        pending: List[_StartKey] = []
        best = _NO_RESULT
        bar = SpBar()
        beat = float(earliest_beat)
        next_phrase = self._points.next_sp_granting_note(first_point)

        for act_start in range(first_point, point_count):
            after_first = act_start > first_point
            beat = self._normalised_beat(act_start, after_first, beat)
            key = (act_start, beat, float(bar.max_phase), after_first)
            cached = self._cache.get(key)
            if cached is not None:
                best = cached
                break
            pending.append(key)
            if act_start == next_phrase:
                bar.add_phrase(phrase_amount(self._points.point(act_start)))
                next_phrase = self._points.next_sp_granting_note(act_start + 1)

        for key in reversed(pending):
            self._check_cancelled()
            score, choices = self._best_starting_at(key, best[0])
            # An earlier start wins a tie.
            if choices and score >= best[0]:
                best = (score, choices)
            self._cache[key] = best
        return best

    def _best_starting_at(self, key: _StartKey, score_to_match: int) -> _Result:
        """Best path whose first activation starts on the key's act_start."""
        act_start, earliest_beat, phrase_sp, after_first = key
        point = self._points.point(act_start)
        if point.is_hold_point:
            return _NO_RESULT
        if self._engine.is_drums and point.fill_start is None:
            return _NO_RESULT

        converter = self._song.converter()
        minimum = float(self._engine.minimum_sp_to_activate)
        earliest_potential = earliest_beat
        if after_first:
            # The activation cannot begin before the previous point is hit, or that point
            # would belong to it.
            previous_start = float(self._points.point(act_start - 1).hit_window_start.beat)
            earliest_potential = max(earliest_potential, previous_start)

        sp_bar, activation_position = self._song.whammy_topped_bar(
            SpBar(min_phase=phrase_sp, max_phase=phrase_sp),
            earliest_beat,
            act_start,
            converter.position(earliest_potential),
        )
        if not sp_bar.full_enough_to_activate(minimum):
            return _NO_RESULT

        if self._engine.is_drums:
            if converter.beats_to_seconds(activation_position.beat) > float(point.fill_start):
                return _NO_RESULT
            if point.hit_window_start.beat > activation_position.beat:
                activation_position = point.hit_window_start

        required_whammy_end = activation_position.beat if sp_bar.min_phase < minimum else -math.inf
        candidate = ActivationCandidate(
            act_start=act_start,
            act_end=act_start,
            earliest_activation_point=activation_position,
            sp_bar=sp_bar,
        )

        point_count = self._points.count()
        best_score = 0
        best_choices: Tuple[_Choice, ...] = ()
        for act_end in range(act_start, point_count):
            self._check_cancelled()
            candidate.act_end = act_end
            result = self._song.is_candidate_valid(candidate, 1.0, required_whammy_end)
            if result.validity == ActValidity.INSUFFICIENT_SP:
                break
            if result.validity == ActValidity.SURPLUS_SP:
                continue

            if self._engine.overlaps:
                next_point = act_end + 1
            else:
                next_point = self._points.first_after_current_phrase(act_end)
            gained = self._points.range_score(act_start, act_end + 1)
            ceiling = gained + self._points.range_score(next_point, point_count)
            if ceiling <= best_score or ceiling < score_to_match:
                continue

            rest_score, rest_choices = self._best_from(next_point, float(result.ending_position.beat))
            score = gained + rest_score
            if score > best_score:
                best_score = score
                choice = _Choice(
                    act_start=act_start,
                    act_end=act_end,
                    earliest_position=activation_position,
                    ending_position=result.ending_position,
                    sp_bar=sp_bar.copy(),
                    required_whammy_end=required_whammy_end,
                )
                best_choices = (choice,) + rest_choices

        return best_score, best_choices

    def _resolve(self, choice: _Choice) -> Activation:
        candidate = ActivationCandidate(
            act_start=choice.act_start,
            act_end=choice.act_end,
            earliest_activation_point=choice.earliest_position,
            sp_bar=choice.sp_bar.copy(),
        )
        return Activation(
            act_start=choice.act_start,
            act_end=choice.act_end,
            whammy_end=self._song.minimum_whammy_end(candidate, 1.0),
            sp_start=float(choice.earliest_position.beat),
            sp_end=float(choice.ending_position.beat),
            squeeze=self._song.minimum_squeeze(candidate, choice.required_whammy_end),
        )


def activations_summary(song: ProcessedSong, path: Path) -> List[str]:
    """One line per activation listing the colours of its first and last point."""
    points = song.points()
    lines: List[str] = []
    for number, activation in enumerate(path.activations, start=1):
        lines.append(
            f"{number}: {points.colour_string(activation.act_start)} -> {points.colour_string(activation.act_end)}"
        )
    return lines
