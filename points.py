# -*- coding: utf-8 -*-
########################
# points.py
########################
# Purpose:
# - Turn a NoteTrack into the ordered list of scorable Points for one Engine and one set
#   of run settings.
# - Precompute the index tables and score prefix sums the validator and optimiser query.
#
# Design notes:
# - No I/O. Built once per (track, engine, settings) and immutable afterwards.
# - Points live in one tuple. Cross references between points are integer indices,
#   with len(points) meaning "none".
# - Notes sharing a tick form a chord and produce one point. Sustains append hold
#   points at the engine cadence.
# - Video lag is applied last, in seconds, to every point.
#
########################
# Interfaces:
# Public dataclasses:
# - Point(position, hit_window_start, hit_window_end, value, base_value, is_hold_point,
#         is_sp_granting_note, is_unison_sp_granting_note, fill_start, notes, phrase_index)
# - SoloBoost(position: Position, value: int)
#
# Public classes:
# - class PointSet
#   - __init__(track, converter, unison_phrases, squeeze_settings, drum_settings, engine)
#   - points() -> tuple[Point, ...]
#   - count() -> int
#   - point(index: int) -> Point
#   - next_non_hold_point(index: int) -> int
#   - next_sp_granting_note(index: int) -> int
#   - first_after_current_phrase(index: int) -> int
#   - range_score(start: int, end: int) -> int
#   - solo_boosts() -> list[SoloBoost]
#   - colour_string(index: int) -> str
#   - video_lag() -> float
#
# Inputs:
# - NoteTrack, TimeConverter, unison phrase ticks, SqueezeSettings, DrumSettings, Engine.
#
# Outputs:
# - Points consumed by sp_data.py, processed.py, optimiser.py and measure_report.py.
#
########################

from __future__ import annotations

from bisect import bisect_left
from dataclasses import dataclass, replace
import logging
import math
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import chart_models
import engine as engine_module
import settings
import time_converter
from time_converter import Position


logger = logging.getLogger(__name__)

SOLO_NOTE_BONUS = 100

_FIVE_FRET_LETTERS: Dict[str, str] = {
    "green": "G",
    "red": "R",
    "yellow": "Y",
    "blue": "B",
    "orange": "O",
}

_SIX_FRET_NAMES: Dict[str, str] = {
    "white_low": "W1",
    "white_mid": "W2",
    "white_high": "W3",
    "black_low": "B1",
    "black_mid": "B2",
    "black_high": "B3",
}

_DRUM_LETTERS: Dict[str, str] = {
    "red": "R",
    "yellow": "Y",
    "blue": "B",
    "green": "G",
}


@dataclass(frozen=True)
class Point:
    position: Position
    hit_window_start: Position
    hit_window_end: Position
    value: int
    base_value: int
    is_hold_point: bool
    is_sp_granting_note: bool
    is_unison_sp_granting_note: bool = False
    # Seconds at which the drum fill that activates on this point starts.
    fill_start: Optional[float] = None
    notes: Tuple[chart_models.Note, ...] = ()
    phrase_index: Optional[int] = None


@dataclass(frozen=True)
class SoloBoost:
    position: Position
    value: int


def _lane_order(track_type: chart_models.TrackType) -> Dict[str, int]:
    return {lane: index for index, lane in enumerate(chart_models.lanes_for_track_type(track_type))}


def playable_notes(
    track: chart_models.NoteTrack,
    drum_settings: settings.DrumSettings,
    engine: engine_module.Engine,
) -> List[chart_models.Note]:
    """Notes that can score under the given settings, sorted by (tick, lane).

    Drum tracks drop disabled kick lanes, turn cymbals into toms without pro drums
    and swap red / yellow cymbal inside disco flips. Notes inside a Big Rock Ending
    are dropped on engines that score BREs separately.
    """
    notes: List[chart_models.Note] = []
    is_drums = track.track_type == chart_models.TrackType.DRUMS

    for note in track.notes:
        if engine.has_bres and track.bre is not None and int(note.position) >= int(track.bre.start):
            continue
        if is_drums:
            if note.lane == "kick" and drum_settings.disable_kick:
                continue
            if note.lane == "double_kick" and not drum_settings.enable_double_kick:
                continue
            lane = note.lane
            is_cymbal = bool(note.is_cymbal)
            if not drum_settings.pro_drums:
                is_cymbal = False
            elif drum_settings.enable_disco_flip and any(flip.contains(note.position) for flip in track.disco_flips):
                if lane == "red":
                    lane, is_cymbal = "yellow", True
                elif lane == "yellow" and is_cymbal:
                    lane, is_cymbal = "red", False
            if lane != note.lane or is_cymbal != note.is_cymbal:
                note = replace(note, lane=lane, is_cymbal=is_cymbal)
        notes.append(note)

    order = _lane_order(track.track_type)
    notes.sort(key=lambda item: (int(item.position), order.get(item.lane, len(order))))

    deduplicated: List[chart_models.Note] = []
    seen = set()
    for note in notes:
        key = (int(note.position), note.lane)
        if key in seen:
            continue
        seen.add(key)
        deduplicated.append(note)
    return deduplicated


def _group_chords(notes: Sequence[chart_models.Note]) -> List[List[chart_models.Note]]:
    chords: List[List[chart_models.Note]] = []
    for note in notes:
        if chords and int(chords[-1][0].position) == int(note.position):
            chords[-1].append(note)
        else:
            chords.append([note])
    return chords


class PointSet:
    def __init__(
        self,
        track: chart_models.NoteTrack,
        converter: time_converter.TimeConverter,
        unison_phrases: Sequence[int],
        squeeze_settings: settings.SqueezeSettings,
        drum_settings: settings.DrumSettings,
        engine: engine_module.Engine,
    ) -> None:
        self._converter = converter
        self._engine = engine
        self._resolution = int(converter.resolution())
        self._video_lag = float(squeeze_settings.video_lag)
        self._track_type = track.track_type

        notes = playable_notes(track, drum_settings, engine)
        chords = _group_chords(notes)
        phrases = sorted(track.sp_phrases, key=lambda item: int(item.position))
        unison_ticks = {int(tick) for tick in unison_phrases}

        points = self._points_from_chords(chords, phrases, unison_ticks, float(squeeze_settings.squeeze))
        points.sort(key=lambda item: item.position.beat)
        points = self._mark_fill_points(points, track)
        points = self._apply_multiplier(points)
        points = self._apply_video_lag(points)
        self._points: Tuple[Point, ...] = tuple(points)

        self._next_non_hold = self._next_matching(lambda item: not item.is_hold_point)
        self._next_sp_granting = self._next_matching(lambda item: item.is_sp_granting_note)
        self._first_after_phrase = self._first_after_current_phrase_table(phrases)

        self._cumulative_score_totals: List[int] = [0]
        for point in self._points:
            self._cumulative_score_totals.append(self._cumulative_score_totals[-1] + int(point.value))

        self._solo_boosts = self._build_solo_boosts(track, notes)

        logger.debug(
            "Built %d points (%d hold points) for engine %s",
            len(self._points),
            sum(1 for point in self._points if point.is_hold_point),
            engine.name,
        )

    ########################
    # Construction
    ########################

    def _position_at_seconds(self, seconds: float) -> Position:
        return self._converter.position_from_seconds(seconds)

    def _points_from_chords(
        self,
        chords: List[List[chart_models.Note]],
        phrases: List[chart_models.StarPower],
        unison_ticks: set,
        squeeze: float,
    ) -> List[Point]:
        points: List[Point] = []
        chord_seconds = [
            self._converter.beats_to_seconds(self._converter.ticks_to_beats(chord[0].position)) for chord in chords
        ]
        phrase_index = 0

        for chord_index, chord in enumerate(chords):
            tick = int(chord[0].position)
            while phrase_index < len(phrases) and int(phrases[phrase_index].position) + int(phrases[phrase_index].length) <= tick:
                phrase_index += 1
            current_phrase: Optional[int] = None
            if phrase_index < len(phrases) and phrases[phrase_index].contains(tick):
                current_phrase = phrase_index

            is_sp_granting = False
            is_unison = False
            if current_phrase is not None:
                is_last_chord = chord_index + 1 == len(chords)
                if is_last_chord or not phrases[current_phrase].contains(int(chords[chord_index + 1][0].position)):
                    is_sp_granting = True
                    is_unison = bool(self._engine.has_unison_bonuses) and int(phrases[current_phrase].position) in unison_ticks

            seconds = chord_seconds[chord_index]
            early_gap = seconds - chord_seconds[chord_index - 1] if chord_index > 0 else math.inf
            late_gap = chord_seconds[chord_index + 1] - seconds if chord_index + 1 < len(chords) else math.inf
            early_window = self._engine.early_timing_window(early_gap, late_gap) * squeeze
            late_window = self._engine.late_timing_window(early_gap, late_gap) * squeeze

            value = self._chord_value(chord)
            beat = self._converter.ticks_to_beats(tick)
            points.append(
                Point(
                    position=self._converter.position(beat),
                    hit_window_start=self._position_at_seconds(seconds - early_window),
                    hit_window_end=self._position_at_seconds(seconds + late_window),
                    value=value,
                    base_value=value,
                    is_hold_point=False,
                    is_sp_granting_note=is_sp_granting,
                    is_unison_sp_granting_note=is_unison,
                    notes=tuple(chord),
                    phrase_index=current_phrase,
                )
            )
            points.extend(self._sustain_points_for_chord(chord, current_phrase))

        return points

    def _chord_value(self, chord: Sequence[chart_models.Note]) -> int:
        # Kicks sort first on drums; the lead lane is the first pad in the chord.
        lead = next((note for note in chord if note.lane not in chart_models.KICK_LANES), chord[0])
        value = self._engine.base_cymbal_value if lead.is_cymbal else self._engine.base_note_value
        if any(note.dynamics != chart_models.Dynamics.NONE for note in chord):
            value *= 2
        return int(value) * len(chord)

    def _sustain_points_for_chord(self, chord: Sequence[chart_models.Note], phrase: Optional[int]) -> List[Point]:
        lengths = [int(note.length) for note in chord]
        if max(lengths) <= 0:
            return []

        # Merging engines hold the chord only as long as its shortest note, taps included.
        if min(lengths) == max(lengths) or self._engine.merge_uneven_sustains:
            return self._sustain_points(int(chord[0].position), min(lengths), len(chord), tuple(chord), phrase)

        points: List[Point] = []
        for note in chord:
            if int(note.length) > 0:
                points.extend(self._sustain_points(int(note.position), int(note.length), len(chord), (note,), phrase))
        return points

    def _sustain_points(
        self,
        position: int,
        length: int,
        chord_size: int,
        notes: Tuple[chart_models.Note, ...],
        phrase: Optional[int],
    ) -> List[Point]:
        engine = self._engine
        resolution = float(self._resolution)

        tick_gap = resolution / float(engine.sust_points_per_beat)
        if engine.round_tick_gap:
            tick_gap = math.floor(tick_gap)
        tick_gap = max(tick_gap, 1.0)

        float_length = float(length)
        sust_ticks = engine.sustain_rounding.apply(float_length / tick_gap)
        if engine.chords_multiply_sustains:
            tick_gap /= float(chord_size)
            sust_ticks *= int(chord_size)

        points: List[Point] = []
        float_position = float(position)

        def hold_point(beat: float, value: int) -> Point:
            hold_position = self._converter.position(beat)
            return Point(
                position=hold_position,
                hit_window_start=hold_position,
                hit_window_end=hold_position,
                value=value,
                base_value=value,
                is_hold_point=True,
                is_sp_granting_note=False,
                notes=notes,
                phrase_index=phrase,
            )

        while float_length > engine.burst_size * resolution and sust_ticks > 0:
            float_position += tick_gap
            float_length -= tick_gap
            points.append(hold_point((float_position - 0.5) / resolution, 1))
            sust_ticks -= 1

        if sust_ticks > 0:
            points.append(hold_point((float_position + 0.5) / resolution, sust_ticks))

        return points

    def _mark_fill_points(self, points: List[Point], track: chart_models.NoteTrack) -> List[Point]:
        if not self._engine.is_drums or not track.drum_fills or not points:
            return points

        candidate_indices = [index for index, point in enumerate(points) if not point.is_hold_point]
        if not candidate_indices:
            return points
        candidate_beats = [points[index].position.beat for index in candidate_indices]

        marked = list(points)
        for fill in track.drum_fills:
            fill_end_beat = self._converter.ticks_to_beats(int(fill.position) + int(fill.length))
            slot = bisect_left(candidate_beats, fill_end_beat)
            if slot == len(candidate_indices):
                slot = len(candidate_indices) - 1
            point_index = candidate_indices[slot]
            point = marked[point_index]
            if not any(note.lane not in chart_models.KICK_LANES for note in point.notes):
                continue
            fill_start_seconds = self._converter.beats_to_seconds(self._converter.ticks_to_beats(fill.position))
            marked[point_index] = replace(point, fill_start=fill_start_seconds)

        return marked

    def _apply_multiplier(self, points: List[Point]) -> List[Point]:
        combo = 0
        multiplied: List[Point] = []
        for point in points:
            if point.is_hold_point:
                # Hold points count the combo including their note.
                multiplier = self._engine.multiplier_for_combo(combo)
            else:
                combo += 1
                multiplier = self._engine.multiplier_for_combo(combo - 1)
            multiplied.append(replace(point, value=int(point.base_value) * multiplier))
        return multiplied

    def _shift_seconds(self, position: Position) -> Position:
        seconds = self._converter.beats_to_seconds(position.beat) + self._video_lag
        return self._position_at_seconds(seconds)

    def _apply_video_lag(self, points: List[Point]) -> List[Point]:
        if self._video_lag == 0.0:
            return points
        shifted: List[Point] = []
        for point in points:
            fill_start = point.fill_start
            if fill_start is not None:
                fill_start = float(fill_start) + self._video_lag
            shifted.append(
                replace(
                    point,
                    position=self._shift_seconds(point.position),
                    hit_window_start=self._shift_seconds(point.hit_window_start),
                    hit_window_end=self._shift_seconds(point.hit_window_end),
                    fill_start=fill_start,
                )
            )
        return shifted

    def _shifted_beat(self, ticks: int) -> float:
        beat = self._converter.ticks_to_beats(ticks)
        if self._video_lag == 0.0:
            return beat
        return self._converter.seconds_to_beats(self._converter.beats_to_seconds(beat) + self._video_lag)

    def _next_matching(self, predicate) -> List[int]:
        count = len(self._points)
        table = [count] * count
        next_index = count
        for index in range(count - 1, -1, -1):
            if predicate(self._points[index]):
                next_index = index
            table[index] = next_index
        return table

    def _first_after_current_phrase_table(self, phrases: Sequence[chart_models.StarPower]) -> List[int]:
        beats = [point.position.beat for point in self._points]
        phrase_end_beats = [self._shifted_beat(int(phrase.position) + int(phrase.length)) for phrase in phrases]
        table: List[int] = []
        for index, point in enumerate(self._points):
            if point.phrase_index is None:
                table.append(index + 1)
                continue
            after = bisect_left(beats, phrase_end_beats[point.phrase_index])
            table.append(max(after, index + 1))
        return table

    def _build_solo_boosts(self, track: chart_models.NoteTrack, notes: Sequence[chart_models.Note]) -> List[SoloBoost]:
        boosts: List[SoloBoost] = []
        for solo in track.solos:
            covered = {
                int(note.position)
                for note in notes
                if int(solo.start) <= int(note.position) <= int(solo.end)
            }
            end_position = self._converter.position(self._shifted_beat(int(solo.end)))
            boosts.append(SoloBoost(position=end_position, value=SOLO_NOTE_BONUS * len(covered)))
        return boosts

    ########################
    # Queries
    ########################

    def points(self) -> Tuple[Point, ...]:
        return self._points

    def count(self) -> int:
        return len(self._points)

    def point(self, index: int) -> Point:
        return self._points[int(index)]

    def next_non_hold_point(self, index: int) -> int:
        if index >= len(self._points):
            return len(self._points)
        return self._next_non_hold[int(index)]

    def next_sp_granting_note(self, index: int) -> int:
        if index >= len(self._points):
            return len(self._points)
        return self._next_sp_granting[int(index)]

    def first_after_current_phrase(self, index: int) -> int:
        if index >= len(self._points):
            return len(self._points)
        return self._first_after_phrase[int(index)]

    def range_score(self, start: int, end: int) -> int:
        """Sum of point values over the index range [start, end)."""
        start_index = max(0, min(int(start), len(self._points)))
        end_index = max(start_index, min(int(end), len(self._points)))
        return self._cumulative_score_totals[end_index] - self._cumulative_score_totals[start_index]

    def solo_boosts(self) -> List[SoloBoost]:
        return list(self._solo_boosts)

    def video_lag(self) -> float:
        return float(self._video_lag)

    def colour_string(self, index: int) -> str:
        return colour_string_for_notes(self._track_type, self._points[int(index)].notes)


def colour_string_for_notes(track_type: chart_models.TrackType, notes: Iterable[chart_models.Note]) -> str:
    notes = list(notes)
    if track_type == chart_models.TrackType.FIVE_FRET:
        if any(note.lane == "open" for note in notes):
            return "open"
        return "".join(_FIVE_FRET_LETTERS.get(note.lane, "?") for note in notes)

    if track_type == chart_models.TrackType.SIX_FRET:
        if any(note.lane == "open" for note in notes):
            return "open"
        return " ".join(_SIX_FRET_NAMES.get(note.lane, "?") for note in notes)

    parts: List[str] = []
    for note in notes:
        if note.lane in chart_models.KICK_LANES:
            parts.append("kick")
            continue
        text = _DRUM_LETTERS.get(note.lane, "?")
        if note.dynamics == chart_models.Dynamics.GHOST:
            text += " ghost"
        elif note.dynamics == chart_models.Dynamics.ACCENT:
            text += " accent"
        if note.is_cymbal:
            text += " cymbal"
        parts.append(text)
    return " + ".join(parts)
