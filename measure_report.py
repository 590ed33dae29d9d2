# -*- coding: utf-8 -*-
########################
# measure_report.py
########################
# Purpose:
# - Per-measure numbers of an optimised path for the rendering collaborator:
#   base score, cumulative score, bar fill and whammy coverage.
#
# Design notes:
# - No I/O. Values are JSON friendly via to_dict().
# - Points are placed in measures by their position before video lag.
# - Solo bonuses land in the measure the solo ends in, clamped to the last measure.
#
########################
# Interfaces:
# Public dataclasses:
# - MeasureReport(base_values, score_values, sp_percent_values, whammy_beats, total_score)
#   - to_dict() -> dict
#
# Public functions:
# - measure_count(song: ProcessedSong) -> int
# - build_measure_report(song: ProcessedSong, path: Path) -> MeasureReport
#
########################

from __future__ import annotations

from dataclasses import asdict, dataclass
import math
from typing import Any, Dict, List

from path_models import Path
from processed import ProcessedSong
from time_converter import Position


@dataclass(frozen=True)
class MeasureReport:
    base_values: List[int]
    score_values: List[int]
    sp_percent_values: List[float]
    whammy_beats: List[float]
    total_score: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def measure_count(song: ProcessedSong) -> int:
    track = song.track()
    if not track.notes:
        return 0
    converter = song.converter()
    last_measure = converter.beats_to_measures(converter.ticks_to_beats(track.last_tick()))
    return int(math.floor(last_measure)) + 1


def _unshifted_measure(song: ProcessedSong, position: Position) -> float:
    video_lag = song.points().video_lag()
    if video_lag == 0.0:
        return float(position.measure)
    converter = song.converter()
    beat = converter.seconds_to_beats(converter.beats_to_seconds(position.beat) - video_lag)
    return converter.beats_to_measures(beat)


def _measure_slot(measure: float, count: int) -> int:
    return max(0, min(int(math.floor(measure)), count - 1))


def build_measure_report(song: ProcessedSong, path: Path) -> MeasureReport:
    count = measure_count(song)
    points = song.points()
    all_points = points.points()

    base_values = [0] * count
    extra_values = [0] * count
    if count > 0:
        for point in all_points:
            slot = _measure_slot(_unshifted_measure(song, point.position), count)
            base_values[slot] += int(point.value)

        for activation in path.activations:
            for index in range(activation.act_start, min(activation.act_end + 1, len(all_points))):
                slot = _measure_slot(_unshifted_measure(song, all_points[index].position), count)
                extra_values[slot] += int(all_points[index].value)

        for boost in points.solo_boosts():
            slot = _measure_slot(_unshifted_measure(song, boost.position), count)
            extra_values[slot] += int(boost.value)

    score_values: List[int] = []
    running = 0
    for base, extra in zip(base_values, extra_values):
        running += base + extra
        score_values.append(running)

    total_score = song.base_score() + int(path.score_boost) + song.total_solo_boost() + song.bre_boost()
    return MeasureReport(
        base_values=base_values,
        score_values=score_values,
        sp_percent_values=song.sp_data().sp_percent_values(all_points, path.activations, count),
        whammy_beats=song.sp_data().whammy_beats_per_measure(count),
        total_score=int(total_score),
    )
