# -*- coding: utf-8 -*-
########################
# time_converter.py
########################
# Purpose:
# - Single source of truth for song timing in the optimiser.
# - Converts between beats, seconds, measures and overdrive (OD) measures.
#
# Design notes:
# - Pure and deterministic. Immutable after construction.
# - Before the first tempo event the song runs at 120 BPM.
# - After the last tempo event the last tempo is extrapolated.
# - Before the first time signature 4/4 is assumed.
# - OD measures come from overdrive beat markers (4 OD beats per OD measure).
#   Without at least two markers one beat counts as a quarter OD measure.
#
########################
# Interfaces:
# Public dataclasses:
# - Position(beat: float, measure: float)
#
# Public classes:
# - class TimeConverter
#   - __init__(tempo_map: chart_models.TempoMap)
#   - resolution() -> int
#   - ticks_to_beats(ticks: float) -> float
#   - beats_to_seconds(beats: float) -> float
#   - seconds_to_beats(seconds: float) -> float
#   - beats_to_measures(beats: float) -> float
#   - measures_to_beats(measures: float) -> float
#   - has_od_beats() -> bool
#   - beats_to_od_measures(beats: float) -> float
#   - od_measures_to_beats(od_measures: float) -> float
#   - position(beats: float) -> Position
#   - position_from_seconds(seconds: float) -> Position
#
# Inputs:
# - TempoMap from chart_models.py.
#
# Outputs:
# - Positions used by points.py, sp_data.py and processed.py.
#
########################

from __future__ import annotations

from bisect import bisect_left
from dataclasses import dataclass
from typing import List, Sequence

import chart_models


DEFAULT_BEATS_PER_MINUTE = 120.0
DEFAULT_SECONDS_PER_BEAT = 60.0 / DEFAULT_BEATS_PER_MINUTE
DEFAULT_BEATS_PER_MEASURE = 4.0
OD_BEATS_PER_MEASURE = 4.0


@dataclass(frozen=True, order=True)
class Position:
    beat: float
    measure: float


class _PiecewiseLinearMap:
    """Monotone piecewise-linear map between two coordinate spaces.

    Left of the first breakpoint the map uses ``leading_rate`` (target units per
    source unit), right of the last breakpoint it uses ``trailing_rate``.
    """

    def __init__(
        self,
        sources: Sequence[float],
        targets: Sequence[float],
        leading_rate: float,
        trailing_rate: float,
    ) -> None:
        self._sources: List[float] = [float(value) for value in sources]
        self._targets: List[float] = [float(value) for value in targets]
        self._leading_rate = float(leading_rate)
        self._trailing_rate = float(trailing_rate)

    @staticmethod
    def _lookup(
        keys: List[float],
        values: List[float],
        key: float,
        leading_rate: float,
        trailing_rate: float,
    ) -> float:
        index = bisect_left(keys, key)
        if index == len(keys):
            return values[-1] + (key - keys[-1]) * trailing_rate
        if index == 0:
            return values[0] - (keys[0] - key) * leading_rate
        previous_key = keys[index - 1]
        next_key = keys[index]
        previous_value = values[index - 1]
        next_value = values[index]
        fraction = (key - previous_key) / (next_key - previous_key)
        return previous_value + fraction * (next_value - previous_value)

    def forward(self, source: float) -> float:
        return self._lookup(self._sources, self._targets, float(source), self._leading_rate, self._trailing_rate)

    def inverse(self, target: float) -> float:
        return self._lookup(
            self._targets,
            self._sources,
            float(target),
            1.0 / self._leading_rate,
            1.0 / self._trailing_rate,
        )


class TimeConverter:
    def __init__(self, tempo_map: chart_models.TempoMap) -> None:
        resolution = int(tempo_map.resolution)
        if resolution <= 0:
            raise ValueError(f"Resolution must be positive, got {resolution}")
        self._resolution = resolution

        self._seconds_map = self._build_seconds_map(tempo_map.tempo_changes)
        self._measure_map = self._build_measure_map(tempo_map.time_signatures)
        self._od_map = self._build_od_map(tempo_map.od_beats)
        self._has_od_beats = len(tempo_map.od_beats) >= 2

    def _build_seconds_map(self, tempo_changes: Sequence[chart_models.TempoChange]) -> _PiecewiseLinearMap:
        beats: List[float] = []
        seconds: List[float] = []
        last_tick = 0
        last_seconds_per_beat = DEFAULT_SECONDS_PER_BEAT
        elapsed_seconds = 0.0

        for change in tempo_changes:
            if int(change.microseconds_per_beat) <= 0:
                raise ValueError(f"Tempo must be positive, got {change.microseconds_per_beat} at tick {change.position}")
            elapsed_seconds += (int(change.position) - last_tick) / self._resolution * last_seconds_per_beat
            beats.append(int(change.position) / self._resolution)
            seconds.append(elapsed_seconds)
            last_seconds_per_beat = int(change.microseconds_per_beat) / 1_000_000.0
            last_tick = int(change.position)

        if not beats:
            beats.append(0.0)
            seconds.append(0.0)

        return _PiecewiseLinearMap(
            beats,
            seconds,
            leading_rate=DEFAULT_SECONDS_PER_BEAT,
            trailing_rate=last_seconds_per_beat,
        )

    def _build_measure_map(self, time_signatures: Sequence[chart_models.TimeSignature]) -> _PiecewiseLinearMap:
        beats: List[float] = []
        measures: List[float] = []
        last_tick = 0
        last_beats_per_measure = DEFAULT_BEATS_PER_MEASURE
        elapsed_measures = 0.0

        for signature in time_signatures:
            if int(signature.numerator) <= 0 or int(signature.denominator) <= 0:
                raise ValueError(
                    f"Time signature parts must be positive, got {signature.numerator}/{signature.denominator}"
                )
            elapsed_measures += (int(signature.position) - last_tick) / self._resolution / last_beats_per_measure
            beats.append(int(signature.position) / self._resolution)
            measures.append(elapsed_measures)
            last_beats_per_measure = 4.0 * int(signature.numerator) / int(signature.denominator)
            last_tick = int(signature.position)

        if not beats:
            beats.append(0.0)
            measures.append(0.0)

        return _PiecewiseLinearMap(
            beats,
            measures,
            leading_rate=1.0 / DEFAULT_BEATS_PER_MEASURE,
            trailing_rate=1.0 / last_beats_per_measure,
        )

    def _build_od_map(self, od_beats: Sequence[int]) -> _PiecewiseLinearMap:
        quarter = 1.0 / OD_BEATS_PER_MEASURE
        if len(od_beats) < 2:
            return _PiecewiseLinearMap([0.0], [0.0], leading_rate=quarter, trailing_rate=quarter)

        beats = [int(tick) / self._resolution for tick in od_beats]
        first_beat = beats[0]
        # Before the first marker one beat is a quarter OD measure.
        od_measures = [first_beat * quarter + index * quarter for index in range(len(beats))]
        return _PiecewiseLinearMap(beats, od_measures, leading_rate=quarter, trailing_rate=quarter)

    def resolution(self) -> int:
        return int(self._resolution)

    def ticks_to_beats(self, ticks: float) -> float:
        return float(ticks) / self._resolution

    def beats_to_seconds(self, beats: float) -> float:
        return self._seconds_map.forward(beats)

    def seconds_to_beats(self, seconds: float) -> float:
        return self._seconds_map.inverse(seconds)

    def beats_to_measures(self, beats: float) -> float:
        return self._measure_map.forward(beats)

    def measures_to_beats(self, measures: float) -> float:
        return self._measure_map.inverse(measures)

    def has_od_beats(self) -> bool:
        return bool(self._has_od_beats)

    def beats_to_od_measures(self, beats: float) -> float:
        return self._od_map.forward(beats)

    def od_measures_to_beats(self, od_measures: float) -> float:
        return self._od_map.inverse(od_measures)

    def position(self, beats: float) -> Position:
        value = float(beats)
        return Position(beat=value, measure=self.beats_to_measures(value))

    def position_from_seconds(self, seconds: float) -> Position:
        return self.position(self.seconds_to_beats(seconds))


def _run_unit_tests() -> None:
    tempo_map = chart_models.TempoMap(
        tempo_changes=(
            chart_models.TempoChange(position=0, microseconds_per_beat=400_000),
            chart_models.TempoChange(position=384, microseconds_per_beat=500_000),
            chart_models.TempoChange(position=768, microseconds_per_beat=300_000),
        ),
        time_signatures=(
            chart_models.TimeSignature(position=0, numerator=4, denominator=4),
            chart_models.TimeSignature(position=768, numerator=3, denominator=4),
        ),
        resolution=192,
    )
    converter = TimeConverter(tempo_map)
    assert abs(converter.beats_to_seconds(2.0) - 0.8) < 1e-9
    assert abs(converter.beats_to_seconds(5.0) - 2.1) < 1e-9
    assert abs(converter.beats_to_seconds(-1.0) - (-0.5)) < 1e-9
    assert abs(converter.seconds_to_beats(converter.beats_to_seconds(7.25)) - 7.25) < 1e-9
    assert abs(converter.beats_to_measures(7.0) - 2.0) < 1e-9
    assert abs(converter.measures_to_beats(2.0) - 7.0) < 1e-9
    assert not converter.has_od_beats()
    assert abs(converter.beats_to_od_measures(8.0) - 2.0) < 1e-9


if __name__ == "__main__":
    _run_unit_tests()
    print("time_converter.py: ok")
