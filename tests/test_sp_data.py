"""Tests for whammy ranges, bar propagation and the fill curve."""

import math

import pytest

import chart_models
import engine as engine_module
from chart_builders import make_song, make_track, note, phrases
from path_models import Activation


def _short_phrases(*ticks):
    return phrases(*[(tick, 10) for tick in ticks])


def _sustain_song(**kwargs):
    return make_song(make_track([note(0), note(192, length=768)], phrases((192, 50))), **kwargs)


class TestWhammyRanges:
    """Test whammy range queries."""

    def test_whammy_starts_in_the_early_window(self):
        """A range opens 0.07 s before the sustain."""
        sp_data = _sustain_song().sp_data()
        assert sp_data.is_in_whammy_ranges(0.9)
        assert not sp_data.is_in_whammy_ranges(0.8)
        assert not sp_data.is_in_whammy_ranges(6.0)

    def test_available_whammy_uses_the_gain_rate(self):
        """Each whammy beat is worth 1/30 of the bar."""
        sp_data = _sustain_song().sp_data()
        assert sp_data.available_whammy(0.0, 5.0) == pytest.approx(4.14 / 30.0)
        assert sp_data.available_whammy(5.0, 0.0) == 0.0

    def test_sustains_outside_phrases_give_no_whammy(self):
        """Only phrase sustains can be whammied."""
        sp_data = make_song(make_track([note(0), note(192, length=768)])).sp_data()
        assert sp_data.whammy_beats(0.0, 10.0) == 0.0

    def test_drums_have_no_whammy(self):
        """Drum engines never whammy."""
        track = make_track(
            [note(0, lane="red"), note(192, length=768, lane="red")],
            phrases((192, 50)),
            track_type=chart_models.TrackType.DRUMS,
        )
        sp_data = make_song(track, engine=engine_module.CH_DRUMS).sp_data()
        assert sp_data.whammy_beats(0.0, 10.0) == 0.0

    def test_whammy_beats_per_measure(self):
        """Whammy is bucketed by measure."""
        sp_data = _sustain_song().sp_data()
        assert sp_data.whammy_beats_per_measure(2) == pytest.approx([3.14, 1.0])

    def test_earliest_whammy_reach(self):
        """Finds the beat where enough whammy has accumulated."""
        sp_data = _sustain_song().sp_data()
        assert sp_data.earliest_whammy_reach(0.86, 5.0, 0.1) == pytest.approx(3.86)
        assert sp_data.earliest_whammy_reach(0.86, 5.0, 0.5) is None
        assert sp_data.earliest_whammy_reach(2.0, 5.0, 0.0) == pytest.approx(2.0)


class TestPropagation:
    """Test draining the bar during an activation."""

    def test_drain_is_an_eighth_per_measure(self):
        """A full bar lasts eight measures."""
        sp_data = make_song(make_track([note(0)])).sp_data()
        assert sp_data.drain(0.0, 4.0) == pytest.approx(0.125)
        assert sp_data.drain(4.0, 0.0) == 0.0

    def test_running_out_returns_negative(self):
        """Half a bar cannot last eight measures."""
        sp_data = make_song(make_track([note(0)])).sp_data()
        assert sp_data.propagate_sp_over_whammy_max(0.0, 32.0, 0.5) < 0.0
        assert sp_data.propagate_sp_over_whammy_max(0.0, 8.0, 0.5) == pytest.approx(0.25)

    def test_whammy_offsets_drain(self):
        """Whammy gain is added while draining."""
        sp_data = _sustain_song().sp_data()
        expected = 0.5 - 4.14 / 32.0 + 4.14 / 30.0
        assert sp_data.propagate_sp_over_whammy_max(0.86, 5.0, 0.5) == pytest.approx(expected)

    def test_min_propagation_stops_whammy(self):
        """Whammy after the required end is not counted."""
        sp_data = _sustain_song().sp_data()
        expected = 0.5 - 4.14 / 32.0
        assert sp_data.propagate_sp_over_whammy_min(0.86, 5.0, 0.5, -math.inf) == pytest.approx(expected)

    def test_activation_end_point(self):
        """Half a bar lasts four measures."""
        sp_data = make_song(make_track([note(0)])).sp_data()
        assert sp_data.activation_end_point(0.0, 0.5, -math.inf).beat == pytest.approx(16.0)

    def test_activation_end_point_with_whammy(self):
        """Whammy pushes the end back."""
        sp_data = _sustain_song().sp_data()
        end_beat = sp_data.activation_end_point(0.86, 0.5, math.inf).beat
        bar_at_range_end = 0.5 - 4.14 / 32.0 + 4.14 / 30.0
        assert end_beat == pytest.approx(5.0 + bar_at_range_end * 32.0)


class TestSpPercentValues:
    """Test the bar fill at the end of each measure."""

    def test_no_whammy(self):
        """Phrases fill the bar and the activation drains it."""
        track = make_track(
            [note(960), note(1080), note(1920), note(3840), note(4050), note(19200)],
            _short_phrases(960, 1080, 1920, 3840, 4050),
        )
        song = make_song(track)
        points = song.points().points()
        activations = [Activation(act_start=5, act_end=5, whammy_end=1000.0, sp_start=70.0, sp_end=102.0)]
        expected = (
            [0.0, 0.5, 0.75, 0.75, 0.75]
            + [1.0] * 12
            + [0.9375, 0.8125, 0.6875, 0.5625, 0.4375, 0.3125, 0.1875, 0.0625, 0.0]
        )
        values = song.sp_data().sp_percent_values(points, activations, 26)
        assert values == pytest.approx(expected, abs=1e-9)

    def test_phrases_mid_activation_are_added(self):
        """A phrase hit during the activation tops the bar up."""
        track = make_track(
            [note(960), note(1080), note(1920), note(3840), note(4050), note(19200)],
            _short_phrases(960, 1080, 1920, 3840, 4050, 19200),
        )
        song = make_song(track)
        points = song.points().points()
        activations = [Activation(act_start=5, act_end=5, whammy_end=1000.0, sp_start=98.0, sp_end=132.0)]
        values = song.sp_data().sp_percent_values(points, activations, 26)
        assert values[-3:] == pytest.approx([1.0, 0.9375, 0.875])

    def test_whammy_is_added(self):
        """Whammy counts before and during the activation."""
        track = make_track([note(960), note(1632, length=1920)], _short_phrases(960, 1632))
        song = make_song(track)
        points = song.points().points()
        activations = [
            Activation(act_start=5, act_end=len(points) - 1, whammy_end=1000.0, sp_start=9.0, sp_end=22.0)
        ]
        values = song.sp_data().sp_percent_values(points, activations, 5)
        assert values == pytest.approx([0.0, 0.25, 0.5275833333, 0.5359166667, 0.49425])

    def test_whammy_end_stops_gain(self):
        """No whammy is taken after the activation's whammy end."""
        track = make_track([note(960), note(1632, length=1920)], _short_phrases(960, 1632))
        song = make_song(track)
        points = song.points().points()
        activations = [
            Activation(act_start=5, act_end=len(points) - 1, whammy_end=12.0, sp_start=9.0, sp_end=22.0)
        ]
        values = song.sp_data().sp_percent_values(points, activations, 5)
        assert values == pytest.approx([0.0, 0.25, 0.5275833333, 0.4025833333, 0.2775833333])

    def test_phrases_after_an_activation_refill(self):
        """The bar restarts from empty after each activation."""
        track = make_track(
            [note(960), note(1632, length=1920), note(6336), note(6528), note(7104)],
            _short_phrases(960, 1632, 6336, 6528),
        )
        song = make_song(track)
        points = song.points().points()
        count = len(points)
        activations = [
            Activation(act_start=5, act_end=count - 3, whammy_end=12.0, sp_start=9.0, sp_end=28.8827),
            Activation(act_start=count - 1, act_end=count - 1, whammy_end=1000.0, sp_start=37.0, sp_end=53.0),
        ]
        values = song.sp_data().sp_percent_values(points, activations, 10)
        expected = [
            0.0,
            0.25,
            0.5275833333,
            0.4025833333,
            0.2775833333,
            0.1525833333,
            0.0275833333,
            0.0,
            0.5,
            0.40625,
        ]
        assert values == pytest.approx(expected, abs=1e-6)

    def test_phrase_just_after_an_activation(self):
        """A phrase whose note precedes the bar running out is counted after it."""
        track = make_track(
            [note(0), note(192), note(384), note(3224), note(3456)],
            _short_phrases(0, 192, 3224),
        )
        song = make_song(track)
        points = song.points().points()
        activations = [Activation(act_start=2, act_end=2, whammy_end=17.0, sp_start=0.8958, sp_end=16.8958)]
        values = song.sp_data().sp_percent_values(points, activations, 5)
        assert values == pytest.approx([0.40299375, 0.27799375, 0.15299375, 0.02799375, 0.25], abs=1e-6)
