"""Tests for per-measure report values."""

import pytest

import chart_models
import settings
from chart_builders import make_song, make_track, note
from measure_report import build_measure_report, measure_count
from path_models import Activation, Path


def _activation(act_start, act_end):
    return Activation(act_start=act_start, act_end=act_end, whammy_end=0.0, sp_start=0.0, sp_end=0.0)


class TestMeasureValues:
    """Test base and cumulative score values."""

    def test_notes_without_activations(self):
        """Base values are per measure, score values accumulate."""
        song = make_song(make_track([note(0), note(768)]))
        report = build_measure_report(song, Path())
        assert report.base_values == [50, 50]
        assert report.score_values == [50, 100]
        assert report.total_score == 100

    def test_activations_are_added(self):
        """Activated points count twice."""
        song = make_song(make_track([note(0), note(192), note(384), note(768)]))
        report = build_measure_report(song, Path(activations=[_activation(2, 3)], score_boost=100))
        assert report.score_values == [200, 300]
        assert report.total_score == 300

    def test_solos_are_added_at_their_end(self):
        """Solo bonuses land in the measure the solo ends in."""
        track = make_track([note(0), note(768)], solos=(chart_models.Solo(start=768, end=800),))
        report = build_measure_report(make_song(track), Path())
        assert report.score_values == [50, 200]

    def test_solo_past_the_last_note_is_clamped(self):
        """A solo ending after the chart lands in the last measure."""
        track = make_track([note(0)], solos=(chart_models.Solo(start=0, end=1600),))
        report = build_measure_report(make_song(track), Path())
        assert report.score_values == [150]

    def test_video_lag_does_not_move_measures(self):
        """Points are bucketed by their charted measure."""
        song = make_song(
            make_track([note(0), note(768)]),
            squeeze_settings=settings.SqueezeSettings(video_lag=-0.1),
        )
        report = build_measure_report(song, Path(activations=[_activation(1, 1)], score_boost=50))
        assert report.base_values == [50, 50]
        assert report.score_values == [50, 150]

    def test_total_score(self):
        """The total adds base score, activation boost and solo bonuses."""
        track = make_track([note(0), note(192)], solos=(chart_models.Solo(start=0, end=1),))
        report = build_measure_report(make_song(track), Path(activations=[_activation(0, 1)], score_boost=50))
        assert report.total_score == 250


class TestReportShape:
    """Test measure counting and serialisation."""

    def test_measure_count_includes_sustain_tails(self):
        """A sustain into the next measure adds a measure."""
        song = make_song(make_track([note(0, length=960)]))
        assert measure_count(song) == 2

    def test_empty_track(self):
        """An empty chart has no measures."""
        song = make_song(make_track([]))
        report = build_measure_report(song, Path())
        assert measure_count(song) == 0
        assert report.base_values == []
        assert report.sp_percent_values == []
        assert report.total_score == 0

    def test_to_dict(self):
        """The report serialises to plain lists."""
        song = make_song(make_track([note(0), note(768)]))
        payload = build_measure_report(song, Path()).to_dict()
        assert set(payload) == {"base_values", "score_values", "sp_percent_values", "whammy_beats", "total_score"}
        assert payload["sp_percent_values"] == pytest.approx([0.0, 0.0])
        assert payload["whammy_beats"] == pytest.approx([0.0, 0.0])
