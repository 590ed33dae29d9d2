"""Tests for the path search."""

import threading
import time

import pytest

import chart_models
import engine as engine_module
from chart_builders import make_song, make_track, note, phrases
from optimiser import Optimiser, OptimiserCancelledError, activations_summary


def _beats_to_ticks(beats, resolution=192):
    return [int(beat * resolution) for beat in beats]


def _two_phrase_song(engine=engine_module.CH_GUITAR, track_type=chart_models.TrackType.FIVE_FRET, lane="green", **kwargs):
    """Phrases on beats 0 and 1, then notes on beats 2, 3 and 20."""
    notes = [note(tick, lane=lane) for tick in _beats_to_ticks((0, 1, 2, 3, 20))]
    track = make_track(notes, phrases((0, 10), (192, 10)), track_type=track_type, **kwargs)
    return make_song(track, engine=engine)


class TestOptimalPath:
    """Test the best path found on small charts."""

    def test_empty_chart(self):
        """No notes means no activations."""
        path = Optimiser(make_song(make_track([]))).optimal_path()
        assert path.activations == []
        assert path.score_boost == 0

    def test_chart_without_star_power(self):
        """Without phrases nothing can be activated."""
        song = make_song(make_track([note(tick) for tick in _beats_to_ticks(range(8))]))
        path = Optimiser(song).optimal_path()
        assert path.activations == []
        assert path.score_boost == 0

    def test_single_activation(self):
        """Half a bar covers the two notes after the phrases."""
        song = _two_phrase_song()
        path = Optimiser(song).optimal_path()
        assert path.score_boost == 100
        assert len(path.activations) == 1
        activation = path.activations[0]
        assert (activation.act_start, activation.act_end) == (2, 3)
        assert activation.sp_start == pytest.approx(0.86)
        assert activation.sp_end == pytest.approx(16.86)
        assert activation.whammy_end == float("-inf")

    def test_flat_bonus_includes_solos(self):
        """Solo bonuses are reported separately from the activation boost."""
        song = _two_phrase_song(solos=(chart_models.Solo(start=0, end=192),))
        path = Optimiser(song).optimal_path()
        assert path.flat_bonus == 200
        assert path.total_boost() == 300

    def test_gh1_finds_the_same_activation(self):
        """Engines without overlap still use full phrases."""
        path = Optimiser(_two_phrase_song(engine=engine_module.GH1)).optimal_path()
        assert path.score_boost == 100
        assert [(item.act_start, item.act_end) for item in path.activations] == [(2, 3)]

    def test_late_activation_is_preferred(self):
        """Activating over higher multipliers scores more."""
        beats = [0, 1] + list(range(2, 10)) + list(range(24, 44))
        notes = [note(tick) for tick in _beats_to_ticks(beats)]
        song = make_song(make_track(notes, phrases((0, 10), (192, 10))))
        path = Optimiser(song).optimal_path()
        assert len(path.activations) == 1
        activation = path.activations[0]
        assert activation.act_start >= 10
        assert path.score_boost == song.points().range_score(activation.act_start, activation.act_end + 1)
        assert path.score_boost >= 2050

    def test_activations_do_not_overlap(self):
        """Each activation starts after the previous one ends."""
        beats = [0, 1, 2, 3, 4, 5, 40, 41, 42, 43, 44]
        notes = [note(tick) for tick in _beats_to_ticks(beats)]
        song = make_song(make_track(notes, phrases((0, 10), (192, 10), (7680, 10), (7872, 10))))
        path = Optimiser(song).optimal_path()
        assert [(item.act_start, item.act_end) for item in path.activations] == [(2, 5), (8, 10)]
        first, second = path.activations
        assert first.sp_end == pytest.approx(16.86)
        assert second.sp_start == pytest.approx(40.86)
        assert first.sp_end <= second.sp_start
        # The eleventh note is the first one at 2x.
        assert path.score_boost == 400

    def test_long_chart_is_searched_quickly(self):
        """Three hundred notes with sustains and phrases do not blow up the search."""
        notes = [note(index * 192, length=96 if index % 7 == 0 else 0) for index in range(300)]
        star_power = phrases(*[(index * 192, 10) for index in range(0, 300, 40)])
        song = make_song(make_track(notes, star_power))
        started = time.perf_counter()
        path = Optimiser(song).optimal_path()
        elapsed = time.perf_counter() - started
        assert elapsed < 30.0
        assert path.activations
        total = sum(song.points().range_score(item.act_start, item.act_end + 1) for item in path.activations)
        assert path.score_boost == total
        for first, second in zip(path.activations, path.activations[1:]):
            assert first.act_end < second.act_start


class TestDrums:
    """Test drum fill activation rules."""

    def test_drums_need_a_fill(self):
        """Without fills drums cannot activate."""
        song = _two_phrase_song(
            engine=engine_module.CH_DRUMS, track_type=chart_models.TrackType.DRUMS, lane="red"
        )
        assert Optimiser(song).optimal_path().activations == []

    def test_drums_activate_on_the_fill_note(self):
        """The fill note starts the activation once its window opens."""
        song = _two_phrase_song(
            engine=engine_module.CH_DRUMS,
            track_type=chart_models.TrackType.DRUMS,
            lane="red",
            drum_fills=(chart_models.DrumFill(position=192, length=192),),
        )
        path = Optimiser(song).optimal_path()
        assert [(item.act_start, item.act_end) for item in path.activations] == [(2, 3)]
        assert path.activations[0].sp_start == pytest.approx(1.86)


class TestCancellation:
    """Test cooperative cancellation."""

    def test_set_event_cancels(self):
        """A set terminate event stops the search."""
        event = threading.Event()
        event.set()
        with pytest.raises(OptimiserCancelledError):
            Optimiser(_two_phrase_song(), event).optimal_path()

    def test_unset_event_is_ignored(self):
        """An unset event does not change the result."""
        path = Optimiser(_two_phrase_song(), threading.Event()).optimal_path()
        assert path.score_boost == 100


class TestActivationsSummary:
    """Test the per-activation colour lines."""

    def test_summary_lines(self):
        """Each line names the first and last chord."""
        song = _two_phrase_song()
        path = Optimiser(song).optimal_path()
        assert activations_summary(song, path) == ["1: G -> G"]
