"""Tests for loading decoded track documents."""

import json

import pytest

import chart_models
from track_document import (
    ChartDataError,
    TrackDocumentError,
    TrackDocumentValidationError,
    load_track_document,
    parse_track_document,
)


def _document(**track_overrides):
    track = {
        "type": "five_fret",
        "notes": [
            {"tick": 192, "lane": "red"},
            {"tick": 0, "lane": "green", "length": 96},
            {"tick": 0, "lane": "green"},
        ],
        "star_power": [{"tick": 0, "length": 100}, {"tick": 1000, "length": 50}],
        "solos": [{"start": 0, "end": 192}],
    }
    track.update(track_overrides)
    return {
        "song": {"name": "Test Song", "artist": "Someone", "resolution": 192},
        "tempo_map": {
            "tempos": [{"tick": 0, "microseconds_per_beat": 500000}],
            "time_signatures": [{"tick": 0, "numerator": 4, "denominator": 4}],
        },
        "track": track,
        "unison_phrases": [0],
    }


class TestParseTrackDocument:
    """Test conversion into chart models."""

    def test_notes_are_sorted_and_deduplicated(self):
        """Duplicate (tick, lane) pairs keep the last entry."""
        loaded = parse_track_document(_document())
        notes = loaded.track.notes
        assert [(item.position, item.lane) for item in notes] == [(0, "green"), (192, "red")]
        assert notes[0].length == 0

    def test_empty_phrases_are_dropped(self):
        """A phrase covering no notes is removed."""
        loaded = parse_track_document(_document())
        assert loaded.track.sp_phrases == (chart_models.StarPower(position=0, length=100),)

    def test_song_data_and_tempo_map(self):
        """Metadata and tempo map are carried over."""
        loaded = parse_track_document(_document())
        assert loaded.track.global_data.name == "Test Song"
        assert loaded.track.resolution() == 192
        assert loaded.tempo_map.tempo_changes[0].microseconds_per_beat == 500000
        assert loaded.unison_phrases == (0,)
        assert loaded.source_path is None

    def test_cymbal_flag_only_on_cymbal_lanes(self):
        """A red cymbal is not possible."""
        loaded = parse_track_document(
            _document(
                type="drums",
                notes=[
                    {"tick": 0, "lane": "red", "cymbal": True},
                    {"tick": 0, "lane": "yellow", "cymbal": True, "dynamics": "Accent"},
                ],
                star_power=[],
            )
        )
        red, yellow = loaded.track.notes
        assert not red.is_cymbal
        assert yellow.is_cymbal
        assert yellow.dynamics == chart_models.Dynamics.ACCENT

    def test_wrong_lane_for_track_type(self):
        """Drum lanes are rejected on guitar tracks."""
        with pytest.raises(TrackDocumentValidationError):
            parse_track_document(_document(notes=[{"tick": 0, "lane": "kick"}]))

    def test_invalid_track_type(self):
        """Unknown track types fail validation."""
        with pytest.raises(TrackDocumentValidationError):
            parse_track_document(_document(type="keys"))

    def test_solo_ending_before_start(self):
        """Spans must not run backwards."""
        with pytest.raises(TrackDocumentValidationError):
            parse_track_document(_document(solos=[{"start": 100, "end": 50}]))

    def test_non_positive_resolution(self):
        """Resolution must be positive."""
        document = _document()
        document["song"]["resolution"] = 0
        with pytest.raises(TrackDocumentValidationError):
            parse_track_document(document)

    def test_errors_share_a_base_class(self):
        """Callers can catch ChartDataError for every document problem."""
        assert issubclass(TrackDocumentValidationError, TrackDocumentError)
        assert issubclass(TrackDocumentError, ChartDataError)


class TestLoadTrackDocument:
    """Test reading documents from disk."""

    def test_load_from_file(self, tmp_path):
        """A UTF-8 JSON file loads and records its path."""
        path = tmp_path / "track.json"
        path.write_text(json.dumps(_document()), encoding="utf-8")
        loaded = load_track_document(path)
        assert loaded.source_path == path
        assert len(loaded.track.notes) == 2

    def test_missing_file(self, tmp_path):
        """A missing file is a document error."""
        with pytest.raises(TrackDocumentError):
            load_track_document(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        """Malformed JSON is a document error."""
        path = tmp_path / "track.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(TrackDocumentError):
            load_track_document(path)

    def test_root_must_be_an_object(self, tmp_path):
        """A JSON list is not a track document."""
        path = tmp_path / "track.json"
        path.write_text("[]", encoding="utf-8")
        with pytest.raises(TrackDocumentError):
            load_track_document(path)
