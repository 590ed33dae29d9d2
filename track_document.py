# -*- coding: utf-8 -*-
########################
# track_document.py
########################
# Purpose:
# - Load a decoded track document (UTF-8 JSON written by the chart decoding collaborator)
#   into chart_models values for the optimiser.
#
# Design notes:
# - Validate with pydantic, then convert explicitly into frozen chart_models dataclasses.
# - Structural problems fail here, before the optimiser runs. The optimiser core trusts its inputs.
# - Notes are sorted and de-duplicated by (tick, lane). Star Power phrases with no notes are dropped.
#
########################
# Interfaces:
# Public exceptions:
# - class ChartDataError(Exception)
# - class TrackDocumentError(ChartDataError)
# - class TrackDocumentValidationError(TrackDocumentError)
#
# Public dataclasses:
# - LoadedTrack(track: NoteTrack, tempo_map: TempoMap, unison_phrases: tuple[int, ...], source_path: Optional[Path])
#
# Public functions:
# - parse_track_document(document: dict, *, source_path: Optional[Path] = None) -> LoadedTrack
# - load_track_document(document_path: Path) -> LoadedTrack
#
# Inputs:
# - JSON document:
#   {
#     "song": {"name": "...", "artist": "...", "charter": "...", "resolution": 192},
#     "tempo_map": {
#       "tempos": [{"tick": 0, "microseconds_per_beat": 500000}],
#       "time_signatures": [{"tick": 0, "numerator": 4, "denominator": 4}],
#       "od_beats": []
#     },
#     "track": {
#       "type": "five_fret",
#       "notes": [{"tick": 0, "length": 0, "lane": "green", "cymbal": false, "dynamics": "none"}],
#       "star_power": [{"tick": 0, "length": 192}],
#       "solos": [{"start": 0, "end": 768}],
#       "drum_fills": [], "disco_flips": [],
#       "big_rock_ending": null
#     },
#     "unison_phrases": []
#   }
#
# Outputs:
# - LoadedTrack for ProcessedSong construction.
#
########################

from __future__ import annotations

from dataclasses import dataclass
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

import chart_models


class ChartDataError(Exception):
    """Base error for decoded chart data."""


class TrackDocumentError(ChartDataError):
    """Raised when the track document cannot be read or parsed."""


class TrackDocumentValidationError(TrackDocumentError):
    """Raised when the document parses but describes an impossible chart."""


class SongModel(BaseModel):
    name: str = Field(default="", description="Song title.")
    artist: str = Field(default="", description="Song artist.")
    charter: str = Field(default="", description="Chart author.")
    resolution: int = Field(default=192, gt=0, description="Ticks per beat.")


class TempoModel(BaseModel):
    tick: int = Field(ge=0)
    microseconds_per_beat: int = Field(gt=0)


class TimeSignatureModel(BaseModel):
    tick: int = Field(ge=0)
    numerator: int = Field(ge=1)
    denominator: int = Field(ge=1)


class TempoMapModel(BaseModel):
    tempos: List[TempoModel] = Field(default_factory=list)
    time_signatures: List[TimeSignatureModel] = Field(default_factory=list)
    od_beats: List[int] = Field(default_factory=list)


class NoteModel(BaseModel):
    tick: int = Field(ge=0)
    length: int = Field(default=0, ge=0)
    lane: str
    cymbal: bool = False
    dynamics: str = "none"

    @field_validator("lane", "dynamics")
    @classmethod
    def normalize_names(cls, value: str) -> str:
        return (value or "").strip().lower()

    @field_validator("dynamics")
    @classmethod
    def validate_dynamics(cls, value: str) -> str:
        allowed = {item.value for item in chart_models.Dynamics}
        if value not in allowed:
            raise ValueError(f"dynamics must be one of: {', '.join(sorted(allowed))}")
        return value


class IntervalModel(BaseModel):
    tick: int = Field(ge=0)
    length: int = Field(ge=0)


class SpanModel(BaseModel):
    start: int = Field(ge=0)
    end: int = Field(ge=0)

    @model_validator(mode="after")
    def validate_order(self) -> "SpanModel":
        if self.end < self.start:
            raise ValueError(f"span ends at {self.end} before it starts at {self.start}")
        return self


class TrackModel(BaseModel):
    type: str = Field(default="five_fret", description="five_fret, six_fret or drums")
    notes: List[NoteModel] = Field(default_factory=list)
    star_power: List[IntervalModel] = Field(default_factory=list)
    solos: List[SpanModel] = Field(default_factory=list)
    drum_fills: List[IntervalModel] = Field(default_factory=list)
    disco_flips: List[IntervalModel] = Field(default_factory=list)
    big_rock_ending: Optional[SpanModel] = None

    @field_validator("type")
    @classmethod
    def validate_type(cls, value: str) -> str:
        normalized = (value or "").strip().lower()
        allowed = {item.value for item in chart_models.TrackType}
        if normalized not in allowed:
            raise ValueError(f"type must be one of: {', '.join(sorted(allowed))}")
        return normalized


class TrackDocument(BaseModel):
    song: SongModel = Field(default_factory=SongModel)
    tempo_map: TempoMapModel = Field(default_factory=TempoMapModel)
    track: TrackModel = Field(default_factory=TrackModel)
    unison_phrases: List[int] = Field(default_factory=list)


@dataclass(frozen=True)
class LoadedTrack:
    track: chart_models.NoteTrack
    tempo_map: chart_models.TempoMap
    unison_phrases: Tuple[int, ...]
    source_path: Optional[Path]


def _convert_notes(track_model: TrackModel, track_type: chart_models.TrackType) -> List[chart_models.Note]:
    allowed_lanes = chart_models.lanes_for_track_type(track_type)
    by_key: Dict[Tuple[int, str], chart_models.Note] = {}
    for note_model in track_model.notes:
        if note_model.lane not in allowed_lanes:
            raise TrackDocumentValidationError(
                f"Invalid lane {note_model.lane!r} for {track_type.value} track at tick {note_model.tick}"
            )
        is_cymbal = bool(note_model.cymbal) and note_model.lane in chart_models.CYMBAL_CAPABLE_LANES
        by_key[(note_model.tick, note_model.lane)] = chart_models.Note(
            position=note_model.tick,
            length=note_model.length,
            lane=note_model.lane,
            is_cymbal=is_cymbal,
            dynamics=chart_models.Dynamics(note_model.dynamics),
        )

    lane_order = {lane: index for index, lane in enumerate(allowed_lanes)}
    return sorted(by_key.values(), key=lambda note: (note.position, lane_order[note.lane]))


def _phrases_with_notes(
    phrases: List[IntervalModel],
    notes: List[chart_models.Note],
) -> List[chart_models.StarPower]:
    kept: List[chart_models.StarPower] = []
    note_ticks = sorted({note.position for note in notes})
    for interval in sorted(phrases, key=lambda item: item.tick):
        phrase = chart_models.StarPower(position=interval.tick, length=interval.length)
        if any(phrase.contains(tick) for tick in note_ticks):
            kept.append(phrase)
    return kept


def parse_track_document(document: Dict[str, Any], *, source_path: Optional[Path] = None) -> LoadedTrack:
    try:
        model = TrackDocument.model_validate(document)
    except ValidationError as exc:
        where = f" in {source_path}" if source_path is not None else ""
        raise TrackDocumentValidationError(f"Track document validation failed{where}:\n{exc}") from exc

    global_data = chart_models.SongGlobalData(
        name=model.song.name,
        artist=model.song.artist,
        charter=model.song.charter,
        resolution=model.song.resolution,
    )
    tempo_map = chart_models.TempoMap(
        tempo_changes=tuple(
            chart_models.TempoChange(position=item.tick, microseconds_per_beat=item.microseconds_per_beat)
            for item in sorted(model.tempo_map.tempos, key=lambda item: item.tick)
        ),
        time_signatures=tuple(
            chart_models.TimeSignature(position=item.tick, numerator=item.numerator, denominator=item.denominator)
            for item in sorted(model.tempo_map.time_signatures, key=lambda item: item.tick)
        ),
        od_beats=tuple(sorted(model.tempo_map.od_beats)),
        resolution=model.song.resolution,
    )

    track_type = chart_models.TrackType(model.track.type)
    notes = _convert_notes(model.track, track_type)
    bre = None
    if model.track.big_rock_ending is not None:
        bre = chart_models.BigRockEnding(start=model.track.big_rock_ending.start, end=model.track.big_rock_ending.end)

    track = chart_models.NoteTrack(
        track_type=track_type,
        notes=tuple(notes),
        sp_phrases=tuple(_phrases_with_notes(model.track.star_power, notes)),
        solos=tuple(chart_models.Solo(start=item.start, end=item.end) for item in model.track.solos),
        drum_fills=tuple(
            chart_models.DrumFill(position=item.tick, length=item.length)
            for item in sorted(model.track.drum_fills, key=lambda item: item.tick)
        ),
        disco_flips=tuple(
            chart_models.DiscoFlip(position=item.tick, length=item.length)
            for item in sorted(model.track.disco_flips, key=lambda item: item.tick)
        ),
        bre=bre,
        global_data=global_data,
    )
    return LoadedTrack(
        track=track,
        tempo_map=tempo_map,
        unison_phrases=tuple(sorted(model.unison_phrases)),
        source_path=source_path,
    )


def load_track_document(document_path: Path) -> LoadedTrack:
    path = Path(document_path)
    try:
        raw_text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise TrackDocumentError(f"Track document is not valid UTF-8: {path}") from exc
    except OSError as exc:
        raise TrackDocumentError(f"Failed to read track document: {path}") from exc

    try:
        parsed = json.loads(raw_text)
    except json.JSONDecodeError as exc:
        raise TrackDocumentError(f"Track document is not valid JSON: {path}. Error: {exc}") from exc

    if not isinstance(parsed, dict):
        raise TrackDocumentError(f"Track document root must be a JSON object: {path}")

    return parse_track_document(parsed, source_path=path)
