# -*- coding: utf-8 -*-
########################
# chart_models.py
########################
# Purpose:
# - Data models for a decoded chart: notes, Star Power phrases, solos, drum fills,
#   disco flips, Big Rock Endings and the tempo map.
# - These are the only input types consumed by the optimiser core.
#
# Design notes:
# - Pure data definitions. No parsing and no file I/O here (see track_document.py).
# - Positions are integer ticks. Beats are derived with the song resolution.
# - SongGlobalData is one immutable record shared by reference by every NoteTrack of a song.
# - Lane tags are plain strings so that summaries can print them directly.
#
########################
# Interfaces:
# Public enums:
# - class TrackType(enum.Enum): FIVE_FRET | SIX_FRET | DRUMS
# - class Dynamics(enum.Enum): NONE | GHOST | ACCENT
#
# Public constants:
# - FIVE_FRET_LANES, SIX_FRET_LANES, DRUM_LANES, KICK_LANES
#
# Public dataclasses:
# - Note(position: int, length: int, lane: str, is_cymbal: bool, dynamics: Dynamics)
# - StarPower(position: int, length: int)
# - Solo(start: int, end: int)
# - DrumFill(position: int, length: int)
# - DiscoFlip(position: int, length: int)
# - BigRockEnding(start: int, end: int)
# - TempoChange(position: int, microseconds_per_beat: int)
# - TimeSignature(position: int, numerator: int, denominator: int)
# - TempoMap(tempo_changes, time_signatures, od_beats, resolution)
# - SongGlobalData(name: str, artist: str, charter: str, resolution: int)
# - NoteTrack(track_type, notes, sp_phrases, solos, drum_fills, disco_flips, bre, global_data)
#   - resolution() -> int
#
# Inputs/Outputs:
# - Built by track_document.py (or directly by tests) and consumed by points.py / sp_data.py.
#
########################

from __future__ import annotations

from dataclasses import dataclass, field
import enum
from typing import Optional, Tuple


class TrackType(enum.Enum):
    FIVE_FRET = "five_fret"
    SIX_FRET = "six_fret"
    DRUMS = "drums"


class Dynamics(enum.Enum):
    NONE = "none"
    GHOST = "ghost"
    ACCENT = "accent"


FIVE_FRET_LANES: Tuple[str, ...] = ("green", "red", "yellow", "blue", "orange", "open")
SIX_FRET_LANES: Tuple[str, ...] = ("white_low", "white_mid", "white_high", "black_low", "black_mid", "black_high", "open")
DRUM_LANES: Tuple[str, ...] = ("kick", "double_kick", "red", "yellow", "blue", "green")
KICK_LANES: Tuple[str, ...] = ("kick", "double_kick")

# Only these drum lanes can carry the cymbal flag.
CYMBAL_CAPABLE_LANES: Tuple[str, ...] = ("yellow", "blue", "green")


def lanes_for_track_type(track_type: TrackType) -> Tuple[str, ...]:
    if track_type == TrackType.FIVE_FRET:
        return FIVE_FRET_LANES
    if track_type == TrackType.SIX_FRET:
        return SIX_FRET_LANES
    return DRUM_LANES


@dataclass(frozen=True)
class Note:
    position: int
    length: int = 0
    lane: str = "green"
    is_cymbal: bool = False
    dynamics: Dynamics = Dynamics.NONE

    def end_position(self) -> int:
        return int(self.position) + int(self.length)


@dataclass(frozen=True)
class StarPower:
    position: int
    length: int

    def contains(self, tick: int) -> bool:
        return int(self.position) <= int(tick) < int(self.position) + int(self.length)


@dataclass(frozen=True)
class Solo:
    start: int
    end: int


@dataclass(frozen=True)
class DrumFill:
    position: int
    length: int


@dataclass(frozen=True)
class DiscoFlip:
    position: int
    length: int

    def contains(self, tick: int) -> bool:
        return int(self.position) <= int(tick) < int(self.position) + int(self.length)


@dataclass(frozen=True)
class BigRockEnding:
    start: int
    end: int


@dataclass(frozen=True)
class TempoChange:
    position: int
    microseconds_per_beat: int


@dataclass(frozen=True)
class TimeSignature:
    position: int
    numerator: int
    denominator: int


@dataclass(frozen=True)
class TempoMap:
    tempo_changes: Tuple[TempoChange, ...] = ()
    time_signatures: Tuple[TimeSignature, ...] = ()
    od_beats: Tuple[int, ...] = ()
    resolution: int = 192


@dataclass(frozen=True)
class SongGlobalData:
    name: str = ""
    artist: str = ""
    charter: str = ""
    resolution: int = 192


@dataclass(frozen=True)
class NoteTrack:
    track_type: TrackType
    notes: Tuple[Note, ...]
    sp_phrases: Tuple[StarPower, ...] = ()
    solos: Tuple[Solo, ...] = ()
    drum_fills: Tuple[DrumFill, ...] = ()
    disco_flips: Tuple[DiscoFlip, ...] = ()
    bre: Optional[BigRockEnding] = None
    global_data: SongGlobalData = field(default_factory=SongGlobalData)

    def resolution(self) -> int:
        return int(self.global_data.resolution)

    def last_tick(self) -> int:
        if not self.notes:
            return 0
        return max(note.end_position() for note in self.notes)


def _run_unit_tests() -> None:
    phrase = StarPower(position=192, length=192)
    assert phrase.contains(192)
    assert phrase.contains(383)
    assert not phrase.contains(384)

    shared = SongGlobalData(name="Song", resolution=480)
    track = NoteTrack(
        track_type=TrackType.FIVE_FRET,
        notes=(Note(position=0), Note(position=0, lane="red"), Note(position=480, length=240)),
        global_data=shared,
    )
    assert track.resolution() == 480
    assert track.last_tick() == 720
    assert lanes_for_track_type(TrackType.DRUMS) == DRUM_LANES


if __name__ == "__main__":
    _run_unit_tests()
    print("chart_models.py: ok")
