# -*- coding: utf-8 -*-
########################
# path_models.py
########################
# Purpose:
# - Data models exchanged between the resource model, the validator and the optimiser:
#   the Star Power bar interval, activation candidates, resolved activations and paths.
#
# Design notes:
# - Keep these models stable. Prefer extending with new optional fields rather than breaking changes.
# - SpBar is mutable because the validator walks it forward in place. Copy before sharing.
# - Point references are integer indices into PointSet.points(). Activation ranges are inclusive.
#
########################
# Interfaces:
# Public enums:
# - class ActValidity(enum.Enum): SUCCESS | INSUFFICIENT_SP | SURPLUS_SP
#
# Public dataclasses:
# - SpBar(min_phase: float, max_phase: float)
#   - add_phrase(amount: float = 0.25) -> None
#   - full_enough_to_activate(minimum: float) -> bool
#   - copy() -> SpBar
# - ActivationCandidate(act_start: int, act_end: int, earliest_activation_point: Position, sp_bar: SpBar)
# - ActResult(ending_position: Position, validity: ActValidity)
# - Activation(act_start: int, act_end: int, whammy_end: float, sp_start: float, sp_end: float, squeeze: float)
# - Path(activations: list[Activation], score_boost: int, flat_bonus: int)
#
# Inputs/Outputs:
# - Produced by processed.py and optimiser.py, consumed by sp_data.py and measure_report.py.
#
########################

from __future__ import annotations

from dataclasses import dataclass, field
import enum
from typing import List

from engine import SP_PHRASE_AMOUNT
from time_converter import Position


class ActValidity(enum.Enum):
    SUCCESS = "success"
    INSUFFICIENT_SP = "insufficient_sp"
    SURPLUS_SP = "surplus_sp"


@dataclass
class SpBar:
    min_phase: float = 0.0
    max_phase: float = 0.0

    def add_phrase(self, amount: float = SP_PHRASE_AMOUNT) -> None:
        self.min_phase = min(float(self.min_phase) + float(amount), 1.0)
        self.max_phase = min(float(self.max_phase) + float(amount), 1.0)

    def full_enough_to_activate(self, minimum: float) -> bool:
        return float(self.max_phase) >= float(minimum)

    def copy(self) -> "SpBar":
        return SpBar(min_phase=float(self.min_phase), max_phase=float(self.max_phase))


@dataclass
class ActivationCandidate:
    act_start: int
    act_end: int
    earliest_activation_point: Position
    sp_bar: SpBar


@dataclass(frozen=True)
class ActResult:
    ending_position: Position
    validity: ActValidity


@dataclass(frozen=True)
class Activation:
    act_start: int
    act_end: int
    # Beat after which whammy is no longer taken during the activation.
    whammy_end: float
    sp_start: float
    sp_end: float
    # Smallest timing squeeze fraction under which the activation is still valid.
    squeeze: float = 1.0


@dataclass(frozen=True)
class Path:
    activations: List[Activation] = field(default_factory=list)
    score_boost: int = 0
    flat_bonus: int = 0

    def total_boost(self) -> int:
        return int(self.score_boost) + int(self.flat_bonus)
