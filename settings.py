# -*- coding: utf-8 -*-
########################
# settings.py
########################
# Purpose:
# - Run settings consumed by the optimiser core: squeeze / whammy tolerances and drum lane toggles.
#
# Design notes:
# - Plain frozen dataclasses in core units (fractions and seconds).
# - config.py owns file parsing and range validation, then converts to these values.
#
########################
# Interfaces:
# Public dataclasses:
# - SqueezeSettings(squeeze, early_whammy, lazy_whammy, video_lag, whammy_delay)
#   - default() -> SqueezeSettings
# - DrumSettings(disable_kick, enable_double_kick, pro_drums, enable_disco_flip)
#   - default() -> DrumSettings
#
########################

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SqueezeSettings:
    # Fraction of the timing window the player is assumed to use, 0..1.
    squeeze: float = 1.0
    # Fraction of the early window in which whammy may already start, 0..1.
    early_whammy: float = 1.0
    # Seconds after a sustain starts before whammy begins.
    lazy_whammy: float = 0.0
    # Seconds, negative when audio runs ahead of video.
    video_lag: float = 0.0
    # Seconds of delay before each whammy range starts counting.
    whammy_delay: float = 0.0

    @staticmethod
    def default() -> "SqueezeSettings":
        return SqueezeSettings()


@dataclass(frozen=True)
class DrumSettings:
    disable_kick: bool = False
    enable_double_kick: bool = False
    pro_drums: bool = True
    enable_disco_flip: bool = True

    @staticmethod
    def default() -> "DrumSettings":
        return DrumSettings()
