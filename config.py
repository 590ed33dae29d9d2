"""
config.py

Typed run configuration loading and validation for SpOpt.

Design goals
- Load at most one UTF-8 JSON config file
- Validate with pydantic (defaults included)
- Support environment variable overrides
- No other I/O beyond reading the config file (no directory creation, no saving)

Values are stored the way players think about them (percentages and
milliseconds) and converted to the fractions and seconds the optimiser uses by
to_squeeze_settings() and to_drum_settings().

Config file location
- If SPOPT_CONFIG_PATH is set, that file is used.
- Otherwise SpOpt searches these paths in order and uses the first one that exists:
  1) ./spopt_config.json (current working directory)
  2) <user config dir>/SpOpt/SpOpt/spopt_config.json
  3) <user config dir>/SpOpt/SpOpt/settings.json
- When none exists the defaults are used.

Example config file (spopt_config.json)
{
  "engine": "ch_guitar",
  "squeeze": {
    "squeeze": 100,
    "early_whammy": 100,
    "lazy_whammy": 0,
    "whammy_delay": 0,
    "video_lag": 0
  },
  "drums": {
    "disable_kick": false,
    "enable_double_kick": false,
    "pro_drums": true,
    "enable_disco_flip": true
  },
  "lefty_flip": false
}
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from platformdirs import user_config_dir
from pydantic import BaseModel, Field, ValidationError, field_validator

import engine as engine_module
import settings


class SqueezeConfig(BaseModel):
    squeeze: int = Field(default=100, ge=0, le=100, description="Percent of each timing window the player uses.")
    early_whammy: int = Field(default=100, ge=0, le=100, description="Percent of the early window usable for whammy.")
    lazy_whammy: int = Field(default=0, ge=0, le=999_999_999, description="Milliseconds before whammy starts on a sustain.")
    whammy_delay: int = Field(default=0, ge=0, le=999_999_999, description="Extra milliseconds before whammy counts.")
    video_lag: int = Field(default=0, ge=-200, le=200, description="Video calibration in milliseconds.")


class DrumConfig(BaseModel):
    disable_kick: bool = Field(default=False, description="Drop single kick notes.")
    enable_double_kick: bool = Field(default=False, description="Keep double kick notes.")
    pro_drums: bool = Field(default=True, description="Score cymbals as cymbals.")
    enable_disco_flip: bool = Field(default=True, description="Swap red and yellow cymbal inside disco flips.")


class AppConfig(BaseModel):
    engine: str = Field(default="ch_guitar", description="Engine name, see engine.ENGINES.")
    squeeze: SqueezeConfig = Field(default_factory=SqueezeConfig)
    drums: DrumConfig = Field(default_factory=DrumConfig)
    lefty_flip: bool = Field(default=False, description="Display only. Ignored by the optimiser.")

    @field_validator("engine")
    @classmethod
    def validate_engine(cls, value: str) -> str:
        normalized = (value or "").strip().lower()
        if normalized not in engine_module.ENGINES:
            raise ValueError("engine must be one of: " + ", ".join(sorted(engine_module.ENGINES)))
        return normalized

    def to_squeeze_settings(self) -> settings.SqueezeSettings:
        return settings.SqueezeSettings(
            squeeze=self.squeeze.squeeze / 100.0,
            early_whammy=self.squeeze.early_whammy / 100.0,
            lazy_whammy=self.squeeze.lazy_whammy / 1000.0,
            video_lag=self.squeeze.video_lag / 1000.0,
            whammy_delay=self.squeeze.whammy_delay / 1000.0,
        )

    def to_drum_settings(self) -> settings.DrumSettings:
        return settings.DrumSettings(
            disable_kick=self.drums.disable_kick,
            enable_double_kick=self.drums.enable_double_kick,
            pro_drums=self.drums.pro_drums,
            enable_disco_flip=self.drums.enable_disco_flip,
        )

    def to_engine(self) -> engine_module.Engine:
        return engine_module.engine_by_name(self.engine)


def _default_config_candidates() -> List[Path]:
    config_directory = Path(user_config_dir("SpOpt", "SpOpt"))
    return [
        Path.cwd() / "spopt_config.json",
        config_directory / "spopt_config.json",
        config_directory / "settings.json",
    ]


def _resolve_config_path() -> Optional[Path]:
    explicit_path_text = os.environ.get("SPOPT_CONFIG_PATH", "").strip()
    if explicit_path_text:
        return Path(explicit_path_text)

    for candidate_path in _default_config_candidates():
        if candidate_path.exists():
            return candidate_path

    return None


def _read_json_file_utf8(config_path: Path) -> Dict[str, Any]:
    try:
        raw_text = config_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise
    except OSError as exception:
        raise OSError(f"Failed to read config file: {config_path}. Error: {exception}") from exception

    try:
        parsed = json.loads(raw_text)
    except json.JSONDecodeError as exception:
        raise ValueError(f"Config file is not valid JSON: {config_path}. Error: {exception}") from exception

    if not isinstance(parsed, dict):
        raise ValueError(f"Config file root must be a JSON object: {config_path}")

    return parsed


def _apply_environment_overrides(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    """
    Environment overrides are optional. The config file is the primary source of truth.

    Override variables:
    - SPOPT_ENGINE
    - SPOPT_SQUEEZE
    - SPOPT_EARLY_WHAMMY
    - SPOPT_LAZY_WHAMMY
    - SPOPT_WHAMMY_DELAY
    - SPOPT_VIDEO_LAG
    - SPOPT_DISABLE_KICK
    - SPOPT_ENABLE_DOUBLE_KICK
    - SPOPT_PRO_DRUMS
    - SPOPT_ENABLE_DISCO_FLIP
    """
    def ensure_nested(config_root: Dict[str, Any], section_name: str) -> Dict[str, Any]:
        section = config_root.get(section_name)
        if isinstance(section, dict):
            return section
        section = {}
        config_root[section_name] = section
        return section

    updated_config = dict(config_dict)

    squeeze_section = ensure_nested(updated_config, "squeeze")
    drums_section = ensure_nested(updated_config, "drums")

    def override_string(env_name: str, target_dict: Dict[str, Any], key_name: str) -> None:
        value_text = os.environ.get(env_name, "")
        if value_text.strip():
            target_dict[key_name] = value_text.strip()

    def override_int(env_name: str, target_dict: Dict[str, Any], key_name: str) -> None:
        value_text = os.environ.get(env_name, "").strip()
        if not value_text:
            return
        try:
            target_dict[key_name] = int(value_text)
        except ValueError:
            return

    def override_bool(env_name: str, target_dict: Dict[str, Any], key_name: str) -> None:
        value_text = os.environ.get(env_name, "").strip().lower()
        if not value_text:
            return
        truthy = {"1", "true", "yes", "on"}
        falsy = {"0", "false", "no", "off"}
        if value_text in truthy:
            target_dict[key_name] = True
        elif value_text in falsy:
            target_dict[key_name] = False

    override_string("SPOPT_ENGINE", updated_config, "engine")

    override_int("SPOPT_SQUEEZE", squeeze_section, "squeeze")
    override_int("SPOPT_EARLY_WHAMMY", squeeze_section, "early_whammy")
    override_int("SPOPT_LAZY_WHAMMY", squeeze_section, "lazy_whammy")
    override_int("SPOPT_WHAMMY_DELAY", squeeze_section, "whammy_delay")
    override_int("SPOPT_VIDEO_LAG", squeeze_section, "video_lag")

    override_bool("SPOPT_DISABLE_KICK", drums_section, "disable_kick")
    override_bool("SPOPT_ENABLE_DOUBLE_KICK", drums_section, "enable_double_kick")
    override_bool("SPOPT_PRO_DRUMS", drums_section, "pro_drums")
    override_bool("SPOPT_ENABLE_DISCO_FLIP", drums_section, "enable_disco_flip")

    return updated_config


def load_config(config_path: Optional[Path] = None) -> Tuple[AppConfig, Optional[Path]]:
    resolved_path = config_path if config_path is not None else _resolve_config_path()
    json_dict: Dict[str, Any] = {}
    if resolved_path is not None:
        json_dict = _read_json_file_utf8(resolved_path)
    json_dict = _apply_environment_overrides(json_dict)

    try:
        config = AppConfig.model_validate(json_dict)
    except ValidationError as exception:
        source = str(resolved_path) if resolved_path is not None else "defaults"
        raise ValueError(f"Config validation failed for {source}:\n{exception}") from exception

    return config, resolved_path


def main() -> int:
    try:
        config, resolved_path = load_config()
    except Exception as exception:
        error_payload = {"ok": False, "error": str(exception)}
        print(json.dumps(error_payload, ensure_ascii=False, indent=2))
        return 2

    output_payload = {
        "ok": True,
        "config_path": str(resolved_path) if resolved_path is not None else None,
        "config": config.model_dump(mode="json"),
    }
    print(json.dumps(output_payload, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
