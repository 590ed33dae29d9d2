"""Tests for run configuration loading."""

import json

import pytest

import config
import engine as engine_module


_ENV_NAMES = (
    "SPOPT_CONFIG_PATH",
    "SPOPT_ENGINE",
    "SPOPT_SQUEEZE",
    "SPOPT_EARLY_WHAMMY",
    "SPOPT_LAZY_WHAMMY",
    "SPOPT_WHAMMY_DELAY",
    "SPOPT_VIDEO_LAG",
    "SPOPT_DISABLE_KICK",
    "SPOPT_ENABLE_DOUBLE_KICK",
    "SPOPT_PRO_DRUMS",
    "SPOPT_ENABLE_DISCO_FLIP",
)


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch, tmp_path):
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(config, "_default_config_candidates", lambda: [tmp_path / "spopt_config.json"])


def _write_config(path, payload):
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


class TestLoadConfig:
    """Test config file discovery and validation."""

    def test_defaults_without_a_file(self):
        """No config file means defaults."""
        loaded, path = config.load_config()
        assert path is None
        assert loaded.engine == "ch_guitar"
        assert loaded.squeeze.squeeze == 100

    def test_file_in_search_path(self, tmp_path):
        """The first existing candidate is used."""
        _write_config(tmp_path / "spopt_config.json", {"engine": "RB", "squeeze": {"squeeze": 50}})
        loaded, path = config.load_config()
        assert path == tmp_path / "spopt_config.json"
        assert loaded.engine == "rb"
        assert loaded.to_engine() is engine_module.RB

    def test_explicit_path_from_environment(self, tmp_path, monkeypatch):
        """SPOPT_CONFIG_PATH wins over the search path."""
        explicit = _write_config(tmp_path / "other.json", {"engine": "gh1"})
        monkeypatch.setenv("SPOPT_CONFIG_PATH", str(explicit))
        loaded, path = config.load_config()
        assert path == explicit
        assert loaded.engine == "gh1"

    def test_invalid_json(self, tmp_path):
        """Malformed JSON is a ValueError."""
        (tmp_path / "spopt_config.json").write_text("{", encoding="utf-8")
        with pytest.raises(ValueError):
            config.load_config()

    def test_out_of_range_values(self, tmp_path):
        """Validation errors are reported as ValueError."""
        _write_config(tmp_path / "spopt_config.json", {"squeeze": {"video_lag": 500}})
        with pytest.raises(ValueError):
            config.load_config()

    def test_unknown_engine(self, tmp_path):
        """Engine names are checked against the catalogue."""
        _write_config(tmp_path / "spopt_config.json", {"engine": "guitar_hero_99"})
        with pytest.raises(ValueError):
            config.load_config()


class TestEnvironmentOverrides:
    """Test SPOPT_* overrides."""

    def test_overrides_apply_over_the_file(self, tmp_path, monkeypatch):
        """Environment values replace file values."""
        _write_config(tmp_path / "spopt_config.json", {"squeeze": {"squeeze": 50}})
        monkeypatch.setenv("SPOPT_SQUEEZE", "80")
        monkeypatch.setenv("SPOPT_PRO_DRUMS", "off")
        monkeypatch.setenv("SPOPT_ENGINE", "ch_drums")
        loaded, _ = config.load_config()
        assert loaded.squeeze.squeeze == 80
        assert loaded.drums.pro_drums is False
        assert loaded.engine == "ch_drums"

    def test_unparseable_values_are_ignored(self, monkeypatch):
        """Non-numeric integers and unknown booleans are skipped."""
        monkeypatch.setenv("SPOPT_SQUEEZE", "lots")
        monkeypatch.setenv("SPOPT_DISABLE_KICK", "maybe")
        loaded, _ = config.load_config()
        assert loaded.squeeze.squeeze == 100
        assert loaded.drums.disable_kick is False


class TestConversions:
    """Test conversion into optimiser settings."""

    def test_to_squeeze_settings(self):
        """Percentages become fractions and milliseconds become seconds."""
        loaded = config.AppConfig.model_validate(
            {"squeeze": {"squeeze": 50, "early_whammy": 25, "lazy_whammy": 100, "whammy_delay": 20, "video_lag": -80}}
        )
        squeeze_settings = loaded.to_squeeze_settings()
        assert squeeze_settings.squeeze == pytest.approx(0.5)
        assert squeeze_settings.early_whammy == pytest.approx(0.25)
        assert squeeze_settings.lazy_whammy == pytest.approx(0.1)
        assert squeeze_settings.whammy_delay == pytest.approx(0.02)
        assert squeeze_settings.video_lag == pytest.approx(-0.08)

    def test_to_drum_settings(self):
        """Drum flags are copied."""
        loaded = config.AppConfig.model_validate({"drums": {"disable_kick": True, "enable_disco_flip": False}})
        drum_settings = loaded.to_drum_settings()
        assert drum_settings.disable_kick is True
        assert drum_settings.enable_disco_flip is False
        assert drum_settings.pro_drums is True


class TestMain:
    """Test the config inspection entry point."""

    def test_main_prints_the_config(self, capsys):
        """main() prints the resolved config as JSON."""
        assert config.main() == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["ok"] is True
        assert payload["config_path"] is None
        assert payload["config"]["engine"] == "ch_guitar"

    def test_main_reports_errors(self, tmp_path, capsys):
        """Invalid config exits with status 2."""
        (tmp_path / "spopt_config.json").write_text("[]", encoding="utf-8")
        assert config.main() == 2
        assert json.loads(capsys.readouterr().out)["ok"] is False
