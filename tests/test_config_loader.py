import json

import pytest

from triage_engine.config_loader import load_settings, load_triage_config, parse_ports
from triage_engine.models import DEFAULT_SUSPICIOUS_PORTS


@pytest.fixture
def settings_file(tmp_path, monkeypatch):
    path = tmp_path / "data" / "settings.json"
    path.parent.mkdir(parents=True)
    monkeypatch.setattr("triage_engine.config_loader.DEFAULT_SETTINGS_FILE", path)
    return path


def test_load_settings_merges_file(settings_file):
    settings_file.write_text(json.dumps({"export_format": "json"}))
    settings = load_settings()
    assert settings["export_format"] == "json"
    assert "top_flagged" not in settings


def test_broken_settings_file_is_ignored(settings_file):
    settings_file.write_text("{oops")
    assert load_settings(defaults={"workers": 2}) == {"workers": 2}


def test_defaults_when_nothing_configured(settings_file):
    config, settings = load_triage_config()
    assert config.suspicious_ports == DEFAULT_SUSPICIOUS_PORTS
    assert settings["export_format"] == "csv"


def test_config_file_then_overrides(tmp_path, settings_file):
    settings_file.write_text(json.dumps({"suspicious_ports": [1, 2], "top_flagged": 3}))
    config_path = tmp_path / "triage.json"
    config_path.write_text(json.dumps({"suspicious_ports": "4444, 6667", "workers": 4}))

    config, settings = load_triage_config(str(config_path), overrides={"workers": 8, "top_flagged": None})

    assert config.suspicious_ports == frozenset({4444, 6667})
    assert settings["workers"] == 8
    assert settings["top_flagged"] == 3


def test_bad_config_file_raises(tmp_path, settings_file):
    with pytest.raises(RuntimeError):
        load_triage_config(str(tmp_path / "missing.json"))


def test_parse_ports():
    assert parse_ports("22, 4444,,31337") == frozenset({22, 4444, 31337})
    assert parse_ports([80, "443"]) == frozenset({80, 443})
    assert parse_ports(None) == frozenset()
    with pytest.raises(ValueError):
        parse_ports("22,ssh")
    with pytest.raises(ValueError):
        parse_ports([70000])


@pytest.mark.parametrize(
    "bad",
    [{"workers": "many"}, {"workers": 0}, {"top_flagged": -1}, {"log_backup_count": "lots"}, {"export_format": "xml"}],
)
def test_wrong_typed_settings_raise_value_error(tmp_path, settings_file, bad):
    config_path = tmp_path / "triage.json"
    config_path.write_text(json.dumps(bad))
    with pytest.raises(ValueError):
        load_triage_config(str(config_path))


def test_numeric_settings_are_normalised(tmp_path, settings_file):
    config_path = tmp_path / "triage.json"
    config_path.write_text(json.dumps({"workers": "3", "top_flagged": None, "export_format": None}))
    _, settings = load_triage_config(str(config_path))
    assert settings["workers"] == 3
    assert settings["top_flagged"] == 5
    assert settings["export_format"] == "none"
