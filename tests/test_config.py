import json

import pytest

from gardenpi import config
from gardenpi.errors import ConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("GARDENPI_HOST", raising=False)
    monkeypatch.delenv("GARDENPI_PORT", raising=False)


def test_missing_file_gives_defaults(tmp_path):
    cfg = config.load_config(str(tmp_path / "nope.json"))
    assert cfg == config.DEFAULT_CONFIG
    # defaults are not shared with the returned dict
    cfg["web"]["port"] = 1
    assert config.DEFAULT_CONFIG["web"]["port"] == 50050


def test_partial_file_is_merged(tmp_path):
    p = tmp_path / "gardenpi.json"
    p.write_text(json.dumps({"interval": 2, "web": {"port": 9000}}))
    cfg = config.load_config(str(p))
    assert cfg["interval"] == 2.0
    assert cfg["web"] == {"host": "127.0.0.1", "port": 9000}
    assert cfg["sink"] == "console"


@pytest.mark.parametrize("env_name, value, key, expected", [
    ("GARDENPI_HOST", "garden.local", "host", "garden.local"),
    ("GARDENPI_PORT", "8080", "port", 8080),
])
def test_env_overrides(monkeypatch, tmp_path, env_name, value, key, expected):
    monkeypatch.setenv(env_name, value)
    cfg = config.load_config(str(tmp_path / "none.json"))
    assert cfg["web"][key] == expected


def test_uses_module_config_path(monkeypatch, tmp_path):
    p = tmp_path / "custom.json"
    p.write_text(json.dumps({"sink": "gpio"}))
    monkeypatch.setattr(config, "CONFIG_PATH", str(p))
    assert config.load_config()["sink"] == "gpio"


@pytest.mark.parametrize("payload", [
    {"interval": 0},
    {"interval": "soon"},
    {"sink": "lcd"},
    {"gpio": {"pins": [1, 2, 3]}},
    {"web": "localhost"},
    [1, 2],
])
def test_invalid_config(tmp_path, payload):
    p = tmp_path / "bad.json"
    p.write_text(json.dumps(payload))
    with pytest.raises(ConfigError):
        config.load_config(str(p))


def test_unparseable_file(tmp_path):
    p = tmp_path / "bad.json"
    p.write_text("{not json")
    with pytest.raises(ConfigError):
        config.load_config(str(p))
