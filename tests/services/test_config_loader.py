import pytest

from pgselfhost.errors import ValidationError
from pgselfhost.services.config_loader import ConfigLoader


def test_config_loader_loads_yaml_mapping(tmp_path):
    config_file = tmp_path / ".pgselfhost.yml"
    config_file.write_text(
        "dir: /srv/pg\nallow:\n  - 10.0.0.5\n  - 192.168.1.0/24\ndb_port: 6432\n",
        encoding="utf-8",
    )

    loader = ConfigLoader()
    loaded = loader.load(str(config_file))

    assert loaded["dir"] == "/srv/pg"
    assert loaded["allow"] == ["10.0.0.5", "192.168.1.0/24"]
    assert loaded["db_port"] == 6432


def test_config_loader_wraps_single_allow_string(tmp_path):
    config_file = tmp_path / ".pgselfhost.yml"
    config_file.write_text("allow: 10.0.0.5, 10.0.0.6\n", encoding="utf-8")

    loaded = ConfigLoader().load(str(config_file))

    assert loaded["allow"] == ["10.0.0.5, 10.0.0.6"]


def test_config_loader_rejects_unknown_keys(tmp_path):
    config_file = tmp_path / ".pgselfhost.yml"
    config_file.write_text("unknown_key: true\n", encoding="utf-8")

    loader = ConfigLoader()

    with pytest.raises(ValidationError, match="Unknown configuration keys"):
        loader.load(str(config_file))


def test_config_loader_rejects_non_mapping_root(tmp_path):
    config_file = tmp_path / ".pgselfhost.yml"
    config_file.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ValidationError, match="YAML mapping"):
        ConfigLoader().load(str(config_file))


def test_config_loader_returns_empty_without_path():
    assert ConfigLoader().load(None) == {}
