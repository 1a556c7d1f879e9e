import pytest
import yaml
from pathlib import Path
from replayctl.config.loader import CONFIG_TEMPLATE, ConfigError, load_config
from replayctl.config.models import AppConfig


def test_load_config(config_yaml_path, tmp_path):
    config = load_config(config_yaml_path)

    assert isinstance(config, AppConfig)
    assert config.watch.directory == str(tmp_path / "queue")
    assert config.watch.capacity == 3
    assert config.watch.recording_extension == ".rep"
    assert config.extractor.command == ["screp", "-json"]
    assert config.viewer.timeout_s == 120
    assert config.loop.seed == 7
    assert config.chat.enabled is True
    assert config.chat.token == "secret"


def test_missing_config_offers_template(tmp_path):
    with pytest.raises(ConfigError) as exc_info:
        load_config(tmp_path / "nope.yaml")
    assert "not found" in str(exc_info.value)
    assert exc_info.value.show_template is True


def test_invalid_yaml(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("watch: [unclosed\n")
    with pytest.raises(ConfigError, match="not valid YAML"):
        load_config(path)


def test_non_mapping_top_level(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n")
    with pytest.raises(ConfigError):
        load_config(path)


def test_validation_error_is_config_error(tmp_path):
    path = tmp_path / "invalid.yaml"
    path.write_text(yaml.dump({"watch": {"capacity": 0}}))
    with pytest.raises(ConfigError, match="Invalid configuration"):
        load_config(path)


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    config = load_config(path)
    assert config.watch.capacity == 5


def test_null_chat_section_disables_chat(tmp_path):
    path = tmp_path / "nochat.yaml"
    path.write_text("chat:\n")
    assert load_config(path).chat.enabled is False


def test_template_is_a_valid_config(tmp_path):
    path = tmp_path / "template.yaml"
    path.write_text(CONFIG_TEMPLATE)
    config = load_config(path)
    assert config.viewer.timeout_s == 2100
    assert config.chat.enabled is False


def test_shipped_config_matches_template():
    shipped = Path(__file__).resolve().parents[2] / "conf" / "replayctl.yaml"
    assert yaml.safe_load(shipped.read_text()) == yaml.safe_load(CONFIG_TEMPLATE)
