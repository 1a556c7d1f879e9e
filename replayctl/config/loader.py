import yaml
from pathlib import Path
from pydantic import ValidationError
from .models import AppConfig

CONFIG_TEMPLATE = """\
# replayctl configuration
base_url: "https://example.org/replays/"   # prefix for playable identifiers

watch:
  directory: replay_queue        # replays placed here are played, then DELETED
  capacity: 5
  recording_extension: .rep
  canonical_name: current.rep    # encoded names are renamed to this before playback

extractor:
  command: ["screp"]             # invoked as: <command...> <path>, must print one JSON object
  timeout_s: 60

viewer:
  command: ["./ReplayViewer"]
  env_var: BWAPI_CONFIG_AUTO_MENU__MAP
  timeout_s: 2100                # 35 minutes
  grace_s: 10

loop:
  idle_backoff_s: 5
  error_backoff_s: 15
  max_item_failures: 3

relay:
  enabled: true
  host: 127.0.0.1
  port: 9001

chat:                            # omit webhook_url to disable the chat relay
  webhook_url: null
  token: null

debug: false
log_path: replayctl.log
"""


class ConfigError(Exception):
    """Raised when the configuration file is missing or invalid."""

    def __init__(self, message: str, show_template: bool = False):
        super().__init__(message)
        self.show_template = show_template


def load_config(config_path: Path) -> AppConfig:
    """Loads YAML config and parses it into AppConfig Pydantic model."""
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}", show_template=True)

    try:
        with open(config_path, 'r') as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Config file {config_path} is not valid YAML: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping at the top level", show_template=True)

    # chat: with no keys is the same as no chat section
    if data.get("chat") is None:
        data.pop("chat", None)

    try:
        return AppConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_path}:\n{e}") from e
