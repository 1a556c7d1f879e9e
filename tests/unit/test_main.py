import yaml
from unittest.mock import MagicMock
from typer.testing import CliRunner

from replayctl import main as replayctl_main
from replayctl.infrastructure.viewer import ViewerStuckError


def _write_config(tmp_path, **overrides):
    content = {
        "watch": {"directory": str(tmp_path / "queue")},
        "relay": {"enabled": False},
        "log_path": str(tmp_path / "replayctl.log"),
    }
    content.update(overrides)
    path = tmp_path / "replayctl.yaml"
    path.write_text(yaml.dump(content))
    return path


def test_missing_config_prints_template(tmp_path):
    runner = CliRunner()
    result = runner.invoke(replayctl_main.app, ["run", "--config", str(tmp_path / "missing.yaml")])

    assert result.exit_code == 1
    assert "Config file not found" in result.output
    assert "viewer:" in result.output


def test_template_command():
    runner = CliRunner()
    result = runner.invoke(replayctl_main.app, ["template"])
    assert result.exit_code == 0
    assert "watch:" in result.output
    assert "BWAPI_CONFIG_AUTO_MENU__MAP" in result.output


def test_run_applies_overrides_and_starts_loop(tmp_path, monkeypatch):
    runner = CliRunner()
    config_path = _write_config(tmp_path)
    override_dir = tmp_path / "other_queue"
    created = {}

    class DummyOrchestrator:
        def __init__(self, config, event_bus, scanner, resolver, viewer):
            created["config"] = config
            created["scanner"] = scanner

        def run(self):
            created["ran"] = True

    monkeypatch.setattr(replayctl_main, "Orchestrator", DummyOrchestrator)
    monkeypatch.setattr(replayctl_main, "setup_logging", lambda path, debug=False: MagicMock())

    result = runner.invoke(
        replayctl_main.app,
        ["run", "--config", str(config_path), "--watch-dir", str(override_dir), "--debug"],
    )

    assert result.exit_code == 0, result.output
    assert created["ran"] is True
    assert created["config"].debug is True
    assert created["scanner"].directory == override_dir
    assert override_dir.is_dir()


def test_run_starts_relay_and_chat_when_configured(tmp_path, monkeypatch):
    runner = CliRunner()
    config_path = _write_config(
        tmp_path,
        relay={"enabled": True, "port": 0},
        chat={"webhook_url": "https://chat.example.org/hook"},
    )
    calls = []

    class DummyRelay:
        def __init__(self, bus, port, host, buffer_size):
            calls.append(("relay", port))

        def start(self):
            calls.append("relay.start")

        def stop(self):
            calls.append("relay.stop")

    class DummyChat:
        def __init__(self, bus, config):
            calls.append("chat")

        def start(self):
            calls.append("chat.start")

        def stop(self):
            calls.append("chat.stop")

    class DummyOrchestrator:
        def __init__(self, **kwargs):
            pass

        def run(self):
            calls.append("run")

    monkeypatch.setattr(replayctl_main, "EventRelayServer", DummyRelay)
    monkeypatch.setattr(replayctl_main, "ChatRelay", DummyChat)
    monkeypatch.setattr(replayctl_main, "Orchestrator", DummyOrchestrator)
    monkeypatch.setattr(replayctl_main, "setup_logging", lambda path, debug=False: MagicMock())

    result = runner.invoke(replayctl_main.app, ["run", "--config", str(config_path)])

    assert result.exit_code == 0, result.output
    assert calls == [("relay", 0), "relay.start", "chat", "chat.start", "run", "chat.stop", "relay.stop"]


def test_invalid_config_exits(tmp_path):
    runner = CliRunner()
    config_path = _write_config(tmp_path, watch={"capacity": 0})
    result = runner.invoke(replayctl_main.app, ["run", "--config", str(config_path)])
    assert result.exit_code == 1
    assert "Invalid configuration" in result.output


def test_uncreatable_watch_dir_exits(tmp_path, monkeypatch):
    runner = CliRunner()
    blocker = tmp_path / "blocker"
    blocker.write_text("file")
    config_path = _write_config(tmp_path, watch={"directory": str(blocker / "queue")})
    monkeypatch.setattr(replayctl_main, "setup_logging", lambda path, debug=False: MagicMock())

    result = runner.invoke(replayctl_main.app, ["run", "--config", str(config_path)])

    assert result.exit_code == 1
    assert "Could not create" in result.output


def test_stuck_viewer_is_fatal(tmp_path, monkeypatch):
    runner = CliRunner()
    config_path = _write_config(tmp_path)

    class StuckOrchestrator:
        def __init__(self, **kwargs):
            pass

        def run(self):
            raise ViewerStuckError("Viewer pid=1 did not exit after kill")

    monkeypatch.setattr(replayctl_main, "Orchestrator", StuckOrchestrator)
    monkeypatch.setattr(replayctl_main, "setup_logging", lambda path, debug=False: MagicMock())

    result = runner.invoke(replayctl_main.app, ["run", "--config", str(config_path)])

    assert result.exit_code == 1
    assert "did not exit after kill" in result.output
