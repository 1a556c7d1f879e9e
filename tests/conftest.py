import pytest
import sys
import textwrap
import yaml
from pathlib import Path
from replayctl.config.models import AppConfig
from replayctl.infrastructure.event_bus import EventBus

# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def sample_config(watch_dir):
    """Returns a sample AppConfig pointing at the temporary watch directory."""
    return AppConfig(
        base_url="https://example.org/replays/",
        watch={
            "directory": str(watch_dir),
            "capacity": 5,
            "recording_extension": ".rep",
            "canonical_name": "current.rep",
        },
        extractor={"command": ["screp"], "timeout_s": 5},
        viewer={"command": ["./ReplayViewer"], "timeout_s": 60, "grace_s": 1},
        loop={"idle_backoff_s": 5, "error_backoff_s": 15, "max_item_failures": 3, "seed": 42},
        relay={"enabled": False},
    )

@pytest.fixture
def config_yaml_path(tmp_path):
    """Creates a temporary YAML config file."""
    conf_dir = tmp_path / "conf"
    conf_dir.mkdir()
    conf_file = conf_dir / "replayctl.yaml"

    content = {
        'base_url': 'https://example.org/replays/',
        'watch': {
            'directory': str(tmp_path / "queue"),
            'capacity': 3,
            'recording_extension': 'rep',
        },
        'extractor': {'command': ['screp', '-json']},
        'viewer': {
            'command': ['./ReplayViewer'],
            'timeout_s': 120,
        },
        'loop': {'seed': 7},
        'chat': {
            'webhook_url': 'https://chat.example.org/hook',
            'token': 'secret',
        },
    }

    with open(conf_file, 'w') as f:
        yaml.dump(content, f)

    return conf_file

# ============================================================================
# EventBus Fixtures
# ============================================================================

@pytest.fixture
def event_bus():
    """Returns a fresh EventBus instance."""
    return EventBus()

# ============================================================================
# File System Fixtures
# ============================================================================

@pytest.fixture
def watch_dir(tmp_path):
    """Creates the replay queue directory."""
    queue_dir = tmp_path / "replay_queue"
    queue_dir.mkdir()
    return queue_dir

@pytest.fixture
def replay_files(watch_dir):
    """Creates three dummy replays in the queue directory."""
    files = []
    for name in ("alpha.rep", "bravo.rep", "charlie.rep"):
        f = watch_dir / name
        f.write_bytes(b"dummy replay " * 50)
        files.append(f)
    return files

# ============================================================================
# Fake external tools (for integration tests)
# ============================================================================

def _write_script(path: Path, body: str) -> Path:
    path.write_text(textwrap.dedent(body))
    return path

@pytest.fixture
def fake_extractor(tmp_path):
    """Command for a fake extractor: prints players for *.rep, garbage for names containing 'broken'."""
    script = _write_script(tmp_path / "fake_extractor.py", """
        import json, sys
        from pathlib import Path
        path = Path(sys.argv[1])
        if "broken" in path.name:
            print("this is not json")
            sys.exit(0)
        print(json.dumps({"Header": {"Title": path.stem},
                          "Players": [{"Name": "Flash"}, {"Name": "Jaedong"}]}))
    """)
    return [sys.executable, str(script)]

@pytest.fixture
def fake_viewer(tmp_path):
    """Command for a fake viewer that logs the file it was asked to play, then exits."""
    played_log = tmp_path / "played.log"
    script = _write_script(tmp_path / "fake_viewer.py", f"""
        import os
        with open({str(played_log)!r}, "a") as f:
            f.write(os.environ["BWAPI_CONFIG_AUTO_MENU__MAP"] + "\\n")
    """)
    return [sys.executable, str(script)], played_log
