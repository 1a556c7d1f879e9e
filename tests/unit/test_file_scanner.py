import pytest
from pathlib import Path
from unittest.mock import patch
from replayctl.infrastructure.file_scanner import DirectoryScanner, WatchDirectoryError

def test_file_scanner_basic(watch_dir):
    (watch_dir / "game1.rep").write_text("dummy")
    (watch_dir / "Z2FtZTI").write_text("dummy")  # encoded identifier, no extension
    (watch_dir / "subdir").mkdir()
    (watch_dir / "subdir" / "nested.rep").write_text("nested")
    (watch_dir / ".partial.rep").write_text("uploading")

    scanner = DirectoryScanner(watch_dir)
    files = scanner.scan()

    names = {p.name for p in files}
    assert names == {"game1.rep", "Z2FtZTI"}
    assert all(p.parent == watch_dir for p in files)

def test_file_scanner_empty_dir(watch_dir):
    assert DirectoryScanner(watch_dir).scan() == set()

def test_file_scanner_creates_missing_dir(tmp_path):
    missing = tmp_path / "replay_queue"
    scanner = DirectoryScanner(missing)

    assert scanner.scan() == set()
    assert missing.is_dir()

def test_file_scanner_creation_is_idempotent(tmp_path):
    scanner = DirectoryScanner(tmp_path / "q")
    scanner.ensure_directory()
    scanner.ensure_directory()
    assert (tmp_path / "q").is_dir()

def test_file_scanner_uncreatable_dir(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("i am a file")
    scanner = DirectoryScanner(blocker / "replay_queue")

    with pytest.raises(WatchDirectoryError):
        scanner.scan()

def test_file_scanner_path_is_a_file(tmp_path):
    not_a_dir = tmp_path / "queue"
    not_a_dir.write_text("oops")

    with pytest.raises(WatchDirectoryError):
        DirectoryScanner(not_a_dir).scan()

def test_file_scanner_still_missing_after_create(tmp_path):
    scanner = DirectoryScanner(tmp_path / "ghost")

    with patch.object(DirectoryScanner, "ensure_directory", return_value=None):
        with pytest.raises(WatchDirectoryError, match="still missing"):
            scanner.scan()
