import logging
from pathlib import Path
from typing import Set

logger = logging.getLogger(__name__)


class WatchDirectoryError(Exception):
    """The watch directory is missing and could not be created."""


class DirectoryScanner:
    """Lists queued replay files directly inside the watch directory."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def ensure_directory(self) -> None:
        if self.directory.is_dir():
            return
        logger.warning(
            f"'{self.directory}' directory is missing, creating it. Replays placed there will "
            f"automatically be scheduled for playing, and will be deleted(!!) afterwards."
        )
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WatchDirectoryError(f"Could not create {self.directory}: {e}") from e

    def _list(self) -> Set[Path]:
        found = set()
        for entry in self.directory.iterdir():
            # Hidden files are partial uploads or editor leftovers
            if entry.name.startswith("."):
                continue
            try:
                if entry.is_file():
                    found.add(entry)
            except OSError:
                continue
        return found

    def scan(self) -> Set[Path]:
        """Returns the candidate files, creating the directory once if needed."""
        try:
            return self._list()
        except FileNotFoundError:
            self.ensure_directory()
        except OSError as e:
            raise WatchDirectoryError(f"Cannot list '{self.directory}': {e}") from e
        try:
            return self._list()
        except OSError as e:
            raise WatchDirectoryError(f"'{self.directory}' still missing, please create it ({e})") from e
