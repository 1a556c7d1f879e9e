import subprocess
import json
from pathlib import Path
from typing import Any, Dict, List, Optional


class ExtractorError(RuntimeError):
    """Metadata extraction failed for one replay."""

    def __init__(self, path: Path, message: str):
        super().__init__(message)
        self.path = path


class ExtractorAdapter:
    """Wrapper around the replay metadata extractor (`<command> <path>` -> JSON object)."""

    def __init__(self, command: Optional[List[str]] = None, timeout_s: float = 60.0):
        self.command = list(command or ["screp"])
        self.timeout_s = timeout_s

    def get_metadata(self, file_path: Path) -> Dict[str, Any]:
        """Executes the extractor and parses its JSON output."""
        cmd = [*self.command, str(file_path)]

        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout_s)
        except subprocess.TimeoutExpired as e:
            raise ExtractorError(file_path, f"extractor timed out after {self.timeout_s:.0f}s") from e
        except OSError as e:
            raise ExtractorError(file_path, f"could not run {self.command[0]}: {e}") from e

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            raise ExtractorError(file_path, f"extractor exited with code {result.returncode}: {stderr}")

        try:
            data = json.loads(result.stdout)
        except (TypeError, json.JSONDecodeError) as e:
            raise ExtractorError(file_path, f"malformed extractor output: {e}") from e

        if not isinstance(data, dict):
            raise ExtractorError(file_path, f"expected a JSON object, got {type(data).__name__}")
        return data
