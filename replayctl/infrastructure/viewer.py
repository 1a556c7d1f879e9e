import logging
import os
import subprocess
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

from replayctl.config.models import DEFAULT_VIEWER_ENV_VAR


class ViewerSpawnError(RuntimeError):
    """The viewer process could not be started."""


class ViewerStuckError(RuntimeError):
    """The viewer survived terminate() and kill(); the loop cannot continue."""


class PlaybackOutcome(str, Enum):
    EXITED = "EXITED"
    TIMED_OUT = "TIMED_OUT"


@dataclass
class PlaybackResult:
    outcome: PlaybackOutcome
    returncode: Optional[int]
    elapsed_s: float

    @property
    def forced(self) -> bool:
        return self.outcome is PlaybackOutcome.TIMED_OUT


class ViewerSupervisor:
    """Runs the external replay viewer for one file under a wall-clock limit.

    The viewer learns which file to play from an environment variable. If it is
    still running when the timeout elapses it is terminated, then killed after
    a grace period. `play` always returns once the process has been reaped.
    """

    def __init__(
        self,
        command: Optional[List[str]] = None,
        env_var: str = DEFAULT_VIEWER_ENV_VAR,
        timeout_s: float = 35 * 60.0,
        grace_s: float = 10.0,
    ):
        self.command = list(command or ["./ReplayViewer"])
        self.env_var = env_var
        self.timeout_s = timeout_s
        self.grace_s = grace_s
        self.logger = logging.getLogger(__name__)

    def _spawn(self, file_path: Path) -> subprocess.Popen:
        env = dict(os.environ)
        env[self.env_var] = str(file_path)
        try:
            return subprocess.Popen(
                self.command,
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            raise ViewerSpawnError(f"Could not execute {self.command[0]}: {e}") from e

    def _stop(self, process: subprocess.Popen, filename: str) -> int:
        process.terminate()
        try:
            return process.wait(timeout=self.grace_s)
        except subprocess.TimeoutExpired:
            self.logger.warning(f"VIEWER_KILL: {filename} ignored terminate, killing")
        process.kill()
        try:
            return process.wait(timeout=self.grace_s)
        except subprocess.TimeoutExpired as e:
            raise ViewerStuckError(
                f"Viewer pid={process.pid} for {filename} did not exit after kill"
            ) from e

    def play(self, file_path: Path, on_started: Optional[Callable[[], None]] = None) -> PlaybackResult:
        """Plays one file. `on_started` runs once the process has been spawned."""
        filename = file_path.name
        start_time = time.monotonic()
        process = self._spawn(file_path)
        self.logger.info(f"VIEWER_START: {filename} pid={process.pid} timeout={self.timeout_s:.0f}s")
        try:
            if on_started is not None:
                on_started()
            returncode = process.wait(timeout=self.timeout_s)
            outcome = PlaybackOutcome.EXITED
        except subprocess.TimeoutExpired:
            self.logger.warning(f"VIEWER_TIMEOUT: {filename} still running after {self.timeout_s:.0f}s, terminating")
            returncode = self._stop(process, filename)
            outcome = PlaybackOutcome.TIMED_OUT
        except BaseException:
            # Interrupted (Ctrl+C, SystemExit, failing callback): never leave the viewer behind
            self.logger.warning(f"VIEWER_ABORT: {filename} playback interrupted, stopping pid={process.pid}")
            self._stop(process, filename)
            raise

        elapsed = time.monotonic() - start_time
        self.logger.info(
            f"VIEWER_END: {filename} status={outcome.value.lower()} code={returncode} elapsed={elapsed:.2f}s"
        )
        return PlaybackResult(outcome=outcome, returncode=returncode, elapsed_s=elapsed)
