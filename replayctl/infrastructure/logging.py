import logging
from pathlib import Path
from typing import Optional

def setup_logging(log_path: Optional[Path] = None, debug: bool = False) -> logging.Logger:
    """
    Setup logging configuration for replayctl.

    Logs go to the console and, when log_path is given, to that file as well.
    Returns configured logger instance.

    Args:
        log_path: Optional path to log file (parent directories are created)
        debug: If True, enable DEBUG level logging
    """
    handlers: list = [logging.StreamHandler()]
    if log_path:
        log_file = Path(log_path)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    # Configure logging level
    level = logging.DEBUG if debug else logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True  # Override any existing configuration
    )

    logger = logging.getLogger("replayctl")
    logger.info(f"Logging initialized: {log_path or 'console only'} (debug={'ON' if debug else 'OFF'})")

    return logger
