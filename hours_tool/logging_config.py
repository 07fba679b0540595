import logging
import logging.handlers
import os
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(app_name: str = "hours-tool", level: str = "INFO",
                  log_dir: Optional[str] = None) -> None:
    """Configure application logging

    Args:
        app_name: Name to use for log files
        level: Root log level name
        log_dir: Directory for rotating log files; console only when unset

    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    formatter = logging.Formatter(LOG_FORMAT)

    # Calling twice (CLI then API in one process, tests) must not duplicate output
    for handler in list(root_logger.handlers):
        if getattr(handler, "_hours_tool", False):
            root_logger.removeHandler(handler)
            handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler._hours_tool = True
    root_logger.addHandler(console_handler)

    if not log_dir:
        return

    path = Path(log_dir)
    os.makedirs(path, exist_ok=True)

    # File handler with rotation
    file_handler = logging.handlers.RotatingFileHandler(
        filename=path / f"{app_name}.log",
        maxBytes=10_000_000,  # 10MB
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)
    file_handler._hours_tool = True
    root_logger.addHandler(file_handler)

    # ERROR and above also go to their own file
    error_handler = logging.handlers.RotatingFileHandler(
        filename=path / f"{app_name}-error.log",
        maxBytes=10_000_000,  # 10MB
        backupCount=5,
        encoding="utf-8",
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(formatter)
    error_handler._hours_tool = True
    root_logger.addHandler(error_handler)
