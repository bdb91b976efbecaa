"""
Runtime settings and logging setup for the spread engine.
Reads overrides from the environment / a .env file.
"""

import os
import sys
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import colorlog
from dotenv import load_dotenv

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

LOG_FORMAT = "%(asctime)s | %(name)-12s | %(levelname)-7s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


class Settings:
    """
    Environment-driven settings.
    Loads SPREAD_ENGINE_* variables, optionally from a .env file.
    """

    def __init__(self, env_file: Optional[str] = None):
        """
        Initialize settings by loading environment variables.

        Args:
            env_file: Path to .env file. If None, searches in project root.
        """
        self.logger = logging.getLogger(__name__)

        if env_file is None:
            env_file = self._find_env_file()

        if env_file and os.path.exists(env_file):
            load_dotenv(env_file)
            self.logger.info(f"Loaded settings from {env_file}")
        else:
            self.logger.debug("No .env file found. Using default/environment values.")

        self._load_settings()
        self._validate()

    def _find_env_file(self) -> str:
        """
        Find .env file in project root.

        Returns:
            Path to .env file
        """
        current_dir = Path(__file__).resolve().parent
        project_root = current_dir.parent.parent.parent
        return str(project_root / ".env")

    def _load_settings(self):
        """Load all settings from environment variables."""
        self.log_level = os.getenv("SPREAD_ENGINE_LOG_LEVEL", "INFO").upper()
        self.log_dir = os.getenv("SPREAD_ENGINE_LOG_DIR", "") or None

        config_path = os.getenv("SPREAD_ENGINE_CONFIG", "")
        self.config_path = Path(config_path) if config_path else None

    def _validate(self):
        """Validate settings values."""
        if self.log_level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid SPREAD_ENGINE_LOG_LEVEL: {self.log_level}. "
                f"Must be one of {VALID_LOG_LEVELS}"
            )

        if self.config_path is not None and not self.config_path.exists():
            self.logger.warning(f"SPREAD_ENGINE_CONFIG points to missing file {self.config_path}")


def setup_logging(level: str = "INFO", log_dir: Optional[Path] = None) -> logging.Logger:
    """
    Configure coloured console logging and, optionally, a dated log file.

    Args:
        level: Root log level name
        log_dir: Directory for spread_engine_YYYYMMDD.log (None = console only)

    Returns:
        The root logger
    """
    handler = colorlog.StreamHandler(sys.stdout)
    handler.setFormatter(
        colorlog.ColoredFormatter(
            "%(log_color)s" + LOG_FORMAT,
            datefmt=LOG_DATEFMT,
            reset=True,
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
        )
    )

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.addHandler(handler)

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / f"spread_engine_{datetime.now():%Y%m%d}.log"

        fh = logging.FileHandler(log_file, mode="a")
        fh.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
        root.addHandler(fh)
        root.info(f"Logging to {log_file}")

    return root


def configure_from_settings(settings: Optional[Settings] = None) -> logging.Logger:
    """Set up logging using environment settings."""
    settings = settings or Settings()
    log_dir = Path(settings.log_dir) if settings.log_dir else None
    return setup_logging(settings.log_level, log_dir)
