"""Core utilities for logging, timing, paths, and configuration loading."""

from __future__ import annotations

import logging
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml


class LoggerFactory:
    """Factory for creating structured loggers with consistent formatting."""

    _loggers: Dict[str, logging.Logger] = {}
    _lock = threading.Lock()

    @classmethod
    def get_logger(cls, name: str, level: int = logging.INFO) -> logging.Logger:
        """Get or create a logger with standard formatting."""
        with cls._lock:
            if name not in cls._loggers:
                logger = logging.getLogger(name)
                logger.setLevel(level)

                # Don't add handlers if they already exist
                if not logger.handlers:
                    handler = logging.StreamHandler(sys.stdout)
                    formatter = logging.Formatter(
                        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
                    )
                    handler.setFormatter(formatter)
                    logger.addHandler(handler)

                cls._loggers[name] = logger

            return cls._loggers[name]


class ConfigManager:
    """Loads YAML configuration files from a config directory."""

    def __init__(self, config_dir: Union[str, Path] = "."):
        self.config_dir = Path(config_dir)
        self._cache: Dict[str, Any] = {}

    def load_config(self, config_name: Union[str, Path], use_cache: bool = True) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        key = str(config_name)
        if use_cache and key in self._cache:
            return self._cache[key]

        config_path = Path(config_name)
        if not config_path.is_absolute() and not config_path.exists():
            config_path = self.config_dir / config_path
        if config_path.suffix not in (".yaml", ".yml"):
            config_path = config_path.with_suffix(".yaml")
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with config_path.open("r") as f:
            config = yaml.safe_load(f) or {}

        if use_cache:
            self._cache[key] = config

        return config


class Timer:
    """Context manager for timing operations."""

    def __init__(self, logger: logging.Logger, operation: str):
        self.logger = logger
        self.operation = operation
        self.start_time: Optional[float] = None
        self.duration: Optional[float] = None

    def __enter__(self):
        self.start_time = datetime.now().timestamp()
        self.logger.info(f"Starting {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is not None:
            self.duration = datetime.now().timestamp() - self.start_time
            if exc_type is None:
                self.logger.info(f"Completed {self.operation} in {self.duration:.2f}s")
            else:
                self.logger.error(f"Aborted {self.operation} after {self.duration:.2f}s")


def construct_per_fold_name(output_file: Optional[Union[str, Path]], fold: int) -> Optional[Path]:
    """Map ``dir/model.zip`` to ``dir/model.fold001.zip`` for the given fold.

    Returns None when no output file is configured.
    """
    if output_file is None or not str(output_file).strip():
        return None
    path = Path(output_file)
    return path.parent / f"{path.stem}.fold{fold:03d}{path.suffix}"


def unique_column_name(existing, base: str, template: str = "{base}_{index:03d}") -> str:
    """Return ``base`` or the first ``base_001``-style name not in ``existing``."""
    name = base
    index = 0
    while name in existing:
        index += 1
        name = template.format(base=base, index=index)
    return name
