"""
Logging setup and DataFrame validation helpers shared by the report pipeline.
"""

import logging
from typing import Iterable, List, Optional

import pandas as pd


def setup_logging(
    level: str = "INFO",
    log_format: Optional[str] = None,
    enable_file_logging: bool = False,
    log_file: str = "roas_reports.log",
):
    """
    Setup logging configuration.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Format string for log messages
        enable_file_logging: Whether to also log to a file
        log_file: Path to the log file
    """
    if log_format is None:
        log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    level = level.upper()
    handlers = []

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(log_format))
    handlers.append(console_handler)

    if enable_file_logging:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(log_format))
        handlers.append(file_handler)

    logging.basicConfig(
        level=getattr(logging, level),
        handlers=handlers,
        force=True  # Overwrite any existing configuration
    )


def missing_columns(df: pd.DataFrame, required_columns: Iterable[str]) -> List[str]:
    """Return the required columns that df does not have, in order."""
    return [col for col in required_columns if col not in df.columns]
