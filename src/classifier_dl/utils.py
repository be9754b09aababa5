# classifier_dl/utils.py
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional


def setup_logger(
    name: str = __name__,
    file_path: Optional[str | Path] = None,
    stream: bool = True,
    propagate: bool = True,
) -> logging.Logger:
    """
    Sets up a logger that outputs to stdout and optionally to a log file.
    Avoids adding duplicate handlers on repeated calls.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)
    logger.propagate = propagate
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")

    if stream:
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)

    if file_path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def close_logger(logger: logging.Logger) -> None:
    """Detach and close every handler owned by `logger`."""
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
