"""A basic logging helper."""
import logging
import sys
from pathlib import Path
from typing import Optional


def setup_logging(level=logging.INFO, log_file: Optional[Path] = None):
    """Configures console logging, plus a file handler when *log_file* is given."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s: %(message)s",
        handlers=handlers,
        force=True,
    )
