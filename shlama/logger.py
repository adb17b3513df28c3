import logging
import os
from logging.handlers import RotatingFileHandler

from rich.console import Console
from rich.logging import RichHandler

from .config import Configuration

LOG_FILE_NAME = "shlama.log"


def setup_logging(config: Configuration):
    """Set up logging for the application."""
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if config.verbose else logging.INFO)

    # Console handler (with Rich), verbose mode only
    if config.verbose:
        rich_handler = RichHandler(
            console=Console(stderr=True),
            show_time=True,
            show_path=False,
            rich_tracebacks=True
        )
        rich_handler.setLevel(logging.INFO)
        root_logger.addHandler(rich_handler)

    # File handler (Rotating)
    try:
        os.makedirs(config.log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(config.log_dir, LOG_FILE_NAME),
            maxBytes=1024 * 1024, backupCount=3,  # 1 MB per file, 3 backups
            encoding="utf-8",
        )
    except OSError as e:
        root_logger.warning(f"File logging disabled, could not open {config.log_dir}: {e}")
    else:
        file_handler.setLevel(logging.DEBUG if config.verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        root_logger.addHandler(file_handler)

    # Configure specific loggers to be less verbose if needed
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logger initialized. Logs will be stored in {config.log_dir}")
