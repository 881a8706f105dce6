"""Logging setup shared by every module; loggers come from get_logger(__name__)."""

import logging
import sys

LOG_FORMAT = '%(asctime)s - %(levelname)s - [PID:%(process)d] - %(name)s - %(message)s'


def setup_logging(level: str = "INFO"):
    # basicConfig is a no-op once the root logger has handlers; only the level changes then
    logging.basicConfig(
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logging.getLogger().setLevel(level)

    # Reduce verbosity from the database driver
    logging.getLogger("pymongo").setLevel(logging.WARNING)


def get_logger(name):
    return logging.getLogger(name)
