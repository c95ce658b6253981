# TextFileGenerator/utils/logger.py
import logging
import os
import sys


def get_logger(name, level=None):
    """Create and configure a logger"""
    logger = logging.getLogger(name)
    level = level or os.environ.get("TEXTGEN_LOG_LEVEL", "INFO")
    logger.setLevel(str(level).upper())

    if not logger.handlers:
        # Console handler, level is controlled by the logger itself
        ch = logging.StreamHandler(sys.stdout)

        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        ch.setFormatter(formatter)

        logger.addHandler(ch)

    return logger
