"""Simple logger utility."""
import logging
import os

logger = logging.getLogger("yemzo")
if not logger.handlers:
    h = logging.StreamHandler()
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(message)s")
    h.setFormatter(fmt)
    logger.addHandler(h)
    logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())

def get_logger(name: str = None):
    if name:
        return logger.getChild(name)
    return logger
