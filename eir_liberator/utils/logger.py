from __future__ import annotations
import logging, os, sys

_DEFAULT_LEVEL = os.getenv("EIR_LOG_LEVEL", "INFO")


def get_logger(name: str = "eir", level: str | None = None) -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger
    logger.setLevel(level or _DEFAULT_LEVEL)
    h = logging.StreamHandler(sys.stdout)
    fmt = logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    h.setFormatter(fmt)
    logger.addHandler(h)
    # propagate so pytest's caplog still sees records
    logger.propagate = True
    return logger
