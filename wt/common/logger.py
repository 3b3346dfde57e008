import logging
import os
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from wt.common.setup import PATHS

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s:%(filename)s:%(lineno)d] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


# Adds the handler built by `factory` unless one with the same name is already attached, so calling get_logger
# again (tests, re-imports) never duplicates output.
def _attach_once(logger, handler_name, level, fmt, factory):
    if any(h.get_name() == handler_name for h in logger.handlers):
        return None
    handler = factory()
    handler.setLevel(level)
    handler.setFormatter(fmt)
    handler.set_name(handler_name)
    logger.addHandler(handler)
    return handler


# Keeps only the newest `keep` per-run debug logs.
def _prune_run_logs(run_dir: Path, name, keep):
    runs = sorted(run_dir.glob(f"{name}_*.log"), key=lambda p: p.stat().st_mtime, reverse=True)
    for old in runs[keep:]:
        try:
            old.unlink()
        except OSError:
            pass


def get_logger(
        name = "worktracker",
        level = logging.INFO,
        log_dir: Path | None = None,
        max_bytes = 5 * 1024 * 1024,
        backup_count = 5,
        persistent = True,
        console = False,
        run_logs: int = 10
) -> logging.Logger:
    """Named logger writing to:

    - ``<logs>/<name>.log``, size-rotated and kept across runs
    - ``<logs>/latest.log``, overwritten every run
    - ``<logs>/debug/<name>_<timestamp>.log``, one DEBUG file per run, newest ``run_logs`` kept
    - stderr, only when ``console`` is set
    """
    logger = logging.getLogger(name)
    logger.propagate = False
    logger.setLevel(level)

    log_dir = log_dir or PATHS.logs
    log_dir.mkdir(parents=True, exist_ok=True)
    fmt = logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT)

    if persistent:
        _attach_once(logger, f"{name}:persistent", level, fmt, lambda: RotatingFileHandler(
            filename=log_dir / f"{name}.log",
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        ))

    _attach_once(logger, f"{name}:latest", level, fmt,
                 lambda: logging.FileHandler(log_dir / "latest.log", mode="w", encoding="utf-8"))

    if run_logs > 0:
        run_dir = log_dir / "debug"
        run_dir.mkdir(parents=True, exist_ok=True)
        added = _attach_once(logger, f"{name}:run", logging.DEBUG, fmt, lambda: logging.FileHandler(
            run_dir / f"{name}_{datetime.now():%Y-%m-%d_%H-%M-%S}.log", encoding="utf-8"))
        if added is not None:
            _prune_run_logs(run_dir, name, run_logs)

    if console:
        _attach_once(logger, f"{name}:console", level, fmt, logging.StreamHandler)

    return logger


# WORKTRACKER_CONSOLE_LOG=1 mirrors the log to the terminal (handy when running from source)
log = get_logger(level=logging.DEBUG, console=os.getenv("WORKTRACKER_CONSOLE_LOG") == "1")
log.info("=== WorkTracker session started ===")
