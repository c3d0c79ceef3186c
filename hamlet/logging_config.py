"""
Logging for Hamlet solves.

Every hamlet.* logger writes a full DEBUG trace to <log_dir>/generation.log
(rotated). The console gets WARNING and above, or DEBUG with --debug, or
only ERROR with --quiet.

Usage:
    from hamlet.logging_config import setup_logging
    setup_logging("logs", quiet=True)  # Call once at startup
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path


LOG_FILE_NAME = "generation.log"
MAX_LOG_SIZE = 10 * 1024 * 1024  # 10 MB per file
BACKUP_COUNT = 5
ROOT_LOGGER_NAME = "hamlet"

FILE_FORMAT = "%(asctime)s.%(msecs)03d | %(levelname)-7s | %(name)s:%(lineno)d | %(message)s"
CONSOLE_FORMAT = "%(levelname)-7s | %(name)s | %(message)s"


def console_level_for(debug: bool = False, quiet: bool = False) -> int:
    """Console threshold for the CLI flags. --debug wins over --quiet."""
    if debug:
        return logging.DEBUG
    if quiet:
        return logging.ERROR
    return logging.WARNING


def setup_logging(
    log_dir: Path | str,
    *,
    debug: bool = False,
    quiet: bool = False,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Point the hamlet logger at a rotating log file and stderr.

    Calling it again replaces the handlers from the previous call.

    Args:
        log_dir: Directory for generation.log (created if missing)
        debug: Echo the DEBUG trace to the console as well
        quiet: Keep the console to errors only
        file_level: Threshold for the log file

    Returns:
        Path to the log file
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    log_file = log_path / LOG_FILE_NAME

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(logging.DEBUG)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    console_level = console_level_for(debug, quiet)
    root_logger.addHandler(_file_handler(log_file, file_level))
    root_logger.addHandler(_console_handler(console_level))

    root_logger.info(
        f"Logging to {log_file.absolute()} "
        f"(file={logging.getLevelName(file_level)}, console={logging.getLevelName(console_level)})"
    )
    return log_file


def _file_handler(log_file: Path, level: int) -> logging.Handler:
    handler = RotatingFileHandler(
        log_file,
        maxBytes=MAX_LOG_SIZE,
        backupCount=BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    return handler


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a module.

    Args:
        name: Module name (typically __name__)

    Returns:
        Logger configured as child of the hamlet logger
    """
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


# =============================================================================
# Structured Logging Helpers
# =============================================================================


def log_collapse(
    logger: logging.Logger,
    step: int,
    position: object,
    tile_id: str,
    rotation: int,
    details: str | None = None,
) -> None:
    """Log a cell being committed to a tile."""
    details_str = f" | {details}" if details else ""
    logger.debug(f"STEP {step:05d} | COLLAPSE | {position} -> {tile_id}@{rotation * 90}{details_str}")


def log_contradiction(
    logger: logging.Logger,
    step: int,
    position: object | None,
    reason: str,
) -> None:
    """Log a cell running out of possibilities (expected during a solve)."""
    where = f" | at {position}" if position is not None else ""
    logger.debug(f"STEP {step:05d} | CONTRADICTION{where} | {reason}")


def log_backtrack(
    logger: logging.Logger,
    step: int,
    backtracks: int,
    budget: int,
    history_depth: int,
) -> None:
    """Log a snapshot restore."""
    logger.debug(
        f"STEP {step:05d} | BACKTRACK | {backtracks}/{budget} | history={history_depth}"
    )


def log_constraint(
    logger: logging.Logger,
    name: str,
    success: bool = True,
    details: str | None = None,
) -> None:
    """Log an initial constraint being applied."""
    status = "OK" if success else "FAILED"
    details_str = f" | {details}" if details else ""
    logger.debug(f"CONSTRAINT | {name} | {status}{details_str}")


def log_run_summary(
    logger: logging.Logger,
    outcome: str,
    seed: int,
    collapses: int,
    contradictions: int,
    backtracks: int,
    elapsed_ms: float,
    details: str | None = None,
) -> None:
    """Log the end of a solve. Failures go to WARNING so they reach the console."""
    details_str = f" | {details}" if details else ""
    message = (
        f"RUN | {outcome} | seed={seed} | collapses={collapses} "
        f"| contradictions={contradictions} | backtracks={backtracks} "
        f"| {elapsed_ms:.1f}ms{details_str}"
    )
    if outcome == "complete":
        logger.info(message)
    else:
        logger.warning(message)
