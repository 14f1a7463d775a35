import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from bt.common.setup import PATHS

# Foreground commands and fire handlers append to the same file, so every line carries its pid.
LOG_FORMAT = "%(asctime)s %(levelname)s [%(process)d %(name)s:%(filename)s:%(lineno)d] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

def get_logger(
        name = "backgroundtimer",
        level = logging.INFO,
        log_dir: Path | None = None,
        max_bytes = 5 * 1024 * 1024,
        backup_count = 5,
        persistent = True,
        console = False,
        console_level = logging.DEBUG
) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.propagate = False
    logger.setLevel(level)

    fmt = logging.Formatter(LOG_FORMAT,LOG_DATE_FORMAT)

    # Setup persistent handler. Append-only, delayed until the first record so `--help` leaves no trace.
    persistent_handler_name = f"{name}:persistent"
    if persistent and not any(h.get_name() == persistent_handler_name for h in logger.handlers):
        log_dir = log_dir or PATHS.logs
        log_dir.mkdir(parents=True,exist_ok=True)
        persistent_handler = RotatingFileHandler(
            filename=log_dir / f"{name}.log",
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
            delay=True,
        )
        persistent_handler.setLevel(level)
        persistent_handler.setFormatter(fmt)
        persistent_handler.set_name(persistent_handler_name)
        logger.addHandler(persistent_handler)

    # Setup console handler (stderr, so it never mixes into command output)
    console_handler_name = f"{name}:console"
    if console and not any(h.get_name() == console_handler_name for h in logger.handlers):
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(console_level)
        console_handler.setFormatter(fmt)
        console_handler.set_name(console_handler_name)
        logger.addHandler(console_handler)

    return logger

# Turns on console output for an already-configured logger (the CLI's --verbose flag).
def enable_console(logger: logging.Logger, level = logging.DEBUG):
    return get_logger(logger.name, level=logger.level, persistent=False, console=True, console_level=level)

log = get_logger(level=logging.DEBUG)
log.debug(f"=== INITIALIZED NEW SESSION (argv {sys.argv[1:]}) ===")
