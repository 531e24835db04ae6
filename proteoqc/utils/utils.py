import logging
import time
from contextlib import contextmanager
from functools import wraps
from typing import Callable, Optional

logger = logging.getLogger("proteoqc")
if not logger.handlers:
    _console = logging.StreamHandler()
    _console.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s", "%H:%M:%S"))
    logger.addHandler(_console)
    logger.setLevel(logging.INFO)

_INDENT = {"level": 0}


@contextmanager
def log_indent(width: int = 2):
    """Indent every log line emitted inside the block (nested pipeline steps)."""
    _INDENT["level"] += width
    try:
        yield
    finally:
        _INDENT["level"] -= width


def log_info(msg: str) -> None:
    logger.info(" " * _INDENT["level"] + msg)


def log_warning(msg: str) -> None:
    logger.warning(" " * _INDENT["level"] + msg)


def log_time(label: str) -> Callable:
    """Decorator: log start, duration and end of a pipeline step."""
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            log_info(f"{label} ...")
            start = time.perf_counter()
            with log_indent():
                result = func(*args, **kwargs)
            log_info(f"{label} done ({time.perf_counter() - start:.2f}s)")
            return result
        return wrapper
    return decorator


def setup_logging(log_file: Optional[str] = None) -> Optional[logging.Handler]:
    """Mirror all log output into `log_file`. Returns the handler so it can be removed again."""
    if not log_file:
        return None
    handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    logger.addHandler(handler)
    return handler


def teardown_logging(handler: Optional[logging.Handler]) -> None:
    if handler is None:
        return
    logger.removeHandler(handler)
    handler.close()
