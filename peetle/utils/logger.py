import atexit
import inspect
import json
import logging
import os
import queue
import sys
import time
from contextlib import suppress
from datetime import datetime
from functools import wraps
from logging.handlers import QueueHandler, QueueListener
from typing import Any, Dict, Optional

from tqdm import tqdm

LOGGER_NAME = "peetle"


class JsonFormatter(logging.Formatter):
    """
    A custom formatter that outputs logs in JSON format.
    """

    def format(self, record):
        log_record = {
            "timestamp": f"{self.formatTime(record, self.datefmt)}.{int(record.msecs):03d}",
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            log_record["stack_info"] = self.formatStack(record.stack_info)
        if hasattr(record, "kv_pairs"):
            log_record.update(record.kv_pairs)
        return json.dumps(log_record, ensure_ascii=False, default=str)


class KVFormatter(logging.Formatter):
    """
    A custom formatter that outputs logs in Key-Value pair format.
    Example: [Phase=Render][Stage=char_overlays][Windows=6] Message
    """

    def format(self, record):
        kv_string = ""
        kv_pairs = getattr(record, "kv_pairs", None)
        if kv_pairs:
            kv_string = "".join([f"[{k}={v}]" for k, v in kv_pairs.items()])
        ts = self.formatTime(record, self.datefmt)
        return f"{ts}.{int(record.msecs):03d} - {record.levelname} - {kv_string} {record.getMessage()}"


class TqdmLoggingHandler(logging.Handler):
    """A logging handler that writes via tqdm.write to stderr to avoid breaking progress bars."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            tqdm.write(msg, file=sys.stderr)
        except Exception:  # pragma: no cover
            self.handleError(record)


def setup_logging(
    log_json: bool = False,
    debug_mode: bool = False,
    log_kv: bool = False,
    log_dir: Optional[str] = "./logs",
):
    """
    Sets up the logging configuration.

    Args:
        log_json (bool): If True, logs will be output in JSON format.
        debug_mode (bool): If True, sets the log level to DEBUG.
        log_kv (bool): If True, logs will be output in Key-Value pair format.
        log_dir (str | None): Directory for the timestamped log file.
            ``None`` disables the file handler.
    """
    logger = logging.getLogger(LOGGER_NAME)
    if getattr(logger, "_queue_listener", None) is not None:
        return logger

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    logger.setLevel(logging.DEBUG if debug_mode else logging.INFO)

    datefmt = "%Y-%m-%d %H:%M:%S"
    if log_json:
        formatter: logging.Formatter = JsonFormatter(datefmt=datefmt)
    elif log_kv:
        formatter = KVFormatter(datefmt=datefmt)
    else:
        fmt = "%(asctime)s.%(msecs)03d - %(name)s - %(levelname)s - %(message)s"
        formatter = logging.Formatter(fmt=fmt, datefmt=datefmt)

    console_handler = TqdmLoggingHandler()
    console_handler.setFormatter(formatter)
    handlers: list[logging.Handler] = [console_handler]

    file_handler: Optional[logging.Handler] = None
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        log_filename = datetime.now().strftime("%Y%m%d_%H%M%S_%f")[:-3] + ".log"
        file_handler = logging.FileHandler(
            os.path.join(log_dir, log_filename), encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    # Queue-based logging keeps ordering stable across the asyncio subprocess tasks
    q: "queue.Queue[logging.LogRecord]" = queue.Queue(-1)
    logger.addHandler(QueueHandler(q))
    logger.propagate = False

    listener = QueueListener(q, *handlers, respect_handler_level=True)
    listener.start()
    logger._queue_listener = listener  # type: ignore[attr-defined]
    logger._console_handler = console_handler  # type: ignore[attr-defined]
    logger._file_handler = file_handler  # type: ignore[attr-defined]

    if not debug_mode:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

    atexit.register(shutdown_logging)
    return logger


def shutdown_logging() -> None:
    """Stop logging queue listener and close handlers safely."""
    peetle_logger = logging.getLogger(LOGGER_NAME)

    listener = getattr(peetle_logger, "_queue_listener", None)
    if listener is not None:
        with suppress(Exception):
            listener.stop()
        peetle_logger._queue_listener = None  # type: ignore[attr-defined]

    for handler_attr in ("_console_handler", "_file_handler"):
        handler = getattr(peetle_logger, handler_attr, None)
        if handler is not None:
            with suppress(Exception):
                handler.flush()
            with suppress(Exception):
                handler.close()
            setattr(peetle_logger, handler_attr, None)

    for handler in list(peetle_logger.handlers):
        with suppress(Exception):
            handler.close()
        peetle_logger.removeHandler(handler)

    # Close any live progress bars so the prompt comes back clean
    inst = getattr(tqdm, "_instances", None)
    if inst:
        for bar in list(inst):
            with suppress(Exception):
                bar.close()


class KVLogger(logging.Logger):
    """
    A custom logger that provides methods for logging with KV pairs.
    """

    def _log_kv(
        self, level, msg, kv_pairs: Optional[Dict[str, Any]] = None, *args, **kwargs
    ):
        if kv_pairs is None:
            kv_pairs = {}
        kwargs["extra"] = {"kv_pairs": kv_pairs}
        self.log(level, msg, *args, **kwargs)

    def kv_debug(self, msg, kv_pairs: Optional[Dict[str, Any]] = None, *args, **kwargs):
        self._log_kv(logging.DEBUG, msg, kv_pairs, *args, **kwargs)

    def kv_info(self, msg, kv_pairs: Optional[Dict[str, Any]] = None, *args, **kwargs):
        self._log_kv(logging.INFO, msg, kv_pairs, *args, **kwargs)

    def kv_warning(
        self, msg, kv_pairs: Optional[Dict[str, Any]] = None, *args, **kwargs
    ):
        self._log_kv(logging.WARNING, msg, kv_pairs, *args, **kwargs)

    def kv_error(self, msg, kv_pairs: Optional[Dict[str, Any]] = None, *args, **kwargs):
        self._log_kv(logging.ERROR, msg, kv_pairs, *args, **kwargs)


def time_log(logger_instance: logging.Logger):
    """A decorator to log execution time for sync and async functions.

    Coroutine functions get an async wrapper that awaits the call so the
    reported duration covers the whole coroutine.
    """

    def decorator(func):
        def _resolve_name(args):
            if args and hasattr(args[0], "__class__") and not inspect.isclass(args[0]):
                return f"{args[0].__class__.__name__}.{func.__name__}"
            return func.__name__

        def _start(log_name: str) -> float:
            if isinstance(logger_instance, KVLogger):
                logger_instance.kv_info(
                    f"--- Starting: {log_name} ---",
                    kv_pairs={"Event": "Start", "Function": log_name},
                )
            else:
                logger_instance.info(f"--- Starting: {log_name} ---")
            return time.monotonic()

        def _finish(log_name: str, start_time: float) -> None:
            duration = time.monotonic() - start_time
            if isinstance(logger_instance, KVLogger):
                logger_instance.kv_info(
                    f"--- Finished: {log_name}. Duration: {duration:.2f} seconds ---",
                    kv_pairs={
                        "Event": "Finish",
                        "Function": log_name,
                        "Duration": f"{duration:.2f}s",
                    },
                )
            else:
                logger_instance.info(
                    f"--- Finished: {log_name}. Duration: {duration:.2f} seconds ---"
                )

        if inspect.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                log_name = _resolve_name(args)
                start_time = _start(log_name)
                try:
                    return await func(*args, **kwargs)
                finally:
                    _finish(log_name, start_time)

            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            log_name = _resolve_name(args)
            start_time = _start(log_name)
            try:
                return func(*args, **kwargs)
            finally:
                _finish(log_name, start_time)

        return sync_wrapper

    return decorator


def get_logger() -> KVLogger:
    """
    Returns the 'peetle' logger instance.

    Handlers are attached lazily by :func:`setup_logging`; until then records
    propagate to the root logger so pytest's ``caplog`` can capture them.
    """
    logging.setLoggerClass(KVLogger)
    return logging.getLogger(LOGGER_NAME)  # type: ignore[return-value]


logging.setLoggerClass(KVLogger)
logger: KVLogger = get_logger()
