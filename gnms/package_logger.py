# -*- coding: utf-8 -*-
"""Package-local logging (stdout handler + tqdm-aware progress bars)."""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator

import tqdm as tqdm_module
from tqdm import tqdm

DEFAULT_MODULE_NAME = "gnms"
DEFAULT_SHORT_NAME = "gn"
DEFAULT_LOGGER_FORMAT = "[%(asctime)s] [%(name)s] [%(levelname)s] - %(message)s"


class ShortNameFormatter(logging.Formatter):
    """Shorten the package prefix in record names without touching the hierarchy."""

    def format(self, record):
        original_name = record.name
        if record.name.startswith(DEFAULT_MODULE_NAME):
            record.name = record.name.replace(DEFAULT_MODULE_NAME, DEFAULT_SHORT_NAME, 1)

        result = super().format(record)
        record.name = original_name
        return result


class TqdmLoggingHandler(logging.Handler):
    """Write records through tqdm.write so they don't corrupt an active bar."""

    def __init__(self, level=logging.NOTSET):
        super().__init__(level)

    def emit(self, record):
        try:
            msg = self.format(record)
            tqdm.write(msg, file=sys.stdout)
        except Exception:
            self.handleError(record)


class PackageLogger:
    """Configuration helpers for the `gnms` logger tree."""

    @staticmethod
    @contextmanager
    def tqdm(
        logger: logging.Logger,
        *tqdm_args: Any,
        **tqdm_kwargs: Any,
    ) -> Iterator[tqdm_module.tqdm]:
        """Wrap a loop with a progress bar while log lines go through tqdm.write."""
        target_logger = logger
        if not logger.handlers and logger.propagate and logger.parent:
            target_logger = logging.getLogger(DEFAULT_MODULE_NAME)

        tqdm_handler, restored_handlers = PackageLogger._swap_to_tqdm_handler(target_logger)
        pbar = tqdm(*tqdm_args, **tqdm_kwargs)

        try:
            yield pbar
        finally:
            pbar.close()
            PackageLogger._restore_handlers(target_logger, tqdm_handler, restored_handlers)

    @staticmethod
    def _swap_to_tqdm_handler(logger_instance: logging.Logger):
        removed_handlers = []

        for h in list(logger_instance.handlers):
            if isinstance(h, logging.StreamHandler) and not isinstance(h, TqdmLoggingHandler):
                logger_instance.removeHandler(h)
                removed_handlers.append(h)

        handler = TqdmLoggingHandler()
        handler.setFormatter(ShortNameFormatter(DEFAULT_LOGGER_FORMAT))
        logger_instance.addHandler(handler)

        return handler, removed_handlers

    @staticmethod
    def _restore_handlers(logger_instance: logging.Logger, handler_to_remove, handlers_to_restore):
        logger_instance.removeHandler(handler_to_remove)
        for h in handlers_to_restore:
            logger_instance.addHandler(h)

    @staticmethod
    def setup(package_name: str = DEFAULT_MODULE_NAME, level: int = logging.INFO):
        """Configure only the package root logger (stdout, short names)."""
        logger = logging.getLogger(package_name)
        logger.setLevel(level)
        logger.propagate = False

        for handler in list(logger.handlers):
            logger.removeHandler(handler)

        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)
        handler.setFormatter(ShortNameFormatter(DEFAULT_LOGGER_FORMAT))
        logger.addHandler(handler)

        return logger


class PackageBoundLogger(logging.LoggerAdapter):
    """LoggerAdapter with `.tqdm(...)` support."""

    def __init__(self, logger: logging.Logger):
        super().__init__(logger, extra={})

    @contextmanager
    def tqdm(
        self,
        *tqdm_args: Any,
        **tqdm_kwargs: Any,
    ) -> Iterator[tqdm_module.tqdm]:
        with PackageLogger.tqdm(self.logger, *tqdm_args, **tqdm_kwargs) as pbar:
            yield pbar


def get_package_logger(name: str) -> PackageBoundLogger:
    """Return a package-scoped logger wrapper with `.tqdm(...)` support."""
    return PackageBoundLogger(logging.getLogger(name))
