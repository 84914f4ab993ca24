"""Rich-formatted logging setup."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

# Custom theme for logging
CUSTOM_THEME = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "success": "bold green",
        "chain": "bold magenta",
        "state": "bold blue",
    }
)

# Global console instance
console = Console(theme=CUSTOM_THEME)


class ChainFormatter(logging.Formatter):
    """Prefixes records carrying a ``chain`` attribute with the chain name."""

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "chain"):
            return super().format(record)

        # Records are shared between handlers, restore the message afterwards.
        original = record.msg
        record.msg = f"[{record.chain}] {original}"
        try:
            return super().format(record)
        finally:
            record.msg = original


def setup_logging(
    log_dir: str | Path = "logs",
    level: int | str = logging.INFO,
    log_to_file: bool = False,
) -> None:
    """
    Setup logging with Rich console handler and optional file handler.

    Args:
        log_dir: Directory to store log files
        level: Logging level
        log_to_file: Whether to also log to file
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    rich_handler = RichHandler(
        console=console,
        show_time=True,
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    rich_handler.setFormatter(ChainFormatter("%(message)s"))
    root_logger.addHandler(rich_handler)

    if log_to_file:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_path / f"taskchain_{timestamp}.log"

        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(
            ChainFormatter(
                "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        root_logger.addHandler(file_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


class ChainLogger:
    """Logger wrapper that tags records with a chain name."""

    def __init__(self, chain_name: str, name: str = "taskchain.chain"):
        self.chain_name = chain_name
        self._logger = logging.getLogger(name)

    def _log(self, level: int, msg: str, *args, **kwargs) -> None:
        extra = kwargs.pop("extra", {})
        extra["chain"] = self.chain_name
        self._logger.log(level, msg, *args, extra=extra, **kwargs)

    def info(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.ERROR, msg, *args, **kwargs)

    def debug(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def success(self, msg: str) -> None:
        """Log a successful outcome."""
        self.info(msg)

    def state_change(self, from_state: str, to_state: str) -> None:
        """Log a state transition."""
        self.debug(f"State: {from_state} -> {to_state}")

    def exception(self, msg: str, *args, **kwargs) -> None:
        kwargs.setdefault("exc_info", True)
        self._log(logging.ERROR, msg, *args, **kwargs)
