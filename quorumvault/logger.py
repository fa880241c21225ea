"""
quorumvault Logging
===================

Package-wide logging on top of the standard `logging` module, rendered with
`rich` on the console. Addresses, transaction hashes, proposal ids and
percentages are highlighted; a size-rotated log file can be enabled from
`.env` (``LOG_FILE_OUTPUT=True``).

Usage:
    >>> from quorumvault.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Ledger refreshed: 12 proposals")
"""

import logging
import logging.handlers
import re
import sys
import threading
import time
from pathlib import Path
from typing import Optional, Tuple

from rich.console import Console
from rich.highlighter import RegexHighlighter
from rich.logging import RichHandler
from rich.theme import Theme

from .constants import (
    LOG_BACKUP_COUNT,
    LOG_CONSOLE_HIGHLIGHTING,
    LOG_DATE_FORMAT,
    LOG_FILE_OUTPUT,
    LOG_FORMAT,
    LOG_LEVEL,
    LOG_MAX_FILE_SIZE,
)


LOG_FILE_PATH = Path.home() / ".quorumvault" / "logs" / "quorumvault.log"

# Third-party loggers that are too chatty at INFO
QUIET_LIBRARIES = ("httpx", "httpcore", "asyncio")

_DATE_FORMAT_RE = re.compile(r"^(?=.*%[A-Za-z])(?:%%|%[A-Za-z]|[0-9 \t:\-\/\.,TZ+])+$")

THEME = Theme({
    "quorumvault.address":   "cyan",
    "quorumvault.tx_hash":   "bold cyan",
    "quorumvault.proposal":  "bold magenta",
    "quorumvault.percent":   "bold yellow",
    "quorumvault.critical":  "bold red reverse",
    "quorumvault.error":     "bold red",
    "quorumvault.warning":   "bold yellow",
    "quorumvault.info":      "bold green",
    "quorumvault.debug":     "bold dim",
    "quorumvault.module":    "magenta",
    "quorumvault.time":      "bold cyan",
})


def _warn(message: str) -> None:
    # The logger is not usable yet when this runs.
    print(f"{time.strftime('%Y-%m-%d %H:%M:%S')} - quorumvault.logger - {message}", file=sys.stderr)


def resolve_formats(log_format: str, date_format: str) -> Tuple[str, str]:
    """
    Check the configured record and date formats, falling back to the
    defaults for whichever one is unusable.
    """
    log_format = str(log_format or "")
    try:
        probe = logging.LogRecord("probe", logging.INFO, "", 0, "probe", (), None)
        logging.Formatter(fmt=log_format).format(probe)
    except (ValueError, KeyError, TypeError) as e:
        _warn(f"LOG_FORMAT rejected ({e}), using default")
        log_format = str(LOG_FORMAT.default())
    if not log_format:
        log_format = str(LOG_FORMAT.default())

    date_format = str(date_format or "")
    if not _DATE_FORMAT_RE.match(date_format):
        _warn(f"LOG_DATE_FORMAT {date_format!r} rejected, using default")
        date_format = str(LOG_DATE_FORMAT.default())

    return log_format, date_format


class TerminalSafeFormatter(logging.Formatter):
    """
    Drops ANSI escapes and control characters from the final line. Owner
    names and revert reasons come straight from the chain.
    """

    _unsafe_re = re.compile(
        r"\x1b\[[0-?]*[ -/]*[@-~]"      # CSI sequences
        r"|\x1b[@-Z\\-_]"               # two-byte escapes
        r"|[\x00-\x08\x0B-\x1F\x7F]"    # controls except tab/newline, incl. CR
    )

    @classmethod
    def sanitize(cls, text: str) -> str:
        return cls._unsafe_re.sub("", text) if text else text

    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


class GovernanceHighlighter(RegexHighlighter):
    """Colours addresses, hashes, `#id` references and percentages."""

    base_style = "quorumvault."
    highlights = [
        r"(?P<tx_hash>\b0x[0-9a-fA-F]{64}\b)",
        r"(?P<address>\b0x[0-9a-fA-F]{40}\b)",
        r"(?P<proposal>#\d+)",
        r"(?P<percent>\b\d{1,3}%)",
        r"(?P<critical>\bCRITICAL\b)",
        r"(?P<error>\bERROR\b)",
        r"(?P<warning>\bWARNING\b)",
        r"(?P<info>\bINFO\b)",
        r"(?P<debug>\bDEBUG\b)",
        r"(?P<time>^\S+ UTC)",
        r" - (?P<module>quorumvault[\w.]*) - ",
    ]


class LogManager:
    """
    Process-wide owner of the ``quorumvault`` logger hierarchy.

    A singleton: the first instance configures handlers once, later
    instances return the same object.
    """

    _instance: Optional["LogManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "LogManager":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    instance = super().__new__(cls)
                    instance._configured = False
                    cls._instance = instance
        return cls._instance

    @property
    def is_configured(self) -> bool:
        return self._configured

    def _console_handler(self) -> logging.Handler:
        if not LOG_CONSOLE_HIGHLIGHTING:
            return logging.StreamHandler(sys.stderr)
        return RichHandler(
            console=Console(theme=THEME, highlight=False, stderr=True),
            highlighter=GovernanceHighlighter(),
            keywords=[],
            markup=False,
            rich_tracebacks=True,
            show_level=False,
            show_path=False,
            show_time=False,
        )

    @staticmethod
    def _file_handler(path: Path) -> logging.Handler:
        path.parent.mkdir(parents=True, exist_ok=True)
        return logging.handlers.RotatingFileHandler(
            filename=str(path),
            maxBytes=LOG_MAX_FILE_SIZE,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )

    def configure(
        self,
        log_level: Optional[str] = None,
        log_file: Optional[Path] = None,
        console_output: bool = True,
        file_output: Optional[bool] = None,
    ) -> None:
        """
        Install handlers on the ``quorumvault`` logger. Runs once; later
        calls are ignored.

        Args:
            log_level:       Level name; defaults to LOG_LEVEL from `.env`
            log_file:        Rotating log path; defaults to ~/.quorumvault/logs
            console_output:  Attach the console handler
            file_output:     Attach the file handler; defaults to LOG_FILE_OUTPUT
        """
        with self._lock:
            if self._configured:
                return

            level = getattr(logging, str(log_level or LOG_LEVEL).upper(), logging.INFO)
            root = logging.getLogger("quorumvault")
            root.setLevel(level)
            root.handlers.clear()
            for name in QUIET_LIBRARIES:
                logging.getLogger(name).setLevel(logging.WARNING)

            log_format, date_format = resolve_formats(LOG_FORMAT, LOG_DATE_FORMAT)
            formatter = TerminalSafeFormatter(fmt=log_format, datefmt=f"{date_format} UTC")
            formatter.converter = time.gmtime

            handlers = []
            if console_output:
                handlers.append(self._console_handler())
            if bool(LOG_FILE_OUTPUT) if file_output is None else file_output:
                handlers.append(self._file_handler(log_file or LOG_FILE_PATH))
            for handler in handlers:
                handler.setLevel(level)
                handler.setFormatter(formatter)
                root.addHandler(handler)

            self._configured = True

    def get_logger(self, name: str) -> logging.Logger:
        if not self._configured:
            self.configure()
        return logging.getLogger(name)


_manager = LogManager()


def get_logger(name: str) -> logging.Logger:
    """Logger for *name* (normally ``__name__``), configuring on first use."""
    return _manager.get_logger(name)
