"""Append-only per-job log files."""

import logging
import traceback
from pathlib import Path
from typing import Callable

LOG_FILE_NAME = "log.txt"

# Anything that accepts one line of text. Job logs, ``logger.info`` and
# plain ``print`` all qualify.
LogFn = Callable[[str], None]

jobs_logger = logging.getLogger("reporunner.jobs")


class JobLog:
    """Callable that appends newline-terminated entries to a job's ``log.txt``.

    With ``echo`` enabled every entry is mirrored to the ``reporunner.jobs``
    logger so the process log shows job progress as well.
    """

    def __init__(self, path: Path, echo: bool = True) -> None:
        self.path = Path(path)
        self.echo = echo

    def __call__(self, message: str) -> None:
        with self.path.open("a", encoding="utf-8") as fh:
            fh.write(f"{message}\n")
        if self.echo:
            jobs_logger.info(message)

    def exception(self, exc: BaseException) -> None:
        """Write the error text followed by its traceback."""
        self(str(exc) or exc.__class__.__name__)
        tb = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        self(tb.rstrip())

    def read(self) -> str:
        if not self.path.exists():
            return ""
        return self.path.read_text(encoding="utf-8")
