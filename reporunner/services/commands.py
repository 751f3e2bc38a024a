"""
External command execution with output capture.

Every command's stdout and stderr are written line by line into the
caller's log, tagged ``OUT>`` and ``ERR>``, so job logs show exactly what
git (or a handler's own tooling) printed.
"""

import logging
import os
import subprocess
import threading
from pathlib import Path
from typing import IO, Iterable, Optional, Sequence, Type

from .job_log import LogFn

logger = logging.getLogger(__name__)

STDOUT_MARKER = "OUT>"
STDERR_MARKER = "ERR>"

_MASK = "***"


class CommandError(Exception):
    """A command exited non-zero (or could not be started).

    ``output`` holds the combined captured stdout/stderr.
    """

    def __init__(self, command: str, returncode: int, output: str):
        self.command = command
        self.returncode = returncode
        self.output = output
        message = f"`{command}` failed with exit code {returncode}"
        if output:
            message += f":\n{output}"
        super().__init__(message)


def mask_secrets(text: str, secrets: Iterable[str]) -> str:
    """Replace every non-empty secret in *text* with ``***``."""
    for secret in secrets:
        if secret:
            text = text.replace(secret, _MASK)
    return text


def _pump(stream: IO[str], marker: str, captured: list[str], combined: list[str],
          log: LogFn, secrets: tuple[str, ...], lock: threading.Lock) -> None:
    for line in stream:
        captured.append(line)
        shown = mask_secrets(line.rstrip("\n"), secrets)
        with lock:
            combined.append(shown)
            # NUL-separated output (``git ... -z``) is shown one field per line
            for part in shown.split("\0"):
                if part:
                    log(f"{marker} {part}")
    stream.close()


def run_command(
    args: Sequence[str],
    cwd: Path | str,
    log: LogFn = logger.info,
    env: Optional[dict[str, str]] = None,
    secrets: Iterable[str] = (),
    check: bool = True,
    error_class: Type[CommandError] = CommandError,
) -> subprocess.CompletedProcess:
    """Run *args* in *cwd* and wait for it to finish.

    stdout and stderr are read concurrently, so their marked lines land in
    *log* interleaved in the order they arrive.

    Args:
        args: Command and arguments (no shell).
        cwd: Working directory.
        log: Receives the command line and its marked output.
        env: Extra environment variables, merged over ``os.environ``.
        secrets: Strings to mask wherever the command line or output is logged.
        check: Raise *error_class* on a non-zero exit code.
        error_class: ``CommandError`` subclass to raise.

    Returns:
        The completed process with unmasked ``stdout``/``stderr`` text.
    """
    secrets = tuple(secrets)
    shown = mask_secrets(" ".join(args), secrets)
    log(f"$ {shown}")

    full_env = {**os.environ, **env} if env else None
    try:
        process = subprocess.Popen(
            list(args),
            cwd=cwd,
            env=full_env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            encoding="utf-8",
            errors="replace",
        )
    except OSError as e:
        log(f"{STDERR_MARKER} {e}")
        raise error_class(shown, -1, str(e)) from e

    stdout: list[str] = []
    stderr: list[str] = []
    combined: list[str] = []
    lock = threading.Lock()
    readers = [
        threading.Thread(target=_pump, args=(process.stdout, STDOUT_MARKER, stdout, combined, log, secrets, lock)),
        threading.Thread(target=_pump, args=(process.stderr, STDERR_MARKER, stderr, combined, log, secrets, lock)),
    ]
    for reader in readers:
        reader.start()
    for reader in readers:
        reader.join()
    returncode = process.wait()

    if check and returncode != 0:
        output = "\n".join(line.replace("\0", "\n").rstrip() for line in combined if line.strip("\0 \n"))
        raise error_class(shown, returncode, output)
    return subprocess.CompletedProcess(list(args), returncode, "".join(stdout), "".join(stderr))
