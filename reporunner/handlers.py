"""Built-in job handlers.

A handler is any callable taking a ``JobContext`` and returning an optional
result message. Point ``JOB_HANDLER`` at ``"package.module:function"`` to
use your own.
"""

import importlib
from typing import Optional

from .services.execution_loop import JobContext, JobHandler


def log_job(ctx: JobContext) -> Optional[str]:
    """Write the job's change set to its log and do nothing else."""
    changes = ctx.changes()
    ctx.log(f"Processing job {ctx.job.id}")
    if changes.is_empty:
        ctx.log("No files changed")
        return "0 file(s) changed"
    for label, paths in (("added", changes.added), ("modified", changes.modified),
                         ("removed", changes.removed)):
        ctx.log(f"{len(paths)} {label}")
        for path in paths:
            ctx.log(f" - {path}")
    total = len(changes.added) + len(changes.modified) + len(changes.removed)
    return f"{total} file(s) changed"


def load_handler(target: str) -> JobHandler:
    """Import a handler from a ``"module:attribute"`` string."""
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Handler must look like 'package.module:function', got {target!r}")
    module = importlib.import_module(module_name)
    handler = getattr(module, attr)
    if not callable(handler):
        raise TypeError(f"{target} is not callable")
    return handler
