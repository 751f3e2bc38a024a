"""
Background worker that runs the execution loop off the request path.

Waits on the trigger channel and starts a drain for every message. When no
message arrives for ``poll_interval`` seconds it drains anyway, so pending
jobs are picked up even if a signal never arrived (for example jobs left
over from a previous process).

Usage:
    worker = JobWorker(channel, loop)
    worker.start()
    ...
    worker.stop()
"""

import logging
import threading
from typing import Optional

from .services.execution_loop import ExecutionLoop
from .services.trigger_channel import TriggerChannel, TriggerMessage

logger = logging.getLogger("reporunner.worker")

# Seconds between drains when no signal arrives
POLL_INTERVAL = 10.0


class JobWorker(threading.Thread):
    """Daemon thread consuming the trigger channel."""

    def __init__(self, channel: TriggerChannel, loop: ExecutionLoop,
                 poll_interval: float = POLL_INTERVAL) -> None:
        super().__init__(name="reporunner-worker", daemon=True)
        self.channel = channel
        self.loop = loop
        self.poll_interval = poll_interval
        self._stopped = threading.Event()

    def run(self) -> None:
        logger.info(f"Worker started, polling every {self.poll_interval}s")
        # Pick up whatever was left pending before this process started.
        self._drain()

        while not self._stopped.is_set():
            message = self.channel.receive(timeout=self.poll_interval)
            if message == TriggerMessage.STOP:
                break
            if message == TriggerMessage.FULL_UPDATE:
                logger.info("Got full update request")
            self._drain()

        logger.info("Worker shutting down")

    def _drain(self) -> None:
        try:
            self.loop.run()
        except (Exception, SystemExit) as e:
            # Job failures never get here; this is the store itself failing.
            logger.error(f"Worker error: {e!r}", exc_info=True)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Ask the thread to finish after the current job and wait for it."""
        self._stopped.set()
        self.channel.close()
        if self.is_alive():
            self.join(timeout)
