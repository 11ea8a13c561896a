"""
Worker process supervision.

Runs one OS process per worker ID. Workers share nothing: each process builds
its own queue, store and provider clients. A worker that hits a fatal error
exits on its own; the pool does not restart it.
"""

import logging
import multiprocessing
import signal
from collections.abc import Callable, Iterable
from types import FrameType
from typing import Any

logger = logging.getLogger(__name__)

WorkerTarget = Callable[[int, int], None]


class WorkerPool:
    """
    Starts and waits for a fixed set of worker processes.

    ``target`` is called in the child as ``target(worker_id, index)`` and must
    be a picklable top-level function.
    """

    def __init__(
        self,
        worker_ids: Iterable[int],
        target: WorkerTarget,
        context: Any | None = None,
    ):
        """
        Initialize the pool.

        Args:
            worker_ids: One process is started per ID.
            target: Process entry point.
            context: multiprocessing context. Defaults to ``spawn`` so children
                never inherit the parent's connections.
        """
        self.worker_ids = list(worker_ids)
        self._target = target
        self._context = context or multiprocessing.get_context("spawn")
        self._processes: dict[int, Any] = {}

    @property
    def processes(self) -> dict[int, Any]:
        return dict(self._processes)

    def start(self) -> None:
        """Start every worker process."""
        for index, worker_id in enumerate(self.worker_ids):
            process = self._context.Process(
                target=self._target,
                args=(worker_id, index),
                name=f"fx-worker-{worker_id}",
            )
            process.start()
            self._processes[worker_id] = process
            logger.info(
                "Worker started",
                extra={"worker_id": worker_id, "pid": process.pid},
            )

    def join(self) -> dict[int, int | None]:
        """
        Wait for every worker to exit.

        Returns:
            Exit code per worker ID.
        """
        exit_codes: dict[int, int | None] = {}
        for worker_id, process in self._processes.items():
            process.join()
            exit_codes[worker_id] = process.exitcode
            log = logger.info if process.exitcode == 0 else logger.error
            log(
                "Worker exited",
                extra={"worker_id": worker_id, "exit_code": process.exitcode},
            )
        return exit_codes

    def stop(self) -> None:
        """Ask every running worker to terminate."""
        for worker_id, process in self._processes.items():
            if process.is_alive():
                logger.info("Stopping worker", extra={"worker_id": worker_id})
                process.terminate()

    def run(self) -> int:
        """
        Start the workers and wait for all of them.

        SIGTERM and SIGINT are forwarded to the workers.

        Returns:
            0 if every worker exited cleanly, 1 otherwise.
        """
        def _handle_signal(signum: int, frame: FrameType | None) -> None:
            logger.info("Pool received signal", extra={"signal": signum})
            self.stop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            signal.signal(sig, _handle_signal)

        self.start()
        exit_codes = self.join()

        failed = [wid for wid, code in exit_codes.items() if code != 0]
        if failed:
            logger.error(
                f"{len(failed)} of {len(exit_codes)} workers failed",
                extra={"failed_workers": failed},
            )
            return 1
        return 0
