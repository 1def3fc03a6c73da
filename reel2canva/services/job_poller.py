import asyncio
import logging
from typing import Awaitable, Callable

from reel2canva.core.errors import JobTimeoutError, ExternalServiceError

logger = logging.getLogger(__name__)

SUCCESS = "success"
FAILED = "failed"


def _failure_message(job: dict) -> str:
    error = job.get("error") or {}
    if isinstance(error, dict):
        return error.get("message") or error.get("code") or "no reason given"
    return str(error)


async def wait_for_job(
    fetch: Callable[[], Awaitable[dict]],
    *,
    label: str,
    timeout: float,
    interval: float,
) -> dict:
    """Poll a Canva async job until it reaches a terminal status.

    Args:
        fetch: Coroutine factory returning the current job object
            (``{"id": ..., "status": "in_progress" | "success" | "failed"}``).
        label: Used in log lines and error messages, e.g. "Canva export abc".
        timeout: Max seconds to wait before raising JobTimeoutError.
        interval: Seconds between polling attempts.

    Raises:
        ExternalServiceError: If the job ends in the failed state.
        JobTimeoutError: If the job is still running after ``timeout``.
    """
    loop = asyncio.get_running_loop()
    start = loop.time()
    deadline = start + timeout
    while True:
        job = await fetch()
        status = job.get("status")
        if status == SUCCESS:
            elapsed = loop.time() - start
            if elapsed > interval:
                logger.info(f"{label} finished after {elapsed:.1f}s")
            return job
        if status == FAILED:
            raise ExternalServiceError("Canva", f"{label} failed: {_failure_message(job)}")
        if loop.time() >= deadline:
            raise JobTimeoutError(
                f"{label} did not finish within {timeout:g}s (status: {status})"
            )
        await asyncio.sleep(interval)
