"""Executor factory utilities used for off-loop request phases."""

from __future__ import annotations

from concurrent import futures
from typing import Optional, Tuple

Executor = futures.Executor


def create_executor(workers: int) -> Tuple[Optional[Executor], bool]:
    """
    Return a thread pool for preprocessing and retry evaluation.

    Args:
        workers: Desired concurrency level. Zero or less selects the event
            loop's default executor, represented by ``None``.

    Returns:
        Tuple of (executor, needs_shutdown). Caller is responsible for shutting
        down the returned executor when ``needs_shutdown`` is ``True``.
    """
    if workers <= 0:
        return None, False
    return futures.ThreadPoolExecutor(max_workers=workers, thread_name_prefix="typedapi-worker"), True
