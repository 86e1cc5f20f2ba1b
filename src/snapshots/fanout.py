import logging
LOGGER = logging.getLogger(__name__)

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Hashable, TypeVar

R = TypeVar("R")


def fan_out(tasks: dict[Hashable, Callable[[], R]], max_workers: int) -> dict[Hashable, R]:
    """
    Run every task on its own worker and join on all of them.

    Fail-fast: the first exception cancels whatever hasn't started yet and is re-raised once
    the in-flight tasks have drained. Results of the other tasks are dropped, there is never
    a partial return.
    """
    if not tasks:
        return {}

    results = {}
    first_error: BaseException | None = None

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(tasks)))) as ex:
        futures = {ex.submit(task): key for key, task in tasks.items()}

        for future in as_completed(futures):
            if future.cancelled():
                continue

            key = futures[future]
            if (error := future.exception()) is not None:
                if first_error is None:
                    LOGGER.debug(f"Task {key} failed, cancelling the remaining {len(futures) - len(results) - 1}.")
                    first_error = error
                    for f in futures:
                        f.cancel()
                continue

            if first_error is None:
                results[key] = future.result()
    # Executor exit has drained the in-flight tasks by here.

    if first_error is not None:
        raise first_error

    return results
