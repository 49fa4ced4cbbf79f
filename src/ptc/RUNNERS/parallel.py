"""
Fan-out/fan-in execution of independent node operations.
"""
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Optional


def run_concurrently(tasks: Dict[str, Callable[[], None]],
                     max_workers: int = 8) -> Dict[str, Optional[Exception]]:
    """
    Runs every task in parallel and waits for all of them.

    Failures are collected, not raised: the result maps each task name to the
    exception it raised, or None if it succeeded.

    :param tasks: Task name -> zero-argument callable.
    :param max_workers: Upper bound on concurrently running tasks.
    :return: Task name -> outcome, in the order of ``tasks``.
    """
    if not tasks:
        return {}

    outcomes: Dict[str, Optional[Exception]] = {}
    with ThreadPoolExecutor(max_workers=min(max_workers, len(tasks))) as executor:
        futures = {name: executor.submit(task) for name, task in tasks.items()}
        for name, future in futures.items():
            outcomes[name] = future.exception()
    return outcomes


def failures_of(outcomes: Dict[str, Optional[Exception]]) -> Dict[str, Exception]:
    """
    Filters the outcomes of ``run_concurrently`` down to the failed tasks.
    """
    return {name: error for name, error in outcomes.items() if error is not None}
