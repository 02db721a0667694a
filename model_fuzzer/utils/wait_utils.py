"""
Bounded polling helpers used for convergence waits
"""
import time
import logging
from typing import Any, Callable

from ..models import WaitResult

logger = logging.getLogger(__name__)


def wait_until(
    fn: Callable[[], Any],
    retries: int,
    delay: float,
    expected: Any = True,
    sleep: Callable[[float], None] = time.sleep
) -> WaitResult:
    """
    Poll ``fn`` until it returns ``expected`` or the retry budget runs out.

    Exceptions raised by ``fn`` count as a failed attempt. Never blocks for
    more than ``retries * delay`` seconds of sleeping.
    """
    last_value = None
    for attempt in range(1, retries + 1):
        try:
            last_value = fn()
        except Exception as e:
            last_value = e
            logger.debug(f"wait_until attempt {attempt} raised: {e}")

        if last_value == expected:
            return WaitResult(success=True, attempts=attempt, last_value=last_value)

        if attempt < retries:
            sleep(delay)

    logger.debug(f"wait_until exhausted after {retries} attempts, last value: {last_value!r}")
    return WaitResult(success=False, attempts=retries, last_value=last_value)


def wait_until_nodes(
    nodes,
    fn: Callable[[Any], Any],
    retries: int,
    delay: float,
    expected: Any = True,
    sleep: Callable[[float], None] = time.sleep
) -> WaitResult:
    """Wait until ``fn(node)`` returns ``expected`` for every node"""
    return wait_until(
        lambda: all(fn(node) == expected for node in nodes),
        retries=retries,
        delay=delay,
        sleep=sleep
    )
