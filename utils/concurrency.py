"""Thread-pool helpers: per-call timeouts and bounded fan-out."""

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout

from core.errors import AgentTimeoutError

LOGGER = logging.getLogger(__name__)

# Shared pool for timed calls. A call that overruns keeps its worker until
# the underlying request returns, but the caller is released immediately.
_TIMEOUT_POOL = ThreadPoolExecutor(max_workers=16, thread_name_prefix="agent-call")


def call_with_timeout(agent_name, timeout, fn, *args, **kwargs):
    """Run fn(*args, **kwargs), raising AgentTimeoutError after `timeout` seconds.

    A timeout of None or 0 runs the call inline with no limit.
    """
    if not timeout:
        return fn(*args, **kwargs)
    future = _TIMEOUT_POOL.submit(fn, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout:
        future.cancel()
        LOGGER.warning("%s call abandoned after %ss", agent_name, timeout)
        raise AgentTimeoutError(agent_name, f"call timed out after {timeout}s") from None


def map_concurrently(fn, items, max_workers=4):
    """Apply fn to each item on a thread pool, isolating failures.

    Returns a list of (item, result, error) tuples in input order; exactly
    one of result/error is set for each item.
    """
    items = list(items)
    if not items:
        return []
    outcomes = []
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(items))),
                            thread_name_prefix="file-worker") as pool:
        futures = [pool.submit(fn, item) for item in items]
        for item, future in zip(items, futures):
            try:
                outcomes.append((item, future.result(), None))
            except Exception as e:  # noqa: BLE001 - reported per item to the caller
                LOGGER.warning("Worker failed for %s: %s", item, e)
                outcomes.append((item, None, e))
    return outcomes
