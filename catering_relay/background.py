"""Delivery work that runs after a Slack interaction has been acknowledged.

Slack expects an ``ack()`` within three seconds, while a decision still has to
be emailed and the channel message edited. Those steps are queued here.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from contextvars import copy_context
from typing import Any, Callable

import structlog
from structlog.contextvars import bind_contextvars, get_contextvars

_delivery_pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="relay-delivery")


def _report_failure(task_name: str, trace_id: str | None) -> Callable[[Future], None]:
    def callback(future: Future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            structlog.get_logger().error(
                "background_task_failed",
                task=task_name,
                trace_id=trace_id,
                error=str(error) or error.__class__.__name__,
            )

    return callback


def run_async(
    func: Callable[..., Any],
    /,
    *args: Any,
    trace_id: str | None = None,
    **kwargs: Any,
) -> Future:
    """Queue ``func(*args, **kwargs)`` on the delivery pool.

    The caller's structlog context travels with the task; an explicit
    *trace_id* overrides the one bound there. Exceptions are logged as
    ``background_task_failed`` since nobody waits on the returned future.
    """

    context = copy_context()
    if trace_id is not None:
        context.run(bind_contextvars, trace_id=trace_id)
    else:
        trace_id = context.run(get_contextvars).get("trace_id")

    future = _delivery_pool.submit(context.run, func, *args, **kwargs)
    future.add_done_callback(_report_failure(getattr(func, "__name__", repr(func)), trace_id))
    return future
