"""Run Lark event handlers off the request thread.

Lark expects an answer to every event callback within three seconds and
re-delivers events that are not acknowledged in time, so slow handlers are
queued here and the HTTP response is sent immediately.
"""

from contextvars import copy_context
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Mapping

from structlog.contextvars import bind_contextvars

_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="lark-event")


def run_async(
    func: Callable[..., Any],
    /,
    *args: Any,
    trace_id: str | None = None,
    log_context: Mapping[str, Any] | None = None,
    **kwargs: Any,
) -> Future:
    """Submit *func* to the shared pool; structlog context follows the work.

    The caller's contextvars are copied, then *trace_id* and *log_context*
    are bound on top of them inside the worker only.
    """

    context = copy_context()
    extra: dict[str, Any] = dict(log_context or {})
    if trace_id is not None:
        extra["trace_id"] = trace_id
    if extra:
        context.run(lambda: bind_contextvars(**extra))

    def runner() -> Any:
        return context.run(func, *args, **kwargs)

    return _executor.submit(runner)
