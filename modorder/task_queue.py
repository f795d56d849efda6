import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, List, Optional

import modorder.ui_logger as logging

DEFAULT_WORKERS = 4


class CommandQueue:
    """
    Runs commands one at a time on a single owner thread, in the order they
    were submitted. A command still waiting can be cancelled, one that started
    always runs to the end.
    """

    def __init__(self, name: str = "owner"):
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=name)
        self._pending: List[Future] = []
        self._lock = threading.Lock()

    def submit(self, fn: Callable, *args, **kwargs) -> Future:
        with self._lock:
            future = self._executor.submit(fn, *args, **kwargs)
            self._pending.append(future)
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: Future) -> None:
        with self._lock:
            if future in self._pending:
                self._pending.remove(future)

    def drop_pending(self) -> int:
        """Cancels every command that hasn't started yet, returns how many."""
        with self._lock:
            pending = list(self._pending)
        dropped = sum(1 for future in pending if future.cancel())
        if dropped:
            logging.debug(f"Dropped {dropped} pending command(s)")
        return dropped

    def shutdown(self, wait: bool = True, cancel_pending: bool = False) -> None:
        if cancel_pending:
            self.drop_pending()
        self._executor.shutdown(wait=wait)


class WorkerPool:
    """Bounded pool for slow read-only work (directory walks, Steam probes)."""

    def __init__(self, max_workers: int = DEFAULT_WORKERS):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="worker")

    def submit(self, fn: Callable, *args, **kwargs) -> Future:
        return self._executor.submit(fn, *args, **kwargs)

    def then(self, fn: Callable, follow_up: Callable, queue: CommandQueue, *args, prepare: Optional[Callable] = None) -> Future:
        """
        Runs `fn(*args)` on the pool, then `follow_up(result)` on `queue`.
        With `prepare`, the arguments are whatever `prepare()` returns when it
        runs on `queue`, so `fn` sees owner state in submission order.
        The returned future resolves with the follow-up's result.
        """
        outer: Future = Future()

        def _after(inner: Future, step: Callable) -> None:
            if inner.cancelled():
                outer.cancel()
                return
            err = inner.exception()
            if err is not None:
                outer.set_exception(err)
                return
            try:
                step(inner.result())
            except RuntimeError as exc:
                # executor already shut down
                outer.set_exception(exc)

        def _work(call_args) -> None:
            self.submit(fn, *call_args).add_done_callback(lambda done: _after(done, _follow))

        def _follow(result) -> None:
            queue.submit(follow_up, result).add_done_callback(lambda done: _copy(done, outer))

        if prepare is None:
            _work(args)
        else:
            queue.submit(prepare).add_done_callback(lambda done: _after(done, _work))
        return outer

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


def _copy(source: Future, target: Future) -> None:
    if source.cancelled():
        target.cancel()
    elif source.exception() is not None:
        target.set_exception(source.exception())
    else:
        target.set_result(source.result())
