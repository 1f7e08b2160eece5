"""Off-thread execution of bootstrap risk computations.

A :class:`ComputeOrchestrator` wraps a ``concurrent.futures`` executor that
the caller passes in (thread or process pool), so several independent
orchestrators can coexist.  Each :meth:`ComputeOrchestrator.submit` returns a
:class:`ComputeHandle` bound to exactly one request and one future.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import threading
from concurrent.futures import CancelledError, Executor, Future, ThreadPoolExecutor
from typing import Callable, Optional

from . import config
from .errors import ComputationCancelled, InvalidInput, QuantError
from .risk import BootstrapRequest, RiskResult, bootstrap

__all__ = [
    "RequestState",
    "ComputeHandle",
    "ComputeOrchestrator",
    "error_message",
]

logger = logging.getLogger(__name__)


class RequestState(enum.Enum):
    IDLE = "idle"
    COMPUTING = "computing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


def _run_bootstrap(request: BootstrapRequest) -> RiskResult:
    # module-level so process pools can pickle it
    return bootstrap(request)


def error_message(exc: BaseException, request_id: Optional[str] = None) -> dict:
    out = {"type": "error", "message": str(exc) or type(exc).__name__}
    if isinstance(exc, QuantError):
        out["kind"] = type(exc).__name__
    if request_id is not None:
        out["requestId"] = request_id
    return out


class ComputeHandle:
    """Handle for one in-flight bootstrap computation.

    ``result()`` blocks, ``await handle.wait()`` suspends, ``cancel()``
    abandons the result.  A cancelled handle never delivers a result; the
    worker may still finish, but its output is dropped.
    """

    def __init__(self, request: BootstrapRequest, future: Future,
                 callback: Optional[Callable[["ComputeHandle"], None]] = None):
        self.request = request
        self._future = future
        self._callback = callback
        self._cancelled = threading.Event()
        future.add_done_callback(self._on_done)

    @property
    def request_id(self) -> str:
        return self.request.request_id

    @property
    def state(self) -> RequestState:
        if self._cancelled.is_set():
            return RequestState.CANCELLED
        f = self._future
        if f.running():
            return RequestState.COMPUTING
        if not f.done():
            return RequestState.IDLE
        return RequestState.FAILED if f.exception() is not None else RequestState.COMPLETED

    def done(self) -> bool:
        return self._cancelled.is_set() or self._future.done()

    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> bool:
        """Abandon the request.  Returns False if it had already finished."""
        if self._cancelled.is_set():
            return True
        if self._future.done():
            return False
        self._cancelled.set()
        # frees the worker slot when the task has not started yet
        self._future.cancel()
        logger.info("request %s cancelled", self.request_id)
        return True

    def result(self, timeout: Optional[float] = None) -> RiskResult:
        """Block until the result is available.

        Raises
        ------
        ComputationCancelled
            The handle was cancelled before or while waiting.
        QuantError
            The computation failed; the original error is re-raised.
        concurrent.futures.TimeoutError
            ``timeout`` elapsed first.
        """
        if self._cancelled.is_set():
            raise ComputationCancelled(f"request {self.request_id} was cancelled")
        try:
            res = self._future.result(timeout)
        except CancelledError:
            raise ComputationCancelled(f"request {self.request_id} was cancelled") from None
        if self._cancelled.is_set():
            raise ComputationCancelled(f"request {self.request_id} was cancelled")
        return res

    async def wait(self) -> RiskResult:
        """Awaitable counterpart of :meth:`result`."""
        if self._cancelled.is_set():
            raise ComputationCancelled(f"request {self.request_id} was cancelled")
        # asyncio.wait leaves the outcome on the future; result() unpacks it
        await asyncio.wait([asyncio.wrap_future(self._future)])
        return self.result(0)

    def message(self, timeout: Optional[float] = None) -> dict:
        """Result or error as a response dict for the message boundary."""
        try:
            return self.result(timeout).to_message()
        except QuantError as exc:
            return error_message(exc, self.request_id)

    def _on_done(self, future: Future) -> None:
        if self._cancelled.is_set() or future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.info("request %s failed: %s", self.request_id, exc)
        else:
            logger.debug("request %s completed", self.request_id)
        if self._callback is not None:
            try:
                self._callback(self)
            except Exception:
                logger.exception("result callback for request %s raised", self.request_id)


class ComputeOrchestrator:
    """Dispatch :class:`BootstrapRequest` objects to a worker pool.

    Parameters
    ----------
    executor : concurrent.futures.Executor, optional
        Pool to run on.  If omitted, a ``ThreadPoolExecutor`` is created and
        owned by this orchestrator (shut down by :meth:`shutdown`).  A
        caller-supplied executor is never shut down here.
    max_workers : int, optional
        Size of the owned pool; defaults to ``config.MAX_WORKERS``.
    """

    def __init__(self, executor: Optional[Executor] = None, *,
                 max_workers: Optional[int] = None):
        self._owns_executor = executor is None
        if executor is None:
            executor = ThreadPoolExecutor(
                max_workers=max_workers or config.MAX_WORKERS,
                thread_name_prefix="quantcore-risk",
            )
        self._executor = executor
        self._lock = threading.RLock()
        self._inflight: dict[str, ComputeHandle] = {}

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.shutdown()

    # --- submission ---------------------------------------------------------
    def submit(self, request: BootstrapRequest,
               callback: Optional[Callable[[ComputeHandle], None]] = None) -> ComputeHandle:
        """Schedule ``request``; ``callback(handle)`` fires on completion unless cancelled.

        Raises
        ------
        InvalidInput
            Another request with the same ``request_id`` is still in flight.
        """
        rid = request.request_id
        with self._lock:
            if rid in self._inflight:
                raise InvalidInput(f"request {rid} is already in flight")
            future = self._executor.submit(_run_bootstrap, request)
            handle = ComputeHandle(request, future, callback)
            self._inflight[rid] = handle
        future.add_done_callback(lambda _f, h=handle: self._forget(h))
        logger.info("request %s submitted (%d returns, %d samples)",
                    rid, len(request.returns), request.samples)
        return handle

    def submit_message(self, message: dict,
                       callback: Optional[Callable[[ComputeHandle], None]] = None) -> ComputeHandle:
        """Parse a ``{"type": "bootstrap", ...}`` message and submit it."""
        return self.submit(BootstrapRequest.from_message(message), callback)

    def handle_message(self, message: dict, timeout: Optional[float] = None) -> dict:
        """Run one message round trip and return the response dict."""
        try:
            handle = self.submit_message(message)
        except QuantError as exc:
            logger.warning("rejected message: %s", exc)
            rid = message.get("requestId") if isinstance(message, dict) else None
            return error_message(exc, rid)
        return handle.message(timeout)

    # --- bookkeeping --------------------------------------------------------
    def in_flight(self) -> list[str]:
        with self._lock:
            return list(self._inflight)

    def cancel(self, request_id: str) -> bool:
        with self._lock:
            handle = self._inflight.get(request_id)
        return handle.cancel() if handle is not None else False

    def cancel_all(self) -> None:
        with self._lock:
            handles = list(self._inflight.values())
        for h in handles:
            h.cancel()

    def _forget(self, handle: ComputeHandle) -> None:
        with self._lock:
            if self._inflight.get(handle.request_id) is handle:
                del self._inflight[handle.request_id]

    def shutdown(self, wait: bool = True, cancel_pending: bool = False) -> None:
        if cancel_pending:
            self.cancel_all()
        if self._owns_executor:
            self._executor.shutdown(wait=wait)
