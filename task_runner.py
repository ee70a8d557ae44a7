"""Background execution with main-thread delivery of results."""
from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional, Set

try:  # Prefer PyQt5, fall back to Qt for Python if available
    from PyQt5 import QtCore  # type: ignore
except Exception:  # pragma: no cover - fallback only used when PyQt5 missing
    try:
        from PySide2 import QtCore  # type: ignore
    except Exception:
        from PySide6 import QtCore  # type: ignore

try:  # Compatibility alias for Qt signal and slot decorators
    Signal = QtCore.pyqtSignal  # type: ignore[attr-defined]
    Slot = QtCore.pyqtSlot  # type: ignore[attr-defined]
except AttributeError:  # pragma: no cover - PySide compatibility
    Signal = QtCore.Signal  # type: ignore[attr-defined]
    Slot = QtCore.Slot  # type: ignore[attr-defined]

LOGGER = logging.getLogger(__name__)

SuccessCallback = Callable[[Any], None]
ErrorCallback = Callable[[Exception], None]


class _ResultRelay(QtCore.QObject):
    """Carry one task outcome from a worker thread to the thread that created it."""

    succeeded = Signal(object)
    failed = Signal(object)

    def __init__(
        self,
        on_success: SuccessCallback,
        on_error: ErrorCallback,
        release: Callable[["_ResultRelay"], None],
    ) -> None:
        super().__init__()
        self._on_success = on_success
        self._on_error = on_error
        self._release = release
        self.succeeded.connect(self._deliver_success)  # type: ignore[attr-defined]
        self.failed.connect(self._deliver_failure)  # type: ignore[attr-defined]

    @Slot(object)
    def _deliver_success(self, result: Any) -> None:
        try:
            self._on_success(result)
        finally:
            self.close()

    @Slot(object)
    def _deliver_failure(self, exc: Exception) -> None:
        try:
            self._on_error(exc)
        finally:
            self.close()

    def close(self) -> None:
        self._release(self)
        self.deleteLater()


class QtTaskRunner:
    """Run blocking calls on a worker pool and report back on the Qt main thread.

    ``submit`` must be called from the thread that owns the Qt event loop;
    the callbacks are queued onto that thread, so the objects they mutate
    are never touched by the workers.
    """

    def __init__(self, max_workers: int = 2, executor: Optional[ThreadPoolExecutor] = None) -> None:
        self._executor = executor or ThreadPoolExecutor(max_workers=max_workers)
        self._relays: Set[_ResultRelay] = set()

    def submit(self, func: Callable[[], Any], on_success: SuccessCallback, on_error: ErrorCallback) -> Future:
        LOGGER.debug("Submitting background task %s", getattr(func, "__name__", func))
        relay = _ResultRelay(on_success, on_error, self._relays.discard)
        self._relays.add(relay)
        try:
            future = self._executor.submit(func)
        except RuntimeError:
            relay.close()
            raise

        def _done(future_result: Future) -> None:
            try:
                result = future_result.result()
                LOGGER.debug("Background task %s completed successfully", getattr(func, "__name__", func))
            except Exception as exc:
                LOGGER.debug("Background task %s raised %r", getattr(func, "__name__", func), exc)
                relay.failed.emit(exc)
            else:
                relay.succeeded.emit(result)

        future.add_done_callback(_done)
        return future

    @property
    def pending(self) -> int:
        return len(self._relays)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)


__all__ = ["QtTaskRunner", "Signal", "Slot"]
