# ollachat/infra/llm/thread_broker.py
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Optional, Tuple
from collections import deque
from itertools import count

from PyQt6.QtCore import QObject, QThread, pyqtSignal, pyqtSlot, Qt

from .stream_session import CancellationToken, SessionState

log = logging.getLogger("broker")


# ---------- Public types ----------
# Called on the worker thread as func(*args, on_delta=..., cancel_token=..., **kwargs)
JobFunc = Callable[..., Any]

@dataclass(slots=True)
class Job:
    ticket: int
    func:   JobFunc
    args:   tuple = field(default_factory=tuple)
    kwargs: dict  = field(default_factory=dict)
    token:  CancellationToken = field(default_factory=CancellationToken)


# ---------- Worker ----------
class _Worker(QObject):
    token    = pyqtSignal(int, str)             # (ticket, delta)
    finished = pyqtSignal(int, str, object)     # (ticket, status, result) status: "completed"|"cancelled"|"failed"|"error"
    error    = pyqtSignal(int, str)             # (ticket, message)

    def __init__(self, job: Job):
        super().__init__()
        self._job = job

    def stop(self):  # thread-safe: only flips the job's token
        self._job.token.cancel()

    def _emit_delta(self, delta: str) -> None:
        self.token.emit(self._job.ticket, delta)

    @pyqtSlot()
    def run(self):
        ticket = self._job.ticket
        status = "error"
        result = None
        try:
            kw = dict(self._job.kwargs)
            kw.setdefault("on_delta", self._emit_delta)
            kw.setdefault("cancel_token", self._job.token)
            result = self._job.func(*self._job.args, **kw)
            state = getattr(result, "status", SessionState.COMPLETED)
            status = SessionState(state).value
        except Exception as exc:
            log.exception("Job %d raised", ticket)
            self.error.emit(ticket, f"{type(exc).__name__}: {exc}")
        finally:
            self.finished.emit(ticket, status, result)


# ---------- Broker ----------
class ThreadBroker(QObject):
    """
    Runs chat turns one at a time, each on a fresh QThread.

    Submitted jobs wait in a FIFO queue identified by ticket numbers. Only
    the running job holds a thread; stopping it flips its CancellationToken
    and the job winds down on its own. Queued jobs can be dropped before
    they start.
    """
    job_started   = pyqtSignal(int)                 # ticket
    job_token     = pyqtSignal(int, str)            # (ticket, delta)
    job_finished  = pyqtSignal(int, str, object)    # (ticket, status, result)
    job_error     = pyqtSignal(int, str)            # (ticket, message)
    queue_changed = pyqtSignal(int, int)            # (active ticket or -1, queued)

    def __init__(self, parent: QObject | None = None):
        super().__init__(parent)
        self._tickets = count(1)
        self._pending: Deque[Job] = deque()
        self._running: Optional[Tuple[QThread, _Worker, int]] = None

    # -------- API --------
    def submit(self, func: JobFunc, *args, **kwargs) -> int:
        job = Job(next(self._tickets), func, args, kwargs)
        self._pending.append(job)
        log.debug("Queued job %d (%d waiting)", job.ticket, len(self._pending))
        self._notify()
        self._start_next()
        return job.ticket

    def stop_active(self) -> None:
        if self._running is not None:
            self._running[1].stop()

    def cancel_ticket(self, ticket: int) -> None:
        if ticket == self.active_ticket():
            self.stop_active()
            return
        for job in list(self._pending):
            if job.ticket == ticket:
                self._pending.remove(job)
                log.debug("Dropped queued job %d", ticket)
        self._notify()

    def clear_queue(self, include_active: bool = False) -> None:
        self._pending.clear()
        if include_active:
            self.stop_active()
        self._notify()

    def active_ticket(self) -> int:
        return self._running[2] if self._running is not None else -1

    def queued_count(self) -> int:
        return len(self._pending)

    # -------- internals --------
    def _notify(self) -> None:
        self.queue_changed.emit(self.active_ticket(), len(self._pending))

    def _start_next(self) -> None:
        if self._running is not None or not self._pending:
            return
        job = self._pending.popleft()

        thread = QThread()
        worker = _Worker(job)
        worker.moveToThread(thread)
        worker.token.connect(self.job_token, Qt.ConnectionType.QueuedConnection)
        worker.error.connect(self.job_error, Qt.ConnectionType.QueuedConnection)
        worker.finished.connect(self._on_worker_finished, Qt.ConnectionType.QueuedConnection)
        thread.started.connect(worker.run)

        self._running = (thread, worker, job.ticket)
        self._notify()
        thread.start()
        self.job_started.emit(job.ticket)

    def _release(self) -> None:
        thread, worker, _ = self._running
        self._running = None
        thread.quit()
        thread.wait()
        worker.deleteLater()
        thread.deleteLater()

    @pyqtSlot(int, str, object)
    def _on_worker_finished(self, ticket: int, status: str, result: object):
        log.debug("Job %d finished: %s", ticket, status)
        self._release()
        self.job_finished.emit(ticket, status, result)
        self._start_next()
