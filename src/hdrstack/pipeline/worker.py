import threading
import time
import traceback
from typing import Callable, List, Optional

import numpy as np
from loguru import logger

from hdrstack.pipeline.renderer import render_viewport
from hdrstack.pipeline.request import RenderRequest, RenderSnapshot, ViewRect

ResultCallback = Callable[[np.ndarray, int], None]
ErrorCallback = Callable[[str], None]


class RenderWorker:
    """
    Background renderer using the request queue pattern: only the newest
    pending request is kept, and a result whose request id has been
    superseded meanwhile is dropped instead of delivered.
    """

    def __init__(self, workers: int = 1, block_rows: int = 64, max_idle: int = 10, autostart: bool = True):
        self.lock = threading.Lock()
        self.workers = workers
        self.block_rows = block_rows
        self.max_idle = max_idle  # idle checks (100ms each) before the thread exits
        self.autostart = autostart

        self.pending_request: Optional[RenderRequest] = None
        self.current_request_id = 0
        self.discarded = 0

        self.result_callbacks: List[ResultCallback] = []
        self.error_callbacks: List[ErrorCallback] = []
        self._thread: Optional[threading.Thread] = None
        self._running = False  # guarded by lock; cleared only when the loop commits to exit
        self._stopped = False

    def on_result(self, callback: ResultCallback):
        self.result_callbacks.append(callback)

    def on_error(self, callback: ErrorCallback):
        self.error_callbacks.append(callback)

    def is_running(self) -> bool:
        with self.lock:
            return self._running

    def submit(self, snapshot: RenderSnapshot, rect: Optional[ViewRect] = None) -> int:
        """Queue a redraw, replacing any request that has not started yet."""
        with self.lock:
            self.current_request_id += 1
            request_id = self.current_request_id
            self.pending_request = RenderRequest(snapshot, rect or snapshot.full_rect, request_id)
            self._stopped = False
            spawn = self.autostart and not self._running
            if spawn:
                self._running = True

        if spawn:
            self._spawn()
        return request_id

    def start(self):
        with self.lock:
            if self._running:
                return
            self._running = True
        self._spawn()

    def _spawn(self):
        self._thread = threading.Thread(target=self.run, name="RenderWorker", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None):
        with self.lock:
            self._stopped = True
            self.pending_request = None
        if self._thread is not None:
            self._thread.join(timeout)

    def is_stale(self, request_id: int) -> bool:
        with self.lock:
            return request_id != self.current_request_id

    def take_pending(self) -> Optional[RenderRequest]:
        with self.lock:
            request = self.pending_request
            self.pending_request = None
            return request

    def run(self):
        """Keep the thread alive between redraws, exit after an idle timeout"""
        idle_count = 0
        while True:
            with self.lock:
                if self._stopped:
                    self._running = False
                    break
            request = self.take_pending()
            if request is None:
                idle_count += 1
                if idle_count >= self.max_idle:
                    if self._try_exit():
                        break
                    continue
                time.sleep(0.1)
                continue

            idle_count = 0
            try:
                self.process(request)
            except Exception as e:
                logger.error(f"[Render] Request {request.request_id} failed: {type(e).__name__}: {e}")
                logger.debug(traceback.format_exc())
                for callback in self.error_callbacks:
                    callback(str(e))

    def _try_exit(self) -> bool:
        """Leave the loop unless a submit slipped in after the last poll."""
        with self.lock:
            if self.pending_request is not None:
                return False
            self._running = False
            return True

    def process(self, request: RenderRequest) -> Optional[np.ndarray]:
        """Render one request; returns None when it was superseded."""
        if self.is_stale(request.request_id):
            self._discard(request)
            return None

        pixels = render_viewport(
            request.snapshot, request.rect,
            workers=self.workers, block_rows=self.block_rows,
        )

        if self.is_stale(request.request_id):
            self._discard(request)
            return None

        for callback in self.result_callbacks:
            callback(pixels, request.request_id)
        return pixels

    def _discard(self, request: RenderRequest):
        with self.lock:
            self.discarded += 1
        logger.debug(f"[Render] Discarded stale request {request.request_id}")
