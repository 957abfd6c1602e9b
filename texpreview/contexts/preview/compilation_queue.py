"""
Single-Flight Compilation Queue

Serializes compilation requests coming from an editor that may submit on every
keystroke. One worker thread compiles; at most one more request waits in a
slot of capacity 1. Anything submitted while the slot is taken is rejected on
the spot instead of piling up stale compilations.

Usage:
    queue = CompilationQueue(CompilationPipeline())
    future = queue.submit(CompilationRequest(source, dark_mode=True))
    future.add_done_callback(lambda f: f.result() and show(f.result()))
    ...
    queue.shutdown()
"""

import queue
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Optional

from texpreview.contexts.compilation.compiler import CompilationPipeline
from texpreview.contexts.preview.logger import _log_debug, _log_exception, _log_info
from texpreview.contexts.preview.renderer import PageRenderer

# One compiling + one pending; never more
PENDING_CAPACITY = 1

_STOP = object()


@dataclass(frozen=True)
class CompilationRequest:
    """
    One request to compile and render a document.

    Attributes:
        source: Complete LaTeX document text
        dark_mode: Render the preview with the inverted colour scheme
    """

    source: str
    dark_mode: bool = False


class CompilationQueue:
    """
    Bounded, single-flight compilation worker.

    States of the worker loop: Idle (waiting on the pending slot) and Compiling.
    Results are delivered exactly once per accepted request through the Future
    returned by submit(). A caller that cancels its Future while the request is
    still pending withdraws interest and the request is skipped; once compiling,
    a request always runs to completion.

    Args:
        pipeline: Compiler used by the worker (default: CompilationPipeline())
        renderer: HTML renderer for results (default: PageRenderer())
    """

    def __init__(
        self,
        pipeline: Optional[CompilationPipeline] = None,
        renderer: Optional[PageRenderer] = None,
    ):
        self.pipeline = pipeline or CompilationPipeline()
        self.renderer = renderer or PageRenderer()

        self._pending: "queue.Queue" = queue.Queue(maxsize=PENDING_CAPACITY)
        self._lock = threading.Lock()
        self._accepting = True
        self._stopping = threading.Event()
        self._worker = threading.Thread(
            target=self._run, name="compilation-worker", daemon=True
        )
        self._worker.start()

    @property
    def is_running(self) -> bool:
        return self._worker.is_alive()

    def submit(self, request: CompilationRequest) -> "Future[Optional[str]]":
        """
        Offer a request to the worker without blocking.

        Args:
            request: Document to compile

        Returns:
            Future resolving to the rendered HTML document. The Future is already
            resolved with None if the request was rejected (pending slot taken or
            queue shut down).
        """
        future: "Future[Optional[str]]" = Future()

        with self._lock:
            if not self._accepting:
                _log_debug("Compilation queue shut down, rejecting job")
                future.set_result(None)
                return future
            try:
                self._pending.put_nowait((request, future))
            except queue.Full:
                _log_debug("Compilation queue full, dropping new job")
                future.set_result(None)
                return future

        return future

    def shutdown(self, wait: bool = True) -> None:
        """
        Stop accepting work and let the worker finish what it already holds.

        A request that is compiling or pending still completes and is delivered,
        so no external process is killed mid-write.

        Args:
            wait: Block until the worker thread has exited (False returns at once,
                even while a request is compiling)
        """
        with self._lock:
            self._accepting = False
        self._stopping.set()

        try:
            # Wakes an idle worker; a busy one sees _stopping once the slot drains
            self._pending.put_nowait(_STOP)
        except queue.Full:
            pass

        if wait:
            self._worker.join()
            _log_debug("Compilation worker shut down cleanly")

    def __enter__(self) -> "CompilationQueue":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.shutdown(wait=True)

    def _run(self) -> None:
        while True:
            if self._stopping.is_set() and self._pending.empty():
                break
            item = self._pending.get()
            if item is _STOP:
                break

            request, future = item
            if not future.set_running_or_notify_cancel():
                _log_debug("Caller withdrew interest, skipping pending job")
                continue

            start = time.monotonic()
            try:
                result = self.pipeline.compile(request.source, request.dark_mode)
                html = self.renderer.render(result, dark_mode=request.dark_mode)
            except Exception as e:
                _log_exception("Render task failed")
                future.set_exception(e)
                continue

            _log_info(f"LaTeX compilation completed in {time.monotonic() - start:.2f}s")
            future.set_result(html)

        _log_debug("Compilation worker shutting down")
