"""
Event Interceptor
=================
Capture-phase drag-over / drop listeners that take PDF drops away from
the host before its own handlers run.

Non-PDF drops are left untouched and reach the host as usual. A PDF drop
is fully suppressed first, then exactly one pipeline run is scheduled on
the running event loop. Without a running loop the drop is logged and
reported through the notifier, never raised to the host.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from .dom import DragEvent, EventTarget
from .errors import CONVERSION_FAILED_MESSAGE
from .host import Notifier
from .models import PDF_MIME_TYPE, DropPayload

logger = logging.getLogger(__name__)

PipelineRunner = Callable[[DropPayload], Awaitable[Any]]


def find_pdf(event: DragEvent) -> Optional[DropPayload]:
    """First dropped file whose mime type is exactly application/pdf."""
    if event.data_transfer is None:
        return None
    for item in event.data_transfer.items:
        payload = item.get_as_file()
        if payload is not None and payload.mime_type == PDF_MIME_TYPE:
            return payload
    return None


def suppress(event: DragEvent):
    event.prevent_default()
    event.stop_propagation()
    event.stop_immediate_propagation()


class EventInterceptor:
    """
    Attach to a document-level EventTarget to intercept PDF drops.

    Usage:
        interceptor = EventInterceptor(pipeline.run)
        interceptor.attach(document)
        ...
        await interceptor.wait_idle()
        interceptor.detach()
    """

    def __init__(
        self,
        run_pipeline: PipelineRunner,
        notifier: Optional[Notifier] = None,
    ):
        self._run_pipeline = run_pipeline
        self._notifier = notifier
        self._target: Optional[EventTarget] = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def attached(self) -> bool:
        return self._target is not None

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def attach(self, target: EventTarget):
        if self._target is target:
            return
        if self._target is not None:
            self.detach()
        target.add_event_listener("dragover", self.on_drag_over, capture=True)
        target.add_event_listener("drop", self.on_drop, capture=True)
        self._target = target
        logger.debug("Drop interceptor attached")

    def detach(self):
        if self._target is None:
            return
        self._target.remove_event_listener("dragover", self.on_drag_over, capture=True)
        self._target.remove_event_listener("drop", self.on_drop, capture=True)
        self._target = None
        logger.debug("Drop interceptor detached")

    def on_drag_over(self, event: DragEvent):
        if event.data_transfer and PDF_MIME_TYPE in event.data_transfer.types:
            suppress(event)

    def on_drop(self, event: DragEvent) -> Optional[asyncio.Task]:
        payload = find_pdf(event)
        if payload is None:
            # Images and other files stay with the host
            return None

        suppress(event)
        logger.info(f"Intercepted PDF drop: {payload.name}")
        return self._schedule(payload)

    def _schedule(self, payload: DropPayload) -> Optional[asyncio.Task]:
        # The event is already suppressed at this point
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.error(f"No running event loop; dropped {payload.name} not converted")
            if self._notifier is not None:
                try:
                    self._notifier.notify(CONVERSION_FAILED_MESSAGE)
                except Exception as e:
                    logger.error(f"Notifier failed: {e}")
            return None
        task = loop.create_task(self._run_pipeline(payload))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self):
        """Wait until every scheduled pipeline run has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
