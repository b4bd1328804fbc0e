"""
Drag Event Model
================
A minimal document-level event target with capture and bubble phases.

Listeners registered with capture=True run before bubble listeners (where
the host's own drop handling lives). Propagation flags follow DOM rules:
    stop_propagation()            → skip the remaining phase
    stop_immediate_propagation()  → skip every remaining listener
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional

from .models import DropPayload

Listener = Callable[["DragEvent"], None]


@dataclass
class DataTransferItem:
    """One dragged item; `kind` is "file" or "string"."""
    kind: str
    type: str
    file: Optional[DropPayload] = None

    def get_as_file(self) -> Optional[DropPayload]:
        return self.file if self.kind == "file" else None


@dataclass
class DataTransfer:
    items: list[DataTransferItem] = field(default_factory=list)
    types: list[str] = field(default_factory=list)

    @classmethod
    def from_files(cls, *files: DropPayload) -> "DataTransfer":
        items = [
            DataTransferItem(kind="file", type=f.mime_type, file=f)
            for f in files
        ]
        types = ["Files"]
        for f in files:
            if f.mime_type and f.mime_type not in types:
                types.append(f.mime_type)
        return cls(items=items, types=types)


@dataclass
class DragEvent:
    type: str
    data_transfer: Optional[DataTransfer] = None
    default_prevented: bool = False
    propagation_stopped: bool = False
    immediate_propagation_stopped: bool = False

    def prevent_default(self):
        self.default_prevented = True

    def stop_propagation(self):
        self.propagation_stopped = True

    def stop_immediate_propagation(self):
        self.propagation_stopped = True
        self.immediate_propagation_stopped = True

    @property
    def suppressed(self) -> bool:
        return (
            self.default_prevented
            and self.propagation_stopped
            and self.immediate_propagation_stopped
        )


class EventTarget:
    """Document-level target dispatching capture listeners, then bubble ones."""

    def __init__(self):
        self._listeners: dict[tuple[str, bool], list[Listener]] = {}

    def add_event_listener(
        self, event_type: str, listener: Listener, capture: bool = False
    ):
        bucket = self._listeners.setdefault((event_type, capture), [])
        if listener not in bucket:
            bucket.append(listener)

    def remove_event_listener(
        self, event_type: str, listener: Listener, capture: bool = False
    ):
        bucket = self._listeners.get((event_type, capture), [])
        if listener in bucket:
            bucket.remove(listener)

    def listener_count(self, event_type: str) -> int:
        return sum(
            len(self._listeners.get((event_type, capture), []))
            for capture in (True, False)
        )

    def dispatch_event(self, event: DragEvent) -> bool:
        """
        Run listeners for `event`.

        Returns:
            False if a listener called prevent_default(), else True.
        """
        for capture in (True, False):
            for listener in list(self._listeners.get((event.type, capture), [])):
                listener(event)
                if event.immediate_propagation_stopped:
                    return not event.default_prevented
            if event.propagation_stopped:
                break
        return not event.default_prevented
