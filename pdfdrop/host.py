"""
Host Contract
=============
The drawing application is an injected collaborator. The pipeline only
talks to it through the SceneHost protocol:

    read_elements()         → current ordered element sequence
    get_viewport()          → visible size and scroll offset
    write_elements(elems)   → full replace of the element sequence
    add_files(assets)       → register binary assets
    generate_id()           → optional, host-generated unique id

InMemoryHost is a complete host used by the CLI and the tests.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, Sequence

from .models import AssetId, BinaryAsset, ElementId

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Viewport:
    """Visible canvas size and scroll offset, in scene units."""
    width: float
    height: float
    scroll_x: float = 0.0
    scroll_y: float = 0.0

    def center(self) -> tuple[float, float]:
        """Scene coordinates of the visible canvas center."""
        return (
            self.width / 2 - self.scroll_x,
            self.height / 2 - self.scroll_y,
        )


class SceneHost(Protocol):
    def read_elements(self) -> Sequence[Any]: ...

    def get_viewport(self) -> Viewport: ...

    def write_elements(self, elements: Sequence[Any]) -> None: ...

    def add_files(self, assets: Sequence[BinaryAsset]) -> None: ...


class Notifier(Protocol):
    def notify(self, message: str) -> None: ...


# ─── Identifiers ──────────────────────────────────────────────────────────────


def fallback_id() -> str:
    """Random value joined with a millisecond timestamp."""
    return f"{uuid.uuid4().hex[:16]}{int(time.time() * 1000):x}"


def id_factory(host: Any) -> Callable[[], str]:
    """Use the host's id generator when it has one, else the fallback."""
    generate = getattr(host, "generate_id", None)
    if not callable(generate):
        return fallback_id

    def _generate() -> str:
        try:
            value = generate()
        except Exception as e:
            logger.warning(f"Host id generator failed, using fallback: {e}")
            return fallback_id()
        return value or fallback_id()

    return _generate


def new_asset_id(factory: Callable[[], str]) -> AssetId:
    return AssetId(factory())


def new_element_id(factory: Callable[[], str]) -> ElementId:
    return ElementId(factory())


def now_ms() -> int:
    return int(time.time() * 1000)


# ─── Reference Host ───────────────────────────────────────────────────────────


class InMemoryHost:
    """
    A scene kept in memory.

    `write_elements` replaces the whole sequence (last writer wins), the same
    contract a real canvas host exposes.
    """

    def __init__(
        self,
        viewport: Optional[Viewport] = None,
        elements: Optional[Sequence[Any]] = None,
        files: Optional[dict[str, Any]] = None,
    ):
        self.viewport = viewport or Viewport(width=1280, height=800)
        self.elements: list[Any] = list(elements or [])
        self.files: dict[str, Any] = dict(files or {})
        self.write_count = 0

    def read_elements(self) -> list[Any]:
        return list(self.elements)

    def get_viewport(self) -> Viewport:
        return self.viewport

    def write_elements(self, elements: Sequence[Any]) -> None:
        self.elements = list(elements)
        self.write_count += 1

    def add_files(self, assets: Sequence[BinaryAsset]) -> None:
        for asset in assets:
            self.files[str(asset.id)] = asset

    def to_scene_dict(self) -> dict[str, Any]:
        """Serialize elements and files in the host's scene file format."""
        return {
            "type": "excalidraw",
            "version": 2,
            "source": "pdf-drop",
            "elements": [_as_scene_dict(e) for e in self.elements],
            "appState": {
                "width": self.viewport.width,
                "height": self.viewport.height,
                "scrollX": self.viewport.scroll_x,
                "scrollY": self.viewport.scroll_y,
            },
            "files": {
                key: _as_scene_dict(value) for key, value in self.files.items()
            },
        }

    @classmethod
    def from_scene_dict(
        cls,
        data: dict[str, Any],
        viewport: Optional[Viewport] = None,
    ) -> "InMemoryHost":
        """Load a previously saved scene; elements and files stay raw dicts."""
        if viewport is None:
            app_state = data.get("appState") or {}
            viewport = Viewport(
                width=app_state.get("width", 1280),
                height=app_state.get("height", 800),
                scroll_x=app_state.get("scrollX", 0.0),
                scroll_y=app_state.get("scrollY", 0.0),
            )
        return cls(
            viewport=viewport,
            elements=data.get("elements") or [],
            files=data.get("files") or {},
        )


def _as_scene_dict(value: Any) -> Any:
    to_dict = getattr(value, "to_scene_dict", None)
    return to_dict() if callable(to_dict) else value


class LogNotifier:
    """Notifier that reports user-visible failures through logging."""

    def notify(self, message: str) -> None:
        logger.error(message)


class CollectingNotifier:
    """Notifier that keeps messages, for callers that display them later."""

    def __init__(self) -> None:
        self.messages: list[str] = []

    def notify(self, message: str) -> None:
        self.messages.append(message)
