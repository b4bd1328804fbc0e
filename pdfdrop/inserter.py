"""
Scene Inserter
==============
Inserts rendered PDF pages into the host scene, one page at a time.

Per page:
    1. Read the archive member and decode the PNG to get its natural size
    2. Register a BinaryAsset with the host
    3. Compute placement (stacked vertically below the viewport center)
    4. Build the ImageElement
    5. Append to the local element sequence and push it to the host
    6. Pause briefly before the next page

A failing page is recorded and skipped; later pages are always attempted.
The element sequence is read from the host once, before the loop, and is
never re-read while the loop runs.
"""

from __future__ import annotations

import asyncio
import base64
import io
import logging
import random
import zipfile
import zlib
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from PIL import Image

from .errors import PageInsertionError
from .host import (
    SceneHost,
    Viewport,
    id_factory,
    new_asset_id,
    new_element_id,
    now_ms,
)
from .models import (
    PNG_MIME_TYPE,
    BinaryAsset,
    ElementId,
    ImageElement,
    PageEntry,
    PageFailure,
)

logger = logging.getLogger(__name__)

PAGE_MARGIN = 40
INSERT_DELAY = 0.01

# Upper bound for seed / version nonce, as used by the host
_MAX_RANDOM = 2**31 - 1


@dataclass
class InsertionResult:
    """Outcome of one insert_all() loop."""
    inserted: list[ElementId] = field(default_factory=list)
    failures: list[PageFailure] = field(default_factory=list)


def decode_dimensions(content: bytes) -> tuple[int, int]:
    """
    Return (width, height) of an encoded image.

    Raises:
        OSError: If the bytes are not a decodable image.
    """
    with Image.open(io.BytesIO(content)) as img:
        img.load()
        width, height = img.size
    if width <= 0 or height <= 0:
        raise OSError(f"image has no area ({width}x{height})")
    return width, height


def to_data_url(content: bytes, mime_type: str = PNG_MIME_TYPE) -> str:
    encoded = base64.b64encode(content).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def page_position(
    viewport: Viewport,
    width: float,
    height: float,
    ordinal: int,
    margin: float = PAGE_MARGIN,
) -> tuple[float, float]:
    """
    Top-left corner for the `ordinal`-th inserted page.

    The first page is centered on the visible canvas; each later page is
    shifted down by (height + margin) per ordinal position.
    """
    center_x, center_y = viewport.center()
    x = center_x - width / 2
    y = center_y - height / 2 + ordinal * (height + margin)
    return x, y


class SceneInserter:
    """
    Sole writer of the host scene for the duration of one loop.

    Args:
        host: The SceneHost receiving assets and elements.
        margin: Vertical gap between stacked pages.
        delay: Pause after each page, in seconds.
        rng: Random source for seeds and version nonces.
    """

    def __init__(
        self,
        host: SceneHost,
        margin: float = PAGE_MARGIN,
        delay: float = INSERT_DELAY,
        rng: Optional[random.Random] = None,
        make_id: Optional[Callable[[], str]] = None,
    ):
        self.host = host
        self.margin = margin
        self.delay = delay
        self._rng = rng or random.Random()
        self._make_id = make_id or id_factory(host)

    async def insert_all(self, entries: list[PageEntry]) -> InsertionResult:
        """
        Insert every page entry, in order, continuing past failures.

        Args:
            entries: Page entries already sorted by page index.

        Returns:
            InsertionResult with inserted element ids and per-page failures.
        """
        result = InsertionResult()
        elements: list[Any] = list(self.host.read_elements())
        viewport = self.host.get_viewport()

        logger.info(
            f"Inserting {len(entries)} pages into scene "
            f"({len(elements)} existing elements)"
        )

        for entry in entries:
            ordinal = len(result.inserted)
            try:
                element = await self._insert_page(entry, elements, viewport, ordinal)
            except Exception as e:
                reason = e.reason if isinstance(e, PageInsertionError) else str(e)
                logger.warning(f"Failed to insert page: {entry.name} ({reason})")
                result.failures.append(
                    PageFailure(name=entry.name, index=entry.index, reason=reason)
                )
            else:
                elements = [*elements, element]
                result.inserted.append(element.id)
                logger.debug(
                    f"Inserted {entry.name} as {element.id} "
                    f"at ({element.x:.1f}, {element.y:.1f})"
                )

            await asyncio.sleep(self.delay)

        logger.info(
            f"Inserted {len(result.inserted)}/{len(entries)} pages"
            + (f", {len(result.failures)} failed" if result.failures else "")
        )
        return result

    async def _insert_page(
        self,
        entry: PageEntry,
        elements: list[Any],
        viewport: Viewport,
        ordinal: int,
    ) -> ImageElement:
        # ── Step 1: Read and decode ───────────────────────────────────
        try:
            content = await asyncio.to_thread(entry.read)
        except (zipfile.BadZipFile, zlib.error, OSError, KeyError, ValueError) as e:
            raise PageInsertionError(entry.name, f"read failed: {e}") from e

        try:
            width, height = await asyncio.to_thread(decode_dimensions, content)
        except (OSError, SyntaxError, ValueError) as e:
            raise PageInsertionError(entry.name, f"decode failed: {e}") from e

        # ── Step 2: Register asset ────────────────────────────────────
        timestamp = now_ms()
        asset = BinaryAsset(
            id=new_asset_id(self._make_id),
            data_url=to_data_url(content),
            mime_type=PNG_MIME_TYPE,
            created=timestamp,
            last_retrieved=timestamp,
        )
        try:
            self.host.add_files([asset])
        except Exception as e:
            raise PageInsertionError(
                entry.name, f"asset registration failed: {e}"
            ) from e

        # ── Step 3: Placement ─────────────────────────────────────────
        x, y = page_position(viewport, width, height, ordinal, self.margin)

        # ── Step 4: Element ───────────────────────────────────────────
        element = ImageElement(
            id=new_element_id(self._make_id),
            file_id=asset.id,
            x=x,
            y=y,
            width=width,
            height=height,
            seed=self._rng.randint(1, _MAX_RANDOM),
            version_nonce=self._rng.randint(1, _MAX_RANDOM),
            updated=timestamp,
        )

        # ── Step 5: Push full sequence ────────────────────────────────
        self.host.write_elements([*elements, element])
        return element
