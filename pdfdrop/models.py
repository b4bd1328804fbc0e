"""
Data Models
===========
Pydantic models for the drop-to-canvas pipeline.

Scene-facing models (BinaryAsset, ImageElement) serialize with camelCase
aliases so a dumped scene matches the host's own JSON format.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel
from pydantic_core import core_schema


PDF_MIME_TYPE = "application/pdf"
PNG_MIME_TYPE = "image/png"


# ─── Identifiers ──────────────────────────────────────────────────────────────


_ID_PATTERN = re.compile(r"^\S+$")


class _OpaqueId(str):
    """
    Nominal string identifier.

    Subclasses are distinct types: an AssetId is never accepted where an
    ElementId is expected, even though both are plain strings on the wire.
    """

    def __new__(cls, value: str):
        if isinstance(value, _OpaqueId) and not isinstance(value, cls):
            raise ValueError(
                f"{type(value).__name__} cannot be used as {cls.__name__}"
            )
        if not isinstance(value, str) or not _ID_PATTERN.match(value):
            raise ValueError(f"Invalid {cls.__name__}: {value!r}")
        return super().__new__(cls, value)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str.__repr__(self)})"

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type, handler):
        return core_schema.no_info_after_validator_function(
            cls,
            core_schema.str_schema(),
            serialization=core_schema.plain_serializer_function_ser_schema(str),
        )


class AssetId(_OpaqueId):
    """Identifier of a binary asset registered with the host."""


class ElementId(_OpaqueId):
    """Identifier of a scene element."""


# ─── Enums ────────────────────────────────────────────────────────────────────


class PipelineStatus(str, Enum):
    """Outcome of one drop handled by the pipeline."""
    COMPLETED = "completed"
    CONVERSION_FAILED = "conversion_failed"
    EMPTY_ARCHIVE = "empty_archive"
    FAILED = "failed"


# ─── Drop / Archive Models ────────────────────────────────────────────────────


class DropPayload(BaseModel):
    """A file taken from a drop event."""
    name: str
    mime_type: str = ""
    content: bytes = Field(repr=False)

    @property
    def is_pdf(self) -> bool:
        return self.mime_type == PDF_MIME_TYPE

    @property
    def size(self) -> int:
        return len(self.content)


class PageEntry(BaseModel):
    """
    One rasterized page recognized in the converter's archive.
    Ordered by `index`, never by name.

    Bytes are either held in `content` or pulled on demand through `loader`,
    so a corrupt archive member only fails when that page is read.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    index: int = Field(ge=0)
    content: Optional[bytes] = Field(default=None, repr=False)
    loader: Optional[Callable[[], bytes]] = Field(
        default=None, repr=False, exclude=True
    )

    def read(self) -> bytes:
        """
        Return the page bytes.

        Raises:
            zipfile.BadZipFile, zlib.error: If the archive member is corrupt.
        """
        if self.content is not None:
            return self.content
        if self.loader is None:
            raise ValueError(f"Page {self.name} has no content")
        return self.loader()


# ─── Scene Models ─────────────────────────────────────────────────────────────


class _SceneModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_scene_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class BinaryAsset(_SceneModel):
    """A binary file registered with the host and referenced by id."""
    id: AssetId
    data_url: str = Field(
        alias="dataURL",
        repr=False,
        description="Base64 data URL of the raw image bytes",
    )
    mime_type: str = PNG_MIME_TYPE
    created: int = Field(description="Creation time, epoch milliseconds")
    last_retrieved: int = Field(description="Last access, epoch milliseconds")


class ImageElement(_SceneModel):
    """
    An image entity in the host scene.
    Holds exactly one asset reference plus the host's render/undo bookkeeping.
    """
    type: str = "image"
    id: ElementId
    file_id: AssetId
    x: float
    y: float
    width: float = Field(gt=0)
    height: float = Field(gt=0)
    angle: float = 0

    # Neutral styling
    stroke_color: str = "transparent"
    background_color: str = "transparent"
    fill_style: str = "solid"
    stroke_width: int = 1
    stroke_style: str = "solid"
    roughness: int = 0
    opacity: int = 100
    group_ids: list[str] = Field(default_factory=list)
    frame_id: Optional[str] = None
    roundness: Optional[dict] = None
    bound_elements: Optional[list] = None
    link: Optional[str] = None
    locked: bool = False

    # Bookkeeping
    seed: int
    version: int = 1
    version_nonce: int
    is_deleted: bool = False
    updated: int
    status: str = "saved"
    scale: tuple[float, float] = (1.0, 1.0)


# ─── Report Models ────────────────────────────────────────────────────────────


class PageFailure(BaseModel):
    """A page that could not be inserted."""
    name: str
    index: int
    reason: str


class InsertionReport(BaseModel):
    """
    Result of one pipeline run.
    Partial success (some failures, some insertions) is still COMPLETED.
    """
    source_name: str = ""
    status: PipelineStatus = PipelineStatus.COMPLETED
    pages_found: int = 0
    inserted_element_ids: list[ElementId] = Field(default_factory=list)
    failures: list[PageFailure] = Field(default_factory=list)
    message: Optional[str] = None

    @computed_field
    @property
    def inserted_count(self) -> int:
        return len(self.inserted_element_ids)

    @computed_field
    @property
    def failed_count(self) -> int:
        return len(self.failures)
