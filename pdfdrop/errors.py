"""
Pipeline Errors
===============
Failures raised by the leaf components and contained by DropPipeline.
"""

from __future__ import annotations

from typing import Optional


CONVERSION_FAILED_MESSAGE = "PDF conversion failed"
EMPTY_ARCHIVE_MESSAGE = "The converted PDF contained no pages"


class PdfDropError(Exception):
    """Base class for all pipeline errors."""


class ConversionError(PdfDropError):
    """
    The remote converter could not produce an archive.

    `status` is the HTTP status code, or None when the request never got a
    response (connection refused, DNS failure, ...).
    """

    def __init__(self, status: Optional[int], message: str = ""):
        self.status = status
        detail = message or f"convert failed: {status}"
        super().__init__(detail)


class EmptyArchiveError(PdfDropError):
    """The archive held no entry named like a rasterized page."""

    def __init__(self, entry_count: int = 0):
        self.entry_count = entry_count
        super().__init__(
            f"No page entries found in archive ({entry_count} entries scanned)"
        )


class PageInsertionError(PdfDropError):
    """One page could not be decoded or registered with the host."""

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Failed to insert page {name}: {reason}")
