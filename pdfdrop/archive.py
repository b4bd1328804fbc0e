"""
Archive Reader
==============
Reads the ZIP returned by the conversion service and lists its page
entries in page order.

Entry names look like `page-<n>.png`. Ordering is by the numeric value of
<n>, so page-10 sorts after page-2.
"""

from __future__ import annotations

import functools
import io
import logging
import re
import zipfile

from .errors import EmptyArchiveError
from .models import PageEntry

logger = logging.getLogger(__name__)

# Matches "page-1.png", "page-042.png"
PAGE_PATTERN = re.compile(r"^page-(\d+)\.png$")


class ConversionArchive:
    """
    In-memory view over the converter's ZIP response.

    Usable as a context manager; the underlying ZipFile is closed on exit.
    """

    def __init__(self, zf: zipfile.ZipFile):
        self._zf = zf

    @classmethod
    def from_bytes(cls, data: bytes) -> "ConversionArchive":
        """
        Raises:
            zipfile.BadZipFile: If `data` is not a ZIP archive.
        """
        return cls(zipfile.ZipFile(io.BytesIO(data), "r"))

    def names(self) -> list[str]:
        """All file entry names, directories excluded."""
        return [
            info.filename
            for info in self._zf.infolist()
            if not info.is_dir()
        ]

    def read(self, name: str) -> bytes:
        return self._zf.read(name)

    def close(self):
        self._zf.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


def open_archive(data: bytes) -> ConversionArchive:
    """Open a converter response body as an archive."""
    return ConversionArchive.from_bytes(data)


def parse_page_index(name: str):
    """Return the page number embedded in `name`, or None if it is not a page."""
    match = PAGE_PATTERN.match(name)
    if not match:
        return None
    return int(match.group(1))


class ArchiveReader:
    """Extracts and orders page entries from a ConversionArchive."""

    def list_pages(self, archive: ConversionArchive) -> list[PageEntry]:
        """
        List all page entries of the archive, ascending by page number.

        Entry bytes are not read here; each PageEntry reads its member when
        inserted, so the archive must stay open until insertion is done.

        Args:
            archive: The archive returned by the conversion service.

        Returns:
            Ordered list of PageEntry objects.

        Raises:
            EmptyArchiveError: If no entry matches the page naming pattern.
        """
        names = archive.names()
        indexed: list[tuple[int, str]] = []

        for name in names:
            index = parse_page_index(name)
            if index is None:
                logger.debug(f"Ignoring archive entry: {name}")
                continue
            indexed.append((index, name))

        if not indexed:
            logger.error(
                f"Archive has no page entries ({len(names)} entries scanned)"
            )
            raise EmptyArchiveError(len(names))

        # Names are unique, so the index alone decides the order
        indexed.sort(key=lambda item: item[0])

        pages = [
            PageEntry(
                name=name,
                index=index,
                loader=functools.partial(archive.read, name),
            )
            for index, name in indexed
        ]
        logger.info(
            f"Archive lists {len(pages)} pages "
            f"(first={pages[0].name}, last={pages[-1].name})"
        )
        return pages
