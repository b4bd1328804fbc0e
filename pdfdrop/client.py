"""
Conversion Client
=================
Sends a dropped PDF to the remote rasterization service and returns the
archive of rendered pages.

Wire contract:
    POST {service_url}/convert?dpi=250
    multipart/form-data, field "pdf" → the PDF bytes
    2xx → ZIP body with page-<n>.png entries
"""

from __future__ import annotations

import asyncio
import logging
import zipfile
from typing import Optional

import requests

from .archive import ConversionArchive, open_archive
from .errors import ConversionError
from .models import PDF_MIME_TYPE, DropPayload

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_URL = "http://localhost:8080"
DEFAULT_ENDPOINT = "/convert"
DEFAULT_DPI = 250
DEFAULT_UPLOAD_FIELD = "pdf"


class ConversionClient:
    """
    Client for the external PDF → PNG conversion service.

    The HTTP call is blocking (requests), so it runs in a worker thread and
    is awaited immediately; callers see a single cooperative await.
    """

    def __init__(
        self,
        service_url: str = DEFAULT_SERVICE_URL,
        endpoint: str = DEFAULT_ENDPOINT,
        dpi: int = DEFAULT_DPI,
        upload_field: str = DEFAULT_UPLOAD_FIELD,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.service_url = service_url.rstrip("/")
        self.endpoint = endpoint if endpoint.startswith("/") else f"/{endpoint}"
        self.dpi = dpi
        self.upload_field = upload_field
        self.timeout = timeout
        self._session = session

    @property
    def url(self) -> str:
        return f"{self.service_url}{self.endpoint}"

    async def convert(self, payload: DropPayload) -> ConversionArchive:
        """
        Convert a PDF into an archive of page images.

        Args:
            payload: The dropped PDF.

        Returns:
            The opened ConversionArchive.

        Raises:
            ConversionError: On transport failure, a non-2xx status, or a
                response body that is not a ZIP archive.
        """
        logger.info(
            f"Converting {payload.name} ({payload.size} bytes) via {self.url}"
        )
        response = await asyncio.to_thread(self._post, payload)

        if not 200 <= response.status_code < 300:
            logger.error(
                f"Conversion service returned {response.status_code} "
                f"for {payload.name}"
            )
            raise ConversionError(response.status_code)

        try:
            archive = open_archive(response.content)
        except zipfile.BadZipFile as e:
            logger.error(f"Conversion response is not a ZIP archive: {e}")
            raise ConversionError(
                response.status_code, f"invalid archive: {e}"
            ) from e

        logger.info(f"Received archive ({len(response.content)} bytes)")
        return archive

    def _post(self, payload: DropPayload) -> requests.Response:
        """Issue the upload request. Runs in a worker thread."""
        files = {
            self.upload_field: (
                payload.name,
                payload.content,
                payload.mime_type or PDF_MIME_TYPE,
            ),
        }
        post = self._session.post if self._session else requests.post
        try:
            return post(
                self.url,
                params={"dpi": self.dpi},
                files=files,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Cannot reach conversion service at {self.url}: {e}")
            raise ConversionError(None, f"request failed: {e}") from e
