"""
Drop Pipeline
=============
Orchestrator that turns one dropped PDF into image elements on the host
scene.

Usage:
    pipeline = DropPipeline(host, notifier, config)
    report = await pipeline.run(payload)

Architecture:
    DropPayload → ConversionClient → ConversionArchive → ArchiveReader →
    PageEntries → SceneInserter → host scene (InsertionReport)

Every failure is contained here; run() never raises into the host.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

from .archive import ArchiveReader
from .client import (
    DEFAULT_DPI,
    DEFAULT_ENDPOINT,
    DEFAULT_SERVICE_URL,
    DEFAULT_UPLOAD_FIELD,
    ConversionClient,
)
from .errors import (
    CONVERSION_FAILED_MESSAGE,
    EMPTY_ARCHIVE_MESSAGE,
    ConversionError,
    EmptyArchiveError,
)
from .host import LogNotifier, Notifier, SceneHost
from .inserter import INSERT_DELAY, PAGE_MARGIN, SceneInserter
from .models import DropPayload, InsertionReport, PipelineStatus

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


@dataclass
class PipelineConfig:
    """Configuration for the drop pipeline."""

    # Conversion service
    service_url: str = DEFAULT_SERVICE_URL
    endpoint: str = DEFAULT_ENDPOINT
    dpi: int = DEFAULT_DPI
    upload_field: str = DEFAULT_UPLOAD_FIELD
    request_timeout: Optional[float] = None

    # Insertion
    page_margin: float = PAGE_MARGIN
    insert_delay: float = INSERT_DELAY

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls, **overrides) -> "PipelineConfig":
        """
        Build a config from PDFDROP_* environment variables.
        Explicit keyword overrides (e.g. CLI options) win; None means unset.
        """
        values = {}
        if os.environ.get("PDFDROP_SERVICE_URL"):
            values["service_url"] = os.environ["PDFDROP_SERVICE_URL"]
        if os.environ.get("PDFDROP_DPI"):
            values["dpi"] = int(os.environ["PDFDROP_DPI"])
        if os.environ.get("PDFDROP_LOG_LEVEL"):
            values["log_level"] = os.environ["PDFDROP_LOG_LEVEL"]

        known = {f.name for f in fields(cls)}
        for key, value in overrides.items():
            if key not in known:
                raise TypeError(f"Unknown config option: {key}")
            if value is not None:
                values[key] = value
        return cls(**values)


class DropPipeline:
    """
    Converts and inserts one dropped PDF at a time.

    Overlapping runs are not serialized against each other; each run reads
    the host scene once and writes it back page by page.
    """

    def __init__(
        self,
        host: SceneHost,
        notifier: Optional[Notifier] = None,
        config: Optional[PipelineConfig] = None,
        client: Optional[ConversionClient] = None,
        reader: Optional[ArchiveReader] = None,
        inserter: Optional[SceneInserter] = None,
    ):
        self.config = config or PipelineConfig()
        self.host = host
        self.notifier = notifier or LogNotifier()
        self.client = client or ConversionClient(
            service_url=self.config.service_url,
            endpoint=self.config.endpoint,
            dpi=self.config.dpi,
            upload_field=self.config.upload_field,
            timeout=self.config.request_timeout,
        )
        self.reader = reader or ArchiveReader()
        self.inserter = inserter or SceneInserter(
            host,
            margin=self.config.page_margin,
            delay=self.config.insert_delay,
        )
        self._setup_logging()

    def _setup_logging(self):
        """Configure the pdfdrop package logger based on config."""
        log_level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        package_logger = logging.getLogger("pdfdrop")
        package_logger.setLevel(log_level)

        if not package_logger.handlers:
            console = logging.StreamHandler()
            console.setLevel(log_level)
            console.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
            package_logger.addHandler(console)

        if self.config.log_file:
            log_path = Path(self.config.log_file)
            already = any(
                isinstance(h, logging.FileHandler)
                and Path(h.baseFilename) == log_path.absolute()
                for h in package_logger.handlers
            )
            if not already:
                log_path.parent.mkdir(parents=True, exist_ok=True)
                file_handler = logging.FileHandler(log_path, encoding="utf-8")
                file_handler.setLevel(log_level)
                file_handler.setFormatter(
                    logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)
                )
                package_logger.addHandler(file_handler)

    async def run(self, payload: DropPayload) -> InsertionReport:
        """
        Convert `payload` and insert its pages into the host scene.

        Returns:
            InsertionReport. Conversion and empty-archive failures are
            reported through the notifier and the report status.
        """
        start_time = time.time()
        report = InsertionReport(source_name=payload.name)

        try:
            # ── Phase 1: Remote conversion ────────────────────────────
            logger.info("Phase 1: Conversion")
            archive = await self.client.convert(payload)

            with archive:
                # ── Phase 2: Page listing ─────────────────────────────
                logger.info("Phase 2: Archive listing")
                pages = self.reader.list_pages(archive)
                report.pages_found = len(pages)

                # ── Phase 3: Scene insertion ──────────────────────────
                logger.info("Phase 3: Scene insertion")
                result = await self.inserter.insert_all(pages)

            report.inserted_element_ids = result.inserted
            report.failures = result.failures

        except ConversionError as e:
            logger.error(f"Conversion failed for {payload.name}: {e}")
            return self._fail(report, PipelineStatus.CONVERSION_FAILED,
                              CONVERSION_FAILED_MESSAGE)
        except EmptyArchiveError as e:
            logger.error(f"Nothing to insert for {payload.name}: {e}")
            return self._fail(report, PipelineStatus.EMPTY_ARCHIVE,
                              EMPTY_ARCHIVE_MESSAGE)
        except Exception:
            logger.exception(f"Unexpected failure while handling {payload.name}")
            return self._fail(report, PipelineStatus.FAILED,
                              CONVERSION_FAILED_MESSAGE)

        elapsed = time.time() - start_time
        logger.info(
            f"Drop complete in {elapsed:.2f}s — "
            f"{report.inserted_count}/{report.pages_found} pages inserted"
        )
        return report

    def _fail(
        self,
        report: InsertionReport,
        status: PipelineStatus,
        message: str,
    ) -> InsertionReport:
        report.status = status
        report.message = message
        try:
            self.notifier.notify(message)
        except Exception as e:
            logger.error(f"Notifier failed: {e}")
        return report
