"""SVG export side effect handled by the relay.

The plugin can send `{"type": "export_svg", "content": ..., "fileName": ...}`
inside a message frame. Instead of broadcasting it, the relay writes the
content through a BlobWriter and answers only the sender with an
`export_result` payload.

Writes run on a bounded thread pool so a large file does not stall frame
processing for other connections.
"""

from __future__ import annotations

import asyncio
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from .errors import ExportError
from .protocol.frames import EXPORT_RESULT, ExportSvgPayload

logger = logging.getLogger(__name__)

MIN_SVG_LENGTH = 10
DEFAULT_EXPORT_WORKERS = 4


@runtime_checkable
class BlobWriter(Protocol):
    """Persists exported content and returns where it ended up."""

    def write_blob(self, name: str, data: bytes) -> Path:
        """Write `data` under `name` and return the absolute path."""
        ...


class DirectoryBlobWriter:
    """BlobWriter that stores files under a root directory."""

    def __init__(self, root: str | Path | None = None) -> None:
        self.root = Path(root if root is not None else Path.cwd()).resolve()

    def write_blob(self, name: str, data: bytes) -> Path:
        path = (self.root / name).resolve()
        if not path.is_relative_to(self.root):
            raise ExportError(f"File name escapes export directory: {name}")

        logger.info(f"Saving SVG to absolute path: {path}")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

        if not path.exists():
            raise ExportError("File was not created")
        logger.info(f"File saved successfully. Size: {path.stat().st_size} bytes")
        return path


def default_export_name(now: datetime | None = None) -> str:
    """Timestamped file name used when the plugin does not supply one."""
    now = now or datetime.now(UTC)
    stamp = now.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"
    return f"figma_export_{re.sub(r'[:.]', '-', stamp)}.svg"


@dataclass
class ExportResult:
    """Outcome of one export request."""

    success: bool
    file_name: str | None = None
    path: str | None = None
    error: str | None = None
    request_id: Any = None

    def to_message(self) -> dict[str, Any]:
        """Build the `export_result` payload sent back to the exporter.

        The payload carries `result` or `error` next to the originating `id`
        so a correlation-aware caller can settle its pending request.
        """
        message: dict[str, Any] = {"type": EXPORT_RESULT, "success": self.success}
        if self.request_id is not None:
            message["id"] = self.request_id
        if self.success:
            message["fileName"] = self.file_name
            message["path"] = self.path
            message["result"] = {"fileName": self.file_name, "path": self.path}
        else:
            message["error"] = self.error
        return message


class SvgExporter:
    """Runs export requests on a bounded worker pool."""

    def __init__(
        self,
        writer: BlobWriter | None = None,
        max_workers: int = DEFAULT_EXPORT_WORKERS,
    ) -> None:
        self._writer = writer or DirectoryBlobWriter()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="svg-export",
        )

    async def export(self, request: ExportSvgPayload) -> ExportResult:
        """Validate and write one export request.

        Never raises for request or I/O problems; those become a failed result.
        """
        content = request.content
        logger.debug(f"SVG content length: {len(content) if content else 0}")

        try:
            if not content or len(content) < MIN_SVG_LENGTH:
                raise ExportError("Invalid SVG content received")

            name = request.file_name or default_export_name()
            loop = asyncio.get_running_loop()
            path = await loop.run_in_executor(
                self._executor,
                self._writer.write_blob,
                name,
                content.encode("utf-8"),
            )
        except (ExportError, OSError, ValueError) as e:
            logger.error(f"Error saving SVG file: {e}")
            return ExportResult(success=False, error=str(e), request_id=request.id)

        return ExportResult(
            success=True,
            file_name=name,
            path=str(path),
            request_id=request.id,
        )

    def shutdown(self) -> None:
        """Stop accepting new work; in-flight writes finish in the background."""
        self._executor.shutdown(wait=False)
