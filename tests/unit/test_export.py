"""Unit tests for the SVG export side effect."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pytest

from figma_bridge.errors import ExportError
from figma_bridge.export import (
    BlobWriter,
    DirectoryBlobWriter,
    ExportResult,
    SvgExporter,
    default_export_name,
)
from figma_bridge.protocol import ExportSvgPayload

SVG = '<svg xmlns="http://www.w3.org/2000/svg"></svg>'


class MemoryBlobWriter:
    """BlobWriter that keeps files in a dict."""

    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}

    def write_blob(self, name: str, data: bytes) -> Path:
        self.blobs[name] = data
        return Path("/virtual") / name


class FailingBlobWriter:
    def write_blob(self, name: str, data: bytes) -> Path:
        raise PermissionError("read-only file system")


@pytest.fixture
def exporter_factory():
    exporters: list[SvgExporter] = []

    def factory(writer: BlobWriter) -> SvgExporter:
        exporter = SvgExporter(writer, max_workers=1)
        exporters.append(exporter)
        return exporter

    yield factory
    for exporter in exporters:
        exporter.shutdown()


class TestDirectoryBlobWriter:
    """Tests for DirectoryBlobWriter."""

    def test_writes_file(self, tmp_path: Path) -> None:
        writer = DirectoryBlobWriter(tmp_path)
        path = writer.write_blob("out.svg", b"<svg></svg>")

        assert path == (tmp_path / "out.svg").resolve()
        assert path.read_bytes() == b"<svg></svg>"

    def test_rejects_escaping_names(self, tmp_path: Path) -> None:
        """Names may not leave the export directory."""
        writer = DirectoryBlobWriter(tmp_path / "exports")

        with pytest.raises(ExportError):
            writer.write_blob("../outside.svg", b"<svg></svg>")
        assert not (tmp_path / "outside.svg").exists()

    def test_defaults_to_cwd(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        assert DirectoryBlobWriter().root == tmp_path.resolve()


class TestDefaultExportName:
    def test_timestamped_name(self) -> None:
        """Separators in the timestamp are replaced so the name is filesystem-safe."""
        now = datetime(2024, 3, 5, 14, 7, 9, 123456, tzinfo=UTC)
        assert default_export_name(now) == "figma_export_2024-03-05T14-07-09-123Z.svg"


class TestExportResult:
    """Tests for the export_result payload."""

    def test_success_message(self) -> None:
        result = ExportResult(success=True, file_name="a.svg", path="/x/a.svg", request_id="r1")

        assert result.to_message() == {
            "type": "export_result",
            "success": True,
            "id": "r1",
            "fileName": "a.svg",
            "path": "/x/a.svg",
            "result": {"fileName": "a.svg", "path": "/x/a.svg"},
        }

    def test_failure_message_without_id(self) -> None:
        result = ExportResult(success=False, error="boom")

        assert result.to_message() == {"type": "export_result", "success": False, "error": "boom"}


class TestSvgExporter:
    """Tests for SvgExporter."""

    @pytest.mark.asyncio
    async def test_export_writes_content(self, exporter_factory) -> None:
        writer = MemoryBlobWriter()
        exporter = exporter_factory(writer)

        result = await exporter.export(
            ExportSvgPayload(type="export_svg", content=SVG, file_name="page.svg", id="e1")
        )

        assert result.success is True
        assert result.file_name == "page.svg"
        assert result.path == str(Path("/virtual/page.svg"))
        assert result.request_id == "e1"
        assert writer.blobs["page.svg"] == SVG.encode("utf-8")

    @pytest.mark.asyncio
    async def test_default_file_name(self, exporter_factory) -> None:
        writer = MemoryBlobWriter()
        exporter = exporter_factory(writer)

        result = await exporter.export(ExportSvgPayload(type="export_svg", content=SVG))

        assert result.success is True
        assert result.file_name.startswith("figma_export_")
        assert result.file_name.endswith(".svg")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", [None, "", "<svg/>"])
    async def test_short_content_rejected(self, exporter_factory, content) -> None:
        writer = MemoryBlobWriter()
        exporter = exporter_factory(writer)

        result = await exporter.export(ExportSvgPayload(type="export_svg", content=content))

        assert result.success is False
        assert result.error == "Invalid SVG content received"
        assert writer.blobs == {}

    @pytest.mark.asyncio
    async def test_write_failure_becomes_result(self, exporter_factory) -> None:
        """I/O errors are reported to the caller rather than raised."""
        exporter = exporter_factory(FailingBlobWriter())

        result = await exporter.export(
            ExportSvgPayload(type="export_svg", content=SVG, id="e2")
        )

        assert result.success is False
        assert "read-only" in result.error
        assert result.request_id == "e2"
