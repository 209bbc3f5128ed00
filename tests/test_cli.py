"""Tests for the command-line harness and CSV export."""

import asyncio
import csv
import json
from pathlib import Path
from unittest.mock import patch

import numpy as np
import pytest
from PIL import Image

from idscan.cli import _find_images, _write_csv, main, scan_file
from idscan.ocr.base import RecognizedLine, TextRecognizer
from idscan.scanner.orchestrator import ScanOrchestrator

LINES = [
    RecognizedLine("Name: John Q Public", 0.92),
    RecognizedLine("ID NO: A1O2I3", 0.88),
]


class FakeRecognizer(TextRecognizer):
    def __init__(self):
        self.closed = False

    async def recognize(self, image, token=None):
        return list(LINES)

    def close(self) -> None:
        self.closed = True


def _save_png(path: Path, pixels: np.ndarray) -> None:
    Image.fromarray(pixels).save(path, format="PNG")


class TestFindImages:
    """Tests for discovering photographs in a folder."""

    def test_finds_supported_extensions(self, tmp_path: Path) -> None:
        for name in ("a.png", "b.JPG", "c.tiff", "notes.txt"):
            (tmp_path / name).write_bytes(b"")
        names = [p.name for p in _find_images(tmp_path)]
        assert names == ["a.png", "b.JPG", "c.tiff"]

    def test_empty_dir(self, tmp_path: Path) -> None:
        assert _find_images(tmp_path) == []


class TestScanFile:
    """Tests for scanning a single file."""

    def test_undecodable_file(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.png"
        path.write_bytes(b"not an image")
        report = asyncio.run(scan_file(path, ScanOrchestrator(FakeRecognizer())))
        assert report["filename"] == "broken.png"
        assert report["result"]["kind"] == "image_conversion_failed"

    def test_missing_file(self, tmp_path: Path) -> None:
        path = tmp_path / "gone.png"
        report = asyncio.run(scan_file(path, ScanOrchestrator(FakeRecognizer())))
        assert report["filename"] == "gone.png"
        assert report["result"]["kind"] == "image_conversion_failed"

    @patch("idscan.cli.RawImage.from_path", side_effect=PermissionError("denied"))
    def test_unreadable_file(self, mock_from_path, tmp_path: Path) -> None:
        path = tmp_path / "locked.png"
        report = asyncio.run(scan_file(path, ScanOrchestrator(FakeRecognizer())))
        assert report["result"]["kind"] == "image_conversion_failed"
        assert "denied" in report["result"]["detail"]


class TestWriteCsv:
    """Tests for CSV export."""

    def test_meta_columns_first(self, tmp_path: Path) -> None:
        output = tmp_path / "out" / "results.csv"
        _write_csv(
            [
                {"filename": "a.png", "status": "success", "name": "Jane Doe"},
                {"filename": "b.png", "status": "failure", "detail": "No text"},
            ],
            output,
        )
        with open(output) as f:
            reader = csv.reader(f)
            header = next(reader)
        assert header == ["filename", "status", "detail", "name"]

    def test_no_rows_writes_nothing(self, tmp_path: Path) -> None:
        output = tmp_path / "results.csv"
        _write_csv([], output)
        assert not output.exists()


class TestMain:
    """Tests for the CLI entry point."""

    def test_scan_writes_json(self, tmp_path: Path, card_pixels: np.ndarray) -> None:
        image_path = tmp_path / "card.png"
        _save_png(image_path, card_pixels)
        output = tmp_path / "result.json"
        recognizer = FakeRecognizer()

        main(["scan", str(image_path), "-o", str(output)], recognizer=recognizer)

        report = json.loads(output.read_text())
        assert report["filename"] == "card.png"
        assert report["result"]["status"] == "success"
        assert report["result"]["fields"] == {
            "name": "John Q Public",
            "id_number": "A10213",
        }
        assert recognizer.closed

    def test_scan_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["scan", str(tmp_path / "missing.png")], recognizer=FakeRecognizer())
        assert exc_info.value.code == 1

    def test_batch_writes_csv(
        self, tmp_path: Path, card_pixels: np.ndarray, capsys: pytest.CaptureFixture
    ) -> None:
        input_dir = tmp_path / "photos"
        input_dir.mkdir()
        _save_png(input_dir / "good.png", card_pixels)
        (input_dir / "broken.png").write_bytes(b"not an image")
        output = tmp_path / "results.csv"

        main(["batch", str(input_dir), "-o", str(output)], recognizer=FakeRecognizer())

        with open(output) as f:
            rows = list(csv.DictReader(f))
        assert [row["filename"] for row in rows] == ["broken.png", "good.png"]
        assert rows[0]["status"] == "failure"
        assert rows[0]["error_kind"] == "image_conversion_failed"
        assert rows[1]["status"] == "success"
        assert rows[1]["id_number"] == "A10213"
        assert "Batch Scan Complete" in capsys.readouterr().out

    def test_batch_not_a_directory(self, tmp_path: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["batch", str(tmp_path / "nope")], recognizer=FakeRecognizer())
        assert exc_info.value.code == 1

    def test_no_command_prints_help(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 0
