"""Command-line harness for scanning ID photographs.

Provides subcommands for scanning a single photograph to JSON and for
scanning a folder of photographs with results exported to CSV.
"""

import argparse
import asyncio
import csv
import json
import sys
import time
from pathlib import Path

from idscan.imaging.image import RawImage
from idscan.ocr.base import TextRecognizer
from idscan.ocr.tesseract_engine import TesseractRecognizer
from idscan.scanner.errors import ScanErrorKind, ScanFailure
from idscan.scanner.orchestrator import ScanOrchestrator
from idscan.utils.config import AppConfig, load_config
from idscan.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)

_SUPPORTED_EXTENSIONS = ("*.png", "*.jpg", "*.jpeg", "*.tiff", "*.tif", "*.bmp")
_META_COLUMNS = [
    "filename",
    "status",
    "error_kind",
    "quality",
    "used_fallback",
    "processing_time_s",
    "detail",
]


def _find_images(input_dir: Path) -> list[Path]:
    """Find all supported image files in a directory.

    Args:
        input_dir: Directory to scan for photographs.

    Returns:
        Sorted list of image file paths.
    """
    files: list[Path] = []
    for ext in _SUPPORTED_EXTENSIONS:
        files.extend(input_dir.glob(ext))
        files.extend(input_dir.glob(ext.upper()))
    return sorted(set(files))


def build_orchestrator(
    config: AppConfig, recognizer: TextRecognizer | None = None
) -> ScanOrchestrator:
    """Create an orchestrator wired to Tesseract unless a recognizer is given."""
    return ScanOrchestrator(recognizer or TesseractRecognizer(config.ocr), config)


async def scan_file(
    file_path: Path, orchestrator: ScanOrchestrator, scale: float = 1.0
) -> dict[str, object]:
    """Scan one photograph and return a JSON-serializable report.

    Args:
        file_path: Path to the photograph.
        orchestrator: Orchestrator to run the scan with.
        scale: Capture scale factor of the photograph.

    Returns:
        Report with the filename and the attempt details.
    """
    try:
        image = RawImage.from_path(file_path, scale)
    except (ValueError, OSError) as exc:
        failure = ScanFailure(ScanErrorKind.IMAGE_CONVERSION_FAILED, str(exc))
        return {"filename": file_path.name, "result": failure.to_dict()}

    attempt = await orchestrator.scan(image)
    return {"filename": file_path.name, **attempt.to_dict()}


def _to_row(report: dict[str, object], elapsed: float) -> dict[str, object]:
    result = report["result"]
    quality = report.get("quality")
    row: dict[str, object] = {
        "filename": report["filename"],
        "status": result["status"],
        "error_kind": result.get("kind"),
        "quality": quality["level"] if quality else None,
        "used_fallback": report.get("used_fallback", False),
        "processing_time_s": round(elapsed, 2),
        "detail": result.get("detail"),
    }
    row.update(result.get("fields", {}))
    return row


async def process_folder(
    input_dir: Path,
    output_csv: Path,
    orchestrator: ScanOrchestrator,
    scale: float = 1.0,
    verbose: bool = False,
) -> dict[str, int]:
    """Scan all photographs in a folder and export results to CSV.

    Args:
        input_dir: Directory containing photographs.
        output_csv: Path for the output CSV file.
        orchestrator: Orchestrator to run the scans with.
        scale: Capture scale factor applied to every photograph.
        verbose: Whether to print per-file progress.

    Returns:
        Summary dict with total, successful, and failed counts.
    """
    files = _find_images(input_dir)
    if not files:
        logger.warning("No images found in %s", input_dir)
        return {"total": 0, "successful": 0, "failed": 0}

    logger.info("Found %d images to scan", len(files))

    rows: list[dict[str, object]] = []
    successful = 0
    for i, file_path in enumerate(files, 1):
        if verbose:
            print(f"Scanning [{i}/{len(files)}]: {file_path.name}")
        start_time = time.time()
        report = await scan_file(file_path, orchestrator, scale)
        row = _to_row(report, time.time() - start_time)
        if row["status"] == "success":
            successful += 1
        rows.append(row)

    _write_csv(rows, output_csv)
    logger.info("Results written to %s", output_csv)

    summary = {
        "total": len(files),
        "successful": successful,
        "failed": len(files) - successful,
    }
    _print_summary(summary, output_csv)
    return summary


def _write_csv(rows: list[dict[str, object]], output_path: Path) -> None:
    """Write scan results to a CSV file.

    Args:
        rows: List of result rows.
        output_path: Path for the output CSV file.
    """
    if not rows:
        return

    all_keys: set[str] = set()
    for r in rows:
        all_keys.update(r.keys())

    field_columns = sorted(all_keys - set(_META_COLUMNS))
    columns = [c for c in _META_COLUMNS if c in all_keys] + field_columns

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=columns, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(rows)


def _print_summary(summary: dict[str, int], output_csv: Path) -> None:
    print(f"\n{'=' * 50}")
    print("Batch Scan Complete")
    print(f"{'=' * 50}")
    print(f"Total:      {summary['total']}")
    print(f"Successful: {summary['successful']}")
    print(f"Failed:     {summary['failed']}")
    print(f"Output:     {output_csv}")


def main(argv: list[str] | None = None, recognizer: TextRecognizer | None = None) -> None:
    """Parse CLI arguments and dispatch to the appropriate command.

    Args:
        argv: Command-line arguments (defaults to sys.argv).
        recognizer: Recognizer to use instead of Tesseract.
    """
    parser = argparse.ArgumentParser(
        description="ID Document Scanner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-c", "--config", type=Path, default=None, help="YAML configuration file"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    scan_parser = subparsers.add_parser("scan", help="Scan a single ID photograph")
    scan_parser.add_argument("image", type=Path, help="Photograph to scan")
    scan_parser.add_argument(
        "--scale", type=float, default=1.0, help="Capture scale factor (default: 1.0)"
    )
    scan_parser.add_argument("-o", "--output", type=Path, help="Output JSON file")

    batch_parser = subparsers.add_parser("batch", help="Scan a folder of photographs")
    batch_parser.add_argument(
        "input_dir", type=Path, help="Input directory with photographs"
    )
    batch_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("results.csv"),
        help="Output CSV file (default: results.csv)",
    )
    batch_parser.add_argument(
        "--scale", type=float, default=1.0, help="Capture scale factor (default: 1.0)"
    )
    batch_parser.add_argument(
        "-v", "--verbose", action="store_true", help="Verbose output"
    )

    args = parser.parse_args(argv)

    config = load_config(args.config)
    setup_logging(config.log_level)

    if args.command == "scan":
        if not args.image.exists():
            print(f"Error: {args.image} does not exist", file=sys.stderr)
            sys.exit(1)
        orchestrator = build_orchestrator(config, recognizer)
        try:
            report = asyncio.run(scan_file(args.image, orchestrator, args.scale))
        finally:
            orchestrator.recognizer.close()
        output_str = json.dumps(report, indent=2)
        if args.output:
            args.output.parent.mkdir(parents=True, exist_ok=True)
            args.output.write_text(output_str)
            print(f"Output written to {args.output}")
        else:
            print(output_str)
    elif args.command == "batch":
        if not args.input_dir.is_dir():
            print(f"Error: {args.input_dir} is not a directory", file=sys.stderr)
            sys.exit(1)
        orchestrator = build_orchestrator(config, recognizer)
        try:
            asyncio.run(
                process_folder(
                    args.input_dir, args.output, orchestrator, args.scale, args.verbose
                )
            )
        finally:
            orchestrator.recognizer.close()
    else:
        parser.print_help()
        sys.exit(0)


if __name__ == "__main__":
    main()
