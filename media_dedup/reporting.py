import csv
import logging
from pathlib import Path

from . import config
from .models import Report

GB = 1024.0 ** 3
NO_MEDIA_NOTICE = "No supported media files found."


def format_summary(report: Report) -> str:
    if report.files_scanned == 0 and not report.cancelled:
        return NO_MEDIA_NOTICE

    verb = "moved" if report.mode.value == "move" else "copied"
    lines = [
        "Organization Cancelled!" if report.cancelled else "Organization Complete!",
        "",
        f"Media files scanned: {report.files_scanned}",
        f"Unique files {verb}: {report.unique_count}",
        f"Duplicates found: {report.duplicate_count}",
        f"Space saved: {report.reclaimed_bytes / GB:.2f} GB",
    ]
    if report.target_root is not None:
        lines.append(f"Duplicates are in: {report.target_root / config.DUPLICATES_DIRNAME}")
    if report.has_errors:
        lines += ["", f"Some errors occurred during processing ({len(report.errors)} entries)."]
    return "\n".join(lines)


def format_details(report: Report) -> str:
    """Duplicate listing plus error log, as offered after a run."""
    lines = ["=== DUPLICATE FILES ==="]
    lines += [str(p) for p in report.duplicate_paths]
    lines.append("")
    lines.append(f"Total duplicates: {report.duplicate_count} ({report.reclaimed_bytes / GB:.2f} GB)")

    if report.has_errors:
        lines += ["", "=== ERROR LOG ==="]
        for e in report.errors:
            level = "WARNING" if e.kind == "MetadataError" else "ERROR"
            target = f" -> {e.dest_path}" if e.dest_path else ""
            lines.append(f"[{level}] {e.op} {e.path}{target}: {e.message}")
    return "\n".join(lines) + "\n"


def needs_details(report: Report) -> bool:
    return report.duplicate_count > 0 or report.has_errors


def write_details(report: Report, output: Path):
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(format_details(report), encoding="utf-8")
    logging.info(f"Detailed report written to {output}")


def write_report_csv(report: Report, output_csv: Path):
    """One row per duplicate and per error entry."""
    headers = ["Status", "Kind", "Operation", "Source Path", "Destination Path", "Message"]
    output_csv = Path(output_csv)
    output_csv.parent.mkdir(parents=True, exist_ok=True)

    with open(output_csv, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(headers)
        for path in report.duplicate_paths:
            writer.writerow(["Duplicate", "", "", str(path), "", ""])
        for e in report.errors:
            writer.writerow([
                "Error",
                e.kind,
                e.op,
                str(e.path),
                str(e.dest_path) if e.dest_path else "",
                e.message,
            ])

    logging.info(f"CSV report written to {output_csv}")
