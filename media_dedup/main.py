import argparse
import logging
import sys
import threading
from pathlib import Path
from typing import Optional

from tqdm import tqdm

from . import config
from .core import MediaOrganizerApp
from .exceptions import ValidationError
from .models import KeeperRule, Phase, Report, TransferMode
from .reporting import format_summary, needs_details, write_details, write_report_csv

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def setup_logging(verbose: bool):
    """Console logging; the log file is attached once the target is known to be valid."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Silence chatty libraries
    logging.getLogger("exifread").setLevel(logging.ERROR)
    logging.getLogger("pymediainfo").setLevel(logging.WARNING)


def attach_log_file(dest_root: Path):
    dest_root.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(dest_root / config.LOG_FILENAME, encoding='utf-8')
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger().addHandler(handler)


class TqdmProgress:
    """Progress callback drawing one tqdm bar per phase."""

    def __init__(self):
        self._phase: Optional[Phase] = None
        self._bar: Optional[tqdm] = None

    def __call__(self, phase: Phase, completed: int, total: int, current: Optional[str]):
        if phase != self._phase:
            self.close()
            self._phase = phase
            self._bar = tqdm(total=total, desc=phase.value.capitalize(), unit="file")
        self._bar.update(completed - self._bar.n)
        if current:
            self._bar.set_postfix_str(current, refresh=False)

    def close(self):
        if self._bar is not None:
            self._bar.close()
            self._bar = None


def parse_extensions(value: str):
    return [ext for ext in value.split(",") if ext.strip()]


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Find exact duplicate photos/videos and organize the rest by capture date")

    p.add_argument("src", type=Path, help="Source directory to scan")
    p.add_argument("dest", type=Path, help="Destination library root")

    mode = p.add_mutually_exclusive_group()
    mode.add_argument("--move", dest="mode", action="store_const", const=TransferMode.MOVE,
                      help="Move files out of the source (default)")
    mode.add_argument("--copy", dest="mode", action="store_const", const=TransferMode.COPY,
                      help="Copy files, leaving the source untouched")
    p.set_defaults(mode=TransferMode.MOVE)

    p.add_argument("-w", "--workers", type=int, default=config.default_concurrency(),
                   help="Parallel hashing workers (default: half the CPU cores)")
    p.add_argument("--ext", type=parse_extensions, default=None,
                   help="Comma separated extensions to process (default: common photo/video types)")
    p.add_argument("--keeper", type=KeeperRule, choices=list(KeeperRule), default=KeeperRule.ARRIVAL,
                   metavar="{arrival,path}",
                   help="Which copy of a duplicate set is kept in the date tree")
    p.add_argument("--report-csv", type=Path, default=None,
                   help="Also write duplicates and errors to this CSV file")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    return p.parse_args(argv)


def run_cancellable(app: MediaOrganizerApp, args, progress) -> Report:
    """
    Runs the pipeline on a worker thread so Ctrl+C can request a clean stop
    at the next file boundary instead of killing a transfer midway.
    """
    cancel_event = threading.Event()
    outcome = {}

    def target():
        try:
            outcome["report"] = app.run(
                args.src, args.dest, args.mode, args.workers, progress,
                extensions=args.ext, keeper_rule=args.keeper, cancel_event=cancel_event)
        except BaseException as e:
            outcome["error"] = e

    worker = threading.Thread(target=target, name="media-dedup-pipeline")
    worker.start()
    try:
        while worker.is_alive():
            worker.join(0.2)
    except KeyboardInterrupt:
        logging.warning("Cancellation requested, finishing current file...")
        cancel_event.set()
        worker.join()

    if "error" in outcome:
        raise outcome["error"]
    return outcome["report"]


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose)

    app = MediaOrganizerApp()
    try:
        _, dest_root = app.validate(args.src, args.dest, args.workers)
    except ValidationError as e:
        logging.error(str(e))
        return 2

    attach_log_file(dest_root)
    logging.info("=== Media Dedup Organizer Started ===")

    progress = TqdmProgress()
    try:
        report = run_cancellable(app, args, progress)
    except ValidationError as e:
        logging.error(str(e))
        return 2
    except Exception:
        logging.exception("Fatal error during organization.")
        return 1
    finally:
        progress.close()

    print(format_summary(report))
    if needs_details(report):
        details = dest_root / config.REPORT_FILENAME
        write_details(report, details)
        print(f"\nDuplicate list and error log: {details}")
    if args.report_csv:
        write_report_csv(report, args.report_csv)

    return 1 if report.cancelled else 0


if __name__ == "__main__":
    sys.exit(main())
