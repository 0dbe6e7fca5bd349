import logging
import threading
from pathlib import Path
from typing import Iterable, Optional, Union

from . import config
from .exceptions import PipelineBusyError, ValidationError
from .metadata.extract import CaptureDateResolver
from .models import KeeperRule, Phase, ProgressCallback, Report, TransferMode
from .organization.mover import Organizer
from .scanning.filesystem import MediaScanner
from .scanning.grouping import DuplicateGrouper
from .scanning.hasher import FileHasher

PathLike = Union[str, Path]


class MediaOrganizerApp:
    """
    Runs the scan -> hash -> organize pipeline.

    State moves IDLE -> SCANNING -> HASHING -> ORGANIZING -> DONE. Only
    ORGANIZING touches the filesystem. A finished app can be run again;
    every run rescans from scratch.
    """

    def __init__(self,
                 hasher: Optional[FileHasher] = None,
                 resolver: Optional[CaptureDateResolver] = None):
        self.hasher = hasher or FileHasher()
        self.resolver = resolver
        self.state = Phase.IDLE
        self._run_lock = threading.Lock()

    def run(self,
            source_root: Optional[PathLike],
            target_root: Optional[PathLike],
            mode: TransferMode = TransferMode.MOVE,
            concurrency: Optional[int] = None,
            progress: Optional[ProgressCallback] = None,
            *,
            extensions: Optional[Iterable[str]] = None,
            keeper_rule: KeeperRule = KeeperRule.ARRIVAL,
            cancel_event: Optional[threading.Event] = None) -> Report:
        """
        Executes one organization run.

        Args:
            source_root: Tree to scan. Must be an existing directory.
            target_root: Library root; created on first placement.
            mode: Move or copy files out of the source tree.
            concurrency: Hashing workers (default: half the cores).
            progress: Called as progress(phase, completed, total, current_item).
            extensions: Recognized media extensions (default: config.MEDIA_EXTS).
            keeper_rule: Which group member lands in the date tree.
            cancel_event: When set, stops at the next file boundary.

        Raises:
            ValidationError: bad arguments; nothing has been touched.
            PipelineBusyError: this app is already running.
        """
        if not self._run_lock.acquire(blocking=False):
            raise PipelineBusyError("A run is already in progress")
        try:
            self.state = Phase.IDLE
            src, dest = self.validate(source_root, target_root, concurrency)
            mode = TransferMode(mode)
            return self._execute(src, dest, mode, concurrency, progress,
                                 extensions, KeeperRule(keeper_rule), cancel_event)
        finally:
            self._run_lock.release()

    def validate(self, source_root, target_root, concurrency=None):
        """Checks run arguments without touching the filesystem. Returns (src, dest)."""
        if source_root is None or str(source_root).strip() == "":
            raise ValidationError("Source folder is not specified.")
        src = Path(source_root).expanduser().absolute()
        if not src.is_dir():
            raise ValidationError(f"Invalid source folder: {src}")

        if target_root is None or str(target_root).strip() == "":
            raise ValidationError("Target folder is not specified.")
        dest = Path(target_root).expanduser().absolute()
        if dest.exists() and not dest.is_dir():
            raise ValidationError(f"Target exists and is not a folder: {dest}")

        if concurrency is not None and concurrency < 1:
            raise ValidationError(f"Concurrency must be at least 1, got {concurrency}")
        return src, dest

    def _execute(self, src: Path, dest: Path, mode: TransferMode,
                 concurrency: Optional[int],
                 progress: Optional[ProgressCallback],
                 extensions: Optional[Iterable[str]],
                 keeper_rule: KeeperRule,
                 cancel_event: Optional[threading.Event]) -> Report:
        logging.info(f"Source: {src}")
        logging.info(f"Dest:   {dest}")

        # --- Step 1: Scanning ---
        self.state = Phase.SCANNING
        scanner = MediaScanner(extensions)
        skip_dirs = {dest} if src in dest.parents else set()
        files = list(scanner.iter_media(src, skip_dirs))
        logging.info(f"Scan complete. Found {len(files)} media files.")
        if not files:
            logging.info("No supported media files found.")
        if progress:
            progress(Phase.SCANNING, len(files), len(files), None)

        # --- Step 2: Hashing (full barrier before organizing) ---
        self.state = Phase.HASHING
        grouper = DuplicateGrouper(self.hasher, concurrency or config.default_concurrency())
        grouping = grouper.group(files, progress, cancel_event)
        logging.info(f"Hashing complete. {len(grouping.groups)} unique contents, "
                     f"{grouping.duplicate_count} duplicates.")

        errors = list(grouping.errors)
        if grouping.cancelled:
            self.state = Phase.DONE
            return Report(mode=mode,
                          files_scanned=len(files),
                          duplicate_count=grouping.duplicate_count,
                          reclaimed_bytes=grouping.reclaimed_bytes,
                          errors=tuple(errors),
                          cancelled=True,
                          target_root=dest)

        # --- Step 3: Organizing ---
        self.state = Phase.ORGANIZING
        organizer = Organizer(dest, resolver=self.resolver, keeper_rule=keeper_rule)
        organized = organizer.organize(grouping.groups, mode, progress, cancel_event)
        errors.extend(organized.errors)

        self.state = Phase.DONE
        logging.info("Organization phase complete.")
        return Report(mode=mode,
                      files_scanned=len(files),
                      unique_count=organized.unique_count,
                      duplicate_count=grouping.duplicate_count,
                      quarantined_count=organized.quarantined_count,
                      reclaimed_bytes=grouping.reclaimed_bytes,
                      duplicate_paths=tuple(organized.duplicate_paths),
                      errors=tuple(errors),
                      cancelled=organized.cancelled,
                      target_root=dest)


def run(source_root: Optional[PathLike],
        target_root: Optional[PathLike],
        mode: TransferMode = TransferMode.MOVE,
        concurrency: Optional[int] = None,
        progress: Optional[ProgressCallback] = None,
        **kwargs) -> Report:
    """Convenience wrapper running a fresh MediaOrganizerApp once."""
    return MediaOrganizerApp().run(source_root, target_root, mode, concurrency, progress, **kwargs)
