import shutil
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from ..exceptions import TransferError
from ..metadata.extract import CaptureDateResolver
from ..models import ErrorEntry, FingerprintKey, Group, KeeperRule, Phase, ProgressCallback, TransferMode
from .rules import DestinationPlanner


class FileMover:
    def transfer(self, src: Path, dest: Path, mode: TransferMode):
        """
        Copies or moves one file. All-or-nothing: on failure a partially
        written destination is removed before TransferError is raised.
        """
        created = False
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            created = not dest.exists()
            if mode == TransferMode.MOVE:
                shutil.move(str(src), str(dest))
            else:
                shutil.copy2(str(src), str(dest))
        except (OSError, shutil.Error) as e:
            if created:
                self._discard_partial(src, dest)
            raise TransferError(f"Failed to {mode.value} {src} -> {dest}: {e}", src=src, dest=dest) from e

    def _discard_partial(self, src: Path, dest: Path):
        # Only while the source is intact; otherwise dest is the sole copy
        if not src.exists() or not dest.exists():
            return
        try:
            dest.unlink()
            logging.debug(f"Removed partial file {dest}")
        except OSError as e:
            logging.error(f"Could not remove partial file {dest}: {e}")


@dataclass
class OrganizeResult:
    unique_count: int = 0
    quarantined_count: int = 0
    duplicate_paths: List[Path] = field(default_factory=list)
    errors: List[ErrorEntry] = field(default_factory=list)
    cancelled: bool = False


class Organizer:
    """
    Places each group's keeper under target/<year>/<month> and every other
    member under target/Duplicates. Runs sequentially so directory creation
    and collision checks never race.
    """

    def __init__(self,
                 dest_root: Path,
                 resolver: Optional[CaptureDateResolver] = None,
                 mover: Optional[FileMover] = None,
                 keeper_rule: KeeperRule = KeeperRule.ARRIVAL):
        self.planner = DestinationPlanner(dest_root)
        self.resolver = resolver or CaptureDateResolver()
        self.mover = mover or FileMover()
        self.keeper_rule = keeper_rule

    def organize(self,
                 groups: Dict[FingerprintKey, Group],
                 mode: TransferMode,
                 progress: Optional[ProgressCallback] = None,
                 cancel_event: Optional[threading.Event] = None) -> OrganizeResult:
        result = OrganizeResult()
        total = sum(len(g.paths) for g in groups.values())
        completed = 0

        logging.info(f"Organizing {total} files in {len(groups)} groups (mode={mode.value})...")

        for group in groups.values():
            group = group.ordered_by(self.keeper_rule)

            for idx, src in enumerate(group.paths):
                if cancel_event is not None and cancel_event.is_set():
                    result.cancelled = True
                    logging.warning(f"Organizing cancelled after {completed}/{total} files")
                    return result

                if idx == 0:
                    if self._place_keeper(src, mode, result):
                        result.unique_count += 1
                else:
                    result.duplicate_paths.append(src)
                    if self._place_duplicate(src, mode, result):
                        result.quarantined_count += 1

                completed += 1
                if progress:
                    progress(Phase.ORGANIZING, completed, total, src.name)

        return result

    def _place_keeper(self, src: Path, mode: TransferMode, result: OrganizeResult) -> bool:
        resolution = self.resolver.resolve(src)
        result.errors.extend(resolution.errors)

        dest = self.planner.keeper_destination(src, resolution.captured)
        logging.debug(f"{src} -> {dest} (date from {resolution.source})")
        return self._transfer(src, dest, mode, result)

    def _place_duplicate(self, src: Path, mode: TransferMode, result: OrganizeResult) -> bool:
        dest = self.planner.duplicate_destination(src)
        logging.debug(f"Duplicate {src} -> {dest}")
        return self._transfer(src, dest, mode, result)

    def _transfer(self, src: Path, dest: Path, mode: TransferMode, result: OrganizeResult) -> bool:
        try:
            self.mover.transfer(src, dest, mode)
            return True
        except TransferError as e:
            logging.error(str(e))
            result.errors.append(ErrorEntry.from_exception(mode.value, src, e, dest_path=dest))
            return False
