import logging
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .. import config
from ..exceptions import ReadError
from ..models import ErrorEntry, FingerprintKey, Group, Phase, ProgressCallback
from .hasher import FileHasher


class GroupIndex:
    """
    Thread-safe FingerprintKey -> Group map with duplicate accounting.

    The lock covers only the bookkeeping; callers hash outside of it.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._groups: Dict[FingerprintKey, Group] = {}
        self._errors: List[ErrorEntry] = []
        self.duplicate_count = 0
        self.reclaimed_bytes = 0

    def add(self, key: FingerprintKey, path: Path) -> int:
        """Appends path to its group and returns the new group size."""
        with self._lock:
            group = self._groups.get(key)
            if group is None:
                group = self._groups[key] = Group(key)
            group.paths.append(path)

            size = len(group.paths)
            if size == 2:
                # Group just became a duplicate group: account for the members
                # that arrived while it was still a singleton.
                prior = size - 1
                self.duplicate_count += prior
                self.reclaimed_bytes += key.size * prior
            elif size > 2:
                self.duplicate_count += 1
                self.reclaimed_bytes += key.size
            return size

    def record_error(self, entry: ErrorEntry):
        with self._lock:
            self._errors.append(entry)

    def groups(self) -> Dict[FingerprintKey, Group]:
        with self._lock:
            return {k: Group(k, list(g.paths)) for k, g in self._groups.items()}

    def errors(self) -> List[ErrorEntry]:
        with self._lock:
            return list(self._errors)


@dataclass
class GroupingResult:
    groups: Dict[FingerprintKey, Group] = field(default_factory=dict)
    duplicate_count: int = 0
    reclaimed_bytes: int = 0
    errors: List[ErrorEntry] = field(default_factory=list)
    hashed: int = 0
    cancelled: bool = False


class DuplicateGrouper:
    def __init__(self, hasher: Optional[FileHasher] = None, max_workers: Optional[int] = None):
        self.hasher = hasher or FileHasher()
        self.max_workers = max_workers or config.default_concurrency()

    def group(self,
              paths: Iterable[Path],
              progress: Optional[ProgressCallback] = None,
              cancel_event: Optional[threading.Event] = None) -> GroupingResult:
        """
        Hashes every path in parallel and partitions them by (digest, size).

        Group order inside each key follows hash completion order, so the
        keeper is whichever copy finished first.
        """
        paths = list(paths)
        total = len(paths)
        index = GroupIndex()

        logging.info(f"Hashing {total} files with {self.max_workers} workers")

        completed = 0
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_path = {
                executor.submit(self._hash_one, path, index, cancel_event): path
                for path in paths
            }
            for future in as_completed(future_to_path):
                path = future_to_path[future]
                if not future.result():
                    continue
                completed += 1
                if progress:
                    progress(Phase.HASHING, completed, total, path.name)

        cancelled = bool(cancel_event and cancel_event.is_set() and completed < total)
        if cancelled:
            logging.warning(f"Hashing cancelled after {completed}/{total} files")

        return GroupingResult(
            groups=index.groups(),
            duplicate_count=index.duplicate_count,
            reclaimed_bytes=index.reclaimed_bytes,
            errors=index.errors(),
            hashed=completed,
            cancelled=cancelled,
        )

    def _hash_one(self, path: Path, index: GroupIndex,
                  cancel_event: Optional[threading.Event]) -> bool:
        if cancel_event is not None and cancel_event.is_set():
            return False

        try:
            key = self.hasher.compute(path).key
        except ReadError as e:
            logging.error(f"Hashing failed for {path}: {e}")
            index.record_error(ErrorEntry.from_exception("hash", path, e))
            # Unique token: never groups with anything, including other failures
            key = FingerprintKey(uuid.uuid4().hex, 0)

        index.add(key, path)
        return True
