from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, NamedTuple, Optional, Tuple


class Phase(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    HASHING = "hashing"
    ORGANIZING = "organizing"
    DONE = "done"


class TransferMode(str, Enum):
    MOVE = "move"
    COPY = "copy"


class KeeperRule(str, Enum):
    """Which member of a duplicate group is organized into the date tree."""
    ARRIVAL = "arrival"   # first file to finish hashing
    PATH = "path"         # lexicographically smallest source path


# progress(phase, completed, total, current_item)
ProgressCallback = Callable[[Phase, int, int, Optional[str]], None]


class FingerprintKey(NamedTuple):
    """Sole equality criterion for 'is a duplicate of'."""
    digest: str
    size: int


@dataclass
class Group:
    """
    Files sharing a FingerprintKey, in arrival order.
    The first member is the keeper; the rest are duplicates.
    """
    key: FingerprintKey
    paths: List[Path] = field(default_factory=list)

    @property
    def keeper(self) -> Path:
        return self.paths[0]

    @property
    def duplicates(self) -> List[Path]:
        return self.paths[1:]

    def ordered_by(self, rule: KeeperRule) -> "Group":
        if rule == KeeperRule.PATH:
            return Group(self.key, sorted(self.paths, key=str))
        return self


@dataclass(frozen=True)
class ErrorEntry:
    kind: str                        # ReadError / MetadataError / TransferError
    op: str                          # hash / metadata / move / copy
    path: Path
    message: str
    dest_path: Optional[Path] = None

    @classmethod
    def from_exception(cls, op: str, path: Path, exc: Exception,
                       dest_path: Optional[Path] = None) -> "ErrorEntry":
        return cls(kind=type(exc).__name__, op=op, path=path,
                   message=str(exc), dest_path=dest_path)


@dataclass(frozen=True)
class Report:
    """
    Outcome of one pipeline run.
    """
    mode: TransferMode
    files_scanned: int = 0
    unique_count: int = 0
    duplicate_count: int = 0
    quarantined_count: int = 0
    reclaimed_bytes: int = 0
    duplicate_paths: Tuple[Path, ...] = ()
    errors: Tuple[ErrorEntry, ...] = ()
    cancelled: bool = False
    target_root: Optional[Path] = None

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def errors_of(self, kind: str) -> List[ErrorEntry]:
        return [e for e in self.errors if e.kind == kind]
