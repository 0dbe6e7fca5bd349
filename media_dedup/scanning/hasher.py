import hashlib
from dataclasses import dataclass
from pathlib import Path

from .. import config
from ..exceptions import ReadError
from ..models import FingerprintKey


@dataclass
class HashResult:
    digest: str   # lowercase hex SHA-256
    size: int     # bytes actually read

    @property
    def key(self) -> FingerprintKey:
        return FingerprintKey(self.digest, self.size)


class FileHasher:
    def __init__(self, chunk_size: int = config.HASH_CHUNK_SIZE):
        self.chunk_size = chunk_size

    def compute(self, path: Path) -> HashResult:
        """
        Streams the whole file through SHA-256 without buffering it in memory.

        Raises:
            ReadError: the file could not be opened or a read failed partway.
        """
        h = hashlib.sha256()
        size = 0
        try:
            with open(path, 'rb') as f:
                while chunk := f.read(self.chunk_size):
                    h.update(chunk)
                    size += len(chunk)
        except OSError as e:
            raise ReadError(f"Cannot read {path}: {e}") from e
        return HashResult(h.hexdigest(), size)
