import os
import logging
from pathlib import Path
from typing import Iterable, Iterator, Optional, Set

from .. import config


def normalize_extensions(exts: Optional[Iterable[str]]) -> Set[str]:
    """Accepts 'JPG', '.jpg' or 'jpg' alike and returns lower-case '.ext' entries."""
    if exts is None:
        return set(config.MEDIA_EXTS)
    normalized = set()
    for ext in exts:
        ext = ext.strip().lower()
        if not ext:
            continue
        normalized.add(ext if ext.startswith('.') else f".{ext}")
    return normalized


class MediaScanner:
    def __init__(self, extensions: Optional[Iterable[str]] = None):
        self.extensions = normalize_extensions(extensions)

    def iter_media(self, root: Path, skip_dirs: Optional[Set[Path]] = None) -> Iterator[Path]:
        """
        Lazily yields absolute paths of recognized media files under root.
        Order follows directory enumeration and is not stable across platforms.
        """
        for path in self._iter_files(Path(root).absolute(), skip_dirs or set()):
            name = path.name.lower()
            if any(name.endswith(ext) for ext in self.extensions):
                yield path
            else:
                logging.debug(f"Ignoring unsupported file: {path}")

    def _iter_files(self, root: Path, skip_dirs: Set[Path]) -> Iterator[Path]:
        """Depth-first walker using os.scandir. Symlinks are never followed."""
        stack = [root]
        while stack:
            current = stack.pop()
            if skip_dirs and any(sd == current or sd in current.parents for sd in skip_dirs):
                logging.debug(f"Skipping directory: {current}")
                continue

            try:
                with os.scandir(current) as it:
                    entries = list(it)
            except OSError as e:
                logging.warning(f"Cannot list {current}: {e}")
                continue

            dirs = []
            for e in entries:
                try:
                    if e.is_symlink():
                        logging.warning(f"Skipping symlink: {e.path}")
                    elif e.is_dir(follow_symlinks=False):
                        dirs.append(Path(e.path))
                    elif e.is_file(follow_symlinks=False):
                        yield Path(e.path)
                except OSError as err:
                    logging.warning(f"Skipping unreadable entry {e.path}: {err}")

            # Reversed so siblings are visited in enumeration order
            stack.extend(reversed(dirs))
