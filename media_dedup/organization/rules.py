from datetime import datetime
from pathlib import Path

from .. import config


def unique_path(path: Path) -> Path:
    """
    Returns path if nothing exists there, else the first free
    '<stem> (n)<suffix>' sibling. Checks the disk on every call.
    """
    path = Path(path)
    if not path.exists() and not path.is_symlink():
        return path

    stem = path.stem
    ext = path.suffix
    counter = 1
    while True:
        candidate = path.with_name(f"{stem} ({counter}){ext}")
        if not candidate.exists() and not candidate.is_symlink():
            return candidate
        counter += 1


class DestinationPlanner:
    def __init__(self, dest_root: Path):
        self.dest_root = Path(dest_root)

    def date_folder(self, dt: datetime) -> Path:
        """target/<YYYY>/<Month name>"""
        return self.dest_root / config.YEAR_PATTERN.format(year=dt.year) / config.MONTH_NAMES[dt.month - 1]

    def duplicates_folder(self) -> Path:
        return self.dest_root / config.DUPLICATES_DIRNAME

    def keeper_destination(self, src: Path, dt: datetime) -> Path:
        return unique_path(self.date_folder(dt) / src.name)

    def duplicate_destination(self, src: Path) -> Path:
        return unique_path(self.duplicates_folder() / src.name)
