import logging
from dataclasses import dataclass, field
from datetime import datetime, time
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Set

import exifread
from pymediainfo import MediaInfo

from .. import config
from ..exceptions import MetadataError
from ..models import ErrorEntry


@dataclass
class DateProbe:
    """A single metadata source: path -> optional timestamp."""
    name: str
    read: Callable[[Path], Optional[datetime]]
    skip_exts: Set[str] = field(default_factory=set)

    def applies_to(self, path: Path) -> bool:
        return path.suffix.lower() not in self.skip_exts


@dataclass
class DateResolution:
    captured: datetime
    source: str                                  # probe name or 'filesystem'
    errors: List[ErrorEntry] = field(default_factory=list)


class MetadataExtractor:
    """
    Reads embedded capture timestamps.

    Strategies:
      - Images: 'exifread' EXIF date tags.
      - Video: 'pymediainfo' QuickTime movie header, then track header.
    """

    def __init__(self):
        # MediaInfo parse shared by the two video probes of the same file
        self._mediainfo_cache: Optional[tuple] = None

    def read_photo_date(self, path: Path) -> Optional[datetime]:
        with path.open('rb') as f:
            # details=False skips makernotes and thumbnails
            tags = exifread.process_file(f, details=False)
        return self._parse_exif_date(tags)

    def read_movie_header_date(self, path: Path) -> Optional[datetime]:
        for track in self._mediainfo(path).tracks:
            if track.track_type == "General":
                return self._first_date(track, config.MOVIE_HEADER_DATE_FIELDS)
        return None

    def read_track_header_date(self, path: Path) -> Optional[datetime]:
        for track in self._mediainfo(path).tracks:
            if track.track_type == "Video":
                dt = self._first_date(track, config.TRACK_HEADER_DATE_FIELDS)
                if dt:
                    return dt
        return None

    # --- Internal Extraction Helpers ---

    def _mediainfo(self, path: Path) -> Any:
        cached = self._mediainfo_cache
        if cached is not None and cached[0] == path:
            return cached[1]
        mi = MediaInfo.parse(str(path))
        self._mediainfo_cache = (path, mi)
        return mi

    def _first_date(self, track, fields: Sequence[str]) -> Optional[datetime]:
        for name in fields:
            val = getattr(track, name, None)
            if val:
                dt = self._parse_flexible_date(str(val))
                if dt and not self._is_placeholder(dt):
                    return dt
        return None

    def _parse_exif_date(self, tags) -> Optional[datetime]:
        """Helper to parse standard EXIF date strings from exifread."""
        for tag in config.DATE_TAGS:
            if tag in tags:
                try:
                    # EXIF format is usually "YYYY:MM:DD HH:MM:SS"
                    dt_str = str(tags[tag]).strip().replace(':', '-', 2)
                    return datetime.strptime(dt_str, "%Y-%m-%d %H:%M:%S")
                except ValueError:
                    continue
        return None

    def _parse_flexible_date(self, dt_str: str) -> Optional[datetime]:
        """
        Handles MediaInfo's date spellings ("UTC 2020-01-01 12:00:00",
        "2020-01-01 12:00:00 UTC", ISO). Returns a naive datetime.
        """
        clean = dt_str.replace("UTC", "").strip()
        if not clean:
            return None

        try:
            dt = datetime.fromisoformat(clean)
            return dt.replace(tzinfo=None)
        except ValueError:
            pass

        try:
            clean_exif = clean.replace(":", "-", 2)
            if "." in clean_exif:
                clean_exif = clean_exif.split(".")[0]
            return datetime.strptime(clean_exif, "%Y-%m-%d %H:%M:%S")
        except ValueError:
            pass

        return None

    def _is_placeholder(self, dt: datetime) -> bool:
        # QuickTime writers leave zeroed headers as 1904-01-01 (or 1970 epoch)
        return dt.year in (1904, 1970) and dt.month == 1 and dt.day == 1 and dt.time() == time(0)


def filesystem_created(path: Path) -> datetime:
    """Creation time as recorded by the filesystem (st_ctime where no birth time exists)."""
    st = path.stat()
    ts = getattr(st, 'st_birthtime', None)
    if ts is None:
        ts = st.st_ctime
    return datetime.fromtimestamp(ts)


class CaptureDateResolver:
    """
    Best-effort capture timestamp for a file. Never raises: probe failures are
    logged, returned as MetadataError entries, and resolution falls through to
    the next probe and finally to the filesystem creation time.
    """

    def __init__(self, probes: Optional[List[DateProbe]] = None):
        if probes is None:
            extractor = MetadataExtractor()
            probes = [
                DateProbe("photo", extractor.read_photo_date, skip_exts=config.VIDEO_EXTS),
                DateProbe("movie_header", extractor.read_movie_header_date, skip_exts=config.IMAGE_EXTS),
                DateProbe("track_header", extractor.read_track_header_date, skip_exts=config.IMAGE_EXTS),
            ]
        self.probes = probes

    def resolve(self, path: Path) -> DateResolution:
        errors: List[ErrorEntry] = []

        for probe in self.probes:
            if not probe.applies_to(path):
                continue
            try:
                dt = probe.read(path)
            except Exception as e:
                err = MetadataError(f"{probe.name} metadata read failed: {e}")
                logging.warning(f"Metadata read failed for {path} ({probe.name}): {e}")
                errors.append(ErrorEntry.from_exception("metadata", path, err))
                continue
            if dt is not None:
                return DateResolution(dt, probe.name, errors)

        try:
            return DateResolution(filesystem_created(path), "filesystem", errors)
        except OSError as e:
            err = MetadataError(f"Cannot stat file: {e}")
            logging.warning(f"Cannot stat {path}, using current time: {e}")
            errors.append(ErrorEntry.from_exception("metadata", path, err))
            return DateResolution(datetime.now(), "now", errors)
