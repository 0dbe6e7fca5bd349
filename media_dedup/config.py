"""
Configuration constants for the media deduplicating organizer.
"""
import os

# --- File Type Definitions ---
IMAGE_EXTS = {'.jpg', '.jpeg', '.png', '.bmp', '.gif', '.tiff', '.heic', '.heif'}
VIDEO_EXTS = {'.mp4', '.avi', '.mov', '.wmv', '.mkv', '.m4v'}
MEDIA_EXTS = IMAGE_EXTS | VIDEO_EXTS

# --- Metadata Parsing ---
# Checked in order; first parseable value wins
DATE_TAGS = [
    'EXIF DateTimeOriginal',
    'EXIF DateTimeDigitized',
    'Image DateTime',
]

# MediaInfo fields carrying the QuickTime header creation times
MOVIE_HEADER_DATE_FIELDS = ['encoded_date']
TRACK_HEADER_DATE_FIELDS = ['encoded_date', 'tagged_date']

# --- Hashing & Performance ---
HASH_CHUNK_SIZE = 1024 * 1024  # 1 MB chunks for reading


def default_concurrency() -> int:
    """Half the available cores, leaving headroom for disk I/O."""
    return max(1, (os.cpu_count() or 1) // 2)


# --- Organization ---
DUPLICATES_DIRNAME = "Duplicates"
YEAR_PATTERN = "{year:04d}"

# Not calendar.month_name: that one follows the process locale
MONTH_NAMES = (
    'January', 'February', 'March', 'April', 'May', 'June',
    'July', 'August', 'September', 'October', 'November', 'December',
)

LOG_FILENAME = "organizer.log"
REPORT_FILENAME = "organizer_report.txt"
