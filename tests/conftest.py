import logging
from datetime import datetime

import pytest
from PIL import Image


def write_jpeg(path, when=None, color=(200, 30, 30)):
    """Writes a small real JPEG, optionally stamped with an EXIF date."""
    path.parent.mkdir(parents=True, exist_ok=True)
    img = Image.new("RGB", (16, 16), color)
    if when is not None:
        exif = Image.Exif()
        exif[0x0132] = when.strftime("%Y:%m:%d %H:%M:%S")  # Image DateTime
        img.save(path, "JPEG", exif=exif)
    else:
        img.save(path, "JPEG")
    return path


@pytest.fixture
def make_jpeg():
    return write_jpeg


@pytest.fixture
def dated_jpeg_bytes(tmp_path_factory):
    """Bytes of a JPEG captured 2020-06-01 12:00:00."""
    path = tmp_path_factory.mktemp("fixtures") / "dated.jpg"
    write_jpeg(path, datetime(2020, 6, 1, 12, 0, 0))
    return path.read_bytes()


@pytest.fixture
def root_log_handlers():
    """Removes handlers added to the root logger during a test."""
    root = logging.getLogger()
    before = list(root.handlers)
    yield root
    for handler in list(root.handlers):
        if handler not in before:
            root.removeHandler(handler)
            handler.close()
