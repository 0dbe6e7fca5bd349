import builtins
import threading
from datetime import datetime
from pathlib import Path

import pytest

import media_dedup.scanning.hasher as hasher_module
from media_dedup.core import MediaOrganizerApp, run
from media_dedup.exceptions import PipelineBusyError, ValidationError
from media_dedup.models import KeeperRule, Phase, TransferMode


def files_under(folder: Path):
    return sorted(p for p in folder.rglob("*") if p.is_file()) if folder.exists() else []


def test_missing_source_fails_before_touching_disk(tmp_path):
    target = tmp_path / "target"
    app = MediaOrganizerApp()

    with pytest.raises(ValidationError):
        app.run(tmp_path / "nope", target)

    assert not target.exists()
    assert app.state == Phase.IDLE


@pytest.mark.parametrize("target", [None, "", "   "])
def test_unspecified_target_fails(tmp_path, target):
    with pytest.raises(ValidationError):
        run(tmp_path, target)


def test_target_that_is_a_file_fails(tmp_path):
    (tmp_path / "target").write_text("x")
    with pytest.raises(ValidationError):
        run(tmp_path, tmp_path / "target")


def test_bad_concurrency_fails(tmp_path):
    with pytest.raises(ValidationError):
        run(tmp_path, tmp_path / "t", concurrency=0)


def test_scenario_a_two_identical_photos(tmp_path, dated_jpeg_bytes):
    src = tmp_path / "src"
    src.mkdir()
    (src / "a.jpg").write_bytes(dated_jpeg_bytes)
    (src / "b.jpg").write_bytes(dated_jpeg_bytes)
    target = tmp_path / "target"

    report = run(src, target, TransferMode.MOVE, concurrency=2)

    june = files_under(target / "2020" / "June")
    dupes = files_under(target / "Duplicates")
    assert len(june) == 1
    assert len(dupes) == 1
    assert {june[0].name, dupes[0].name} == {"a.jpg", "b.jpg"}
    assert report.duplicate_count == 1
    assert report.reclaimed_bytes == len(dated_jpeg_bytes)
    assert report.unique_count == 1
    assert report.quarantined_count == 1
    assert report.duplicate_paths == (src / dupes[0].name,)
    assert report.errors == ()
    assert files_under(src) == []


def test_scenario_b_three_identical_with_same_names(tmp_path, dated_jpeg_bytes):
    src = tmp_path / "src"
    for sub in ("one", "two", "three"):
        (src / sub).mkdir(parents=True)
        (src / sub / "img.jpg").write_bytes(dated_jpeg_bytes)
    target = tmp_path / "target"

    report = run(src, target, TransferMode.COPY, concurrency=3)

    assert report.duplicate_count == 2
    assert report.reclaimed_bytes == 2 * len(dated_jpeg_bytes)
    assert [p.name for p in files_under(target / "2020" / "June")] == ["img.jpg"]
    assert [p.name for p in files_under(target / "Duplicates")] == ["img (1).jpg", "img.jpg"]
    assert len(report.duplicate_paths) == 2
    # Copy mode leaves the source alone
    assert len(files_under(src)) == 3


def test_scenario_c_unreadable_file_is_unique(monkeypatch, tmp_path, dated_jpeg_bytes):
    src = tmp_path / "src"
    src.mkdir()
    (src / "fine.jpg").write_bytes(dated_jpeg_bytes)
    locked = src / "locked.jpg"
    locked.write_bytes(dated_jpeg_bytes)

    real_open = builtins.open

    def guarded_open(path, *args, **kwargs):
        if Path(path).name == "locked.jpg":
            raise PermissionError(13, "Permission denied", str(path))
        return real_open(path, *args, **kwargs)

    monkeypatch.setattr(hasher_module, "open", guarded_open, raising=False)
    target = tmp_path / "target"

    report = run(src, target, TransferMode.COPY, concurrency=2)

    read_errors = report.errors_of("ReadError")
    assert len(read_errors) == 1
    assert read_errors[0].path == locked
    assert read_errors[0].op == "hash"
    # Same bytes as fine.jpg but never grouped with it
    assert report.duplicate_count == 0
    assert report.unique_count == 2
    assert files_under(target / "Duplicates") == []
    assert sorted(p.name for p in files_under(target / "2020" / "June")) == ["fine.jpg", "locked.jpg"]


def test_scenario_d_existing_destination_gets_suffix(tmp_path, make_jpeg):
    src = tmp_path / "src"
    incoming = make_jpeg(src / "photo.jpg", datetime(2021, 3, 14, 9, 0, 0))
    target = tmp_path / "target"
    existing = target / "2021" / "March" / "photo.jpg"
    existing.parent.mkdir(parents=True)
    existing.write_bytes(b"already here")
    incoming_bytes = incoming.read_bytes()

    report = run(src, target, TransferMode.MOVE)

    assert existing.read_bytes() == b"already here"
    assert (target / "2021" / "March" / "photo (1).jpg").read_bytes() == incoming_bytes
    assert report.unique_count == 1
    assert report.errors == ()


def test_progress_phases_in_order(tmp_path, make_jpeg):
    src = tmp_path / "src"
    make_jpeg(src / "a.jpg", datetime(2019, 1, 1), color=(1, 2, 3))
    make_jpeg(src / "b.jpg", datetime(2019, 1, 1), color=(200, 200, 200))
    events = []
    app = MediaOrganizerApp()

    app.run(src, tmp_path / "target", TransferMode.COPY, 2, lambda *e: events.append(e))

    phases = [e[0] for e in events]
    assert phases == [Phase.SCANNING, Phase.HASHING, Phase.HASHING, Phase.ORGANIZING, Phase.ORGANIZING]
    assert events[0][1:3] == (2, 2)
    assert [e[1] for e in events if e[0] == Phase.HASHING] == [1, 2]
    assert {e[3] for e in events if e[0] == Phase.HASHING} == {"a.jpg", "b.jpg"}
    assert app.state == Phase.DONE


def test_rerun_rescans_and_ignores_target_inside_source(tmp_path, dated_jpeg_bytes):
    src = tmp_path / "src"
    src.mkdir()
    (src / "a.jpg").write_bytes(dated_jpeg_bytes)
    target = src / "library"
    app = MediaOrganizerApp()

    first = app.run(src, target, TransferMode.MOVE)
    second = app.run(src, target, TransferMode.MOVE)

    assert first.unique_count == 1
    assert second.files_scanned == 0
    assert files_under(target) == [target / "2020" / "June" / "a.jpg"]


def test_keeper_rule_path(tmp_path, dated_jpeg_bytes):
    src = tmp_path / "src"
    src.mkdir()
    for name in ("c.jpg", "a.jpg", "b.jpg"):
        (src / name).write_bytes(dated_jpeg_bytes)
    target = tmp_path / "target"

    report = run(src, target, TransferMode.COPY, 3, keeper_rule=KeeperRule.PATH)

    assert [p.name for p in files_under(target / "2020" / "June")] == ["a.jpg"]
    assert sorted(report.duplicate_paths) == [src / "b.jpg", src / "c.jpg"]


def test_custom_extensions(tmp_path):
    src = tmp_path / "src"
    src.mkdir()
    (src / "a.jpg").write_bytes(b"a")
    (src / "b.webp").write_bytes(b"b")

    report = run(src, tmp_path / "t", TransferMode.COPY, extensions=["webp"])

    assert report.files_scanned == 1
    assert report.unique_count == 1


def test_cancel_before_hashing_leaves_source(tmp_path, dated_jpeg_bytes):
    src = tmp_path / "src"
    src.mkdir()
    (src / "a.jpg").write_bytes(dated_jpeg_bytes)
    target = tmp_path / "target"
    cancel = threading.Event()
    cancel.set()

    report = run(src, target, TransferMode.MOVE, cancel_event=cancel)

    assert report.cancelled
    assert (src / "a.jpg").exists()
    assert not target.exists()


def test_cancel_during_organizing_stops_at_file_boundary(tmp_path, make_jpeg):
    src = tmp_path / "src"
    for i in range(4):
        make_jpeg(src / f"{i}.jpg", datetime(2019, 1, 1), color=(i * 40, 0, 0))
    cancel = threading.Event()

    def progress(phase, completed, total, current):
        if phase == Phase.ORGANIZING and completed == 1:
            cancel.set()

    report = run(src, tmp_path / "target", TransferMode.MOVE, 2, progress, cancel_event=cancel)

    assert report.cancelled
    assert report.unique_count == 1
    assert len(files_under(src)) == 3


def test_busy_app_rejects_second_run(tmp_path):
    app = MediaOrganizerApp()
    app._run_lock.acquire()
    try:
        with pytest.raises(PipelineBusyError):
            app.run(tmp_path, tmp_path / "t")
    finally:
        app._run_lock.release()
