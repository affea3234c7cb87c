import os
import queue
import threading
import time

import pytest
from watchdog.events import DirMovedEvent, FileClosedEvent, FileCreatedEvent, FileMovedEvent

from conftest import linux_only
from domains.file_upload.watchers.filesystem import (
    DirectoryWatcher,
    FileEvent,
    UploadEventHandler,
    WatcherState,
)
from service.utils.errors import (
    InvalidPatternError,
    TaskConstructionError,
    WatchDirectoryNotFoundError,
    WatchNotADirectoryError,
)


@pytest.fixture
def events() -> queue.Queue:
    return queue.Queue(maxsize=10)


def test_missing_directory_rejected(tmp_path, events):
    with pytest.raises(WatchDirectoryNotFoundError) as exc_info:
        DirectoryWatcher(0, events, tmp_path / "missing")

    assert isinstance(exc_info.value, TaskConstructionError)
    assert isinstance(exc_info.value, FileNotFoundError)


def test_file_instead_of_directory_rejected(tmp_path, events):
    path = tmp_path / "file.txt"
    path.write_text("x")

    with pytest.raises(WatchNotADirectoryError):
        DirectoryWatcher(0, events, path)


@pytest.mark.parametrize("pattern", ["[abc.mp3", "*.[", "sub/*.mp3", ""])
def test_invalid_pattern_rejected(tmp_path, events, pattern):
    with pytest.raises(InvalidPatternError):
        DirectoryWatcher(0, events, tmp_path, [pattern])


def test_route_matches_names_case_insensitively(tmp_path, events):
    watcher = DirectoryWatcher(3, events, tmp_path, ["*.MP3", "cover.jpg"])

    assert watcher.route(str(tmp_path / "Song.mp3")) is True
    assert watcher.route(str(tmp_path / "COVER.JPG")) is True
    assert watcher.route(str(tmp_path / "notes.txt")) is False

    assert events.get_nowait() == FileEvent(3, str(tmp_path / "Song.mp3"))
    assert events.get_nowait() == FileEvent(3, str(tmp_path / "COVER.JPG"))
    assert events.empty()


def test_empty_pattern_list_matches_everything(tmp_path, events):
    watcher = DirectoryWatcher(0, events, tmp_path)

    assert watcher.matches("anything.bin")
    assert watcher.matches(".hidden")


def test_handler_reports_closed_and_moved_in_files_only(tmp_path, events):
    watcher = DirectoryWatcher(1, events, tmp_path, ["*.mp4"])
    handler = UploadEventHandler(watcher)
    inside = str(tmp_path / "clip.mp4")
    outside = str(tmp_path.parent / "elsewhere.mp4")

    handler.dispatch(FileCreatedEvent(inside))
    handler.dispatch(FileClosedEvent(inside))
    handler.dispatch(FileMovedEvent(str(tmp_path / "clip.part"), inside))
    handler.dispatch(FileMovedEvent(inside, outside))
    handler.dispatch(DirMovedEvent(str(tmp_path / "a"), str(tmp_path / "b.mp4")))

    assert events.get_nowait() == FileEvent(1, inside)
    assert events.get_nowait() == FileEvent(1, inside)
    assert events.empty()


def test_handler_reports_files_moved_in_from_elsewhere(tmp_path, events):
    watcher = DirectoryWatcher(1, events, tmp_path)
    handler = UploadEventHandler(watcher)
    inside = str(tmp_path / "clip.mp4")

    handler.dispatch(FileMovedEvent("", inside))
    handler.dispatch(FileMovedEvent(inside, ""))

    assert events.get_nowait() == FileEvent(1, inside)
    assert events.empty()


@linux_only
def test_linux_watcher_uses_full_inotify_events(tmp_path, events):
    from watchdog.observers.inotify import InotifyObserver

    watcher = DirectoryWatcher(0, events, tmp_path)

    assert isinstance(watcher._observer, InotifyObserver)
    watcher.stop()


def test_stop_is_idempotent_without_start(tmp_path, events):
    watcher = DirectoryWatcher(0, events, tmp_path)

    watcher.stop()
    watcher.stop()

    assert watcher.state is WatcherState.STOPPED
    assert watcher.route(str(tmp_path / "late.txt")) is False


def test_start_after_stop_is_ignored(tmp_path, events):
    watcher = DirectoryWatcher(0, events, tmp_path)
    watcher.stop()

    watcher.start()

    assert watcher.state is WatcherState.STOPPED


def test_stop_releases_producer_blocked_on_full_queue(tmp_path):
    events = queue.Queue(maxsize=1)
    watcher = DirectoryWatcher(0, events, tmp_path)
    assert watcher.route(str(tmp_path / "first.txt"))

    results = []
    producer = threading.Thread(target=lambda: results.append(watcher.route(str(tmp_path / "second.txt"))))
    producer.start()
    time.sleep(0.3)
    assert producer.is_alive()

    watcher.stop()
    producer.join(timeout=2.0)

    assert not producer.is_alive()
    assert results == [False]
    assert events.qsize() == 1


@linux_only
def test_running_watcher_reports_written_and_renamed_files(tmp_path, events):
    watcher = DirectoryWatcher(2, events, tmp_path, ["*.mp3"])
    watcher.start()
    try:
        assert watcher.state is WatcherState.RUNNING

        (tmp_path / "ignored.txt").write_text("x")
        (tmp_path / "song.mp3").write_bytes(b"abc")
        (tmp_path / "live.part").write_bytes(b"abc")
        os.rename(tmp_path / "live.part", tmp_path / "live.mp3")

        received = [events.get(timeout=5.0), events.get(timeout=5.0)]
    finally:
        watcher.stop()

    assert received == [
        FileEvent(2, str(tmp_path / "song.mp3")),
        FileEvent(2, str(tmp_path / "live.mp3")),
    ]
    assert watcher.state is WatcherState.STOPPED


@linux_only
def test_stopped_watcher_reports_nothing(tmp_path, events):
    watcher = DirectoryWatcher(0, events, tmp_path)
    watcher.start()
    watcher.stop()

    (tmp_path / "after.txt").write_text("x")
    time.sleep(0.3)

    assert events.empty()


@linux_only
def test_running_watcher_reports_file_moved_in_from_other_directory(tmp_path, events):
    watched = tmp_path / "watched"
    staging = tmp_path / "staging"
    watched.mkdir()
    staging.mkdir()
    watcher = DirectoryWatcher(4, events, watched, ["*.mp3"])
    watcher.start()
    try:
        (staging / "song.mp3").write_bytes(b"abc")
        (staging / "song.mp3").rename(watched / "song.mp3")

        received = events.get(timeout=5.0)
    finally:
        watcher.stop()

    assert received == FileEvent(4, str(watched / "song.mp3"))
    assert events.empty()


@linux_only
def test_running_watcher_ignores_files_moved_out(tmp_path, events):
    watched = tmp_path / "watched"
    elsewhere = tmp_path / "elsewhere"
    watched.mkdir()
    elsewhere.mkdir()
    (watched / "song.mp3").write_bytes(b"abc")
    watcher = DirectoryWatcher(0, events, watched)
    watcher.start()
    try:
        (watched / "song.mp3").rename(elsewhere / "song.mp3")
        time.sleep(0.3)
    finally:
        watcher.stop()

    assert events.empty()
