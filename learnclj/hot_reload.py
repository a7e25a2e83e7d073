import time
from pathlib import Path

from watchdog.events import (
    FileSystemEventHandler,
    FileSystemEvent,
    FileModifiedEvent,
    FileClosedEvent,
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
)
from watchdog.observers import Observer

from learnclj.chapter import ContentRepository, ContentError, write_content_file
from learnclj.site import build_site


# Reading the content to rebuild it fires open/close events, which must not trigger another rebuild
REBUILD_EVENT_TYPES = {EVENT_TYPE_CREATED, EVENT_TYPE_DELETED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED}


class EventHandler(FileSystemEventHandler):
    def __init__(self, repository: ContentRepository, output_dir: Path) -> None:
        super().__init__()
        self.repository = repository
        self.output_dir = output_dir

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type not in REBUILD_EVENT_TYPES:
            return
        print(f"Rebuilding site in response to {event}...")
        try:
            build_site(self.repository, self.output_dir)
        except (ContentError, OSError) as e:
            # Keep watching; the next edit may fix it
            print(f"Failed to rebuild site: {e}")


def watch(repository: ContentRepository, output_dir: Path) -> None:
    build_site(repository, output_dir)

    event_handler = EventHandler(repository, output_dir)
    observer = Observer()
    observer.schedule(event_handler, repository.root.as_posix(), recursive=True)
    observer.start()
    print(f"Watching {repository.root} for changes...")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        observer.stop()
    observer.join()


class TestEventHandler:
    def test_rebuilds_on_change(self, tmp_path):
        content_root = tmp_path / "content"
        changed_file = write_content_file(content_root, "intro/readme.md", "Intro", 1)
        output_dir = tmp_path / "out"
        handler = EventHandler(ContentRepository(content_root), output_dir)

        handler.on_any_event(FileClosedEvent(changed_file.as_posix()))
        assert not output_dir.exists()

        handler.on_any_event(FileModifiedEvent(changed_file.as_posix()))
        assert (output_dir / "intro" / "readme" / "index.html").exists()

    def test_survives_broken_content(self, tmp_path):
        handler = EventHandler(ContentRepository(tmp_path / "missing"), tmp_path / "out")
        handler.on_any_event(FileModifiedEvent((tmp_path / "missing" / "x.md").as_posix()))
        assert not (tmp_path / "out").exists()

    def test_survives_unreadable_file(self, tmp_path):
        content_root = tmp_path / "content"
        write_content_file(content_root, "intro/readme.md", "Intro", 1)
        bad_file = content_root / "intro" / "bad.md"
        bad_file.write_bytes(b"\xff\xfe")
        output_dir = tmp_path / "out"
        handler = EventHandler(ContentRepository(content_root), output_dir)

        handler.on_any_event(FileModifiedEvent(bad_file.as_posix()))
        assert (output_dir / "intro" / "readme" / "index.html").exists()
        assert not (output_dir / "intro" / "bad").exists()
