"""
Rebuild the site whenever the watched source tree changes.
"""

import os
import logging
import threading

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .errors import WingError

logger = logging.getLogger('Wing.watch')


class RebuildHandler(FileSystemEventHandler):
    """Run a forced build for every file change outside the ignored directories."""

    def __init__(self, wing, ignore=()):
        self.wing = wing
        self.ignore = [os.path.abspath(path) for path in (wing.output_dir, *ignore)]
        # Builds are single-writer
        self._lock = threading.Lock()

    def should_rebuild(self, path, is_directory):
        if is_directory:
            return False
        path = os.path.abspath(path)
        for ignored in self.ignore:
            if path == ignored or path.startswith(ignored + os.sep):
                return False
        relative = os.path.relpath(path, self.wing.project_dir)
        return not any(part.startswith('.') and part != '..' for part in relative.split(os.sep))

    def handle(self, path, is_directory):
        if not self.should_rebuild(path, is_directory):
            return
        logger.info(f"Change detected: {path}", extra={'marker': 'generating'})
        self.rebuild()

    def rebuild(self):
        with self._lock:
            try:
                self.wing.build(force=True)
            except WingError:
                # Already logged by the coordinator; keep watching
                return
        logger.info("Rebuilt site!", extra={'marker': 'success'})

    def on_modified(self, event):
        self.handle(event.src_path, event.is_directory)

    def on_created(self, event):
        self.handle(event.src_path, event.is_directory)

    def on_deleted(self, event):
        self.handle(event.src_path, event.is_directory)

    def on_moved(self, event):
        self.handle(event.dest_path, event.is_directory)


def watch(wing, path, ignore=()):
    """
    Start watching path recursively.

    Returns:
        The started observer; the caller stops and joins it
    """
    handler = RebuildHandler(wing, ignore=ignore)
    observer = Observer()
    observer.schedule(handler, path, recursive=True)
    observer.start()
    logger.info(f"Watching {path} for changes")
    return observer
